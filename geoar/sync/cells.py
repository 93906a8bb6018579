"""
Spatial cell ids used as keys of the shared document.

Peers standing near each other hash their position to the same H3 cell and
therefore write into the same list.
"""

import h3

from ..errors import InvalidInputError
from ..poses import validate_lat_lon

# Roughly 0.7 km² hexagons
DEFAULT_CELL_RESOLUTION = 8


def validate_resolution(resolution: int) -> int:
    if isinstance(resolution, bool) or not isinstance(resolution, int) or not 0 <= resolution <= 15:
        raise InvalidInputError(f"H3 resolution must be an integer in [0, 15], got {resolution!r}")
    return resolution


def spatial_cell_id(lat: float, lon: float, resolution: int = DEFAULT_CELL_RESOLUTION) -> str:
    """
    Coarse geospatial hash of a position.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees
        resolution: H3 resolution (0-15)

    Returns:
        H3 cell id as a hex string
    """
    validate_lat_lon(lat, lon)
    return h3.latlng_to_cell(float(lat), float(lon), validate_resolution(resolution))


def cell_center(cell_id: str) -> tuple:
    """(lat, lon) of the centre of a cell."""
    if not h3.is_valid_cell(cell_id):
        raise InvalidInputError(f"Not a valid H3 cell id: {cell_id!r}")
    return h3.cell_to_latlng(cell_id)
