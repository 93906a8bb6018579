"""
Geodetic coordinate conversions on the WGS84 ellipsoid.

This module handles the transformations between:
    1. Geodetic (latitude, longitude, ellipsoidal height)
    2. ECEF (Earth-Centered, Earth-Fixed)
    3. ENU (East-North-Up local tangent plane at a reference point)

Coordinate System Definitions:
    - ECEF: X towards 0°lon on the equator, Y towards 90°E, Z towards North Pole
    - ENU: E tangent pointing east, N tangent pointing north, U along the
      ellipsoid normal, all relative to an explicit reference geodetic point

All functions are pure. Invalid input (non-finite values, latitude outside
[-90, 90], longitude outside [-180, 180]) raises InvalidInputError.
"""

import math
import numpy as np
import logging

from .errors import InvalidInputError
from .poses import GeodeticPosition, validate_finite, validate_lat_lon

logger = logging.getLogger(__name__)

# WGS84 ellipsoid parameters
WGS84_A = 6378137.0  # Semi-major axis (m), radius at the equator
WGS84_B = 6356752.3142  # Semi-minor axis (m), radius at the poles
WGS84_F = (WGS84_A - WGS84_B) / WGS84_A  # Flattening
WGS84_E2 = WGS84_F * (2 - WGS84_F)  # First eccentricity squared
WGS84_EP2 = WGS84_E2 / (1 - WGS84_E2)  # Second eccentricity squared


def _validate_geodetic(lat: float, lon: float, h: float) -> tuple:
    validate_lat_lon(lat, lon)
    return float(lat), float(lon), validate_finite("height", h)


def _validate_vector(name: str, v) -> np.ndarray:
    arr = np.asarray(v, dtype=np.float64).reshape(3)
    if not np.all(np.isfinite(arr)):
        raise InvalidInputError(f"{name} must be finite, got {arr}")
    return arr


def geodetic_to_ecef(lat: float, lon: float, h: float) -> np.ndarray:
    """
    Convert geodetic coordinates (WGS84) to ECEF.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees
        h: Ellipsoidal height in meters

    Returns:
        ECEF coordinates as (X, Y, Z) in meters
    """
    lat, lon, h = _validate_geodetic(lat, lon, h)
    lat_rad = math.radians(lat)
    lon_rad = math.radians(lon)

    sin_lat = math.sin(lat_rad)
    cos_lat = math.cos(lat_rad)

    # Radius of curvature in the prime vertical
    nu = WGS84_A / math.sqrt(1 - WGS84_E2 * sin_lat * sin_lat)

    x = (h + nu) * cos_lat * math.cos(lon_rad)
    y = (h + nu) * cos_lat * math.sin(lon_rad)
    z = (h + (1 - WGS84_E2) * nu) * sin_lat

    return np.array([x, y, z], dtype=np.float64)


def ecef_to_enu_rotation(lat: float, lon: float) -> np.ndarray:
    """
    Compute rotation matrix from ECEF to the local ENU frame.

    Args:
        lat: Latitude of the reference point in degrees
        lon: Longitude of the reference point in degrees

    Returns:
        3x3 rotation matrix from ECEF to ENU
    """
    validate_lat_lon(lat, lon)
    lat_rad = math.radians(lat)
    lon_rad = math.radians(lon)

    clat, slat = math.cos(lat_rad), math.sin(lat_rad)
    clon, slon = math.cos(lon_rad), math.sin(lon_rad)

    # Row 1: East direction in ECEF
    # Row 2: North direction in ECEF
    # Row 3: Up direction in ECEF
    return np.array([
        [-slon, clon, 0.0],
        [-slat * clon, -slat * slon, clat],
        [clat * clon, clat * slon, slat],
    ], dtype=np.float64)


def ecef_to_enu(ecef, ref_lat: float, ref_lon: float, ref_h: float) -> np.ndarray:
    """
    Express an ECEF point as an ENU displacement from a reference point.

    Args:
        ecef: ECEF coordinates (X, Y, Z) in meters
        ref_lat: Reference latitude in degrees
        ref_lon: Reference longitude in degrees
        ref_h: Reference ellipsoidal height in meters

    Returns:
        (East, North, Up) in meters
    """
    point = _validate_vector("ECEF point", ecef)
    ref_ecef = geodetic_to_ecef(ref_lat, ref_lon, ref_h)
    return ecef_to_enu_rotation(ref_lat, ref_lon) @ (point - ref_ecef)


def geodetic_to_enu(
    lat: float, lon: float, h: float,
    ref_lat: float, ref_lon: float, ref_h: float,
) -> np.ndarray:
    """Geodetic point to ENU displacement from the reference point."""
    return ecef_to_enu(geodetic_to_ecef(lat, lon, h), ref_lat, ref_lon, ref_h)


def enu_to_ecef(enu, ref_lat: float, ref_lon: float, ref_h: float) -> np.ndarray:
    """
    Convert an ENU displacement from a reference point back to ECEF.

    Args:
        enu: (East, North, Up) in meters
        ref_lat: Reference latitude in degrees
        ref_lon: Reference longitude in degrees
        ref_h: Reference ellipsoidal height in meters

    Returns:
        ECEF coordinates as (X, Y, Z) in meters
    """
    enu = _validate_vector("ENU vector", enu)
    ref_ecef = geodetic_to_ecef(ref_lat, ref_lon, ref_h)
    # Transpose of an orthonormal rotation is its inverse
    return ref_ecef + ecef_to_enu_rotation(ref_lat, ref_lon).T @ enu


def ecef_to_geodetic(ecef) -> GeodeticPosition:
    """
    Convert ECEF cartesian coordinates to WGS84 geodetic coordinates.

    Uses Bowring's (1985) closed-form formulation, precise to the micrometer
    for terrestrial heights without iterating:
        B. R. Bowring, 'The accuracy of geodetic latitude and height
        equations', Survey Review vol 28, 218, Oct 1985.

    When the parametric latitude term cosBeta is not finite (z = 0, or the
    Earth's center) the latitude defaults to 0 instead of propagating NaN.
    A point exactly on the polar axis resolves to latitude ±90.

    Args:
        ecef: ECEF coordinates (X, Y, Z) in meters

    Returns:
        GeodeticPosition (degrees, degrees, meters)
    """
    x, y, z = _validate_vector("ECEF point", ecef)

    p = math.hypot(x, y)  # distance from minor axis
    r = math.sqrt(p * p + z * z)  # polar radius

    if p == 0.0 and z != 0.0:
        lat = 90.0 if z > 0 else -90.0
        return GeodeticPosition(lat=lat, lon=0.0, h=abs(z) - WGS84_B)

    # Parametric latitude (Bowring eqn.17, replacing tanBeta = z*a / p*b)
    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        tan_beta = (np.float64(WGS84_B * z) / np.float64(WGS84_A * p)) * (
            1 + np.float64(WGS84_EP2 * WGS84_B) / np.float64(r)
        )
        sin_beta = tan_beta / np.sqrt(1 + tan_beta * tan_beta)
        cos_beta = sin_beta / tan_beta

    # Geodetic latitude (Bowring eqn.18)
    lat_rad = 0.0
    if np.isfinite(cos_beta):
        lat_rad = math.atan2(
            z + WGS84_EP2 * WGS84_B * float(sin_beta) ** 3,
            p - WGS84_E2 * WGS84_A * float(cos_beta) ** 3,
        )

    lon_rad = math.atan2(y, x)

    # Height above ellipsoid (Bowring eqn.7)
    sin_lat = math.sin(lat_rad)
    cos_lat = math.cos(lat_rad)
    nu = WGS84_A / math.sqrt(1 - WGS84_E2 * sin_lat * sin_lat)
    height = p * cos_lat + z * sin_lat - (WGS84_A * WGS84_A) / nu

    return GeodeticPosition(
        lat=math.degrees(lat_rad),
        lon=math.degrees(lon_rad),
        h=height,
    )


def enu_to_geodetic(enu, ref_lat: float, ref_lon: float, ref_h: float) -> GeodeticPosition:
    """ENU displacement from the reference point to a geodetic position."""
    return ecef_to_geodetic(enu_to_ecef(enu, ref_lat, ref_lon, ref_h))


def get_earth_radius_at(latitude: float) -> float:
    """
    Geocentric radius of the ellipsoid at a latitude.

    Display/estimation helper only; not used by the transform chain.

    Args:
        latitude: Latitude in degrees

    Returns:
        Earth radius in meters
    """
    latitude = validate_finite("latitude", latitude)
    lat = math.radians(latitude)
    r1 = WGS84_A
    r2 = WGS84_B
    cos_lat = math.cos(lat)
    sin_lat = math.sin(lat)

    numerator = (r1 * r1 * cos_lat) ** 2 + (r2 * r2 * sin_lat) ** 2
    denominator = (r1 * cos_lat) ** 2 + (r2 * sin_lat) ** 2
    return math.sqrt(numerator / denominator)
