"""
GeoAR Package

Core of a geospatial augmented-reality client: places content with known
geodetic poses in a local rendering space and shares ephemeral content between
peers.

Coordinate System Chain:
    Geodetic (WGS84) → ECEF → ENU (at the localized camera) → Local engine space

Conventions:
    - GeoPose: WGS84 position with ellipsoidal height, ENU orientation,
      quaternions scalar last (x, y, z, w)
    - Local engine space: X-right, Y-up, Z-backward
    - Vendor camera: X-forward, Y-left, Z-up, identity looks East

Components:
    - geodesy: geodetic/ECEF/ENU conversions
    - axes: vector and quaternion axis convention conversions
    - alignment: local <-> geodetic pose alignment after localization
    - placement: one-shot camera-relative placement
    - sync: replicated content document and peer protocol
"""

from .errors import GeoARError, InvalidInputError, NotAlignedError, SyncTimeoutError
from .poses import (
    GeodeticPosition,
    Quaternion,
    GeoPose,
    LegacyGeoPose,
    LocalPose,
    RigidTransform,
    upgrade_geopose_standard,
)
from .geodesy import (
    geodetic_to_ecef,
    ecef_to_geodetic,
    ecef_to_enu,
    enu_to_ecef,
    geodetic_to_enu,
    enu_to_geodetic,
    get_earth_radius_at,
)
from .alignment import PoseAlignmentEngine, AlignmentState
from .placement import (
    get_relative_global_position,
    get_relative_orientation,
    get_relative_global_orientation,
    place_relative_to_camera,
)
from .config import Config, SyncSettings, LoggingSettings

__version__ = "1.0.0"
__all__ = [
    "GeoARError",
    "InvalidInputError",
    "NotAlignedError",
    "SyncTimeoutError",
    "GeodeticPosition",
    "Quaternion",
    "GeoPose",
    "LegacyGeoPose",
    "LocalPose",
    "RigidTransform",
    "upgrade_geopose_standard",
    "geodetic_to_ecef",
    "ecef_to_geodetic",
    "ecef_to_enu",
    "enu_to_ecef",
    "geodetic_to_enu",
    "enu_to_geodetic",
    "get_earth_radius_at",
    "PoseAlignmentEngine",
    "AlignmentState",
    "get_relative_global_position",
    "get_relative_orientation",
    "get_relative_global_orientation",
    "place_relative_to_camera",
    "Config",
    "SyncSettings",
    "LoggingSettings",
]
