"""
Pose data model shared by the transform pipeline.

Coordinate System Definitions:
    - Geodetic: WGS84 latitude/longitude in degrees, ellipsoidal height in meters
    - ENU: East-North-Up local tangent plane at an explicit reference point
    - Local: engine rendering space, X-right, Y-up, Z-backward (right-handed),
      origin where the AR session started

Quaternion Conventions:
    - Component order is (x, y, z, w), scalar last, matching
      scipy.spatial.transform.Rotation
    - GeoPose orientations are expressed in the ENU frame at the pose position;
      a camera with identity orientation looks East
"""

import math
import numpy as np
from typing import Any, Dict, Union
from dataclasses import dataclass, field
from scipy.spatial.transform import Rotation as R
import logging

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

# Norm below which a quaternion cannot be normalized
QUATERNION_EPSILON = 1e-12


def validate_finite(name: str, value: float) -> float:
    """
    Return value as float, raising InvalidInputError if it is not finite.
    """
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(v):
        raise InvalidInputError(f"{name} must be finite, got {v}")
    return v


def validate_lat_lon(lat: float, lon: float) -> None:
    """
    Check geodetic coordinate ranges.

    Args:
        lat: Latitude in degrees, must lie in [-90, 90]
        lon: Longitude in degrees, must lie in [-180, 180]

    Raises:
        InvalidInputError: if either value is non-finite or out of range
    """
    lat = validate_finite("latitude", lat)
    lon = validate_finite("longitude", lon)
    if not -90.0 <= lat <= 90.0:
        raise InvalidInputError(f"Latitude {lat} outside [-90, 90]")
    if not -180.0 <= lon <= 180.0:
        raise InvalidInputError(f"Longitude {lon} outside [-180, 180]")


@dataclass
class GeodeticPosition:
    """
    WGS84 geodetic position.

    Attributes:
        lat: Geodetic latitude in degrees
        lon: Geodetic longitude in degrees
        h: Ellipsoidal height in meters. May be NaN when a localization
           service returned an invalid height; transform functions reject it.
    """
    lat: float
    lon: float
    h: float = 0.0

    def __post_init__(self):
        validate_lat_lon(self.lat, self.lon)
        self.lat = float(self.lat)
        self.lon = float(self.lon)
        self.h = float(self.h)

    def to_dict(self) -> Dict[str, float]:
        return {'lat': self.lat, 'lon': self.lon, 'h': self.h}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeodeticPosition":
        return cls(lat=data['lat'], lon=data['lon'], h=data.get('h', 0.0))


@dataclass
class Quaternion:
    """Rotation quaternion, scalar last."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    def __post_init__(self):
        self.x = validate_finite("quaternion.x", self.x)
        self.y = validate_finite("quaternion.y", self.y)
        self.z = validate_finite("quaternion.z", self.z)
        self.w = validate_finite("quaternion.w", self.w)

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self.as_array()))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z, self.w], dtype=np.float64)

    @classmethod
    def from_array(cls, q) -> "Quaternion":
        q = np.asarray(q, dtype=np.float64).reshape(4)
        return cls(x=q[0], y=q[1], z=q[2], w=q[3])

    @classmethod
    def identity(cls) -> "Quaternion":
        return cls(0.0, 0.0, 0.0, 1.0)

    def normalized(self) -> "Quaternion":
        """
        Return the unit quaternion pointing the same way.

        Raises:
            InvalidInputError: if the norm is too small to normalize
        """
        n = self.norm
        if n < QUATERNION_EPSILON:
            raise InvalidInputError(f"Degenerate quaternion (norm {n:.3e}) cannot be normalized")
        return Quaternion.from_array(self.as_array() / n)

    def to_rotation(self) -> R:
        """Convert to a scipy Rotation (normalizes on the way)."""
        return R.from_quat(self.normalized().as_array())

    @classmethod
    def from_rotation(cls, rotation: R) -> "Quaternion":
        return cls.from_array(rotation.as_quat())

    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y, 'z': self.z, 'w': self.w}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quaternion":
        return cls(x=data['x'], y=data['y'], z=data['z'], w=data['w'])


@dataclass
class GeoPose:
    """
    Geodetic position plus ENU-relative orientation.

    This is the nested GeoPose standard (March 2022):
        {"position": {"lat", "lon", "h"}, "quaternion": {"x", "y", "z", "w"}}
    """
    position: GeodeticPosition
    quaternion: Quaternion = field(default_factory=Quaternion.identity)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            'position': self.position.to_dict(),
            'quaternion': self.quaternion.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeoPose":
        return cls(
            position=GeodeticPosition.from_dict(data['position']),
            quaternion=Quaternion.from_dict(data['quaternion']),
        )


@dataclass
class LegacyGeoPose:
    """
    Pre-2022 vendor GeoPose with flat position fields.

    Only accepted at the system boundary; convert it with
    upgrade_geopose_standard() before handing it to the core.
    """
    latitude: float
    longitude: float
    ellipsoid_height: float
    quaternion: Quaternion = field(default_factory=Quaternion.identity)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LegacyGeoPose":
        return cls(
            latitude=data['latitude'],
            longitude=data['longitude'],
            ellipsoid_height=data['ellipsoidHeight'],
            quaternion=Quaternion.from_dict(data['quaternion']),
        )


def upgrade_geopose_standard(
    geo_pose: Union[GeoPose, LegacyGeoPose, Dict[str, Any]]
) -> GeoPose:
    """
    Convert a GeoPose in either the old flat or the new nested format.

    Args:
        geo_pose: GeoPose, LegacyGeoPose, or a dict in either layout

    Returns:
        The same pose in the nested GeoPose format
    """
    if isinstance(geo_pose, GeoPose):
        return geo_pose
    if isinstance(geo_pose, dict):
        if 'position' in geo_pose:
            return GeoPose.from_dict(geo_pose)
        geo_pose = LegacyGeoPose.from_dict(geo_pose)
    if isinstance(geo_pose, LegacyGeoPose):
        logger.debug("Upgrading legacy GeoPose to the nested position format")
        return GeoPose(
            position=GeodeticPosition(
                lat=geo_pose.latitude,
                lon=geo_pose.longitude,
                h=geo_pose.ellipsoid_height,
            ),
            quaternion=geo_pose.quaternion,
        )
    raise InvalidInputError(f"Unsupported GeoPose type: {type(geo_pose).__name__}")


@dataclass
class LocalPose:
    """
    Pose in the engine's local rendering space.

    position:
      3D translation [x, y, z], meters.
    orientation:
      Unit quaternion in local axes.
    """
    position: np.ndarray
    orientation: Quaternion = field(default_factory=Quaternion.identity)

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        if not np.all(np.isfinite(self.position)):
            raise InvalidInputError(f"Local position must be finite, got {self.position}")


class RigidTransform:
    """
    Rotation followed by translation, stored as a 4x4 homogeneous matrix.

    Composition and inversion operate on the full matrix so that rotation and
    translation are always handled jointly:
        [R|t]^{-1} = [R^T | -R^T t]
    """

    def __init__(self, matrix: np.ndarray = None):
        if matrix is None:
            matrix = np.eye(4, dtype=np.float64)
        self.matrix = np.asarray(matrix, dtype=np.float64).reshape(4, 4)

    @classmethod
    def from_pose(cls, position, quaternion: Quaternion) -> "RigidTransform":
        """
        Build the transform that rotates by quaternion then translates by position.
        """
        matrix = np.eye(4, dtype=np.float64)
        matrix[:3, :3] = quaternion.to_rotation().as_matrix()
        matrix[:3, 3] = np.asarray(position, dtype=np.float64).reshape(3)
        return cls(matrix)

    @classmethod
    def from_local_pose(cls, pose: LocalPose) -> "RigidTransform":
        return cls.from_pose(pose.position, pose.orientation)

    @property
    def rotation_matrix(self) -> np.ndarray:
        return self.matrix[:3, :3].copy()

    @property
    def position(self) -> np.ndarray:
        return self.matrix[:3, 3].copy()

    @property
    def quaternion(self) -> Quaternion:
        return Quaternion.from_rotation(R.from_matrix(self.matrix[:3, :3])).normalized()

    def compose(self, child: "RigidTransform") -> "RigidTransform":
        """
        World transform of child when attached under this transform.
        """
        return RigidTransform(self.matrix @ child.matrix)

    def inverse(self) -> "RigidTransform":
        return RigidTransform(np.linalg.inv(self.matrix))

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Transform one point (3,) or an Nx3 array of points."""
        points = np.asarray(points, dtype=np.float64)
        return points @ self.matrix[:3, :3].T + self.matrix[:3, 3]

    def to_local_pose(self) -> LocalPose:
        return LocalPose(position=self.position, orientation=self.quaternion)

    def __repr__(self) -> str:
        return f"RigidTransform(position={self.position}, quaternion={self.quaternion})"
