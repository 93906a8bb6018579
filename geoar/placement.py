"""
Relative placement of content near a localized camera.

One-shot alternative to the PoseAlignmentEngine when only the offset between
the camera GeoPose and a content GeoPose is needed.

Known approximation:
    The East and North offsets are two independent ellipsoidal geodesic
    distances, one along the camera's parallel and one along its meridian.
    This matches observed AR content placement for short ranges (tens of km)
    but diverges from a true tangent-plane projection at larger scales.
    Use geodesy.geodetic_to_enu() when a precise ENU vector is needed.
"""

import math
import numpy as np
from pyproj import Geod
import logging

from .axes import (
    convert_geo_to_local_quat,
    convert_geo_to_local_vec3,
    quaternion_inverse,
    quaternion_multiply,
)
from .poses import GeoPose, LocalPose, Quaternion

logger = logging.getLogger(__name__)

# Ellipsoidal geodesic solver on WGS84 (inverse problem)
_GEOD = Geod(ellps='WGS84')


def _geodesic_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    _, _, distance = _GEOD.inv(lon1, lat1, lon2, lat2)
    return float(distance)


def get_relative_global_position(camera_geo_pose: GeoPose, object_geo_pose: GeoPose) -> np.ndarray:
    """
    Relative position of an object with respect to the camera.

    Args:
        camera_geo_pose: GeoPose of the camera returned by localization
        object_geo_pose: GeoPose of the object

    Returns:
        (East, North, Up) offset in meters, in ENU axes
    """
    cam = camera_geo_pose.position
    obj = object_geo_pose.position

    dx = _geodesic_distance(cam.lat, cam.lon, cam.lat, obj.lon)
    dy = _geodesic_distance(cam.lat, cam.lon, obj.lat, cam.lon)
    if obj.lat < cam.lat:
        dy = -dy
    if obj.lon < cam.lon:
        dx = -dx

    dz = obj.h - cam.h
    # Localization services occasionally return an invalid height
    if math.isnan(dz):
        logger.warning("Height difference is not a number, placing object at camera height")
        dz = 0.0

    return np.array([dx, dy, dz], dtype=np.float64)


def get_relative_orientation(q1: Quaternion, q2: Quaternion) -> Quaternion:
    """
    Rotation that brings q1 into q2.

    If q2 = q_diff * q1, then q_diff = q2 * inverse(q1). Both quaternions must
    be expressed in the same coordinate system.
    """
    return quaternion_multiply(q2, quaternion_inverse(q1)).normalized()


def get_relative_global_orientation(camera_geo_pose: GeoPose, object_geo_pose: GeoPose) -> Quaternion:
    """Rotation taking the camera ENU orientation to the object ENU orientation."""
    return get_relative_orientation(camera_geo_pose.quaternion, object_geo_pose.quaternion)


def place_relative_to_camera(camera_geo_pose: GeoPose, object_geo_pose: GeoPose) -> LocalPose:
    """
    Local pose of an object as a child of the camera's ENU-aligned node.

    The position is the relative ENU offset and the orientation the object's
    ENU quaternion, both converted to local engine axes.
    """
    enu_offset = get_relative_global_position(camera_geo_pose, object_geo_pose)
    return LocalPose(
        position=convert_geo_to_local_vec3(enu_offset),
        orientation=convert_geo_to_local_quat(object_geo_pose.quaternion),
    )
