"""Shared fixtures."""

import math
import pytest
import numpy as np

from geoar.poses import GeoPose, GeodeticPosition, LocalPose, Quaternion


@pytest.fixture
def camera_geo_pose():
    """Camera GeoPose as returned by a localization service (vendor convention)."""
    yaw = math.radians(30.0)
    return GeoPose(
        position=GeodeticPosition(lat=46.5197, lon=6.5663, h=412.3),
        quaternion=Quaternion(0.0, 0.0, math.sin(yaw / 2), math.cos(yaw / 2)),
    )


@pytest.fixture
def local_camera_pose():
    """Local engine pose of the camera when the localized image was taken."""
    angle = math.radians(-70.0)
    axis = np.array([0.2, 1.0, 0.1])
    axis = axis / np.linalg.norm(axis)
    s = math.sin(angle / 2)
    return LocalPose(
        position=np.array([1.5, 1.2, -3.0]),
        orientation=Quaternion(axis[0] * s, axis[1] * s, axis[2] * s, math.cos(angle / 2)),
    )
