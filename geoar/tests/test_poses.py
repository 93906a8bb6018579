"""
Tests for the pose data model.
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from geoar.errors import InvalidInputError
from geoar.poses import (
    GeoPose,
    GeodeticPosition,
    LegacyGeoPose,
    LocalPose,
    Quaternion,
    RigidTransform,
    upgrade_geopose_standard,
)


class TestGeodeticPosition:

    def test_out_of_range_latitude(self):
        with pytest.raises(InvalidInputError):
            GeodeticPosition(lat=95.0, lon=0.0)

    def test_nan_height_is_kept(self):
        """Localization may report an invalid height; the value object keeps it."""
        pos = GeodeticPosition(lat=10.0, lon=20.0, h=float('nan'))
        assert np.isnan(pos.h)

    def test_dict_round_trip(self):
        pos = GeodeticPosition(lat=10.0, lon=-20.0, h=5.0)
        assert GeodeticPosition.from_dict(pos.to_dict()) == pos


class TestQuaternion:

    def test_normalized(self):
        q = Quaternion(0.0, 0.0, 0.0, 2.0).normalized()
        assert_allclose(q.as_array(), [0, 0, 0, 1])

    def test_degenerate_normalization_raises(self):
        with pytest.raises(InvalidInputError):
            Quaternion(0.0, 0.0, 0.0, 0.0).normalized()

    def test_rejects_non_finite(self):
        with pytest.raises(InvalidInputError):
            Quaternion(0.0, float('inf'), 0.0, 1.0)


class TestGeoPoseStandard:

    LEGACY = {
        'latitude': 47.1,
        'longitude': 8.5,
        'ellipsoidHeight': 450.0,
        'quaternion': {'x': 0.0, 'y': 0.0, 'z': 0.0, 'w': 1.0},
    }

    def test_upgrade_legacy_dict(self):
        pose = upgrade_geopose_standard(self.LEGACY)

        assert pose.position == GeodeticPosition(47.1, 8.5, 450.0)
        assert pose.quaternion == Quaternion.identity()

    def test_upgrade_legacy_object(self):
        legacy = LegacyGeoPose.from_dict(self.LEGACY)
        assert upgrade_geopose_standard(legacy).position.h == 450.0

    def test_new_format_passes_through(self):
        pose = GeoPose(GeodeticPosition(1.0, 2.0, 3.0))

        assert upgrade_geopose_standard(pose) is pose
        assert upgrade_geopose_standard(pose.to_dict()) == pose

    def test_unsupported_type(self):
        with pytest.raises(InvalidInputError):
            upgrade_geopose_standard([47.1, 8.5])


class TestRigidTransform:

    def test_inverse_composes_to_identity(self, local_camera_pose):
        t = RigidTransform.from_local_pose(local_camera_pose)

        assert_allclose(t.compose(t.inverse()).matrix, np.eye(4), atol=1e-12)
        assert_allclose(t.inverse().compose(t).matrix, np.eye(4), atol=1e-12)

    def test_apply(self):
        t = RigidTransform.from_pose([1.0, 2.0, 3.0], Quaternion(0.0, 0.0, np.sin(np.pi / 4), np.cos(np.pi / 4)))

        assert_allclose(t.apply([1.0, 0.0, 0.0]), [1.0, 3.0, 3.0], atol=1e-12)

    def test_to_local_pose(self, local_camera_pose):
        pose = RigidTransform.from_local_pose(local_camera_pose).to_local_pose()

        assert_allclose(pose.position, local_camera_pose.position)
        dot = np.dot(pose.orientation.as_array(), local_camera_pose.orientation.as_array())
        assert abs(dot) == pytest.approx(1.0)

    def test_local_pose_rejects_nan(self):
        with pytest.raises(InvalidInputError):
            LocalPose(position=[0.0, np.nan, 0.0])
