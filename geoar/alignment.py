"""
Pose alignment between the local engine space and the geodetic frame.

A localization service returns the GeoPose of a camera image (the "global
image pose"). Together with the local pose the engine reported when the image
was captured, it fixes the rigid transform between the local session space and
the ENU tangent plane at the camera position.

Transformation chain (geodetic -> local):
    GeoPose -> ENU displacement from reference -> local axes -> local_to_enu

Transformation chain (local -> geodetic):
    LocalPose -> enu_to_local -> ENU axes -> geodetic via reference

The engine is a single-owner, synchronous state machine with two states,
Unaligned and Aligned. Callers serialize align() against the conversions.
"""

import numpy as np
from typing import Optional
from dataclasses import dataclass
import logging

from .axes import (
    convert_geo_to_local_quat,
    convert_geo_to_local_vec3,
    convert_local_to_geo_quat,
    convert_local_to_geo_vec3,
    convert_vendor_camera_to_local_quat,
    quaternion_inverse,
    quaternion_multiply,
)
from .errors import NotAlignedError
from .geodesy import enu_to_geodetic, geodetic_to_enu
from .poses import GeoPose, LocalPose, Quaternion, RigidTransform

logger = logging.getLogger(__name__)

# +90° about the local up (Y) axis. A GeoPose camera with identity orientation
# looks East, the engine camera looks down -Z (North once aligned).
CAMERA_FORWARD_CORRECTION = Quaternion(0.0, np.sin(np.pi / 4), 0.0, np.cos(np.pi / 4))


@dataclass(frozen=True)
class AlignmentState:
    """
    Result of one localization event.

    Attributes:
        global_pose: GeoPose of the camera reported by the localization service
        local_pose: Local engine pose of the camera for the same image
        local_to_enu: Places ENU-aligned content (expressed in local axes,
            relative to global_pose) into local session space
        enu_to_local: Exact matrix inverse of local_to_enu
    """
    global_pose: GeoPose
    local_pose: LocalPose
    local_to_enu: RigidTransform
    enu_to_local: RigidTransform


class PoseAlignmentEngine:
    """
    Converts poses between local engine space and GeoPoses.

    Example usage:
        engine = PoseAlignmentEngine()
        engine.align(local_camera_pose, camera_geo_pose)
        local = engine.convert_geo_pose_to_local(content_geo_pose)
        geo = engine.convert_local_pose_to_geo_pose(local)
    """

    def __init__(self):
        self._state: Optional[AlignmentState] = None

    @property
    def is_aligned(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> Optional[AlignmentState]:
        return self._state

    def reset(self) -> None:
        """Drop the current alignment and return to the Unaligned state."""
        self._state = None
        logger.info("Alignment reset")

    def align(self, local_pose: LocalPose, global_geo_pose: GeoPose) -> AlignmentState:
        """
        Derive the local <-> ENU transforms from one pose pair.

        Steps:
            1. Convert the global camera quaternion from the vendor camera
               convention to local axes (q_enu_cam)
            2. Relative rotation q_rel = q_local * inverse(q_enu_cam)
            3. local_to_enu = rotation q_rel, then translation to the local
               camera position
            4. enu_to_local = matrix inverse of local_to_enu

        Args:
            local_pose: Local camera pose at image capture
            global_geo_pose: GeoPose of the same image from localization

        Returns:
            The new AlignmentState, which replaces any previous one
        """
        q_enu_cam = convert_vendor_camera_to_local_quat(global_geo_pose.quaternion)
        q_rel = quaternion_multiply(
            local_pose.orientation, quaternion_inverse(q_enu_cam)
        ).normalized()

        local_to_enu = RigidTransform.from_pose(local_pose.position, q_rel)
        enu_to_local = local_to_enu.inverse()

        state = AlignmentState(
            global_pose=global_geo_pose,
            local_pose=local_pose,
            local_to_enu=local_to_enu,
            enu_to_local=enu_to_local,
        )
        self._state = state

        pos = global_geo_pose.position
        logger.info(
            f"Aligned local space to GeoPose ({pos.lat:.7f}, {pos.lon:.7f}, {pos.h:.2f})"
        )
        logger.debug(f"local_to_enu: {local_to_enu}")
        return state

    def _require_state(self) -> AlignmentState:
        state = self._state
        if state is None:
            raise NotAlignedError("No localization has happened yet")
        return state

    def convert_geo_pose_to_local(self, geo_pose: GeoPose) -> LocalPose:
        """
        Convert a GeoPose into a pose in local engine space.

        Args:
            geo_pose: GeoPose of the content

        Returns:
            LocalPose to hand to the rendering engine

        Raises:
            NotAlignedError: if align() has not been called yet
        """
        state = self._require_state()
        ref = state.global_pose.position
        pos = geo_pose.position

        enu_position = geodetic_to_enu(pos.lat, pos.lon, pos.h, ref.lat, ref.lon, ref.h)
        child = RigidTransform.from_pose(
            convert_geo_to_local_vec3(enu_position),
            convert_geo_to_local_quat(geo_pose.quaternion),
        )
        return state.local_to_enu.compose(child).to_local_pose()

    def convert_local_pose_to_geo_pose(self, local_pose: LocalPose) -> GeoPose:
        """
        Convert a pose in local engine space into a GeoPose.

        Args:
            local_pose: Pose in local engine space

        Returns:
            GeoPose with ENU orientation at the resulting position

        Raises:
            NotAlignedError: if align() has not been called yet
        """
        state = self._require_state()
        ref = state.global_pose.position

        # Still in local axes, but aligned with ENU
        enu_aligned = state.enu_to_local.compose(RigidTransform.from_local_pose(local_pose))

        enu_position = convert_local_to_geo_vec3(enu_aligned.position)
        geodetic = enu_to_geodetic(enu_position, ref.lat, ref.lon, ref.h)
        quaternion = convert_local_to_geo_quat(enu_aligned.quaternion)

        return GeoPose(position=geodetic, quaternion=quaternion)

    def convert_camera_local_pose_to_geo_pose(self, local_pose: LocalPose) -> GeoPose:
        """
        Convert a local camera pose into a GeoPose camera pose.

        By the GeoPose standard a camera with identity orientation looks East,
        so the orientation is rotated +90° about the local up axis first.
        """
        corrected = LocalPose(
            position=local_pose.position,
            orientation=quaternion_multiply(
                local_pose.orientation, CAMERA_FORWARD_CORRECTION
            ).normalized(),
        )
        return self.convert_local_pose_to_geo_pose(corrected)

    @staticmethod
    def geo_pose_to_enu(geo_pose: GeoPose, ref_geo_pose: GeoPose) -> RigidTransform:
        """
        Express a GeoPose as an ENU pose relative to a reference GeoPose.

        The returned transform keeps ENU axes (Z up); it is not converted to
        local axes.
        """
        pos = geo_pose.position
        ref = ref_geo_pose.position
        enu_position = geodetic_to_enu(pos.lat, pos.lon, pos.h, ref.lat, ref.lon, ref.h)
        return RigidTransform.from_pose(enu_position, geo_pose.quaternion)
