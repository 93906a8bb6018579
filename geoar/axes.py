"""
Axis convention conversions for vectors and quaternions.

Conventions (never to be mixed silently):
    - ENU: X East, Y North, Z Up. With the -90° adjustment applied to vendor
      camera poses, the camera identity orientation looks North.
    - Local (engine): X right, Y up, Z backward (towards the viewer),
      right-handed.
    - Vendor camera: X forward, Y left, Z up; identity orientation looks East.
    - Device sensor: X right, Y forward, Z up (e.g. W3C Sensor API);
      identity orientation looks at the ground.

ENU <-> local is a pure axis relabeling:
    X_local =  E      E =  X_local
    Y_local =  U      N = -Z_local
    Z_local = -N      U =  Y_local

The relabeling is a proper rotation, so permuting the quaternion vector part
(w unchanged) gives the same orientation expressed in the other axes and keeps
the norm. Only the vendor and sensor paths compose rotations and renormalize.
"""

import math
import numpy as np
from typing import Tuple

from .errors import InvalidInputError
from .poses import QUATERNION_EPSILON, Quaternion

_S45 = math.sin(math.radians(45.0))
_C45 = math.cos(math.radians(45.0))

# -90° about the vendor up axis: re-references "looks East" to "looks North"
ROT_Z_MINUS_90 = Quaternion(0.0, 0.0, -_S45, _C45)

# +90° about the sensor forward (Y) axis: the camera looks East instead of down
ROT_Y_PLUS_90 = Quaternion(0.0, _S45, 0.0, _C45)


def quaternion_multiply(a: Quaternion, b: Quaternion) -> Quaternion:
    """Hamilton product a*b (apply b, then a)."""
    ax, ay, az, aw = a.x, a.y, a.z, a.w
    bx, by, bz, bw = b.x, b.y, b.z, b.w
    return Quaternion(
        x=aw * bx + ax * bw + ay * bz - az * by,
        y=aw * by - ax * bz + ay * bw + az * bx,
        z=aw * bz + ax * by - ay * bx + az * bw,
        w=aw * bw - ax * bx - ay * by - az * bz,
    )


def quaternion_inverse(q: Quaternion) -> Quaternion:
    n2 = q.x * q.x + q.y * q.y + q.z * q.z + q.w * q.w
    if n2 < QUATERNION_EPSILON ** 2:
        raise InvalidInputError(f"Degenerate quaternion (norm {math.sqrt(n2):.3e}) has no inverse")
    return Quaternion(-q.x / n2, -q.y / n2, -q.z / n2, q.w / n2)


def convert_geo_to_local_vec3(enu) -> np.ndarray:
    e, n, u = np.asarray(enu, dtype=np.float64).reshape(3)
    return np.array([e, u, -n], dtype=np.float64)


def convert_local_to_geo_vec3(local) -> np.ndarray:
    x, y, z = np.asarray(local, dtype=np.float64).reshape(3)
    return np.array([x, -z, y], dtype=np.float64)


def convert_geo_to_local_quat(q: Quaternion) -> Quaternion:
    return Quaternion(q.x, q.z, -q.y, q.w)


def convert_local_to_geo_quat(q: Quaternion) -> Quaternion:
    return Quaternion(q.x, -q.z, q.y, q.w)


def convert_vendor_camera_to_local_vec3(vendor) -> np.ndarray:
    """
    Convert a vendor camera-frame position to local axes.

        X_local = -Y_vendor
        Y_local =  Z_vendor
        Z_local = -X_vendor
    """
    x, y, z = np.asarray(vendor, dtype=np.float64).reshape(3)
    return np.array([-y, z, -x], dtype=np.float64)


def convert_vendor_camera_to_local_quat(q: Quaternion) -> Quaternion:
    """
    Convert a vendor camera orientation (identity looks East) to local axes.

    The orientation is first rotated -90° about the up axis so that it is
    measured from North instead of East; the result is then permuted like
    convert_vendor_camera_to_local_vec3().

    Args:
        q: Camera quaternion in the vendor convention

    Returns:
        Unit quaternion in local axes
    """
    enu = quaternion_multiply(ROT_Z_MINUS_90, q)
    return Quaternion(-enu.y, enu.z, -enu.x, enu.w).normalized()


def convert_sensor_to_vendor_camera_quat(q: Quaternion) -> Quaternion:
    """
    Convert a device sensor quaternion to the vendor camera convention.

    Rotates +90° about the sensor forward axis so that the back camera looks
    East instead of towards the ground, then swaps axes:
        X_vendor = -Z_rot
        Y_vendor =  Y_rot
        Z_vendor =  X_rot

    Only valid for landscape-primary screen orientation, where the captured
    camera texture is already rotated with the screen.

    Args:
        q: Device orientation quaternion from the sensor API

    Returns:
        Unit quaternion in the vendor camera convention
    """
    rot = quaternion_multiply(ROT_Y_PLUS_90, q)
    return Quaternion(-rot.z, rot.y, rot.x, rot.w).normalized()


def quaternion_to_euler(q: Quaternion) -> Tuple[float, float, float]:
    """
    Euler angle representation of a quaternion, in radians.

    Diagnostics and display only. Near the ±90° singularities the first angle is
    pinned to ±pi/2, the third to zero, and the second absorbs the rotation.

    Returns:
        Tuple of three angles in radians
    """
    x, y, z, w = q.x, q.y, q.z, q.w
    x2, y2, z2, w2 = x * x, y * y, z * z, w * w
    unit = x2 + y2 + z2 + w2
    test = x * w - y * z
    if test > 0.499995 * unit:
        # singularity at the north pole
        return (math.pi / 2, 2 * math.atan2(y, x), 0.0)
    if test < -0.499995 * unit:
        # singularity at the south pole
        return (-math.pi / 2, 2 * math.atan2(y, x), 0.0)
    return (
        math.asin(max(-1.0, min(1.0, 2 * (x * z - w * y)))),
        math.atan2(2 * (x * w + y * z), 1 - 2 * (z2 + w2)),
        math.atan2(2 * (x * y + z * w), 1 - 2 * (y2 + z2)),
    )
