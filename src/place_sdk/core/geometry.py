# =================================
# FILE: src/place_sdk/core/geometry.py
# =================================
from __future__ import annotations
from typing import Iterable, Tuple
import numpy as np
from scipy.spatial.transform import Rotation as R

from place_sdk.core.message_types import Pose

# Pure rigid-transform helpers. No service or intra-project I/O.


def normalize_quaternion(q: Iterable[float]) -> Tuple[float, float, float, float]:
    """Return a unit quaternion (qx, qy, qz, qw); zero input maps to identity."""
    v = np.asarray(list(q), dtype=np.float64)
    n = float(np.linalg.norm(v))
    if n < 1e-12:
        return 0.0, 0.0, 0.0, 1.0
    v = v / n
    return float(v[0]), float(v[1]), float(v[2]), float(v[3])


def pose_to_matrix(pose: Pose) -> np.ndarray:
    """4x4 homogeneous transform for a Pose."""
    T = np.eye(4)
    T[:3, :3] = R.from_quat(normalize_quaternion(pose.orientation)).as_matrix()
    T[:3, 3] = np.asarray(pose.position, dtype=np.float64)
    return T


def matrix_to_pose(T: np.ndarray) -> Pose:
    q = R.from_matrix(T[:3, :3]).as_quat()
    # keep qw >= 0 so equal rotations compare equal
    if q[3] < 0.0:
        q = -q
    return Pose(
        position=(float(T[0, 3]), float(T[1, 3]), float(T[2, 3])),
        orientation=(float(q[0]), float(q[1]), float(q[2]), float(q[3])),
    )


def compose_poses(a: Pose, b: Pose) -> Pose:
    """a * b: pose b expressed in a's frame, returned in a's parent frame."""
    return matrix_to_pose(pose_to_matrix(a) @ pose_to_matrix(b))


def invert_pose(p: Pose) -> Pose:
    return matrix_to_pose(np.linalg.inv(pose_to_matrix(p)))


def poses_close(a: Pose, b: Pose, *, pos_tol: float = 1e-6, ang_tol_rad: float = 1e-6) -> bool:
    """True when positions and orientations agree within tolerance."""
    dp = np.linalg.norm(np.asarray(a.position) - np.asarray(b.position))
    ra = R.from_quat(normalize_quaternion(a.orientation))
    rb = R.from_quat(normalize_quaternion(b.orientation))
    dang = (ra.inv() * rb).magnitude()
    return bool(dp <= pos_tol and dang <= ang_tol_rad)
