# core/ik/transforms.py
"""
Homogeneous transform helpers and the Pose type shared by the FK evaluator,
the solver and the HTTP layer.

All matrices are 4x4 numpy arrays; quaternions use the (x, y, z, w) order
that PyBullet uses.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence

import numpy as np


def translation_matrix(xyz: Sequence[float]) -> np.ndarray:
    T = np.eye(4)
    T[:3, 3] = xyz
    return T


def rotation_matrix(axis: Sequence[float], angle: float) -> np.ndarray:
    """Axis-angle rotation (Rodrigues) as a 4x4 transform. Axis must be unit length."""
    x, y, z = axis
    c = math.cos(angle)
    s = math.sin(angle)
    t = 1.0 - c
    return np.array([
        [t * x * x + c,     t * x * y - s * z, t * x * z + s * y, 0.0],
        [t * x * y + s * z, t * y * y + c,     t * y * z - s * x, 0.0],
        [t * x * z - s * y, t * y * z + s * x, t * z * z + c,     0.0],
        [0.0,               0.0,               0.0,               1.0],
    ])


def rpy_matrix(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """Fixed-axis roll/pitch/yaw (URDF convention: Rz(yaw) @ Ry(pitch) @ Rx(roll))."""
    return (
        rotation_matrix((0.0, 0.0, 1.0), yaw)
        @ rotation_matrix((0.0, 1.0, 0.0), pitch)
        @ rotation_matrix((1.0, 0.0, 0.0), roll)
    )


def origin_matrix(xyz: Sequence[float], rpy: Sequence[float]) -> np.ndarray:
    T = rpy_matrix(*rpy)
    T[:3, 3] = xyz
    return T


def matrix_from_quaternion(q: Sequence[float]) -> np.ndarray:
    x, y, z, w = q
    n = math.sqrt(x * x + y * y + z * z + w * w)
    if n == 0.0:
        return np.eye(4)
    x, y, z, w = x / n, y / n, z / n, w / n
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w),     2 * (x * z + y * w),     0.0],
        [2 * (x * y + z * w),     1 - 2 * (x * x + z * z), 2 * (y * z - x * w),     0.0],
        [2 * (x * z - y * w),     2 * (y * z + x * w),     1 - 2 * (x * x + y * y), 0.0],
        [0.0,                     0.0,                     0.0,                     1.0],
    ])


def quaternion_from_matrix(T: np.ndarray) -> np.ndarray:
    R = T[:3, :3]
    trace = R[0, 0] + R[1, 1] + R[2, 2]
    if trace > 0.0:
        s = 0.5 / math.sqrt(trace + 1.0)
        w = 0.25 / s
        x = (R[2, 1] - R[1, 2]) * s
        y = (R[0, 2] - R[2, 0]) * s
        z = (R[1, 0] - R[0, 1]) * s
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = 2.0 * math.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
        w = (R[2, 1] - R[1, 2]) / s
        x = 0.25 * s
        y = (R[0, 1] + R[1, 0]) / s
        z = (R[0, 2] + R[2, 0]) / s
    elif R[1, 1] > R[2, 2]:
        s = 2.0 * math.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
        w = (R[0, 2] - R[2, 0]) / s
        x = (R[0, 1] + R[1, 0]) / s
        y = 0.25 * s
        z = (R[1, 2] + R[2, 1]) / s
    else:
        s = 2.0 * math.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
        w = (R[1, 0] - R[0, 1]) / s
        x = (R[0, 2] + R[2, 0]) / s
        y = (R[1, 2] + R[2, 1]) / s
        z = 0.25 * s
    q = np.array([x, y, z, w])
    # Canonical hemisphere so equal rotations compare equal
    if q[3] < 0.0:
        q = -q
    return q


def _identity_quaternion() -> np.ndarray:
    return np.array([0.0, 0.0, 0.0, 1.0])


@dataclass(eq=False)
class Pose:
    """Position + unit quaternion orientation (x, y, z, w)."""
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(default_factory=_identity_quaternion)

    def __post_init__(self):
        try:
            self.position = np.asarray(self.position, dtype=float).reshape(3)
            self.orientation = np.asarray(self.orientation, dtype=float).reshape(4)
        except TypeError as e:
            raise ValueError(f"Pose values must be numeric: {e}") from e

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> "Pose":
        return cls(position=np.array(T[:3, 3]), orientation=quaternion_from_matrix(T))

    @classmethod
    def from_position(cls, xyz: Sequence[float]) -> "Pose":
        return cls(position=np.asarray(xyz, dtype=float))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pose":
        position = data.get("position")
        if not isinstance(position, (list, tuple, np.ndarray)) or len(position) != 3:
            raise ValueError("Pose requires a 3-element 'position'")
        orientation = data.get("orientation", [0.0, 0.0, 0.0, 1.0])
        if not isinstance(orientation, (list, tuple, np.ndarray)) or len(orientation) != 4:
            raise ValueError("Pose 'orientation' must be a quaternion [x, y, z, w]")
        return cls(position=position, orientation=orientation)

    def matrix(self) -> np.ndarray:
        T = matrix_from_quaternion(self.orientation)
        T[:3, 3] = self.position
        return T

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": [float(v) for v in self.position],
            "orientation": [float(v) for v in self.orientation],
        }

    def __repr__(self) -> str:
        return f"Pose(position={self.position.tolist()}, orientation={self.orientation.tolist()})"
