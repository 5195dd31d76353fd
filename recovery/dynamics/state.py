"""Kinematic state and rotation utilities for the recovery simulation.

Orientation is stored as a 3x3 rotation matrix whose columns are the
vehicle's forward, right and up axes expressed in the world frame:

    world_vector = rot_mat @ local_vector
    local_vector = rot_mat.T @ world_vector

Coordinate frames:
- World: X/Y horizontal, Z up
- Local (body): X forward, Y right, Z up

Euler convention:
- Angle(pitch, yaw, roll) in radians, applied yaw about Z, then pitch,
  then roll about the forward axis (same convention as the engine)
"""

from dataclasses import dataclass

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

# =============================================================================
# Vector / Rotation Utilities
# =============================================================================

WORLD_X = np.array([1.0, 0.0, 0.0])
WORLD_Z = np.array([0.0, 0.0, 1.0])


@beartype
def normalize(v: NDArray[np.float64]) -> NDArray[np.float64]:
    """Normalize a vector to unit length.

    A zero vector stays zero instead of producing NaNs.
    """
    norm = np.linalg.norm(v)
    if norm < 1e-12:
        return np.zeros_like(v)
    return v / norm


@beartype
def axis_angle_to_dcm(axis: NDArray[np.float64], angle: float) -> NDArray[np.float64]:
    """Rotation matrix for a right-handed rotation about ``axis``.

    Args:
        axis: Rotation axis (need not be unit length)
        angle: Rotation angle [rad]

    Returns:
        3x3 rotation matrix (Rodrigues' formula)
    """
    k = normalize(np.asarray(axis, dtype=np.float64))
    kx, ky, kz = k
    K = np.array([
        [0.0, -kz, ky],
        [kz, 0.0, -kx],
        [-ky, kx, 0.0],
    ])
    return np.eye(3) + np.sin(angle) * K + (1.0 - np.cos(angle)) * (K @ K)


@beartype
def orthonormalize(rot: NDArray[np.float64]) -> NDArray[np.float64]:
    """Re-orthonormalize a drifting rotation matrix (Gram-Schmidt on columns)."""
    forward = normalize(rot[:, 0])
    right = rot[:, 1] - np.dot(rot[:, 1], forward) * forward
    right = normalize(right)
    up = np.cross(forward, right)
    return np.column_stack([forward, right, up])


@beartype
def is_rotation(rot: NDArray[np.float64], tol: float = 1e-4) -> bool:
    """Check that a matrix is a proper rotation (orthonormal, det = +1)."""
    if rot.shape != (3, 3) or not np.all(np.isfinite(rot)):
        return False
    if not np.allclose(rot.T @ rot, np.eye(3), atol=tol):
        return False
    return bool(abs(np.linalg.det(rot) - 1.0) < tol)


@beartype
def angle_between(a: NDArray[np.float64], b: NDArray[np.float64]) -> float:
    """Angle between two unit vectors [rad].

    The dot product is clamped to [-1, 1] so floating-point overshoot on
    (anti)parallel vectors cannot make arccos return NaN.
    """
    return float(np.arccos(np.clip(np.dot(a, b), -1.0, 1.0)))


# =============================================================================
# Euler Angles
# =============================================================================


@beartype
@dataclass(frozen=True)
class Angle:
    """Pitch/yaw/roll orientation [rad].

    Attributes:
        pitch: Rotation of the nose above the horizontal plane
        yaw: Heading about world Z
        roll: Rotation about the forward axis
    """
    pitch: float = 0.0
    yaw: float = 0.0
    roll: float = 0.0

    def to_rotmat(self) -> NDArray[np.float64]:
        """Rotation matrix with forward/right/up columns."""
        cp, sp = np.cos(self.pitch), np.sin(self.pitch)
        cy, sy = np.cos(self.yaw), np.sin(self.yaw)
        cr, sr = np.cos(self.roll), np.sin(self.roll)

        forward = np.array([cp * cy, cp * sy, sp])
        right = np.array([cy * sp * sr - cr * sy, sy * sp * sr + cr * cy, -cp * sr])
        up = np.array([-cr * cy * sp - sr * sy, -cr * sy * sp + sr * cy, cp * cr])

        return np.column_stack([forward, right, up])

    def forward(self) -> NDArray[np.float64]:
        """World-frame forward axis for this orientation."""
        return self.to_rotmat()[:, 0]

    def to_array(self) -> NDArray[np.float64]:
        """[pitch, yaw, roll] as an array."""
        return np.array([self.pitch, self.yaw, self.roll])


# =============================================================================
# State Classes
# =============================================================================


@beartype
@dataclass
class CarState:
    """Kinematic state of the vehicle.

    Attributes:
        pos: Position in world frame [uu]
        vel: Velocity in world frame [uu/s]
        ang_vel: Angular velocity in world frame [rad/s]
        rot_mat: Orientation, forward/right/up columns
    """
    pos: NDArray[np.float64]
    vel: NDArray[np.float64]
    ang_vel: NDArray[np.float64]
    rot_mat: NDArray[np.float64]

    def __post_init__(self) -> None:
        """Validate shapes."""
        for name in ("pos", "vel", "ang_vel"):
            if getattr(self, name).shape != (3,):
                raise ValueError(f"{name} must be shape (3,), got {getattr(self, name).shape}")
        if self.rot_mat.shape != (3, 3):
            raise ValueError(f"rot_mat must be shape (3, 3), got {self.rot_mat.shape}")

    @classmethod
    def at_rest(cls) -> "CarState":
        """Vehicle at the origin, not moving, identity orientation."""
        return cls(
            pos=np.zeros(3),
            vel=np.zeros(3),
            ang_vel=np.zeros(3),
            rot_mat=np.eye(3),
        )

    def copy(self) -> "CarState":
        """Create a copy of this state."""
        return CarState(
            pos=self.pos.copy(),
            vel=self.vel.copy(),
            ang_vel=self.ang_vel.copy(),
            rot_mat=self.rot_mat.copy(),
        )

    @property
    def forward(self) -> NDArray[np.float64]:
        """Forward axis in world frame."""
        return self.rot_mat[:, 0]

    @property
    def up(self) -> NDArray[np.float64]:
        """Up axis in world frame."""
        return self.rot_mat[:, 2]

    def to_local(self, v: NDArray[np.float64]) -> NDArray[np.float64]:
        """Express a world-frame vector in the vehicle frame."""
        return self.rot_mat.T @ v

    @property
    def local_ang_vel(self) -> NDArray[np.float64]:
        """Angular velocity in the vehicle frame [rad/s]."""
        return self.to_local(self.ang_vel)


@beartype
@dataclass
class BallState:
    """Kinematic state of the ball (kept out of the way during recovery)."""
    pos: NDArray[np.float64]
    vel: NDArray[np.float64]
    ang_vel: NDArray[np.float64]

    @classmethod
    def at_rest(cls, z: float = 93.15) -> "BallState":
        """Ball resting at height z above the origin."""
        return cls(
            pos=np.array([0.0, 0.0, z]),
            vel=np.zeros(3),
            ang_vel=np.zeros(3),
        )

    def copy(self) -> "BallState":
        """Create a copy of this state."""
        return BallState(pos=self.pos.copy(), vel=self.vel.copy(), ang_vel=self.ang_vel.copy())


@beartype
@dataclass(frozen=True)
class CarControls:
    """Per-tick air-control inputs, each nominally in [-1, 1]."""
    pitch: float = 0.0
    yaw: float = 0.0
    roll: float = 0.0

    def to_array(self) -> NDArray[np.float64]:
        """[pitch, yaw, roll] as an array."""
        return np.array([self.pitch, self.yaw, self.roll])
