"""Kinematic state and rotation math for the recovery simulation.

Example:
    >>> from recovery.dynamics import Angle, CarState
    >>>
    >>> state = CarState.at_rest()
    >>> state.rot_mat = Angle(pitch=0.3, yaw=1.2, roll=0.0).to_rotmat()
    >>> local_target = state.to_local(target)
"""

from recovery.dynamics.state import (
    WORLD_X,
    WORLD_Z,
    Angle,
    BallState,
    CarControls,
    CarState,
    angle_between,
    axis_angle_to_dcm,
    is_rotation,
    normalize,
    orthonormalize,
)

__all__ = [
    # State
    "Angle",
    "BallState",
    "CarControls",
    "CarState",
    # Rotation utilities
    "WORLD_X",
    "WORLD_Z",
    "angle_between",
    "axis_angle_to_dcm",
    "is_rotation",
    "normalize",
    "orthonormalize",
]
