"""Cubic PD air-control law.

Each axis combines the angle to the target with a scaled angular rate,
cubes the sum and saturates:

    u = clip((k * (angle + rate / rate_scale))^3 / d, -1, 1)

Cubing keeps the command gentle near the target and saturates quickly
away from it, so the vehicle flips at full authority and settles without
chattering.

Example:
    >>> from recovery.gnc.control import air_control_pd
    >>>
    >>> controls = air_control_pd(local_target, local_ang_vel, local_up)
    >>> arena.set_car_controls(car_id, controls)
"""

from dataclasses import dataclass

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

from recovery.dynamics.state import Angle, CarControls

# =============================================================================
# PD Gains
# =============================================================================


@beartype
@dataclass(frozen=True)
class PDGains:
    """Gains of the cubic PD law.

    Attributes:
        k: Gain applied to (angle + scaled rate) before cubing
        d: Divisor applied after cubing
        pitch_rate_scale: Rate normalization for pitch (local Y)
        yaw_rate_scale: Rate normalization for yaw (local Z, sign inverted)
        roll_rate_scale: Rate normalization for roll (local X)
    """
    k: float = 35.0
    d: float = 10.0
    pitch_rate_scale: float = 3.4
    yaw_rate_scale: float = -5.0
    roll_rate_scale: float = 3.1


DEFAULT_GAINS = PDGains()


# =============================================================================
# Control Law
# =============================================================================


@beartype
def control_pd(angle: float, rate: float, gains: PDGains = DEFAULT_GAINS) -> float:
    """Single-axis cubic PD output in [-1, 1].

    Args:
        angle: Angle to the target about this axis [rad]
        rate: Already-scaled angular rate about this axis
        gains: Law gains

    Returns:
        Actuator command
    """
    u = (gains.k * (angle + rate)) ** 3 / gains.d
    return float(np.clip(u, -1.0, 1.0))


@beartype
def target_angles(
    local_target: NDArray[np.float64],
    local_up: NDArray[np.float64],
) -> Angle:
    """Per-axis angles to the target in the vehicle frame.

    Args:
        local_target: Target vector in the vehicle frame
        local_up: World up expressed in the vehicle frame

    Returns:
        Angle(pitch, yaw, roll) still to be covered
    """
    return Angle(
        pitch=float(np.arctan2(local_target[2], local_target[0])),
        yaw=float(np.arctan2(local_target[1], local_target[0])),
        roll=float(np.arctan2(local_up[1], local_up[2])),
    )


@beartype
def air_control_pd(
    local_target: NDArray[np.float64],
    local_ang_vel: NDArray[np.float64],
    local_up: NDArray[np.float64],
    gains: PDGains = DEFAULT_GAINS,
) -> CarControls:
    """Compute pitch/yaw/roll commands that turn the nose onto the target.

    Args:
        local_target: Target vector in the vehicle frame
        local_ang_vel: Angular velocity in the vehicle frame [rad/s]
        local_up: World up expressed in the vehicle frame
        gains: Law gains

    Returns:
        Controls with every axis in [-1, 1]
    """
    angles = target_angles(local_target, local_up)

    pitch = control_pd(angles.pitch, local_ang_vel[1] / gains.pitch_rate_scale, gains)
    yaw = control_pd(angles.yaw, local_ang_vel[2] / gains.yaw_rate_scale, gains)
    roll = control_pd(angles.roll, local_ang_vel[0] / gains.roll_rate_scale, gains)

    return CarControls(pitch=pitch, yaw=yaw, roll=roll)
