"""Random recovery scenarios.

A scenario is a random initial spin and orientation plus a random target
orientation (pitch and yaw; the target roll is always upright).

Example:
    >>> import numpy as np
    >>> from recovery.scenario import sample_scenario
    >>>
    >>> rng = np.random.default_rng(0)
    >>> scenario = sample_scenario(rng)
    >>> scenario.target_direction()
"""

from dataclasses import dataclass

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

from recovery.dynamics.state import Angle, normalize

# =============================================================================
# Constants
# =============================================================================

MAX_ANGULAR_SPEED: float = 5.5  # [rad/s] vehicle's attainable spin rate


# =============================================================================
# Scenario
# =============================================================================


@beartype
@dataclass(frozen=True)
class Scenario:
    """Initial conditions and goal for one recovery run.

    Attributes:
        angular_velocity: Initial spin in world frame [rad/s]
        orientation: Initial orientation
        target_pitch: Target pitch [rad]
        target_yaw: Target yaw [rad]
    """
    angular_velocity: NDArray[np.float64]
    orientation: Angle
    target_pitch: float
    target_yaw: float

    @property
    def target(self) -> Angle:
        """Target orientation (upright: zero roll)."""
        return Angle(pitch=self.target_pitch, yaw=self.target_yaw, roll=0.0)

    def target_direction(self) -> NDArray[np.float64]:
        """Unit vector the vehicle's nose must point along (world frame)."""
        return self.target.forward()

    def relative_target(self) -> Angle:
        """Target angles relative to the initial orientation."""
        return Angle(
            pitch=self.target_pitch - self.orientation.pitch,
            yaw=self.target_yaw - self.orientation.yaw,
            roll=0.0 - self.orientation.roll,
        )

    def local_angular_velocity(self) -> NDArray[np.float64]:
        """Initial spin expressed in the vehicle frame at the start."""
        return self.orientation.to_rotmat().T @ self.angular_velocity


@beartype
def sample_scenario(rng: np.random.Generator) -> Scenario:
    """Draw a scenario from uniform [0, 1) samples.

    Spin direction is the normalized vector of three uniforms, scaled by a
    uniform magnitude in [0, 5.5] rad/s. Every angle is uniform in [0, pi).

    Args:
        rng: Random source, owned by the calling worker

    Returns:
        New scenario
    """
    direction = normalize(rng.random(3))
    angular_velocity = direction * (rng.random() * MAX_ANGULAR_SPEED)

    orientation = Angle(
        pitch=rng.random() * np.pi,
        yaw=rng.random() * np.pi,
        roll=rng.random() * np.pi,
    )

    target_pitch = rng.random() * np.pi
    target_yaw = rng.random() * np.pi

    return Scenario(
        angular_velocity=angular_velocity,
        orientation=orientation,
        target_pitch=target_pitch,
        target_yaw=target_yaw,
    )
