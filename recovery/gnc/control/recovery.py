"""Attitude recovery state machine.

Drives the vehicle's nose onto a fixed world-frame direction, one tick at
a time, until the pointing error drops below a threshold or the step cap
is reached.

States:
    RUNNING -> CONVERGED   pointing error < threshold
    RUNNING -> TIMED_OUT   step cap reached (scenario is dropped)

Example:
    >>> controller = RecoveryController(target=scenario.target_direction(), max_steps=3600)
    >>> status = controller.run(arena, car_id)
    >>> if status is RecoveryStatus.CONVERGED:
    ...     seconds = controller.elapsed(arena.tick_rate)
"""

from dataclasses import dataclass, field
from enum import Enum, auto

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

from recovery.dynamics.state import WORLD_Z, CarControls, CarState, angle_between, normalize
from recovery.engine.base import PhysicsEngine
from recovery.gnc.control.pd import DEFAULT_GAINS, PDGains, air_control_pd

CONVERGENCE_THRESHOLD: float = 0.1  # [rad]


class RecoveryStatus(Enum):
    """Controller state."""

    RUNNING = auto()
    CONVERGED = auto()
    TIMED_OUT = auto()


@beartype
@dataclass
class RecoveryController:
    """Closed-loop nose-pointing controller for one scenario.

    Attributes:
        target: Direction to point the nose along (world frame)
        max_steps: Step cap; reaching it ends the run as TIMED_OUT
        threshold: Pointing error that counts as converged [rad]
        gains: Cubic PD gains
    """
    target: NDArray[np.float64]
    max_steps: int
    threshold: float = CONVERGENCE_THRESHOLD
    gains: PDGains = DEFAULT_GAINS

    # Internal state
    steps: int = field(default=0, init=False)
    status: RecoveryStatus = field(default=RecoveryStatus.RUNNING, init=False)
    error: float = field(default=float(np.pi), init=False)

    def __post_init__(self) -> None:
        """Normalize the target direction."""
        self.target = normalize(np.asarray(self.target, dtype=np.float64))
        if not np.any(self.target):
            raise ValueError("target direction must be non-zero")
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be >= 1, got {self.max_steps}")

    @classmethod
    def with_time_limit(
        cls,
        target: NDArray[np.float64],
        tick_rate: float,
        max_seconds: float = 30.0,
        gains: PDGains = DEFAULT_GAINS,
    ) -> "RecoveryController":
        """Create a controller whose step cap is ``max_seconds`` of ticks."""
        return cls(target=target, max_steps=int(round(max_seconds * tick_rate)), gains=gains)

    def update(self, state: CarState) -> CarControls | None:
        """Advance the state machine by one tick.

        Args:
            state: Current vehicle state

        Returns:
            Controls to apply before the next tick, or None once the run
            has terminated (see ``status``)
        """
        if self.status is not RecoveryStatus.RUNNING:
            raise RuntimeError(f"Controller already terminated ({self.status.name})")

        self.error = angle_between(state.forward, self.target)

        # At least one tick must elapse before convergence is accepted
        if self.error < self.threshold and self.steps > 0:
            self.status = RecoveryStatus.CONVERGED
            return None

        if self.steps >= self.max_steps:
            self.status = RecoveryStatus.TIMED_OUT
            return None

        controls = air_control_pd(
            state.to_local(self.target),
            state.local_ang_vel,
            state.to_local(WORLD_Z),
            self.gains,
        )
        self.steps += 1
        return controls

    def run(self, engine: PhysicsEngine, car_id: int) -> RecoveryStatus:
        """Run the loop against an engine until the controller terminates."""
        while True:
            controls = self.update(engine.get_car(car_id))
            if controls is None:
                return self.status
            engine.set_car_controls(car_id, controls)
            engine.step(1)

    def elapsed(self, tick_rate: float) -> float:
        """Simulated time spent so far [s]."""
        return self.steps / tick_rate
