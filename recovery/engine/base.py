"""Physics engine interface consumed by the recovery pipeline.

The controller and workers only talk to the engine through
:class:`PhysicsEngine`, so any simulator exposing these operations
(a native binding, the built-in :class:`~recovery.engine.arena.Arena`,
or a test fake) can drive data generation.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol, runtime_checkable

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

from recovery.dynamics.state import BallState, CarControls, CarState

# =============================================================================
# Errors
# =============================================================================


class EngineError(RuntimeError):
    """The engine rejected a state or command. Treated as fatal."""


# =============================================================================
# Arena Options
# =============================================================================


class GameMode(Enum):
    """Arena layouts."""

    SOCCAR = auto()
    HOOPS = auto()
    THE_VOID = auto()  # No field geometry, free flight


class MemWeightMode(Enum):
    """Memory/speed trade-off hint passed to the engine."""

    LIGHT = auto()
    HEAVY = auto()


class Team(Enum):
    """Team a vehicle is added to."""

    BLUE = 0
    ORANGE = 1


@beartype
@dataclass(frozen=True)
class CarConfig:
    """Vehicle body preset.

    Attributes:
        name: Preset name
        hitbox_size: Hitbox extents [uu]
    """
    name: str
    hitbox_size: tuple[float, float, float]

    @classmethod
    def octane(cls) -> "CarConfig":
        return cls("octane", (120.507, 86.6994, 38.6591))

    @classmethod
    def dominus(cls) -> "CarConfig":
        return cls("dominus", (130.427, 85.7799, 33.8))

    @classmethod
    def breakout(cls) -> "CarConfig":
        return cls("breakout", (131.32, 80.521, 30.3))


@beartype
@dataclass
class MutatorConfig:
    """Global environment parameters.

    Attributes:
        gravity: Gravity acceleration in world frame [uu/s^2]
    """
    gravity: NDArray[np.float64] = field(
        default_factory=lambda: np.array([0.0, 0.0, -650.0])
    )

    def copy(self) -> "MutatorConfig":
        return MutatorConfig(gravity=self.gravity.copy())


# =============================================================================
# Engine Protocol
# =============================================================================


@runtime_checkable
class PhysicsEngine(Protocol):
    """Operations the recovery pipeline needs from a simulator.

    Setters raise :class:`EngineError` when the engine rejects input.
    """

    @property
    def tick_rate(self) -> float:
        """Ticks per simulated second."""
        ...

    @property
    def tick_time(self) -> float:
        """Duration of one tick [s]."""
        ...

    def get_mutator_config(self) -> MutatorConfig:
        ...

    def set_mutator_config(self, config: MutatorConfig) -> None:
        ...

    def add_car(self, team: Team, config: CarConfig) -> int:
        """Add a vehicle and return its identifier."""
        ...

    def get_car(self, car_id: int) -> CarState:
        ...

    def set_car(self, car_id: int, state: CarState) -> None:
        ...

    def get_ball(self) -> BallState:
        ...

    def set_ball(self, state: BallState) -> None:
        ...

    def set_car_controls(self, car_id: int, controls: CarControls) -> None:
        """Set the inputs applied to the vehicle on the following ticks."""
        ...

    def step(self, ticks: int = 1) -> None:
        """Advance the simulation by a whole number of ticks."""
        ...


@runtime_checkable
class EngineFactory(Protocol):
    """Callable building a fresh engine (one per worker)."""

    def __call__(
        self,
        game_mode: GameMode,
        mem_weight_mode: MemWeightMode,
        tick_rate: float,
    ) -> PhysicsEngine:
        ...
