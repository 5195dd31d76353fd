"""Physics engine interface and the built-in free-rotation arena.

The recovery pipeline treats the simulator as an injected dependency:
workers receive an :class:`EngineFactory` and only use the operations
declared by :class:`PhysicsEngine`.

Example:
    >>> from recovery.engine import Arena, CarConfig, GameMode, MemWeightMode, Team
    >>>
    >>> arena = Arena(GameMode.THE_VOID, MemWeightMode.HEAVY, 120.0)
    >>> car_id = arena.add_car(Team.BLUE, CarConfig.octane())
    >>> state = arena.get_car(car_id)
"""

from recovery.engine.arena import (
    CAR_MAX_ANG_SPEED,
    DEFAULT_TICK_RATE,
    Arena,
)
from recovery.engine.base import (
    CarConfig,
    EngineError,
    EngineFactory,
    GameMode,
    MemWeightMode,
    MutatorConfig,
    PhysicsEngine,
    Team,
)

__all__ = [
    # Interface
    "EngineError",
    "EngineFactory",
    "PhysicsEngine",
    # Options
    "CarConfig",
    "GameMode",
    "MemWeightMode",
    "MutatorConfig",
    "Team",
    # Built-in engine
    "Arena",
    "CAR_MAX_ANG_SPEED",
    "DEFAULT_TICK_RATE",
]
