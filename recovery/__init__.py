"""Recovery - Attitude-recovery dataset generation.

Drops a vehicle into free space with a random spin and orientation,
steers it to a random target heading with a PD air-control law and
records how long the recovery took. Many workers run in parallel and
their results are streamed to compressed binary files.

Example:
    >>> from recovery import GeneratorConfig, WorkerPool, load_dataset
    >>>
    >>> config = GeneratorConfig(output_dir="results", workers=4, interval=60.0)
    >>> WorkerPool(config).run(rounds=3)
    >>> df = load_dataset("results")
    >>> print(df["time"].mean())
"""

__version__ = "0.1.0"

# Configuration
from recovery.config import GeneratorConfig

# Kinematics
from recovery.dynamics import Angle, BallState, CarControls, CarState

# Engine
from recovery.engine import (
    Arena,
    CarConfig,
    EngineError,
    EngineFactory,
    GameMode,
    MemWeightMode,
    MutatorConfig,
    PhysicsEngine,
    Team,
)

# Control
from recovery.gnc import PDGains, RecoveryController, RecoveryStatus, air_control_pd

# Scenarios
from recovery.scenario import Scenario, sample_scenario

# Generation
from recovery.simulation import (
    RecoveryResult,
    ResultBatch,
    RoundAggregator,
    SimulationWorker,
    WorkerError,
    WorkerPool,
)

# Storage
from recovery.storage import (
    ResultWriter,
    decode_results,
    encode_results,
    load_dataset,
    read_round,
)

__all__ = [
    "__version__",
    # Configuration
    "GeneratorConfig",
    # Kinematics
    "Angle",
    "BallState",
    "CarControls",
    "CarState",
    # Engine
    "Arena",
    "CarConfig",
    "EngineError",
    "EngineFactory",
    "GameMode",
    "MemWeightMode",
    "MutatorConfig",
    "PhysicsEngine",
    "Team",
    # Control
    "PDGains",
    "RecoveryController",
    "RecoveryStatus",
    "air_control_pd",
    # Scenarios
    "Scenario",
    "sample_scenario",
    # Generation
    "RecoveryResult",
    "ResultBatch",
    "RoundAggregator",
    "SimulationWorker",
    "WorkerError",
    "WorkerPool",
    # Storage
    "ResultWriter",
    "decode_results",
    "encode_results",
    "load_dataset",
    "read_round",
]
