"""Parallel dataset generation.

Workers run recovery scenarios back to back in their own engine and send
wall-clock batches of results to a single aggregator, which writes one
file per round (one batch from every worker).

Example:
    >>> from recovery.config import GeneratorConfig
    >>> from recovery.simulation import SimulationWorker, WorkerPool
    >>>
    >>> # One scenario in isolation
    >>> worker = SimulationWorker(seed=0)
    >>> result = worker.do_random()
    >>>
    >>> # The full generator
    >>> WorkerPool(GeneratorConfig(workers=8, interval=60.0)).run(rounds=10)
"""

from recovery.simulation.pool import (
    RoundAggregator,
    Throughput,
    WorkerError,
    WorkerPool,
)
from recovery.simulation.worker import (
    RecoveryResult,
    ResultBatch,
    SimulationWorker,
    WorkerFailure,
    run_worker,
)

__all__ = [
    # Worker
    "RecoveryResult",
    "ResultBatch",
    "SimulationWorker",
    "WorkerFailure",
    "run_worker",
    # Pool
    "RoundAggregator",
    "Throughput",
    "WorkerError",
    "WorkerPool",
]
