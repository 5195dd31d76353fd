"""Worker pool and round aggregation.

Runs one SimulationWorker per hardware thread, receives their batches
through a single many-to-one channel and groups exactly one batch per
worker into a round. Each round is written as one result file.

Rounds are counted, not timed: workers start their intervals
independently, so the batches of one round can cover different
wall-clock spans. Records are interchangeable samples, so order within
and across rounds does not matter.

Example:
    >>> from recovery.config import GeneratorConfig
    >>> from recovery.simulation import WorkerPool
    >>>
    >>> pool = WorkerPool(GeneratorConfig(output_dir="results", interval=60.0))
    >>> pool.run()           # forever
    >>> pool.run(rounds=2)   # or a fixed number of files
"""

import logging
import multiprocessing
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from recovery.config import GeneratorConfig
from recovery.engine.arena import Arena
from recovery.engine.base import EngineFactory
from recovery.simulation.worker import ResultBatch, WorkerFailure, run_worker
from recovery.storage import RECORD_FIELDS, ResultWriter

log = logging.getLogger(__name__)

JOIN_TIMEOUT: float = 10.0  # [s] total wait for workers to stop


class WorkerError(RuntimeError):
    """A simulation worker died. Treated as fatal."""


# =============================================================================
# Throughput
# =============================================================================


@dataclass(frozen=True)
class Throughput:
    """Simulated time gathered against wall-clock time spent."""
    simulated_seconds: float
    wall_seconds: float

    @property
    def simulated_hours(self) -> float:
        return self.simulated_seconds / 3600.0

    @property
    def simulated_days(self) -> float:
        return self.simulated_hours / 24.0

    @property
    def hours_per_second(self) -> float:
        """Simulated hours gathered per wall-clock second."""
        if self.wall_seconds <= 0:
            return 0.0
        return self.simulated_hours / self.wall_seconds


# =============================================================================
# Round Aggregator
# =============================================================================


class RoundAggregator:
    """Collects one batch per worker and flushes them as a round.

    The round is written and cleared before the next batch is appended.
    """

    def __init__(
        self,
        num_workers: int,
        writer: ResultWriter,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {num_workers}")

        self.num_workers = num_workers
        self.writer = writer
        self._clock = clock
        self._start = clock()

        self._round: list[NDArray[np.float32]] = []
        self._contributors = 0
        self.simulated_seconds = 0.0
        self.rounds_written = 0

    @property
    def contributors(self) -> int:
        """Batches received for the round in progress."""
        return self._contributors

    @property
    def pending_records(self) -> int:
        """Records accumulated for the round in progress."""
        return sum(len(rows) for rows in self._round)

    def throughput(self) -> Throughput:
        return Throughput(
            simulated_seconds=self.simulated_seconds,
            wall_seconds=self._clock() - self._start,
        )

    def add_batch(self, batch: ResultBatch) -> Path | None:
        """Add one worker batch.

        Returns:
            Path of the written file if this batch completed a round
        """
        self._round.append(batch.rows)
        self.simulated_seconds += batch.total_time()
        self._contributors += 1

        if self._contributors < self.num_workers:
            return None

        self._contributors = 0

        rate = self.throughput()
        log.info(
            "Total time simulated: %.2f days (%.1f hps)",
            rate.simulated_days, rate.hours_per_second,
        )

        rows = (
            np.concatenate(self._round)
            if self._round
            else np.empty((0, RECORD_FIELDS), dtype=np.float32)
        )
        path = self.writer.write(rows)
        self._round.clear()
        self.rounds_written += 1

        log.debug("Wrote %d records to %s", len(rows), path)
        return path


# =============================================================================
# Worker Pool
# =============================================================================


class WorkerPool:
    """Spawns the workers and aggregates their output on the calling thread.

    The channel holds at most ``config.queue_size`` batches (0 = no
    bound); when it is full, workers block on ``put`` until the
    aggregator catches up. Whenever ``run`` returns or raises, the
    workers are signalled to stop and joined.
    """

    def __init__(
        self,
        config: GeneratorConfig | None = None,
        engine_factory: EngineFactory = Arena,
    ) -> None:
        self.config = config or GeneratorConfig()
        self.engine_factory = engine_factory
        self.num_workers = self.config.num_workers
        self._workers: list[threading.Thread | multiprocessing.Process] = []

    @property
    def _processes(self) -> bool:
        return self.config.parallelism == "process"

    def _make_channel(self):
        if self._processes:
            return multiprocessing.get_context().Queue(maxsize=self.config.queue_size)
        return queue.Queue(maxsize=self.config.queue_size)

    def _make_stop_event(self):
        if self._processes:
            return multiprocessing.get_context().Event()
        return threading.Event()

    def _spawn(self, channel, stop, max_batches: int | None) -> None:
        seeds = np.random.SeedSequence(self.config.seed).spawn(self.num_workers)
        make = multiprocessing.get_context().Process if self._processes else threading.Thread

        for worker_id, seed in enumerate(seeds):
            worker = make(
                target=run_worker,
                args=(worker_id, channel, self.engine_factory, self.config, seed, max_batches, stop),
                name=f"recovery-worker-{worker_id}",
                daemon=True,
            )
            worker.start()
            self._workers.append(worker)

    def _shutdown(self, stop) -> None:
        """Signal every worker to stop, then join (or terminate) it."""
        stop.set()
        deadline = time.monotonic() + JOIN_TIMEOUT

        for worker in self._workers:
            worker.join(timeout=max(deadline - time.monotonic(), 0.0))
            if not worker.is_alive():
                continue
            if isinstance(worker, threading.Thread):
                log.warning("Worker %s did not stop within %.0f s", worker.name, JOIN_TIMEOUT)
            else:
                worker.terminate()
                worker.join()

        self._workers.clear()

    def run(self, rounds: int | None = None) -> int:
        """Generate data until killed, or until ``rounds`` files are written.

        Args:
            rounds: Number of rounds to write (None = run forever)

        Returns:
            Number of rounds written

        Raises:
            WorkerError: A worker failed
            OSError: A result file could not be written
        """
        writer = ResultWriter(
            self.config.output_dir,
            extension=self.config.extension,
            level=self.config.compression_level,
        )
        log.info("Starting with the name %s for the next file", writer.next_path.name)

        if rounds is not None and rounds <= 0:
            return 0

        aggregator = RoundAggregator(self.num_workers, writer)
        channel = self._make_channel()
        stop = self._make_stop_event()

        try:
            self._spawn(channel, stop, max_batches=rounds)
            log.info(
                "Started %d %s workers (%.0f s batches)",
                self.num_workers, self.config.parallelism, self.config.interval,
            )

            while rounds is None or aggregator.rounds_written < rounds:
                item = channel.get()
                if isinstance(item, WorkerFailure):
                    log.error("Worker %d traceback:\n%s", item.worker_id, item.traceback)
                    raise WorkerError(f"Worker {item.worker_id} failed: {item.error}")
                aggregator.add_batch(item)
        finally:
            self._shutdown(stop)

        return aggregator.rounds_written
