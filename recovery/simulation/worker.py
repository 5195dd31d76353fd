"""Simulation worker: sample, recover, collect.

Each worker owns one engine, one vehicle and one random generator for its
whole life. It runs scenarios back to back and ships the successful
results in wall-clock batches.

Example:
    >>> from recovery.simulation import SimulationWorker
    >>>
    >>> worker = SimulationWorker(seed=0)
    >>> result = worker.do_random()      # None if the run timed out
    >>> batch = worker.run_interval(1.0)  # one second of scenarios
"""

import logging
import queue
import time
import traceback
from dataclasses import dataclass

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

from recovery.config import GeneratorConfig
from recovery.dynamics.state import Angle, BallState
from recovery.engine.arena import Arena
from recovery.engine.base import EngineFactory, GameMode, MemWeightMode, MutatorConfig, Team
from recovery.gnc.control.recovery import RecoveryController, RecoveryStatus
from recovery.scenario import Scenario, sample_scenario
from recovery.storage import RECORD_FIELDS

log = logging.getLogger(__name__)

BALL_PARK_Z: float = -1000.0  # ball is parked below the vehicle, out of the way
INITIAL_BATCH_CAPACITY = 4096
PUT_POLL_INTERVAL: float = 0.1  # [s] how often a blocked put rechecks the stop event

# =============================================================================
# Results
# =============================================================================


@beartype
@dataclass(frozen=True)
class RecoveryResult:
    """One labeled sample.

    Attributes:
        initial_angular_velocity: Initial spin in the vehicle frame [rad/s]
        relative_target: Target orientation relative to the initial one
        time: Simulated time until convergence [s]
    """
    initial_angular_velocity: NDArray[np.float64]
    relative_target: Angle
    time: float

    def to_row(self) -> tuple[float, ...]:
        """Record fields in file order."""
        w = self.initial_angular_velocity
        t = self.relative_target
        return (
            float(w[0]), float(w[1]), float(w[2]),
            t.pitch, t.yaw, t.roll,
            self.time,
        )


class ResultBatch:
    """Growable (N, 7) float32 buffer of results.

    Capacity doubles when full, so a worker can size the next batch from
    the previous one and rarely reallocate.
    """

    def __init__(self, capacity: int = INITIAL_BATCH_CAPACITY) -> None:
        self._rows = np.empty((max(capacity, 1), RECORD_FIELDS), dtype=np.float32)
        self._size = 0

    @classmethod
    def from_results(cls, results: list[RecoveryResult]) -> "ResultBatch":
        batch = cls(capacity=len(results))
        for result in results:
            batch.append(result)
        return batch

    def append(self, result: RecoveryResult) -> None:
        if self._size == len(self._rows):
            grown = np.empty((2 * len(self._rows), RECORD_FIELDS), dtype=np.float32)
            grown[:self._size] = self._rows
            self._rows = grown
        self._rows[self._size] = result.to_row()
        self._size += 1

    def __len__(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return len(self._rows)

    @property
    def rows(self) -> NDArray[np.float32]:
        """Filled rows, shape (N, 7)."""
        return self._rows[:self._size]

    def total_time(self) -> float:
        """Simulated seconds covered by this batch."""
        return float(self.rows[:, 6].sum(dtype=np.float64))


@dataclass(frozen=True)
class WorkerFailure:
    """Sent through the channel in place of a batch when a worker dies."""
    worker_id: int
    error: str
    traceback: str


# =============================================================================
# Worker
# =============================================================================


class SimulationWorker:
    """One isolated simulation context.

    Not shared across threads: the engine, vehicle and random generator
    belong to this worker alone.
    """

    def __init__(
        self,
        engine_factory: EngineFactory = Arena,
        config: GeneratorConfig | None = None,
        seed: int | np.random.SeedSequence | None = None,
    ) -> None:
        """Build the engine and add the vehicle.

        Args:
            engine_factory: Builds the worker's private engine
            config: Generation settings
            seed: Random seed (None = OS entropy)
        """
        self.config = config or GeneratorConfig()

        self.engine = engine_factory(GameMode.THE_VOID, MemWeightMode.HEAVY, self.config.tick_rate)

        mutators = self.engine.get_mutator_config()
        gravity = mutators.gravity.copy()
        gravity[2] = self.config.gravity_z
        self.engine.set_mutator_config(MutatorConfig(gravity=gravity))

        self.car_id = self.engine.add_car(Team.BLUE, self.config.car_config)
        self.rng = np.random.default_rng(seed)
        self.batch_capacity = INITIAL_BATCH_CAPACITY

    def run_scenario(self, scenario: Scenario) -> RecoveryResult | None:
        """Commit a scenario to the engine and recover from it.

        Returns:
            The result, or None if the step cap was reached
        """
        ball = self.engine.get_ball()
        pos = ball.pos.copy()
        pos[2] = BALL_PARK_Z
        self.engine.set_ball(BallState(pos=pos, vel=ball.vel, ang_vel=ball.ang_vel))

        car = self.engine.get_car(self.car_id)
        car.pos = np.zeros(3)
        car.vel = np.zeros(3)
        car.ang_vel = scenario.angular_velocity.copy()
        car.rot_mat = scenario.orientation.to_rotmat()
        self.engine.set_car(self.car_id, car)

        controller = RecoveryController.with_time_limit(
            target=scenario.target_direction(),
            tick_rate=self.engine.tick_rate,
            max_seconds=self.config.max_seconds,
        )
        status = controller.run(self.engine, self.car_id)

        if status is RecoveryStatus.TIMED_OUT:
            log.warning(
                "Failed to reach target within %.0f s (error %.3f rad), dropping scenario",
                self.config.max_seconds, controller.error,
            )
            return None

        return RecoveryResult(
            initial_angular_velocity=scenario.local_angular_velocity(),
            relative_target=scenario.relative_target(),
            time=controller.elapsed(self.engine.tick_rate),
        )

    def do_random(self) -> RecoveryResult | None:
        """Sample a scenario and run it."""
        return self.run_scenario(sample_scenario(self.rng))

    def run_interval(self, interval: float, stop=None) -> ResultBatch:
        """Run scenarios for ``interval`` wall-clock seconds.

        The batch starts with the previous batch's capacity. Returns early,
        between scenarios, once ``stop`` is set.
        """
        batch = ResultBatch(capacity=self.batch_capacity)
        start = time.monotonic()

        while time.monotonic() - start < interval:
            if _stopped(stop):
                break
            result = self.do_random()
            if result is not None:
                batch.append(result)

        self.batch_capacity = batch.capacity
        return batch

    def run(self, channel, max_batches: int | None = None, stop=None) -> None:
        """Produce batches into ``channel`` forever (or ``max_batches`` times).

        Args:
            channel: Anything with a blocking ``put`` (queue.Queue,
                multiprocessing.Queue)
            max_batches: Stop after this many batches (None = never)
            stop: Event that ends the loop when set (threading.Event,
                multiprocessing.Event). A batch cut short by it is discarded.
        """
        sent = 0
        while max_batches is None or sent < max_batches:
            batch = self.run_interval(self.config.interval, stop)
            if not _put(channel, batch, stop):
                return
            sent += 1


def _stopped(stop) -> bool:
    return stop is not None and stop.is_set()


def _put(channel, item, stop) -> bool:
    """Blocking put that gives up once ``stop`` is set.

    Returns:
        True if the item was queued
    """
    while not _stopped(stop):
        try:
            channel.put(item, timeout=PUT_POLL_INTERVAL)
            return True
        except queue.Full:
            continue
    return False


def run_worker(
    worker_id: int,
    channel,
    engine_factory: EngineFactory = Arena,
    config: GeneratorConfig | None = None,
    seed: int | np.random.SeedSequence | None = None,
    max_batches: int | None = None,
    stop=None,
) -> None:
    """Thread/process entry point.

    Any exception is reported through the channel as a WorkerFailure so
    the aggregator can stop the run; a worker never dies silently.
    """
    try:
        worker = SimulationWorker(engine_factory, config, seed)
        worker.run(channel, max_batches, stop)
    except Exception as exc:
        log.error("Worker %d failed: %s", worker_id, exc)
        _put(channel, WorkerFailure(
            worker_id=worker_id,
            error=f"{type(exc).__name__}: {exc}",
            traceback=traceback.format_exc(),
        ), stop)
    finally:
        # Nobody drains the channel after a stop; let the process exit anyway
        if _stopped(stop) and hasattr(channel, "cancel_join_thread"):
            channel.cancel_join_thread()
