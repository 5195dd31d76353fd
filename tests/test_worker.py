"""Tests for the simulation worker and its result batches."""

import queue
import threading

import numpy as np
import pytest
from numpy.testing import assert_allclose

from recovery.config import GeneratorConfig
from recovery.dynamics.state import Angle
from recovery.engine import Arena, EngineError
from recovery.scenario import Scenario
from recovery.simulation import (
    RecoveryResult,
    ResultBatch,
    SimulationWorker,
    WorkerFailure,
    run_worker,
)


class BrokenArena(Arena):
    """Arena whose vehicle cannot be added."""

    def add_car(self, team, config):
        raise EngineError("no room for another car")


def make_result(time: float) -> RecoveryResult:
    return RecoveryResult(
        initial_angular_velocity=np.array([0.1, 0.2, 0.3]),
        relative_target=Angle(0.4, 0.5, 0.6),
        time=time,
    )


# =============================================================================
# Result Batch Tests
# =============================================================================


class TestResultBatch:
    """Test the growable result buffer."""

    def test_row_layout(self):
        """Spin, relative target, then time."""
        assert_allclose(make_result(2.5).to_row(), [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 2.5])

    def test_grows_when_full(self):
        batch = ResultBatch(capacity=2)
        for i in range(5):
            batch.append(make_result(float(i + 1)))
        assert len(batch) == 5
        assert batch.capacity == 8
        assert batch.rows.shape == (5, 7)
        assert batch.rows.dtype == np.float32
        assert_allclose(batch.rows[:, 6], [1.0, 2.0, 3.0, 4.0, 5.0])

    def test_total_time(self):
        batch = ResultBatch.from_results([make_result(1.5), make_result(2.25)])
        assert batch.total_time() == pytest.approx(3.75)

    def test_empty(self):
        batch = ResultBatch()
        assert len(batch) == 0
        assert batch.rows.shape == (0, 7)
        assert batch.total_time() == 0.0


# =============================================================================
# Worker Tests
# =============================================================================


@pytest.fixture
def config(tmp_path):
    return GeneratorConfig(output_dir=tmp_path, workers=1, interval=0.05)


class TestSimulationWorker:
    """Test scenario execution."""

    def test_engine_setup(self, config):
        """Near-zero gravity, a single car, the configured tick rate."""
        worker = SimulationWorker(config=config, seed=0)
        gravity = worker.engine.get_mutator_config().gravity
        assert gravity[2] == pytest.approx(config.gravity_z)
        assert -1e-6 < gravity[2] < 0.0
        assert worker.engine.tick_rate == config.tick_rate

    def test_aligned_scenario(self, config):
        """Already on target: one tick of simulated time."""
        worker = SimulationWorker(config=config, seed=0)
        scenario = Scenario(
            angular_velocity=np.zeros(3),
            orientation=Angle(0.0, 0.0, 0.0),
            target_pitch=0.0,
            target_yaw=0.0,
        )
        result = worker.run_scenario(scenario)
        assert result is not None
        assert result.time == pytest.approx(1.0 / 120.0)
        assert_allclose(result.initial_angular_velocity, np.zeros(3))

    def test_ball_parked(self, config):
        worker = SimulationWorker(config=config, seed=0)
        worker.do_random()
        assert worker.engine.get_ball().pos[2] < -900.0

    def test_replay_deterministic(self, config):
        """Same seed, same results."""
        a = SimulationWorker(config=config, seed=11)
        b = SimulationWorker(config=config, seed=11)
        for _ in range(3):
            ra, rb = a.do_random(), b.do_random()
            if ra is None:
                assert rb is None
                continue
            assert_allclose(ra.to_row(), rb.to_row())

    def test_times_within_cap(self, config):
        """Recorded times are positive and never exceed the cap."""
        worker = SimulationWorker(config=config, seed=3)
        for _ in range(5):
            result = worker.do_random()
            if result is not None:
                assert 0.0 < result.time <= config.max_seconds

    def test_timeout_dropped(self, tmp_path):
        """Runs that hit the step cap produce no result."""
        config = GeneratorConfig(output_dir=tmp_path, workers=1, max_seconds=0.05)
        worker = SimulationWorker(config=config, seed=0)
        scenario = Scenario(
            angular_velocity=np.zeros(3),
            orientation=Angle(0.0, 0.0, 0.0),
            target_pitch=0.0,
            target_yaw=3.0,
        )
        assert worker.run_scenario(scenario) is None

    def test_run_interval(self, config):
        worker = SimulationWorker(config=config, seed=5)
        batch = worker.run_interval(config.interval)
        assert batch.rows.shape[1] == 7
        assert np.all(batch.rows[:, 6] > 0.0)
        assert worker.batch_capacity == batch.capacity

    def test_run_puts_batches(self, config):
        channel = queue.Queue()
        SimulationWorker(config=config, seed=1).run(channel, max_batches=2)
        assert channel.qsize() == 2
        assert isinstance(channel.get(), ResultBatch)

    def test_stopped_interval_returns_empty(self, config):
        """A set stop event ends the interval before any scenario runs."""
        stop = threading.Event()
        stop.set()
        worker = SimulationWorker(config=config, seed=1)
        batch = worker.run_interval(60.0, stop)
        assert len(batch) == 0
        assert worker.engine.tick_count == 0

    def test_stopped_run_sends_nothing(self, config):
        """A batch cut short by a stop is discarded, not sent."""
        stop = threading.Event()
        stop.set()
        channel = queue.Queue()
        SimulationWorker(config=config, seed=1).run(channel, max_batches=3, stop=stop)
        assert channel.empty()


class TestRunWorker:
    """Test the thread/process entry point."""

    def test_failure_forwarded(self, config):
        """An engine error reaches the channel instead of vanishing."""
        channel = queue.Queue()
        run_worker(3, channel, engine_factory=BrokenArena, config=config, seed=0, max_batches=1)

        item = channel.get_nowait()
        assert isinstance(item, WorkerFailure)
        assert item.worker_id == 3
        assert "EngineError" in item.error
        assert "no room" in item.traceback

    def test_success_sends_batches(self, config):
        channel = queue.Queue()
        run_worker(0, channel, config=config, seed=0, max_batches=1)
        assert isinstance(channel.get_nowait(), ResultBatch)

    def test_failure_not_stuck_on_full_channel(self, config):
        """A failing worker gives up on a full channel once stopped."""
        channel = queue.Queue(maxsize=1)
        channel.put("occupied")
        stop = threading.Event()
        stop.set()

        run_worker(0, channel, engine_factory=BrokenArena, config=config, seed=0, stop=stop)

        assert channel.get_nowait() == "occupied"
        assert channel.empty()
