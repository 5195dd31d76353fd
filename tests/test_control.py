"""Tests for the cubic PD law and the recovery state machine."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from recovery.dynamics.state import WORLD_X, Angle, CarState
from recovery.engine import Arena, CarConfig, MutatorConfig, Team
from recovery.gnc.control import (
    CONVERGENCE_THRESHOLD,
    PDGains,
    RecoveryController,
    RecoveryStatus,
    air_control_pd,
    control_pd,
    target_angles,
)


@pytest.fixture
def arena():
    arena = Arena(tick_rate=120.0)
    arena.set_mutator_config(MutatorConfig(gravity=np.zeros(3)))
    return arena


@pytest.fixture
def car_id(arena):
    return arena.add_car(Team.BLUE, CarConfig.octane())


def set_orientation(arena, car_id, angle, ang_vel=None):
    state = arena.get_car(car_id)
    state.rot_mat = angle.to_rotmat()
    state.ang_vel = np.zeros(3) if ang_vel is None else ang_vel
    arena.set_car(car_id, state)


# =============================================================================
# PD Law Tests
# =============================================================================


class TestControlPD:
    """Test the single-axis cubic law."""

    def test_zero_error_zero_output(self):
        assert control_pd(0.0, 0.0) == 0.0

    def test_saturates(self):
        """Large errors saturate at full authority."""
        assert control_pd(1.0, 0.0) == 1.0
        assert control_pd(-1.0, 0.0) == -1.0

    def test_cubic_near_zero(self):
        """Small errors give the unsaturated cubic response."""
        gains = PDGains()
        angle = 0.005
        expected = (gains.k * angle) ** 3 / gains.d
        assert control_pd(angle, 0.0, gains) == pytest.approx(expected)

    def test_rate_opposes_angle(self):
        """Rate term cancels the angle term."""
        assert control_pd(0.3, -0.3) == 0.0

    @pytest.mark.parametrize("seed", range(5))
    def test_outputs_bounded(self, seed):
        """Every command is within [-1, 1] for arbitrary inputs."""
        rng = np.random.default_rng(seed)
        for _ in range(50):
            controls = air_control_pd(
                rng.normal(size=3) * 10.0,
                rng.normal(size=3) * 5.5,
                rng.normal(size=3),
            )
            assert np.all(np.abs(controls.to_array()) <= 1.0)


class TestTargetAngles:
    """Test per-axis angle extraction."""

    def test_aligned(self):
        angles = target_angles(WORLD_X, np.array([0.0, 0.0, 1.0]))
        assert_allclose(angles.to_array(), np.zeros(3), atol=1e-12)

    def test_yaw_toward_right(self):
        """Target to the right of the nose gives positive yaw."""
        angles = target_angles(np.array([1.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0]))
        assert angles.yaw == pytest.approx(np.pi / 4)
        assert angles.pitch == pytest.approx(0.0)

    def test_roll_from_up(self):
        """World up tilted toward local +Y gives positive roll."""
        angles = target_angles(WORLD_X, np.array([0.0, 1.0, 1.0]))
        assert angles.roll == pytest.approx(np.pi / 4)


# =============================================================================
# State Machine Tests
# =============================================================================


class TestRecoveryController:
    """Test convergence and timeout behavior."""

    def test_rejects_zero_target(self):
        with pytest.raises(ValueError):
            RecoveryController(target=np.zeros(3), max_steps=10)

    def test_rejects_zero_cap(self):
        with pytest.raises(ValueError):
            RecoveryController(target=WORLD_X, max_steps=0)

    def test_with_time_limit(self):
        controller = RecoveryController.with_time_limit(WORLD_X, tick_rate=120.0, max_seconds=30.0)
        assert controller.max_steps == 3600

    def test_target_normalized(self):
        controller = RecoveryController(target=np.array([2.0, 0.0, 0.0]), max_steps=10)
        assert_allclose(controller.target, WORLD_X)

    def test_aligned_start_converges_after_one_tick(self, arena, car_id):
        """Already on target: one tick elapses, then the run converges."""
        controller = RecoveryController(target=Angle(0.0, 0.0, 0.0).forward(), max_steps=3600)

        status = controller.run(arena, car_id)

        assert status is RecoveryStatus.CONVERGED
        assert controller.steps == 1
        assert controller.elapsed(arena.tick_rate) == pytest.approx(1.0 / 120.0)
        assert arena.tick_count == 1

    def test_first_update_always_steps(self):
        """Convergence is never reported before the first tick."""
        controller = RecoveryController(target=WORLD_X, max_steps=10)
        controls = controller.update(CarState.at_rest())
        assert controls is not None
        assert controller.status is RecoveryStatus.RUNNING
        assert controller.steps == 1

    def test_yaw_quarter_turn_converges_monotonically(self, arena, car_id):
        """Pure yaw recovery: pointing error shrinks every tick until converged."""
        controller = RecoveryController(target=np.array([0.0, 1.0, 0.0]), max_steps=3600)

        errors = []
        while True:
            controls = controller.update(arena.get_car(car_id))
            errors.append(controller.error)
            if controls is None:
                break
            assert controls.pitch == pytest.approx(0.0, abs=1e-9)
            assert controls.roll == pytest.approx(0.0, abs=1e-9)
            arena.set_car_controls(car_id, controls)
            arena.step(1)

        assert controller.status is RecoveryStatus.CONVERGED
        assert errors[0] == pytest.approx(np.pi / 2)
        assert errors[-1] < CONVERGENCE_THRESHOLD
        assert np.all(np.diff(errors) < 0.0)
        assert 0.0 < controller.elapsed(arena.tick_rate) <= 30.0

    def test_random_orientation_converges(self, arena, car_id):
        """Spinning, rolled start with an offset target still recovers."""
        set_orientation(arena, car_id, Angle(0.3, 0.2, 0.4), np.array([1.0, 0.5, -0.5]))
        target = Angle(0.5, 1.2, 0.0).forward()
        controller = RecoveryController(target=target, max_steps=3600)

        assert controller.run(arena, car_id) is RecoveryStatus.CONVERGED
        assert controller.error < CONVERGENCE_THRESHOLD

    def test_times_out_at_cap(self, arena, car_id):
        """Reaching the step cap ends the run without convergence."""
        controller = RecoveryController(target=-WORLD_X, max_steps=5)

        status = controller.run(arena, car_id)

        assert status is RecoveryStatus.TIMED_OUT
        assert controller.steps == 5
        assert arena.tick_count == 5

    def test_update_after_termination_raises(self, arena, car_id):
        controller = RecoveryController(target=-WORLD_X, max_steps=1)
        controller.run(arena, car_id)
        with pytest.raises(RuntimeError):
            controller.update(arena.get_car(car_id))
