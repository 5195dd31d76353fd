"""Built-in free-rotation arena.

A lightweight stand-in for a full vehicle simulator: it models a car in
the air with no field geometry, which is all the recovery controller
needs. Air control follows the Rocket League model:

- torque per axis = input * torque constant, about -right (pitch),
  up (yaw) and -forward (roll)
- damping opposes the rate about each axis; pitch and yaw damping are
  released in proportion to the input on that axis
- angular speed is clamped to 5.5 rad/s

Each tick updates the angular velocity first, then rotates the
orientation by the new rate (semi-implicit Euler), like the rigid-body
integrator of the engine it stands in for.

Example:
    >>> from recovery.dynamics import CarControls
    >>> from recovery.engine import Arena, CarConfig, GameMode, Team
    >>>
    >>> arena = Arena(GameMode.THE_VOID, tick_rate=120.0)
    >>> car_id = arena.add_car(Team.BLUE, CarConfig.octane())
    >>> arena.set_car_controls(car_id, CarControls(pitch=1.0))
    >>> arena.step(120)
"""

from dataclasses import dataclass

import numpy as np
from beartype import beartype
from numba import njit
from numpy.typing import NDArray

from recovery.dynamics.state import (
    BallState,
    CarControls,
    CarState,
    is_rotation,
)
from recovery.engine.base import (
    CarConfig,
    EngineError,
    GameMode,
    MemWeightMode,
    MutatorConfig,
    Team,
)

# =============================================================================
# Constants
# =============================================================================

# Air control [pitch, yaw, roll]
CAR_AIR_CONTROL_TORQUE = (130.0, 95.0, 400.0)
CAR_AIR_CONTROL_DAMPING = (30.0, 20.0, 50.0)
CAR_TORQUE_SCALE: float = 2.0 * np.pi / (1 << 16) * 1000.0

CAR_MAX_ANG_SPEED: float = 5.5  # [rad/s]

DEFAULT_TICK_RATE: float = 120.0


# =============================================================================
# Numba-Optimized Tick
# =============================================================================


@njit(cache=True, fastmath=True, nogil=True)
def _air_control_tick(
    rot: NDArray[np.float64],
    ang_vel: NDArray[np.float64],
    pitch: float,
    yaw: float,
    roll: float,
    dt: float,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Advance orientation and angular velocity by one tick."""
    fx, fy, fz = rot[0, 0], rot[1, 0], rot[2, 0]
    rx, ry, rz = rot[0, 1], rot[1, 1], rot[2, 1]
    ux, uy, uz = rot[0, 2], rot[1, 2], rot[2, 2]
    wx, wy, wz = ang_vel[0], ang_vel[1], ang_vel[2]

    t_pitch, t_yaw, t_roll = CAR_AIR_CONTROL_TORQUE
    d_pitch, d_yaw, d_roll = CAR_AIR_CONTROL_DAMPING

    # Torque axes: pitch about -right, yaw about up, roll about -forward
    rate_pitch = -(rx*wx + ry*wy + rz*wz)
    rate_yaw = ux*wx + uy*wy + uz*wz
    rate_roll = -(fx*wx + fy*wy + fz*wz)

    a_pitch = pitch * t_pitch - rate_pitch * d_pitch * (1.0 - abs(pitch))
    a_yaw = yaw * t_yaw - rate_yaw * d_yaw * (1.0 - abs(yaw))
    a_roll = roll * t_roll - rate_roll * d_roll

    s = CAR_TORQUE_SCALE * dt
    wx += (-rx * a_pitch + ux * a_yaw - fx * a_roll) * s
    wy += (-ry * a_pitch + uy * a_yaw - fy * a_roll) * s
    wz += (-rz * a_pitch + uz * a_yaw - fz * a_roll) * s

    speed = np.sqrt(wx*wx + wy*wy + wz*wz)
    if speed > CAR_MAX_ANG_SPEED:
        scale = CAR_MAX_ANG_SPEED / speed
        wx *= scale
        wy *= scale
        wz *= scale
        speed = CAR_MAX_ANG_SPEED

    new_ang_vel = np.empty(3)
    new_ang_vel[0] = wx
    new_ang_vel[1] = wy
    new_ang_vel[2] = wz

    new_rot = np.empty((3, 3))
    for i in range(3):
        for j in range(3):
            new_rot[i, j] = rot[i, j]

    # Rotate every axis by |w| * dt about w (Rodrigues)
    angle = speed * dt
    if angle > 1e-12:
        kx, ky, kz = wx / speed, wy / speed, wz / speed
        c = np.cos(angle)
        sn = np.sin(angle)
        for j in range(3):
            vx, vy, vz = rot[0, j], rot[1, j], rot[2, j]
            k_dot_v = kx*vx + ky*vy + kz*vz
            cx = ky*vz - kz*vy
            cy = kz*vx - kx*vz
            cz = kx*vy - ky*vx
            new_rot[0, j] = vx*c + cx*sn + kx*k_dot_v*(1.0 - c)
            new_rot[1, j] = vy*c + cy*sn + ky*k_dot_v*(1.0 - c)
            new_rot[2, j] = vz*c + cz*sn + kz*k_dot_v*(1.0 - c)

    # Gram-Schmidt to keep the basis orthonormal
    fx, fy, fz = new_rot[0, 0], new_rot[1, 0], new_rot[2, 0]
    n = np.sqrt(fx*fx + fy*fy + fz*fz)
    fx, fy, fz = fx / n, fy / n, fz / n
    rx, ry, rz = new_rot[0, 1], new_rot[1, 1], new_rot[2, 1]
    d = rx*fx + ry*fy + rz*fz
    rx, ry, rz = rx - d*fx, ry - d*fy, rz - d*fz
    n = np.sqrt(rx*rx + ry*ry + rz*rz)
    rx, ry, rz = rx / n, ry / n, rz / n

    new_rot[0, 0] = fx
    new_rot[1, 0] = fy
    new_rot[2, 0] = fz
    new_rot[0, 1] = rx
    new_rot[1, 1] = ry
    new_rot[2, 1] = rz
    new_rot[0, 2] = fy*rz - fz*ry
    new_rot[1, 2] = fz*rx - fx*rz
    new_rot[2, 2] = fx*ry - fy*rx

    return new_rot, new_ang_vel


# =============================================================================
# Arena
# =============================================================================


@dataclass
class _Car:
    team: Team
    config: CarConfig
    state: CarState
    controls: CarControls


@beartype
class Arena:
    """Free-rotation arena implementing the :class:`PhysicsEngine` protocol.

    Not thread-safe: each worker owns its own arena.
    """

    def __init__(
        self,
        game_mode: GameMode = GameMode.THE_VOID,
        mem_weight_mode: MemWeightMode = MemWeightMode.HEAVY,
        tick_rate: float = DEFAULT_TICK_RATE,
    ) -> None:
        """Initialize the arena.

        Args:
            game_mode: Arena layout (only THE_VOID has no geometry to hit)
            mem_weight_mode: Memory hint, accepted for interface parity
            tick_rate: Ticks per simulated second
        """
        if game_mode is not GameMode.THE_VOID:
            raise EngineError(f"Arena only supports GameMode.THE_VOID, got {game_mode.name}")
        if tick_rate <= 0:
            raise EngineError(f"tick_rate must be positive, got {tick_rate}")

        self.game_mode = game_mode
        self.mem_weight_mode = mem_weight_mode
        self._tick_rate = tick_rate
        self._mutators = MutatorConfig()
        self._cars: dict[int, _Car] = {}
        self._next_car_id = 1
        self._ball = BallState.at_rest()
        self.tick_count = 0

    @property
    def tick_rate(self) -> float:
        return self._tick_rate

    @property
    def tick_time(self) -> float:
        return 1.0 / self._tick_rate

    # -------------------------------------------------------------------------
    # Environment
    # -------------------------------------------------------------------------

    def get_mutator_config(self) -> MutatorConfig:
        return self._mutators.copy()

    def set_mutator_config(self, config: MutatorConfig) -> None:
        if config.gravity.shape != (3,) or not np.all(np.isfinite(config.gravity)):
            raise EngineError(f"Invalid gravity vector: {config.gravity}")
        self._mutators = config.copy()

    # -------------------------------------------------------------------------
    # Cars
    # -------------------------------------------------------------------------

    def add_car(self, team: Team, config: CarConfig) -> int:
        car_id = self._next_car_id
        self._next_car_id += 1
        self._cars[car_id] = _Car(
            team=team,
            config=config,
            state=CarState.at_rest(),
            controls=CarControls(),
        )
        return car_id

    def _car(self, car_id: int) -> _Car:
        try:
            return self._cars[car_id]
        except KeyError:
            raise EngineError(f"No car with id {car_id}") from None

    def get_car(self, car_id: int) -> CarState:
        return self._car(car_id).state.copy()

    def set_car(self, car_id: int, state: CarState) -> None:
        car = self._car(car_id)
        for name in ("pos", "vel", "ang_vel"):
            if not np.all(np.isfinite(getattr(state, name))):
                raise EngineError(f"Car {car_id}: non-finite {name}")
        if not is_rotation(state.rot_mat):
            raise EngineError(f"Car {car_id}: rot_mat is not a rotation matrix")
        car.state = state.copy()

    def set_car_controls(self, car_id: int, controls: CarControls) -> None:
        car = self._car(car_id)
        values = controls.to_array()
        if not np.all(np.isfinite(values)) or np.any(np.abs(values) > 1.0):
            raise EngineError(f"Car {car_id}: controls out of range: {controls}")
        car.controls = controls

    # -------------------------------------------------------------------------
    # Ball
    # -------------------------------------------------------------------------

    def get_ball(self) -> BallState:
        return self._ball.copy()

    def set_ball(self, state: BallState) -> None:
        if not all(np.all(np.isfinite(v)) for v in (state.pos, state.vel, state.ang_vel)):
            raise EngineError("Ball state must be finite")
        self._ball = state.copy()

    # -------------------------------------------------------------------------
    # Stepping
    # -------------------------------------------------------------------------

    def step(self, ticks: int = 1) -> None:
        """Advance every body by ``ticks`` ticks."""
        dt = self.tick_time
        gravity = self._mutators.gravity

        for _ in range(ticks):
            for car in self._cars.values():
                state = car.state
                c = car.controls
                state.rot_mat, state.ang_vel = _air_control_tick(
                    state.rot_mat, state.ang_vel, c.pitch, c.yaw, c.roll, dt,
                )
                state.vel = state.vel + gravity * dt
                state.pos = state.pos + state.vel * dt

            self._ball.vel = self._ball.vel + gravity * dt
            self._ball.pos = self._ball.pos + self._ball.vel * dt

            self.tick_count += 1
