"""Guidance, navigation and control for attitude recovery.

The engine (recovery.engine) is the plant; this package holds the
algorithms that command it.

    state = engine.get_car(car_id)        # "Sensors" (truth)
    controls = controller.update(state)   # Control law
    engine.set_car_controls(car_id, controls)
    engine.step(1)                        # Plant
"""

from recovery.gnc.control import (
    PDGains,
    RecoveryController,
    RecoveryStatus,
    air_control_pd,
)

__all__ = [
    "PDGains",
    "RecoveryController",
    "RecoveryStatus",
    "air_control_pd",
]
