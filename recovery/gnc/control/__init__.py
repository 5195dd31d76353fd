"""Control algorithms for attitude recovery.

Provides the cubic PD air-control law and the recovery state machine
that drives it tick by tick.
"""

from recovery.gnc.control.pd import (
    DEFAULT_GAINS,
    PDGains,
    air_control_pd,
    control_pd,
    target_angles,
)
from recovery.gnc.control.recovery import (
    CONVERGENCE_THRESHOLD,
    RecoveryController,
    RecoveryStatus,
)

__all__ = [
    "CONVERGENCE_THRESHOLD",
    "DEFAULT_GAINS",
    "PDGains",
    "RecoveryController",
    "RecoveryStatus",
    "air_control_pd",
    "control_pd",
    "target_angles",
]
