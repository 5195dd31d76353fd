"""Configuration for dataset generation.

Defaults reproduce the production setup: one worker per hardware thread,
five-minute batches, a 120 Hz engine, a 30 second step cap and level-3
zstd files in ``results/``.

Example:
    >>> from recovery.config import GeneratorConfig
    >>>
    >>> config = GeneratorConfig(output_dir="data", workers=4, seed=7)
    >>> config.max_steps
    3600
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import numpy as np
from beartype import beartype

from recovery.engine.base import CarConfig

# Near-zero gravity approximates free rotation while keeping the engine's
# gravity code path active.
FREE_FALL_GRAVITY_Z: float = -float(np.finfo(np.float32).eps)


@beartype
@dataclass
class GeneratorConfig:
    """Dataset generation settings.

    Attributes:
        output_dir: Directory receiving the numbered result files
        extension: Extension of result files
        interval: Wall-clock length of one worker batch [s]
        workers: Number of simulation workers (None = one per CPU)
        tick_rate: Engine ticks per simulated second
        max_seconds: Simulated time allowed before a scenario is dropped [s]
        compression_level: zstd compression level
        channel_capacity: Batches the channel can hold (None = 2 per
            worker, 0 = unbounded)
        parallelism: Run workers as threads or as processes
        seed: Root seed for the worker random sources (None = OS entropy)
        gravity_z: Vertical gravity applied by the engine [uu/s^2]
        car_config: Vehicle body preset
    """
    output_dir: str | Path = "results"
    extension: str = "bin"
    interval: float = 300.0
    workers: int | None = None
    tick_rate: float = 120.0
    max_seconds: float = 30.0
    compression_level: int = 3
    channel_capacity: int | None = None
    parallelism: Literal["thread", "process"] = "thread"
    seed: int | None = None
    gravity_z: float = FREE_FALL_GRAVITY_Z
    car_config: CarConfig = field(default_factory=CarConfig.octane)

    def __post_init__(self) -> None:
        """Validate settings."""
        self.output_dir = Path(self.output_dir)

        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")
        if self.workers is not None and self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.tick_rate <= 0:
            raise ValueError(f"tick_rate must be positive, got {self.tick_rate}")
        if self.max_seconds <= 0:
            raise ValueError(f"max_seconds must be positive, got {self.max_seconds}")
        if not 1 <= self.compression_level <= 22:
            raise ValueError(f"compression_level must be in [1, 22], got {self.compression_level}")
        if self.channel_capacity is not None and self.channel_capacity < 0:
            raise ValueError(f"channel_capacity must be >= 0, got {self.channel_capacity}")
        if not self.extension or "/" in self.extension:
            raise ValueError(f"Invalid extension: {self.extension!r}")

    @property
    def num_workers(self) -> int:
        """Resolved worker count."""
        return self.workers or os.cpu_count() or 1

    @property
    def max_steps(self) -> int:
        """Step cap in ticks."""
        return int(round(self.max_seconds * self.tick_rate))

    @property
    def queue_size(self) -> int:
        """Channel capacity in the ``queue.Queue`` convention (0 = unbounded)."""
        if self.channel_capacity is None:
            return 2 * self.num_workers
        return self.channel_capacity
