"""
Simulation parameters configuration.

All configurable model parameters with their defaults and validation.
Defaults follow a typical receiver line design for coded acoustic tags
(0.5 m/s, 120-360 s delays, 5 s bursts, 1 km spacing).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path
from typing import Optional, Tuple, Union

from telemsim.exceptions import ValidationError
from telemsim.parameters.constants import SimulationConstants


@dataclass
class SimulationParameters:
    """
    All simulation parameters with defaults.

    Distances are in metres and times in seconds by convention, but the
    engine itself is unit-agnostic.
    """

    # === Simulation Setup ===
    random_seed: Optional[int] = None

    # === Movement (correlated random walk) ===
    step_length: float = 100.0
    num_steps: int = 50
    turn_angle_mean: float = SimulationConstants.DEFAULT_TURN_MEAN   # degrees
    turn_angle_sd: float = SimulationConstants.DEFAULT_TURN_SD       # degrees
    max_retries: int = SimulationConstants.DEFAULT_MAX_RETRIES       # per step

    # === Transmitter ===
    velocity: float = 0.5              # m/s
    delay_min: float = 120.0           # s, start-to-start
    delay_max: float = 360.0           # s
    burst_duration: float = 5.0        # s, metadata for collision analysis

    # === Receiver Line ===
    receiver_spacing: float = 1000.0   # m between adjacent receivers
    receiver_count: int = 5
    max_distance: float = 2000.0       # m from line to start/end of path
    outer_limits: Tuple[float, float] = (0.0, 0.0)  # m beyond outer receivers
    min_detections: int = 1            # detections needed to count as detected

    def __post_init__(self):
        """Validate parameters."""
        self.outer_limits = tuple(float(v) for v in self.outer_limits)
        self._validate()

    def _validate(self) -> None:
        """Validate parameter ranges."""
        if self.step_length <= 0:
            raise ValidationError("step_length must be positive")
        if self.num_steps < 1:
            raise ValidationError("num_steps must be at least 1")
        if self.turn_angle_sd < 0:
            raise ValidationError("turn_angle_sd must be non-negative")
        if self.max_retries < 1:
            raise ValidationError("max_retries must be at least 1")
        if self.velocity <= 0:
            raise ValidationError("velocity must be positive")
        validate_delay_range((self.delay_min, self.delay_max))
        if self.burst_duration < 0:
            raise ValidationError("burst_duration must be non-negative")
        if self.receiver_spacing <= 0:
            raise ValidationError("receiver_spacing must be positive")
        if self.receiver_count < 1:
            raise ValidationError("receiver_count must be at least 1")
        if self.max_distance <= 0:
            raise ValidationError("max_distance must be positive")
        if len(self.outer_limits) != 2 or min(self.outer_limits) < 0:
            raise ValidationError("outer_limits must be two non-negative distances")
        if self.min_detections < 1:
            raise ValidationError("min_detections must be at least 1")

    @property
    def delay_range(self) -> Tuple[float, float]:
        """Inter-transmission delay range (min, max)."""
        return (self.delay_min, self.delay_max)

    @classmethod
    def from_dict(cls, params: dict) -> SimulationParameters:
        """Create parameters from dictionary, ignoring unknown keys."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in params.items() if k in names})

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> SimulationParameters:
        """Load parameters from a JSON file."""
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> dict:
        """Convert parameters to dictionary."""
        return asdict(self)

    def replace(self, **changes) -> SimulationParameters:
        """Return a validated copy with some fields changed."""
        if "delay_range" in changes:
            lo, hi = changes.pop("delay_range")
            changes["delay_min"] = lo
            changes["delay_max"] = hi
        return replace(self, **changes)


def validate_delay_range(delay_range: Tuple[float, float]) -> Tuple[float, float]:
    """Check that 0 < min <= max and return the range as floats."""
    try:
        lo, hi = (float(v) for v in delay_range)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"delay_range must be a (min, max) pair: {delay_range!r}") from e
    if not 0 < lo <= hi:
        raise ValidationError(f"delay_range must satisfy 0 < min <= max, got ({lo}, {hi})")
    return lo, hi
