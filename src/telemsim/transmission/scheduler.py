"""
Transmission scheduling along a movement path.

The path is treated as a piecewise-linear trajectory traversed at constant
velocity. The first transmission happens at time 0 at the path origin;
each following one comes after a random start-to-start delay, at the
position reached by then. Emission stops once the elapsed time passes the
time needed to traverse the whole path.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Callable, Optional, Tuple, Union

import numpy as np
import pandas as pd

from telemsim.core.entities import Path, TransmissionSchedule
from telemsim.core.random_source import SeedLike, as_generator
from telemsim.exceptions import ValidationError
from telemsim.parameters.simulation_params import validate_delay_range

if TYPE_CHECKING:
    from telemsim.parameters.simulation_params import SimulationParameters

logger = logging.getLogger("telemsim.transmission.scheduler")

PathLike = Union[Path, pd.DataFrame, np.ndarray]
DelaySampler = Callable[[np.random.Generator, int], np.ndarray]


def as_path(path: PathLike) -> Path:
    """Coerce a Path, DataFrame with x/y columns, or (n, 2) array to a Path."""
    if isinstance(path, Path):
        return path
    if isinstance(path, pd.DataFrame):
        missing = [c for c in ("x", "y") if c not in path.columns]
        if missing:
            raise ValidationError(f"Path frame must contain the following columns: {', '.join(missing)}")
        return Path(x=path["x"].to_numpy(dtype=np.float64), y=path["y"].to_numpy(dtype=np.float64))
    return Path.from_xy(path)


def schedule_transmissions(
    path: PathLike,
    velocity: float,
    delay_range: Tuple[float, float],
    burst_duration: float = 0.0,
    *,
    rng: SeedLike = None,
    delay_sampler: Optional[DelaySampler] = None,
) -> TransmissionSchedule:
    """
    Simulate transmissions along a path.

    Args:
        path: Path, DataFrame with x/y columns, or (n, 2) coordinates
        velocity: Constant travel speed (> 0), distance units per time unit
        delay_range: (min, max) start-to-start delay, 0 < min <= max
        burst_duration: Signal duration (>= 0); stored as metadata only
        rng: Generator or seed
        delay_sampler: Optional f(rng, size) -> delays replacing the uniform
            draw on delay_range; every delay must be positive

    Returns:
        TransmissionSchedule with strictly increasing elapsed times,
        the first at 0

    Raises:
        ValidationError: For invalid velocity, delay range, burst duration,
            path, or non-positive sampled delays
    """
    if not (math.isfinite(velocity) and velocity > 0):
        raise ValidationError(f"velocity must be positive and finite, got {velocity}")
    lo, hi = validate_delay_range(delay_range)
    if not (math.isfinite(burst_duration) and burst_duration >= 0):
        raise ValidationError(f"burst_duration must be non-negative, got {burst_duration}")

    path = as_path(path)
    if len(path) == 0:
        raise ValidationError("Cannot transmit along an empty path")
    if not (np.all(np.isfinite(path.x)) and np.all(np.isfinite(path.y))):
        raise ValidationError("Path coordinates must be finite")

    seg = path.segment_lengths()
    # Zero-length segments would give np.interp duplicate sample points
    keep = np.concatenate(([True], seg > 0))
    px, py = path.x[keep], path.y[keep]
    cumdist = np.concatenate(([0.0], np.cumsum(seg[seg > 0])))
    total_length = float(cumdist[-1])
    duration = total_length / velocity

    gen = as_generator(rng)
    times = _transmission_times(duration, lo, hi, gen, delay_sampler)

    if len(times) == 1:
        logger.warning(
            "Path of length %.3f at velocity %.3f gives a single transmission",
            total_length, velocity,
        )

    dist = np.minimum(times * velocity, total_length)
    if len(px) > 1:
        tx = np.interp(dist, cumdist, px)
        ty = np.interp(dist, cumdist, py)
    else:
        tx = np.full(len(times), px[0])
        ty = np.full(len(times), py[0])

    logger.debug("Scheduled %d transmissions over %.1f time units", len(times), duration)
    return TransmissionSchedule(
        transmission_id=np.arange(1, len(times) + 1, dtype=np.int64),
        x=tx,
        y=ty,
        elapsed_time=times,
        burst_duration=float(burst_duration),
        path_duration=duration,
    )


def _transmission_times(
    duration: float,
    lo: float,
    hi: float,
    gen: np.random.Generator,
    delay_sampler: Optional[DelaySampler],
) -> np.ndarray:
    """Elapsed times 0, d1, d1+d2, ... not exceeding duration."""
    # Sized from the mean delay; the loop tops up when a draw falls short
    batch = int(math.ceil(duration / (0.5 * (lo + hi)))) + 16
    chunks = [np.zeros(1)]
    elapsed = 0.0

    while elapsed <= duration:
        if delay_sampler is None:
            delays = gen.uniform(lo, hi, batch)
        else:
            delays = np.asarray(delay_sampler(gen, batch), dtype=np.float64)
            if delays.shape != (batch,) or not np.all(np.isfinite(delays)) or np.any(delays <= 0):
                raise ValidationError("delay_sampler must return the requested number of positive delays")
        steps = elapsed + np.cumsum(delays)
        chunks.append(steps)
        elapsed = float(steps[-1])

    times = np.concatenate(chunks)
    return times[times <= duration]


class TransmissionScheduler:
    """Transmitter settings applied to successive paths."""

    def __init__(
        self,
        velocity: float,
        delay_range: Tuple[float, float],
        burst_duration: float = 0.0,
        delay_sampler: Optional[DelaySampler] = None,
    ):
        if velocity <= 0:
            raise ValidationError("velocity must be positive")
        if burst_duration < 0:
            raise ValidationError("burst_duration must be non-negative")
        self.velocity = float(velocity)
        self.delay_range = validate_delay_range(delay_range)
        self.burst_duration = float(burst_duration)
        self.delay_sampler = delay_sampler

    @classmethod
    def from_parameters(cls, params: SimulationParameters) -> TransmissionScheduler:
        """Create a scheduler from simulation parameters."""
        return cls(
            velocity=params.velocity,
            delay_range=params.delay_range,
            burst_duration=params.burst_duration,
        )

    def schedule(self, path: PathLike, rng: SeedLike = None) -> TransmissionSchedule:
        """Schedule transmissions along one path."""
        return schedule_transmissions(
            path,
            self.velocity,
            self.delay_range,
            self.burst_duration,
            rng=rng,
            delay_sampler=self.delay_sampler,
        )

    def __repr__(self) -> str:
        return (
            f"TransmissionScheduler(velocity={self.velocity}, "
            f"delay_range={self.delay_range}, burst_duration={self.burst_duration})"
        )
