"""
Pulse-collision probability for co-located transmitters.

Two transmissions collide when their bursts, from different tags, overlap
in time. The value estimated is the probability that a transmission from
any one tag overlaps at least one burst from another tag; its complement
is the fraction of transmissions a receiver can still decode.

Two estimators are provided:
- analytic: closed form assuming independent tags with uniformly spread
  start times. A burst is vulnerable during a window of 2 * burst_duration,
  and another tag with mean start-to-start delay mu starts a burst in that
  window with probability q = min(1, 2 * burst_duration / mu):
      P = 1 - (1 - q) ** (num_tags - 1)
- monte_carlo: simulate delay sequences for every tag and count bursts
  that overlap a burst from another tag.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from telemsim.core.random_source import SeedLike, as_generator, spawn_sources
from telemsim.exceptions import ValidationError
from telemsim.parameters.simulation_params import validate_delay_range

logger = logging.getLogger("telemsim.analysis.collision")

METHODS = ("analytic", "monte_carlo")


def _validate(num_tags: int, burst_duration: float, delay_range) -> Tuple[float, float]:
    if int(num_tags) != num_tags or num_tags < 1:
        raise ValidationError(f"num_tags must be an integer >= 1, got {num_tags}")
    if not (math.isfinite(burst_duration) and burst_duration > 0):
        raise ValidationError(f"burst_duration must be positive, got {burst_duration}")
    return validate_delay_range(delay_range)


def analytic_collision_probability(
    num_tags: int, burst_duration: float, delay_range: Tuple[float, float]
) -> float:
    """Closed-form collision probability (see module docstring)."""
    lo, hi = _validate(num_tags, burst_duration, delay_range)
    if num_tags == 1:
        return 0.0
    mean_delay = 0.5 * (lo + hi)
    q = min(1.0, 2.0 * burst_duration / mean_delay)
    return float(1.0 - (1.0 - q) ** (int(num_tags) - 1))


def simulated_collision_probability(
    num_tags: int,
    burst_duration: float,
    delay_range: Tuple[float, float],
    n_transmissions: int = 1000,
    seed: SeedLike = None,
) -> float:
    """
    Monte-Carlo collision probability.

    Each tag starts at a random phase in [0, max delay) and then transmits
    after uniform start-to-start delays. Only bursts inside the window
    where every tag is active are counted, so start-up and run-out edges
    do not bias the estimate.

    Args:
        num_tags: Number of co-located tags
        burst_duration: Burst length
        delay_range: (min, max) start-to-start delay
        n_transmissions: Transmissions simulated per tag; at least
            floor(max delay / min delay) + 2 so every draw has a common window
        seed: Generator or seed

    Returns:
        Fraction of counted bursts overlapping a burst from another tag
    """
    lo, hi = _validate(num_tags, burst_duration, delay_range)
    # The shortest possible run, (n - 1) * min delay, must pass the window start
    min_transmissions = int(math.floor(hi / lo)) + 2
    if n_transmissions < min_transmissions:
        raise ValidationError(
            f"n_transmissions must be at least {min_transmissions} for delay range {(lo, hi)}"
        )
    if num_tags == 1:
        return 0.0

    gen = as_generator(seed)
    n_tags = int(num_tags)
    phase = gen.uniform(0.0, hi, n_tags)
    delays = gen.uniform(lo, hi, (n_tags, n_transmissions - 1))
    starts = np.concatenate((np.zeros((n_tags, 1)), np.cumsum(delays, axis=1)), axis=1)
    starts += phase[:, None]

    window_start = hi
    window_end = float(starts[:, -1].min())

    merged = np.sort(starts, axis=None)
    counted = 0
    collided = 0
    for own in starts:
        lower = own - burst_duration
        upper = own + burst_duration
        # Bursts starting strictly within (s - b, s + b) overlap burst s
        total = np.searchsorted(merged, upper, side="left") - np.searchsorted(merged, lower, side="right")
        same = np.searchsorted(own, upper, side="left") - np.searchsorted(own, lower, side="right")
        in_window = (own >= window_start) & (own <= window_end)
        counted += int(np.count_nonzero(in_window))
        collided += int(np.count_nonzero(in_window & (total > same)))

    return collided / counted


def estimate_collision_probability(
    num_tags: int,
    burst_duration: float,
    delay_range: Tuple[float, float],
    method: str = "analytic",
    *,
    n_transmissions: int = 1000,
    seed: SeedLike = None,
) -> float:
    """
    Probability that a transmission collides with another tag's burst.

    Args:
        num_tags: Number of co-located tags (>= 1); 1 always gives 0.0
        burst_duration: Burst length (> 0)
        delay_range: (min, max) start-to-start delay
        method: "analytic" (fast, approximate) or "monte_carlo"
        n_transmissions: Transmissions per tag for "monte_carlo"
        seed: Generator or seed for "monte_carlo"

    Returns:
        Probability in [0, 1]
    """
    if method == "analytic":
        return analytic_collision_probability(num_tags, burst_duration, delay_range)
    if method == "monte_carlo":
        return simulated_collision_probability(
            num_tags, burst_duration, delay_range, n_transmissions=n_transmissions, seed=seed
        )
    raise ValidationError(f"method must be one of {METHODS}, got {method!r}")


def collision_table(
    max_tags: int,
    burst_duration: float,
    delay_range: Tuple[float, float],
    n_transmissions: int = 1000,
    seed: SeedLike = None,
) -> pd.DataFrame:
    """
    Collision and detection probabilities for 1..max_tags co-located tags.

    Returns:
        DataFrame with columns num_tags, collision_analytic,
        collision_simulated, detection_analytic, detection_simulated
    """
    if int(max_tags) != max_tags or max_tags < 1:
        raise ValidationError(f"max_tags must be an integer >= 1, got {max_tags}")
    max_tags = int(max_tags)
    sources = spawn_sources(seed, max_tags)

    rows = []
    for n in range(1, max_tags + 1):
        analytic = analytic_collision_probability(n, burst_duration, delay_range)
        simulated = simulated_collision_probability(
            n, burst_duration, delay_range, n_transmissions=n_transmissions, seed=sources[n - 1]
        )
        rows.append({
            "num_tags": n,
            "collision_analytic": analytic,
            "collision_simulated": simulated,
            "detection_analytic": 1.0 - analytic,
            "detection_simulated": 1.0 - simulated,
        })

    logger.info("Collision table computed for 1-%d tags", max_tags)
    return pd.DataFrame(rows)


class CollisionEstimator:
    """Tag timing settings for repeated collision estimates."""

    def __init__(
        self,
        burst_duration: float,
        delay_range: Tuple[float, float],
        method: str = "analytic",
        n_transmissions: int = 1000,
    ):
        if method not in METHODS:
            raise ValidationError(f"method must be one of {METHODS}, got {method!r}")
        _validate(1, burst_duration, delay_range)
        self.burst_duration = float(burst_duration)
        self.delay_range = validate_delay_range(delay_range)
        self.method = method
        self.n_transmissions = int(n_transmissions)

    def estimate(self, num_tags: int, seed: Optional[SeedLike] = None) -> float:
        """Collision probability for num_tags tags."""
        return estimate_collision_probability(
            num_tags,
            self.burst_duration,
            self.delay_range,
            self.method,
            n_transmissions=self.n_transmissions,
            seed=seed,
        )

    def table(self, max_tags: int, seed: Optional[SeedLike] = None) -> pd.DataFrame:
        """Analytic and simulated probabilities for 1..max_tags tags."""
        return collision_table(
            max_tags,
            self.burst_duration,
            self.delay_range,
            n_transmissions=self.n_transmissions,
            seed=seed,
        )
