"""
Correlated random walk (CRW) constrained to a water body.

Each step advances a fixed step length along the previous heading
perturbed by a turning angle. Proposals that leave the permitted region
(either the end point or the segment to it) are rejected and the turn is
redrawn, up to a fixed number of attempts per step. Exhausting the budget
is a hard failure: a shorter path is never returned.

Headings are compass degrees (0 = north/+y, 90 = east/+x), so
    dx = step * sin(heading)
    dy = step * cos(heading)
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Optional

import numpy as np

from telemsim.core.entities import Path
from telemsim.core.random_source import SeedLike, as_generator
from telemsim.exceptions import BoundaryViolationError, ValidationError
from telemsim.landscape.boundary import PointLike, as_xy
from telemsim.movement.base import (
    NormalTurningAngle,
    TurnAngleLike,
    resolve_turn_distribution,
)
from telemsim.parameters.constants import SimulationConstants

if TYPE_CHECKING:
    from telemsim.landscape.boundary import BoundaryOracle
    from telemsim.parameters.simulation_params import SimulationParameters

logger = logging.getLogger("telemsim.movement.crw")


def generate_path(
    start: Optional[PointLike],
    step_length: float,
    num_steps: int,
    boundary: BoundaryOracle,
    turn_angle_dist: TurnAngleLike = None,
    *,
    initial_heading: Optional[float] = None,
    max_retries: int = SimulationConstants.DEFAULT_MAX_RETRIES,
    rng: SeedLike = None,
) -> Path:
    """
    Generate a correlated random walk inside a boundary.

    Args:
        start: Origin of the walk; None draws a random point in the region
        step_length: Distance covered by each step (> 0)
        num_steps: Number of steps (> 0); the path has num_steps + 1 points
        boundary: Oracle defining the permitted region
        turn_angle_dist: Turning-angle distribution (degrees); None = N(0, 10)
        initial_heading: Compass heading of the first step before turning;
            None draws it uniformly on [0, 360)
        max_retries: Proposals allowed per step before failing
        rng: Generator or seed

    Returns:
        Path whose every point lies inside the boundary

    Raises:
        ValidationError: For non-positive step length, step count or retries
        BoundaryViolationError: If start is outside the region or a step
            cannot be placed within max_retries attempts
    """
    if not (math.isfinite(step_length) and step_length > 0):
        raise ValidationError(f"step_length must be positive and finite, got {step_length}")
    if int(num_steps) != num_steps or num_steps < 1:
        raise ValidationError(f"num_steps must be a positive integer, got {num_steps}")
    if max_retries < 1:
        raise ValidationError(f"max_retries must be at least 1, got {max_retries}")
    num_steps = int(num_steps)

    gen = as_generator(rng)
    turns = resolve_turn_distribution(turn_angle_dist)

    if start is None:
        start = boundary.random_point(gen)
    x, y = as_xy(start)
    if not boundary.contains((x, y)):
        raise BoundaryViolationError("Start point is outside the permitted region", step_index=0, position=(x, y))

    heading = float(gen.uniform(0.0, SimulationConstants.FULL_CIRCLE)) if initial_heading is None else float(initial_heading)

    xs = np.empty(num_steps + 1, dtype=np.float64)
    ys = np.empty(num_steps + 1, dtype=np.float64)
    xs[0], ys[0] = x, y
    rejected = 0

    for step in range(1, num_steps + 1):
        for attempt in range(max_retries):
            proposal = (heading + turns.sample(gen)) % SimulationConstants.FULL_CIRCLE
            rad = math.radians(proposal)
            nx = x + step_length * math.sin(rad)
            ny = y + step_length * math.cos(rad)
            if boundary.contains((nx, ny)) and boundary.segment_inside((x, y), (nx, ny)):
                break
            rejected += 1
        else:
            raise BoundaryViolationError(
                f"No in-region step found after {max_retries} attempts",
                step_index=step,
                position=(nx, ny),
            )

        heading = proposal
        x, y = nx, ny
        xs[step], ys[step] = x, y

    logger.debug(
        "Generated %d-step path from (%.1f, %.1f), %d proposals rejected",
        num_steps, xs[0], ys[0], rejected,
    )
    return Path(x=xs, y=ys)


class PathGenerator:
    """
    Reusable correlated random walk generator bound to one region.

    Holds the boundary, step length, turning distribution and retry budget
    so repeated trials in a sweep share one oracle instance.
    """

    def __init__(
        self,
        boundary: BoundaryOracle,
        step_length: float,
        turn_angle_dist: TurnAngleLike = None,
        max_retries: int = SimulationConstants.DEFAULT_MAX_RETRIES,
    ):
        """
        Initialize path generator.

        Args:
            boundary: Oracle defining the permitted region
            step_length: Distance covered by each step
            turn_angle_dist: Turning-angle distribution; None = N(0, 10)
            max_retries: Proposals allowed per step
        """
        if step_length <= 0:
            raise ValidationError("step_length must be positive")
        if max_retries < 1:
            raise ValidationError("max_retries must be at least 1")
        self.boundary = boundary
        self.step_length = float(step_length)
        self.turn_angle_dist = resolve_turn_distribution(turn_angle_dist)
        self.max_retries = int(max_retries)

    @classmethod
    def from_parameters(cls, boundary: BoundaryOracle, params: SimulationParameters) -> PathGenerator:
        """Create a generator from simulation parameters."""
        return cls(
            boundary=boundary,
            step_length=params.step_length,
            turn_angle_dist=NormalTurningAngle(params.turn_angle_mean, params.turn_angle_sd),
            max_retries=params.max_retries,
        )

    def generate(
        self,
        num_steps: int,
        start: Optional[PointLike] = None,
        initial_heading: Optional[float] = None,
        rng: SeedLike = None,
    ) -> Path:
        """Generate one path; see generate_path."""
        return generate_path(
            start,
            self.step_length,
            num_steps,
            self.boundary,
            self.turn_angle_dist,
            initial_heading=initial_heading,
            max_retries=self.max_retries,
            rng=rng,
        )

    def get_name(self) -> str:
        """Return the name of this generator."""
        return f"CRW({type(self.turn_angle_dist).__name__})"

    def __repr__(self) -> str:
        return (
            f"PathGenerator(boundary={type(self.boundary).__name__}, "
            f"step_length={self.step_length}, turns={self.turn_angle_dist!r})"
        )
