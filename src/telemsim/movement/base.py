"""
Turning-angle distributions for correlated random walks.

A turning angle is the change in heading between consecutive steps, in
degrees. Distributions wrap scipy.stats frozen distributions and draw
from an explicitly passed numpy Generator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

import numpy as np
from scipy import stats

from telemsim.exceptions import ValidationError
from telemsim.parameters.constants import SimulationConstants


class TurningAngleDistribution(ABC):
    """Abstract distribution of turning angles (degrees)."""

    @abstractmethod
    def sample(
        self, rng: np.random.Generator, size: Optional[int] = None
    ) -> Union[float, np.ndarray]:
        """
        Draw turning angles.

        Args:
            rng: Generator to draw from
            size: Number of draws, or None for a single float

        Returns:
            A float when size is None, otherwise an array of length size
        """
        pass

    def get_name(self) -> str:
        """Return the name of this distribution."""
        return self.__class__.__name__

    @staticmethod
    def _constant(value: float, size: Optional[int]) -> Union[float, np.ndarray]:
        if size is None:
            return float(value)
        return np.full(size, float(value))

    @staticmethod
    def _draw(dist, rng: np.random.Generator, size: Optional[int]) -> Union[float, np.ndarray]:
        if size is None:
            return float(dist.rvs(random_state=rng))
        return np.asarray(dist.rvs(size=size, random_state=rng), dtype=np.float64)


class NormalTurningAngle(TurningAngleDistribution):
    """
    Normally distributed turning angle N(mean, sd).

    sd = 0 gives a constant turn (a straight line when mean = 0).
    """

    def __init__(
        self,
        mean: float = SimulationConstants.DEFAULT_TURN_MEAN,
        sd: float = SimulationConstants.DEFAULT_TURN_SD,
    ):
        if sd < 0:
            raise ValidationError("Turning angle sd must be non-negative")
        self.mean = float(mean)
        self.sd = float(sd)
        self._dist = stats.norm(loc=self.mean, scale=self.sd) if self.sd > 0 else None

    def sample(self, rng, size=None):
        if self._dist is None:
            return self._constant(self.mean, size)
        return self._draw(self._dist, rng, size)

    def __repr__(self) -> str:
        return f"NormalTurningAngle(mean={self.mean}, sd={self.sd})"


class VonMisesTurningAngle(TurningAngleDistribution):
    """Von Mises (circular normal) turning angle with concentration kappa."""

    def __init__(self, mean: float = 0.0, kappa: float = 4.0):
        if kappa <= 0:
            raise ValidationError("Von Mises kappa must be positive")
        self.mean = float(mean)
        self.kappa = float(kappa)
        self._dist = stats.vonmises(self.kappa, loc=np.radians(self.mean))

    def sample(self, rng, size=None):
        draws = self._draw(self._dist, rng, size)
        return np.degrees(draws) if size is not None else float(np.degrees(draws))

    def __repr__(self) -> str:
        return f"VonMisesTurningAngle(mean={self.mean}, kappa={self.kappa})"


class UniformTurningAngle(TurningAngleDistribution):
    """Turning angle uniform on [low, high]."""

    def __init__(self, low: float = -180.0, high: float = 180.0):
        if high < low:
            raise ValidationError("Uniform turning angle needs low <= high")
        self.low = float(low)
        self.high = float(high)
        self._dist = stats.uniform(loc=self.low, scale=self.high - self.low) if high > low else None

    def sample(self, rng, size=None):
        if self._dist is None:
            return self._constant(self.low, size)
        return self._draw(self._dist, rng, size)

    def __repr__(self) -> str:
        return f"UniformTurningAngle(low={self.low}, high={self.high})"


class CallableTurningAngle(TurningAngleDistribution):
    """Adapter for a plain callable f(rng) -> float."""

    def __init__(self, func: Callable[[np.random.Generator], float]):
        self.func = func

    def sample(self, rng, size=None):
        if size is None:
            return float(self.func(rng))
        return np.array([float(self.func(rng)) for _ in range(size)])

    def get_name(self) -> str:
        return getattr(self.func, "__name__", "CallableTurningAngle")


TurnAngleLike = Union[None, TurningAngleDistribution, Callable[[np.random.Generator], float]]


def resolve_turn_distribution(dist: TurnAngleLike) -> TurningAngleDistribution:
    """
    Normalize a turning-angle argument.

    None gives the default N(0, 10); objects with a sample(rng, size)
    method are used as-is; other callables are wrapped.
    """
    if dist is None:
        return NormalTurningAngle()
    if hasattr(dist, "sample"):
        return dist
    if callable(dist):
        return CallableTurningAngle(dist)
    raise ValidationError(f"Unsupported turning angle distribution: {dist!r}")
