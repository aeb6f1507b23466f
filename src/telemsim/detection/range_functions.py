"""
Detection range curves.

A detection range function maps transmitter-to-receiver distance to the
probability that a transmission is detected. Any callable accepting a
numpy array of distances and returning probabilities in [0, 1] is
accepted by the detector; the curves below are picklable so they can be
shipped to worker processes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Union

import numpy as np
from scipy.special import expit, logit

from telemsim.exceptions import ValidationError
from telemsim.parameters.constants import SimulationConstants

DetectionRangeFunction = Callable[[np.ndarray], Union[float, np.ndarray]]


class DetectionRangeCurve(ABC):
    """Base class for built-in detection range curves."""

    @abstractmethod
    def probability(self, distance: np.ndarray) -> np.ndarray:
        """Detection probability at each distance."""
        pass

    def __call__(self, distance) -> np.ndarray:
        return self.probability(np.asarray(distance, dtype=np.float64))


class LogisticDetectionRange(DetectionRangeCurve):
    """
    Logistic detection range curve.

        p(d) = 1 / (1 + exp(-(intercept + slope * d)))

    With the defaults (0.5, -1/120) detection probability is about 0.62
    at the receiver and 0.5 at 60 m.
    """

    def __init__(
        self,
        intercept: float = SimulationConstants.DEFAULT_RANGE_INTERCEPT,
        slope: float = SimulationConstants.DEFAULT_RANGE_SLOPE,
    ):
        self.intercept = float(intercept)
        self.slope = float(slope)

    def probability(self, distance: np.ndarray) -> np.ndarray:
        return expit(self.intercept + self.slope * distance)

    def distance_at(self, probability: float) -> float:
        """Distance at which detection probability equals the given value."""
        if self.slope == 0:
            raise ValidationError("A flat logistic curve has no distance for a given probability")
        if not 0 < probability < 1:
            raise ValidationError("probability must be strictly between 0 and 1")
        return float((logit(probability) - self.intercept) / self.slope)

    def __repr__(self) -> str:
        return f"LogisticDetectionRange(intercept={self.intercept}, slope={self.slope})"


class ThresholdDetectionRange(DetectionRangeCurve):
    """Constant probability p within max_distance, zero beyond it."""

    def __init__(self, max_distance: float, p: float = 1.0):
        if max_distance < 0:
            raise ValidationError("max_distance must be non-negative")
        if not 0 <= p <= 1:
            raise ValidationError("p must be between 0 and 1")
        self.max_distance = float(max_distance)
        self.p = float(p)

    def probability(self, distance: np.ndarray) -> np.ndarray:
        return np.where(distance <= self.max_distance, self.p, 0.0)

    def __repr__(self) -> str:
        return f"ThresholdDetectionRange(max_distance={self.max_distance}, p={self.p})"


class ConstantDetectionRange(DetectionRangeCurve):
    """Same detection probability at every distance."""

    def __init__(self, p: float):
        if not 0 <= p <= 1:
            raise ValidationError("p must be between 0 and 1")
        self.p = float(p)

    def probability(self, distance: np.ndarray) -> np.ndarray:
        return np.full(np.shape(distance), self.p)

    def __repr__(self) -> str:
        return f"ConstantDetectionRange(p={self.p})"


def evaluate_range_function(
    detection_range_fn: DetectionRangeFunction, distances: np.ndarray
) -> np.ndarray:
    """
    Evaluate a detection range function and check its output.

    Scalar results are broadcast over the distances. Functions written for
    a single float (e.g. with an if/else on the distance) fail on arrays
    with a TypeError or ValueError; those are evaluated element by element.

    Raises:
        ValidationError: If the function is not callable, returns an
            incompatible shape, or yields values outside [0, 1]
    """
    if not callable(detection_range_fn):
        raise ValidationError("detection_range_fn must be callable")

    try:
        p = np.asarray(detection_range_fn(distances), dtype=np.float64)
    except (TypeError, ValueError):
        p = np.array([detection_range_fn(float(d)) for d in distances], dtype=np.float64)
    try:
        p = np.broadcast_to(p, distances.shape)
    except ValueError as e:
        raise ValidationError(
            f"detection_range_fn returned shape {p.shape} for {distances.shape} distances"
        ) from e

    bad = ~np.isfinite(p) | (p < 0.0) | (p > 1.0)
    if np.any(bad):
        first = int(np.flatnonzero(bad)[0])
        raise ValidationError(
            f"detection_range_fn returned {p[first]!r} at distance {distances[first]:.3f}; "
            "probabilities must be in [0, 1]"
        )
    return p
