"""Stochastic detection simulation and detection range curves."""

from telemsim.detection.range_functions import (
    DetectionRangeCurve,
    LogisticDetectionRange,
    ThresholdDetectionRange,
    ConstantDetectionRange,
    evaluate_range_function,
)
from telemsim.detection.simulator import DetectionSimulator, simulate_detections

__all__ = [
    "DetectionRangeCurve",
    "LogisticDetectionRange",
    "ThresholdDetectionRange",
    "ConstantDetectionRange",
    "evaluate_range_function",
    "DetectionSimulator",
    "simulate_detections",
]
