"""
telemsim - Acoustic telemetry receiver network simulation

Simulates tagged animals swimming inside a water body, the coded
transmissions their tags emit, and the stochastic detection of those
transmissions on a network of fixed receivers. Used to estimate how
well a receiver design detects animals crossing it.
"""

__version__ = "0.1.0"

from telemsim.config import setup_logging
from telemsim.exceptions import (
    TelemsimError,
    ValidationError,
    EmptyInputError,
    BoundaryViolationError,
)
from telemsim.parameters.simulation_params import SimulationParameters
from telemsim.parameters.constants import SimulationConstants
from telemsim.core.entities import Point, Path, Receiver, TransmissionSchedule
from telemsim.core.cancellation import CancellationToken, RunStatus
from telemsim.landscape import BoundaryOracle, PolygonBoundary, RasterBoundary, rectangle_boundary
from telemsim.movement import PathGenerator, generate_path
from telemsim.transmission import TransmissionScheduler, schedule_transmissions
from telemsim.detection import (
    DetectionSimulator,
    LogisticDetectionRange,
    ThresholdDetectionRange,
    simulate_detections,
)
from telemsim.analysis import (
    CollisionEstimator,
    ReceiverLineSimulator,
    estimate_collision_probability,
    receiver_line,
    receiver_line_detection_efficiency,
    run_sweep,
)

__all__ = [
    "setup_logging",
    "TelemsimError",
    "ValidationError",
    "EmptyInputError",
    "BoundaryViolationError",
    "SimulationParameters",
    "SimulationConstants",
    "Point",
    "Path",
    "Receiver",
    "TransmissionSchedule",
    "CancellationToken",
    "RunStatus",
    "BoundaryOracle",
    "PolygonBoundary",
    "RasterBoundary",
    "rectangle_boundary",
    "PathGenerator",
    "generate_path",
    "TransmissionScheduler",
    "schedule_transmissions",
    "DetectionSimulator",
    "LogisticDetectionRange",
    "ThresholdDetectionRange",
    "simulate_detections",
    "CollisionEstimator",
    "ReceiverLineSimulator",
    "estimate_collision_probability",
    "receiver_line",
    "receiver_line_detection_efficiency",
    "run_sweep",
]
