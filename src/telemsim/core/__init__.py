"""Core data model, random sources and cancellation."""

from telemsim.core.entities import (
    DETECTION_COLUMNS,
    Point,
    PathPoint,
    Path,
    TransmissionEvent,
    TransmissionSchedule,
    Receiver,
    DetectionRecord,
    receivers_from_xy,
    detection_records,
)
from telemsim.core.random_source import RandomSource, as_generator, as_source, spawn_sources
from telemsim.core.cancellation import CancellationToken, RunStatus

__all__ = [
    "DETECTION_COLUMNS",
    "Point",
    "PathPoint",
    "Path",
    "TransmissionEvent",
    "TransmissionSchedule",
    "Receiver",
    "DetectionRecord",
    "receivers_from_xy",
    "detection_records",
    "RandomSource",
    "as_generator",
    "as_source",
    "spawn_sources",
    "CancellationToken",
    "RunStatus",
]
