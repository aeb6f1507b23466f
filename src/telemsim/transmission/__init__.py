"""Transmission scheduling along paths."""

from telemsim.transmission.scheduler import (
    TransmissionScheduler,
    schedule_transmissions,
    as_path,
)

__all__ = ["TransmissionScheduler", "schedule_transmissions", "as_path"]
