"""
Cooperative cancellation for long-running sweeps.

Sweeps check the token between trials and stop early, returning the
outcomes gathered so far with a CANCELLED status.
"""

from __future__ import annotations

import threading
from enum import Enum


class RunStatus(Enum):
    """Completion status of a simulation run or sweep."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CancellationToken:
    """Thread-safe cancellation flag shared between caller and worker loop."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
