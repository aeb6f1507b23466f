"""
Exception types raised by the simulation engine.

Errors are raised where they are detected and propagate to the caller.
A cancelled sweep is not an error: it returns its partial results with
an explicit status instead.
"""

from __future__ import annotations

from typing import Optional, Tuple


class TelemsimError(Exception):
    """Base class for all telemsim errors."""


class ValidationError(TelemsimError, ValueError):
    """
    Invalid input or parameter.

    Raised for missing/malformed fields, out-of-range parameters (e.g. a
    non-positive step length or velocity) and detection range functions
    returning values outside [0, 1].
    """


class EmptyInputError(ValidationError):
    """Zero transmissions or zero receivers were passed to the detector."""


class BoundaryViolationError(TelemsimError):
    """
    A position could not be kept inside the permitted region.

    Raised when a walk starts outside the region, or when the retry budget
    for a single step is exhausted.

    Attributes:
        step_index: Index of the step being generated (0 for the origin)
        position: Last attempted (x, y) position, if any
    """

    def __init__(
        self,
        message: str,
        step_index: Optional[int] = None,
        position: Optional[Tuple[float, float]] = None,
    ):
        self.step_index = step_index
        self.position = position
        details = []
        if step_index is not None:
            details.append(f"step={step_index}")
        if position is not None:
            details.append(f"position=({position[0]:.3f}, {position[1]:.3f})")
        if details:
            message = f"{message} [{', '.join(details)}]"
        super().__init__(message)
