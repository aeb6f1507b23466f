"""
Simulation constants.

Fixed values shared by the movement, transmission and detection modules.
"""

from __future__ import annotations

import math
from typing import Tuple


class SimulationConstants:
    """Fixed simulation constants."""

    # Headings are compass degrees: 0 = north (+y), 90 = east (+x)
    FULL_CIRCLE: float = 360.0

    # Rejection sampling: attempts per step before giving up
    DEFAULT_MAX_RETRIES: int = 50

    # Default turning angle N(mean, sd) in degrees
    DEFAULT_TURN_MEAN: float = 0.0
    DEFAULT_TURN_SD: float = 10.0

    # Default logistic detection range curve
    DEFAULT_RANGE_INTERCEPT: float = 0.5
    DEFAULT_RANGE_SLOPE: float = -1.0 / 120.0

    # Segment test sampling, as a fraction of a raster cell
    RASTER_SEGMENT_SAMPLING: float = 0.5

    # Attempts when drawing a random point inside a polygon
    RANDOM_POINT_ATTEMPTS: int = 10000

    # Extra steps added to a line-crossing walk beyond the straight-line need
    CROSSING_STEP_MARGIN: float = 1.5

    @staticmethod
    def heading_to_unit(heading_deg: float) -> Tuple[float, float]:
        """Convert a compass heading (degrees) to a (dx, dy) unit vector."""
        rad = math.radians(heading_deg)
        # Rounding makes multiples of 90 degrees exact axis directions
        return (round(math.sin(rad), 15), round(math.cos(rad), 15))
