"""Boundary oracles for constraining movement to water."""

from telemsim.landscape.boundary import (
    BoundaryOracle,
    PolygonBoundary,
    rectangle_boundary,
)
from telemsim.landscape.raster import RasterBoundary

__all__ = [
    "BoundaryOracle",
    "PolygonBoundary",
    "RasterBoundary",
    "rectangle_boundary",
]
