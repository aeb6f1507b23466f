"""
Boundary oracles constraining movement to a water body.

The simulation core only ever talks to the BoundaryOracle interface:
a containment test, a segment test and an optional least-cost path
query. Any geometric representation (polygon, raster) can stand behind it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence, Tuple, Union

import numpy as np

from telemsim.core.entities import Point
from telemsim.core.random_source import SeedLike, as_generator
from telemsim.exceptions import BoundaryViolationError, ValidationError
from telemsim.parameters.constants import SimulationConstants

if TYPE_CHECKING:
    from telemsim.core.entities import Path

logger = logging.getLogger("telemsim.landscape.boundary")

PointLike = Union[Point, Tuple[float, float], Sequence[float], np.ndarray]


def as_xy(point: PointLike) -> Tuple[float, float]:
    """Return (x, y) floats for a Point, tuple or length-2 array."""
    if isinstance(point, Point):
        return (point.x, point.y)
    x, y = point
    return (float(x), float(y))


class BoundaryOracle(ABC):
    """
    Abstract permitted-region oracle.

    Implementations answer whether points and straight segments lie in
    water. path_between is optional and raises NotImplementedError unless
    overridden.
    """

    @abstractmethod
    def contains_many(self, xy: np.ndarray) -> np.ndarray:
        """
        Vectorized containment test.

        Args:
            xy: (n, 2) array of coordinates

        Returns:
            Boolean array of length n
        """
        pass

    @abstractmethod
    def segment_inside(self, a: PointLike, b: PointLike) -> bool:
        """Whether the straight segment a-b stays inside the region."""
        pass

    @abstractmethod
    def random_point(self, rng: SeedLike = None) -> Point:
        """Draw a point uniformly from the permitted region."""
        pass

    def contains(self, point: PointLike) -> bool:
        """Whether a single point lies inside the region."""
        x, y = as_xy(point)
        return bool(self.contains_many(np.array([[x, y]], dtype=np.float64))[0])

    def path_between(self, a: PointLike, b: PointLike) -> Path:
        """Least-cost in-water path from a to b."""
        raise NotImplementedError(f"{self.get_name()} does not provide least-cost paths")

    def get_name(self) -> str:
        """Return the name of this oracle."""
        return self.__class__.__name__


class PolygonBoundary(BoundaryOracle):
    """
    Water body described by a simple polygon.

    Containment uses the even-odd ray-casting rule, vectorized over both
    query points and polygon edges. Points lying on an edge count as inside,
    except for a zero-area polygon, which contains nothing.
    """

    def __init__(self, vertices: Sequence[Sequence[float]], tolerance: float = 1e-9):
        """
        Initialize polygon boundary.

        Args:
            vertices: (n, 2) polygon vertices; closing vertex optional
            tolerance: Distance within which a point counts as on an edge,
                relative to the polygon's bounding-box size
        """
        verts = np.asarray(vertices, dtype=np.float64)
        if verts.ndim != 2 or verts.shape[1] != 2:
            raise ValidationError(f"Polygon vertices must be an (n, 2) array, got shape {verts.shape}")
        if len(verts) > 1 and np.allclose(verts[0], verts[-1]):
            verts = verts[:-1]
        if len(verts) < 3:
            raise ValidationError("Polygon needs at least three distinct vertices")
        if not np.all(np.isfinite(verts)):
            raise ValidationError("Polygon vertices must be finite")

        self.vertices = verts
        # Edge arrays: (x1, y1) -> (x2, y2)
        self._x1 = verts[:, 0]
        self._y1 = verts[:, 1]
        self._x2 = np.roll(verts[:, 0], -1)
        self._y2 = np.roll(verts[:, 1], -1)

        xmin, ymin = verts.min(axis=0)
        xmax, ymax = verts.max(axis=0)
        self.bounds = (float(xmin), float(ymin), float(xmax), float(ymax))
        scale = max(xmax - xmin, ymax - ymin, 1.0)
        self._eps = tolerance * scale

        # Shoelace formula
        self.area = float(0.5 * abs(np.sum(self._x1 * self._y2 - self._x2 * self._y1)))
        if self.area == 0.0:
            logger.warning("Polygon with %d vertices has zero area", len(verts))

    def contains_many(self, xy: np.ndarray) -> np.ndarray:
        pts = np.asarray(xy, dtype=np.float64).reshape(-1, 2)
        if self.area == 0.0:
            # A degenerate polygon encloses no water, edges included
            return np.zeros(len(pts), dtype=bool)

        px = pts[:, 0:1]
        py = pts[:, 1:2]

        # Even-odd crossings of a ray towards +x
        straddles = (self._y1 > py) != (self._y2 > py)
        dy = self._y2 - self._y1
        safe_dy = np.where(dy == 0.0, 1.0, dy)
        x_cross = self._x1 + (py - self._y1) * (self._x2 - self._x1) / safe_dy
        crossings = np.count_nonzero(straddles & (px < x_cross), axis=1)
        inside = (crossings % 2) == 1

        return inside | self._on_edge(px, py)

    def _on_edge(self, px: np.ndarray, py: np.ndarray) -> np.ndarray:
        """Whether each point lies within tolerance of any polygon edge."""
        ex = self._x2 - self._x1
        ey = self._y2 - self._y1
        len2 = ex * ex + ey * ey
        safe_len2 = np.where(len2 == 0.0, 1.0, len2)
        t = np.clip(((px - self._x1) * ex + (py - self._y1) * ey) / safe_len2, 0.0, 1.0)
        dist = np.hypot(px - (self._x1 + t * ex), py - (self._y1 + t * ey))
        return np.any(dist <= self._eps, axis=1)

    def segment_inside(self, a: PointLike, b: PointLike) -> bool:
        ax, ay = as_xy(a)
        bx, by = as_xy(b)
        mx, my = 0.5 * (ax + bx), 0.5 * (ay + by)
        if not np.all(self.contains_many(np.array([[ax, ay], [bx, by], [mx, my]]))):
            return False
        return not self._properly_crosses_edge(ax, ay, bx, by)

    def _properly_crosses_edge(self, ax: float, ay: float, bx: float, by: float) -> bool:
        """Whether segment a-b strictly crosses any polygon edge."""
        def orient(px, py, qx, qy, rx, ry):
            return (qx - px) * (ry - py) - (qy - py) * (rx - px)

        o1 = orient(ax, ay, bx, by, self._x1, self._y1)
        o2 = orient(ax, ay, bx, by, self._x2, self._y2)
        o3 = orient(self._x1, self._y1, self._x2, self._y2, ax, ay)
        o4 = orient(self._x1, self._y1, self._x2, self._y2, bx, by)
        return bool(np.any((o1 * o2 < 0) & (o3 * o4 < 0)))

    def random_point(self, rng: SeedLike = None) -> Point:
        """Draw a point uniformly inside the polygon by rejection sampling."""
        if self.area == 0.0:
            raise BoundaryViolationError("Cannot draw a point from a zero-area polygon")
        gen = as_generator(rng)
        xmin, ymin, xmax, ymax = self.bounds
        batch = 64
        for _ in range(SimulationConstants.RANDOM_POINT_ATTEMPTS // batch):
            cand = np.column_stack((
                gen.uniform(xmin, xmax, batch),
                gen.uniform(ymin, ymax, batch),
            ))
            hits = np.flatnonzero(self.contains_many(cand))
            if len(hits):
                x, y = cand[hits[0]]
                return Point(float(x), float(y))
        raise BoundaryViolationError(
            f"No point inside polygon after {SimulationConstants.RANDOM_POINT_ATTEMPTS} draws"
        )


def rectangle_boundary(xmin: float, ymin: float, xmax: float, ymax: float) -> PolygonBoundary:
    """Axis-aligned rectangular water body."""
    if xmax <= xmin or ymax <= ymin:
        raise ValidationError("Rectangle must have xmax > xmin and ymax > ymin")
    return PolygonBoundary([(xmin, ymin), (xmin, ymax), (xmax, ymax), (xmax, ymin)])
