"""
Raster water mask boundary.

Consumes an already-built boolean water grid (True = water) and answers
containment, segment and least-cost path queries on it. Building the grid
from GIS sources is outside this package.

Grid orientation follows the landscape convention: row 0 is the SOUTH
edge, so array[i, j] covers
    x in [x0 + j*cell_size, x0 + (j+1)*cell_size)
    y in [y0 + i*cell_size, y0 + (i+1)*cell_size)
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np
from scipy import sparse
from scipy.sparse.csgraph import dijkstra

from telemsim.core.entities import Path, Point
from telemsim.core.random_source import SeedLike, as_generator
from telemsim.exceptions import BoundaryViolationError, ValidationError
from telemsim.landscape.boundary import BoundaryOracle, PointLike, as_xy
from telemsim.parameters.constants import SimulationConstants

logger = logging.getLogger("telemsim.landscape.raster")

# Half of the 8-neighbourhood; the graph is undirected
_NEIGHBOUR_OFFSETS = ((0, 1), (1, 0), (1, 1), (1, -1))


class RasterBoundary(BoundaryOracle):
    """
    Water body given as a boolean cell grid.

    Least-cost paths move between 8-connected water cells; a move is
    allowed only when both cells are water, and costs the distance between
    cell centres.
    """

    def __init__(
        self,
        water: np.ndarray,
        origin: Tuple[float, float] = (0.0, 0.0),
        cell_size: float = 1.0,
    ):
        """
        Initialize raster boundary.

        Args:
            water: 2-D boolean array, True where movement is permitted
            origin: (x, y) of the lower-left (south-west) grid corner
            cell_size: Cell edge length in coordinate units
        """
        grid = np.asarray(water, dtype=bool)
        if grid.ndim != 2 or grid.size == 0:
            raise ValidationError("Water grid must be a non-empty 2-D array")
        if cell_size <= 0:
            raise ValidationError("cell_size must be positive")

        self.water = grid
        self.x0, self.y0 = float(origin[0]), float(origin[1])
        self.cell_size = float(cell_size)
        self._graph: Optional[sparse.csr_matrix] = None

        if not grid.any():
            logger.warning("Water grid %s contains no water cells", grid.shape)

    @classmethod
    def from_depth(
        cls,
        depth: np.ndarray,
        origin: Tuple[float, float] = (0.0, 0.0),
        cell_size: float = 1.0,
        min_depth: float = 0.0,
    ) -> RasterBoundary:
        """Build from a bathymetry grid; cells deeper than min_depth are water."""
        depth = np.asarray(depth, dtype=np.float64)
        return cls(np.nan_to_num(depth, nan=-np.inf) > min_depth, origin=origin, cell_size=cell_size)

    @property
    def height(self) -> int:
        return self.water.shape[0]

    @property
    def width(self) -> int:
        return self.water.shape[1]

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return (
            self.x0,
            self.y0,
            self.x0 + self.width * self.cell_size,
            self.y0 + self.height * self.cell_size,
        )

    @property
    def area(self) -> float:
        return float(np.count_nonzero(self.water)) * self.cell_size ** 2

    def _indices(self, xy: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Row/column indices for each point and a mask of points on the grid."""
        j = np.floor((xy[:, 0] - self.x0) / self.cell_size).astype(np.int64)
        i = np.floor((xy[:, 1] - self.y0) / self.cell_size).astype(np.int64)
        on_grid = (i >= 0) & (i < self.height) & (j >= 0) & (j < self.width)
        return i, j, on_grid

    def contains_many(self, xy: np.ndarray) -> np.ndarray:
        pts = np.asarray(xy, dtype=np.float64).reshape(-1, 2)
        i, j, on_grid = self._indices(pts)
        result = np.zeros(len(pts), dtype=bool)
        result[on_grid] = self.water[i[on_grid], j[on_grid]]
        return result

    def segment_inside(self, a: PointLike, b: PointLike) -> bool:
        ax, ay = as_xy(a)
        bx, by = as_xy(b)
        length = float(np.hypot(bx - ax, by - ay))
        spacing = SimulationConstants.RASTER_SEGMENT_SAMPLING * self.cell_size
        n = max(2, int(np.ceil(length / spacing)) + 1)
        t = np.linspace(0.0, 1.0, n)
        samples = np.column_stack((ax + t * (bx - ax), ay + t * (by - ay)))
        return bool(np.all(self.contains_many(samples)))

    def random_point(self, rng: SeedLike = None) -> Point:
        """Draw a point uniformly from the water cells."""
        cells = np.flatnonzero(self.water)
        if len(cells) == 0:
            raise BoundaryViolationError("Cannot draw a point from a grid without water cells")
        gen = as_generator(rng)
        i, j = np.unravel_index(cells[gen.integers(len(cells))], self.water.shape)
        x = self.x0 + (j + gen.random()) * self.cell_size
        y = self.y0 + (i + gen.random()) * self.cell_size
        return Point(float(x), float(y))

    def cell_centre(self, i: int, j: int) -> Point:
        """Coordinates of the centre of cell (i, j)."""
        return Point(
            self.x0 + (j + 0.5) * self.cell_size,
            self.y0 + (i + 0.5) * self.cell_size,
        )

    def _transition_graph(self) -> sparse.csr_matrix:
        """Sparse adjacency of water cells (built once, then cached)."""
        if self._graph is not None:
            return self._graph

        nr, nc = self.water.shape
        ids = np.arange(nr * nc).reshape(nr, nc)
        rows, cols, weights = [], [], []

        for di, dj in _NEIGHBOUR_OFFSETS:
            i0, i1 = max(0, -di), nr - max(0, di)
            j0, j1 = max(0, -dj), nc - max(0, dj)
            if i1 <= i0 or j1 <= j0:
                continue
            src = (slice(i0, i1), slice(j0, j1))
            dst = (slice(i0 + di, i1 + di), slice(j0 + dj, j1 + dj))
            both = self.water[src] & self.water[dst]
            rows.append(ids[src][both])
            cols.append(ids[dst][both])
            weights.append(np.full(np.count_nonzero(both), np.hypot(di, dj) * self.cell_size))

        rows = np.concatenate(rows) if rows else np.empty(0, dtype=np.int64)
        cols = np.concatenate(cols) if cols else np.empty(0, dtype=np.int64)
        weights = np.concatenate(weights) if weights else np.empty(0)

        self._graph = sparse.coo_matrix((weights, (rows, cols)), shape=(nr * nc, nr * nc)).tocsr()
        logger.debug("Built transition graph: %d cells, %d edges", nr * nc, len(weights))
        return self._graph

    def path_between(self, a: PointLike, b: PointLike) -> Path:
        """
        Least-cost in-water path from a to b.

        The returned path starts at a, passes through the centres of the
        intermediate cells and ends at b.

        Raises:
            BoundaryViolationError: If either endpoint is on land or no
                water route connects them
        """
        ax, ay = as_xy(a)
        bx, by = as_xy(b)
        pts = np.array([[ax, ay], [bx, by]], dtype=np.float64)
        inside = self.contains_many(pts)
        for k in range(2):
            if not inside[k]:
                raise BoundaryViolationError(
                    "Least-cost path endpoint is not in water",
                    position=(pts[k, 0], pts[k, 1]),
                )

        i, j, _ = self._indices(pts)
        src = int(i[0] * self.width + j[0])
        dst = int(i[1] * self.width + j[1])
        if src == dst:
            return Path.from_xy(pts)

        dist, pred = dijkstra(
            self._transition_graph(), directed=False, indices=src, return_predecessors=True
        )
        if not np.isfinite(dist[dst]):
            raise BoundaryViolationError(
                "No water route between endpoints", position=(bx, by)
            )

        cells = []
        node = pred[dst]
        while node != src and node >= 0:
            cells.append(node)
            node = pred[node]
        cells.reverse()

        route = [(ax, ay)]
        for node in cells:
            centre = self.cell_centre(*divmod(int(node), self.width))
            route.append((centre.x, centre.y))
        route.append((bx, by))
        return Path.from_xy(route)
