"""
Core data model for the simulation engine.

Positions, paths, transmission events, receivers and detection records.
Paths and transmission schedules are stored column-wise as numpy arrays
for vectorized computation; iterating over them yields the per-item
dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Sequence, Tuple

import numpy as np
import pandas as pd

from telemsim.exceptions import ValidationError

# Output schema of the detection simulator, in column order
DETECTION_COLUMNS = [
    "transmission_id",
    "receiver_id",
    "receiver_x",
    "receiver_y",
    "transmission_x",
    "transmission_y",
    "elapsed_time",
]


@dataclass(frozen=True)
class Point:
    """Planar position (x, y). Unit-agnostic."""
    x: float
    y: float

    def distance_to(self, other: Point) -> float:
        """Euclidean distance to another point."""
        return float(np.hypot(self.x - other.x, self.y - other.y))

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class PathPoint(Point):
    """A point on a path with its step index (0 = origin)."""
    step: int = 0


@dataclass(eq=False)
class Path:
    """
    Ordered sequence of positions forming a movement path.

    The first point is the origin. A path generated with num_steps steps
    has num_steps + 1 points.
    """
    x: np.ndarray
    y: np.ndarray

    def __post_init__(self):
        self.x = np.asarray(self.x, dtype=np.float64)
        self.y = np.asarray(self.y, dtype=np.float64)
        if self.x.shape != self.y.shape or self.x.ndim != 1:
            raise ValidationError("Path x and y must be 1-D arrays of equal length")

    @classmethod
    def from_xy(cls, xy) -> Path:
        """Create a path from an (n, 2) array-like of coordinates."""
        arr = np.asarray(xy, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] != 2:
            raise ValidationError(f"Expected an (n, 2) array of coordinates, got shape {arr.shape}")
        return cls(x=arr[:, 0].copy(), y=arr[:, 1].copy())

    @classmethod
    def from_points(cls, points: Iterable[Point]) -> Path:
        """Create a path from an iterable of points."""
        pts = list(points)
        return cls(
            x=np.array([p.x for p in pts], dtype=np.float64),
            y=np.array([p.y for p in pts], dtype=np.float64),
        )

    def __len__(self) -> int:
        return len(self.x)

    def __getitem__(self, index: int) -> PathPoint:
        step = range(len(self))[index]
        return PathPoint(x=float(self.x[step]), y=float(self.y[step]), step=step)

    def __iter__(self) -> Iterator[PathPoint]:
        for i in range(len(self)):
            yield PathPoint(x=float(self.x[i]), y=float(self.y[i]), step=i)

    @property
    def origin(self) -> PathPoint:
        return self[0]

    @property
    def xy(self) -> np.ndarray:
        """Coordinates as an (n, 2) array."""
        return np.column_stack((self.x, self.y))

    def segment_lengths(self) -> np.ndarray:
        """Length of each straight segment (n - 1 values)."""
        return np.hypot(np.diff(self.x), np.diff(self.y))

    def cumulative_distance(self) -> np.ndarray:
        """Distance along the path at each point (starts at 0)."""
        return np.concatenate(([0.0], np.cumsum(self.segment_lengths())))

    @property
    def total_length(self) -> float:
        return float(self.segment_lengths().sum()) if len(self) > 1 else 0.0

    def to_frame(self) -> pd.DataFrame:
        """Return the path as a DataFrame with columns step, x, y."""
        return pd.DataFrame({
            "step": np.arange(len(self), dtype=np.int64),
            "x": self.x,
            "y": self.y,
        })


@dataclass(frozen=True)
class TransmissionEvent:
    """A single signal emission."""
    transmission_id: int
    position: Point
    elapsed_time: float


@dataclass(eq=False)
class TransmissionSchedule:
    """
    Ordered transmission events produced from one path.

    Elapsed times are strictly increasing and the first event is at time 0.
    burst_duration is carried for collision analysis only.
    """
    transmission_id: np.ndarray
    x: np.ndarray
    y: np.ndarray
    elapsed_time: np.ndarray
    burst_duration: float = 0.0
    path_duration: float = 0.0

    def __len__(self) -> int:
        return len(self.elapsed_time)

    def __iter__(self) -> Iterator[TransmissionEvent]:
        for i in range(len(self)):
            yield TransmissionEvent(
                transmission_id=int(self.transmission_id[i]),
                position=Point(float(self.x[i]), float(self.y[i])),
                elapsed_time=float(self.elapsed_time[i]),
            )

    def to_frame(self) -> pd.DataFrame:
        """Return columns transmission_id, x, y, elapsed_time."""
        return pd.DataFrame({
            "transmission_id": self.transmission_id.astype(np.int64),
            "x": self.x,
            "y": self.y,
            "elapsed_time": self.elapsed_time,
        })


@dataclass(frozen=True)
class Receiver:
    """Fixed receiver station."""
    receiver_id: int
    position: Point

    @property
    def x(self) -> float:
        return self.position.x

    @property
    def y(self) -> float:
        return self.position.y


@dataclass(frozen=True)
class DetectionRecord:
    """One successful detection of a transmission on a receiver."""
    transmission_id: int
    receiver_id: int
    receiver_position: Point
    transmission_position: Point
    elapsed_time: float


def receivers_from_xy(xy: Sequence[Sequence[float]], first_id: int = 1) -> List[Receiver]:
    """Build receivers from coordinates, numbering them from first_id."""
    arr = np.asarray(xy, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValidationError(f"Expected an (n, 2) array of receiver coordinates, got shape {arr.shape}")
    return [
        Receiver(receiver_id=first_id + i, position=Point(float(px), float(py)))
        for i, (px, py) in enumerate(arr)
    ]


def detection_records(frame: pd.DataFrame) -> List[DetectionRecord]:
    """Convert a detection DataFrame into DetectionRecord objects."""
    missing = [c for c in DETECTION_COLUMNS if c not in frame.columns]
    if missing:
        raise ValidationError(f"Detection frame is missing columns: {', '.join(missing)}")
    return [
        DetectionRecord(
            transmission_id=int(row.transmission_id),
            receiver_id=int(row.receiver_id),
            receiver_position=Point(float(row.receiver_x), float(row.receiver_y)),
            transmission_position=Point(float(row.transmission_x), float(row.transmission_y)),
            elapsed_time=float(row.elapsed_time),
        )
        for row in frame.itertuples(index=False)
    ]
