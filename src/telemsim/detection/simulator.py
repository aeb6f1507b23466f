"""
Stochastic detection of transmissions on a receiver network.

For each receiver the distance to every transmission is mapped through
the detection range function, and one independent Bernoulli trial per
(transmission, receiver) pair decides detection. Receivers are processed
as independent tasks (fan-out), each with its own generator spawned from
the master seed; partial results are concatenated in receiver order and
stable-sorted by elapsed time (fan-in). The output is therefore identical
for sequential and threaded execution.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from telemsim.core.entities import (
    DETECTION_COLUMNS,
    Receiver,
    TransmissionEvent,
    TransmissionSchedule,
)
from telemsim.core.random_source import RandomSource, SeedLike, spawn_sources
from telemsim.detection.range_functions import DetectionRangeFunction, evaluate_range_function
from telemsim.exceptions import EmptyInputError, ValidationError

logger = logging.getLogger("telemsim.detection.simulator")

TransmissionsLike = Union[TransmissionSchedule, pd.DataFrame, Sequence[TransmissionEvent]]
ReceiversLike = Union[pd.DataFrame, np.ndarray, Sequence[Receiver]]


@dataclass
class _Columns:
    """Column arrays of transmissions or receivers."""
    ids: np.ndarray
    x: np.ndarray
    y: np.ndarray
    t: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self.ids)


def _require_columns(frame: pd.DataFrame, required: Tuple[str, ...], name: str) -> None:
    missing = [c for c in required if c not in frame.columns]
    if missing:
        raise ValidationError(
            f"'{name}' must contain the following columns: {', '.join(missing)}"
        )


def _frame_column(frame: pd.DataFrame, column: str, name: str) -> np.ndarray:
    try:
        return frame[column].to_numpy(dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"'{name}' column '{column}' must be numeric") from e


def _id_column(frame: pd.DataFrame, column: str, name: str) -> np.ndarray:
    """Integer ids from a frame column; floats must be whole numbers."""
    values = _frame_column(frame, column, name)
    if not np.all(np.isfinite(values)) or np.any(values != np.round(values)):
        raise ValidationError(f"'{name}' column '{column}' must hold integer ids")
    return values.astype(np.int64)


def _check_finite(cols: _Columns, name: str) -> _Columns:
    arrays = [cols.x, cols.y] + ([cols.t] if cols.t is not None else [])
    if not all(np.all(np.isfinite(a)) for a in arrays):
        raise ValidationError(f"'{name}' contains missing or non-finite values")
    return cols


def _transmission_columns(transmissions: TransmissionsLike) -> _Columns:
    """Normalize the supported transmission inputs to column arrays."""
    if isinstance(transmissions, TransmissionSchedule):
        cols = _Columns(
            ids=np.asarray(transmissions.transmission_id, dtype=np.int64),
            x=np.asarray(transmissions.x, dtype=np.float64),
            y=np.asarray(transmissions.y, dtype=np.float64),
            t=np.asarray(transmissions.elapsed_time, dtype=np.float64),
        )
    elif isinstance(transmissions, pd.DataFrame):
        _require_columns(transmissions, ("x", "y", "elapsed_time"), "transmissions")
        n = len(transmissions)
        ids = (
            _id_column(transmissions, "transmission_id", "transmissions")
            if "transmission_id" in transmissions.columns
            else np.arange(1, n + 1, dtype=np.int64)
        )
        cols = _Columns(
            ids=ids,
            x=_frame_column(transmissions, "x", "transmissions"),
            y=_frame_column(transmissions, "y", "transmissions"),
            t=_frame_column(transmissions, "elapsed_time", "transmissions"),
        )
    elif transmissions is None:
        raise EmptyInputError("No transmissions to simulate")
    else:
        events = list(transmissions)
        if events and not all(isinstance(e, TransmissionEvent) for e in events):
            raise ValidationError("transmissions must be TransmissionEvent objects")
        cols = _Columns(
            ids=np.array([e.transmission_id for e in events], dtype=np.int64),
            x=np.array([e.position.x for e in events], dtype=np.float64),
            y=np.array([e.position.y for e in events], dtype=np.float64),
            t=np.array([e.elapsed_time for e in events], dtype=np.float64),
        )

    if len(cols) == 0:
        raise EmptyInputError("No transmissions to simulate")
    return _check_finite(cols, "transmissions")


def _receiver_columns(receivers: ReceiversLike) -> _Columns:
    """Normalize the supported receiver inputs to column arrays."""
    if isinstance(receivers, pd.DataFrame):
        _require_columns(receivers, ("x", "y"), "receivers")
        n = len(receivers)
        ids = (
            _id_column(receivers, "receiver_id", "receivers")
            if "receiver_id" in receivers.columns
            else np.arange(1, n + 1, dtype=np.int64)
        )
        cols = _Columns(
            ids=ids,
            x=_frame_column(receivers, "x", "receivers"),
            y=_frame_column(receivers, "y", "receivers"),
        )
    elif isinstance(receivers, np.ndarray):
        arr = receivers.astype(np.float64) if receivers.size else np.empty((0, 2))
        if arr.ndim != 2 or arr.shape[1] != 2:
            raise ValidationError(f"Receiver coordinates must be an (n, 2) array, got shape {arr.shape}")
        cols = _Columns(ids=np.arange(1, len(arr) + 1, dtype=np.int64), x=arr[:, 0], y=arr[:, 1])
    elif receivers is None:
        raise EmptyInputError("No receivers to simulate")
    else:
        recs = list(receivers)
        if recs and not all(isinstance(r, Receiver) for r in recs):
            raise ValidationError("receivers must be Receiver objects")
        cols = _Columns(
            ids=np.array([r.receiver_id for r in recs], dtype=np.int64),
            x=np.array([r.x for r in recs], dtype=np.float64),
            y=np.array([r.y for r in recs], dtype=np.float64),
        )

    if len(cols) == 0:
        raise EmptyInputError("No receivers to simulate")
    if len(np.unique(cols.ids)) != len(cols.ids):
        raise ValidationError("receiver_id values must be unique")
    return _check_finite(cols, "receivers")


def _empty_detections() -> pd.DataFrame:
    return pd.DataFrame({
        "transmission_id": pd.Series(dtype=np.int64),
        "receiver_id": pd.Series(dtype=np.int64),
        "receiver_x": pd.Series(dtype=np.float64),
        "receiver_y": pd.Series(dtype=np.float64),
        "transmission_x": pd.Series(dtype=np.float64),
        "transmission_y": pd.Series(dtype=np.float64),
        "elapsed_time": pd.Series(dtype=np.float64),
    })


def _detect_on_receiver(
    k: int,
    trns: _Columns,
    recv: _Columns,
    detection_range_fn: DetectionRangeFunction,
    source: RandomSource,
) -> pd.DataFrame:
    """Bernoulli trials of every transmission on receiver k."""
    rx = recv.x[k]
    ry = recv.y[k]
    dist = np.hypot(trns.x - rx, trns.y - ry)
    p = evaluate_range_function(detection_range_fn, dist)

    gen = source.generator()
    success = gen.random(len(p)) < p
    n = int(np.count_nonzero(success))
    if n == 0:
        return _empty_detections()

    return pd.DataFrame({
        "transmission_id": trns.ids[success],
        "receiver_id": np.full(n, recv.ids[k], dtype=np.int64),
        "receiver_x": np.full(n, rx),
        "receiver_y": np.full(n, ry),
        "transmission_x": trns.x[success],
        "transmission_y": trns.y[success],
        "elapsed_time": trns.t[success],
    })


def simulate_detections(
    transmissions: TransmissionsLike,
    receivers: ReceiversLike,
    detection_range_fn: DetectionRangeFunction,
    *,
    seed: SeedLike = None,
    max_workers: Optional[int] = None,
    progress: bool = False,
) -> pd.DataFrame:
    """
    Simulate detection of transmitter signals in a receiver network.

    Args:
        transmissions: TransmissionSchedule, sequence of TransmissionEvent, or
            DataFrame with x, y, elapsed_time (transmission_id optional,
            1-based row order otherwise)
        receivers: Sequence of Receiver, DataFrame with x, y (receiver_id
            optional, 1-based order otherwise), or (n, 2) array
        detection_range_fn: Maps distances to detection probabilities
        seed: Master seed; each receiver gets a spawned child generator
        max_workers: Threads for the per-receiver fan-out (None/1 = serial)
        progress: Show a progress bar over receivers

    Returns:
        DataFrame with columns transmission_id, receiver_id, receiver_x,
        receiver_y, transmission_x, transmission_y, elapsed_time, sorted by
        elapsed_time (stable: ties keep receiver order, then input order)

    Raises:
        EmptyInputError: If there are no transmissions or no receivers
        ValidationError: For malformed inputs or probabilities outside [0, 1]
    """
    trns = _transmission_columns(transmissions)
    recv = _receiver_columns(receivers)
    if not callable(detection_range_fn):
        raise ValidationError("detection_range_fn must be callable")

    n_recv = len(recv)
    sources = spawn_sources(seed, n_recv)
    partials: List[Optional[pd.DataFrame]] = [None] * n_recv

    with tqdm(total=n_recv, desc="Detecting", unit="receiver", disable=not progress) as bar:
        if max_workers is not None and max_workers > 1 and n_recv > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = {
                    executor.submit(_detect_on_receiver, k, trns, recv, detection_range_fn, sources[k]): k
                    for k in range(n_recv)
                }
                for future in as_completed(futures):
                    partials[futures[future]] = future.result()
                    bar.update(1)
        else:
            for k in range(n_recv):
                partials[k] = _detect_on_receiver(k, trns, recv, detection_range_fn, sources[k])
                bar.update(1)

    non_empty = [p for p in partials if len(p)]
    if not non_empty:
        result = _empty_detections()
    else:
        result = pd.concat(non_empty, ignore_index=True)
        result = result.sort_values("elapsed_time", kind="stable").reset_index(drop=True)

    logger.debug(
        "Simulated %d detections from %d transmissions on %d receivers",
        len(result), len(trns), n_recv,
    )
    return result[DETECTION_COLUMNS]


class DetectionSimulator:
    """Detection range function and execution settings for repeated runs."""

    def __init__(
        self,
        detection_range_fn: DetectionRangeFunction,
        max_workers: Optional[int] = None,
        progress: bool = False,
    ):
        if not callable(detection_range_fn):
            raise ValidationError("detection_range_fn must be callable")
        self.detection_range_fn = detection_range_fn
        self.max_workers = max_workers
        self.progress = progress

    def simulate(
        self,
        transmissions: TransmissionsLike,
        receivers: ReceiversLike,
        seed: SeedLike = None,
    ) -> pd.DataFrame:
        """Run one detection simulation; see simulate_detections."""
        return simulate_detections(
            transmissions,
            receivers,
            self.detection_range_fn,
            seed=seed,
            max_workers=self.max_workers,
            progress=self.progress,
        )
