"""
Receiver line crossing simulation.

Estimates the probability that a tagged animal crossing a line (or grid)
of receivers is detected at least once. Each trial:

1. picks a start point on the south edge, max_distance below the
   receivers, uniformly across the receiver extent widened by outer_limits
2. walks north with a correlated random walk until it passes max_distance
   beyond the receivers (or runs out of steps)
3. schedules transmissions along the walk
4. simulates detections on every receiver

Trials are independent; each gets its own seed spawned from the master
seed, so sequential and parallel runs give the same outcomes.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from telemsim.core.cancellation import CancellationToken, RunStatus
from telemsim.core.entities import Path, Point, Receiver
from telemsim.core.random_source import RandomSource, SeedLike, as_source
from telemsim.detection.range_functions import DetectionRangeFunction
from telemsim.detection.simulator import simulate_detections
from telemsim.exceptions import ValidationError
from telemsim.landscape.boundary import BoundaryOracle, rectangle_boundary
from telemsim.movement.base import TurnAngleLike
from telemsim.movement.crw import PathGenerator
from telemsim.parameters.constants import SimulationConstants
from telemsim.parameters.simulation_params import SimulationParameters
from telemsim.transmission.scheduler import TransmissionScheduler

logger = logging.getLogger("telemsim.analysis.receiver_line")

ProgressCallback = Callable[[int, int, str], None]


# === Receiver arrangements ===

def receiver_line(
    spacing: float,
    count: int,
    origin: Tuple[float, float] = (0.0, 0.0),
    angle: float = 90.0,
    first_id: int = 1,
) -> List[Receiver]:
    """
    Receivers evenly spaced along a straight line.

    Args:
        spacing: Distance between adjacent receivers
        count: Number of receivers
        origin: Position of the first receiver
        angle: Compass direction of the line (90 = along +x)
        first_id: receiver_id of the first receiver
    """
    if spacing <= 0:
        raise ValidationError("spacing must be positive")
    if count < 1:
        raise ValidationError("count must be at least 1")
    ux, uy = SimulationConstants.heading_to_unit(angle)
    return [
        Receiver(
            receiver_id=first_id + i,
            position=Point(origin[0] + i * spacing * ux, origin[1] + i * spacing * uy),
        )
        for i in range(int(count))
    ]


def receiver_grid(
    spacing: float,
    nx: int,
    ny: int,
    origin: Tuple[float, float] = (0.0, 0.0),
    first_id: int = 1,
) -> List[Receiver]:
    """Regular grid of receivers, numbered row by row from the south-west corner."""
    if spacing <= 0:
        raise ValidationError("spacing must be positive")
    if nx < 1 or ny < 1:
        raise ValidationError("grid needs at least one receiver in each direction")
    receivers = []
    for row in range(int(ny)):
        for col in range(int(nx)):
            receivers.append(Receiver(
                receiver_id=first_id + row * int(nx) + col,
                position=Point(origin[0] + col * spacing, origin[1] + row * spacing),
            ))
    return receivers


# === Crossing geometry ===

@dataclass(frozen=True)
class CrossingGeometry:
    """Start edge, finish line and walk length for line-crossing trials."""
    x_low: float         # start x range
    x_high: float
    y_start: float       # south start edge
    y_end: float         # finish line north of the receivers
    num_steps: int
    region_bounds: Tuple[float, float, float, float]

    @classmethod
    def from_receivers(
        cls, receivers: Sequence[Receiver], params: SimulationParameters
    ) -> CrossingGeometry:
        xs = np.array([r.x for r in receivers])
        ys = np.array([r.y for r in receivers])
        left, right = params.outer_limits
        x_low = float(xs.min()) - left
        x_high = float(xs.max()) + right
        y_start = float(ys.min()) - params.max_distance
        y_end = float(ys.max()) + params.max_distance

        reach = (y_end - y_start) * SimulationConstants.CROSSING_STEP_MARGIN
        num_steps = max(1, int(math.ceil(reach / params.step_length)))
        # Open water no walk of num_steps can leave
        walk = (num_steps + 1) * params.step_length
        region_bounds = (x_low - walk, y_start - walk, x_high + walk, y_start + walk)
        return cls(x_low, x_high, y_start, y_end, num_steps, region_bounds)


def crossing_region(geometries: Sequence[CrossingGeometry]) -> BoundaryOracle:
    """Rectangle of open water enclosing every given crossing geometry."""
    bounds = np.array([g.region_bounds for g in geometries])
    return rectangle_boundary(
        float(bounds[:, 0].min()),
        float(bounds[:, 1].min()),
        float(bounds[:, 2].max()),
        float(bounds[:, 3].max()),
    )


def truncate_at_line(path: Path, y_end: float) -> Tuple[Path, bool]:
    """
    Cut a path where it first reaches y = y_end.

    Returns:
        (path, crossed) where the cut path ends exactly on the line when
        crossed is True, and is returned unchanged otherwise
    """
    reached = np.flatnonzero(path.y >= y_end)
    if len(reached) == 0:
        return path, False
    i = int(reached[0])
    if i == 0:
        return Path(x=path.x[:1], y=path.y[:1]), True
    y0, y1 = path.y[i - 1], path.y[i]
    frac = (y_end - y0) / (y1 - y0)
    x_cut = path.x[i - 1] + frac * (path.x[i] - path.x[i - 1])
    return Path(
        x=np.append(path.x[:i], x_cut),
        y=np.append(path.y[:i], y_end),
    ), True


# === Trial execution ===

@dataclass
class TrialOutcome:
    """Result of one simulated crossing."""
    trial: int
    seed: int
    detected: bool
    crossed: bool
    path_length: float
    n_transmissions: int
    n_detections: int
    detections_per_receiver: Dict[int, int]
    first_detection: float
    last_detection: float


@dataclass
class _TrialSetup:
    """Everything a worker needs to run trials (picklable)."""
    path_generator: PathGenerator
    scheduler: TransmissionScheduler
    receivers: List[Receiver]
    detection_range_fn: DetectionRangeFunction
    geometry: CrossingGeometry
    min_detections: int


def _run_trial(trial: int, source: RandomSource, setup: _TrialSetup) -> TrialOutcome:
    """Run a single crossing trial with its own generator."""
    gen = source.generator()
    geom = setup.geometry

    start = (float(gen.uniform(geom.x_low, geom.x_high)), geom.y_start)
    path = setup.path_generator.generate(
        geom.num_steps, start=start, initial_heading=0.0, rng=gen
    )
    path, crossed = truncate_at_line(path, geom.y_end)

    schedule = setup.scheduler.schedule(path, rng=gen)
    detections = simulate_detections(
        schedule, setup.receivers, setup.detection_range_fn, seed=gen
    )

    counts = {r.receiver_id: 0 for r in setup.receivers}
    if len(detections):
        for rid, n in detections["receiver_id"].value_counts().items():
            counts[int(rid)] = int(n)
        first = float(detections["elapsed_time"].iloc[0])
        last = float(detections["elapsed_time"].iloc[-1])
    else:
        first = last = math.nan

    return TrialOutcome(
        trial=trial,
        seed=source.child_seed(),
        detected=len(detections) >= setup.min_detections,
        crossed=crossed,
        path_length=path.total_length,
        n_transmissions=len(schedule),
        n_detections=len(detections),
        detections_per_receiver=counts,
        first_detection=first,
        last_detection=last,
    )


@dataclass
class LineSimulationResult:
    """Outcomes of a batch of crossing trials."""
    outcomes: List[TrialOutcome]
    n_requested: int
    status: RunStatus = RunStatus.COMPLETED
    parameters: Dict[str, object] = field(default_factory=dict)

    @property
    def n_completed(self) -> int:
        return len(self.outcomes)

    @property
    def cancelled(self) -> bool:
        return self.status is RunStatus.CANCELLED

    @property
    def detection_efficiency(self) -> float:
        """Fraction of completed trials in which the animal was detected."""
        if not self.outcomes:
            return math.nan
        return sum(o.detected for o in self.outcomes) / len(self.outcomes)

    def to_frame(self) -> pd.DataFrame:
        """One row per trial; per-receiver counts in columns receiver_<id>."""
        rows = []
        for o in self.outcomes:
            row = {
                "trial": o.trial,
                "seed": o.seed,
                "detected": o.detected,
                "crossed": o.crossed,
                "path_length": o.path_length,
                "n_transmissions": o.n_transmissions,
                "n_detections": o.n_detections,
                "first_detection": o.first_detection,
                "last_detection": o.last_detection,
            }
            for rid, n in o.detections_per_receiver.items():
                row[f"receiver_{rid}"] = n
            rows.append(row)
        return pd.DataFrame(rows)

    def summary(self) -> Dict[str, object]:
        """Aggregate statistics over the completed trials."""
        n_det = [o.n_detections for o in self.outcomes]
        return {
            "status": self.status.value,
            "n_requested": self.n_requested,
            "n_completed": self.n_completed,
            "detection_efficiency": self.detection_efficiency,
            "mean_detections": float(np.mean(n_det)) if n_det else math.nan,
            "mean_transmissions": (
                float(np.mean([o.n_transmissions for o in self.outcomes])) if n_det else math.nan
            ),
            "crossed_fraction": (
                sum(o.crossed for o in self.outcomes) / self.n_completed if n_det else math.nan
            ),
        }


class ReceiverLineSimulator:
    """
    Repeated crossing trials over a fixed receiver arrangement.

    The boundary is built (or taken from the caller) once and reused for
    every trial.

    Example usage:
        sim = ReceiverLineSimulator(
            receivers=receiver_line(spacing=1000, count=5),
            detection_range_fn=LogisticDetectionRange(2.5, -1/200),
            params=SimulationParameters(velocity=0.5),
        )
        result = sim.run(n_trials=500, seed=1)
        print(result.detection_efficiency)
    """

    def __init__(
        self,
        receivers: Sequence[Receiver],
        detection_range_fn: DetectionRangeFunction,
        params: Optional[SimulationParameters] = None,
        boundary: Optional[BoundaryOracle] = None,
        turn_angle_dist: TurnAngleLike = None,
    ):
        """
        Initialize the simulator.

        Args:
            receivers: Receiver arrangement (e.g. from receiver_line)
            detection_range_fn: Maps distance to detection probability
            params: Movement, transmitter and line settings
            boundary: Permitted region; defaults to open water around the line
            turn_angle_dist: Overrides N(turn_angle_mean, turn_angle_sd)
        """
        self.receivers = list(receivers)
        if not self.receivers:
            raise ValidationError("At least one receiver is required")
        if not callable(detection_range_fn):
            raise ValidationError("detection_range_fn must be callable")

        self.params = params if params is not None else SimulationParameters()
        self.detection_range_fn = detection_range_fn
        self.geometry = CrossingGeometry.from_receivers(self.receivers, self.params)
        self.boundary = boundary if boundary is not None else crossing_region([self.geometry])

        if turn_angle_dist is None:
            self.path_generator = PathGenerator.from_parameters(self.boundary, self.params)
        else:
            self.path_generator = PathGenerator(
                self.boundary,
                self.params.step_length,
                turn_angle_dist=turn_angle_dist,
                max_retries=self.params.max_retries,
            )
        self.scheduler = TransmissionScheduler.from_parameters(self.params)

    def _setup(self) -> _TrialSetup:
        return _TrialSetup(
            path_generator=self.path_generator,
            scheduler=self.scheduler,
            receivers=self.receivers,
            detection_range_fn=self.detection_range_fn,
            geometry=self.geometry,
            min_detections=self.params.min_detections,
        )

    def run(
        self,
        n_trials: int,
        seed: SeedLike = None,
        cancel_token: Optional[CancellationToken] = None,
        progress_callback: Optional[ProgressCallback] = None,
        max_workers: Optional[int] = None,
        progress: bool = False,
    ) -> LineSimulationResult:
        """
        Run independent crossing trials.

        Args:
            n_trials: Number of trials
            seed: Master seed; trial i uses the i-th spawned child
            cancel_token: Checked between trials; cancelling returns the
                trials finished so far with status CANCELLED
            progress_callback: Called as f(done, total, description)
            max_workers: Worker processes (None/1 = run in this process)
            progress: Show a progress bar

        Returns:
            LineSimulationResult ordered by trial index
        """
        if int(n_trials) != n_trials or n_trials < 1:
            raise ValidationError(f"n_trials must be a positive integer, got {n_trials}")
        n_trials = int(n_trials)

        source = as_source(seed if seed is not None else self.params.random_seed)
        sources = source.spawn(n_trials)
        setup = self._setup()

        logger.info(
            "Running %d crossing trials: %d receivers, spacing %.1f, velocity %.3f",
            n_trials, len(self.receivers), self.params.receiver_spacing, self.params.velocity,
        )

        if max_workers is not None and max_workers > 1 and n_trials > 1:
            outcomes, status = self._run_parallel(
                sources, setup, max_workers, cancel_token, progress_callback, progress
            )
        else:
            outcomes, status = self._run_sequential(
                sources, setup, cancel_token, progress_callback, progress
            )

        if status is RunStatus.CANCELLED:
            logger.warning("Crossing simulation cancelled after %d of %d trials", len(outcomes), n_trials)

        return LineSimulationResult(
            outcomes=outcomes,
            n_requested=n_trials,
            status=status,
            parameters=self.params.to_dict(),
        )

    def _run_sequential(
        self,
        sources: List[RandomSource],
        setup: _TrialSetup,
        cancel_token: Optional[CancellationToken],
        progress_callback: Optional[ProgressCallback],
        progress: bool,
    ) -> Tuple[List[TrialOutcome], RunStatus]:
        """Run trials one after another in this process."""
        outcomes = []
        total = len(sources)
        status = RunStatus.COMPLETED

        for trial in tqdm(range(total), desc="Crossing trials", unit="trial", disable=not progress):
            if cancel_token is not None and cancel_token.cancelled:
                status = RunStatus.CANCELLED
                break
            outcomes.append(_run_trial(trial, sources[trial], setup))
            if progress_callback:
                progress_callback(trial + 1, total, f"trial {trial + 1}")

        return outcomes, status

    def _run_parallel(
        self,
        sources: List[RandomSource],
        setup: _TrialSetup,
        max_workers: int,
        cancel_token: Optional[CancellationToken],
        progress_callback: Optional[ProgressCallback],
        progress: bool,
    ) -> Tuple[List[TrialOutcome], RunStatus]:
        """Run trials in a process pool; results are re-ordered by trial."""
        # Note: ProcessPoolExecutor requires picklable boundary and range function
        outcomes = []
        total = len(sources)
        status = RunStatus.COMPLETED

        executor = ProcessPoolExecutor(max_workers=max_workers)
        try:
            pending = {
                executor.submit(_run_trial, trial, sources[trial], setup)
                for trial in range(total)
            }
            with tqdm(total=total, desc="Crossing trials", unit="trial", disable=not progress) as bar:
                while pending:
                    if cancel_token is not None and cancel_token.cancelled:
                        status = RunStatus.CANCELLED
                        break
                    done, pending = wait(pending, timeout=0.1, return_when=FIRST_COMPLETED)
                    for future in done:
                        outcomes.append(future.result())
                        bar.update(1)
                        if progress_callback:
                            progress_callback(len(outcomes), total, f"trial {len(outcomes)}")
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        outcomes.sort(key=lambda o: o.trial)
        return outcomes, status


def receiver_line_detection_efficiency(
    detection_range_fn: DetectionRangeFunction,
    n_trials: int = 1000,
    params: Optional[SimulationParameters] = None,
    seed: SeedLike = None,
    **overrides,
) -> float:
    """
    Proportion of simulated animals detected crossing a receiver line.

    Receivers are placed along the x axis at params.receiver_spacing.
    Keyword overrides are applied to params (e.g. receiver_spacing=500).
    """
    params = params if params is not None else SimulationParameters()
    if overrides:
        params = params.replace(**overrides)
    receivers = receiver_line(params.receiver_spacing, params.receiver_count)
    sim = ReceiverLineSimulator(receivers, detection_range_fn, params)
    return sim.run(n_trials, seed=seed).detection_efficiency
