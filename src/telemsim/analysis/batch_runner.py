"""
Parameter sweeps over receiver line crossing simulations.

Runs the crossing simulation for every combination of parameter
variations, for sensitivity analysis of detection efficiency to receiver
spacing, swimming speed, transmitter delay and similar settings.

The permitted region is built once for the whole sweep and shared by
every combination.
"""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from telemsim.analysis.receiver_line import (
    CrossingGeometry,
    LineSimulationResult,
    ReceiverLineSimulator,
    crossing_region,
    receiver_line,
)
from telemsim.core.cancellation import CancellationToken, RunStatus
from telemsim.core.entities import Receiver
from telemsim.core.random_source import SeedLike, as_source
from telemsim.detection.range_functions import DetectionRangeFunction
from telemsim.exceptions import ValidationError
from telemsim.landscape.boundary import BoundaryOracle
from telemsim.parameters.simulation_params import SimulationParameters

logger = logging.getLogger("telemsim.analysis.batch_runner")

ReceiverFactory = Callable[[SimulationParameters], Sequence[Receiver]]


def _line_for(params: SimulationParameters) -> List[Receiver]:
    return receiver_line(params.receiver_spacing, params.receiver_count)


@dataclass
class SweepConfiguration:
    """Configuration for a sweep of crossing simulations."""

    # Parameters shared by all combinations
    base_params: Dict[str, Any] = field(default_factory=dict)

    # Parameter variations: Dict[param_name, List[values]]
    variations: Dict[str, List[Any]] = field(default_factory=dict)

    # Crossing trials per combination
    n_trials: int = 100

    # Master seed; each combination gets a spawned child
    seed: SeedLike = None

    # Worker processes per combination (None/1 = sequential)
    max_workers: Optional[int] = None

    # Callback for progress updates: f(done, total, description)
    progress_callback: Optional[Callable[[int, int, str], None]] = None

    def get_all_combinations(self) -> List[Dict[str, Any]]:
        """Generate all parameter combinations."""
        if not self.variations:
            return [self.base_params.copy()]

        keys = list(self.variations.keys())
        values = list(self.variations.values())

        combinations = []
        for combo in itertools.product(*values):
            params = self.base_params.copy()
            for key, val in zip(keys, combo):
                params[key] = val
            combinations.append(params)

        return combinations

    @property
    def total_runs(self) -> int:
        """Total number of crossing trials."""
        return len(self.get_all_combinations()) * self.n_trials


def parameters_for(combo: Dict[str, Any]) -> SimulationParameters:
    """Build validated parameters from one combination dictionary."""
    combo = dict(combo)
    if "delay_range" in combo:
        combo["delay_min"], combo["delay_max"] = combo.pop("delay_range")
    return SimulationParameters.from_dict(combo)


@dataclass
class SweepRun:
    """One parameter combination and its crossing results."""
    run_id: int
    parameters: Dict[str, Any]
    result: LineSimulationResult
    execution_time_seconds: float


@dataclass
class SweepResult:
    """Results of a parameter sweep, in combination order."""
    runs: List[SweepRun]
    variations: Dict[str, List[Any]]
    status: RunStatus = RunStatus.COMPLETED

    def to_frame(self) -> pd.DataFrame:
        """
        One row per combination: the varied parameters followed by the
        crossing summary (detection_efficiency, n_completed, ...).
        """
        rows = []
        for run in self.runs:
            row = {"run_id": run.run_id}
            for key in self.variations:
                row[key] = run.parameters.get(key)
            row.update(run.result.summary())
            row["execution_time_seconds"] = run.execution_time_seconds
            rows.append(row)
        return pd.DataFrame(rows)

    def get_results_by_parameter(self, param_name: str) -> Dict[Any, List[SweepRun]]:
        """Group runs by a specific parameter value."""
        grouped: Dict[Any, List[SweepRun]] = {}
        for run in self.runs:
            grouped.setdefault(run.parameters.get(param_name), []).append(run)
        return grouped

    def calculate_sensitivity(self, param_name: str) -> Dict[str, Any]:
        """Detection efficiency statistics for each value of a parameter."""
        sensitivity = {"parameter": param_name, "values": {}}
        for val, runs in self.get_results_by_parameter(param_name).items():
            efficiencies = [r.result.detection_efficiency for r in runs]
            sensitivity["values"][str(val)] = {
                "mean": float(np.mean(efficiencies)),
                "std": float(np.std(efficiencies)),
                "n": len(efficiencies),
            }
        return sensitivity


class SweepRunner:
    """
    Run crossing simulations for every combination of parameter variations.

    Example usage:
        config = SweepConfiguration(
            base_params={"receiver_count": 5},
            variations={
                "receiver_spacing": [500, 1000, 2000],
                "velocity": [0.5, 1.0],
            },
            n_trials=200,
            seed=42,
        )
        runner = SweepRunner(config, LogisticDetectionRange(2.5, -1/200))
        summary = runner.run().to_frame()
    """

    def __init__(
        self,
        config: SweepConfiguration,
        detection_range_fn: DetectionRangeFunction,
        boundary: Optional[BoundaryOracle] = None,
        receiver_factory: Optional[ReceiverFactory] = None,
    ):
        """
        Initialize the sweep runner.

        Args:
            config: Sweep configuration specifying parameters and variations
            detection_range_fn: Maps distance to detection probability
            boundary: Shared permitted region; defaults to open water
                enclosing every combination's crossing
            receiver_factory: Builds receivers from parameters; defaults to
                a line along the x axis
        """
        if config.n_trials < 1:
            raise ValidationError("n_trials must be at least 1")
        self.config = config
        self.detection_range_fn = detection_range_fn
        self.receiver_factory = receiver_factory or _line_for

        self.combinations = config.get_all_combinations()
        self.parameters = [parameters_for(c) for c in self.combinations]
        self.receivers = [list(self.receiver_factory(p)) for p in self.parameters]

        if boundary is None:
            geometries = [
                CrossingGeometry.from_receivers(r, p)
                for r, p in zip(self.receivers, self.parameters)
            ]
            boundary = crossing_region(geometries)
        self.boundary = boundary

    def run(self, cancel_token: Optional[CancellationToken] = None) -> SweepResult:
        """
        Execute every combination.

        A cancelled token stops the sweep; completed combinations (and the
        partial one) are returned with status CANCELLED.
        """
        total = len(self.combinations)
        sources = as_source(self.config.seed).spawn(total)
        runs: List[SweepRun] = []
        status = RunStatus.COMPLETED

        logger.info(
            "Starting sweep: %d combinations x %d trials", total, self.config.n_trials
        )
        start_time = time.time()

        for run_id, (combo, params, receivers) in enumerate(
            zip(self.combinations, self.parameters, self.receivers)
        ):
            if cancel_token is not None and cancel_token.cancelled:
                status = RunStatus.CANCELLED
                break

            param_str = ", ".join(
                f"{k}={v}" for k, v in combo.items() if k in self.config.variations
            )
            logger.debug("[%d/%d] %s", run_id + 1, total, param_str)

            run_start = time.time()
            simulator = ReceiverLineSimulator(
                receivers, self.detection_range_fn, params, boundary=self.boundary
            )
            result = simulator.run(
                self.config.n_trials,
                seed=sources[run_id],
                cancel_token=cancel_token,
                max_workers=self.config.max_workers,
            )
            runs.append(SweepRun(
                run_id=run_id,
                parameters=combo,
                result=result,
                execution_time_seconds=time.time() - run_start,
            ))

            if self.config.progress_callback:
                self.config.progress_callback(run_id + 1, total, param_str)

            if result.cancelled:
                status = RunStatus.CANCELLED
                break

        logger.info(
            "Sweep %s: %d of %d combinations in %.1fs",
            status.value, len(runs), total, time.time() - start_time,
        )
        return SweepResult(runs=runs, variations=dict(self.config.variations), status=status)


def run_sweep(
    variations: Dict[str, List[Any]],
    detection_range_fn: DetectionRangeFunction,
    n_trials: int = 100,
    base_params: Optional[Dict[str, Any]] = None,
    seed: SeedLike = None,
    boundary: Optional[BoundaryOracle] = None,
    cancel_token: Optional[CancellationToken] = None,
    progress_callback: Optional[Callable[[int, int, str], None]] = None,
    max_workers: Optional[int] = None,
) -> SweepResult:
    """
    Convenience function to sweep crossing simulations over parameter values.

    Args:
        variations: Dict mapping parameter name to the values to test
            ("delay_range" takes (min, max) pairs)
        detection_range_fn: Maps distance to detection probability
        n_trials: Crossing trials per combination
        base_params: Parameters shared by every combination
        seed: Master seed
        boundary: Shared permitted region
        cancel_token: Stops the sweep when cancelled
        progress_callback: Called after each combination
        max_workers: Worker processes per combination

    Returns:
        SweepResult; use to_frame() for a summary table
    """
    config = SweepConfiguration(
        base_params=dict(base_params or {}),
        variations=variations,
        n_trials=n_trials,
        seed=seed,
        max_workers=max_workers,
        progress_callback=progress_callback,
    )
    return SweepRunner(config, detection_range_fn, boundary=boundary).run(cancel_token)
