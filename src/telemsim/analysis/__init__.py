"""Receiver line crossing trials, parameter sweeps and pulse collisions."""

from telemsim.analysis.collision import (
    CollisionEstimator,
    analytic_collision_probability,
    collision_table,
    estimate_collision_probability,
    simulated_collision_probability,
)
from telemsim.analysis.receiver_line import (
    CrossingGeometry,
    LineSimulationResult,
    ReceiverLineSimulator,
    TrialOutcome,
    receiver_grid,
    receiver_line,
    receiver_line_detection_efficiency,
)
from telemsim.analysis.batch_runner import (
    SweepConfiguration,
    SweepResult,
    SweepRunner,
    run_sweep,
)

__all__ = [
    "CollisionEstimator",
    "analytic_collision_probability",
    "collision_table",
    "estimate_collision_probability",
    "simulated_collision_probability",
    "CrossingGeometry",
    "LineSimulationResult",
    "ReceiverLineSimulator",
    "TrialOutcome",
    "receiver_grid",
    "receiver_line",
    "receiver_line_detection_efficiency",
    "SweepConfiguration",
    "SweepResult",
    "SweepRunner",
    "run_sweep",
]
