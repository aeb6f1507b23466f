"""
Movement module: correlated random walks inside a water body.

Module Structure:
    base.py - Turning-angle distributions
    crw.py  - Boundary-constrained correlated random walk

Quick Start:
    from telemsim.landscape import rectangle_boundary
    from telemsim.movement import generate_path, NormalTurningAngle

    region = rectangle_boundary(0, 0, 1000, 1000)
    path = generate_path((500, 500), step_length=100, num_steps=50,
                         boundary=region, turn_angle_dist=NormalTurningAngle(0, 10),
                         rng=42)
"""

from telemsim.movement.base import (
    TurningAngleDistribution,
    NormalTurningAngle,
    VonMisesTurningAngle,
    UniformTurningAngle,
    CallableTurningAngle,
    resolve_turn_distribution,
)
from telemsim.movement.crw import generate_path, PathGenerator

__all__ = [
    "TurningAngleDistribution",
    "NormalTurningAngle",
    "VonMisesTurningAngle",
    "UniformTurningAngle",
    "CallableTurningAngle",
    "resolve_turn_distribution",
    "generate_path",
    "PathGenerator",
]
