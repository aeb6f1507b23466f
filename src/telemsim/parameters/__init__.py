"""Parameters configuration module."""

from telemsim.parameters.simulation_params import SimulationParameters, validate_delay_range
from telemsim.parameters.constants import SimulationConstants

__all__ = ["SimulationParameters", "SimulationConstants", "validate_delay_range"]
