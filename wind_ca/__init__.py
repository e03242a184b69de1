"""
wind_ca - Stochastic cellular-automaton simulator of wind dispersal.

Particles (pollen, propagules) random-walk over a georeferenced grid under
hourly forecast or reanalysis winds; repeated walks build a density grid of
where they are likely to travel.
"""

__version__ = "0.1.0"
__author__ = "wind_ca contributors"

from .atmosphere import WindLayer, kinematics, reverse_bearing, wind_bearing, wind_speed
from .config import SimulationConfig
from .errors import (
    ConfigurationError,
    DataNotFound,
    OutOfBoundsStep,
    ShapeMismatch,
    WindCAError,
)
from .forecast import ForecastWindow, resolve_forecast_window
from .grid import Grid
from .output import RasterOutput
from .particle import (
    ParticleState,
    Trajectory,
    next_cell,
    sample_bearing,
    step_within,
    steps_for_speed,
)
from .progress import CallbackProgress, LoggingProgress, ProgressReporter
from .providers import (
    ForecastDirectoryProvider,
    HistoricalDatasetProvider,
    StaticWindProvider,
    WindFieldProvider,
)
from .simulator import DispersalSimulator, SimulationResult, merge_densities, mask_empty, simulate

__all__ = [
    "CallbackProgress",
    "ConfigurationError",
    "DataNotFound",
    "DispersalSimulator",
    "ForecastDirectoryProvider",
    "ForecastWindow",
    "Grid",
    "HistoricalDatasetProvider",
    "LoggingProgress",
    "OutOfBoundsStep",
    "ParticleState",
    "ProgressReporter",
    "RasterOutput",
    "ShapeMismatch",
    "SimulationConfig",
    "SimulationResult",
    "StaticWindProvider",
    "Trajectory",
    "WindCAError",
    "WindFieldProvider",
    "WindLayer",
    "kinematics",
    "mask_empty",
    "merge_densities",
    "next_cell",
    "resolve_forecast_window",
    "reverse_bearing",
    "sample_bearing",
    "simulate",
    "step_within",
    "steps_for_speed",
    "wind_bearing",
    "wind_speed",
]
