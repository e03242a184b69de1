"""
Run configuration for the dispersal simulator.
"""

import json
import os
from dataclasses import dataclass, field, fields, replace
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError
from .forecast import parse_date
from .particle import DIRECTION_JITTER, NEIGHBOUR_WEIGHTS

Origin = Tuple[float, float]


def load_config(config_file: str) -> dict:
    """Load configuration from JSON file."""
    with open(config_file, 'r') as f:
        return json.load(f)


def available_cpus() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class SimulationConfig:
    """
    Immutable parameters of one simulation run.
    
    Attributes:
        origins: (lon, lat) start points (end points when backwards)
        nforecast: Horizon in hours
        nsim: Repetitions per origin
        start_date: Nominal start date, YYYYMMDD
        start_hour: Nominal start hour (UTC)
        cellsize: Cell size in meters, converts wind speed to cells/hour
        level: Atmospheric level of the wind layers, e.g. '850mb'
        jitter: Bound of the uniform direction perturbation (degrees)
        neighbour_weights: 3x3 template multiplying neighbour wind speeds
        backwards: Walk the timeline in reverse with bearings turned around
        full: Keep every trajectory snapshot
        parallel: Fan repetitions out over worker processes
        workers: Worker processes (default: available CPUs - 1)
        seed: Seed for reproducible runs (None draws fresh entropy)
    """
    
    origins: Tuple[Origin, ...] = ()
    nforecast: int = 24
    nsim: int = 10
    start_date: str = "20220524"
    start_hour: int = 18
    cellsize: float = 25000.0
    level: Optional[str] = "850mb"
    jitter: float = DIRECTION_JITTER
    neighbour_weights: Tuple[Tuple[float, ...], ...] = field(
        default_factory=lambda: tuple(tuple(r) for r in NEIGHBOUR_WEIGHTS.tolist())
    )
    backwards: bool = False
    full: bool = False
    parallel: bool = False
    workers: Optional[int] = None
    seed: Optional[int] = None
    
    def __post_init__(self):
        origins = tuple((float(o[0]), float(o[1])) for o in self.origins)
        weights = tuple(tuple(float(w) for w in r) for r in self.neighbour_weights)
        object.__setattr__(self, "origins", origins)
        object.__setattr__(self, "neighbour_weights", weights)
    
    @classmethod
    def from_dict(cls, data: dict) -> "SimulationConfig":
        """Build a config from a JSON-style dict; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)
    
    def updated(self, **changes) -> "SimulationConfig":
        """Copy with some fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
    
    @property
    def weights(self) -> np.ndarray:
        return np.asarray(self.neighbour_weights, dtype=float)
    
    @property
    def units(self) -> int:
        """Independent (origin, repetition) units of work."""
        return len(self.origins) * self.nsim
    
    def resolved_workers(self) -> int:
        """Worker processes to start, capped at the number of work units."""
        workers = self.workers if self.workers is not None else max(1, available_cpus() - 1)
        return max(1, min(workers, self.units))
    
    def validate(self) -> "SimulationConfig":
        """
        Reject invalid parameters.
        
        Raises:
            ConfigurationError: on the first invalid parameter
        """
        if not self.origins:
            raise ConfigurationError("At least one origin (lon, lat) is required")
        for lon, lat in self.origins:
            if not (np.isfinite(lon) and np.isfinite(lat)):
                raise ConfigurationError(f"Origin ({lon}, {lat}) is not finite")
        if int(self.nsim) != self.nsim or self.nsim <= 0:
            raise ConfigurationError(f"nsim must be a positive integer, got {self.nsim}")
        if int(self.nforecast) != self.nforecast or self.nforecast < 0:
            raise ConfigurationError(f"nforecast must be a non-negative integer, got {self.nforecast}")
        if not self.cellsize > 0:
            raise ConfigurationError(f"cellsize must be positive, got {self.cellsize}")
        if not 0 <= int(self.start_hour) < 24:
            raise ConfigurationError(f"start_hour must be in [0, 24), got {self.start_hour}")
        parse_date(self.start_date)
        if not self.jitter >= 0:
            raise ConfigurationError(f"jitter must be non-negative, got {self.jitter}")
        weights = self.weights
        if weights.shape != (3, 3) or np.any(weights < 0) or not np.all(np.isfinite(weights)):
            raise ConfigurationError("neighbour_weights must be a 3x3 grid of non-negative numbers")
        if self.workers is not None:
            cpus = available_cpus()
            if self.workers < 1:
                raise ConfigurationError(f"workers must be at least 1, got {self.workers}")
            if self.workers > cpus:
                raise ConfigurationError(
                    f"Number of workers ({self.workers}) must be equal to or less than "
                    f"the {cpus} CPUs available"
                )
        return self


def parse_origin(text: str) -> Origin:
    """Parse 'LON,LAT' into a tuple."""
    try:
        lon, lat = (float(part) for part in text.split(","))
    except ValueError:
        raise ConfigurationError(f"Origin must look like LON,LAT, got '{text}'") from None
    return lon, lat


def origins_from(values: Sequence) -> Tuple[Origin, ...]:
    """Accept 'LON,LAT' strings or (lon, lat) pairs."""
    return tuple(parse_origin(v) if isinstance(v, str) else (float(v[0]), float(v[1])) for v in values)
