"""
Single-particle trajectory simulation.

One repetition walks one particle from its origin cell through every hour
of the horizon. The result is a private density accumulator (plus the
trajectory when requested) that the orchestrator sums with the others.
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple, Union

from .atmosphere import kinematics
from .config import SimulationConfig
from .forecast import ForecastWindow
from .grid import Grid
from .particle import (
    ParticleState,
    Trajectory,
    next_cell,
    sample_bearing,
    steps_for_speed,
)
from .providers import WindFieldProvider

logger = logging.getLogger(__name__)


class WindTimeline:
    """
    Speed and bearing arrays per hour index of a run.
    
    Layers are read from the provider the first time an hour is needed and
    kept for the rest of the run, since every repetition replays the same
    hours.
    """
    
    def __init__(
        self,
        provider: WindFieldProvider,
        window: ForecastWindow,
        template: Grid,
        level: Union[str, float, None] = None,
        backwards: bool = False
    ):
        self.provider = provider
        self.window = window
        self.template = template
        self.level = level
        self.backwards = backwards
        self._cache: Dict[int, Tuple[np.ndarray, np.ndarray]] = {}
    
    @property
    def shape(self) -> Tuple[int, int]:
        return self.template.shape
    
    def hours(self) -> Iterable[int]:
        """Hour indices in the order the particle lives through them."""
        hours = range(1, self.window.nforecast + 1)
        return reversed(hours) if self.backwards else hours
    
    def wind(self, hour: int) -> Tuple[np.ndarray, np.ndarray]:
        """(speed, bearing) arrays driving an hour index."""
        if hour not in self._cache:
            cycle_date, cycle_hour, offset = self.window.lookup(hour)
            layer = self.provider.get_wind_layer(cycle_date, cycle_hour, offset, self.level)
            self.template.check_geometry(layer.u)
            speed, bearing = kinematics(layer, backwards=self.backwards)
            self._cache[hour] = (speed.values, bearing.values)
            logger.debug(
                "Hour %d <- cycle %s %02dz f%03d",
                hour, cycle_date.strftime("%Y%m%d"), cycle_hour, offset,
            )
        return self._cache[hour]


@dataclass(eq=False)
class RepetitionResult:
    """Outcome of one repetition for one origin."""
    
    density: np.ndarray
    transitions: int
    trajectory: Optional[Trajectory] = None
    skipped: int = 0  # transitions with no in-grid bearing


def simulate_repetition(
    start: ParticleState,
    timeline: WindTimeline,
    config: SimulationConfig,
    rng: np.random.Generator,
    on_hour: Optional[Callable[[], None]] = None
) -> RepetitionResult:
    """
    Walk one particle through the whole horizon.
    
    Each hour draws a step count from the wind speed at the particle's
    cell; each step draws a bearing from the neighbourhood and moves one
    cell, adding one visit to the destination. Neighbours that would carry
    the particle off the grid are left out of the draw; when none is left
    the transition is skipped and the walk goes on.
    
    Args:
        start: Origin cell, hour 0
        timeline: Wind speed/bearing per hour
        config: Run parameters (cellsize, jitter, weights, full)
        rng: Random generator private to this repetition
        on_hour: Called after every hour
    
    Returns:
        RepetitionResult with the density accumulator of this repetition
    """
    density = np.zeros(timeline.shape)
    trajectory = Trajectory(start) if config.full else None
    weights = config.weights
    
    state = start
    transitions = 0
    skipped = 0
    
    for hour in timeline.hours():
        speed, bearing = timeline.wind(hour)
        steps = steps_for_speed(speed[state.row, state.col], config.cellsize, rng)
        if steps == 0:
            logger.debug("Hour %d: no movement", hour)
        
        for _ in range(steps):
            selected = sample_bearing(
                state.col, state.row, speed, bearing, rng,
                weights=weights, jitter=config.jitter,
            )
            if selected is None:
                logger.debug("Hour %d: no in-grid bearing at (%d, %d)", hour, state.col, state.row)
                skipped += 1
                continue
            col, row = next_cell(selected, state.col, state.row)
            state = ParticleState(col, row, hour)
            density[row, col] += 1
            transitions += 1
            if trajectory is not None:
                trajectory.append(state)
        
        if on_hour is not None:
            on_hour()
    
    return RepetitionResult(
        density=density,
        transitions=transitions,
        trajectory=trajectory,
        skipped=skipped,
    )
