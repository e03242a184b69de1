"""
Main simulator module integrating all components.

Repeats the single-particle walk nsim times for every origin, sums the
per-repetition visit counts into one density grid per origin, merges the
origins and masks cells nobody visited.
"""

import logging
import time as pytime
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import Origin, SimulationConfig
from .errors import ConfigurationError
from .forecast import resolve_forecast_window
from .grid import Grid
from .output import RasterOutput
from .parallel import WorkUnit, run_units
from .particle import ParticleState
from .progress import Observer, reporting
from .providers import WindFieldProvider
from .trajectory import WindTimeline, simulate_repetition

logger = logging.getLogger(__name__)

TRAJECTORY_COLUMNS = ["lon", "lat", "repetition", "forecast_hour", "origin_lon", "origin_lat"]


def merge_densities(densities: Sequence[np.ndarray]) -> np.ndarray:
    """Cell-wise sum of density accumulators."""
    if not densities:
        raise ValueError("Nothing to merge")
    merged = np.zeros_like(np.asarray(densities[0], dtype=float))
    for density in densities:
        if np.shape(density) != merged.shape:
            raise ValueError(f"Cannot merge density {np.shape(density)} into {merged.shape}")
        merged = merged + density
    return merged


def mask_empty(density: np.ndarray) -> np.ndarray:
    """Replace unvisited (zero) cells with NaN, the no-data marker."""
    density = np.asarray(density, dtype=float)
    return np.where(density == 0, np.nan, density)


@dataclass(eq=False)
class SimulationResult:
    """
    Output of a run.
    
    Attributes:
        density: Visit counts, NaN where no particle ever arrived
        trajectories: One row per particle snapshot when full output was requested
        transitions: Single-cell transitions executed across the run
    """
    
    density: Grid
    trajectories: Optional[pd.DataFrame]
    transitions: int
    
    @property
    def total_visits(self) -> float:
        return float(np.nansum(self.density.values))
    
    @property
    def visited_cells(self) -> int:
        return int(np.count_nonzero(np.isfinite(self.density.values)))


class DispersalSimulator:
    """
    Stochastic cellular-automaton dispersal simulator.
    
    Drives particles from each origin across the wind timeline served by a
    provider. The provider decides where winds come from (forecast files,
    reanalysis, a static field); everything else is shared.
    """
    
    def __init__(self, provider: WindFieldProvider, config: SimulationConfig):
        """
        Initialize simulator.
        
        Args:
            provider: Source of the hourly wind layers
            config: Run parameters, validated here
        
        Raises:
            ConfigurationError: invalid parameters or an origin off the grid
            DataNotFound: the first wind layer of the run is missing
        """
        self.provider = provider
        self.config = config.validate()
        self.window = resolve_forecast_window(
            config.start_date, config.start_hour, config.nforecast, config.backwards
        )
        self.grid = provider.template(self.window, config.level)
        self.starts = [self.origin_cell(origin) for origin in config.origins]
        self.result: Optional[SimulationResult] = None
    
    def origin_cell(self, origin: Origin) -> ParticleState:
        """Starting cell of an origin."""
        lon, lat = origin
        col = self.grid.col_from_lon(lon)
        row = self.grid.row_from_lat(lat)
        if col is None or row is None:
            raise ConfigurationError(
                f"Origin ({lon}, {lat}) lies outside the wind grid {self.grid.bounds}"
            )
        return ParticleState(col, row, 0)
    
    def work_units(self) -> List[WorkUnit]:
        """(origin, repetition) units, each with its own seed."""
        seeds = np.random.SeedSequence(self.config.seed).spawn(self.config.units)
        units = []
        for origin_index, start in enumerate(self.starts):
            for repetition in range(1, self.config.nsim + 1):
                index = origin_index * self.config.nsim + repetition - 1
                units.append(WorkUnit(index, origin_index, repetition, start, seeds[index]))
        return units
    
    def run(self, progress: Observer = None) -> SimulationResult:
        """
        Run every repetition for every origin.
        
        Args:
            progress: Optional observer or callable receiving the number of
                completed units (hours serially, repetitions in parallel)
        
        Returns:
            SimulationResult with the merged, masked density grid
        """
        config = self.config
        t_start = pytime.perf_counter()
        logger.info(
            "Simulation window: %s, %d h %s from cycle %s %02dz",
            self.window.start.isoformat(), config.nforecast,
            "backwards" if config.backwards else "forwards",
            self.window.cycle_date.strftime("%Y%m%d"), self.window.cycle_hour,
        )
        
        if config.nforecast == 0:
            logger.warning("Zero-hour horizon: nothing to simulate")
            self.result = self._finish([np.zeros(self.grid.shape)], {}, 0)
            return self.result
        
        if config.parallel:
            self.result = self._run_parallel(progress)
        else:
            self.result = self._run_serial(progress)
        
        logger.info(
            "Simulation complete: %d transitions, %d cells visited (%.2f s)",
            self.result.transitions, self.result.visited_cells,
            pytime.perf_counter() - t_start,
        )
        return self.result
    
    def _run_serial(self, progress: Observer) -> SimulationResult:
        config = self.config
        timeline = WindTimeline(
            self.provider, self.window, self.grid, level=config.level, backwards=config.backwards
        )
        units = self.work_units()
        densities = [np.zeros(self.grid.shape) for _ in self.starts]
        rows: Dict[int, list] = {}
        transitions = 0
        done = 0
        
        with reporting(progress, config.units * config.nforecast) as reporter:
            def tick():
                nonlocal done
                done += 1
                reporter.update(done)
            
            for unit in units:
                rng = np.random.default_rng(unit.seed)
                result = simulate_repetition(unit.start, timeline, config, rng, on_hour=tick)
                densities[unit.origin_index] += result.density
                transitions += result.transitions
                if result.trajectory is not None:
                    rows[unit.index] = self._rows(unit, result.trajectory)
                if unit.repetition == config.nsim:
                    self._log_origin(unit.origin_index, densities[unit.origin_index])
        
        return self._finish(densities, rows, transitions)
    
    def _run_parallel(self, progress: Observer) -> SimulationResult:
        config = self.config
        units = self.work_units()
        densities = [np.zeros(self.grid.shape) for _ in self.starts]
        rows: Dict[int, list] = {}
        transitions = 0
        done = 0
        
        with reporting(progress, config.units) as reporter:
            def tick():
                nonlocal done
                done += 1
                reporter.update(done)
            
            for unit, result in run_units(
                units, self.provider, self.window, self.grid, config,
                workers=config.resolved_workers(), on_unit=tick,
            ):
                densities[unit.origin_index] += result.density
                transitions += result.transitions
                if result.trajectory is not None:
                    rows[unit.index] = self._rows(unit, result.trajectory)
        
        for origin_index, density in enumerate(densities):
            self._log_origin(origin_index, density)
        return self._finish(densities, rows, transitions)
    
    def _rows(self, unit: WorkUnit, trajectory) -> list:
        return trajectory.to_rows(self.grid, unit.repetition, self.config.origins[unit.origin_index])
    
    def _log_origin(self, origin_index: int, density: np.ndarray):
        lon, lat = self.config.origins[origin_index]
        logger.info(
            "Origin %d/%d (%.4f, %.4f): %d visits over %d cells",
            origin_index + 1, len(self.starts), lon, lat,
            int(density.sum()), int(np.count_nonzero(density)),
        )
    
    def _finish(
        self,
        densities: List[np.ndarray],
        rows: Dict[int, list],
        transitions: int
    ) -> SimulationResult:
        density = self.grid.with_values(mask_empty(merge_densities(densities)))
        trajectories = None
        if self.config.full:
            ordered = [row for index in sorted(rows) for row in rows[index]]
            trajectories = pd.DataFrame(ordered, columns=TRAJECTORY_COLUMNS)
        return SimulationResult(density=density, trajectories=trajectories, transitions=transitions)
    
    def generate_output(self, filename: str, colormap: str = "viridis") -> RasterOutput:
        """
        Write the density grid (PNG + PGW, NetCDF) and trajectories (CSV).
        
        Args:
            filename: Output filename prefix (without extension)
            colormap: Matplotlib colormap name
        
        Returns:
            RasterOutput wrapping the density grid
        """
        if self.result is None:
            raise RuntimeError("run() must complete before generating output")
        raster = RasterOutput(self.result.density)
        raster.save_raster(filename, colormap=colormap)
        raster.save_netcdf(filename)
        if self.result.trajectories is not None:
            raster.save_trajectories(self.result.trajectories, filename)
        return raster
    
    def get_statistics(self) -> dict:
        """
        Get simulation statistics.
        
        Returns:
            Dictionary with statistics
        """
        if self.result is None:
            raise RuntimeError("run() must complete before statistics are available")
        values = self.result.density.values
        return {
            "origins": len(self.starts),
            "repetitions": self.config.nsim,
            "forecast_hours": self.config.nforecast,
            "transitions": self.result.transitions,
            "visited_cells": self.result.visited_cells,
            "max_visits": float(np.nanmax(values)) if self.result.visited_cells else 0.0,
            "total_cells": int(values.size),
        }


def simulate(
    provider: WindFieldProvider,
    origins: Sequence[Origin],
    nforecast: int = 24,
    nsim: int = 10,
    start_date: str = "20220524",
    start_hour: int = 18,
    cellsize: float = 25000.0,
    backwards: bool = False,
    full: bool = False,
    parallel: bool = False,
    workers: Optional[int] = None,
    level: Optional[str] = "850mb",
    seed: Optional[int] = None,
    progress: Observer = None
) -> SimulationResult:
    """
    Run a dispersal simulation in one call.
    
    Returns:
        SimulationResult; trajectories is None unless full=True
    """
    config = SimulationConfig(
        origins=tuple(origins),
        nforecast=nforecast,
        nsim=nsim,
        start_date=start_date,
        start_hour=start_hour,
        cellsize=cellsize,
        level=level,
        backwards=backwards,
        full=full,
        parallel=parallel,
        workers=workers,
        seed=seed,
    )
    return DispersalSimulator(provider, config).run(progress=progress)
