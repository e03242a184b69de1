"""
Process-pool fan-out over (origin, repetition) units.

Repetitions share no mutable state, so each one runs as an independent
task. Every worker builds its own wind timeline once, in the pool
initializer, and every task gets its own random stream.
"""

import concurrent.futures
import logging
import numpy as np
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

from .config import SimulationConfig
from .forecast import ForecastWindow
from .grid import Grid
from .particle import ParticleState
from .providers import WindFieldProvider
from .trajectory import RepetitionResult, WindTimeline, simulate_repetition

logger = logging.getLogger(__name__)

# Per-process state set by _init_worker
_timeline: Optional[WindTimeline] = None
_config: Optional[SimulationConfig] = None


@dataclass(frozen=True)
class WorkUnit:
    """One repetition of one origin."""
    
    index: int
    origin_index: int
    repetition: int
    start: ParticleState
    seed: np.random.SeedSequence


def _init_worker(
    provider: WindFieldProvider,
    window: ForecastWindow,
    template: Grid,
    config: SimulationConfig
):
    global _timeline, _config
    _timeline = WindTimeline(
        provider, window, template, level=config.level, backwards=config.backwards
    )
    _config = config


def _run_unit(unit: WorkUnit) -> Tuple[WorkUnit, RepetitionResult]:
    rng = np.random.default_rng(unit.seed)
    return unit, simulate_repetition(unit.start, _timeline, _config, rng)


def run_units(
    units: List[WorkUnit],
    provider: WindFieldProvider,
    window: ForecastWindow,
    template: Grid,
    config: SimulationConfig,
    workers: int,
    on_unit: Optional[Callable[[], None]] = None
) -> Iterator[Tuple[WorkUnit, RepetitionResult]]:
    """
    Run units on a process pool, yielding results as they complete.
    
    The first failing unit cancels everything still pending and its
    exception propagates, so a run never yields a partial grid.
    
    Args:
        units: Work to distribute
        provider: Wind source; pickled once per worker
        window: Forecast cycle resolution of the run
        template: Georeference of the run
        config: Run parameters
        workers: Number of worker processes
        on_unit: Called after each completed unit
    """
    logger.info("Running in parallel using %d workers", workers)
    with concurrent.futures.ProcessPoolExecutor(
        max_workers=workers,
        initializer=_init_worker,
        initargs=(provider, window, template, config),
    ) as executor:
        futures = [executor.submit(_run_unit, unit) for unit in units]
        try:
            for future in concurrent.futures.as_completed(futures):
                unit, result = future.result()
                if on_unit is not None:
                    on_unit()
                yield unit, result
        except Exception as exc:
            logger.error("Work unit generated an exception: %s", exc)
            for future in futures:
                future.cancel()
            raise
