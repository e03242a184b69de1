"""
Particle stepping rules for the cellular-automaton random walk.

A particle sits on a grid cell. Each hour the local wind speed decides how
many single-cell transitions it makes, and each transition picks a bearing
from a speed-weighted sample of the surrounding wind bearings, jitters it
and snaps it to one of the eight neighbouring cells.
"""

import math
import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .errors import OutOfBoundsStep
from .grid import Grid

# 3x3 neighbourhood template; the centre cell counts three times
NEIGHBOUR_WEIGHTS = np.array([
    [1.0, 1.0, 1.0],
    [1.0, 3.0, 1.0],
    [1.0, 1.0, 1.0],
])

DIRECTION_JITTER = 30.0  # degrees, uniform in [-jitter, +jitter]

SECONDS_PER_HOUR = 3600.0

# (dcol, drow) per octant N, NE, E, SE, S, SW, W, NW; rows grow southward
OCTANT_STEPS = (
    (0, -1),
    (1, -1),
    (1, 0),
    (1, 1),
    (0, 1),
    (-1, 1),
    (-1, 0),
    (-1, -1),
)


@dataclass(frozen=True)
class ParticleState:
    """Cell a particle occupies and the hour index it arrived there."""
    
    col: int
    row: int
    hour: int = 0


class Trajectory:
    """Ordered particle snapshots for one repetition of one origin."""
    
    def __init__(self, start: ParticleState):
        self.states: List[ParticleState] = [start]
    
    def append(self, state: ParticleState):
        self.states.append(state)
    
    def __len__(self) -> int:
        return len(self.states)
    
    def to_rows(
        self,
        grid: Grid,
        repetition: int,
        origin: Tuple[float, float]
    ) -> List[Dict[str, float]]:
        """
        Geographic rows for the trajectory table.
        
        Args:
            grid: Grid used to convert cells back to cell-centre lon/lat
            repetition: 1-based repetition number
            origin: (lon, lat) the repetition started from
        """
        rows = []
        for state in self.states:
            lon, lat = grid.xy_from_cell(state.row, state.col)
            rows.append({
                "lon": lon,
                "lat": lat,
                "repetition": repetition,
                "forecast_hour": state.hour,
                "origin_lon": origin[0],
                "origin_lat": origin[1],
            })
        return rows


def steps_for_speed(speed: float, cellsize: float, rng: np.random.Generator) -> int:
    """
    Number of single-cell transitions for one hour of wind.
    
    ceil(speed * 3600 / cellsize) alone would move the particle at least
    one cell every hour even in near-calm air, so the floor is a random
    0 or 1 instead of a fixed 1.
    
    Args:
        speed: Wind speed at the particle's cell (m/s)
        cellsize: Cell size (meters)
        rng: Random generator
    
    Returns:
        Non-negative number of transitions
    """
    floor = int(rng.integers(0, 2))
    if not np.isfinite(speed) or speed <= 0:
        return floor
    return max(floor, int(math.ceil(speed * SECONDS_PER_HOUR / cellsize)))


def sample_bearing(
    col: int,
    row: int,
    speed: np.ndarray,
    bearing: np.ndarray,
    rng: np.random.Generator,
    weights: np.ndarray = NEIGHBOUR_WEIGHTS,
    jitter: float = DIRECTION_JITTER
) -> Optional[float]:
    """
    Draw the bearing for the next transition.
    
    The 3x3 window around (col, row) is clipped to the grid. Each remaining
    cell is drawn with probability proportional to template weight times
    its wind speed, and its bearing (not its position) is jittered
    uniformly by +/- jitter degrees. A candidate whose jittered bearing
    points off the grid is dropped and the draw repeats over the rest. If
    every remaining weight is zero the draw is uniform over the remaining
    candidates.
    
    Args:
        col: Current column
        row: Current row
        speed: Wind speed array (nrows, ncols)
        bearing: Wind bearing array (nrows, ncols), degrees
        rng: Random generator
        weights: 3x3 neighbour weight template
        jitter: Bound of the uniform angular perturbation (degrees)
    
    Returns:
        Bearing in [0, 360) whose step stays on the grid, or None when no
        neighbour yields one
    """
    nrows, ncols = bearing.shape
    r0, r1 = max(row - 1, 0), min(row + 2, nrows)
    c0, c1 = max(col - 1, 0), min(col + 2, ncols)
    
    window_bearing = bearing[r0:r1, c0:c1]
    window_speed = speed[r0:r1, c0:c1]
    window_weight = weights[r0 - row + 1:r1 - row + 1, c0 - col + 1:c1 - col + 1]
    
    usable = np.isfinite(window_bearing)
    candidates = list(window_bearing[usable])
    probs = list(window_weight[usable] * np.nan_to_num(window_speed[usable], nan=0.0, posinf=0.0))
    
    while candidates:
        p = np.asarray(probs)
        total = p.sum()
        if total > 0:
            pick = int(rng.choice(len(candidates), p=p / total))
        else:
            pick = int(rng.integers(len(candidates)))
        
        selected = float(candidates[pick])
        if jitter > 0:
            selected += rng.uniform(-jitter, jitter)
        selected %= 360.0
        try:
            step_within(selected, col, row, (nrows, ncols))
        except OutOfBoundsStep:
            del candidates[pick]
            del probs[pick]
            continue
        return selected
    return None


def octant(bearing: float) -> int:
    """
    Compass octant index (0=N, 1=NE, ..., 7=NW) of a bearing.
    
    Sectors are half-open, [k*45 - 22.5, k*45 + 22.5).
    """
    return int(((bearing % 360.0) + 22.5) // 45.0) % 8


def next_cell(bearing: float, col: int, row: int) -> Tuple[int, int]:
    """Neighbouring (col, row) in the direction of a bearing."""
    dcol, drow = OCTANT_STEPS[octant(bearing)]
    return col + dcol, row + drow


def step_within(bearing: float, col: int, row: int, shape: Tuple[int, int]) -> Tuple[int, int]:
    """
    next_cell restricted to a grid of the given (nrows, ncols).
    
    Raises:
        OutOfBoundsStep: the neighbour lies outside the grid
    """
    new_col, new_row = next_cell(bearing, col, row)
    nrows, ncols = shape
    if not (0 <= new_col < ncols and 0 <= new_row < nrows):
        raise OutOfBoundsStep(
            f"Bearing {bearing:.1f} from ({col}, {row}) leaves the {nrows}x{ncols} grid"
        )
    return new_col, new_row
