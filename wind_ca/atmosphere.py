"""
Wind kinematics for the dispersal simulation.

Turns eastward/northward wind components into the speed and compass
bearing grids the cellular automaton steps on.
"""

import numpy as np
from dataclasses import dataclass
from typing import Tuple

from .errors import ShapeMismatch
from .grid import Grid


@dataclass(eq=False)
class WindLayer:
    """
    Wind components valid at one forecast hour and level.
    
    u is the eastward and v the northward component, both in m/s.
    """
    
    u: Grid
    v: Grid
    
    def __post_init__(self):
        self.u.check_geometry(self.v)


def _check_pair(u: np.ndarray, v: np.ndarray):
    if np.shape(u) != np.shape(v):
        raise ShapeMismatch(
            f"u and v components differ in shape: {np.shape(u)} vs {np.shape(v)}"
        )


def wind_speed(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Scalar wind speed sqrt(u^2 + v^2), elementwise."""
    _check_pair(u, v)
    return np.hypot(u, v)


def wind_bearing(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """
    Compass bearing the wind blows toward, elementwise.
    
    Args:
        u: Eastward component (m/s)
        v: Northward component (m/s)
    
    Returns:
        Bearing in degrees in [0, 360), 0 = north, 90 = east
    """
    _check_pair(u, v)
    bearing = np.degrees(np.arctan2(u, v))
    return np.mod(bearing, 360.0)


def reverse_bearing(bearing: np.ndarray) -> np.ndarray:
    """Turn bearings around, used when walking the timeline backwards."""
    return np.mod(np.asarray(bearing) + 180.0, 360.0)


def kinematics(layer: WindLayer, backwards: bool = False) -> Tuple[Grid, Grid]:
    """
    Speed and bearing grids for one wind layer.
    
    Args:
        layer: u/v components for the hour
        backwards: Reverse bearings by 180 degrees
    
    Returns:
        Tuple of (speed, bearing) grids sharing the layer's georeference
    """
    u = layer.u.values
    v = layer.v.values
    speed = wind_speed(u, v)
    bearing = wind_bearing(u, v)
    if backwards:
        bearing = reverse_bearing(bearing)
    return layer.u.with_values(speed), layer.u.with_values(bearing)


def components_from_bearing(speed: float, bearing: float) -> Tuple[float, float]:
    """
    Wind components for a speed blowing toward a compass bearing.
    
    Args:
        speed: Wind speed (m/s)
        bearing: Direction the wind blows toward (degrees, 0=North, 90=East)
    
    Returns:
        Tuple of (u, v) in m/s
    """
    bearing_rad = np.radians(bearing)
    u = speed * np.sin(bearing_rad)
    v = speed * np.cos(bearing_rad)
    return float(u), float(v)
