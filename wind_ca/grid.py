"""
Georeferenced grids for wind and density rasters.

A Grid pairs a 2D array with an affine mapping between (row, col) and
(lon, lat). Row 0 is the northern edge and column 0 the western edge, the
same orientation a PGW world file describes.
"""

import math
import numpy as np
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .errors import ShapeMismatch


@dataclass(eq=False)
class Grid:
    """A 2D array of cell values with a north-up geographic reference."""
    
    values: np.ndarray
    west: float   # longitude of the western edge (degrees)
    north: float  # latitude of the northern edge (degrees)
    xres: float   # cell width (degrees)
    yres: float   # cell height (degrees)
    
    def __post_init__(self):
        self.values = np.asarray(self.values, dtype=float)
        if self.values.ndim != 2:
            raise ShapeMismatch(
                f"Grid values must be 2D, got shape {self.values.shape}"
            )
        if self.xres <= 0 or self.yres <= 0:
            raise ValueError("Grid resolution must be positive")
    
    @classmethod
    def from_bounds(
        cls,
        bounds: Tuple[float, float, float, float],
        resolution: float,
        fill: float = 0.0
    ) -> "Grid":
        """
        Create a grid covering a bounding box.
        
        Args:
            bounds: (min_lon, min_lat, max_lon, max_lat) in degrees
            resolution: Cell size in degrees
            fill: Initial cell value
        """
        min_lon, min_lat, max_lon, max_lat = bounds
        ncols = max(1, int(round((max_lon - min_lon) / resolution)))
        nrows = max(1, int(round((max_lat - min_lat) / resolution)))
        values = np.full((nrows, ncols), fill, dtype=float)
        return cls(values, west=min_lon, north=max_lat, xres=resolution, yres=resolution)
    
    @classmethod
    def from_coords(
        cls,
        lons: Sequence[float],
        lats: Sequence[float],
        values: np.ndarray
    ) -> "Grid":
        """
        Build a grid from cell-centre coordinate vectors.
        
        Longitudes above 180 are wrapped into [-180, 180) and sorted, and
        latitudes are flipped to run north to south, so any regular
        lat/lon dataset ends up north-up.
        
        Args:
            lons: Cell-centre longitudes, length ncols
            lats: Cell-centre latitudes, length nrows
            values: Array of shape (nrows, ncols)
        """
        lons = np.asarray(lons, dtype=float)
        lats = np.asarray(lats, dtype=float)
        values = np.asarray(values, dtype=float)
        if values.shape != (lats.size, lons.size):
            raise ShapeMismatch(
                f"values shape {values.shape} does not match "
                f"{lats.size} latitudes x {lons.size} longitudes"
            )
        if lons.size < 2 or lats.size < 2:
            raise ShapeMismatch("At least two coordinates per axis are needed")
        
        # normalize longitude to [-180, 180)
        if np.nanmax(lons) > 180:
            lons = ((lons + 180.0) % 360.0) - 180.0
            order = np.argsort(lons)
            lons = lons[order]
            values = values[:, order]
        # north-up
        if lats[0] < lats[-1]:
            lats = lats[::-1]
            values = values[::-1, :]
        
        xres = float(abs(lons[1] - lons[0]))
        yres = float(abs(lats[0] - lats[1]))
        return cls(
            values.copy(),
            west=float(lons[0]) - xres / 2.0,
            north=float(lats[0]) + yres / 2.0,
            xres=xres,
            yres=yres,
        )
    
    @property
    def nrows(self) -> int:
        return self.values.shape[0]
    
    @property
    def ncols(self) -> int:
        return self.values.shape[1]
    
    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape
    
    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(min_lon, min_lat, max_lon, max_lat) of the grid edges."""
        east = self.west + self.ncols * self.xres
        south = self.north - self.nrows * self.yres
        return self.west, south, east, self.north
    
    def col_from_lon(self, lon: float) -> Optional[int]:
        """Column containing a longitude, or None when outside the grid."""
        col = int(math.floor((lon - self.west) / self.xres))
        if 0 <= col < self.ncols:
            return col
        return None
    
    def row_from_lat(self, lat: float) -> Optional[int]:
        """Row containing a latitude, or None when outside the grid."""
        row = int(math.floor((self.north - lat) / self.yres))
        if 0 <= row < self.nrows:
            return row
        return None
    
    def xy_from_cell(self, row: int, col: int) -> Tuple[float, float]:
        """Return the (lon, lat) of a cell centre."""
        lon = self.west + (col + 0.5) * self.xres
        lat = self.north - (row + 0.5) * self.yres
        return lon, lat
    
    def contains(self, col: int, row: int) -> bool:
        return 0 <= col < self.ncols and 0 <= row < self.nrows
    
    def same_geometry(self, other: "Grid") -> bool:
        """True when both grids share shape and georeference."""
        return (
            self.shape == other.shape
            and np.isclose(self.west, other.west)
            and np.isclose(self.north, other.north)
            and np.isclose(self.xres, other.xres)
            and np.isclose(self.yres, other.yres)
        )
    
    def check_geometry(self, other: "Grid"):
        """Raise ShapeMismatch unless other lines up with this grid."""
        if not self.same_geometry(other):
            raise ShapeMismatch(
                f"Grid {other.shape} @ ({other.west}, {other.north}) does not "
                f"match {self.shape} @ ({self.west}, {self.north})"
            )
    
    def with_values(self, values: np.ndarray) -> "Grid":
        """New grid with this georeference and the given values."""
        values = np.asarray(values, dtype=float)
        if values.shape != self.shape:
            raise ShapeMismatch(
                f"values shape {values.shape} does not match grid {self.shape}"
            )
        return Grid(values, west=self.west, north=self.north, xres=self.xres, yres=self.yres)
    
    def zeros(self) -> "Grid":
        return self.with_values(np.zeros(self.shape))
