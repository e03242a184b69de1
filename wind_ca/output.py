"""
Output module for the density grid and trajectory table.

Writes PNG images with PGW world files for GIS compatibility, NetCDF
copies of the grid and CSV trajectory tables.
"""

import numpy as np
import pandas as pd
import xarray as xr
from typing import Optional

from .grid import Grid


class RasterOutput:
    """
    Georeferenced output of a density grid.
    
    Unvisited cells hold NaN and are left transparent in the PNG.
    """
    
    def __init__(self, density: Grid):
        """
        Args:
            density: Visit-count grid, NaN where nothing arrived
        """
        self.density = density
    
    @property
    def grid(self) -> np.ndarray:
        return self.density.values
    
    def to_dataarray(self) -> xr.DataArray:
        """Density as a lat/lon DataArray of cell centres."""
        d = self.density
        lons = d.west + (np.arange(d.ncols) + 0.5) * d.xres
        lats = d.north - (np.arange(d.nrows) + 0.5) * d.yres
        return xr.DataArray(
            d.values,
            coords={"lat": lats, "lon": lons},
            dims=("lat", "lon"),
            name="density",
            attrs={"long_name": "particle visits per cell", "units": "1"},
        )
    
    def save_raster(self, filename: str, colormap: str = "viridis"):
        """
        Save raster as PNG with PGW world file.
        
        Args:
            filename: Output filename (without extension)
            colormap: Matplotlib colormap name
        """
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        from matplotlib.colors import LogNorm
        
        west, south, east, north = self.density.bounds
        values = np.ma.masked_invalid(self.grid)
        
        fig, ax = plt.subplots(figsize=(10, 8))
        
        vmax = float(values.max()) if values.count() else 1.0
        if vmax > 100:
            # Use log scale
            norm = LogNorm(vmin=1.0, vmax=vmax)
        else:
            norm = None
        im = ax.imshow(
            values,
            extent=[west, east, south, north],
            cmap=colormap,
            norm=norm,
            vmin=None if norm else 0,
            vmax=None if norm else vmax,
            interpolation='nearest'
        )
        
        plt.colorbar(im, ax=ax, label='Visits')
        ax.set_xlabel('Longitude (°)')
        ax.set_ylabel('Latitude (°)')
        ax.set_title('Dispersal Density')
        
        plt.savefig(f"{filename}.png", dpi=150, bbox_inches='tight')
        plt.close(fig)
        
        self._save_world_file(filename)
    
    def _save_world_file(self, filename: str):
        """
        Save PGW world file for georeferencing.
        
        The world file format has 6 lines:
        1. x-scale (pixel size in x direction)
        2. rotation about y-axis (usually 0)
        3. rotation about x-axis (usually 0)
        4. y-scale (negative pixel size in y direction)
        5. x-coordinate of upper-left pixel center
        6. y-coordinate of upper-left pixel center
        """
        d = self.density
        with open(f"{filename}.pgw", 'w') as f:
            f.write(f"{d.xres}\n")
            f.write("0\n")
            f.write("0\n")
            # Negative because y increases downward in image
            f.write(f"{-d.yres}\n")
            f.write(f"{d.west + d.xres / 2}\n")
            f.write(f"{d.north - d.yres / 2}\n")
    
    def save_netcdf(self, filename: str) -> str:
        """Write the density grid to <filename>.nc."""
        path = f"{filename}.nc"
        self.to_dataarray().to_dataset().to_netcdf(path)
        return path
    
    @staticmethod
    def save_trajectories(trajectories: Optional[pd.DataFrame], filename: str) -> Optional[str]:
        """Write the trajectory table to <filename>_trajectories.csv."""
        if trajectories is None:
            return None
        path = f"{filename}_trajectories.csv"
        trajectories.to_csv(path, index=False)
        return path
    
    def get_grid_statistics(self) -> dict:
        """
        Get statistics about the density grid.
        
        Returns:
            Dictionary with statistics
        """
        visited = np.isfinite(self.grid)
        return {
            "total_visits": float(np.nansum(self.grid)),
            "max_visits": float(np.nanmax(self.grid)) if visited.any() else 0.0,
            "visited_cells": int(visited.sum()),
            "total_cells": int(self.grid.size),
        }
