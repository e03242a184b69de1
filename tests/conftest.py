"""
Shared fixtures for wind_ca tests.
"""

import numpy as np
import pandas as pd
import pytest
import xarray as xr

from wind_ca import Grid, HistoricalDatasetProvider, SimulationConfig, StaticWindProvider


class RecordingProvider(StaticWindProvider):
    """Static field that remembers every layer request."""
    
    def __init__(self, grid, u, v):
        super().__init__(grid, u, v)
        self.calls = []
    
    def get_wind_layer(self, cycle_date, cycle_hour, offset, level=None):
        self.calls.append((cycle_date, cycle_hour, offset))
        return super().get_wind_layer(cycle_date, cycle_hour, offset, level)


@pytest.fixture
def grid10():
    """10x10 one-degree grid over (0..10, 0..10)."""
    return Grid.from_bounds((0.0, 0.0, 10.0, 10.0), 1.0)


@pytest.fixture
def centre_origin():
    """Lon/lat of cell (col 5, row 5) on grid10."""
    return (5.5, 4.5)


@pytest.fixture
def east_wind(grid10):
    """5 m/s blowing due east everywhere."""
    return StaticWindProvider(grid10, 5.0, 0.0)


@pytest.fixture
def calm(grid10):
    return StaticWindProvider(grid10, 0.0, 0.0)


@pytest.fixture
def gusty():
    """40x40 grid with random winds, seeded."""
    rng = np.random.default_rng(7)
    grid = Grid.from_bounds((100.0, -20.0, 110.0, -10.0), 0.25)
    u = rng.normal(2.0, 4.0, grid.shape)
    v = rng.normal(-1.0, 4.0, grid.shape)
    return StaticWindProvider(grid, u, v)


@pytest.fixture
def make_config(centre_origin):
    def factory(**kwargs):
        params = dict(
            origins=(centre_origin,),
            nforecast=1,
            nsim=1,
            start_date="20220524",
            start_hour=18,
            cellsize=18000.0,
        )
        params.update(kwargs)
        return SimulationConfig(**params)
    return factory


def historical_arrays(times, u=3.0, v=0.0, levels=(850.0, 500.0)):
    """In-memory uwnd/vwnd DataArrays on a 1-degree 10x10 grid, lat ascending."""
    lats = np.arange(0.5, 10.0, 1.0)
    lons = np.arange(0.5, 10.0, 1.0)
    shape = (len(times), len(levels), lats.size, lons.size)
    coords = {"time": pd.to_datetime(times), "level": list(levels), "lat": lats, "lon": lons}
    dims = ("time", "level", "lat", "lon")
    uwnd = xr.DataArray(np.full(shape, u), coords=coords, dims=dims, name="uwnd")
    vwnd = xr.DataArray(np.full(shape, v), coords=coords, dims=dims, name="vwnd")
    return uwnd, vwnd


@pytest.fixture
def historical():
    times = pd.date_range("2022-05-24 00:00", periods=8, freq="6h")
    uwnd, vwnd = historical_arrays(times)
    return HistoricalDatasetProvider(uwnd, vwnd)


@pytest.fixture
def make_historical():
    """Factory for in-memory historical providers."""
    def factory(times, **kwargs):
        uwnd, vwnd = historical_arrays(pd.to_datetime(times), **kwargs)
        return HistoricalDatasetProvider(uwnd, vwnd)
    return factory


@pytest.fixture
def recording():
    """Calm 120x120 field that logs layer requests; big enough for long walks."""
    grid = Grid.from_bounds((0.0, 0.0, 120.0, 120.0), 1.0)
    return RecordingProvider(grid, 0.0, 0.0)


@pytest.fixture
def historical_files(tmp_path):
    """uwnd.nc/vwnd.nc on disk with two 6-hourly layers from 2022-05-24 00z."""
    times = pd.date_range("2022-05-24 00:00", periods=2, freq="6h")
    uwnd, vwnd = historical_arrays(times)
    paths = tmp_path / "uwnd.nc", tmp_path / "vwnd.nc"
    uwnd.to_dataset().to_netcdf(paths[0])
    vwnd.to_dataset().to_netcdf(paths[1])
    return paths
