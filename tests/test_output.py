"""
Tests for raster, NetCDF and trajectory output.
"""

import os

import numpy as np
import pandas as pd
import pytest
import xarray as xr

from wind_ca import DispersalSimulator, Grid, RasterOutput


@pytest.fixture
def density():
    values = np.full((4, 5), np.nan)
    values[1, 2] = 3.0
    values[3, 0] = 1.0
    return Grid(values, west=10.0, north=50.0, xres=0.5, yres=0.25)


def test_world_file(density, tmp_path):
    prefix = str(tmp_path / "density")
    RasterOutput(density).save_raster(prefix)
    
    assert os.path.exists(prefix + ".png")
    with open(prefix + ".pgw") as f:
        lines = [float(line) for line in f.read().split()]
    assert lines == [0.5, 0.0, 0.0, -0.25, 10.25, 49.875]


def test_log_scale_for_large_counts(tmp_path):
    values = np.full((3, 3), np.nan)
    values[1, 1] = 500.0
    values[0, 0] = 2.0
    grid = Grid(values, west=0.0, north=3.0, xres=1.0, yres=1.0)
    prefix = str(tmp_path / "busy")
    RasterOutput(grid).save_raster(prefix, colormap="hot")
    assert os.path.exists(prefix + ".png")


def test_netcdf_roundtrip(density, tmp_path):
    path = RasterOutput(density).save_netcdf(str(tmp_path / "density"))
    assert path.endswith(".nc")
    
    with xr.open_dataset(path) as ds:
        grid = ds["density"].load()
    np.testing.assert_allclose(grid["lon"].values, [10.25, 10.75, 11.25, 11.75, 12.25])
    np.testing.assert_allclose(grid["lat"].values, [49.875, 49.625, 49.375, 49.125])
    assert grid.values[1, 2] == 3.0
    assert np.isnan(grid.values[0, 0])


def test_trajectory_csv(tmp_path):
    table = pd.DataFrame({
        "lon": [5.5, 6.5], "lat": [4.5, 4.5], "repetition": [1, 1],
        "forecast_hour": [0, 1], "origin_lon": [5.5, 5.5], "origin_lat": [4.5, 4.5],
    })
    path = RasterOutput.save_trajectories(table, str(tmp_path / "run"))
    assert path.endswith("_trajectories.csv")
    pd.testing.assert_frame_equal(pd.read_csv(path), table)
    assert RasterOutput.save_trajectories(None, str(tmp_path / "none")) is None


def test_grid_statistics(density):
    stats = RasterOutput(density).get_grid_statistics()
    assert stats == {
        "total_visits": 4.0,
        "max_visits": 3.0,
        "visited_cells": 2,
        "total_cells": 20,
    }


def test_empty_grid_statistics():
    grid = Grid(np.full((2, 2), np.nan), west=0.0, north=2.0, xres=1.0, yres=1.0)
    stats = RasterOutput(grid).get_grid_statistics()
    assert stats["visited_cells"] == 0
    assert stats["max_visits"] == 0.0


def test_generate_output(east_wind, make_config, tmp_path):
    sim = DispersalSimulator(east_wind, make_config(jitter=0.0, full=True))
    with pytest.raises(RuntimeError):
        sim.generate_output(str(tmp_path / "early"))
    
    sim.run()
    prefix = str(tmp_path / "run")
    raster = sim.generate_output(prefix)
    
    for suffix in (".png", ".pgw", ".nc", "_trajectories.csv"):
        assert os.path.exists(prefix + suffix)
    assert raster.grid[5, 6] == 1
    assert len(pd.read_csv(prefix + "_trajectories.csv")) == 2
