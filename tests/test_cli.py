"""
Tests for the command-line interface.
"""

import json
import os

import pandas as pd
import pytest

from wind_ca.cli import build_config, build_parser, main


def test_uniform_wind_run(tmp_path):
    prefix = str(tmp_path / "run")
    raster = main([
        "--wind-speed", "5", "--bounds", "0,0,10,10", "--resolution", "1",
        "--origin", "5.5,4.5", "--hours", "3", "--nsim", "2", "--seed", "1",
        "--cellsize", "18000", "--full", "-o", prefix,
    ])
    
    for suffix in (".png", ".pgw", ".nc", "_trajectories.csv"):
        assert os.path.exists(prefix + suffix)
    table = pd.read_csv(prefix + "_trajectories.csv")
    assert set(table["repetition"]) == {1, 2}
    assert raster.get_grid_statistics()["total_visits"] == len(table) - 2


def test_config_file_with_overrides(tmp_path):
    config_file = tmp_path / "run.json"
    config_file.write_text(json.dumps({
        "origins": [[1.5, 2.5]],
        "nforecast": 12,
        "nsim": 4,
        "level": "500mb",
    }))
    args = build_parser().parse_args([
        "--config", str(config_file), "--nsim", "7", "--origin", "3.0,4.0", "--backwards",
    ])
    config = build_config(args)
    assert config.nforecast == 12
    assert config.level == "500mb"
    assert config.nsim == 7
    assert config.origins == ((3.0, 4.0),)
    assert config.backwards
    assert not config.full


def test_missing_wind_source_exits(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["--origin", "5.5,4.5", "-o", str(tmp_path / "none")])
    assert excinfo.value.code == 1


def test_bad_origin_exits(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main([
            "--wind-speed", "5", "--bounds", "0,0,10,10", "--resolution", "1",
            "--origin", "east", "-o", str(tmp_path / "bad"),
        ])
    assert excinfo.value.code == 1


def test_origin_outside_bounds_exits(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main([
            "--wind-speed", "5", "--bounds", "0,0,10,10", "--resolution", "1",
            "--origin", "40,40", "-o", str(tmp_path / "outside"),
        ])
    assert excinfo.value.code == 1


@pytest.mark.parametrize("resolution", ["0", "-0.5"])
def test_non_positive_resolution_exits(tmp_path, resolution):
    with pytest.raises(SystemExit) as excinfo:
        main([
            "--wind-speed", "5", "--bounds", "0,0,10,10", "--resolution", resolution,
            "--origin", "5.5,4.5", "-o", str(tmp_path / "res"),
        ])
    assert excinfo.value.code == 1


def test_historical_files_run(historical_files, tmp_path):
    uwnd_path, vwnd_path = historical_files
    prefix = str(tmp_path / "hist")
    raster = main([
        "--uwnd", str(uwnd_path), "--vwnd", str(vwnd_path),
        "--date", "20220524", "--hour", "0", "--hours", "6",
        "--origin", "4.5,4.5", "--nsim", "2", "--seed", "3", "-o", prefix,
    ])
    assert os.path.exists(prefix + ".nc")
    assert raster.get_grid_statistics()["total_visits"] > 0
