"""
Wind field providers.

A provider hands the simulator the u/v component grids for a forecast
cycle and hour offset. The engine is identical for every data source; only
the provider changes:

- ForecastDirectoryProvider reads per-offset forecast files laid out as
  <data_path>/<YYYYMMDD>/<HH>/...fNNN...
- HistoricalDatasetProvider reads 6-hourly reanalysis layers (uwnd/vwnd)
- StaticWindProvider serves one time-invariant field
"""

import logging
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import xarray as xr

from .atmosphere import WindLayer, components_from_bearing
from .errors import ConfigurationError, DataNotFound
from .forecast import ForecastWindow, cycle_label
from .grid import Grid

logger = logging.getLogger(__name__)

# Variable and dimension names seen in GFS, NCEP/NCAR reanalysis and CF files
U_NAMES = ("u", "ugrd", "UGRD", "uwnd", "u_component_of_wind", "UGRD_P0_L100_GLL0")
V_NAMES = ("v", "vgrd", "VGRD", "vwnd", "v_component_of_wind", "VGRD_P0_L100_GLL0")
LEVEL_DIMS = ("level", "isobaricInhPa", "lev", "plev", "pressure", "lv_ISBL0")
LAT_NAMES = ("lat", "latitude", "lat_0", "y")
LON_NAMES = ("lon", "longitude", "lon_0", "x")

FORECAST_TOKEN = re.compile(r"\.f(\d{3})(?=\.|$)")


def parse_level(level: Union[str, float, None]) -> Optional[float]:
    """
    Pressure level in hPa from labels such as '850mb' or '850 hPa'.
    
    Returns None when no level is requested.
    """
    if level is None:
        return None
    if isinstance(level, (int, float)):
        return float(level)
    match = re.match(r"^\s*([0-9.]+)\s*(mb|hpa)?\s*$", str(level), re.IGNORECASE)
    if not match:
        raise ConfigurationError(f"Unrecognised atmospheric level '{level}'")
    return float(match.group(1))


def _first_present(names: Sequence[str], available) -> Optional[str]:
    for name in names:
        if name in available:
            return name
    return None


def _select_level(da: xr.DataArray, level: Optional[float], source: str) -> xr.DataArray:
    dim = _first_present(LEVEL_DIMS, da.dims)
    if dim is None:
        return da
    if level is None:
        if da.sizes[dim] == 1:
            return da.isel({dim: 0})
        raise ConfigurationError(
            f"{source} has {da.sizes[dim]} levels along '{dim}'; an atmospheric level is required"
        )
    levels = np.asarray(da[dim].values, dtype=float)
    match = np.nonzero(np.isclose(levels, level))[0]
    if match.size == 0:
        raise DataNotFound(f"Level {level:g} not available in {source} (have {levels.tolist()})")
    return da.isel({dim: int(match[0])})


def data_array_to_grid(da: xr.DataArray) -> Grid:
    """Convert a 2D lat/lon DataArray (extra length-1 dims allowed) to a Grid."""
    lat = _first_present(LAT_NAMES, da.dims)
    lon = _first_present(LON_NAMES, da.dims)
    if lat is None or lon is None:
        raise DataNotFound(f"No latitude/longitude dimensions in {da.name!r} {da.dims}")
    extra = [d for d in da.dims if d not in (lat, lon)]
    for dim in extra:
        if da.sizes[dim] != 1:
            raise DataNotFound(f"Unexpected dimension '{dim}' of size {da.sizes[dim]} in {da.name!r}")
    da = da.squeeze(extra, drop=True).transpose(lat, lon)
    return Grid.from_coords(da[lon].values, da[lat].values, da.values)


class WindFieldProvider(ABC):
    """Source of u/v wind components for the simulator."""
    
    @abstractmethod
    def get_wind_layer(
        self,
        cycle_date: date,
        cycle_hour: int,
        offset: int,
        level: Union[str, float, None] = None
    ) -> WindLayer:
        """
        Wind components for a forecast cycle and hour offset.
        
        Raises:
            DataNotFound: nothing backs the requested cycle/offset/level
        """
    
    def template(self, window: ForecastWindow, level: Union[str, float, None] = None) -> Grid:
        """Zero grid with the georeference every layer of the run shares."""
        cycle_date, cycle_hour, offset = window.lookup(1)
        return self.get_wind_layer(cycle_date, cycle_hour, offset, level).u.zeros()
    
    def close(self):
        """Release any files held open by the provider."""
    
    def __enter__(self):
        return self
    
    def __exit__(self, *exc):
        self.close()


def forecast_files(path: Path) -> Dict[int, Path]:
    """Map forecast offsets (hours) to the files in one cycle directory."""
    files = {}
    for entry in sorted(Path(path).iterdir()):
        if not entry.is_file() or entry.name.endswith(".idx"):
            continue
        match = FORECAST_TOKEN.search(entry.name)
        if match:
            files.setdefault(int(match.group(1)), entry)
    return files


class ForecastDirectoryProvider(WindFieldProvider):
    """
    Forecast files organised by cycle.
    
    Each cycle lives in <data_path>/<YYYYMMDD>/<HH>/ and holds one file per
    forecast offset, named with a '.fNNN' token as GFS products are
    (gfs.t18z.pgrb2.0p25.f003, gfs.t18z.f003.nc, ...).
    """
    
    def __init__(
        self,
        data_path: Union[str, Path],
        engine: Optional[str] = None,
        u_name: Optional[str] = None,
        v_name: Optional[str] = None
    ):
        """
        Args:
            data_path: Root directory of the forecast archive
            engine: xarray backend engine (e.g. 'cfgrib' for GRIB2 files)
            u_name: Variable holding the eastward component (autodetected if None)
            v_name: Variable holding the northward component (autodetected if None)
        """
        self.data_path = Path(data_path)
        self.engine = engine
        self.u_name = u_name
        self.v_name = v_name
        self._index: Dict[Path, Dict[int, Path]] = {}
    
    def cycle_path(self, cycle_date: date, cycle_hour: int) -> Path:
        return self.data_path / cycle_date.strftime("%Y%m%d") / cycle_label(cycle_hour)
    
    def _files(self, path: Path) -> Dict[int, Path]:
        if path not in self._index:
            if not path.is_dir():
                raise DataNotFound(f"No forecast cycle directory {path}")
            self._index[path] = forecast_files(path)
            logger.debug("Indexed %d forecast files in %s", len(self._index[path]), path)
        return self._index[path]
    
    def get_wind_layer(self, cycle_date, cycle_hour, offset, level=None) -> WindLayer:
        path = self.cycle_path(cycle_date, cycle_hour)
        files = self._files(path)
        if offset not in files:
            raise DataNotFound(f"No forecast file for f{offset:03d} in {path}")
        filename = files[offset]
        hpa = parse_level(level)
        
        logger.debug("Reading %s (level %s)", filename, level)
        with xr.open_dataset(filename, engine=self.engine) as ds:
            u_name = self.u_name or _first_present(U_NAMES, ds.data_vars)
            v_name = self.v_name or _first_present(V_NAMES, ds.data_vars)
            if u_name not in ds.data_vars or v_name not in ds.data_vars:
                raise DataNotFound(f"No u/v wind variables in {filename}")
            u = _select_level(ds[u_name], hpa, str(filename)).load()
            v = _select_level(ds[v_name], hpa, str(filename)).load()
        return WindLayer(data_array_to_grid(u), data_array_to_grid(v))


class HistoricalDatasetProvider(WindFieldProvider):
    """
    Reanalysis winds stored as 6-hourly layers along a time dimension.
    
    A request for cycle time T and offset h (hour index f - 1) reads the
    layer stamped T + step_hours * floor((h + 1) / step_hours), so the
    layer changes on hour indices 6, 12, 18 and so on.
    """
    
    def __init__(self, u: xr.DataArray, v: xr.DataArray, step_hours: int = 6):
        if "time" not in u.dims or "time" not in v.dims:
            raise ConfigurationError("Historical wind data needs a 'time' dimension")
        if u.sizes["time"] != v.sizes["time"]:
            raise DataNotFound("u and v historical datasets cover different times")
        self.u = u
        self.v = v
        self.step_hours = step_hours
        self._datasets: Tuple[xr.Dataset, ...] = ()
        self._times = np.asarray(u["time"].values, dtype="datetime64[ns]")
    
    @classmethod
    def from_files(
        cls,
        uwnd_path: Union[str, Path],
        vwnd_path: Union[str, Path],
        u_var: str = "uwnd",
        v_var: str = "vwnd",
        step_hours: int = 6
    ) -> "HistoricalDatasetProvider":
        """Open NCEP/NCAR-style uwnd/vwnd NetCDF files."""
        for path in (uwnd_path, vwnd_path):
            if not Path(path).exists():
                raise DataNotFound(f"Wind file not found: {path}")
        u_ds = xr.open_dataset(uwnd_path)
        v_ds = xr.open_dataset(vwnd_path)
        try:
            if u_var not in u_ds.data_vars or v_var not in v_ds.data_vars:
                raise DataNotFound(f"Variables '{u_var}'/'{v_var}' missing from {uwnd_path}/{vwnd_path}")
            provider = cls(u_ds[u_var], v_ds[v_var], step_hours=step_hours)
        except (ConfigurationError, DataNotFound):
            u_ds.close()
            v_ds.close()
            raise
        # layers stay lazy; close() releases the files
        provider._datasets = (u_ds, v_ds)
        return provider
    
    def close(self):
        for ds in self._datasets:
            ds.close()
        self._datasets = ()
    
    def layer_index(self, cycle_date: date, cycle_hour: int, offset: int) -> int:
        cycle_time = datetime.combine(cycle_date, datetime.min.time()) + timedelta(hours=cycle_hour)
        start = np.nonzero(self._times == np.datetime64(cycle_time, "ns"))[0]
        if start.size == 0:
            raise DataNotFound(f"No historical layer for {cycle_time:%Y%m%d%H}")
        index = int(start[0]) + (offset + 1) // self.step_hours
        if not 0 <= index < self._times.size:
            raise DataNotFound(
                f"Historical data ends before {cycle_time:%Y%m%d%H} + {offset} h"
            )
        return index
    
    def get_wind_layer(self, cycle_date, cycle_hour, offset, level=None) -> WindLayer:
        index = self.layer_index(cycle_date, cycle_hour, offset)
        hpa = parse_level(level)
        u = _select_level(self.u.isel(time=index), hpa, "historical u")
        v = _select_level(self.v.isel(time=index), hpa, "historical v")
        logger.debug("Historical layer %s for offset %d", str(self._times[index])[:13], offset)
        return WindLayer(data_array_to_grid(u.load()), data_array_to_grid(v.load()))


class StaticWindProvider(WindFieldProvider):
    """The same wind field for every hour and level."""
    
    def __init__(self, grid: Grid, u, v):
        """
        Args:
            grid: Georeference of the field
            u: Eastward component, scalar or array shaped like grid (m/s)
            v: Northward component, scalar or array shaped like grid (m/s)
        """
        self.layer = WindLayer(
            grid.with_values(np.broadcast_to(np.asarray(u, dtype=float), grid.shape)),
            grid.with_values(np.broadcast_to(np.asarray(v, dtype=float), grid.shape)),
        )
    
    @classmethod
    def uniform(
        cls,
        bounds: Tuple[float, float, float, float],
        resolution: float,
        speed: float,
        bearing: float
    ) -> "StaticWindProvider":
        """
        Uniform wind over a bounding box.
        
        Args:
            bounds: (min_lon, min_lat, max_lon, max_lat) in degrees
            resolution: Cell size in degrees
            speed: Wind speed (m/s)
            bearing: Direction the wind blows toward (degrees, 0=North)
        """
        u, v = components_from_bearing(speed, bearing)
        return cls(Grid.from_bounds(bounds, resolution), u, v)
    
    def get_wind_layer(self, cycle_date, cycle_hour, offset, level=None) -> WindLayer:
        return self.layer
    
    def template(self, window, level=None) -> Grid:
        return self.layer.u.zeros()
