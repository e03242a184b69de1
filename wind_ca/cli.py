"""
Command-line interface for the wind dispersal simulator.
"""

import argparse
import logging
import sys

from .config import SimulationConfig, load_config, origins_from
from .errors import ConfigurationError, WindCAError
from .progress import LoggingProgress
from .providers import ForecastDirectoryProvider, HistoricalDatasetProvider, StaticWindProvider
from .simulator import DispersalSimulator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stochastic cellular-automaton wind dispersal simulator"
    )
    
    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Configuration file (JSON) with SimulationConfig fields"
    )
    
    parser.add_argument(
        "--origin",
        action="append",
        metavar="LON,LAT",
        help="Start point (end point with --backwards); repeat for several origins"
    )
    
    source = parser.add_argument_group("wind source (pick one)")
    source.add_argument(
        "--forecast-dir",
        type=str,
        help="Forecast archive root laid out as <dir>/<YYYYMMDD>/<HH>/...fNNN..."
    )
    source.add_argument("--engine", type=str, help="xarray engine for forecast files (e.g. cfgrib)")
    source.add_argument("--uwnd", type=str, help="Historical uwnd NetCDF (6-hourly)")
    source.add_argument("--vwnd", type=str, help="Historical vwnd NetCDF (6-hourly)")
    source.add_argument(
        "--wind-speed",
        type=float,
        help="Uniform wind speed in m/s (with --bounds)"
    )
    source.add_argument(
        "--wind-direction",
        type=float,
        default=90.0,
        help="Uniform wind bearing the wind blows toward, 0=North (default: 90)"
    )
    source.add_argument(
        "--bounds",
        type=str,
        metavar="MINLON,MINLAT,MAXLON,MAXLAT",
        help="Extent of the uniform wind field"
    )
    source.add_argument(
        "--resolution",
        type=float,
        default=0.25,
        help="Uniform wind grid resolution in degrees (default: 0.25)"
    )
    
    parser.add_argument("--hours", dest="nforecast", type=int, help="Forecast hours to simulate (default: 24)")
    parser.add_argument("--nsim", type=int, help="Repetitions per origin (default: 10)")
    parser.add_argument("--date", dest="start_date", type=str, help="Start date YYYYMMDD")
    parser.add_argument("--hour", dest="start_hour", type=int, help="Start hour UTC")
    parser.add_argument("--cellsize", type=float, help="Cell size in meters (default: 25000)")
    parser.add_argument("--level", type=str, help="Atmospheric level (default: 850mb)")
    parser.add_argument("--backwards", action="store_true", default=None,
                        help="Run backwards from the origin as an end point")
    parser.add_argument("--full", action="store_true", default=None,
                        help="Write every trajectory snapshot to CSV")
    parser.add_argument("--parallel", action="store_true", default=None,
                        help="Distribute repetitions over worker processes")
    parser.add_argument("--workers", type=int, help="Worker processes (default: CPUs - 1)")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--log", dest="loglevel", default="INFO", help="Logging level (DEBUG/INFO/WARN)")
    parser.add_argument(
        "-o", "--output",
        type=str,
        default="wind_ca_output",
        help="Output filename prefix (default: wind_ca_output)"
    )
    return parser


def build_provider(args):
    """Pick the wind source from the command-line arguments."""
    if args.forecast_dir:
        return ForecastDirectoryProvider(args.forecast_dir, engine=args.engine)
    if args.uwnd or args.vwnd:
        if not (args.uwnd and args.vwnd):
            raise ConfigurationError("--uwnd and --vwnd must be given together")
        return HistoricalDatasetProvider.from_files(args.uwnd, args.vwnd)
    if args.wind_speed is not None:
        if not args.bounds:
            raise ConfigurationError("--wind-speed needs --bounds")
        try:
            bounds = tuple(float(v) for v in args.bounds.split(","))
        except ValueError:
            raise ConfigurationError(f"Bad --bounds '{args.bounds}'") from None
        if len(bounds) != 4:
            raise ConfigurationError("--bounds needs MINLON,MINLAT,MAXLON,MAXLAT")
        if not args.resolution > 0:
            raise ConfigurationError(f"--resolution must be positive, got {args.resolution}")
        return StaticWindProvider.uniform(bounds, args.resolution, args.wind_speed, args.wind_direction)
    raise ConfigurationError("No wind source: use --forecast-dir, --uwnd/--vwnd or --wind-speed")


def build_config(args) -> SimulationConfig:
    """Merge the JSON configuration (if any) with command-line overrides."""
    config = SimulationConfig.from_dict(load_config(args.config)) if args.config else SimulationConfig()
    return config.updated(
        origins=origins_from(args.origin) if args.origin else None,
        nforecast=args.nforecast,
        nsim=args.nsim,
        start_date=args.start_date,
        start_hour=args.start_hour,
        cellsize=args.cellsize,
        level=args.level,
        backwards=args.backwards,
        full=args.full,
        parallel=args.parallel,
        workers=args.workers,
        seed=args.seed,
    )


def main(argv=None):
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.loglevel.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )
    
    try:
        config = build_config(args)
        with build_provider(args) as provider:
            simulator = DispersalSimulator(provider, config)
            
            logging.info("=" * 60)
            logging.info("Wind dispersal simulation")
            logging.info("Origins: %s", ", ".join(f"({lon:.4f}, {lat:.4f})" for lon, lat in config.origins))
            logging.info("Hours: %d %s, repetitions: %d, cell size: %.0f m",
                         config.nforecast, "backwards" if config.backwards else "forwards",
                         config.nsim, config.cellsize)
            logging.info("=" * 60)
            
            simulator.run(progress=LoggingProgress())
        raster = simulator.generate_output(args.output)
    except WindCAError as e:
        logging.error("%s", e)
        sys.exit(1)
    
    stats = simulator.get_statistics()
    logging.info("Transitions: %d", stats["transitions"])
    logging.info("Visited cells: %d / %d (max %.0f visits)",
                 stats["visited_cells"], stats["total_cells"], stats["max_visits"])
    logging.info("Output files: %s.png, %s.pgw, %s.nc%s", args.output, args.output, args.output,
                 f", {args.output}_trajectories.csv" if config.full else "")
    return raster


if __name__ == "__main__":
    main()
