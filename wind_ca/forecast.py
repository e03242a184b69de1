"""
Forecast cycle resolution.

Forecast models are issued four times a day (00, 06, 12, 18 UTC). A run
starting at an arbitrary hour reads the latest cycle at or before that hour
and indexes its layers by the hours elapsed since the cycle started.
Horizons longer than 48 hours are stitched onto a second cycle two days
later.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Tuple, Union

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CYCLE_HOURS = (0, 6, 12, 18)
STITCH_HOURS = 48  # hours covered by the first cycle before stitching


def parse_date(value: Union[str, date]) -> date:
    """Accept a date object or a YYYYMMDD / YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in ("%Y%m%d", "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ConfigurationError(f"Unrecognised date '{value}' (expected YYYYMMDD)")


def cycle_label(hour: int) -> str:
    """Two-digit cycle label, e.g. 6 -> '06'."""
    return f"{hour:02d}"


def nearest_cycle(hour: int) -> Tuple[int, int]:
    """
    Latest forecast cycle at or before an hour of the day.
    
    Returns:
        Tuple of (cycle_hour, difference) where difference = hour - cycle_hour
    """
    if not 0 <= hour < 24:
        raise ConfigurationError(f"Hour must be in [0, 24), got {hour}")
    cycle = max(c for c in CYCLE_HOURS if c <= hour)
    return cycle, hour - cycle


@dataclass(frozen=True)
class ForecastWindow:
    """Which forecast cycle(s) back a run and how hours map onto them."""
    
    cycle_date: date
    cycle_hour: int
    difference: int
    nforecast: int
    second_cycle_date: Optional[date] = None
    
    @property
    def start(self) -> datetime:
        """Nominal start of hour index 1 (cycle time plus difference)."""
        return datetime.combine(self.cycle_date, datetime.min.time()) + timedelta(
            hours=self.cycle_hour + self.difference
        )
    
    def lookup(self, hour: int) -> Tuple[date, int, int]:
        """
        Forecast layer that drives a 1-based hour index.
        
        Hour 1 reads the layer valid at the run start, i.e. forecast offset
        `difference`. Hours past 48 read the second cycle, whose offsets
        start 48 hours later.
        
        Returns:
            Tuple of (cycle_date, cycle_hour, forecast_offset)
        """
        if hour < 1:
            raise ValueError(f"Hour index starts at 1, got {hour}")
        offset = hour - 1 + self.difference
        if hour > STITCH_HOURS and self.second_cycle_date is not None:
            return self.second_cycle_date, self.cycle_hour, offset - STITCH_HOURS
        return self.cycle_date, self.cycle_hour, offset


def resolve_forecast_window(
    start_date: Union[str, date],
    start_hour: int,
    nforecast: int,
    backwards: bool = False
) -> ForecastWindow:
    """
    Resolve the forecast cycle(s) covering a simulation horizon.
    
    Args:
        start_date: Nominal start date (end date when running backwards)
        start_hour: Hour of the day (UTC)
        nforecast: Horizon length in hours
        backwards: Shift the start back by the horizon before resolving
    
    Returns:
        ForecastWindow describing the cycle, offset and optional second cycle
    """
    day = parse_date(start_date)
    start_hour = int(start_hour)
    if not 0 <= start_hour < 24:
        raise ConfigurationError(f"Start hour must be in [0, 24), got {start_hour}")
    
    if backwards:
        shifted = datetime.combine(day, datetime.min.time()) + timedelta(
            hours=start_hour - nforecast
        )
        day, start_hour = shifted.date(), shifted.hour
    
    cycle, difference = nearest_cycle(start_hour)
    second = day + timedelta(days=2) if nforecast > STITCH_HOURS else None
    window = ForecastWindow(
        cycle_date=day,
        cycle_hour=cycle,
        difference=difference,
        nforecast=nforecast,
        second_cycle_date=second,
    )
    logger.debug(
        "Forecast cycle %s %sz, offset %d h%s",
        day.strftime("%Y%m%d"), cycle_label(cycle), difference,
        f", stitched with {second.strftime('%Y%m%d')}" if second else "",
    )
    return window
