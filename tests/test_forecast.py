"""
Tests for forecast cycle resolution.
"""

from datetime import date

import pytest

from wind_ca import ConfigurationError, resolve_forecast_window
from wind_ca.forecast import nearest_cycle, parse_date


@pytest.mark.parametrize("hour, expected", [
    (0, (0, 0)),
    (5, (0, 5)),
    (6, (6, 0)),
    (11, (6, 5)),
    (17, (12, 5)),
    (18, (18, 0)),
    (23, (18, 5)),
])
def test_nearest_cycle(hour, expected):
    assert nearest_cycle(hour) == expected


def test_nearest_cycle_rejects_bad_hour():
    with pytest.raises(ConfigurationError):
        nearest_cycle(24)


def test_forward_window():
    window = resolve_forecast_window("20220524", 20, 24)
    assert window.cycle_date == date(2022, 5, 24)
    assert window.cycle_hour == 18
    assert window.difference == 2
    assert window.second_cycle_date is None
    # hour 1 reads the layer valid at the start hour
    assert window.lookup(1) == (date(2022, 5, 24), 18, 2)
    assert window.lookup(24) == (date(2022, 5, 24), 18, 25)


def test_backward_window_shifts_start_across_midnight():
    """Backward runs resolve the cycle from start - nforecast."""
    window = resolve_forecast_window("20220525", 3, 6, backwards=True)
    assert window.cycle_date == date(2022, 5, 24)
    assert window.cycle_hour == 18
    assert window.difference == 3


def test_backward_window_multi_day():
    window = resolve_forecast_window(date(2022, 5, 25), 12, 30, backwards=True)
    # 2022-05-25 12:00 - 30 h = 2022-05-24 06:00
    assert window.cycle_date == date(2022, 5, 24)
    assert window.cycle_hour == 6
    assert window.difference == 0


def test_stitched_second_cycle():
    """Hours 49-50 read the cycle two days later, offsets shifted by 48."""
    window = resolve_forecast_window("20220524", 18, 50)
    assert window.second_cycle_date == date(2022, 5, 26)
    assert window.lookup(48) == (date(2022, 5, 24), 18, 47)
    assert window.lookup(49) == (date(2022, 5, 26), 18, 0)
    assert window.lookup(50) == (date(2022, 5, 26), 18, 1)


def test_no_second_cycle_at_48_hours():
    window = resolve_forecast_window("20220524", 0, 48)
    assert window.second_cycle_date is None
    assert window.lookup(48) == (date(2022, 5, 24), 0, 47)


def test_lookup_starts_at_one():
    window = resolve_forecast_window("20220524", 0, 4)
    with pytest.raises(ValueError):
        window.lookup(0)


def test_parse_date_formats():
    assert parse_date("20220524") == date(2022, 5, 24)
    assert parse_date("2022-05-24") == date(2022, 5, 24)
    with pytest.raises(ConfigurationError):
        parse_date("24/05/2022")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
