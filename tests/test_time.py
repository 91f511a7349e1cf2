# tests/test_time.py

import pendulum

from taskclock.time import (
    HOUR_MS,
    MINUTE_MS,
    datetime_to_ms,
    duration_from_str,
    duration_to_str_optional,
    format_duration,
    ms_to_datetime,
)


def test_format_duration() -> None:
    assert format_duration(8_130_000) == "02:15:30"
    assert format_duration(8_130_000, show_seconds=False) == "02:15"
    assert format_duration(8_130_000, compact=True) == "2h 15m 30s"
    assert format_duration(90_061_000, show_days=True) == "1d 01:01:01"
    assert format_duration(90_061_000) == "25:01:01"


def test_format_duration_edge_cases() -> None:
    assert format_duration(None) == "00:00"
    assert format_duration(-5) == "00:00"
    assert format_duration(None, compact=True) == "0m"
    assert format_duration(45 * MINUTE_MS, compact=True, show_seconds=False) == "45m"


def test_duration_from_str() -> None:
    assert duration_from_str("1:30") == HOUR_MS + 30 * MINUTE_MS
    assert duration_from_str("0:05") == 5 * MINUTE_MS
    assert duration_to_str_optional(None) is None
    assert duration_to_str_optional(HOUR_MS) == "01:00"


def test_millisecond_conversions() -> None:
    moment = pendulum.datetime(2024, 3, 1, 12, 30, tz="UTC")

    ms = datetime_to_ms(moment)

    assert ms == 1_709_296_200_000
    assert ms_to_datetime(ms) == moment
