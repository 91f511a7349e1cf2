# SPDX-License-Identifier: MIT

from typing import Optional

import pendulum

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS


def now_ms() -> int:
    return datetime_to_ms(pendulum.now("UTC"))


def datetime_to_ms(datetime: pendulum.DateTime) -> int:
    return int(datetime.timestamp() * 1000)


def ms_to_datetime(ms: int) -> pendulum.DateTime:
    return pendulum.from_timestamp(ms / 1000, tz="UTC")


def ms_to_display_local_datetime_str(ms: int) -> str:
    return ms_to_datetime(ms).in_tz("local").format("MMM-DD ddd HH:mm")


def format_duration(
    ms: Optional[int],
    show_seconds: bool = True,
    compact: bool = False,
    show_days: bool = False,
) -> str:
    """
    Format a millisecond duration for display.

    format_duration(8130000) -> "02:15:30"
    format_duration(8130000, compact=True) -> "2h 15m 30s"
    format_duration(90061000, show_days=True) -> "1d 01:01:01"
    """
    if ms is None or ms < 0:
        return "0m" if compact else "00:00"

    total_seconds = ms // SECOND_MS
    days = total_seconds // (24 * 60 * 60)
    hours = (total_seconds % (24 * 60 * 60)) // (60 * 60)
    minutes = (total_seconds % (60 * 60)) // 60
    seconds = total_seconds % 60

    if compact:
        parts = []
        if show_days and days > 0:
            parts.append(f"{days}d")
        if hours > 0 or (show_days and days > 0):
            parts.append(f"{hours}h")
        parts.append(f"{minutes}m")
        if show_seconds:
            parts.append(f"{seconds}s")
        return " ".join(parts)

    if show_days and days > 0:
        if show_seconds:
            return f"{days}d {hours:02d}:{minutes:02d}:{seconds:02d}"
        return f"{days}d {hours:02d}:{minutes:02d}"

    total_hours = days * 24 + hours
    if show_seconds:
        return f"{total_hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{total_hours:02d}:{minutes:02d}"


def duration_to_str_optional(ms: Optional[int]) -> Optional[str]:
    if ms is None:
        return None
    return format_duration(ms, show_seconds=False)


def duration_from_str(duration: str) -> int:
    """Parse an 'H:MM' duration into milliseconds."""
    hours, minutes = map(int, duration.split(":"))
    return int(pendulum.duration(hours=hours, minutes=minutes).total_seconds() * 1000)
