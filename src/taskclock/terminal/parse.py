# SPDX-License-Identifier: MIT

import re
from typing import Optional

import typer

from taskclock.time import HOUR_MS, MINUTE_MS, duration_from_str

_UNIT_DURATION = re.compile(r"^(?:(\d+)h)?\s*(?:(\d+)m)?$")


def parse_duration(duration_param: Optional[str]) -> Optional[int]:
    """
    Parse a duration into milliseconds.

    Accepts H:MM ("1:30"), unit form ("90m", "1h30m", "2h"), or a plain
    number of minutes ("45").

    Raises:
        typer.BadParameter: If the format is not recognized
    """
    if duration_param is None:
        return None

    duration = str(duration_param).strip().lower()

    time_match = re.match(r"^(\d+):(\d{2})$", duration)
    if time_match:
        minutes = int(time_match.group(2))
        if minutes > 59:
            raise typer.BadParameter(f"Minutes must be between 0 and 59, got {minutes}")
        return duration_from_str(duration)

    if re.match(r"^\d+$", duration):
        return int(duration) * MINUTE_MS

    unit_match = _UNIT_DURATION.match(duration)
    if unit_match and (unit_match.group(1) or unit_match.group(2)):
        hours = int(unit_match.group(1) or 0)
        minutes = int(unit_match.group(2) or 0)
        return hours * HOUR_MS + minutes * MINUTE_MS

    raise typer.BadParameter(
        f"Incorrect duration format '{duration_param}', use H:MM, 90m, 1h30m or minutes"
    )
