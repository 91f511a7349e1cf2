# SPDX-License-Identifier: MIT

from typing import Optional

from taskclock.model.entity_id import generate_entry_id
from taskclock.model.time_entry import TimeEntry

DEFAULT_MAX_DESCRIPTION_LENGTH = 120


def get_time_entry_template(
    start_time: int,
    end_time: int,
    paused_duration: int = 0,
    description: Optional[str] = None,
    checklist_item_id: Optional[str] = None,
    member_id: Optional[str] = None,
    max_description_length: int = DEFAULT_MAX_DESCRIPTION_LENGTH,
) -> TimeEntry:
    # end_time stays strictly after start_time, even for a stop in the same millisecond.
    end_time = max(end_time, start_time + 1)
    return {
        "id": generate_entry_id(),
        "start_time": start_time,
        "end_time": end_time,
        "duration": max(0, end_time - start_time - paused_duration),
        "description": (description or "")[:max_description_length],
        "created_at": end_time,
        "checklist_item_id": checklist_item_id,
        "member_id": member_id,
    }
