# SPDX-License-Identifier: MIT

from typing import Optional, TypedDict

from taskclock.model.entity_id import EntityId


class TimeEntry(TypedDict):
    id: EntityId
    start_time: int  # epoch ms
    end_time: int  # epoch ms
    duration: int  # ms, paused time excluded
    description: str
    created_at: int  # sort key, newest first
    checklist_item_id: Optional[str]
    member_id: Optional[str]


class EntryPatch(TypedDict, total=False):
    duration: int
    description: str
    checklist_item_id: Optional[str]
