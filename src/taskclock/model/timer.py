# SPDX-License-Identifier: MIT

from enum import StrEnum
from typing import NotRequired, Optional, TypedDict

from taskclock.model.time_entry import TimeEntry


class TimerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class CurrentEntry(TypedDict):
    start_time: int
    paused_duration: int
    paused_at: NotRequired[Optional[int]]  # only set while paused


class ScopeTimer(TypedDict):
    """
    Timer context for either the task as a whole or one checklist item.

    state is IDLE exactly when current_entry is None; the metadata
    normalizer enforces this for anything read back from storage.
    """

    state: TimerState
    current_entry: Optional[CurrentEntry]
    estimated_time: Optional[int]
    total_time: int
    entry_count: int


class TaskTimers(TypedDict):
    schema_version: int
    global_timer: ScopeTimer
    manual_estimate_set: bool
    checklist_totals: dict[str, ScopeTimer]


class TaskState(TypedDict):
    timers: TaskTimers
    entries: list[TimeEntry]
