# SPDX-License-Identifier: MIT

from enum import StrEnum
from typing import NotRequired, Optional, TypedDict

from taskclock.model.time_entry import TimeEntry
from taskclock.model.timer import TaskState

LIMIT_EXCEEDED = "LIMIT_EXCEEDED"


class TimerError(StrEnum):
    ALREADY_RUNNING = "ALREADY_RUNNING"
    NO_ACTIVE_TIMER = "NO_ACTIVE_TIMER"
    NO_ACTIVE_TIMER_FOR_ITEM = "NO_ACTIVE_TIMER_FOR_ITEM"
    MAX_ITEMS_EXCEEDED = "MAX_ITEMS_EXCEEDED"
    TIMER_PAUSED = "TIMER_PAUSED"
    NOT_PAUSED = "NOT_PAUSED"
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    INVALID_PATCH = "INVALID_PATCH"
    LIMIT_EXCEEDED = LIMIT_EXCEEDED
    STORAGE_ERROR = "STORAGE_ERROR"


ERROR_MESSAGES: dict[TimerError, str] = {
    TimerError.ALREADY_RUNNING: "Timer already running",
    TimerError.NO_ACTIVE_TIMER: "No active timer",
    TimerError.NO_ACTIVE_TIMER_FOR_ITEM: "No active timer for this item",
    TimerError.MAX_ITEMS_EXCEEDED: "Too many tracked checklist items",
    TimerError.TIMER_PAUSED: "Timer is paused, resume or stop it first",
    TimerError.NOT_PAUSED: "Timer is not paused",
    TimerError.ENTRY_NOT_FOUND: "Entry not found",
    TimerError.INVALID_PATCH: "Invalid entry update",
    TimerError.LIMIT_EXCEEDED: "Storage limit reached. Try shortening descriptions.",
    TimerError.STORAGE_ERROR: "Save failed",
}


class WriteResult(TypedDict):
    success: bool
    size: int
    error: NotRequired[str]


class StorageUsage(TypedDict):
    size: int
    limit: int
    percent: int
    is_near_limit: bool


class SaveResult(TypedDict):
    success: bool
    archived_count: NotRequired[int]
    recent_count: NotRequired[int]
    page_count: NotRequired[int]
    error: NotRequired[str]
    warnings: list[str]
    dropped_ids: NotRequired[list[str]]


class ChangeResult(TypedDict):
    success: bool
    found: bool
    entries: NotRequired[list[TimeEntry]]
    old_entry: NotRequired[TimeEntry]
    new_entry: NotRequired[Optional[TimeEntry]]
    error: NotRequired[str]
    warnings: NotRequired[list[str]]


class ArchiveSnapshot(TypedDict):
    entries: list[TimeEntry]
    recent_count: int
    pages_read: int
    dropped: int
    migration_pending: bool


class StorageStats(TypedDict):
    total_entries: int
    recent_entries: int
    archived_entries: int
    metadata_size: int
    metadata_percent: int
    recent_size: int
    recent_percent: int
    archive_size: int
    archive_pages: int
    estimated_capacity: int


class TimerResult(TypedDict):
    success: bool
    data: NotRequired[TaskState]
    entry: NotRequired[TimeEntry]
    error: NotRequired[TimerError]
    message: NotRequired[str]
    stopped_item_ids: NotRequired[list[str]]
    stopped_global: NotRequired[bool]
    warnings: NotRequired[list[str]]
