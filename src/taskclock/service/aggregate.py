# SPDX-License-Identifier: MIT

from copy import deepcopy
from typing import Iterable, Optional, TypedDict

import pendulum

from taskclock.model.result import StorageUsage
from taskclock.model.time_entry import TimeEntry
from taskclock.model.timer import ScopeTimer, TaskTimers, TimerState
from taskclock.repository.codec import encode_entries
from taskclock.repository.metadata import convert_timers_for_serialization
from taskclock.storage.bounded import DEFAULT_STORAGE_LIMIT, calculate_usage
from taskclock.template.timer import get_scope_timer_template
from taskclock.time import ms_to_datetime


class EstimateProgress(TypedDict):
    percent: int
    remaining: int
    is_over_budget: bool


class TotalsMismatch(TypedDict):
    item_id: Optional[str]
    stored_total: int
    actual_total: int
    stored_count: int
    actual_count: int


def sum_durations(entries: Iterable[TimeEntry]) -> int:
    return sum(max(0, entry["duration"]) for entry in entries)


def total_time(entries: Iterable[TimeEntry]) -> int:
    return sum_durations(entries)


def item_total_time(entries: Iterable[TimeEntry], item_id: str) -> int:
    return sum_durations(
        entry for entry in entries if entry["checklist_item_id"] == item_id
    )


def totals_by_scope(
    entries: Iterable[TimeEntry],
) -> dict[Optional[str], tuple[int, int]]:
    """
    (total_time, entry_count) keyed by checklist item id. The None key is
    the task as a whole and counts every entry, linked or not.
    """
    totals: dict[Optional[str], tuple[int, int]] = {None: (0, 0)}
    for entry in entries:
        duration = max(0, entry["duration"])
        keys: list[Optional[str]] = [None]
        if entry["checklist_item_id"] is not None:
            keys.append(entry["checklist_item_id"])
        for key in keys:
            total, count = totals.get(key, (0, 0))
            totals[key] = (total + duration, count + 1)
    return totals


def recompute_totals(timers: TaskTimers, entries: list[TimeEntry]) -> TaskTimers:
    recomputed = deepcopy(timers)
    totals = totals_by_scope(entries)

    global_total, global_count = totals[None]
    recomputed["global_timer"]["total_time"] = global_total
    recomputed["global_timer"]["entry_count"] = global_count

    checklist_totals = recomputed["checklist_totals"]
    for item_id in totals:
        if item_id is not None and item_id not in checklist_totals:
            checklist_totals[item_id] = get_scope_timer_template()
    for item_id, scope in checklist_totals.items():
        scope["total_time"], scope["entry_count"] = totals.get(item_id, (0, 0))
    return recomputed


def apply_entry_change(
    timers: TaskTimers,
    old_entry: Optional[TimeEntry],
    new_entry: Optional[TimeEntry],
) -> TaskTimers:
    """
    Move one entry's contribution: subtract old_entry, add new_entry. Either
    side may be None, covering creation, deletion and edits that change the
    duration or the linked checklist item.
    """
    for entry, sign in ((old_entry, -1), (new_entry, 1)):
        if entry is None:
            continue
        scopes = [timers["global_timer"]]
        item_id = entry["checklist_item_id"]
        if item_id is not None:
            if item_id not in timers["checklist_totals"]:
                timers["checklist_totals"][item_id] = get_scope_timer_template()
            scopes.append(timers["checklist_totals"][item_id])
        for scope in scopes:
            scope["total_time"] = max(0, scope["total_time"] + sign * max(0, entry["duration"]))
            scope["entry_count"] = max(0, scope["entry_count"] + sign)
    return timers


def get_running_item_ids(timers: TaskTimers) -> list[str]:
    return [
        item_id
        for item_id, scope in timers["checklist_totals"].items()
        if scope["state"] == TimerState.RUNNING
    ]


def get_running_item(timers: TaskTimers) -> Optional[str]:
    running = get_running_item_ids(timers)
    return running[0] if running else None


def get_running_scope(
    timers: TaskTimers,
) -> Optional[tuple[Optional[str], ScopeTimer]]:
    """The running scope as (item_id, scope); item_id is None for the task."""
    if timers["global_timer"]["state"] == TimerState.RUNNING:
        return None, timers["global_timer"]
    item_id = get_running_item(timers)
    if item_id is None:
        return None
    return item_id, timers["checklist_totals"][item_id]


def calculate_checklist_estimate(
    timers: TaskTimers, item_ids: Optional[Iterable[str]] = None
) -> int:
    """Sum of item estimates, restricted to item_ids when given."""
    wanted = set(item_ids) if item_ids is not None else None
    return sum(
        scope["estimated_time"]
        for item_id, scope in timers["checklist_totals"].items()
        if scope["estimated_time"] and (wanted is None or item_id in wanted)
    )


def get_effective_estimate(
    timers: TaskTimers, item_ids: Optional[Iterable[str]] = None
) -> Optional[int]:
    manual = timers["global_timer"]["estimated_time"]
    if timers["manual_estimate_set"] and manual and manual > 0:
        return manual
    derived = calculate_checklist_estimate(timers, item_ids)
    return derived if derived > 0 else None


def estimate_progress(total: int, estimate: Optional[int]) -> EstimateProgress:
    if not estimate or estimate <= 0:
        return {"percent": 0, "remaining": 0, "is_over_budget": False}
    return {
        "percent": round(total / estimate * 100),
        "remaining": max(0, estimate - total),
        "is_over_budget": total > estimate,
    }


def get_storage_usage(
    timers: TaskTimers,
    recent_entries: list[TimeEntry],
    limit: int = DEFAULT_STORAGE_LIMIT,
) -> StorageUsage:
    metadata_usage = calculate_usage(convert_timers_for_serialization(timers), limit)
    recent_usage = calculate_usage(encode_entries(recent_entries), limit)
    if recent_usage["size"] > metadata_usage["size"]:
        return recent_usage
    return metadata_usage


def __local_date(ms: int, tz: str) -> pendulum.Date:
    return ms_to_datetime(ms).in_tz(tz).date()


def filter_by_date_range(
    entries: Iterable[TimeEntry],
    start: Optional[pendulum.Date] = None,
    end: Optional[pendulum.Date] = None,
    tz: str = "local",
) -> list[TimeEntry]:
    """Entries whose start falls on a day within [start, end], both inclusive."""
    filtered = []
    for entry in entries:
        day = __local_date(entry["start_time"], tz)
        if start is not None and day < start:
            continue
        if end is not None and day > end:
            continue
        filtered.append(entry)
    return filtered


def group_by_date(
    entries: Iterable[TimeEntry], tz: str = "local"
) -> dict[str, list[TimeEntry]]:
    groups: dict[str, list[TimeEntry]] = {}
    for entry in sorted(entries, key=lambda e: e["start_time"], reverse=True):
        key = __local_date(entry["start_time"], tz).isoformat()
        groups.setdefault(key, []).append(entry)
    return groups


def verify_totals(timers: TaskTimers, entries: list[TimeEntry]) -> list[TotalsMismatch]:
    totals = totals_by_scope(entries)
    scopes: list[tuple[Optional[str], ScopeTimer]] = [(None, timers["global_timer"])]
    scopes.extend(timers["checklist_totals"].items())

    mismatches: list[TotalsMismatch] = []
    seen: set[Optional[str]] = set()
    for item_id, scope in scopes:
        seen.add(item_id)
        actual_total, actual_count = totals.get(item_id, (0, 0))
        if scope["total_time"] != actual_total or scope["entry_count"] != actual_count:
            mismatches.append(
                {
                    "item_id": item_id,
                    "stored_total": scope["total_time"],
                    "actual_total": actual_total,
                    "stored_count": scope["entry_count"],
                    "actual_count": actual_count,
                }
            )
    for item_id, (actual_total, actual_count) in totals.items():
        if item_id not in seen:
            mismatches.append(
                {
                    "item_id": item_id,
                    "stored_total": 0,
                    "actual_total": actual_total,
                    "stored_count": 0,
                    "actual_count": actual_count,
                }
            )
    return mismatches
