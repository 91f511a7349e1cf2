# SPDX-License-Identifier: MIT

from typing import Any, Optional

from taskclock.model.timer import CurrentEntry, ScopeTimer, TaskTimers, TimerState
from taskclock.template.timer import get_scope_timer_template, get_task_timers_template

TIMER_STATES = {state.value for state in TimerState}


def __optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def __int_or_zero(value: Any) -> int:
    converted = __optional_int(value)
    return converted if converted is not None and converted > 0 else 0


def __convert_current_entry_for_serialization(
    current_entry: Optional[CurrentEntry],
) -> Optional[dict[str, Any]]:
    if current_entry is None:
        return None
    serializable: dict[str, Any] = {
        "startTime": current_entry["start_time"],
        "pausedDuration": current_entry["paused_duration"],
    }
    if current_entry.get("paused_at") is not None:
        serializable["pausedAt"] = current_entry["paused_at"]
    return serializable


def __convert_current_entry_for_deserialization(raw: Any) -> Optional[CurrentEntry]:
    if not isinstance(raw, dict):
        return None
    start_time = __optional_int(raw.get("startTime"))
    if start_time is None:
        return None
    current_entry: CurrentEntry = {
        "start_time": start_time,
        "paused_duration": __int_or_zero(raw.get("pausedDuration")),
    }
    paused_at = __optional_int(raw.get("pausedAt"))
    if paused_at is not None:
        current_entry["paused_at"] = paused_at
    return current_entry


def normalize_scope(scope: ScopeTimer) -> ScopeTimer:
    """
    Make state and current_entry agree: an open session needs a current
    entry, a paused one needs paused_at, and idle carries neither.
    """
    current_entry = scope["current_entry"]
    if scope["state"] == TimerState.IDLE or current_entry is None:
        scope["state"] = TimerState.IDLE
        scope["current_entry"] = None
    elif scope["state"] == TimerState.PAUSED and current_entry.get("paused_at") is None:
        scope["state"] = TimerState.RUNNING
    elif scope["state"] == TimerState.RUNNING:
        current_entry.pop("paused_at", None)
    return scope


def convert_scope_for_serialization(scope: ScopeTimer) -> dict[str, Any]:
    return {
        "state": str(scope["state"]),
        "currentEntry": __convert_current_entry_for_serialization(scope["current_entry"]),
        "estimatedTime": scope["estimated_time"],
        "totalTime": scope["total_time"],
        "entryCount": scope["entry_count"],
    }


def convert_scope_for_deserialization(raw: Any) -> ScopeTimer:
    scope = get_scope_timer_template()
    if not isinstance(raw, dict):
        return scope

    state = raw.get("state")
    scope["state"] = TimerState(state) if state in TIMER_STATES else TimerState.IDLE
    scope["current_entry"] = __convert_current_entry_for_deserialization(
        raw.get("currentEntry")
    )
    estimated_time = __optional_int(raw.get("estimatedTime"))
    scope["estimated_time"] = estimated_time if estimated_time and estimated_time > 0 else None
    scope["total_time"] = __int_or_zero(raw.get("totalTime"))
    scope["entry_count"] = __int_or_zero(raw.get("entryCount"))
    return normalize_scope(scope)


def convert_timers_for_serialization(timers: TaskTimers) -> dict[str, Any]:
    """
    The persisted timerData layout. The global scope is flattened into the
    top level so older readers still find state and currentEntry there.
    """
    serializable: dict[str, Any] = {"schemaVersion": timers["schema_version"]}
    serializable.update(convert_scope_for_serialization(timers["global_timer"]))
    serializable["manualEstimateSet"] = timers["manual_estimate_set"]
    serializable["checklistTotals"] = {
        item_id: convert_scope_for_serialization(scope)
        for item_id, scope in timers["checklist_totals"].items()
    }
    return serializable


def convert_timers_for_deserialization(raw: Any) -> TaskTimers:
    timers = get_task_timers_template()
    if not isinstance(raw, dict):
        return timers

    schema_version = __optional_int(raw.get("schemaVersion"))
    timers["schema_version"] = schema_version if schema_version is not None else 0
    timers["global_timer"] = convert_scope_for_deserialization(raw)
    timers["manual_estimate_set"] = bool(raw.get("manualEstimateSet", False))
    if timers["global_timer"]["estimated_time"] is None:
        timers["manual_estimate_set"] = False

    raw_totals = raw.get("checklistTotals")
    if isinstance(raw_totals, dict):
        timers["checklist_totals"] = {
            str(item_id): convert_scope_for_deserialization(raw_scope)
            for item_id, raw_scope in raw_totals.items()
        }
    return timers
