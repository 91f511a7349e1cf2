# SPDX-License-Identifier: MIT

import logging
from typing import Any, Awaitable, Callable, Optional

from taskclock.migrate.migrate import MigrationOutcome, run_required_migrations
from taskclock.model.entity_id import EntityId
from taskclock.model.result import (
    ERROR_MESSAGES,
    LIMIT_EXCEEDED,
    TimerError,
    TimerResult,
)
from taskclock.model.time_entry import EntryPatch, TimeEntry
from taskclock.model.timer import ScopeTimer, TaskState, TaskTimers, TimerState
from taskclock.repository.archive import EntryArchive
from taskclock.repository.metadata import (
    convert_timers_for_deserialization,
    convert_timers_for_serialization,
)
from taskclock.service.aggregate import apply_entry_change, get_running_item_ids
from taskclock.template.time_entry import (
    DEFAULT_MAX_DESCRIPTION_LENGTH,
    get_time_entry_template,
)
from taskclock.template.timer import get_scope_timer_template
from taskclock.time import now_ms

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 25
PATCH_FIELDS = {"duration", "description", "checklist_item_id"}


def get_current_elapsed(scope: ScopeTimer, now: Optional[int] = None) -> int:
    """Elapsed time of the open session; frozen at paused_at while paused."""
    current_entry = scope["current_entry"]
    if scope["state"] == TimerState.IDLE or current_entry is None:
        return 0
    if scope["state"] == TimerState.PAUSED and current_entry.get("paused_at") is not None:
        end = current_entry["paused_at"]
    else:
        end = now if now is not None else now_ms()
    elapsed = end - current_entry["start_time"] - current_entry["paused_duration"]  # type: ignore[operator]
    return max(0, elapsed)


def failure(error: TimerError, message: Optional[str] = None) -> TimerResult:
    return {
        "success": False,
        "error": error,
        "message": message or ERROR_MESSAGES[error],
    }


class _Operation:
    """State loaded for one service call, plus what it produced."""

    def __init__(self, task_id: str, timers: TaskTimers, entries: list[TimeEntry]) -> None:
        self.task_id = task_id
        self.timers = timers
        self.entries = entries
        self.new_entries: list[TimeEntry] = []
        self.stopped_item_ids: list[str] = []
        self.stopped_global = False

    def scope(self, item_id: Optional[str]) -> Optional[ScopeTimer]:
        if item_id is None:
            return self.timers["global_timer"]
        return self.timers["checklist_totals"].get(item_id)


class TimerService:
    """
    Timer state machine for a task and its checklist items.

    At most one scope of a task is RUNNING at any time. Every call loads
    the task from the archive, applies the change in memory and writes it
    back once; closing a scope produces exactly one TimeEntry. Expected
    conditions come back as failed TimerResults, nothing is raised.
    """

    def __init__(
        self,
        archive: EntryArchive,
        clock: Callable[[], int] = now_ms,
        member_id: Optional[str] = None,
        max_items: int = DEFAULT_MAX_ITEMS,
        max_description_length: int = DEFAULT_MAX_DESCRIPTION_LENGTH,
    ) -> None:
        self.archive = archive
        self.clock = clock
        self.member_id = member_id
        self.max_items = max_items
        self.max_description_length = max_description_length
        self.__migrated: set[str] = set()

    # ---- plumbing ----

    async def __ensure_migrated(self, task_id: str) -> MigrationOutcome:
        if task_id in self.__migrated:
            return {"success": True, "applied": []}
        outcome = await run_required_migrations(self.archive, task_id)
        if outcome["success"]:
            self.__migrated.add(task_id)
        return outcome

    async def __load(self, task_id: str) -> _Operation:
        metadata = await self.archive.get_metadata(task_id)
        timers = convert_timers_for_deserialization(metadata)
        entries = await self.archive.get_all(task_id)
        return _Operation(task_id, timers, entries)

    def __storage_failure(self, error: str, warnings: list[str]) -> TimerResult:
        if error == LIMIT_EXCEEDED:
            result = failure(TimerError.LIMIT_EXCEEDED)
        else:
            result = failure(TimerError.STORAGE_ERROR, error)
        if warnings:
            result["warnings"] = warnings
        return result

    async def __persist(self, operation: _Operation) -> TimerResult:
        metadata = convert_timers_for_serialization(operation.timers)
        warnings: list[str] = []
        entries = operation.entries
        if operation.new_entries:
            entries = operation.new_entries + operation.entries
            save_result = await self.archive.save_all(operation.task_id, entries, metadata)
            warnings = save_result["warnings"]
            if not save_result["success"]:
                return self.__storage_failure(save_result.get("error", ""), warnings)
        else:
            write_result = await self.archive.save_metadata(operation.task_id, metadata)
            if not write_result["success"]:
                return self.__storage_failure(write_result.get("error", ""), warnings)

        state: TaskState = {
            "timers": operation.timers,
            "entries": sorted(entries, key=lambda e: e["created_at"], reverse=True),
        }
        result: TimerResult = {"success": True, "data": state}
        if operation.new_entries:
            result["entry"] = operation.new_entries[-1]
        if operation.stopped_item_ids:
            result["stopped_item_ids"] = operation.stopped_item_ids
        if operation.stopped_global:
            result["stopped_global"] = True
        if warnings:
            result["warnings"] = warnings
        return result

    async def __run(
        self,
        task_id: str,
        name: str,
        mutate: Callable[[_Operation], Optional[TimerResult]],
    ) -> TimerResult:
        """
        Load, mutate, persist. mutate returns a failed result to abort
        without writing, or None to have the changed state saved.
        """

        async def call() -> TimerResult:
            operation = await self.__load(task_id)
            rejected = mutate(operation)
            if rejected is not None:
                return rejected
            return await self.__persist(operation)

        return await self.__guard(task_id, name, call)

    async def __guard(
        self, task_id: str, name: str, call: Callable[[], Awaitable[TimerResult]]
    ) -> TimerResult:
        try:
            outcome = await self.__ensure_migrated(task_id)
            if not outcome["success"]:
                return self.__storage_failure(outcome.get("error", ""), [])
            return await call()
        except Exception as e:
            logger.exception("%s on task %s failed", name, task_id)
            return failure(TimerError.STORAGE_ERROR, str(e) or type(e).__name__)

    # ---- scope transitions ----

    def __open(self, scope: ScopeTimer) -> None:
        scope["state"] = TimerState.RUNNING
        scope["current_entry"] = {"start_time": self.clock(), "paused_duration": 0}

    def __close(
        self, operation: _Operation, item_id: Optional[str], description: str = ""
    ) -> TimeEntry:
        scope = operation.scope(item_id)
        assert scope is not None and scope["current_entry"] is not None
        current_entry = scope["current_entry"]
        now = self.clock()
        paused_duration = current_entry["paused_duration"]
        paused_at = current_entry.get("paused_at")
        if scope["state"] == TimerState.PAUSED and paused_at is not None:
            paused_duration += max(0, now - paused_at)

        entry = get_time_entry_template(
            start_time=current_entry["start_time"],
            end_time=now,
            paused_duration=paused_duration,
            description=description,
            checklist_item_id=item_id,
            member_id=self.member_id,
            max_description_length=self.max_description_length,
        )
        scope["state"] = TimerState.IDLE
        scope["current_entry"] = None
        apply_entry_change(operation.timers, None, entry)
        operation.new_entries.append(entry)
        return entry

    def __unpause(self, scope: ScopeTimer) -> None:
        current_entry = scope["current_entry"]
        assert current_entry is not None
        paused_at = current_entry.pop("paused_at", None)
        if paused_at is not None:
            current_entry["paused_duration"] += max(0, self.clock() - paused_at)
        scope["state"] = TimerState.RUNNING

    def __switch_to_global(self, operation: _Operation) -> None:
        running = get_running_item_ids(operation.timers)
        if not running:
            return
        self.__close(operation, running[0])
        operation.stopped_item_ids.append(running[0])
        if len(running) > 1:
            logger.warning(
                "%s: items %s were also running and were left untouched",
                operation.task_id,
                running[1:],
            )

    def __switch_to_item(self, operation: _Operation, item_id: str) -> None:
        if operation.timers["global_timer"]["state"] == TimerState.RUNNING:
            self.__close(operation, None)
            operation.stopped_global = True
        for running_id in get_running_item_ids(operation.timers):
            if running_id != item_id:
                self.__close(operation, running_id)
                operation.stopped_item_ids.append(running_id)

    def __item_limit_reached(self, operation: _Operation, item_id: str) -> bool:
        checklist_totals = operation.timers["checklist_totals"]
        return item_id not in checklist_totals and len(checklist_totals) >= self.max_items

    # ---- task level ----

    async def start_global(self, task_id: str) -> TimerResult:
        def mutate(operation: _Operation) -> Optional[TimerResult]:
            scope = operation.timers["global_timer"]
            if scope["state"] == TimerState.RUNNING:
                return failure(TimerError.ALREADY_RUNNING)
            if scope["state"] == TimerState.PAUSED:
                return failure(TimerError.TIMER_PAUSED)
            self.__switch_to_global(operation)
            self.__open(scope)
            return None

        return await self.__run(task_id, "start_global", mutate)

    async def stop_global(self, task_id: str, description: str = "") -> TimerResult:
        def mutate(operation: _Operation) -> Optional[TimerResult]:
            if operation.timers["global_timer"]["state"] == TimerState.IDLE:
                return failure(TimerError.NO_ACTIVE_TIMER)
            self.__close(operation, None, description)
            return None

        return await self.__run(task_id, "stop_global", mutate)

    async def pause_global(self, task_id: str) -> TimerResult:
        def mutate(operation: _Operation) -> Optional[TimerResult]:
            scope = operation.timers["global_timer"]
            if scope["state"] != TimerState.RUNNING or scope["current_entry"] is None:
                return failure(TimerError.NO_ACTIVE_TIMER)
            scope["state"] = TimerState.PAUSED
            scope["current_entry"]["paused_at"] = self.clock()
            return None

        return await self.__run(task_id, "pause_global", mutate)

    async def resume_global(self, task_id: str) -> TimerResult:
        def mutate(operation: _Operation) -> Optional[TimerResult]:
            scope = operation.timers["global_timer"]
            if scope["state"] != TimerState.PAUSED:
                return failure(TimerError.NOT_PAUSED)
            self.__switch_to_global(operation)
            self.__unpause(scope)
            return None

        return await self.__run(task_id, "resume_global", mutate)

    async def set_estimate(self, task_id: str, estimate: Optional[int]) -> TimerResult:
        def mutate(operation: _Operation) -> Optional[TimerResult]:
            timers = operation.timers
            if estimate is None or estimate <= 0:
                timers["global_timer"]["estimated_time"] = None
                timers["manual_estimate_set"] = False
            else:
                timers["global_timer"]["estimated_time"] = estimate
                timers["manual_estimate_set"] = True
            return None

        return await self.__run(task_id, "set_estimate", mutate)

    # ---- checklist items ----

    async def start_item(self, task_id: str, item_id: str) -> TimerResult:
        def mutate(operation: _Operation) -> Optional[TimerResult]:
            if self.__item_limit_reached(operation, item_id):
                return failure(TimerError.MAX_ITEMS_EXCEEDED)
            scope = operation.scope(item_id)
            if scope is not None and scope["state"] == TimerState.RUNNING:
                return failure(TimerError.ALREADY_RUNNING)
            if scope is not None and scope["state"] == TimerState.PAUSED:
                return failure(TimerError.TIMER_PAUSED)
            self.__switch_to_item(operation, item_id)
            if scope is None:
                scope = get_scope_timer_template()
                operation.timers["checklist_totals"][item_id] = scope
            self.__open(scope)
            return None

        return await self.__run(task_id, "start_item", mutate)

    async def stop_item(
        self, task_id: str, item_id: str, description: str = ""
    ) -> TimerResult:
        def mutate(operation: _Operation) -> Optional[TimerResult]:
            scope = operation.scope(item_id)
            if scope is None or scope["state"] == TimerState.IDLE:
                return failure(TimerError.NO_ACTIVE_TIMER_FOR_ITEM)
            self.__close(operation, item_id, description)
            return None

        return await self.__run(task_id, "stop_item", mutate)

    async def pause_item(self, task_id: str, item_id: str) -> TimerResult:
        def mutate(operation: _Operation) -> Optional[TimerResult]:
            scope = operation.scope(item_id)
            if (
                scope is None
                or scope["state"] != TimerState.RUNNING
                or scope["current_entry"] is None
            ):
                return failure(TimerError.NO_ACTIVE_TIMER_FOR_ITEM)
            scope["state"] = TimerState.PAUSED
            scope["current_entry"]["paused_at"] = self.clock()
            return None

        return await self.__run(task_id, "pause_item", mutate)

    async def resume_item(self, task_id: str, item_id: str) -> TimerResult:
        def mutate(operation: _Operation) -> Optional[TimerResult]:
            scope = operation.scope(item_id)
            if scope is None or scope["state"] != TimerState.PAUSED:
                return failure(TimerError.NOT_PAUSED)
            self.__switch_to_item(operation, item_id)
            self.__unpause(scope)
            return None

        return await self.__run(task_id, "resume_item", mutate)

    async def set_item_estimate(
        self, task_id: str, item_id: str, estimate: Optional[int]
    ) -> TimerResult:
        def mutate(operation: _Operation) -> Optional[TimerResult]:
            if self.__item_limit_reached(operation, item_id):
                return failure(TimerError.MAX_ITEMS_EXCEEDED)
            scope = operation.scope(item_id)
            if scope is None:
                scope = get_scope_timer_template()
                operation.timers["checklist_totals"][item_id] = scope
            scope["estimated_time"] = estimate if estimate is not None and estimate > 0 else None
            return None

        return await self.__run(task_id, "set_item_estimate", mutate)

    # ---- entries ----

    def __on_change(
        self, metadata: dict[str, Any], old_entry: TimeEntry, new_entry: Optional[TimeEntry]
    ) -> dict[str, Any]:
        timers = convert_timers_for_deserialization(metadata)
        apply_entry_change(timers, old_entry, new_entry)
        return convert_timers_for_serialization(timers)

    def __sanitize_patch(self, patch: dict[str, Any]) -> Optional[EntryPatch]:
        if not patch or not set(patch) <= PATCH_FIELDS:
            return None
        sanitized: EntryPatch = {}
        if "duration" in patch:
            duration = patch["duration"]
            if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
                return None
            sanitized["duration"] = duration
        if "description" in patch:
            description = patch["description"]
            if description is not None and not isinstance(description, str):
                return None
            sanitized["description"] = (description or "")[: self.max_description_length]
        if "checklist_item_id" in patch:
            item_id = patch["checklist_item_id"]
            if item_id is not None and not isinstance(item_id, str):
                return None
            sanitized["checklist_item_id"] = item_id or None
        return sanitized

    async def __change_entry(
        self, task_id: str, entry_id: EntityId, patch: Optional[EntryPatch]
    ) -> TimerResult:
        if patch is None:
            change = await self.archive.delete(task_id, entry_id, self.__on_change)
        else:
            change = await self.archive.update(task_id, entry_id, patch, self.__on_change)

        if not change["found"]:
            return failure(TimerError.ENTRY_NOT_FOUND)
        warnings = change.get("warnings", [])
        if not change["success"]:
            return self.__storage_failure(change.get("error", ""), warnings)

        metadata = await self.archive.get_metadata(task_id)
        result: TimerResult = {
            "success": True,
            "data": {
                "timers": convert_timers_for_deserialization(metadata),
                "entries": change.get("entries", []),
            },
        }
        new_entry = change.get("new_entry")
        entry = new_entry if new_entry is not None else change.get("old_entry")
        if entry is not None:
            result["entry"] = entry
        if warnings:
            result["warnings"] = warnings
        return result

    async def delete_entry(self, task_id: str, entry_id: EntityId) -> TimerResult:
        return await self.__guard(
            task_id, "delete_entry", lambda: self.__change_entry(task_id, entry_id, None)
        )

    async def update_entry(
        self, task_id: str, entry_id: EntityId, patch: dict[str, Any]
    ) -> TimerResult:
        sanitized = self.__sanitize_patch(patch)
        if sanitized is None:
            return failure(TimerError.INVALID_PATCH)

        async def call() -> TimerResult:
            item_id = sanitized.get("checklist_item_id")
            if item_id is not None:
                metadata = await self.archive.get_metadata(task_id)
                operation = _Operation(task_id, convert_timers_for_deserialization(metadata), [])
                if self.__item_limit_reached(operation, item_id):
                    return failure(TimerError.MAX_ITEMS_EXCEEDED)
            return await self.__change_entry(task_id, entry_id, sanitized)

        return await self.__guard(task_id, "update_entry", call)

    # ---- queries ----

    async def get_state(self, task_id: str) -> TimerResult:
        async def call() -> TimerResult:
            operation = await self.__load(task_id)
            return {
                "success": True,
                "data": {"timers": operation.timers, "entries": operation.entries},
            }

        return await self.__guard(task_id, "get_state", call)

    async def migrate(self, task_id: str) -> MigrationOutcome:
        self.__migrated.discard(task_id)
        try:
            return await self.__ensure_migrated(task_id)
        except Exception as e:
            logger.exception("migrating task %s failed", task_id)
            return {"success": False, "applied": [], "error": str(e) or type(e).__name__}
