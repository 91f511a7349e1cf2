# tests/test_timer_service.py

import pytest

from fakes import TASK, FlakyStore, FrozenClock
from taskclock.model.result import ERROR_MESSAGES, TimerError
from taskclock.model.timer import TaskTimers, TimerState
from taskclock.repository.archive import METADATA_KEY, EntryArchive
from taskclock.service.aggregate import verify_totals
from taskclock.service.timer import TimerService, get_current_elapsed
from taskclock.storage.bounded import BoundedStore
from taskclock.template.timer import get_scope_timer_template


def running_scopes(timers: TaskTimers) -> list[str]:
    running = []
    if timers["global_timer"]["state"] == TimerState.RUNNING:
        running.append("task")
    running.extend(
        item_id
        for item_id, scope in timers["checklist_totals"].items()
        if scope["state"] == TimerState.RUNNING
    )
    return running


async def current_timers(service: TimerService) -> TaskTimers:
    result = await service.get_state(TASK)
    assert result["success"] is True
    return result["data"]["timers"]


@pytest.mark.asyncio
async def test_basic_cycle(service: TimerService, clock: FrozenClock) -> None:
    started = await service.start_global(TASK)
    assert started["success"] is True
    assert started["data"]["timers"]["global_timer"]["state"] == TimerState.RUNNING

    clock.advance(5000)
    stopped = await service.stop_global(TASK, "wrote the report")

    assert stopped["success"] is True
    entry = stopped["entry"]
    assert entry["duration"] == 5000
    assert entry["end_time"] - entry["start_time"] == 5000
    assert entry["description"] == "wrote the report"
    assert entry["checklist_item_id"] is None

    timers = stopped["data"]["timers"]
    assert timers["global_timer"]["state"] == TimerState.IDLE
    assert timers["global_timer"]["current_entry"] is None
    assert timers["global_timer"]["total_time"] == 5000
    assert timers["global_timer"]["entry_count"] == 1
    assert stopped["data"]["entries"] == [entry]


@pytest.mark.asyncio
async def test_state_survives_a_new_service(
    archive: EntryArchive, clock: FrozenClock
) -> None:
    await TimerService(archive, clock=clock).start_global(TASK)
    clock.advance(1200)

    result = await TimerService(archive, clock=clock).stop_global(TASK)

    assert result["success"] is True
    assert result["entry"]["duration"] == 1200


@pytest.mark.asyncio
async def test_switch_from_item_to_global(service: TimerService, clock: FrozenClock) -> None:
    await service.start_item(TASK, "A")
    clock.advance(3000)

    result = await service.start_global(TASK)

    assert result["success"] is True
    assert result["stopped_item_ids"] == ["A"]
    assert result["entry"]["checklist_item_id"] == "A"
    assert result["entry"]["duration"] == 3000
    timers = result["data"]["timers"]
    assert timers["global_timer"]["state"] == TimerState.RUNNING
    assert timers["checklist_totals"]["A"]["state"] == TimerState.IDLE
    assert timers["checklist_totals"]["A"]["total_time"] == 3000
    assert timers["global_timer"]["total_time"] == 3000


@pytest.mark.asyncio
async def test_start_item_stops_global(service: TimerService, clock: FrozenClock) -> None:
    await service.start_global(TASK)
    clock.advance(1000)

    result = await service.start_item(TASK, "A")

    assert result["success"] is True
    assert result["stopped_global"] is True
    assert result["entry"]["checklist_item_id"] is None
    assert result["entry"]["duration"] == 1000
    assert running_scopes(result["data"]["timers"]) == ["A"]


@pytest.mark.asyncio
async def test_start_item_stops_other_items(
    service: TimerService, clock: FrozenClock
) -> None:
    await service.start_item(TASK, "A")
    clock.advance(1000)

    result = await service.start_item(TASK, "B")

    assert result["stopped_item_ids"] == ["A"]
    assert "stopped_global" not in result
    assert running_scopes(result["data"]["timers"]) == ["B"]


@pytest.mark.asyncio
async def test_rejected_transitions(service: TimerService) -> None:
    assert (await service.stop_global(TASK))["error"] == TimerError.NO_ACTIVE_TIMER
    assert (await service.stop_item(TASK, "A"))["error"] == (
        TimerError.NO_ACTIVE_TIMER_FOR_ITEM
    )

    await service.start_global(TASK)
    again = await service.start_global(TASK)
    assert again["success"] is False
    assert again["error"] == TimerError.ALREADY_RUNNING
    assert again["message"] == ERROR_MESSAGES[TimerError.ALREADY_RUNNING]

    await service.start_item(TASK, "A")
    assert (await service.start_item(TASK, "A"))["error"] == TimerError.ALREADY_RUNNING


@pytest.mark.asyncio
async def test_rejected_transition_writes_nothing(
    service: TimerService, raw_store: FlakyStore
) -> None:
    await service.start_global(TASK)
    raw_store.set_calls.clear()

    await service.start_global(TASK)

    assert raw_store.set_calls == []


@pytest.mark.asyncio
async def test_max_items(archive: EntryArchive, clock: FrozenClock) -> None:
    service = TimerService(archive, clock=clock, max_items=2)
    await service.start_item(TASK, "A")
    await service.start_item(TASK, "B")

    rejected = await service.start_item(TASK, "C")
    assert rejected["error"] == TimerError.MAX_ITEMS_EXCEEDED
    assert (await service.set_item_estimate(TASK, "C", 60_000))["error"] == (
        TimerError.MAX_ITEMS_EXCEEDED
    )

    assert (await service.start_item(TASK, "A"))["success"] is True


@pytest.mark.asyncio
async def test_single_running_scope_across_a_session(
    service: TimerService, clock: FrozenClock
) -> None:
    steps = [
        service.start_global(TASK),
        service.start_item(TASK, "A"),
        service.start_item(TASK, "B"),
        service.pause_item(TASK, "B"),
        service.start_global(TASK),
        service.resume_item(TASK, "B"),
        service.start_item(TASK, "A"),
        service.stop_item(TASK, "A", "done"),
        service.start_global(TASK),
    ]
    for step in steps:
        clock.advance(700)
        result = await step
        assert result["success"] is True
        assert len(running_scopes(result["data"]["timers"])) <= 1

    state = (await service.get_state(TASK))["data"]
    assert verify_totals(state["timers"], state["entries"]) == []


@pytest.mark.asyncio
async def test_pause_and_resume_exclude_paused_time(
    service: TimerService, clock: FrozenClock
) -> None:
    await service.start_global(TASK)
    clock.advance(2000)
    paused = await service.pause_global(TASK)
    assert paused["data"]["timers"]["global_timer"]["state"] == TimerState.PAUSED

    clock.advance(10_000)
    timers = await current_timers(service)
    assert get_current_elapsed(timers["global_timer"], clock()) == 2000

    await service.resume_global(TASK)
    clock.advance(3000)
    stopped = await service.stop_global(TASK)

    assert stopped["entry"]["duration"] == 5000
    assert stopped["entry"]["end_time"] - stopped["entry"]["start_time"] == 15_000


@pytest.mark.asyncio
async def test_stop_while_paused_uses_frozen_elapsed(
    service: TimerService, clock: FrozenClock
) -> None:
    await service.start_global(TASK)
    clock.advance(2000)
    await service.pause_global(TASK)
    clock.advance(5000)

    stopped = await service.stop_global(TASK)

    assert stopped["success"] is True
    assert stopped["entry"]["duration"] == 2000


@pytest.mark.asyncio
async def test_paused_state_transitions(service: TimerService) -> None:
    assert (await service.pause_global(TASK))["error"] == TimerError.NO_ACTIVE_TIMER
    assert (await service.resume_global(TASK))["error"] == TimerError.NOT_PAUSED
    assert (await service.pause_item(TASK, "A"))["error"] == (
        TimerError.NO_ACTIVE_TIMER_FOR_ITEM
    )
    assert (await service.resume_item(TASK, "A"))["error"] == TimerError.NOT_PAUSED

    await service.start_global(TASK)
    await service.pause_global(TASK)
    assert (await service.start_global(TASK))["error"] == TimerError.TIMER_PAUSED

    await service.start_item(TASK, "A")
    await service.pause_item(TASK, "A")
    assert (await service.start_item(TASK, "A"))["error"] == TimerError.TIMER_PAUSED


@pytest.mark.asyncio
async def test_resume_item_switches_over(service: TimerService, clock: FrozenClock) -> None:
    await service.start_item(TASK, "A")
    clock.advance(1000)
    await service.pause_item(TASK, "A")
    await service.start_global(TASK)
    clock.advance(2000)

    resumed = await service.resume_item(TASK, "A")

    assert resumed["stopped_global"] is True
    assert resumed["entry"]["duration"] == 2000
    scope = resumed["data"]["timers"]["checklist_totals"]["A"]
    assert scope["state"] == TimerState.RUNNING
    assert scope["current_entry"]["paused_duration"] == 2000
    assert "paused_at" not in scope["current_entry"]

    clock.advance(1000)
    stopped = await service.stop_item(TASK, "A")
    assert stopped["entry"]["duration"] == 2000


@pytest.mark.asyncio
async def test_estimates(service: TimerService) -> None:
    result = await service.set_estimate(TASK, 3_600_000)
    timers = result["data"]["timers"]
    assert timers["global_timer"]["estimated_time"] == 3_600_000
    assert timers["manual_estimate_set"] is True

    result = await service.set_estimate(TASK, 0)
    timers = result["data"]["timers"]
    assert timers["global_timer"]["estimated_time"] is None
    assert timers["manual_estimate_set"] is False

    result = await service.set_item_estimate(TASK, "A", 900_000)
    assert result["data"]["timers"]["checklist_totals"]["A"]["estimated_time"] == 900_000
    result = await service.set_item_estimate(TASK, "A", -5)
    assert result["data"]["timers"]["checklist_totals"]["A"]["estimated_time"] is None


@pytest.mark.asyncio
async def test_description_is_truncated_and_member_recorded(
    archive: EntryArchive, clock: FrozenClock
) -> None:
    service = TimerService(
        archive, clock=clock, member_id="member-3", max_description_length=10
    )
    await service.start_global(TASK)
    clock.advance(100)

    result = await service.stop_global(TASK, "a" * 50)

    assert result["entry"]["description"] == "a" * 10
    assert result["entry"]["member_id"] == "member-3"


@pytest.mark.asyncio
async def test_delete_entry_adjusts_totals(
    service: TimerService, clock: FrozenClock
) -> None:
    await service.start_item(TASK, "A")
    clock.advance(4000)
    first = (await service.stop_item(TASK, "A"))["entry"]
    await service.start_global(TASK)
    clock.advance(1000)
    await service.stop_global(TASK)

    result = await service.delete_entry(TASK, first["id"])

    assert result["success"] is True
    timers = result["data"]["timers"]
    assert timers["global_timer"]["total_time"] == 1000
    assert timers["global_timer"]["entry_count"] == 1
    assert timers["checklist_totals"]["A"]["total_time"] == 0
    assert timers["checklist_totals"]["A"]["entry_count"] == 0
    assert [e["id"] for e in result["data"]["entries"]] != [first["id"]]
    assert len(result["data"]["entries"]) == 1

    missing = await service.delete_entry(TASK, first["id"])
    assert missing["error"] == TimerError.ENTRY_NOT_FOUND


@pytest.mark.asyncio
async def test_update_entry_moves_totals(service: TimerService, clock: FrozenClock) -> None:
    await service.start_item(TASK, "A")
    clock.advance(4000)
    entry = (await service.stop_item(TASK, "A"))["entry"]

    result = await service.update_entry(
        TASK, entry["id"], {"duration": 6000, "checklist_item_id": "B"}
    )

    assert result["success"] is True
    assert result["entry"]["duration"] == 6000
    assert result["entry"]["checklist_item_id"] == "B"
    timers = result["data"]["timers"]
    assert timers["global_timer"]["total_time"] == 6000
    assert timers["global_timer"]["entry_count"] == 1
    assert timers["checklist_totals"]["A"]["total_time"] == 0
    assert timers["checklist_totals"]["B"]["total_time"] == 6000
    assert verify_totals(timers, result["data"]["entries"]) == []

    unlinked = await service.update_entry(TASK, entry["id"], {"checklist_item_id": ""})
    assert unlinked["entry"]["checklist_item_id"] is None
    assert unlinked["data"]["timers"]["checklist_totals"]["B"]["entry_count"] == 0


@pytest.mark.asyncio
async def test_update_entry_validation(service: TimerService, clock: FrozenClock) -> None:
    await service.start_global(TASK)
    clock.advance(1000)
    entry = (await service.stop_global(TASK))["entry"]

    for patch in ({}, {"duration": -1}, {"duration": "1h"}, {"start_time": 5}):
        result = await service.update_entry(TASK, entry["id"], patch)
        assert result["error"] == TimerError.INVALID_PATCH

    missing = await service.update_entry(TASK, "e_missing", {"description": "x"})
    assert missing["error"] == TimerError.ENTRY_NOT_FOUND

    long = await service.update_entry(TASK, entry["id"], {"description": "b" * 500})
    assert len(long["entry"]["description"]) == 120


@pytest.mark.asyncio
async def test_limit_exceeded_is_reported_with_hint(
    raw_store: FlakyStore, clock: FrozenClock
) -> None:
    service = TimerService(EntryArchive(BoundedStore(raw_store, limit=50)), clock=clock)

    result = await service.start_global(TASK)

    assert result["success"] is False
    assert result["error"] == TimerError.LIMIT_EXCEEDED
    assert result["message"] == "Storage limit reached. Try shortening descriptions."
    assert raw_store.set_calls == []


@pytest.mark.asyncio
async def test_store_fault_is_reported_as_storage_error(
    service: TimerService, raw_store: FlakyStore
) -> None:
    raw_store.fail_set.add(METADATA_KEY)

    result = await service.start_global(TASK)

    assert result["success"] is False
    assert result["error"] == TimerError.STORAGE_ERROR
    assert result["message"] == f"write {METADATA_KEY} failed"


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_storage_error(
    service: TimerService, archive: EntryArchive, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def broken(scope_id: str) -> list:
        raise RuntimeError("boom")

    monkeypatch.setattr(archive, "get_all", broken)

    result = await service.start_global(TASK)

    assert result["success"] is False
    assert result["error"] == TimerError.STORAGE_ERROR
    assert result["message"] == "boom"


def test_current_elapsed() -> None:
    scope = get_scope_timer_template()
    assert get_current_elapsed(scope, 10_000) == 0

    scope["state"] = TimerState.RUNNING
    scope["current_entry"] = {"start_time": 1000, "paused_duration": 500}
    assert get_current_elapsed(scope, 4000) == 2500
    assert get_current_elapsed(scope, 0) == 0

    scope["state"] = TimerState.PAUSED
    scope["current_entry"]["paused_at"] = 3000
    assert get_current_elapsed(scope, 99_000) == 1500


@pytest.mark.asyncio
async def test_metadata_layout_is_stable(
    service: TimerService, store: BoundedStore, clock: FrozenClock
) -> None:
    await service.start_item(TASK, "A")

    metadata = await store.get(TASK, METADATA_KEY)

    assert metadata["schemaVersion"] == 3
    assert metadata["state"] == "idle"
    assert metadata["currentEntry"] is None
    assert metadata["checklistTotals"]["A"] == {
        "state": "running",
        "currentEntry": {"startTime": clock(), "pausedDuration": 0},
        "estimatedTime": None,
        "totalTime": 0,
        "entryCount": 0,
    }


@pytest.mark.asyncio
async def test_stop_succeeds_when_the_archive_is_full(
    store: BoundedStore, clock: FrozenClock
) -> None:
    archive = EntryArchive(store, recent_count=1, page_size=1, max_pages=2)
    service = TimerService(archive, clock=clock)
    for _ in range(3):
        await service.start_global(TASK)
        clock.advance(1000)
        assert (await service.stop_global(TASK))["success"] is True

    await service.start_global(TASK)
    clock.advance(1000)
    stopped = await service.stop_global(TASK, "fourth")

    assert stopped["success"] is True
    assert len(stopped["warnings"]) == 1
    timers = await current_timers(service)
    assert timers["global_timer"]["state"] == TimerState.IDLE
    assert timers["global_timer"]["total_time"] == 4000
    assert timers["global_timer"]["entry_count"] == 4
    kept = await archive.get_all(TASK)
    assert len(kept) == 3
    assert kept[0]["description"] == "fourth"


@pytest.mark.asyncio
async def test_stop_in_the_start_millisecond(service: TimerService) -> None:
    await service.start_global(TASK)

    stopped = await service.stop_global(TASK)

    entry = stopped["entry"]
    assert entry["end_time"] > entry["start_time"]
    assert entry["duration"] == 1
