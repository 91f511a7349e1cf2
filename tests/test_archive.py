# tests/test_archive.py

import pytest

from fakes import TASK, FlakyStore, make_entries, make_entry
from taskclock.model.result import LIMIT_EXCEEDED
from taskclock.repository.archive import (
    METADATA_KEY,
    RECENT_KEY,
    EntryArchive,
    page_key,
    sort_entries,
)
from taskclock.repository.codec import encode_entries, entry_to_dict
from taskclock.storage.bounded import BoundedStore

METADATA = {"schemaVersion": 3, "state": "idle"}


def page_keys(raw_store: FlakyStore) -> list[str]:
    return sorted(
        (key for key in raw_store.keys(TASK) if key not in (METADATA_KEY, RECENT_KEY)),
        key=lambda key: int(key.rsplit("_", 1)[1]),
    )


def test_invalid_sizing_is_rejected(store: BoundedStore) -> None:
    with pytest.raises(ValueError):
        EntryArchive(store, page_size=0)
    with pytest.raises(ValueError):
        EntryArchive(store, max_pages=0)


@pytest.mark.asyncio
async def test_load_with_no_prior_writes(archive: EntryArchive) -> None:
    snapshot = await archive.load(TASK)

    assert snapshot == {
        "entries": [],
        "recent_count": 0,
        "pages_read": 0,
        "dropped": 0,
        "migration_pending": False,
    }


@pytest.mark.asyncio
async def test_overflow_is_paged_and_reassembled(
    store: BoundedStore, raw_store: FlakyStore
) -> None:
    archive = EntryArchive(store, recent_count=5, page_size=15)
    entries = make_entries(100)

    result = await archive.save_all(TASK, entries, METADATA)

    assert result["success"] is True
    assert result["recent_count"] == 5
    assert result["archived_count"] == 95
    assert result["page_count"] == 7
    assert result["dropped_ids"] == []
    assert page_keys(raw_store) == [page_key(i) for i in range(7)]

    recent = await store.get(TASK, RECENT_KEY)
    assert recent == encode_entries(sort_entries(entries)[:5])

    snapshot = await archive.load(TASK)
    assert snapshot["entries"] == sort_entries(entries)
    assert snapshot["recent_count"] == 5
    assert snapshot["pages_read"] == 7


@pytest.mark.asyncio
async def test_recent_key_is_written_even_when_empty(
    archive: EntryArchive, store: BoundedStore
) -> None:
    result = await archive.save_all(TASK, [], METADATA)

    assert result["success"] is True
    assert await store.get(TASK, RECENT_KEY) == []
    assert await store.get(TASK, METADATA_KEY) == METADATA


@pytest.mark.asyncio
async def test_orphan_pages_are_cleared(store: BoundedStore, raw_store: FlakyStore) -> None:
    archive = EntryArchive(store, recent_count=5, page_size=15)
    await archive.save_all(TASK, make_entries(100), METADATA)

    result = await archive.save_all(TASK, make_entries(20), METADATA)

    assert result["page_count"] == 1
    assert page_keys(raw_store) == [page_key(0)]
    assert len(await archive.get_all(TASK)) == 20


@pytest.mark.asyncio
async def test_cleanup_failures_do_not_fail_the_save(
    store: BoundedStore, raw_store: FlakyStore
) -> None:
    archive = EntryArchive(store, recent_count=5, page_size=15)
    await archive.save_all(TASK, make_entries(100), METADATA)
    raw_store.fail_remove.add("*")

    result = await archive.save_all(TASK, make_entries(20), METADATA)

    assert result["success"] is True
    assert result["page_count"] == 1


@pytest.mark.asyncio
async def test_pages_beyond_max_pages_drop_the_oldest_entries(
    store: BoundedStore, raw_store: FlakyStore
) -> None:
    archive = EntryArchive(store, recent_count=0, page_size=5, max_pages=2)
    entries = make_entries(11)

    result = await archive.save_all(TASK, entries, METADATA)

    assert result["success"] is True
    assert result["page_count"] == 2
    assert result["archived_count"] == 10
    oldest = sort_entries(entries)[-1]
    assert result["dropped_ids"] == [oldest["id"]]
    assert len(result["warnings"]) == 1
    assert page_keys(raw_store) == [page_key(0), page_key(1)]
    assert await store.get(TASK, METADATA_KEY) == METADATA
    assert await archive.get_all(TASK) == sort_entries(entries)[:10]


@pytest.mark.asyncio
async def test_oversized_metadata_fails_before_writing(raw_store: FlakyStore) -> None:
    archive = EntryArchive(BoundedStore(raw_store, limit=100))

    result = await archive.save_all(TASK, [], {"note": "x" * 200})

    assert result["success"] is False
    assert result["error"] == LIMIT_EXCEEDED
    assert raw_store.set_calls == []


@pytest.mark.asyncio
async def test_pages_over_the_limit_are_split(raw_store: FlakyStore) -> None:
    archive = EntryArchive(BoundedStore(raw_store, limit=400), recent_count=0)
    entries = make_entries(15)

    result = await archive.save_all(TASK, entries, {})

    assert result["success"] is True
    assert result["page_count"] == 4
    assert result["archived_count"] == 15
    assert await archive.get_all(TASK) == sort_entries(entries)


@pytest.mark.asyncio
async def test_entry_too_large_for_a_page_is_dropped(raw_store: FlakyStore) -> None:
    archive = EntryArchive(BoundedStore(raw_store, limit=300), recent_count=0)
    huge = make_entry(10, description="x" * 400)
    entries = [huge, make_entry(1), make_entry(2)]

    result = await archive.save_all(TASK, entries, {})

    assert result["success"] is True
    assert result["dropped_ids"] == [huge["id"]]
    assert len(result["warnings"]) == 1
    assert [entry["id"] for entry in await archive.get_all(TASK)] == [
        make_entry(2)["id"],
        make_entry(1)["id"],
    ]


@pytest.mark.asyncio
async def test_write_failure_is_surfaced(archive: EntryArchive, raw_store: FlakyStore) -> None:
    raw_store.fail_set.add(RECENT_KEY)

    result = await archive.save_all(TASK, make_entries(3), METADATA)

    assert result["success"] is False
    assert result["error"] == f"write {RECENT_KEY} failed"


@pytest.mark.asyncio
async def test_metadata_last_keeps_old_metadata_on_failure(
    archive: EntryArchive, store: BoundedStore, raw_store: FlakyStore
) -> None:
    await store.set(TASK, METADATA_KEY, {"old": True})
    raw_store.fail_set.add(RECENT_KEY)

    result = await archive.save_all(TASK, make_entries(3), METADATA, metadata_last=True)

    assert result["success"] is False
    assert await store.get(TASK, METADATA_KEY) == {"old": True}


@pytest.mark.asyncio
async def test_embedded_entries_are_stripped_from_metadata(
    archive: EntryArchive, store: BoundedStore
) -> None:
    await archive.save_all(TASK, [], {"state": "idle", "entries": [1, 2]})
    await archive.save_metadata(TASK, {"state": "running", "entries": [3]})

    assert await store.get(TASK, METADATA_KEY) == {"state": "running"}


@pytest.mark.asyncio
async def test_legacy_embedded_entries_are_read(
    archive: EntryArchive, store: BoundedStore
) -> None:
    entries = [make_entry(1), make_entry(2, checklist_item_id="item-1")]
    await store.set(
        TASK,
        METADATA_KEY,
        {"state": "idle", "entries": [entry_to_dict(e) for e in entries] + ["bad"]},
    )

    snapshot = await archive.load(TASK)

    assert snapshot["migration_pending"] is True
    assert snapshot["entries"] == sort_entries(entries)
    assert snapshot["dropped"] == 1


@pytest.mark.asyncio
async def test_corrupted_page_stops_the_scan(
    store: BoundedStore, raw_store: FlakyStore
) -> None:
    archive = EntryArchive(store, recent_count=0, page_size=2)
    await archive.save_all(TASK, make_entries(6), METADATA)
    await store.set(TASK, page_key(1), "garbage")

    snapshot = await archive.load(TASK)

    assert snapshot["pages_read"] == 1
    assert len(snapshot["entries"]) == 2


@pytest.mark.asyncio
async def test_unreadable_page_stops_the_scan(
    store: BoundedStore, raw_store: FlakyStore
) -> None:
    archive = EntryArchive(store, recent_count=0, page_size=2)
    await archive.save_all(TASK, make_entries(6), METADATA)
    raw_store.fail_get.add(page_key(2))

    snapshot = await archive.load(TASK)

    assert snapshot["pages_read"] == 2
    assert len(snapshot["entries"]) == 4


@pytest.mark.asyncio
async def test_undecodable_entries_are_counted(
    archive: EntryArchive, store: BoundedStore
) -> None:
    await store.set(TASK, RECENT_KEY, encode_entries([make_entry(1)]) + [["e_x"], 7])

    snapshot = await archive.load(TASK)

    assert len(snapshot["entries"]) == 1
    assert snapshot["dropped"] == 2


@pytest.mark.asyncio
async def test_delete_from_archive_page(store: BoundedStore) -> None:
    archive = EntryArchive(store, recent_count=5, page_size=15)
    entries = make_entries(100)
    await archive.save_all(TASK, entries, METADATA)
    target = make_entry(40)

    result = await archive.delete(TASK, target["id"])

    assert result["success"] is True
    assert result["found"] is True
    assert result["old_entry"] == target
    remaining = await archive.get_all(TASK)
    assert len(remaining) == 99
    assert target["id"] not in {entry["id"] for entry in remaining}
    assert (await archive.load(TASK))["pages_read"] == 7


@pytest.mark.asyncio
async def test_delete_unknown_entry(archive: EntryArchive, raw_store: FlakyStore) -> None:
    await archive.save_all(TASK, make_entries(3), METADATA)
    raw_store.set_calls.clear()

    result = await archive.delete(TASK, "e_missing")

    assert result == {"success": False, "found": False}
    assert raw_store.set_calls == []


@pytest.mark.asyncio
async def test_update_applies_patch_and_metadata_hook(
    archive: EntryArchive, store: BoundedStore
) -> None:
    await archive.save_all(TASK, make_entries(3), {"totalTime": 1500})
    target = make_entry(1)
    calls = []

    def on_change(metadata, old_entry, new_entry):
        calls.append((old_entry["duration"], new_entry["duration"]))
        metadata["totalTime"] += new_entry["duration"] - old_entry["duration"]
        return metadata

    result = await archive.update(
        TASK, target["id"], {"duration": 2000, "description": "edited"}, on_change
    )

    assert result["success"] is True
    assert result["new_entry"]["duration"] == 2000
    assert result["new_entry"]["description"] == "edited"
    assert calls == [(500, 2000)]
    assert (await store.get(TASK, METADATA_KEY))["totalTime"] == 3000
    updated = next(e for e in await archive.get_all(TASK) if e["id"] == target["id"])
    assert updated["description"] == "edited"


@pytest.mark.asyncio
async def test_storage_stats(store: BoundedStore) -> None:
    archive = EntryArchive(store, recent_count=5, page_size=15)
    await archive.save_all(TASK, make_entries(40), METADATA)

    stats = await archive.storage_stats(TASK)

    assert stats["total_entries"] == 40
    assert stats["recent_entries"] == 5
    assert stats["archived_entries"] == 35
    assert stats["archive_pages"] == 3
    assert stats["metadata_size"] == store.measure(METADATA)
    assert stats["archive_size"] > 0
    assert stats["estimated_capacity"] > 40
