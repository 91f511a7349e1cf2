# SPDX-License-Identifier: MIT

"""
Paginated entry storage on top of a size-capped key-value store.

Layout per task scope:

    timerData               metadata only (timer states, estimates, totals)
    timerEntries_recent     codec-encoded newest entries, always written
    timerEntries_<n>        codec-encoded archive pages, n = 0, 1, 2, ...

Every save rebuilds the recent slice and all pages from the full entry
list. Older releases embedded the entry list in timerData; reads still
accept that layout and report it as pending migration.
"""

import logging
from copy import deepcopy
from typing import Any, Callable, Optional, TypeAlias

from taskclock.model.entity_id import EntityId
from taskclock.model.result import (
    LIMIT_EXCEEDED,
    ArchiveSnapshot,
    ChangeResult,
    SaveResult,
    StorageStats,
    WriteResult,
)
from taskclock.model.time_entry import EntryPatch, TimeEntry
from taskclock.repository.codec import (
    decode_entries,
    encode_entries,
    entry_from_dict,
)
from taskclock.storage.bounded import BoundedStore

logger = logging.getLogger(__name__)

METADATA_KEY = "timerData"
ARCHIVE_BASE_KEY = "timerEntries"
RECENT_KEY = f"{ARCHIVE_BASE_KEY}_recent"
LEGACY_ENTRIES_FIELD = "entries"

DEFAULT_RECENT_COUNT = 10
DEFAULT_PAGE_SIZE = 15
DEFAULT_MAX_PAGES = 20
DEFAULT_CLEANUP_WINDOW = 10
# Rough size of one encoded entry with a typical description.
APPROX_ENCODED_ENTRY_SIZE = 130

MetadataHook: TypeAlias = Callable[
    [dict[str, Any], TimeEntry, Optional[TimeEntry]], dict[str, Any]
]


def page_key(page_index: int) -> str:
    return f"{ARCHIVE_BASE_KEY}_{page_index}"


def sort_entries(entries: list[TimeEntry]) -> list[TimeEntry]:
    return sorted(entries, key=lambda entry: entry["created_at"], reverse=True)


def decode_legacy_entries(metadata: Optional[dict[str, Any]]) -> tuple[list[TimeEntry], int]:
    """Entries embedded in timerData by the single-key layout, and the undecodable count."""
    legacy = metadata.get(LEGACY_ENTRIES_FIELD) if metadata else None
    if not isinstance(legacy, list):
        return [], 0
    entries: list[TimeEntry] = []
    dropped = 0
    for raw in legacy:
        entry = entry_from_dict(raw)
        if entry is None:
            dropped += 1
            continue
        entries.append(entry)
    return entries, dropped


def has_legacy_entries(metadata: Optional[dict[str, Any]]) -> bool:
    return metadata is not None and isinstance(metadata.get(LEGACY_ENTRIES_FIELD), list)


def strip_embedded_entries(metadata: dict[str, Any]) -> dict[str, Any]:
    stripped = dict(metadata)
    stripped.pop(LEGACY_ENTRIES_FIELD, None)
    return stripped


class EntryArchive:
    def __init__(
        self,
        store: BoundedStore,
        recent_count: int = DEFAULT_RECENT_COUNT,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        cleanup_window: int = DEFAULT_CLEANUP_WINDOW,
    ) -> None:
        if recent_count < 0 or page_size < 1 or max_pages < 1:
            raise ValueError(
                f"{EntryArchive.__name__}: invalid sizing recent_count={recent_count} "
                f"page_size={page_size} max_pages={max_pages}"
            )
        self.store = store
        self.recent_count = recent_count
        self.page_size = page_size
        self.max_pages = max_pages
        self.cleanup_window = cleanup_window

    # ---- reads ----

    async def get_metadata(self, scope_id: str) -> Optional[dict[str, Any]]:
        metadata = await self.store.get(scope_id, METADATA_KEY)
        if not isinstance(metadata, dict):
            return None
        return metadata

    async def load(self, scope_id: str) -> ArchiveSnapshot:
        dropped = 0
        migration_pending = False

        recent_raw = await self.store.get(scope_id, RECENT_KEY)
        if isinstance(recent_raw, list):
            recent, recent_dropped = decode_entries(recent_raw)
            dropped += recent_dropped
        else:
            metadata = await self.get_metadata(scope_id)
            recent, legacy_dropped = decode_legacy_entries(metadata)
            dropped += legacy_dropped
            if has_legacy_entries(metadata):
                migration_pending = True
                logger.info(
                    "%s: found %s entries in legacy metadata layout",
                    scope_id,
                    len(recent),
                )

        archived: list[TimeEntry] = []
        pages_read = 0
        while pages_read < self.max_pages:
            page = await self.store.get(scope_id, page_key(pages_read))
            if not isinstance(page, list):
                break
            page_entries, page_dropped = decode_entries(page)
            archived.extend(page_entries)
            dropped += page_dropped
            pages_read += 1

        entries = sort_entries(recent + archived)
        return {
            "entries": entries,
            "recent_count": len(recent),
            "pages_read": pages_read,
            "dropped": dropped,
            "migration_pending": migration_pending,
        }

    async def get_all(self, scope_id: str) -> list[TimeEntry]:
        snapshot = await self.load(scope_id)
        return snapshot["entries"]

    # ---- writes ----

    async def save_metadata(
        self, scope_id: str, metadata: dict[str, Any]
    ) -> WriteResult:
        return await self.store.set(
            scope_id, METADATA_KEY, strip_embedded_entries(metadata)
        )

    def paginate(
        self, entries: list[TimeEntry], warnings: list[str]
    ) -> tuple[list[list[list[Any]]], list[EntityId]]:
        """
        Chunk entries into pages of at most page_size, splitting any page
        whose encoded form is still over the store limit. A single entry
        that cannot fit on its own page is dropped.
        """
        pages: list[list[list[Any]]] = []
        dropped_ids: list[EntityId] = []
        pending = [
            encode_entries(entries[start : start + self.page_size])
            for start in range(0, len(entries), self.page_size)
        ]
        while pending:
            page = pending.pop(0)
            if self.store.fits(page):
                pages.append(page)
                continue
            if len(page) == 1:
                size = self.store.measure(page)
                message = (
                    f"entry {page[0][0]} dropped: encoded size {size} "
                    f"exceeds limit {self.store.limit}"
                )
                logger.warning(message)
                warnings.append(message)
                dropped_ids.append(page[0][0])
                continue
            middle = len(page) // 2
            pending[0:0] = [page[:middle], page[middle:]]
        return pages, dropped_ids

    async def save_all(
        self,
        scope_id: str,
        entries: list[TimeEntry],
        metadata: dict[str, Any],
        metadata_last: bool = False,
    ) -> SaveResult:
        """
        Rebuild the recent slice and every archive page from entries.

        Metadata is written first so timer state lands even when a page
        write fails. With metadata_last the order is reversed, for callers
        whose previous metadata must survive a failed entry write.
        """
        warnings: list[str] = []
        sorted_entries = sort_entries(entries)
        recent = sorted_entries[: self.recent_count]
        old = sorted_entries[self.recent_count :]

        metadata_value = strip_embedded_entries(metadata)
        recent_value = encode_entries(recent)

        # Measured before the first write: capacity failures leave stored data untouched.
        for key, value in ((METADATA_KEY, metadata_value), (RECENT_KEY, recent_value)):
            size = self.store.measure(value)
            if size > self.store.limit:
                logger.warning(
                    "%s: %s would be %s characters, limit %s",
                    scope_id,
                    key,
                    size,
                    self.store.limit,
                )
                return {"success": False, "error": LIMIT_EXCEEDED, "warnings": warnings}

        pages, dropped_ids = self.paginate(old, warnings)
        if len(pages) > self.max_pages:
            # Pages hold entries newest first; the overflow is the oldest history.
            overflow_ids = [
                encoded[0] for page in pages[self.max_pages :] for encoded in page
            ]
            pages = pages[: self.max_pages]
            message = (
                f"{len(overflow_ids)} oldest entries dropped: the archive keeps "
                f"at most {self.max_pages} pages"
            )
            logger.warning("%s: %s", scope_id, message)
            warnings.append(message)
            dropped_ids.extend(overflow_ids)

        writes: list[tuple[str, Any]] = [(RECENT_KEY, recent_value)]
        writes.extend((page_key(index), page) for index, page in enumerate(pages))
        if metadata_last:
            writes.append((METADATA_KEY, metadata_value))
        else:
            writes.insert(0, (METADATA_KEY, metadata_value))

        for key, value in writes:
            write_result = await self.store.set(scope_id, key, value)
            if not write_result["success"]:
                logger.error(
                    "%s: writing %s failed: %s",
                    scope_id,
                    key,
                    write_result.get("error"),
                )
                return {
                    "success": False,
                    "error": write_result.get("error", f"writing {key} failed"),
                    "warnings": warnings,
                }

        await self.__clear_extra_pages(scope_id, len(pages))

        archived_count = sum(len(page) for page in pages)
        logger.debug(
            "%s: saved %s recent and %s archived entries in %s pages",
            scope_id,
            len(recent),
            archived_count,
            len(pages),
        )
        return {
            "success": True,
            "archived_count": archived_count,
            "recent_count": len(recent),
            "page_count": len(pages),
            "warnings": warnings,
            "dropped_ids": dropped_ids,
        }

    async def __clear_extra_pages(self, scope_id: str, page_count: int) -> None:
        for page_index in range(page_count, page_count + self.cleanup_window):
            removed = await self.store.remove(scope_id, page_key(page_index))
            if not removed:
                logger.warning(
                    "%s: could not clear stale archive page %s", scope_id, page_index
                )

    # ---- single entry changes ----

    async def __rewrite(
        self,
        scope_id: str,
        entries: list[TimeEntry],
        old_entry: TimeEntry,
        new_entry: Optional[TimeEntry],
        on_change: Optional[MetadataHook],
    ) -> ChangeResult:
        metadata = await self.get_metadata(scope_id) or {}
        if on_change is not None:
            metadata = on_change(deepcopy(metadata), old_entry, new_entry)

        save_result = await self.save_all(scope_id, entries, metadata)
        result: ChangeResult = {
            "success": save_result["success"],
            "found": True,
            "entries": sort_entries(entries),
            "old_entry": old_entry,
            "new_entry": new_entry,
            "warnings": save_result["warnings"],
        }
        if not save_result["success"]:
            result["error"] = save_result.get("error", "save failed")
        return result

    async def delete(
        self,
        scope_id: str,
        entry_id: EntityId,
        on_change: Optional[MetadataHook] = None,
    ) -> ChangeResult:
        entries = await self.get_all(scope_id)
        removed = next((entry for entry in entries if entry["id"] == entry_id), None)
        if removed is None:
            return {"success": False, "found": False}

        remaining = [entry for entry in entries if entry["id"] != entry_id]
        return await self.__rewrite(scope_id, remaining, removed, None, on_change)

    async def update(
        self,
        scope_id: str,
        entry_id: EntityId,
        patch: EntryPatch,
        on_change: Optional[MetadataHook] = None,
    ) -> ChangeResult:
        entries = await self.get_all(scope_id)
        index = next(
            (i for i, entry in enumerate(entries) if entry["id"] == entry_id), None
        )
        if index is None:
            return {"success": False, "found": False}

        old_entry = entries[index]
        new_entry: TimeEntry = {**old_entry, **patch}  # type: ignore[typeddict-item]
        entries[index] = new_entry
        return await self.__rewrite(scope_id, entries, old_entry, new_entry, on_change)

    # ---- statistics ----

    async def storage_stats(self, scope_id: str) -> StorageStats:
        snapshot = await self.load(scope_id)
        metadata = await self.get_metadata(scope_id) or {}
        recent = await self.store.get(scope_id, RECENT_KEY, [])

        archive_size = 0
        archive_pages = 0
        while archive_pages < self.max_pages:
            page = await self.store.get(scope_id, page_key(archive_pages))
            if not isinstance(page, list):
                break
            archive_size += self.store.measure(page)
            archive_pages += 1

        metadata_usage = self.store.usage(metadata)
        recent_usage = self.store.usage(recent)
        total = len(snapshot["entries"])
        return {
            "total_entries": total,
            "recent_entries": snapshot["recent_count"],
            "archived_entries": total - snapshot["recent_count"],
            "metadata_size": metadata_usage["size"],
            "metadata_percent": metadata_usage["percent"],
            "recent_size": recent_usage["size"],
            "recent_percent": recent_usage["percent"],
            "archive_size": archive_size,
            "archive_pages": archive_pages,
            "estimated_capacity": self.recent_count
            + self.max_pages
            * min(self.page_size, self.store.limit // APPROX_ENCODED_ENTRY_SIZE),
        }

