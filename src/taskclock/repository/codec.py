# SPDX-License-Identifier: MIT

"""
Compact positional encoding for time entries.

Field names are dropped and the entry becomes a list in a fixed order:

    [id, start_time, end_time, duration, description, created_at, checklist_item_id]

member_id is appended as an eighth element only when it is set, so entries
written without attribution keep the seven element form.
"""

import logging
from typing import Any, Iterable, Optional

from taskclock.model.time_entry import TimeEntry

logger = logging.getLogger(__name__)

MIN_ENCODED_LENGTH = 6


def encode_entry(entry: TimeEntry) -> list[Any]:
    encoded: list[Any] = [
        entry["id"],
        entry["start_time"],
        entry["end_time"],
        entry["duration"],
        entry.get("description") or "",
        entry.get("created_at", entry["end_time"]),
        entry.get("checklist_item_id") or None,
    ]
    if entry.get("member_id"):
        encoded.append(entry["member_id"])
    return encoded


def encode_entries(entries: Iterable[TimeEntry]) -> list[list[Any]]:
    return [encode_entry(entry) for entry in entries]


def __as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def decode_entry(encoded: Any) -> Optional[TimeEntry]:
    """Return the entry, or None when the value is not a usable encoded entry."""
    if not isinstance(encoded, list) or len(encoded) < MIN_ENCODED_LENGTH:
        return None

    start_time = __as_int(encoded[1])
    end_time = __as_int(encoded[2])
    duration = __as_int(encoded[3])
    if start_time is None or end_time is None or duration is None:
        return None
    created_at = __as_int(encoded[5])

    checklist_item_id = encoded[6] if len(encoded) > 6 else None
    member_id = encoded[7] if len(encoded) > 7 else None

    return {
        "id": str(encoded[0]),
        "start_time": start_time,
        "end_time": end_time,
        "duration": duration,
        "description": str(encoded[4] or ""),
        "created_at": created_at if created_at is not None else end_time,
        "checklist_item_id": str(checklist_item_id) if checklist_item_id else None,
        "member_id": str(member_id) if member_id else None,
    }


def decode_entries(encoded_entries: Iterable[Any]) -> tuple[list[TimeEntry], int]:
    """Decode a batch, returning the usable entries and how many were dropped."""
    entries: list[TimeEntry] = []
    dropped = 0
    for encoded in encoded_entries:
        entry = decode_entry(encoded)
        if entry is None:
            dropped += 1
            continue
        entries.append(entry)
    if dropped > 0:
        logger.warning("dropped %s undecodable entries", dropped)
    return entries, dropped


def entry_to_dict(entry: TimeEntry) -> dict[str, Any]:
    """Field-named form, as stored by the legacy single-key layout."""
    return {
        "id": entry["id"],
        "startTime": entry["start_time"],
        "endTime": entry["end_time"],
        "duration": entry["duration"],
        "description": entry["description"],
        "createdAt": entry["created_at"],
        "checklistItemId": entry["checklist_item_id"],
        "memberId": entry["member_id"],
    }


def entry_from_dict(raw: Any) -> Optional[TimeEntry]:
    if isinstance(raw, list):
        return decode_entry(raw)
    if not isinstance(raw, dict) or "id" not in raw:
        return None

    start_time = __as_int(raw.get("startTime"))
    end_time = __as_int(raw.get("endTime"))
    if start_time is None or end_time is None:
        return None
    duration = __as_int(raw.get("duration"))
    created_at = __as_int(raw.get("createdAt"))

    return {
        "id": str(raw["id"]),
        "start_time": start_time,
        "end_time": end_time,
        "duration": duration if duration is not None else end_time - start_time,
        "description": str(raw.get("description") or ""),
        "created_at": created_at if created_at is not None else end_time,
        "checklist_item_id": raw.get("checklistItemId") or None,
        "member_id": raw.get("memberId") or None,
    }
