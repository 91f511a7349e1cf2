# SPDX-License-Identifier: MIT

from typing import Any

from taskclock.migrate.registry import MigrationState, migration

ITEM_FIELDS = ("state", "currentEntry", "estimatedTime")


@migration(2)
def migrate(state: MigrationState) -> None:
    """Per-item timers moved from checklistItems to checklistTotals."""
    metadata = state["metadata"]
    checklist_items = metadata.pop("checklistItems", None)
    if not isinstance(checklist_items, dict):
        return

    checklist_totals: dict[str, Any] = metadata.get("checklistTotals")  # type: ignore[assignment]
    if not isinstance(checklist_totals, dict):
        checklist_totals = {}

    for item_id, item in checklist_items.items():
        if not isinstance(item, dict):
            continue
        merged = dict(checklist_totals.get(item_id) or {})
        for field in ITEM_FIELDS:
            if merged.get(field) is None and field in item:
                merged[field] = item[field]
        checklist_totals[str(item_id)] = merged

    metadata["checklistTotals"] = checklist_totals
