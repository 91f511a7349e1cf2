# SPDX-License-Identifier: MIT

import logging

from taskclock.migrate.registry import MigrationState, migration
from taskclock.service.aggregate import totals_by_scope

logger = logging.getLogger(__name__)


@migration(3)
def migrate(state: MigrationState) -> None:
    """
    Totals are maintained incrementally from this version on, so seed them
    once from the full entry history.
    """
    metadata = state["metadata"]
    totals = totals_by_scope(state["entries"])

    global_total, global_count = totals.get(None, (0, 0))
    metadata["totalTime"] = global_total
    metadata["entryCount"] = global_count

    checklist_totals = metadata.get("checklistTotals")
    if not isinstance(checklist_totals, dict):
        checklist_totals = {}
    for item_id, (total_time, entry_count) in totals.items():
        if item_id is None:
            continue
        item = checklist_totals.get(item_id)
        if not isinstance(item, dict):
            item = {}
        item["totalTime"] = total_time
        item["entryCount"] = entry_count
        checklist_totals[item_id] = item
    for item_id, item in checklist_totals.items():
        if isinstance(item, dict) and item_id not in totals:
            item["totalTime"] = 0
            item["entryCount"] = 0
    metadata["checklistTotals"] = checklist_totals

    logger.info(
        "%s: backfilled totals for %s entries across %s items",
        state["scope_id"],
        global_count,
        len(checklist_totals),
    )
