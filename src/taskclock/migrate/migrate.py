# SPDX-License-Identifier: MIT

import logging
from typing import NotRequired, TypedDict

from taskclock.migrate import registry
from taskclock.migrate.registry import SCHEMA_VERSION, MigrationState
from taskclock.model.time_entry import TimeEntry
from taskclock.repository.archive import EntryArchive, decode_legacy_entries

logger = logging.getLogger(__name__)


class MigrationOutcome(TypedDict):
    success: bool
    applied: list[int]
    error: NotRequired[str]


def __collect_entries(
    entries: list[TimeEntry], metadata: dict, migration_pending: bool
) -> list[TimeEntry]:
    """
    A previous attempt may have written the recent key but not the new
    metadata; entries still embedded in timerData are merged back by id.
    """
    if migration_pending:
        return entries
    legacy_entries, _ = decode_legacy_entries(metadata)
    known_ids = {entry["id"] for entry in entries}
    return entries + [entry for entry in legacy_entries if entry["id"] not in known_ids]


def __stored_version(metadata: dict) -> int:
    version = metadata.get("schemaVersion")
    if isinstance(version, int) and not isinstance(version, bool):
        return version
    return 0


async def run_required_migrations(
    archive: EntryArchive, scope_id: str
) -> MigrationOutcome:
    """
    Bring one task's stored layout up to SCHEMA_VERSION.

    Tasks without metadata have nothing to migrate; they are written in the
    current layout on their first save. All migrations run in memory and the
    result is persisted with a single save that writes timerData last, so a
    failed save leaves the stored version untouched and the migrations are
    retried next time.
    """
    metadata = await archive.get_metadata(scope_id)
    if metadata is None:
        return {"success": True, "applied": []}

    stored_version = __stored_version(metadata)
    if stored_version > SCHEMA_VERSION:
        logger.warning(
            "%s: stored schema version %s is newer than supported version %s",
            scope_id,
            stored_version,
            SCHEMA_VERSION,
        )
        return {"success": True, "applied": []}

    registry.register_migrations()
    migrations = registry.get_migrations()
    migrations_to_run = sorted(
        [(key, value) for key, value in migrations.items() if key > stored_version],
        key=lambda kvp: kvp[0],
    )
    if not migrations_to_run:
        return {"success": True, "applied": []}

    snapshot = await archive.load(scope_id)
    state: MigrationState = {
        "scope_id": scope_id,
        "metadata": dict(metadata),
        "entries": __collect_entries(
            snapshot["entries"], metadata, snapshot["migration_pending"]
        ),
    }

    applied: list[int] = []
    for migration_id, migration_callable in migrations_to_run:
        logger.info("%s: running migration %s", scope_id, migration_id)
        migration_callable(state)
        state["metadata"]["schemaVersion"] = migration_id
        applied.append(migration_id)

    save_result = await archive.save_all(
        scope_id, state["entries"], state["metadata"], metadata_last=True
    )
    if not save_result["success"]:
        error = save_result.get("error", "save failed")
        logger.error("%s: migrations %s not persisted: %s", scope_id, applied, error)
        return {"success": False, "applied": [], "error": error}

    logger.info("%s: migrated to schema version %s", scope_id, applied[-1])
    return {"success": True, "applied": applied}
