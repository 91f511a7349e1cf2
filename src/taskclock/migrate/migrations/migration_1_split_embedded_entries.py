# SPDX-License-Identifier: MIT

import logging

from taskclock.migrate.registry import MigrationState, migration

logger = logging.getLogger(__name__)


@migration(1)
def migrate(state: MigrationState) -> None:
    """
    Entries used to live inside timerData next to the timer state. The
    runner already loaded them into state["entries"]; dropping the fields
    here makes the following save move them into the recent key and pages.
    """
    metadata = state["metadata"]
    embedded = metadata.pop("entries", None)
    metadata.pop("recentEntries", None)

    if isinstance(embedded, list):
        logger.info(
            "%s: moving %s embedded entries out of timerData",
            state["scope_id"],
            len(embedded),
        )
