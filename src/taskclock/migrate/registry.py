# SPDX-License-Identifier: MIT

import importlib
import pkgutil
from copy import copy
from typing import Any, Callable, TypeAlias, TypedDict

from taskclock.model.time_entry import TimeEntry

# Version written by this release; the newest registered migration must match.
SCHEMA_VERSION = 3


class MigrationState(TypedDict):
    """Raw timerData plus the reassembled entry list of one task."""

    scope_id: str
    metadata: dict[str, Any]
    entries: list[TimeEntry]


Migration: TypeAlias = Callable[[MigrationState], None]

MIGRATIONS: dict[int, Migration] = {}


def migration(version: int) -> Callable[[Migration], Migration]:
    def wrapper(func: Migration) -> Migration:
        global MIGRATIONS
        MIGRATIONS[version] = func
        return func

    return wrapper


def __import_all_modules(package_name: str) -> None:
    package = importlib.import_module(package_name)

    for importer, modname, ispkg in pkgutil.iter_modules(package.__path__):
        full_module_name = f"{package_name}.{modname}"
        importlib.import_module(full_module_name)


def register_migrations() -> None:
    __import_all_modules("taskclock.migrate.migrations")


def get_migrations() -> dict[int, Migration]:
    global MIGRATIONS
    return copy(MIGRATIONS)
