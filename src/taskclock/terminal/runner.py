# SPDX-License-Identifier: MIT

import asyncio
from typing import Any, Coroutine, TypeVar

import typer
from rich.console import Console

from taskclock import configuration
from taskclock import state as app_state
from taskclock.model.result import TimerResult
from taskclock.repository.archive import EntryArchive
from taskclock.repository.configuration import CONFIGURATION_REPO
from taskclock.service.timer import TimerService
from taskclock.storage.bounded import BoundedStore
from taskclock.storage.kv import YamlFileStore

T = TypeVar("T")


def build_archive() -> EntryArchive:
    config = CONFIGURATION_REPO.get_config()
    store = BoundedStore(
        YamlFileStore(configuration.DATA_STORE_PATH), config["storage_limit"]
    )
    return EntryArchive(
        store,
        recent_count=config["recent_entries_count"],
        page_size=config["archive_page_size"],
        max_pages=config["max_archive_pages"],
    )


def build_service(archive: EntryArchive) -> TimerService:
    config = CONFIGURATION_REPO.get_config()
    return TimerService(
        archive,
        member_id=config["member_id"],
        max_items=config["max_checklist_items"],
        max_description_length=config["max_description_length"],
    )


def resolve_task() -> str:
    task_id = app_state.get_task() or CONFIGURATION_REPO.get_config()["default_task"]
    if not task_id:
        raise typer.BadParameter(
            "no task selected, pass --task or set default_task with 'config set'"
        )
    return task_id


def run_async(coroutine: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coroutine)


def exit_on_failure(result: TimerResult) -> None:
    if result["success"]:
        return
    console = Console(stderr=True)
    console.print(f"[red]{result.get('message', 'failed')}[/red]")
    for warning in result.get("warnings", []):
        console.print(f"[yellow]{warning}[/yellow]")
    raise typer.Exit(1)
