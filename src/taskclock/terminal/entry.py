# SPDX-License-Identifier: MIT

from typing import Annotated, Any, Optional

import typer

from taskclock.terminal.custom_typer import AliasedTyperGroup
from taskclock.terminal.parse import parse_duration
from taskclock.terminal.runner import (
    build_archive,
    build_service,
    exit_on_failure,
    resolve_task,
    run_async,
)
from taskclock.view.views import entry as entry_report
from taskclock.view.views import timer as timer_report

app = typer.Typer(cls=AliasedTyperGroup, no_args_is_help=True)


@app.command("delete, d", no_args_is_help=True)
def delete(entry_id: str) -> None:
    """Delete an entry and take its time off the totals."""
    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.delete_entry(task_id, entry_id))
    exit_on_failure(result)
    timer_report.result_view(f"deleted {entry_id}")


@app.command("modify, m", no_args_is_help=True)
def modify(
    entry_id: str,
    duration: Annotated[
        Optional[str],
        typer.Option(
            "--duration", "-u", help="valid inputs: H:MM, 90m, 1h30m, or minutes"
        ),
    ] = None,
    description: Annotated[Optional[str], typer.Option("--description", "-d")] = None,
    item: Annotated[
        Optional[str], typer.Option("--item", "-i", help="link to a checklist item")
    ] = None,
    remove_item: Annotated[
        bool, typer.Option("--remove-item", help="unlink from its checklist item")
    ] = False,
) -> None:
    patch: dict[str, Any] = {}
    if duration is not None:
        patch["duration"] = parse_duration(duration)
    if description is not None:
        patch["description"] = description
    if item is not None:
        patch["checklist_item_id"] = item
    if remove_item:
        patch["checklist_item_id"] = None
    if not patch:
        raise typer.BadParameter("nothing to modify")

    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.update_entry(task_id, entry_id, patch))
    exit_on_failure(result)
    if "entry" in result:
        entry_report.single_entry_view(task_id, result["entry"])
