# SPDX-License-Identifier: MIT

from typing import Annotated, Optional

import typer

from taskclock.model.result import TimerResult
from taskclock.terminal.custom_typer import AliasedTyperGroup
from taskclock.terminal.parse import parse_duration
from taskclock.terminal.runner import (
    build_archive,
    build_service,
    exit_on_failure,
    resolve_task,
    run_async,
)
from taskclock.time import format_duration
from taskclock.view.views import timer as timer_report

app = typer.Typer(cls=AliasedTyperGroup, no_args_is_help=True)


def __show(task_id: str, result: TimerResult, message: str, now: int) -> None:
    exit_on_failure(result)
    if result.get("stopped_global"):
        timer_report.result_view("stopped task timer", "yellow")
    for item_id in result.get("stopped_item_ids", []):
        timer_report.result_view(f"stopped item {item_id}", "yellow")
    timer_report.result_view(message)
    if "data" in result:
        timer_report.status_view(task_id, result["data"], now)


@app.command("start, s", no_args_is_help=True)
def start(item_id: str) -> None:
    """Start timing a checklist item, stopping whatever else runs."""
    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.start_item(task_id, item_id))
    __show(task_id, result, f"started {item_id}", service.clock())


@app.command("stop, x", no_args_is_help=True)
def stop(
    item_id: str,
    description: Annotated[str, typer.Option("--description", "-d")] = "",
) -> None:
    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.stop_item(task_id, item_id, description))
    message = f"stopped {item_id}"
    if "entry" in result:
        message += f", recorded {format_duration(result['entry']['duration'])}"
    __show(task_id, result, message, service.clock())


@app.command("pause, p", no_args_is_help=True)
def pause(item_id: str) -> None:
    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.pause_item(task_id, item_id))
    __show(task_id, result, f"paused {item_id}", service.clock())


@app.command("resume, r", no_args_is_help=True)
def resume(item_id: str) -> None:
    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.resume_item(task_id, item_id))
    __show(task_id, result, f"resumed {item_id}", service.clock())


@app.command("estimate, est", no_args_is_help=True)
def estimate(
    item_id: str,
    duration: Annotated[
        Optional[str],
        typer.Argument(help="valid inputs: H:MM, 90m, 1h30m, or minutes"),
    ] = None,
    clear: Annotated[bool, typer.Option("--clear")] = False,
) -> None:
    """Set or clear the estimate of a checklist item."""
    if duration is None and not clear:
        raise typer.BadParameter("give a duration or --clear")
    estimate_ms = None if clear else parse_duration(duration)

    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.set_item_estimate(task_id, item_id, estimate_ms))
    message = f"estimate for {item_id} cleared"
    if estimate_ms:
        message = (
            f"estimate for {item_id} set to "
            f"{format_duration(estimate_ms, show_seconds=False)}"
        )
    __show(task_id, result, message, service.clock())
