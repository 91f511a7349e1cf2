# SPDX-License-Identifier: MIT

from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console

from taskclock.model.result import TimerResult
from taskclock.service.aggregate import (
    filter_by_date_range,
    get_storage_usage,
    group_by_date,
    verify_totals,
)
from taskclock.terminal.parse import parse_duration
from taskclock.terminal.runner import (
    build_archive,
    build_service,
    exit_on_failure,
    resolve_task,
    run_async,
)
from taskclock.time import format_duration
from taskclock.view.views import entry as entry_report
from taskclock.view.views import timer as timer_report


def __show(task_id: str, result: TimerResult, message: str, now: int) -> None:
    exit_on_failure(result)
    for item_id in result.get("stopped_item_ids", []):
        timer_report.result_view(f"stopped item {item_id}", "yellow")
    if result.get("stopped_global"):
        timer_report.result_view("stopped task timer", "yellow")
    for warning in result.get("warnings", []):
        timer_report.result_view(warning, "yellow")
    timer_report.result_view(message)
    if "data" in result:
        timer_report.status_view(task_id, result["data"], now)


def start() -> None:
    """Start the task timer, stopping a running checklist item."""
    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.start_global(task_id))
    __show(task_id, result, "started", service.clock())


def stop(
    description: Annotated[
        str, typer.Option("--description", "-d", help="what the session was spent on")
    ] = "",
) -> None:
    """Stop the task timer and record an entry."""
    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.stop_global(task_id, description))
    message = "stopped"
    if "entry" in result:
        message = f"stopped, recorded {format_duration(result['entry']['duration'])}"
    __show(task_id, result, message, service.clock())


def pause() -> None:
    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.pause_global(task_id))
    __show(task_id, result, "paused", service.clock())


def resume() -> None:
    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.resume_global(task_id))
    __show(task_id, result, "resumed", service.clock())


def estimate(
    duration: Annotated[
        Optional[str],
        typer.Argument(help="valid inputs: H:MM, 90m, 1h30m, or minutes"),
    ] = None,
    clear: Annotated[bool, typer.Option("--clear", help="remove the estimate")] = False,
) -> None:
    """Set or clear the manual estimate of the task."""
    if duration is None and not clear:
        raise typer.BadParameter("give a duration or --clear")
    estimate_ms = None if clear else parse_duration(duration)

    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.set_estimate(task_id, estimate_ms))
    message = "estimate cleared"
    if estimate_ms:
        message = f"estimate set to {format_duration(estimate_ms, show_seconds=False)}"
    __show(task_id, result, message, service.clock())


def status() -> None:
    """Show timer state, totals and estimates."""
    task_id = resolve_task()
    archive = build_archive()
    service = build_service(archive)
    result = run_async(service.get_state(task_id))
    exit_on_failure(result)

    state = result["data"]
    usage = get_storage_usage(
        state["timers"],
        state["entries"][: archive.recent_count],
        archive.store.limit,
    )
    timer_report.status_view(task_id, state, service.clock(), usage)


def entries(
    item: Annotated[
        Optional[str], typer.Option("--item", "-i", help="only entries of this item")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n")] = 20,
    since: Annotated[
        Optional[str], typer.Option("--since", help="first day, YYYY-MM-DD")
    ] = None,
    until: Annotated[
        Optional[str], typer.Option("--until", help="last day, YYYY-MM-DD")
    ] = None,
    by_day: Annotated[
        bool, typer.Option("--by-day", help="daily totals instead of entries")
    ] = False,
) -> None:
    """List recorded entries, newest first."""
    try:
        since_date = pendulum.parse(since).date() if since else None  # type: ignore[union-attr]
        until_date = pendulum.parse(until).date() if until else None  # type: ignore[union-attr]
    except ValueError as e:
        raise typer.BadParameter(f"Incorrect date format: {e}")

    task_id = resolve_task()
    service = build_service(build_archive())
    result = run_async(service.get_state(task_id))
    exit_on_failure(result)

    selected = result["data"]["entries"]
    if item is not None:
        selected = [entry for entry in selected if entry["checklist_item_id"] == item]
    selected = filter_by_date_range(selected, since_date, until_date)

    if by_day:
        entry_report.daily_totals_view(task_id, group_by_date(selected))
        return
    entry_report.entries_view(task_id, selected[:limit], len(selected))


def stats() -> None:
    """Show how much of the storage budget the task uses."""
    task_id = resolve_task()
    archive = build_archive()
    service = build_service(archive)
    result = run_async(service.get_state(task_id))
    exit_on_failure(result)

    storage_stats = run_async(archive.storage_stats(task_id))
    entry_report.storage_stats_view(task_id, storage_stats)

    console = Console()
    for mismatch in verify_totals(result["data"]["timers"], result["data"]["entries"]):
        scope = mismatch["item_id"] or "task"
        console.print(
            f" [yellow]{scope}: stored total "
            f"{format_duration(mismatch['stored_total'])} over {mismatch['stored_count']} "
            f"entries, entries add up to {format_duration(mismatch['actual_total'])} "
            f"over {mismatch['actual_count']}[/yellow]"
        )


def migrate() -> None:
    """Bring the stored layout of the task up to date."""
    task_id = resolve_task()
    service = build_service(build_archive())
    outcome = run_async(service.migrate(task_id))
    if not outcome["success"]:
        Console(stderr=True).print(f"[red]migration failed: {outcome.get('error')}[/red]")
        raise typer.Exit(1)
    if outcome["applied"]:
        applied = ", ".join(str(version) for version in outcome["applied"])
        timer_report.result_view(f"applied migrations {applied}")
    else:
        timer_report.result_view("already up to date")
