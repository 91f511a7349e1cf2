# SPDX-License-Identifier: MIT

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from taskclock.model.result import StorageUsage
from taskclock.model.timer import ScopeTimer, TaskState, TimerState
from taskclock.service.aggregate import estimate_progress, get_effective_estimate
from taskclock.service.timer import get_current_elapsed
from taskclock.time import format_duration, ms_to_display_local_datetime_str
from taskclock.view.views.header import header

STATE_STYLES = {
    TimerState.IDLE: "grey50",
    TimerState.RUNNING: "green",
    TimerState.PAUSED: "yellow",
}


def __state_cell(scope: ScopeTimer) -> str:
    style = STATE_STYLES[scope["state"]]
    return f"[{style}]{scope['state']}[/{style}]"


def __started_cell(scope: ScopeTimer) -> str:
    if scope["current_entry"] is None:
        return ""
    return ms_to_display_local_datetime_str(scope["current_entry"]["start_time"])


def status_view(
    task_id: str,
    state: TaskState,
    now: int,
    usage: Optional[StorageUsage] = None,
) -> None:
    """Timer state of the task and each of its checklist items."""
    header(task_id, "status")
    timers = state["timers"]

    table = Table(box=box.SIMPLE)
    table.add_column("scope")
    table.add_column("state")
    table.add_column("started")
    table.add_column("elapsed", justify="right")
    table.add_column("total", justify="right")
    table.add_column("entries", justify="right")
    table.add_column("estimate", justify="right")

    scopes: list[tuple[str, ScopeTimer]] = [("task", timers["global_timer"])]
    scopes.extend(sorted(timers["checklist_totals"].items()))
    for name, scope in scopes:
        table.add_row(
            name,
            __state_cell(scope),
            __started_cell(scope),
            format_duration(get_current_elapsed(scope, now)),
            format_duration(scope["total_time"], show_seconds=False),
            str(scope["entry_count"]),
            format_duration(scope["estimated_time"], show_seconds=False)
            if scope["estimated_time"]
            else "",
        )

    console = Console()
    console.print(table)

    estimate = get_effective_estimate(timers)
    if estimate is not None:
        total = timers["global_timer"]["total_time"]
        progress = estimate_progress(total, estimate)
        style = "red" if progress["is_over_budget"] else "cyan"
        source = "manual" if timers["manual_estimate_set"] else "checklist"
        console.print(
            f" [{style}]{progress['percent']}% of {source} estimate "
            f"{format_duration(estimate, show_seconds=False)}[/{style}]"
            f", {format_duration(progress['remaining'], show_seconds=False)} remaining"
        )
    if usage is not None and usage["is_near_limit"]:
        console.print(
            f" [yellow]storage {usage['percent']}% full "
            f"({usage['size']}/{usage['limit']})[/yellow]"
        )


def result_view(message: str, style: str = "green") -> None:
    Console().print(f"[{style}]{message}[/{style}]")
