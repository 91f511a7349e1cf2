# SPDX-License-Identifier: MIT

from rich import box
from rich.console import Console
from rich.table import Table

from taskclock.model.result import StorageStats
from taskclock.model.time_entry import TimeEntry
from taskclock.service.aggregate import sum_durations
from taskclock.time import format_duration, ms_to_display_local_datetime_str
from taskclock.view.views.header import header


def entries_view(task_id: str, entries: list[TimeEntry], total_count: int) -> None:
    """Display completed entries, newest first."""
    sub_header = f"entries ({len(entries)} of {total_count})"
    header(task_id, sub_header)

    entries_table = Table(box=box.SIMPLE)
    entries_table.add_column("id")
    entries_table.add_column("start")
    entries_table.add_column("end")
    entries_table.add_column("duration", justify="right")
    entries_table.add_column("item")
    entries_table.add_column("member")
    entries_table.add_column("description", overflow="fold")

    for entry in entries:
        entries_table.add_row(
            entry["id"],
            ms_to_display_local_datetime_str(entry["start_time"]),
            ms_to_display_local_datetime_str(entry["end_time"]),
            format_duration(entry["duration"]),
            entry["checklist_item_id"] or "",
            entry["member_id"] or "",
            entry["description"],
        )

    console = Console()
    console.print(entries_table)


def single_entry_view(task_id: str, entry: TimeEntry) -> None:
    header(task_id, "entry")

    entry_table = Table(box=box.SIMPLE)
    entry_table.add_column("property")
    entry_table.add_column("value")

    entry_table.add_row("id", entry["id"])
    entry_table.add_row("start", ms_to_display_local_datetime_str(entry["start_time"]))
    entry_table.add_row("end", ms_to_display_local_datetime_str(entry["end_time"]))
    entry_table.add_row("duration", format_duration(entry["duration"]))
    entry_table.add_row("item", entry["checklist_item_id"] or "")
    entry_table.add_row("member", entry["member_id"] or "")
    entry_table.add_row("description", entry["description"])
    entry_table.add_row("created", ms_to_display_local_datetime_str(entry["created_at"]))

    console = Console()
    console.print(entry_table)


def storage_stats_view(task_id: str, stats: StorageStats) -> None:
    header(task_id, "storage")

    stats_table = Table(box=box.SIMPLE)
    stats_table.add_column("key")
    stats_table.add_column("entries", justify="right")
    stats_table.add_column("size", justify="right")
    stats_table.add_column("used", justify="right")

    stats_table.add_row(
        "metadata", "", str(stats["metadata_size"]), f"{stats['metadata_percent']}%"
    )
    stats_table.add_row(
        "recent",
        str(stats["recent_entries"]),
        str(stats["recent_size"]),
        f"{stats['recent_percent']}%",
    )
    stats_table.add_row(
        f"archive ({stats['archive_pages']} pages)",
        str(stats["archived_entries"]),
        str(stats["archive_size"]),
        "",
    )

    console = Console()
    console.print(stats_table)
    console.print(
        f" {stats['total_entries']} entries stored, "
        f"about {stats['estimated_capacity']} fit"
    )


def daily_totals_view(task_id: str, groups: dict[str, list[TimeEntry]]) -> None:
    header(task_id, "daily totals")

    totals_table = Table(box=box.SIMPLE)
    totals_table.add_column("day")
    totals_table.add_column("entries", justify="right")
    totals_table.add_column("total", justify="right")

    for day, day_entries in groups.items():
        totals_table.add_row(
            day,
            str(len(day_entries)),
            format_duration(sum_durations(day_entries), show_seconds=False),
        )

    console = Console()
    console.print(totals_table)
