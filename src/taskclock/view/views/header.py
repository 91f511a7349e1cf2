# SPDX-License-Identifier: MIT

from typing import Optional

from rich import print
from rich.padding import Padding

from taskclock.state import get_show_header


def header(task_id: str, sub_header: Optional[str] = None) -> None:
    """Print the application header with the task being tracked.

    Args:
        task_id: The task the command operates on
        sub_header: Optional sub-header text to display
    """
    if not get_show_header():
        return

    additional = ""
    if sub_header is not None:
        additional = f"[sandy_brown]{sub_header}[/sandy_brown]"

    print(Padding("[dark_orange]taskclock[/dark_orange]", (1, 0, 0, 1)))
    print(Padding(additional, (0, 1)))
    print(Padding(f"[plum1]{task_id}[/plum1]", (0, 1)))
