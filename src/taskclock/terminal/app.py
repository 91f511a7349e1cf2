# SPDX-License-Identifier: MIT

from typing import Annotated, Optional

import typer

from taskclock import state as app_state
from taskclock.terminal import configuration, entry, item, timer
from taskclock.terminal.custom_typer import OrderedAliasedTyperGroup

app = typer.Typer(
    cls=OrderedAliasedTyperGroup,
    help="taskclock - time tracking for tasks and their checklist items",
    no_args_is_help=True,
)
app.command(name="start, s")(timer.start)
app.command(name="stop, x")(timer.stop)
app.command(name="pause, p")(timer.pause)
app.command(name="resume, r")(timer.resume)
app.command(name="status, st")(timer.status)
app.command(name="estimate, est")(timer.estimate)
app.command(name="entries, ls")(timer.entries)
app.command(name="stats")(timer.stats)
app.command(name="migrate")(timer.migrate)
app.add_typer(item.app, name="item, i")
app.add_typer(entry.app, name="entry, e")
app.add_typer(configuration.app, name="config, c")


@app.callback()
def main_callback(
    task: Annotated[
        Optional[str],
        typer.Option(
            "--task",
            "-t",
            help="task to operate on, defaults to default_task from the config",
        ),
    ] = None,
    no_header: Annotated[
        bool,
        typer.Option("--no-header", "-nh", help="Suppress header output"),
    ] = False,
) -> None:
    """
    taskclock - time tracking for tasks and their checklist items

    Global options that apply to all commands.
    """
    app_state.set_task(task)
    app_state.set_show_header(not no_header)


def run() -> None:
    app()
