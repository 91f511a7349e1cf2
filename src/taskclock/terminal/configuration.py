# SPDX-License-Identifier: MIT

import typer
from rich.console import Console
from rich.table import Table

from taskclock import configuration
from taskclock.repository.configuration import CONFIGURATION_REPO
from taskclock.terminal.custom_typer import AliasedTyperGroup

app = typer.Typer(cls=AliasedTyperGroup, no_args_is_help=True)


@app.command("show, v")
def show() -> None:
    """Display current configuration settings."""
    config = CONFIGURATION_REPO.get_config()

    console = Console()
    table = Table()
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")

    for field, value in config.items():
        if field == "data_path":
            table.add_row(field, str(configuration.DATA_PATH))
            continue
        table.add_row(field, "None" if value is None else str(value))

    console.print(table)
    console.print(f"\nConfig file: {configuration.APP_CONFIG_PATH}")


@app.command("set, s", no_args_is_help=True)
def set_value(field: str, value: str) -> None:
    """Change one setting; use 'none' to unset text settings."""
    try:
        CONFIGURATION_REPO.set_value(field, value)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    CONFIGURATION_REPO.flush()
    Console().print(f"[green]{field} updated[/green]")
