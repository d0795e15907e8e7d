"""
dbpulse CLI - Continuous database reachability probe.

Usage:
    dbpulse run -h 10.0.0.12 -d billing -u monitor -p secret
    dbpulse run -c 20 -q "SELECT 1"
    dbpulse check -h 10.0.0.12
    dbpulse config --json
"""

from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.console import Console

from dbpulse import __version__
from dbpulse.cli.commands import check as check_commands
from dbpulse.cli.commands import config as config_commands
from dbpulse.cli.commands import run as run_commands

app = typer.Typer(
    name="dbpulse",
    help="Continuous database reachability probe (PostgreSQL)",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"dbpulse version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """dbpulse - Continuous database reachability probe."""
    pass


run_commands.register(app)
check_commands.register(app)
config_commands.register(app)


if __name__ == "__main__":
    app()
