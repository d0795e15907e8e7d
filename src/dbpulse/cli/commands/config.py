"""Config command: show the resolved settings."""

from __future__ import annotations

import json
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from dbpulse.cli.common import (
    EXIT_CONFIG_ERROR,
    ConfigFileOpt,
    error_console,
    resolve_config,
)
from dbpulse.exceptions import ConfigurationError

console = Console()


def register(app: typer.Typer) -> None:
    """Register the config command on the given Typer app."""

    @app.command("config")
    def show_config(
        config_file: ConfigFileOpt = None,
        json_output: Annotated[
            bool,
            typer.Option("--json", "-j", help="Output as JSON"),
        ] = False,
    ) -> None:
        """
        Show the resolved configuration (password redacted).
        """
        try:
            config = resolve_config(config_file)
        except ConfigurationError as e:
            error_console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(code=EXIT_CONFIG_ERROR)

        data = config.redacted_dict()

        if json_output:
            console.print_json(json.dumps(data))
            return

        table = Table(title="dbpulse configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        for key, value in data.items():
            table.add_row(key, str(value))
        console.print(table)
        console.print(f"[dim]conninfo: {config.redacted_conninfo()}[/dim]")
