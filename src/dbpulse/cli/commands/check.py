"""Check command: one-shot probe over a fresh connection."""

from __future__ import annotations

import typer
from rich.console import Console

from dbpulse.cli.common import (
    EXIT_CONFIG_ERROR,
    ConfigFileOpt,
    DBNameOpt,
    DryRunOpt,
    HostOpt,
    LogLevelOpt,
    PasswordOpt,
    PortOpt,
    QueryOpt,
    SSLModeOpt,
    TimeoutOpt,
    UserOpt,
    configure_logging,
    error_console,
    resolve_config,
)
from dbpulse.exceptions import ConfigurationError

console = Console()


def register(app: typer.Typer) -> None:
    """Register the check command on the given Typer app."""

    @app.command()
    def check(
        config_file: ConfigFileOpt = None,
        host: HostOpt = None,
        port: PortOpt = None,
        dbname: DBNameOpt = None,
        user: UserOpt = None,
        password: PasswordOpt = None,
        timeout: TimeoutOpt = None,
        sslmode: SSLModeOpt = None,
        query: QueryOpt = None,
        log_level: LogLevelOpt = None,
        dry_run: DryRunOpt = False,
    ) -> None:
        """
        Run the probe once over a fresh connection.

        Exits 0 when the query executes, 1 when it does not.

        Examples:

            $ dbpulse check -h 10.0.0.12 -d billing -q "SELECT 1"
        """
        from dbpulse.db.driver import get_connector
        from dbpulse.db.probe import probe_once

        try:
            config = resolve_config(
                config_file,
                host=host,
                port=port,
                dbname=dbname,
                user=user,
                password=password,
                timeout=timeout,
                sslmode=sslmode,
                query=query,
                log_level=log_level,
            )
        except ConfigurationError as e:
            error_console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(code=EXIT_CONFIG_ERROR)

        configure_logging(config.log_level)

        connector = get_connector(dry_run=dry_run)
        outcome = probe_once(connector, config.conninfo(), config.query)

        if outcome.ok:
            console.print(
                f"[green]PASS[/green] {config.target_label} "
                f"[dim]({outcome.elapsed_seconds * 1000:.2f}ms)[/dim]"
            )
            return

        console.print(f"[red]FAIL[/red] {config.target_label}")
        console.print(f"   [dim]{outcome.cause}[/dim]")
        raise typer.Exit(code=1)
