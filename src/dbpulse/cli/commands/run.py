"""Run command: continuous reachability probing."""

from __future__ import annotations

from typing import Annotated, Optional

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
    """Register the run command on the given Typer app."""

    @app.command()
    def run(
        config_file: ConfigFileOpt = None,
        host: HostOpt = None,
        port: PortOpt = None,
        dbname: DBNameOpt = None,
        user: UserOpt = None,
        password: PasswordOpt = None,
        timeout: TimeoutOpt = None,
        sslmode: SSLModeOpt = None,
        query: QueryOpt = None,
        count: Annotated[
            Optional[int],
            typer.Option(
                "--count",
                "-c",
                help="Concurrent connections per round (0 = cached connection only)",
            ),
        ] = None,
        delay: Annotated[
            Optional[float],
            typer.Option("--delay", help="Seconds to pause after every probe attempt"),
        ] = None,
        log_level: LogLevelOpt = None,
        dry_run: DryRunOpt = False,
    ) -> None:
        """
        Probe the database until interrupted, then print a summary.

        Examples:

            $ dbpulse run -h 10.0.0.12 -d billing -u monitor -p secret
            $ dbpulse run -h 10.0.0.12 -d billing -c 20 -q "SELECT 1"
        """
        from dbpulse.daemon import EXIT_INTERRUPTED, ProbeDaemon
        from dbpulse.db.driver import get_connector

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
                worker_count=count,
                settle_delay_seconds=delay,
                log_level=log_level,
            )
        except ConfigurationError as e:
            error_console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(code=EXIT_CONFIG_ERROR)

        configure_logging(config.log_level)

        mode = (
            f"{config.worker_count} connection(s) per round + cached connection"
            if config.round_based
            else "cached connection only"
        )
        console.print(f"[bold]dbpulse[/bold]: probing {config.target_label}")
        console.print(f"[dim]Mode: {mode} | Query: {config.query}[/dim]")

        daemon = ProbeDaemon(
            config,
            connector=get_connector(dry_run=dry_run),
            console=error_console,
        )
        exit_code = daemon.run()
        if exit_code == EXIT_INTERRUPTED:
            daemon.terminate(exit_code)
        raise typer.Exit(code=exit_code)
