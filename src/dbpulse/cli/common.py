"""Options and helpers shared by the dbpulse commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from dbpulse.config import (
    LogLevel,
    ProbeConfig,
    apply_overrides,
    get_config,
    load_config_from_file,
)

error_console = Console(stderr=True)

EXIT_CONFIG_ERROR = 2


ConfigFileOpt = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        help="JSON or YAML config file (default: $DBPULSE_CONFIG_FILE or environment)",
        exists=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
    ),
]
HostOpt = Annotated[Optional[str], typer.Option("--host", "-h", help="Database host/address")]
PortOpt = Annotated[Optional[int], typer.Option("--port", "-P", help="Database port")]
DBNameOpt = Annotated[Optional[str], typer.Option("--dbname", "-d", help="Database name")]
UserOpt = Annotated[Optional[str], typer.Option("--user", "-u", help="Username")]
PasswordOpt = Annotated[Optional[str], typer.Option("--password", "-p", help="Password")]
TimeoutOpt = Annotated[
    Optional[int], typer.Option("--timeout", "-t", help="Connect timeout in seconds")
]
SSLModeOpt = Annotated[Optional[str], typer.Option("--sslmode", help="libpq sslmode")]
QueryOpt = Annotated[Optional[str], typer.Option("--query", "-q", help="Statement to probe with")]
LogLevelOpt = Annotated[
    Optional[LogLevel],
    typer.Option("--log-level", "-l", help="Minimum severity to emit", case_sensitive=False),
]
DryRunOpt = Annotated[
    bool,
    typer.Option("--dry-run", help="Probe a simulated database that always answers"),
]


def resolve_config(config_file: Path | None, **overrides: Any) -> ProbeConfig:
    """
    Load the base config and apply explicit command-line values.

    Raises:
        ConfigurationError: If the file or any value is invalid.
    """
    base = load_config_from_file(config_file) if config_file else get_config()
    return apply_overrides(base, **overrides)


def configure_logging(level: LogLevel) -> None:
    """Send dbpulse logs through rich at the given level."""
    handler = RichHandler(
        console=error_console,
        show_path=False,
        rich_tracebacks=True,
        log_time_format="[%Y-%m-%d %H:%M:%S]",
    )
    logging.basicConfig(
        level=level.to_logging(),
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
