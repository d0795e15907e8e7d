"""
Configuration system for dbpulse.

Configuration comes from three layers, lowest precedence first:
- Built-in defaults (the values below)
- Environment variables (DBPULSE_*) or a config file (DBPULSE_CONFIG_FILE)
- Command-line flags, applied by the CLI on top of the loaded config

Usage:
    from dbpulse.config import get_config, ProbeConfig

    # Load from environment (default)
    config = get_config()

    # Connection string handed to the driver
    conninfo = config.conninfo()

    # Same string with the password masked, safe to log
    logger.info("Using connection details: [%s]", config.redacted_conninfo())
"""

from __future__ import annotations

import json
import logging
import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from psycopg.conninfo import make_conninfo
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dbpulse.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

REDACTED = "********"


class LogLevel(str, Enum):
    """Minimum severity emitted by the CLI log handler."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def from_string(cls, value: str) -> "LogLevel":
        """Parse a level name, defaulting to info."""
        try:
            return cls(value.lower())
        except ValueError:
            logger.warning("Unknown log level %r, using %s", value, cls.INFO.value)
            return cls.INFO

    def to_logging(self) -> int:
        return getattr(logging, self.name)


class ProbeConfig(BaseModel):
    """
    dbpulse configuration.

    Describes the target database, the probe statement and how many
    concurrent connections each round opens. Immutable once loaded.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Target
    host: str = Field(default="127.0.0.1", description="Database host/address")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    dbname: str = Field(default="database_name", description="Database name")
    user: str = Field(default="myuser", description="Username")
    password: str = Field(default="somepass", description="Password")
    timeout: int = Field(default=1, ge=1, description="Connect timeout in seconds")
    sslmode: str = Field(default="disable", description="libpq sslmode")

    # Probe
    query: str = Field(
        default="SELECT id FROM account;",
        min_length=1,
        description="Statement executed by every probe",
    )
    worker_count: int = Field(
        default=0,
        ge=0,
        description="Concurrent connections per round (0 = cached connection only)",
    )
    settle_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Pause after every probe attempt",
    )

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Minimum severity to emit",
    )

    @property
    def round_based(self) -> bool:
        """Whether the round prober runs alongside the cached connection."""
        return self.worker_count > 0

    @property
    def target_label(self) -> str:
        """host/dbname, as shown in summaries."""
        return f"{self.host}/{self.dbname}"

    def conninfo(self) -> str:
        """libpq keyword/value connection string."""
        return self._build_conninfo(self.password)

    def redacted_conninfo(self) -> str:
        """Connection string with the password masked."""
        return self._build_conninfo(REDACTED)

    def _build_conninfo(self, password: str) -> str:
        return make_conninfo(
            host=self.host,
            port=self.port,
            user=self.user,
            password=password,
            dbname=self.dbname,
            connect_timeout=self.timeout,
            sslmode=self.sslmode,
        )

    def redacted_dict(self) -> dict[str, Any]:
        """Export as a JSON-friendly dictionary without the password."""
        data = self.model_dump(mode="json")
        data["password"] = REDACTED
        return data


def build_config(**kwargs: Any) -> ProbeConfig:
    """
    Build a ProbeConfig, reporting invalid values as ConfigurationError.

    Keys whose value is None are ignored so callers can pass optional
    overrides straight through.
    """
    values = {key: value for key, value in kwargs.items() if value is not None}
    try:
        return ProbeConfig(**values)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ConfigurationError(
            f"Invalid configuration: {key}: {first.get('msg', 'invalid value')}",
            config_key=key,
        ) from e


def apply_overrides(config: ProbeConfig, **overrides: Any) -> ProbeConfig:
    """Return a copy of config with the non-None overrides applied and re-validated."""
    update = {key: value for key, value in overrides.items() if value is not None}
    if not update:
        return config
    merged = config.model_dump()
    merged.update(update)
    return build_config(**merged)


def _parse_env_int(value: str | None, default: int) -> int:
    """Parse integer from environment variable."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Could not parse integer %r, using %d", value, default)
        return default


def _parse_env_float(value: str | None, default: float) -> float:
    """Parse float from environment variable."""
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Could not parse number %r, using %s", value, default)
        return default


def load_config_from_env() -> ProbeConfig:
    """
    Load configuration from environment variables.

    Examples:
    - DBPULSE_HOST=10.0.0.12
    - DBPULSE_DBNAME=billing
    - DBPULSE_WORKER_COUNT=20
    - DBPULSE_SETTLE_DELAY=0.5
    - DBPULSE_LOG_LEVEL=debug
    """
    defaults = ProbeConfig()
    env = os.environ

    config_kwargs: dict[str, Any] = {
        "host": env.get("DBPULSE_HOST"),
        "port": _parse_env_int(env.get("DBPULSE_PORT"), defaults.port),
        "dbname": env.get("DBPULSE_DBNAME"),
        "user": env.get("DBPULSE_USER"),
        "password": env.get("DBPULSE_PASSWORD"),
        "timeout": _parse_env_int(env.get("DBPULSE_TIMEOUT"), defaults.timeout),
        "sslmode": env.get("DBPULSE_SSLMODE"),
        "query": env.get("DBPULSE_QUERY"),
        "worker_count": _parse_env_int(
            env.get("DBPULSE_WORKER_COUNT"), defaults.worker_count
        ),
        "settle_delay_seconds": _parse_env_float(
            env.get("DBPULSE_SETTLE_DELAY"), defaults.settle_delay_seconds
        ),
    }

    level = env.get("DBPULSE_LOG_LEVEL")
    if level is not None:
        config_kwargs["log_level"] = LogLevel.from_string(level)

    return build_config(**config_kwargs)


def load_config_from_file(path: Path) -> ProbeConfig:
    """
    Load configuration from a JSON or YAML file.

    Keys missing from the file keep their defaults.
    """
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}", config_key="config_file")

    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed to read config file {path}: {e}", config_key="config_file"
        ) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping", config_key="config_file"
        )
    bad_keys = [key for key in data if not isinstance(key, str)]
    if bad_keys:
        raise ConfigurationError(
            f"Config file {path} has non-string keys: {bad_keys!r}",
            config_key="config_file",
        )

    return build_config(**data)


@lru_cache(maxsize=1)
def get_config() -> ProbeConfig:
    """
    Get the global configuration instance.

    Loads from:
    1. DBPULSE_CONFIG_FILE environment variable (if set)
    2. Environment variables (default)

    Result is cached for the lifetime of the process.
    """
    config_file = os.environ.get("DBPULSE_CONFIG_FILE")

    if config_file:
        return load_config_from_file(Path(config_file))

    return load_config_from_env()


def reset_config() -> None:
    """Reset the cached configuration (mainly for testing)."""
    get_config.cache_clear()
