"""
Package-level exception hierarchy for dbpulse.

All exceptions inherit from DBPulseError, enabling:
- Catching all dbpulse errors with a single except clause
- Context fields for debugging (config_key, conninfo)
- Structured serialization via to_dict() for JSON error output

Hierarchy:
    DBPulseError
    ├── ConfigurationError – Invalid probe configuration
    └── ProbeError         – A database handle failed to open or execute

ProbeError never escapes a prober: the probe primitive turns it into a
ProbeFailure result that is counted like any other failed attempt.
"""

from __future__ import annotations

from typing import Any


class DBPulseError(Exception):
    """
    Base exception for all dbpulse errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON error output."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
        }


# ── Configuration Errors ─────────────────────────────────────────────────


class ConfigurationError(DBPulseError):
    """
    Error in probe configuration.

    Attributes:
        config_key: The configuration key that caused the error (if known).
    """

    def __init__(self, message: str, config_key: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result


# ── Probe Errors ─────────────────────────────────────────────────────────


class ProbeError(DBPulseError):
    """
    A database handle could not be opened or a query could not run.

    Wraps the driver exception so the probers only ever deal with
    one error type.

    Attributes:
        original_error: The underlying driver exception (if any).
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.original_error is not None:
            result["original_error_type"] = self.original_error.__class__.__name__
            result["original_error_message"] = str(self.original_error)
        return result
