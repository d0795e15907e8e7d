"""
Probe execution primitive.

One probe runs the configured query, drains the rows and reports how long
it took. Values are thrown away: the only question is whether the query
ran. Every failure, whatever its cause, becomes a ProbeFailure; nothing is
raised to the caller.

The caller owns the settle delay that follows each attempt.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Union

from dbpulse.db.driver import Connector, Handle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeSuccess:
    """The query executed and its result set was consumed."""

    elapsed_seconds: float

    @property
    def ok(self) -> bool:
        return True

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed_seconds * 1000


@dataclass(frozen=True)
class ProbeFailure:
    """The connection could not be opened or the query did not execute."""

    cause: str
    error_type: str = "ProbeError"
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return False


ProbeOutcome = Union[ProbeSuccess, ProbeFailure]


def execute_probe(handle: Handle, query: str) -> ProbeOutcome:
    """Run query on an open handle and consume the result set."""
    start = time.perf_counter()
    try:
        for _row in handle.execute(query):
            pass
    except Exception as e:
        elapsed = time.perf_counter() - start
        logger.debug("Probe failed after %.2fms: %s", elapsed * 1000, e)
        return ProbeFailure(
            cause=str(e),
            error_type=e.__class__.__name__,
            elapsed_seconds=elapsed,
        )

    outcome = ProbeSuccess(elapsed_seconds=time.perf_counter() - start)
    logger.debug("Time taken %.3fms", outcome.elapsed_ms)
    return outcome


def probe_once(connector: Connector, conninfo: str, query: str) -> ProbeOutcome:
    """
    Open a fresh handle, probe once and close the handle.

    A failure to open counts as a failed probe. The handle is closed
    before returning, whatever the outcome.
    """
    try:
        handle = connector.open(conninfo)
    except Exception as e:
        logger.debug("Connection failed: %s", e)
        return ProbeFailure(cause=str(e), error_type=e.__class__.__name__)

    try:
        return execute_probe(handle, query)
    finally:
        handle.close()
