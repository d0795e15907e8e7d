"""
Database driver seam for dbpulse.

The probers never talk to psycopg directly. They go through two small
protocols:

- Connector.open(conninfo) -> Handle
- Handle.execute(query) -> rows, Handle.close()

Both implementations raise ProbeError for every driver failure, so the
probe primitive only has one error type to collapse into a failed result.

Usage:
    from dbpulse.db.driver import get_connector

    connector = get_connector()
    handle = connector.open(config.conninfo())
    try:
        rows = handle.execute("SELECT 1")
    finally:
        handle.close()
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any, Protocol

import psycopg

from dbpulse.exceptions import ProbeError

logger = logging.getLogger(__name__)


class Handle(Protocol):
    """An open database handle, owned by exactly one prober or worker."""

    def execute(self, query: str) -> Sequence[Any]:
        """Run query and return its rows (empty for statements without a result)."""
        ...

    def close(self) -> None:
        """Release the handle. Safe to call more than once."""
        ...


class Connector(Protocol):
    """Factory for database handles."""

    def open(self, conninfo: str) -> Handle:
        """Open a handle, raising ProbeError when the database is unreachable."""
        ...


class PsycopgHandle:
    """
    Handle backed by one psycopg connection in autocommit mode.

    If the connection is lost, the handle reconnects on the next execute()
    instead of failing forever. A long-lived handle therefore reports an
    outage as a run of failed queries and recovers when the database comes
    back, without the caller ever reopening it.
    """

    def __init__(self, conninfo: str, connection: "psycopg.Connection | None" = None) -> None:
        self._conninfo = conninfo
        self._conn = connection

    def _connection(self) -> "psycopg.Connection":
        if self._conn is None or self._conn.closed or self._conn.broken:
            if self._conn is not None:
                logger.debug("Connection lost, reconnecting")
                self._conn.close()
            self._conn = _connect(self._conninfo)
        return self._conn

    def execute(self, query: str) -> Sequence[Any]:
        try:
            conn = self._connection()
            with conn.cursor() as cur:
                cur.execute(query)  # type: ignore[arg-type]
                if cur.description is None:
                    return []
                return cur.fetchall()
        except psycopg.Error as e:
            raise ProbeError(f"Query failed: {e}", original_error=e) from e

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class PsycopgConnector:
    """Connector that opens real PostgreSQL connections with psycopg."""

    def open(self, conninfo: str) -> PsycopgHandle:
        return PsycopgHandle(conninfo, _connect(conninfo))


def _connect(conninfo: str) -> "psycopg.Connection":
    try:
        return psycopg.connect(conninfo, autocommit=True)
    except psycopg.Error as e:
        raise ProbeError(f"Connection failed: {e}", original_error=e) from e


# ── Mock Driver ────────────────────────────────────────────────────────


class MockHandle:
    """Handle produced by MockConnector."""

    def __init__(self, connector: "MockConnector") -> None:
        self._connector = connector
        self.closed = False

    def execute(self, query: str) -> Sequence[Any]:
        return self._connector._execute(query)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._connector._record_close()


class MockConnector:
    """
    Scripted in-memory connector for testing and dry runs.

    Outcomes are consumed in order, one per execute() (or open()) call,
    across every thread that uses the connector. When a script runs out
    the connector keeps returning `default`.

    Args:
        outcomes: True/False per execute() call.
        open_outcomes: True/False per open() call.
        default: Outcome once a script is exhausted.
        latency_seconds: Simulated round-trip time for execute().
        on_execute: Called at the start of every execute(), for tests that
            need to observe timing or ordering.
    """

    def __init__(
        self,
        outcomes: Iterable[bool] = (),
        open_outcomes: Iterable[bool] = (),
        default: bool = True,
        latency_seconds: float = 0.0,
        on_execute: Callable[[], None] | None = None,
    ) -> None:
        self._outcomes = iter(outcomes)
        self._open_outcomes = iter(open_outcomes)
        self._default = default
        self._latency = latency_seconds
        self._on_execute = on_execute
        self._lock = threading.Lock()

        self.opened = 0
        self.closed = 0
        self.executed = 0
        self.queries: list[str] = []

    @property
    def open_handles(self) -> int:
        """Handles opened but not yet closed."""
        with self._lock:
            return self.opened - self.closed

    def open(self, conninfo: str) -> MockHandle:
        with self._lock:
            ok = next(self._open_outcomes, True)
            if not ok:
                raise ProbeError("Connection failed: mock connection refused")
            self.opened += 1
        return MockHandle(self)

    def _execute(self, query: str) -> Sequence[Any]:
        if self._on_execute is not None:
            self._on_execute()
        if self._latency:
            time.sleep(self._latency)
        with self._lock:
            ok = next(self._outcomes, self._default)
            self.executed += 1
            self.queries.append(query)
        if not ok:
            raise ProbeError("Query failed: mock query error")
        return [(1,)]

    def _record_close(self) -> None:
        with self._lock:
            self.closed += 1


def get_connector(dry_run: bool = False) -> Connector:
    """
    Get a connector instance.

    Args:
        dry_run: Return a MockConnector whose probes always pass.

    Returns:
        PsycopgConnector normally, MockConnector for dry runs.
    """
    if dry_run:
        return MockConnector()
    return PsycopgConnector()
