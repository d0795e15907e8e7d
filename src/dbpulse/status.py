"""
Shared status record and outage state machine.

Every prober reports into one StatusRecord. Mutation happens only through
record_outcome(), which takes the record's lock. The counter increments
and the Up/Down check-and-set are one critical section, so workers racing
in the same round produce exactly one edge per outage episode.

States:
    Up   (is_outage = False)  initial
    Down (is_outage = True)

Transitions (state machine outcomes only):
    Up   --failure--> Down   outage_started_at = now
    Down --failure--> Down   no change
    Down --success--> Up     last_recovered_at = now,
                             outage_elapsed_total += episode length
    Up   --success--> Up     no change

Timestamps come from the wall clock. Episode lengths come from a
monotonic clock read when the episode opens and closes, so a wall-clock
step never shrinks outage_elapsed_total.

Readers use snapshot(), which copies the fields under the lock and never
mutates the record.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from dbpulse.config import ProbeConfig
from dbpulse.db.probe import ProbeOutcome

logger = logging.getLogger(__name__)


class Transition(str, Enum):
    """Outage edge triggered by a single outcome."""

    NONE = "none"
    OUTAGE_STARTED = "outage_started"
    OUTAGE_ENDED = "outage_ended"


@dataclass(frozen=True)
class StatusSnapshot:
    """Point-in-time copy of the status record."""

    host: str
    dbname: str
    query: str
    worker_count: int
    passed: int
    failed: int
    is_outage: bool
    started_at: datetime | None
    outage_started_at: datetime | None
    last_recovered_at: datetime | None
    outage_elapsed_total: timedelta

    @property
    def attempts(self) -> int:
        return self.passed + self.failed

    @property
    def target_label(self) -> str:
        return f"{self.host}/{self.dbname}"

    def current_outage_elapsed(self, now: datetime) -> timedelta:
        """Length of the open episode at `now`, zero when up."""
        if not self.is_outage or self.outage_started_at is None:
            return timedelta(0)
        return now - self.outage_started_at


class StatusRecord:
    """
    Mutable, thread-safe probe status shared by every prober.

    Args:
        config: Target, query and worker count (immutable).
        clock: Wall clock for displayed timestamps; injectable for tests.
        monotonic: Seconds counter for episode lengths; injectable for tests.
    """

    def __init__(
        self,
        config: ProbeConfig,
        clock: Callable[[], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._clock = clock
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._outage_opened_ticks = 0.0

        self._passed = 0
        self._failed = 0
        self._is_outage = False
        self._started_at: datetime | None = None
        self._outage_started_at: datetime | None = None
        self._last_recovered_at: datetime | None = None
        self._outage_elapsed_total = timedelta(0)

    @property
    def passed(self) -> int:
        with self._lock:
            return self._passed

    @property
    def failed(self) -> int:
        with self._lock:
            return self._failed

    @property
    def is_outage(self) -> bool:
        with self._lock:
            return self._is_outage

    def mark_started(self) -> bool:
        """Set started_at if it is not set yet. Returns True on the first call."""
        with self._lock:
            if self._started_at is not None:
                return False
            self._started_at = self._clock()
            return True

    def record_outcome(self, outcome: ProbeOutcome, track_outage: bool = True) -> Transition:
        """
        Count one probe outcome and advance the outage state machine.

        Args:
            outcome: Result of one probe attempt.
            track_outage: False for the cached prober, whose outcomes are
                counted but never flip the outage state.

        Returns:
            The edge this outcome triggered, if any.
        """
        transition = Transition.NONE

        with self._lock:
            if outcome.ok:
                self._passed += 1
                if track_outage and self._is_outage:
                    length = self._monotonic() - self._outage_opened_ticks
                    self._is_outage = False
                    self._last_recovered_at = self._clock()
                    self._outage_elapsed_total += timedelta(seconds=max(length, 0.0))
                    transition = Transition.OUTAGE_ENDED
            else:
                self._failed += 1
                if track_outage and not self._is_outage:
                    self._is_outage = True
                    self._outage_started_at = self._clock()
                    self._outage_opened_ticks = self._monotonic()
                    transition = Transition.OUTAGE_STARTED
            elapsed_total = self._outage_elapsed_total

        if transition is Transition.OUTAGE_STARTED:
            logger.warning("Connections Failing!")
        elif transition is Transition.OUTAGE_ENDED:
            logger.info("Connections recovered, total outage time %s", elapsed_total)

        return transition

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            return StatusSnapshot(
                host=self.config.host,
                dbname=self.config.dbname,
                query=self.config.query,
                worker_count=self.config.worker_count,
                passed=self._passed,
                failed=self._failed,
                is_outage=self._is_outage,
                started_at=self._started_at,
                outage_started_at=self._outage_started_at,
                last_recovered_at=self._last_recovered_at,
                outage_elapsed_total=self._outage_elapsed_total,
            )
