"""
Cached and round-based probers.

CachedProber keeps one handle for the whole run and probes it in a
sequential heartbeat loop. RoundProber opens `worker_count` fresh
connections per round on a fixed-size thread pool and waits for all of
them before starting the next round.

Both loops observe a shared stop event between iterations and during
their settle waits. An in-flight probe is never interrupted, but a
stopped round does not wait for it either.

Usage:
    status = StatusRecord(config)
    stop = threading.Event()

    cached = CachedProber(status, connector, stop)
    cached.start_thread()

    RoundProber(status, connector, stop).run()
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor, wait

from dbpulse.db.driver import Connector, Handle
from dbpulse.db.probe import ProbeFailure, ProbeOutcome, execute_probe, probe_once
from dbpulse.status import StatusRecord
from dbpulse.summary import round_summary

logger = logging.getLogger(__name__)

# How often a round waiting on its workers checks the stop event
STOP_POLL_SECONDS = 0.1


class CachedProber:
    """
    Sequential heartbeat over a single long-lived handle.

    The handle is opened on the first iteration. If that fails, the
    attempt counts as a failed probe and opening is retried after the
    settle delay. Once open, the handle is reused until the prober stops.
    Outcomes are counted but never drive the outage state.
    """

    def __init__(
        self,
        status: StatusRecord,
        connector: Connector,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.status = status
        self._connector = connector
        self._stop = stop_event or threading.Event()
        self._handle: Handle | None = None
        self._thread: threading.Thread | None = None

    @property
    def connected(self) -> bool:
        return self._handle is not None

    def _ensure_handle(self) -> Handle | ProbeFailure:
        if self._handle is not None:
            return self._handle
        try:
            self._handle = self._connector.open(self.status.config.conninfo())
        except Exception as e:
            return ProbeFailure(cause=str(e), error_type=e.__class__.__name__)
        return self._handle

    def probe(self) -> ProbeOutcome:
        """Run one probe on the cached handle and record the outcome."""
        handle = self._ensure_handle()
        if isinstance(handle, ProbeFailure):
            outcome: ProbeOutcome = handle
        else:
            outcome = execute_probe(handle, self.status.config.query)

        self.status.record_outcome(outcome, track_outage=False)
        if not outcome.ok:
            logger.warning("Cached connection FAILED! %s", outcome.cause)
        return outcome

    def run(self, max_iterations: int | None = None) -> int:
        """
        Probe until stopped. Returns the number of probes made.

        Args:
            max_iterations: Stop after this many probes (None = until stopped).
        """
        logger.info(
            "Using connection details: [%s]", self.status.config.redacted_conninfo()
        )
        delay = self.status.config.settle_delay_seconds
        iterations = 0

        try:
            while not self._stop.is_set():
                if max_iterations is not None and iterations >= max_iterations:
                    break
                self.probe()
                iterations += 1
                self._stop.wait(delay)
        finally:
            self.close()

        return iterations

    def start_thread(self) -> threading.Thread:
        """Run the heartbeat in a daemon thread alongside the round prober."""
        self._thread = threading.Thread(
            target=self.run,
            name="dbpulse-cached",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class RoundProber:
    """
    Concurrent fan-out of `worker_count` single-use connections per round.

    Each worker opens its own connection, probes once, closes the
    connection, records the outcome (driving the outage state machine) and
    then settles. A round ends only when all of its workers have returned.
    """

    def __init__(
        self,
        status: StatusRecord,
        connector: Connector,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.status = status
        self._connector = connector
        self._stop = stop_event or threading.Event()
        self.rounds_completed = 0

    @property
    def worker_count(self) -> int:
        return self.status.config.worker_count

    def _worker(self) -> ProbeOutcome:
        config = self.status.config
        outcome = probe_once(self._connector, config.conninfo(), config.query)
        self.status.record_outcome(outcome)
        if not outcome.ok:
            logger.warning("Connection FAILED! %s", outcome.cause)
        self._stop.wait(config.settle_delay_seconds)
        return outcome

    def run_round(self, executor: Executor) -> list[ProbeOutcome]:
        """
        Submit one probe per worker and block until every one is done.

        If the stop event is set while workers are still running, returns
        the finished outcomes only and leaves the rest in flight.
        """
        logger.debug("wg count: [%d]", self.worker_count)
        futures = [executor.submit(self._worker) for _ in range(self.worker_count)]

        pending = set(futures)
        while pending:
            _, pending = wait(pending, timeout=STOP_POLL_SECONDS)
            if pending and self._stop.is_set():
                logger.debug("Stop requested, leaving %d probe(s) in flight", len(pending))
                break
        else:
            logger.debug("Round %d done", self.rounds_completed + 1)

        return [future.result() for future in futures if future.done()]

    def run(self, max_rounds: int | None = None) -> int:
        """
        Run rounds until stopped. Returns the number of completed rounds.

        Never probes when worker_count is 0.
        """
        if self.worker_count <= 0:
            logger.debug("Round prober disabled (worker_count=0)")
            return 0

        self.status.mark_started()

        # Shut down without joining; a worker may still be blocked in a probe.
        executor = ThreadPoolExecutor(
            max_workers=self.worker_count,
            thread_name_prefix="dbpulse-worker",
        )
        try:
            while not self._stop.is_set():
                if max_rounds is not None and self.rounds_completed >= max_rounds:
                    break
                outcomes = self.run_round(executor)
                if len(outcomes) < self.worker_count:
                    break
                self.rounds_completed += 1
                logger.info(round_summary(self.status.snapshot()))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return self.rounds_completed
