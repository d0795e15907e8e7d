"""
Probe daemon: wires the probers to one status record and handles shutdown.

Modes:
    worker_count == 0  cached heartbeat in the calling thread
    worker_count  > 0  cached heartbeat in a daemon thread, rounds in the
                       calling thread

SIGINT/SIGTERM set the stop event. The loops stop at their next check
(while waiting on a round, between heartbeats, or during a settle wait),
the final summary is printed and run() returns EXIT_INTERRUPTED. Round
workers still blocked in a probe are left behind, so callers exit with
terminate() rather than a normal interpreter shutdown. A second signal
prints the summary and terminates immediately.

The summary goes to a rich Console, not the logger, so it is printed
whatever the configured log level.

Usage:
    daemon = ProbeDaemon(config)
    exit_code = daemon.run()
    if exit_code == EXIT_INTERRUPTED:
        daemon.terminate(exit_code)
"""

from __future__ import annotations

import logging
import os
import signal
import sys
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any, NoReturn

from rich.console import Console

from dbpulse.config import ProbeConfig
from dbpulse.db.driver import Connector, get_connector
from dbpulse.prober import CachedProber, RoundProber
from dbpulse.status import StatusRecord
from dbpulse.summary import final_summary_lines

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INTERRUPTED = 1

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ProbeDaemon:
    """
    Continuous reachability probe against one database.

    Args:
        config: Probe configuration.
        connector: Database connector (psycopg unless overridden).
        clock: Source of "now" for the status record.
        console: Where the final summary is printed (stderr by default).
    """

    def __init__(
        self,
        config: ProbeConfig,
        connector: Connector | None = None,
        clock: Callable[[], datetime] = datetime.now,
        console: Console | None = None,
    ) -> None:
        self.config = config
        self.status = StatusRecord(config, clock=clock)
        self._connector = connector or get_connector()
        self._console = console or Console(stderr=True)
        self._stop = threading.Event()
        self._signals_received = 0

        self.cached = CachedProber(self.status, self._connector, self._stop)
        self.rounds: RoundProber | None = None
        if config.round_based:
            self.rounds = RoundProber(self.status, self._connector, self._stop)

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Ask both probers to stop at their next check."""
        self._stop.set()

    def report(self) -> None:
        """Print the final summary from the current status."""
        self._console.print()
        for line in final_summary_lines(self.status.snapshot()):
            self._console.print(line, markup=False, highlight=False, soft_wrap=True)

    def terminate(self, code: int = EXIT_INTERRUPTED) -> NoReturn:
        """Exit the process now, without joining probe threads."""
        sys.stdout.flush()
        sys.stderr.flush()
        os._exit(code)

    def _handle_signal(self, signum: int, frame: Any) -> None:
        self._signals_received += 1
        if self._signals_received > 1:
            logger.warning("Received signal %d again, exiting now", signum)
            self.report()
            self.terminate(EXIT_INTERRUPTED)
        logger.info("Received signal %d, shutting down", signum)
        self.stop()

    def run(self, install_signal_handlers: bool = True) -> int:
        """
        Probe until stopped, then print the final summary.

        Returns:
            EXIT_INTERRUPTED when a signal stopped the run, EXIT_OK when
            stop() was called programmatically.
        """
        previous: dict[int, Any] = {}
        if install_signal_handlers:
            for signum in _SHUTDOWN_SIGNALS:
                previous[signum] = signal.signal(signum, self._handle_signal)

        logger.info(
            "dbpulse starting (target=%s, workers=%d, delay=%.2fs)",
            self.config.target_label,
            self.config.worker_count,
            self.config.settle_delay_seconds,
        )

        try:
            if self.rounds is not None:
                self.cached.start_thread()
                self.rounds.run()
            else:
                self.cached.run()
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)

        self.report()
        return EXIT_INTERRUPTED if self._signals_received else EXIT_OK
