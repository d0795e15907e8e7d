"""
Tests for the shared status record and the outage state machine.

These tests verify:
- Counter bookkeeping (passed + failed == attempts)
- Up/Down transitions and their timestamps
- Outage time accumulation per closed episode
- Exactly one edge per episode under concurrent reporting
- Snapshots never mutate the record
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest

from dbpulse.config import ProbeConfig
from dbpulse.db.probe import ProbeFailure, ProbeSuccess
from dbpulse.status import StatusRecord, Transition


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 12, 0, 0)) -> None:
        self.now = start
        self.ticks = 0.0

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.ticks

    def advance(self, **kwargs: float) -> None:
        delta = timedelta(**kwargs)
        self.now += delta
        self.ticks += delta.total_seconds()

    def step(self, **kwargs: float) -> None:
        """Move the wall clock only, as an NTP correction does."""
        self.now += timedelta(**kwargs)


PASS = ProbeSuccess(elapsed_seconds=0.002)
FAIL = ProbeFailure(cause="connection refused")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def record(clock: FakeClock) -> StatusRecord:
    return StatusRecord(
        ProbeConfig(host="db.internal", dbname="billing", worker_count=3),
        clock=clock,
        monotonic=clock.monotonic,
    )


# =============================================================================
# Counters
# =============================================================================


class TestCounters:
    """passed/failed bookkeeping."""

    def test_initial_state(self, record: StatusRecord) -> None:
        snap = record.snapshot()
        assert snap.passed == 0
        assert snap.failed == 0
        assert snap.is_outage is False
        assert snap.started_at is None
        assert snap.outage_started_at is None
        assert snap.last_recovered_at is None
        assert snap.outage_elapsed_total == timedelta(0)

    @pytest.mark.parametrize(
        "sequence",
        [
            "",
            "P",
            "F",
            "PPFFP",
            "FFFFFFF",
            "PFPFPFPF",
        ],
    )
    def test_passed_plus_failed_equals_attempts(self, record: StatusRecord, sequence: str) -> None:
        """Every attempt yields exactly one counted outcome."""
        for step, symbol in enumerate(sequence, 1):
            record.record_outcome(PASS if symbol == "P" else FAIL)
            snap = record.snapshot()
            assert snap.attempts == step

        snap = record.snapshot()
        assert snap.passed == sequence.count("P")
        assert snap.failed == sequence.count("F")

    def test_untracked_outcomes_are_counted(self, record: StatusRecord) -> None:
        """Cached-prober outcomes count but never open an episode."""
        assert record.record_outcome(FAIL, track_outage=False) is Transition.NONE
        assert record.record_outcome(PASS, track_outage=False) is Transition.NONE

        snap = record.snapshot()
        assert snap.passed == 1
        assert snap.failed == 1
        assert snap.is_outage is False
        assert snap.outage_started_at is None

    def test_untracked_success_does_not_close_episode(self, record: StatusRecord) -> None:
        record.record_outcome(FAIL)
        record.record_outcome(PASS, track_outage=False)

        assert record.is_outage is True


# =============================================================================
# State machine
# =============================================================================


class TestOutageTransitions:
    """Up/Down edges and timestamps."""

    def test_first_failure_opens_episode(self, record: StatusRecord, clock: FakeClock) -> None:
        assert record.record_outcome(FAIL) is Transition.OUTAGE_STARTED

        snap = record.snapshot()
        assert snap.is_outage is True
        assert snap.outage_started_at == clock.now

    def test_repeated_failures_do_not_move_start(self, record: StatusRecord, clock: FakeClock) -> None:
        record.record_outcome(FAIL)
        started = clock.now

        clock.advance(seconds=5)
        assert record.record_outcome(FAIL) is Transition.NONE
        assert record.record_outcome(FAIL) is Transition.NONE

        snap = record.snapshot()
        assert snap.outage_started_at == started
        assert snap.failed == 3

    def test_success_closes_episode(self, record: StatusRecord, clock: FakeClock) -> None:
        record.record_outcome(FAIL)
        clock.advance(seconds=42)

        assert record.record_outcome(PASS) is Transition.OUTAGE_ENDED

        snap = record.snapshot()
        assert snap.is_outage is False
        assert snap.last_recovered_at == clock.now
        assert snap.outage_elapsed_total == timedelta(seconds=42)

    def test_success_while_up_is_noop(self, record: StatusRecord) -> None:
        assert record.record_outcome(PASS) is Transition.NONE
        assert record.snapshot().last_recovered_at is None

    def test_elapsed_accumulates_over_episodes(self, record: StatusRecord, clock: FakeClock) -> None:
        """Each closed episode adds exactly its own duration."""
        record.record_outcome(FAIL)
        clock.advance(seconds=10)
        record.record_outcome(PASS)

        clock.advance(minutes=3)
        record.record_outcome(PASS)
        assert record.snapshot().outage_elapsed_total == timedelta(seconds=10)

        record.record_outcome(FAIL)
        clock.advance(seconds=2.5)
        record.record_outcome(FAIL)
        assert record.snapshot().outage_elapsed_total == timedelta(seconds=10)

        clock.advance(seconds=2.5)
        record.record_outcome(PASS)
        assert record.snapshot().outage_elapsed_total == timedelta(seconds=15)

    def test_wall_clock_step_back_does_not_shrink_total(
        self, record: StatusRecord, clock: FakeClock
    ) -> None:
        record.record_outcome(FAIL)
        clock.advance(seconds=10)
        record.record_outcome(PASS)
        assert record.snapshot().outage_elapsed_total == timedelta(seconds=10)

        record.record_outcome(FAIL)
        clock.advance(seconds=5)
        clock.step(seconds=-30)
        record.record_outcome(PASS)

        snap = record.snapshot()
        assert snap.outage_elapsed_total == timedelta(seconds=15)
        assert snap.last_recovered_at == clock.now

    def test_open_episode_not_in_total(self, record: StatusRecord, clock: FakeClock) -> None:
        record.record_outcome(FAIL)
        clock.advance(seconds=30)

        snap = record.snapshot()
        assert snap.outage_elapsed_total == timedelta(0)
        assert snap.current_outage_elapsed(clock.now) == timedelta(seconds=30)

    def test_failures_then_success_closes_in_same_round(self, record: StatusRecord) -> None:
        """Round of 3 with 2 failures then 1 success ends Up."""
        transitions = [record.record_outcome(o) for o in (FAIL, FAIL, PASS)]

        assert transitions.count(Transition.OUTAGE_STARTED) == 1
        assert transitions.count(Transition.OUTAGE_ENDED) == 1
        snap = record.snapshot()
        assert (snap.passed, snap.failed, snap.is_outage) == (1, 2, False)

    def test_success_then_failures_stays_down(self, record: StatusRecord) -> None:
        """Round of 3 with the success first ends Down."""
        transitions = [record.record_outcome(o) for o in (PASS, FAIL, FAIL)]

        assert transitions.count(Transition.OUTAGE_STARTED) == 1
        assert Transition.OUTAGE_ENDED not in transitions
        snap = record.snapshot()
        assert (snap.passed, snap.failed, snap.is_outage) == (1, 2, True)


# =============================================================================
# Concurrency
# =============================================================================


class TestConcurrentReporting:
    """Workers racing on the same record."""

    def _race(self, record: StatusRecord, outcome: ProbeFailure | ProbeSuccess, workers: int) -> list[Transition]:
        barrier = threading.Barrier(workers)
        results: list[Transition] = []
        results_lock = threading.Lock()

        def report() -> None:
            barrier.wait()
            transition = record.record_outcome(outcome)
            with results_lock:
                results.append(transition)

        threads = [threading.Thread(target=report) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def test_one_edge_per_episode(self, record: StatusRecord, clock: FakeClock) -> None:
        down = self._race(record, FAIL, workers=32)
        assert down.count(Transition.OUTAGE_STARTED) == 1

        clock.advance(seconds=7)
        up = self._race(record, PASS, workers=32)
        assert up.count(Transition.OUTAGE_ENDED) == 1

        snap = record.snapshot()
        assert snap.outage_elapsed_total == timedelta(seconds=7)
        assert snap.failed == 32
        assert snap.passed == 32

    def test_no_lost_updates(self, record: StatusRecord) -> None:
        per_thread = 500

        def hammer(outcome: ProbeFailure | ProbeSuccess) -> None:
            for _ in range(per_thread):
                record.record_outcome(outcome)

        threads = [threading.Thread(target=hammer, args=(PASS if i % 2 else FAIL,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snap = record.snapshot()
        assert snap.passed == 4 * per_thread
        assert snap.failed == 4 * per_thread


# =============================================================================
# Reads
# =============================================================================


class TestSnapshots:
    """Reading the record."""

    def test_snapshot_is_idempotent(self, record: StatusRecord) -> None:
        record.record_outcome(FAIL)
        first = record.snapshot()
        second = record.snapshot()
        assert first == second

    def test_snapshot_is_detached(self, record: StatusRecord) -> None:
        snap = record.snapshot()
        record.record_outcome(PASS)
        assert snap.passed == 0
        assert record.passed == 1

    def test_snapshot_carries_target(self, record: StatusRecord) -> None:
        snap = record.snapshot()
        assert snap.target_label == "db.internal/billing"
        assert snap.worker_count == 3
        assert snap.query == "SELECT id FROM account;"

    def test_mark_started_only_once(self, record: StatusRecord, clock: FakeClock) -> None:
        assert record.mark_started() is True
        first = clock.now
        clock.advance(seconds=60)
        assert record.mark_started() is False
        assert record.snapshot().started_at == first
