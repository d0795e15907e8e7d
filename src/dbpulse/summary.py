"""Human-readable summaries built from status snapshots."""

from __future__ import annotations

from datetime import datetime, timedelta

from dbpulse.status import StatusSnapshot

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.strftime(TIMESTAMP_FORMAT)


def format_duration(value: timedelta) -> str:
    """Compact duration: 0s, 4.25s, 3m7.50s, 1h0m12.00s."""
    total = value.total_seconds()
    if total <= 0:
        return "0s"

    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{int(hours)}h{int(minutes)}m{seconds:.2f}s"
    if minutes:
        return f"{int(minutes)}m{seconds:.2f}s"
    return f"{seconds:.2f}s"


def round_summary(snapshot: StatusSnapshot) -> str:
    """One-line summary logged after every round."""
    return (
        f"Passed: [{snapshot.passed}] Failed: [{snapshot.failed}], "
        f"Started[{format_timestamp(snapshot.started_at)}] "
        f"Time Failed: [{format_timestamp(snapshot.outage_started_at)}] "
        f"Time Passed [{format_timestamp(snapshot.last_recovered_at)}] "
        f"Elapsed ({format_duration(snapshot.outage_elapsed_total)}) "
        f"IsDown: [{str(snapshot.is_outage).lower()}]"
    )


def final_summary_lines(snapshot: StatusSnapshot, now: datetime | None = None) -> list[str]:
    """
    Lines of the report emitted on shutdown.

    The total outage time covers closed episodes only; an episode still
    open at shutdown is reported on its own line.
    """
    lines = [
        "Final Results: (User exited the program)",
        f"\tTest started:\t\t[{format_timestamp(snapshot.started_at)}]",
        f"\tTo database:\t\t[{snapshot.target_label}]",
        f"\tSuccessful connections: [{snapshot.passed}]",
        f"\tFailed connections:\t[{snapshot.failed}]",
        f"\tTotal Outage time:\t[{format_duration(snapshot.outage_elapsed_total)}]",
    ]
    if snapshot.is_outage:
        current = snapshot.current_outage_elapsed(now or datetime.now())
        lines.append(
            f"\tOutage in progress:\t[since {format_timestamp(snapshot.outage_started_at)}, "
            f"{format_duration(current)}]"
        )
    return lines
