"""Working-day arithmetic. Weekends only; no holiday calendar."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

# Saturday (5) and Sunday (6)
WEEKEND_DAYS: frozenset[int] = frozenset({5, 6})


def working_days(start: date, end: date) -> int:
    """Count Monday–Friday dates in ``[start, end]`` inclusive.

    A reversed range is empty and yields 0.
    """
    if start > end:
        return 0

    count = 0
    current = start
    while current <= end:
        if current.weekday() not in WEEKEND_DAYS:
            count += 1
        current += timedelta(days=1)
    return count


def today() -> date:
    """Current UTC date, the reference for past and future spans."""
    return datetime.now(timezone.utc).date()
