"""
Expansion of a base calendar event into its recurring occurrences.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from household.shared.types import RepeatPattern

MAX_OCCURRENCES = 1000

_STEPS = {
    RepeatPattern.DAILY: relativedelta(days=1),
    RepeatPattern.WEEKLY: relativedelta(weeks=1),
    RepeatPattern.MONTHLY: relativedelta(months=1),
    RepeatPattern.ANNUALLY: relativedelta(years=1),
}


class RecurrenceError(ValueError):
    pass


def parse_pattern(value: Optional[str]) -> RepeatPattern:
    if not value:
        return RepeatPattern.NONE
    try:
        return RepeatPattern(value)
    except ValueError as exc:
        raise RecurrenceError(f"Unknown repeat pattern: {value}") from exc


def expand_series(
    start: datetime,
    end: datetime,
    pattern: Optional[str],
    repeat_end_date: Optional[date] = None,
) -> list[tuple[datetime, datetime]]:
    """
    Return the (start, end) pairs of every occurrence.

    Occurrences step from ``start`` while they begin before the day after
    ``repeat_end_date``. Month and year steps clamp to the end of the month
    and keep stepping from the clamped date (Jan 31 -> Feb 28 -> Mar 28).
    """
    if end <= start:
        raise RecurrenceError("End must be after start")
    repeat = parse_pattern(pattern)
    if repeat is RepeatPattern.NONE:
        return [(start, end)]
    if repeat_end_date is None or repeat_end_date < start.date():
        raise RecurrenceError("Repeat end date is missing or before the start date")

    duration = end - start
    limit = datetime.combine(repeat_end_date + timedelta(days=1), datetime.min.time())
    step = _STEPS[repeat]

    occurrences: list[tuple[datetime, datetime]] = []
    current = start
    while current < limit and len(occurrences) < MAX_OCCURRENCES:
        occurrences.append((current, current + duration))
        current = current + step
    return occurrences


def compute_notify_at(
    start: datetime, enabled: bool, send_before_hours: float
) -> Optional[datetime]:
    if not enabled:
        return None
    return start - timedelta(hours=send_before_hours)
