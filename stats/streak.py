"""Practice-day streak over a sparse day-indexed calendar.

Walk backwards from ``as_of``.  Every day with activity adds one; a day
without activity is tolerated as long as the day before it has activity.
The walk stops at the first pair of consecutive empty days.  This gives
today's still-running day (and any single missed day) a one-day grace.

Whether a one-day gap *mid-run* should really be forgiven is a product
question; the behaviour here matches what users have been shown so far.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Union

from .models import SECONDS_PER_DAY, CanonicalCalendar

_EPOCH = date(1970, 1, 1)


def epoch_day(value: Union[date, datetime, int, float, None] = None) -> int:
    """Day number (days since 1970-01-01 UTC) for a date, datetime or epoch seconds.

    ``None`` means "today, in UTC".
    """

    if value is None:
        value = datetime.now(timezone.utc)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return (value.date() - _EPOCH).days
    if isinstance(value, date):
        return (value - _EPOCH).days
    return int(value) // SECONDS_PER_DAY


def compute_streak(calendar: CanonicalCalendar, as_of: int) -> int:
    """Return the current streak ending at day number *as_of*."""

    active = calendar.activity_by_day
    if not active:
        return 0

    earliest = min(active)
    streak = 0
    day = as_of
    while day >= earliest:
        if active.get(day, 0) > 0:
            streak += 1
        elif active.get(day - 1, 0) <= 0:
            break
        day -= 1
    return streak


__all__ = ["compute_streak", "epoch_day"]
