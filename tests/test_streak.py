from datetime import date, datetime, timezone

import pytest

from stats.models import CanonicalCalendar
from stats.streak import compute_streak, epoch_day

AS_OF = 19732


def _cal(days):
    return CanonicalCalendar(activity_by_day={d: 1 for d in days})


def test_empty_calendar():
    assert compute_streak(CanonicalCalendar(), AS_OF) == 0


def test_only_today_active():
    assert compute_streak(_cal([AS_OF]), AS_OF) == 1


@pytest.mark.parametrize("n", [0, 1, 5, 30])
def test_continuous_run_counts_every_day(n):
    assert compute_streak(_cal(range(AS_OF - n, AS_OF + 1)), AS_OF) == n + 1


def test_today_not_yet_active_keeps_streak():
    assert compute_streak(_cal([AS_OF - 1, AS_OF - 2, AS_OF - 3]), AS_OF) == 3


def test_single_gap_is_forgiven():
    days = [AS_OF, AS_OF - 1, AS_OF - 3, AS_OF - 4]
    assert compute_streak(_cal(days), AS_OF) == 4


def test_two_day_gap_stops_streak():
    days = [AS_OF, AS_OF - 1, AS_OF - 4, AS_OF - 5, AS_OF - 6]
    assert compute_streak(_cal(days), AS_OF) == 2


def test_two_empty_days_before_as_of_means_no_streak():
    assert compute_streak(_cal([AS_OF - 2, AS_OF - 3]), AS_OF) == 0


def test_future_days_are_ignored():
    assert compute_streak(_cal([AS_OF + 1, AS_OF + 2]), AS_OF) == 0


def test_zero_counts_are_dropped_from_calendar():
    cal = CanonicalCalendar(activity_by_day={AS_OF: 0, AS_OF - 1: 2})
    assert dict(cal.activity_by_day) == {AS_OF - 1: 2}
    assert compute_streak(cal, AS_OF) == 1


def test_epoch_day_conversions():
    assert epoch_day(date(1970, 1, 2)) == 1
    assert epoch_day(datetime(2024, 1, 10, 23, 59, tzinfo=timezone.utc)) == AS_OF
    assert epoch_day(1704844800) == AS_OF
    assert isinstance(epoch_day(), int)
