# tests/test_dates.py

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from taskdeck.core import dates

from .fakes import NOW


def test_day_differences_truncate_toward_zero() -> None:
    assert dates.days_between(NOW, NOW - timedelta(hours=36)) == 1
    assert dates.days_between(NOW, NOW + timedelta(hours=12)) == 0
    assert dates.days_between(NOW, NOW + timedelta(hours=36)) == -1
    assert dates.days_until(NOW - timedelta(days=3), NOW) == -3
    assert dates.days_ago(NOW - timedelta(days=3), NOW) == 3


def test_days_open_prefers_start_date_and_allows_negative() -> None:
    created = NOW - timedelta(days=20)
    assert dates.days_open(None, created, NOW) == 20
    assert dates.days_open(NOW - timedelta(days=5), created, NOW) == 5
    assert dates.days_open(NOW + timedelta(days=2), created, NOW) == -2


def test_days_blocked() -> None:
    assert dates.days_blocked(None, NOW) is None
    assert dates.days_blocked(NOW - timedelta(days=4), NOW) == 4


def test_overdue() -> None:
    assert dates.is_overdue(NOW - timedelta(days=1), NOW) is True
    assert dates.is_overdue(NOW + timedelta(days=1), NOW) is False
    assert dates.is_overdue(None, NOW) is False


def test_due_soon_threshold_is_inclusive() -> None:
    assert dates.is_due_soon(NOW + timedelta(days=7), NOW, 7) is True
    assert dates.is_due_soon(NOW + timedelta(days=8), NOW, 7) is False
    assert dates.is_due_soon(NOW, NOW, 7) is True
    assert dates.is_due_soon(NOW - timedelta(days=1), NOW, 7) is False
    assert dates.is_due_soon(None, NOW, 7) is False


def test_stale() -> None:
    assert dates.is_stale(NOW - timedelta(days=7), NOW, 7) is True
    assert dates.is_stale(NOW - timedelta(days=6, hours=23), NOW, 7) is False


@pytest.mark.parametrize(
    ("quarter", "start", "end"),
    [
        (1, datetime(2024, 1, 1), datetime(2024, 3, 31, 23, 59, 59, 999999)),
        (2, datetime(2024, 4, 1), datetime(2024, 6, 30, 23, 59, 59, 999999)),
        (4, datetime(2024, 10, 1), datetime(2024, 12, 31, 23, 59, 59, 999999)),
    ],
)
def test_quarter_range(quarter: int, start: datetime, end: datetime) -> None:
    assert dates.quarter_range(2024, quarter) == (start, end)


def test_quarter_range_rejects_bad_quarter() -> None:
    with pytest.raises(ValueError):
        dates.quarter_range(2024, 5)


def test_is_in_quarter_boundaries() -> None:
    assert dates.is_in_quarter(datetime(2024, 2, 15), 2024, 1)
    assert dates.is_in_quarter(datetime(2024, 3, 31, 23, 59), 2024, 1)
    assert not dates.is_in_quarter(datetime(2024, 4, 1), 2024, 1)


def test_available_quarters_crosses_year() -> None:
    quarters = dates.available_quarters(datetime(2024, 2, 1), count=3)
    assert quarters == [(2024, 1, "Q1 2024"), (2023, 4, "Q4 2023"), (2023, 3, "Q3 2023")]


def test_week_and_month_starts() -> None:
    # 2024-03-15 is a Friday; the week starts on Sunday 2024-03-10.
    assert dates.start_of_week(NOW) == datetime(2024, 3, 10)
    assert dates.start_of_week(datetime(2024, 3, 10, 9, 30)) == datetime(2024, 3, 10)
    assert dates.start_of_month(NOW) == datetime(2024, 3, 1)
