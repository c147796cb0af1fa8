# src/taskdeck/core/dates.py

"""
Day arithmetic and calendar quarters.

All functions are pure: the caller passes "now" explicitly.
Day counts are whole elapsed days truncated toward zero, so 36 hours is 1 day
and -12 hours is 0 days.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta

_ONE_DAY = timedelta(days=1)


def days_between(later: datetime, earlier: datetime) -> int:
    """Whole days from `earlier` to `later` (negative if `later` is before)."""
    return int((later - earlier) / _ONE_DAY)


def days_ago(date: datetime, now: datetime) -> int:
    return days_between(now, date)


def days_until(date: datetime, now: datetime) -> int:
    """Positive for future dates, negative once `date` has passed."""
    return days_between(date, now)


def days_open(start_date: datetime | None, created_at: datetime, now: datetime) -> int:
    reference = start_date if start_date is not None else created_at
    return days_between(now, reference)


def days_blocked(blocked_at: datetime | None, now: datetime) -> int | None:
    if blocked_at is None:
        return None
    return days_between(now, blocked_at)


def is_overdue(due_date: datetime | None, now: datetime) -> bool:
    if due_date is None:
        return False
    return days_until(due_date, now) < 0


def is_due_soon(due_date: datetime | None, now: datetime, threshold_days: int = 7) -> bool:
    if due_date is None:
        return False
    remaining = days_until(due_date, now)
    return 0 <= remaining <= threshold_days


def is_stale(last_updated_at: datetime, now: datetime, threshold_days: int = 7) -> bool:
    return days_ago(last_updated_at, now) >= threshold_days


# ---- quarters ----


def _check_quarter(quarter: int) -> None:
    if quarter not in (1, 2, 3, 4):
        raise ValueError(f"quarter must be 1..4, got {quarter!r}")


def quarter_of(date: datetime) -> int:
    return (date.month - 1) // 3 + 1


def quarter_range(year: int, quarter: int) -> tuple[datetime, datetime]:
    """
    First and last instant of a calendar quarter.

    Q1 = Jan..Mar, Q2 = Apr..Jun, Q3 = Jul..Sep, Q4 = Oct..Dec.
    The end is the last microsecond of the last day, so an inclusive check
    covers the whole final day.
    """
    _check_quarter(quarter)
    first_month = (quarter - 1) * 3 + 1
    last_month = first_month + 2
    last_day = calendar.monthrange(year, last_month)[1]
    start = datetime(year, first_month, 1)
    end = datetime(year, last_month, last_day, 23, 59, 59, 999999)
    return start, end


def is_in_quarter(date: datetime, year: int, quarter: int) -> bool:
    start, end = quarter_range(year, quarter)
    return start <= date <= end


def current_quarter(now: datetime) -> tuple[int, int]:
    """Return (year, quarter) for `now`."""
    return now.year, quarter_of(now)


def previous_quarter(year: int, quarter: int) -> tuple[int, int]:
    _check_quarter(quarter)
    if quarter == 1:
        return year - 1, 4
    return year, quarter - 1


def quarter_label(year: int, quarter: int) -> str:
    return f"Q{quarter} {year}"


def available_quarters(now: datetime, count: int = 8) -> list[tuple[int, int, str]]:
    """The current quarter and the (count - 1) before it, newest first."""
    out: list[tuple[int, int, str]] = []
    year, quarter = current_quarter(now)
    for _ in range(max(0, count)):
        out.append((year, quarter, quarter_label(year, quarter)))
        year, quarter = previous_quarter(year, quarter)
    return out


def start_of_week(now: datetime) -> datetime:
    """Sunday 00:00 of the week containing `now`."""
    # datetime.weekday(): Monday=0 .. Sunday=6
    offset = (now.weekday() + 1) % 7
    day = now - timedelta(days=offset)
    return day.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
