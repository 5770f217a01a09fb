"""
Week boundary arithmetic.

Weeks run Monday 00:00:00 UTC to Sunday 23:59:59 UTC and are keyed by the
Monday's date. Reports show only completed weeks: when run mid-week, the most
recent week shown is the one that ended on the previous Sunday, and the week
in progress is reported separately as the "current" week.

Every function taking `now` uses it as the only clock reading, so results are
reproducible given the same instant.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Sequence

RECENT_WEEKS = 4
TREND_WEEKS = 26

ONE_WEEK = timedelta(days=7)

# Fixed English abbreviations; strftime("%b") follows the process locale.
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(ts: datetime) -> datetime:
    # Naive datetimes are read as UTC, never as local time.
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _go_weekday(d: date) -> int:
    """0 = Sunday, 1 = Monday, ..., 6 = Saturday."""
    return d.isoweekday() % 7


def week_start(ts: datetime) -> date:
    """Monday (UTC) of the week containing `ts`."""
    day = to_utc(ts).date()
    weekday = day.isoweekday()  # Sunday is 7
    return day - timedelta(days=weekday - 1)


def current_week_start(now: Optional[datetime] = None) -> date:
    """Week key of the week in progress."""
    return week_start(now if now is not None else utc_now())


def last_completed_week_start(now: Optional[datetime] = None) -> date:
    """
    Monday of the most recently completed week.

    A week is complete once its Sunday 23:59:59 UTC has passed, so on a
    Sunday the week ending today does not count yet.
    """
    today = to_utc(now if now is not None else utc_now()).date()
    weekday = _go_weekday(today)
    if weekday == 0:
        last_sunday = today - ONE_WEEK
    else:
        last_sunday = today - timedelta(days=weekday)
    return last_sunday - timedelta(days=6)


def last_n_completed_weeks(n: int, now: Optional[datetime] = None) -> List[date]:
    """The last `n` completed weeks, oldest first."""
    if n < 0:
        raise ValueError(f"week count must be >= 0, got {n}")
    newest = last_completed_week_start(now)
    return [newest - ONE_WEEK * (n - 1 - i) for i in range(n)]


def month_abbrev(d: date) -> str:
    return _MONTHS[d.month - 1]


def week_end(week_key: date) -> date:
    """Sunday of the week starting on `week_key`."""
    return week_key + timedelta(days=6)


def format_week_end(week_key: date) -> str:
    """Sunday of the week as YYYY-MM-DD."""
    return week_end(week_key).isoformat()


def format_week_end_short(week_key: date) -> str:
    """Sunday of the week as a compact column label, e.g. "Mar 17"."""
    sunday = week_end(week_key)
    return f"{month_abbrev(sunday)} {sunday.day:02d}"


def window_start(weeks: Sequence[date]) -> datetime:
    """Midnight UTC at the start of the oldest week in `weeks`."""
    return datetime.combine(min(weeks), time.min, tzinfo=timezone.utc)


def lookback_days(weeks: Sequence[date], now: Optional[datetime] = None) -> int:
    """
    Whole days a "now-Nd" style query must reach back to cover every week in
    `weeks` plus the week in progress.
    """
    today = to_utc(now if now is not None else utc_now()).date()
    return (today - min(weeks)).days + 1
