"""Wall-clock access and calendar-day helpers."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Local wall-clock time (timezone-aware)."""

    def now(self) -> datetime:
        return datetime.now().astimezone()


def local_date(dt: datetime) -> date:
    """Calendar date of dt on the local wall clock.

    Aware datetimes may carry an offset from before a DST change, so they are
    converted to the current local offset first.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.date()


def _midnight(day: date, aware: bool) -> datetime:
    naive = datetime.combine(day, time())
    return naive.astimezone() if aware else naive


def start_of_day(dt: datetime) -> datetime:
    """Local midnight at the start of dt's calendar day."""
    return _midnight(local_date(dt), dt.tzinfo is not None)


def next_midnight(dt: datetime) -> datetime:
    """Local midnight at the start of the day after dt."""
    return _midnight(local_date(dt) + timedelta(days=1), dt.tzinfo is not None)
