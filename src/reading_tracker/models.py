"""Persisted records for reading statistics.

Records are serialized to JSON only at the store boundary; everything else
passes these typed objects around.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from pydantic import BaseModel, Field, model_validator

from reading_tracker.clock import local_date


def date_key(value: date | datetime) -> str:
    """Calendar-day bucket key (YYYY-MM-DD)."""
    if isinstance(value, datetime):
        value = local_date(value)
    return value.isoformat()


class ReadingSession(BaseModel):
    """One continuous (or resumed) stretch of reading on one item.

    end_time is start_time plus accounted time, not the wall-clock moment
    the session stopped.
    """

    session_id: str
    item_id: str
    chapter_label: str | None = None
    start_time: datetime
    end_time: datetime
    pages_read: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> ReadingSession:
        if self.end_time < self.start_time:
            raise ValueError("end_time must not precede start_time")
        return self

    @property
    def duration_seconds(self) -> int:
        return int((self.end_time - self.start_time).total_seconds())

    @property
    def date_key(self) -> str:
        """Day containing the session's last accounted instant.

        A session closed exactly at midnight by a split stays on the day it
        ran on.
        """
        if self.end_time > self.start_time:
            return date_key(self.end_time - timedelta(microseconds=1))
        return date_key(self.start_time)


class DailyStats(BaseModel):
    """Aggregate for one calendar day. Only ever grows."""

    date: str
    total_seconds: int = 0
    session_count: int = 0
    pages_read: int = 0
    items_touched: set[str] = Field(default_factory=set)
    per_item_seconds: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def empty(cls, day: str) -> DailyStats:
        return cls(date=day)

    @property
    def total_minutes(self) -> int:
        return self.total_seconds // 60

    @property
    def intensity_level(self) -> int:
        """Heatmap bucket 0-4 by minutes read."""
        minutes = self.total_minutes
        if self.total_seconds == 0:
            return 0
        if minutes <= 15:
            return 1
        if minutes <= 30:
            return 2
        if minutes <= 60:
            return 3
        return 4


class ReadingStreak(BaseModel):
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_active_date: date | None = None


class ActiveSessionMarker(BaseModel):
    """Snapshot of the in-flight session, used to reconcile after a crash.

    Markers without a session_id predate continuous syncing (legacy format).
    """

    session_id: str | None = None
    item_id: str
    chapter_label: str | None = None
    start_time: datetime
    pages_read: int = 0
    last_committed_at: datetime | None = None
