"""Tunable constants for session accounting."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "rt" / "reading.db"


class TrackerConfig(BaseModel):
    """Lifecycle tuning.

    Attributes:
        resume_gap_seconds: A session on the same item that ended less than
            this long ago (same day) is resumed instead of starting a new one.
        tick_interval_seconds: Period of the background sync. <= 0 disables
            the ticker; callers then drive sync_session() themselves.
        legacy_min_seconds: Shortest legacy crash-marker duration accepted.
        legacy_max_seconds: Legacy durations at or above this are discarded.
    """

    resume_gap_seconds: float = Field(default=300, ge=0)
    tick_interval_seconds: float = 30.0
    legacy_min_seconds: int = Field(default=10, ge=0)
    legacy_max_seconds: int = Field(default=86_400, gt=0)
