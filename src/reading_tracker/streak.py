"""Consecutive-day reading streak."""

from __future__ import annotations

import logging
from datetime import date, timedelta

from pydantic import ValidationError

from reading_tracker.models import ReadingStreak
from reading_tracker.store import KeyValueStore

STREAK_KEY = "streak"

logger = logging.getLogger(__name__)


class StreakTracker:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get(self) -> ReadingStreak:
        raw = self._store.get(STREAK_KEY)
        if raw is None:
            return ReadingStreak()
        try:
            return ReadingStreak.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed streak record: %s", e)
            return ReadingStreak()

    def record_activity(self, day: date) -> ReadingStreak:
        """Mark a day as active and persist the updated streak.

        Same day as last activity: unchanged. The following day: +1. Any
        later day: reset to 1. Days before the last active day are ignored.
        """
        streak = self.get()
        last = streak.last_active_date

        if last is not None and day <= last:
            return streak

        if last is not None and day - last == timedelta(days=1):
            current = streak.current_streak + 1
        else:
            current = 1

        updated = ReadingStreak(
            current_streak=current,
            longest_streak=max(streak.longest_streak, current),
            last_active_date=day,
        )
        self._store.set(STREAK_KEY, updated.model_dump_json())
        if current != streak.current_streak:
            logger.info("Streak now %d day(s) (longest %d)", current, updated.longest_streak)
        return updated

    def is_alive(self, today: date) -> bool:
        """True if the streak can still be extended today."""
        last = self.get().last_active_date
        return last is not None and today - last <= timedelta(days=1)
