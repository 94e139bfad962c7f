"""Per-day aggregate store."""

from __future__ import annotations

import logging
from datetime import date, timedelta

from pydantic import ValidationError

from reading_tracker.models import DailyStats, date_key
from reading_tracker.store import KeyValueStore

DAILY_PREFIX = "daily:"

logger = logging.getLogger(__name__)


class DailyStatsStore:
    """Reads and additively updates one DailyStats record per calendar day.

    No internal locking: the only writer is the tracker, which serializes
    commits.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get(self, day: date | str) -> DailyStats:
        """Stats for a day. Absent or unreadable records come back zeroed."""
        key = day if isinstance(day, str) else date_key(day)
        raw = self._store.get(DAILY_PREFIX + key)
        if raw is None:
            return DailyStats.empty(key)
        try:
            return DailyStats.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed daily stats for %s: %s", key, e)
            return DailyStats.empty(key)

    def commit(
        self,
        day: date | str,
        delta_seconds: int,
        delta_pages: int,
        item_id: str,
        *,
        count_session: bool = False,
    ) -> DailyStats:
        """Add a delta to a day's totals and persist it.

        Negative deltas are clamped to zero so a commit can never shrink a day.

        Returns:
            The updated record.
        """
        stats = self.get(day)
        seconds = max(0, int(delta_seconds))
        pages = max(0, int(delta_pages))

        stats.total_seconds += seconds
        stats.pages_read += pages
        stats.items_touched.add(item_id)
        stats.per_item_seconds[item_id] = stats.per_item_seconds.get(item_id, 0) + seconds
        if count_session:
            stats.session_count += 1

        self._store.set(DAILY_PREFIX + stats.date, stats.model_dump_json())
        logger.debug(
            "Committed +%ds +%dp to %s (total %ds, %d sessions)",
            seconds,
            pages,
            stats.date,
            stats.total_seconds,
            stats.session_count,
        )
        return stats

    def get_range(self, start: date, end: date) -> dict[str, DailyStats]:
        """Stats for every day from start to end inclusive, in date order."""
        result: dict[str, DailyStats] = {}
        current = start
        while current <= end:
            key = date_key(current)
            result[key] = self.get(key)
            current += timedelta(days=1)
        return result

    def dates(self) -> list[str]:
        """All days with a stored record, ascending."""
        return [k[len(DAILY_PREFIX):] for k in self._store.keys_with_prefix(DAILY_PREFIX)]
