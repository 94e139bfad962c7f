"""Reading session log."""

from __future__ import annotations

import logging
from datetime import date, datetime

from pydantic import ValidationError

from reading_tracker.models import ReadingSession, date_key
from reading_tracker.store import KeyValueStore

SESSION_PREFIX = "session:"

logger = logging.getLogger(__name__)


class SessionLog:
    """Session records keyed by session id, so re-commits overwrite."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def save(self, session: ReadingSession) -> None:
        self._store.set(SESSION_PREFIX + session.session_id, session.model_dump_json())

    def get(self, session_id: str) -> ReadingSession | None:
        raw = self._store.get(SESSION_PREFIX + session_id)
        if raw is None:
            return None
        return self._parse(session_id, raw)

    def all(self) -> list[ReadingSession]:
        """Every readable session, unordered. Malformed records are skipped."""
        sessions = []
        for key in self._store.keys_with_prefix(SESSION_PREFIX):
            raw = self._store.get(key)
            if raw is None:
                continue
            session = self._parse(key[len(SESSION_PREFIX):], raw)
            if session is not None:
                sessions.append(session)
        return sessions

    def recent(self, limit: int) -> list[ReadingSession]:
        """Most recent sessions first, by end_time."""
        if limit <= 0:
            return []
        sessions = sorted(self.all(), key=lambda s: s.end_time, reverse=True)
        return sessions[:limit]

    def for_date(self, day: date) -> list[ReadingSession]:
        """Sessions attributed to a day, newest first."""
        key = date_key(day)
        sessions = [s for s in self.all() if s.date_key == key]
        sessions.sort(key=lambda s: s.end_time, reverse=True)
        return sessions

    def in_range(self, start: datetime, end: datetime) -> list[ReadingSession]:
        """Sessions whose end_time falls in [start, end)."""
        return [s for s in self.all() if start <= s.end_time < end]

    def _parse(self, session_id: str, raw: str) -> ReadingSession | None:
        try:
            return ReadingSession.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Skipping malformed session %s: %s", session_id, e)
            return None
