"""Crash marker persistence and startup reconciliation."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from enum import Enum

from pydantic import ValidationError

from reading_tracker.clock import Clock
from reading_tracker.config import TrackerConfig
from reading_tracker.daily import DailyStatsStore
from reading_tracker.models import ActiveSessionMarker, ReadingSession
from reading_tracker.sessions import SessionLog
from reading_tracker.store import KeyValueStore, StoreError
from reading_tracker.streak import StreakTracker

ACTIVE_SESSION_KEY = "active_session"

logger = logging.getLogger(__name__)


class RecoveryResult(str, Enum):
    NOTHING = "nothing"  # no marker
    CLEARED = "cleared"  # continuously-synced marker removed, data already committed
    RECOVERED = "recovered"  # legacy marker turned into one committed session
    DISCARDED = "discarded"  # legacy duration out of bounds, or marker unreadable


def save_marker(store: KeyValueStore, marker: ActiveSessionMarker) -> None:
    store.set(ACTIVE_SESSION_KEY, marker.model_dump_json())


def clear_marker(store: KeyValueStore) -> None:
    store.delete(ACTIVE_SESSION_KEY)


def load_marker(store: KeyValueStore) -> ActiveSessionMarker | None:
    """Read the crash marker. Unreadable markers count as absent."""
    raw = store.get(ACTIVE_SESSION_KEY)
    if raw is None:
        return None
    try:
        return ActiveSessionMarker.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("Ignoring malformed active-session marker: %s", e)
        return None


def recover_active_session(
    store: KeyValueStore,
    sessions: SessionLog,
    daily: DailyStatsStore,
    streak: StreakTracker,
    clock: Clock,
    config: TrackerConfig,
) -> RecoveryResult:
    """Reconcile a session left behind by an unclean shutdown.

    A marker with a session_id was synced continuously up to
    last_committed_at, so its time is already in daily stats and the marker
    is simply removed. Billing now - start_time instead would count a whole
    suspend or sleep as reading.

    A legacy marker (no session_id) never committed anything. Its duration,
    last_committed_at - start_time (or now - start_time), is committed once
    if it lies within [legacy_min_seconds, legacy_max_seconds).
    """
    if store.get(ACTIVE_SESSION_KEY) is None:
        return RecoveryResult.NOTHING

    marker = load_marker(store)
    if marker is None:
        clear_marker(store)
        return RecoveryResult.DISCARDED

    if marker.session_id is not None:
        logger.info("Recovered continuous session %s; clearing marker", marker.session_id)
        clear_marker(store)
        return RecoveryResult.CLEARED

    end_time = marker.last_committed_at or clock.now()
    duration = (end_time - marker.start_time).total_seconds()

    if not config.legacy_min_seconds <= duration < config.legacy_max_seconds:
        logger.warning(
            "Discarding legacy session for %s: implausible duration %.0fs",
            marker.item_id,
            duration,
        )
        clear_marker(store)
        return RecoveryResult.DISCARDED

    # Same marker, same id: a retried recovery overwrites its own record.
    session_id = str(
        uuid.uuid5(uuid.NAMESPACE_OID, f"{marker.item_id}|{marker.start_time.isoformat()}")
    )
    session = ReadingSession(
        session_id=session_id,
        item_id=marker.item_id,
        chapter_label=marker.chapter_label,
        start_time=marker.start_time,
        end_time=end_time,
        pages_read=max(0, marker.pages_read),
    )
    sessions.save(session)
    daily.commit(
        session.date_key,
        session.duration_seconds,
        session.pages_read,
        session.item_id,
        count_session=True,
    )
    # Time is billed; a surviving marker would bill it again.
    clear_marker(store)
    try:
        streak.record_activity(date.fromisoformat(session.date_key))
    except StoreError as e:
        logger.warning("Could not update streak after recovery: %s", e)
    logger.info(
        "Recovered legacy session %s: %ds on %s",
        session.session_id,
        session.duration_seconds,
        session.date_key,
    )
    return RecoveryResult.RECOVERED
