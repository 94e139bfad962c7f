"""Settings, backup, restore, and reset of stored statistics."""

from __future__ import annotations

import logging

from reading_tracker.daily import DAILY_PREFIX
from reading_tracker.models import DailyStats
from reading_tracker.recovery import ACTIVE_SESSION_KEY
from reading_tracker.sessions import SESSION_PREFIX
from reading_tracker.store import KeyValueStore
from reading_tracker.streak import STREAK_KEY

BACKUP_PREFIX = "backup:"
DAILY_GOAL_KEY = "settings:daily_goal_minutes"
DEFAULT_DAILY_GOAL_MINUTES = 30

logger = logging.getLogger(__name__)


def _statistics_keys(store: KeyValueStore) -> list[str]:
    """Session, daily and streak keys."""
    keys = store.keys_with_prefix(SESSION_PREFIX) + store.keys_with_prefix(DAILY_PREFIX)
    if store.get(STREAK_KEY) is not None:
        keys.append(STREAK_KEY)
    return keys


def get_daily_goal(store: KeyValueStore) -> int:
    """Daily reading goal in minutes."""
    raw = store.get(DAILY_GOAL_KEY)
    if raw is None:
        return DEFAULT_DAILY_GOAL_MINUTES
    try:
        minutes = int(raw)
    except ValueError:
        logger.warning("Ignoring malformed daily goal %r", raw)
        return DEFAULT_DAILY_GOAL_MINUTES
    return minutes if minutes > 0 else DEFAULT_DAILY_GOAL_MINUTES


def set_daily_goal(store: KeyValueStore, minutes: int) -> None:
    if minutes <= 0:
        raise ValueError("Daily goal must be a positive number of minutes")
    store.set(DAILY_GOAL_KEY, str(minutes))
    logger.info("Daily goal set to %d minutes", minutes)


def goal_progress(stats: DailyStats, goal_minutes: int) -> float:
    """Fraction of the daily goal reached, capped at 1.0."""
    if goal_minutes <= 0:
        return 0.0
    return min(1.0, stats.total_seconds / (goal_minutes * 60))


def create_backup(store: KeyValueStore) -> int:
    """Copy every statistics record under backup:<key>. Returns records copied."""
    copied = 0
    for key in _statistics_keys(store):
        value = store.get(key)
        if value is not None:
            store.set(BACKUP_PREFIX + key, value)
            copied += 1
    logger.info("Backed up %d statistics records", copied)
    return copied


def restore_from_backup(store: KeyValueStore) -> bool:
    """Copy backups over the live records. Returns True if anything was restored."""
    backups = store.keys_with_prefix(BACKUP_PREFIX)
    restored = False
    for key in backups:
        value = store.get(key)
        if value is not None:
            store.set(key[len(BACKUP_PREFIX):], value)
            restored = True
    if restored:
        logger.info("Restored %d statistics records from backup", len(backups))
    return restored


def reset_statistics(store: KeyValueStore) -> int:
    """Back up, then delete all statistics and the crash marker.

    Returns:
        Number of records deleted.
    """
    create_backup(store)
    keys = _statistics_keys(store)
    if store.get(ACTIVE_SESSION_KEY) is not None:
        keys.append(ACTIVE_SESSION_KEY)
    for key in keys:
        store.delete(key)
    logger.info("Reset statistics (%d records removed)", len(keys))
    return len(keys)


def data_counts(store: KeyValueStore) -> dict[str, int]:
    keys = _statistics_keys(store)
    return {
        "sessions": sum(1 for k in keys if k.startswith(SESSION_PREFIX)),
        "daily_stats": sum(1 for k in keys if k.startswith(DAILY_PREFIX)),
    }
