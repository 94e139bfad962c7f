"""Tests for crash recovery at startup."""

from __future__ import annotations

from datetime import datetime

from reading_tracker.daily import DAILY_PREFIX
from reading_tracker.models import ActiveSessionMarker
from reading_tracker.recovery import (
    ACTIVE_SESSION_KEY,
    RecoveryResult,
    load_marker,
    save_marker,
)
from reading_tracker.streak import STREAK_KEY
from reading_tracker.tracker import ReadingTracker

from conftest import FlakyStore


def legacy_marker(store, start: datetime, last_committed_at: datetime | None = None) -> None:
    save_marker(
        store,
        ActiveSessionMarker(
            item_id="bookA",
            chapter_label="Chapter 2",
            start_time=start,
            pages_read=3,
            last_committed_at=last_committed_at,
        ),
    )


class TestContinuousMarker:
    def test_no_marker(self, tracker):
        assert tracker.initialize() is RecoveryResult.NOTHING

    def test_crashed_session_not_inflated(self, store, clock, config):
        """Time after the last sync (e.g. a laptop asleep overnight) is not billed."""
        crashed = ReadingTracker(store, clock=clock, config=config)
        crashed.start_session("bookA")
        clock.advance(seconds=30)
        crashed.sync_session()
        # process dies here; no end_session()

        clock.advance(hours=8)
        restarted = ReadingTracker(store, clock=clock, config=config)
        assert restarted.initialize() is RecoveryResult.CLEARED
        assert restarted.get_daily_stats("2024-01-01").total_seconds == 30
        assert load_marker(store) is None

    def test_initialize_runs_once(self, store, clock, config):
        crashed = ReadingTracker(store, clock=clock, config=config)
        crashed.start_session("bookA")

        restarted = ReadingTracker(store, clock=clock, config=config)
        assert restarted.initialize() is RecoveryResult.CLEARED
        assert restarted.initialize() is RecoveryResult.NOTHING

    def test_start_session_runs_recovery_first(self, store, clock, config):
        legacy_marker(store, datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 1, 9, 10))
        tracker = ReadingTracker(store, clock=clock, config=config)
        tracker.start_session("bookB")

        stats = tracker.get_daily_stats("2024-01-01")
        assert stats.per_item_seconds == {"bookA": 600}
        assert load_marker(store).item_id == "bookB"


class TestLegacyMarker:
    def test_recovered_once(self, tracker, store):
        legacy_marker(store, datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 1, 9, 20))

        assert tracker.initialize() is RecoveryResult.RECOVERED
        stats = tracker.get_daily_stats("2024-01-01")
        assert stats.total_seconds == 1200
        assert stats.session_count == 1
        assert stats.pages_read == 3
        assert tracker.get_streak().current_streak == 1
        assert store.get(ACTIVE_SESSION_KEY) is None

    def test_recovered_session_logged(self, tracker, store):
        legacy_marker(store, datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 1, 9, 20))
        tracker.initialize()

        [session] = tracker.get_recent_sessions(10)
        assert session.item_id == "bookA"
        assert session.chapter_label == "Chapter 2"
        assert session.duration_seconds == 1200

    def test_without_last_commit_uses_now(self, tracker, store):
        legacy_marker(store, datetime(2024, 1, 1, 9, 50))
        assert tracker.initialize() is RecoveryResult.RECOVERED
        assert tracker.get_daily_stats("2024-01-01").total_seconds == 600

    def test_too_short_discarded(self, tracker, store):
        legacy_marker(store, datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 1, 9, 0, 5))
        assert tracker.initialize() is RecoveryResult.DISCARDED
        assert tracker.get_daily_stats("2024-01-01").total_seconds == 0
        assert store.get(ACTIVE_SESSION_KEY) is None

    def test_too_long_discarded(self, tracker, store):
        legacy_marker(store, datetime(2023, 12, 30, 9, 0))
        assert tracker.initialize() is RecoveryResult.DISCARDED
        assert tracker.get_recent_sessions(10) == []

    def test_upper_bound_is_exclusive(self, tracker, store):
        legacy_marker(store, datetime(2023, 12, 31, 10, 0))
        assert tracker.initialize() is RecoveryResult.DISCARDED

    def test_lower_bound_is_inclusive(self, tracker, store):
        legacy_marker(store, datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 1, 9, 0, 10))
        assert tracker.initialize() is RecoveryResult.RECOVERED
        assert tracker.get_daily_stats("2024-01-01").total_seconds == 10

    def test_recovery_notifies_listeners(self, tracker, store):
        received = []
        tracker.subscribe(received.append)
        legacy_marker(store, datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 1, 9, 20))
        tracker.initialize()
        assert received == [None]


def test_malformed_marker_discarded(tracker, store):
    store.set(ACTIVE_SESSION_KEY, '{"item_id": 42')
    assert tracker.initialize() is RecoveryResult.DISCARDED
    assert store.get(ACTIVE_SESSION_KEY) is None


class TestStoreFailureDuringRecovery:
    """A partly failed recovery never bills the same legacy session twice."""

    def test_streak_failure_still_clears_marker(self, store, clock, config):
        flaky = FlakyStore(store)
        flaky.fail_keys = {STREAK_KEY}
        legacy_marker(store, datetime(2024, 1, 1, 9, 50))

        first = ReadingTracker(flaky, clock=clock, config=config)
        assert first.initialize() is RecoveryResult.RECOVERED
        assert store.get(ACTIVE_SESSION_KEY) is None

        flaky.fail_keys = set()
        second = ReadingTracker(flaky, clock=clock, config=config)
        assert second.initialize() is RecoveryResult.NOTHING
        assert second.get_daily_stats("2024-01-01").total_seconds == 600

    def test_daily_failure_retried_on_next_start(self, store, clock, config):
        flaky = FlakyStore(store)
        flaky.fail_keys = {DAILY_PREFIX + "2024-01-01"}
        legacy_marker(store, datetime(2024, 1, 1, 9, 50))

        first = ReadingTracker(flaky, clock=clock, config=config)
        assert first.initialize() is RecoveryResult.NOTHING
        assert load_marker(store) is not None

        flaky.fail_keys = set()
        second = ReadingTracker(flaky, clock=clock, config=config)
        assert second.initialize() is RecoveryResult.RECOVERED

        stats = second.get_daily_stats("2024-01-01")
        assert stats.total_seconds == 600
        assert stats.session_count == 1
        # The retry overwrote the session record from the failed attempt.
        assert len(second.get_recent_sessions(10)) == 1

    def test_failed_initialize_retried_by_start_session(self, store, clock, config):
        flaky = FlakyStore(store)
        flaky.fail_writes = True
        legacy_marker(store, datetime(2024, 1, 1, 9, 50))

        tracker = ReadingTracker(flaky, clock=clock, config=config)
        assert tracker.initialize() is RecoveryResult.NOTHING

        flaky.fail_writes = False
        tracker.start_session("bookB")
        assert tracker.get_daily_stats("2024-01-01").per_item_seconds == {"bookA": 600}
