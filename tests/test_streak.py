"""Tests for streak transitions."""

from datetime import date

import pytest

from reading_tracker.streak import STREAK_KEY, StreakTracker

D = date(2024, 1, 10)


@pytest.fixture
def streak(store) -> StreakTracker:
    tracker = StreakTracker(store)
    tracker.record_activity(D)
    return tracker


class TestRecordActivity:
    def test_first_activity_starts_streak(self, store):
        result = StreakTracker(store).record_activity(D)
        assert result.current_streak == 1
        assert result.longest_streak == 1
        assert result.last_active_date == D

    def test_same_day_unchanged(self, streak):
        assert streak.record_activity(D).current_streak == 1

    def test_next_day_increments(self, streak):
        assert streak.record_activity(date(2024, 1, 11)).current_streak == 2

    def test_gap_resets_to_one(self, streak):
        streak.record_activity(date(2024, 1, 11))
        result = streak.record_activity(date(2024, 1, 14))
        assert result.current_streak == 1
        assert result.longest_streak == 2

    def test_longest_never_decreases(self, streak):
        longest = []
        for day in [11, 12, 20, 21, 30]:
            longest.append(streak.record_activity(date(2024, 1, day)).longest_streak)
        assert longest == sorted(longest)
        assert streak.get().longest_streak == 3

    def test_earlier_day_ignored(self, streak):
        """A late commit for a past day does not break the streak."""
        streak.record_activity(date(2024, 1, 11))
        result = streak.record_activity(D)
        assert result.current_streak == 2
        assert result.last_active_date == date(2024, 1, 11)

    def test_month_boundary_counts_as_consecutive(self, store):
        tracker = StreakTracker(store)
        tracker.record_activity(date(2024, 1, 31))
        assert tracker.record_activity(date(2024, 2, 1)).current_streak == 2

    def test_persisted(self, store, streak):
        streak.record_activity(date(2024, 1, 11))
        assert StreakTracker(store).get().current_streak == 2


class TestGetAndAlive:
    def test_malformed_record_treated_as_empty(self, store):
        store.set(STREAK_KEY, "garbage")
        assert StreakTracker(store).get().current_streak == 0

    def test_is_alive(self, streak):
        assert streak.is_alive(D)
        assert streak.is_alive(date(2024, 1, 11))
        assert not streak.is_alive(date(2024, 1, 12))

    def test_not_alive_without_activity(self, store):
        assert not StreakTracker(store).is_alive(D)
