"""Tests for calendar-day helpers."""

import time
from datetime import datetime, timedelta, timezone

import pytest

from reading_tracker.clock import next_midnight, start_of_day
from reading_tracker.models import date_key

CET = timezone(timedelta(hours=1))
CEST = timezone(timedelta(hours=2))


@pytest.fixture
def berlin(monkeypatch):
    """Local time is Europe/Berlin (DST starts 2024-03-31 02:00)."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "Europe/Berlin")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


class TestNaive:
    def test_next_midnight(self):
        assert next_midnight(datetime(2024, 1, 1, 23, 58)) == datetime(2024, 1, 2)

    def test_start_of_day(self):
        assert start_of_day(datetime(2024, 1, 1, 13, 5, 7)) == datetime(2024, 1, 1)

    def test_month_end(self):
        assert next_midnight(datetime(2024, 2, 29, 8, 0)) == datetime(2024, 3, 1)


class TestDaylightSaving:
    """Aware datetimes keep the offset they were created with."""

    def test_midnight_after_switch_uses_new_offset(self, berlin):
        """The part started at local midnight before the switch ends at the next local midnight."""
        part_start = datetime(2024, 3, 31, 0, 0, tzinfo=CET)
        boundary = next_midnight(part_start)
        assert boundary == datetime(2024, 4, 1, 0, 0, tzinfo=CEST)
        assert boundary.utcoffset() == timedelta(hours=2)

    def test_start_of_day_before_switch(self, berlin):
        assert start_of_day(datetime(2024, 3, 31, 12, 0, tzinfo=CEST)) == datetime(
            2024, 3, 31, 0, 0, tzinfo=CET
        )

    def test_date_key_with_stale_offset(self, berlin):
        """23:30 at the old offset is already 00:30 of the next local day."""
        assert date_key(datetime(2024, 3, 31, 23, 30, tzinfo=CET)) == "2024-04-01"

    def test_session_day_spans_23_hours(self, berlin):
        start = datetime(2024, 3, 31, 0, 0, tzinfo=CET)
        assert next_midnight(start) - start == timedelta(hours=23)
