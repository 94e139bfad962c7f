"""Tests for the session accumulator."""

from datetime import datetime, timedelta

from reading_tracker.accumulator import SessionAccumulator

T0 = datetime(2024, 1, 1, 10, 0, 0)


def test_advance_adds_wall_time():
    acc = SessionAccumulator(last_sync=T0)
    added = acc.advance(T0 + timedelta(seconds=12.5))
    assert added == 12.5
    assert acc.seconds == 12.5
    assert acc.payable_seconds == 12


def test_clock_moving_backwards_adds_nothing():
    acc = SessionAccumulator(last_sync=T0)
    assert acc.advance(T0 - timedelta(seconds=30)) == 0.0
    assert acc.last_sync == T0
    acc.advance(T0 + timedelta(seconds=5))
    assert acc.seconds == 5.0


def test_mark_committed_pays_out_whole_seconds_once():
    acc = SessionAccumulator(last_sync=T0)
    acc.advance(T0 + timedelta(seconds=3.7))
    acc.mark_committed(pages=0)
    assert acc.committed_seconds == 3
    assert acc.payable_seconds == 0
    assert acc.counted

    acc.advance(T0 + timedelta(seconds=4.2))
    assert acc.payable_seconds == 1


def test_payable_sum_equals_floor_of_total():
    """Jittery ticks never bill more or less than the whole elapsed seconds."""
    acc = SessionAccumulator(last_sync=T0)
    now = T0
    paid = 0
    for step in [0.3, 0.9, 29.7, 30.4, 0.05, 31.1, 29.95, 1.5]:
        now += timedelta(seconds=step)
        acc.advance(now)
        paid += acc.payable_seconds
        acc.mark_committed(pages=0)
    assert paid == int(acc.seconds)
    assert paid == int((now - T0).total_seconds())


def test_seeded_accumulator_has_nothing_payable():
    """A resumed session starts with its prior duration already billed."""
    acc = SessionAccumulator(
        last_sync=T0, elapsed=timedelta(seconds=600), committed_seconds=600, counted=True
    )
    assert acc.payable_seconds == 0

