"""Summaries computed from stored daily stats and sessions."""

from __future__ import annotations

from datetime import date, timedelta

from reading_tracker.daily import DailyStatsStore
from reading_tracker.sessions import SessionLog


def week_range(today: date) -> tuple[date, date]:
    """Monday to Sunday (inclusive) of today's week."""
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)


def month_range(today: date) -> tuple[date, date]:
    """First to last day (inclusive) of today's month."""
    first = today.replace(day=1)
    next_first = (first + timedelta(days=32)).replace(day=1)
    return first, next_first - timedelta(days=1)


def total_seconds_in_range(daily: DailyStatsStore, start: date, end: date) -> int:
    return sum(s.total_seconds for s in daily.get_range(start, end).values())


def total_sessions_in_range(daily: DailyStatsStore, start: date, end: date) -> int:
    return sum(s.session_count for s in daily.get_range(start, end).values())


def weekly_daily_minutes(daily: DailyStatsStore, today: date) -> list[int]:
    """Minutes read on each day of today's week, Monday first."""
    monday, sunday = week_range(today)
    return [s.total_minutes for s in daily.get_range(monday, sunday).values()]


def average_session_minutes(sessions: SessionLog) -> float:
    all_sessions = sessions.all()
    if not all_sessions:
        return 0.0
    total = sum(s.duration_seconds for s in all_sessions)
    return total / 60 / len(all_sessions)


def average_sessions_per_day(daily: DailyStatsStore) -> float:
    """Mean session count over days that had at least one session."""
    counts = [daily.get(d).session_count for d in daily.dates()]
    active = [c for c in counts if c > 0]
    return sum(active) / len(active) if active else 0.0


def hourly_activity(sessions: SessionLog, today: date, days: int = 30) -> dict[int, int]:
    """Seconds read by start hour (0-23) over the last `days` days."""
    activity = {hour: 0 for hour in range(24)}
    since = today - timedelta(days=days)
    for session in sessions.all():
        if since <= session.start_time.date() <= today:
            activity[session.start_time.hour] += session.duration_seconds
    return activity


def weekday_activity(daily: DailyStatsStore, today: date, days: int = 30) -> dict[int, int]:
    """Seconds read by ISO weekday (1=Monday .. 7=Sunday) over the last `days` days."""
    activity = {weekday: 0 for weekday in range(1, 8)}
    for key, stats in daily.get_range(today - timedelta(days=days), today).items():
        activity[date.fromisoformat(key).isoweekday()] += stats.total_seconds
    return activity


def monthly_momentum(daily: DailyStatsStore, today: date, months: int = 6) -> dict[str, int]:
    """Seconds read per month (YYYY-MM) for the last `months` months, newest first."""
    momentum: dict[str, int] = {}
    first = today.replace(day=1)
    for _ in range(months):
        momentum[first.strftime("%Y-%m")] = 0
        first = (first - timedelta(days=1)).replace(day=1)

    for key in daily.dates():
        month = key[:7]
        if month in momentum:
            momentum[month] += daily.get(key).total_seconds
    return momentum
