"""CLI entry point for Reading Tracker."""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import date, datetime
from pathlib import Path

import click

from reading_tracker.clock import SystemClock
from reading_tracker.config import DEFAULT_DB_PATH, TrackerConfig
from reading_tracker.insights import (
    total_seconds_in_range,
    total_sessions_in_range,
    week_range,
)
from reading_tracker.maintenance import (
    create_backup,
    data_counts,
    get_daily_goal,
    goal_progress,
    restore_from_backup,
    set_daily_goal,
)
from reading_tracker.models import DailyStats
from reading_tracker.store import SqliteKeyValueStore
from reading_tracker.tracker import ReadingTracker


def format_relative_time(dt: datetime, *, now: datetime | None = None) -> str:
    """Format a timestamp as relative time (e.g., '5 minutes ago').

    Args:
        dt: The moment to describe.
        now: Optional current time for testing (defaults to now in dt's timezone).
    """
    if now is None:
        now = datetime.now(dt.tzinfo)
    seconds = (now - dt).total_seconds()
    if seconds < 60:
        # Includes future timestamps from clock skew
        return "just now"
    elif seconds < 3600:
        minutes = int(seconds / 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    elif seconds < 86400:
        hours = int(seconds / 3600)
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    else:
        days = int(seconds / 86400)
        return f"{days} day{'s' if days != 1 else ''} ago"


def format_duration(seconds: int) -> str:
    """Format seconds as 'Xh Ym', 'Ym', or '<1m'."""
    if seconds < 60:
        return "<1m" if seconds > 0 else "0m"
    total_minutes = seconds // 60
    hours = total_minutes // 60
    minutes = total_minutes % 60
    if hours > 0:
        return f"{hours}h {minutes:2d}m"
    return f"{minutes}m"


def format_week_range(start: date, end: date) -> str:
    """Format an inclusive date range like 'Jan 20-26, 2025'."""
    if start.month == end.month:
        return f"{start.strftime('%b')} {start.day}-{end.day}, {start.year}"
    elif start.year == end.year:
        return f"{start.strftime('%b %d')} - {end.strftime('%b %d')}, {start.year}"
    else:
        return f"{start.strftime('%b %d, %Y')} - {end.strftime('%b %d, %Y')}"


def make_progress_bar(value: int, max_value: int, width: int = 16) -> str:
    """Create ASCII progress bar like '████████░░░░░░░░'."""
    if max_value == 0 or value == 0:
        return "░" * width
    filled = max(1, min(width, round((value / max_value) * width)))
    return "█" * filled + "░" * (width - filled)


def _stats_dict(stats: DailyStats) -> dict:
    return {
        "date": stats.date,
        "total_seconds": stats.total_seconds,
        "session_count": stats.session_count,
        "pages_read": stats.pages_read,
        "items_touched": sorted(stats.items_touched),
        "per_item_seconds": dict(sorted(stats.per_item_seconds.items())),
    }


def _parse_day(value: str | None) -> date:
    if value is None or value == "today":
        return SystemClock().now().date()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        click.echo(f"Invalid date format: {value}. Use YYYY-MM-DD.", err=True)
        sys.exit(1)


def _open_existing(db: Path) -> SqliteKeyValueStore:
    if not db.exists():
        click.echo("No database found", err=True)
        sys.exit(1)
    return SqliteKeyValueStore.open(db)


db_option = click.option(
    "--db",
    type=click.Path(path_type=Path),
    default=DEFAULT_DB_PATH,
    envvar="RT_DB",
    help="Path to SQLite database",
)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Log session activity to stderr")
def main(verbose: bool) -> None:
    """Reading Tracker CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@main.command("read")
@click.argument("item")
@click.option("--chapter", help="Current chapter or position label")
@click.option("--minutes", type=float, help="Stop after this many minutes (default: until Ctrl-C)")
@click.option("--tick", type=float, default=30.0, show_default=True, help="Seconds between syncs")
@db_option
def read_command(item: str, chapter: str | None, minutes: float | None, tick: float, db: Path) -> None:
    """Track a reading session for ITEM in the foreground.

    Time is committed every --tick seconds and once more on exit, so an
    interrupted run loses at most one tick.

    Example:
        rt read "dune" --chapter "Book One"
        rt read dune --minutes 25
    """
    db.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + minutes * 60 if minutes is not None else None

    with SqliteKeyValueStore.open(db) as store:
        tracker = ReadingTracker(store, config=TrackerConfig(tick_interval_seconds=tick))
        with tracker:
            session_id = tracker.start_session(item, chapter)
            click.echo(f"Reading {item} (session {session_id[:8]}). Press Ctrl-C to stop.")
            try:
                while deadline is None or time.monotonic() < deadline:
                    time.sleep(0.5)
            except KeyboardInterrupt:
                pass

        session = tracker.sessions.get(session_id)
        today = tracker.get_daily_stats(SystemClock().now().date())

    if session is not None:
        click.echo(f"Session: {format_duration(session.duration_seconds)}")
    click.echo(f"Today:   {format_duration(today.total_seconds)} across {today.session_count} session(s)")


@main.command("status")
@db_option
def status_command(db: Path) -> None:
    """Show today's reading, goal progress, and streak."""
    today = SystemClock().now().date()
    with _open_existing(db) as store:
        tracker = ReadingTracker(store)
        stats = tracker.get_daily_stats(today)
        streak = tracker.get_streak()
        alive = tracker.streak.is_alive(today)
        goal = get_daily_goal(store)
        counts = data_counts(store)

    click.echo(f"Database: {db}")
    click.echo()
    progress = goal_progress(stats, goal)
    click.echo(f"Today: {format_duration(stats.total_seconds)} of {goal}m goal")
    click.echo(f"  {make_progress_bar(round(progress * 100), 100)} {round(progress * 100)}%")
    click.echo(f"Streak: {streak.current_streak if alive else 0} day(s) (longest {streak.longest_streak})")
    click.echo()
    click.echo(f"Stored: {counts['sessions']} sessions, {counts['daily_stats']} days")


@main.command("day")
@click.argument("day_date", required=False)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@db_option
def day_command(day_date: str | None, output_json: bool, db: Path) -> None:
    """Show stats for one day (YYYY-MM-DD, default: today)."""
    day = _parse_day(day_date)
    with _open_existing(db) as store:
        tracker = ReadingTracker(store)
        stats = tracker.get_daily_stats(day)
        sessions = tracker.sessions.for_date(day)

    if output_json:
        click.echo(json.dumps(_stats_dict(stats), indent=2))
        return

    click.echo(f"Reading on {day.strftime('%b %d, %Y')}")
    click.echo()
    if stats.total_seconds == 0:
        click.echo("No reading recorded for this day.")
        return

    click.echo(f"Total: {format_duration(stats.total_seconds)} in {stats.session_count} session(s), {stats.pages_read} page(s)")
    click.echo()
    click.echo("By item:")
    max_seconds = max(stats.per_item_seconds.values(), default=0)
    for item, seconds in sorted(stats.per_item_seconds.items(), key=lambda kv: -kv[1]):
        display = item if len(item) <= 20 else item[:17] + "..."
        click.echo(f"  {display:<20} {format_duration(seconds):>9}   {make_progress_bar(seconds, max_seconds)}")
    if sessions:
        click.echo()
        click.echo("Sessions:")
        for session in sessions:
            click.echo(
                f"  {session.start_time.strftime('%H:%M')}  {format_duration(session.duration_seconds):>9}  {session.item_id}"
            )


@main.command("week")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@db_option
def week_command(output_json: bool, db: Path) -> None:
    """Show the current week (Monday-Sunday)."""
    today = SystemClock().now().date()
    monday, sunday = week_range(today)
    with _open_existing(db) as store:
        tracker = ReadingTracker(store)
        days = tracker.daily.get_range(monday, sunday)
        total = total_seconds_in_range(tracker.daily, monday, sunday)
        sessions = total_sessions_in_range(tracker.daily, monday, sunday)

    if output_json:
        output = {
            "report_type": "weekly",
            "period": {"start": monday.isoformat(), "end": sunday.isoformat()},
            "total_seconds": total,
            "session_count": sessions,
            "days": [_stats_dict(s) for s in days.values()],
        }
        click.echo(json.dumps(output, indent=2))
        return

    click.echo(f"Reading Report: {format_week_range(monday, sunday)}")
    click.echo()
    click.echo(f"Total: {format_duration(total)} in {sessions} session(s)")
    click.echo()
    max_seconds = max((s.total_seconds for s in days.values()), default=0)
    for key, stats in days.items():
        weekday = date.fromisoformat(key).strftime("%a")
        click.echo(
            f"  {weekday}  {format_duration(stats.total_seconds):>9}   {make_progress_bar(stats.total_seconds, max_seconds)}"
        )


@main.command("sessions")
@click.option("--limit", type=int, default=10, show_default=True, help="Maximum sessions to show")
@db_option
def sessions_command(limit: int, db: Path) -> None:
    """List recent reading sessions, newest first."""
    with _open_existing(db) as store:
        sessions = ReadingTracker(store).get_recent_sessions(limit)

    if not sessions:
        click.echo("No sessions recorded")
        return
    for session in sessions:
        chapter = f" ({session.chapter_label})" if session.chapter_label else ""
        click.echo(
            f"{session.date_key}  {format_duration(session.duration_seconds):>9}  "
            f"{session.item_id}{chapter}  {format_relative_time(session.end_time)}"
        )


@main.command("streak")
@db_option
def streak_command(db: Path) -> None:
    """Show the current and longest reading streak."""
    today = SystemClock().now().date()
    with _open_existing(db) as store:
        tracker = ReadingTracker(store)
        streak = tracker.get_streak()
        alive = tracker.streak.is_alive(today)

    current = streak.current_streak if alive else 0
    click.echo(f"Current streak: {current} day{'s' if current != 1 else ''}")
    click.echo(f"Longest streak: {streak.longest_streak} day{'s' if streak.longest_streak != 1 else ''}")
    if streak.last_active_date is not None:
        click.echo(f"Last active:    {streak.last_active_date.isoformat()}")


@main.command("recover")
@db_option
def recover_command(db: Path) -> None:
    """Reconcile a session left open by a crash."""
    with _open_existing(db) as store:
        result = ReadingTracker(store).initialize()
    click.echo(f"Recovery: {result.value}")


@main.command("goal")
@click.argument("minutes", type=int, required=False)
@db_option
def goal_command(minutes: int | None, db: Path) -> None:
    """Show or set the daily reading goal in MINUTES."""
    db.parent.mkdir(parents=True, exist_ok=True)
    with SqliteKeyValueStore.open(db) as store:
        if minutes is not None:
            try:
                set_daily_goal(store, minutes)
            except ValueError as e:
                click.echo(str(e), err=True)
                sys.exit(1)
        goal = get_daily_goal(store)
    click.echo(f"Daily goal: {goal} minutes")


@main.command("backup")
@db_option
def backup_command(db: Path) -> None:
    """Snapshot all statistics inside the database."""
    with _open_existing(db) as store:
        copied = create_backup(store)
    click.echo(f"Backed up {copied} records")


@main.command("restore")
@db_option
def restore_command(db: Path) -> None:
    """Restore statistics from the last backup."""
    with _open_existing(db) as store:
        restored = restore_from_backup(store)
    if not restored:
        click.echo("No backup found", err=True)
        sys.exit(1)
    click.echo("Statistics restored from backup")


@main.command("reset")
@click.option("--yes", is_flag=True, help="Confirm deleting all statistics")
@db_option
def reset_command(yes: bool, db: Path) -> None:
    """Delete all statistics (a backup is taken first)."""
    if not yes:
        click.echo("Refusing to reset without --yes", err=True)
        sys.exit(1)
    with _open_existing(db) as store:
        removed = ReadingTracker(store).reset()
    click.echo(f"Removed {removed} records (backup kept; run 'rt restore' to undo)")


if __name__ == "__main__":
    main()
