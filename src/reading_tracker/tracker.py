"""Reading session lifecycle.

ReadingTracker owns the single active session. Elapsed time reaches the
daily aggregates only through commits: a periodic tick (and any explicit
sync_session() call) moves newly elapsed whole seconds into the day's
DailyStats, so the sum of committed deltas always equals the wall-clock time
actually spent. Sessions crossing midnight are split so each day gets its own
share, and a session restarted on the same item shortly after it ended is
resumed rather than fragmented.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable

from reading_tracker.accumulator import SessionAccumulator
from reading_tracker.clock import Clock, SystemClock, next_midnight
from reading_tracker.config import TrackerConfig
from reading_tracker.daily import DailyStatsStore
from reading_tracker.maintenance import reset_statistics
from reading_tracker.models import (
    ActiveSessionMarker,
    DailyStats,
    ReadingSession,
    ReadingStreak,
    date_key,
)
from reading_tracker.recovery import (
    RecoveryResult,
    clear_marker,
    recover_active_session,
    save_marker,
)
from reading_tracker.sessions import SessionLog
from reading_tracker.store import KeyValueStore, StoreError
from reading_tracker.streak import StreakTracker

logger = logging.getLogger(__name__)

Listener = Callable[[DailyStats | None], None]


@dataclass
class _ActiveSession:
    session_id: str
    item_id: str
    chapter_label: str | None
    start_time: datetime
    pages_read: int
    acc: SessionAccumulator

    def snapshot(self) -> ReadingSession:
        return ReadingSession(
            session_id=self.session_id,
            item_id=self.item_id,
            chapter_label=self.chapter_label,
            start_time=self.start_time,
            end_time=self.start_time + self.acc.elapsed,
            pages_read=self.pages_read,
        )

    def marker(self) -> ActiveSessionMarker:
        return ActiveSessionMarker(
            session_id=self.session_id,
            item_id=self.item_id,
            chapter_label=self.chapter_label,
            start_time=self.start_time,
            pages_read=self.pages_read,
            last_committed_at=self.acc.last_sync,
        )


class ReadingTracker:
    """Session lifecycle manager: Idle -> Active -> Idle.

    Construct one per process and pass it to whatever reports reading
    activity. Store failures during a commit are logged and leave the
    in-memory session untouched, so the next tick retries them.

    Thread model: the background ticker is a daemon thread. sync_session()
    takes a non-blocking busy lock and returns immediately if a sync is
    already running; a skipped tick is caught up by the next one.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock | None = None,
        config: TrackerConfig | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self.config = config or TrackerConfig()
        self.daily = DailyStatsStore(store)
        self.sessions = SessionLog(store)
        self.streak = StreakTracker(store)

        self._lock = threading.RLock()
        self._sync_busy = threading.Lock()
        self._session: _ActiveSession | None = None
        self._initialized = False
        self._listeners: list[Listener] = []
        self._stop_event: threading.Event | None = None
        self._ticker: threading.Thread | None = None

    def __enter__(self) -> "ReadingTracker":
        self.initialize()
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.end_session()

    # Startup

    def initialize(self) -> RecoveryResult:
        """Reconcile any crash marker. Runs once; later calls are no-ops."""
        with self._lock:
            if self._initialized:
                return RecoveryResult.NOTHING
            try:
                result = recover_active_session(
                    self._store,
                    self.sessions,
                    self.daily,
                    self.streak,
                    self._clock,
                    self.config,
                )
            except StoreError as e:
                logger.warning("Crash recovery failed, will retry on next start: %s", e)
                return RecoveryResult.NOTHING
            self._initialized = True

        if result is RecoveryResult.RECOVERED:
            self._notify(None)
        return result

    # Caller API

    @property
    def has_active_session(self) -> bool:
        return self._session is not None

    @property
    def active_session(self) -> ReadingSession | None:
        """Accounted state of the in-flight session, or None when idle."""
        with self._lock:
            return self._session.snapshot() if self._session else None

    def start_session(self, item_id: str, chapter_label: str | None = None) -> str:
        """Begin (or resume) reading item_id. Returns the session id.

        An already active session is ended first, so no activity is dropped.
        """
        if not item_id:
            raise ValueError("item_id must be non-empty")
        if not self._initialized:
            self.initialize()
        if self._session is not None:
            logger.info("Session already active; ending it first")
            self.end_session()

        with self._lock:
            now = self._clock.now()
            active = self._resume(item_id, chapter_label, now)
            if active is None:
                active = _ActiveSession(
                    session_id=str(uuid.uuid4()),
                    item_id=item_id,
                    chapter_label=chapter_label,
                    start_time=now,
                    pages_read=0,
                    acc=SessionAccumulator(last_sync=now),
                )
                logger.info("Started session %s for %s", active.session_id, item_id)
            self._session = active
            self._persist_marker(active)
            session_id = active.session_id

        self._start_ticker()
        return session_id

    def update_session_progress(
        self,
        chapter_label: str | None = None,
        increment_pages: int = 0,
    ) -> None:
        """Record position changes. Takes effect at the next sync."""
        if increment_pages < 0:
            raise ValueError("increment_pages must be >= 0")
        with self._lock:
            if self._session is None:
                return
            if chapter_label is not None:
                self._session.chapter_label = chapter_label
            self._session.pages_read += int(increment_pages)

    def sync_session(self) -> bool:
        """Commit time elapsed since the last sync.

        Returns:
            False if another sync was in progress and this call was skipped.
        """
        if not self._sync_busy.acquire(blocking=False):
            logger.debug("Sync already in progress; skipping")
            return False
        try:
            with self._lock:
                committed = self._sync_locked()
        finally:
            self._sync_busy.release()

        for stats in committed:
            self._notify(stats)
        return True

    def end_session(self) -> None:
        """Stop the ticker, flush remaining time, and clear the crash marker."""
        self._stop_ticker()
        with self._sync_busy:
            with self._lock:
                committed = self._sync_locked()
                active = self._session
                self._session = None
                try:
                    clear_marker(self._store)
                except StoreError as e:
                    # A stale marker is harmless: recovery clears it on next start.
                    logger.warning("Could not clear active-session marker: %s", e)

        for stats in committed:
            self._notify(stats)
        if active is not None:
            logger.info(
                "Ended session %s (%ds)", active.session_id, active.acc.committed_seconds
            )
            self._notify(None)

    def get_daily_stats(self, day: date | str) -> DailyStats:
        return self.daily.get(day)

    def get_streak(self) -> ReadingStreak:
        return self.streak.get()

    def get_recent_sessions(self, limit: int) -> list[ReadingSession]:
        return self.sessions.recent(limit)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener after every successful commit.

        It receives the DailyStats just written, or None for other changes
        (session end, recovery, reset). Returns an unsubscribe function.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reset(self) -> int:
        """Back up and delete all statistics. Returns the number of keys removed."""
        self._stop_ticker()
        with self._sync_busy:
            with self._lock:
                self._session = None
                removed = reset_statistics(self._store)
        self._notify(None)
        return removed

    # Commit machinery (callers hold self._lock)

    def _resume(
        self, item_id: str, chapter_label: str | None, now: datetime
    ) -> _ActiveSession | None:
        try:
            recent = self.sessions.recent(1)
        except StoreError as e:
            logger.warning("Could not check for a resumable session: %s", e)
            return None
        if not recent:
            return None

        last = recent[0]
        gap = (now - last.end_time).total_seconds()
        today = date_key(now)
        # A session that began on an earlier day (e.g. a recovered legacy
        # session spanning midnight) would be split from its old start.
        if (
            last.item_id != item_id
            or not 0 <= gap < self.config.resume_gap_seconds
            or last.date_key != today
            or date_key(last.start_time) != today
        ):
            return None

        logger.info("Resuming session %s (gap %.0fs)", last.session_id, gap)
        # Already-billed time seeds the accumulator; the gap itself is not billed.
        return _ActiveSession(
            session_id=last.session_id,
            item_id=item_id,
            chapter_label=chapter_label or last.chapter_label,
            start_time=last.start_time,
            pages_read=last.pages_read,
            acc=SessionAccumulator(
                last_sync=now,
                elapsed=timedelta(seconds=last.duration_seconds),
                committed_seconds=last.duration_seconds,
                pages_committed=last.pages_read,
                counted=True,
            ),
        )

    def _sync_locked(self) -> list[DailyStats]:
        active = self._session
        if active is None:
            return []
        now = self._clock.now()
        committed: list[DailyStats] = []
        try:
            if now >= next_midnight(active.start_time):
                self._split_at_midnight(active, now, committed)
            else:
                active.acc.advance(now)
                stats = self._commit(active)
                if stats is not None:
                    committed.append(stats)
        except StoreError as e:
            logger.warning("Sync failed, will retry on next tick: %s", e)
        return committed

    def _commit(self, active: _ActiveSession) -> DailyStats | None:
        """Bill the accumulator's payable seconds to the session's day.

        Raises StoreError if the session or daily record cannot be written;
        the accumulator is then left as it was.
        """
        delta = active.acc.payable_seconds
        if delta <= 0:
            return None

        session = active.snapshot()
        self.sessions.save(session)
        stats = self.daily.commit(
            session.date_key,
            delta,
            active.pages_read - active.acc.pages_committed,
            active.item_id,
            count_session=not active.acc.counted,
        )
        active.acc.mark_committed(active.pages_read)

        try:
            self.streak.record_activity(date.fromisoformat(session.date_key))
        except StoreError as e:
            logger.warning("Could not update streak: %s", e)
        self._persist_marker(active)
        logger.debug(
            "Synced %s: +%ds (total %.1fs)", active.session_id, delta, active.acc.seconds
        )
        return stats

    def _split_at_midnight(
        self, active: _ActiveSession, now: datetime, committed: list[DailyStats]
    ) -> None:
        """Close the session at its day's end and continue under a new id.

        Splits once per call. If now is more than one midnight past the start,
        the next sync produces the next split.
        """
        boundary = next_midnight(active.start_time)
        logger.info("Session %s crossed midnight; splitting", active.session_id)

        active.acc.advance(boundary)
        stats = self._commit(active)
        if stats is not None:
            committed.append(stats)

        part = _ActiveSession(
            session_id=str(uuid.uuid4()),
            item_id=active.item_id,
            chapter_label=active.chapter_label,
            start_time=boundary,
            pages_read=0,
            acc=SessionAccumulator(last_sync=boundary),
        )
        self._session = part

        if now < next_midnight(boundary):
            part.acc.advance(now)
            stats = self._commit(part)
            if stats is not None:
                committed.append(stats)
            try:
                self.streak.record_activity(boundary.date())
            except StoreError as e:
                logger.warning("Could not update streak: %s", e)
        self._persist_marker(part)

    def _persist_marker(self, active: _ActiveSession) -> None:
        try:
            save_marker(self._store, active.marker())
        except StoreError as e:
            logger.warning("Could not persist active-session marker: %s", e)

    # Ticker and notifications

    def _start_ticker(self) -> None:
        interval = self.config.tick_interval_seconds
        if interval <= 0 or (self._ticker is not None and self._ticker.is_alive()):
            return
        stop = threading.Event()
        thread = threading.Thread(
            target=self._run_ticker,
            args=(stop, interval),
            name="reading-tracker-sync",
            daemon=True,
        )
        self._stop_event = stop
        self._ticker = thread
        thread.start()

    def _run_ticker(self, stop: threading.Event, interval: float) -> None:
        while not stop.wait(interval):
            try:
                self.sync_session()
            except Exception:
                logger.exception("Periodic sync failed")

    def _stop_ticker(self) -> None:
        stop, thread = self._stop_event, self._ticker
        self._stop_event = None
        self._ticker = None
        if stop is not None:
            stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _notify(self, stats: DailyStats | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(stats)
            except Exception:
                logger.exception("Stats listener failed")
