"""Pytest fixtures for Reading Tracker tests."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from reading_tracker.config import TrackerConfig
from reading_tracker.store import SqliteKeyValueStore, StoreError
from reading_tracker.tracker import ReadingTracker


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)

    def set(self, now: datetime) -> None:
        self.current = now


class FlakyStore:
    """Wraps a store; writes raise StoreError while fail_writes is set.

    Writes to keys in fail_keys fail regardless.
    """

    def __init__(self, inner: SqliteKeyValueStore) -> None:
        self.inner = inner
        self.fail_writes = False
        self.fail_keys: set[str] = set()

    def _fails(self, key: str) -> bool:
        return self.fail_writes or key in self.fail_keys

    def get(self, key: str) -> str | None:
        return self.inner.get(key)

    def set(self, key: str, value: str) -> None:
        if self._fails(key):
            raise StoreError(f"simulated write failure for {key}")
        self.inner.set(key, value)

    def delete(self, key: str) -> None:
        if self._fails(key):
            raise StoreError(f"simulated delete failure for {key}")
        self.inner.delete(key)

    def keys_with_prefix(self, prefix: str) -> list[str]:
        return self.inner.keys_with_prefix(prefix)


@pytest.fixture
def store():
    with SqliteKeyValueStore.open_in_memory() as s:
        yield s


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 10, 0, 0))


@pytest.fixture
def config() -> TrackerConfig:
    """No background ticker; tests drive sync_session() explicitly."""
    return TrackerConfig(tick_interval_seconds=0)


@pytest.fixture
def tracker(store, clock, config) -> ReadingTracker:
    return ReadingTracker(store, clock=clock, config=config)
