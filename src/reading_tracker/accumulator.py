"""Running total of elapsed time for the active session."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

ONE_SECOND = timedelta(seconds=1)


@dataclass
class SessionAccumulator:
    """Converts wall-clock deltas into whole, not-yet-billed seconds.

    elapsed holds exact (microsecond) elapsed time; committed_seconds is what
    daily stats already contain for this session. payable_seconds is the
    difference in whole seconds, so repeated syncs never bill the same second
    twice.
    """

    last_sync: datetime
    elapsed: timedelta = field(default_factory=timedelta)
    committed_seconds: int = 0
    pages_committed: int = 0
    counted: bool = False

    def advance(self, now: datetime) -> float:
        """Add time elapsed since the last sync. Returns seconds added."""
        if now <= self.last_sync:
            return 0.0
        delta = now - self.last_sync
        self.elapsed += delta
        self.last_sync = now
        return delta.total_seconds()

    @property
    def seconds(self) -> float:
        return self.elapsed.total_seconds()

    @property
    def whole_seconds(self) -> int:
        return self.elapsed // ONE_SECOND

    @property
    def payable_seconds(self) -> int:
        return max(0, self.whole_seconds - self.committed_seconds)

    def mark_committed(self, pages: int) -> None:
        self.committed_seconds = max(self.committed_seconds, self.whole_seconds)
        self.pages_committed = max(self.pages_committed, pages)
        self.counted = True
