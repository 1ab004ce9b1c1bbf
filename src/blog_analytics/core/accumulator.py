"""
Per-content running counters.

Each tracked content item owns a ContentAccumulator that is updated as visits
arrive instead of being recomputed from events. All mutation goes through
AccumulatorStore.mutate, which finds or creates the accumulator and applies
the change under that item's own lock, so concurrent visits to the same post
never lose an increment and never see the history buffer over capacity.
"""
import logging
from collections import deque
from datetime import date, datetime, timezone
from threading import Lock
from typing import Callable, TypeVar

from ..config import VIEW_HISTORY_CAPACITY
from .models import ContentStats, ViewHistoryEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ContentAccumulator:
    """Running totals for one content item.

    Not thread-safe on its own; AccumulatorStore serializes access.
    """

    def __init__(self, content_ref: str, history_capacity: int = VIEW_HISTORY_CAPACITY):
        self.content_ref = content_ref
        self.total_views = 0
        self.unique_view_approx = 0
        self.avg_duration_seconds = 0.0
        self.avg_scroll_depth_percent = 0.0
        self.engagement_samples = 0
        self.view_history: deque[ViewHistoryEntry] = deque(maxlen=history_capacity)

        # Sessions already counted for the current day window
        self._window_day: date | None = None
        self._window_sessions: set[str] = set()

    def record_view(self, session_id: str, when: datetime) -> None:
        """Count one page view at `when` from `session_id`."""
        day = when.astimezone(timezone.utc).date()
        self.total_views += 1
        self.push_history(day, 1)

        if day != self._window_day:
            self._window_day = day
            self._window_sessions = set()
        if session_id not in self._window_sessions:
            self._window_sessions.add(session_id)
            self.unique_view_approx += 1

    def record_engagement(self, duration_seconds: float, scroll_depth_percent: float) -> None:
        """Fold one engagement sample into the running means."""
        self.engagement_samples += 1
        n = self.engagement_samples
        self.avg_duration_seconds += (duration_seconds - self.avg_duration_seconds) / n
        self.avg_scroll_depth_percent += (scroll_depth_percent - self.avg_scroll_depth_percent) / n

    def push_history(self, day: date, views: int) -> None:
        """Add views to `day`, appending a new entry for a new day.

        When the buffer is full, appending evicts the oldest day. Views for a
        day older than the newest entry are merged into that day's entry if it
        is still retained and dropped otherwise.
        """
        for entry in reversed(self.view_history):
            if entry.date == day:
                entry.views += views
                return
            if entry.date < day:
                break

        if self.view_history and day < self.view_history[-1].date:
            logger.debug(f"Dropping history for {self.content_ref} on {day}: not retained")
            return
        self.view_history.append(ViewHistoryEntry(date=day, views=views))

    def to_stats(self) -> ContentStats:
        return ContentStats(
            content_ref=self.content_ref,
            total_views=self.total_views,
            unique_view_approx=self.unique_view_approx,
            avg_duration_seconds=round(self.avg_duration_seconds, 2),
            avg_scroll_depth_percent=round(self.avg_scroll_depth_percent, 2),
            engagement_samples=self.engagement_samples,
            view_history=[e.model_copy() for e in self.view_history],
        )


class _Slot:
    __slots__ = ("accumulator", "lock")

    def __init__(self, accumulator: ContentAccumulator):
        self.accumulator = accumulator
        self.lock = Lock()


class AccumulatorStore:
    """Registry of accumulators keyed by content ref.

    One exclusive writer per content ref: the registry lock is held only to
    find or create a slot, then the slot's lock covers the mutation.
    """

    def __init__(self, history_capacity: int = VIEW_HISTORY_CAPACITY):
        self._history_capacity = history_capacity
        self._slots: dict[str, _Slot] = {}
        self._lock = Lock()

    def _slot(self, content_ref: str) -> _Slot:
        with self._lock:
            slot = self._slots.get(content_ref)
            if slot is None:
                slot = _Slot(ContentAccumulator(content_ref, self._history_capacity))
                self._slots[content_ref] = slot
            return slot

    def mutate(self, content_ref: str, fn: Callable[[ContentAccumulator], T]) -> T:
        """Find or create the accumulator and apply fn to it atomically."""
        slot = self._slot(content_ref)
        with slot.lock:
            return fn(slot.accumulator)

    def get(self, content_ref: str) -> ContentStats | None:
        with self._lock:
            slot = self._slots.get(content_ref)
        if slot is None:
            return None
        with slot.lock:
            return slot.accumulator.to_stats()

    def discard(self, content_ref: str) -> bool:
        """Forget a content item's counters (the item was deleted)."""
        with self._lock:
            return self._slots.pop(content_ref, None) is not None

    def top(self, limit: int = 10) -> list[ContentStats]:
        """Accumulators with the most total views, ties broken by ref."""
        with self._lock:
            refs = list(self._slots)
        stats = [s for s in (self.get(ref) for ref in refs) if s is not None]
        stats.sort(key=lambda s: (-s.total_views, s.content_ref))
        return stats[:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)
