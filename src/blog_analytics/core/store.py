"""
Append-only visit event store.

The store is the single source of truth for every derived number. Writers
append independent records; the only update is attaching engagement to an
event once. Readers take a point-in-time snapshot and aggregate outside the
lock.
"""
import logging
from datetime import datetime
from threading import Lock
from typing import Protocol

from ..errors import StorageError
from .models import VisitEvent

logger = logging.getLogger(__name__)

OpenVisitKey = tuple[str, str, str | None]


class EventStore(Protocol):
    """Storage capability used by ingestion and the query engines."""

    def append(self, event: VisitEvent) -> VisitEvent:
        ...

    def get(self, event_id: str) -> VisitEvent | None:
        ...

    def find_open_visit(
        self, session_id: str, path: str, content_ref: str | None
    ) -> VisitEvent | None:
        ...

    def attach_engagement(
        self, event_id: str, duration_seconds: float, scroll_depth_percent: float
    ) -> VisitEvent | None:
        ...

    def snapshot(
        self, since: datetime | None = None, until: datetime | None = None
    ) -> tuple[VisitEvent, ...]:
        ...

    def count(self) -> int:
        ...


class InMemoryEventStore:
    """Process-local event store. Thread-safe.

    Keeps events in arrival order, a by-id index, and per (session, path,
    content) the id of the latest visit still waiting for its engagement
    close-out. An older open visit is forgotten once a newer one arrives.
    """

    def __init__(self):
        self._events: list[VisitEvent] = []
        self._positions: dict[str, int] = {}
        self._open_visits: dict[OpenVisitKey, str] = {}
        self._lock = Lock()

    def append(self, event: VisitEvent) -> VisitEvent:
        with self._lock:
            if event.id in self._positions:
                raise StorageError(f"Duplicate event id {event.id}")
            self._positions[event.id] = len(self._events)
            self._events.append(event)
            if not event.engaged:
                key = (event.session_id, event.path, event.content_ref)
                self._open_visits[key] = event.id
        return event

    def get(self, event_id: str) -> VisitEvent | None:
        with self._lock:
            position = self._positions.get(event_id)
            return self._events[position] if position is not None else None

    def find_open_visit(
        self, session_id: str, path: str, content_ref: str | None
    ) -> VisitEvent | None:
        """Most recent visit for this session and page with no engagement yet."""
        with self._lock:
            event_id = self._open_visits.get((session_id, path, content_ref))
            if event_id is None:
                return None
            return self._events[self._positions[event_id]]

    def attach_engagement(
        self, event_id: str, duration_seconds: float, scroll_depth_percent: float
    ) -> VisitEvent | None:
        """Attach engagement to an event exactly once.

        Returns the updated event, or None when the event is unknown or was
        already closed out.
        """
        with self._lock:
            position = self._positions.get(event_id)
            if position is None:
                return None
            event = self._events[position]
            if event.engaged:
                return None

            updated = event.model_copy(update={
                "duration_seconds": duration_seconds,
                "scroll_depth_percent": scroll_depth_percent,
                "engaged": True,
            })
            self._events[position] = updated

            key = (event.session_id, event.path, event.content_ref)
            if self._open_visits.get(key) == event_id:
                del self._open_visits[key]
            return updated

    def snapshot(
        self, since: datetime | None = None, until: datetime | None = None
    ) -> tuple[VisitEvent, ...]:
        """Immutable copy of events with since <= timestamp < until."""
        with self._lock:
            events = tuple(self._events)
        if since is None and until is None:
            return events
        return tuple(
            e for e in events
            if (since is None or e.timestamp >= since)
            and (until is None or e.timestamp < until)
        )

    def count(self) -> int:
        with self._lock:
            return len(self._events)
