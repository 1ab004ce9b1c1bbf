"""
Real-time activity over a trailing window.

Computed per request: events with timestamp >= now - window. Stale events
simply fall outside the filter on the next poll, so there is no eviction.
Dashboards poll on a fixed interval; nothing is pushed.
"""
from collections import defaultdict
from datetime import datetime, timedelta

from ..config import REALTIME_POLL_INTERVAL_SECONDS, REALTIME_WINDOW_MINUTES
from .models import ActivePath, RealtimeData
from .store import EventStore

TOP_ACTIVE_PATHS = 10


class RealtimeWindow:
    """Active sessions, page views and pages over the last few minutes."""

    def __init__(
        self,
        store: EventStore,
        window_minutes: int = REALTIME_WINDOW_MINUTES,
        poll_interval_seconds: int = REALTIME_POLL_INTERVAL_SECONDS,
    ):
        self.store = store
        self.window = timedelta(minutes=window_minutes)
        self.window_minutes = window_minutes
        self.poll_interval_seconds = poll_interval_seconds

    def query(self, now: datetime, top: int = TOP_ACTIVE_PATHS) -> RealtimeData:
        events = self.store.snapshot(since=now - self.window)

        sessions: set[str] = set()
        path_sessions: dict[str, set[str]] = defaultdict(set)
        for e in events:
            sessions.add(e.session_id)
            path_sessions[e.path].add(e.session_id)

        top_paths = sorted(path_sessions.items(), key=lambda kv: (-len(kv[1]), kv[0]))[:top]
        return RealtimeData(
            active_visitors=len(sessions),
            page_views=len(events),
            active_pages=len(path_sessions),
            top_active_paths=[ActivePath(path=p, visitors=len(s)) for p, s in top_paths],
            window_minutes=self.window_minutes,
            poll_interval_seconds=self.poll_interval_seconds,
        )
