"""Tests for the in-memory event store."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from blog_analytics.core.models import VisitEvent
from blog_analytics.core.store import InMemoryEventStore
from blog_analytics.errors import StorageError

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _event(session_id="s1", path="/posts/1", content_ref="p1", timestamp=NOW, **kwargs):
    return VisitEvent(
        session_id=session_id,
        path=path,
        content_ref=content_ref,
        timestamp=timestamp,
        **kwargs,
    )


class TestAppend:
    """Test appending events."""

    def test_append_and_get(self):
        store = InMemoryEventStore()
        event = store.append(_event())

        assert store.get(event.id) == event
        assert store.count() == 1

    def test_duplicate_id_rejected(self):
        store = InMemoryEventStore()
        event = store.append(_event())

        with pytest.raises(StorageError):
            store.append(event)
        assert store.count() == 1

    def test_events_are_immutable(self):
        event = _event()
        with pytest.raises(ValidationError):
            event.path = "/other"

    def test_engagement_fields_validated(self):
        with pytest.raises(ValidationError):
            _event(scroll_depth_percent=120)
        with pytest.raises(ValidationError):
            _event(duration_seconds=-1)


class TestEngagement:
    """Test attaching engagement to a visit."""

    def test_find_open_visit_returns_latest(self):
        store = InMemoryEventStore()
        store.append(_event(timestamp=NOW))
        latest = store.append(_event(timestamp=NOW + timedelta(minutes=1)))

        assert store.find_open_visit("s1", "/posts/1", "p1") == latest

    def test_find_open_visit_requires_exact_match(self):
        store = InMemoryEventStore()
        store.append(_event())

        assert store.find_open_visit("s2", "/posts/1", "p1") is None
        assert store.find_open_visit("s1", "/posts/2", "p1") is None
        assert store.find_open_visit("s1", "/posts/1", None) is None

    def test_attach_once(self):
        store = InMemoryEventStore()
        event = store.append(_event())

        updated = store.attach_engagement(event.id, 30, 80)
        assert updated.engaged is True
        assert updated.duration_seconds == 30
        assert updated.scroll_depth_percent == 80
        assert store.get(event.id) == updated

        assert store.attach_engagement(event.id, 99, 99) is None
        assert store.get(event.id).duration_seconds == 30

    def test_attach_closes_visit(self):
        store = InMemoryEventStore()
        event = store.append(_event())
        store.attach_engagement(event.id, 30, 80)

        assert store.find_open_visit("s1", "/posts/1", "p1") is None

    def test_one_open_visit_per_page(self):
        store = InMemoryEventStore()
        for minute in range(3):
            store.append(_event(timestamp=NOW + timedelta(minutes=minute)))
        store.append(_event(path="/posts/2", content_ref="p2"))

        assert len(store._open_visits) == 2

    def test_attach_to_superseded_visit_keeps_latest_open(self):
        store = InMemoryEventStore()
        older = store.append(_event(timestamp=NOW))
        latest = store.append(_event(timestamp=NOW + timedelta(minutes=1)))

        assert store.attach_engagement(older.id, 10, 20).engaged is True
        assert store.find_open_visit("s1", "/posts/1", "p1") == latest

    def test_attach_unknown_event(self):
        assert InMemoryEventStore().attach_engagement("missing", 10, 10) is None

    def test_attach_keeps_identity(self):
        store = InMemoryEventStore()
        event = store.append(_event(country="DE"))
        updated = store.attach_engagement(event.id, 10, 20)

        assert updated.id == event.id
        assert updated.timestamp == event.timestamp
        assert updated.country == "DE"


class TestSnapshot:
    """Test point-in-time snapshots."""

    def test_bounds_are_half_open(self):
        store = InMemoryEventStore()
        for hours in range(4):
            store.append(_event(timestamp=NOW + timedelta(hours=hours)))

        events = store.snapshot(since=NOW + timedelta(hours=1), until=NOW + timedelta(hours=3))
        assert [e.timestamp for e in events] == [
            NOW + timedelta(hours=1),
            NOW + timedelta(hours=2),
        ]

    def test_snapshot_is_stable(self):
        store = InMemoryEventStore()
        store.append(_event())
        snapshot = store.snapshot()

        store.append(_event(session_id="s2"))

        assert len(snapshot) == 1
        assert store.count() == 2
