"""Tests for per-content running counters."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone

from blog_analytics.core.accumulator import AccumulatorStore, ContentAccumulator

DAY = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestViewHistory:
    """Test the bounded per-day view history."""

    def test_same_day_views_merge(self):
        acc = ContentAccumulator("p1")
        acc.record_view("s1", DAY)
        acc.record_view("s2", DAY + timedelta(hours=1))

        assert len(acc.view_history) == 1
        assert acc.view_history[0].date == date(2026, 3, 10)
        assert acc.view_history[0].views == 2

    def test_never_exceeds_capacity(self):
        acc = ContentAccumulator("p1", history_capacity=30)
        for i in range(45):
            acc.record_view("s1", DAY + timedelta(days=i))

        assert len(acc.view_history) == 30
        # Oldest days evicted first
        assert acc.view_history[0].date == (DAY + timedelta(days=15)).date()
        assert acc.view_history[-1].date == (DAY + timedelta(days=44)).date()

    def test_late_view_merges_into_retained_day(self):
        acc = ContentAccumulator("p1")
        acc.record_view("s1", DAY)
        acc.record_view("s1", DAY + timedelta(days=1))
        acc.push_history(DAY.date(), 3)

        assert [e.views for e in acc.view_history] == [4, 1]

    def test_view_older_than_buffer_is_dropped(self):
        acc = ContentAccumulator("p1", history_capacity=2)
        acc.record_view("s1", DAY)
        acc.record_view("s1", DAY + timedelta(days=1))
        acc.record_view("s1", DAY + timedelta(days=2))
        acc.push_history(DAY.date(), 1)

        assert len(acc.view_history) == 2
        assert acc.view_history[0].date == (DAY + timedelta(days=1)).date()


class TestRunningMeans:
    """Test incremental engagement means."""

    def test_incremental_mean(self):
        acc = ContentAccumulator("p1")
        acc.record_engagement(30, 80)
        acc.record_engagement(10, 40)

        assert acc.avg_duration_seconds == 20
        assert acc.avg_scroll_depth_percent == 60
        assert acc.engagement_samples == 2

    def test_mean_matches_arithmetic_mean(self):
        acc = ContentAccumulator("p1")
        samples = [5, 12, 7, 40, 21, 9]
        for s in samples:
            acc.record_engagement(s, 50)

        assert abs(acc.avg_duration_seconds - sum(samples) / len(samples)) < 1e-9

    def test_views_do_not_affect_means(self):
        acc = ContentAccumulator("p1")
        acc.record_engagement(30, 80)
        acc.record_view("s1", DAY)

        stats = acc.to_stats()
        assert stats.avg_duration_seconds == 30
        assert stats.total_views == 1


class TestUniqueApproximation:
    """Test the per-day unique view approximation."""

    def test_repeat_session_same_day_counted_once(self):
        acc = ContentAccumulator("p1")
        acc.record_view("s1", DAY)
        acc.record_view("s1", DAY + timedelta(minutes=5))
        acc.record_view("s2", DAY + timedelta(minutes=6))

        assert acc.total_views == 3
        assert acc.unique_view_approx == 2

    def test_same_session_next_day_counted_again(self):
        acc = ContentAccumulator("p1")
        acc.record_view("s1", DAY)
        acc.record_view("s1", DAY + timedelta(days=1))

        assert acc.unique_view_approx == 2


class TestAccumulatorStore:
    """Test the accumulator registry."""

    def test_mutate_creates_on_first_use(self):
        store = AccumulatorStore()
        assert store.get("p1") is None

        store.mutate("p1", lambda acc: acc.record_view("s1", DAY))

        assert len(store) == 1
        assert store.get("p1").total_views == 1

    def test_get_returns_copy(self):
        store = AccumulatorStore()
        store.mutate("p1", lambda acc: acc.record_view("s1", DAY))

        stats = store.get("p1")
        stats.view_history[0].views = 99

        assert store.get("p1").view_history[0].views == 1

    def test_discard(self):
        store = AccumulatorStore()
        store.mutate("p1", lambda acc: acc.record_view("s1", DAY))

        assert store.discard("p1") is True
        assert store.discard("p1") is False
        assert store.get("p1") is None

    def test_top_orders_by_views_then_ref(self):
        store = AccumulatorStore()
        for ref, views in [("b", 2), ("a", 2), ("c", 5)]:
            for _ in range(views):
                store.mutate(ref, lambda acc: acc.record_view("s", DAY))

        assert [s.content_ref for s in store.top(10)] == ["c", "a", "b"]
        assert len(store.top(1)) == 1

    def test_concurrent_views_are_not_lost(self):
        store = AccumulatorStore()
        k = 200

        def visit(i):
            store.mutate("p1", lambda acc: acc.record_view(f"s{i}", DAY))

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(visit, range(k)))

        stats = store.get("p1")
        assert stats.total_views == k
        assert stats.unique_view_approx == k
        assert sum(e.views for e in stats.view_history) == k
