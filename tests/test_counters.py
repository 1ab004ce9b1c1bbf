"""Tests for expiring counters and the ingestion rate limiter."""

import asyncio
from unittest.mock import MagicMock

import pytest

from blog_analytics.counters import InMemoryCounterStore, RateLimiter, run_sweeper


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestInMemoryCounterStore:
    """Test fixed-window counters."""

    def test_increment_within_window(self):
        store = InMemoryCounterStore(clock=FakeClock())
        assert store.increment("k", 60) == 1
        assert store.increment("k", 60) == 2
        assert store.get("k") == 2

    def test_window_resets_after_ttl(self):
        clock = FakeClock()
        store = InMemoryCounterStore(clock=clock)
        store.increment("k", 60)

        clock.now += 61
        assert store.get("k") == 0
        assert store.increment("k", 60) == 1

    def test_expire_removes_stale_windows(self):
        clock = FakeClock()
        store = InMemoryCounterStore(clock=clock)
        store.increment("old", 10)
        store.increment("new", 100)

        clock.now += 50
        assert store.expire() == 1
        assert len(store) == 1
        assert store.get("new") == 1


class TestRateLimiter:
    """Test per-client ingestion budget."""

    def test_allows_up_to_budget(self):
        limiter = RateLimiter(InMemoryCounterStore(clock=FakeClock()), 3, 60, "salt")

        assert [limiter.allow("203.0.113.9") for _ in range(4)] == [True, True, True, False]
        assert limiter.allow("203.0.113.9") is False

    def test_clients_are_independent(self):
        limiter = RateLimiter(InMemoryCounterStore(clock=FakeClock()), 1, 60, "salt")

        assert limiter.allow("a") is True
        assert limiter.allow("b") is True
        assert limiter.allow("a") is False
        assert limiter.allow("c") is True

    def test_budget_restored_after_window(self):
        clock = FakeClock()
        limiter = RateLimiter(InMemoryCounterStore(clock=clock), 1, 60, "salt")
        limiter.allow("a")
        assert limiter.allow("a") is False

        clock.now += 60
        assert limiter.allow("a") is True

    def test_keys_do_not_contain_raw_ip(self):
        store = InMemoryCounterStore(clock=FakeClock())
        limiter = RateLimiter(store, 5, 60, "salt")
        limiter.allow("203.0.113.9")

        assert all("203.0.113.9" not in key for key in store._windows)

    def test_salt_changes_key(self):
        store = InMemoryCounterStore(clock=FakeClock())
        assert RateLimiter(store, 1, 60, "a")._key("x") != RateLimiter(store, 1, 60, "b")._key("x")


class TestSweeper:
    """Test the periodic sweep task."""

    def test_sweeps_until_cancelled(self):
        store = MagicMock()
        store.expire.side_effect = [2, RuntimeError("backend down"), 0, 0, 0, 0, 0, 0, 0, 0]

        async def scenario():
            task = asyncio.create_task(run_sweeper(store, 0.001))
            while store.expire.call_count < 3:
                await asyncio.sleep(0.001)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        run_async(scenario())
        assert store.expire.call_count >= 3
