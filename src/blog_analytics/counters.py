"""
Expiring counters and ingestion rate limiting.

Counters live behind a small store interface (get / increment / expire) so
an in-process map can be used in tests and a shared store in production.
Expired windows are removed by a scheduled sweep, not on every read.
"""

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class CounterStore(Protocol):
    """Capability needed by the rate limiter."""

    def get(self, key: str) -> int:
        """Current count for key (0 when absent or expired)."""
        ...

    def increment(self, key: str, ttl_seconds: int) -> int:
        """Increment key, starting a ttl_seconds window if it is new. Returns the count."""
        ...

    def expire(self, now: float | None = None) -> int:
        """Drop expired keys. Returns how many were removed."""
        ...


@dataclass
class _Window:
    count: int
    expires_at: float


class InMemoryCounterStore:
    """Fixed-window counters in a process-local dict. Thread-safe."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = Lock()

    def get(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or window.expires_at <= now:
                return 0
            return window.count

    def increment(self, key: str, ttl_seconds: int) -> int:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or window.expires_at <= now:
                window = _Window(count=0, expires_at=now + ttl_seconds)
                self._windows[key] = window
            window.count += 1
            return window.count

    def expire(self, now: float | None = None) -> int:
        now = self._clock() if now is None else now
        with self._lock:
            expired = [k for k, w in self._windows.items() if w.expires_at <= now]
            for key in expired:
                del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


class RateLimiter:
    """Per-client event budget over a fixed window.

    Client identifiers are hashed with a salt so raw IPs are never used as keys.
    """

    def __init__(self, store: CounterStore, max_events: int, window_sec: int, salt: str):
        self.store = store
        self.max_events = max_events
        self.window_sec = window_sec
        self._salt = salt

    def _key(self, client_id: str) -> str:
        digest = hashlib.sha256(f"{self._salt}:{client_id}".encode()).hexdigest()[:16]
        return f"ingest:{digest}"

    def allow(self, client_id: str) -> bool:
        """Count one event for client_id and report whether it is within budget."""
        return self.store.increment(self._key(client_id), self.window_sec) <= self.max_events


async def run_sweeper(store: CounterStore, interval_seconds: float) -> None:
    """Periodically expire counters until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = store.expire()
        except Exception as e:
            logger.error(f"Counter sweep failed: {e}")
            continue
        if removed:
            logger.debug(f"Counter sweep removed {removed} expired windows")
