"""
Analytics client: the facade the HTTP layer talks to.

Wires the event store, accumulators, site directory, rate limiter and query
engines together. Ingestion is synchronous and never raises. Every dashboard
query runs in a worker thread under the configured timeout, so a slow
aggregate cannot hold the event loop.
"""
import asyncio
import logging
from datetime import date, datetime, timedelta
from threading import Lock
from typing import Any, Callable

from ..config import AnalyticsConfig
from ..counters import CounterStore, InMemoryCounterStore, RateLimiter
from ..errors import QueryTimeoutError
from .accumulator import AccumulatorStore
from .directory import SiteDirectory, StaticDirectory
from .ingest import Ingestor
from .models import (
    AuthorStats, Breakdowns, ContentStats, DailyRollup, EngagementSummary, Overview,
    RealtimeData, SeriesPoint, TopAuthorItem, TopContentItem, TrackRequest, VisitContext,
    VisitEvent, utcnow,
)
from .periods import parse_period, start_of_day
from .realtime import RealtimeWindow
from .rollups import RollupEngine
from .store import EventStore, InMemoryEventStore

logger = logging.getLogger(__name__)


class RollupCache:
    """Materialized daily rollups keyed by day.

    Purely a cache: any entry can be dropped and recomputed from events.
    """

    def __init__(self):
        self._rollups: dict[date, DailyRollup] = {}
        self._lock = Lock()

    def get(self, day: date) -> DailyRollup | None:
        with self._lock:
            return self._rollups.get(day)

    def put(self, rollup: DailyRollup) -> None:
        with self._lock:
            self._rollups[rollup.date] = rollup

    def __len__(self) -> int:
        with self._lock:
            return len(self._rollups)


class AnalyticsClient:
    """Records visits and answers dashboard queries for one site."""

    def __init__(
        self,
        config: AnalyticsConfig | None = None,
        store: EventStore | None = None,
        accumulators: AccumulatorStore | None = None,
        directory: SiteDirectory | None = None,
        counters: CounterStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config or AnalyticsConfig()
        self.store = store if store is not None else InMemoryEventStore()
        self.accumulators = accumulators if accumulators is not None else AccumulatorStore()
        self.directory = directory if directory is not None else StaticDirectory()
        self.counters = counters if counters is not None else InMemoryCounterStore()
        self.clock = clock

        self.rate_limiter = None
        if self.config.rate_limiting_enabled:
            self.rate_limiter = RateLimiter(
                self.counters,
                max_events=self.config.rate_limit_max_events,
                window_sec=self.config.rate_limit_window_seconds,
                salt=self.config.rate_limit_salt,
            )
        self.ingestor = Ingestor(
            self.store,
            self.accumulators,
            clock=clock,
            site_domain=self.config.site_name,
            rate_limiter=self.rate_limiter,
        )
        self.rollups = RollupEngine(self.store, self.directory)
        self.realtime = RealtimeWindow(self.store)
        self.rollup_cache = RollupCache()

    def now(self) -> datetime:
        return self.clock()

    async def _run(self, name: str, fn: Callable[..., Any], *args) -> Any:
        """Run a blocking query in a worker thread under the query timeout."""
        timeout = self.config.query_timeout_seconds
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Query '{name}' timed out after {timeout}s")
            raise QueryTimeoutError(name, timeout) from None

    def _limit(self, limit: int | None) -> int:
        """Default and clamp a requested ranking size."""
        if limit is None:
            return self.config.top_limit
        return max(1, min(limit, self.config.max_top_limit))

    # =========================================================================
    # INGESTION
    # =========================================================================

    def record_visit(self, request: TrackRequest, context: VisitContext) -> VisitEvent | None:
        """Record a page view or close-out. Never raises; None means dropped."""
        return self.ingestor.record_visit(request, context)

    # =========================================================================
    # DASHBOARD QUERIES
    # =========================================================================

    async def get_overview(self) -> Overview:
        return await self._run("overview", self.rollups.overview, self.now())

    async def get_views_series(self, period: str | None = None) -> list[SeriesPoint]:
        resolved = parse_period(period, self.now())
        return await self._run("views_over_time", self.rollups.views_series, resolved)

    async def get_engagement(self, period: str | None = None) -> EngagementSummary:
        resolved = parse_period(period, self.now())
        return await self._run("engagement", self.rollups.engagement, resolved)

    async def get_top_content(
        self, period: str | None = None, limit: int | None = None
    ) -> list[TopContentItem]:
        resolved = parse_period(period, self.now())
        return await self._run(
            "popular_posts", self.rollups.top_content, resolved, self._limit(limit)
        )

    async def get_top_authors(
        self, period: str | None = None, limit: int | None = None
    ) -> list[TopAuthorItem]:
        resolved = parse_period(period, self.now())
        return await self._run(
            "popular_authors", self.rollups.top_authors, resolved, self._limit(limit)
        )

    async def get_breakdowns(self, period: str | None = None) -> Breakdowns:
        resolved = parse_period(period, self.now())
        return await self._run("geographic", self.rollups.breakdowns, resolved)

    async def get_realtime(self) -> RealtimeData:
        return await self._run("realtime", self.realtime.query, self.now())

    async def get_author_stats(self, author_ref: str) -> AuthorStats:
        return await self._run("author_stats", self.rollups.author_stats, author_ref, self.now())

    # =========================================================================
    # DAILY ROLLUPS
    # =========================================================================

    async def get_daily_rollup(self, day: date) -> DailyRollup:
        """Rollup for one day, served from the cache when materialized.

        Days before yesterday are cached on first computation. Today and
        yesterday are only cached by the materializer, since close-outs for
        them are still arriving.
        """
        cached = self.rollup_cache.get(day)
        if cached is not None:
            return cached

        now = self.now()
        rollup = await self._run(
            "daily_rollup", self.rollups.daily_rollup, day, now, self.config.top_limit
        )
        if day < start_of_day(now).date() - timedelta(days=1):
            self.rollup_cache.put(rollup)
        return rollup

    async def refresh_daily_rollups(self) -> list[DailyRollup]:
        """Recompute today and yesterday into the cache.

        Yesterday is included because close-outs for late visits keep
        arriving after midnight.
        """
        now = self.now()
        today = start_of_day(now).date()
        refreshed = []
        for day in (today - timedelta(days=1), today):
            rollup = await self._run(
                "daily_rollup", self.rollups.daily_rollup, day, now, self.config.top_limit
            )
            self.rollup_cache.put(rollup)
            refreshed.append(rollup)
        return refreshed

    # =========================================================================
    # CONTENT COUNTERS
    # =========================================================================

    def get_content_stats(self, content_ref: str) -> ContentStats | None:
        return self.accumulators.get(content_ref)

    def get_top_counters(self, limit: int | None = None) -> list[ContentStats]:
        """All-time running counters for the most viewed content."""
        return self.accumulators.top(self._limit(limit))

    def forget_content(self, content_ref: str) -> bool:
        """Drop a deleted content item's counters. Its events are kept."""
        removed = self.accumulators.discard(content_ref)
        if removed:
            logger.info(f"Discarded counters for content {content_ref}")
        return removed


async def run_materializer(client: AnalyticsClient, interval_seconds: float) -> None:
    """Periodically refresh daily rollups until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await client.refresh_daily_rollups()
        except Exception as e:
            logger.error(f"Rollup materialization failed: {e}")
