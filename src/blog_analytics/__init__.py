"""
View analytics for a multi-author blog.

Usage:
    from blog_analytics import AnalyticsConfig, setup_analytics

    analytics = setup_analytics(
        AnalyticsConfig(site_name="myblog.com"),
        directory=my_site_directory,
        admin_dependency=require_admin,
    )

    app = FastAPI(lifespan=analytics.lifespan)
    app.include_router(analytics.tracking_router, prefix="/api/analytics")
    app.include_router(analytics.dashboard_router, prefix="/api/analytics")

Or build a standalone app with create_app().
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable

from fastapi import FastAPI, Request

from .config import AnalyticsConfig, ConfigError
from .core.accumulator import AccumulatorStore
from .core.client import AnalyticsClient, run_materializer
from .core.directory import SiteDirectory, StaticDirectory
from .core.models import TrackRequest, VisitContext, VisitEvent, utcnow
from .core.store import EventStore, InMemoryEventStore
from .counters import CounterStore, InMemoryCounterStore, run_sweeper
from .errors import AnalyticsError, QueryTimeoutError, StorageError
from .routes import create_dashboard_router, create_tracking_router

__version__ = "0.1.0"
__all__ = [
    "setup_analytics", "create_app", "Analytics", "AnalyticsClient", "AnalyticsConfig",
    "ConfigError", "AnalyticsError", "StorageError", "QueryTimeoutError",
    "SiteDirectory", "StaticDirectory", "EventStore", "InMemoryEventStore",
    "AccumulatorStore", "CounterStore", "InMemoryCounterStore",
    "TrackRequest", "VisitContext", "VisitEvent",
]

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "/api/analytics"


class Analytics:
    """Main analytics interface for a site."""

    def __init__(
        self,
        config: AnalyticsConfig,
        directory: SiteDirectory | None = None,
        store: EventStore | None = None,
        accumulators: AccumulatorStore | None = None,
        counters: CounterStore | None = None,
        admin_dependency: Callable[..., Any] | None = None,
        actor_resolver: Callable[[Request], str | None] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config
        self.client = AnalyticsClient(
            config=config,
            store=store,
            accumulators=accumulators,
            directory=directory,
            counters=counters,
            clock=clock,
        )
        self.tracking_router = create_tracking_router(self.client, actor_resolver)
        self.dashboard_router = create_dashboard_router(self.client, admin_dependency)

    def start_background_tasks(self) -> list[asyncio.Task]:
        """Start the counter sweeper and the rollup materializer, each if enabled."""
        tasks = []
        if self.config.rate_limiting_enabled:
            tasks.append(asyncio.create_task(
                run_sweeper(self.client.counters, self.config.sweep_interval_seconds)
            ))
        if self.config.materializer_enabled:
            tasks.append(asyncio.create_task(
                run_materializer(self.client, self.config.materialize_interval_seconds)
            ))
        logger.info(f"Analytics for {self.config.site_name}: started {len(tasks)} background task(s)")
        return tasks

    @asynccontextmanager
    async def lifespan(self, app: FastAPI | None = None):
        """FastAPI lifespan running the background tasks for the app's lifetime."""
        tasks = self.start_background_tasks()
        try:
            yield
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(
                f"Analytics for {self.config.site_name}: stopped with "
                f"{self.client.store.count()} event(s) recorded"
            )


def setup_analytics(
    config: AnalyticsConfig | None = None,
    directory: SiteDirectory | None = None,
    **kwargs,
) -> Analytics:
    """
    Set up analytics for a site.

    Args:
        config: Analytics configuration. Defaults to AnalyticsConfig.from_env().
        directory: Lookups into the post/user/comment core. Defaults to an
                   empty in-memory StaticDirectory.
        **kwargs: Passed to Analytics (store, accumulators, counters,
                  admin_dependency, actor_resolver, clock)

    Returns:
        Analytics instance with tracking_router, dashboard_router and lifespan
    """
    if config is None:
        config = AnalyticsConfig.from_env()
    return Analytics(config, directory=directory, **kwargs)


def create_app(
    config: AnalyticsConfig | None = None,
    directory: SiteDirectory | None = None,
    prefix: str = DEFAULT_PREFIX,
    **kwargs,
) -> FastAPI:
    """Standalone FastAPI app serving the tracking and dashboard routes."""
    analytics = setup_analytics(config, directory=directory, **kwargs)
    app = FastAPI(title="Blog Analytics", version=__version__, lifespan=analytics.lifespan)
    app.include_router(analytics.tracking_router, prefix=prefix)
    app.include_router(analytics.dashboard_router, prefix=prefix)
    app.state.analytics = analytics
    return app
