"""
Dashboard routes for blog analytics.

JSON endpoints polled by the admin dashboard and by authors for their own
numbers. Access control is injected by the host application.
"""

import logging
from collections.abc import Awaitable
from datetime import date
from typing import Any, Callable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.client import AnalyticsClient
from ..core.models import (
    AuthorStats, Breakdowns, ContentStats, DailyRollup, EngagementSummary, Overview,
    RealtimeData, SeriesPoint, TopAuthorItem, TopContentItem,
)
from ..core.periods import DEFAULT_PERIOD, start_of_day
from ..errors import QueryTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _parse_day(value: str, today: date) -> date:
    """Parse a YYYY-MM-DD path segment.

    Raises:
        HTTPException: If the day is malformed or in the future
    """
    try:
        day = date.fromisoformat(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail="Invalid date format. Use YYYY-MM-DD (e.g., 2026-01-15)"
        ) from None

    if day > today:
        raise HTTPException(status_code=400, detail="Day cannot be in the future")
    return day


async def _fetch(what: str, query: Awaitable[T]) -> T:
    """Await a dashboard query, mapping failures to HTTP errors.

    Timeouts become 504. Anything else is logged and becomes a 500 with a
    generic message, so storage details never reach the response.
    """
    try:
        return await query
    except QueryTimeoutError as e:
        raise HTTPException(status_code=504, detail=str(e)) from None
    except Exception as e:
        logger.error(f"Query '{what}' failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to fetch {what}") from None


def create_dashboard_router(
    client: AnalyticsClient,
    admin_dependency: Callable[..., Any] | None = None,
) -> APIRouter:
    """Create dashboard router.

    Args:
        client: Analytics client answering the queries
        admin_dependency: Optional FastAPI dependency guarding every route
            (raise HTTPException 401/403 from it to deny access)
    """
    dependencies = [Depends(admin_dependency)] if admin_dependency else []
    router = APIRouter(tags=["analytics"], dependencies=dependencies)

    @router.get("/overview", response_model=Overview)
    async def overview():
        """Site totals plus today versus yesterday."""
        return await _fetch("overview", client.get_overview())

    @router.get("/views-over-time", response_model=list[SeriesPoint])
    async def views_over_time(period: str = DEFAULT_PERIOD):
        return await _fetch("views over time", client.get_views_series(period))

    @router.get("/engagement", response_model=EngagementSummary)
    async def engagement(period: str = DEFAULT_PERIOD):
        return await _fetch("engagement metrics", client.get_engagement(period))

    @router.get("/popular-posts", response_model=list[TopContentItem])
    async def popular_posts(
        period: str = DEFAULT_PERIOD,
        limit: int | None = Query(None, ge=1),
    ):
        return await _fetch("popular posts", client.get_top_content(period, limit))

    @router.get("/popular-authors", response_model=list[TopAuthorItem])
    async def popular_authors(
        period: str = DEFAULT_PERIOD,
        limit: int | None = Query(None, ge=1),
    ):
        return await _fetch("popular authors", client.get_top_authors(period, limit))

    @router.get("/geographic", response_model=Breakdowns)
    async def geographic(period: str = DEFAULT_PERIOD):
        """Countries, devices, browsers and referrers."""
        return await _fetch("geographic data", client.get_breakdowns(period))

    @router.get("/realtime", response_model=RealtimeData)
    async def realtime():
        """Activity in the last few minutes. Dashboards poll this."""
        return await _fetch("realtime data", client.get_realtime())

    @router.get("/daily/{day}", response_model=DailyRollup)
    async def daily(day: str):
        parsed = _parse_day(day, start_of_day(client.now()).date())
        return await _fetch("daily rollup", client.get_daily_rollup(parsed))

    @router.get("/authors/{author_ref}/stats", response_model=AuthorStats)
    async def author_stats(author_ref: str):
        """An author's views, last 30 days and top posts."""
        return await _fetch("author stats", client.get_author_stats(author_ref))

    @router.get("/content/top", response_model=list[ContentStats])
    async def top_counters(limit: int | None = Query(None, ge=1)):
        """Running all-time counters, most viewed first."""
        return client.get_top_counters(limit)

    @router.get("/content/{content_ref}", response_model=ContentStats)
    async def content_stats(content_ref: str):
        stats = client.get_content_stats(content_ref)
        if stats is None:
            raise HTTPException(status_code=404, detail="No analytics for this content")
        return stats

    @router.delete("/content/{content_ref}")
    async def forget_content(content_ref: str):
        """Drop counters for deleted content."""
        return {"deleted": client.forget_content(content_ref)}

    return router
