"""
Tracking endpoint.

Browsers post a page view when a page loads and a close-out when the visitor
leaves. The request is validated, acknowledged with 202 and recorded after
the response is sent, so a slow store never delays page navigation.
"""

import logging
from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Request

from ..core.client import AnalyticsClient
from ..core.models import TrackRequest, VisitContext

logger = logging.getLogger(__name__)

# Cloudflare's placeholder when the country is unknown
UNKNOWN_COUNTRY_CODES = {"", "XX"}


def _client_ip(request: Request, trust_proxy_headers: bool) -> str:
    """Client IP, from X-Forwarded-For when running behind a trusted proxy."""
    if trust_proxy_headers:
        forwarded = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        if forwarded:
            return forwarded
    return request.client.host if request.client else ""


def visit_context(
    request: Request,
    trust_proxy_headers: bool = False,
    actor_ref: str | None = None,
) -> VisitContext:
    """Capture the ambient request context stored with a visit."""
    headers = request.headers
    country = region = city = ""
    if trust_proxy_headers:
        country = headers.get("CF-IPCountry", "").strip().upper()
        if country in UNKNOWN_COUNTRY_CODES:
            country = ""
        region = headers.get("CF-Region", "").strip()
        city = headers.get("CF-IPCity", "").strip()

    return VisitContext(
        ip_address=_client_ip(request, trust_proxy_headers),
        user_agent=headers.get("User-Agent", ""),
        referrer_url=headers.get("Referer", ""),
        actor_ref=actor_ref,
        country=country,
        region=region,
        city=city,
    )


def create_tracking_router(
    client: AnalyticsClient,
    actor_resolver: Callable[[Request], str | None] | None = None,
) -> APIRouter:
    """Create the public tracking router.

    Args:
        client: Analytics client that records visits
        actor_resolver: Optional hook returning the signed-in user's ref for a
            request. Authentication itself lives outside analytics.
    """
    router = APIRouter(tags=["tracking"])
    trust_proxy_headers = client.config.trust_proxy_headers

    def _resolve_actor(request: Request) -> str | None:
        if actor_resolver is None:
            return None
        try:
            return actor_resolver(request)
        except Exception as e:
            logger.warning(f"Actor lookup failed, recording anonymously: {e}")
            return None

    @router.post("/track", status_code=202)
    async def track(payload: TrackRequest, request: Request, background_tasks: BackgroundTasks):
        """Accept a page view or engagement close-out."""
        context = visit_context(
            request,
            trust_proxy_headers=trust_proxy_headers,
            actor_ref=_resolve_actor(request),
        )
        background_tasks.add_task(client.record_visit, payload, context)
        return {"accepted": True}

    return router
