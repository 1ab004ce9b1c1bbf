"""
Visit ingestion.

A tracking call is either a page view (first call) or an engagement
close-out (second call, sent when the visitor leaves a page they stayed on
for at least MIN_ENGAGEMENT_SECONDS). Ingestion is best effort: once the
payload has passed validation nothing here raises, and a lost event is only
logged.
"""
import logging
from datetime import datetime
from typing import Callable

from ..classifier import classify
from ..config import MIN_ENGAGEMENT_SECONDS
from ..counters import RateLimiter
from .accumulator import AccumulatorStore
from .models import TrackRequest, VisitContext, VisitEvent, utcnow
from .store import EventStore

logger = logging.getLogger(__name__)


class Ingestor:
    """Classifies, stores and accumulates tracking calls."""

    def __init__(
        self,
        store: EventStore,
        accumulators: AccumulatorStore,
        clock: Callable[[], datetime] = utcnow,
        site_domain: str | None = None,
        rate_limiter: RateLimiter | None = None,
        min_engagement_seconds: float = MIN_ENGAGEMENT_SECONDS,
    ):
        self.store = store
        self.accumulators = accumulators
        self.clock = clock
        self.site_domain = site_domain
        self.rate_limiter = rate_limiter
        self.min_engagement_seconds = min_engagement_seconds

    def record_visit(self, request: TrackRequest, context: VisitContext) -> VisitEvent | None:
        """Record one tracking call.

        Returns the stored (or updated) event, or None when the call was
        dropped. Never raises.
        """
        try:
            return self._record(request, context)
        except Exception as e:
            logger.warning(f"Dropping tracking event for {request.path}: {e}", exc_info=True)
            return None

    def _record(self, request: TrackRequest, context: VisitContext) -> VisitEvent | None:
        if not request.session_id:
            logger.debug(f"Ignoring visit to {request.path} without a session id")
            return None

        if self.rate_limiter is not None:
            client_id = context.ip_address or request.session_id
            if not self.rate_limiter.allow(client_id):
                logger.debug(f"Rate limited tracking event for {request.path}")
                return None

        if request.is_close_out:
            return self._close_out(request, context)
        return self._page_view(request, context)

    def _page_view(
        self,
        request: TrackRequest,
        context: VisitContext,
        duration_seconds: float = 0,
        scroll_depth_percent: float = 0,
    ) -> VisitEvent:
        classification = classify(context.user_agent, context.referrer_url, self.site_domain)
        event = VisitEvent(
            content_ref=request.content_ref,
            actor_ref=context.actor_ref,
            session_id=request.session_id,
            path=request.path,
            timestamp=self.clock(),
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            referrer_url=context.referrer_url,
            country=context.country,
            region=context.region,
            city=context.city,
            device_class=classification.device_class,
            browser=classification.browser,
            os=classification.os,
            referrer_source=classification.referrer_source,
            referrer_type=classification.referrer_type,
            duration_seconds=duration_seconds,
            scroll_depth_percent=scroll_depth_percent,
            engaged=duration_seconds > 0,
        )
        self.store.append(event)

        if event.content_ref:
            self.accumulators.mutate(
                event.content_ref,
                lambda acc: acc.record_view(event.session_id, event.timestamp),
            )
        return event

    def _close_out(self, request: TrackRequest, context: VisitContext) -> VisitEvent | None:
        duration = request.duration_seconds or 0
        scroll = request.scroll_depth_percent or 0
        if duration < self.min_engagement_seconds:
            logger.debug(f"Ignoring {duration}s close-out for {request.path}")
            return None

        open_visit = self.store.find_open_visit(
            request.session_id, request.path, request.content_ref
        )
        if open_visit is not None:
            event = self.store.attach_engagement(open_visit.id, duration, scroll)
            if event is None:
                logger.debug(f"Visit {open_visit.id} was already closed out")
                return None
        else:
            # The page view itself was lost; keep the visit with its engagement
            event = self._page_view(request, context, duration, scroll)

        if event.content_ref:
            self.accumulators.mutate(
                event.content_ref,
                lambda acc: acc.record_engagement(duration, scroll),
            )
        return event
