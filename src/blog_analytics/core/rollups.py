"""
Rollup engine: time series, rankings and breakdowns over visit events.

Every query takes one snapshot of the event store and aggregates it in
memory. Nothing here mutates the store or the accumulators, so queries can
run alongside ingestion and each other.
"""
import logging
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta, timezone

from .directory import SiteDirectory
from .models import (
    AuthorStats, AuthorSummary, Breakdowns, BrowserStats, ContentInfo, CountryStats,
    DailyCount, DailyRollup, DeviceStats, EngagementSummary, Overview, PeriodViews,
    RankedCount, ReferrerStats, SeriesPoint, SiteTotals, TodayStats, TopAuthorItem,
    TopContentItem, VisitEvent,
)
from .periods import DAILY, Period, bucket_label, day_bounds, parse_period, start_of_day
from .store import EventStore

logger = logging.getLogger(__name__)

COUNTRY_LIMIT = 20
REFERRER_LIMIT = 10
UNKNOWN_COUNTRY = "Unknown"
AUTHOR_TOP_CONTENT_LIMIT = 5


# =============================================================================
# Pure aggregation helpers
# =============================================================================

def growth_percent(today: int, yesterday: int) -> int:
    """Day-over-day growth as a rounded percentage.

    A zero baseline is 100 when there is any traffic today and 0 otherwise.
    """
    if yesterday == 0:
        return 100 if today > 0 else 0
    return round(((today - yesterday) / yesterday) * 100)


def bounce_rate(events: Iterable[VisitEvent]) -> int:
    """Percent of sessions that produced exactly one event (rounded)."""
    per_session = Counter(e.session_id for e in events)
    if not per_session:
        return 0
    bounces = sum(1 for count in per_session.values() if count == 1)
    return round(bounces / len(per_session) * 100)


def engagement_means(events: Iterable[VisitEvent]) -> tuple[int, int]:
    """Mean duration and scroll depth over events that completed close-out."""
    engaged = [e for e in events if e.duration_seconds > 0]
    if not engaged:
        return 0, 0
    avg_duration = sum(e.duration_seconds for e in engaged) / len(engaged)
    avg_scroll = sum(e.scroll_depth_percent for e in engaged) / len(engaged)
    return round(avg_duration), round(avg_scroll)


def ranked(counts: Counter, limit: int | None = None) -> list[tuple[str, int]]:
    """Sort counts descending, ties by key, optionally truncated."""
    items = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return items if limit is None else items[:limit]


def _distinct_sessions(events: Iterable[VisitEvent]) -> int:
    return len({e.session_id for e in events})


class RollupEngine:
    """Answers dashboard queries from event store snapshots."""

    def __init__(self, store: EventStore, directory: SiteDirectory):
        self.store = store
        self.directory = directory

    def _events(self, period: Period) -> tuple[VisitEvent, ...]:
        return self.store.snapshot(since=period.start)

    # =========================================================================
    # TIME SERIES
    # =========================================================================

    def views_series(self, period: Period) -> list[SeriesPoint]:
        """Views and distinct sessions per bucket, ascending, gaps left out."""
        views: Counter = Counter()
        sessions: dict[str, set[str]] = defaultdict(set)
        for e in self._events(period):
            label = period.bucket(e.timestamp)
            views[label] += 1
            sessions[label].add(e.session_id)

        return [
            SeriesPoint(date=label, views=views[label], unique_visitors=len(sessions[label]))
            for label in sorted(views)
        ]

    # =========================================================================
    # ENGAGEMENT
    # =========================================================================

    def engagement(self, period: Period) -> EngagementSummary:
        events = self._events(period)
        avg_duration, avg_scroll = engagement_means(events)

        since = period.start or datetime.min.replace(tzinfo=timezone.utc)
        return EngagementSummary(
            avg_duration_seconds=avg_duration,
            avg_scroll_depth_percent=avg_scroll,
            bounce_rate_percent=bounce_rate(events),
            comments_over_time=self.directory.comments_per_day(since),
            likes_over_time=self._likes_over_time(since),
        )

    def _likes_over_time(self, since: datetime) -> list[DailyCount]:
        """Likes per day. A failed lookup degrades to an empty series."""
        try:
            return self.directory.likes_per_day(since)
        except Exception as e:
            logger.warning(f"Could not load likes activity: {e}")
            return []

    # =========================================================================
    # RANKINGS
    # =========================================================================

    def top_content(self, period: Period, limit: int = 10) -> list[TopContentItem]:
        return self._rank_content(self._events(period), limit)

    def _rank_content(self, events: Sequence[VisitEvent], limit: int) -> list[TopContentItem]:
        views: Counter = Counter()
        sessions: dict[str, set[str]] = defaultdict(set)
        durations: dict[str, list[float]] = defaultdict(list)
        for e in events:
            if e.content_ref is None:
                continue
            views[e.content_ref] += 1
            sessions[e.content_ref].add(e.session_id)
            if e.duration_seconds > 0:
                durations[e.content_ref].append(e.duration_seconds)

        items = []
        for ref, count in ranked(views, limit):
            samples = durations.get(ref)
            item = TopContentItem(
                content_ref=ref,
                views=count,
                unique_views=len(sessions[ref]),
                avg_duration_seconds=round(sum(samples) / len(samples)) if samples else 0,
            )
            info = self.directory.content(ref)
            if info is not None:
                item.title = info.title
                item.slug = info.slug
                author = self.directory.author(info.author_ref)
                item.author = AuthorSummary(
                    author_ref=info.author_ref,
                    name=author.name if author else None,
                    username=author.username if author else None,
                )
            items.append(item)
        return items

    def top_authors(self, period: Period, limit: int = 10) -> list[TopAuthorItem]:
        """Authors ranked by views on their content; unresolved content is skipped."""
        views: Counter = Counter()
        sessions: dict[str, set[str]] = defaultdict(set)
        posts: dict[str, set[str]] = defaultdict(set)
        resolved: dict[str, ContentInfo | None] = {}

        for e in self._events(period):
            if e.content_ref is None:
                continue
            if e.content_ref not in resolved:
                resolved[e.content_ref] = self.directory.content(e.content_ref)
            info = resolved[e.content_ref]
            if info is None:
                continue
            views[info.author_ref] += 1
            sessions[info.author_ref].add(e.session_id)
            posts[info.author_ref].add(e.content_ref)

        items = []
        for author_ref, count in ranked(views, limit):
            author = self.directory.author(author_ref)
            items.append(TopAuthorItem(
                author_ref=author_ref,
                total_views=count,
                unique_views=len(sessions[author_ref]),
                post_count=len(posts[author_ref]),
                name=author.name if author else None,
                username=author.username if author else None,
                avatar=author.avatar if author else None,
            ))
        return items

    # =========================================================================
    # BREAKDOWNS
    # =========================================================================

    def breakdowns(self, period: Period) -> Breakdowns:
        countries: Counter = Counter()
        country_sessions: dict[str, set[str]] = defaultdict(set)
        devices: Counter = Counter()
        browsers: Counter = Counter()
        referrers: Counter = Counter()

        for e in self._events(period):
            country = e.country or UNKNOWN_COUNTRY
            countries[country] += 1
            country_sessions[country].add(e.session_id)
            devices[e.device_class.value] += 1
            browsers[e.browser] += 1
            referrers[e.referrer_source] += 1

        return Breakdowns(
            countries=[
                CountryStats(country=c, views=n, unique_visitors=len(country_sessions[c]))
                for c, n in ranked(countries, COUNTRY_LIMIT)
            ],
            devices=[DeviceStats(device=d, count=n) for d, n in ranked(devices)],
            browsers=[BrowserStats(browser=b, count=n) for b, n in ranked(browsers)],
            referrers=[ReferrerStats(source=s, count=n) for s, n in ranked(referrers, REFERRER_LIMIT)],
        )

    # =========================================================================
    # OVERVIEW
    # =========================================================================

    def overview(self, now: datetime) -> Overview:
        """Totals plus today vs yesterday."""
        today_start = start_of_day(now)
        yesterday_start = today_start - timedelta(days=1)
        week_start = today_start - timedelta(days=7)
        month_start = today_start - timedelta(days=30)

        events = self.store.snapshot()
        today_views = yesterday_views = week_views = month_views = 0
        today_sessions: set[str] = set()
        for e in events:
            ts = e.timestamp
            if ts >= today_start:
                today_views += 1
                today_sessions.add(e.session_id)
            elif ts >= yesterday_start:
                yesterday_views += 1
            if ts >= week_start:
                week_views += 1
            if ts >= month_start:
                month_views += 1

        counts = self.directory.totals()
        return Overview(
            totals=SiteTotals(
                posts=counts.posts,
                users=counts.users,
                comments=counts.comments,
                views=len(events),
            ),
            today=TodayStats(
                views=today_views,
                unique_visitors=len(today_sessions),
                new_users=self.directory.new_users_since(today_start),
                views_growth=growth_percent(today_views, yesterday_views),
            ),
            periods=PeriodViews(yesterday=yesterday_views, week=week_views, month=month_views),
        )

    # =========================================================================
    # DAILY ROLLUP
    # =========================================================================

    def daily_rollup(self, day: date, now: datetime, top_limit: int = 10) -> DailyRollup:
        """Materialize the aggregates for one calendar day."""
        start, end = day_bounds(day)
        before = self.store.snapshot(until=end)
        events = [e for e in before if e.timestamp >= start]

        prior_actors = {e.actor_ref for e in before if e.actor_ref and e.timestamp < start}
        day_actors = {e.actor_ref for e in events if e.actor_ref}

        content_views = Counter(e.content_ref for e in events if e.content_ref)
        author_views: Counter = Counter()
        for ref, n in content_views.items():
            info = self.directory.content(ref)
            if info is not None:
                author_views[info.author_ref] += n

        avg_duration, avg_scroll = engagement_means(events)
        return DailyRollup(
            date=day,
            total_views=len(events),
            unique_sessions=_distinct_sessions(events),
            new_actors=len(day_actors - prior_actors),
            top_content=[RankedCount(key=k, views=n) for k, n in ranked(content_views, top_limit)],
            top_authors=[RankedCount(key=k, views=n) for k, n in ranked(author_views, top_limit)],
            countries=[
                RankedCount(key=k, views=n)
                for k, n in ranked(Counter(e.country or UNKNOWN_COUNTRY for e in events), COUNTRY_LIMIT)
            ],
            devices=dict(ranked(Counter(e.device_class.value for e in events))),
            referrers=[
                RankedCount(key=k, views=n)
                for k, n in ranked(Counter(e.referrer_source for e in events), REFERRER_LIMIT)
            ],
            avg_duration_seconds=avg_duration,
            avg_scroll_depth_percent=avg_scroll,
            bounce_rate_percent=bounce_rate(events),
            generated_at=now,
        )

    # =========================================================================
    # AUTHOR STATS
    # =========================================================================

    def author_stats(self, author_ref: str, now: datetime) -> AuthorStats:
        """Views on one author's content: total, last 30 days by day, top 5."""
        refs = set(self.directory.content_by_author(author_ref))
        if not refs:
            return AuthorStats(author_ref=author_ref)

        events = [e for e in self.store.snapshot() if e.content_ref in refs]
        recent = parse_period("30d", now)
        per_day: Counter = Counter()
        day_sessions: dict[str, set[str]] = defaultdict(set)
        for e in events:
            if e.timestamp >= recent.start:
                label = bucket_label(e.timestamp, DAILY)
                per_day[label] += 1
                day_sessions[label].add(e.session_id)

        return AuthorStats(
            author_ref=author_ref,
            total_views=len(events),
            views_over_time=[
                SeriesPoint(date=d, views=n, unique_visitors=len(day_sessions[d]))
                for d, n in sorted(per_day.items())
            ],
            top_content=self._rank_content(events, AUTHOR_TOP_CONTENT_LIMIT),
        )
