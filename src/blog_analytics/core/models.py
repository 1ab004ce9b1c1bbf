"""
Pydantic models for analytics data.
"""
import datetime as dt
import uuid
from datetime import date, datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..referrer import DIRECT_SOURCE, ReferrerType
from ..user_agent import UNKNOWN, DeviceClass


def _new_event_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Timezone-aware current time, the default clock."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base for models served to dashboard clients, dumped with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Raw Data Models
# =============================================================================

class VisitEvent(BaseModel):
    """A single page impression.

    Immutable. The only change ever made is attaching the engagement fields
    once at end of visit, which produces a new instance via model_copy.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_event_id)
    content_ref: str | None = None
    actor_ref: str | None = None
    session_id: str
    path: str
    timestamp: datetime

    # Visitor context
    ip_address: str = ""
    user_agent: str = ""
    referrer_url: str = ""

    # Classified once at ingestion
    country: str = ""
    region: str = ""
    city: str = ""
    device_class: DeviceClass = DeviceClass.UNKNOWN
    browser: str = UNKNOWN
    os: str = UNKNOWN
    referrer_source: str = DIRECT_SOURCE
    referrer_type: ReferrerType = ReferrerType.DIRECT

    # Engagement (attached at most once)
    duration_seconds: float = Field(default=0, ge=0)
    scroll_depth_percent: float = Field(default=0, ge=0, le=100)
    engaged: bool = False

    @property
    def day(self) -> date:
        """Calendar day (UTC) the event is bucketed into."""
        return self.timestamp.astimezone(timezone.utc).date()


class VisitContext(BaseModel):
    """Ambient request context captured alongside a tracking call."""
    ip_address: str = ""
    user_agent: str = ""
    referrer_url: str = ""
    actor_ref: str | None = None
    country: str = ""
    region: str = ""
    city: str = ""


class TrackRequest(BaseModel):
    """Incoming tracking call.

    Accepts both snake_case and the camelCase names browser clients send.
    """
    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(min_length=1)
    content_ref: str | None = Field(default=None, alias="contentRef")
    session_id: str | None = Field(default=None, alias="sessionId")
    duration_seconds: float | None = Field(default=None, alias="durationSeconds")
    scroll_depth_percent: float | None = Field(default=None, alias="scrollDepthPercent")

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def clamp_duration(cls, v):
        """Negative durations count as zero."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return max(v, 0)
        return v

    @field_validator("scroll_depth_percent", mode="before")
    @classmethod
    def clamp_scroll_depth(cls, v):
        """Clamp into [0, 100]."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return min(max(v, 0), 100)
        return v

    @property
    def is_close_out(self) -> bool:
        """A call carrying a duration closes out an earlier page view."""
        return bool(self.duration_seconds)


# =============================================================================
# Accumulator Models
# =============================================================================

class ViewHistoryEntry(CamelModel):
    """Views for one calendar day."""
    date: dt.date
    views: int = 0


class ContentStats(CamelModel):
    """Point-in-time copy of a content item's running counters."""
    content_ref: str
    total_views: int = 0
    unique_view_approx: int = 0
    avg_duration_seconds: float = 0.0
    avg_scroll_depth_percent: float = 0.0
    engagement_samples: int = 0
    view_history: list[ViewHistoryEntry] = []


# =============================================================================
# Collaborator Models
# =============================================================================

class ContentInfo(BaseModel):
    """What the post core tells us about a content item."""
    content_ref: str
    author_ref: str
    title: str | None = None
    slug: str | None = None


class AuthorInfo(BaseModel):
    """What the user core tells us about an author."""
    author_ref: str
    name: str | None = None
    username: str | None = None
    avatar: str | None = None


class DailyCount(CamelModel):
    """A count for one day (comments, likes)."""
    date: str
    count: int


class SiteCounts(CamelModel):
    """Totals owned by the post/user/comment core."""
    posts: int = 0
    users: int = 0
    comments: int = 0


# =============================================================================
# Query Response Models
# =============================================================================

class SiteTotals(SiteCounts):
    """All-time totals shown on the overview."""
    views: int = 0


class TodayStats(CamelModel):
    views: int = 0
    unique_visitors: int = 0
    new_users: int = 0
    views_growth: int = 0


class PeriodViews(CamelModel):
    yesterday: int = 0
    week: int = 0
    month: int = 0


class Overview(CamelModel):
    """Dashboard overview snapshot."""
    totals: SiteTotals
    today: TodayStats
    periods: PeriodViews


class SeriesPoint(CamelModel):
    """A single bucket in a views-over-time series."""
    date: str  # YYYY-MM-DD or YYYY-MM
    views: int = 0
    unique_visitors: int = 0


class EngagementSummary(CamelModel):
    avg_duration_seconds: int = 0
    avg_scroll_depth_percent: int = 0
    bounce_rate_percent: int = 0
    comments_over_time: list[DailyCount] = []
    likes_over_time: list[DailyCount] = []


class AuthorSummary(CamelModel):
    author_ref: str
    name: str | None = None
    username: str | None = None


class TopContentItem(CamelModel):
    """A content item ranked by views."""
    content_ref: str
    views: int
    unique_views: int
    avg_duration_seconds: int = 0
    title: str | None = None
    slug: str | None = None
    author: AuthorSummary | None = None


class TopAuthorItem(CamelModel):
    """An author ranked by views across their content."""
    author_ref: str
    total_views: int
    unique_views: int
    post_count: int
    name: str | None = None
    username: str | None = None
    avatar: str | None = None


class CountryStats(CamelModel):
    country: str
    views: int
    unique_visitors: int


class DeviceStats(CamelModel):
    device: str
    count: int


class BrowserStats(CamelModel):
    browser: str
    count: int


class ReferrerStats(CamelModel):
    source: str
    count: int


class Breakdowns(CamelModel):
    """Dimensional breakdowns for a period."""
    countries: list[CountryStats] = []
    devices: list[DeviceStats] = []
    browsers: list[BrowserStats] = []
    referrers: list[ReferrerStats] = []


class ActivePath(CamelModel):
    path: str
    visitors: int


class RealtimeData(CamelModel):
    """Activity over the trailing real-time window."""
    active_visitors: int = 0
    page_views: int = 0
    active_pages: int = 0
    top_active_paths: list[ActivePath] = []
    window_minutes: int
    poll_interval_seconds: int


class RankedCount(CamelModel):
    key: str
    views: int


class DailyRollup(CamelModel):
    """Aggregates for one calendar day, recomputable from the event store."""
    date: dt.date
    total_views: int = 0
    unique_sessions: int = 0
    new_actors: int = 0
    top_content: list[RankedCount] = []
    top_authors: list[RankedCount] = []
    countries: list[RankedCount] = []
    devices: dict[str, int] = {}
    referrers: list[RankedCount] = []
    avg_duration_seconds: int = 0
    avg_scroll_depth_percent: int = 0
    bounce_rate_percent: int = 0
    generated_at: datetime


class AuthorStats(CamelModel):
    """An author's own view numbers."""
    author_ref: str
    total_views: int = 0
    views_over_time: list[SeriesPoint] = []
    top_content: list[TopContentItem] = []
