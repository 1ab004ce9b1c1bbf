"""
Reporting periods and time buckets.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

DEFAULT_PERIOD = "30d"

DAILY = "day"
MONTHLY = "month"

_PERIOD_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}


@dataclass(frozen=True)
class Period:
    """A resolved reporting period.

    Attributes:
        key: Normalized period string (7d, 30d, 90d, 1y, all)
        start: Inclusive lower bound, or None for all time
        granularity: Bucket size for series ("day" or "month")
    """
    key: str
    start: datetime | None
    granularity: str

    def bucket(self, timestamp: datetime) -> str:
        """Bucket label for an event timestamp."""
        return bucket_label(timestamp, self.granularity)


def parse_period(period: str | None, now: datetime) -> Period:
    """Resolve a period string relative to `now`.

    Unknown periods fall back to 30 days. Ranges up to 90 days are bucketed
    by day, 1y and all by month.

    Examples:
        >>> parse_period("7d", datetime(2026, 1, 8, tzinfo=timezone.utc)).start
        datetime.datetime(2026, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    key = (period or DEFAULT_PERIOD).strip().lower()
    if key == "all":
        return Period(key="all", start=None, granularity=MONTHLY)

    if key not in _PERIOD_DAYS:
        key = DEFAULT_PERIOD
    days = _PERIOD_DAYS[key]
    return Period(
        key=key,
        start=now - timedelta(days=days),
        granularity=DAILY if days <= 90 else MONTHLY,
    )


def bucket_label(timestamp: datetime, granularity: str) -> str:
    """YYYY-MM-DD for daily buckets, YYYY-MM for monthly buckets (UTC)."""
    ts = timestamp.astimezone(timezone.utc)
    if granularity == MONTHLY:
        return ts.strftime("%Y-%m")
    return ts.strftime("%Y-%m-%d")


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC [start, end) of a calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def start_of_day(now: datetime) -> datetime:
    """UTC midnight of the day containing `now`."""
    return day_bounds(now.astimezone(timezone.utc).date())[0]
