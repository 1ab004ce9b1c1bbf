"""
Core analytics module.

Contains the data models, stores, query engines and the client facade.
"""

from .accumulator import AccumulatorStore, ContentAccumulator
from .client import AnalyticsClient, RollupCache, run_materializer
from .directory import SiteDirectory, StaticDirectory
from .ingest import Ingestor
from .models import (
    AuthorStats,
    Breakdowns,
    ContentStats,
    DailyRollup,
    EngagementSummary,
    Overview,
    RealtimeData,
    SeriesPoint,
    TopAuthorItem,
    TopContentItem,
    TrackRequest,
    VisitContext,
    VisitEvent,
)
from .periods import Period, parse_period
from .realtime import RealtimeWindow
from .rollups import RollupEngine
from .store import EventStore, InMemoryEventStore

__all__ = [
    "VisitEvent", "VisitContext", "TrackRequest",
    "ContentStats", "Overview", "SeriesPoint", "EngagementSummary",
    "TopContentItem", "TopAuthorItem", "Breakdowns", "RealtimeData",
    "DailyRollup", "AuthorStats",
    "EventStore", "InMemoryEventStore",
    "AccumulatorStore", "ContentAccumulator",
    "SiteDirectory", "StaticDirectory",
    "Period", "parse_period",
    "Ingestor", "RollupEngine", "RealtimeWindow",
    "AnalyticsClient", "RollupCache", "run_materializer",
]
