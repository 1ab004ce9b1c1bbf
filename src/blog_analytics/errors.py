"""Exceptions raised by blog analytics."""


class AnalyticsError(Exception):
    """Base class for analytics failures."""
    pass


class StorageError(AnalyticsError):
    """Raised when the event or accumulator store cannot complete an operation."""
    pass


class QueryTimeoutError(AnalyticsError):
    """Raised when a dashboard query exceeds the configured timeout."""

    def __init__(self, query: str, timeout: float):
        super().__init__(f"Query '{query}' timed out after {timeout}s")
        self.query = query
        self.timeout = timeout
