"""
Configuration for blog analytics.
"""
import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ENV_PREFIX = "BLOG_ANALYTICS_"

# Engagement close-outs shorter than this are ignored
MIN_ENGAGEMENT_SECONDS = 5

# Bounded per-content view history (one entry per day)
VIEW_HISTORY_CAPACITY = 30

# Real-time window and the polling interval clients are expected to use
REALTIME_WINDOW_MINUTES = 5
REALTIME_POLL_INTERVAL_SECONDS = 30


class ConfigError(ValueError):
    """Raised when the analytics configuration is invalid."""
    pass


@dataclass
class AnalyticsConfig:
    """Configuration for a single analytics instance."""

    site_name: str = "localhost"  # Domain, used to detect internal referrers

    # Query behaviour
    query_timeout_seconds: float = 10.0
    top_limit: int = 10
    max_top_limit: int = 100

    # Ingestion rate limiting per client IP (0 = disabled)
    rate_limit_max_events: int = 0
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_salt: str = "blog-analytics"
    sweep_interval_seconds: int = 60

    # Optional periodic materialization of daily rollups (0 = on demand only)
    materialize_interval_seconds: int = 0

    # Trust X-Forwarded-For / CF-* headers. Enable only behind an edge proxy
    # that overwrites them.
    trust_proxy_headers: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.query_timeout_seconds <= 0:
            raise ConfigError(
                f"query_timeout_seconds must be positive, got {self.query_timeout_seconds}"
            )
        if self.top_limit < 1 or self.max_top_limit < self.top_limit:
            raise ConfigError(
                f"Invalid ranking limits: top_limit={self.top_limit}, "
                f"max_top_limit={self.max_top_limit}"
            )
        if self.rate_limit_max_events < 0:
            raise ConfigError("rate_limit_max_events cannot be negative")
        if self.rate_limiting_enabled and self.rate_limit_window_seconds < 1:
            raise ConfigError("rate_limit_window_seconds must be at least 1")
        if self.sweep_interval_seconds < 1:
            raise ConfigError("sweep_interval_seconds must be at least 1")
        if self.materialize_interval_seconds < 0:
            raise ConfigError("materialize_interval_seconds cannot be negative")

        if self.rate_limiting_enabled and self.rate_limit_salt == "blog-analytics":
            logger.debug(f"Site {self.site_name}: using the default rate limit salt")

    @property
    def materializer_enabled(self) -> bool:
        """Check if daily rollups are refreshed in the background."""
        return self.materialize_interval_seconds > 0

    @property
    def rate_limiting_enabled(self) -> bool:
        """Check if ingestion is throttled per client IP."""
        return self.rate_limit_max_events > 0

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "AnalyticsConfig":
        """Build a config from BLOG_ANALYTICS_* environment variables.

        Unset variables keep their defaults. Values that cannot be converted
        raise ConfigError.
        """
        environ = os.environ if environ is None else environ
        kwargs = {}
        for name, field in cls.__dataclass_fields__.items():
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            kwargs[name] = _convert(name, raw, field.type)
        return cls(**kwargs)


def _convert(name: str, raw: str, type_name) -> object:
    """Convert an environment string to the field's declared type."""
    type_name = getattr(type_name, "__name__", type_name)
    try:
        if type_name == "bool":
            return raw.strip().lower() in ("1", "true", "yes", "on")
        if type_name == "int":
            return int(raw)
        if type_name == "float":
            return float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name.upper()}: cannot parse {raw!r}") from None
    return raw
