"""Tests for analytics configuration."""

import pytest

from blog_analytics.config import AnalyticsConfig, ConfigError


class TestValidation:
    """Test config validation."""

    def test_defaults_are_valid(self):
        config = AnalyticsConfig()
        assert config.top_limit == 10
        assert config.materializer_enabled is False
        assert config.rate_limiting_enabled is False
        assert config.trust_proxy_headers is False

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ConfigError):
            AnalyticsConfig(query_timeout_seconds=0)

    def test_limit_above_max_rejected(self):
        with pytest.raises(ConfigError):
            AnalyticsConfig(top_limit=20, max_top_limit=10)

    def test_rate_limit_cannot_be_negative(self):
        with pytest.raises(ConfigError):
            AnalyticsConfig(rate_limit_max_events=-1)

    def test_rate_limit_window_checked_when_enabled(self):
        assert AnalyticsConfig(rate_limit_window_seconds=0).rate_limiting_enabled is False
        with pytest.raises(ConfigError):
            AnalyticsConfig(rate_limit_max_events=10, rate_limit_window_seconds=0)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            AnalyticsConfig(sweep_interval_seconds=0)

    def test_materializer_enabled(self):
        assert AnalyticsConfig(materialize_interval_seconds=300).materializer_enabled is True


class TestFromEnv:
    """Test loading config from environment variables."""

    def test_reads_prefixed_variables(self):
        config = AnalyticsConfig.from_env({
            "BLOG_ANALYTICS_SITE_NAME": "myblog.com",
            "BLOG_ANALYTICS_QUERY_TIMEOUT_SECONDS": "2.5",
            "BLOG_ANALYTICS_TOP_LIMIT": "5",
            "BLOG_ANALYTICS_TRUST_PROXY_HEADERS": "true",
            "UNRELATED": "x",
        })

        assert config.site_name == "myblog.com"
        assert config.query_timeout_seconds == 2.5
        assert config.top_limit == 5
        assert config.trust_proxy_headers is True

    def test_unset_keeps_defaults(self):
        assert AnalyticsConfig.from_env({}) == AnalyticsConfig()

    def test_bad_number_raises_config_error(self):
        with pytest.raises(ConfigError):
            AnalyticsConfig.from_env({"BLOG_ANALYTICS_TOP_LIMIT": "ten"})

    def test_invalid_value_still_validated(self):
        with pytest.raises(ConfigError):
            AnalyticsConfig.from_env({"BLOG_ANALYTICS_QUERY_TIMEOUT_SECONDS": "-1"})
