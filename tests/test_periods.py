"""Tests for reporting period parsing."""

from datetime import date, datetime, timedelta, timezone

import pytest

from blog_analytics.core.periods import (
    DAILY, MONTHLY, bucket_label, day_bounds, parse_period, start_of_day,
)

NOW = datetime(2026, 3, 10, 15, 30, tzinfo=timezone.utc)


class TestPresetPeriods:
    """Test preset period parsing."""

    @pytest.mark.parametrize("key,days", [("7d", 7), ("30d", 30), ("90d", 90)])
    def test_short_periods_are_daily(self, key, days):
        period = parse_period(key, NOW)

        assert period.key == key
        assert period.start == NOW - timedelta(days=days)
        assert period.granularity == DAILY

    def test_year_is_monthly(self):
        period = parse_period("1y", NOW)

        assert period.start == NOW - timedelta(days=365)
        assert period.granularity == MONTHLY

    def test_all_time_has_no_start(self):
        period = parse_period("all", NOW)

        assert period.start is None
        assert period.granularity == MONTHLY

    def test_case_and_whitespace_ignored(self):
        assert parse_period(" 7D ", NOW).key == "7d"


class TestDefaultPeriod:
    """Test fallback for unknown periods."""

    @pytest.mark.parametrize("value", [None, "", "forever", "14d", "custom"])
    def test_unknown_defaults_to_30_days(self, value):
        period = parse_period(value, NOW)

        assert period.key == "30d"
        assert period.start == NOW - timedelta(days=30)


class TestBuckets:
    """Test time bucketing."""

    def test_daily_label(self):
        assert bucket_label(NOW, DAILY) == "2026-03-10"

    def test_monthly_label(self):
        assert bucket_label(NOW, MONTHLY) == "2026-03"

    def test_labels_are_utc(self):
        late_evening_west = datetime(2026, 3, 10, 20, 0, tzinfo=timezone(timedelta(hours=-8)))
        assert bucket_label(late_evening_west, DAILY) == "2026-03-11"

    def test_period_bucket(self):
        assert parse_period("1y", NOW).bucket(NOW) == "2026-03"

    def test_day_bounds(self):
        start, end = day_bounds(date(2026, 3, 10))

        assert start == datetime(2026, 3, 10, tzinfo=timezone.utc)
        assert end - start == timedelta(days=1)

    def test_start_of_day(self):
        assert start_of_day(NOW) == datetime(2026, 3, 10, tzinfo=timezone.utc)
