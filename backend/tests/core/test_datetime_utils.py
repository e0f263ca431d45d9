"""
Tests for datetime helpers.
"""
from datetime import datetime, timedelta, timezone

import pytest

from assessment.core.datetime_utils import age_in_days, ensure_timezone_aware, utc_now


class TestEnsureTimezoneAware:
    def test_naive_is_treated_as_utc(self):
        naive = datetime(2024, 1, 1, 12, 0)
        assert ensure_timezone_aware(naive).tzinfo == timezone.utc

    def test_aware_is_unchanged(self):
        aware = datetime(2024, 1, 1, tzinfo=timezone(timedelta(hours=3)))
        assert ensure_timezone_aware(aware) is aware

    def test_none_raises(self):
        with pytest.raises(ValueError, match="cannot be None"):
            ensure_timezone_aware(None)


class TestAgeInDays:
    def test_whole_days(self):
        now = datetime(2024, 6, 30, tzinfo=timezone.utc)
        assert age_in_days(datetime(2024, 6, 1, tzinfo=timezone.utc), now) == 29

    def test_partial_days_truncate(self):
        now = datetime(2024, 6, 2, 11, 0, tzinfo=timezone.utc)
        assert age_in_days(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc), now) == 0

    def test_naive_inputs(self):
        """SQLite hands back naive datetimes; they compare as UTC."""
        assert age_in_days(datetime(2024, 1, 1), datetime(2024, 1, 11)) == 10

    def test_defaults_to_now(self):
        assert age_in_days(utc_now() - timedelta(days=3, hours=1)) == 3
