"""Tests for dashboard date ranges."""

from datetime import date, datetime, timedelta, timezone

import pytest

from tutaviendo.date_ranges import PRESETS, custom_range, preset_range, preset_ranges
from tutaviendo.errors import UnknownRangeError, ValidationError

NOW = datetime(2024, 6, 15, 18, 30, tzinfo=timezone.utc)
END_OF_TODAY = datetime(2024, 6, 15, 23, 59, 59, 999999, tzinfo=timezone.utc)


class TestPresets:
    def test_today(self):
        r = preset_range("today", NOW)
        assert r.start == datetime(2024, 6, 15, tzinfo=timezone.utc)
        assert r.end == END_OF_TODAY
        assert r.label == "Hoy"

    def test_yesterday(self):
        r = preset_range("yesterday", NOW)
        assert r.start == datetime(2024, 6, 14, tzinfo=timezone.utc)
        assert r.end == datetime(2024, 6, 14, 23, 59, 59, 999999, tzinfo=timezone.utc)
        assert r.label == "Ayer"

    @pytest.mark.parametrize(
        "name,days", [("last_7_days", 7), ("last_15_days", 15), ("last_30_days", 30)]
    )
    def test_last_n_days_include_today(self, name, days):
        r = preset_range(name, NOW)
        assert r.end == END_OF_TODAY
        assert r.start == datetime(2024, 6, 15, tzinfo=timezone.utc) - timedelta(days=days - 1)

    def test_unknown_preset(self):
        with pytest.raises(UnknownRangeError):
            preset_range("last_year", NOW)

    def test_preset_ranges_lists_all(self):
        assert list(preset_ranges(NOW)) == list(PRESETS)


class TestCustomRange:
    def test_covers_whole_days(self):
        r = custom_range(date(2024, 6, 1), date(2024, 6, 3))
        assert r.start == datetime(2024, 6, 1, tzinfo=timezone.utc)
        assert r.end == datetime(2024, 6, 3, 23, 59, 59, 999999, tzinfo=timezone.utc)
        assert r.label == "01/06/2024 - 03/06/2024"

    def test_single_day(self):
        r = custom_range(date(2024, 6, 1), date(2024, 6, 1))
        assert r.contains(datetime(2024, 6, 1, 23, 0, tzinfo=timezone.utc))

    def test_start_after_end_rejected(self):
        with pytest.raises(ValidationError):
            custom_range(date(2024, 6, 3), date(2024, 6, 1))
