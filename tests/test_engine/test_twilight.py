"""
Tests for the twilight calculator.

What we test
------------
1. Morning/evening windows are inclusive at both edges.
2. Nighttime is strictly before the morning window or after the evening one.
3. Missing or malformed sunrise/sunset never raises; a reason is returned.
4. ``parse_clock_time`` handles the 12 AM / 12 PM corner cases.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from uotd.engine.twilight import (
    REASON_NO_DATA,
    REASON_UNPARSABLE,
    get_twilight_status,
    parse_clock_time,
)
from uotd.models.weather import AstronomyData

ASTRO = AstronomyData(sunrise="06:45 AM", sunset="07:30 PM")


# ── Helpers ────────────────────────────────────────────────────────────────────

def _at(hour: int, minute: int) -> datetime:
    return datetime(2025, 1, 10, hour, minute)


# ── Windows ────────────────────────────────────────────────────────────────────

class TestTwilightWindows:
    def test_at_sunrise_is_morning_twilight(self):
        status = get_twilight_status(ASTRO, _at(6, 45), twilight_minutes=30)
        assert status.is_twilight is True
        assert status.in_morning_twilight is True
        assert status.in_evening_twilight is False
        assert status.is_nighttime is False

    def test_before_morning_window_is_night(self):
        status = get_twilight_status(ASTRO, _at(6, 0), twilight_minutes=30)
        assert status.is_twilight is False
        assert status.is_nighttime is True

    def test_window_edges_inclusive(self):
        assert get_twilight_status(ASTRO, _at(6, 15)).is_twilight is True
        assert get_twilight_status(ASTRO, _at(7, 15)).is_twilight is True
        assert get_twilight_status(ASTRO, _at(19, 0)).in_evening_twilight is True
        assert get_twilight_status(ASTRO, _at(20, 0)).in_evening_twilight is True

    def test_just_outside_windows(self):
        morning_after = get_twilight_status(ASTRO, _at(7, 16))
        assert morning_after.is_twilight is False
        assert morning_after.is_nighttime is False

        evening_after = get_twilight_status(ASTRO, _at(20, 1))
        assert evening_after.is_twilight is False
        assert evening_after.is_nighttime is True

    def test_midday_is_neither(self):
        status = get_twilight_status(ASTRO, _at(12, 0))
        assert status.is_twilight is False
        assert status.is_nighttime is False

    def test_zero_width_only_matches_exact_instant(self):
        assert get_twilight_status(ASTRO, _at(6, 45), twilight_minutes=0).is_twilight is True
        assert get_twilight_status(ASTRO, _at(6, 46), twilight_minutes=0).is_twilight is False

    def test_echoes_parsed_times(self):
        status = get_twilight_status(ASTRO, _at(12, 0))
        assert status.sunrise == "06:45 AM"
        assert status.sunrise_time == _at(6, 45)
        assert status.sunset_time == _at(19, 30)

    def test_timezone_aware_reference(self):
        tz = ZoneInfo("America/New_York")
        check = datetime(2025, 1, 10, 6, 50, tzinfo=tz)
        status = get_twilight_status(ASTRO, check)
        assert status.is_twilight is True
        assert status.sunrise_time.tzinfo is tz


# ── Degenerate input ──────────────────────────────────────────────────────────

class TestTwilightMissingData:
    def test_none_astronomy(self):
        status = get_twilight_status(None, _at(6, 45))
        assert status.is_twilight is False
        assert status.reason == REASON_NO_DATA

    def test_missing_sunset(self):
        status = get_twilight_status(AstronomyData(sunrise="06:45 AM"), _at(6, 45))
        assert status.is_twilight is False
        assert status.reason == REASON_NO_DATA

    @pytest.mark.parametrize("bad", ["25:00 AM", "06:45", "6:61 PM", "noon"])
    def test_unparsable_times(self, bad):
        status = get_twilight_status(AstronomyData(sunrise=bad, sunset="07:30 PM"), _at(6, 45))
        assert status.is_twilight is False
        assert status.reason == REASON_UNPARSABLE


class TestParseClockTime:
    def test_midnight_and_noon(self):
        ref = _at(9, 0)
        assert parse_clock_time("12:05 AM", ref) == _at(0, 5)
        assert parse_clock_time("12:30 PM", ref) == _at(12, 30)

    def test_case_and_whitespace(self):
        assert parse_clock_time("  7:30 pm ", _at(9, 0)) == _at(19, 30)

    def test_empty(self):
        assert parse_clock_time(None, _at(9, 0)) is None
        assert parse_clock_time("", _at(9, 0)) is None
