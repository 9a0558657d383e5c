"""
Tests for the forecast window aggregator.

What we test
------------
1. Overlap selection and aggregation (mean temperature, max wind, max chance).
2. Condition text prefers wet conditions.
3. Fallback to the first future bucket, then the last bucket.
4. Empty input returns ``None``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from uotd.engine.forecast_window import get_forecast_for_window, is_precipitation_condition
from uotd.models.weather import HourlySample


# ── Helpers ────────────────────────────────────────────────────────────────────

def _series(
    start: datetime,
    temps: list[float],
    winds: list[float] | None = None,
    rain: list[float] | None = None,
    conditions: list[str] | None = None,
) -> tuple[HourlySample, ...]:
    return tuple(
        HourlySample(
            time=start + timedelta(hours=i),
            temperature=temp,
            humidity=70.0,
            wind_speed=winds[i] if winds else None,
            condition=conditions[i] if conditions else "Cloudy",
            chance_of_rain=rain[i] if rain else 0.0,
        )
        for i, temp in enumerate(temps)
    )


def _utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 1, 10, hour, minute, tzinfo=timezone.utc)


# ── Aggregation ────────────────────────────────────────────────────────────────

class TestAggregation:
    def test_three_overlapping_buckets(self):
        # Window [10:20, 12:20) overlaps the 10:00, 11:00 and 12:00 buckets.
        hourly = _series(
            _utc(9),
            temps=[38, 40, 44, 42, 50],
            winds=[1, 5, 12, 9, 30],
            rain=[0, 10, 60, 20, 90],
        )
        window = get_forecast_for_window(hourly, _utc(9, 50), 30, 150)

        assert window is not None
        assert window.hours_used == 3
        assert window.temperature == 42
        assert window.wind_speed == 12
        assert window.precipitation_chance == 60
        assert window.forecast_time == _utc(10)

    def test_default_window_covers_partial_buckets(self):
        # now=10:00 → window [10:30, 11:30) overlaps 10:00 and 11:00.
        hourly = _series(_utc(9), temps=[30, 40, 45, 60])
        window = get_forecast_for_window(hourly, _utc(10))
        assert window.hours_used == 2
        assert window.temperature == 42.5
        assert window.window_start == _utc(10, 30)
        assert window.window_end == _utc(11, 30)

    def test_mean_rounded_to_one_decimal(self):
        hourly = _series(_utc(10), temps=[40, 41, 41])
        window = get_forecast_for_window(hourly, _utc(10), 0, 180)
        assert window.temperature == 40.7

    def test_snow_chance_counts_as_precipitation(self):
        hourly = (
            HourlySample(time=_utc(11), temperature=30, chance_of_rain=10, chance_of_snow=80),
        )
        window = get_forecast_for_window(hourly, _utc(10, 45))
        assert window.precipitation_chance == 80

    def test_prefers_wet_condition_text(self):
        hourly = _series(
            _utc(10), temps=[40, 41], conditions=["Overcast", "Light drizzle"]
        )
        window = get_forecast_for_window(hourly, _utc(10), 0, 120)
        assert window.condition == "Light drizzle"

    def test_first_condition_when_all_dry(self):
        hourly = _series(_utc(10), temps=[40, 41], conditions=["Overcast", "Sunny"])
        window = get_forecast_for_window(hourly, _utc(10), 0, 120)
        assert window.condition == "Overcast"

    def test_missing_wind_values_ignored(self):
        hourly = _series(_utc(10), temps=[40, 41])
        window = get_forecast_for_window(hourly, _utc(10), 0, 120)
        assert window.wind_speed is None


# ── Fallback ───────────────────────────────────────────────────────────────────

class TestFallback:
    def test_first_future_bucket_when_no_overlap(self):
        hourly = _series(_utc(6), temps=[30, 31]) + _series(_utc(15), temps=[50, 52])
        window = get_forecast_for_window(hourly, _utc(10))
        assert window.hours_used == 1
        assert window.forecast_time == _utc(15)
        assert window.temperature == 50

    def test_last_bucket_when_all_in_past(self):
        hourly = _series(_utc(5), temps=[30, 31, 33])
        window = get_forecast_for_window(hourly, _utc(20))
        assert window.hours_used == 1
        assert window.forecast_time == _utc(7)
        assert window.temperature == 33

    def test_empty_series(self):
        assert get_forecast_for_window((), _utc(10)) is None


class TestPrecipitationKeywords:
    def test_keywords(self):
        assert is_precipitation_condition("Patchy rain nearby")
        assert is_precipitation_condition("Thundery outbreaks")
        assert is_precipitation_condition("Blowing SNOW")
        assert not is_precipitation_condition("Overcast")
        assert not is_precipitation_condition(None)
