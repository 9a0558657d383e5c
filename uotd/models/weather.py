"""
Weather observation models.

``WeatherReport`` is the known-shape result of one gateway fetch: current
conditions, the daily forecast with its hourly series, astronomy data and the
fetch/expiry instants. It is frozen — a snapshot never changes after it is
fetched, and the copy stored on a recommendation is the one the decision was
made with.

``TwilightStatus`` and ``ForecastWindow`` are derived values produced by the
engine; ``WeatherContext`` is the flattened observation the rule evaluator
matches against.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class WeatherSnapshot(BaseModel):
    """Current conditions at the configured location.

    Attributes:
        temperature: Air temperature in the configured units.
        feels_like: Apparent temperature.
        humidity: Relative humidity, percent.
        wind_speed: Wind speed (mph or km/h).
        condition: Provider condition text, e.g. ``"Light rain"``.
        precipitation: Precipitation amount (in or mm), if reported.
        precipitation_chance: Chance of precipitation, percent.
        uv_index: UV index, if reported.
        weather_code: Provider condition code, if reported.
    """

    model_config = ConfigDict(frozen=True)

    temperature: float
    feels_like: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    condition: str = ""
    precipitation: Optional[float] = None
    precipitation_chance: float = 0.0
    uv_index: Optional[float] = None
    weather_code: Optional[int] = None


class HourlySample(BaseModel):
    """One hourly forecast bucket covering ``[time, time + 1h)``."""

    model_config = ConfigDict(frozen=True)

    time: datetime
    temperature: float
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    condition: str = ""
    chance_of_rain: Optional[float] = None
    chance_of_snow: Optional[float] = None

    @property
    def precipitation_chance(self) -> float:
        """Worse of the rain and snow chances; missing values count as 0."""
        return max(self.chance_of_rain or 0.0, self.chance_of_snow or 0.0)


class DailyForecast(BaseModel):
    """Day-level forecast plus its hourly series."""

    model_config = ConfigDict(frozen=True)

    temp_high: Optional[float] = None
    temp_low: Optional[float] = None
    precipitation_chance: float = 0.0
    uv_index_max: Optional[float] = None
    hourly: tuple[HourlySample, ...] = ()


class AstronomyData(BaseModel):
    """Sun and moon data. Only sunrise/sunset feed the core logic.

    Sunrise and sunset are ``"hh:mm AM|PM"`` strings in the location's local
    time, exactly as the provider reports them.
    """

    model_config = ConfigDict(frozen=True)

    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    moon_phase: Optional[str] = None
    moon_illumination: Optional[float] = None


class LocationInfo(BaseModel):
    """Resolved location of a weather report."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    name: Optional[str] = None
    region: Optional[str] = None
    tz_id: Optional[str] = None


class WeatherReport(BaseModel):
    """Complete result of one weather gateway fetch."""

    model_config = ConfigDict(frozen=True)

    current: WeatherSnapshot
    forecast: DailyForecast
    astronomy: AstronomyData = AstronomyData()
    location: Optional[LocationInfo] = None
    fetched_at: datetime
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        """True while ``now`` is before ``expires_at``."""
        return now < self.expires_at


class TwilightStatus(BaseModel):
    """Light-condition flags for a reference instant.

    When astronomy data is missing or unparsable only ``is_twilight=False``
    and ``reason`` are meaningful.
    """

    model_config = ConfigDict(frozen=True)

    is_twilight: bool = False
    is_nighttime: bool = False
    in_morning_twilight: bool = False
    in_evening_twilight: bool = False
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    sunrise_time: Optional[datetime] = None
    sunset_time: Optional[datetime] = None
    reason: Optional[str] = None


class ForecastWindow(BaseModel):
    """Hourly forecast aggregated over a future time window.

    Attributes:
        temperature: Mean temperature across the selected buckets.
        humidity: Mean humidity across the selected buckets.
        wind_speed: Maximum wind speed (worst case).
        condition: Condition text, wet conditions preferred.
        precipitation_chance: Maximum per-bucket max(rain, snow) chance.
        forecast_time: Start of the first selected bucket.
        window_start: ``now + minutes_ahead_start``.
        window_end: ``now + minutes_ahead_end``.
        hours_used: Number of buckets aggregated (1 on fallback).
    """

    model_config = ConfigDict(frozen=True)

    temperature: float
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    condition: str = ""
    precipitation_chance: float = 0.0
    forecast_time: datetime
    window_start: datetime
    window_end: datetime
    hours_used: int


class WeatherContext(BaseModel):
    """Observation a rule set is evaluated against."""

    model_config = ConfigDict(frozen=True)

    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    condition: str = ""
    precipitation_chance: float = 0.0
    uv_index: Optional[float] = None
    is_forecast: bool = False

    @classmethod
    def from_window(
        cls,
        window: ForecastWindow,
        uv_index: Optional[float] = None,
    ) -> "WeatherContext":
        """Build a context from a forecast window (UV comes from current data)."""
        return cls(
            temperature=window.temperature,
            humidity=window.humidity,
            wind_speed=window.wind_speed,
            condition=window.condition,
            precipitation_chance=window.precipitation_chance,
            uv_index=uv_index,
            is_forecast=True,
        )

    @classmethod
    def from_report(cls, report: WeatherReport) -> "WeatherContext":
        """Build a context from current conditions and the daily precipitation chance."""
        return cls(
            temperature=report.current.temperature,
            humidity=report.current.humidity,
            wind_speed=report.current.wind_speed,
            condition=report.current.condition,
            precipitation_chance=report.forecast.precipitation_chance,
            uv_index=report.current.uv_index,
            is_forecast=False,
        )
