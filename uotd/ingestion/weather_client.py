"""
Weather gateway client — WeatherAPI.com forecast endpoint.

API:   https://api.weatherapi.com/v1/forecast.json
Docs:  https://www.weatherapi.com/docs/

Credential setup (.env, gitignored):
  UOTD_WEATHER_API_KEY=your_key_here

One call returns current conditions, today's forecast with its hourly
series, and astronomy data::

    GET {base_url}/forecast.json?key=...&q={lat},{lon}&days=1&aqi=no

Hourly ``time`` values are local wall-clock strings (``"2025-01-10 11:00"``);
they are attached to the location's ``tz_id`` (or the configured timezone).

Without an API key the pipeline uses ``get_fixture_response()`` — a
synthetic but structurally valid report — so the rest of the system can be
exercised offline.

Any transport failure, non-2xx status or malformed payload raises
``WeatherFetchError``; there is no retry here.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, ClassVar, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from pydantic import ValidationError

from uotd.models.weather import (
    AstronomyData,
    DailyForecast,
    HourlySample,
    LocationInfo,
    WeatherReport,
    WeatherSnapshot,
)
from uotd.utils.time_utils import to_local, utcnow

logger = logging.getLogger(__name__)


class WeatherFetchError(RuntimeError):
    """The weather gateway was unreachable or returned an unusable response."""


# ── Client ─────────────────────────────────────────────────────────────────────

class WeatherApiClient:
    """Client for the WeatherAPI.com forecast endpoint.

    Usage (fixture / stub mode — no API key required)::

        client = WeatherApiClient()
        report = client.get_fixture_response(40.7, -74.0)

    Usage (real API — requires UOTD_WEATHER_API_KEY in .env)::

        client = WeatherApiClient(api_key=config.weather.api_key)
        report = client.fetch_report(40.7, -74.0)

    Args:
        api_key:       WeatherAPI key. ``None`` → fixture mode only.
        base_url:      API root, e.g. ``"https://api.weatherapi.com/v1"``.
        units:         ``"imperial"`` (°F, mph, in) or ``"metric"`` (°C, km/h, mm).
        timeout:       Request timeout in seconds.
        tz_name:       Fallback timezone for hourly times.
        cache_minutes: Lifetime of a fetched report (``expires_at``).
        transport:     Optional ``httpx`` transport (tests use ``MockTransport``).
    """

    BASE_URL: ClassVar[str] = "https://api.weatherapi.com/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        units: str = "imperial",
        timeout: float = 30.0,
        tz_name: str = "UTC",
        cache_minutes: int = 30,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.units = units
        self.timeout = timeout
        self.tz_name = tz_name
        self.cache_minutes = cache_minutes
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def _imperial(self) -> bool:
        return self.units == "imperial"

    # ── Real API ───────────────────────────────────────────────────────────────

    def fetch_report(self, latitude: float, longitude: float) -> WeatherReport:
        """Fetch current conditions, today's forecast and astronomy data.

        Args:
            latitude:  Location latitude.
            longitude: Location longitude.

        Returns:
            Parsed ``WeatherReport``.

        Raises:
            WeatherFetchError: No API key, transport error, non-2xx status or
                malformed payload.
        """
        if not self.api_key:
            raise WeatherFetchError("UOTD_WEATHER_API_KEY must be set in .env.")

        params = {
            "key": self.api_key,
            "q": f"{latitude},{longitude}",
            "days": 1,
            "aqi": "no",
        }
        try:
            with httpx.Client(transport=self._transport, timeout=self.timeout) as client:
                resp = client.get(f"{self.base_url}/forecast.json", params=params)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as exc:
            raise WeatherFetchError(
                f"WeatherAPI error: {exc.response.status_code} - {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise WeatherFetchError(f"WeatherAPI request failed: {exc}") from exc
        except ValueError as exc:
            raise WeatherFetchError(f"WeatherAPI returned invalid JSON: {exc}") from exc

        report = self.parse_response(payload, latitude, longitude)
        logger.info(
            "Weather fetched for %s,%s: %s°, %s",
            latitude, longitude, report.current.temperature, report.current.condition,
        )
        return report

    # ── Response parser ────────────────────────────────────────────────────────

    def parse_response(
        self,
        data: dict[str, Any],
        latitude: float,
        longitude: float,
        fetched_at: Optional[datetime] = None,
    ) -> WeatherReport:
        """Parse a ``forecast.json`` payload into a ``WeatherReport``.

        Raises:
            WeatherFetchError: If required sections are missing or invalid.
        """
        fetched_at = fetched_at or utcnow()
        try:
            current = data["current"]
            day = data["forecast"]["forecastday"][0]
            location = data.get("location") or {}
            tz = self._resolve_tz(location.get("tz_id"))

            snapshot = WeatherSnapshot(
                temperature=self._pick(current, "temp_f", "temp_c"),
                feels_like=self._pick(current, "feelslike_f", "feelslike_c", required=False),
                humidity=current.get("humidity"),
                wind_speed=self._pick(current, "wind_mph", "wind_kph", required=False),
                condition=(current.get("condition") or {}).get("text", ""),
                weather_code=(current.get("condition") or {}).get("code"),
                precipitation=self._pick(current, "precip_in", "precip_mm", required=False),
                precipitation_chance=_daily_chance(day.get("day") or {}),
                uv_index=current.get("uv"),
            )

            day_data = day.get("day") or {}
            hourly = tuple(self._parse_hour(h, tz) for h in day.get("hour") or [])
            forecast = DailyForecast(
                temp_high=self._pick(day_data, "maxtemp_f", "maxtemp_c", required=False),
                temp_low=self._pick(day_data, "mintemp_f", "mintemp_c", required=False),
                precipitation_chance=_daily_chance(day_data),
                uv_index_max=day_data.get("uv"),
                hourly=hourly,
            )

            astro = day.get("astro") or {}
            astronomy = AstronomyData(
                sunrise=astro.get("sunrise"),
                sunset=astro.get("sunset"),
                moon_phase=astro.get("moon_phase"),
                moon_illumination=_to_float(astro.get("moon_illumination")),
            )
        except (KeyError, IndexError, TypeError, ValueError, ValidationError) as exc:
            raise WeatherFetchError(f"Malformed WeatherAPI payload: {exc}") from exc

        return WeatherReport(
            current=snapshot,
            forecast=forecast,
            astronomy=astronomy,
            location=LocationInfo(
                latitude=latitude,
                longitude=longitude,
                name=location.get("name"),
                region=location.get("region"),
                tz_id=location.get("tz_id"),
            ),
            fetched_at=fetched_at,
            expires_at=fetched_at + timedelta(minutes=self.cache_minutes),
        )

    def _pick(self, data: dict, imperial_key: str, metric_key: str, required: bool = True) -> Optional[float]:
        key = imperial_key if self._imperial else metric_key
        if required:
            return float(data[key])
        value = data.get(key)
        return float(value) if value is not None else None

    def _parse_hour(self, hour: dict, tz: ZoneInfo) -> HourlySample:
        return HourlySample(
            time=datetime.strptime(hour["time"], "%Y-%m-%d %H:%M").replace(tzinfo=tz),
            temperature=self._pick(hour, "temp_f", "temp_c"),
            humidity=hour.get("humidity"),
            wind_speed=self._pick(hour, "wind_mph", "wind_kph", required=False),
            condition=(hour.get("condition") or {}).get("text", ""),
            chance_of_rain=hour.get("chance_of_rain"),
            chance_of_snow=hour.get("chance_of_snow"),
        )

    def _resolve_tz(self, tz_id: Optional[str]) -> ZoneInfo:
        if tz_id:
            try:
                return ZoneInfo(tz_id)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning("Unknown tz_id %r from WeatherAPI; using %s", tz_id, self.tz_name)
        return ZoneInfo(self.tz_name)

    # ── Fixture / stub mode ────────────────────────────────────────────────────

    def get_fixture_response(
        self,
        latitude: float,
        longitude: float,
        now: Optional[datetime] = None,
    ) -> WeatherReport:
        """Return a synthetic report for ``now``'s local date.

        Use when UOTD_WEATHER_API_KEY is not set. Values describe a cool,
        damp morning with rain moving in around midday — enough to exercise
        the cold, wet-weather and twilight rules.
        """
        now = now or utcnow()
        local_date = to_local(now, self.tz_name).date()
        payload = _fixture_payload(local_date, self.tz_name)
        logger.info("Using fixture weather data for %s (no API key).", local_date)
        return self.parse_response(payload, latitude, longitude, fetched_at=now)


# ── Helpers ────────────────────────────────────────────────────────────────────

def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _daily_chance(day: dict) -> float:
    return float(max(day.get("daily_chance_of_rain") or 0, day.get("daily_chance_of_snow") or 0))


# Hour → (temp_f, humidity, wind_mph, condition, chance_of_rain)
_FIXTURE_HOURS: tuple[tuple[float, int, float, str, int], ...] = (
    (38.0, 85, 4.0, "Clear", 0), (37.5, 86, 4.0, "Clear", 0),
    (37.0, 87, 3.5, "Clear", 0), (36.5, 88, 3.0, "Clear", 0),
    (36.0, 88, 3.0, "Clear", 0), (36.0, 89, 3.5, "Mist", 5),
    (37.0, 88, 4.5, "Mist", 5), (39.0, 84, 6.0, "Partly cloudy", 10),
    (41.0, 80, 8.0, "Partly cloudy", 10), (43.0, 76, 9.0, "Overcast", 20),
    (44.0, 74, 11.0, "Overcast", 35), (45.0, 78, 12.0, "Patchy rain nearby", 60),
    (45.5, 82, 14.0, "Light rain", 75), (45.0, 85, 15.0, "Moderate rain", 85),
    (44.5, 86, 13.0, "Light rain", 70), (44.0, 84, 11.0, "Overcast", 40),
    (43.0, 82, 9.0, "Overcast", 25), (41.5, 82, 7.0, "Partly cloudy", 10),
    (40.0, 83, 6.0, "Partly cloudy", 5), (39.0, 84, 5.0, "Clear", 0),
    (38.5, 85, 5.0, "Clear", 0), (38.0, 86, 4.5, "Clear", 0),
    (37.5, 86, 4.0, "Clear", 0), (37.0, 87, 4.0, "Clear", 0),
)


def _fixture_payload(local_date: date, tz_name: str) -> dict[str, Any]:
    """Build a ``forecast.json``-shaped payload for ``local_date``."""

    def f_to_c(value: float) -> float:
        return round((value - 32) * 5 / 9, 1)

    def mph_to_kph(value: float) -> float:
        return round(value * 1.609, 1)

    hours = []
    for hour, (temp_f, humidity, wind_mph, text, rain) in enumerate(_FIXTURE_HOURS):
        hours.append({
            "time": f"{local_date.isoformat()} {hour:02d}:00",
            "temp_f": temp_f,
            "temp_c": f_to_c(temp_f),
            "humidity": humidity,
            "wind_mph": wind_mph,
            "wind_kph": mph_to_kph(wind_mph),
            "condition": {"text": text},
            "chance_of_rain": rain,
            "chance_of_snow": 0,
        })

    return {
        "location": {"name": "Fixture", "region": "Local", "tz_id": tz_name},
        "current": {
            "temp_f": 41.0,
            "temp_c": f_to_c(41.0),
            "feelslike_f": 36.0,
            "feelslike_c": f_to_c(36.0),
            "humidity": 80,
            "wind_mph": 8.0,
            "wind_kph": mph_to_kph(8.0),
            "condition": {"text": "Partly cloudy", "code": 1003},
            "precip_in": 0.0,
            "precip_mm": 0.0,
            "uv": 1.0,
        },
        "forecast": {
            "forecastday": [{
                "date": local_date.isoformat(),
                "day": {
                    "maxtemp_f": 45.5,
                    "maxtemp_c": f_to_c(45.5),
                    "mintemp_f": 36.0,
                    "mintemp_c": f_to_c(36.0),
                    "daily_chance_of_rain": 85,
                    "daily_chance_of_snow": 0,
                    "uv": 2.0,
                },
                "astro": {
                    "sunrise": "06:45 AM",
                    "sunset": "07:30 PM",
                    "moon_phase": "Waxing Crescent",
                    "moon_illumination": "23",
                },
                "hour": hours,
            }],
        },
    }
