"""
Forecast window aggregator: hourly samples + a future window → one sample.

Selection
---------
Each hourly sample covers ``[time, time + 1h)``. A sample is selected when
that span overlaps ``[now + start_min, now + end_min)``::

    sample.time < window_end  AND  sample.time + 1h > window_start

Fallback when nothing overlaps: the first sample strictly after ``now``;
if none lies in the future, the last sample. Either way ``hours_used = 1``.

Aggregation over the selected samples
-------------------------------------
    temperature          : mean, rounded to 1 decimal (what people experience)
    humidity             : mean of reported values, rounded to 1 decimal
    wind_speed           : max of reported values (worst case)
    precipitation_chance : max of per-sample max(rain, snow), missing = 0
    condition            : first selected text containing a precipitation
                           keyword, else the first selected text

``None`` is returned only when there are no hourly samples at all.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence

from uotd.models.weather import ForecastWindow, HourlySample
from uotd.taxonomy.weather_taxonomy import PRECIPITATION_KEYWORDS

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_START_MIN = 30
DEFAULT_WINDOW_END_MIN = 90

_BUCKET = timedelta(hours=1)


def is_precipitation_condition(condition: Optional[str]) -> bool:
    """True when ``condition`` contains any precipitation keyword (case-insensitive)."""
    if not condition:
        return False
    text = condition.lower()
    return any(keyword in text for keyword in PRECIPITATION_KEYWORDS)


def _mean(values: Sequence[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return round(sum(present) / len(present), 1)


def _max(values: Sequence[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    return max(present) if present else None


def _pick_condition(samples: Sequence[HourlySample]) -> str:
    for sample in samples:
        if is_precipitation_condition(sample.condition):
            return sample.condition
    return samples[0].condition


def _fallback_sample(
    hourly: Sequence[HourlySample],
    now: datetime,
) -> HourlySample:
    for sample in hourly:
        if sample.time > now:
            return sample
    return hourly[-1]


def get_forecast_for_window(
    hourly: Sequence[HourlySample],
    now: datetime,
    minutes_ahead_start: int = DEFAULT_WINDOW_START_MIN,
    minutes_ahead_end: int = DEFAULT_WINDOW_END_MIN,
) -> Optional[ForecastWindow]:
    """Aggregate the hourly forecast over a future window.

    Args:
        hourly:              Hourly samples in chronological order.
        now:                 Reference instant (timezone-aware, same zone
                             family as the sample times).
        minutes_ahead_start: Window start, minutes after ``now``.
        minutes_ahead_end:   Window end (exclusive), minutes after ``now``.

    Returns:
        ``ForecastWindow``, or ``None`` if ``hourly`` is empty.
    """
    if not hourly:
        return None

    window_start = now + timedelta(minutes=minutes_ahead_start)
    window_end = now + timedelta(minutes=minutes_ahead_end)

    selected = [
        s for s in hourly
        if s.time < window_end and s.time + _BUCKET > window_start
    ]

    if not selected:
        sample = _fallback_sample(hourly, now)
        logger.debug(
            "No hourly bucket overlaps %s–%s; falling back to %s",
            window_start.isoformat(), window_end.isoformat(), sample.time.isoformat(),
        )
        return ForecastWindow(
            temperature=sample.temperature,
            humidity=sample.humidity,
            wind_speed=sample.wind_speed,
            condition=sample.condition,
            precipitation_chance=sample.precipitation_chance,
            forecast_time=sample.time,
            window_start=window_start,
            window_end=window_end,
            hours_used=1,
        )

    temperature = _mean([s.temperature for s in selected])
    return ForecastWindow(
        temperature=temperature if temperature is not None else selected[0].temperature,
        humidity=_mean([s.humidity for s in selected]),
        wind_speed=_max([s.wind_speed for s in selected]),
        condition=_pick_condition(selected),
        precipitation_chance=max(s.precipitation_chance for s in selected),
        forecast_time=selected[0].time,
        window_start=window_start,
        window_end=window_end,
        hours_used=len(selected),
    )
