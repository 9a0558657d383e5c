"""
Announcement text for approved recommendations and scheduled slots.

Title
-----
    custom title                       if the approver supplied one
    "Uniform #<number> - <name>"       catalog uniform
    "<override name>"                  when a uniform override applied

Content (blank-line separated, empty parts dropped)
-------
    1. uniform description (override description when overridden)
    2. weather summary, e.g.
       "Current weather: 42°, Light rain. Humidity: 80%, Wind: 12 mph.
        60% chance of precipitation."   (chance only when > 20%)
    3. accessory summary ("Required: ..." / "Recommended: ...")
    4. custom content
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from uotd.engine.rule_evaluator import format_accessories
from uotd.models.announcement import Announcement, Uniform
from uotd.models.recommendation import Recommendation
from uotd.models.rules import AccessoryEvaluation
from uotd.models.weather import WeatherContext
from uotd.taxonomy.weather_taxonomy import SYSTEM_ACTOR

# Precipitation chance (%) above which the summary mentions it.
PRECIP_MENTION_THRESHOLD = 20.0

DEFAULT_CONDITION_TEXT = "Clear"

SCHEDULED_TITLE_PREFIX = "Uniform of the Day"


def _whole(value: Optional[float]) -> str:
    return str(round(value)) if value is not None else "--"


def build_weather_summary(weather: WeatherContext, speed_unit: str = "mph") -> str:
    """One-paragraph weather summary for announcement content."""
    condition = weather.condition or DEFAULT_CONDITION_TEXT
    summary = (
        f"Current weather: {_whole(weather.temperature)}°, {condition}. "
        f"Humidity: {_whole(weather.humidity)}%, "
        f"Wind: {_whole(weather.wind_speed)} {speed_unit}."
    )
    if weather.precipitation_chance > PRECIP_MENTION_THRESHOLD:
        summary += f" {round(weather.precipitation_chance)}% chance of precipitation."
    return summary


def build_title(rec: Recommendation, custom_title: Optional[str] = None) -> str:
    if custom_title:
        return custom_title
    if rec.uniform_override is not None:
        return rec.uniform_override.name
    return f"Uniform #{rec.uniform_number} - {rec.uniform_name}"


def build_content(
    rec: Recommendation,
    uniform: Optional[Uniform] = None,
    custom_content: Optional[str] = None,
    speed_unit: str = "mph",
) -> str:
    """Assemble announcement content for an approved recommendation."""
    parts: list[str] = []

    if rec.uniform_override is not None:
        if rec.uniform_override.description:
            parts.append(rec.uniform_override.description)
    elif uniform is not None and uniform.description:
        parts.append(uniform.description)

    parts.append(build_weather_summary(rec.weather, speed_unit))

    if rec.accessories:
        parts.append(format_accessories(AccessoryEvaluation(accessories=rec.accessories)))

    if custom_content:
        parts.append(custom_content)

    return "\n\n".join(parts).strip()


def build_recommendation_announcement(
    rec: Recommendation,
    uniform: Optional[Uniform],
    author_id: str,
    published_at: datetime,
    author_name: Optional[str] = None,
    custom_title: Optional[str] = None,
    custom_content: Optional[str] = None,
    auto_published: bool = False,
    speed_unit: str = "mph",
) -> Announcement:
    """Announcement written when ``rec`` is approved."""
    return Announcement(
        title=build_title(rec, custom_title),
        content=build_content(rec, uniform, custom_content, speed_unit),
        uniform_id=rec.uniform_id,
        uniform_number=rec.uniform_number,
        uniform_name=rec.uniform_name,
        target_slot=rec.target_slot,
        target_date=rec.target_date,
        author_id=author_id,
        author_name=author_name or author_id,
        weather_based=True,
        recommendation_id=rec.recommendation_id,
        auto_published=auto_published,
        weather_condition=rec.weather.condition or None,
        weather_temp=rec.weather.temperature,
        published_at=published_at,
    )


def build_scheduled_announcement(
    uniform: Uniform,
    slot_key: str,
    published_at: datetime,
    target_date: date,
) -> Announcement:
    """Announcement written when the scheduler guard fires a slot directly."""
    return Announcement(
        title=f"{SCHEDULED_TITLE_PREFIX}: {uniform.number} - {uniform.name}",
        content=uniform.description,
        uniform_id=uniform.uniform_id,
        uniform_number=uniform.number,
        uniform_name=uniform.name,
        target_slot=slot_key,
        target_date=target_date,
        author_id=SYSTEM_ACTOR,
        author_name=SYSTEM_ACTOR,
        published_at=published_at,
    )
