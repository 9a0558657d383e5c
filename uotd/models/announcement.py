"""
Uniform catalog and announcement models.

``Uniform`` is a read-only catalog entry. ``Announcement`` is the record this
core writes for the out-of-scope feed: either on recommendation approval or
when the scheduler guard fires a slot directly.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

ANNOUNCEMENT_KIND = "uotd"
PUBLISHED = "published"


class Uniform(BaseModel):
    """A Uniform Catalog entry."""

    model_config = ConfigDict(frozen=True)

    uniform_id: str
    number: str
    name: str
    description: str = ""

    @field_validator("number", mode="before")
    @classmethod
    def coerce_number(cls, v: object) -> object:
        # Catalog files sometimes carry the number as an int.
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("uniform_id", "name")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("uniform_id and name must not be empty.")
        return v


class Announcement(BaseModel):
    """A published Uniform of the Day announcement.

    Attributes:
        announcement_id: Auto-assigned DB PK; ``None`` before insertion.
        kind: Always ``"uotd"``.
        title: Display title.
        content: Body text.
        uniform_id: Catalog uniform, or ``None`` for an override.
        uniform_number: Catalog number, for display.
        uniform_name: Uniform (or override) name.
        target_slot: Meal slot key.
        target_date: Local calendar date.
        status: Always ``"published"``.
        author_id: Actor id (``"system"`` for scheduled or auto posts).
        author_name: Display name of the actor.
        weather_based: True when produced from a recommendation.
        recommendation_id: Source recommendation, if any.
        auto_published: True when approved by the auto-publish job.
        weather_condition: Condition text at recommendation time.
        weather_temp: Temperature at recommendation time.
        published_at: UTC publish instant.
    """

    model_config = ConfigDict(frozen=True)

    announcement_id: Optional[int] = None
    kind: str = ANNOUNCEMENT_KIND
    title: str
    content: str = ""
    uniform_id: Optional[str] = None
    uniform_number: Optional[str] = None
    uniform_name: Optional[str] = None
    target_slot: str
    target_date: date
    status: str = PUBLISHED
    author_id: str
    author_name: Optional[str] = None
    weather_based: bool = False
    recommendation_id: Optional[int] = None
    auto_published: bool = False
    weather_condition: Optional[str] = None
    weather_temp: Optional[float] = None
    published_at: datetime
