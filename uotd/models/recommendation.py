"""
Weather recommendation models.

A ``Recommendation`` is the persisted proposal produced by one weather check:
the weather it was computed from, the selected uniform (or the override that
replaced it), the merged accessories, and the approval state. Rows are never
deleted; state only moves forward from ``pending``.

``CreateOutcome`` is what the workflow returns from a create call — either
the id of a freshly inserted pending recommendation, or the id of the
existing active one that caused the call to be skipped.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from uotd.models.rules import AccessoryItem, MatchedRuleSummary, UniformOverride
from uotd.models.weather import TwilightStatus, WeatherContext, WeatherSnapshot
from uotd.taxonomy.weather_taxonomy import RecommendationStatus, TriggerSource

CreateStatus = Literal["created", "skipped"]


class Recommendation(BaseModel):
    """A weather-driven uniform proposal awaiting (or past) a human decision.

    Attributes:
        recommendation_id: Auto-assigned DB PK; ``None`` before insertion.
        status: Workflow state.
        target_slot: Meal slot key, e.g. ``"lunch"``.
        target_date: Local calendar date the recommendation is for.
        uniform_id: Catalog uniform id; ``None`` when an override applies.
        uniform_number: Catalog uniform number, for display.
        uniform_name: Uniform name (override name when overridden).
        uniform_override: Override that replaced the selected uniform.
        weather: Observation the rules were evaluated against.
        current_weather: Current conditions at check time.
        twilight: Twilight flags at check time.
        matched_rule_id: Uniform-selection rule that matched, if any.
        matched_rule_name: Name of that rule.
        accessories: Merged accessory list.
        accessory_rules: Accessory rules that matched, in priority order.
        triggered_by: Scheduled tick or manual trigger.
        created_by: Actor id that started the check.
        created_at: UTC creation instant.
        expires_at: UTC instant after which the proposal is stale.
        approved_by / approved_at: Approver identity and time.
        rejected_by / rejected_at: Rejecter identity and time.
        rejection_reason: Optional free text.
        custom_title / custom_content: Approver overrides for the announcement.
        announcement_id: Announcement written on approval.
        superseded_by / superseded_at: Actor and time of supersession.
        auto_published: True when approved by the auto-publish job.
    """

    model_config = ConfigDict(frozen=True)

    recommendation_id: Optional[int] = None
    status: RecommendationStatus = RecommendationStatus.PENDING
    target_slot: str
    target_date: date
    uniform_id: Optional[str] = None
    uniform_number: Optional[str] = None
    uniform_name: Optional[str] = None
    uniform_override: Optional[UniformOverride] = None
    weather: WeatherContext
    current_weather: Optional[WeatherSnapshot] = None
    twilight: Optional[TwilightStatus] = None
    matched_rule_id: Optional[str] = None
    matched_rule_name: Optional[str] = None
    accessories: tuple[AccessoryItem, ...] = ()
    accessory_rules: tuple[MatchedRuleSummary, ...] = ()
    triggered_by: TriggerSource = TriggerSource.MANUAL
    created_by: str
    created_at: datetime
    expires_at: datetime
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    custom_title: Optional[str] = None
    custom_content: Optional[str] = None
    announcement_id: Optional[int] = None
    superseded_by: Optional[str] = None
    superseded_at: Optional[datetime] = None
    auto_published: bool = False

    @field_validator("target_slot")
    @classmethod
    def validate_slot_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("target_slot must not be empty.")
        return v

    @property
    def is_pending(self) -> bool:
        return self.status == RecommendationStatus.PENDING

    def is_expired(self, now: datetime) -> bool:
        """True once ``now`` has reached ``expires_at`` (status is not consulted)."""
        return now >= self.expires_at


class CreateOutcome(BaseModel):
    """Result of a create call.

    Attributes:
        status: ``"created"`` or ``"skipped"``.
        recommendation_id: New row id, or the id of the blocking row.
        existing_status: Status of the blocking row when skipped.
        superseded_ids: Pending rows superseded by a forced create.
    """

    model_config = ConfigDict(frozen=True)

    status: CreateStatus
    recommendation_id: Optional[int] = None
    existing_status: Optional[RecommendationStatus] = None
    superseded_ids: tuple[int, ...] = ()

    @property
    def created(self) -> bool:
        return self.status == "created"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"
