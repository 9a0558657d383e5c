"""
Vocabulary shared by the rule engine, the workflow and the persistence layer.

  - ``RuleEffect``           — what a matching rule does.
  - ``RecommendationStatus`` — workflow state of a recommendation.
  - ``TriggerSource``        — who started a weather check.
  - ``PRECIPITATION_KEYWORDS`` — condition-text fragments that mark an hour
    as wet when aggregating a forecast window.

Enum values are the camelCase / lowercase strings used in stored rule JSON
and in the database, so a rule document exported by the admin UI round-trips
unchanged.

This module has NO imports from any other ``uotd`` package.
"""

from enum import StrEnum


class RuleEffect(StrEnum):
    """Effect type carried by a rule."""

    ADD_ACCESSORIES = "addAccessories"
    """Contributes accessory items; every matching rule contributes."""

    UNIFORM_OVERRIDE = "uniformOverride"
    """Replaces the computed uniform outright; first match by priority wins."""

    SELECT_UNIFORM = "selectUniform"
    """Uniform-selection rule set: one rule selects one catalog uniform."""


class RecommendationStatus(StrEnum):
    """Lifecycle state of a weather recommendation."""

    PENDING = "pending"
    """Awaiting a human decision. The only non-terminal state."""

    APPROVED = "approved"
    """Approved; an announcement was written. Terminal."""

    REJECTED = "rejected"
    """Rejected with an optional reason. Terminal."""

    SUPERSEDED = "superseded"
    """Replaced by a forced re-check or by an already-published announcement."""

    EXPIRED = "expired"
    """Swept by the explicit expiry job after ``expires_at`` passed."""


# Statuses that block a new recommendation for the same (slot, date).
ACTIVE_STATUSES: frozenset[RecommendationStatus] = frozenset({
    RecommendationStatus.PENDING,
    RecommendationStatus.APPROVED,
})


class TriggerSource(StrEnum):
    """Origin of a weather check."""

    SCHEDULED = "scheduled"
    MANUAL = "manual"


SYSTEM_ACTOR = "system"

PRECIPITATION_KEYWORDS: tuple[str, ...] = (
    "rain", "snow", "sleet", "drizzle", "storm", "thunder",
)
