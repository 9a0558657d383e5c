"""
Rule and rule-evaluation models.

Rules are administrator-authored JSON documents. They are stored and imported
in camelCase (``uniformOverride``, ``precipitationChance``) and exposed here
in snake_case; ``alias_generator=to_camel`` with ``populate_by_name=True``
accepts either spelling and ``model_dump(by_alias=True)`` writes camelCase
back out.

Every model is frozen: the evaluator receives a rule set as a read-only
snapshot and never mutates it.

Condition shape::

    {
      "temperature": {"min": 40, "max": 45},
      "weather": {"types": ["rain", "storm"], "precipitationChance": {"min": 50}},
      "wind": {"min": 20},
      "humidity": {"max": 90},
      "uvIndex": {"min": 8},
      "twilight": true,
      "nighttime": false
    }
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from uotd.taxonomy.weather_taxonomy import RuleEffect

# Priority assigned to rules that do not declare one.
DEFAULT_RULE_PRIORITY = 99

_RULE_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


# ── Conditions ────────────────────────────────────────────────────────────────


class ConditionRange(BaseModel):
    """Inclusive numeric bounds; either side may be open."""

    model_config = _RULE_CONFIG

    min: Optional[float] = None
    max: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def accept_speed_keys(cls, data: Any) -> Any:
        # Older wind rules spell the bounds speedMin / speedMax.
        if isinstance(data, dict) and ("speedMin" in data or "speedMax" in data):
            data = dict(data)
            data.setdefault("min", data.pop("speedMin", None))
            data.setdefault("max", data.pop("speedMax", None))
        return data

    @model_validator(mode="after")
    def validate_bounds(self) -> "ConditionRange":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"min ({self.min}) must be <= max ({self.max}).")
        return self

    @property
    def is_open(self) -> bool:
        """True when neither bound is set."""
        return self.min is None and self.max is None

    def contains(self, value: Optional[float]) -> bool:
        """Return True when ``value`` lies within the bounds.

        A missing value only satisfies a range with no bounds at all.
        """
        if self.is_open:
            return True
        if value is None:
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class WeatherTypeCondition(BaseModel):
    """Condition-text keywords plus a precipitation-chance range."""

    model_config = _RULE_CONFIG

    types: tuple[str, ...] = ()
    precipitation_chance: Optional[ConditionRange] = None


class RuleConditions(BaseModel):
    """All condition sub-objects a rule may define. Unknown keys are ignored."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    temperature: Optional[ConditionRange] = None
    weather: Optional[WeatherTypeCondition] = None
    wind: Optional[ConditionRange] = None
    humidity: Optional[ConditionRange] = None
    uv_index: Optional[ConditionRange] = None
    twilight: Optional[bool] = None
    nighttime: Optional[bool] = None

    @property
    def is_empty(self) -> bool:
        """True when no recognized condition key was supplied."""
        return all(
            getattr(self, name) is None for name in type(self).model_fields
        )


# ── Effects ───────────────────────────────────────────────────────────────────


class AccessoryItem(BaseModel):
    """One accessory contributed by a rule.

    ``from_rule`` / ``from_rule_name`` record provenance and are filled in by
    the evaluator when the item is merged into a result.
    """

    model_config = _RULE_CONFIG

    name: str
    required: bool = False
    reason: Optional[str] = None
    note: Optional[str] = None
    from_rule: Optional[str] = None
    from_rule_name: Optional[str] = None

    @model_validator(mode="after")
    def validate_name(self) -> "AccessoryItem":
        if not self.name.strip():
            raise ValueError("Accessory name must not be empty.")
        return self


class UniformOverride(BaseModel):
    """Replacement uniform declared by a ``uniformOverride`` rule."""

    model_config = _RULE_CONFIG

    name: str
    description: str = ""
    items: tuple[str, ...] = ()
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None


# ── Rules ─────────────────────────────────────────────────────────────────────


class Rule(BaseModel):
    """A single condition → effect rule.

    Attributes:
        id: Stable rule identifier, e.g. ``"extreme-cold"``.
        name: Display name.
        description: Optional longer description.
        enabled: Disabled rules are never evaluated.
        priority: Lower values take precedence; ``None`` sorts as 99.
        effect: Effect type (``"type"`` in stored JSON).
        conditions: Condition sub-objects, ANDed together.
        accessories: Items added by an ``addAccessories`` rule.
        uniform_override: Replacement uniform of a ``uniformOverride`` rule.
        uniform_id: Catalog uniform chosen by a ``selectUniform`` rule.
        notes: Free-text administrator notes.
    """

    model_config = _RULE_CONFIG

    id: str
    name: str
    description: str = ""
    enabled: bool = True
    priority: Optional[int] = None
    effect: RuleEffect = Field(default=RuleEffect.ADD_ACCESSORIES, alias="type")
    conditions: RuleConditions = RuleConditions()
    accessories: tuple[AccessoryItem, ...] = ()
    uniform_override: Optional[UniformOverride] = None
    uniform_id: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_payload(self) -> "Rule":
        if self.effect == RuleEffect.UNIFORM_OVERRIDE and self.uniform_override is None:
            raise ValueError(f"Rule '{self.id}' is a uniformOverride rule without a uniformOverride payload.")
        if self.effect == RuleEffect.SELECT_UNIFORM and not self.uniform_id:
            raise ValueError(f"Rule '{self.id}' is a selectUniform rule without a uniformId.")
        return self

    @property
    def effective_priority(self) -> int:
        return self.priority if self.priority is not None else DEFAULT_RULE_PRIORITY

    def summary(self) -> "MatchedRuleSummary":
        """Audit/display summary of this rule."""
        return MatchedRuleSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            priority=self.effective_priority,
            effect=self.effect,
        )


class MatchedRuleSummary(BaseModel):
    """Compact record of a rule that matched during one evaluation."""

    model_config = _RULE_CONFIG

    id: str
    name: str
    description: str = ""
    priority: Optional[int] = None
    effect: RuleEffect = Field(alias="type")


class UniformRuleSet(BaseModel):
    """Uniform-selection rules plus the fallback uniform."""

    model_config = _RULE_CONFIG

    rules: tuple[Rule, ...] = ()
    default_uniform_id: Optional[str] = None

    @property
    def has_rules(self) -> bool:
        return len(self.rules) > 0


# ── Evaluation results ────────────────────────────────────────────────────────


class TwilightEcho(BaseModel):
    """Twilight flags echoed on an evaluation result."""

    model_config = _RULE_CONFIG

    is_twilight: bool = False
    is_nighttime: bool = False
    sunrise: Optional[str] = None
    sunset: Optional[str] = None


class AccessoryEvaluation(BaseModel):
    """Result of evaluating an accessory rule set.

    Attributes:
        matched_rules: Every matched rule, in evaluation (priority) order.
        accessories: Merged accessories, deduplicated by name.
        uniform_override: First matching override, or ``None``.
        twilight: Twilight flags the evaluation used, if any.
    """

    model_config = _RULE_CONFIG

    matched_rules: tuple[MatchedRuleSummary, ...] = ()
    accessories: tuple[AccessoryItem, ...] = ()
    uniform_override: Optional[UniformOverride] = None
    twilight: Optional[TwilightEcho] = None

    @property
    def has_recommendations(self) -> bool:
        return bool(self.accessories) or self.uniform_override is not None

    @property
    def required_accessories(self) -> list[AccessoryItem]:
        return [a for a in self.accessories if a.required]

    @property
    def optional_accessories(self) -> list[AccessoryItem]:
        return [a for a in self.accessories if not a.required]


class UniformSelection(BaseModel):
    """Result of evaluating the uniform-selection rule set.

    ``uniform_id`` is ``None`` when no rule matched and no default exists.
    """

    model_config = _RULE_CONFIG

    uniform_id: Optional[str] = None
    matched_rule: Optional[MatchedRuleSummary] = None
    used_default: bool = False

    @property
    def has_uniform(self) -> bool:
        return self.uniform_id is not None
