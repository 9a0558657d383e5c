"""
Condition rule evaluator.

One generic evaluator drives both rule sets; only the resolution strategy
differs:

    ACCUMULATE  : accessory rule set. Every matching rule is recorded;
                  the first ``uniformOverride`` match wins; accessories from
                  ``addAccessories`` matches are merged in priority order and
                  de-duplicated by name (first occurrence keeps its metadata).
    FIRST_MATCH : uniform-selection rule set. Evaluation stops at the first
                  match; with no match the rule set's default uniform is used.

Ordering
--------
Only enabled rules are evaluated, sorted by ascending priority (missing
priority = 99). The sort is stable, so equal priorities keep input order.

Matching
--------
A rule matches when every condition sub-object it defines holds:

    temperature / wind / humidity / uvIndex {min, max}
        Inclusive bounds. A missing observation never satisfies a bound.
    weather {types, precipitationChance {min, max}}
        Precipitation chance must lie in the range. With ``types`` set the
        condition text must contain one of them (case-insensitive), unless
        precipitation chance >= ``PRECIPITATION_FALLBACK_THRESHOLD``.
    twilight / nighttime : true
        Requires the matching twilight flag. ``false`` has no effect.

A rule with no recognized condition keys always matches.

All functions here are pure: rule sets arrive as explicit snapshots and
nothing is read from the database or config.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Iterable, Optional, Sequence

from uotd.engine.defaults import DEFAULT_ACCESSORY_RULES
from uotd.models.rules import (
    AccessoryEvaluation,
    AccessoryItem,
    ConditionRange,
    Rule,
    RuleConditions,
    TwilightEcho,
    UniformOverride,
    UniformRuleSet,
    UniformSelection,
    WeatherTypeCondition,
)
from uotd.models.weather import TwilightStatus, WeatherContext
from uotd.taxonomy.weather_taxonomy import RuleEffect

logger = logging.getLogger(__name__)

# Precipitation chance (%) at which a weather-type condition matches even
# when the condition text carries none of the listed keywords.
PRECIPITATION_FALLBACK_THRESHOLD = 50.0

NO_ACCESSORIES_TEXT = "No additional accessories recommended"


class Strategy(StrEnum):
    """Effect-resolution strategy for ``find_matching_rules``."""

    ACCUMULATE = "accumulate"
    FIRST_MATCH = "first_match"


# ── Ordering ──────────────────────────────────────────────────────────────────


def sort_rules(rules: Iterable[Rule]) -> list[Rule]:
    """Return enabled rules in ascending priority order (stable)."""
    return sorted(
        (r for r in rules if r.enabled),
        key=lambda r: r.effective_priority,
    )


# ── Condition matching ────────────────────────────────────────────────────────


def _matches_range(value: Optional[float], bounds: Optional[ConditionRange]) -> bool:
    if bounds is None:
        return True
    return bounds.contains(value)


def _matches_weather(
    context: WeatherContext,
    weather: WeatherTypeCondition,
    precipitation_threshold: float,
) -> bool:
    chance = context.precipitation_chance or 0.0

    if weather.precipitation_chance is not None and not weather.precipitation_chance.contains(chance):
        return False

    keywords = [t.lower() for t in weather.types if t and t.strip()]
    if keywords:
        text = (context.condition or "").lower()
        type_match = any(k in text for k in keywords)
        if not type_match and chance < precipitation_threshold:
            return False

    return True


def _matches_light(
    conditions: RuleConditions,
    twilight: Optional[TwilightStatus],
) -> bool:
    if conditions.twilight and not (twilight is not None and twilight.is_twilight):
        return False
    if conditions.nighttime and not (twilight is not None and twilight.is_nighttime):
        return False
    return True


def rule_matches(
    rule: Rule,
    context: WeatherContext,
    twilight: Optional[TwilightStatus] = None,
    precipitation_threshold: float = PRECIPITATION_FALLBACK_THRESHOLD,
) -> bool:
    """Return True when every condition ``rule`` defines holds.

    Args:
        rule:                    Rule to test (``enabled`` is not consulted).
        context:                 Observed weather.
        twilight:                Twilight flags; ``None`` fails any
                                 ``twilight``/``nighttime: true`` condition.
        precipitation_threshold: Weather-type fallback threshold.
    """
    cond = rule.conditions
    if cond.is_empty:
        return True

    if not _matches_light(cond, twilight):
        return False
    if not _matches_range(context.temperature, cond.temperature):
        return False
    if cond.weather is not None and not _matches_weather(context, cond.weather, precipitation_threshold):
        return False
    if not _matches_range(context.wind_speed, cond.wind):
        return False
    if not _matches_range(context.humidity, cond.humidity):
        return False
    if not _matches_range(context.uv_index, cond.uv_index):
        return False
    return True


def find_matching_rules(
    rules: Iterable[Rule],
    context: WeatherContext,
    twilight: Optional[TwilightStatus] = None,
    strategy: Strategy = Strategy.ACCUMULATE,
    precipitation_threshold: float = PRECIPITATION_FALLBACK_THRESHOLD,
) -> list[Rule]:
    """Evaluate enabled rules in priority order.

    Returns:
        Matching rules in evaluation order. With ``FIRST_MATCH`` the list
        holds at most one rule.
    """
    matched: list[Rule] = []
    for rule in sort_rules(rules):
        if rule_matches(rule, context, twilight, precipitation_threshold):
            matched.append(rule)
            if strategy == Strategy.FIRST_MATCH:
                break
    return matched


# ── Accessory rule set ────────────────────────────────────────────────────────


def evaluate_accessory_rules(
    context: WeatherContext,
    twilight: Optional[TwilightStatus] = None,
    rules: Optional[Sequence[Rule]] = None,
    precipitation_threshold: float = PRECIPITATION_FALLBACK_THRESHOLD,
) -> AccessoryEvaluation:
    """Resolve accessories and the uniform override for ``context``.

    Args:
        context:                 Observed (or forecast) weather.
        twilight:                Twilight flags for the check instant.
        rules:                   Accessory rule snapshot. ``None`` selects
                                 ``DEFAULT_ACCESSORY_RULES``.
        precipitation_threshold: Weather-type fallback threshold.

    Returns:
        ``AccessoryEvaluation`` with matched rules in priority order.
    """
    if rules is None:
        rules = DEFAULT_ACCESSORY_RULES

    matched = find_matching_rules(
        rules, context, twilight, Strategy.ACCUMULATE, precipitation_threshold
    )

    override: Optional[UniformOverride] = None
    accessories: list[AccessoryItem] = []
    seen: set[str] = set()

    for rule in matched:
        if rule.effect == RuleEffect.UNIFORM_OVERRIDE:
            if override is None and rule.uniform_override is not None:
                override = rule.uniform_override.model_copy(
                    update={"rule_id": rule.id, "rule_name": rule.name}
                )
        elif rule.effect == RuleEffect.ADD_ACCESSORIES:
            for item in rule.accessories:
                if item.name in seen:
                    continue
                seen.add(item.name)
                accessories.append(
                    item.model_copy(update={"from_rule": rule.id, "from_rule_name": rule.name})
                )

    echo = None
    if twilight is not None:
        echo = TwilightEcho(
            is_twilight=twilight.is_twilight,
            is_nighttime=twilight.is_nighttime,
            sunrise=twilight.sunrise,
            sunset=twilight.sunset,
        )

    logger.debug(
        "Accessory rules: %d matched, %d accessories, override=%s",
        len(matched), len(accessories), override.name if override else None,
    )
    return AccessoryEvaluation(
        matched_rules=tuple(r.summary() for r in matched),
        accessories=tuple(accessories),
        uniform_override=override,
        twilight=echo,
    )


# ── Uniform-selection rule set ────────────────────────────────────────────────


def select_uniform(
    context: WeatherContext,
    rule_set: UniformRuleSet,
    twilight: Optional[TwilightStatus] = None,
    precipitation_threshold: float = PRECIPITATION_FALLBACK_THRESHOLD,
) -> UniformSelection:
    """Pick the uniform for ``context`` from the uniform-selection rules.

    The first matching rule (by priority) wins. Without a match the rule
    set's ``default_uniform_id`` is used; without a default the selection is
    empty, which callers treat as "no recommendation", not an error.
    """
    matched = find_matching_rules(
        rule_set.rules, context, twilight, Strategy.FIRST_MATCH, precipitation_threshold
    )
    if matched:
        rule = matched[0]
        return UniformSelection(uniform_id=rule.uniform_id, matched_rule=rule.summary())

    if rule_set.default_uniform_id:
        return UniformSelection(uniform_id=rule_set.default_uniform_id, used_default=True)

    return UniformSelection()


# ── Display helpers ───────────────────────────────────────────────────────────


def _fmt(value: float) -> str:
    return f"{value:g}"


def _describe_range(label: str, bounds: Optional[ConditionRange], unit: str = "") -> Optional[str]:
    if bounds is None or bounds.is_open:
        return None
    if bounds.min is not None and bounds.max is not None:
        return f"{label} {_fmt(bounds.min)}-{_fmt(bounds.max)}{unit}"
    if bounds.min is not None:
        return f"{label} >= {_fmt(bounds.min)}{unit}"
    return f"{label} <= {_fmt(bounds.max)}{unit}"


def describe_conditions(conditions: Optional[RuleConditions], units: str = "imperial") -> str:
    """Human-readable summary of a rule's conditions.

    Example: ``"Temp 40-45F, Wind >= 20 mph, Twilight"``.
    """
    if conditions is None or conditions.is_empty:
        return "Any conditions"

    temp_unit = "C" if units == "metric" else "F"
    speed_unit = " km/h" if units == "metric" else " mph"

    parts = [
        _describe_range("Temp", conditions.temperature, temp_unit),
        _describe_range("Humidity", conditions.humidity, "%"),
        _describe_range("Wind", conditions.wind, speed_unit),
    ]
    if conditions.weather is not None:
        if conditions.weather.types:
            parts.append(f"Precip: {', '.join(conditions.weather.types)}")
        parts.append(_describe_range("Precip chance", conditions.weather.precipitation_chance, "%"))
    parts.append(_describe_range("UV", conditions.uv_index))
    if conditions.twilight:
        parts.append("Twilight")
    if conditions.nighttime:
        parts.append("Nighttime")

    text = ", ".join(p for p in parts if p)
    return text or "Any conditions"


def format_accessories(evaluation: AccessoryEvaluation) -> str:
    """Display text for an evaluation result.

    Lines, in order: ``Uniform: <override>``, its description in parentheses,
    ``Required: ...``, ``Recommended: ...``.
    """
    parts: list[str] = []

    if evaluation.uniform_override is not None:
        parts.append(f"Uniform: {evaluation.uniform_override.name}")
        if evaluation.uniform_override.description:
            parts.append(f"({evaluation.uniform_override.description})")

    required = [a.name for a in evaluation.required_accessories]
    optional = [a.name for a in evaluation.optional_accessories]
    if required:
        parts.append(f"Required: {', '.join(required)}")
    if optional:
        parts.append(f"Recommended: {', '.join(optional)}")

    return "\n".join(parts) if parts else NO_ACCESSORIES_TEXT
