"""Tests for rule, weather, recommendation and catalog model validation."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from uotd.models.announcement import Uniform
from uotd.models.recommendation import CreateOutcome
from uotd.models.rules import ConditionRange, Rule, UniformRuleSet
from uotd.models.schedule import ScheduleSlot
from uotd.models.weather import HourlySample, WeatherContext
from uotd.taxonomy.weather_taxonomy import RecommendationStatus, RuleEffect


class TestConditionRange:
    def test_open_range_matches_anything(self):
        assert ConditionRange().contains(None)
        assert ConditionRange().contains(-40)

    def test_inverted_bounds_rejected(self):
        with pytest.raises(ValidationError):
            ConditionRange(min=50, max=40)


class TestRule:
    def test_camel_case_round_trip(self):
        doc = {
            "id": "wet",
            "name": "Wet",
            "priority": 1,
            "type": "uniformOverride",
            "conditions": {"weather": {"types": ["rain"], "precipitationChance": {"min": 50}}},
            "uniformOverride": {"name": "Wet Weather Gear", "items": ["OCP", "ECWS"]},
        }
        rule = Rule.model_validate(doc)
        assert rule.effect == RuleEffect.UNIFORM_OVERRIDE
        assert rule.conditions.weather.precipitation_chance.min == 50

        dumped = rule.model_dump(mode="json", by_alias=True, exclude_none=True)
        assert dumped["type"] == "uniformOverride"
        assert dumped["uniformOverride"]["name"] == "Wet Weather Gear"
        assert dumped["conditions"]["weather"]["precipitationChance"] == {"min": 50.0}

    def test_default_effect_and_priority(self):
        rule = Rule(id="r", name="R")
        assert rule.effect == RuleEffect.ADD_ACCESSORIES
        assert rule.effective_priority == 99

    def test_summary_uses_effective_priority(self):
        assert Rule(id="r", name="R").summary().priority == 99
        assert Rule(id="r", name="R", priority=0).summary().priority == 0

    def test_override_rule_requires_payload(self):
        with pytest.raises(ValidationError, match="uniformOverride"):
            Rule.model_validate({"id": "r", "name": "R", "type": "uniformOverride"})

    def test_select_rule_requires_uniform(self):
        with pytest.raises(ValidationError, match="uniformId"):
            Rule.model_validate({"id": "r", "name": "R", "type": "selectUniform"})

    def test_unknown_condition_keys_ignored(self):
        rule = Rule.model_validate({"id": "r", "name": "R", "conditions": {"pollen": {"min": 3}}})
        assert rule.conditions.is_empty

    def test_blank_accessory_name_rejected(self):
        with pytest.raises(ValidationError):
            Rule.model_validate({"id": "r", "name": "R", "accessories": [{"name": "  "}]})

    def test_frozen(self):
        rule = Rule(id="r", name="R")
        with pytest.raises(ValidationError):
            rule.name = "changed"

    def test_rule_set_has_rules(self):
        assert not UniformRuleSet().has_rules
        rule_set = UniformRuleSet.model_validate(
            {"rules": [{"id": "r", "name": "R", "type": "selectUniform", "uniformId": "u"}],
             "defaultUniformId": "u"}
        )
        assert rule_set.has_rules
        assert rule_set.default_uniform_id == "u"


class TestWeatherModels:
    def test_hourly_precipitation_chance_takes_worse(self):
        sample = HourlySample(
            time=datetime(2025, 1, 10, 11, tzinfo=timezone.utc),
            temperature=30,
            chance_of_rain=None,
            chance_of_snow=40,
        )
        assert sample.precipitation_chance == 40

    def test_context_defaults(self):
        ctx = WeatherContext()
        assert ctx.precipitation_chance == 0.0
        assert ctx.is_forecast is False


class TestRecommendation:
    def test_blank_slot_rejected(self, make_recommendation):
        with pytest.raises(ValidationError):
            make_recommendation(target_slot="  ")

    def test_expiry_boundary(self, make_recommendation):
        rec = make_recommendation(expiry_hours=1)
        assert not rec.is_expired(rec.created_at + timedelta(minutes=59))
        assert rec.is_expired(rec.created_at + timedelta(hours=1))

    def test_defaults(self, make_recommendation):
        rec = make_recommendation()
        assert rec.status == RecommendationStatus.PENDING
        assert rec.is_pending
        assert rec.target_date == date(2025, 1, 10)

    def test_create_outcome_flags(self):
        assert CreateOutcome(status="created", recommendation_id=1).created
        assert CreateOutcome(status="skipped", recommendation_id=1).skipped


class TestCatalogModels:
    def test_uniform_number_coerced(self):
        assert Uniform(uniform_id="u", number=3, name="AGSU").number == "3"

    def test_uniform_requires_name(self):
        with pytest.raises(ValidationError):
            Uniform(uniform_id="u", number="1", name="")

    @pytest.mark.parametrize("value,expected", [("06:30", (6, 30)), ("1730", (17, 30))])
    def test_slot_time_forms(self, value, expected):
        assert ScheduleSlot(slot_key="lunch", time=value).slot_time == expected

    def test_slot_time_invalid(self):
        with pytest.raises(ValidationError):
            ScheduleSlot(slot_key="lunch", time="25:00")

    def test_empty_slot_time_is_unset(self):
        assert ScheduleSlot(slot_key="lunch", time="").time is None
