"""
Tests for the repository layer.

What we test
------------
1. Recommendations round-trip through JSON columns intact.
2. Conditional state transitions only move pending rows.
3. The unique pending index rejects a second pending row per slot/date.
4. ``claim_slot`` succeeds once per local date.
5. Rule store: missing documents, invalid stored rules, default rule type.
6. Weather cache freshness.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone

import pytest

from uotd.db.repositories.announcement_repo import AnnouncementRepository
from uotd.db.repositories.catalog_repo import UniformRepository
from uotd.db.repositories.recommendation_repo import RecommendationRepository
from uotd.db.repositories.schedule_repo import ScheduleSlotRepository
from uotd.db.repositories.settings_repo import (
    ACCESSORY_RULES_KEY,
    WEATHER_RULES_KEY,
    RuleStoreRepository,
    SettingsRepository,
    WeatherCacheRepository,
)
from uotd.models.announcement import Announcement, Uniform
from uotd.models.rules import AccessoryItem, MatchedRuleSummary, Rule, UniformOverride, UniformRuleSet
from uotd.models.schedule import ScheduleSlot
from uotd.models.weather import DailyForecast, LocationInfo, WeatherReport, WeatherSnapshot
from uotd.taxonomy.weather_taxonomy import RecommendationStatus, RuleEffect

NOW = datetime(2025, 1, 10, 16, 30, tzinfo=timezone.utc)


# ── Recommendations ───────────────────────────────────────────────────────────

class TestRecommendationRepository:
    def test_insert_and_get_round_trip(self, in_memory_db, make_recommendation):
        repo = RecommendationRepository(in_memory_db)
        rec = make_recommendation(
            uniform_id=None,
            uniform_number=None,
            uniform_name="Wet Weather Gear",
            uniform_override=UniformOverride(name="Wet Weather Gear", items=("OCP", "ECWS")),
            accessories=(AccessoryItem(name="Gloves", required=True),),
            accessory_rules=(
                MatchedRuleSummary(
                    id="wet", name="Wet", priority=1, effect=RuleEffect.UNIFORM_OVERRIDE
                ),
            ),
        )
        rec_id = repo.insert(rec)

        loaded = repo.get_by_id(rec_id)
        assert loaded is not None
        assert loaded.recommendation_id == rec_id
        assert loaded.status == RecommendationStatus.PENDING
        assert loaded.uniform_override.items == ("OCP", "ECWS")
        assert loaded.accessories[0].name == "Gloves"
        assert loaded.accessories[0].required is True
        assert loaded.accessory_rules[0].id == "wet"
        assert loaded.weather.temperature == 42.0
        assert loaded.created_at == rec.created_at
        assert loaded.expires_at == rec.expires_at

    def test_get_missing_returns_none(self, in_memory_db):
        assert RecommendationRepository(in_memory_db).get_by_id(999) is None

    def test_second_pending_for_slot_date_rejected(self, in_memory_db, make_recommendation):
        repo = RecommendationRepository(in_memory_db)
        repo.insert(make_recommendation())
        with pytest.raises(sqlite3.IntegrityError):
            repo.insert(make_recommendation())

    def test_other_slot_or_date_allowed(self, in_memory_db, make_recommendation):
        repo = RecommendationRepository(in_memory_db)
        repo.insert(make_recommendation())
        repo.insert(make_recommendation(target_slot="dinner"))
        repo.insert(make_recommendation(target_date=date(2025, 1, 11)))
        assert repo.count_by_status(RecommendationStatus.PENDING) == 3

    def test_transitions_only_from_pending(self, in_memory_db, make_recommendation):
        repo = RecommendationRepository(in_memory_db)
        rec_id = repo.insert(make_recommendation())

        assert repo.mark_approved(rec_id, "lt.smith", NOW) is True
        assert repo.mark_approved(rec_id, "lt.smith", NOW) is False
        assert repo.mark_rejected(rec_id, "lt.smith", NOW) is False
        assert repo.mark_superseded(rec_id, "lt.smith", NOW) is False
        assert repo.get_by_id(rec_id).approved_by == "lt.smith"

    def test_reject_records_reason(self, in_memory_db, make_recommendation):
        repo = RecommendationRepository(in_memory_db)
        rec_id = repo.insert(make_recommendation())
        assert repo.mark_rejected(rec_id, "lt.smith", NOW, "Field day") is True

        loaded = repo.get_by_id(rec_id)
        assert loaded.status == RecommendationStatus.REJECTED
        assert loaded.rejection_reason == "Field day"
        assert loaded.rejected_at == NOW

    def test_find_active_ignores_terminal_rows(self, in_memory_db, make_recommendation):
        repo = RecommendationRepository(in_memory_db)
        rec_id = repo.insert(make_recommendation())
        repo.mark_rejected(rec_id, "lt.smith", NOW)
        assert repo.find_active("lunch", date(2025, 1, 10)) is None

        new_id = repo.insert(make_recommendation())
        assert repo.find_active("lunch", date(2025, 1, 10)).recommendation_id == new_id

    def test_supersede_pending(self, in_memory_db, make_recommendation):
        repo = RecommendationRepository(in_memory_db)
        rec_id = repo.insert(make_recommendation())
        assert repo.supersede_pending("lunch", date(2025, 1, 10), "sgt.jones", NOW) == [rec_id]

        loaded = repo.get_by_id(rec_id)
        assert loaded.status == RecommendationStatus.SUPERSEDED
        assert loaded.superseded_by == "sgt.jones"
        assert loaded.superseded_at == NOW

    def test_expire_pending_before_boundary(self, in_memory_db, make_recommendation):
        repo = RecommendationRepository(in_memory_db)
        rec_id = repo.insert(make_recommendation(expiry_hours=1))

        assert repo.expire_pending_before(NOW + timedelta(minutes=59)) == []
        assert repo.expire_pending_before(NOW + timedelta(hours=1)) == [rec_id]
        assert repo.get_by_id(rec_id).status == RecommendationStatus.EXPIRED

    def test_get_recent_filters_by_status(self, in_memory_db, make_recommendation):
        repo = RecommendationRepository(in_memory_db)
        first = repo.insert(make_recommendation(target_slot="breakfast"))
        second = repo.insert(make_recommendation(created_at=NOW + timedelta(minutes=5)))
        repo.mark_rejected(first, "lt.smith", NOW)

        assert [r.recommendation_id for r in repo.get_recent()] == [second, first]
        pending = repo.get_recent(RecommendationStatus.PENDING)
        assert [r.recommendation_id for r in pending] == [second]

    def test_pending_created_before(self, in_memory_db, make_recommendation):
        repo = RecommendationRepository(in_memory_db)
        rec_id = repo.insert(make_recommendation())
        assert repo.get_pending_created_before(NOW - timedelta(minutes=1)) == []
        assert [r.recommendation_id for r in repo.get_pending_created_before(NOW)] == [rec_id]


# ── Announcements ─────────────────────────────────────────────────────────────

class TestAnnouncementRepository:
    def _announcement(self, **overrides) -> Announcement:
        fields = dict(
            title="Uniform #1 - OCP",
            content="Wear OCP.",
            uniform_id="u-ocp",
            uniform_number="1",
            uniform_name="OCP",
            target_slot="lunch",
            target_date=date(2025, 1, 10),
            author_id="lt.smith",
            published_at=NOW,
        )
        fields.update(overrides)
        return Announcement(**fields)

    def test_insert_and_find_published(self, in_memory_db):
        repo = AnnouncementRepository(in_memory_db)
        ann_id = repo.insert(self._announcement())

        found = repo.find_published("lunch", date(2025, 1, 10))
        assert found.announcement_id == ann_id
        assert found.kind == "uotd"
        assert found.published_at == NOW
        assert repo.find_published("dinner", date(2025, 1, 10)) is None

    def test_count_for(self, in_memory_db):
        repo = AnnouncementRepository(in_memory_db)
        repo.insert(self._announcement())
        repo.insert(self._announcement(target_slot="dinner"))
        assert repo.count_for("lunch", date(2025, 1, 10)) == 1
        assert repo.count_for("breakfast", date(2025, 1, 10)) == 0


# ── Catalog and schedule ──────────────────────────────────────────────────────

class TestUniformRepository:
    def test_upsert_updates_existing(self, in_memory_db, sample_uniform):
        repo = UniformRepository(in_memory_db)
        repo.upsert(sample_uniform)
        repo.upsert(Uniform(uniform_id="u-ocp", number="1", name="OCP (Winter)"))

        loaded = repo.get_by_id("u-ocp")
        assert loaded.name == "OCP (Winter)"
        assert loaded.description == ""
        assert len(repo.get_all()) == 1

    def test_unknown_id(self, in_memory_db):
        assert UniformRepository(in_memory_db).get_by_id("nope") is None


class TestScheduleSlotRepository:
    def test_claim_once_per_local_date(self, in_memory_db):
        repo = ScheduleSlotRepository(in_memory_db)
        repo.upsert(ScheduleSlot(slot_key="lunch", enabled=True, uniform_id="u-ocp", time="11:30"))

        assert repo.claim_slot("lunch", NOW, date(2025, 1, 10)) is True
        assert repo.claim_slot("lunch", NOW, date(2025, 1, 10)) is False
        assert repo.claim_slot("lunch", NOW + timedelta(days=1), date(2025, 1, 11)) is True

        slot = repo.get("lunch")
        assert slot.last_fired_date == date(2025, 1, 11)
        assert slot.last_fired == NOW + timedelta(days=1)

    def test_claim_missing_slot(self, in_memory_db):
        assert ScheduleSlotRepository(in_memory_db).claim_slot("brunch", NOW, date(2025, 1, 10)) is False

    def test_upsert_keeps_last_fired(self, in_memory_db):
        repo = ScheduleSlotRepository(in_memory_db)
        repo.upsert(ScheduleSlot(slot_key="lunch", enabled=True, time="11:30"))
        repo.claim_slot("lunch", NOW, date(2025, 1, 10))
        repo.upsert(ScheduleSlot(slot_key="lunch", enabled=True, time="12:00"))

        slot = repo.get("lunch")
        assert slot.time == "12:00"
        assert slot.last_fired_date == date(2025, 1, 10)

    def test_get_enabled(self, in_memory_db):
        repo = ScheduleSlotRepository(in_memory_db)
        repo.upsert(ScheduleSlot(slot_key="breakfast", enabled=True, time="06:00"))
        repo.upsert(ScheduleSlot(slot_key="dinner", enabled=False, time="17:00"))
        assert [s.slot_key for s in repo.get_enabled()] == ["breakfast"]
        assert len(repo.get_all()) == 2


# ── Rule store and cache ──────────────────────────────────────────────────────

class TestRuleStoreRepository:
    def test_nothing_stored(self, in_memory_db):
        repo = RuleStoreRepository(in_memory_db)
        assert repo.get_accessory_rules() is None
        rule_set = repo.get_uniform_rule_set()
        assert not rule_set.has_rules
        assert rule_set.default_uniform_id is None

    def test_accessory_rules_round_trip(self, in_memory_db):
        repo = RuleStoreRepository(in_memory_db)
        rule = Rule.model_validate(
            {
                "id": "cold",
                "name": "Cold",
                "priority": 2,
                "conditions": {"temperature": {"max": 40}},
                "accessories": [{"name": "Watch Cap", "required": True}],
            }
        )
        repo.save_accessory_rules([rule])
        assert repo.get_accessory_rules() == (rule,)

    def test_invalid_stored_rule_skipped(self, in_memory_db):
        SettingsRepository(in_memory_db).put_document(
            ACCESSORY_RULES_KEY,
            {"rules": [
                {"id": "ok", "name": "OK"},
                {"id": "bad", "name": "Bad", "type": "uniformOverride"},
                "not-a-rule",
            ]},
        )
        rules = RuleStoreRepository(in_memory_db).get_accessory_rules()
        assert [r.id for r in rules] == ["ok"]

    def test_untyped_weather_rule_reads_as_select(self, in_memory_db):
        SettingsRepository(in_memory_db).put_document(
            WEATHER_RULES_KEY,
            {"rules": [{"id": "hot", "name": "Hot", "uniformId": "u-pt"}],
             "defaultUniformId": "u-ocp"},
        )
        rule_set = RuleStoreRepository(in_memory_db).get_uniform_rule_set()
        assert rule_set.rules[0].effect == RuleEffect.SELECT_UNIFORM
        assert rule_set.default_uniform_id == "u-ocp"

    def test_uniform_rule_set_round_trip(self, in_memory_db):
        repo = RuleStoreRepository(in_memory_db)
        rule_set = UniformRuleSet.model_validate(
            {"rules": [{"id": "hot", "name": "Hot", "type": "selectUniform", "uniformId": "u-pt"}],
             "defaultUniformId": "u-ocp"}
        )
        repo.save_uniform_rule_set(rule_set)
        assert repo.get_uniform_rule_set() == rule_set

    def test_corrupt_json_ignored(self, in_memory_db):
        in_memory_db.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?);", (ACCESSORY_RULES_KEY, "{not json")
        )
        assert RuleStoreRepository(in_memory_db).get_accessory_rules() is None


class TestWeatherCacheRepository:
    def _report(self) -> WeatherReport:
        return WeatherReport(
            current=WeatherSnapshot(temperature=41.0, condition="Partly cloudy"),
            forecast=DailyForecast(precipitation_chance=85.0),
            location=LocationInfo(latitude=38.9, longitude=-77.0),
            fetched_at=NOW,
            expires_at=NOW + timedelta(minutes=30),
        )

    def test_save_and_get_fresh(self, in_memory_db):
        repo = WeatherCacheRepository(in_memory_db)
        assert repo.get() is None
        repo.save(self._report())

        assert repo.get().current.temperature == 41.0
        assert repo.get_fresh(NOW + timedelta(minutes=10)) is not None
        assert repo.get_fresh(NOW + timedelta(minutes=31)) is None
