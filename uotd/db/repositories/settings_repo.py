"""
Repositories over the ``settings`` key/value table.

``settings`` holds JSON documents keyed by name:

    accessory_rules : {"rules": [Rule, ...]}
    weather_rules   : {"rules": [Rule, ...], "defaultUniformId": "..."}
    weather_cache   : WeatherReport of the most recent fetch

``RuleStoreRepository`` is the Rule Store: it hands the evaluator immutable
snapshots. A stored rule that fails validation is logged and skipped; it
never aborts a weather check.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from uotd.db.repositories.base import BaseRepository, load_json
from uotd.models.rules import Rule, UniformRuleSet
from uotd.models.weather import WeatherReport
from uotd.taxonomy.weather_taxonomy import RuleEffect
from uotd.utils.time_utils import isoformat_utc, utcnow

logger = logging.getLogger(__name__)

ACCESSORY_RULES_KEY = "accessory_rules"
WEATHER_RULES_KEY = "weather_rules"
WEATHER_CACHE_KEY = "weather_cache"


class SettingsRepository(BaseRepository):
    """Read/write access to ``settings`` documents."""

    def get_document(self, key: str) -> Optional[Any]:
        """Return the decoded JSON document stored under ``key``, or ``None``."""
        row = self.fetchone("SELECT value FROM settings WHERE key = ?;", (key,))
        if row is None:
            return None
        try:
            return load_json(row["value"])
        except json.JSONDecodeError:
            logger.warning("settings[%s] holds invalid JSON; ignoring.", key)
            return None

    def put_document(self, key: str, value: Any) -> None:
        """Insert or replace the document stored under ``key``."""
        self.execute(
            """
            INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value      = excluded.value,
                updated_at = excluded.updated_at;
            """,
            (key, json.dumps(value, default=str), isoformat_utc(utcnow())),
        )


def _parse_rules(
    docs: Iterable[Any],
    key: str,
    default_effect: Optional[RuleEffect] = None,
) -> tuple[Rule, ...]:
    rules: list[Rule] = []
    for doc in docs:
        if not isinstance(doc, dict):
            logger.warning("settings[%s]: skipping non-object rule %r", key, doc)
            continue
        if default_effect is not None and "type" not in doc:
            doc = {**doc, "type": default_effect.value}
        try:
            rules.append(Rule.model_validate(doc))
        except ValidationError as exc:
            logger.warning(
                "settings[%s]: skipping invalid rule %r: %s",
                key, doc.get("id"), exc.errors()[0]["msg"] if exc.errors() else exc,
            )
    return tuple(rules)


class RuleStoreRepository(SettingsRepository):
    """The Rule Store: accessory rules and the uniform-selection rule set."""

    def get_accessory_rules(self) -> Optional[tuple[Rule, ...]]:
        """Return the stored accessory rules.

        Returns:
            The valid rules, or ``None`` when none are stored (callers then
            use ``DEFAULT_ACCESSORY_RULES``).
        """
        doc = self.get_document(ACCESSORY_RULES_KEY)
        if not isinstance(doc, dict) or not doc.get("rules"):
            return None
        return _parse_rules(doc["rules"], ACCESSORY_RULES_KEY)

    def save_accessory_rules(self, rules: Iterable[Rule]) -> None:
        self.put_document(
            ACCESSORY_RULES_KEY,
            {"rules": [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in rules]},
        )

    def get_uniform_rule_set(self) -> UniformRuleSet:
        """Return the uniform-selection rules and default uniform.

        Rules without an explicit ``type`` are read as ``selectUniform``.
        """
        doc = self.get_document(WEATHER_RULES_KEY)
        if not isinstance(doc, dict):
            return UniformRuleSet()
        rules = _parse_rules(doc.get("rules") or [], WEATHER_RULES_KEY, RuleEffect.SELECT_UNIFORM)
        return UniformRuleSet(rules=rules, default_uniform_id=doc.get("defaultUniformId"))

    def save_uniform_rule_set(self, rule_set: UniformRuleSet) -> None:
        self.put_document(
            WEATHER_RULES_KEY,
            rule_set.model_dump(mode="json", by_alias=True, exclude_none=True),
        )


class WeatherCacheRepository(SettingsRepository):
    """Most recent weather report, kept for display and offline inspection."""

    def save(self, report: WeatherReport) -> None:
        self.put_document(WEATHER_CACHE_KEY, report.model_dump(mode="json"))

    def get(self) -> Optional[WeatherReport]:
        doc = self.get_document(WEATHER_CACHE_KEY)
        if doc is None:
            return None
        try:
            return WeatherReport.model_validate(doc)
        except ValidationError as exc:
            logger.warning("Cached weather report is invalid; ignoring: %s", exc)
            return None

    def get_fresh(self, now: datetime) -> Optional[WeatherReport]:
        """Return the cached report only while it has not expired."""
        report = self.get()
        if report is not None and report.is_fresh(now):
            return report
        return None
