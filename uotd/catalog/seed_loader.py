"""
Catalog seed loader: JSON → SQLite.

Responsibilities
----------------
1. Load a catalog JSON file (see ``config/catalog/sample_catalog.json``).
2. Upsert uniforms into ``uniforms`` and slots into ``schedule_slots``.
3. Store accessory rules and the uniform-selection rule set in the Rule
   Store (``settings``), when the file carries them.

File layout
-----------
    {
      "uniforms":       [{"id", "number", "name", "description"}, ...],
      "slots":          [{"slotKey", "enabled", "uniformId", "time"}, ...],
      "accessoryRules": [Rule, ...],
      "weatherRules":   {"rules": [Rule, ...], "defaultUniformId": "..."}
    }

Every section is optional. Rule documents use the stored camelCase form.

Validation rules
----------------
- Duplicate uniform ids and duplicate slot keys are rejected.
- Every rule must validate; ``weatherRules`` entries default to
  ``selectUniform`` when ``type`` is omitted.
- Duplicate rule ids within one rule list are rejected.
- A slot or ``defaultUniformId`` naming a uniform not in the file or the
  catalog is accepted with a warning (the guard reports it at firing time).

Usage
-----
    from uotd.catalog.seed_loader import import_catalog

    result = import_catalog(conn, Path("config/catalog/sample_catalog.json"))
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from uotd.db.repositories.catalog_repo import UniformRepository
from uotd.db.repositories.schedule_repo import ScheduleSlotRepository
from uotd.db.repositories.settings_repo import RuleStoreRepository
from uotd.models.announcement import Uniform
from uotd.models.rules import Rule, UniformRuleSet
from uotd.models.schedule import ScheduleSlot
from uotd.taxonomy.weather_taxonomy import RuleEffect

log = logging.getLogger(__name__)


@dataclass
class CatalogImportResult:
    """Counts of records written by ``import_catalog``."""

    uniforms:        int = 0
    slots:           int = 0
    accessory_rules: int = 0
    weather_rules:   int = 0


# ── Parsing / validation ──────────────────────────────────────────────────────

def _parse_uniforms(records: list[dict[str, Any]]) -> list[Uniform]:
    seen: set[str] = set()
    uniforms: list[Uniform] = []
    for i, rec in enumerate(records):
        uniform_id = rec.get("id") or rec.get("uniformId")
        if not uniform_id:
            raise ValueError(f"Uniform at index {i} is missing 'id'.")
        if uniform_id in seen:
            raise ValueError(f"Duplicate uniform id '{uniform_id}' at index {i}.")
        seen.add(uniform_id)
        try:
            uniforms.append(
                Uniform(
                    uniform_id=uniform_id,
                    number=rec.get("number", ""),
                    name=rec.get("name", ""),
                    description=rec.get("description", ""),
                )
            )
        except ValidationError as exc:
            raise ValueError(f"Uniform '{uniform_id}' is invalid: {exc}") from exc
    return uniforms


def _parse_slots(records: list[dict[str, Any]]) -> list[ScheduleSlot]:
    seen: set[str] = set()
    slots: list[ScheduleSlot] = []
    for i, rec in enumerate(records):
        key = rec.get("slotKey") or rec.get("slot_key")
        if not key:
            raise ValueError(f"Slot at index {i} is missing 'slotKey'.")
        if key in seen:
            raise ValueError(f"Duplicate slot key '{key}' at index {i}.")
        seen.add(key)
        try:
            slots.append(
                ScheduleSlot(
                    slot_key=key,
                    enabled=bool(rec.get("enabled", False)),
                    uniform_id=rec.get("uniformId") or None,
                    time=rec.get("time"),
                )
            )
        except ValidationError as exc:
            raise ValueError(f"Slot '{key}' is invalid: {exc}") from exc
    return slots


def _parse_rule_list(
    records: list[dict[str, Any]],
    section: str,
    default_effect: RuleEffect | None = None,
) -> tuple[Rule, ...]:
    seen: set[str] = set()
    rules: list[Rule] = []
    for i, rec in enumerate(records):
        if default_effect is not None and "type" not in rec:
            rec = {**rec, "type": default_effect.value}
        try:
            rule = Rule.model_validate(rec)
        except ValidationError as exc:
            raise ValueError(f"{section}[{i}] is not a valid rule: {exc}") from exc
        if rule.id in seen:
            raise ValueError(f"Duplicate rule id '{rule.id}' in {section}.")
        seen.add(rule.id)
        rules.append(rule)
    return tuple(rules)


def load_catalog_file(path: Path) -> dict[str, Any]:
    """Read and decode a catalog JSON file."""
    with open(path, encoding="utf-8") as f:
        doc = json.load(f)
    if not isinstance(doc, dict):
        raise ValueError(f"{path}: top-level JSON value must be an object.")
    return doc


# ── Import ────────────────────────────────────────────────────────────────────

def import_catalog(conn: sqlite3.Connection, path: Path) -> CatalogImportResult:
    """Validate ``path`` and write its contents.

    The whole file is validated before anything is written.

    Raises:
        FileNotFoundError: ``path`` does not exist.
        json.JSONDecodeError: ``path`` is not JSON.
        ValueError: A record fails validation.
    """
    doc = load_catalog_file(path)

    uniforms = _parse_uniforms(doc.get("uniforms") or [])
    slots = _parse_slots(doc.get("slots") or [])

    accessory_rules: tuple[Rule, ...] | None = None
    if "accessoryRules" in doc:
        accessory_rules = _parse_rule_list(doc["accessoryRules"] or [], "accessoryRules")

    rule_set: UniformRuleSet | None = None
    if "weatherRules" in doc:
        weather_doc = doc["weatherRules"] or {}
        rule_set = UniformRuleSet(
            rules=_parse_rule_list(
                weather_doc.get("rules") or [], "weatherRules", RuleEffect.SELECT_UNIFORM
            ),
            default_uniform_id=weather_doc.get("defaultUniformId"),
        )

    uniform_repo = UniformRepository(conn)
    known = {u.uniform_id for u in uniforms} | {u.uniform_id for u in uniform_repo.get_all()}
    for slot in slots:
        if slot.uniform_id and slot.uniform_id not in known:
            log.warning("Slot '%s' references unknown uniform '%s'.", slot.slot_key, slot.uniform_id)
    if rule_set is not None:
        referenced = [r.uniform_id for r in rule_set.rules if r.uniform_id]
        if rule_set.default_uniform_id:
            referenced.append(rule_set.default_uniform_id)
        for uniform_id in referenced:
            if uniform_id not in known:
                log.warning("Weather rules reference unknown uniform '%s'.", uniform_id)

    result = CatalogImportResult()

    for uniform in uniforms:
        uniform_repo.upsert(uniform)
    result.uniforms = len(uniforms)

    slot_repo = ScheduleSlotRepository(conn)
    for slot in slots:
        slot_repo.upsert(slot)
    result.slots = len(slots)

    rule_store = RuleStoreRepository(conn)
    if accessory_rules is not None:
        rule_store.save_accessory_rules(accessory_rules)
        result.accessory_rules = len(accessory_rules)
    if rule_set is not None:
        rule_store.save_uniform_rule_set(rule_set)
        result.weather_rules = len(rule_set.rules)

    conn.commit()
    log.info(
        "Imported catalog from %s: %d uniforms, %d slots, %d accessory rules, %d weather rules.",
        path, result.uniforms, result.slots, result.accessory_rules, result.weather_rules,
    )
    return result
