"""
SQLite schema DDL — all CREATE TABLE and CREATE INDEX statements.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is **idempotent**:
safe to call on an already-initialized database (e.g. after restart or in tests).

Table creation order respects foreign key dependencies:
  1. settings                 (no FKs) — rule store + weather cache, JSON values
  2. uniforms                 (no FKs) — Uniform Catalog
  3. schedule_slots           (no FKs) — uniform_id is a soft reference
  4. announcements            (no FKs)
  5. weather_recommendations  (→ announcements)

The partial unique index ``uq_weather_recs_pending_slot_date`` allows at most one
pending recommendation per (target_slot, target_date); a losing insert raises
``sqlite3.IntegrityError``.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_SETTINGS = """
CREATE TABLE IF NOT EXISTS settings (
    key         TEXT    NOT NULL PRIMARY KEY,
    value       TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_UNIFORMS = """
CREATE TABLE IF NOT EXISTS uniforms (
    uniform_id  TEXT    NOT NULL PRIMARY KEY,
    number      TEXT    NOT NULL,
    name        TEXT    NOT NULL,
    description TEXT    NOT NULL DEFAULT '',
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_SCHEDULE_SLOTS = """
CREATE TABLE IF NOT EXISTS schedule_slots (
    slot_key        TEXT    NOT NULL PRIMARY KEY,
    enabled         INTEGER NOT NULL DEFAULT 0,
    uniform_id      TEXT,
    time            TEXT,
    last_fired      TEXT,
    last_fired_date TEXT,
    updated_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_ANNOUNCEMENTS = """
CREATE TABLE IF NOT EXISTS announcements (
    announcement_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    kind              TEXT    NOT NULL DEFAULT 'uotd',
    title             TEXT    NOT NULL,
    content           TEXT    NOT NULL DEFAULT '',
    uniform_id        TEXT,
    uniform_number    TEXT,
    uniform_name      TEXT,
    target_slot       TEXT    NOT NULL,
    target_date       TEXT    NOT NULL,
    status            TEXT    NOT NULL DEFAULT 'published',
    author_id         TEXT    NOT NULL,
    author_name       TEXT,
    weather_based     INTEGER NOT NULL DEFAULT 0,
    recommendation_id INTEGER,
    auto_published    INTEGER NOT NULL DEFAULT 0,
    weather_condition TEXT,
    weather_temp      REAL,
    published_at      TEXT    NOT NULL,
    created_at        TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_ANNOUNCEMENTS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_announcements_slot_date
    ON announcements(target_slot, target_date, status);
"""

_DDL_WEATHER_RECOMMENDATIONS = """
CREATE TABLE IF NOT EXISTS weather_recommendations (
    recommendation_id INTEGER PRIMARY KEY AUTOINCREMENT,
    status            TEXT    NOT NULL DEFAULT 'pending'
                          CHECK (status IN ('pending', 'approved', 'rejected', 'superseded', 'expired')),
    target_slot       TEXT    NOT NULL,
    target_date       TEXT    NOT NULL,
    uniform_id        TEXT,
    uniform_number    TEXT,
    uniform_name      TEXT,
    uniform_override  TEXT,
    weather           TEXT    NOT NULL,
    current_weather   TEXT,
    twilight          TEXT,
    matched_rule_id   TEXT,
    matched_rule_name TEXT,
    accessories       TEXT    NOT NULL DEFAULT '[]',
    accessory_rules   TEXT    NOT NULL DEFAULT '[]',
    triggered_by      TEXT    NOT NULL DEFAULT 'manual',
    created_by        TEXT    NOT NULL,
    created_at        TEXT    NOT NULL,
    expires_at        TEXT    NOT NULL,
    approved_by       TEXT,
    approved_at       TEXT,
    rejected_by       TEXT,
    rejected_at       TEXT,
    rejection_reason  TEXT,
    superseded_by     TEXT,
    superseded_at     TEXT,
    custom_title      TEXT,
    custom_content    TEXT,
    announcement_id   INTEGER REFERENCES announcements(announcement_id),
    auto_published    INTEGER NOT NULL DEFAULT 0
);
"""

_DDL_WEATHER_RECOMMENDATIONS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_weather_recs_slot_date
    ON weather_recommendations(target_slot, target_date, status);
CREATE INDEX IF NOT EXISTS idx_weather_recs_status_created
    ON weather_recommendations(status, created_at DESC);
CREATE UNIQUE INDEX IF NOT EXISTS uq_weather_recs_pending_slot_date
    ON weather_recommendations(target_slot, target_date)
    WHERE status = 'pending';
"""

# ── Ordered list of all DDL to apply ──────────────────────────────────────────

_ALL_DDL: list[str] = [
    _DDL_SETTINGS,
    _DDL_UNIFORMS,
    _DDL_SCHEDULE_SLOTS,
    _DDL_ANNOUNCEMENTS,
    _DDL_ANNOUNCEMENTS_INDEXES,
    _DDL_WEATHER_RECOMMENDATIONS,
    _DDL_WEATHER_RECOMMENDATIONS_INDEXES,
]

# Table names for introspection / tests
ALL_TABLE_NAMES = [
    "settings",
    "uniforms",
    "schedule_slots",
    "announcements",
    "weather_recommendations",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent — safe to call on an already-initialized database.
    Each statement uses ``IF NOT EXISTS`` guards.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row[0] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Return the index names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' ORDER BY name;"
    ).fetchall()
    return [row[0] for row in rows]
