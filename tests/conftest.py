"""
Shared pytest fixtures for the UOTD test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema and every migration applied. Created anew for each test.
  - ``app_config``: An ``AppConfig`` pointing at ``:memory:`` with a fixed
    timezone and no weather API key (fixture weather).
  - Sample domain object factories for use in multiple test modules.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone
from typing import Generator

import pytest

from uotd.config import AppConfig, DatabaseConfig, LoggingConfig, ScheduleConfig
from uotd.db.migrations import initialize_database
from uotd.db.repositories.catalog_repo import UniformRepository
from uotd.models.announcement import Uniform
from uotd.models.recommendation import Recommendation
from uotd.models.weather import AstronomyData, WeatherContext

TZ = "America/New_York"

# 2025-01-10 11:30 America/New_York (EST, UTC-5)
LUNCH_NOW = datetime(2025, 1, 10, 16, 30, tzinfo=timezone.utc)


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with schema and migrations applied.

    Foreign key enforcement is ON. Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    initialize_database(conn)
    yield conn
    conn.close()


@pytest.fixture
def app_config() -> AppConfig:
    """Config with a fixed timezone and fixture weather (no API key)."""
    return AppConfig(
        database=DatabaseConfig(db_path=":memory:", wal_mode=False),
        schedule=ScheduleConfig(timezone=TZ),
        logging=LoggingConfig(log_file=""),
    )


# ── Sample domain object factories ────────────────────────────────────────────

@pytest.fixture
def sample_uniform() -> Uniform:
    """A valid catalog ``Uniform``."""
    return Uniform(
        uniform_id="u-ocp",
        number="1",
        name="OCP",
        description="Operational Camouflage Pattern",
    )


@pytest.fixture
def seeded_uniform(in_memory_db, sample_uniform) -> Uniform:
    """``sample_uniform`` stored in the in-memory catalog."""
    UniformRepository(in_memory_db).upsert(sample_uniform)
    return sample_uniform


@pytest.fixture
def sample_context() -> WeatherContext:
    """A mild, dry observation that matches none of the default rules."""
    return WeatherContext(
        temperature=62.0,
        humidity=50.0,
        wind_speed=5.0,
        condition="Sunny",
        precipitation_chance=0.0,
        uv_index=3.0,
    )


@pytest.fixture
def sample_astronomy() -> AstronomyData:
    return AstronomyData(sunrise="06:45 AM", sunset="05:15 PM")


@pytest.fixture
def make_recommendation():
    """Factory for pending recommendations on 2025-01-10."""

    def _make(
        target_slot: str = "lunch",
        target_date: date = date(2025, 1, 10),
        created_at: datetime = LUNCH_NOW,
        expiry_hours: int = 24,
        **overrides,
    ) -> Recommendation:
        fields = dict(
            target_slot=target_slot,
            target_date=target_date,
            uniform_id="u-ocp",
            uniform_number="1",
            uniform_name="OCP",
            weather=WeatherContext(
                temperature=42.0,
                humidity=80.0,
                wind_speed=12.0,
                condition="Light rain",
                precipitation_chance=60.0,
                is_forecast=True,
            ),
            created_by="sgt.jones",
            created_at=created_at,
            expires_at=created_at + timedelta(hours=expiry_hours),
        )
        fields.update(overrides)
        return Recommendation(**fields)

    return _make

