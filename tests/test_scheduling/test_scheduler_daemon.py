"""Tests for the scheduler daemon's tick and job isolation."""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from uotd.config import AppConfig, DatabaseConfig, LoggingConfig, RecommendationConfig, ScheduleConfig
from uotd.db.connection import get_connection
from uotd.db.migrations import initialize_database
from uotd.db.repositories.announcement_repo import AnnouncementRepository
from uotd.db.repositories.catalog_repo import UniformRepository
from uotd.db.repositories.recommendation_repo import RecommendationRepository
from uotd.db.repositories.schedule_repo import ScheduleSlotRepository
from uotd.models.announcement import Uniform
from uotd.models.recommendation import Recommendation
from uotd.models.schedule import ScheduleSlot
from uotd.models.weather import WeatherContext
from uotd.scheduler import SchedulerDaemon, _seconds_until_next_tick
from uotd.taxonomy.weather_taxonomy import RecommendationStatus

LUNCH_NOW = datetime(2025, 1, 10, 16, 30, tzinfo=timezone.utc)


# ── Helpers ────────────────────────────────────────────────────────────────────

def _config(db_path: str, auto_publish: int | None = None) -> AppConfig:
    return AppConfig(
        database=DatabaseConfig(db_path=db_path),
        schedule=ScheduleConfig(timezone="America/New_York"),
        recommendations=RecommendationConfig(auto_publish_delay_minutes=auto_publish),
        logging=LoggingConfig(log_file=""),
    )


@pytest.fixture
def db_file(tmp_path) -> str:
    path = str(tmp_path / "uotd.db")
    with get_connection(path) as conn:
        initialize_database(conn)
        UniformRepository(conn).upsert(Uniform(uniform_id="u-ocp", number="1", name="OCP"))
        ScheduleSlotRepository(conn).upsert(
            ScheduleSlot(slot_key="lunch", enabled=True, uniform_id="u-ocp", time="11:30")
        )
    return path


# ── Tests ─────────────────────────────────────────────────────────────────────

class TestTickAlignment:
    def test_seconds_until_next_minute(self):
        now = datetime(2025, 1, 10, 16, 30, 15, tzinfo=timezone.utc)
        assert _seconds_until_next_tick(now, 60) == pytest.approx(45.0)

    def test_on_boundary_waits_full_tick(self):
        assert _seconds_until_next_tick(LUNCH_NOW, 60) == pytest.approx(60.0)


class TestSchedulerTick:
    def test_tick_runs_every_job(self, db_file):
        daemon = SchedulerDaemon(_config(db_file))
        outcome = daemon.tick(LUNCH_NOW)

        assert outcome == {"guard": True, "weather-checks": True, "auto-publish": True}
        with get_connection(db_file) as conn:
            assert AnnouncementRepository(conn).count_for("lunch", date(2025, 1, 10)) == 1

    def test_repeated_tick_posts_once(self, db_file):
        daemon = SchedulerDaemon(_config(db_file))
        daemon.tick(LUNCH_NOW)
        daemon.tick(LUNCH_NOW + timedelta(seconds=20))

        with get_connection(db_file) as conn:
            assert AnnouncementRepository(conn).count_for("lunch", date(2025, 1, 10)) == 1

    def test_failing_job_does_not_stop_others(self, db_file):
        daemon = SchedulerDaemon(_config(db_file))
        with patch("uotd.scheduler.SchedulerGuard.tick", side_effect=RuntimeError("boom")):
            outcome = daemon.tick(LUNCH_NOW)

        assert outcome["guard"] is False
        assert outcome["weather-checks"] is True
        assert outcome["auto-publish"] is True

    def test_auto_publish_job(self, db_file):
        with get_connection(db_file) as conn:
            rec_id = RecommendationRepository(conn).insert(
                Recommendation(
                    target_slot="dinner",
                    target_date=date(2025, 1, 10),
                    uniform_id="u-ocp",
                    uniform_number="1",
                    uniform_name="OCP",
                    weather=WeatherContext(temperature=50.0, condition="Cloudy"),
                    created_by="system",
                    created_at=LUNCH_NOW - timedelta(minutes=10),
                    expires_at=LUNCH_NOW + timedelta(hours=24),
                )
            )

        SchedulerDaemon(_config(db_file, auto_publish=5)).tick(LUNCH_NOW)

        with get_connection(db_file) as conn:
            rec = RecommendationRepository(conn).get_by_id(rec_id)
        assert rec.status == RecommendationStatus.APPROVED
        assert rec.auto_published is True

    def test_stop_clears_running_flag(self, db_file):
        daemon = SchedulerDaemon(_config(db_file))
        daemon._running = True
        daemon.stop()
        assert daemon._running is False


class TestWaitUntil:
    def test_sleeps_only_positive_remainders(self, db_file):
        daemon = SchedulerDaemon(_config(db_file))
        daemon._running = True

        # Deadline passes between the last two clock reads.
        with patch("uotd.scheduler.time.monotonic", side_effect=[0.0, 0.5, 1.5]), \
                patch("uotd.scheduler.time.sleep") as sleep:
            daemon._wait_until(1.0)

        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 0.5]

    def test_returns_immediately_when_stopped(self, db_file):
        daemon = SchedulerDaemon(_config(db_file))
        with patch("uotd.scheduler.time.sleep") as sleep:
            daemon._wait_until(time.monotonic() + 60)
        sleep.assert_not_called()
