"""
Tests for configuration loading and validation.

What we test
------------
1. The committed ``config/default.toml`` loads with the documented defaults.
2. ``local.toml`` deep-merges over the base file.
3. ``UOTD_*`` environment variables win over both files.
4. Invalid values are rejected at load time.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from uotd.config import RecommendationConfig, ScheduleConfig, WeatherConfig, load_config

DEFAULT_TOML = Path(__file__).parents[2] / "config" / "default.toml"

_ENV_VARS = ("UOTD_DB_PATH", "UOTD_LOG_LEVEL", "UOTD_TIMEZONE", "UOTD_WEATHER_API_KEY", "UOTD_DEBUG")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    def test_default_toml(self):
        config = load_config(DEFAULT_TOML)

        assert config.database.db_path == "data/db/uotd.db"
        assert config.schedule.timezone == "America/New_York"
        assert config.schedule.tick_seconds == 60
        assert config.recommendations.forecast_window_start_min == 30
        assert config.recommendations.forecast_window_end_min == 90
        assert config.recommendations.twilight_minutes == 30
        assert config.recommendations.expiry_hours == 24
        assert config.recommendations.auto_publish_delay_minutes is None
        assert config.weather.latitude is None
        assert config.debug is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml")

    def test_local_toml_merges(self, tmp_path):
        base = tmp_path / "default.toml"
        base.write_text(
            '[schedule]\ntimezone = "America/New_York"\ntick_seconds = 60\n'
            "[recommendations]\nexpiry_hours = 24\n",
            encoding="utf-8",
        )
        (tmp_path / "local.toml").write_text(
            '[schedule]\ntimezone = "America/Chicago"\n'
            "[recommendations]\nauto_publish_delay_minutes = 5\n",
            encoding="utf-8",
        )

        config = load_config(base)

        assert config.schedule.timezone == "America/Chicago"
        assert config.schedule.tick_seconds == 60
        assert config.recommendations.expiry_hours == 24
        assert config.recommendations.auto_publish_delay_minutes == 5

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("UOTD_DB_PATH", "/tmp/other.db")
        monkeypatch.setenv("UOTD_LOG_LEVEL", "debug")
        monkeypatch.setenv("UOTD_TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("UOTD_WEATHER_API_KEY", "abc123")
        monkeypatch.setenv("UOTD_DEBUG", "true")

        config = load_config(DEFAULT_TOML)

        assert config.database.db_path == "/tmp/other.db"
        assert config.logging.level == "DEBUG"
        assert config.schedule.timezone == "Europe/Berlin"
        assert config.weather.api_key == "abc123"
        assert config.debug is True

    def test_invalid_timezone_in_file(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('[schedule]\ntimezone = "Mars/Base"\n', encoding="utf-8")
        with pytest.raises(ValidationError, match="Unknown IANA timezone"):
            load_config(path)


class TestConfigModels:
    def test_window_must_be_ordered(self):
        with pytest.raises(ValidationError):
            RecommendationConfig(forecast_window_start_min=90, forecast_window_end_min=30)

    def test_negative_twilight_rejected(self):
        with pytest.raises(ValidationError):
            RecommendationConfig(twilight_minutes=-1)

    def test_units_validated(self):
        with pytest.raises(ValidationError):
            WeatherConfig(units="kelvin")

    def test_timezone_validated(self):
        assert ScheduleConfig(timezone="UTC").timezone == "UTC"
        with pytest.raises(ValidationError):
            ScheduleConfig(timezone="Not/AZone")

    def test_frozen(self):
        config = ScheduleConfig()
        with pytest.raises(ValidationError):
            config.timezone = "UTC"
