"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``UOTD_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The scheduler, the weather-check pipeline and every CLI command receive an
``AppConfig`` instance. Rule sets are NOT part of the config: they live in
the rule store and are passed to the evaluator as explicit snapshots.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/uotd.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class WeatherConfig(BaseModel):
    """Weather gateway settings.

    ``api_key`` is normally supplied through ``UOTD_WEATHER_API_KEY`` in
    ``.env``. Without a key the gateway runs in fixture mode.
    """

    model_config = ConfigDict(frozen=True)

    api_key: Optional[str] = None
    base_url: str = "https://api.weatherapi.com/v1"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    units: str = "imperial"
    timeout_sec: float = 30.0
    cache_minutes: int = 30

    @field_validator("units")
    @classmethod
    def validate_units(cls, v: str) -> str:
        if v not in ("imperial", "metric"):
            raise ValueError(f"units must be 'imperial' or 'metric', got '{v}'.")
        return v


class ScheduleConfig(BaseModel):
    """Scheduler timing settings."""

    model_config = ConfigDict(frozen=True)

    timezone: str = "America/New_York"
    tick_seconds: int = 60

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown IANA timezone '{v}'.") from exc
        return v


class RecommendationConfig(BaseModel):
    """Weather recommendation tuning.

    ``forecast_window_start_min`` / ``forecast_window_end_min`` bound the
    future window (minutes from now) whose hourly forecast drives rule
    matching. ``auto_publish_delay_minutes`` enables system approval of
    unattended pending recommendations; ``None`` disables it.
    """

    model_config = ConfigDict(frozen=True)

    forecast_window_start_min: int = 30
    forecast_window_end_min: int = 90
    twilight_minutes: int = 30
    expiry_hours: int = 24
    precipitation_fallback_threshold: float = 50.0
    auto_publish_delay_minutes: Optional[int] = None
    speed_unit: str = "mph"

    @model_validator(mode="after")
    def validate_window(self) -> "RecommendationConfig":
        if self.forecast_window_start_min < 0:
            raise ValueError("forecast_window_start_min must be non-negative.")
        if self.forecast_window_end_min <= self.forecast_window_start_min:
            raise ValueError(
                "forecast_window_end_min must be greater than forecast_window_start_min."
            )
        if self.twilight_minutes < 0:
            raise ValueError("twilight_minutes must be non-negative.")
        return self


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/uotd.log"
    json_format: bool = False
    retention_days: int = 14

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()

    @field_validator("retention_days")
    @classmethod
    def validate_retention(cls, v: int) -> int:
        if v < 0:
            raise ValueError("retention_days must be non-negative.")
        return v


class AppConfig(BaseModel):
    """Complete application configuration.

    Constructed by ``load_config()`` which merges TOML + .env + environment.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    weather: WeatherConfig = WeatherConfig()
    schedule: ScheduleConfig = ScheduleConfig()
    recommendations: RecommendationConfig = RecommendationConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply UOTD_* env vars to the raw config dict.

    Supported overrides:
      UOTD_DB_PATH          → raw["database"]["db_path"]
      UOTD_LOG_LEVEL        → raw["logging"]["level"]
      UOTD_TIMEZONE         → raw["schedule"]["timezone"]
      UOTD_WEATHER_API_KEY  → raw["weather"]["api_key"]
      UOTD_DEBUG            → raw["debug"]
    """
    if db_path := os.environ.get("UOTD_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("UOTD_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if tz := os.environ.get("UOTD_TIMEZONE"):
        raw.setdefault("schedule", {})["timezone"] = tz

    if api_key := os.environ.get("UOTD_WEATHER_API_KEY"):
        raw.setdefault("weather", {})["api_key"] = api_key

    if debug := os.environ.get("UOTD_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        weather=WeatherConfig(**raw.get("weather", {})),
        schedule=ScheduleConfig(**raw.get("schedule", {})),
        recommendations=RecommendationConfig(**raw.get("recommendations", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
