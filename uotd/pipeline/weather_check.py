"""
Weather check pipeline: fetch → aggregate → evaluate → create recommendation.

Steps
-----
  1. Load the rule snapshots (uniform-selection set + accessory rules).
  2. Fetch the weather report (fixture report when no API key is set). A
     cached live report is reused until its ``expires_at``.
     ``WeatherFetchError`` propagates to the caller.
  3. Cache the report in ``settings['weather_cache']``.
  4. Aggregate the hourly forecast over the configured future window.
  5. Compute twilight flags for the local check time.
  6. Select the uniform (first matching rule, else default). No uniform, or
     a uniform id missing from the catalog, ends the check with no
     recommendation — a configuration gap, not an error.
  7. Evaluate accessory rules (built-in defaults when none are stored).
  8. Create a pending recommendation through the workflow (idempotent per
     slot and date unless ``force``).

``run_scheduled_weather_checks`` is the time-triggered counterpart of the
scheduler guard: when weather rules exist it runs this pipeline for each
enabled slot whose configured time is now.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Literal, Optional

from uotd.config import AppConfig
from uotd.db.repositories.catalog_repo import UniformRepository
from uotd.db.repositories.schedule_repo import ScheduleSlotRepository
from uotd.db.repositories.settings_repo import RuleStoreRepository, WeatherCacheRepository
from uotd.engine.forecast_window import get_forecast_for_window
from uotd.engine.rule_evaluator import evaluate_accessory_rules, select_uniform
from uotd.engine.twilight import get_twilight_status
from uotd.ingestion.weather_client import WeatherApiClient, WeatherFetchError
from uotd.models.recommendation import Recommendation
from uotd.models.rules import AccessoryEvaluation, UniformSelection
from uotd.models.weather import ForecastWindow, TwilightStatus, WeatherContext, WeatherReport
from uotd.taxonomy.weather_taxonomy import SYSTEM_ACTOR, TriggerSource
from uotd.utils.time_utils import determine_target_slot, is_slot_time, to_local, utcnow
from uotd.workflow.recommendation_workflow import RecommendationWorkflow

logger = logging.getLogger(__name__)

CheckStatus = Literal["created", "skipped", "no_recommendation"]

MSG_NO_UNIFORM = "No matching weather rule and no default uniform configured"
MSG_NO_LOCATION = "Weather location (latitude/longitude) is not configured"


# ── Result type ───────────────────────────────────────────────────────────────

@dataclass
class WeatherCheckResult:
    """Outcome of one weather check.

    Attributes:
        status:            ``created``, ``skipped`` or ``no_recommendation``.
        message:           Human-readable summary.
        recommendation_id: Created id, or the blocking id when skipped.
        target_slot:       Slot the check targeted.
        target_date:       Local date the check targeted.
        report:            Fetched report (``None`` if the check stopped early).
        window:            Aggregated forecast window, if any.
        twilight:          Twilight flags for the check time.
        selection:         Uniform-selection outcome.
        accessories:       Accessory evaluation.
        used_fixture:      True when fixture weather was used.
    """

    status:            CheckStatus
    message:           str
    recommendation_id: Optional[int] = None
    target_slot:       Optional[str] = None
    target_date:       Optional[date] = None
    report:            Optional[WeatherReport] = None
    window:            Optional[ForecastWindow] = None
    twilight:          Optional[TwilightStatus] = None
    selection:         Optional[UniformSelection] = None
    accessories:       Optional[AccessoryEvaluation] = None
    used_fixture:      bool = False

    @property
    def created(self) -> bool:
        return self.status == "created"


# ── Pipeline ──────────────────────────────────────────────────────────────────

class WeatherCheckPipeline:
    """Runs one weather check against an open database connection.

    Args:
        config: Application configuration.
        conn:   Open SQLite connection.
        client: Weather gateway; built from ``config.weather`` when omitted.
    """

    def __init__(
        self,
        config: AppConfig,
        conn: sqlite3.Connection,
        client: Optional[WeatherApiClient] = None,
    ) -> None:
        self.config = config
        self.conn = conn
        self.client = client or WeatherApiClient(
            api_key=config.weather.api_key,
            base_url=config.weather.base_url,
            units=config.weather.units,
            timeout=config.weather.timeout_sec,
            tz_name=config.schedule.timezone,
            cache_minutes=config.weather.cache_minutes,
        )
        self.rules = RuleStoreRepository(conn)
        self.uniforms = UniformRepository(conn)
        self.cache = WeatherCacheRepository(conn)
        self.workflow = RecommendationWorkflow(conn, speed_unit=config.recommendations.speed_unit)

    def _fetch(self, now: datetime) -> tuple[WeatherReport, bool]:
        weather_cfg = self.config.weather
        if not self.client.is_configured:
            lat = weather_cfg.latitude if weather_cfg.latitude is not None else 0.0
            lon = weather_cfg.longitude if weather_cfg.longitude is not None else 0.0
            return self.client.get_fixture_response(lat, lon, now=now), True

        if weather_cfg.latitude is None or weather_cfg.longitude is None:
            raise WeatherFetchError(MSG_NO_LOCATION)

        cached = self.cache.get_fresh(now)
        if cached is not None:
            logger.debug("Using cached weather report fetched at %s.", cached.fetched_at)
            return cached, False
        return self.client.fetch_report(weather_cfg.latitude, weather_cfg.longitude), False

    def run(
        self,
        triggered_by: TriggerSource = TriggerSource.MANUAL,
        user_id: str = SYSTEM_ACTOR,
        target_slot: Optional[str] = None,
        force: bool = False,
        now: Optional[datetime] = None,
    ) -> WeatherCheckResult:
        """Perform one weather check.

        Args:
            triggered_by: Scheduled tick or manual trigger.
            user_id:      Actor recorded as ``created_by``.
            target_slot:  Slot to target; inferred from the local hour if omitted.
            force:        Supersede any pending recommendation for the slot/date.
            now:          Check instant (UTC); defaults to ``utcnow()``.

        Returns:
            ``WeatherCheckResult``.

        Raises:
            WeatherFetchError: The weather gateway failed.
        """
        now = now or utcnow()
        tz_name = self.config.schedule.timezone
        rec_cfg = self.config.recommendations
        local_now = to_local(now, tz_name)

        slot = target_slot or determine_target_slot(now, tz_name)
        target_date = local_now.date()

        logger.info(
            "Weather check (%s by %s) for %s %s%s",
            triggered_by, user_id, target_date, slot, " [force]" if force else "",
        )

        uniform_rules = self.rules.get_uniform_rule_set()
        accessory_rules = self.rules.get_accessory_rules()

        report, used_fixture = self._fetch(now)
        self.cache.save(report)

        window = get_forecast_for_window(
            report.forecast.hourly,
            now,
            rec_cfg.forecast_window_start_min,
            rec_cfg.forecast_window_end_min,
        )
        if window is not None:
            context = WeatherContext.from_window(window, uv_index=report.current.uv_index)
        else:
            context = WeatherContext.from_report(report)

        twilight = get_twilight_status(report.astronomy, local_now, rec_cfg.twilight_minutes)
        threshold = rec_cfg.precipitation_fallback_threshold

        base = dict(
            target_slot=slot,
            target_date=target_date,
            report=report,
            window=window,
            twilight=twilight,
            used_fixture=used_fixture,
        )

        selection = select_uniform(context, uniform_rules, twilight, threshold)
        if not selection.has_uniform:
            logger.warning(MSG_NO_UNIFORM)
            return WeatherCheckResult(
                status="no_recommendation", message=MSG_NO_UNIFORM, selection=selection, **base
            )

        uniform = self.uniforms.get_by_id(selection.uniform_id)
        if uniform is None:
            message = f"Uniform {selection.uniform_id} not found in catalog"
            logger.warning(message)
            return WeatherCheckResult(
                status="no_recommendation", message=message, selection=selection, **base
            )

        evaluation = evaluate_accessory_rules(context, twilight, accessory_rules, threshold)
        override = evaluation.uniform_override

        rec = Recommendation(
            target_slot=slot,
            target_date=target_date,
            uniform_id=None if override else uniform.uniform_id,
            uniform_number=None if override else uniform.number,
            uniform_name=override.name if override else uniform.name,
            uniform_override=override,
            weather=context,
            current_weather=report.current,
            twilight=twilight,
            matched_rule_id=selection.matched_rule.id if selection.matched_rule else None,
            matched_rule_name=selection.matched_rule.name if selection.matched_rule else None,
            accessories=evaluation.accessories,
            accessory_rules=evaluation.matched_rules,
            triggered_by=triggered_by,
            created_by=user_id,
            created_at=now,
            expires_at=now + timedelta(hours=rec_cfg.expiry_hours),
        )

        outcome = self.workflow.create(rec, force=force, now=now)
        if outcome.created:
            message = f"Recommendation {outcome.recommendation_id} created: {rec.uniform_name}"
        else:
            message = (
                f"Recommendation already exists for {target_date} {slot} "
                f"(id={outcome.recommendation_id}, status={outcome.existing_status})"
            )

        return WeatherCheckResult(
            status=outcome.status,
            message=message,
            recommendation_id=outcome.recommendation_id,
            selection=selection,
            accessories=evaluation,
            **base,
        )


def run_scheduled_weather_checks(
    config: AppConfig,
    conn: sqlite3.Connection,
    client: Optional[WeatherApiClient] = None,
    now: Optional[datetime] = None,
) -> list[WeatherCheckResult]:
    """Run the weather check for every enabled slot whose time is now.

    Does nothing unless the uniform-selection rule set has rules (otherwise
    the scheduler guard posts directly). A gateway failure for one slot is
    logged and the remaining slots are still checked.
    """
    now = now or utcnow()
    if not RuleStoreRepository(conn).get_uniform_rule_set().has_rules:
        return []

    tz_name = config.schedule.timezone
    pipeline = WeatherCheckPipeline(config, conn, client)
    results: list[WeatherCheckResult] = []

    for slot in ScheduleSlotRepository(conn).get_enabled():
        if not is_slot_time(slot.time, now, tz_name):
            continue
        try:
            result = pipeline.run(
                triggered_by=TriggerSource.SCHEDULED,
                user_id=SYSTEM_ACTOR,
                target_slot=slot.slot_key,
                now=now,
            )
        except WeatherFetchError as exc:
            logger.error("Scheduled weather check for %s failed: %s", slot.slot_key, exc)
            continue
        logger.info("Scheduled weather check for %s: %s", slot.slot_key, result.message)
        results.append(result)

    return results
