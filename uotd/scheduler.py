"""Scheduler daemon for the once-a-minute UOTD jobs.

No external scheduler library is required — uses stdlib ``time`` and
``signal`` only.

Typical usage via the CLI::

    uotd start-scheduler

Or import directly::

    from uotd.scheduler import SchedulerDaemon
    daemon = SchedulerDaemon(config)
    daemon.start()  # blocks until Ctrl-C

Jobs executed on every tick (aligned to the start of the minute):
  - **guard**          — direct slot posting (``SchedulerGuard.tick``)
  - **weather-checks** — weather-driven slot recommendations
                         (``run_scheduled_weather_checks``)
  - **auto-publish**   — system approval of unattended recommendations,
                         only when ``auto_publish_delay_minutes`` is set

Each job runs in its own connection/transaction, so a failure in one job is
logged and rolled back but does not affect the others or stop the daemon.
"""

from __future__ import annotations

import logging
import platform
import signal
import time
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from uotd.config import AppConfig
from uotd.db.connection import get_connection
from uotd.ingestion.weather_client import WeatherApiClient
from uotd.pipeline.weather_check import run_scheduled_weather_checks
from uotd.scheduling.guard import SchedulerGuard
from uotd.utils.time_utils import utcnow
from uotd.workflow.recommendation_workflow import RecommendationWorkflow

log = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────────────────────


def _seconds_until_next_tick(now: datetime, tick_seconds: int) -> float:
    """Seconds from ``now`` to the next multiple of ``tick_seconds`` past the epoch."""
    remainder = now.timestamp() % tick_seconds
    return tick_seconds - remainder


# ── Daemon ────────────────────────────────────────────────────────────────────


class SchedulerDaemon:
    """Runs the guard, scheduled weather checks and auto-publish every tick.

    Parameters
    ----------
    config:
        Application configuration (database, schedule, recommendations).
    client:
        Weather gateway shared by every scheduled check. Built from
        ``config.weather`` when *None*.
    """

    def __init__(self, config: AppConfig, client: Optional[WeatherApiClient] = None) -> None:
        self.config = config
        self.client = client or WeatherApiClient(
            api_key=config.weather.api_key,
            base_url=config.weather.base_url,
            units=config.weather.units,
            timeout=config.weather.timeout_sec,
            tz_name=config.schedule.timezone,
            cache_minutes=config.weather.cache_minutes,
        )
        self._running = False

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _run_job(self, label: str, job: Callable[..., object], now: datetime) -> bool:
        """Run one job inside its own connection. Returns ``True`` on success."""
        db = self.config.database
        try:
            with get_connection(db.db_path, db.wal_mode, db.busy_timeout_ms) as conn:
                job(conn, now)
            return True
        except Exception as exc:
            log.error("[%s] Failed: %s", label, exc, exc_info=True)
            return False

    # ── Jobs ──────────────────────────────────────────────────────────────────

    def run_guard(self, conn, now: datetime) -> None:  # noqa: ANN001
        result = SchedulerGuard(conn, self.config.schedule.timezone).tick(now)
        if result.fired:
            log.info("[guard] Fired: %s", result.fired)
        for key, message in result.errors.items():
            log.error("[guard] %s: %s", key, message)

    def run_weather_checks(self, conn, now: datetime) -> None:  # noqa: ANN001
        for result in run_scheduled_weather_checks(self.config, conn, self.client, now):
            log.info("[weather-checks] %s %s: %s", result.target_date, result.target_slot, result.message)

    def run_auto_publish(self, conn, now: datetime) -> None:  # noqa: ANN001
        delay = self.config.recommendations.auto_publish_delay_minutes
        if delay is None:
            return
        workflow = RecommendationWorkflow(conn, speed_unit=self.config.recommendations.speed_unit)
        workflow.auto_publish_pending(delay, now)

    def tick(self, now: Optional[datetime] = None) -> dict[str, bool]:
        """Run every job once. Returns job label → success."""
        now = now or utcnow()
        return {
            "guard":          self._run_job("guard", self.run_guard, now),
            "weather-checks": self._run_job("weather-checks", self.run_weather_checks, now),
            "auto-publish":   self._run_job("auto-publish", self.run_auto_publish, now),
        }

    # ── Main loop ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the daemon.  Blocks until Ctrl-C (or SIGTERM on Linux/macOS)."""
        tick_seconds = self.config.schedule.tick_seconds

        log.info(
            "Scheduler started.  timezone=%s  tick=%ds  db=%s  auto_publish=%s",
            self.config.schedule.timezone,
            tick_seconds,
            self.config.database.db_path,
            self.config.recommendations.auto_publish_delay_minutes,
        )

        self._running = True

        def _shutdown(signum, frame):  # noqa: ANN001
            log.info("Signal %d received — stopping scheduler.", signum)
            self._running = False

        signal.signal(signal.SIGINT, _shutdown)
        if platform.system() != "Windows":
            signal.signal(signal.SIGTERM, _shutdown)

        while self._running:
            self.tick()

            self._wait_until(time.monotonic() + _seconds_until_next_tick(utcnow(), tick_seconds))

        log.info("Scheduler stopped.")

    def _wait_until(self, deadline: float) -> None:
        """Sleep in steps of at most one second until ``deadline`` (monotonic) or ``stop()``."""
        while self._running:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            time.sleep(min(1.0, remaining))

    def stop(self) -> None:
        self._running = False
