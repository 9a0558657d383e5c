"""
Log output for the UOTD CLI and scheduler daemon.

Slot times, target dates and last-fired stamps are all local to the schedule
timezone, so text lines are stamped in that zone with its UTC offset::

    2025-01-10 11:30:00-0500 INFO    uotd.scheduling.guard: Fired lunch slot: ...

JSON lines (``json_format = true``) carry both the UTC instant and the local
wall-clock time::

    {"ts": "2025-01-10T16:30:00Z", "local": "2025-01-10T11:30:00-05:00", ...}

The daemon runs unattended, so the log file rolls over daily and keeps
``retention_days`` old files. Only the CLI calls ``configure_logging``.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

if TYPE_CHECKING:
    from uotd.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
LOCAL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S%z"

# Per-request INFO lines from the weather gateway's HTTP stack.
QUIET_LOGGERS = ("httpx", "httpcore")


class LocalTimeFormatter(logging.Formatter):
    """Text formatter that stamps records in a fixed IANA timezone."""

    def __init__(self, tz_name: str = "UTC") -> None:
        super().__init__(TEXT_FORMAT)
        self.tz = ZoneInfo(tz_name)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        return datetime.fromtimestamp(record.created, tz=self.tz).strftime(
            datefmt or LOCAL_TIME_FORMAT
        )


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record: ``ts``, ``local``, ``level``, ``logger``, ``msg``."""

    def __init__(self, tz_name: str = "UTC") -> None:
        super().__init__()
        self.tz = ZoneInfo(tz_name)

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict = {
            "ts": created.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "local": created.astimezone(self.tz).isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def build_formatter(config: "LoggingConfig", tz_name: str = "UTC") -> logging.Formatter:
    if config.json_format:
        return JsonLineFormatter(tz_name)
    return LocalTimeFormatter(tz_name)


def configure_logging(config: "LoggingConfig", tz_name: str = "UTC") -> None:
    """Install console and (optionally) daily-rotating file handlers on the root logger.

    Args:
        config:  ``[logging]`` section of ``AppConfig``.
        tz_name: Schedule timezone used for log timestamps.
    """
    level = logging.getLevelName(config.level)
    formatter = build_formatter(config, tz_name)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_path,
            when="midnight",
            backupCount=config.retention_days,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
