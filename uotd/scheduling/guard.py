"""
Scheduler guard: fires at most one direct announcement per slot per day.

Runs once a minute. Order of checks for each tick:

  1. If the uniform-selection (weather) rule set holds at least one rule,
     every slot is deferred: the weather-driven path owns posting.
  2. For each enabled slot:
       - no uniform configured                     → skipped
       - local time (configured tz) != slot time   → skipped
       - already fired on today's local date       → skipped
  3. Load the uniform. A missing uniform is recorded as an error for that
     slot only; the remaining slots are still processed.
  4. Inside one savepoint: claim the slot with a compare-and-swap on
     ``last_fired_date`` and write the announcement. Losing the claim to a
     concurrent tick is a skip, not an error.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from uotd.db.connection import savepoint
from uotd.db.repositories.announcement_repo import AnnouncementRepository
from uotd.db.repositories.catalog_repo import UniformRepository
from uotd.db.repositories.schedule_repo import ScheduleSlotRepository
from uotd.db.repositories.settings_repo import RuleStoreRepository
from uotd.utils.time_utils import is_same_local_day, is_slot_time, local_today, utcnow
from uotd.workflow.announcements import build_scheduled_announcement

logger = logging.getLogger(__name__)

SKIP_NO_UNIFORM = "no uniform configured"
SKIP_NOT_TIME = "not slot time"
SKIP_ALREADY_FIRED = "already fired today"
SKIP_CLAIM_LOST = "claimed by concurrent tick"


@dataclass
class GuardTickResult:
    """Outcome of one scheduler-guard tick.

    Attributes:
        fired:    Slot key → announcement id for slots posted this tick.
        skipped:  Slot key → reason for slots not posted.
        errors:   Slot key → error message for slots that failed.
        deferred: True when weather rules exist and all slots were skipped.
    """

    fired:    dict[str, int] = field(default_factory=dict)
    skipped:  dict[str, str] = field(default_factory=dict)
    errors:   dict[str, str] = field(default_factory=dict)
    deferred: bool = False


class SchedulerGuard:
    """Direct (non-weather) slot posting with a once-per-day guarantee.

    Args:
        conn:     Open SQLite connection.
        timezone: IANA timezone slot times are configured in.
    """

    def __init__(self, conn: sqlite3.Connection, timezone: str) -> None:
        self.conn = conn
        self.timezone = timezone
        self.slots = ScheduleSlotRepository(conn)
        self.uniforms = UniformRepository(conn)
        self.announcements = AnnouncementRepository(conn)
        self.rules = RuleStoreRepository(conn)

    def tick(self, now: Optional[datetime] = None) -> GuardTickResult:
        """Process every enabled slot once for the minute containing ``now``."""
        now = now or utcnow()
        result = GuardTickResult()

        if self.rules.get_uniform_rule_set().has_rules:
            logger.debug("Weather rules configured; deferring all slots to weather checks.")
            result.deferred = True
            return result

        today = local_today(now, self.timezone)

        for slot in self.slots.get_enabled():
            key = slot.slot_key

            if not slot.uniform_id:
                result.skipped[key] = SKIP_NO_UNIFORM
                continue
            if not is_slot_time(slot.time, now, self.timezone):
                result.skipped[key] = SKIP_NOT_TIME
                continue
            if slot.last_fired_date == today or (
                slot.last_fired_date is None and is_same_local_day(slot.last_fired, now, self.timezone)
            ):
                result.skipped[key] = SKIP_ALREADY_FIRED
                continue

            uniform = self.uniforms.get_by_id(slot.uniform_id)
            if uniform is None:
                message = f"Uniform {slot.uniform_id} not found"
                logger.error("Slot %s: %s", key, message)
                result.errors[key] = message
                continue

            try:
                with savepoint(self.conn, "fire_slot"):
                    if not self.slots.claim_slot(key, now, today):
                        result.skipped[key] = SKIP_CLAIM_LOST
                        continue
                    announcement = build_scheduled_announcement(uniform, key, now, today)
                    result.fired[key] = self.announcements.insert(announcement)
            except sqlite3.Error as exc:
                logger.error("Slot %s: failed to post announcement: %s", key, exc)
                result.errors[key] = str(exc)
                continue

            logger.info(
                "Fired %s slot: uniform #%s %s (announcement %d).",
                key, uniform.number, uniform.name, result.fired[key],
            )

        return result
