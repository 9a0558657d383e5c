"""
Repository for ``schedule_slots``.

``claim_slot`` is the guard's compare-and-swap: it stamps a slot as fired for
a local date only if it has not already been stamped for that date, and
reports whether this caller won.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Optional

from uotd.db.repositories.base import BaseRepository
from uotd.models.schedule import ScheduleSlot
from uotd.utils.time_utils import isoformat_utc, utcnow

logger = logging.getLogger(__name__)


class ScheduleSlotRepository(BaseRepository):
    """Read/write access to ``schedule_slots``."""

    def upsert(self, slot: ScheduleSlot) -> None:
        """Insert or update a slot's configuration.

        The last-fired stamp is left untouched on update; it belongs to the
        scheduler guard.
        """
        self.execute(
            """
            INSERT INTO schedule_slots (slot_key, enabled, uniform_id, time, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(slot_key) DO UPDATE SET
                enabled    = excluded.enabled,
                uniform_id = excluded.uniform_id,
                time       = excluded.time,
                updated_at = excluded.updated_at;
            """,
            (
                slot.slot_key,
                int(slot.enabled),
                slot.uniform_id,
                slot.time,
                isoformat_utc(utcnow()),
            ),
        )

    def get(self, slot_key: str) -> Optional[ScheduleSlot]:
        row = self.fetchone("SELECT * FROM schedule_slots WHERE slot_key = ?;", (slot_key,))
        return _row_to_slot(row) if row else None

    def get_all(self) -> list[ScheduleSlot]:
        rows = self.fetchall("SELECT * FROM schedule_slots ORDER BY time, slot_key;")
        return [_row_to_slot(r) for r in rows]

    def get_enabled(self) -> list[ScheduleSlot]:
        rows = self.fetchall(
            "SELECT * FROM schedule_slots WHERE enabled = 1 ORDER BY time, slot_key;"
        )
        return [_row_to_slot(r) for r in rows]

    def claim_slot(self, slot_key: str, fired_at: datetime, local_date: date) -> bool:
        """Atomically mark ``slot_key`` as fired on ``local_date``.

        Args:
            slot_key:   Slot to claim.
            fired_at:   UTC firing instant to record.
            local_date: Today's date in the configured timezone.

        Returns:
            ``True`` if this call claimed the slot; ``False`` if it had
            already fired on ``local_date`` (or does not exist).
        """
        changed = self.update(
            """
            UPDATE schedule_slots
            SET last_fired = ?, last_fired_date = ?
            WHERE slot_key = ?
              AND (last_fired_date IS NULL OR last_fired_date <> ?);
            """,
            (isoformat_utc(fired_at), local_date.isoformat(), slot_key, local_date.isoformat()),
        )
        return changed == 1


def _row_to_slot(row: sqlite3.Row) -> ScheduleSlot:
    return ScheduleSlot(
        slot_key=row["slot_key"],
        enabled=bool(row["enabled"]),
        uniform_id=row["uniform_id"],
        time=row["time"],
        last_fired=datetime.fromisoformat(row["last_fired"]) if row["last_fired"] else None,
        last_fired_date=(
            date.fromisoformat(row["last_fired_date"]) if row["last_fired_date"] else None
        ),
    )
