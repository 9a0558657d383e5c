"""
Repository for ``weather_recommendations``.

Every state change is a conditional ``UPDATE ... WHERE status = 'pending'``
returning whether it applied, so two racing callers can never both move the
same row. The partial unique index in ``schema.py`` guarantees at most one
pending row per (target_slot, target_date); a losing insert raises
``sqlite3.IntegrityError``.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Optional

from uotd.db.repositories.base import BaseRepository, dump_json, load_json
from uotd.models.recommendation import Recommendation
from uotd.models.rules import AccessoryItem, MatchedRuleSummary, UniformOverride
from uotd.models.weather import TwilightStatus, WeatherContext, WeatherSnapshot
from uotd.taxonomy.weather_taxonomy import RecommendationStatus
from uotd.utils.time_utils import isoformat_utc

logger = logging.getLogger(__name__)

_PENDING = RecommendationStatus.PENDING.value


class RecommendationRepository(BaseRepository):
    """Read/write access to ``weather_recommendations``."""

    # ── Writes ────────────────────────────────────────────────────────────────

    def insert(self, rec: Recommendation) -> int:
        """Insert a recommendation and return its ``recommendation_id``.

        Raises:
            sqlite3.IntegrityError: If a pending row already exists for the
                same (target_slot, target_date).
        """
        self.execute(
            """
            INSERT INTO weather_recommendations (
                status, target_slot, target_date,
                uniform_id, uniform_number, uniform_name, uniform_override,
                weather, current_weather, twilight,
                matched_rule_id, matched_rule_name,
                accessories, accessory_rules,
                triggered_by, created_by, created_at, expires_at,
                custom_title, custom_content, auto_published
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                rec.status.value,
                rec.target_slot,
                rec.target_date.isoformat(),
                rec.uniform_id,
                rec.uniform_number,
                rec.uniform_name,
                dump_json(rec.uniform_override),
                dump_json(rec.weather),
                dump_json(rec.current_weather),
                dump_json(rec.twilight),
                rec.matched_rule_id,
                rec.matched_rule_name,
                dump_json(list(rec.accessories)),
                dump_json(list(rec.accessory_rules)),
                rec.triggered_by.value,
                rec.created_by,
                isoformat_utc(rec.created_at),
                isoformat_utc(rec.expires_at),
                rec.custom_title,
                rec.custom_content,
                int(rec.auto_published),
            ),
        )
        return self.last_insert_rowid()

    def mark_approved(
        self,
        recommendation_id: int,
        approved_by: str,
        approved_at: datetime,
        custom_title: Optional[str] = None,
        custom_content: Optional[str] = None,
        auto_published: bool = False,
    ) -> bool:
        """Move a pending row to ``approved``. Returns ``False`` if it was not pending."""
        changed = self.update(
            """
            UPDATE weather_recommendations
            SET status         = 'approved',
                approved_by    = ?,
                approved_at    = ?,
                custom_title   = ?,
                custom_content = ?,
                auto_published = ?
            WHERE recommendation_id = ? AND status = 'pending';
            """,
            (
                approved_by,
                isoformat_utc(approved_at),
                custom_title,
                custom_content,
                int(auto_published),
                recommendation_id,
            ),
        )
        return changed == 1

    def set_announcement(self, recommendation_id: int, announcement_id: int) -> None:
        self.execute(
            "UPDATE weather_recommendations SET announcement_id = ? WHERE recommendation_id = ?;",
            (announcement_id, recommendation_id),
        )

    def mark_rejected(
        self,
        recommendation_id: int,
        rejected_by: str,
        rejected_at: datetime,
        reason: Optional[str] = None,
    ) -> bool:
        """Move a pending row to ``rejected``. Returns ``False`` if it was not pending."""
        changed = self.update(
            """
            UPDATE weather_recommendations
            SET status           = 'rejected',
                rejected_by      = ?,
                rejected_at      = ?,
                rejection_reason = ?
            WHERE recommendation_id = ? AND status = 'pending';
            """,
            (rejected_by, isoformat_utc(rejected_at), reason, recommendation_id),
        )
        return changed == 1

    def mark_superseded(
        self,
        recommendation_id: int,
        superseded_by: str,
        superseded_at: datetime,
    ) -> bool:
        """Move a pending row to ``superseded``. Returns ``False`` if it was not pending."""
        changed = self.update(
            """
            UPDATE weather_recommendations
            SET status = 'superseded', superseded_by = ?, superseded_at = ?
            WHERE recommendation_id = ? AND status = 'pending';
            """,
            (superseded_by, isoformat_utc(superseded_at), recommendation_id),
        )
        return changed == 1

    def supersede_pending(
        self,
        target_slot: str,
        target_date: date,
        superseded_by: str,
        superseded_at: datetime,
    ) -> list[int]:
        """Supersede every pending row for a slot and date.

        Returns:
            Ids of the rows this call moved.
        """
        superseded: list[int] = []
        for rec in self.get_for_slot_date(target_slot, target_date, RecommendationStatus.PENDING):
            assert rec.recommendation_id is not None
            if self.mark_superseded(rec.recommendation_id, superseded_by, superseded_at):
                superseded.append(rec.recommendation_id)
        return superseded

    def expire_pending_before(self, now: datetime) -> list[int]:
        """Move pending rows whose ``expires_at`` has passed to ``expired``.

        Returns:
            Ids of the rows this call expired.
        """
        rows = self.fetchall(
            """
            SELECT recommendation_id FROM weather_recommendations
            WHERE status = 'pending' AND expires_at <= ?
            ORDER BY recommendation_id;
            """,
            (isoformat_utc(now),),
        )
        expired: list[int] = []
        for row in rows:
            changed = self.update(
                """
                UPDATE weather_recommendations SET status = 'expired'
                WHERE recommendation_id = ? AND status = 'pending';
                """,
                (row["recommendation_id"],),
            )
            if changed:
                expired.append(row["recommendation_id"])
        return expired

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get_by_id(self, recommendation_id: int) -> Optional[Recommendation]:
        row = self.fetchone(
            "SELECT * FROM weather_recommendations WHERE recommendation_id = ?;",
            (recommendation_id,),
        )
        return _row_to_recommendation(row) if row else None

    def find_active(self, target_slot: str, target_date: date) -> Optional[Recommendation]:
        """Return the newest pending or approved row for a slot and date."""
        row = self.fetchone(
            """
            SELECT * FROM weather_recommendations
            WHERE target_slot = ? AND target_date = ?
              AND status IN ('pending', 'approved')
            ORDER BY recommendation_id DESC
            LIMIT 1;
            """,
            (target_slot, target_date.isoformat()),
        )
        return _row_to_recommendation(row) if row else None

    def get_for_slot_date(
        self,
        target_slot: str,
        target_date: date,
        status: Optional[RecommendationStatus] = None,
    ) -> list[Recommendation]:
        if status is None:
            rows = self.fetchall(
                """
                SELECT * FROM weather_recommendations
                WHERE target_slot = ? AND target_date = ?
                ORDER BY recommendation_id;
                """,
                (target_slot, target_date.isoformat()),
            )
        else:
            rows = self.fetchall(
                """
                SELECT * FROM weather_recommendations
                WHERE target_slot = ? AND target_date = ? AND status = ?
                ORDER BY recommendation_id;
                """,
                (target_slot, target_date.isoformat(), status.value),
            )
        return [_row_to_recommendation(r) for r in rows]

    def get_recent(
        self,
        status: Optional[RecommendationStatus] = None,
        limit: int = 50,
    ) -> list[Recommendation]:
        if status is None:
            rows = self.fetchall(
                """
                SELECT * FROM weather_recommendations
                ORDER BY created_at DESC, recommendation_id DESC LIMIT ?;
                """,
                (limit,),
            )
        else:
            rows = self.fetchall(
                """
                SELECT * FROM weather_recommendations WHERE status = ?
                ORDER BY created_at DESC, recommendation_id DESC LIMIT ?;
                """,
                (status.value, limit),
            )
        return [_row_to_recommendation(r) for r in rows]

    def get_pending_created_before(self, cutoff: datetime) -> list[Recommendation]:
        rows = self.fetchall(
            """
            SELECT * FROM weather_recommendations
            WHERE status = 'pending' AND created_at <= ?
            ORDER BY created_at, recommendation_id;
            """,
            (isoformat_utc(cutoff),),
        )
        return [_row_to_recommendation(r) for r in rows]

    def count_by_status(self, status: RecommendationStatus = RecommendationStatus.PENDING) -> int:
        row = self.fetchone(
            "SELECT COUNT(*) FROM weather_recommendations WHERE status = ?;",
            (status.value,),
        )
        return int(row[0]) if row else 0


def _opt_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_recommendation(row: sqlite3.Row) -> Recommendation:
    override = load_json(row["uniform_override"])
    current = load_json(row["current_weather"])
    twilight = load_json(row["twilight"])
    return Recommendation(
        recommendation_id=row["recommendation_id"],
        status=RecommendationStatus(row["status"]),
        target_slot=row["target_slot"],
        target_date=date.fromisoformat(row["target_date"]),
        uniform_id=row["uniform_id"],
        uniform_number=row["uniform_number"],
        uniform_name=row["uniform_name"],
        uniform_override=UniformOverride.model_validate(override) if override else None,
        weather=WeatherContext.model_validate(load_json(row["weather"])),
        current_weather=WeatherSnapshot.model_validate(current) if current else None,
        twilight=TwilightStatus.model_validate(twilight) if twilight else None,
        matched_rule_id=row["matched_rule_id"],
        matched_rule_name=row["matched_rule_name"],
        accessories=tuple(
            AccessoryItem.model_validate(a) for a in load_json(row["accessories"]) or []
        ),
        accessory_rules=tuple(
            MatchedRuleSummary.model_validate(m) for m in load_json(row["accessory_rules"]) or []
        ),
        triggered_by=row["triggered_by"],
        created_by=row["created_by"],
        created_at=datetime.fromisoformat(row["created_at"]),
        expires_at=datetime.fromisoformat(row["expires_at"]),
        approved_by=row["approved_by"],
        approved_at=_opt_dt(row["approved_at"]),
        rejected_by=row["rejected_by"],
        rejected_at=_opt_dt(row["rejected_at"]),
        rejection_reason=row["rejection_reason"],
        custom_title=row["custom_title"],
        custom_content=row["custom_content"],
        announcement_id=row["announcement_id"],
        superseded_by=row["superseded_by"],
        superseded_at=_opt_dt(row["superseded_at"]),
        auto_published=bool(row["auto_published"]),
    )
