"""
Repository for ``announcements``, the Announcement records handed to the
feed/notification subsystem.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Optional

from uotd.db.repositories.base import BaseRepository
from uotd.models.announcement import PUBLISHED, Announcement
from uotd.utils.time_utils import isoformat_utc

logger = logging.getLogger(__name__)


class AnnouncementRepository(BaseRepository):
    """Read/write access to ``announcements``."""

    def insert(self, announcement: Announcement) -> int:
        """Insert an announcement and return its ``announcement_id``."""
        self.execute(
            """
            INSERT INTO announcements (
                kind, title, content, uniform_id, uniform_number, uniform_name,
                target_slot, target_date, status, author_id, author_name,
                weather_based, recommendation_id, auto_published,
                weather_condition, weather_temp, published_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                announcement.kind,
                announcement.title,
                announcement.content,
                announcement.uniform_id,
                announcement.uniform_number,
                announcement.uniform_name,
                announcement.target_slot,
                announcement.target_date.isoformat(),
                announcement.status,
                announcement.author_id,
                announcement.author_name,
                int(announcement.weather_based),
                announcement.recommendation_id,
                int(announcement.auto_published),
                announcement.weather_condition,
                announcement.weather_temp,
                isoformat_utc(announcement.published_at),
            ),
        )
        return self.last_insert_rowid()

    def get_by_id(self, announcement_id: int) -> Optional[Announcement]:
        row = self.fetchone(
            "SELECT * FROM announcements WHERE announcement_id = ?;", (announcement_id,)
        )
        return _row_to_announcement(row) if row else None

    def find_published(self, target_slot: str, target_date: date) -> Optional[Announcement]:
        """Return the earliest published announcement for a slot and date, if any."""
        row = self.fetchone(
            """
            SELECT * FROM announcements
            WHERE target_slot = ? AND target_date = ? AND status = ?
            ORDER BY announcement_id
            LIMIT 1;
            """,
            (target_slot, target_date.isoformat(), PUBLISHED),
        )
        return _row_to_announcement(row) if row else None

    def count_for(self, target_slot: str, target_date: date) -> int:
        row = self.fetchone(
            "SELECT COUNT(*) FROM announcements WHERE target_slot = ? AND target_date = ?;",
            (target_slot, target_date.isoformat()),
        )
        return int(row[0]) if row else 0

    def get_recent(self, limit: int = 20) -> list[Announcement]:
        rows = self.fetchall(
            "SELECT * FROM announcements ORDER BY published_at DESC, announcement_id DESC LIMIT ?;",
            (limit,),
        )
        return [_row_to_announcement(r) for r in rows]


def _row_to_announcement(row: sqlite3.Row) -> Announcement:
    return Announcement(
        announcement_id=row["announcement_id"],
        kind=row["kind"],
        title=row["title"],
        content=row["content"],
        uniform_id=row["uniform_id"],
        uniform_number=row["uniform_number"],
        uniform_name=row["uniform_name"],
        target_slot=row["target_slot"],
        target_date=date.fromisoformat(row["target_date"]),
        status=row["status"],
        author_id=row["author_id"],
        author_name=row["author_name"],
        weather_based=bool(row["weather_based"]),
        recommendation_id=row["recommendation_id"],
        auto_published=bool(row["auto_published"]),
        weather_condition=row["weather_condition"],
        weather_temp=row["weather_temp"],
        published_at=datetime.fromisoformat(row["published_at"]),
    )
