"""
Repository for the Uniform Catalog (``uniforms``).
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from uotd.db.repositories.base import BaseRepository
from uotd.models.announcement import Uniform
from uotd.utils.time_utils import isoformat_utc, utcnow

logger = logging.getLogger(__name__)


class UniformRepository(BaseRepository):
    """Read/write access to ``uniforms``."""

    def upsert(self, uniform: Uniform) -> None:
        """Insert a uniform or update its number, name and description."""
        self.execute(
            """
            INSERT INTO uniforms (uniform_id, number, name, description, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(uniform_id) DO UPDATE SET
                number      = excluded.number,
                name        = excluded.name,
                description = excluded.description,
                updated_at  = excluded.updated_at;
            """,
            (
                uniform.uniform_id,
                uniform.number,
                uniform.name,
                uniform.description,
                isoformat_utc(utcnow()),
            ),
        )

    def get_by_id(self, uniform_id: str) -> Optional[Uniform]:
        """Resolve a uniform id, or return ``None`` if it is not in the catalog."""
        row = self.fetchone("SELECT * FROM uniforms WHERE uniform_id = ?;", (uniform_id,))
        return _row_to_uniform(row) if row else None

    def get_all(self) -> list[Uniform]:
        rows = self.fetchall("SELECT * FROM uniforms ORDER BY number, uniform_id;")
        return [_row_to_uniform(r) for r in rows]


def _row_to_uniform(row: sqlite3.Row) -> Uniform:
    return Uniform(
        uniform_id=row["uniform_id"],
        number=row["number"],
        name=row["name"],
        description=row["description"],
    )
