"""
Base repository providing shared SQLite execution helpers.

All repositories inherit from ``BaseRepository`` and receive a
``sqlite3.Connection`` at construction time. The connection is assumed
to be opened and managed by the caller (typically via ``get_connection()``).

Design:
  - No ORM — all SQL is explicit and lives in repository methods.
  - Repositories speak Pydantic models, not raw dicts.
  - Nested structures (weather snapshots, accessory lists, overrides) are
    stored as JSON TEXT columns via ``dump_json`` / ``load_json``.
  - State transitions are conditional ``UPDATE ... WHERE`` statements;
    callers inspect the returned rowcount instead of reading first.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def dump_json(value: Any) -> Optional[str]:
    """Serialise a model, a sequence of models, or plain data to JSON text.

    Models are dumped with camelCase aliases so stored documents match the
    rule-store shape.
    """
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True)
    if isinstance(value, (list, tuple)):
        return json.dumps([
            v.model_dump(mode="json", by_alias=True) if isinstance(v, BaseModel) else v
            for v in value
        ])
    return json.dumps(value, default=str)


def load_json(text: Optional[str]) -> Any:
    """Parse JSON text from a column; ``None`` stays ``None``."""
    if text is None:
        return None
    return json.loads(text)


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> sqlite3.Cursor:
        """Execute a single SQL statement.

        Args:
            sql: SQL string with ``?`` or ``:name`` placeholders.
            params: Positional tuple or named dict of parameters.

        Returns:
            The resulting ``sqlite3.Cursor``.
        """
        logger.debug("SQL: %s | params: %s", sql.strip(), params)
        return self.conn.execute(sql, params)

    def fetchone(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> Optional[sqlite3.Row]:
        """Execute a query and return the first row, or ``None``."""
        return self.execute(sql, params).fetchone()

    def fetchall(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> list[sqlite3.Row]:
        """Execute a query and return all rows."""
        return self.execute(sql, params).fetchall()

    def update(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> int:
        """Execute a conditional UPDATE and return the number of rows changed.

        A return of ``0`` means the ``WHERE`` guard did not hold.
        """
        return self.execute(sql, params).rowcount

    def last_insert_rowid(self) -> int:
        """Return the rowid of the last successful INSERT."""
        row = self.conn.execute("SELECT last_insert_rowid();").fetchone()
        assert row is not None
        return int(row[0])
