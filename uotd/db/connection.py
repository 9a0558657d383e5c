"""
SQLite connection management.

Provides a context manager ``get_connection()`` that:
  - Enables foreign key enforcement (OFF by default in SQLite).
  - Enables WAL journal mode so the scheduler daemon and CLI approvals can
    share the file.
  - Sets a busy timeout to handle lock contention gracefully.
  - Uses ``sqlite3.Row`` factory so rows behave like dicts.
  - Commits on clean exit, rolls back on exception.

``savepoint()`` wraps a block in a named SAVEPOINT so multi-statement state
changes (approve + announcement, slot claim + announcement) land together
or not at all, without committing the caller's outer transaction.

Usage::

    from uotd.db.connection import get_connection, savepoint

    with get_connection("data/db/uotd.db") as conn:
        with savepoint(conn, "approve"):
            conn.execute("UPDATE ...")
            conn.execute("INSERT ...")
"""

from __future__ import annotations

import logging
import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)

_SAVEPOINT_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The connection is committed on clean exit and rolled back on exception.
    The database file (and any parent directories) are created if they do
    not already exist.

    Args:
        db_path: Path to the SQLite database file. Use ``":memory:"`` for
            in-memory databases (useful in tests).
        wal_mode: If ``True``, enable WAL journal mode for better concurrency.
        busy_timeout_ms: Milliseconds to wait when the database is locked
            before raising ``OperationalError``.

    Yields:
        An open, configured ``sqlite3.Connection``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or is locked.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")

        if wal_mode and db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()


@contextmanager
def savepoint(conn: sqlite3.Connection, name: str) -> Generator[sqlite3.Connection, None, None]:
    """Run the enclosed block inside ``SAVEPOINT name``.

    On exception the savepoint is rolled back and released, and the
    exception re-raised. Outside any transaction the savepoint behaves like
    ``BEGIN`` / ``COMMIT``.

    Raises:
        ValueError: If ``name`` is not a plain SQL identifier.
    """
    if not _SAVEPOINT_NAME_RE.match(name):
        raise ValueError(f"Invalid savepoint name: {name!r}")

    conn.execute(f"SAVEPOINT {name};")
    try:
        yield conn
    except Exception:
        logger.debug("Rolling back savepoint %s", name)
        conn.execute(f"ROLLBACK TO SAVEPOINT {name};")
        conn.execute(f"RELEASE SAVEPOINT {name};")
        raise
    else:
        conn.execute(f"RELEASE SAVEPOINT {name};")
