"""
Database connection, initialization and transactions.
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from leaguereg.config import get_settings

from .schema import all_schema_sql


class StoreConnection(sqlite3.Connection):
    """
    sqlite3 connection whose commit() is deferred while inside transaction().
    Repositories commit after every write; inside a transaction those commits
    are no-ops and the outermost scope commits or rolls back once.
    """

    tx_depth = 0

    def commit(self) -> None:
        if self.tx_depth == 0:
            super().commit()


_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path."""
    if _db_path is not None:
        return _db_path
    return get_settings().db_path


def get_connection(db_path: str | Path | None = None) -> StoreConnection:
    """
    Return a new SQLite connection with foreign keys enforced.
    Use as context manager or ensure close() is called.
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), factory=StoreConnection)
    conn.row_factory = sqlite3.Row
    # Cascade from teams to league_payments depends on this
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: StoreConnection) -> Generator[StoreConnection, None, None]:
    """
    Run a group of repository calls as one atomic unit.
    The outermost scope takes the write lock up front (BEGIN IMMEDIATE) so
    reads inside it cannot go stale before the writes land.
    Nested scopes join the outer one. Any exception rolls everything back.
    """
    if conn.tx_depth == 0:
        if conn.in_transaction:
            # Flush an implicit transaction left open by a plain write
            conn.commit()
        conn.execute("BEGIN IMMEDIATE")
    conn.tx_depth += 1
    try:
        yield conn
    except BaseException:
        conn.tx_depth -= 1
        if conn.tx_depth == 0:
            conn.rollback()
        raise
    conn.tx_depth -= 1
    if conn.tx_depth == 0:
        conn.commit()


def init_db(db_path: str | Path | None = None) -> None:
    """Create or ensure all tables exist."""
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(path)
    try:
        conn.executescript(all_schema_sql())
        conn.commit()
    finally:
        conn.close()
