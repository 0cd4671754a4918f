from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Generator

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS "user" (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        email_verified INTEGER NOT NULL DEFAULT 0,
        image TEXT NULL,
        password_hash TEXT NOT NULL,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS session (
        id TEXT PRIMARY KEY,
        token TEXT NOT NULL UNIQUE,
        user_id TEXT NOT NULL REFERENCES "user"(id) ON DELETE CASCADE,
        expires_at INTEGER NOT NULL,
        created_at INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS todo (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NULL,
        completed INTEGER NOT NULL DEFAULT 0,
        user_id TEXT NOT NULL REFERENCES "user"(id) ON DELETE CASCADE,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_session_user_id ON session(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_todo_user_id_created_at ON todo(user_id, created_at)",
)


class Database:
    """
    Connection factory for the sqlite store.

    Nothing is shared between units of work: every `connect()` opens its own
    connection, commits when the block exits cleanly and rolls back otherwise.
    Callers pass the yielded connection explicitly to repositories.
    """

    def __init__(self, db_path: str, timeout: float = 30.0) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._timeout = timeout

    @property
    def path(self) -> str:
        return self._db_path

    @contextmanager
    def connect(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        # Cascading deletes rely on this; sqlite keeps it off per connection.
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Create tables and indexes if they do not exist yet."""
        with self.connect() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
        logger.info("Database schema ready at %s", self._db_path)
