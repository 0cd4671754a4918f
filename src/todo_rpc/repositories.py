from __future__ import annotations

import sqlite3
import uuid
from dataclasses import dataclass
from typing import List, Optional

from .models import TodoEntity
from .schemas import TodoCreate, TodoUpdate
from .utils import from_micros, now_micros


@dataclass(frozen=True)
class _Cols:
    table: str = "todo"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    completed: str = "completed"
    user_id: str = "user_id"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()

# Columns a TodoUpdate may write, mapped to their sqlite encoder.
_UPDATABLE = {
    _COLS.title: lambda v: v,
    _COLS.description: lambda v: v,
    _COLS.completed: lambda v: 1 if v else 0,
}

# updated_at never goes backwards, even if two writes land in the same microsecond.
_TOUCH = f"{_COLS.updated_at} = MAX(?, {_COLS.updated_at} + 1)"
_OWNED = f"{_COLS.id} = ? AND {_COLS.user_id} = ?"


# PUBLIC_INTERFACE
class TodoRepository:
    """
    Owner-scoped todo storage over a single sqlite connection.

    Every statement filters on the owner, and every statement addressing one
    row filters on (id, owner) together. A row that is absent and a row that
    belongs to someone else are reported the same way: None / False.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        return {
            "id": str(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "description": row[_COLS.description],
            "completed": bool(row[_COLS.completed]),
            "user_id": str(row[_COLS.user_id]),
            "created_at": from_micros(row[_COLS.created_at]),
            "updated_at": from_micros(row[_COLS.updated_at]),
        }

    def _fetch_owned(self, todo_id: str, owner_id: str) -> Optional[TodoEntity]:
        row = self._conn.execute(
            f"SELECT * FROM {_COLS.table} WHERE {_OWNED}", (todo_id, owner_id)
        ).fetchone()
        return self._row_to_entity(row) if row else None

    def list_mine(self, owner_id: str) -> List[TodoEntity]:
        """Return the owner's todos, newest first. Empty list when there are none."""
        rows = self._conn.execute(
            f"""
            SELECT * FROM {_COLS.table}
            WHERE {_COLS.user_id} = ?
            ORDER BY {_COLS.created_at} DESC, rowid DESC
            """,
            (owner_id,),
        ).fetchall()
        return [self._row_to_entity(r) for r in rows]

    def get_one(self, todo_id: str, owner_id: str) -> Optional[TodoEntity]:
        return self._fetch_owned(todo_id, owner_id)

    def create(self, owner_id: str, data: TodoCreate) -> TodoEntity:
        """Insert a new todo owned by `owner_id`; completed always starts false."""
        todo_id = str(uuid.uuid4())
        now = now_micros()
        self._conn.execute(
            f"""
            INSERT INTO {_COLS.table} ({_COLS.id}, {_COLS.title}, {_COLS.description},
                {_COLS.completed}, {_COLS.user_id}, {_COLS.created_at}, {_COLS.updated_at})
            VALUES (?, ?, ?, 0, ?, ?, ?)
            """,
            (todo_id, data.title, data.description, owner_id, now, now),
        )
        created = self._fetch_owned(todo_id, owner_id)
        assert created is not None
        return created

    def update(self, owner_id: str, data: TodoUpdate) -> Optional[TodoEntity]:
        """
        Write the fields present in `data` to the owned row.

        Returns the updated entity, or None if no owned row matched.
        """
        todo_id = str(data.id)
        assignments: List[str] = []
        params: list = []
        for name, value in data.changes().items():
            encode = _UPDATABLE.get(name)
            if encode is None:
                continue
            assignments.append(f"{name} = ?")
            params.append(encode(value))
        assignments.append(_TOUCH)
        params.append(now_micros())

        cur = self._conn.execute(
            f"UPDATE {_COLS.table} SET {', '.join(assignments)} WHERE {_OWNED}",
            [*params, todo_id, owner_id],
        )
        if cur.rowcount == 0:
            return None
        return self._fetch_owned(todo_id, owner_id)

    def toggle(self, todo_id: str, owner_id: str) -> Optional[TodoEntity]:
        """
        Invert the completed flag of the owned row in a single statement.

        Two concurrent toggles therefore always flip twice. Returns None if no
        owned row matched.
        """
        cur = self._conn.execute(
            f"""
            UPDATE {_COLS.table}
            SET {_COLS.completed} = NOT {_COLS.completed}, {_TOUCH}
            WHERE {_OWNED}
            """,
            (now_micros(), todo_id, owner_id),
        )
        if cur.rowcount == 0:
            return None
        return self._fetch_owned(todo_id, owner_id)

    def delete(self, todo_id: str, owner_id: str) -> bool:
        """Delete the owned row. Return True if deleted, False if no owned row matched."""
        cur = self._conn.execute(
            f"DELETE FROM {_COLS.table} WHERE {_OWNED}", (todo_id, owner_id)
        )
        return cur.rowcount > 0
