# Rev 0.2.0
from __future__ import annotations

import sqlite3
from typing import Any, List, Optional, Union

from taskz.models.entities import Collaborator
from taskz.models.types import CollaboratorRole


class SQLiteCollaboratorRepository:
    """Role-tagged collaborators of a task; one row per (task_id, user_id)."""

    def __init__(self, db_or_conn: Union[sqlite3.Connection, Any]):
        self._db_or_conn = db_or_conn

    def _conn(self) -> sqlite3.Connection:
        if isinstance(self._db_or_conn, sqlite3.Connection):
            return self._db_or_conn
        if hasattr(self._db_or_conn, "conn") and isinstance(self._db_or_conn.conn, sqlite3.Connection):
            return self._db_or_conn.conn
        raise RuntimeError("SQLiteCollaboratorRepository: could not obtain sqlite3.Connection.")

    @staticmethod
    def _row_to_collaborator(row: sqlite3.Row) -> Collaborator:
        return Collaborator(
            task_id=row["task_id"],
            user_id=row["user_id"],
            role=CollaboratorRole(row["role"]),
            added_at_utc=row["added_at_utc"],
        )

    def get(self, task_id: int, user_id: str) -> Optional[Collaborator]:
        row = self._conn().execute(
            "SELECT task_id, user_id, role, added_at_utc FROM task_collaborators "
            "WHERE task_id = ? AND user_id = ?",
            (task_id, user_id),
        ).fetchone()
        return self._row_to_collaborator(row) if row else None

    def list_for_task(self, task_id: int) -> List[Collaborator]:
        rows = self._conn().execute(
            "SELECT task_id, user_id, role, added_at_utc FROM task_collaborators "
            "WHERE task_id = ? ORDER BY added_at_utc, user_id",
            (task_id,),
        ).fetchall()
        return [self._row_to_collaborator(r) for r in rows]

    def upsert(self, task_id: int, user_id: str, role: CollaboratorRole, *, now: str) -> None:
        self._conn().execute(
            """
            INSERT INTO task_collaborators(task_id, user_id, role, added_at_utc)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(task_id, user_id) DO UPDATE SET role = excluded.role
            """,
            (task_id, user_id, role.value, now),
        )

    def remove(self, task_id: int, user_id: str) -> bool:
        cur = self._conn().execute(
            "DELETE FROM task_collaborators WHERE task_id = ? AND user_id = ?",
            (task_id, user_id),
        )
        return cur.rowcount > 0
