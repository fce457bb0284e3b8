# Rev 0.2.0 — append-only task activity
from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, List, Optional, Union

from taskz.models.entities import ActivityEntry
from taskz.models.types import ActivityType, Surface


class SQLiteActivityRepository:
    """
    Read/append timeline entries for task_activity.

    Schema expectation:

      task_activity(
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        task_id INTEGER NOT NULL,
        type TEXT NOT NULL,
        recorded_at_utc TEXT NOT NULL,      -- ISO-8601, microseconds, UTC
        editor TEXT NOT NULL,
        origin_surface TEXT NOT NULL,
        field TEXT NULL, old_value TEXT NULL, new_value TEXT NULL,
        subtask_id INTEGER NULL, subject TEXT NULL
      )

    UPDATE/DELETE are rejected by triggers.
    """

    def __init__(self, db_or_conn: Union[sqlite3.Connection, Any]):
        self._db_or_conn = db_or_conn

    # -------------------------
    # Connection handling
    # -------------------------
    def _conn(self) -> sqlite3.Connection:
        if isinstance(self._db_or_conn, sqlite3.Connection):
            return self._db_or_conn
        if hasattr(self._db_or_conn, "conn") and isinstance(self._db_or_conn.conn, sqlite3.Connection):
            return self._db_or_conn.conn
        raise RuntimeError(
            "SQLiteActivityRepository: could not obtain sqlite3.Connection "
            "(expected .conn on wrapper, or a raw Connection)."
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> ActivityEntry:
        return ActivityEntry(
            id=row["id"],
            task_id=row["task_id"],
            type=ActivityType(row["type"]),
            timestamp=datetime.fromisoformat(row["recorded_at_utc"]),
            editor=row["editor"],
            origin_surface=Surface(row["origin_surface"]),
            field=row["field"],
            old_value=row["old_value"],
            new_value=row["new_value"],
            subtask_id=row["subtask_id"],
            subject=row["subject"],
        )

    # -------------------------
    # Queries
    # -------------------------
    def list_for_task(
        self,
        task_id: int,
        *,
        limit: int = 200,
        offset: int = 0,
        order_desc: bool = True,
    ) -> List[ActivityEntry]:
        order = "DESC" if order_desc else "ASC"
        rows = self._conn().execute(
            f"""
            SELECT id, task_id, type, recorded_at_utc, editor, origin_surface,
                   field, old_value, new_value, subtask_id, subject
            FROM task_activity
            WHERE task_id = ?
            ORDER BY recorded_at_utc {order}, id {order}
            LIMIT ? OFFSET ?
            """,
            (task_id, limit, offset),
        ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def last_timestamp(self, task_id: int) -> Optional[datetime]:
        row = self._conn().execute(
            "SELECT MAX(recorded_at_utc) FROM task_activity WHERE task_id = ?", (task_id,)
        ).fetchone()
        return datetime.fromisoformat(row[0]) if row and row[0] else None

    # -------------------------
    # Commands
    # -------------------------
    def append(
        self,
        task_id: int,
        *,
        entry_type: ActivityType,
        recorded_at: datetime,
        editor: str,
        origin_surface: Surface,
        field: Optional[str] = None,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        subtask_id: Optional[int] = None,
        subject: Optional[str] = None,
    ) -> int:
        cur = self._conn().execute(
            """
            INSERT INTO task_activity(task_id, type, recorded_at_utc, editor, origin_surface,
                                      field, old_value, new_value, subtask_id, subject)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task_id,
                entry_type.value,
                recorded_at.isoformat(timespec="microseconds"),
                editor,
                origin_surface.value,
                field,
                old_value,
                new_value,
                subtask_id,
                subject,
            ),
        )
        return int(cur.lastrowid)
