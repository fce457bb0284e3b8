# Rev 0.2.0
from __future__ import annotations
import sqlite3
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Union

from taskz.models.entities import Subtask
from taskz.models.types import Status, STATUS_ORDER

_STATUS_BY_KEY = {s.key: s for s in STATUS_ORDER}

_SUBTASK_COLUMNS = "id, task_id, title, notes, status, due_date, created_at_utc, updated_at_utc"


class SQLiteSubtaskRepository:
    """
    Subtask CRUD. Every subtask belongs to exactly one task (FK, cascade).
    Never commits: callers run it inside Database.transaction().
    """

    def __init__(self, db_or_conn: Union[sqlite3.Connection, Any]):
        self._db_or_conn = db_or_conn

    # --------------- connection helpers ---------------
    def _conn(self) -> sqlite3.Connection:
        if isinstance(self._db_or_conn, sqlite3.Connection):
            return self._db_or_conn
        if hasattr(self._db_or_conn, "conn") and isinstance(self._db_or_conn.conn, sqlite3.Connection):
            return self._db_or_conn.conn
        raise RuntimeError("SQLiteSubtaskRepository: unable to obtain sqlite3.Connection (.conn expected).")

    @staticmethod
    def _row_to_subtask(row: sqlite3.Row) -> Subtask:
        return Subtask(
            id=row["id"],
            task_id=row["task_id"],
            title=row["title"],
            notes=row["notes"],
            status=_STATUS_BY_KEY[row["status"]],
            due_date=date.fromisoformat(row["due_date"]) if row["due_date"] else None,
            created_at_utc=row["created_at_utc"],
            updated_at_utc=row["updated_at_utc"],
        )

    # --------------- CRUD ---------------
    def create_subtask(
        self,
        *,
        task_id: int,
        title: str,
        now: str,
        notes: Optional[str] = None,
        status: Status = Status.TODO,
        due_date: Optional[date] = None,
    ) -> int:
        cur = self._conn().execute(
            """
            INSERT INTO subtasks(task_id, title, notes, status, due_date, created_at_utc, updated_at_utc)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (task_id, title, notes, status.key, due_date.isoformat() if due_date else None, now, now),
        )
        return int(cur.lastrowid)

    def get_subtask(self, subtask_id: int) -> Optional[Subtask]:
        row = self._conn().execute(
            f"SELECT {_SUBTASK_COLUMNS} FROM subtasks WHERE id = ?", (subtask_id,)
        ).fetchone()
        return self._row_to_subtask(row) if row else None

    def list_subtasks_for_task(self, task_id: int) -> List[Subtask]:
        rows = self._conn().execute(
            f"SELECT {_SUBTASK_COLUMNS} FROM subtasks WHERE task_id = ? ORDER BY id",
            (task_id,),
        ).fetchall()
        return [self._row_to_subtask(r) for r in rows]

    def list_subtasks_for_tasks(self, task_ids: Iterable[int]) -> Dict[int, List[Subtask]]:
        ids = list(task_ids)
        out: Dict[int, List[Subtask]] = {tid: [] for tid in ids}
        if not ids:
            return out
        marks = ", ".join("?" * len(ids))
        rows = self._conn().execute(
            f"SELECT {_SUBTASK_COLUMNS} FROM subtasks WHERE task_id IN ({marks}) ORDER BY task_id, id",
            ids,
        ).fetchall()
        for r in rows:
            out[r["task_id"]].append(self._row_to_subtask(r))
        return out

    def set_subtask_status(self, subtask_id: int, status: Status, *, now: str) -> bool:
        cur = self._conn().execute(
            "UPDATE subtasks SET status = ?, updated_at_utc = ? WHERE id = ?",
            (status.key, now, subtask_id),
        )
        return cur.rowcount > 0

    def update_subtask_fields(self, subtask_id: int, *, now: str, **fields: Any) -> bool:
        sets, params = [], []
        for name in ("title", "notes", "due_date"):
            if name not in fields:
                continue
            value = fields[name]
            if name == "due_date":
                value = value.isoformat() if value else None
            sets.append(f"{name} = ?")
            params.append(value)
        if not sets:
            return False
        sets.append("updated_at_utc = ?")
        params.extend([now, subtask_id])
        cur = self._conn().execute(f"UPDATE subtasks SET {', '.join(sets)} WHERE id = ?", params)
        return cur.rowcount > 0

    def delete_subtask(self, subtask_id: int) -> bool:
        cur = self._conn().execute("DELETE FROM subtasks WHERE id = ?", (subtask_id,))
        return cur.rowcount > 0
