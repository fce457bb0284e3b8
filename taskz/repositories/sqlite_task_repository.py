# Rev 0.2.0
from __future__ import annotations

import sqlite3
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Union

from taskz.models.entities import Task
from taskz.models.types import Priority, Status, STATUS_ORDER

_STATUS_BY_KEY = {s.key: s for s in STATUS_ORDER}

_TASK_COLUMNS = (
    "id, project_id, title, description, status, priority, due_date, "
    "created_at_utc, updated_at_utc"
)


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _escape_like(text: str) -> str:
    # literal match for user text inside LIKE ... ESCAPE '\'
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteTaskRepository:
    """
    Task CRUD + filtered listing + tags.
    Never commits: callers run it inside Database.transaction().
    """

    def __init__(self, db_or_conn: Union[sqlite3.Connection, Any]):
        self._db_or_conn = db_or_conn

    # -------------------------
    # Connection handling
    # -------------------------
    def _conn(self) -> sqlite3.Connection:
        c = None
        if isinstance(self._db_or_conn, sqlite3.Connection):
            c = self._db_or_conn
        elif hasattr(self._db_or_conn, "conn") and isinstance(self._db_or_conn.conn, sqlite3.Connection):
            c = self._db_or_conn.conn
        if c is None:
            raise RuntimeError(
                "SQLiteTaskRepository: could not obtain sqlite3.Connection "
                "(expected .conn on wrapper, or a raw Connection)."
            )
        return c

    def _row_to_task(self, row: sqlite3.Row, tags: Iterable[str] = ()) -> Task:
        return Task(
            id=row["id"],
            project_id=row["project_id"],
            title=row["title"],
            description=row["description"],
            status=_STATUS_BY_KEY[row["status"]],
            priority=Priority(row["priority"]),
            due_date=_parse_date(row["due_date"]),
            tags=frozenset(tags),
            created_at_utc=row["created_at_utc"],
            updated_at_utc=row["updated_at_utc"],
        )

    # -------------------------
    # CRUD
    # -------------------------
    def create_task(
        self,
        *,
        title: str,
        now: str,
        description: Optional[str] = None,
        status: Status = Status.TODO,
        priority: Priority = Priority.MEDIUM,
        due_date: Optional[date] = None,
        project_id: Optional[int] = None,
    ) -> int:
        cur = self._conn().execute(
            """
            INSERT INTO tasks(project_id, title, description, status, priority, due_date,
                              created_at_utc, updated_at_utc)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (project_id, title, description, status.key, int(priority),
             due_date.isoformat() if due_date else None, now, now),
        )
        return int(cur.lastrowid)

    def exists(self, task_id: int) -> bool:
        row = self._conn().execute("SELECT 1 FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return row is not None

    def get_task(self, task_id: int) -> Optional[Task]:
        con = self._conn()
        row = con.execute(f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return None
        return self._row_to_task(row, self.list_tags(task_id))

    def set_task_status(self, task_id: int, status: Status, *, now: str) -> bool:
        cur = self._conn().execute(
            "UPDATE tasks SET status = ?, updated_at_utc = ? WHERE id = ?",
            (status.key, now, task_id),
        )
        return cur.rowcount > 0

    def update_task_fields(self, task_id: int, *, now: str, **fields: Any) -> bool:
        """
        Partial update. Accepts title, description, priority, due_date.
        """
        sets, params = [], []
        for name in ("title", "description", "priority", "due_date"):
            if name not in fields:
                continue
            value = fields[name]
            if name == "priority":
                value = int(value)
            elif name == "due_date":
                value = value.isoformat() if value else None
            sets.append(f"{name} = ?")
            params.append(value)
        if not sets:
            return False
        sets.append("updated_at_utc = ?")
        params.extend([now, task_id])
        cur = self._conn().execute(f"UPDATE tasks SET {', '.join(sets)} WHERE id = ?", params)
        return cur.rowcount > 0

    def touch(self, task_id: int, *, now: str) -> None:
        self._conn().execute("UPDATE tasks SET updated_at_utc = ? WHERE id = ?", (now, task_id))

    # -------------------------
    # Tags
    # -------------------------
    def list_tags(self, task_id: int) -> List[str]:
        rows = self._conn().execute(
            "SELECT tag FROM task_tags WHERE task_id = ? ORDER BY tag", (task_id,)
        ).fetchall()
        return [r["tag"] for r in rows]

    def add_tag(self, task_id: int, tag: str) -> bool:
        cur = self._conn().execute(
            "INSERT OR IGNORE INTO task_tags(task_id, tag) VALUES (?, ?)", (task_id, tag)
        )
        return cur.rowcount > 0

    def remove_tag(self, task_id: int, tag: str) -> bool:
        cur = self._conn().execute(
            "DELETE FROM task_tags WHERE task_id = ? AND tag = ?", (task_id, tag)
        )
        return cur.rowcount > 0

    # -------------------------
    # Listings
    # -------------------------
    @staticmethod
    def _filters(project_id, status, search):
        where, params = [], []
        if project_id is not None:
            where.append("project_id = ?")
            params.append(project_id)
        if status is not None:
            where.append("status = ?")
            params.append(status.key)
        if search:
            where.append(
                "(title LIKE ? ESCAPE '\\' OR COALESCE(description, '') LIKE ? ESCAPE '\\')"
            )
            like = f"%{_escape_like(search)}%"
            params.extend([like, like])
        clause = f"WHERE {' AND '.join(where)}" if where else ""
        return clause, params

    def list_tasks_filtered(
        self,
        *,
        project_id: Optional[int] = None,
        status: Optional[Status] = None,
        search: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> List[Task]:
        con = self._conn()
        clause, params = self._filters(project_id, status, search)
        rows = con.execute(
            f"""
            SELECT {_TASK_COLUMNS}
            FROM tasks
            {clause}
            ORDER BY updated_at_utc DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset),
        ).fetchall()
        tags = self._tags_for([r["id"] for r in rows])
        return [self._row_to_task(r, tags.get(r["id"], ())) for r in rows]

    def count_tasks_total(
        self,
        *,
        project_id: Optional[int] = None,
        status: Optional[Status] = None,
        search: Optional[str] = None,
    ) -> int:
        clause, params = self._filters(project_id, status, search)
        row = self._conn().execute(f"SELECT COUNT(1) FROM tasks {clause}", params).fetchone()
        return int(row[0]) if row and row[0] is not None else 0

    def _tags_for(self, task_ids: List[int]) -> Dict[int, List[str]]:
        if not task_ids:
            return {}
        marks = ", ".join("?" * len(task_ids))
        rows = self._conn().execute(
            f"SELECT task_id, tag FROM task_tags WHERE task_id IN ({marks}) ORDER BY tag",
            task_ids,
        ).fetchall()
        out: Dict[int, List[str]] = {}
        for r in rows:
            out.setdefault(r["task_id"], []).append(r["tag"])
        return out
