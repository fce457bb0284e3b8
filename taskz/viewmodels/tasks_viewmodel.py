# Rev 0.2.0 — list view projection
from __future__ import annotations

from typing import Any, Dict, List, Optional

from PySide6.QtCore import QObject, Signal

from taskz.models.types import Surface
from taskz.viewmodels.projections import task_row


class TaskListViewModel(QObject):
    """
    List view over TaskService. Holds filters only; rows are always re-read.
    Paging is optional; total always counts every match, rows holds one page.
    Emits:
      - tasksReloaded(total: int, rows: list[dict])
    """

    tasksReloaded = Signal(int, list)

    SURFACE = Surface.LIST_VIEW

    def __init__(self, service):
        super().__init__()
        self._svc = service
        self._project_id: Optional[int] = None
        self._status: Optional[str] = None
        self._search: Optional[str] = None
        self._limit: Optional[int] = None
        self._offset = 0
        self._svc.events.taskChanged.connect(self._on_task_changed)

    # ---- filters
    def set_filters(self, project_id: Optional[int] = None, status: Optional[str] = None,
                    search: Optional[str] = None) -> None:
        self._project_id, self._status, self._search = project_id, status, search
        self._offset = 0

    def set_page(self, limit: Optional[int], offset: int = 0) -> None:
        self._limit, self._offset = limit, offset

    # ---- queries
    def rows(self) -> List[Dict[str, Any]]:
        snaps = self._svc.list_tasks(project_id=self._project_id, status=self._status, search=self._search,
                                     limit=self._limit, offset=self._offset)
        return [task_row(s) for s in snaps]

    def row(self, task_id: int) -> Optional[Dict[str, Any]]:
        for r in self.rows():
            if r["id"] == task_id:
                return r
        return None

    def reload(self) -> None:
        total = self._svc.count_tasks(project_id=self._project_id, status=self._status, search=self._search)
        self.tasksReloaded.emit(total, self.rows())

    # ---- commands
    def create_task(self, *, title: str, editor, description: str | None = None,
                    priority=None, due_date=None, tags=()) -> int:
        kwargs = {} if priority is None else {"priority": priority}
        return self._svc.create_task(
            title, editor=editor, origin_surface=self.SURFACE,
            description=description, due_date=due_date,
            project_id=self._project_id, tags=tags, **kwargs,
        )

    def change_task_status(self, *, task_id: int, new_status, editor):
        return self._svc.update_status(task_id, new_status, editor, self.SURFACE)

    def change_subtask_status(self, *, subtask_id: int, new_status, editor):
        return self._svc.update_status(subtask_id, new_status, editor, self.SURFACE, kind="subtask")

    def set_task_priority(self, *, task_id: int, priority, editor):
        return self._svc.update_fields(task_id, priority=priority, editor=editor, origin_surface=self.SURFACE)

    # ---- internals
    def _on_task_changed(self, task_id: int) -> None:
        self.reload()
