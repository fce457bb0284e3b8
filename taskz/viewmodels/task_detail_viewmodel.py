# Rev 0.2.0 — detail page projection
from __future__ import annotations

from typing import Any, Dict, List, Optional

from PySide6.QtCore import QObject, Signal

from taskz.models.types import Surface
from taskz.viewmodels.projections import activity_row, subtask_row, task_row


class TaskDetailViewModel(QObject):
    """
    VM for one task's detail page: fields, subtasks with roll-up,
    collaborators and the activity log (newest first).
    Emits:
      - taskLoaded(detail: dict)
      - timelineLoaded(task_id: int, entries: list[dict])
    """

    taskLoaded = Signal(dict)
    timelineLoaded = Signal(int, list)

    SURFACE = Surface.DETAIL_VIEW

    def __init__(self, service, page_size: Optional[int] = None):
        super().__init__()
        self._svc = service
        self._task_id: Optional[int] = None
        self._page_size = page_size
        self._svc.events.taskChanged.connect(self._on_task_changed)

    def set_task(self, task_id: int) -> None:
        self._task_id = task_id

    @property
    def task_id(self) -> Optional[int]:
        return self._task_id

    def _require_task_id(self) -> int:
        if self._task_id is None:
            raise ValueError("TaskDetailViewModel has no task selected.")
        return self._task_id

    # ---- queries
    def detail(self) -> Dict[str, Any]:
        snap = self._svc.get_task(self._require_task_id())
        out = task_row(snap)
        out["subtasks"] = [subtask_row(s) for s in snap.subtasks]
        out["collaborators"] = [
            {"user_id": c.user_id, "role": c.role.value} for c in snap.collaborators
        ]
        return out

    def rollup_label(self) -> str:
        return self._svc.rollup(self._require_task_id()).label

    def activity(self, *, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return [activity_row(e) for e in self._svc.activity_log(self._require_task_id(), limit=limit)]

    def can_delete_subtasks(self, role) -> bool:
        """False means the delete control is hidden for this role."""
        return self._svc.can_delete_subtasks(role)

    def reload(self) -> None:
        if self._task_id is None:
            return
        self.taskLoaded.emit(self.detail())
        self.timelineLoaded.emit(self._task_id, self.activity(limit=self._page_size))

    # ---- task commands
    def change_status(self, *, new_status, editor):
        return self._svc.update_status(self._require_task_id(), new_status, editor, self.SURFACE)

    def update_fields(self, *, editor, **fields):
        return self._svc.update_fields(self._require_task_id(), editor=editor,
                                       origin_surface=self.SURFACE, **fields)

    def add_collaborator(self, *, user_id, role, editor):
        return self._svc.add_collaborator(self._require_task_id(), user_id, role,
                                          editor=editor, origin_surface=self.SURFACE)

    def remove_collaborator(self, *, user_id, editor) -> bool:
        return self._svc.remove_collaborator(self._require_task_id(), user_id,
                                             editor=editor, origin_surface=self.SURFACE)

    def add_tag(self, *, tag: str, editor):
        return self._svc.add_tag(self._require_task_id(), tag, editor=editor, origin_surface=self.SURFACE)

    def remove_tag(self, *, tag: str, editor):
        return self._svc.remove_tag(self._require_task_id(), tag, editor=editor, origin_surface=self.SURFACE)

    # ---- subtask commands
    def create_subtask(self, *, title: str, editor, notes: str | None = None, due_date=None,
                       status=None) -> int:
        kwargs = {} if status is None else {"status": status}
        return self._svc.create_subtask(self._require_task_id(), title, editor=editor,
                                        origin_surface=self.SURFACE, notes=notes,
                                        due_date=due_date, **kwargs)

    def change_subtask_status(self, *, subtask_id: int, new_status, editor):
        return self._svc.update_status(subtask_id, new_status, editor, self.SURFACE, kind="subtask")

    def update_subtask_fields(self, *, subtask_id: int, editor, **fields):
        return self._svc.update_subtask_fields(subtask_id, editor=editor,
                                               origin_surface=self.SURFACE, **fields)

    def delete_subtask(self, *, subtask_id: int, role, editor):
        return self._svc.delete_subtask(subtask_id, role, editor=editor, origin_surface=self.SURFACE)

    # ---- internals
    def _on_task_changed(self, task_id: int) -> None:
        if task_id == self._task_id:
            self.reload()
