# Rev 0.2.0 — kanban board projection
from __future__ import annotations

from typing import Any, Dict, List, Optional

from PySide6.QtCore import QObject, Signal

from taskz.models.errors import InvalidStatus
from taskz.models.types import STATUS_ORDER, Status, Surface
from taskz.services.rollup import status_breakdown
from taskz.services.status_rules import allowed_transitions, parse_status
from taskz.viewmodels.projections import task_row


class KanbanBoardViewModel(QObject):
    """
    One column per status, in STATUS_ORDER. Dropping a card on a column is a
    status change tagged kanban_board.
    Emits:
      - boardReloaded(columns: dict[str, list[dict]])
    """

    boardReloaded = Signal(dict)

    SURFACE = Surface.KANBAN_BOARD

    def __init__(self, service):
        super().__init__()
        self._svc = service
        self._project_id: Optional[int] = None
        self._svc.events.taskChanged.connect(self._on_task_changed)

    def set_project(self, project_id: Optional[int]) -> None:
        self._project_id = project_id

    # ---- queries
    def columns(self) -> Dict[str, List[Dict[str, Any]]]:
        snaps = self._svc.list_tasks(project_id=self._project_id)
        cols: Dict[str, List[Dict[str, Any]]] = {s.value: [] for s in STATUS_ORDER}
        for snap in snaps:
            cols[snap.task.status.value].append(task_row(snap))
        return cols

    def column_counts(self) -> Dict[str, int]:
        snaps = self._svc.list_tasks(project_id=self._project_id)
        return {s.value: n for s, n in status_breakdown(snap.task for snap in snaps).items()}

    def column_titles(self) -> List[str]:
        return [s.label for s in STATUS_ORDER]

    def card(self, task_id: int) -> Optional[Dict[str, Any]]:
        for cards in self.columns().values():
            for c in cards:
                if c["id"] == task_id:
                    return c
        return None

    def reload(self) -> None:
        self.boardReloaded.emit(self.columns())

    # ---- commands
    def can_drop(self, task_id: int, to_status) -> bool:
        try:
            target = parse_status(to_status)
        except InvalidStatus:
            return False
        current: Status = self._svc.get_task(task_id).task.status
        return target in allowed_transitions(current)

    def move_task(self, *, task_id: int, to_status, editor):
        return self._svc.update_status(task_id, to_status, editor, self.SURFACE)

    # ---- internals
    def _on_task_changed(self, task_id: int) -> None:
        self.reload()
