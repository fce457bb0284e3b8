# Rev 0.2.0
from __future__ import annotations

from PySide6.QtCore import QObject, Signal


class TaskEvents(QObject):
    """
    Change notifications from TaskService, emitted after commit.
    Emits:
      - taskChanged(task_id: int)
      - subtaskDeleted(task_id: int, subtask_id: int)
      - activityAppended(task_id: int, entry_id: int)
    """

    taskChanged = Signal(int)
    subtaskDeleted = Signal(int, int)
    activityAppended = Signal(int, int)
