# taskZ application context
# Rev 0.2.0

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .utils.config import load_settings
from .utils.logging_setup import get_logger
from .repositories.db import Database
from .repositories.sqlite_task_repository import SQLiteTaskRepository
from .repositories.sqlite_subtask_repository import SQLiteSubtaskRepository
from .repositories.sqlite_collaborator_repository import SQLiteCollaboratorRepository
from .repositories.sqlite_activity_repository import SQLiteActivityRepository
from .services.activity_log import ActivityLogRecorder, Clock, utc_now
from .services.task_service import TaskService
from .viewmodels.board_viewmodel import KanbanBoardViewModel
from .viewmodels.task_detail_viewmodel import TaskDetailViewModel
from .viewmodels.tasks_viewmodel import TaskListViewModel


@dataclass
class AppContext:
    """Central container for shared app resources."""
    db_path: Path | str
    db: Database
    settings: Dict[str, Any]
    recorder: ActivityLogRecorder
    task_service: TaskService

    @classmethod
    def create(
        cls,
        db_path: Path | str,
        *,
        settings: Optional[Dict[str, Any]] = None,
        clock: Clock = utc_now,
    ) -> "AppContext":
        """Open + migrate the DB and wire repositories and services."""
        log = get_logger("AppContext")
        settings = settings if settings is not None else load_settings()
        db = Database(db_path)
        db.run_migrations()

        tasks = SQLiteTaskRepository(db)
        recorder = ActivityLogRecorder(SQLiteActivityRepository(db), tasks, clock=clock)
        service = TaskService(
            db,
            tasks,
            SQLiteSubtaskRepository(db),
            SQLiteCollaboratorRepository(db),
            recorder,
            delete_roles=settings["permissions"]["delete_subtask_roles"],
        )
        log.info("AppContext initialized with DB=%s", db_path)
        return cls(db_path=db_path, db=db, settings=settings, recorder=recorder, task_service=service)

    # ---- view-models
    def list_viewmodel(self) -> TaskListViewModel:
        return TaskListViewModel(self.task_service)

    def board_viewmodel(self) -> KanbanBoardViewModel:
        return KanbanBoardViewModel(self.task_service)

    def detail_viewmodel(self) -> TaskDetailViewModel:
        return TaskDetailViewModel(self.task_service, page_size=self.settings["activity"]["page_size"])

    def close(self) -> None:
        self.db.close()
