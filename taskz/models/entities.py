# Rev 0.2.0
"""Entities for the task core (task → subtask, collaborators, activity)."""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from typing import FrozenSet, Optional, Tuple

from .types import ActivityType, CollaboratorRole, Priority, Status, Surface


@dataclass
class Task:
    id: int | None
    title: str
    description: Optional[str] = None
    status: Status = Status.TODO
    priority: Priority = Priority.MEDIUM
    due_date: Optional[date] = None
    project_id: Optional[int] = None
    tags: FrozenSet[str] = frozenset()
    created_at_utc: Optional[str] = None
    updated_at_utc: Optional[str] = None


@dataclass
class Subtask:
    id: int | None
    task_id: int
    title: str
    notes: Optional[str] = None
    status: Status = Status.TODO
    due_date: Optional[date] = None
    created_at_utc: Optional[str] = None
    updated_at_utc: Optional[str] = None


@dataclass(frozen=True)
class Collaborator:
    task_id: int
    user_id: str
    role: CollaboratorRole
    added_at_utc: Optional[str] = None


@dataclass(frozen=True)
class RollupSummary:
    """Derived {total, completed} over a task's subtasks."""
    total: int = 0
    completed: int = 0

    def __post_init__(self):
        if self.total < 0 or not 0 <= self.completed <= self.total:
            raise ValueError(f"inconsistent rollup {self.completed}/{self.total}")

    @property
    def label(self) -> str:
        return f"{self.completed}/{self.total} subtasks complete"

    def __str__(self) -> str:
        return self.label


# Display names for the structured change fields
_FIELD_NAMES = {
    "status": "status",
    "title": "title",
    "description": "description",
    "priority": "priority",
    "due_date": "due date",
    "notes": "notes",
    "role": "role",
}


def _render_value(field_name: Optional[str], value: Optional[str]) -> str:
    if value is None or value == "":
        return "none"
    if field_name == "status":
        return Status(value).label
    if field_name == "priority":
        return Priority(int(value)).label
    if field_name in ("title", "description", "notes"):
        return f"'{value}'"
    return str(value)


@dataclass(frozen=True)
class ActivityEntry:
    """
    One immutable activity-log row. Change data is kept structured
    (field / old_value / new_value); `detail` is derived for display.
    """
    id: int
    task_id: int
    type: ActivityType
    timestamp: datetime
    editor: str
    origin_surface: Surface
    field: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    subtask_id: Optional[int] = None
    subject: Optional[str] = None

    @property
    def source(self) -> str:
        return self.origin_surface.value

    @property
    def detail(self) -> str:
        t = self.type
        old = _render_value(self.field, self.old_value)
        new = _render_value(self.field, self.new_value)
        name = _FIELD_NAMES.get(self.field or "", self.field or "value")

        if t is ActivityType.CREATE:
            return f"Task created with status {new}"
        if t is ActivityType.SUBTASK_CREATE:
            return f"Subtask '{self.subject}' created with status {new}"
        if t is ActivityType.SUBTASK_DELETE:
            return f"Subtask '{self.subject}' deleted (was {old})"
        if t in (
            ActivityType.SUBTASK_STATUS_CHANGE,
            ActivityType.SUBTASK_TITLE_CHANGE,
            ActivityType.SUBTASK_NOTES_CHANGE,
            ActivityType.SUBTASK_DUE_DATE_CHANGE,
        ):
            return f"Subtask '{self.subject}' {name} changed from {old} to {new}"
        if t is ActivityType.COLLABORATOR_ADD:
            if self.old_value:
                return f"Collaborator {self.subject} role changed from {old} to {new}"
            return f"Collaborator {self.subject} added as {new}"
        if t is ActivityType.COLLABORATOR_REMOVE:
            return f"Collaborator {self.subject} removed (was {old})"
        if t is ActivityType.TAG_ADD:
            return f"Tag '{self.subject}' added"
        if t is ActivityType.TAG_REMOVE:
            return f"Tag '{self.subject}' removed"
        return f"{name.capitalize()} changed from {old} to {new}"


@dataclass(frozen=True)
class TaskSnapshot:
    """Consistent read of one task aggregate, taken in a single read."""
    task: Task
    subtasks: Tuple[Subtask, ...] = ()
    collaborators: Tuple[Collaborator, ...] = ()
    rollup: RollupSummary = RollupSummary()

    @property
    def id(self) -> int:
        return int(self.task.id)
