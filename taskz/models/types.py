# taskZ type definitions
# Rev 0.2.0

from __future__ import annotations
from enum import Enum, IntEnum
from typing import Literal

# Entity classification: task → subtask
EntityType = Literal["task", "subtask"]


class Status(str, Enum):
    """Task/subtask status. Values are the wire names."""
    TODO = "Todo"
    IN_PROGRESS = "InProgress"
    BLOCKED = "Blocked"
    COMPLETED = "Completed"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @property
    def key(self) -> str:
        """Storage key (snake case) used in the database."""
        return _STATUS_KEYS[self]

    def __str__(self) -> str:
        return self.value


_STATUS_LABELS = {
    Status.TODO: "To Do",
    Status.IN_PROGRESS: "In Progress",
    Status.BLOCKED: "Blocked",
    Status.COMPLETED: "Completed",
}

_STATUS_KEYS = {
    Status.TODO: "todo",
    Status.IN_PROGRESS: "in_progress",
    Status.BLOCKED: "blocked",
    Status.COMPLETED: "completed",
}

# Board column order
STATUS_ORDER = (Status.TODO, Status.IN_PROGRESS, Status.BLOCKED, Status.COMPLETED)


class Priority(IntEnum):
    LOW = 1
    MEDIUM = 5
    HIGH = 10

    @property
    def label(self) -> str:
        return self.name.capitalize()


class Surface(str, Enum):
    """UI context a mutation was issued from. Provenance only."""
    LIST_VIEW = "list_view"
    KANBAN_BOARD = "kanban_board"
    DETAIL_VIEW = "detail_view"


class CollaboratorRole(str, Enum):
    VIEWER = "Viewer"
    EDITOR = "Editor"


class UserRole(str, Enum):
    """Organisation role of the user issuing a request."""
    DIRECTOR = "director"
    MANAGER = "manager"
    HR = "hr"
    STAFF = "staff"


class ActivityType(str, Enum):
    CREATE = "create"
    STATUS_CHANGE = "status_change"
    TITLE_CHANGE = "title_change"
    DESCRIPTION_CHANGE = "description_change"
    PRIORITY_CHANGE = "priority_change"
    DUE_DATE_CHANGE = "due_date_change"
    SUBTASK_CREATE = "subtask_create"
    SUBTASK_DELETE = "subtask_delete"
    SUBTASK_STATUS_CHANGE = "subtask_status_change"
    SUBTASK_TITLE_CHANGE = "subtask_title_change"
    SUBTASK_NOTES_CHANGE = "subtask_notes_change"
    SUBTASK_DUE_DATE_CHANGE = "subtask_due_date_change"
    COLLABORATOR_ADD = "collaborator_add"
    COLLABORATOR_REMOVE = "collaborator_remove"
    TAG_ADD = "tag_add"
    TAG_REMOVE = "tag_remove"
