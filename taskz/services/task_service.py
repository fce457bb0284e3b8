# Rev 0.2.0

"""Task/subtask aggregate service (Rev 0.2.0)

Single write path for tasks, subtasks, collaborators and tags. Each mutation:
  validate → lock task → BEGIN → apply → log activity → COMMIT → notify.
Any error rolls the whole unit back; nothing is emitted for a failed call.
Subtask mutations lock and log on the parent task.
"""
from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from taskz.models.entities import (
    ActivityEntry,
    Collaborator,
    RollupSummary,
    Subtask,
    Task,
    TaskSnapshot,
)
from taskz.models.errors import NotFound, PermissionDenied, ValidationError
from taskz.models.types import ActivityType, CollaboratorRole, EntityType, Priority, Status, UserRole
from taskz.services.activity_log import ActivityLogRecorder, parse_editor, parse_surface
from taskz.services.events import TaskEvents
from taskz.services.rollup import compute_rollup
from taskz.services.status_rules import parse_status, validate_transition
from taskz.utils.logging_setup import get_logger

# distinguishes "not passed" from an explicit None (clear the field)
_UNSET: Any = object()

DEFAULT_DELETE_ROLES = (UserRole.MANAGER, UserRole.DIRECTOR)


# ---------- value parsing ----------

def _clean_title(value: Any, field: str = "title") -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "must be a non-empty string")
    return value.strip()


def _clean_text(value: Optional[str]) -> Optional[str]:
    """Optional free text; blank is stored as NULL."""
    if value is None or not str(value).strip():
        return None
    return value


def _parse_due(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError("due_date", f"malformed due date {value!r}")


def _parse_priority(value: Any) -> Priority:
    if isinstance(value, Priority):
        return value
    if isinstance(value, str):
        v = value.strip()
        if v.upper() in Priority.__members__:
            return Priority[v.upper()]
        if v.isdigit():
            value = int(v)
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return Priority(value)
        except ValueError:
            pass
    raise ValidationError("priority", f"unknown priority {value!r}")


def _parse_collaborator_role(value: Any) -> CollaboratorRole:
    if isinstance(value, CollaboratorRole):
        return value
    if isinstance(value, str):
        for r in CollaboratorRole:
            if r.value.lower() == value.strip().lower():
                return r
    raise ValidationError("role", f"unknown collaborator role {value!r}")


def _role_key(role: Any) -> str:
    return str(getattr(role, "value", role) or "").strip().lower()


def _clean_tag(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("tag", "must be a non-empty string")
    return value.strip().lower()


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Priority):
        return str(int(value))
    if isinstance(value, Status):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class TaskService:
    def __init__(
        self,
        db,
        tasks_repo,
        subtasks_repo,
        collaborators_repo,
        recorder: ActivityLogRecorder,
        events: Optional[TaskEvents] = None,
        delete_roles: Iterable[str] = DEFAULT_DELETE_ROLES,
    ):
        self._db = db
        self._tasks = tasks_repo
        self._subs = subtasks_repo
        self._collabs = collaborators_repo
        self._recorder = recorder
        self.events = events if events is not None else TaskEvents()
        self._delete_roles = frozenset(_role_key(r) for r in delete_roles)
        # entries drop out once no mutation holds the lock
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()
        self._log = get_logger("TaskService")

    # ---- internals ----
    @contextmanager
    def _serialized(self, task_id: int) -> Iterator[None]:
        """Serialize mutations per task; other tasks are not blocked by this lock."""
        with self._locks_guard:
            lock = self._locks.get(task_id)
            if lock is None:
                lock = self._locks[task_id] = threading.RLock()
        with lock:
            yield

    def _now(self) -> str:
        return self._recorder.now().isoformat(timespec="microseconds")

    def _require_task(self, task_id: int) -> Task:
        task = self._tasks.get_task(task_id)
        if task is None:
            raise NotFound("task", task_id)
        return task

    def _require_subtask(self, subtask_id: int) -> Subtask:
        sub = self._subs.get_subtask(subtask_id)
        if sub is None:
            raise NotFound("subtask", subtask_id)
        return sub

    def _parent_of(self, subtask_id: int) -> int:
        with self._db.reading():
            return self._require_subtask(subtask_id).task_id

    def _emit(self, task_id: int, entries: List[ActivityEntry]) -> None:
        for e in entries:
            self.events.activityAppended.emit(task_id, e.id)
        self.events.taskChanged.emit(task_id)

    # ---- permissions ----
    def can_delete_subtasks(self, requesting_role: Any) -> bool:
        return _role_key(requesting_role) in self._delete_roles

    # ---- queries ----
    def get_task(self, task_id: int) -> TaskSnapshot:
        with self._db.reading():
            task = self._require_task(task_id)
            subtasks = tuple(self._subs.list_subtasks_for_task(task_id))
            collaborators = tuple(self._collabs.list_for_task(task_id))
        return TaskSnapshot(task=task, subtasks=subtasks, collaborators=collaborators,
                            rollup=compute_rollup(subtasks))

    def get_subtask(self, subtask_id: int) -> Subtask:
        with self._db.reading():
            return self._require_subtask(subtask_id)

    def rollup(self, task_id: int) -> RollupSummary:
        with self._db.reading():
            self._require_task(task_id)
            return compute_rollup(self._subs.list_subtasks_for_task(task_id))

    def list_tasks(
        self,
        *,
        project_id: Optional[int] = None,
        status: Any = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[TaskSnapshot]:
        """Matching tasks, most recently updated first. limit=None returns every match."""
        status_filter = parse_status(status) if status is not None else None
        with self._db.reading():
            tasks = self._tasks.list_tasks_filtered(
                project_id=project_id, status=status_filter, search=search,
                limit=-1 if limit is None else limit, offset=offset,
            )
            subs = self._subs.list_subtasks_for_tasks([t.id for t in tasks])
            collabs = {t.id: tuple(self._collabs.list_for_task(t.id)) for t in tasks}
        return [
            TaskSnapshot(
                task=t,
                subtasks=tuple(subs[t.id]),
                collaborators=collabs[t.id],
                rollup=compute_rollup(subs[t.id]),
            )
            for t in tasks
        ]

    def count_tasks(self, *, project_id: Optional[int] = None, status: Any = None,
                    search: Optional[str] = None) -> int:
        status_filter = parse_status(status) if status is not None else None
        with self._db.reading():
            return self._tasks.count_tasks_total(project_id=project_id, status=status_filter, search=search)

    def activity_log(self, task_id: int, *, limit: Optional[int] = None) -> List[ActivityEntry]:
        with self._db.reading():
            return self._recorder.entries(task_id, limit=limit)

    # ---- task commands ----
    def create_task(
        self,
        title: str,
        *,
        editor: Any,
        origin_surface: Any,
        description: Optional[str] = None,
        status: Any = Status.TODO,
        priority: Any = Priority.MEDIUM,
        due_date: Any = None,
        project_id: Optional[int] = None,
        tags: Iterable[str] = (),
    ) -> int:
        title = _clean_title(title)
        status = parse_status(status)
        priority = _parse_priority(priority)
        due = _parse_due(due_date)
        clean_tags = sorted({_clean_tag(t) for t in tags})
        parse_surface(origin_surface)
        parse_editor(editor)

        with self._db.transaction():
            task_id = self._tasks.create_task(
                title=title,
                now=self._now(),
                description=_clean_text(description),
                status=status,
                priority=priority,
                due_date=due,
                project_id=project_id,
            )
            for tag in clean_tags:
                self._tasks.add_tag(task_id, tag)
            entry = self._recorder.record(
                task_id, ActivityType.CREATE,
                editor=editor, origin_surface=origin_surface,
                field="status", new_value=status.value,
            )
        self._log.info("Created task %s (%r) in project %s", task_id, title, project_id)
        self._emit(task_id, [entry])
        return task_id

    def update_status(
        self,
        entity_id: int,
        new_status: Any,
        editor: Any,
        origin_surface: Any,
        *,
        kind: EntityType = "task",
    ) -> Union[Task, Subtask]:
        """
        Move a task or subtask to `new_status`. Any status may move to any
        other; unknown values raise InvalidStatus before anything is touched.
        Setting the current status again is a no-op (nothing logged).
        """
        target = parse_status(new_status)
        parse_surface(origin_surface)
        parse_editor(editor)
        if kind == "task":
            return self._update_task_status(entity_id, target, editor, origin_surface)
        if kind == "subtask":
            return self._update_subtask_status(entity_id, target, editor, origin_surface)
        raise ValidationError("kind", f"expected 'task' or 'subtask', got {kind!r}")

    def _update_task_status(self, task_id, target, editor, origin_surface) -> Task:
        with self._serialized(task_id):
            with self._db.transaction():
                task = self._require_task(task_id)
                target = validate_transition(task.status, target)
                if target is task.status:
                    return task
                self._tasks.set_task_status(task_id, target, now=self._now())
                entry = self._recorder.record(
                    task_id, ActivityType.STATUS_CHANGE,
                    editor=editor, origin_surface=origin_surface,
                    field="status", old_value=task.status.value, new_value=target.value,
                )
                updated = self._require_task(task_id)
        self._log.info("Task %s status %s -> %s via %s",
                       task_id, task.status.label, target.label, entry.source)
        self._emit(task_id, [entry])
        return updated

    def _update_subtask_status(self, subtask_id, target, editor, origin_surface) -> Subtask:
        parent_id = self._parent_of(subtask_id)
        with self._serialized(parent_id):
            with self._db.transaction():
                sub = self._require_subtask(subtask_id)
                target = validate_transition(sub.status, target)
                if target is sub.status:
                    return sub
                now = self._now()
                self._subs.set_subtask_status(subtask_id, target, now=now)
                self._tasks.touch(parent_id, now=now)
                entry = self._recorder.record(
                    parent_id, ActivityType.SUBTASK_STATUS_CHANGE,
                    editor=editor, origin_surface=origin_surface,
                    field="status", old_value=sub.status.value, new_value=target.value,
                    subtask_id=subtask_id, subject=sub.title,
                )
                updated = self._require_subtask(subtask_id)
                rollup = compute_rollup(self._subs.list_subtasks_for_task(parent_id))
        self._log.info("Subtask %s status %s -> %s via %s; task %s now %s",
                       subtask_id, sub.status.label, target.label, entry.source, parent_id, rollup.label)
        self._emit(parent_id, [entry])
        return updated

    def update_fields(
        self,
        task_id: int,
        *,
        editor: Any,
        origin_surface: Any,
        title: Any = _UNSET,
        description: Any = _UNSET,
        priority: Any = _UNSET,
        due_date: Any = _UNSET,
    ) -> Task:
        """Partial update; one activity entry per field whose value changed."""
        requested: Dict[str, Any] = {}
        if title is not _UNSET:
            requested["title"] = _clean_title(title)
        if description is not _UNSET:
            requested["description"] = _clean_text(description)
        if priority is not _UNSET:
            requested["priority"] = _parse_priority(priority)
        if due_date is not _UNSET:
            requested["due_date"] = _parse_due(due_date)
        parse_surface(origin_surface)
        parse_editor(editor)

        entry_types = {
            "title": ActivityType.TITLE_CHANGE,
            "description": ActivityType.DESCRIPTION_CHANGE,
            "priority": ActivityType.PRIORITY_CHANGE,
            "due_date": ActivityType.DUE_DATE_CHANGE,
        }
        entries: List[ActivityEntry] = []
        with self._serialized(task_id):
            with self._db.transaction():
                task = self._require_task(task_id)
                changed = {k: v for k, v in requested.items() if getattr(task, k) != v}
                if not changed:
                    return task
                self._tasks.update_task_fields(task_id, now=self._now(), **changed)
                for name in ("title", "description", "priority", "due_date"):
                    if name not in changed:
                        continue
                    entries.append(self._recorder.record(
                        task_id, entry_types[name],
                        editor=editor, origin_surface=origin_surface,
                        field=name,
                        old_value=_as_text(getattr(task, name)),
                        new_value=_as_text(changed[name]),
                    ))
                updated = self._require_task(task_id)
        self._log.info("Task %s fields updated: %s", task_id, ", ".join(changed))
        self._emit(task_id, entries)
        return updated

    # ---- subtask commands ----
    def create_subtask(
        self,
        parent_task_id: int,
        title: str,
        *,
        editor: Any,
        origin_surface: Any,
        notes: Optional[str] = None,
        due_date: Any = None,
        status: Any = Status.TODO,
    ) -> int:
        title = _clean_title(title)
        status = parse_status(status)
        due = _parse_due(due_date)
        parse_surface(origin_surface)
        parse_editor(editor)

        with self._serialized(parent_task_id):
            with self._db.transaction():
                self._require_task(parent_task_id)
                now = self._now()
                sub_id = self._subs.create_subtask(
                    task_id=parent_task_id, title=title, now=now,
                    notes=_clean_text(notes), status=status, due_date=due,
                )
                self._tasks.touch(parent_task_id, now=now)
                entry = self._recorder.record(
                    parent_task_id, ActivityType.SUBTASK_CREATE,
                    editor=editor, origin_surface=origin_surface,
                    field="status", new_value=status.value,
                    subtask_id=sub_id, subject=title,
                )
        self._log.info("Created subtask %s under task %s", sub_id, parent_task_id)
        self._emit(parent_task_id, [entry])
        return sub_id

    def update_subtask_fields(
        self,
        subtask_id: int,
        *,
        editor: Any,
        origin_surface: Any,
        title: Any = _UNSET,
        notes: Any = _UNSET,
        due_date: Any = _UNSET,
    ) -> Subtask:
        requested: Dict[str, Any] = {}
        if title is not _UNSET:
            requested["title"] = _clean_title(title)
        if notes is not _UNSET:
            requested["notes"] = _clean_text(notes)
        if due_date is not _UNSET:
            requested["due_date"] = _parse_due(due_date)
        parse_surface(origin_surface)
        parse_editor(editor)

        entry_types = {
            "title": ActivityType.SUBTASK_TITLE_CHANGE,
            "notes": ActivityType.SUBTASK_NOTES_CHANGE,
            "due_date": ActivityType.SUBTASK_DUE_DATE_CHANGE,
        }
        parent_id = self._parent_of(subtask_id)
        entries: List[ActivityEntry] = []
        with self._serialized(parent_id):
            with self._db.transaction():
                sub = self._require_subtask(subtask_id)
                changed = {k: v for k, v in requested.items() if getattr(sub, k) != v}
                if not changed:
                    return sub
                now = self._now()
                self._subs.update_subtask_fields(subtask_id, now=now, **changed)
                self._tasks.touch(parent_id, now=now)
                for name in ("title", "notes", "due_date"):
                    if name not in changed:
                        continue
                    entries.append(self._recorder.record(
                        parent_id, entry_types[name],
                        editor=editor, origin_surface=origin_surface,
                        field=name,
                        old_value=_as_text(getattr(sub, name)),
                        new_value=_as_text(changed[name]),
                        subtask_id=subtask_id, subject=sub.title,
                    ))
                updated = self._require_subtask(subtask_id)
        self._emit(parent_id, entries)
        return updated

    def delete_subtask(
        self,
        subtask_id: int,
        requesting_role: Any,
        *,
        editor: Any,
        origin_surface: Any,
    ) -> RollupSummary:
        """
        Role-gated delete. Returns the parent's recomputed roll-up.
        The role check runs before any lookup or write.
        """
        if not self.can_delete_subtasks(requesting_role):
            self._log.warning("Denied subtask %s delete for role %r", subtask_id, requesting_role)
            raise PermissionDenied("delete subtasks", _role_key(requesting_role))
        parse_surface(origin_surface)
        parse_editor(editor)

        parent_id = self._parent_of(subtask_id)
        with self._serialized(parent_id):
            with self._db.transaction():
                sub = self._require_subtask(subtask_id)
                self._subs.delete_subtask(subtask_id)
                self._tasks.touch(parent_id, now=self._now())
                entry = self._recorder.record(
                    parent_id, ActivityType.SUBTASK_DELETE,
                    editor=editor, origin_surface=origin_surface,
                    field="status", old_value=sub.status.value,
                    subtask_id=subtask_id, subject=sub.title,
                )
                rollup = compute_rollup(self._subs.list_subtasks_for_task(parent_id))
        self._log.info("Deleted subtask %s from task %s; now %s", subtask_id, parent_id, rollup.label)
        self.events.subtaskDeleted.emit(parent_id, subtask_id)
        self._emit(parent_id, [entry])
        return rollup

    # ---- collaborators ----
    def add_collaborator(
        self,
        task_id: int,
        user_id: Any,
        role: Any,
        *,
        editor: Any,
        origin_surface: Any,
    ) -> Collaborator:
        """Add or re-role a collaborator. Re-adding the same (user, role) changes nothing."""
        role = _parse_collaborator_role(role)
        uid = str(user_id).strip()
        if not uid:
            raise ValidationError("user_id", "must be non-empty")
        parse_surface(origin_surface)
        parse_editor(editor)

        with self._serialized(task_id):
            with self._db.transaction():
                self._require_task(task_id)
                existing = self._collabs.get(task_id, uid)
                if existing is not None and existing.role is role:
                    return existing
                self._collabs.upsert(task_id, uid, role, now=self._now())
                entry = self._recorder.record(
                    task_id, ActivityType.COLLABORATOR_ADD,
                    editor=editor, origin_surface=origin_surface,
                    field="role",
                    old_value=existing.role.value if existing else None,
                    new_value=role.value,
                    subject=uid,
                )
                collab = self._collabs.get(task_id, uid)
        self._emit(task_id, [entry])
        return collab

    def remove_collaborator(
        self,
        task_id: int,
        user_id: Any,
        *,
        editor: Any,
        origin_surface: Any,
    ) -> bool:
        uid = str(user_id).strip()
        parse_surface(origin_surface)
        parse_editor(editor)
        with self._serialized(task_id):
            with self._db.transaction():
                self._require_task(task_id)
                existing = self._collabs.get(task_id, uid)
                if existing is None:
                    return False
                self._collabs.remove(task_id, uid)
                entry = self._recorder.record(
                    task_id, ActivityType.COLLABORATOR_REMOVE,
                    editor=editor, origin_surface=origin_surface,
                    field="role", old_value=existing.role.value, subject=uid,
                )
        self._emit(task_id, [entry])
        return True

    # ---- tags ----
    def add_tag(self, task_id: int, tag: str, *, editor: Any, origin_surface: Any) -> Tuple[str, ...]:
        return self._change_tag(task_id, tag, True, editor, origin_surface)

    def remove_tag(self, task_id: int, tag: str, *, editor: Any, origin_surface: Any) -> Tuple[str, ...]:
        return self._change_tag(task_id, tag, False, editor, origin_surface)

    def _change_tag(self, task_id, tag, adding, editor, origin_surface) -> Tuple[str, ...]:
        tag = _clean_tag(tag)
        parse_surface(origin_surface)
        parse_editor(editor)
        entry = None
        with self._serialized(task_id):
            with self._db.transaction():
                self._require_task(task_id)
                if adding:
                    changed = self._tasks.add_tag(task_id, tag)
                else:
                    changed = self._tasks.remove_tag(task_id, tag)
                if changed:
                    entry = self._recorder.record(
                        task_id, ActivityType.TAG_ADD if adding else ActivityType.TAG_REMOVE,
                        editor=editor, origin_surface=origin_surface, subject=tag,
                    )
                tags = tuple(self._tasks.list_tags(task_id))
        if entry is not None:
            self._emit(task_id, [entry])
        return tags
