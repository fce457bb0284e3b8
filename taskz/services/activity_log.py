# Rev 0.2.0

"""Activity log recorder (Rev 0.2.0)
Appends one immutable entry per mutation and stamps it with a UTC timestamp
strictly greater than the task's previous entry. Entries read newest first.
"""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

from taskz.models.entities import ActivityEntry
from taskz.models.errors import NotFound, ValidationError
from taskz.models.types import ActivityType, Surface
from taskz.utils.logging_setup import get_logger

Clock = Callable[[], datetime]

_TICK = timedelta(microseconds=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_surface(value: Any) -> Surface:
    try:
        return Surface(value)
    except ValueError:
        raise ValidationError("origin_surface", f"unknown surface {value!r}") from None


def parse_editor(value: Any) -> str:
    editor_id = str(value).strip() if value is not None else ""
    if not editor_id:
        raise ValidationError("editor", "editor identity is required")
    return editor_id


class ActivityLogRecorder:
    def __init__(self, activity_repo, tasks_repo, clock: Clock = utc_now):
        self._activity = activity_repo
        self._tasks = tasks_repo
        self._clock = clock
        self._log = get_logger("ActivityLog")

    def now(self) -> datetime:
        ts = self._clock()
        if ts.tzinfo is None:
            return ts.replace(tzinfo=timezone.utc)
        return ts.astimezone(timezone.utc)

    def _next_timestamp(self, task_id: int) -> datetime:
        ts = self.now()
        last = self._activity.last_timestamp(task_id)
        if last is not None and ts <= last:
            ts = last + _TICK
        return ts

    def record(
        self,
        task_id: int,
        entry_type: ActivityType,
        *,
        editor: Any,
        origin_surface: Any,
        field: Optional[str] = None,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        subtask_id: Optional[int] = None,
        subject: Optional[str] = None,
    ) -> ActivityEntry:
        if not self._tasks.exists(task_id):
            raise NotFound("task", task_id)
        surface = parse_surface(origin_surface)
        editor_id = parse_editor(editor)

        ts = self._next_timestamp(task_id)
        entry_id = self._activity.append(
            task_id,
            entry_type=ActivityType(entry_type),
            recorded_at=ts,
            editor=editor_id,
            origin_surface=surface,
            field=field,
            old_value=old_value,
            new_value=new_value,
            subtask_id=subtask_id,
            subject=subject,
        )
        entry = ActivityEntry(
            id=entry_id,
            task_id=task_id,
            type=ActivityType(entry_type),
            timestamp=ts,
            editor=editor_id,
            origin_surface=surface,
            field=field,
            old_value=old_value,
            new_value=new_value,
            subtask_id=subtask_id,
            subject=subject,
        )
        self._log.debug("task %s: %s via %s: %s", task_id, entry.type.value, surface.value, entry.detail)
        return entry

    def entries(self, task_id: int, *, limit: Optional[int] = None, offset: int = 0) -> List[ActivityEntry]:
        if not self._tasks.exists(task_id):
            raise NotFound("task", task_id)
        if limit is None:
            limit = -1  # SQLite: no limit
        return self._activity.list_for_task(task_id, limit=limit, offset=offset, order_desc=True)
