# Rev 0.2.0
"""Row shapes shared by the list, board and detail view-models."""
from __future__ import annotations

from typing import Any, Dict

from taskz.models.entities import ActivityEntry, Subtask, TaskSnapshot


def task_row(snap: TaskSnapshot) -> Dict[str, Any]:
    t = snap.task
    return {
        "id": t.id,
        "project_id": t.project_id,
        "title": t.title,
        "description": t.description or "",
        "status": t.status.value,
        "status_label": t.status.label,
        "priority": int(t.priority),
        "priority_label": t.priority.label,
        "due_date": t.due_date.isoformat() if t.due_date else None,
        "tags": sorted(t.tags),
        "rollup_total": snap.rollup.total,
        "rollup_completed": snap.rollup.completed,
        "rollup_label": snap.rollup.label,
        "updated_at_utc": t.updated_at_utc,
    }


def subtask_row(s: Subtask) -> Dict[str, Any]:
    return {
        "id": s.id,
        "task_id": s.task_id,
        "title": s.title,
        "notes": s.notes or "",
        "status": s.status.value,
        "status_label": s.status.label,
        "due_date": s.due_date.isoformat() if s.due_date else None,
    }


def activity_row(e: ActivityEntry) -> Dict[str, Any]:
    return {
        "id": e.id,
        "type": e.type.value,
        "timestamp": e.timestamp.isoformat(),
        "editor": e.editor,
        "details": e.detail,
        "source": e.source,
        "field": e.field,
        "old_value": e.old_value,
        "new_value": e.new_value,
        "subtask_id": e.subtask_id,
    }
