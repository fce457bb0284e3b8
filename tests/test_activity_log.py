# tests/test_activity_log.py
from __future__ import annotations

import sqlite3
from datetime import timedelta

import pytest

from taskz.models.errors import NotFound, ValidationError
from taskz.models.types import ActivityType, Status, Surface
from taskz.repositories.sqlite_activity_repository import SQLiteActivityRepository
from taskz.repositories.sqlite_task_repository import SQLiteTaskRepository
from taskz.services.activity_log import ActivityLogRecorder

from conftest import T0, StepClock


@pytest.fixture()
def tasks_repo(db):
    return SQLiteTaskRepository(db)


@pytest.fixture()
def task_id(db, tasks_repo) -> int:
    with db.transaction():
        return tasks_repo.create_task(title="Log me", now=T0.isoformat())


def _recorder(db, tasks_repo, clock) -> ActivityLogRecorder:
    return ActivityLogRecorder(SQLiteActivityRepository(db), tasks_repo, clock=clock)


def _status_change(rec, task_id, old: Status, new: Status, surface=Surface.DETAIL_VIEW):
    return rec.record(
        task_id, ActivityType.STATUS_CHANGE,
        editor="alice", origin_surface=surface,
        field="status", old_value=old.value, new_value=new.value,
    )


def test_record_returns_entry_with_assigned_timestamp(db, tasks_repo, task_id):
    rec = _recorder(db, tasks_repo, StepClock())
    entry = _status_change(rec, task_id, Status.TODO, Status.IN_PROGRESS, Surface.KANBAN_BOARD)
    assert entry.id > 0
    assert entry.timestamp == T0 + timedelta(seconds=1)
    assert entry.editor == "alice"
    assert entry.source == "kanban_board"
    assert entry.detail == "Status changed from To Do to In Progress"


def test_record_unknown_task_raises_not_found(db, tasks_repo):
    rec = _recorder(db, tasks_repo, StepClock())
    with pytest.raises(NotFound):
        _status_change(rec, 404, Status.TODO, Status.BLOCKED)


def test_frozen_clock_still_yields_strictly_newest_first(db, tasks_repo, task_id):
    rec = _recorder(db, tasks_repo, StepClock(step=timedelta(0)))
    path = [Status.TODO, Status.IN_PROGRESS, Status.BLOCKED, Status.COMPLETED, Status.TODO]
    for old, new in zip(path, path[1:]):
        _status_change(rec, task_id, old, new)

    entries = rec.entries(task_id)
    assert len(entries) == 4
    stamps = [e.timestamp for e in entries]
    assert all(a > b for a, b in zip(stamps, stamps[1:]))
    # newest first: last transition on top
    expected = list(zip(path, path[1:]))[::-1]
    for entry, (old, new) in zip(entries, expected):
        assert old.label in entry.detail and new.label in entry.detail


def test_clock_running_backwards_is_bumped_past_last_entry(db, tasks_repo, task_id):
    rec = _recorder(db, tasks_repo, StepClock(step=timedelta(seconds=-5)))
    first = _status_change(rec, task_id, Status.TODO, Status.BLOCKED)
    second = _status_change(rec, task_id, Status.BLOCKED, Status.TODO)
    assert second.timestamp > first.timestamp
    assert [e.id for e in rec.entries(task_id)] == [second.id, first.id]


def test_entries_limit(db, tasks_repo, task_id):
    rec = _recorder(db, tasks_repo, StepClock())
    for _ in range(3):
        _status_change(rec, task_id, Status.TODO, Status.BLOCKED)
    assert len(rec.entries(task_id, limit=2)) == 2


def test_entries_unknown_task(db, tasks_repo):
    with pytest.raises(NotFound):
        _recorder(db, tasks_repo, StepClock()).entries(999)


def test_unknown_surface_and_blank_editor_rejected(db, tasks_repo, task_id):
    rec = _recorder(db, tasks_repo, StepClock())
    with pytest.raises(ValidationError):
        rec.record(task_id, ActivityType.TITLE_CHANGE, editor="bob", origin_surface="mobile_app")
    with pytest.raises(ValidationError):
        rec.record(task_id, ActivityType.TITLE_CHANGE, editor="  ", origin_surface="list_view")
    assert rec.entries(task_id) == []


def test_entries_cannot_be_updated_or_deleted(db, tasks_repo, task_id):
    rec = _recorder(db, tasks_repo, StepClock())
    entry = _status_change(rec, task_id, Status.TODO, Status.COMPLETED)
    with pytest.raises(sqlite3.DatabaseError):
        db.conn.execute("UPDATE task_activity SET editor = 'mallory' WHERE id = ?", (entry.id,))
    with pytest.raises(sqlite3.DatabaseError):
        db.conn.execute("DELETE FROM task_activity WHERE id = ?", (entry.id,))
    assert rec.entries(task_id)[0].editor == "alice"


@pytest.mark.parametrize(
    "entry_type,field,old,new,subject,expected",
    [
        (ActivityType.TITLE_CHANGE, "title", "Old", "New", None, "Title changed from 'Old' to 'New'"),
        (ActivityType.PRIORITY_CHANGE, "priority", "5", "10", None, "Priority changed from Medium to High"),
        (ActivityType.DUE_DATE_CHANGE, "due_date", None, "2026-02-01", None, "Due date changed from none to 2026-02-01"),
        (ActivityType.SUBTASK_STATUS_CHANGE, "status", "Todo", "Completed", "Draft",
         "Subtask 'Draft' status changed from To Do to Completed"),
        (ActivityType.COLLABORATOR_ADD, "role", None, "Editor", "u7", "Collaborator u7 added as Editor"),
        (ActivityType.COLLABORATOR_ADD, "role", "Viewer", "Editor", "u7",
         "Collaborator u7 role changed from Viewer to Editor"),
        (ActivityType.TAG_REMOVE, None, None, None, "urgent", "Tag 'urgent' removed"),
    ],
)
def test_detail_is_derived_from_structured_change(db, tasks_repo, task_id, entry_type, field, old, new,
                                                   subject, expected):
    rec = _recorder(db, tasks_repo, StepClock())
    entry = rec.record(task_id, entry_type, editor="alice", origin_surface="detail_view",
                       field=field, old_value=old, new_value=new, subject=subject)
    assert entry.detail == expected
    # same text when re-read from storage
    assert rec.entries(task_id)[0].detail == expected
