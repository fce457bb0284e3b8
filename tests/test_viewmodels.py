# tests/test_viewmodels.py
from __future__ import annotations

import pytest

from taskz.app_context import AppContext
from taskz.models.errors import PermissionDenied
from taskz.models.types import Status
from taskz.utils.config import default_settings
from taskz.viewmodels.board_viewmodel import KanbanBoardViewModel
from taskz.viewmodels.task_detail_viewmodel import TaskDetailViewModel
from taskz.viewmodels.tasks_viewmodel import TaskListViewModel

from conftest import StepClock


class Spy:
    def __init__(self, signal):
        self.calls = []
        signal.connect(lambda *args: self.calls.append(args))


@pytest.fixture()
def list_vm(service):
    return TaskListViewModel(service)


@pytest.fixture()
def board_vm(service):
    return KanbanBoardViewModel(service)


@pytest.fixture()
def detail_vm(service):
    return TaskDetailViewModel(service)


@pytest.fixture()
def task_with_subtasks(service, make_task):
    tid = make_task("Ship release", project_id=1)
    subs = [
        service.create_subtask(tid, title, editor="alice", origin_surface="detail_view")
        for title in ("Changelog", "Tag build", "Announce")
    ]
    return tid, subs


def test_subtask_completion_in_detail_shows_everywhere(list_vm, board_vm, detail_vm, task_with_subtasks):
    tid, subs = task_with_subtasks
    detail_vm.set_task(tid)
    before = list_vm.row(tid)["rollup_completed"]

    detail_vm.change_subtask_status(subtask_id=subs[0], new_status="Completed", editor="alice")

    assert list_vm.row(tid)["rollup_completed"] == before + 1
    assert board_vm.card(tid)["rollup_completed"] == before + 1
    assert detail_vm.detail()["rollup_completed"] == before + 1
    assert list_vm.row(tid)["rollup_label"] == "1/3 subtasks complete"
    assert board_vm.card(tid)["rollup_label"] == detail_vm.rollup_label()


def test_board_move_is_tagged_kanban_board(board_vm, detail_vm, list_vm, task_with_subtasks):
    tid, _ = task_with_subtasks
    board_vm.move_task(task_id=tid, to_status="In Progress", editor="bob")

    detail_vm.set_task(tid)
    latest = detail_vm.activity()[0]
    assert latest["source"] == "kanban_board"
    assert latest["editor"] == "bob"
    assert latest["details"] == "Status changed from To Do to In Progress"
    assert list_vm.row(tid)["status_label"] == "In Progress"
    assert [c["id"] for c in board_vm.columns()["InProgress"]] == [tid]


def test_list_change_is_tagged_list_view(list_vm, detail_vm, make_task):
    tid = make_task()
    list_vm.change_task_status(task_id=tid, new_status=Status.BLOCKED, editor="carol")
    list_vm.set_task_priority(task_id=tid, priority="High", editor="carol")
    detail_vm.set_task(tid)
    sources = [e["source"] for e in detail_vm.activity(limit=2)]
    assert sources == ["list_view", "list_view"]


def test_list_create_uses_project_filter(list_vm, service):
    list_vm.set_filters(project_id=9)
    tid = list_vm.create_task(title="From list", editor="dana", tags=["Ops"])
    snap = service.get_task(tid)
    assert snap.task.project_id == 9
    assert snap.task.tags == frozenset({"ops"})
    assert service.activity_log(tid)[0].source == "list_view"
    assert [r["id"] for r in list_vm.rows()] == [tid]


def test_list_reload_signal_fires_on_any_change(list_vm, service, make_task):
    spy = Spy(list_vm.tasksReloaded)
    tid = make_task()
    service.update_status(tid, Status.COMPLETED, "alice", "detail_view")
    assert len(spy.calls) == 2
    total, rows = spy.calls[-1]
    assert total == 1
    assert rows[0]["status"] == "Completed"


def test_board_columns_and_counts(board_vm, make_task):
    board_vm.set_project(4)
    a = make_task("A", project_id=4)
    b = make_task("B", project_id=4, status="Blocked")
    make_task("Elsewhere", project_id=5)

    assert board_vm.column_titles() == ["To Do", "In Progress", "Blocked", "Completed"]
    assert board_vm.column_counts() == {"Todo": 1, "InProgress": 0, "Blocked": 1, "Completed": 0}
    cols = board_vm.columns()
    assert [c["id"] for c in cols["Todo"]] == [a]
    assert [c["id"] for c in cols["Blocked"]] == [b]
    assert board_vm.card(999) is None


def test_board_can_drop(board_vm, make_task):
    tid = make_task(status="Completed")
    assert board_vm.can_drop(tid, "Todo") is True
    assert board_vm.can_drop(tid, "Archived") is False


def test_board_reloads_on_change(board_vm, service, make_task):
    spy = Spy(board_vm.boardReloaded)
    tid = make_task()
    service.update_status(tid, "Blocked", "alice", "detail_view")
    (columns,) = spy.calls[-1]
    assert [c["id"] for c in columns["Blocked"]] == [tid]


def test_detail_reloads_only_for_its_task(detail_vm, service, make_task):
    mine = make_task("Mine")
    other = make_task("Other")
    detail_vm.set_task(mine)
    loaded = Spy(detail_vm.taskLoaded)
    timeline = Spy(detail_vm.timelineLoaded)

    service.update_status(other, Status.BLOCKED, "alice", "list_view")
    assert loaded.calls == [] and timeline.calls == []

    service.update_fields(mine, editor="alice", origin_surface="list_view", title="Mine v2")
    assert loaded.calls[-1][0]["title"] == "Mine v2"
    task_id, entries = timeline.calls[-1]
    assert task_id == mine
    assert entries[0]["details"] == "Title changed from 'Mine' to 'Mine v2'"


def test_detail_payload(detail_vm, task_with_subtasks):
    tid, subs = task_with_subtasks
    detail_vm.set_task(tid)
    detail_vm.add_collaborator(user_id="u2", role="Viewer", editor="alice")
    detail_vm.add_tag(tag="Release", editor="alice")
    detail_vm.update_subtask_fields(subtask_id=subs[1], editor="alice", notes="use CI")

    d = detail_vm.detail()
    assert [s["title"] for s in d["subtasks"]] == ["Changelog", "Tag build", "Announce"]
    assert d["subtasks"][1]["notes"] == "use CI"
    assert d["collaborators"] == [{"user_id": "u2", "role": "Viewer"}]
    assert d["tags"] == ["release"]
    assert all(e["source"] == "detail_view" for e in detail_vm.activity(limit=3))


def test_detail_delete_gate(detail_vm, task_with_subtasks):
    tid, subs = task_with_subtasks
    detail_vm.set_task(tid)
    assert detail_vm.can_delete_subtasks("manager") is True
    assert detail_vm.can_delete_subtasks("staff") is False

    with pytest.raises(PermissionDenied):
        detail_vm.delete_subtask(subtask_id=subs[0], role="staff", editor="sam")
    assert detail_vm.rollup_label() == "0/3 subtasks complete"

    rollup = detail_vm.delete_subtask(subtask_id=subs[0], role="manager", editor="mona")
    assert rollup.label == "0/2 subtasks complete"
    assert detail_vm.rollup_label() == rollup.label


def test_detail_without_task(detail_vm):
    with pytest.raises(ValueError):
        detail_vm.detail()
    detail_vm.reload()  # nothing selected: no-op


def test_subtask_deleted_signal(service, task_with_subtasks):
    tid, subs = task_with_subtasks
    spy = Spy(service.events.subtaskDeleted)
    service.delete_subtask(subs[2], "director", editor="dee", origin_surface="detail_view")
    assert spy.calls == [(tid, subs[2])]


def test_detail_timeline_uses_page_size(service, make_task):
    vm = TaskDetailViewModel(service, page_size=2)
    tid = make_task()
    vm.set_task(tid)
    timeline = Spy(vm.timelineLoaded)
    for status in ("In Progress", "Blocked", "Completed"):
        service.update_status(tid, status, "alice", "kanban_board")
    _, entries = timeline.calls[-1]
    assert [e["new_value"] for e in entries] == ["Completed", "Blocked"]
    assert len(vm.activity()) == 4


def test_list_total_counts_every_match_while_rows_are_paged(list_vm, make_task):
    ids = [make_task(f"T{i}") for i in range(5)]
    list_vm.set_page(2)
    spy = Spy(list_vm.tasksReloaded)
    list_vm.reload()
    total, rows = spy.calls[-1]
    assert total == 5
    assert [r["id"] for r in rows] == ids[::-1][:2]

    list_vm.set_page(2, offset=4)
    assert [r["id"] for r in list_vm.rows()] == [ids[0]]
    list_vm.set_page(None)
    assert len(list_vm.rows()) == 5


def test_context_detail_viewmodel_pages_timeline_from_settings(tmp_path):
    settings = default_settings()
    settings["activity"]["page_size"] = 3
    context = AppContext.create(tmp_path / "paged.db", settings=settings, clock=StepClock())
    try:
        svc = context.task_service
        vm = context.detail_viewmodel()
        tid = svc.create_task("Paged", editor="a", origin_surface="list_view")
        vm.set_task(tid)
        timeline = Spy(vm.timelineLoaded)
        for status in ("In Progress", "Blocked", "Completed", "Todo"):
            svc.update_status(tid, status, "a", "detail_view")
        _, entries = timeline.calls[-1]
        assert len(entries) == 3
        assert entries[0]["new_value"] == "Todo"

        board = context.board_viewmodel()
        listing = context.list_viewmodel()
        assert board.card(tid)["status"] == listing.row(tid)["status"] == "Todo"
    finally:
        context.close()
