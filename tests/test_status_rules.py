# tests/test_status_rules.py
from __future__ import annotations

import itertools

import pytest

from taskz.models.errors import InvalidStatus
from taskz.models.types import STATUS_ORDER, Status
from taskz.services.status_rules import (
    allowed_transitions,
    can_change,
    parse_status,
    validate_transition,
)


@pytest.mark.parametrize("current,target", list(itertools.product(STATUS_ORDER, repeat=2)))
def test_every_transition_is_allowed(current, target):
    assert validate_transition(current, target) is target
    assert can_change(current, target) == (True, "ok")


def test_completed_can_revert_to_todo():
    assert validate_transition(Status.COMPLETED, "Todo") is Status.TODO


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Todo", Status.TODO),
        ("To Do", Status.TODO),
        ("todo", Status.TODO),
        ("InProgress", Status.IN_PROGRESS),
        ("In Progress", Status.IN_PROGRESS),
        ("in_progress", Status.IN_PROGRESS),
        ("BLOCKED", Status.BLOCKED),
        ("Completed", Status.COMPLETED),
        (Status.COMPLETED, Status.COMPLETED),
    ],
)
def test_parse_status_aliases(raw, expected):
    assert parse_status(raw) is expected


@pytest.mark.parametrize("bad", ["Done", "", "  ", "Closed", None, 3, "In Review"])
def test_unknown_status_rejected(bad):
    with pytest.raises(InvalidStatus):
        validate_transition(Status.TODO, bad)
    assert can_change(Status.TODO, bad) == (False, "invalid_status")


def test_unknown_current_status_rejected():
    with pytest.raises(InvalidStatus):
        validate_transition("Archived", Status.TODO)


def test_allowed_transitions_is_every_status():
    for s in STATUS_ORDER:
        assert allowed_transitions(s) == set(STATUS_ORDER)


def test_labels_and_wire_values():
    assert [s.value for s in STATUS_ORDER] == ["Todo", "InProgress", "Blocked", "Completed"]
    assert [s.label for s in STATUS_ORDER] == ["To Do", "In Progress", "Blocked", "Completed"]
