# Rev 0.2.0

"""Status rules (Rev 0.2.0)
Normalize status values and allow/deny status changes.
Every status may move to every other status (Completed → To Do included),
so the only failure is a value outside the four known statuses.
"""
from __future__ import annotations
from typing import Any, Dict, Set, Tuple

from taskz.models.errors import InvalidStatus
from taskz.models.types import STATUS_ORDER, Status


def _norm(s: str) -> str:
    return "".join(ch for ch in s.lower() if ch.isalnum())


# wire name, display label and storage key all map to the member
_LOOKUP: Dict[str, Status] = {}
for _s in STATUS_ORDER:
    for _alias in (_s.value, _s.label, _s.key, _s.name):
        _LOOKUP[_norm(_alias)] = _s


def parse_status(value: Any) -> Status:
    """Return the Status for `value` or raise InvalidStatus."""
    if isinstance(value, Status):
        return value
    if isinstance(value, str):
        found = _LOOKUP.get(_norm(value))
        if found is not None:
            return found
    raise InvalidStatus(value)


def can_change(current: Any, target: Any) -> Tuple[bool, str]:
    """(allowed, code) without raising; code is 'ok' or 'invalid_status'."""
    try:
        parse_status(current)
        parse_status(target)
    except InvalidStatus:
        return False, "invalid_status"
    return True, "ok"


def validate_transition(current: Any, requested: Any) -> Status:
    """Validate current → requested and return the normalized target."""
    parse_status(current)
    return parse_status(requested)


def allowed_transitions(current: Any) -> Set[Status]:
    parse_status(current)
    return set(STATUS_ORDER)
