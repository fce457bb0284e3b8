# Rev 0.2.0
from __future__ import annotations

from typing import Dict, Iterable

from taskz.models.entities import RollupSummary
from taskz.models.types import STATUS_ORDER, Status


def compute_rollup(subtasks: Iterable) -> RollupSummary:
    """
    Recount {total, completed} from the full subtask collection.
    Always a fresh count, never patched incrementally.
    """
    total = 0
    completed = 0
    for s in subtasks:
        total += 1
        if s.status is Status.COMPLETED:
            completed += 1
    return RollupSummary(total=total, completed=completed)


def status_breakdown(items: Iterable) -> Dict[Status, int]:
    """Count items per status; every status is present, zero-filled."""
    counts = {s: 0 for s in STATUS_ORDER}
    for it in items:
        counts[it.status] += 1
    return counts
