"""Weighted random choice of the task to show during a work phase."""

import random
from datetime import datetime
from typing import Optional, Sequence

from tasktimer.sources.base import Task

# Weight of a task is BASE_WEIGHT - priority, so priority 1 weighs 11
# and the "no priority" default of 11 weighs 1.
BASE_WEIGHT = 12


def is_candidate(task: Task, now: datetime) -> bool:
    """A task is eligible once its start has passed (or it has none)."""
    return task.starts is None or task.starts < now


def weight(task: Task, now: datetime) -> int:
    """Relative likelihood of picking the task; overdue tasks count double."""
    w = max(BASE_WEIGHT - task.priority, 0)
    if task.due is not None and task.due < now:
        w = max(w * 2, 1)
    return w


def choose(
    tasks: Sequence[Task], now: datetime, rng: Optional[random.Random] = None
) -> Optional[Task]:
    """Pick one eligible task with probability weight / total weight.

    Returns None when nothing is eligible or every candidate weighs zero.
    """
    candidates = []
    weights = []
    for task in tasks:
        if not is_candidate(task, now):
            continue
        w = weight(task, now)
        if w > 0:
            candidates.append(task)
            weights.append(w)

    if not candidates:
        return None

    rng = rng or random
    return rng.choices(candidates, weights=weights, k=1)[0]
