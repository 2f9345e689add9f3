# src/horizon_planner/tasks/parents.py

"""
Parent candidate filter.

A task may be attached to a parent only if:
- the parent's type is allowed for the child's type,
- the parent's timeframe contains the child's timeframe,
- the link would not make a task its own ancestor.

validate_parent() is the gate every create/edit goes through before writing.
"""

from __future__ import annotations

import logging

from ..core.ports import TaskRepo
from .errors import InvariantViolation
from .navigator import build_child_map, collect_descendants
from .task_models import Task, TaskFilter, TaskType, Timeframe
from .timeframe import allowed_parent_types, timeframe_contains

logger = logging.getLogger(__name__)


def get_allowed_parent_types(task_type: TaskType | str) -> tuple[TaskType, ...]:
    return allowed_parent_types(task_type)


async def _excluded_ids(repo: TaskRepo, owner_id: str, self_id: int) -> set[int]:
    # One owner-wide read instead of a query per tree level.
    rows = await repo.find(TaskFilter(owner_id=owner_id))
    excluded = collect_descendants(build_child_map(rows), self_id)
    excluded.add(self_id)
    return excluded


async def fetch_eligible_parents(
    repo: TaskRepo,
    owner_id: str,
    form_type: TaskType | str,
    form_timeframe: Timeframe,
    exclude_self_id: int | None = None,
) -> list[Task]:
    """
    Tasks of `owner_id` that may become the parent of the task being authored.

    When editing, pass the task's own id as `exclude_self_id`: the task and
    all its descendants are never offered. Most recently created first.
    """
    allowed = get_allowed_parent_types(form_type)
    if not allowed:
        return []

    candidates = await repo.find(
        TaskFilter(owner_id=owner_id, types=allowed, order="created_desc")
    )

    excluded: set[int] = set()
    if exclude_self_id is not None:
        excluded = await _excluded_ids(repo, owner_id, exclude_self_id)

    return [
        p
        for p in candidates
        if p.id not in excluded
        and timeframe_contains(p.type, p.timeframe, form_type, form_timeframe)
    ]


async def validate_parent(
    repo: TaskRepo,
    owner_id: str,
    form_type: TaskType | str,
    form_timeframe: Timeframe,
    parent_id: int | None,
    self_id: int | None = None,
) -> Task | None:
    """Return the parent task if the link is valid; raise InvariantViolation otherwise."""
    if parent_id is None:
        return None

    eligible = await fetch_eligible_parents(
        repo, owner_id, form_type, form_timeframe, exclude_self_id=self_id
    )
    for p in eligible:
        if p.id == parent_id:
            return p

    logger.info(
        "Rejected parent_id=%s for %s task (self_id=%s owner=%s)",
        parent_id,
        TaskType.parse(form_type).value,
        self_id,
        owner_id,
    )
    raise InvariantViolation(
        f"task {parent_id} cannot be the parent of this {TaskType.parse(form_type).value} task"
    )
