# src/horizon_planner/tasks/task_api.py

"""
Caller-facing task operations: create, edit, list by horizon, clear.

Every create/edit validates the timeframe and the parent link BEFORE the
first write. Listing helpers are plain owner-scoped reads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from ..core.ports import TaskRepo
from .completion import recompute_ancestors
from .errors import InvariantViolation, TaskNotFound
from .parents import validate_parent
from .task_models import Attachment, Task, TaskFilter, TaskType, Timeframe
from .timeframe import next_month, parse_iso_date, timeframe_contains, week_range

logger = logging.getLogger(__name__)

UNSET: Any = object()


def normalize_timeframe(task_type: TaskType | str, tf: Timeframe) -> Timeframe:
    """
    Check that `tf` carries what `task_type` needs and return a clean copy.

    Only the fields of the task's own variant are kept.
    """
    ttype = TaskType.parse(task_type)

    if ttype is TaskType.DAILY:
        d = parse_iso_date(tf.date)
        if d is None:
            raise ValueError("Daily task needs a date (YYYY-MM-DD)")
        return Timeframe(date=d.isoformat())

    if ttype is TaskType.WEEKLY:
        start = parse_iso_date(tf.start_date)
        end = parse_iso_date(tf.end_date)
        if start is None and end is not None:
            start = end - timedelta(days=6)
        if start is None:
            raise ValueError("Weekly task needs a start date")
        if start.weekday() != 0:
            raise ValueError(f"week must start on a Monday, got {start.isoformat()}")
        if end is None:
            end = start + timedelta(days=6)
        if end != start + timedelta(days=6):
            raise ValueError("week must span Monday..Sunday")
        return Timeframe(start_date=start.isoformat(), end_date=end.isoformat())

    if ttype is TaskType.MONTHLY:
        if tf.month is None or not 1 <= tf.month <= 12:
            raise ValueError("Monthly task needs a month (1-12)")
        if not tf.year:
            raise ValueError("Monthly task needs a year")
        return Timeframe(month=tf.month, year=tf.year)

    if not tf.year:
        raise ValueError("Yearly task needs a year")
    return Timeframe(year=tf.year)


def _check_priority(priority: int) -> int:
    p = int(priority)
    if not 1 <= p <= 5:
        raise ValueError(f"priority must be 1..5, got {priority}")
    return p


async def _get_owned(repo: TaskRepo, task_id: int, owner_id: str) -> Task:
    task = await repo.get(task_id)
    if task is None or task.owner_id != owner_id:
        raise TaskNotFound(task_id)
    return task


async def create_task(
    repo: TaskRepo,
    *,
    owner_id: str,
    name: str,
    task_type: TaskType | str,
    timeframe: Timeframe,
    priority: int = 3,
    description: str = "",
    parent_id: int | None = None,
    attachments: list[Attachment] | None = None,
) -> int:
    """Insert a new (open) task. The parent chain is recomputed afterwards."""
    if not name or not name.strip():
        raise ValueError("Task name is required")
    ttype = TaskType.parse(task_type)
    tf = normalize_timeframe(ttype, timeframe)
    prio = _check_priority(priority)

    await validate_parent(repo, owner_id, ttype, tf, parent_id)

    task_id = await repo.insert(
        owner_id=owner_id,
        name=name.strip(),
        type=ttype,
        timeframe=tf,
        priority=prio,
        description=description.strip(),
        is_completed=False,
        parent_id=parent_id,
        attachments=attachments or [],
    )
    logger.info("Created task id=%s type=%s parent_id=%s", task_id, ttype.value, parent_id)

    if parent_id is not None:
        await recompute_ancestors(repo, parent_id)
    return task_id


async def _check_children_still_fit(
    repo: TaskRepo, task: Task, new_type: TaskType, new_tf: Timeframe
) -> None:
    if new_type is task.type and new_tf == task.timeframe:
        return
    for child in await repo.find(TaskFilter(parent_ids=(task.id,))):
        if not timeframe_contains(new_type, new_tf, child.type, child.timeframe):
            raise InvariantViolation(
                f"child task {child.id} would fall outside the new timeframe of task {task.id}"
            )


async def update_task(
    repo: TaskRepo,
    task_id: int,
    *,
    owner_id: str,
    name: str | None = None,
    description: str | None = None,
    priority: int | None = None,
    task_type: TaskType | str | None = None,
    timeframe: Timeframe | None = None,
    parent_id: Any = UNSET,
    attachments: list[Attachment] | None = None,
) -> Task:
    """
    Edit a task. Omitted arguments keep their current value; parent_id=None detaches.

    The (new or current) parent is re-validated against the edited form, with
    the task and its descendants excluded so no cycle can be formed. When the
    parent changes, the old chain is recomputed first, then the new one. The
    task's own completion is never changed here.
    """
    task = await _get_owned(repo, task_id, owner_id)

    new_type = TaskType.parse(task_type) if task_type is not None else task.type
    new_tf = normalize_timeframe(new_type, timeframe if timeframe is not None else task.timeframe)
    new_parent = task.parent_id if parent_id is UNSET else parent_id

    await validate_parent(repo, owner_id, new_type, new_tf, new_parent, self_id=task.id)
    await _check_children_still_fit(repo, task, new_type, new_tf)

    fields: dict[str, Any] = {"type": new_type, "timeframe": new_tf, "parent_id": new_parent}
    if name is not None:
        if not name.strip():
            raise ValueError("Task name is required")
        fields["name"] = name.strip()
    if description is not None:
        fields["description"] = description.strip()
    if priority is not None:
        fields["priority"] = _check_priority(priority)
    if attachments is not None:
        fields["attachments"] = attachments

    await repo.update(task.id, **fields)
    logger.info("Updated task id=%s fields=%s", task.id, sorted(fields))

    if new_parent != task.parent_id:
        if task.parent_id is not None:
            await recompute_ancestors(repo, task.parent_id)
        if new_parent is not None:
            await recompute_ancestors(repo, new_parent)

    return await _get_owned(repo, task.id, owner_id)


# ---- listing ----


async def list_daily(repo: TaskRepo, owner_id: str, day: date) -> list[Task]:
    return await repo.find(
        TaskFilter(
            owner_id=owner_id,
            types=(TaskType.DAILY,),
            date=day.isoformat(),
            order="priority_desc",
        )
    )


async def list_weekly(repo: TaskRepo, owner_id: str, anchor: date) -> list[Task]:
    start, end = week_range(anchor)
    return await repo.find(
        TaskFilter(
            owner_id=owner_id,
            types=(TaskType.WEEKLY,),
            start_date=start,
            end_date=end,
            order="priority_desc",
        )
    )


async def list_monthly(repo: TaskRepo, owner_id: str, month: int, year: int) -> list[Task]:
    return await repo.find(
        TaskFilter(
            owner_id=owner_id,
            types=(TaskType.MONTHLY,),
            month=month,
            year=year,
            order="priority_desc",
        )
    )


async def list_yearly(repo: TaskRepo, owner_id: str, year: int) -> list[Task]:
    return await repo.find(
        TaskFilter(owner_id=owner_id, types=(TaskType.YEARLY,), year=year, order="priority_desc")
    )


async def list_overdue(repo: TaskRepo, owner_id: str, today: date) -> list[Task]:
    """Daily tasks dated before `today`, oldest first."""
    return await repo.find(
        TaskFilter(
            owner_id=owner_id,
            types=(TaskType.DAILY,),
            date_before=today.isoformat(),
            order="date_asc",
        )
    )


@dataclass(slots=True)
class UpcomingTasks:
    daily: list[Task] = field(default_factory=list)
    weekly: list[Task] = field(default_factory=list)
    monthly: list[Task] = field(default_factory=list)


def _dedup(tasks: list[Task]) -> list[Task]:
    seen: set[int] = set()
    out: list[Task] = []
    for t in tasks:
        if t.id not in seen:
            seen.add(t.id)
            out.append(t)
    return out


async def list_upcoming(repo: TaskRepo, owner_id: str, today: date) -> UpcomingTasks:
    """Today and tomorrow (daily), this and next week, this and next month."""
    daily = await repo.find(
        TaskFilter(
            owner_id=owner_id,
            types=(TaskType.DAILY,),
            date_from=today.isoformat(),
            date_to=(today + timedelta(days=1)).isoformat(),
            order="priority_desc",
        )
    )
    weekly = await list_weekly(repo, owner_id, today)
    weekly += await list_weekly(repo, owner_id, today + timedelta(days=7))

    month, year = today.month, today.year
    nmonth, nyear = next_month(month, year)
    monthly = await list_monthly(repo, owner_id, month, year)
    monthly += await list_monthly(repo, owner_id, nmonth, nyear)

    return UpcomingTasks(daily=_dedup(daily), weekly=_dedup(weekly), monthly=_dedup(monthly))


async def get_task(repo: TaskRepo, owner_id: str, task_id: int) -> Task:
    return await _get_owned(repo, task_id, owner_id)


async def clear_all_tasks(repo: TaskRepo, owner_id: str) -> int:
    """Delete every task of `owner_id` in one bulk call. Cannot be undone."""
    if not owner_id:
        raise ValueError("owner_id is required")
    n = await repo.delete_where(TaskFilter(owner_id=owner_id))
    logger.info("Cleared all tasks owner=%s rows=%s", owner_id, n)
    return n
