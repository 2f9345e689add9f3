# src/horizon_planner/tasks/completion.py

"""
Completion synchronizer.

Completion flows two ways:
- down: toggling a task force-sets its DIRECT children to the same status
  (one level only; grandchildren keep their state);
- up: every ancestor's completion is recomputed from its direct children,
  nearest first, until a root or a childless node is reached.

Writes are issued strictly one after another. Nothing is rolled back on
failure: a StoreError aborts the rest of the sequence and propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.ports import TaskRepo
from .navigator import fetch_children, fetch_parent_id
from .task_models import ChildProgress, Task, TaskFilter

logger = logging.getLogger(__name__)


async def set_children_completion(repo: TaskRepo, parent_id: int, new_status: bool) -> int:
    """Bulk-set is_completed on the direct children of `parent_id`."""
    return await repo.update_where(TaskFilter(parent_ids=(parent_id,)), is_completed=new_status)


async def recompute_ancestors(repo: TaskRepo, task_id: int) -> None:
    """
    Recompute derived completion for `task_id` and then each of its ancestors.

    A node with no children keeps its manual state and ends the walk.
    """
    seen: set[int] = set()
    current: int | None = task_id

    while current is not None:
        if current in seen:
            logger.warning("Parent cycle at task_id=%s; stopping recompute", current)
            return
        seen.add(current)

        children = await fetch_children(repo, current)
        if not children:
            return

        all_complete = all(c.is_completed for c in children)
        await repo.update(current, is_completed=all_complete)
        logger.debug(
            "Recomputed task_id=%s completed=%s (%d children)", current, all_complete, len(children)
        )

        current = await fetch_parent_id(repo, current)


async def toggle_task_and_sync(repo: TaskRepo, task: Task, new_status: bool) -> None:
    """
    Set `task` to `new_status`, cascade to its direct children, then recompute ancestors.

    The status is written even when the task has children, and the children are
    overwritten to match: a parent with mixed children becomes uniform.
    """
    await repo.update(task.id, is_completed=new_status)

    touched = await set_children_completion(repo, task.id, new_status)
    logger.info("Toggled task_id=%s completed=%s children=%s", task.id, new_status, touched)

    if task.parent_id is not None:
        await recompute_ancestors(repo, task.parent_id)


async def load_children_progress(
    repo: TaskRepo, parent_ids: Iterable[int]
) -> dict[int, ChildProgress]:
    """Direct-children (total, completed) counts per requested id. Read-only."""
    ids = list(dict.fromkeys(parent_ids))
    if not ids:
        return {}

    counts: dict[int, list[int]] = {pid: [0, 0] for pid in ids}
    for child in await repo.find(TaskFilter(parent_ids=ids)):
        bucket = counts.get(child.parent_id) if child.parent_id is not None else None
        if bucket is None:
            continue
        bucket[0] += 1
        if child.is_completed:
            bucket[1] += 1

    return {pid: ChildProgress(total=t, completed=c) for pid, (t, c) in counts.items()}
