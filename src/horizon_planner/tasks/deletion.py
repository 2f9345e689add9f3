# src/horizon_planner/tasks/deletion.py

"""
Deletion resolver.

Two policies:
- delete_task_tree: the task and its whole subtree go away;
- delete_task_keep_children: the task is spliced out and its direct
  children move up one level to the task's parent.

Both finish by recomputing the completion of the surviving parent chain.
"""

from __future__ import annotations

import logging

from ..core.ports import TaskRepo
from .completion import recompute_ancestors
from .navigator import fetch_descendant_ids
from .task_models import TaskFilter

logger = logging.getLogger(__name__)


async def delete_task_tree(repo: TaskRepo, task_id: int) -> int:
    """
    Delete `task_id` and all descendants, deepest first. Returns rows deleted.

    Deletion runs leaf-to-root one id at a time: if a delete fails, every row
    still present has its own parent still present too.
    """
    task = await repo.get(task_id)
    if task is None:
        logger.info("delete_task_tree: task_id=%s not found", task_id)
        return 0

    order = await fetch_descendant_ids(repo, task_id)
    order.reverse()
    order.append(task_id)

    for tid in order:
        await repo.delete(tid)

    logger.info("Deleted task tree root=%s rows=%d", task_id, len(order))

    if task.parent_id is not None:
        await recompute_ancestors(repo, task.parent_id)
    return len(order)


async def delete_task_keep_children(repo: TaskRepo, task_id: int) -> int:
    """
    Delete `task_id` only; its direct children are reparented to its parent.

    Children of a root task become roots. Returns the number of children moved.
    """
    task = await repo.get(task_id)
    if task is None:
        logger.info("delete_task_keep_children: task_id=%s not found", task_id)
        return 0

    grandparent_id = task.parent_id
    moved = await repo.update_where(TaskFilter(parent_ids=(task_id,)), parent_id=grandparent_id)
    await repo.delete(task_id)

    logger.info(
        "Deleted task_id=%s; moved %s children to parent_id=%s", task_id, moved, grandparent_id
    )

    if grandparent_id is not None:
        await recompute_ancestors(repo, grandparent_id)
    return moved
