# src/horizon_planner/tasks/navigator.py

"""Read-only traversal helpers over the task store."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable

from ..core.ports import TaskRepo
from .task_models import Task, TaskFilter

logger = logging.getLogger(__name__)


async def fetch_parent_id(repo: TaskRepo, task_id: int) -> int | None:
    task = await repo.get(task_id)
    return task.parent_id if task is not None else None


async def fetch_children(repo: TaskRepo, task_id: int) -> list[Task]:
    return await repo.find(TaskFilter(parent_ids=(task_id,)))


async def fetch_child_ids(repo: TaskRepo, task_id: int) -> list[int]:
    return [t.id for t in await fetch_children(repo, task_id)]


async def fetch_descendant_ids(repo: TaskRepo, task_id: int) -> list[int]:
    """
    All descendants of `task_id` in breadth-first order (the root excluded).

    Deeper nodes always come after their ancestors, so the reversed list is a
    safe leaf-to-root deletion order.
    """
    seen: set[int] = {task_id}
    out: list[int] = []
    queue: deque[int] = deque([task_id])

    while queue:
        current = queue.popleft()
        for child_id in await fetch_child_ids(repo, current):
            if child_id in seen:
                logger.warning("Cycle detected below task_id=%s at child_id=%s", task_id, child_id)
                continue
            seen.add(child_id)
            out.append(child_id)
            queue.append(child_id)
    return out


def build_child_map(tasks: Iterable[Task]) -> dict[int, list[int]]:
    child_map: dict[int, list[int]] = {}
    for t in tasks:
        if t.parent_id is not None:
            child_map.setdefault(t.parent_id, []).append(t.id)
    return child_map


def collect_descendants(child_map: dict[int, list[int]], root_id: int) -> set[int]:
    """Descendant ids of `root_id` from a prebuilt child map (root excluded)."""
    found: set[int] = set()
    stack = [root_id]
    while stack:
        nid = stack.pop()
        for cid in child_map.get(nid, []):
            if cid not in found and cid != root_id:
                found.add(cid)
                stack.append(cid)
    return found
