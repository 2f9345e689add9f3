# src/horizon_planner/core/ports.py

"""
Ports (interfaces) used by the task engine.

The engine depends on Protocols instead of concrete implementations.
This keeps the storage swappable (SQLite, remote table, in-memory fake)
and makes testing easier.

Contract notes:
- each call is atomic on its own;
- consecutive calls are NOT wrapped in a transaction;
- failures surface as StoreError.
"""

from __future__ import annotations

from typing import Any, Protocol

from ..tasks.task_models import Task, TaskFilter


class TaskRepo(Protocol):
    # Reads
    async def get(self, task_id: int) -> Task | None: ...
    async def find(self, flt: TaskFilter) -> list[Task]: ...

    # Writes
    async def insert(
            self,
            *,
            owner_id: str,
            name: str,
            type: Any,
            timeframe: Any,
            priority: int = 3,
            description: str = "",
            is_completed: bool = False,
            parent_id: int | None = None,
            attachments: list[Any] | None = None,
    ) -> int: ...

    async def update(self, task_id: int, **fields: Any) -> None: ...
    async def update_where(self, flt: TaskFilter, **fields: Any) -> int: ...
    async def delete(self, task_id: int) -> None: ...
    async def delete_where(self, flt: TaskFilter) -> int: ...
