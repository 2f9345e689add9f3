# src/horizon_planner/tasks/errors.py

from __future__ import annotations


class StoreError(RuntimeError):
    """
    An underlying store read/write failed (I/O, permission, constraint).

    Propagated unchanged by the engine; retries belong to the store layer.
    """


class InvariantViolation(ValueError):
    """A write would break the task forest (dangling parent, cycle, bad type/timeframe pairing)."""


class TaskNotFound(LookupError):
    """No task with this id in the caller's owner scope."""
