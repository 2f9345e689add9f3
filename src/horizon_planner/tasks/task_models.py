# src/horizon_planner/tasks/task_models.py

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal


class TaskType(StrEnum):
    """
    Time horizon of a task.

    Granularity order (coarsest first): Yearly > Monthly > Weekly > Daily.
    """

    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"

    @classmethod
    def parse(cls, raw: str | TaskType) -> TaskType:
        """Accept canonical values and case-insensitive names ("daily", "YEARLY")."""
        if isinstance(raw, TaskType):
            return raw
        s = (raw or "").strip().lower()
        for member in cls:
            if member.value.lower() == s:
                return member
        raise ValueError(f"unknown task type: {raw!r}")


@dataclass(slots=True)
class Timeframe:
    """
    Timeframe variant keyed by task type.

    Daily   -> date
    Weekly  -> start_date, end_date (Monday..Sunday, inclusive)
    Monthly -> month, year
    Yearly  -> year

    Dates are ISO calendar dates ("YYYY-MM-DD"), no time-of-day.
    """

    date: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    month: int | None = None
    year: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.date is not None:
            out["date"] = self.date
        if self.start_date is not None:
            out["startDate"] = self.start_date
        if self.end_date is not None:
            out["endDate"] = self.end_date
        if self.month is not None:
            out["month"] = self.month
        if self.year is not None:
            out["year"] = self.year
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> Timeframe:
        if not raw:
            return cls()

        def _int(v: Any) -> int | None:
            if v is None or v == "":
                return None
            try:
                return int(v)
            except (TypeError, ValueError):
                return None

        return cls(
            date=raw.get("date") or None,
            start_date=raw.get("startDate") or None,
            end_date=raw.get("endDate") or None,
            month=_int(raw.get("month")),
            year=_int(raw.get("year")),
        )


@dataclass(slots=True, frozen=True)
class Attachment:
    name: str
    url: str


@dataclass(slots=True)
class Task:
    id: int
    owner_id: str
    name: str
    type: TaskType
    priority: int
    is_completed: bool
    timeframe: Timeframe

    parent_id: int | None = None
    description: str = ""
    attachments: list[Attachment] = field(default_factory=list)

    created_at: float = 0.0
    updated_at: float = 0.0


TaskOrder = Literal["created_desc", "priority_desc", "date_asc"]


@dataclass(slots=True, frozen=True)
class TaskFilter:
    """
    Predicate for find / update_where / delete_where.

    Every field that is set is ANDed. Collections (ids, parent_ids, types)
    match membership; an empty collection matches nothing.
    Date predicates compare the ISO "date" of Daily timeframes lexically.
    """

    ids: Collection[int] | None = None
    owner_id: str | None = None
    parent_ids: Collection[int] | None = None
    types: Collection[TaskType] | None = None

    date: str | None = None
    date_before: str | None = None
    date_from: str | None = None
    date_to: str | None = None

    start_date: str | None = None
    end_date: str | None = None
    month: int | None = None
    year: int | None = None

    order: TaskOrder = "created_desc"


@dataclass(slots=True, frozen=True)
class ChildProgress:
    """Direct-children completion counts, e.g. "in progress 2/5"."""

    total: int = 0
    completed: int = 0
