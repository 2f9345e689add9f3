# src/horizon_planner/tasks/timeframe.py

"""
Timeframe model: allowed parent types and parent/child containment.

All dates are plain calendar dates serialized as "YYYY-MM-DD". Nothing here
converts through local time, so a date never drifts across a timezone
boundary.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from .task_models import TaskType, Timeframe

_ALLOWED_PARENTS: dict[TaskType, tuple[TaskType, ...]] = {
    TaskType.DAILY: (TaskType.WEEKLY, TaskType.MONTHLY, TaskType.YEARLY),
    TaskType.WEEKLY: (TaskType.MONTHLY, TaskType.YEARLY),
    TaskType.MONTHLY: (TaskType.YEARLY,),
    TaskType.YEARLY: (),
}


def allowed_parent_types(task_type: TaskType | str) -> tuple[TaskType, ...]:
    return _ALLOWED_PARENTS[TaskType.parse(task_type)]


def parse_iso_date(value: str | None) -> date | None:
    """Read the calendar date of "YYYY-MM-DD" (a trailing time part is ignored)."""
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def to_iso_date(value: date | datetime) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def _normalized(value: str | None) -> str | None:
    d = parse_iso_date(value)
    return d.isoformat() if d else None


def timeframe_contains(
    parent_type: TaskType | str,
    parent_tf: Timeframe,
    child_type: TaskType | str,
    child_tf: Timeframe,
) -> bool:
    """Return True if a child timeframe lies fully inside the parent timeframe."""
    ptype = TaskType.parse(parent_type)
    ctype = TaskType.parse(child_type)

    if ptype is TaskType.YEARLY:
        if not parent_tf.year:
            return False
        if ctype is TaskType.DAILY:
            d = parse_iso_date(child_tf.date)
            return d is not None and d.year == parent_tf.year
        if ctype is TaskType.WEEKLY:
            anchor = parse_iso_date(child_tf.start_date or child_tf.end_date)
            return anchor is not None and anchor.year == parent_tf.year
        if ctype is TaskType.MONTHLY:
            return child_tf.year == parent_tf.year
        return False

    if ptype is TaskType.MONTHLY:
        if not parent_tf.month or not parent_tf.year:
            return False
        if ctype is TaskType.DAILY:
            anchor = parse_iso_date(child_tf.date)
        elif ctype is TaskType.WEEKLY:
            # A week straddling two months belongs to the month it starts in.
            anchor = parse_iso_date(child_tf.start_date or child_tf.end_date)
        else:
            return False
        return anchor is not None and (anchor.year, anchor.month) == (parent_tf.year, parent_tf.month)

    if ptype is TaskType.WEEKLY:
        start = _normalized(parent_tf.start_date)
        end = _normalized(parent_tf.end_date)
        if not start or not end or ctype is not TaskType.DAILY:
            return False
        day = _normalized(child_tf.date)
        return day is not None and start <= day <= end

    # Daily tasks are never parents.
    return False


def week_range(anchor: date | datetime) -> tuple[str, str]:
    """Monday..Sunday of the week containing `anchor`, as ISO dates."""
    if isinstance(anchor, datetime):
        anchor = anchor.date()
    monday = anchor - timedelta(days=anchor.weekday())
    sunday = monday + timedelta(days=6)
    return monday.isoformat(), sunday.isoformat()


def _add_months(d: date, months: int) -> date:
    total = d.year * 12 + (d.month - 1) + months
    year, month0 = divmod(total, 12)
    # Clamp the day (Jan 31 + 1 month -> Feb 28/29).
    for day in (d.day, 30, 29, 28):
        try:
            return date(year, month0 + 1, day)
        except ValueError:
            continue
    raise ValueError(f"cannot shift {d} by {months} months")


def week_options(today: date | datetime, months_ahead: int = 3) -> list[tuple[str, str]]:
    """Consecutive week ranges from the current week through `months_ahead` months out."""
    if isinstance(today, datetime):
        today = today.date()
    start, _ = week_range(today)
    _, last_sunday = week_range(_add_months(today, max(0, int(months_ahead))))

    out: list[tuple[str, str]] = []
    monday = date.fromisoformat(start)
    while monday.isoformat() <= last_sunday:
        out.append(week_range(monday))
        monday += timedelta(days=7)
    return out


def next_month(month: int, year: int) -> tuple[int, int]:
    return (1, year + 1) if month == 12 else (month + 1, year)
