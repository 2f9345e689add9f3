# tests/test_task_api.py

from __future__ import annotations

from datetime import date

import pytest

from horizon_planner.tasks import task_api
from horizon_planner.tasks.errors import InvariantViolation, TaskNotFound
from horizon_planner.tasks.task_models import TaskType, Timeframe

from .fakes import FakeTaskRepo

D, W, M, Y = TaskType.DAILY, TaskType.WEEKLY, TaskType.MONTHLY, TaskType.YEARLY


@pytest.mark.asyncio
async def test_create_task_validates_parent_before_writing(repo: FakeTaskRepo) -> None:
    feb = repo.add(M, Timeframe(month=2, year=2025))

    with pytest.raises(InvariantViolation):
        await task_api.create_task(
            repo,
            owner_id="u1",
            name="jan day",
            task_type=D,
            timeframe=Timeframe(date="2025-01-09"),
            parent_id=feb,
        )
    assert repo.writes() == []


@pytest.mark.asyncio
async def test_create_child_reopens_completed_parent(repo: FakeTaskRepo) -> None:
    y1 = repo.add(Y, Timeframe(year=2025), done=True)
    m1 = repo.add(M, Timeframe(month=1, year=2025), parent=y1, done=True)

    task_id = await task_api.create_task(
        repo,
        owner_id="u1",
        name="day",
        task_type="daily",
        timeframe=Timeframe(date="2025-01-09"),
        parent_id=m1,
    )

    assert not repo.done(task_id)
    assert not repo.done(m1)
    assert not repo.done(y1)


@pytest.mark.asyncio
async def test_create_task_input_validation(repo: FakeTaskRepo) -> None:
    with pytest.raises(ValueError):
        await task_api.create_task(
            repo, owner_id="u1", name=" ", task_type=Y, timeframe=Timeframe(year=2025)
        )
    with pytest.raises(ValueError):
        await task_api.create_task(
            repo, owner_id="u1", name="x", task_type=Y, timeframe=Timeframe(year=2025), priority=6
        )
    with pytest.raises(ValueError):
        await task_api.create_task(
            repo, owner_id="u1", name="x", task_type=M, timeframe=Timeframe(month=13, year=2025)
        )
    with pytest.raises(ValueError):
        # 2025-01-07 is a Tuesday.
        await task_api.create_task(
            repo,
            owner_id="u1",
            name="x",
            task_type=W,
            timeframe=Timeframe(start_date="2025-01-07", end_date="2025-01-13"),
        )
    assert repo.writes() == []


def test_normalize_timeframe_keeps_own_variant_only() -> None:
    tf = task_api.normalize_timeframe(W, Timeframe(start_date="2025-01-06", year=2025))
    assert tf == Timeframe(start_date="2025-01-06", end_date="2025-01-12")
    assert task_api.normalize_timeframe(D, Timeframe(date="2025-01-09T10:00")) == Timeframe(
        date="2025-01-09"
    )


@pytest.mark.asyncio
async def test_move_recomputes_old_and_new_parent(repo: FakeTaskRepo) -> None:
    m1 = repo.add(M, Timeframe(month=1, year=2025))
    m2 = repo.add(M, Timeframe(month=1, year=2025), done=True)
    done_child = repo.add(D, Timeframe(date="2025-01-09"), parent=m2, done=True)
    open_child = repo.add(D, Timeframe(date="2025-01-10"), parent=m1, done=False)
    repo.add(D, Timeframe(date="2025-01-11"), parent=m1, done=True)

    task = await task_api.update_task(repo, open_child, owner_id="u1", parent_id=m2)

    assert task.parent_id == m2
    assert task.is_completed is False
    # m1 is left with one completed child; m2 gained an open one.
    assert repo.done(m1)
    assert not repo.done(m2)
    assert repo.done(done_child)


@pytest.mark.asyncio
async def test_update_refuses_cycle(repo: FakeTaskRepo) -> None:
    y1 = repo.add(Y, Timeframe(year=2025))
    m1 = repo.add(M, Timeframe(month=1, year=2025), parent=y1)
    w1 = repo.add(W, Timeframe(start_date="2025-01-06", end_date="2025-01-12"), parent=m1)

    with pytest.raises(InvariantViolation):
        await task_api.update_task(repo, m1, owner_id="u1", parent_id=w1)
    assert repo.writes() == []


@pytest.mark.asyncio
async def test_update_refuses_timeframe_that_strands_children(repo: FakeTaskRepo) -> None:
    m1 = repo.add(M, Timeframe(month=1, year=2025))
    repo.add(D, Timeframe(date="2025-01-09"), parent=m1)

    with pytest.raises(InvariantViolation):
        await task_api.update_task(repo, m1, owner_id="u1", timeframe=Timeframe(month=2, year=2025))
    assert repo.tasks[m1].timeframe.month == 1


@pytest.mark.asyncio
async def test_update_detach_and_rename(repo: FakeTaskRepo) -> None:
    y1 = repo.add(Y, Timeframe(year=2025))
    m1 = repo.add(M, Timeframe(month=1, year=2025), parent=y1)

    task = await task_api.update_task(
        repo, m1, owner_id="u1", parent_id=None, name="  January  ", priority=1
    )
    assert task.parent_id is None
    assert task.name == "January"
    assert task.priority == 1


@pytest.mark.asyncio
async def test_update_other_owner_is_not_found(repo: FakeTaskRepo) -> None:
    t = repo.add(Y, Timeframe(year=2025), owner_id="u2")
    with pytest.raises(TaskNotFound):
        await task_api.update_task(repo, t, owner_id="u1", name="x")


@pytest.mark.asyncio
async def test_listings(repo: FakeTaskRepo) -> None:
    today = date(2025, 1, 9)
    low = repo.add(D, Timeframe(date="2025-01-09"), priority=1)
    high = repo.add(D, Timeframe(date="2025-01-09"), priority=5)
    tomorrow = repo.add(D, Timeframe(date="2025-01-10"))
    old = repo.add(D, Timeframe(date="2025-01-02"))
    older = repo.add(D, Timeframe(date="2024-12-30"))
    this_week = repo.add(W, Timeframe(start_date="2025-01-06", end_date="2025-01-12"))
    next_week = repo.add(W, Timeframe(start_date="2025-01-13", end_date="2025-01-19"))
    repo.add(W, Timeframe(start_date="2025-01-20", end_date="2025-01-26"))
    jan = repo.add(M, Timeframe(month=1, year=2025))
    feb = repo.add(M, Timeframe(month=2, year=2025))
    repo.add(M, Timeframe(month=3, year=2025))
    y25 = repo.add(Y, Timeframe(year=2025))
    repo.add(D, Timeframe(date="2025-01-09"), owner_id="u2")

    assert [t.id for t in await task_api.list_daily(repo, "u1", today)] == [high, low]
    assert [t.id for t in await task_api.list_overdue(repo, "u1", today)] == [older, old]
    assert [t.id for t in await task_api.list_weekly(repo, "u1", today)] == [this_week]
    assert [t.id for t in await task_api.list_monthly(repo, "u1", 1, 2025)] == [jan]
    assert [t.id for t in await task_api.list_yearly(repo, "u1", 2025)] == [y25]

    up = await task_api.list_upcoming(repo, "u1", today)
    assert {t.id for t in up.daily} == {low, high, tomorrow}
    assert [t.id for t in up.weekly] == [this_week, next_week]
    assert [t.id for t in up.monthly] == [jan, feb]


@pytest.mark.asyncio
async def test_upcoming_months_roll_over_year(repo: FakeTaskRepo) -> None:
    dec = repo.add(M, Timeframe(month=12, year=2025))
    jan = repo.add(M, Timeframe(month=1, year=2026))
    up = await task_api.list_upcoming(repo, "u1", date(2025, 12, 30))
    assert [t.id for t in up.monthly] == [dec, jan]


@pytest.mark.asyncio
async def test_clear_all_tasks_is_owner_scoped(repo: FakeTaskRepo) -> None:
    repo.add(Y, Timeframe(year=2025))
    repo.add(M, Timeframe(month=1, year=2025))
    keep = repo.add(Y, Timeframe(year=2025), owner_id="u2")

    assert await task_api.clear_all_tasks(repo, "u1") == 2
    assert list(repo.tasks) == [keep]
