# tests/test_completion.py

from __future__ import annotations

import pytest

from horizon_planner.tasks.completion import (
    load_children_progress,
    recompute_ancestors,
    toggle_task_and_sync,
)
from horizon_planner.tasks.errors import StoreError
from horizon_planner.tasks.task_models import ChildProgress, TaskType, Timeframe

from .fakes import FakeTaskRepo

D, W, M, Y = TaskType.DAILY, TaskType.WEEKLY, TaskType.MONTHLY, TaskType.YEARLY


def _year_month_days(repo: FakeTaskRepo) -> tuple[int, int, int, int]:
    y1 = repo.add(Y, Timeframe(year=2025), name="Y1")
    m1 = repo.add(M, Timeframe(month=1, year=2025), parent=y1, name="M1")
    d1 = repo.add(D, Timeframe(date="2025-01-09"), parent=m1, name="D1")
    d2 = repo.add(D, Timeframe(date="2025-01-10"), parent=m1, name="D2")
    return y1, m1, d1, d2


@pytest.mark.asyncio
async def test_toggle_leaves_bubble_up_to_root(repo: FakeTaskRepo) -> None:
    y1, m1, d1, d2 = _year_month_days(repo)

    await toggle_task_and_sync(repo, repo.tasks[d1], True)
    assert repo.done(d1)
    assert not repo.done(m1)
    assert not repo.done(y1)

    await toggle_task_and_sync(repo, repo.tasks[d2], True)
    assert repo.done(m1)
    assert repo.done(y1)


@pytest.mark.asyncio
async def test_toggle_sets_direct_children_only(repo: FakeTaskRepo) -> None:
    y1 = repo.add(Y, Timeframe(year=2025))
    m1 = repo.add(M, Timeframe(month=1, year=2025), parent=y1)
    m2 = repo.add(M, Timeframe(month=2, year=2025), parent=y1, done=True)
    d1 = repo.add(D, Timeframe(date="2025-01-09"), parent=m1)

    await toggle_task_and_sync(repo, repo.tasks[y1], True)

    assert repo.done(y1)
    assert repo.done(m1)
    assert repo.done(m2)
    # Grandchildren keep their state.
    assert not repo.done(d1)


@pytest.mark.asyncio
async def test_toggle_parent_off_overwrites_mixed_children(repo: FakeTaskRepo) -> None:
    m1 = repo.add(M, Timeframe(month=1, year=2025), done=True)
    d1 = repo.add(D, Timeframe(date="2025-01-09"), parent=m1, done=True)
    d2 = repo.add(D, Timeframe(date="2025-01-10"), parent=m1, done=False)

    await toggle_task_and_sync(repo, repo.tasks[m1], False)
    assert not repo.done(m1)
    assert not repo.done(d1)
    assert not repo.done(d2)


@pytest.mark.asyncio
async def test_toggle_write_order(repo: FakeTaskRepo) -> None:
    y1, m1, d1, _ = _year_month_days(repo)

    await toggle_task_and_sync(repo, repo.tasks[d1], True)

    writes = repo.writes()
    assert writes[0] == ("update", (d1, {"is_completed": True}))
    assert writes[1][0] == "update_where"
    assert [w[1][0] for w in writes[2:]] == [m1, y1]


@pytest.mark.asyncio
async def test_recompute_matches_and_of_children(repo: FakeTaskRepo) -> None:
    m1 = repo.add(M, Timeframe(month=1, year=2025), done=True)
    repo.add(D, Timeframe(date="2025-01-09"), parent=m1, done=True)
    repo.add(D, Timeframe(date="2025-01-10"), parent=m1, done=False)

    await recompute_ancestors(repo, m1)
    assert not repo.done(m1)


@pytest.mark.asyncio
async def test_recompute_childless_is_noop(repo: FakeTaskRepo) -> None:
    y1 = repo.add(Y, Timeframe(year=2025), done=True)
    lone = repo.add(M, Timeframe(month=3, year=2025), parent=y1, done=False)

    await recompute_ancestors(repo, lone)

    assert not repo.done(lone)
    # Walk stops at the childless node; the root is untouched.
    assert repo.done(y1)
    assert repo.writes() == []


@pytest.mark.asyncio
async def test_recompute_stops_on_corrupt_cycle(repo: FakeTaskRepo) -> None:
    a = repo.add(M, Timeframe(month=1, year=2025))
    b = repo.add(M, Timeframe(month=2, year=2025), parent=a, done=True)
    repo.tasks[a].parent_id = b

    await recompute_ancestors(repo, a)

    assert repo.done(a)
    assert len(repo.writes()) == 2


@pytest.mark.asyncio
async def test_toggle_failure_mid_sequence_keeps_earlier_writes(repo: FakeTaskRepo) -> None:
    y1, m1, d1, d2 = _year_month_days(repo)
    repo.tasks[d2].is_completed = True
    repo.fail_on("update", 3)  # d1, m1 succeed; y1 fails

    with pytest.raises(StoreError):
        await toggle_task_and_sync(repo, repo.tasks[d1], True)

    assert repo.done(d1)
    assert repo.done(m1)
    assert not repo.done(y1)


@pytest.mark.asyncio
async def test_load_children_progress_direct_children_only(repo: FakeTaskRepo) -> None:
    y1, m1, d1, _ = _year_month_days(repo)
    repo.tasks[d1].is_completed = True
    lone = repo.add(Y, Timeframe(year=2026))

    progress = await load_children_progress(repo, [m1, y1, lone])

    assert progress[m1] == ChildProgress(total=2, completed=1)
    assert progress[y1] == ChildProgress(total=1, completed=0)
    assert progress[lone] == ChildProgress(total=0, completed=0)
    assert repo.writes() == []


@pytest.mark.asyncio
async def test_load_children_progress_empty_input(repo: FakeTaskRepo) -> None:
    assert await load_children_progress(repo, []) == {}
    assert repo.calls == []
