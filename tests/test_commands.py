# tests/test_commands.py

from __future__ import annotations

import re
from datetime import date

from horizon_planner.cli.commands import CommandRegistry, parse_when, registry
from horizon_planner.tasks.task_models import TaskType, Timeframe


def _created_id(reply: str) -> int:
    m = re.search(r"#(\d+)", reply)
    assert m, reply
    return int(m.group(1))


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b")

    assert reg.handle(state, "/a x") == "h2"
    assert reg.handle(state, "/b y", emit=lambda _: None) == "h3"
    assert called["h2"] == 1
    assert called["h3"] == 1


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")


def test_parse_when() -> None:
    today = date(2025, 1, 9)
    assert parse_when(TaskType.DAILY, "today", today) == Timeframe(date="2025-01-09")
    assert parse_when(TaskType.WEEKLY, "2025-01-08", today) == Timeframe(
        start_date="2025-01-06", end_date="2025-01-12"
    )
    assert parse_when(TaskType.MONTHLY, "2025-02", today) == Timeframe(month=2, year=2025)
    assert parse_when(TaskType.YEARLY, "this", today) == Timeframe(year=2025)


def test_add_toggle_and_delete_flow(state) -> None:
    y1 = _created_id(registry.handle(state, '/add yearly 2025 "Learn Spanish"') or "")
    m1 = _created_id(registry.handle(state, f"/add monthly 2025-01 parent={y1} Basics") or "")
    d1 = _created_id(registry.handle(state, f"/add daily 2025-01-09 p=5 parent={m1} Lesson 1") or "")
    d2 = _created_id(registry.handle(state, f"/add daily 2025-01-10 parent={m1} Lesson 2") or "")

    assert "marked done" in (registry.handle(state, f"/toggle {d1}") or "")
    assert f"#{m1}: 1/2" in (registry.handle(state, f"/progress {m1}") or "")

    registry.handle(state, f"/toggle {d2} on")
    shown = registry.handle(state, f"/show {y1}") or ""
    assert f"#{y1} [x]" in shown

    reply = registry.handle(state, f"/rm {m1} keep") or ""
    assert "2 children moved" in reply
    assert f"#{y1}: 2/2" in (registry.handle(state, f"/progress {y1}") or "")

    reply = registry.handle(state, f"/rm {y1} tree") or ""
    assert "(3 tasks)" in reply
    assert "No such task" in (registry.handle(state, f"/show {d1}") or "")


def test_add_with_bad_parent_is_refused(state) -> None:
    feb = _created_id(registry.handle(state, "/add monthly 2025-02 February") or "")
    reply = registry.handle(state, f"/add daily 2025-01-09 parent={feb} Wrong month") or ""
    assert reply.startswith("Refused:")


def test_invalid_input_is_reported(state) -> None:
    assert (registry.handle(state, "/add hourly 2025 x") or "").startswith("Invalid input:")
    assert (registry.handle(state, "/toggle abc") or "").startswith("Invalid input:")


def test_parents_and_clear(state) -> None:
    y1 = _created_id(registry.handle(state, "/add yearly 2025 Year") or "")
    registry.handle(state, "/add yearly 2024 Last year")

    reply = registry.handle(state, "/parents daily 2025-03-01") or ""
    assert f"#{y1}" in reply
    assert "Last year" not in reply
    assert "cannot have a parent" in (registry.handle(state, "/parents yearly 2025") or "")

    assert "Confirm" in (registry.handle(state, "/clear") or "")
    assert registry.handle(state, "/clear yes") == "Deleted 2 tasks."


def test_move_refuses_cycle(state) -> None:
    y1 = _created_id(registry.handle(state, "/add yearly 2025 Year") or "")
    m1 = _created_id(registry.handle(state, f"/add monthly 2025-01 parent={y1} Jan") or "")
    assert (registry.handle(state, f"/move {y1} {m1}") or "").startswith("Refused:")
    assert "parent" not in (registry.handle(state, f"/move {m1} none") or "").split(":", 1)[1]
