# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from horizon_planner.core.state import AppState
from horizon_planner.tasks.task_store import TaskStore

from .fakes import FakeTaskRepo


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="horizon-test",
        log_level="DEBUG",
        console_enabled=False,
        owner_id="u1",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        week_options_months=3,
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired with a real SQLite TaskStore.

    The store's correctness is part of what the command tests exercise.
    """
    return AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path),
        owner_id=settings.owner_id,
    )


@pytest.fixture()
def repo() -> FakeTaskRepo:
    return FakeTaskRepo()
