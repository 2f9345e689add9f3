# src/horizon_planner/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from .ports import TaskRepo


@dataclass
class AppState:
    # Settings object (real Settings or a test namespace with the same fields).
    settings: Any

    task_store: TaskRepo
    owner_id: str

    # Serializes command handling between connectors sharing this state.
    lock: threading.Lock = field(default_factory=threading.Lock)
