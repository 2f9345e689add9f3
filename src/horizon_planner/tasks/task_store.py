# src/horizon_planner/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from .errors import StoreError
from .task_models import Attachment, Task, TaskFilter, TaskType, Timeframe

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UPDATABLE = frozenset(
    {
        "name",
        "description",
        "type",
        "priority",
        "is_completed",
        "timeframe",
        "parent_id",
        "attachments",
    }
)

_ORDER_SQL = {
    "created_desc": "created_at DESC, id DESC",
    "priority_desc": "priority DESC, created_at DESC, id DESC",
    "date_asc": "json_extract(timeframe, '$.date') ASC, priority DESC, id ASC",
}


def _clamp_priority(value: Any) -> int:
    return int(max(1, min(5, int(value))))


class TaskStore:
    """
    SQLite task store implementing the TaskRepo port.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Timeframe and attachments are JSON text columns; timeframe predicates
    go through json_extract.

    Thread-safety:
    - each method opens its own SQLite connection
    - the async API runs blocking work in asyncio.to_thread
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    type TEXT NOT NULL,
                    priority INTEGER NOT NULL DEFAULT 3,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    timeframe TEXT NOT NULL DEFAULT '{}',
                    parent_id INTEGER,
                    attachments TEXT NOT NULL DEFAULT '[]',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("priority", "INTEGER NOT NULL DEFAULT 3")
            add_col("is_completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("timeframe", "TEXT NOT NULL DEFAULT '{}'")
            add_col("parent_id", "INTEGER")
            add_col("attachments", "TEXT NOT NULL DEFAULT '[]'")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner_type ON tasks(owner_id, type)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _json_to_str(value: Any, empty: str) -> str:
        if not value:
            return empty
        return json.dumps(value, ensure_ascii=False)

    @staticmethod
    def _str_to_json(s: str | None, expected: type) -> Any:
        if not s:
            return expected()
        try:
            val = json.loads(s)
        except ValueError:
            logger.warning("Corrupt JSON column value; using empty %s", expected.__name__)
            return expected()
        return val if isinstance(val, expected) else expected()

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        attachments = [
            Attachment(name=str(a.get("name", "")), url=str(a.get("url", "")))
            for a in self._str_to_json(row["attachments"], list)
            if isinstance(a, dict)
        ]
        return Task(
            id=int(row["id"]),
            owner_id=str(row["owner_id"]),
            name=str(row["name"] or ""),
            type=TaskType(row["type"]),
            priority=int(row["priority"] or 3),
            is_completed=bool(row["is_completed"]),
            timeframe=Timeframe.from_dict(self._str_to_json(row["timeframe"], dict)),
            parent_id=int(row["parent_id"]) if row["parent_id"] is not None else None,
            description=str(row["description"] or ""),
            attachments=attachments,
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    def _encode_value(self, name: str, value: Any) -> Any:
        if name == "type":
            return TaskType.parse(value).value
        if name == "priority":
            return _clamp_priority(value)
        if name == "is_completed":
            return 1 if value else 0
        if name == "timeframe":
            tf = value.to_dict() if isinstance(value, Timeframe) else dict(value or {})
            return self._json_to_str(tf, "{}")
        if name == "parent_id":
            return int(value) if value is not None else None
        if name == "attachments":
            items = [
                {"name": a.name, "url": a.url} if isinstance(a, Attachment) else dict(a)
                for a in (value or [])
            ]
            return self._json_to_str(items, "[]")
        return str(value or "").strip() if name == "name" else str(value or "")

    def _encode_fields(self, fields: dict[str, Any]) -> tuple[list[str], list[Any]]:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"not updatable: {', '.join(sorted(unknown))}")
        cols: list[str] = []
        params: list[Any] = []
        for name, value in fields.items():
            cols.append(f"{name} = ?")
            params.append(self._encode_value(name, value))
        return cols, params

    @staticmethod
    def _where(flt: TaskFilter) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []

        def members(column: str, values: Any) -> None:
            items = list(values)
            if not items:
                clauses.append("0")
                return
            placeholders = ",".join("?" for _ in items)
            clauses.append(f"{column} IN ({placeholders})")
            params.extend(items)

        if flt.ids is not None:
            members("id", [int(i) for i in flt.ids])
        if flt.owner_id is not None:
            clauses.append("owner_id = ?")
            params.append(flt.owner_id)
        if flt.parent_ids is not None:
            members("parent_id", [int(i) for i in flt.parent_ids])
        if flt.types is not None:
            members("type", [TaskType.parse(t).value for t in flt.types])

        date_col = "json_extract(timeframe, '$.date')"
        if flt.date is not None:
            clauses.append(f"{date_col} = ?")
            params.append(flt.date)
        if flt.date_before is not None:
            clauses.append(f"{date_col} < ?")
            params.append(flt.date_before)
        if flt.date_from is not None:
            clauses.append(f"{date_col} >= ?")
            params.append(flt.date_from)
        if flt.date_to is not None:
            clauses.append(f"{date_col} <= ?")
            params.append(flt.date_to)

        if flt.start_date is not None:
            clauses.append("json_extract(timeframe, '$.startDate') = ?")
            params.append(flt.start_date)
        if flt.end_date is not None:
            clauses.append("json_extract(timeframe, '$.endDate') = ?")
            params.append(flt.end_date)
        if flt.month is not None:
            clauses.append("json_extract(timeframe, '$.month') = ?")
            params.append(int(flt.month))
        if flt.year is not None:
            clauses.append("json_extract(timeframe, '$.year') = ?")
            params.append(int(flt.year))

        sql = " AND ".join(clauses) if clauses else "1"
        return sql, params

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except sqlite3.Error as exc:
            logger.warning("TaskStore %s failed: %s", fn.__name__, exc)
            raise StoreError(f"{fn.__name__} failed: {exc}") from exc

    # ---- blocking implementation ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def _get(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def _find(self, flt: TaskFilter) -> list[Task]:
        where, params = self._where(flt)
        order = _ORDER_SQL.get(flt.order, _ORDER_SQL["created_desc"])
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(f"SELECT * FROM tasks WHERE {where} ORDER BY {order}", params)
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def _insert(
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
    ) -> int:
        if not owner_id or not owner_id.strip():
            raise ValueError("owner_id is required")
        if not name or not name.strip():
            raise ValueError("name is required")

        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(
                    owner_id, name, description, type, priority, is_completed,
                    timeframe, parent_id, attachments, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    owner_id,
                    self._encode_value("name", name),
                    self._encode_value("description", description),
                    self._encode_value("type", type),
                    self._encode_value("priority", priority),
                    self._encode_value("is_completed", is_completed),
                    self._encode_value("timeframe", timeframe),
                    self._encode_value("parent_id", parent_id),
                    self._encode_value("attachments", attachments),
                    now,
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug("Task added id=%s type=%s parent_id=%s", task_id, type, parent_id)
            return task_id
        finally:
            conn.close()

    def _update(self, task_id: int, fields: dict[str, Any]) -> None:
        cols, params = self._encode_fields(fields)
        if not cols:
            return
        cols.append("updated_at = ?")
        params.append(time.time())
        params.append(int(task_id))

        conn = self._get_conn()
        try:
            conn.execute(f"UPDATE tasks SET {', '.join(cols)} WHERE id = ?", params)
            conn.commit()
        finally:
            conn.close()

    def _update_where(self, flt: TaskFilter, fields: dict[str, Any]) -> int:
        cols, params = self._encode_fields(fields)
        if not cols:
            return 0
        cols.append("updated_at = ?")
        params.append(time.time())
        where, where_params = self._where(flt)

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(f"UPDATE tasks SET {', '.join(cols)} WHERE {where}", [*params, *where_params])
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()

    def _delete(self, task_id: int) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
        finally:
            conn.close()

    def _delete_where(self, flt: TaskFilter) -> int:
        where, params = self._where(flt)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(f"DELETE FROM tasks WHERE {where}", params)
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()

    # ---- public API (TaskRepo) ----

    async def get(self, task_id: int) -> Task | None:
        return await self._call(self._get, task_id)

    async def find(self, flt: TaskFilter) -> list[Task]:
        return await self._call(self._find, flt)

    async def insert(self, **fields: Any) -> int:
        return await self._call(self._insert, **fields)

    async def update(self, task_id: int, **fields: Any) -> None:
        await self._call(self._update, task_id, fields)

    async def update_where(self, flt: TaskFilter, **fields: Any) -> int:
        return await self._call(self._update_where, flt, fields)

    async def delete(self, task_id: int) -> None:
        await self._call(self._delete, task_id)

    async def delete_where(self, flt: TaskFilter) -> int:
        return await self._call(self._delete_where, flt)
