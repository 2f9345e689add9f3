# src/horizon_planner/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
import shlex
from collections.abc import Callable, Coroutine
from datetime import date, timedelta
from typing import Any, TypeVar, cast

from ..core.state import AppState
from ..tasks import completion, deletion, parents, task_api
from ..tasks.errors import InvariantViolation, StoreError, TaskNotFound
from ..tasks.task_models import ChildProgress, Task, TaskType, Timeframe
from ..tasks.timeframe import parse_iso_date, week_options, week_range

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, /toggle, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args" (shell-style quoting allowed).
        Returns a reply string or None if not a command.

        Domain errors become user-facing replies; anything else propagates.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Cannot parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except TaskNotFound as e:
            return f"No such task: #{e.args[0]}"
        except InvariantViolation as e:
            return f"Refused: {e}"
        except StoreError as e:
            logger.warning("Store failure in /%s: %s", name, e)
            return f"Store error: {e}. Some changes may have been applied; use /list to re-check."
        except ValueError as e:
            return f"Invalid input: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


# ---- parsing / formatting helpers ----


def _parse_day(token: str, today: date) -> date:
    t = token.lower()
    if t == "today":
        return today
    if t == "tomorrow":
        return today + timedelta(days=1)
    if t == "yesterday":
        return today - timedelta(days=1)
    d = parse_iso_date(token)
    if d is None:
        raise ValueError(f"expected a date (YYYY-MM-DD/today/tomorrow), got {token!r}")
    return d


def _parse_month(token: str, today: date) -> tuple[int, int]:
    if token.lower() in ("this", "now"):
        return today.month, today.year
    try:
        y, m = token.split("-", 1)
        month, year = int(m), int(y)
    except ValueError:
        raise ValueError(f"expected a month as YYYY-MM, got {token!r}") from None
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {token!r}")
    return month, year


def _parse_year(token: str, today: date) -> int:
    if token.lower() in ("this", "now"):
        return today.year
    try:
        return int(token)
    except ValueError:
        raise ValueError(f"expected a year, got {token!r}") from None


def parse_when(task_type: TaskType, token: str, today: date | None = None) -> Timeframe:
    """
    Timeframe from a compact token:
    Daily 2025-01-09 | Weekly <any day of the week> | Monthly 2025-01 | Yearly 2025.
    """
    today = today or date.today()
    if task_type is TaskType.DAILY:
        return Timeframe(date=_parse_day(token, today).isoformat())
    if task_type is TaskType.WEEKLY:
        start, end = week_range(_parse_day(token, today))
        return Timeframe(start_date=start, end_date=end)
    if task_type is TaskType.MONTHLY:
        month, year = _parse_month(token, today)
        return Timeframe(month=month, year=year)
    return Timeframe(year=_parse_year(token, today))


def _parse_id(token: str) -> int:
    try:
        return int(token.lstrip("#"))
    except ValueError:
        raise ValueError(f"expected a task id, got {token!r}") from None


def _parse_parent(token: str) -> int | None:
    if token.lower() in ("none", "-", "root"):
        return None
    return _parse_id(token)


def format_when(task: Task) -> str:
    tf = task.timeframe
    if task.type is TaskType.DAILY:
        return tf.date or "?"
    if task.type is TaskType.WEEKLY:
        return f"{tf.start_date or '?'}..{tf.end_date or '?'}"
    if task.type is TaskType.MONTHLY:
        return f"{tf.year or '?'}-{tf.month or 0:02d}"
    return str(tf.year or "?")


def format_task(task: Task, progress: ChildProgress | None = None) -> str:
    mark = "x" if task.is_completed else " "
    line = f"#{task.id} [{mark}] {task.type.value} {format_when(task)} p{task.priority} {task.name}"
    if task.parent_id is not None:
        line += f" (parent #{task.parent_id})"
    if progress is not None and progress.total:
        line += f" {progress.completed}/{progress.total}"
    return line


def _format_list(state: AppState, title: str, tasks: list[Task]) -> str:
    if not tasks:
        return f"{title}: no tasks."
    progress = _run(completion.load_children_progress(state.task_store, [t.id for t in tasks]))
    lines = [f"{title}:"]
    lines.extend(f"  {format_task(t, progress.get(t.id))}" for t in tasks)
    return "\n".join(lines)


def _split_options(args: list[str]) -> tuple[dict[str, str], list[str]]:
    opts: dict[str, str] = {}
    rest: list[str] = []
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key.lower() in ("p", "priority", "parent", "name", "desc", "type", "when"):
            opts[key.lower()] = value
        else:
            rest.append(a)
    return opts, rest


# ---- commands ----


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    settings = state.settings
    return (
        "Status:\n"
        f"  Owner: {state.owner_id}\n"
        f"  Tasks DB: {getattr(settings, 'tasks_db_path', '?')}"
    )


def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add <type> <when> [p=N] [parent=ID] [desc=...] <name...>
    """
    opts, rest = _split_options(args)
    if len(rest) < 3 and not (len(rest) == 2 and "name" in opts):
        return "Usage: /add <daily|weekly|monthly|yearly> <when> [p=1..5] [parent=ID] <name>"

    task_type = TaskType.parse(rest[0])
    tf = parse_when(task_type, rest[1])
    name = opts.get("name") or " ".join(rest[2:])
    parent_id = _parse_parent(opts["parent"]) if "parent" in opts else None

    task_id = _run(
        task_api.create_task(
            state.task_store,
            owner_id=state.owner_id,
            name=name,
            task_type=task_type,
            timeframe=tf,
            priority=int(opts.get("p") or opts.get("priority") or 3),
            description=opts.get("desc", ""),
            parent_id=parent_id,
        )
    )
    return f"Task created: #{task_id}"


def cmd_edit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /edit <id> [name=...] [desc=...] [p=N] [type=T when=W] [parent=ID|none]
    """
    if not args:
        return "Usage: /edit <id> [name=...] [desc=...] [p=N] [type=T] [when=W] [parent=ID|none]"
    task_id = _parse_id(args[0])
    opts, rest = _split_options(args[1:])
    if rest:
        return f"Unexpected arguments: {' '.join(rest)}"

    current = _run(task_api.get_task(state.task_store, state.owner_id, task_id))
    task_type = TaskType.parse(opts["type"]) if "type" in opts else current.type
    tf = parse_when(task_type, opts["when"]) if "when" in opts else None
    if task_type is not current.type and tf is None:
        return "Changing the type needs a new timeframe: add when=..."

    kwargs: dict[str, Any] = {}
    if "parent" in opts:
        kwargs["parent_id"] = _parse_parent(opts["parent"])
    prio = opts.get("p") or opts.get("priority")

    task = _run(
        task_api.update_task(
            state.task_store,
            task_id,
            owner_id=state.owner_id,
            name=opts.get("name"),
            description=opts.get("desc"),
            priority=int(prio) if prio else None,
            task_type=task_type,
            timeframe=tf,
            **kwargs,
        )
    )
    return f"Task updated: {format_task(task)}"


def cmd_move(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/move <id> <parent_id|none>"""
    if len(args) != 2:
        return "Usage: /move <id> <parent_id|none>"
    task = _run(
        task_api.update_task(
            state.task_store,
            _parse_id(args[0]),
            owner_id=state.owner_id,
            parent_id=_parse_parent(args[1]),
        )
    )
    return f"Task moved: {format_task(task)}"


def cmd_show(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 1:
        return "Usage: /show <id>"
    task = _run(task_api.get_task(state.task_store, state.owner_id, _parse_id(args[0])))
    progress = _run(completion.load_children_progress(state.task_store, [task.id]))
    lines = [format_task(task, progress.get(task.id))]
    if task.description:
        lines.append(f"  {task.description}")
    for a in task.attachments:
        lines.append(f"  attachment: {a.name} <{a.url}>")
    return "\n".join(lines)


def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /list                 -> today
    /list day <date>      -> daily tasks of a date
    /list week [date]     -> weekly tasks of the week containing date
    /list month [YYYY-MM] -> monthly tasks
    /list year [YYYY]     -> yearly tasks
    /list overdue         -> daily tasks before today
    /list upcoming        -> today+tomorrow, this+next week, this+next month
    """
    today = date.today()
    repo = state.task_store
    owner = state.owner_id
    sub = args[0].lower() if args else "today"
    arg = args[1] if len(args) > 1 else None

    if sub == "today":
        return _format_list(state, f"Today {today}", _run(task_api.list_daily(repo, owner, today)))
    if sub in ("day", "daily"):
        day = _parse_day(arg, today) if arg else today
        return _format_list(state, f"Daily {day}", _run(task_api.list_daily(repo, owner, day)))
    if sub in ("week", "weekly"):
        anchor = _parse_day(arg, today) if arg else today
        start, end = week_range(anchor)
        tasks = _run(task_api.list_weekly(repo, owner, anchor))
        return _format_list(state, f"Week {start}..{end}", tasks)
    if sub in ("month", "monthly"):
        month, year = _parse_month(arg, today) if arg else (today.month, today.year)
        tasks = _run(task_api.list_monthly(repo, owner, month, year))
        return _format_list(state, f"Month {year}-{month:02d}", tasks)
    if sub in ("year", "yearly"):
        year = _parse_year(arg, today) if arg else today.year
        return _format_list(state, f"Year {year}", _run(task_api.list_yearly(repo, owner, year)))
    if sub == "overdue":
        return _format_list(state, "Overdue", _run(task_api.list_overdue(repo, owner, today)))
    if sub == "upcoming":
        up = _run(task_api.list_upcoming(repo, owner, today))
        return "\n".join(
            [
                _format_list(state, "Upcoming daily", up.daily),
                _format_list(state, "Upcoming weekly", up.weekly),
                _format_list(state, "Upcoming monthly", up.monthly),
            ]
        )
    return "Usage: /list [today|day DATE|week [DATE]|month [YYYY-MM]|year [YYYY]|overdue|upcoming]"


def cmd_toggle(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /toggle <id>        -> flip completion
    /toggle <id> on|off -> set completion explicitly
    """
    if not args or len(args) > 2:
        return "Usage: /toggle <id> [on|off]"
    task = _run(task_api.get_task(state.task_store, state.owner_id, _parse_id(args[0])))

    if len(args) == 2:
        arg = args[1].lower()
        if arg in ("on", "1", "true", "yes", "done"):
            new_status = True
        elif arg in ("off", "0", "false", "no", "open"):
            new_status = False
        else:
            return "Usage: /toggle <id> [on|off]"
    else:
        new_status = not task.is_completed

    _run(completion.toggle_task_and_sync(state.task_store, task, new_status))
    return f"Task #{task.id} marked {'done' if new_status else 'open'}."


def cmd_progress(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /progress <id> [id...]"
    ids = [_parse_id(a) for a in args]
    progress = _run(completion.load_children_progress(state.task_store, ids))
    lines = ["Children progress:"]
    for tid in ids:
        p = progress.get(tid, ChildProgress())
        lines.append(f"  #{tid}: {p.completed}/{p.total}")
    return "\n".join(lines)


def cmd_parents(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/parents <type> <when> [self_id] -> tasks that may be the parent"""
    if len(args) not in (2, 3):
        return "Usage: /parents <type> <when> [editing_task_id]"
    task_type = TaskType.parse(args[0])
    tf = parse_when(task_type, args[1])
    self_id = _parse_id(args[2]) if len(args) == 3 else None

    allowed = parents.get_allowed_parent_types(task_type)
    if not allowed:
        return f"{task_type.value} tasks cannot have a parent."
    eligible = _run(
        parents.fetch_eligible_parents(
            state.task_store, state.owner_id, task_type, tf, exclude_self_id=self_id
        )
    )
    return _format_list(state, "Eligible parents", eligible)


def cmd_rm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /rm <id> keep -> delete the task only, children move up to its parent
    /rm <id> tree -> delete the task and all its children
    """
    if not args or len(args) > 2:
        return "Usage: /rm <id> [keep|tree]"
    task = _run(task_api.get_task(state.task_store, state.owner_id, _parse_id(args[0])))
    mode = args[1].lower() if len(args) == 2 else "keep"

    if mode == "tree":
        n = _run(deletion.delete_task_tree(state.task_store, task.id))
        return f"Deleted #{task.id} with its subtree ({n} tasks)."
    if mode == "keep":
        moved = _run(deletion.delete_task_keep_children(state.task_store, task.id))
        target = f"#{task.parent_id}" if task.parent_id is not None else "top level"
        return f"Deleted #{task.id}; {moved} children moved to {target}."
    return "Usage: /rm <id> [keep|tree]"


def cmd_clear(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if [a.lower() for a in args] != ["yes"]:
        return "This deletes ALL your tasks and cannot be undone. Confirm with: /clear yes"
    n = _run(task_api.clear_all_tasks(state.task_store, state.owner_id))
    return f"Deleted {n} tasks."


def cmd_weeks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    months = int(getattr(state.settings, "week_options_months", 3))
    options = week_options(date.today(), months_ahead=months)
    return "Weeks:\n" + "\n".join(f"  {start}..{end}" for start, end in options)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show owner and storage location.")
registry.register(
    "add",
    cmd_add,
    help_text="Create a task: /add <type> <when> [p=N] [parent=ID] <name>.",
)
registry.register(
    "edit",
    cmd_edit,
    help_text="Edit a task: /edit <id> [name=..] [p=N] [type=T when=W] [parent=ID|none].",
)
registry.register("move", cmd_move, help_text="Reparent a task: /move <id> <parent_id|none>.")
registry.register("show", cmd_show, help_text="Show one task with its children progress.")
registry.register(
    "list",
    cmd_list,
    help_text="List tasks: /list [today|day|week|month|year|overdue|upcoming].",
    aliases=["ls"],
)
registry.register(
    "toggle",
    cmd_toggle,
    help_text="Toggle completion (cascades): /toggle <id> [on|off].",
    aliases=["done"],
)
registry.register("progress", cmd_progress, help_text="Children progress: /progress <id...>.")
registry.register(
    "parents", cmd_parents, help_text="Eligible parents: /parents <type> <when> [editing_id]."
)
registry.register("rm", cmd_rm, help_text="Delete: /rm <id> keep | /rm <id> tree.", aliases=["del"])
registry.register("clear", cmd_clear, help_text="Delete all tasks: /clear yes.")
registry.register("weeks", cmd_weeks, help_text="List selectable week ranges.")
