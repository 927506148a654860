# src/taskmaster_store/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..errors import TaskStoreError
from ..tasks.progress import ProgressStats
from ..tasks.task_models import Task
from ..tasks.task_store import TaskStore

CommandHandler = Callable[[TaskStore, list[str]], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Bad command line usage; the message is shown to the user."""


class CommandRegistry:
    """Simple subcommand registry (help, list, next, ...)."""

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

    async def handle(self, store: TaskStore, argv: list[str]) -> tuple[int, str]:
        """
        Run `argv` (command name + args).
        Returns (exit code, text to print).
        """
        if not argv:
            return 2, self.build_help()

        name = argv[0].lower()
        args = argv[1:]

        handler = self._handlers.get(name)
        if not handler:
            return 2, f"Unknown command: {name}. Use `help` to list available commands."

        try:
            return 0, await handler(store, args)
        except CommandError as e:
            return 2, str(e)
        except TaskStoreError as e:
            logger.debug("Command %s failed", name, exc_info=True)
            return 1, f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  {name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _render_tree(tasks: list[Task]) -> str:
    lines: list[str] = []
    stack: list[tuple[Task, int]] = [(t, 0) for t in reversed(tasks)]
    while stack:
        task, depth = stack.pop()
        prio = f" ({task.priority.value})" if task.priority is not None else ""
        lines.append(f"{'  ' * depth}{task.id} [{task.status.value}] {task.title}{prio}")
        stack.extend((s, depth + 1) for s in reversed(task.subtasks))
    return "\n".join(lines)


def _render_task(task: Task) -> str:
    lines = [f"{task.id}: {task.title}", f"  status: {task.status.value}"]
    if task.priority is not None:
        lines.append(f"  priority: {task.priority.value}")
    if task.dependencies:
        lines.append(f"  depends on: {', '.join(task.dependencies)}")
    if task.description:
        lines.append(f"  description: {task.description}")
    if task.details:
        lines.append(f"  details: {task.details}")
    if task.test_strategy:
        lines.append(f"  test strategy: {task.test_strategy}")
    if task.subtasks:
        lines.append("  subtasks:")
        lines.extend(f"    {s.id} [{s.status.value}] {s.title}" for s in task.subtasks)
    return "\n".join(lines)


def _render_stats(label: str, stats: ProgressStats) -> str:
    pct = (stats.completed * 100 // stats.total) if stats.total else 0
    return (
        f"  {label}: {stats.completed}/{stats.total} done ({pct}%), "
        f"{stats.in_progress} in progress, {stats.todo} todo, {stats.blocked} blocked"
    )


async def cmd_help(store: TaskStore, args: list[str]) -> str:
    return registry.build_help()


async def cmd_list(store: TaskStore, args: list[str]) -> str:
    """
    list            -> tasks of the active context
    list <context>  -> tasks of another context
    """
    context = args[0] if args else None
    tasks = await store.list_tasks(context)
    if not tasks:
        return "No tasks."
    return _render_tree(tasks)


async def cmd_show(store: TaskStore, args: list[str]) -> str:
    if not args:
        raise CommandError("Usage: show <id> [subtask-id]")
    task = await store.resolve(args[0], args[1] if len(args) > 1 else None)
    if task is None:
        return f"Task {' '.join(args[:2])} not found."
    return _render_task(task)


async def cmd_next(store: TaskStore, args: list[str]) -> str:
    task = await store.get_next()
    if task is None:
        return "Nothing to do: every task is done or blocked by dependencies."
    return _render_task(task)


async def cmd_progress(store: TaskStore, args: list[str]) -> str:
    progress = await store.get_progress()
    return "\n".join(
        [
            f"Progress ({store.current_context()}):",
            _render_stats("main tasks", progress.main_tasks),
            _render_stats("all items", progress.all_items),
        ]
    )


async def cmd_status(store: TaskStore, args: list[str]) -> str:
    """
    status <id> <status>           -> e.g. status 3 done, status 3.2 in-progress
    status <id> <sub-id> <status>  -> subtask by parent + sub id
    """
    if len(args) == 2:
        await store.set_status(args[0], args[1])
        return f"Task {args[0]} -> {args[1]}"
    if len(args) == 3:
        await store.set_subtask_status(args[0], args[1], args[2])
        return f"Subtask {args[0]}.{args[1]} -> {args[2]}"
    raise CommandError("Usage: status <id> [subtask-id] <status>")


async def cmd_tags(store: TaskStore, args: list[str]) -> str:
    current = store.current_context()
    names = await store.list_contexts()
    lines = ["Contexts:"]
    for name in names:
        info = store.context_info(name)
        count = f" ({info.task_count} tasks)" if info is not None else ""
        marker = "*" if name == current else " "
        lines.append(f" {marker} {name}{count}")
    return "\n".join(lines)


async def cmd_use_tag(store: TaskStore, args: list[str]) -> str:
    if len(args) != 1:
        raise CommandError("Usage: use-tag <name>")
    await store.switch_context(args[0])
    return f"Active context: {args[0]}"


async def cmd_add_tag(store: TaskStore, args: list[str]) -> str:
    if not args:
        raise CommandError("Usage: add-tag <name> [description...]")
    description = " ".join(args[1:]) or None
    await store.create_context(args[0], description)
    return f"Context {args[0]} created."


async def cmd_delete_tag(store: TaskStore, args: list[str]) -> str:
    if len(args) != 1:
        raise CommandError("Usage: delete-tag <name>")
    await store.delete_context(args[0])
    return f"Context {args[0]} deleted."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="List tasks: list [context].", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show one task: show <id> [subtask-id].")
registry.register("next", cmd_next, help_text="Show the next actionable task.")
registry.register("progress", cmd_progress, help_text="Show progress for the active context.")
registry.register("status", cmd_status, help_text="Set status: status <id> [subtask-id] <status>.")
registry.register("tags", cmd_tags, help_text="List contexts (* marks the active one).")
registry.register("use-tag", cmd_use_tag, help_text="Switch the active context: use-tag <name>.")
registry.register("add-tag", cmd_add_tag, help_text="Create a context: add-tag <name> [description].")
registry.register("delete-tag", cmd_delete_tag, help_text="Delete a context: delete-tag <name>.")
