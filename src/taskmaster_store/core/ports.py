# src/taskmaster_store/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engine.

The TaskStore and the router depend on the TaskBackend Protocol instead of the
concrete backends. This keeps the fallback chain a plain list and makes testing easy
(tests/fakes.py has an in-memory backend).

Every operation takes the context (tag) it applies to. Statuses arrive already
encoded in the document's spelling ("pending", "done", ...).
"""

from typing import Any, Protocol

RawTask = dict[str, Any]

LIST_TASKS = "list_tasks"
NEXT_TASK = "next_task"
SET_STATUS = "set_status"
SET_SUBTASK_STATUS = "set_subtask_status"
ADD_TASK = "add_task"
ADD_SUBTASK = "add_subtask"
UPDATE_TASK = "update_task"
UPDATE_SUBTASK = "update_subtask"
UPDATE_TASK_PROMPT = "update_task_prompt"
UPDATE_SUBTASK_PROMPT = "update_subtask_prompt"
REMOVE_TASK = "remove_task"
REMOVE_SUBTASK = "remove_subtask"
EXPAND_TASK = "expand_task"
LIST_TAGS = "list_tags"
USE_TAG = "use_tag"
ADD_TAG = "add_tag"
DELETE_TAG = "delete_tag"


class TaskBackend(Protocol):
    """One way of reaching the task database (protocol server, command line tool, file)."""

    name: str
    operations: frozenset[str]

    async def is_available(self) -> bool: ...

    def invalidate(self) -> None:
        """Forget any cached availability so the next call probes again."""
        ...

    # ---- reads ----
    async def list_tasks(self, *, context: str) -> list[RawTask]: ...
    async def next_task(self, *, context: str) -> str | None: ...
    async def list_tags(self) -> list[str]: ...

    # ---- status ----
    async def set_status(self, task_id: str, status: str, *, context: str) -> None: ...
    async def set_subtask_status(
            self,
            parent_id: str,
            sub_id: str,
            status: str,
            *,
            context: str,
    ) -> None: ...

    # ---- create / update / delete ----
    async def add_task(
            self,
            *,
            title: str,
            description: str,
            priority: str,
            dependencies: list[str],
            details: str | None,
            test_strategy: str | None,
            context: str,
    ) -> str | None: ...

    async def add_subtask(
            self,
            parent_id: str,
            *,
            title: str,
            description: str,
            status: str,
            priority: str | None,
            dependencies: list[str],
            details: str | None,
            context: str,
    ) -> str | None: ...

    async def update_task(self, task_id: str, updates: dict[str, Any], *, context: str) -> None: ...
    async def update_subtask(
            self,
            parent_id: str,
            sub_id: str,
            updates: dict[str, Any],
            *,
            context: str,
    ) -> None: ...
    async def remove_task(self, task_id: str, *, context: str) -> None: ...
    async def remove_subtask(self, parent_id: str, sub_id: str, *, context: str) -> None: ...

    # ---- forwarded prompt-driven work ----
    async def update_task_prompt(self, task_id: str, prompt: str, *, context: str) -> None: ...
    async def update_subtask_prompt(self, subtask_id: str, prompt: str, *, context: str) -> None: ...
    async def expand_task(self, task_id: str, *, force: bool, context: str) -> None: ...

    # ---- contexts ----
    async def use_tag(self, name: str) -> None: ...
    async def add_tag(self, name: str, *, description: str | None) -> None: ...
    async def delete_tag(self, name: str) -> None: ...
