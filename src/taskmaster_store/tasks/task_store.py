# src/taskmaster_store/tasks/task_store.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from ..backends.router import BackendRouter
from ..core import ports
from ..core.ports import TaskBackend
from ..errors import FormatError, NotFoundError, ValidationError
from ..storage import load_json
from ..tags.tag_manager import ContextManager, TagContext, TagInfo
from ..tags.tag_models import RESERVED_NAMES, Tag, is_valid_tag_name
from .formats import MASTER_CONTEXT
from .hierarchy import to_task_tree
from .lookup import find_task
from .progress import TaskProgress, compute_progress, select_next
from .status_codec import decode_status, encode_status, is_known_status
from .task_models import DEFAULT_PRIORITY, Task, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

# Keyword names accepted by update_task/update_subtask -> document keys.
_UPDATE_FIELDS = {
    "title": "title",
    "description": "description",
    "details": "details",
    "test_strategy": "testStrategy",
    "status": "status",
    "priority": "priority",
    "dependencies": "dependencies",
    "category": "category",
    "assignee": "assignee",
    "due_date": "dueDate",
    "estimated_time": "estimatedTime",
    "actual_time": "actualTime",
    "tags": "tags",
}


def _check_status(status: TaskStatus | str) -> str:
    if not isinstance(status, TaskStatus) and not is_known_status(status):
        raise ValidationError(f"Unknown status: {status!r}")
    return encode_status(status)


def _check_priority(priority: TaskPriority | str | None) -> TaskPriority | None:
    if priority is None:
        return None
    parsed = TaskPriority.parse(priority)
    if parsed is None:
        raise ValidationError(f"Unknown priority: {priority!r}")
    return parsed


def _id_list(ids: Iterable[str | int]) -> list[str]:
    out: list[str] = []
    for raw in ids:
        key = str(raw)
        if key not in out:
            out.append(key)
    return out


class TaskStore:
    """
    Facade over the backend chain and the context manager.

    Reads always come back as canonical Task trees (normalize -> hierarchy -> codec),
    whichever backend supplied the records. Writes go to the first backend of the chain
    that implements the operation and is reachable.

    Context: every method takes an optional `context`; None means the active one
    (state.json).
    """

    def __init__(
            self,
            settings: Any,
            *,
            backends: Sequence[TaskBackend] | None = None,
            contexts: ContextManager | None = None,
    ) -> None:
        if backends is None:
            from ..backends import default_backends

            backends = default_backends(settings)

        self.settings = settings
        self.router = BackendRouter(backends)
        self.contexts = contexts or ContextManager(settings.state_path, settings.tasks_path)
        logger.info(
            "TaskStore ready tasks=%s backends=%s",
            settings.tasks_path,
            ",".join(b.name for b in self.router.backends),
        )

    def _ctx(self, context: str | None) -> str:
        return context or self.contexts.get_current()

    def invalidate(self) -> None:
        """Forget cached backend availability (e.g. after installing task-master)."""
        self.router.invalidate()

    # ---- reads ----

    async def _load(self, context: str | None) -> list[Task]:
        records = await self.router.run(ports.LIST_TASKS, context=self._ctx(context))
        return to_task_tree(records)

    async def list_tasks(self, context: str | None = None) -> list[Task]:
        """Root tasks of the context; a corrupt document reads as empty."""
        try:
            return await self._load(context)
        except FormatError as e:
            logger.warning("Task document unreadable, treating it as empty: %s", e)
            return []

    async def resolve(
            self,
            task_id: str | int,
            sub_id: str | int | None = None,
            *,
            context: str | None = None,
    ) -> Task | None:
        """Find one task or subtask; FormatError on a corrupt document."""
        hit = find_task(await self._load(context), task_id, sub_id)
        return hit[0] if hit is not None else None

    async def get_subtasks(self, task_id: str | int, *, context: str | None = None) -> list[Task]:
        task = await self.resolve(task_id, context=context)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        return list(task.subtasks)

    async def tasks_by_status(self, status: TaskStatus | str, context: str | None = None) -> list[Task]:
        wanted = decode_status(status)
        return [t for t in await self.list_tasks(context) if t.status is wanted]

    async def tasks_by_priority(
            self, priority: TaskPriority | str, context: str | None = None
    ) -> list[Task]:
        wanted = _check_priority(priority)
        return [t for t in await self.list_tasks(context) if t.priority is wanted]

    async def tasks_by_category(self, category: str, context: str | None = None) -> list[Task]:
        return [t for t in await self.list_tasks(context) if t.category == category]

    async def get_progress(self, context: str | None = None) -> TaskProgress:
        return compute_progress(await self.list_tasks(context))

    async def get_next(self, context: str | None = None) -> Task | None:
        return select_next(await self.list_tasks(context))

    async def recommend_next(self, context: str | None = None) -> Task | None:
        """Ask the backend chain (task-master's own `next`) instead of the local rule."""
        task_id = await self.router.run(ports.NEXT_TASK, context=self._ctx(context))
        if task_id is None:
            return None
        return await self.resolve(task_id, context=context)

    # ---- status ----

    async def set_status(
            self,
            task_id: str | int,
            status: TaskStatus | str,
            *,
            context: str | None = None,
    ) -> None:
        encoded = _check_status(status)
        await self.router.run(ports.SET_STATUS, str(task_id), encoded, context=self._ctx(context))
        logger.info("Status of %s set to %s via %s", task_id, encoded, self.router.last_backend)

    async def set_subtask_status(
            self,
            parent_id: str | int,
            sub_id: str | int,
            status: TaskStatus | str,
            *,
            context: str | None = None,
    ) -> None:
        encoded = _check_status(status)
        await self.router.run(
            ports.SET_SUBTASK_STATUS,
            str(parent_id),
            str(sub_id),
            encoded,
            context=self._ctx(context),
        )
        logger.info(
            "Status of %s.%s set to %s via %s",
            parent_id,
            sub_id,
            encoded,
            self.router.last_backend,
        )

    # ---- create / update / delete ----

    async def add_task(
            self,
            title: str,
            *,
            description: str = "",
            priority: TaskPriority | str | None = None,
            dependencies: Iterable[str | int] = (),
            details: str | None = None,
            test_strategy: str | None = None,
            context: str | None = None,
    ) -> str | None:
        """Create a root task; returns its id when the backend reports one."""
        if not title or not title.strip():
            raise ValidationError("Task title is required")
        prio = _check_priority(priority) or DEFAULT_PRIORITY
        return await self.router.run(
            ports.ADD_TASK,
            title=title.strip(),
            description=description,
            priority=prio.value,
            dependencies=_id_list(dependencies),
            details=details,
            test_strategy=test_strategy,
            context=self._ctx(context),
        )

    async def add_subtask(
            self,
            parent_id: str | int,
            title: str,
            *,
            description: str = "",
            status: TaskStatus | str = TaskStatus.TODO,
            priority: TaskPriority | str | None = None,
            dependencies: Iterable[str | int] = (),
            details: str | None = None,
            context: str | None = None,
    ) -> str | None:
        if not title or not title.strip():
            raise ValidationError("Subtask title is required")
        prio = _check_priority(priority)
        return await self.router.run(
            ports.ADD_SUBTASK,
            str(parent_id),
            title=title.strip(),
            description=description,
            status=_check_status(status),
            priority=prio.value if prio is not None else None,
            dependencies=_id_list(dependencies),
            details=details,
            context=self._ctx(context),
        )

    @staticmethod
    def _document_updates(fields: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(fields) - set(_UPDATE_FIELDS))
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")
        if not fields:
            raise ValidationError("Nothing to update")

        updates: dict[str, Any] = {}
        for key, value in fields.items():
            if key == "status":
                value = _check_status(value)
            elif key == "priority":
                prio = _check_priority(value)
                value = prio.value if prio is not None else None
            elif key == "dependencies":
                value = _id_list(value or [])
            elif key == "title" and (not value or not str(value).strip()):
                raise ValidationError("Task title is required")
            updates[_UPDATE_FIELDS[key]] = value
        return updates

    async def update_task(self, task_id: str | int, *, context: str | None = None, **fields: Any) -> None:
        updates = self._document_updates(fields)
        await self.router.run(ports.UPDATE_TASK, str(task_id), updates, context=self._ctx(context))

    async def update_subtask(
            self,
            parent_id: str | int,
            sub_id: str | int,
            *,
            context: str | None = None,
            **fields: Any,
    ) -> None:
        updates = self._document_updates(fields)
        await self.router.run(
            ports.UPDATE_SUBTASK,
            str(parent_id),
            str(sub_id),
            updates,
            context=self._ctx(context),
        )

    async def remove_task(self, task_id: str | int, *, context: str | None = None) -> None:
        await self.router.run(ports.REMOVE_TASK, str(task_id), context=self._ctx(context))

    async def remove_subtask(
            self,
            parent_id: str | int,
            sub_id: str | int,
            *,
            context: str | None = None,
    ) -> None:
        await self.router.run(ports.REMOVE_SUBTASK, str(parent_id), str(sub_id), context=self._ctx(context))

    # ---- forwarded prompt-driven work ----

    async def expand_task(self, task_id: str | int, *, force: bool = False, context: str | None = None) -> None:
        await self.router.run(ports.EXPAND_TASK, str(task_id), force=force, context=self._ctx(context))

    async def update_task_with_prompt(
            self, task_id: str | int, prompt: str, *, context: str | None = None
    ) -> None:
        await self.router.run(ports.UPDATE_TASK_PROMPT, str(task_id), prompt, context=self._ctx(context))

    async def update_subtask_with_prompt(
            self, subtask_id: str, prompt: str, *, context: str | None = None
    ) -> None:
        await self.router.run(ports.UPDATE_SUBTASK_PROMPT, str(subtask_id), prompt, context=self._ctx(context))

    # ---- contexts ----

    async def list_contexts(self) -> list[str]:
        return await self.router.run(ports.LIST_TAGS)

    def current_context(self) -> str:
        return self.contexts.get_current()

    async def switch_context(self, name: str) -> None:
        if not is_valid_tag_name(name):
            raise ValidationError(f"Invalid tag name: {name!r}")
        await self.router.run(ports.USE_TAG, name)
        self.contexts.set_current(name)

    async def create_context(self, name: str, description: str | None = None) -> None:
        if not is_valid_tag_name(name):
            raise ValidationError(f"Invalid tag name: {name!r}")
        if name.lower() in RESERVED_NAMES:
            raise ValidationError(f"Tag name '{name}' is reserved for the master context")

        was_tagged = self.contexts.is_tagged_format()
        await self.router.run(ports.ADD_TAG, name, description=description)

        if not was_tagged and self.contexts.is_tagged_format():
            self.contexts.mark_migration_completed()
        logger.info("Context %s created via %s", name, self.router.last_backend)

    async def delete_context(self, name: str) -> None:
        if name.lower() == MASTER_CONTEXT:
            raise ValidationError("The master context cannot be deleted")
        if name == self.contexts.get_current():
            raise ValidationError(f"Context '{name}' is active; switch to another one first")
        await self.router.run(ports.DELETE_TAG, name)
        logger.info("Context %s deleted via %s", name, self.router.last_backend)

    def context_info(self, name: str | None = None) -> TagInfo | None:
        return self.contexts.get_info(name or self.contexts.get_current())

    def all_context_info(self) -> list[TagInfo]:
        return self.contexts.get_all_info()

    def context_tags(self) -> list[Tag]:
        return self.contexts.get_tags()

    def tag_context(self) -> TagContext:
        return self.contexts.get_context()

    # ---- project config ----

    async def get_config(self) -> dict[str, Any]:
        """.taskmaster/config.json as a dict ({} when the project has none)."""
        path = self.settings.config_path
        if not path.exists():
            return {}
        data = await asyncio.to_thread(load_json, path)
        if not isinstance(data, dict):
            raise FormatError(f"{path} must contain a JSON object")
        return data

