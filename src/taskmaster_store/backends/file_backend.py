# src/taskmaster_store/backends/file_backend.py

"""
File backend: reads and writes .taskmaster/tasks/tasks.json directly.

Always available; it is the last link of the fallback chain. Every mutation is a
read-modify-write of the whole document:

    detect_format -> writable(context) -> mutate raw records -> replace -> atomic write

Raw records are mutated in place, so keys we do not model survive untouched and the
document keeps its shape. Blocking I/O runs in a worker thread (asyncio.to_thread).

When tasks.json is missing, reads fall back to individual task files
(tasks/task_<n>.json or tasks/<n>.json); mutations need the main document.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from ..core import ports
from ..errors import NotFoundError, TaskStoreError, ValidationError
from ..storage import atomic_write_json, load_json
from ..tags.tag_models import is_valid_tag_name
from ..tasks.formats import (
    MASTER_CONTEXT,
    RawTask,
    TaggedDocument,
    TaskDocument,
    detect_format,
    drop_missing_ids,
    migrate_to_tagged,
    normalize,
)
from ..tasks.hierarchy import natural_key, to_task_tree
from ..tasks.lookup import find_record, qualify_subtask_id, record_children_of, record_id_of
from ..tasks.progress import select_next
from ..tasks.status_codec import encode_status
from ..tasks.task_models import now_iso

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TASK_FILE_RE = re.compile(r"^(task_)?(\d+)\.json$")

# Document keys an update may touch.
UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "details",
        "testStrategy",
        "status",
        "priority",
        "dependencies",
        "category",
        "assignee",
        "dueDate",
        "estimatedTime",
        "actualTime",
        "tags",
    }
)


def _record_key(raw_id: Any) -> Any:
    """Ids are written back as ints when they look like ints, like task-master does."""
    text = str(raw_id)
    return int(text) if text.isdigit() else text


def _last_segment_int(raw_id: Any) -> int:
    tail = str(raw_id).rsplit(".", 1)[-1]
    return int(tail) if tail.isdigit() else 0


def apply_updates(record: RawTask, updates: dict[str, Any]) -> None:
    unknown = sorted(set(updates) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")

    for key, value in updates.items():
        if key == "status":
            value = encode_status(value)
        elif key == "dependencies":
            value = [_record_key(d) for d in value or []]
        record[key] = value
    record["updated"] = now_iso()


def _strip_dependency(nodes: list[RawTask], matches: Callable[[str], bool], *, deep: bool = True) -> int:
    """
    Remove matching ids from the dependency lists of `nodes` (and, when `deep`, of
    everything below them). Returns how many lists changed.
    """
    changed = 0
    stack = list(nodes)
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        deps = node.get("dependencies")
        if isinstance(deps, list):
            kept = [d for d in deps if not matches(str(d))]
            if len(kept) != len(deps):
                node["dependencies"] = kept
                changed += 1
        if deep:
            stack.extend(record_children_of(node))
    return changed


def _strip_root_references(records: list[RawTask], root_id: str) -> int:
    # Subtask lists hold sibling-local numbers, so a bare root id is only
    # meaningful at the top level; "{root}.n" references are dropped everywhere.
    prefix = f"{root_id}."
    changed = _strip_dependency(records, lambda d: d == root_id, deep=False)
    changed += _strip_dependency(records, lambda d: d.startswith(prefix))
    return changed


def _strip_subtask_references(records: list[RawTask], parent: RawTask, raw_id: str) -> int:
    qualified = qualify_subtask_id(parent["id"], raw_id)
    local = raw_id.rsplit(".", 1)[-1]
    prefix = f"{qualified}."
    changed = _strip_dependency(records, lambda d: d == qualified or d.startswith(prefix))
    changed += _strip_dependency(parent["subtasks"], lambda d: d in (raw_id, local), deep=False)
    return changed


def find_subtask_record(
        records: list[RawTask], parent_id: str, sub_id: str
) -> tuple[RawTask, RawTask | None] | None:
    """
    Sub-id lookup over raw records. A flat document keeps "1.2" at the top level
    and reads nest it under "1", so the qualified id is tried as well.
    """
    hit = find_record(records, parent_id, sub_id)
    if hit is not None:
        return hit
    flat = _first_root(records, qualify_subtask_id(parent_id, sub_id))
    return (flat, None) if flat is not None else None


def _first_root(records: list[RawTask], wanted: str) -> RawTask | None:
    for record in records:
        if record_id_of(record) == wanted:
            return record
    return None


def _remove_identity(items: list[Any], target: Any) -> None:
    for i, item in enumerate(items):
        if item is target:
            del items[i]
            return


class FileBackend:
    name = "file"
    operations = frozenset(
        {
            ports.LIST_TASKS,
            ports.NEXT_TASK,
            ports.SET_STATUS,
            ports.SET_SUBTASK_STATUS,
            ports.ADD_TASK,
            ports.ADD_SUBTASK,
            ports.UPDATE_TASK,
            ports.UPDATE_SUBTASK,
            ports.REMOVE_TASK,
            ports.REMOVE_SUBTASK,
            ports.LIST_TAGS,
            ports.USE_TAG,
            ports.ADD_TAG,
            ports.DELETE_TAG,
        }
    )

    def __init__(self, tasks_path: Path) -> None:
        self.tasks_path = Path(tasks_path)

    async def is_available(self) -> bool:
        return True

    def invalidate(self) -> None:
        return None

    # ---- document I/O (sync, run in a thread) ----

    def _load_document(self) -> TaskDocument:
        if not self.tasks_path.exists():
            raise NotFoundError(f"Task document not found: {self.tasks_path}")
        return detect_format(load_json(self.tasks_path))

    def _save_document(self, doc: TaskDocument) -> None:
        atomic_write_json(self.tasks_path, doc.to_json())

    def _read_records(self, context: str) -> list[RawTask]:
        if self.tasks_path.exists():
            return normalize(load_json(self.tasks_path), context).tasks
        return self._read_task_files()

    def _read_task_files(self) -> list[RawTask]:
        folder = self.tasks_path.parent
        if not folder.is_dir():
            logger.info("No task document at %s", self.tasks_path)
            return []

        files = [p for p in folder.iterdir() if _TASK_FILE_RE.match(p.name)]
        files.sort(key=lambda p: natural_key(p.name))

        records: list[RawTask] = []
        for path in files:
            try:
                data = load_json(path)
            except TaskStoreError as e:
                logger.warning("Skipping task file %s: %s", path.name, e)
                continue
            if isinstance(data, dict):
                records.append(data)
        logger.debug("Read %d individual task files from %s", len(records), folder)
        return drop_missing_ids(records)

    def _mutate_sync(self, context: str, fn: Callable[[list[RawTask]], T]) -> T:
        doc = self._load_document()
        records, resolved = doc.writable(context)
        result = fn(records)
        doc.replace(resolved, records)
        self._save_document(doc)
        return result

    async def _mutate(self, context: str, fn: Callable[[list[RawTask]], T]) -> T:
        return await asyncio.to_thread(self._mutate_sync, context, fn)

    # ---- reads ----

    async def list_tasks(self, *, context: str) -> list[RawTask]:
        return await asyncio.to_thread(self._read_records, context)

    async def next_task(self, *, context: str) -> str | None:
        records = await self.list_tasks(context=context)
        task = select_next(to_task_tree(records))
        return task.id if task is not None else None

    # ---- status ----

    async def set_status(self, task_id: str, status: str, *, context: str) -> None:
        def change(records: list[RawTask]) -> None:
            hit = find_record(records, task_id)
            if hit is None:
                raise NotFoundError(f"Task {task_id} not found")
            self._stamp_status(*hit, status)

        await self._mutate(context, change)
        logger.info("Task %s -> %s (file)", task_id, status)

    async def set_subtask_status(self, parent_id: str, sub_id: str, status: str, *, context: str) -> None:
        def change(records: list[RawTask]) -> None:
            hit = find_subtask_record(records, parent_id, sub_id)
            if hit is None:
                raise NotFoundError(f"Subtask {qualify_subtask_id(parent_id, sub_id)} not found")
            self._stamp_status(*hit, status)

        await self._mutate(context, change)
        logger.info("Subtask %s.%s -> %s (file)", parent_id, sub_id, status)

    @staticmethod
    def _stamp_status(record: RawTask, parent: RawTask | None, status: str) -> None:
        ts = now_iso()
        record["status"] = encode_status(status)
        record["updated"] = ts
        if parent is not None:
            parent["updated"] = ts

    # ---- create ----

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
    ) -> str | None:
        def create(records: list[RawTask]) -> str:
            for dep in dependencies:
                if find_record(records, dep) is None:
                    raise ValidationError(f"Dependency {dep} does not exist")

            root_ids = [rid for rid in map(record_id_of, records) if rid is not None]
            next_id = max((_last_segment_int(rid) for rid in root_ids), default=0) + 1
            ts = now_iso()
            record: RawTask = {
                "id": next_id,
                "title": title,
                "description": description,
                "status": encode_status("todo"),
                "priority": priority,
                "dependencies": [_record_key(d) for d in dependencies],
                "subtasks": [],
                "created": ts,
                "updated": ts,
            }
            if details:
                record["details"] = details
            if test_strategy:
                record["testStrategy"] = test_strategy
            records.append(record)
            return str(next_id)

        new_id = await self._mutate(context, create)
        logger.info("Task %s added (file, context=%s)", new_id, context)
        return new_id

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
    ) -> str | None:
        def create(records: list[RawTask]) -> str:
            hit = find_record(records, parent_id)
            if hit is None:
                raise NotFoundError(f"Parent task {parent_id} not found")
            parent, _ = hit
            if not isinstance(parent.get("subtasks"), list):
                parent["subtasks"] = []
            siblings: list[RawTask] = parent["subtasks"]

            parent_key = str(parent["id"])
            sibling_ids = [record_id_of(s) for s in siblings]
            number = max((_last_segment_int(s) for s in sibling_ids if s is not None), default=0) + 1
            dotted = any(s is not None and "." in s for s in sibling_ids)
            full_id = f"{parent_key}.{number}"

            ts = now_iso()
            record: RawTask = {
                "id": full_id if dotted else number,
                "title": title,
                "description": description,
                "status": encode_status(status),
                "dependencies": [_record_key(d) for d in dependencies],
                "created": ts,
                "updated": ts,
            }
            if priority:
                record["priority"] = priority
            if details:
                record["details"] = details
            siblings.append(record)
            parent["updated"] = ts
            return full_id

        new_id = await self._mutate(context, create)
        logger.info("Subtask %s added (file, context=%s)", new_id, context)
        return new_id

    # ---- update ----

    async def update_task(self, task_id: str, updates: dict[str, Any], *, context: str) -> None:
        def change(records: list[RawTask]) -> None:
            hit = find_record(records, task_id)
            if hit is None:
                raise NotFoundError(f"Task {task_id} not found")
            apply_updates(hit[0], updates)

        await self._mutate(context, change)

    async def update_subtask(
            self,
            parent_id: str,
            sub_id: str,
            updates: dict[str, Any],
            *,
            context: str,
    ) -> None:
        def change(records: list[RawTask]) -> None:
            hit = find_subtask_record(records, parent_id, sub_id)
            if hit is None:
                raise NotFoundError(f"Subtask {qualify_subtask_id(parent_id, sub_id)} not found")
            record, parent = hit
            apply_updates(record, updates)
            if parent is not None:
                parent["updated"] = record["updated"]

        await self._mutate(context, change)

    # ---- delete ----

    async def remove_task(self, task_id: str, *, context: str) -> None:
        def drop(records: list[RawTask]) -> None:
            hit = find_record(records, task_id)
            if hit is None:
                raise NotFoundError(f"Task {task_id} not found")
            record, parent = hit
            removed_id = str(record["id"])
            if parent is None:
                _remove_identity(records, record)
                changed = _strip_root_references(records, removed_id)
            else:
                _remove_identity(parent["subtasks"], record)
                parent["updated"] = now_iso()
                changed = _strip_subtask_references(records, parent, removed_id)
            logger.debug("Removed %s; cleaned %d dependency lists", removed_id, changed)

        await self._mutate(context, drop)
        logger.info("Task %s removed (file, context=%s)", task_id, context)

    async def remove_subtask(self, parent_id: str, sub_id: str, *, context: str) -> None:
        def drop(records: list[RawTask]) -> None:
            hit = find_subtask_record(records, parent_id, sub_id)
            if hit is None:
                raise NotFoundError(f"Subtask {qualify_subtask_id(parent_id, sub_id)} not found")
            record, parent = hit
            raw_id = str(record["id"])
            if parent is None:
                # flat document: the subtask is a top-level "{parent}.{n}" record
                _remove_identity(records, record)
                _strip_root_references(records, raw_id)
                return
            _remove_identity(parent["subtasks"], record)
            parent["updated"] = now_iso()
            _strip_subtask_references(records, parent, raw_id)

        await self._mutate(context, drop)
        logger.info("Subtask %s.%s removed (file, context=%s)", parent_id, sub_id, context)

    # ---- contexts ----

    async def list_tags(self) -> list[str]:
        def read() -> list[str]:
            if not self.tasks_path.exists():
                return [MASTER_CONTEXT]
            doc = self._load_document()
            return doc.context_names() if doc.is_tagged else [MASTER_CONTEXT]

        return await asyncio.to_thread(read)

    async def use_tag(self, name: str) -> None:
        names = await self.list_tags()
        if name not in names:
            raise NotFoundError(f"Context '{name}' does not exist")

    async def add_tag(self, name: str, *, description: str | None) -> None:
        if not is_valid_tag_name(name):
            raise ValidationError(f"Invalid tag name: {name!r}")

        def create() -> None:
            doc = self._load_document()
            tagged = migrate_to_tagged(doc)
            if tagged.has_context(name):
                raise ValidationError(f"Context '{name}' already exists")
            tagged.add_context(name, description)
            self._save_document(tagged)

        await asyncio.to_thread(create)
        logger.info("Context %s created (file)", name)

    async def delete_tag(self, name: str) -> None:
        if name.lower() == MASTER_CONTEXT:
            raise ValidationError("The master context cannot be deleted")

        def drop() -> None:
            doc = self._load_document()
            if not isinstance(doc, TaggedDocument) or doc.context_entry(name) is None:
                raise NotFoundError(f"Context '{name}' does not exist")
            doc.remove_context(name)
            self._save_document(doc)

        await asyncio.to_thread(drop)
        logger.info("Context %s deleted (file)", name)
