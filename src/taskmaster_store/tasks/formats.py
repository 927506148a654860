# src/taskmaster_store/tasks/formats.py

"""
Task document shapes.

A tasks.json file comes in one of four shapes:

1. direct array    [task, task, ...]
2. direct tags     {"master": {"tasks": [...], "metadata": {...}}, "feature-x": {...}}
3. nested tags     {"tags": {"master": {"tasks": [...], "metadata": {...}}}}
4. legacy          {"tasks": [...], ...}

detect_format() is the single place that decides which one we are looking at. Each
variant knows how to pick a context's task list out of the raw document and how to
put a (mutated) list back, so a write never changes the document's shape.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, ClassVar

from ..errors import FormatError
from .status_codec import decode_status
from .task_models import Task, TaskPriority, now_iso

logger = logging.getLogger(__name__)

MASTER_CONTEXT = "master"

RawTask = dict[str, Any]


@dataclass(slots=True)
class ExtractedTasks:
    """What the normalizer hands to the hierarchy stage."""

    tasks: list[RawTask]
    is_tagged: bool
    context: str


class TaskDocument(ABC):
    """Base for the four document variants."""

    kind: ClassVar[str] = ""
    is_tagged: ClassVar[bool] = False

    def __init__(self, raw: Any) -> None:
        self.raw = raw

    def context_names(self) -> list[str]:
        return [MASTER_CONTEXT]

    @abstractmethod
    def select(self, context: str) -> tuple[list[RawTask], str]:
        """Return the live (unfiltered) task list for `context` and the context used."""

    def writable(self, context: str) -> tuple[list[RawTask], str]:
        """Like select(), but never redirects an existing context to master."""
        return self.select(context)

    @abstractmethod
    def replace(self, context: str, tasks: list[RawTask]) -> None:
        """Put a (mutated) task list back in place of `context`."""

    def to_json(self) -> Any:
        return self.raw


class DirectArrayDocument(TaskDocument):
    kind = "direct-array"

    def select(self, context: str) -> tuple[list[RawTask], str]:
        return self.raw, MASTER_CONTEXT

    def replace(self, context: str, tasks: list[RawTask]) -> None:
        if tasks is not self.raw:
            self.raw[:] = tasks


class LegacyDocument(TaskDocument):
    kind = "legacy"

    def select(self, context: str) -> tuple[list[RawTask], str]:
        return self.raw["tasks"], MASTER_CONTEXT

    def replace(self, context: str, tasks: list[RawTask]) -> None:
        self.raw["tasks"] = tasks


class TaggedDocument(TaskDocument):
    is_tagged = True

    @abstractmethod
    def _contexts(self) -> dict[str, Any]:
        """The name -> entry mapping holding every context."""

    def context_names(self) -> list[str]:
        return list(self._contexts().keys())

    def has_context(self, name: str) -> bool:
        lowered = name.lower()
        return any(key.lower() == lowered for key in self._contexts())

    def select(self, context: str) -> tuple[list[RawTask], str]:
        contexts = self._contexts()
        tasks = _tasks_of(contexts.get(context))
        if tasks:
            return tasks, context

        master = _tasks_of(contexts.get(MASTER_CONTEXT))
        if master is not None:
            if context != MASTER_CONTEXT:
                logger.debug(
                    "Context %r missing or empty, using %r (%d tasks)",
                    context,
                    MASTER_CONTEXT,
                    len(master),
                )
            return master, MASTER_CONTEXT

        logger.debug("No tasks in context %r and no %r context", context, MASTER_CONTEXT)
        return (tasks if tasks is not None else []), context

    def writable(self, context: str) -> tuple[list[RawTask], str]:
        entry = self._contexts().get(context)
        if isinstance(entry, dict):
            if not isinstance(entry.get("tasks"), list):
                entry["tasks"] = []
            return entry["tasks"], context
        return self.select(context)

    def replace(self, context: str, tasks: list[RawTask]) -> None:
        contexts = self._contexts()
        entry = contexts.get(context)
        if not isinstance(entry, dict):
            entry = {"tasks": [], "metadata": _new_metadata()}
            contexts[context] = entry
        entry["tasks"] = tasks
        metadata = entry.get("metadata")
        if isinstance(metadata, dict):
            metadata["updated"] = now_iso()

    def add_context(self, name: str, description: str | None = None) -> None:
        self._contexts()[name] = {"tasks": [], "metadata": _new_metadata(description)}

    def remove_context(self, name: str) -> None:
        del self._contexts()[name]

    def context_entry(self, name: str) -> dict[str, Any] | None:
        entry = self._contexts().get(name)
        return entry if isinstance(entry, dict) else None


class DirectTagDocument(TaggedDocument):
    kind = "direct-tag"

    def _contexts(self) -> dict[str, Any]:
        return self.raw


class NestedTagDocument(TaggedDocument):
    kind = "nested-tag"

    def _contexts(self) -> dict[str, Any]:
        return self.raw["tags"]


def _tasks_of(entry: Any) -> list[RawTask] | None:
    if isinstance(entry, dict) and isinstance(entry.get("tasks"), list):
        return entry["tasks"]
    return None


def _new_metadata(description: str | None = None) -> dict[str, Any]:
    ts = now_iso()
    meta: dict[str, Any] = {"created": ts, "updated": ts}
    if description:
        meta["description"] = description
    return meta


def _looks_direct_tagged(raw: dict[str, Any]) -> bool:
    if not raw or not all(isinstance(v, dict) for v in raw.values()):
        return False
    return any(isinstance(v.get("tasks"), list) for v in raw.values())


def detect_format(raw: Any) -> TaskDocument:
    """Pick the document variant; FormatError when nothing matches."""
    if isinstance(raw, list):
        return DirectArrayDocument(raw)
    if isinstance(raw, dict):
        if _looks_direct_tagged(raw):
            return DirectTagDocument(raw)
        if isinstance(raw.get("tags"), dict):
            return NestedTagDocument(raw)
        if isinstance(raw.get("tasks"), list):
            return LegacyDocument(raw)
    raise FormatError(
        "Unknown task document format: expected an array, tagged contexts or a 'tasks' array"
    )


def migrate_to_tagged(doc: TaskDocument) -> TaggedDocument:
    """
    Untagged document -> direct-tag document with everything under master.

    Top-level keys of a legacy document other than "tasks" are dropped, except
    "metadata", which becomes the master context's metadata.
    """
    if isinstance(doc, TaggedDocument):
        return doc

    records, _ = doc.select(MASTER_CONTEXT)
    metadata = _new_metadata("Default task context")
    if isinstance(doc.raw, dict) and isinstance(doc.raw.get("metadata"), dict):
        metadata = {**metadata, **doc.raw["metadata"]}

    logger.info("Migrating %s document to the direct-tag format (%d tasks)", doc.kind, len(records))
    return DirectTagDocument({MASTER_CONTEXT: {"tasks": records, "metadata": metadata}})


def has_id(record: Any) -> bool:
    return isinstance(record, dict) and record.get("id") is not None


def drop_missing_ids(records: Iterable[Any]) -> list[RawTask]:
    return [r for r in records if has_id(r)]


def normalize(raw: Any, context: str = MASTER_CONTEXT) -> ExtractedTasks:
    """
    Extract the raw task records of `context` from any supported document.

    Records without an id never leave this function.
    """
    doc = detect_format(raw)
    records, resolved = doc.select(context)
    tasks = drop_missing_ids(records)
    logger.debug(
        "Normalized %s document: context=%s tasks=%d (dropped %d without id)",
        doc.kind,
        resolved,
        len(tasks),
        len(records) - len(tasks),
    )
    return ExtractedTasks(tasks=tasks, is_tagged=doc.is_tagged, context=resolved)


# ---- record -> Task ----

_KNOWN_KEYS = frozenset(
    {
        "id",
        "title",
        "status",
        "priority",
        "dependencies",
        "subtasks",
        "created",
        "updated",
        "description",
        "details",
        "testStrategy",
        "category",
        "assignee",
        "dueDate",
        "estimatedTime",
        "actualTime",
        "tags",
        "parentId",
    }
)


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _dependencies(raw: Any, own_id: str) -> list[str]:
    if not isinstance(raw, list):
        return []
    out: list[str] = []
    for dep in raw:
        if dep is None:
            continue
        dep_id = str(dep)
        if dep_id == own_id or dep_id in out:
            continue
        out.append(dep_id)
    return out


def task_from_record(record: RawTask) -> Task:
    """Convert one raw record (and its nested subtasks) into a canonical Task."""
    task_id = str(record["id"])
    raw_subtasks = record.get("subtasks")
    subtasks = (
        [task_from_record(s) for s in drop_missing_ids(raw_subtasks)]
        if isinstance(raw_subtasks, list)
        else []
    )
    tags = record.get("tags")
    return Task(
        id=task_id,
        title=str(record.get("title") or ""),
        status=decode_status(record.get("status") or "pending"),
        priority=TaskPriority.parse(record.get("priority")),
        dependencies=_dependencies(record.get("dependencies"), task_id),
        subtasks=subtasks,
        created=_opt_str(record.get("created")),
        updated=_opt_str(record.get("updated")),
        description=_opt_str(record.get("description")),
        details=_opt_str(record.get("details")),
        test_strategy=_opt_str(record.get("testStrategy")),
        category=_opt_str(record.get("category")),
        assignee=_opt_str(record.get("assignee")),
        due_date=_opt_str(record.get("dueDate")),
        estimated_time=_opt_str(record.get("estimatedTime")),
        actual_time=_opt_str(record.get("actualTime")),
        tags=[str(t) for t in tags] if isinstance(tags, list) else [],
        parent_id=_opt_str(record.get("parentId")),
        extra={k: v for k, v in record.items() if k not in _KNOWN_KEYS},
    )
