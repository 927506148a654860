# src/taskmaster_store/tasks/hierarchy.py

"""
Hierarchy builder: flat lists with dotted ids ("3", "3.2", "3.2.1") -> task trees.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from .formats import RawTask, task_from_record
from .task_models import Task

logger = logging.getLogger(__name__)

_CHUNK_RE = re.compile(r"(\d+)")


def nesting_level(task_id: str) -> int:
    """"1" -> 0, "1.2" -> 1, "1.2.3" -> 2."""
    return str(task_id).count(".")


def parent_id_of(task_id: str) -> str | None:
    """Text before the last dot, or None for a root id."""
    task_id = str(task_id)
    if "." not in task_id:
        return None
    return task_id.rsplit(".", 1)[0]


def natural_key(task_id: str) -> tuple[tuple[int, int | str], ...]:
    """Numeric-aware sort key: "2" < "10", "1.2" < "1.10"."""
    parts = _CHUNK_RE.split(str(task_id))
    return tuple((0, int(p)) if p.isdigit() else (1, p) for p in parts if p)


def build_hierarchy(tasks: list[Task]) -> list[Task]:
    """
    Attach dotted-id tasks to their parents and return the roots.

    - any task already carrying subtasks -> the list is pre-structured, returned as is
    - no dotted ids -> already flat and root-level, returned as is
    - a dotted id whose parent is missing becomes a root
    """
    if any(t.subtasks for t in tasks):
        logger.debug("Tasks already carry subtask arrays; skipping hierarchy build.")
        return tasks

    if not any("." in t.id for t in tasks):
        return tasks

    index: dict[str, Task] = {}
    for task in tasks:
        # First occurrence wins on duplicated ids.
        index.setdefault(task.id, task)

    ordered = sorted(index, key=lambda tid: (nesting_level(tid), natural_key(tid)))

    roots: list[Task] = []
    for task_id in ordered:
        task = index[task_id]
        parent_id = parent_id_of(task_id)
        if parent_id is None:
            roots.append(task)
            continue

        parent = index.get(parent_id)
        if parent is None:
            logger.info("Parent %s not found for task %s; treating it as a root.", parent_id, task_id)
            roots.append(task)
            continue

        parent.subtasks.append(task)
        task.parent_id = parent_id

    logger.debug("Built hierarchy: %d tasks -> %d roots", len(index), len(roots))
    return roots


def to_task_tree(records: Iterable[RawTask]) -> list[Task]:
    """Raw records (already id-filtered) -> canonical task tree."""
    return build_hierarchy([task_from_record(r) for r in records])
