# src/taskmaster_store/tasks/progress.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .task_models import Task, TaskStatus, priority_rank

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProgressStats:
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    todo: int = 0
    blocked: int = 0

    def count(self, task: Task) -> None:
        self.total += 1
        if task.status is TaskStatus.COMPLETED:
            self.completed += 1
        elif task.status is TaskStatus.IN_PROGRESS:
            self.in_progress += 1
        elif task.status is TaskStatus.TODO:
            self.todo += 1
        elif task.status is TaskStatus.BLOCKED:
            self.blocked += 1

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "inProgress": self.in_progress,
            "todo": self.todo,
            "blocked": self.blocked,
        }


@dataclass(slots=True)
class TaskProgress:
    """
    Progress in two views: root tasks only, and every item in the tree.

    The flat fields (total, completed, ...) are the older single-view shape and
    always mirror all_items.
    """

    main_tasks: ProgressStats = field(default_factory=ProgressStats)
    all_items: ProgressStats = field(default_factory=ProgressStats)

    @property
    def total(self) -> int:
        return self.all_items.total

    @property
    def completed(self) -> int:
        return self.all_items.completed

    @property
    def in_progress(self) -> int:
        return self.all_items.in_progress

    @property
    def todo(self) -> int:
        return self.all_items.todo

    @property
    def blocked(self) -> int:
        return self.all_items.blocked

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.all_items.to_dict())
        data["mainTasks"] = self.main_tasks.to_dict()
        data["allItems"] = self.all_items.to_dict()
        return data


def compute_progress(tasks: Iterable[Task]) -> TaskProgress:
    progress = TaskProgress()
    stack: list[Task] = []
    for task in tasks:
        progress.main_tasks.count(task)
        stack.append(task)

    while stack:
        node = stack.pop()
        progress.all_items.count(node)
        stack.extend(node.subtasks)

    return progress


def select_next(tasks: list[Task]) -> Task | None:
    """
    Next actionable root task: not completed, every dependency completed,
    highest priority first (ties keep document order).
    """
    completed = {t.id for t in tasks if t.status is TaskStatus.COMPLETED}

    candidates = [
        t
        for t in tasks
        if t.status is not TaskStatus.COMPLETED and all(dep in completed for dep in t.dependencies)
    ]
    if not candidates:
        logger.debug("No actionable task among %d roots", len(tasks))
        return None

    candidates.sort(key=lambda t: priority_rank(t.priority), reverse=True)
    return candidates[0]
