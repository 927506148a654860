# src/taskmaster_store/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    """
    Canonical task status.

    The document may spell these differently ("pending", "done", "in_progress");
    see status_codec for the mapping in both directions.
    """

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"
    REVIEW = "review"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, raw: object) -> TaskPriority | None:
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str) or not raw.strip():
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


_PRIORITY_RANK = {
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 3,
    TaskPriority.CRITICAL: 4,
}

DEFAULT_PRIORITY = TaskPriority.MEDIUM


def priority_rank(priority: TaskPriority | None) -> int:
    """Sort weight for next-task selection; an unset priority weighs 0."""
    return priority.rank if priority is not None else 0


def now_iso() -> str:
    """UTC timestamp in the document's format (2024-05-01T12:00:00.000Z)."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(slots=True)
class Task:
    id: str
    title: str
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority | None = None

    dependencies: list[str] = field(default_factory=list)
    subtasks: list[Task] = field(default_factory=list)

    created: str | None = None
    updated: str | None = None

    description: str | None = None
    details: str | None = None
    test_strategy: str | None = None
    category: str | None = None
    assignee: str | None = None
    due_date: str | None = None
    estimated_time: str | None = None
    actual_time: str | None = None
    tags: list[str] = field(default_factory=list)

    parent_id: str | None = None

    # Raw keys we do not model, kept so nothing is lost on the way through.
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def nesting_level(self) -> int:
        return self.id.count(".")

    def walk(self) -> list[Task]:
        """This task followed by every nested subtask, parents before children."""
        out: list[Task] = []
        stack: list[Task] = [self]
        while stack:
            node = stack.pop()
            out.append(node)
            stack.extend(reversed(node.subtasks))
        return out

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view using the document's field names."""
        data: dict[str, Any] = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "title": self.title,
                "status": self.status.value,
                "priority": self.priority.value if self.priority is not None else None,
                "dependencies": list(self.dependencies),
                "subtasks": [s.to_dict() for s in self.subtasks],
            }
        )
        optional = {
            "created": self.created,
            "updated": self.updated,
            "description": self.description,
            "details": self.details,
            "testStrategy": self.test_strategy,
            "category": self.category,
            "assignee": self.assignee,
            "dueDate": self.due_date,
            "estimatedTime": self.estimated_time,
            "actualTime": self.actual_time,
            "parentId": self.parent_id,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.tags:
            data["tags"] = list(self.tags)
        return data
