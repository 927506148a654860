# src/taskmaster_store/tasks/status_codec.py

"""
Status codec: external status spellings <-> canonical TaskStatus.

decode() collapses several spellings into one canonical value, so
encode(decode(x)) is not always x ("todo" comes back as "pending"). Keep it that way:
the document writer expects the task-master spellings.
"""

from __future__ import annotations

from typing import Final

from .task_models import TaskStatus

_DECODE: Final[dict[str, TaskStatus]] = {
    "pending": TaskStatus.TODO,
    "todo": TaskStatus.TODO,
    "in-progress": TaskStatus.IN_PROGRESS,
    "in_progress": TaskStatus.IN_PROGRESS,
    "completed": TaskStatus.COMPLETED,
    "done": TaskStatus.COMPLETED,
    "blocked": TaskStatus.BLOCKED,
    "deferred": TaskStatus.DEFERRED,
    "cancelled": TaskStatus.CANCELLED,
    "review": TaskStatus.REVIEW,
}

_ENCODE: Final[dict[TaskStatus, str]] = {
    TaskStatus.TODO: "pending",
    TaskStatus.IN_PROGRESS: "in-progress",
    TaskStatus.COMPLETED: "done",
}


def decode_status(raw: object) -> TaskStatus:
    """Map any external spelling to the canonical status; unknown values become TODO."""
    if isinstance(raw, TaskStatus):
        return raw
    if not isinstance(raw, str):
        return TaskStatus.TODO
    return _DECODE.get(raw, TaskStatus.TODO)


def encode_status(status: TaskStatus | str) -> str:
    """Map a status to the spelling written back to the document / sent to backends."""
    if not isinstance(status, TaskStatus):
        try:
            status = TaskStatus(status)
        except ValueError:
            status = decode_status(status)
    return _ENCODE.get(status, status.value)


def is_known_status(raw: object) -> bool:
    # Every canonical value is also a decode key.
    return isinstance(raw, str) and raw in _DECODE
