# src/taskmaster_store/tasks/lookup.py

"""
Id resolution shared by reads (Task trees) and writes (raw document records).

Both node kinds are handled through two accessors, so the rules live in one place:

- sub-id form  (id, sub):  root by id, then its children in three passes: exact
                           sub, then "{id}.{sub}", then the part after the last dot
- dotted form  ("3.2"):    root "3", its children by "3.2" or "2", then anything
                           deeper under root "3" by the full id
- plain form   ("7"):      roots, then a depth-first search of all subtasks

A root whose id equals the requested id always wins. Comparison is always on the
string form, so "1" never matches "10" or "1.1".
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Any, TypeVar

from .formats import RawTask
from .task_models import Task

N = TypeVar("N")

IdOf = Callable[[Any], str | None]
ChildrenOf = Callable[[Any], Sequence[Any]]


def task_id_of(task: Task) -> str:
    return task.id


def task_children_of(task: Task) -> list[Task]:
    return task.subtasks


def record_id_of(record: RawTask) -> str | None:
    if not isinstance(record, dict) or record.get("id") is None:
        return None
    return str(record["id"])


def record_children_of(record: RawTask) -> list[RawTask]:
    subtasks = record.get("subtasks") if isinstance(record, dict) else None
    return subtasks if isinstance(subtasks, list) else []


def qualify_subtask_id(parent_id: str | int, sub_id: str | int) -> str:
    """("3", "2") -> "3.2"; an already dotted sub id is kept as is."""
    sub = str(sub_id)
    return sub if "." in sub else f"{parent_id}.{sub}"


def _first(nodes: Iterable[N], id_of: IdOf, wanted: str) -> N | None:
    for node in nodes:
        if id_of(node) == wanted:
            return node
    return None


def _search_below(root: N, id_of: IdOf, children_of: ChildrenOf, wanted: str) -> tuple[N, N] | None:
    """Depth-first search under `root`; returns (node, direct parent)."""
    stack: list[N] = [root]
    while stack:
        parent = stack.pop()
        children = list(children_of(parent))
        for child in children:
            if id_of(child) == wanted:
                return child, parent
        stack.extend(reversed(children))
    return None


def find_node(
    roots: Sequence[N],
    task_id: str | int,
    sub_id: str | int | None = None,
    *,
    id_of: IdOf,
    children_of: ChildrenOf,
) -> tuple[N, N | None] | None:
    """
    Locate a node by id. Returns (node, parent) where parent is None for roots,
    or None when nothing matches.
    """
    wanted = str(task_id)

    if sub_id is not None:
        root = _first(roots, id_of, wanted)
        if root is None:
            return None
        sub = str(sub_id)
        children = [c for c in children_of(root) if id_of(c) is not None]
        # exact sub id, then "{id}.{sub}", then the part after the last dot
        for matches in (
            lambda cid: cid == sub,
            lambda cid: cid == f"{wanted}.{sub}",
            lambda cid: cid.rsplit(".", 1)[-1] == sub,
        ):
            for child in children:
                if matches(id_of(child)):
                    return child, root
        return None

    root = _first(roots, id_of, wanted)
    if root is not None:
        return root, None

    if "." in wanted:
        main_id, rest = wanted.split(".", 1)
        main = _first(roots, id_of, main_id)
        if main is None:
            return None
        for child in children_of(main):
            if id_of(child) in (wanted, rest):
                return child, main
        return _search_below(main, id_of, children_of, wanted)

    for root in roots:
        hit = _search_below(root, id_of, children_of, wanted)
        if hit is not None:
            return hit
    return None


def find_task(
    tasks: Sequence[Task], task_id: str | int, sub_id: str | int | None = None
) -> tuple[Task, Task | None] | None:
    return find_node(tasks, task_id, sub_id, id_of=task_id_of, children_of=task_children_of)


def find_record(
    records: Sequence[RawTask], task_id: str | int, sub_id: str | int | None = None
) -> tuple[RawTask, RawTask | None] | None:
    return find_node(records, task_id, sub_id, id_of=record_id_of, children_of=record_children_of)
