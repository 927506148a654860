# tests/test_hierarchy.py

from __future__ import annotations

from taskmaster_store.tasks.hierarchy import (
    build_hierarchy,
    natural_key,
    nesting_level,
    parent_id_of,
)
from taskmaster_store.tasks.task_models import Task


def flat(*ids: str) -> list[Task]:
    return [Task(id=i, title=f"task {i}") for i in ids]


def test_dotted_ids_become_nested() -> None:
    roots = build_hierarchy(flat("1.2", "2", "1.1.1", "1", "1.1"))

    assert [t.id for t in roots] == ["1", "2"]
    one = roots[0]
    assert [s.id for s in one.subtasks] == ["1.1", "1.2"]
    assert [s.id for s in one.subtasks[0].subtasks] == ["1.1.1"]
    assert one.subtasks[0].subtasks[0].parent_id == "1.1"
    assert one.subtasks[1].parent_id == "1"


def test_children_sort_numerically() -> None:
    roots = build_hierarchy(flat("1", "1.10", "1.2", "1.9"))
    assert [s.id for s in roots[0].subtasks] == ["1.2", "1.9", "1.10"]


def test_orphan_becomes_root() -> None:
    roots = build_hierarchy(flat("1", "4.2"))
    assert [t.id for t in roots] == ["1", "4.2"]
    assert roots[1].parent_id is None


def test_flat_list_is_returned_as_is() -> None:
    tasks = flat("3", "1", "2")
    assert build_hierarchy(tasks) is tasks


def test_prestructured_list_is_left_alone() -> None:
    parent = Task(id="1", title="p", subtasks=[Task(id="1", title="c")])
    tasks = [parent, Task(id="2.1", title="looks dotted")]
    roots = build_hierarchy(tasks)
    assert roots is tasks
    assert [t.id for t in roots] == ["1", "2.1"]


def test_building_twice_changes_nothing() -> None:
    roots = build_hierarchy(flat("1", "1.1", "1.2", "2", "2.1"))
    before = [t.to_dict() for t in roots]
    again = build_hierarchy(roots)
    assert [t.to_dict() for t in again] == before


def test_first_duplicate_wins() -> None:
    first = Task(id="1.1", title="first")
    roots = build_hierarchy([Task(id="1", title="p"), first, Task(id="1.1", title="second")])
    assert roots[0].subtasks == [first]


def test_id_helpers() -> None:
    assert nesting_level("1") == 0
    assert nesting_level("1.2") == 1
    assert nesting_level("1.2.3") == 2
    assert parent_id_of("1.2.3") == "1.2"
    assert parent_id_of("7") is None
    assert natural_key("2") < natural_key("10")
    assert natural_key("1.2") < natural_key("1.10")
