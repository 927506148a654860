# tests/test_lookup.py

from __future__ import annotations

import pytest

from taskmaster_store.tasks.hierarchy import to_task_tree
from taskmaster_store.tasks.lookup import find_record, find_task, qualify_subtask_id
from taskmaster_store.tasks.task_models import Task

RECORDS = [
    {
        "id": 1,
        "title": "one",
        "subtasks": [{"id": 1, "title": "one-one"}, {"id": 11, "title": "one-eleven"}],
    },
    {
        "id": "3",
        "title": "three",
        "subtasks": [
            {"id": "3.1", "title": "three-one"},
            {"id": "3.2", "title": "three-two"},
            {"id": "42", "title": "stray"},
        ],
    },
    {"id": 2, "title": "plain two"},
    {"id": 11, "title": "eleven"},
    {"id": 7, "title": "seven", "subtasks": [{"id": 1, "subtasks": [{"id": "7.1.4", "title": "deep"}]}]},
]


@pytest.fixture()
def tasks() -> list[Task]:
    return to_task_tree(RECORDS)


def title_of(hit: tuple[Task, Task | None] | None) -> str | None:
    return hit[0].title if hit is not None else None


def test_subtask_form_prefers_the_parent_child(tasks: list[Task]) -> None:
    # Root "2" exists too; ("3", "2") must still resolve under task 3.
    assert title_of(find_task(tasks, "3", "2")) == "three-two"
    assert title_of(find_task(tasks, 3, 2)) == "three-two"


def test_subtask_form_tries_exact_then_qualified_then_suffix() -> None:
    shadowed = [{"id": 3, "subtasks": [{"id": "9.2", "title": "foreign"}, {"id": "3.2", "title": "own"}]}]
    assert title_of(find_task(to_task_tree(shadowed), "3", "2")) == "own"
    assert find_record(shadowed, "3", "2")[0]["title"] == "own"

    exact_first = [{"id": 3, "subtasks": [{"id": "3.2", "title": "qualified"}, {"id": 2, "title": "bare"}]}]
    assert title_of(find_task(to_task_tree(exact_first), "3", "2")) == "bare"

    suffix_only = [{"id": 3, "subtasks": [{"id": "9.2", "title": "foreign"}]}]
    assert title_of(find_task(to_task_tree(suffix_only), "3", "2")) == "foreign"

def test_dotted_form(tasks: list[Task]) -> None:
    assert title_of(find_task(tasks, "3.2")) == "three-two"
    assert title_of(find_task(tasks, "1.1")) == "one-one"
    assert title_of(find_task(tasks, "1.11")) == "one-eleven"


def test_ids_never_match_by_prefix(tasks: list[Task]) -> None:
    assert title_of(find_task(tasks, "1")) == "one"
    assert title_of(find_task(tasks, "11")) == "eleven"
    assert title_of(find_task(tasks, "1", "1")) == "one-one"
    assert title_of(find_task(tasks, "1", "11")) == "one-eleven"


def test_near_miss_subtask_ids() -> None:
    tree = to_task_tree([{"id": 2, "subtasks": [{"id": "2.11", "title": "two-eleven"}]}])
    assert find_task(tree, "2.1") is None
    assert find_task(tree, "2", "1") is None
    assert title_of(find_task(tree, "2", "11")) == "two-eleven"


def test_deeper_descendants(tasks: list[Task]) -> None:
    hit = find_task(tasks, "7.1.4")
    assert hit is not None
    node, parent = hit
    assert node.title == "deep"
    assert parent is not None and parent.id == "1"


def test_plain_id_searches_subtasks_after_roots(tasks: list[Task]) -> None:
    hit = find_task(tasks, "42")
    assert hit is not None
    assert hit[0].title == "stray"
    assert hit[1] is not None and hit[1].id == "3"


def test_root_wins_over_same_id_subtask() -> None:
    tree = to_task_tree(
        [{"id": 5, "subtasks": [{"id": "2", "title": "sub two"}]}, {"id": 2, "title": "root two"}]
    )
    hit = find_task(tree, "2")
    assert hit is not None
    assert hit[0].title == "root two"
    assert hit[1] is None


def test_not_found(tasks: list[Task]) -> None:
    assert find_task(tasks, "9") is None
    assert find_task(tasks, "3", "9") is None
    assert find_task(tasks, "9", "1") is None
    assert find_task(tasks, "8.1") is None


def test_find_record_works_on_raw_records() -> None:
    hit = find_record(RECORDS, "3", "2")
    assert hit is not None
    record, parent = hit
    assert record["title"] == "three-two"
    assert parent is RECORDS[1]

    hit = find_record(RECORDS, "1.11")
    assert hit is not None and hit[0]["title"] == "one-eleven"


def test_qualify_subtask_id() -> None:
    assert qualify_subtask_id("3", "2") == "3.2"
    assert qualify_subtask_id(3, 2) == "3.2"
    assert qualify_subtask_id("3", "3.2") == "3.2"
