# tests/test_tag_models.py

from __future__ import annotations

import pytest

from taskmaster_store.tags.tag_models import (
    DEFAULT_COLOR,
    TAG_COLORS,
    Tag,
    create_master_tag,
    default_color,
    is_valid_tag_name,
    sort_tags,
    validate_tag_collection,
)


def test_tag_name_rules() -> None:
    assert is_valid_tag_name("feature-x")
    assert is_valid_tag_name("v2_release")
    assert not is_valid_tag_name("")
    assert not is_valid_tag_name("has space")
    assert not is_valid_tag_name("dots.not.allowed")
    assert not is_valid_tag_name("x" * 51)
    assert not is_valid_tag_name(None)


def test_default_color_is_stable() -> None:
    assert default_color("a") == "#0000FF"
    assert default_color("ab") == "#795E26"
    assert default_color("feature-x") == default_color("feature-x")
    assert default_color("a-much-longer-context-name-than-usual") in TAG_COLORS


def test_tag_gets_a_color_unless_given() -> None:
    assert Tag(id="a", name="a").color == "#0000FF"
    assert Tag(id="a", name="a", color="#123456").color == "#123456"


def test_validate_reports_errors_and_warnings() -> None:
    result = Tag(id="bad id!", name="x").validate()
    assert not result.is_valid
    assert any("alphanumeric" in e for e in result.errors)

    assert not Tag(id="main", name="main").validate().is_valid
    assert Tag(id="main", name="main", is_master=True).validate().is_valid

    result = Tag(id="x", name="n" * 51, description="d" * 501, color="blue").validate()
    assert result.is_valid
    assert len(result.warnings) == 3


def test_missing_id_and_name_are_errors() -> None:
    result = Tag(id="", name="").validate()
    assert "Tag ID is required" in result.errors
    assert "Tag name is required" in result.errors


def test_dict_round_trip_keeps_metadata() -> None:
    tag = Tag(id="feature-x", name="feature-x", description="Feature work")
    tag.update_task_count(5, completed=2, pending=3)
    tag.update_metadata(owner="sam")

    back = Tag.from_dict(tag.to_dict())
    assert back.id == "feature-x"
    assert back.description == "Feature work"
    assert back.color == tag.color
    assert back.task_count == 5
    assert back.metadata.completed_tasks == 2
    assert back.metadata.extra == {"owner": "sam"}
    assert back.metadata.last_modified is not None


@pytest.mark.parametrize(
    "raw",
    [
        "not a dict",
        {"id": "a"},
        {"name": "a"},
        {"id": "default", "name": "default"},
        {"id": "bad id", "name": "x"},
    ],
)
def test_from_dict_rejects_invalid_data(raw: object) -> None:
    with pytest.raises(ValueError):
        Tag.from_dict(raw)


def test_str() -> None:
    tag = Tag(id="feature-x", name="feature-x")
    assert str(tag) == "feature-x"
    tag.update_task_count(5)
    assert str(tag) == "feature-x (5 tasks)"
    assert str(create_master_tag()) == "master [Master]"


def test_master_tag() -> None:
    master = create_master_tag()
    assert master.is_master
    assert master.color == DEFAULT_COLOR
    assert master.validate().is_valid


def test_collection_checks() -> None:
    master = create_master_tag()

    result = validate_tag_collection([master, Tag(id="a", name="Alpha"), Tag(id="b", name="alpha")])
    assert any("Duplicate tag name" in e for e in result.errors)

    result = validate_tag_collection([Tag(id="a", name="a"), Tag(id="a", name="b")])
    assert any("Duplicate tag ID" in e for e in result.errors)
    assert any("No master tag" in w for w in result.warnings)

    result = validate_tag_collection([master, Tag(id="m2", name="Other", is_master=True)])
    assert any("Multiple master" in e for e in result.errors)


def test_sort_puts_master_first() -> None:
    tags = [Tag(id="b", name="beta"), Tag(id="a", name="Alpha"), create_master_tag()]
    assert [t.name for t in sort_tags(tags)] == ["master", "Alpha", "beta"]
