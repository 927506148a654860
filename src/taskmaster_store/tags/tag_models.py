# src/taskmaster_store/tags/tag_models.py

"""
Context ("tag") model and collection helpers.

A tag is a named partition of the task document. Exactly one tag in a valid
collection is the master tag; the names master/main/default are reserved for it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

TAG_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
MAX_TAG_NAME_LEN = 50
MAX_DESCRIPTION_LEN = 500
RESERVED_NAMES = frozenset({"master", "main", "default"})

DEFAULT_COLOR = "#007ACC"
TAG_COLORS = (
    "#007ACC",
    "#68217A",
    "#0E639C",
    "#B5200D",
    "#0F7B0F",
    "#795E26",
    "#A31515",
    "#0000FF",
    "#008000",
    "#800080",
)

_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def is_valid_tag_name(name: object) -> bool:
    return (
        isinstance(name, str)
        and 0 < len(name) <= MAX_TAG_NAME_LEN
        and TAG_NAME_RE.match(name) is not None
    )


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x1_0000_0000 if value & 0x8000_0000 else value


def default_color(name: str) -> str:
    """
    Stable color for a tag name.

    Uses the 31-multiplier string hash (shift applied to the 32-bit value, the
    running sum kept unbounded), so a name gets the same color on every run.
    """
    h = 0
    for ch in name:
        h = ord(ch) + (_to_int32(_to_int32(h) << 5) - h)
    return TAG_COLORS[abs(h) % len(TAG_COLORS)]


def parse_date(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(UTC)


def _iso(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(slots=True)
class TagValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(slots=True)
class TagMetadata:
    total_tasks: int = 0
    completed_tasks: int = 0
    pending_tasks: int = 0
    last_modified: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "totalTasks": self.total_tasks,
                "completedTasks": self.completed_tasks,
                "pendingTasks": self.pending_tasks,
            }
        )
        if self.last_modified is not None:
            data["lastModified"] = _iso(self.last_modified)
        return data

    @staticmethod
    def from_dict(raw: Any) -> TagMetadata:
        if not isinstance(raw, dict):
            return TagMetadata()
        known = {"totalTasks", "completedTasks", "pendingTasks", "lastModified"}
        last = raw.get("lastModified")
        return TagMetadata(
            total_tasks=int(raw.get("totalTasks") or 0),
            completed_tasks=int(raw.get("completedTasks") or 0),
            pending_tasks=int(raw.get("pendingTasks") or 0),
            last_modified=parse_date(last) if last else None,
            extra={k: v for k, v in raw.items() if k not in known},
        )


@dataclass(slots=True)
class Tag:
    id: str
    name: str
    description: str | None = None
    creation_date: datetime = field(default_factory=lambda: datetime.now(UTC))
    is_master: bool = False
    color: str | None = None
    metadata: TagMetadata = field(default_factory=TagMetadata)

    def __post_init__(self) -> None:
        if not self.color:
            self.color = default_color(self.name or "")

    @property
    def task_count(self) -> int:
        return self.metadata.total_tasks

    def validate(self) -> TagValidationResult:
        result = TagValidationResult()

        if not self.id or not self.id.strip():
            result.errors.append("Tag ID is required")
        if not self.name or not self.name.strip():
            result.errors.append("Tag name is required")

        if self.id and not TAG_NAME_RE.match(self.id):
            result.errors.append(
                "Tag ID must contain only alphanumeric characters, hyphens, and underscores"
            )

        if self.name and self.name.lower() in RESERVED_NAMES and not self.is_master:
            result.errors.append(f"Tag name '{self.name}' is reserved for master tags")

        if self.name and len(self.name) > MAX_TAG_NAME_LEN:
            result.warnings.append(f"Tag name is longer than {MAX_TAG_NAME_LEN} characters")
        if self.description and len(self.description) > MAX_DESCRIPTION_LEN:
            result.warnings.append(
                f"Tag description is longer than {MAX_DESCRIPTION_LEN} characters"
            )
        if self.color and not _HEX_COLOR_RE.match(self.color):
            result.warnings.append("Tag color should be a valid hex color code")

        return result

    def update_metadata(self, **updates: Any) -> None:
        for key, value in updates.items():
            if key in ("total_tasks", "completed_tasks", "pending_tasks"):
                setattr(self.metadata, key, int(value))
            else:
                self.metadata.extra[key] = value
        self.metadata.last_modified = datetime.now(UTC)

    def update_task_count(self, total: int, completed: int = 0, pending: int = 0) -> None:
        self.update_metadata(total_tasks=total, completed_tasks=completed, pending_tasks=pending)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "creationDate": _iso(self.creation_date),
            "isMaster": self.is_master,
            "color": self.color,
            "metadata": self.metadata.to_dict(),
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @staticmethod
    def from_dict(raw: Any) -> Tag:
        """Build and validate a tag; ValueError on missing id/name or invalid data."""
        if not isinstance(raw, dict):
            raise ValueError("Invalid tag data: must be an object")
        if not raw.get("id") or not raw.get("name"):
            raise ValueError("Invalid tag data: id and name are required")

        tag = Tag(
            id=str(raw["id"]),
            name=str(raw["name"]),
            description=raw.get("description"),
            creation_date=parse_date(raw.get("creationDate")),
            is_master=bool(raw.get("isMaster", False)),
            color=raw.get("color"),
            metadata=TagMetadata.from_dict(raw.get("metadata")),
        )
        validation = tag.validate()
        if not validation.is_valid:
            raise ValueError(f"Invalid tag data: {', '.join(validation.errors)}")
        return tag

    def __str__(self) -> str:
        count = f" ({self.task_count} tasks)" if self.task_count > 0 else ""
        master = " [Master]" if self.is_master else ""
        return f"{self.name}{count}{master}"


def create_master_tag() -> Tag:
    return Tag(
        id="master",
        name="master",
        description="Default tag for all tasks",
        is_master=True,
        color=DEFAULT_COLOR,
    )


def validate_tag_collection(tags: list[Tag]) -> TagValidationResult:
    result = TagValidationResult()
    seen_ids: set[str] = set()
    seen_names: set[str] = set()
    masters = 0

    for tag in tags:
        single = tag.validate()
        result.errors.extend(single.errors)
        result.warnings.extend(single.warnings)

        if tag.id in seen_ids:
            result.errors.append(f"Duplicate tag ID: {tag.id}")
        seen_ids.add(tag.id)

        lowered = tag.name.lower()
        if lowered in seen_names:
            result.errors.append(f"Duplicate tag name: {tag.name}")
        seen_names.add(lowered)

        if tag.is_master:
            masters += 1

    if masters == 0:
        result.warnings.append("No master tag found - one will be created automatically")
    elif masters > 1:
        result.errors.append("Multiple master tags found - only one master tag is allowed")

    return result


def sort_tags(tags: list[Tag]) -> list[Tag]:
    """Master first, then case-insensitively by name."""
    return sorted(tags, key=lambda t: (not t.is_master, t.name.lower(), t.name))
