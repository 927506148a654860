# src/taskmaster_store/tags/tag_manager.py

"""
ContextManager: which context is active, and which contexts the document offers.

The active context lives in .taskmaster/state.json:

    {"currentTag": "master", "migrationCompleted": false, "lastMigrationDate": "..."}

The file is created with defaults on first access and rewritten atomically on every
change. Available contexts are always read from the task document itself, so there
is nothing else to keep in sync.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import TaskStoreError, ValidationError
from ..storage import atomic_write_json, load_json
from ..tasks.formats import MASTER_CONTEXT, TaggedDocument, TaskDocument, detect_format
from ..tasks.task_models import now_iso
from .tag_models import (
    Tag,
    create_master_tag,
    default_color,
    is_valid_tag_name,
    parse_date,
    sort_tags,
    validate_tag_collection,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EngineState:
    current_tag: str = MASTER_CONTEXT
    migration_completed: bool = False
    last_migration_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "currentTag": self.current_tag,
            "migrationCompleted": self.migration_completed,
        }
        if self.last_migration_date:
            data["lastMigrationDate"] = self.last_migration_date
        return data

    @staticmethod
    def from_dict(raw: Any) -> EngineState:
        if not isinstance(raw, dict):
            raise ValueError("state record must be a JSON object")
        current = raw.get("currentTag")
        last = raw.get("lastMigrationDate")
        return EngineState(
            current_tag=current if isinstance(current, str) and current else MASTER_CONTEXT,
            migration_completed=bool(raw.get("migrationCompleted", False)),
            last_migration_date=str(last) if last else None,
        )


@dataclass(slots=True)
class TagInfo:
    name: str
    description: str
    creation_date: str
    is_master: bool
    task_count: int
    color: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "creationDate": self.creation_date,
            "isMaster": self.is_master,
            "taskCount": self.task_count,
            "color": self.color,
        }


@dataclass(slots=True)
class TagContext:
    current_tag: str = MASTER_CONTEXT
    available_tags: list[str] = field(default_factory=lambda: [MASTER_CONTEXT])
    is_tagged_format: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentTag": self.current_tag,
            "availableTags": list(self.available_tags),
            "isTaggedFormat": self.is_tagged_format,
        }


def validate_context(context: TagContext, required: str | None = None) -> str | None:
    """Return an error message, or None when `context` is usable (and matches `required`)."""
    if not context.current_tag:
        return "No current tag specified"
    if context.current_tag not in context.available_tags:
        return f"Current tag '{context.current_tag}' is not in available tags list"
    if required and context.current_tag != required:
        return (
            f"Operation requires tag '{required}' but current tag is '{context.current_tag}'"
        )
    return None


class ContextManager:
    """Active-context state plus read-only views of the document's contexts."""

    def __init__(self, state_path: Path, tasks_path: Path) -> None:
        self.state_path = Path(state_path)
        self.tasks_path = Path(tasks_path)
        self._state: EngineState | None = None

    # ---- state record ----

    @property
    def state(self) -> EngineState:
        if self._state is None:
            self._state = self._load_state()
        return self._state

    def _load_state(self) -> EngineState:
        if self.state_path.exists():
            try:
                state = EngineState.from_dict(load_json(self.state_path))
                logger.debug(
                    "Loaded context state: current=%s migrated=%s",
                    state.current_tag,
                    state.migration_completed,
                )
                return state
            except (TaskStoreError, ValueError) as e:
                logger.warning("Ignoring unreadable state file %s: %s", self.state_path, e)

        state = EngineState()
        self._save_state(state)
        return state

    def _save_state(self, state: EngineState) -> None:
        atomic_write_json(self.state_path, state.to_dict())
        self._state = state
        logger.debug("Saved context state: current=%s", state.current_tag)

    def get_current(self) -> str:
        return self.state.current_tag

    def set_current(self, name: str) -> None:
        if not is_valid_tag_name(name):
            raise ValidationError(f"Invalid tag name: {name!r}")
        state = self.state
        state.current_tag = name
        self._save_state(state)
        logger.info("Current context changed to %s", name)

    def is_migration_completed(self) -> bool:
        return self.state.migration_completed

    def mark_migration_completed(self) -> None:
        state = self.state
        state.migration_completed = True
        state.last_migration_date = now_iso()
        self._save_state(state)
        logger.info("Migration to the tagged format marked as completed")

    # ---- document views ----

    def _document(self) -> TaskDocument | None:
        """Best-effort read; views degrade to the implicit master context."""
        if not self.tasks_path.exists():
            return None
        try:
            return detect_format(load_json(self.tasks_path))
        except TaskStoreError as e:
            logger.warning("Cannot read contexts from %s: %s", self.tasks_path, e)
            return None

    def list_available(self) -> list[str]:
        doc = self._document()
        if doc is None or not doc.is_tagged:
            return [MASTER_CONTEXT]
        return doc.context_names()

    def is_tagged_format(self) -> bool:
        doc = self._document()
        return doc is not None and doc.is_tagged

    def get_info(self, name: str) -> TagInfo | None:
        doc = self._document()
        if doc is None:
            return None
        return self._info_from(doc, name)

    def get_all_info(self) -> list[TagInfo]:
        doc = self._document()
        if doc is None:
            return []
        names = doc.context_names() if doc.is_tagged else [MASTER_CONTEXT]
        infos = [self._info_from(doc, name) for name in names]
        return [i for i in infos if i is not None]

    def get_tags(self) -> list[Tag]:
        """
        Every context as a Tag, master first. Without a task document there is only
        the implicit master tag. Collection problems are logged, not raised.
        """
        infos = self.get_all_info()
        if not infos:
            return [create_master_tag()]

        tags: list[Tag] = []
        for info in infos:
            tag = Tag(
                id=info.name,
                name=info.name,
                description=info.description or None,
                creation_date=parse_date(info.creation_date),
                is_master=info.is_master,
                color=info.color,
            )
            tag.update_task_count(info.task_count)
            tags.append(tag)

        result = validate_tag_collection(tags)
        for problem in result.errors:
            logger.warning("Context problem in %s: %s", self.tasks_path, problem)
        for problem in result.warnings:
            logger.debug("Context note for %s: %s", self.tasks_path, problem)
        return sort_tags(tags)

    def _info_from(self, doc: TaskDocument, name: str) -> TagInfo | None:
        if isinstance(doc, TaggedDocument):
            entry = doc.context_entry(name)
            if entry is None:
                return None
            tasks = entry.get("tasks")
            metadata = entry.get("metadata") if isinstance(entry.get("metadata"), dict) else {}
        elif name == MASTER_CONTEXT:
            tasks, _ = doc.select(MASTER_CONTEXT)
            metadata = {}
        else:
            return None

        default_description = "Default task context" if name == MASTER_CONTEXT else ""
        return TagInfo(
            name=name,
            description=str(metadata.get("description") or default_description),
            creation_date=str(metadata.get("created") or now_iso()),
            is_master=name == MASTER_CONTEXT,
            task_count=len(tasks) if isinstance(tasks, list) else 0,
            color=str(metadata.get("color") or default_color(name)),
        )

    def get_context(self) -> TagContext:
        return TagContext(
            current_tag=self.get_current(),
            available_tags=self.list_available(),
            is_tagged_format=self.is_tagged_format(),
        )

    def validate_context(self, required: str | None = None) -> str | None:
        return validate_context(self.get_context(), required)
