# src/taskmaster_store/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the .taskmaster directory exists,
- wires the backend chain and the context manager into a TaskStore.
"""

from __future__ import annotations

import logging

from ..backends import default_backends
from ..config import get_settings
from ..tags.tag_manager import ContextManager
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.taskmaster_dir.mkdir(parents=True, exist_ok=True)
    settings.state_path.parent.mkdir(parents=True, exist_ok=True)


def create_store(*, settings=None) -> TaskStore:
    """
    Create a TaskStore from the provided settings.

    Keeping settings injectable makes the CLI easy to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    return TaskStore(
        settings,
        backends=default_backends(settings),
        contexts=ContextManager(settings.state_path, settings.tasks_path),
    )
