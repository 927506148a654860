# tests/conftest.py

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from taskmaster_store.backends.file_backend import FileBackend
from taskmaster_store.tags.tag_manager import ContextManager
from taskmaster_store.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with TaskStore and the backends.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic. Protocol and command line
    backends are off: tests never spawn task-master.
    """
    taskmaster_dir = tmp_path / ".taskmaster"
    return SimpleNamespace(
        app_name="taskmaster-store-test",
        log_level="DEBUG",
        file_logging=False,
        log_dir=taskmaster_dir / "logs",
        # Paths (tmp per test run)
        project_root=tmp_path,
        taskmaster_dir=taskmaster_dir,
        tasks_path=taskmaster_dir / "tasks" / "tasks.json",
        state_path=taskmaster_dir / "state.json",
        config_path=taskmaster_dir / "config.json",
        # Backends
        mcp_enabled=False,
        mcp_command="task-master-ai",
        mcp_args=["--mcp"],
        mcp_call_timeout=1.0,
        mcp_probe_timeout=1.0,
        cli_enabled=False,
        cli_command="task-master",
        cli_npx_package="task-master-ai",
        cli_npx_fallback=False,
        cli_timeout=1.0,
        cli_probe_timeout=1.0,
    )


@pytest.fixture()
def write_tasks(settings: SimpleNamespace) -> Callable[[Any], Path]:
    def _write(document: Any) -> Path:
        path: Path = settings.tasks_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document, indent=2), "utf-8")
        return path

    return _write


@pytest.fixture()
def read_tasks(settings: SimpleNamespace) -> Callable[[], Any]:
    def _read() -> Any:
        return json.loads(settings.tasks_path.read_text("utf-8"))

    return _read


@pytest.fixture()
def contexts(settings: SimpleNamespace) -> ContextManager:
    return ContextManager(settings.state_path, settings.tasks_path)


@pytest.fixture()
def store(settings: SimpleNamespace, contexts: ContextManager) -> TaskStore:
    """TaskStore wired to the real file backend only."""
    return TaskStore(settings, backends=[FileBackend(settings.tasks_path)], contexts=contexts)
