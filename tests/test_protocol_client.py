# tests/test_protocol_client.py

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from taskmaster_store.backends import protocol_client
from taskmaster_store.backends.protocol_client import (
    ProtocolBackend,
    payload_from_content,
    payload_task_id,
    unwrap_tags,
    unwrap_tasks,
)
from taskmaster_store.errors import BackendError, BackendUnavailable


def text(value: Any) -> SimpleNamespace:
    body = value if isinstance(value, str) else json.dumps(value)
    return SimpleNamespace(type="text", text=body)


class FakeSession:
    def __init__(self, payload: Any, *, is_error: bool = False) -> None:
        self.payload = payload
        self.is_error = is_error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> SimpleNamespace:
        self.calls.append((name, arguments))
        return SimpleNamespace(content=[text(self.payload)], isError=self.is_error)


def with_session(monkeypatch: pytest.MonkeyPatch, backend: ProtocolBackend, session: FakeSession) -> None:
    @asynccontextmanager
    async def fake() -> AsyncIterator[FakeSession]:
        yield session

    monkeypatch.setattr(backend, "_session", fake)


def test_payload_from_content() -> None:
    assert payload_from_content([text({"tasks": [1]})]) == {"tasks": [1]}
    assert payload_from_content([text("["), text("1]")]) == [1]
    assert payload_from_content([text("plain words")]) == "plain words"
    assert payload_from_content([SimpleNamespace(type="image", data="..."), text("7")]) == 7


def test_unwrap_tasks_envelopes() -> None:
    tasks = [{"id": 1}]
    assert unwrap_tasks({"tagInfo": {"tasks": tasks}}) == tasks
    assert unwrap_tasks({"data": {"tasks": tasks}}) == tasks
    assert unwrap_tasks({"tasks": tasks}) == tasks
    assert unwrap_tasks(tasks) == tasks
    with pytest.raises(BackendError):
        unwrap_tasks({"message": "nothing here"})


def test_payload_task_id() -> None:
    assert payload_task_id({"id": 3}) == "3"
    assert payload_task_id({"nextTask": {"id": "3.1"}}) == "3.1"
    assert payload_task_id({"data": {"nextTask": {"id": 5}}}) == "5"
    assert payload_task_id({"data": {"taskId": 8}}) == "8"
    assert payload_task_id("Task 7: write docs") == "7"
    assert payload_task_id({"data": {"message": "no next task"}}) is None
    assert payload_task_id(None) is None


def test_unwrap_tags() -> None:
    assert unwrap_tags(["master", "feature"]) == ["master", "feature"]
    assert unwrap_tags({"tags": [{"name": "master"}, {"name": "x"}, {"tasks": 3}]}) == ["master", "x"]
    assert unwrap_tags({"data": ["master"]}) == ["master"]
    with pytest.raises(BackendError):
        unwrap_tags({"error": "boom"})


def test_server_params(tmp_path: Path) -> None:
    backend = ProtocolBackend(project_root=tmp_path, args=["--mcp", "--quiet"])
    params = backend._server_params()
    assert params.command == "task-master-ai"
    assert params.args == ["--mcp", "--quiet"]
    assert params.env == {"TASKMASTER_PROJECT_ROOT": str(tmp_path)}


@pytest.mark.asyncio
async def test_availability(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(protocol_client.shutil, "which", lambda name: None)
    assert not await ProtocolBackend(project_root=tmp_path).is_available()

    monkeypatch.setattr(protocol_client.shutil, "which", lambda name: f"/usr/bin/{name}")
    assert await ProtocolBackend(project_root=tmp_path).is_available()
    assert not await ProtocolBackend(project_root=tmp_path, enabled=False).is_available()


@pytest.mark.asyncio
async def test_list_tasks_call(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    backend = ProtocolBackend(project_root=tmp_path)
    session = FakeSession({"data": {"tasks": [{"id": 1, "title": "x"}, {"title": "no id"}]}})
    with_session(monkeypatch, backend, session)

    assert await backend.list_tasks(context="feature") == [{"id": 1, "title": "x"}]
    assert session.calls == [
        ("get_tasks", {"projectRoot": str(tmp_path), "tag": "feature", "withSubtasks": True})
    ]


@pytest.mark.asyncio
async def test_mutation_calls(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    backend = ProtocolBackend(project_root=tmp_path)
    session = FakeSession({"data": {"taskId": 12}})
    with_session(monkeypatch, backend, session)

    await backend.set_subtask_status("3", "2", "done", context="master")
    new_id = await backend.add_task(
        title="Parser",
        description="Parse input",
        priority="high",
        dependencies=["1"],
        details=None,
        test_strategy=None,
        context="master",
    )
    await backend.use_tag("feature")

    assert new_id == "12"
    root = str(tmp_path)
    assert session.calls == [
        ("set_task_status", {"projectRoot": root, "tag": "master", "id": "3.2", "status": "done"}),
        (
            "add_task",
            {
                "projectRoot": root,
                "tag": "master",
                "prompt": "Title: Parser\nDescription: Parse input\nDetails: ",
                "priority": "high",
                "dependencies": "1",
            },
        ),
        ("use_tag", {"projectRoot": root, "tag": "feature"}),
    ]


@pytest.mark.asyncio
async def test_add_subtask_forwards_priority(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    backend = ProtocolBackend(project_root=tmp_path)
    session = FakeSession({"data": {"taskId": "4.1"}})
    with_session(monkeypatch, backend, session)

    kwargs: dict[str, Any] = dict(
        title="Sub", description="", status="pending", dependencies=["1"], details=None, context="master"
    )
    assert await backend.add_subtask("4", priority="high", **kwargs) == "4.1"
    await backend.add_subtask("4", priority=None, **kwargs)

    (_, with_priority), (_, without) = session.calls
    assert with_priority["priority"] == "high"
    assert with_priority["id"] == "4" and with_priority["dependencies"] == "1"
    assert "priority" not in without

@pytest.mark.asyncio
async def test_tool_error_is_a_backend_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    backend = ProtocolBackend(project_root=tmp_path)
    with_session(monkeypatch, backend, FakeSession("Task 9 not found", is_error=True))

    with pytest.raises(BackendError, match="Task 9 not found") as exc:
        await backend.set_status("9", "done", context="master")
    assert not isinstance(exc.value, BackendUnavailable)


@pytest.mark.asyncio
async def test_transport_failure_is_unavailable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    backend = ProtocolBackend(project_root=tmp_path)

    @asynccontextmanager
    async def broken() -> AsyncIterator[FakeSession]:
        raise OSError("spawn failed")
        yield  # pragma: no cover

    monkeypatch.setattr(backend, "_session", broken)
    with pytest.raises(BackendUnavailable, match="spawn failed"):
        await backend.list_tags()
