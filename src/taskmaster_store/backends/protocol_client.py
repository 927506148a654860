# src/taskmaster_store/backends/protocol_client.py

"""
Protocol backend: task-master's Model Context Protocol server over stdio.

Every call spawns `task-master-ai --mcp` for the project, pings it, runs one tool
and shuts the server down again. Nothing is cached between calls, so a server that
went away is noticed on the very next call (and the router falls through).

Tool results are text content; joined text is parsed as JSON when possible.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from ..core import ports
from ..errors import BackendError, BackendUnavailable
from ..tasks.formats import RawTask, drop_missing_ids
from ..tasks.lookup import qualify_subtask_id
from .cli_backend import parse_next_task_id

logger = logging.getLogger(__name__)


def payload_from_content(content: Sequence[Any]) -> Any:
    """Join text items; return parsed JSON, or the raw text when it is not JSON."""
    text = "\n".join(
        str(getattr(item, "text", ""))
        for item in content
        if getattr(item, "type", None) == "text"
    )
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def unwrap_tasks(payload: Any) -> list[Any]:
    """
    Task list out of a get_tasks payload.

    Accepted envelopes: {"tagInfo": {"tasks": [...]}}, {"data": {"tasks": [...]}},
    {"tasks": [...]} and a bare list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("tagInfo", "data"):
            inner = payload.get(key)
            if isinstance(inner, dict) and isinstance(inner.get("tasks"), list):
                return inner["tasks"]
        if isinstance(payload.get("tasks"), list):
            return payload["tasks"]
    raise BackendError("Unexpected get_tasks payload from the protocol server")


def payload_task_id(payload: Any) -> str | None:
    """Task id out of next_task/add_task payloads (object, envelope or plain text)."""
    if isinstance(payload, str):
        return parse_next_task_id(payload)
    if not isinstance(payload, dict):
        return None
    for key in ("nextTask", "task", "data"):
        inner = payload.get(key)
        if isinstance(inner, dict):
            found = payload_task_id(inner)
            if found is not None:
                return found
    for key in ("id", "taskId"):
        if payload.get(key) is not None:
            return str(payload[key])
    return None


def unwrap_tags(payload: Any) -> list[str]:
    if isinstance(payload, dict):
        payload = payload.get("tags", payload.get("data"))
    if not isinstance(payload, list):
        raise BackendError("Unexpected get_tags payload from the protocol server")
    names: list[str] = []
    for item in payload:
        if isinstance(item, str):
            names.append(item)
        elif isinstance(item, dict) and item.get("name"):
            names.append(str(item["name"]))
    return names


class ProtocolBackend:
    name = "protocol"
    operations = frozenset(
        {
            ports.LIST_TASKS,
            ports.NEXT_TASK,
            ports.SET_STATUS,
            ports.SET_SUBTASK_STATUS,
            ports.ADD_TASK,
            ports.ADD_SUBTASK,
            ports.UPDATE_TASK_PROMPT,
            ports.UPDATE_SUBTASK_PROMPT,
            ports.EXPAND_TASK,
            ports.LIST_TAGS,
            ports.USE_TAG,
        }
    )

    def __init__(
            self,
            *,
            project_root: Path,
            command: str = "task-master-ai",
            args: Sequence[str] = ("--mcp",),
            call_timeout: float = 30.0,
            probe_timeout: float = 5.0,
            enabled: bool = True,
    ) -> None:
        self.project_root = Path(project_root)
        self.command = command
        self.args = list(args)
        self.call_timeout = float(call_timeout)
        self.probe_timeout = float(probe_timeout)
        self.enabled = enabled

    def invalidate(self) -> None:
        # No cached state: liveness is checked on every call.
        return None

    async def is_available(self) -> bool:
        if not self.enabled:
            return False
        if shutil.which(self.command) is None:
            logger.debug("Protocol server command %s not found", self.command)
            return False
        return True

    def _server_params(self) -> StdioServerParameters:
        root = str(self.project_root)
        return StdioServerParameters(
            command=self.command,
            args=self.args,
            env={"TASKMASTER_PROJECT_ROOT": root},
            cwd=root,
        )

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[ClientSession]:
        async with stdio_client(self._server_params()) as (read, write):
            async with ClientSession(
                read,
                write,
                read_timeout_seconds=timedelta(seconds=self.call_timeout),
            ) as session:
                await asyncio.wait_for(session.initialize(), timeout=self.probe_timeout)
                await asyncio.wait_for(session.send_ping(), timeout=self.probe_timeout)
                yield session

    async def call_tool(self, tool: str, arguments: dict[str, Any]) -> Any:
        logger.debug("Protocol call %s %s", tool, arguments)
        try:
            async with self._session() as session:
                result = await asyncio.wait_for(
                    session.call_tool(tool, arguments),
                    timeout=self.call_timeout,
                )
        except Exception as e:
            raise BackendUnavailable(f"Protocol call {tool} failed: {e}") from e

        payload = payload_from_content(result.content)
        if result.isError:
            raise BackendError(f"Protocol tool {tool} reported an error: {payload}")
        return payload

    def _args(self, context: str | None = None, **extra: Any) -> dict[str, Any]:
        arguments: dict[str, Any] = {"projectRoot": str(self.project_root)}
        if context:
            arguments["tag"] = context
        arguments.update(extra)
        return arguments

    # ---- operations ----

    async def list_tasks(self, *, context: str) -> list[RawTask]:
        payload = await self.call_tool("get_tasks", self._args(context, withSubtasks=True))
        return drop_missing_ids(unwrap_tasks(payload))

    async def next_task(self, *, context: str) -> str | None:
        payload = await self.call_tool("next_task", self._args(context))
        return payload_task_id(payload)

    async def set_status(self, task_id: str, status: str, *, context: str) -> None:
        await self.call_tool("set_task_status", self._args(context, id=str(task_id), status=status))

    async def set_subtask_status(self, parent_id: str, sub_id: str, status: str, *, context: str) -> None:
        await self.set_status(qualify_subtask_id(parent_id, sub_id), status, context=context)

    async def add_task(
            self,
            *,
            title: str,
            description: str,
            priority: str,
            dependencies: list[str],
            details: str | None,
            test_strategy: str | None,
            context: str,
    ) -> str | None:
        prompt = f"Title: {title}\nDescription: {description}\nDetails: {details or ''}"
        payload = await self.call_tool(
            "add_task",
            self._args(
                context,
                prompt=prompt,
                priority=priority,
                dependencies=",".join(dependencies),
            ),
        )
        return payload_task_id(payload)

    async def add_subtask(
            self,
            parent_id: str,
            *,
            title: str,
            description: str,
            status: str,
            priority: str | None,
            dependencies: list[str],
            details: str | None,
            context: str,
    ) -> str | None:
        arguments = self._args(
            context,
            id=str(parent_id),
            title=title,
            description=description or "",
            details=details or "",
            dependencies=",".join(dependencies),
            status=status,
        )
        if priority:
            arguments["priority"] = priority
        payload = await self.call_tool("add_subtask", arguments)
        return payload_task_id(payload)

    async def update_task_prompt(self, task_id: str, prompt: str, *, context: str) -> None:
        await self.call_tool("update_task", self._args(context, id=str(task_id), prompt=prompt))

    async def update_subtask_prompt(self, subtask_id: str, prompt: str, *, context: str) -> None:
        await self.call_tool("update_subtask", self._args(context, id=str(subtask_id), prompt=prompt))

    async def expand_task(self, task_id: str, *, force: bool, context: str) -> None:
        await self.call_tool("expand_task", self._args(context, id=str(task_id), force=force))

    async def list_tags(self) -> list[str]:
        return unwrap_tags(await self.call_tool("get_tags", self._args()))

    async def use_tag(self, name: str) -> None:
        await self.call_tool("use_tag", self._args(name))
