"""
Backends, in fallback order:

- protocol_client.py: task-master's MCP server over stdio
- cli_backend.py: the task-master command line tool (or npx task-master-ai)
- file_backend.py: the task document on disk
"""

from __future__ import annotations

from typing import Any

from ..core.ports import TaskBackend
from .cli_backend import CliBackend
from .file_backend import FileBackend
from .protocol_client import ProtocolBackend


def default_backends(settings: Any) -> list[TaskBackend]:
    """The standard chain built from Settings: protocol -> command line -> file."""
    return [
        ProtocolBackend(
            project_root=settings.project_root,
            command=settings.mcp_command,
            args=settings.mcp_args,
            call_timeout=settings.mcp_call_timeout,
            probe_timeout=settings.mcp_probe_timeout,
            enabled=settings.mcp_enabled,
        ),
        CliBackend(
            cwd=settings.project_root,
            command=settings.cli_command,
            npx_package=settings.cli_npx_package,
            npx_fallback=settings.cli_npx_fallback,
            timeout=settings.cli_timeout,
            probe_timeout=settings.cli_probe_timeout,
            enabled=settings.cli_enabled,
        ),
        FileBackend(settings.tasks_path),
    ]
