# src/taskmaster_store/backends/cli_backend.py

"""
Subprocess backend: drives the `task-master` command line tool.

If the executable is missing (its `--version` probe fails), `npx task-master-ai` is
used instead. Which of the two to run is decided once per instance; call
invalidate() after installing or removing the tool.

A command that exits 0 counts as success. Mutations print human-oriented text, so
there is nothing to correlate the result with; only `next` output is parsed.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from pathlib import Path

from ..core import ports
from ..errors import BackendUnavailable, SubprocessFailure
from ..tasks.formats import MASTER_CONTEXT
from ..tasks.lookup import qualify_subtask_id

logger = logging.getLogger(__name__)

_NEXT_TASK_RE = re.compile(r"Task (\d+(?:\.\d+)*):")


def parse_next_task_id(output: str) -> str | None:
    """First "Task <id>:" in the `next` output, e.g. "Task 3.1: Wire the parser" -> "3.1"."""
    for line in output.splitlines():
        match = _NEXT_TASK_RE.search(line)
        if match:
            return match.group(1)
    return None


def tag_args(context: str | None) -> list[str]:
    """`--tag <name>` for every context except master."""
    if not context or context == MASTER_CONTEXT:
        return []
    return ["--tag", context]


class CliBackend:
    name = "cli"
    operations = frozenset(
        {
            ports.NEXT_TASK,
            ports.SET_STATUS,
            ports.SET_SUBTASK_STATUS,
            ports.ADD_TASK,
            ports.ADD_SUBTASK,
            ports.UPDATE_TASK_PROMPT,
            ports.EXPAND_TASK,
            ports.ADD_TAG,
            ports.DELETE_TAG,
        }
    )

    def __init__(
            self,
            *,
            cwd: Path,
            command: str = "task-master",
            npx_package: str = "task-master-ai",
            npx_fallback: bool = True,
            timeout: float = 30.0,
            probe_timeout: float = 5.0,
            enabled: bool = True,
    ) -> None:
        self.cwd = Path(cwd)
        self.command = command
        self.npx_package = npx_package
        self.npx_fallback = npx_fallback
        self.timeout = float(timeout)
        self.probe_timeout = float(probe_timeout)
        self.enabled = enabled

        self._resolved = False
        self._argv0: list[str] | None = None

    # ---- tool presence ----

    def invalidate(self) -> None:
        self._resolved = False
        self._argv0 = None

    async def is_available(self) -> bool:
        if not self.enabled:
            return False
        return await self._resolve_command() is not None

    async def _resolve_command(self) -> list[str] | None:
        if self._resolved:
            return self._argv0

        argv0: list[str] | None = None
        if await self._probe_executable():
            argv0 = [self.command]
        elif self.npx_fallback and shutil.which("npx") is not None:
            logger.info("%s not installed, using npx %s", self.command, self.npx_package)
            argv0 = ["npx", self.npx_package]
        else:
            logger.info("Neither %s nor npx found; command line backend disabled", self.command)

        self._argv0 = argv0
        self._resolved = True
        return argv0

    async def _probe_executable(self) -> bool:
        if shutil.which(self.command) is None:
            return False
        try:
            returncode, _, _ = await self._exec([self.command, "--version"], self.probe_timeout)
        except (SubprocessFailure, BackendUnavailable) as e:
            logger.debug("%s --version probe failed: %s", self.command, e)
            return False
        return returncode == 0

    # ---- process plumbing ----

    async def _exec(self, argv: list[str], timeout: float) -> tuple[int, str, str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(self.cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BackendUnavailable(f"Cannot start {argv[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise SubprocessFailure(f"{' '.join(argv[:3])} timed out after {timeout:.0f}s") from e

        return (
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def run(self, subcommand: str, args: list[str] | None = None) -> str:
        """Run `<tool> <subcommand> <args...>` in the project root; return stdout."""
        argv0 = await self._resolve_command()
        if argv0 is None:
            raise BackendUnavailable(f"{self.command} is not installed and npx is not available")

        argv = [*argv0, subcommand, *(args or [])]
        logger.info("Running %s", " ".join(argv))
        returncode, stdout, stderr = await self._exec(argv, self.timeout)

        if stderr.strip() and "npm WARN" not in stderr:
            logger.debug("%s stderr: %s", subcommand, stderr.strip())

        if returncode != 0:
            raise SubprocessFailure(
                f"{subcommand} exited with status {returncode}",
                returncode=returncode,
                stderr=stderr,
            )
        return stdout

    # ---- operations ----

    async def next_task(self, *, context: str) -> str | None:
        output = await self.run("next", tag_args(context))
        task_id = parse_next_task_id(output)
        if task_id is None:
            logger.debug("No task id in `next` output")
        return task_id

    async def set_status(self, task_id: str, status: str, *, context: str) -> None:
        await self.run("set-status", ["--id", str(task_id), "--status", status, *tag_args(context)])

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
        args = ["--prompt", f"{title}: {description}", "--priority", priority]
        if dependencies:
            args += ["--dependencies", ",".join(dependencies)]
        await self.run("add-task", [*args, *tag_args(context)])
        return None

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
        args = ["--parent", str(parent_id), "--title", title, "--status", status]
        if description:
            args += ["--description", description]
        if priority:
            args += ["--priority", priority]
        await self.run("add-subtask", [*args, *tag_args(context)])
        return None

    async def update_task_prompt(self, task_id: str, prompt: str, *, context: str) -> None:
        await self.run("update-task", ["--id", str(task_id), "--prompt", prompt])

    async def expand_task(self, task_id: str, *, force: bool, context: str) -> None:
        args = ["--id", str(task_id)]
        if force:
            args.append("--force")
        await self.run("expand", [*args, *tag_args(context)])

    async def add_tag(self, name: str, *, description: str | None) -> None:
        await self.run("add-tag", [name])

    async def delete_tag(self, name: str) -> None:
        await self.run("delete-tag", [name, "--yes"])
