# src/taskmaster_store/errors.py

"""
Error taxonomy.

Backend-level failures (BackendError subclasses) are what the router catches to move
on to the next backend. Everything else is surfaced to the caller as-is.
"""

from __future__ import annotations


class TaskStoreError(Exception):
    """Base class for every error raised by the engine."""


class FormatError(TaskStoreError):
    """The task document matches none of the recognized shapes (or is not JSON)."""


class NotFoundError(TaskStoreError, LookupError):
    """A task, subtask, context or document does not exist."""


class ValidationError(TaskStoreError, ValueError):
    """Input rejected before any mutation (bad context name, duplicate id, ...)."""


class StorageError(TaskStoreError):
    """Reading or writing a file on disk failed."""


class BackendError(TaskStoreError):
    """A backend could not serve the request; the router may try the next one."""


class BackendUnavailable(BackendError):
    """Backend not reachable (protocol server down, tool missing, no backend left)."""


class SubprocessFailure(BackendError):
    """The command line tool exited non-zero or hit its deadline."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
