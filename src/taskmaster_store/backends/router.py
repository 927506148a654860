# src/taskmaster_store/backends/router.py

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..core.ports import TaskBackend
from ..errors import BackendError, BackendUnavailable

logger = logging.getLogger(__name__)


class BackendRouter:
    """
    Run an operation against an ordered chain of backends.

    Behavior:
    - Backends that do not implement the operation are skipped silently.
    - Backends that report themselves unavailable are skipped (logged).
    - The first backend that succeeds wins; nothing after it runs.
    - A BackendError moves on to the next backend. Only the last one is raised.
    - Any other exception (NotFoundError, ValidationError, ...) is raised immediately:
      those describe the request, not the backend.
    """

    def __init__(self, backends: Sequence[TaskBackend]) -> None:
        self.backends: list[TaskBackend] = list(backends)
        self.last_backend: str | None = None

    def supporting(self, operation: str) -> list[TaskBackend]:
        return [b for b in self.backends if operation in b.operations]

    def supports(self, operation: str) -> bool:
        return bool(self.supporting(operation))

    def invalidate(self) -> None:
        for backend in self.backends:
            backend.invalidate()

    async def run(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        candidates = self.supporting(operation)
        if not candidates:
            raise BackendUnavailable(f"No backend implements '{operation}'")

        last_error: BackendError | None = None

        for backend in candidates:
            if not await backend.is_available():
                logger.info("Backend %s unavailable for %s, trying next", backend.name, operation)
                continue

            logger.debug("Backend %s: running %s", backend.name, operation)
            try:
                result = await getattr(backend, operation)(*args, **kwargs)
            except BackendError as e:
                last_error = e
                logger.info("Backend %s failed on %s (%s), trying next", backend.name, operation, e)
                continue

            self.last_backend = backend.name
            logger.debug("Backend %s: %s done", backend.name, operation)
            return result

        if last_error is not None:
            raise last_error

        names = ", ".join(b.name for b in candidates)
        raise BackendUnavailable(f"No backend available for '{operation}' (tried: {names})")
