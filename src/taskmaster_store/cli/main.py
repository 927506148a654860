# src/taskmaster_store/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the TaskStore, runs one command and exits:

    taskmaster-store list
    taskmaster-store status 3.2 done
    taskmaster-store use-tag feature-x
"""

from __future__ import annotations

import asyncio
import logging
import sys

from ..cli.bootstrap import create_store
from ..cli.commands import registry
from ..config import get_settings
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = settings.log_dir if getattr(settings, "file_logging", False) else None
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.debug("Starting %s...", getattr(settings, "app_name", "taskmaster-store"))

    # IMPORTANT: reuse same settings object
    store = create_store(settings=settings)

    args = list(sys.argv[1:] if argv is None else argv)
    code, output = asyncio.run(registry.handle(store, args))
    if output:
        print(output, file=sys.stdout if code == 0 else sys.stderr)
    return code


if __name__ == "__main__":
    raise SystemExit(main())
