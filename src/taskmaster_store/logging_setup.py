# src/taskmaster_store/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

_CHATTY_PREFIXES = ("mcp", "anyio", "httpx")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the terminal readable:
    - allow taskmaster_store logs
    - protocol client plumbing (mcp, anyio, httpx) only at WARNING+
    - Python warnings (captured as 'py.warnings') only at ERROR+
    - any other third party only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == "taskmaster_store" or name.startswith("taskmaster_store."):
            return True

        if name == "py.warnings":
            return record.levelno >= logging.ERROR

        if name.split(".", 1)[0] in _CHATTY_PREFIXES:
            return record.levelno >= logging.WARNING

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path | None = None,
    console_level: int | str = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with:
    - Console handler (stderr): filtered for interactive use
    - File handler (optional, when log_dir is given): full logs for debugging

    Call this ONCE, early (before the first logger.info).
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_dir / "taskmaster-store.log"), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
