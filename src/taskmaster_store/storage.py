# src/taskmaster_store/storage.py

"""JSON file helpers shared by the file backend and the context manager."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from .errors import FormatError, StorageError

logger = logging.getLogger(__name__)


def load_json(path: Path) -> Any:
    """Read and parse a JSON file. FormatError on bad JSON, StorageError on I/O failure."""
    try:
        raw = path.read_text("utf-8")
    except OSError as e:
        raise StorageError(f"Failed to read {path}: {e}") from e
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise FormatError(f"{path} is not valid JSON: {e}") from e


def atomic_write_json(path: Path, data: Any, *, indent: int | None = 2) -> None:
    """Write via a sibling temp file + os.replace, so readers never see a partial file."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=indent), "utf-8")
        os.replace(tmp, path)
    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e}") from e
    logger.debug("Wrote %s", path)
