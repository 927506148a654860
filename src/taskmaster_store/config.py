# src/taskmaster_store/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole engine.
- Every path derives from the project root unless overridden.
- Backends can be switched off individually (useful offline and in tests).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKMASTER_STORE"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    file_logging: bool
    log_dir: Path

    # ---- Project layout ----
    project_root: Path
    taskmaster_dir: Path
    tasks_path: Path
    state_path: Path
    config_path: Path

    # ---- Protocol (MCP) backend ----
    mcp_enabled: bool
    mcp_command: str
    mcp_args: list[str]
    mcp_call_timeout: float
    mcp_probe_timeout: float

    # ---- Command line backend ----
    cli_enabled: bool
    cli_command: str
    cli_npx_package: str
    cli_npx_fallback: bool
    cli_timeout: float
    cli_probe_timeout: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskmaster-store") or "taskmaster-store"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        file_logging = _env_bool(_k("FILE_LOGGING"), False)

        project_root = _env_path(_k("PROJECT_ROOT"), Path.cwd())
        taskmaster_dir = _env_path(_k("TASKMASTER_DIR"), project_root / ".taskmaster")
        tasks_path = _env_path(_k("TASKS_PATH"), taskmaster_dir / "tasks" / "tasks.json")
        state_path = _env_path(_k("STATE_PATH"), taskmaster_dir / "state.json")
        config_path = _env_path(_k("CONFIG_PATH"), taskmaster_dir / "config.json")
        log_dir = _env_path(_k("LOG_DIR"), taskmaster_dir / "logs")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            file_logging=file_logging,
            log_dir=log_dir,
            project_root=project_root,
            taskmaster_dir=taskmaster_dir,
            tasks_path=tasks_path,
            state_path=state_path,
            config_path=config_path,
            mcp_enabled=_env_bool(_k("MCP_ENABLED"), True),
            mcp_command=_env(_k("MCP_COMMAND"), "task-master-ai"),
            mcp_args=_env_list(_k("MCP_ARGS"), ["--mcp"]),
            mcp_call_timeout=_env_float(_k("MCP_CALL_TIMEOUT"), 30.0),
            mcp_probe_timeout=_env_float(_k("MCP_PROBE_TIMEOUT"), 5.0),
            cli_enabled=_env_bool(_k("CLI_ENABLED"), True),
            cli_command=_env(_k("CLI_COMMAND"), "task-master"),
            cli_npx_package=_env(_k("CLI_NPX_PACKAGE"), "task-master-ai"),
            cli_npx_fallback=_env_bool(_k("CLI_NPX_FALLBACK"), True),
            cli_timeout=_env_float(_k("CLI_TIMEOUT"), 30.0),
            cli_probe_timeout=_env_float(_k("CLI_PROBE_TIMEOUT"), 5.0),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
