# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file),
see src/taskmaster_store/config.py. Every path defaults to a location under
<project_root>/.taskmaster, so most setups only need TASKMASTER_STORE_PROJECT_ROOT.
"""

ENV_VARS = {
    # App / logging
    "TASKMASTER_STORE_APP_NAME": "App display name (default: taskmaster-store).",
    "TASKMASTER_STORE_LOG_LEVEL": "Console logging level (default: INFO).",
    "TASKMASTER_STORE_FILE_LOGGING": "Also write full debug logs to <log_dir> (true/false).",
    "TASKMASTER_STORE_LOG_DIR": "Log directory (default: <taskmaster_dir>/logs).",
    # Project layout
    "TASKMASTER_STORE_PROJECT_ROOT": "Project root holding .taskmaster (default: current directory).",
    "TASKMASTER_STORE_TASKMASTER_DIR": "task-master data directory (default: <project_root>/.taskmaster).",
    "TASKMASTER_STORE_TASKS_PATH": "Task document (default: <taskmaster_dir>/tasks/tasks.json).",
    "TASKMASTER_STORE_STATE_PATH": "Active context state (default: <taskmaster_dir>/state.json).",
    "TASKMASTER_STORE_CONFIG_PATH": "Project config (default: <taskmaster_dir>/config.json).",
    # Protocol (MCP) backend
    "TASKMASTER_STORE_MCP_ENABLED": "Try task-master's MCP server first (true/false, default: true).",
    "TASKMASTER_STORE_MCP_COMMAND": "Server executable (default: task-master-ai).",
    "TASKMASTER_STORE_MCP_ARGS": "Comma/space separated server arguments (default: --mcp).",
    "TASKMASTER_STORE_MCP_CALL_TIMEOUT": "Seconds per tool call (default: 30).",
    "TASKMASTER_STORE_MCP_PROBE_TIMEOUT": "Seconds for initialize + ping (default: 5).",
    # Command line backend
    "TASKMASTER_STORE_CLI_ENABLED": "Fall back to the task-master CLI (true/false, default: true).",
    "TASKMASTER_STORE_CLI_COMMAND": "CLI executable (default: task-master).",
    "TASKMASTER_STORE_CLI_NPX_PACKAGE": "Package run through npx when the CLI is missing (default: task-master-ai).",
    "TASKMASTER_STORE_CLI_NPX_FALLBACK": "Allow the npx fallback (true/false, default: true).",
    "TASKMASTER_STORE_CLI_TIMEOUT": "Seconds per CLI command (default: 30).",
    "TASKMASTER_STORE_CLI_PROBE_TIMEOUT": "Seconds for the --version probe (default: 5).",
}
