"""
Configuration
=============
Reads settings from the process environment, falling back to a .env file in
the current working directory (via python-dotenv).

Environment Variables:
    FUNERR_NODE_BINARY       — Interpreter launched for the target script (default: node)
    FUNERR_LOG_LEVEL         — Level for the funerr loggers (default: WARNING)
    FUNERR_LOG_DIR           — When set, logs are also written to <dir>/funerr_YYYYMMDD.log
    FUNERR_NO_COLOR          — Any non-empty value disables report colors
    FUNERR_CONTEXT_LINE_MAX  — Max characters of the evidence line (default: 80)

.env Handling:
    dotenv_values() is used instead of load_dotenv() so that the target
    project's .env is never injected into os.environ. The child process
    inherits exactly the environment funerr was started with.
"""
import os
from typing import Optional

from dotenv import dotenv_values

_DOTENV = {
    key: value
    for key, value in dotenv_values(".env").items()
    if key.startswith("FUNERR_") and value is not None
}


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        value = _DOTENV.get(name, default)
    return value


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


NODE_BINARY = _getenv("FUNERR_NODE_BINARY", "node")
LOG_LEVEL = (_getenv("FUNERR_LOG_LEVEL", "WARNING") or "WARNING").upper()
LOG_DIR = _getenv("FUNERR_LOG_DIR") or None
NO_COLOR = bool(_getenv("FUNERR_NO_COLOR"))

# Evidence line truncation (characters)
CONTEXT_LINE_MAX = _getenv_int("FUNERR_CONTEXT_LINE_MAX", 80)

# Stream relay chunk size in bytes
READ_CHUNK_SIZE = 64 * 1024
