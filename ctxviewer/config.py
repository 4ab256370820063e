"""Context viewer backend configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


# Compiled store
DB_VERSION = _env_int("CTXVIEW_DB_VERSION", 1)
LOG_SUFFIX = ".ctxt"
DATABASE_SUFFIX = ".cbin"
COMPILER_COMMAND = os.getenv("CTXVIEW_COMPILER", "context-compiler")

# Log opened at startup (optional)
LOG_FILE = os.getenv("CTXVIEW_LOG_FILE", "")
WATCH_ENABLED = _env_bool("CTXVIEW_WATCH_ENABLED", True)

# Viewer settings persistence
SETTINGS_PATH = Path(
    os.getenv("CTXVIEW_SETTINGS_PATH", str(Path.home() / ".config" / "context-viewer.json"))
)

# Event loading
PROGRESS_INTERVAL = max(1, _env_int("CTXVIEW_PROGRESS_INTERVAL", 10000))
BOOKMARK_PROGRESS_INTERVAL = 1000
STATUS_HISTORY = _env_int("CTXVIEW_STATUS_HISTORY", 50)
MAX_WINDOW_SECONDS = _env_float("CTXVIEW_MAX_WINDOW_SECONDS", 3600.0)

# Observability
OTEL_ENABLED = _env_bool("CTXVIEW_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("CTXVIEW_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("CTXVIEW_OTEL_SERVICE_NAME", "ctxviewer-backend")
PROM_PORT = _env_int("CTXVIEW_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("CTXVIEW_HOST", "127.0.0.1")
PORT = int(os.getenv("CTXVIEW_PORT", "8000"))

# CORS
FRONTEND_ORIGIN = os.getenv("CTXVIEW_FRONTEND_ORIGIN", "http://localhost:3000")
