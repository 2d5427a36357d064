"""Environment-driven settings and platform-aware data paths."""

import os
import sys
from pathlib import Path

DEFAULT_TIMEOUT = 120.0
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080

GREETING = "Hello! Please select an endpoint or a conversation from the history."


def get_data_dir() -> Path:
    """Return the directory webhook-chat keeps its database in."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "webhook-chat"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "webhook-chat"
    else:  # Linux
        xdg = os.environ.get("XDG_DATA_HOME")
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
        return base / "webhook-chat"


def get_database_path() -> Path:
    """Return the path to the SQLite transcript database."""
    env = os.environ.get("WEBHOOK_CHAT_DB")
    if env:
        return Path(env)

    return get_data_dir() / "webhook_chat.db"


def get_request_timeout() -> float:
    """Return the webhook request timeout in seconds."""
    env = os.environ.get("WEBHOOK_CHAT_TIMEOUT")
    if env:
        return float(env)

    return DEFAULT_TIMEOUT


def get_log_level() -> str:
    return os.environ.get("WEBHOOK_CHAT_LOG_LEVEL", "WARNING").upper()


def get_server_address() -> tuple[str, int]:
    """Return the (host, port) the REST facade binds to."""
    host = os.environ.get("WEBHOOK_CHAT_HOST", DEFAULT_HOST)
    port = int(os.environ.get("WEBHOOK_CHAT_PORT", DEFAULT_PORT))
    return host, port
