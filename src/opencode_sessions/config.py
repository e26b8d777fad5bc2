"""Platform-aware path resolution and runtime settings."""

import os
from pathlib import Path

from .core import DEFAULT_PRUNING_CONFIG, PruningConfig


def get_data_home() -> Path:
    """Return the XDG data home, falling back to ~/.local/share."""
    env = os.environ.get("XDG_DATA_HOME")
    if env:
        return Path(env)

    return Path.home() / ".local" / "share"


def get_storage_path() -> Path:
    """Return the path to OpenCode's flat-file storage directory."""
    env = os.environ.get("OPENCODE_STORAGE_PATH")
    if env:
        return Path(env)

    return get_data_home() / "opencode" / "storage"


def get_db_path() -> Path:
    """Return the path to OpenCode's SQLite database (runtime 1.2.0+)."""
    return get_data_home() / "opencode" / "opencode.db"


def get_workspace_path() -> str:
    """Return the checked-out repository: $GITHUB_WORKSPACE, else the cwd."""
    return os.environ.get("GITHUB_WORKSPACE") or os.getcwd()


def get_opencode_version() -> str | None:
    return os.environ.get("OPENCODE_VERSION") or None


def get_server_url() -> str | None:
    return os.environ.get("OPENCODE_SERVER_URL") or None


def validate_positive_integer(value: str, field_name: str) -> int:
    """Parse a strictly positive decimal integer or raise ValueError."""
    trimmed = value.strip()
    if not (trimmed.isascii() and trimmed.isdigit()) or int(trimmed) == 0:
        raise ValueError(f"{field_name} must be a positive integer, received: {value}")
    return int(trimmed)


def get_pruning_config() -> PruningConfig:
    """Build the retention policy from SESSION_RETENTION / SESSION_MAX_AGE_DAYS."""
    max_sessions = DEFAULT_PRUNING_CONFIG.max_sessions
    max_age_days = DEFAULT_PRUNING_CONFIG.max_age_days

    raw = os.environ.get("SESSION_RETENTION", "").strip()
    if raw:
        max_sessions = validate_positive_integer(raw, "SESSION_RETENTION")

    raw = os.environ.get("SESSION_MAX_AGE_DAYS", "").strip()
    if raw:
        max_age_days = validate_positive_integer(raw, "SESSION_MAX_AGE_DAYS")

    return PruningConfig(max_sessions=max_sessions, max_age_days=max_age_days)
