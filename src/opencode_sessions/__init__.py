"""Persist, search and prune OpenCode sessions across CI runs."""

from .backend import BackendError, SessionBackend
from .backends import JsonFileBackend, ServerBackend, open_backend
from .client import OpencodeClient, SessionClient
from .core import DEFAULT_PRUNING_CONFIG, PruneResult, PruningConfig, RunSummary, TokenUsage
from .prune import prune_sessions
from .search import get_session_info, list_sessions, search_sessions
from .version import OPENCODE_SQLITE_VERSION, compare_versions, is_sqlite_backend
from .writeback import write_session_summary

__version__ = "0.1.0"

__all__ = [
    "BackendError",
    "DEFAULT_PRUNING_CONFIG",
    "JsonFileBackend",
    "OPENCODE_SQLITE_VERSION",
    "OpencodeClient",
    "PruneResult",
    "PruningConfig",
    "RunSummary",
    "ServerBackend",
    "SessionBackend",
    "SessionClient",
    "TokenUsage",
    "compare_versions",
    "get_session_info",
    "is_sqlite_backend",
    "list_sessions",
    "open_backend",
    "prune_sessions",
    "search_sessions",
    "write_session_summary",
]
