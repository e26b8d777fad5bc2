"""Pick the storage backend matching the installed OpenCode runtime."""

from pathlib import Path

from ..backend import BackendError, SessionBackend
from ..client import OpencodeClient, SessionClient
from ..config import get_storage_path
from ..logger import Logger
from ..version import is_sqlite_backend
from .json_files import JsonFileBackend
from .server import ServerBackend


def open_backend(
    logger: Logger,
    *,
    version: str | None = None,
    storage_path: Path | None = None,
    client: SessionClient | None = None,
    server_url: str | None = None,
    directory: str | None = None,
    db_path: Path | None = None,
) -> SessionBackend:
    """Return the backend for this runtime, decided once per process.

    Database-backed runtimes need a server: pass either ``client`` or
    ``server_url``, otherwise BackendError is raised.
    """
    if not is_sqlite_backend(version, db_path):
        path = storage_path if storage_path is not None else get_storage_path()
        logger.debug("Using flat-file session storage", extra={"storagePath": str(path), "version": version})
        return JsonFileBackend(path, logger)

    if client is None:
        if not server_url:
            raise BackendError("OpenCode stores sessions in SQLite; an OpenCode server URL is required")
        client = OpencodeClient(server_url, directory=directory)

    logger.debug("Using OpenCode server session storage", extra={"version": version})
    return ServerBackend(client, logger)


__all__ = ["JsonFileBackend", "ServerBackend", "SessionBackend", "open_backend"]
