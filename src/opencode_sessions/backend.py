"""Abstract base class for session storage backends."""

import os
from abc import ABC, abstractmethod

from .core import Message, Part, Project, SessionInfo, TextPart, TodoItem, UserMessage
from .logger import Logger


class BackendError(RuntimeError):
    """A storage backend failed (as opposed to a record simply being absent)."""


def normalize_workspace_path(path: str) -> str:
    """Absolute path without a trailing separator."""
    resolved = os.path.abspath(path)
    if resolved.endswith(os.sep) and len(resolved) > 1:
        return resolved[:-1]
    return resolved


class SessionBackend(ABC):
    """Base class for OpenCode session stores.

    Two implementations exist: the flat JSON tree written by runtimes
    before 1.2.0, and the OpenCode server API in front of the SQLite
    database used since. Callers never need to know which one is active.

    "Not found" is reported as None or an empty list. Only real I/O or
    backend failures raise.
    """

    name: str  # "json", "server"

    def __init__(self, logger: Logger):
        self.logger = logger

    @abstractmethod
    async def list_projects(self) -> list[Project]:
        """Return every project known to the store."""
        ...

    @abstractmethod
    async def list_sessions_for_project(self, project_id: str) -> list[SessionInfo]:
        """Return all sessions (main and child) of a project, unordered."""
        ...

    @abstractmethod
    async def get_session(self, project_id: str, session_id: str) -> SessionInfo | None:
        ...

    @abstractmethod
    async def get_session_messages(self, session_id: str) -> list[Message]:
        """Return a session's messages, oldest first."""
        ...

    @abstractmethod
    async def get_message_parts(self, message_id: str) -> list[Part]:
        ...

    @abstractmethod
    async def get_session_todos(self, session_id: str) -> list[TodoItem]:
        ...

    @abstractmethod
    async def delete_session(self, project_id: str, session_id: str) -> int:
        """Delete a session with its messages, parts and todos.

        Returns the number of bytes reclaimed, or 0 when the backend cannot
        tell. Deleting a session that no longer exists is not an error.
        """
        ...

    @abstractmethod
    async def append_message(self, message: UserMessage, parts: list[TextPart]) -> None:
        """Add a user message and its parts to an existing session."""
        ...

    async def find_project_by_directory(self, directory: str) -> Project | None:
        """Return the project whose worktree is ``directory``, if any."""
        wanted = normalize_workspace_path(directory)
        for project in await self.list_projects():
            if normalize_workspace_path(project.worktree) == wanted:
                return project

        self.logger.debug("No project found for directory", extra={"directory": directory})
        return None

    async def find_latest_session(
        self, directory: str, after_ms: int
    ) -> tuple[str, SessionInfo] | None:
        """Return the newest main session created after ``after_ms``.

        OpenCode's CLI does not report the session id it used, so the
        caller records a start time and asks for the newest session since.
        """
        project = await self.find_project_by_directory(directory)
        if project is None:
            return None

        candidates = [
            s
            for s in await self.list_sessions_for_project(project.id)
            if s.parent_id is None and s.created > after_ms
        ]
        if not candidates:
            return None

        latest = max(candidates, key=lambda s: s.created)
        return project.id, latest

    async def aclose(self) -> None:
        """Release any resources held by the backend."""
