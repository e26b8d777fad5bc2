"""OpenCode server storage backend.

Used with OpenCode 1.2.0+, where sessions live in the runtime's SQLite
database and are reached through its HTTP API.
"""

from collections import OrderedDict

from ..backend import BackendError, SessionBackend
from ..client import SessionClient
from ..core import Message, Part, Project, SessionInfo, TextPart, TodoItem, UserMessage
from ..logger import Logger
from ..schema import parse_message, parse_part, parse_project, parse_session, parse_todo


# Sessions whose inline parts are kept for get_message_parts
PART_CACHE_SESSIONS = 16


class ServerBackend(SessionBackend):
    """Backend that talks to a running OpenCode server."""

    name = "server"

    def __init__(self, client: SessionClient, logger: Logger):
        super().__init__(logger)
        self.client = client
        # The message listing returns parts inline; keep them per session for
        # get_message_parts, least recently loaded session evicted first
        self._parts: OrderedDict[str, dict[str, list[Part]]] = OrderedDict()

    async def list_projects(self) -> list[Project]:
        data = await self.client.list_projects()
        if not isinstance(data, list):
            return []
        return [project for project in map(parse_project, data) if project is not None]

    async def list_sessions_for_project(self, project_id: str) -> list[SessionInfo]:
        data = await self.client.list_sessions()
        if not isinstance(data, list):
            return []
        sessions = [parse_session(item) for item in data]
        return [s for s in sessions if s.project_id == project_id]

    async def get_session(self, project_id: str, session_id: str) -> SessionInfo | None:
        data = await self.client.get_session(session_id)
        if not isinstance(data, dict):
            self.logger.debug("Session not found", extra={"sessionId": session_id})
            return None
        return parse_session(data)

    async def get_session_messages(self, session_id: str) -> list[Message]:
        data = await self.client.session_messages(session_id)
        if not isinstance(data, list):
            return []

        messages = []
        loaded = {}
        for item in data:
            message = parse_message(item)
            raw_parts = item.get("parts") if isinstance(item, dict) else None
            loaded[message.id] = [parse_part(part) for part in raw_parts] if isinstance(raw_parts, list) else []
            messages.append(message)

        self._parts[session_id] = loaded
        self._parts.move_to_end(session_id)
        while len(self._parts) > PART_CACHE_SESSIONS:
            self._parts.popitem(last=False)

        messages.sort(key=lambda m: m.created)
        return messages

    async def get_message_parts(self, message_id: str) -> list[Part]:
        for loaded in reversed(self._parts.values()):
            if message_id in loaded:
                return list(loaded[message_id])

        self.logger.debug("No parts loaded for message", extra={"messageId": message_id})
        return []

    async def get_session_todos(self, session_id: str) -> list[TodoItem]:
        data = await self.client.session_todos(session_id)
        if not isinstance(data, list):
            return []
        return [todo for todo in map(parse_todo, data) if todo is not None]

    async def delete_session(self, project_id: str, session_id: str) -> int:
        deleted = await self.client.delete_session(session_id)
        if deleted:
            self.logger.debug("Deleted session via server", extra={"sessionId": session_id})
        else:
            self.logger.debug("Session already gone", extra={"sessionId": session_id})

        self._parts.pop(session_id, None)
        # The database does not report reclaimed space
        return 0

    async def append_message(self, message: UserMessage, parts: list[TextPart]) -> None:
        body = {
            "noReply": True,
            "parts": [{"type": "text", "text": part.text} for part in parts],
        }
        result = await self.client.prompt(message.session_id, body)
        if result is None:
            raise BackendError(f"Session not found: {message.session_id}")

    async def aclose(self) -> None:
        await self.client.aclose()
