"""Flat-file OpenCode storage backend.

Reads and writes the JSON tree used by OpenCode runtimes before 1.2.0,
normally ~/.local/share/opencode/storage/:

    project/<projectID>.json
    session/<projectID>/<sessionID>.json
    message/<sessionID>/<messageID>.json
    part/<messageID>/<partID>.json
    todo/<sessionID>.json
"""

import json
import shutil
from pathlib import Path
from typing import Any

from ..backend import BackendError, SessionBackend
from ..core import Message, Part, Project, SessionInfo, TextPart, TodoItem, UserMessage
from ..logger import Logger
from ..schema import (
    message_to_dict,
    parse_message,
    parse_part,
    parse_project,
    parse_session,
    parse_todo,
    part_to_dict,
)


class JsonFileBackend(SessionBackend):
    """Backend for OpenCode's flat JSON storage tree."""

    name = "json"

    def __init__(self, storage_path: Path, logger: Logger):
        super().__init__(logger)
        self.storage_path = Path(storage_path)

    async def list_projects(self) -> list[Project]:
        projects = []
        for project_file in self._json_files(self.storage_path / "project"):
            project = parse_project(self._read_json(project_file))
            if project:
                projects.append(project)
        return projects

    async def list_sessions_for_project(self, project_id: str) -> list[SessionInfo]:
        sessions = []
        for ses_file in self._json_files(self.storage_path / "session" / project_id):
            data = self._read_json(ses_file)
            if data is None:
                continue
            sessions.append(_parse_session_file(data, ses_file.stem, project_id))
        return sessions

    async def get_session(self, project_id: str, session_id: str) -> SessionInfo | None:
        data = self._read_json(self.storage_path / "session" / project_id / f"{session_id}.json")
        if data is None:
            self.logger.debug("Session not found", extra={"projectId": project_id, "sessionId": session_id})
            return None
        return _parse_session_file(data, session_id, project_id)

    async def get_session_messages(self, session_id: str) -> list[Message]:
        messages = []
        for msg_file in self._json_files(self.storage_path / "message" / session_id):
            data = self._read_json(msg_file)
            if data is not None:
                messages.append(parse_message(data))

        # Files are already in id order; keep it for equal timestamps
        messages.sort(key=lambda m: m.created)
        return messages

    async def get_message_parts(self, message_id: str) -> list[Part]:
        parts = []
        for part_file in self._json_files(self.storage_path / "part" / message_id):
            data = self._read_json(part_file)
            if data is not None:
                parts.append(parse_part(data))
        return parts

    async def get_session_todos(self, session_id: str) -> list[TodoItem]:
        data = self._read_json(self.storage_path / "todo" / f"{session_id}.json")
        if not isinstance(data, list):
            return []
        return [todo for todo in map(parse_todo, data) if todo is not None]

    async def delete_session(self, project_id: str, session_id: str) -> int:
        base = self.storage_path
        message_dir = base / "message" / session_id
        freed = 0

        for msg_file in self._json_files(message_dir):
            freed += _remove_tree(base / "part" / msg_file.stem)
        freed += _remove_tree(message_dir)
        freed += _remove_file(base / "todo" / f"{session_id}.json")
        freed += _remove_file(base / "session" / project_id / f"{session_id}.json")

        self.logger.debug("Deleted session", extra={"sessionId": session_id, "freedBytes": freed})
        return freed

    async def append_message(self, message: UserMessage, parts: list[TextPart]) -> None:
        """Write parts, then the message, then bump the session's ``time.updated``.

        Raises BackendError for an unknown session so nothing is written
        that pruning could never reach.
        """
        session_file = self._find_session_file(message.session_id)
        session_data = self._read_json(session_file) if session_file else None
        if not isinstance(session_data, dict):
            raise BackendError(f"Session not found: {message.session_id}")

        # Parts first: a message file is only ever visible with its content.
        # Parts are reached through their message, so drop them if it is not written.
        part_dir = self.storage_path / "part" / message.id
        message_dir = self.storage_path / "message" / message.session_id
        try:
            part_dir.mkdir(parents=True, exist_ok=True)
            for part in parts:
                _write_json(part_dir / f"{part.id}.json", part_to_dict(part))
            message_dir.mkdir(parents=True, exist_ok=True)
            _write_json(message_dir / f"{message.id}.json", message_to_dict(message))
        except OSError:
            shutil.rmtree(part_dir, ignore_errors=True)
            raise

        time_data = session_data.get("time") if isinstance(session_data.get("time"), dict) else {}
        updated = time_data.get("updated")
        if not isinstance(updated, (int, float)) or updated < message.created:
            time_data["updated"] = message.created
        session_data["time"] = time_data
        _write_json(session_file, session_data)

    # ── Private helpers ──────────────────────────────────────────────

    def _json_files(self, directory: Path) -> list[Path]:
        """Return the *.json files of a directory sorted by name, [] if absent."""
        try:
            entries = list(directory.iterdir())
        except (FileNotFoundError, NotADirectoryError):
            return []
        return sorted(p for p in entries if p.suffix == ".json" and p.is_file())

    def _find_session_file(self, session_id: str) -> Path | None:
        """Locate ``session/<projectID>/<sessionID>.json`` without knowing the project."""
        matches = sorted((self.storage_path / "session").glob(f"*/{session_id}.json"))
        return matches[0] if matches else None

    def _read_json(self, path: Path) -> Any:
        """Load a JSON file; None if it is missing, not UTF-8 or not valid JSON."""
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError
            self.logger.warning("Skipping unreadable record", extra={"path": str(path), "error": str(e)})
            return None


def _parse_session_file(data: Any, session_id: str, project_id: str) -> SessionInfo:
    """Parse a session record, taking missing ids from its location."""
    session = parse_session(data)
    if not session.id:
        session.id = session_id
    if not session.project_id:
        session.project_id = project_id
    return session


def _write_json(path: Path, data: dict):
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _remove_file(path: Path) -> int:
    try:
        size = path.stat().st_size
        path.unlink()
    except FileNotFoundError:
        return 0
    return size


def _remove_tree(directory: Path) -> int:
    if not directory.is_dir():
        return 0
    size = sum(p.stat().st_size for p in directory.rglob("*") if p.is_file())
    try:
        shutil.rmtree(directory)
    except FileNotFoundError:
        return 0
    return size
