"""Shared test fixtures for opencode-sessions."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from opencode_sessions.backends.json_files import JsonFileBackend

WORKTREE = "/home/runner/work/api-server/api-server"

T0 = int(datetime(2025, 1, 22, 8, 0, 0, tzinfo=timezone.utc).timestamp() * 1000)


def ms_ago(days: float) -> int:
    """Epoch milliseconds ``days`` before now."""
    return int((datetime.now(timezone.utc) - timedelta(days=days)).timestamp() * 1000)


class StorageBuilder:
    """Writes records into a flat-file OpenCode storage tree."""

    def __init__(self, root):
        self.root = root
        root.mkdir(parents=True, exist_ok=True)

    def _write(self, relative: str, data) -> None:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def project(self, project_id="proj1", worktree=WORKTREE):
        self._write(f"project/{project_id}.json", {
            "id": project_id,
            "worktree": worktree,
            "vcs": "git",
            "time": {"created": T0, "updated": T0},
        })
        return project_id

    def session(self, session_id, *, project_id="proj1", created=T0, updated=None, parent_id=None, title=None):
        data = {
            "id": session_id,
            "version": "1.1.34",
            "projectID": project_id,
            "directory": WORKTREE,
            "title": title or f"Session {session_id}",
            "time": {"created": created, "updated": updated if updated is not None else created},
        }
        if parent_id:
            data["parentID"] = parent_id
        self._write(f"session/{project_id}/{session_id}.json", data)
        return session_id

    def user_message(self, session_id, message_id, *, created=T0, agent="build"):
        self._write(f"message/{session_id}/{message_id}.json", {
            "id": message_id,
            "sessionID": session_id,
            "role": "user",
            "time": {"created": created},
            "agent": agent,
            "model": {"providerID": "anthropic", "modelID": "claude-sonnet-4"},
        })
        return message_id

    def assistant_message(self, session_id, message_id, *, created=T0, agent="build", parent_id=""):
        self._write(f"message/{session_id}/{message_id}.json", {
            "id": message_id,
            "sessionID": session_id,
            "role": "assistant",
            "time": {"created": created, "completed": created + 1000},
            "parentID": parent_id,
            "modelID": "claude-sonnet-4",
            "providerID": "anthropic",
            "mode": agent,
            "agent": agent,
            "path": {"cwd": WORKTREE, "root": WORKTREE},
            "cost": 0.012,
            "tokens": {"input": 1200, "output": 300, "reasoning": 0, "cache": {"read": 50, "write": 10}},
            "finish": "stop",
        })
        return message_id

    def part(self, session_id, message_id, part_id, data):
        self._write(f"part/{message_id}/{part_id}.json", {
            "id": part_id,
            "sessionID": session_id,
            "messageID": message_id,
            **data,
        })
        return part_id

    def text(self, session_id, message_id, part_id, text):
        return self.part(session_id, message_id, part_id, {"type": "text", "text": text})

    def todos(self, session_id, items):
        self._write(f"todo/{session_id}.json", items)


@pytest.fixture
def logger():
    """Stand-in for the injected logger; calls can be asserted."""
    return MagicMock()


@pytest.fixture
def storage(tmp_path):
    """An empty storage tree with a builder for records."""
    return StorageBuilder(tmp_path / "storage")


@pytest.fixture
def backend(storage, logger):
    return JsonFileBackend(storage.root, logger)


@pytest.fixture
def tmp_opencode_dir(storage):
    """A realistic storage tree: two main sessions, one child, parts of every kind."""
    storage.project()

    storage.session("ses_001", created=T0, updated=T0 + 1_800_000, title="Debug API endpoint")
    storage.session("ses_002", created=T0 - 86_400_000, updated=T0 - 86_000_000, title="Add pagination")
    storage.session("ses_003", created=T0 + 60_000, updated=T0 + 120_000, parent_id="ses_001",
                    title="Explore database layer")

    # ses_001: a user question, an answer, a tool call with reasoning
    storage.user_message("ses_001", "msg_001", created=T0)
    storage.text("ses_001", "msg_001", "prt_001", "Why is the /api/users endpoint returning 500?")

    storage.assistant_message("ses_001", "msg_002", created=T0 + 30_000, parent_id="msg_001")
    storage.text("ses_001", "msg_002", "prt_002", "The error is in the database query. Let me check the logs.")

    storage.assistant_message("ses_001", "msg_003", created=T0 + 60_000, agent="oracle", parent_id="msg_001")
    storage.part("ses_001", "msg_003", "prt_003", {"type": "step-start", "snapshot": "abc123"})
    storage.part("ses_001", "msg_003", "prt_004", {
        "type": "reasoning",
        "text": "The users query probably joins on a dropped column.",
        "time": {"start": T0 + 60_000, "end": T0 + 61_000},
    })
    storage.part("ses_001", "msg_003", "prt_005", {
        "type": "tool",
        "callID": "call_1",
        "tool": "grep",
        "state": {
            "status": "completed",
            "input": {"pattern": "SELECT.*FROM users"},
            "output": "src/db.ts:15: SELECT * FROM users WHERE id = $1",
            "title": "SELECT.*FROM users",
            "metadata": {"matches": 1},
            "time": {"start": T0 + 61_000, "end": T0 + 62_000},
        },
    })
    storage.part("ses_001", "msg_003", "prt_006", {
        "type": "tool",
        "callID": "call_2",
        "tool": "bash",
        "state": {"status": "running", "input": {"command": "npm test users"}, "time": {"start": T0 + 63_000}},
    })
    storage.part("ses_001", "msg_003", "prt_007", {
        "type": "step-finish",
        "reason": "tool-calls",
        "cost": 0.003,
        "tokens": {"input": 10, "output": 5, "reasoning": 0, "cache": {"read": 0, "write": 0}},
    })
    storage.todos("ses_001", [
        {"id": "1", "content": "Find failing query", "status": "completed", "priority": "high"},
        {"id": "2", "content": "Add regression test", "status": "in_progress", "priority": "medium"},
    ])

    # ses_002: older session mentioning pagination
    storage.user_message("ses_002", "msg_101", created=T0 - 86_400_000, agent="plan")
    storage.text("ses_002", "msg_101", "prt_101", "Add cursor pagination to /api/users")

    # ses_003: child session, also mentions users
    storage.user_message("ses_003", "msg_201", created=T0 + 60_000, agent="explore")
    storage.text("ses_003", "msg_201", "prt_201", "Map every query touching the users table")

    return storage.root
