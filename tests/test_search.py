"""Tests for session listing and search."""

from datetime import datetime, timedelta, timezone

import pytest

from opencode_sessions.core import (
    ReasoningPart,
    StepFinishPart,
    TextPart,
    ToolCompleted,
    ToolError,
    ToolPart,
    ToolRunning,
)
from opencode_sessions.search import (
    extract_agents,
    get_session_info,
    list_sessions,
    make_excerpt,
    search_sessions,
    searchable_text,
)

from .conftest import T0, WORKTREE


class TestListSessions:
    @pytest.mark.asyncio
    async def test_main_sessions_newest_first(self, tmp_opencode_dir, backend, logger):
        sessions = await list_sessions(backend, WORKTREE, logger)

        assert [s.id for s in sessions] == ["ses_001", "ses_002"]
        assert sessions[0].message_count == 3
        assert sessions[0].agents == ["build", "oracle"]
        assert sessions[0].title == "Debug API endpoint"
        assert sessions[1].agents == ["plan"]

    @pytest.mark.asyncio
    async def test_limit(self, tmp_opencode_dir, backend, logger):
        sessions = await list_sessions(backend, WORKTREE, logger, limit=1)
        assert [s.id for s in sessions] == ["ses_001"]

    @pytest.mark.asyncio
    async def test_date_range(self, tmp_opencode_dir, backend, logger):
        t0 = datetime.fromtimestamp(T0 / 1000, tz=timezone.utc)

        recent = await list_sessions(backend, WORKTREE, logger, from_date=t0)
        older = await list_sessions(backend, WORKTREE, logger, to_date=t0 - timedelta(hours=1))

        assert [s.id for s in recent] == ["ses_001"]
        assert [s.id for s in older] == ["ses_002"]

    @pytest.mark.asyncio
    async def test_unknown_directory(self, tmp_opencode_dir, backend, logger):
        assert await list_sessions(backend, "/not/a/project", logger) == []

    def test_extract_agents_skips_empty(self):
        class Msg:
            def __init__(self, agent):
                self.agent = agent

        assert extract_agents([Msg("build"), Msg(""), Msg("plan"), Msg("build")]) == ["build", "plan"]


class TestSearchSessions:
    @pytest.mark.asyncio
    async def test_matches_text_reasoning_and_tool_output(self, tmp_opencode_dir, backend, logger):
        results = await search_sessions(backend, "users", WORKTREE, logger)

        assert [r.session_id for r in results] == ["ses_001", "ses_002"]
        assert [m.part_id for m in results[0].matches] == ["prt_001", "prt_004", "prt_005"]
        first = results[0].matches[0]
        assert first.message_id == "msg_001"
        assert first.role == "user"
        assert first.agent == "build"
        assert "/api/users" in first.excerpt

    @pytest.mark.asyncio
    async def test_child_sessions_not_searched(self, tmp_opencode_dir, backend, logger):
        results = await search_sessions(backend, "touching the users table", WORKTREE, logger)
        assert results == []

    @pytest.mark.asyncio
    async def test_limit_is_a_global_budget(self, tmp_opencode_dir, backend, logger):
        results = await search_sessions(backend, "users", WORKTREE, logger, limit=1)

        assert len(results) == 1
        assert results[0].session_id == "ses_001"
        assert len(results[0].matches) == 1

    @pytest.mark.asyncio
    async def test_stops_once_budget_is_spent(self, tmp_opencode_dir, backend, logger):
        results = await search_sessions(backend, "users", WORKTREE, logger, limit=3)
        assert [r.session_id for r in results] == ["ses_001"]

        results = await search_sessions(backend, "users", WORKTREE, logger, limit=4)
        assert [(r.session_id, len(r.matches)) for r in results] == [("ses_001", 3), ("ses_002", 1)]

    @pytest.mark.asyncio
    async def test_case_sensitivity(self, tmp_opencode_dir, backend, logger):
        assert await search_sessions(backend, "USERS", WORKTREE, logger, case_sensitive=True) == []

        results = await search_sessions(backend, "SELECT", WORKTREE, logger, case_sensitive=True)
        assert [m.part_id for r in results for m in r.matches] == ["prt_005"]

        results = await search_sessions(backend, "USERS", WORKTREE, logger)
        assert sum(len(r.matches) for r in results) == 4

    @pytest.mark.asyncio
    async def test_running_tools_are_not_searched(self, tmp_opencode_dir, backend, logger):
        assert await search_sessions(backend, "npm test", WORKTREE, logger) == []

    @pytest.mark.asyncio
    async def test_single_session(self, tmp_opencode_dir, backend, logger):
        results = await search_sessions(backend, "users", WORKTREE, logger, session_id="ses_003")

        assert len(results) == 1
        assert results[0].session_id == "ses_003"
        assert results[0].matches[0].agent == "explore"

    @pytest.mark.asyncio
    async def test_single_session_respects_limit(self, tmp_opencode_dir, backend, logger):
        results = await search_sessions(backend, "users", WORKTREE, logger, limit=2, session_id="ses_001")
        assert len(results[0].matches) == 2

    @pytest.mark.asyncio
    async def test_no_project(self, backend, logger):
        assert await search_sessions(backend, "users", WORKTREE, logger) == []


class TestExcerpt:
    def test_window_around_match(self):
        text = "a" * 100 + "needle" + "b" * 100
        excerpt = make_excerpt(text, 100)
        assert excerpt == "..." + "a" * 50 + "needle" + "b" * 44 + "..."

    def test_clamped_at_edges(self):
        assert make_excerpt("short needle text", 6) == "...short needle text..."

    def test_custom_radius(self):
        assert make_excerpt("0123456789", 5, radius=2) == "...3456..."


class TestSearchableText:
    def test_kinds(self):
        ids = {"id": "prt_1", "session_id": "ses_1", "message_id": "msg_1"}

        assert searchable_text(TextPart(**ids, text="hello")) == "hello"
        assert searchable_text(ReasoningPart(**ids, reasoning="thinking")) == "thinking"
        assert searchable_text(ToolPart(**ids, tool="grep", state=ToolCompleted(output="hit"))) == "grep: hit"
        assert searchable_text(ToolPart(**ids, tool="bash", state=ToolRunning())) is None
        assert searchable_text(ToolPart(**ids, tool="bash", state=ToolError(error="boom"))) is None
        assert searchable_text(StepFinishPart(**ids)) is None


class TestGetSessionInfo:
    @pytest.mark.asyncio
    async def test_counts(self, tmp_opencode_dir, backend, logger):
        details = await get_session_info(backend, "ses_001", "proj1", logger)

        assert details.session.id == "ses_001"
        assert details.message_count == 3
        assert details.agents == ["build", "oracle"]
        assert details.todo_count == 2
        assert details.completed_todos == 1
        assert details.has_todos

    @pytest.mark.asyncio
    async def test_without_todos(self, tmp_opencode_dir, backend, logger):
        details = await get_session_info(backend, "ses_002", "proj1", logger)
        assert details.todo_count == 0
        assert not details.has_todos

    @pytest.mark.asyncio
    async def test_missing(self, tmp_opencode_dir, backend, logger):
        assert await get_session_info(backend, "ses_nope", "proj1", logger) is None
