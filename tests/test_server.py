"""Tests for the FastAPI server."""

import pytest
from httpx import ASGITransport, AsyncClient

import opencode_sessions.server as srv
from opencode_sessions.server import app

from .conftest import WORKTREE


@pytest.fixture(autouse=True)
def reset_backend_cache():
    """Reset the backend cache before each test."""
    srv._backend = None
    srv._directory = None
    yield
    srv._backend = None
    srv._directory = None


@pytest.fixture
def served(tmp_opencode_dir, backend):
    srv.use_backend(backend, WORKTREE)
    return backend


def api_client():
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_get_sessions(served):
    async with api_client() as client:
        resp = await client.get("/api/sessions")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 2
        assert [s["id"] for s in data["sessions"]] == ["ses_001", "ses_002"]
        assert data["sessions"][0]["agents"] == ["build", "oracle"]


@pytest.mark.asyncio
async def test_get_sessions_with_limit_and_range(served):
    async with api_client() as client:
        resp = await client.get("/api/sessions", params={"limit": 1})
        assert [s["id"] for s in resp.json()["sessions"]] == ["ses_001"]

        resp = await client.get("/api/sessions", params={"to": "2025-01-22T00:00:00Z"})
        assert [s["id"] for s in resp.json()["sessions"]] == ["ses_002"]


@pytest.mark.asyncio
async def test_get_sessions_other_directory(served):
    async with api_client() as client:
        resp = await client.get("/api/sessions", params={"directory": "/elsewhere"})
        assert resp.status_code == 200
        assert resp.json() == {"total": 0, "sessions": []}


@pytest.mark.asyncio
async def test_search(served):
    async with api_client() as client:
        resp = await client.get("/api/search", params={"q": "users", "limit": 1})
        assert resp.status_code == 200
        data = resp.json()
        assert data["query"] == "users"
        assert len(data["results"]) == 1
        assert data["results"][0]["session_id"] == "ses_001"
        assert data["results"][0]["matches"][0]["excerpt"].startswith("...")


@pytest.mark.asyncio
async def test_search_requires_query(served):
    async with api_client() as client:
        resp = await client.get("/api/search")
        assert resp.status_code == 422


@pytest.mark.asyncio
async def test_get_session(served):
    async with api_client() as client:
        resp = await client.get("/api/session/ses_001")
        assert resp.status_code == 200
        data = resp.json()
        assert data["session"]["title"] == "Debug API endpoint"
        assert data["message_count"] == 3
        assert data["todo_count"] == 2
        assert data["completed_todos"] == 1
        assert data["messages"][0]["content"] == ["Why is the /api/users endpoint returning 500?"]
        # step markers render to nothing
        assert len(data["messages"][2]["content"]) == 3


@pytest.mark.asyncio
async def test_get_session_not_found(served):
    async with api_client() as client:
        resp = await client.get("/api/session/ses_nope")
        assert resp.status_code == 404


@pytest.mark.asyncio
async def test_storage_error(served, monkeypatch):
    async def broken(session_id):
        raise PermissionError("denied")

    monkeypatch.setattr(served, "get_session_messages", broken)

    async with api_client() as client:
        resp = await client.get("/api/session/ses_001")
        assert resp.status_code == 500


@pytest.mark.asyncio
async def test_export_markdown(served):
    async with api_client() as client:
        resp = await client.get("/api/export/ses_001")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/markdown")
        assert 'filename="Debug API endpoint.md"' in resp.headers["content-disposition"]
        assert resp.text.startswith("# Debug API endpoint")


@pytest.mark.asyncio
async def test_export_json(served):
    async with api_client() as client:
        resp = await client.get("/api/export/ses_001", params={"format": "json"})
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/json"
        assert resp.json()["session"]["id"] == "ses_001"


@pytest.mark.asyncio
async def test_backend_unavailable(monkeypatch):
    monkeypatch.setenv("OPENCODE_VERSION", "1.2.0")
    monkeypatch.delenv("OPENCODE_SERVER_URL", raising=False)

    async with api_client() as client:
        resp = await client.get("/api/sessions")
        assert resp.status_code == 503
