"""Read-only FastAPI app for inspecting a session store."""

from dataclasses import asdict
from datetime import datetime

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response

from .backend import BackendError, SessionBackend
from .backends import open_backend
from .config import get_opencode_version, get_server_url, get_workspace_path
from .export import load_transcript, render_part, session_to_json, session_to_markdown
from .logger import create_logger
from .search import DEFAULT_SEARCH_LIMIT, get_session_info, list_sessions, search_sessions

logger = create_logger(component="server")

app = FastAPI(title="opencode-sessions", version="0.1.0")

# Backend cache (opened on first request unless the CLI supplies one)
_backend: SessionBackend | None = None
_directory: str | None = None


def use_backend(backend: SessionBackend, directory: str | None = None):
    """Serve ``backend`` instead of opening one from the environment."""
    global _backend, _directory
    _backend = backend
    _directory = directory


def _get_backend() -> SessionBackend:
    """Lazily open and cache the backend."""
    global _backend
    if _backend is None:
        try:
            _backend = open_backend(
                logger,
                version=get_opencode_version(),
                server_url=get_server_url(),
                directory=_resolve_directory(None),
            )
        except BackendError as e:
            logger.error("Failed to open session storage", extra={"error": str(e)})
            raise HTTPException(status_code=503, detail="Session storage unavailable")
        logger.info("Opened session storage", extra={"backend": _backend.name})
    return _backend


def _resolve_directory(directory: str | None) -> str:
    return directory or _directory or get_workspace_path()


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/sessions")
async def get_sessions(
    directory: str | None = Query(None, description="Workspace directory"),
    limit: int | None = Query(None, ge=1, le=1000),
    from_date: datetime | None = Query(None, alias="from", description="Created on or after"),
    to_date: datetime | None = Query(None, alias="to", description="Created on or before"),
):
    """Return main sessions, most recently updated first."""
    directory = _resolve_directory(directory)
    try:
        sessions = await list_sessions(
            _get_backend(), directory, logger, limit=limit, from_date=from_date, to_date=to_date,
        )
    except (OSError, BackendError) as e:
        logger.error("Failed to list sessions", extra={"directory": directory, "error": str(e)})
        raise HTTPException(status_code=500, detail="Failed to list sessions")

    return {
        "total": len(sessions),
        "sessions": [asdict(s) for s in sessions],
    }


@app.get("/api/search")
async def search(
    q: str = Query(..., min_length=1, description="Substring to look for"),
    directory: str | None = Query(None),
    limit: int = Query(DEFAULT_SEARCH_LIMIT, ge=1, le=1000),
    case_sensitive: bool = Query(False),
    session_id: str | None = Query(None),
):
    """Search session content."""
    directory = _resolve_directory(directory)
    try:
        results = await search_sessions(
            _get_backend(), q, directory, logger,
            limit=limit, case_sensitive=case_sensitive, session_id=session_id,
        )
    except (OSError, BackendError) as e:
        logger.error("Failed to search sessions", extra={"query": q, "error": str(e)})
        raise HTTPException(status_code=500, detail="Failed to search sessions")

    return {"query": q, "results": [asdict(r) for r in results]}


async def _load_session(session_id: str, directory: str | None):
    backend = _get_backend()
    directory = _resolve_directory(directory)
    try:
        project = await backend.find_project_by_directory(directory)
        details = await get_session_info(backend, session_id, project.id, logger) if project else None
        if details is None:
            raise HTTPException(status_code=404, detail="Session not found")
        transcript = await load_transcript(backend, session_id)
    except (OSError, BackendError) as e:
        logger.error("Failed to load session", extra={"sessionId": session_id, "error": str(e)})
        raise HTTPException(status_code=500, detail="Failed to load session")
    return details, transcript


@app.get("/api/session/{session_id}")
async def get_session(session_id: str, directory: str | None = Query(None)):
    """Return a session's details and messages."""
    details, transcript = await _load_session(session_id, directory)
    return {
        "session": asdict(details.session),
        "message_count": details.message_count,
        "agents": details.agents,
        "todo_count": details.todo_count,
        "completed_todos": details.completed_todos,
        "messages": [
            {
                "id": message.id,
                "role": message.role,
                "agent": message.agent or None,
                "created": message.created,
                "content": [text for text in map(render_part, parts) if text],
            }
            for message, parts in transcript
        ],
    }


@app.get("/api/export/{session_id}")
async def export_session(
    session_id: str,
    directory: str | None = Query(None),
    format: str = Query("md", description="Export format: md or json"),
):
    """Export a session as Markdown or JSON."""
    details, transcript = await _load_session(session_id, directory)
    session = details.session
    safe_title = "".join(c if c.isalnum() or c in "-_ " else "" for c in session.title)[:50] or session.id

    if format == "json":
        return Response(
            content=session_to_json(session, transcript),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{safe_title}.json"'},
        )
    return Response(
        content=session_to_markdown(session, transcript),
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{safe_title}.md"'},
    )
