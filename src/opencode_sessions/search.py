"""Session listing and content search.

Listings show the most recently active main sessions first. Search is a
plain substring scan over message parts, capped by a global match budget,
so a prompt can point an agent at relevant prior work without replaying
whole histories.
"""

from datetime import datetime

from .backend import SessionBackend
from .core import (
    Message,
    Part,
    ReasoningPart,
    SessionDetails,
    SessionMatch,
    SessionSearchResult,
    SessionSummary,
    TextPart,
    ToolCompleted,
    ToolPart,
    datetime_to_ms,
)
from .logger import Logger

EXCERPT_RADIUS = 50
DEFAULT_SEARCH_LIMIT = 20


async def list_sessions(
    backend: SessionBackend,
    directory: str,
    logger: Logger,
    *,
    limit: int | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
) -> list[SessionSummary]:
    """List main sessions for a directory, most recently updated first.

    Child sessions are never listed. ``from_date``/``to_date`` bound the
    creation time (inclusive).
    """
    logger.debug("Listing sessions", extra={"directory": directory, "limit": limit})

    project = await backend.find_project_by_directory(directory)
    if project is None:
        logger.debug("No project found for directory", extra={"directory": directory})
        return []

    from_ms = datetime_to_ms(from_date) if from_date else None
    to_ms = datetime_to_ms(to_date) if to_date else None

    sessions = [
        s
        for s in await backend.list_sessions_for_project(project.id)
        if s.parent_id is None
        and (from_ms is None or s.created >= from_ms)
        and (to_ms is None or s.created <= to_ms)
    ]
    sessions.sort(key=lambda s: s.updated, reverse=True)
    if limit is not None:
        sessions = sessions[:limit]

    summaries = []
    for session in sessions:
        messages = await backend.get_session_messages(session.id)
        summaries.append(SessionSummary(
            id=session.id,
            project_id=session.project_id,
            directory=session.directory,
            title=session.title,
            created=session.created,
            updated=session.updated,
            message_count=len(messages),
            agents=extract_agents(messages),
        ))

    logger.info("Listed sessions", extra={"count": len(summaries), "directory": directory})
    return summaries


def extract_agents(messages: list[Message]) -> list[str]:
    """Distinct agent names in first-seen order."""
    agents = []
    for message in messages:
        if message.agent and message.agent not in agents:
            agents.append(message.agent)
    return agents


async def search_sessions(
    backend: SessionBackend,
    query: str,
    directory: str,
    logger: Logger,
    *,
    limit: int = DEFAULT_SEARCH_LIMIT,
    case_sensitive: bool = False,
    session_id: str | None = None,
) -> list[SessionSearchResult]:
    """Find sessions whose text, reasoning or tool output contains ``query``.

    At most ``limit`` matches are returned in total. Sessions are scanned
    in listing order (most recent first) and scanning stops once the
    budget is spent.
    """
    logger.debug("Searching sessions", extra={
        "query": query,
        "directory": directory,
        "limit": limit,
        "caseSensitive": case_sensitive,
    })

    pattern = query if case_sensitive else query.lower()
    results = []
    total = 0

    if session_id is not None:
        matches = await _search_session_content(backend, session_id, pattern, case_sensitive)
        if matches and limit > 0:
            results.append(SessionSearchResult(session_id=session_id, matches=matches[:limit]))
        return results

    for session in await list_sessions(backend, directory, logger):
        if total >= limit:
            break

        matches = await _search_session_content(backend, session.id, pattern, case_sensitive)
        if matches:
            remaining = limit - total
            results.append(SessionSearchResult(session_id=session.id, matches=matches[:remaining]))
            total += min(len(matches), remaining)

    logger.info("Session search complete", extra={
        "query": query,
        "resultCount": len(results),
        "totalMatches": total,
    })
    return results


async def _search_session_content(
    backend: SessionBackend,
    session_id: str,
    pattern: str,
    case_sensitive: bool,
) -> list[SessionMatch]:
    matches = []
    for message in await backend.get_session_messages(session_id):
        for part in await backend.get_message_parts(message.id):
            text = searchable_text(part)
            if text is None:
                continue

            haystack = text if case_sensitive else text.lower()
            index = haystack.find(pattern)
            if index < 0:
                continue

            matches.append(SessionMatch(
                message_id=message.id,
                part_id=part.id,
                excerpt=make_excerpt(text, index),
                role=message.role,
                agent=message.agent or None,
            ))
    return matches


def make_excerpt(text: str, index: int, radius: int = EXCERPT_RADIUS) -> str:
    """Return ``radius`` characters either side of ``index`` wrapped in ellipses."""
    start = max(0, index - radius)
    end = min(len(text), index + radius)
    return f"...{text[start:end]}..."


def searchable_text(part: Part) -> str | None:
    """Text of a part that search should look at, or None."""
    if isinstance(part, TextPart):
        return part.text
    if isinstance(part, ReasoningPart):
        return part.reasoning
    if isinstance(part, ToolPart):
        if isinstance(part.state, ToolCompleted):
            return f"{part.tool}: {part.state.output}"
        return None
    # step-finish markers carry no content
    return None


async def get_session_info(
    backend: SessionBackend,
    session_id: str,
    project_id: str,
    logger: Logger,
) -> SessionDetails | None:
    """Session record plus message, agent and todo counts."""
    session = await backend.get_session(project_id, session_id)
    if session is None:
        logger.debug("Session not found", extra={"sessionId": session_id, "projectId": project_id})
        return None

    messages = await backend.get_session_messages(session_id)
    todos = await backend.get_session_todos(session_id)
    return SessionDetails(
        session=session,
        message_count=len(messages),
        agents=extract_agents(messages),
        todo_count=len(todos),
        completed_todos=sum(1 for todo in todos if todo.status == "completed"),
    )
