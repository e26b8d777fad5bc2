"""Render a session transcript as Markdown or JSON."""

import json
from dataclasses import asdict

from .backend import SessionBackend
from .core import (
    Message,
    Part,
    ReasoningPart,
    SessionInfo,
    TextPart,
    ToolCompleted,
    ToolError,
    ToolPart,
    ms_to_datetime,
)

Transcript = list[tuple[Message, list[Part]]]


async def load_transcript(backend: SessionBackend, session_id: str) -> Transcript:
    """Messages of a session, oldest first, each with its parts."""
    transcript = []
    for message in await backend.get_session_messages(session_id):
        transcript.append((message, await backend.get_message_parts(message.id)))
    return transcript


def render_part(part: Part) -> str | None:
    """Markdown for one part, or None for parts with nothing to show."""
    if isinstance(part, TextPart):
        return part.text or None
    if isinstance(part, ReasoningPart):
        if not part.reasoning:
            return None
        return "\n".join(f"> {line}" for line in part.reasoning.splitlines())
    if isinstance(part, ToolPart):
        state = part.state
        if isinstance(state, ToolCompleted):
            title = f" {state.title}" if state.title else ""
            return f"[Tool: {part.tool}{title}]\n```\n{state.output}\n```"
        if isinstance(state, ToolError):
            return f"[Tool: {part.tool} failed]\n```\n{state.error}\n```"
        return f"[Tool: {part.tool} ({state.status})]"
    # step-finish
    return None


def _iso(ms: int | None) -> str | None:
    value = ms_to_datetime(ms) if ms else None
    return value.isoformat() if value else None


def session_to_markdown(session: SessionInfo, transcript: Transcript) -> str:
    """Export a session and its messages as clean Markdown."""
    lines = [f"# {session.title or 'Untitled'}", ""]

    lines.append(f"**Session:** {session.id}")
    if session.directory:
        lines.append(f"**Directory:** {session.directory}")
    if session.parent_id:
        lines.append(f"**Parent:** {session.parent_id}")
    if session.created:
        lines.append(f"**Created:** {_iso(session.created)}")
    if session.updated:
        lines.append(f"**Updated:** {_iso(session.updated)}")
    lines.append(f"**Messages:** {len(transcript)}")
    lines.extend(["", "---", ""])

    for message, parts in transcript:
        role_label = message.role.capitalize()
        if message.agent:
            role_label += f" ({message.agent})"
        when = ms_to_datetime(message.created) if message.created else None
        ts = f" ({when.strftime('%Y-%m-%d %H:%M')})" if when else ""
        lines.append(f"## {role_label}{ts}")
        lines.append("")
        rendered = [text for text in map(render_part, parts) if text]
        lines.append("\n\n".join(rendered) if rendered else "_(no content)_")
        lines.extend(["", "---", ""])

    return "\n".join(lines)


def session_to_json(session: SessionInfo, transcript: Transcript) -> str:
    """Export a session and its messages as structured JSON."""
    data = {
        "session": {
            **asdict(session),
            "created": _iso(session.created),
            "updated": _iso(session.updated),
        },
        "messages": [
            {**asdict(message), "parts": [asdict(part) for part in parts]}
            for message, parts in transcript
        ],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)
