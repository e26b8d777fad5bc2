"""Conversion between OpenCode JSON records and the dataclasses in ``core``.

Parsing is lenient: a field with the wrong type or no value falls back to a
neutral default so one odd record never breaks a listing. Both the camelCase
``...ID`` spelling OpenCode writes and the ``...Id`` spelling some SDK
responses use are accepted.
"""

from typing import Any

from .core import (
    AssistantMessage,
    FileDiff,
    Message,
    MessageError,
    Part,
    Project,
    ReasoningPart,
    SessionDiffSummary,
    SessionInfo,
    SessionRevert,
    StepFinishPart,
    TextPart,
    TodoItem,
    TokenCounts,
    ToolCompleted,
    ToolError,
    ToolPart,
    ToolPending,
    ToolRunning,
    ToolState,
    UserMessage,
)

TODO_STATUSES = ("pending", "in_progress", "completed", "cancelled")
TODO_PRIORITIES = ("high", "medium", "low")


def _record(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _num(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    return value if isinstance(value, (int, float)) else None


def _bool(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def _id(data: dict, key: str) -> str | None:
    """Read ``fooID`` or its ``fooId`` spelling."""
    return _str(data.get(key)) or _str(data.get(key[:-2] + "Id"))


def _diffs(value: Any) -> list[FileDiff] | None:
    if not isinstance(value, list):
        return None
    return [
        FileDiff(
            file=_str(entry.get("file")) or "",
            additions=_num(entry.get("additions")) or 0,
            deletions=_num(entry.get("deletions")) or 0,
        )
        for entry in value
        if isinstance(entry, dict)
    ]


def _tokens(value: Any) -> TokenCounts:
    tokens = _record(value)
    cache = _record(tokens.get("cache"))
    return TokenCounts(
        input=_num(tokens.get("input")) or 0,
        output=_num(tokens.get("output")) or 0,
        reasoning=_num(tokens.get("reasoning")) or 0,
        cache_read=_num(cache.get("read")) or 0,
        cache_write=_num(cache.get("write")) or 0,
    )


# ── Projects & sessions ───────────────────────────────────────────


def parse_project(data: Any) -> Project | None:
    """Parse a project record; None when it has no id or worktree."""
    data = _record(data)
    project_id = _str(data.get("id"))
    worktree = _str(data.get("worktree")) or _str(data.get("path"))
    if not project_id or worktree is None:
        return None

    time_data = _record(data.get("time"))
    return Project(
        id=project_id,
        worktree=worktree,
        vcs=_str(data.get("vcs")) or "",
        created=_num(time_data.get("created")) or 0,
        updated=_num(time_data.get("updated")) or 0,
        initialized=_num(time_data.get("initialized")),
    )


def parse_session(data: Any) -> SessionInfo:
    data = _record(data)
    time_data = _record(data.get("time"))

    summary = None
    if isinstance(data.get("summary"), dict):
        raw = data["summary"]
        summary = SessionDiffSummary(
            additions=_num(raw.get("additions")) or 0,
            deletions=_num(raw.get("deletions")) or 0,
            files=_num(raw.get("files")) or 0,
            diffs=_diffs(raw.get("diffs")) or [],
        )

    revert = None
    if isinstance(data.get("revert"), dict):
        raw = data["revert"]
        revert = SessionRevert(
            message_id=_id(raw, "messageID") or "",
            part_id=_id(raw, "partID"),
            snapshot=_str(raw.get("snapshot")),
            diff=_str(raw.get("diff")),
        )

    permission = None
    if isinstance(data.get("permission"), dict):
        rules = data["permission"].get("rules")
        permission = rules if isinstance(rules, list) else []

    return SessionInfo(
        id=_str(data.get("id")) or "",
        project_id=_id(data, "projectID") or "",
        directory=_str(data.get("directory")) or "",
        title=_str(data.get("title")) or "",
        version=_str(data.get("version")) or "",
        parent_id=_id(data, "parentID"),
        created=_num(time_data.get("created")) or 0,
        updated=_num(time_data.get("updated")) or 0,
        compacting=_num(time_data.get("compacting")),
        archived=_num(time_data.get("archived")),
        summary=summary,
        share_url=_str(_record(data.get("share")).get("url")),
        permission=permission,
        revert=revert,
    )


# ── Messages ──────────────────────────────────────────────────────


def _parse_user_message(data: dict) -> UserMessage:
    model = _record(data.get("model"))
    summary = _record(data.get("summary"))
    return UserMessage(
        id=_str(data.get("id")) or "",
        session_id=_id(data, "sessionID") or "",
        created=_num(_record(data.get("time")).get("created")) or 0,
        agent=_str(data.get("agent")) or "",
        provider_id=_id(model, "providerID") or _id(data, "providerID") or "",
        model_id=_id(model, "modelID") or _id(data, "modelID") or "",
        summary_title=_str(summary.get("title")),
        summary_body=_str(summary.get("body")),
        summary_diffs=_diffs(summary.get("diffs")),
        system=_str(data.get("system")),
        tools=data.get("tools") if isinstance(data.get("tools"), dict) else None,
        variant=_str(data.get("variant")),
    )


def _parse_assistant_message(data: dict) -> AssistantMessage:
    time_data = _record(data.get("time"))
    path = _record(data.get("path"))

    error = None
    if isinstance(data.get("error"), dict):
        raw = data["error"]
        # OpenCode nests the human-readable text under error.data.message
        message = _str(raw.get("message")) or _str(_record(raw.get("data")).get("message")) or ""
        error = MessageError(name=_str(raw.get("name")) or "", message=message)

    return AssistantMessage(
        id=_str(data.get("id")) or "",
        session_id=_id(data, "sessionID") or "",
        created=_num(time_data.get("created")) or 0,
        completed=_num(time_data.get("completed")),
        parent_id=_id(data, "parentID") or "",
        provider_id=_id(data, "providerID") or "",
        model_id=_id(data, "modelID") or "",
        mode=_str(data.get("mode")) or "",
        agent=_str(data.get("agent")) or _str(data.get("mode")) or "",
        cwd=_str(path.get("cwd")) or "",
        root=_str(path.get("root")) or "",
        summary=_bool(data.get("summary")),
        cost=_num(data.get("cost")) or 0,
        tokens=_tokens(data.get("tokens")),
        finish=_str(data.get("finish")),
        error=error,
    )


def parse_message(data: Any) -> Message:
    """Parse a message record, unwrapping the server's ``{info, parts}`` shape."""
    data = _record(data)
    if isinstance(data.get("info"), dict):
        data = data["info"]

    if data.get("role") == "assistant":
        return _parse_assistant_message(data)
    return _parse_user_message(data)


# ── Parts ─────────────────────────────────────────────────────────


def _parse_tool_state(data: dict) -> ToolState:
    status = _str(data.get("status")) or "pending"
    time_data = _record(data.get("time"))
    tool_input = _record(data.get("input"))

    if status == "completed":
        return ToolCompleted(
            input=tool_input,
            output=_str(data.get("output")) or "",
            title=_str(data.get("title")) or "",
            metadata=_record(data.get("metadata")),
            start=_num(time_data.get("start")) or 0,
            end=_num(time_data.get("end")) or 0,
            compacted=_num(time_data.get("compacted")),
        )
    if status == "running":
        return ToolRunning(input=tool_input, start=_num(time_data.get("start")) or 0)
    if status == "error":
        return ToolError(
            input=tool_input,
            error=_str(data.get("error")) or "",
            start=_num(time_data.get("start")) or 0,
            end=_num(time_data.get("end")) or 0,
        )
    return ToolPending()


def parse_part(data: Any) -> Part:
    data = _record(data)
    part_id = _str(data.get("id")) or ""
    session_id = _id(data, "sessionID") or ""
    message_id = _id(data, "messageID") or ""
    part_type = _str(data.get("type"))
    time_data = data.get("time") if isinstance(data.get("time"), dict) else None

    if part_type == "tool":
        state = data.get("state") if isinstance(data.get("state"), dict) else {"status": "pending"}
        return ToolPart(
            id=part_id,
            session_id=session_id,
            message_id=message_id,
            call_id=_id(data, "callID") or "",
            tool=_str(data.get("tool")) or "",
            state=_parse_tool_state(state),
            metadata=data.get("metadata") if isinstance(data.get("metadata"), dict) else None,
        )
    if part_type == "reasoning":
        # Current runtimes store reasoning under "text"
        return ReasoningPart(
            id=part_id,
            session_id=session_id,
            message_id=message_id,
            reasoning=_str(data.get("reasoning")) or _str(data.get("text")) or "",
            start=_num(time_data.get("start")) if time_data else None,
            end=_num(time_data.get("end")) if time_data else None,
        )
    if part_type == "step-finish":
        return StepFinishPart(
            id=part_id,
            session_id=session_id,
            message_id=message_id,
            reason=_str(data.get("reason")) or "",
            snapshot=_str(data.get("snapshot")),
            cost=_num(data.get("cost")) or 0,
            tokens=_tokens(data.get("tokens")),
        )

    # "text" and anything unknown
    return TextPart(
        id=part_id,
        session_id=session_id,
        message_id=message_id,
        text=_str(data.get("text")) or "",
        synthetic=_bool(data.get("synthetic")) if part_type == "text" else None,
        ignored=_bool(data.get("ignored")) if part_type == "text" else None,
        start=_num(time_data.get("start")) if time_data else None,
        end=_num(time_data.get("end")) if time_data else None,
        metadata=data.get("metadata") if isinstance(data.get("metadata"), dict) else None,
    )


def parse_todo(data: Any) -> TodoItem | None:
    """Parse a todo entry; None when content, status or priority is missing."""
    data = _record(data)
    content = _str(data.get("content"))
    status = _str(data.get("status"))
    priority = _str(data.get("priority"))
    if content is None or status is None or priority is None:
        return None

    return TodoItem(
        id=_str(data.get("id")) or "",
        content=content,
        status=status if status in TODO_STATUSES else "pending",
        priority=priority if priority in TODO_PRIORITIES else "medium",
    )


# ── Serialisation (records we write) ──────────────────────────────


def message_to_dict(message: UserMessage) -> dict:
    """Serialise a user message in OpenCode's on-disk shape."""
    data = {
        "id": message.id,
        "sessionID": message.session_id,
        "role": "user",
        "time": {"created": message.created},
    }
    if message.summary_title is not None or message.summary_body is not None:
        summary = {"diffs": [vars(diff) for diff in message.summary_diffs or []]}
        if message.summary_title is not None:
            summary["title"] = message.summary_title
        if message.summary_body is not None:
            summary["body"] = message.summary_body
        data["summary"] = summary
    data["agent"] = message.agent
    data["model"] = {"providerID": message.provider_id, "modelID": message.model_id}
    if message.system is not None:
        data["system"] = message.system
    if message.tools is not None:
        data["tools"] = message.tools
    if message.variant is not None:
        data["variant"] = message.variant
    return data


def part_to_dict(part: TextPart) -> dict:
    """Serialise a text part in OpenCode's on-disk shape."""
    data = {
        "id": part.id,
        "sessionID": part.session_id,
        "messageID": part.message_id,
        "type": "text",
        "text": part.text,
    }
    if part.synthetic is not None:
        data["synthetic"] = part.synthetic
    if part.ignored is not None:
        data["ignored"] = part.ignored
    if part.start is not None:
        data["time"] = {"start": part.start}
        if part.end is not None:
            data["time"]["end"] = part.end
    if part.metadata is not None:
        data["metadata"] = part.metadata
    return data
