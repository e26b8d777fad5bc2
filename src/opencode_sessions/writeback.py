"""Append a run summary to a session's history.

The summary is stored as a synthetic user message so later runs find it
with ordinary session search: which CI run touched the session, what it
created, what it cost. The ``agent`` and ``model`` stamps mark it as CI
metadata rather than human input.
"""

import time

from . import ids
from .backend import SessionBackend
from .core import RunSummary, TextPart, UserMessage
from .logger import Logger

SUMMARY_AGENT = "ci-bot"
SUMMARY_PROVIDER_ID = "system"
SUMMARY_MODEL_ID = "run-summary"


def format_run_summary(summary: RunSummary) -> str:
    lines = [
        "--- CI Run Summary ---",
        f"Event: {summary.event_type}",
        f"Repo: {summary.repo}",
        f"Ref: {summary.ref}",
    ]
    if summary.run_id is not None:
        lines.append(f"Run ID: {summary.run_id}")
    lines.append(f"Cache: {summary.cache_status}")
    if summary.duration is not None:
        lines.append(f"Duration: {summary.duration}s")

    if summary.session_ids:
        lines.append(f"Sessions used: {', '.join(summary.session_ids)}")
    if summary.created_prs:
        lines.append(f"PRs created: {', '.join(summary.created_prs)}")
    if summary.created_commits:
        lines.append(f"Commits: {', '.join(summary.created_commits)}")
    if summary.token_usage is not None:
        lines.append(f"Tokens: {summary.token_usage.input} in / {summary.token_usage.output} out")

    return "\n".join(lines)


def build_summary_records(session_id: str, summary: RunSummary) -> tuple[UserMessage, TextPart]:
    now = int(time.time() * 1000)
    message = UserMessage(
        id=ids.ascending("msg", now),
        session_id=session_id,
        created=now,
        agent=SUMMARY_AGENT,
        provider_id=SUMMARY_PROVIDER_ID,
        model_id=SUMMARY_MODEL_ID,
    )
    part = TextPart(
        id=ids.ascending("prt", now),
        session_id=session_id,
        message_id=message.id,
        text=format_run_summary(summary),
    )
    return message, part


async def write_session_summary(
    backend: SessionBackend,
    session_id: str,
    summary: RunSummary,
    logger: Logger,
) -> None:
    """Write the summary message; failures are logged, never raised."""
    try:
        message, part = build_summary_records(session_id, summary)
        await backend.append_message(message, [part])
    except Exception as e:
        logger.warning("Failed to write session summary", extra={"sessionId": session_id, "error": str(e)})
        return

    logger.info("Session summary written", extra={"sessionId": session_id, "messageId": message.id})
