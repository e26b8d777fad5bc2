"""Session retention.

A main session survives a prune pass if it satisfies EITHER condition:

- it was updated within the last ``max_age_days`` (active work is never
  lost to the count cap);
- it is among the ``max_sessions`` most recently updated (a minimum history
  survives long idle periods).

Child sessions are not judged on their own: they go when their parent goes.
Sessions accumulate megabytes each and every byte is re-archived on cache
save, so pruning runs at the end of every job.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone

from .backend import SessionBackend
from .core import PruneResult, PruningConfig, SessionInfo, datetime_to_ms
from .logger import Logger


async def prune_sessions(
    backend: SessionBackend,
    directory: str,
    config: PruningConfig,
    logger: Logger,
    *,
    now: datetime | None = None,
) -> PruneResult:
    """Delete main sessions outside the retention policy, with their children.

    A failed deletion is logged and skipped; the result only counts the
    deletions that succeeded.
    """
    logger.info("Starting session pruning", extra={
        "directory": directory,
        "maxSessions": config.max_sessions,
        "maxAgeDays": config.max_age_days,
    })

    project = await backend.find_project_by_directory(directory)
    if project is None:
        logger.debug("No project found for pruning", extra={"directory": directory})
        return PruneResult()

    all_sessions = await backend.list_sessions_for_project(project.id)
    main_sessions = [s for s in all_sessions if s.parent_id is None]
    if not main_sessions:
        return PruneResult()

    now = now or datetime.now(timezone.utc)
    to_prune = select_sessions_to_prune(all_sessions, config, now)
    pruned_mains = {s.id for s in main_sessions} & set(to_prune)

    if not to_prune:
        logger.info("No sessions to prune")
        return PruneResult(remaining_count=len(main_sessions))

    freed_bytes = 0
    pruned_ids = []
    for session_id in to_prune:
        try:
            freed = await backend.delete_session(project.id, session_id)
        except Exception as e:
            logger.warning("Failed to prune session", extra={"sessionId": session_id, "error": str(e)})
            pruned_mains.discard(session_id)
            continue

        freed_bytes += freed
        pruned_ids.append(session_id)
        logger.debug("Pruned session", extra={"sessionId": session_id, "bytes": freed})

    remaining = len(main_sessions) - len(pruned_mains)
    logger.info("Session pruning complete", extra={
        "prunedCount": len(pruned_ids),
        "remainingCount": remaining,
        "freedBytes": freed_bytes,
    })
    return PruneResult(
        pruned_count=len(pruned_ids),
        pruned_session_ids=pruned_ids,
        remaining_count=remaining,
        freed_bytes=freed_bytes,
    )


def select_sessions_to_prune(
    sessions: list[SessionInfo],
    config: PruningConfig,
    now: datetime,
) -> list[str]:
    """Return ids to delete: each expired main session followed by its children."""
    main_sessions = sorted(
        (s for s in sessions if s.parent_id is None),
        key=lambda s: s.updated,
        reverse=True,
    )

    cutoff = datetime_to_ms(now - timedelta(days=config.max_age_days))
    keep = {s.id for s in main_sessions if s.updated >= cutoff}
    keep.update(s.id for s in main_sessions[:config.max_sessions])

    children = defaultdict(list)
    for session in sessions:
        if session.parent_id is not None:
            children[session.parent_id].append(session.id)

    to_prune = []
    for session in main_sessions:
        if session.id in keep:
            continue
        to_prune.append(session.id)
        to_prune.extend(children[session.id])
    return to_prune
