"""CLI entry point for opencode-sessions.

Each command is one step of a CI job: list or search prior sessions before
the agent runs, find the session it used, write the run summary and prune
afterwards. ``prune`` and ``write-summary`` never fail the job.
"""

import asyncio
import json
from dataclasses import asdict
from pathlib import Path

import click
import uvicorn

from . import server
from .backend import BackendError, SessionBackend
from .backends import open_backend
from .config import (
    get_opencode_version,
    get_pruning_config,
    get_server_url,
    get_workspace_path,
)
from .core import PruningConfig, RunSummary
from .export import load_transcript, session_to_json, session_to_markdown
from .logger import Logger, configure_logging, create_logger
from .prune import prune_sessions
from .search import DEFAULT_SEARCH_LIMIT, get_session_info, list_sessions, search_sessions
from .writeback import write_session_summary


def _echo_json(data):
    click.echo(json.dumps(data, indent=2, default=str))


def _open(ctx: click.Context, logger: Logger) -> SessionBackend:
    obj = ctx.obj
    return open_backend(
        logger,
        version=obj["version"],
        storage_path=obj["storage_path"],
        server_url=obj["server_url"],
        directory=obj["directory"],
    )


def _run(ctx: click.Context, phase: str, operation, *, fallback=None, errors=(OSError, BackendError)):
    """Open the backend, run ``operation(backend, logger)`` and close it.

    Exceptions listed in ``errors`` are logged and turned into ``fallback``
    so a broken cache never crashes the calling job. Steps that must never
    fail the job pass ``errors=(Exception,)``.
    """
    logger = create_logger(phase=phase)

    async def runner():
        backend = _open(ctx, logger)
        try:
            return await operation(backend, logger)
        finally:
            await backend.aclose()

    try:
        return asyncio.run(runner())
    except errors as e:
        logger.error("Session storage unavailable", extra={"error": e})
        return fallback


@click.group()
@click.option("--storage-path", type=click.Path(path_type=Path), default=None,
              help="OpenCode flat-file storage directory.")
@click.option("--opencode-version", default=None, help="Installed OpenCode version (selects the backend).")
@click.option("--server-url", default=None, help="OpenCode server URL, required for SQLite storage.")
@click.option("--directory", default=None, help="Workspace whose sessions to use.")
@click.option("--log-level", default="INFO",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.pass_context
def main(ctx, storage_path, opencode_version, server_url, directory, log_level):
    """Manage persisted OpenCode sessions across CI runs."""
    configure_logging(log_level)
    ctx.obj = {
        "storage_path": storage_path,
        "version": opencode_version or get_opencode_version(),
        "server_url": server_url or get_server_url(),
        "directory": directory or get_workspace_path(),
    }


@main.command("list")
@click.option("--limit", type=int, default=None, help="Maximum sessions to show.")
@click.option("--from", "from_date", type=click.DateTime(), default=None, help="Created on or after.")
@click.option("--to", "to_date", type=click.DateTime(), default=None, help="Created on or before.")
@click.pass_context
def list_command(ctx, limit, from_date, to_date):
    """List main sessions, most recently updated first."""
    directory = ctx.obj["directory"]

    async def operation(backend, logger):
        return await list_sessions(backend, directory, logger, limit=limit, from_date=from_date, to_date=to_date)

    sessions = _run(ctx, "list", operation, fallback=[])
    _echo_json([asdict(s) for s in sessions])


@main.command()
@click.argument("query")
@click.option("--limit", type=int, default=DEFAULT_SEARCH_LIMIT, show_default=True, help="Maximum total matches.")
@click.option("--case-sensitive", is_flag=True, help="Match case exactly.")
@click.option("--session-id", default=None, help="Search only this session.")
@click.pass_context
def search(ctx, query, limit, case_sensitive, session_id):
    """Search session text, reasoning and tool output."""
    directory = ctx.obj["directory"]

    async def operation(backend, logger):
        return await search_sessions(
            backend, query, directory, logger,
            limit=limit, case_sensitive=case_sensitive, session_id=session_id,
        )

    results = _run(ctx, "search", operation, fallback=[])
    _echo_json([asdict(r) for r in results])


@main.command()
@click.argument("session_id")
@click.pass_context
def info(ctx, session_id):
    """Show a session with its message, agent and todo counts."""
    directory = ctx.obj["directory"]

    async def operation(backend, logger):
        project = await backend.find_project_by_directory(directory)
        if project is None:
            return None
        return await get_session_info(backend, session_id, project.id, logger)

    details = _run(ctx, "info", operation)
    if details is None:
        raise click.ClickException(f"Session not found: {session_id}")
    _echo_json({**asdict(details), "has_todos": details.has_todos})


@main.command()
@click.argument("session_id")
@click.option("--format", "fmt", type=click.Choice(["md", "json"]), default="md", show_default=True)
@click.pass_context
def read(ctx, session_id, fmt):
    """Print a session transcript."""
    directory = ctx.obj["directory"]

    async def operation(backend, logger):
        project = await backend.find_project_by_directory(directory)
        if project is None:
            return None
        session = await backend.get_session(project.id, session_id)
        if session is None:
            return None
        return session, await load_transcript(backend, session_id)

    loaded = _run(ctx, "read", operation)
    if loaded is None:
        raise click.ClickException(f"Session not found: {session_id}")

    session, transcript = loaded
    if fmt == "json":
        click.echo(session_to_json(session, transcript))
    else:
        click.echo(session_to_markdown(session, transcript))


@main.command()
@click.option("--since", type=int, required=True, help="Epoch milliseconds; only newer sessions count.")
@click.pass_context
def latest(ctx, since):
    """Print the newest main session created after --since."""
    directory = ctx.obj["directory"]

    async def operation(backend, logger):
        return await backend.find_latest_session(directory, since)

    found = _run(ctx, "latest", operation)
    if found is None:
        _echo_json(None)
        return
    project_id, session = found
    _echo_json({"project_id": project_id, "session_id": session.id, "title": session.title})


@main.command()
@click.option("--max-sessions", type=int, default=None, help="Always keep this many recent sessions.")
@click.option("--max-age-days", type=int, default=None, help="Always keep sessions updated this recently.")
@click.pass_context
def prune(ctx, max_sessions, max_age_days):
    """Apply the retention policy to the workspace's sessions."""
    directory = ctx.obj["directory"]
    logger = create_logger(phase="prune")

    try:
        defaults = get_pruning_config()
        config = PruningConfig(
            max_sessions=max_sessions if max_sessions is not None else defaults.max_sessions,
            max_age_days=max_age_days if max_age_days is not None else defaults.max_age_days,
        )
    except ValueError as e:
        logger.warning("Invalid retention settings; skipping prune", extra={"error": str(e)})
        return

    async def operation(backend, logger):
        return await prune_sessions(backend, directory, config, logger)

    result = _run(ctx, "prune", operation, errors=(Exception,))
    if result is not None:
        _echo_json(asdict(result))


@main.command("write-summary")
@click.argument("session_id")
@click.argument("summary_file", type=click.File("r"))
@click.pass_context
def write_summary(ctx, session_id, summary_file):
    """Append a run summary (JSON file, or - for stdin) to a session."""
    logger = create_logger(phase="write-summary")
    try:
        summary = RunSummary.from_dict(json.load(summary_file))
    except (ValueError, AttributeError, TypeError) as e:
        logger.warning("Invalid run summary; nothing written", extra={"sessionId": session_id, "error": str(e)})
        return

    async def operation(backend, logger):
        await write_session_summary(backend, session_id, summary, logger)

    _run(ctx, "write-summary", operation, errors=(Exception,))


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.pass_context
def serve(ctx, port: int, host: str):
    """Start the read-only inspection API."""
    server.use_backend(_open(ctx, create_logger(phase="serve")), ctx.obj["directory"])
    click.echo(f"Starting opencode-sessions on http://{host}:{port}", err=True)
    uvicorn.run(server.app, host=host, port=port, reload=False)

