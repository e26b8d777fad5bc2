"""Structured logging for the session store.

Store operations receive their logger as an argument. ``create_logger``
builds one that carries a base context (phase, run id, ...) and merges the
``extra`` mapping of each call into it, with secrets redacted.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Union

Logger = Union[logging.Logger, logging.LoggerAdapter]

DEFAULT_SENSITIVE_FIELDS = (
    "token",
    "password",
    "secret",
    "key",
    "auth",
    "credential",
    "bearer",
    "apikey",
    "api_key",
    "access_token",
    "refresh_token",
    "private",
)

REDACTED = "[REDACTED]"

_GITHUB_COMMANDS = {
    logging.DEBUG: "::debug::",
    logging.WARNING: "::warning::",
    logging.ERROR: "::error::",
    logging.CRITICAL: "::error::",
}


def _is_sensitive(field_name: str, patterns: tuple[str, ...]) -> bool:
    lowered = field_name.lower()
    return any(pattern.lower() in lowered for pattern in patterns)


def redact_sensitive_fields(value: Any, patterns: tuple[str, ...] = DEFAULT_SENSITIVE_FIELDS) -> Any:
    """Return a copy of ``value`` with sensitive string fields replaced."""
    if isinstance(value, dict):
        result = {}
        for name, field_value in value.items():
            if isinstance(field_value, str) and _is_sensitive(str(name), patterns):
                result[name] = REDACTED
            else:
                result[name] = redact_sensitive_fields(field_value, patterns)
        return result
    if isinstance(value, (list, tuple)):
        return [redact_sensitive_fields(item, patterns) for item in value]
    return value


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that attaches a redacted context mapping to each record."""

    def process(self, msg, kwargs):
        context = dict(self.extra or {})
        context.update(kwargs.pop("extra", None) or {})

        error = context.get("error")
        if isinstance(error, BaseException):
            context["error"] = {"name": type(error).__name__, "message": str(error)}

        kwargs["extra"] = {"context": redact_sensitive_fields(context)}
        return msg, kwargs

    def bind(self, **context) -> "ContextLogger":
        """Return a child logger with additional base context."""
        return ContextLogger(self.logger, {**(self.extra or {}), **context})


class JsonLineFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "context", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class GitHubActionsFormatter(JsonLineFormatter):
    """Prefix JSON lines with workflow commands so the runner annotates them."""

    def format(self, record: logging.LogRecord) -> str:
        return _GITHUB_COMMANDS.get(record.levelno, "") + super().format(record)


def create_logger(name: str = "opencode_sessions", **base_context) -> ContextLogger:
    return ContextLogger(logging.getLogger(name), base_context)


def configure_logging(level: str = "INFO", name: str = "opencode_sessions"):
    """Install a single stderr handler on the package logger."""
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())

    # Remove existing handlers to avoid duplication
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if os.environ.get("GITHUB_ACTIONS") == "true":
        handler.setFormatter(GitHubActionsFormatter())
    else:
        handler.setFormatter(JsonLineFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    # Silence noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
