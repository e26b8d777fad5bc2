"""Core data models for opencode-sessions.

Records mirror OpenCode's storage schema. Timestamps stay in epoch
milliseconds, the unit OpenCode writes to disk.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Optional, Union


@dataclass
class FileDiff:
    file: str
    additions: int = 0
    deletions: int = 0


@dataclass
class Project:
    """A worktree that OpenCode has opened at least once."""

    id: str
    worktree: str  # absolute path, e.g. "/home/runner/work/repo/repo"
    vcs: str = "git"
    created: int = 0
    updated: int = 0
    initialized: Optional[int] = None


@dataclass
class SessionDiffSummary:
    additions: int = 0
    deletions: int = 0
    files: int = 0
    diffs: list[FileDiff] = field(default_factory=list)


@dataclass
class SessionRevert:
    message_id: str
    part_id: Optional[str] = None
    snapshot: Optional[str] = None
    diff: Optional[str] = None


@dataclass
class SessionInfo:
    """A single unit of agent work.

    Sessions without a ``parent_id`` are main sessions; the others are
    child (branch) sessions whose lifetime is bound to their parent.
    """

    id: str  # "ses_..."
    project_id: str
    directory: str = ""
    title: str = ""
    version: str = ""
    parent_id: Optional[str] = None
    created: int = 0
    updated: int = 0
    compacting: Optional[int] = None
    archived: Optional[int] = None
    summary: Optional[SessionDiffSummary] = None
    share_url: Optional[str] = None
    permission: Optional[list] = None  # raw permission rules
    revert: Optional[SessionRevert] = None

    @property
    def is_child(self) -> bool:
        return self.parent_id is not None


@dataclass
class TokenCounts:
    input: int = 0
    output: int = 0
    reasoning: int = 0
    cache_read: int = 0
    cache_write: int = 0


@dataclass
class MessageError:
    name: str
    message: str


@dataclass
class UserMessage:
    id: str  # "msg_..."
    session_id: str
    created: int = 0
    agent: str = ""
    provider_id: str = ""
    model_id: str = ""
    summary_title: Optional[str] = None
    summary_body: Optional[str] = None
    summary_diffs: Optional[list[FileDiff]] = None
    system: Optional[str] = None
    tools: Optional[dict] = None
    variant: Optional[str] = None
    role: Literal["user"] = field(default="user", init=False)


@dataclass
class AssistantMessage:
    id: str
    session_id: str
    created: int = 0
    completed: Optional[int] = None
    parent_id: str = ""  # the user message this replies to
    provider_id: str = ""
    model_id: str = ""
    mode: str = ""
    agent: str = ""
    cwd: str = ""
    root: str = ""
    summary: Optional[bool] = None
    cost: float = 0
    tokens: TokenCounts = field(default_factory=TokenCounts)
    finish: Optional[str] = None
    error: Optional[MessageError] = None
    role: Literal["assistant"] = field(default="assistant", init=False)


Message = Union[UserMessage, AssistantMessage]


# ── Parts ─────────────────────────────────────────────────────────


@dataclass
class ToolPending:
    status: Literal["pending"] = field(default="pending", init=False)


@dataclass
class ToolRunning:
    input: dict = field(default_factory=dict)
    start: int = 0
    status: Literal["running"] = field(default="running", init=False)


@dataclass
class ToolCompleted:
    input: dict = field(default_factory=dict)
    output: str = ""
    title: str = ""
    metadata: dict = field(default_factory=dict)
    start: int = 0
    end: int = 0
    compacted: Optional[int] = None
    status: Literal["completed"] = field(default="completed", init=False)


@dataclass
class ToolError:
    input: dict = field(default_factory=dict)
    error: str = ""
    start: int = 0
    end: int = 0
    status: Literal["error"] = field(default="error", init=False)


ToolState = Union[ToolPending, ToolRunning, ToolCompleted, ToolError]


@dataclass
class TextPart:
    id: str  # "prt_..."
    session_id: str
    message_id: str
    text: str = ""
    synthetic: Optional[bool] = None
    ignored: Optional[bool] = None
    start: Optional[int] = None
    end: Optional[int] = None
    metadata: Optional[dict] = None
    type: Literal["text"] = field(default="text", init=False)


@dataclass
class ReasoningPart:
    id: str
    session_id: str
    message_id: str
    reasoning: str = ""
    start: Optional[int] = None
    end: Optional[int] = None
    type: Literal["reasoning"] = field(default="reasoning", init=False)


@dataclass
class ToolPart:
    id: str
    session_id: str
    message_id: str
    call_id: str = ""
    tool: str = ""
    state: ToolState = field(default_factory=ToolPending)
    metadata: Optional[dict] = None
    type: Literal["tool"] = field(default="tool", init=False)


@dataclass
class StepFinishPart:
    id: str
    session_id: str
    message_id: str
    reason: str = ""
    snapshot: Optional[str] = None
    cost: float = 0
    tokens: TokenCounts = field(default_factory=TokenCounts)
    type: Literal["step-finish"] = field(default="step-finish", init=False)


Part = Union[TextPart, ReasoningPart, ToolPart, StepFinishPart]


@dataclass
class TodoItem:
    id: str
    content: str
    status: str = "pending"  # "pending" | "in_progress" | "completed" | "cancelled"
    priority: str = "medium"  # "high" | "medium" | "low"


# ── Derived views ─────────────────────────────────────────────────


@dataclass
class SessionSummary:
    """A main session as shown in listings."""

    id: str
    project_id: str
    directory: str
    title: str
    created: int
    updated: int
    message_count: int
    agents: list[str] = field(default_factory=list)
    is_child: bool = False


@dataclass
class SessionMatch:
    message_id: str
    part_id: str
    excerpt: str  # "...<window>..."
    role: str  # "user" | "assistant"
    agent: Optional[str] = None


@dataclass
class SessionSearchResult:
    session_id: str
    matches: list[SessionMatch] = field(default_factory=list)


@dataclass
class SessionDetails:
    """Session record plus counts used to report progress."""

    session: SessionInfo
    message_count: int
    agents: list[str]
    todo_count: int = 0
    completed_todos: int = 0

    @property
    def has_todos(self) -> bool:
        return self.todo_count > 0


@dataclass
class PruningConfig:
    max_sessions: int = 50
    max_age_days: int = 30

    def __post_init__(self):
        if self.max_sessions < 1:
            raise ValueError(f"max_sessions must be a positive integer, received: {self.max_sessions}")
        if self.max_age_days < 0:
            raise ValueError(f"max_age_days must not be negative, received: {self.max_age_days}")


DEFAULT_PRUNING_CONFIG = PruningConfig(max_sessions=50, max_age_days=30)


@dataclass
class PruneResult:
    pruned_count: int = 0
    pruned_session_ids: list[str] = field(default_factory=list)
    remaining_count: int = 0
    freed_bytes: int = 0


@dataclass
class TokenUsage:
    input: int
    output: int


@dataclass
class RunSummary:
    """Outcome of one CI run, supplied by the orchestrator."""

    event_type: str
    repo: str
    ref: str
    run_id: Optional[int] = None
    cache_status: str = "miss"  # "hit" | "miss" | "corrupted"
    session_ids: list[str] = field(default_factory=list)
    created_prs: list[str] = field(default_factory=list)
    created_commits: list[str] = field(default_factory=list)
    duration: Optional[float] = None  # seconds
    token_usage: Optional[TokenUsage] = None

    @classmethod
    def from_dict(cls, data: dict) -> "RunSummary":
        """Build from the orchestrator's JSON (camelCase or snake_case keys)."""

        def pick(*keys, default=None):
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return default

        usage = pick("tokenUsage", "token_usage")
        return cls(
            event_type=str(pick("eventType", "event_type", default="")),
            repo=str(pick("repo", default="")),
            ref=str(pick("ref", default="")),
            run_id=pick("runId", "run_id"),
            cache_status=str(pick("cacheStatus", "cache_status", default="miss")),
            session_ids=list(pick("sessionIds", "session_ids", default=[])),
            created_prs=list(pick("createdPRs", "createdPrs", "created_prs", default=[])),
            created_commits=list(pick("createdCommits", "created_commits", default=[])),
            duration=pick("duration"),
            token_usage=TokenUsage(int(usage.get("input", 0)), int(usage.get("output", 0)))
            if isinstance(usage, dict)
            else None,
        )


def ms_to_datetime(ms: int | None) -> datetime | None:
    """Convert millisecond timestamp to datetime, or None."""
    if ms is None:
        return None
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (ValueError, OSError, OverflowError):
        return None


def datetime_to_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)
