"""Core data models and their stable JSON serialization.

Every entity that lands in the action log (``previous_data`` / ``new_data``)
serializes with a fixed key order, lowercase enum strings and a single
timestamp form so that blobs written at different times diff cleanly.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


# --- Status constants ---

class Status:
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    IN_REVIEW = "in_review"
    CLOSED = "closed"

    _VALID = {OPEN, IN_PROGRESS, BLOCKED, IN_REVIEW, CLOSED}
    _ALIASES = {"review": IN_REVIEW, "inreview": IN_REVIEW, "progress": IN_PROGRESS,
                "done": CLOSED}

    # Statuses that count as "active work" for focus handling
    ACTIVE = {IN_PROGRESS, IN_REVIEW}

    @classmethod
    def is_valid(cls, s: str) -> bool:
        return s in cls._VALID

    @classmethod
    def normalize(cls, s: str) -> str:
        """Normalize user input: case, hyphens and the ``review`` alias."""
        value = s.strip().lower().replace("-", "_")
        return cls._ALIASES.get(value, value)

    @classmethod
    def all(cls) -> list[str]:
        return [cls.OPEN, cls.IN_PROGRESS, cls.BLOCKED, cls.IN_REVIEW, cls.CLOSED]


# --- IssueType constants ---

class IssueType:
    BUG = "bug"
    FEATURE = "feature"
    TASK = "task"
    EPIC = "epic"
    CHORE = "chore"

    _VALID = {BUG, FEATURE, TASK, EPIC, CHORE}

    @classmethod
    def is_valid(cls, t: str) -> bool:
        return t in cls._VALID

    @classmethod
    def normalize(cls, t: str) -> str:
        lower = t.strip().lower()
        if lower in ("story", "enhancement", "feat"):
            return cls.FEATURE
        return lower

    @classmethod
    def all(cls) -> list[str]:
        return [cls.BUG, cls.FEATURE, cls.TASK, cls.EPIC, cls.CHORE]


# --- Priority constants ---

class Priority:
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"

    DEFAULT = P2
    _VALID = {P0, P1, P2, P3, P4}
    _WORDS = {
        "critical": P0, "highest": P0,
        "high": P1,
        "medium": P2, "normal": P2, "default": P2,
        "low": P3,
        "lowest": P4, "none": P4,
    }

    @classmethod
    def is_valid(cls, p: str) -> bool:
        return p in cls._VALID

    @classmethod
    def normalize(cls, p: str) -> str | None:
        """Accept ``0``-``4``, ``p0``-``P4`` and the priority words.

        Returns None for anything else.
        """
        value = p.strip().lower()
        if value in cls._WORDS:
            return cls._WORDS[value]
        if value.startswith("p"):
            value = value[1:]
        if value.isdigit() and 0 <= int(value) <= 4:
            return f"P{int(value)}"
        return None

    @classmethod
    def rank(cls, p: str) -> int:
        """Numeric rank, 0 being the most urgent."""
        return int(p[1:]) if cls.is_valid(p) else 2


# --- Estimation ---

FIBONACCI_POINTS = (1, 2, 3, 5, 8, 13, 21)


def is_valid_points(points: int) -> bool:
    return points == 0 or points in FIBONACCI_POINTS


# --- Log types ---

class LogType:
    PROGRESS = "progress"
    BLOCKER = "blocker"
    DECISION = "decision"
    HYPOTHESIS = "hypothesis"
    TRIED = "tried"
    RESULT = "result"
    ORCHESTRATION = "orchestration"
    SECURITY = "security"

    _VALID = {PROGRESS, BLOCKER, DECISION, HYPOTHESIS, TRIED, RESULT,
              ORCHESTRATION, SECURITY}

    @classmethod
    def is_valid(cls, t: str) -> bool:
        return t in cls._VALID


# --- Action log vocabulary ---

class ActionKind:
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESTORE = "restore"
    START = "start"
    UNSTART = "unstart"
    REVIEW = "review"
    APPROVE = "approve"
    REJECT = "reject"
    BLOCK = "block"
    UNBLOCK = "unblock"
    CLOSE = "close"
    REOPEN = "reopen"
    HANDOFF = "handoff"
    LINK_FILE = "link_file"
    UNLINK_FILE = "unlink_file"
    ADD_DEP = "add_dep"
    REMOVE_DEP = "remove_dep"
    BOARD_CREATE = "board_create"
    BOARD_UPDATE = "board_update"
    BOARD_DELETE = "board_delete"
    BOARD_SET_POSITION = "board_set_position"
    BOARD_UNPOSITION = "board_unposition"

    # Issue actions whose inverse is "overwrite with previous_data"
    STATE_CHANGES = {UPDATE, START, UNSTART, REVIEW, APPROVE, REJECT, BLOCK,
                     UNBLOCK, CLOSE, REOPEN}

    _VALID = {CREATE, UPDATE, DELETE, RESTORE, START, UNSTART, REVIEW, APPROVE,
              REJECT, BLOCK, UNBLOCK, CLOSE, REOPEN, HANDOFF, LINK_FILE,
              UNLINK_FILE, ADD_DEP, REMOVE_DEP, BOARD_CREATE, BOARD_UPDATE,
              BOARD_DELETE, BOARD_SET_POSITION, BOARD_UNPOSITION}

    @classmethod
    def is_valid(cls, k: str) -> bool:
        return k in cls._VALID


class EntityKind:
    ISSUE = "issue"
    DEPENDENCY = "dependency"
    FILE_LINK = "file_link"
    BOARD_POSITION = "board_position"
    BOARD = "board"
    HANDOFF = "handoff"
    LOGS = "logs"
    COMMENTS = "comments"
    WORK_SESSIONS = "work_sessions"

    APPEND_ONLY = {LOGS, COMMENTS, WORK_SESSIONS}
    _VALID = {ISSUE, DEPENDENCY, FILE_LINK, BOARD_POSITION, BOARD, HANDOFF,
              LOGS, COMMENTS, WORK_SESSIONS}

    @classmethod
    def is_valid(cls, k: str) -> bool:
        return k in cls._VALID


class SessionAction:
    STARTED = "started"
    UNSTARTED = "unstarted"
    REVIEWED = "reviewed"


class FileRole:
    IMPLEMENTATION = "implementation"
    TEST = "test"
    REFERENCE = "reference"
    CONFIG = "config"

    _VALID = {IMPLEMENTATION, TEST, REFERENCE, CONFIG}

    @classmethod
    def is_valid(cls, r: str) -> bool:
        return r in cls._VALID


# --- Timestamps ---

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def parse_timestamp(s: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp string to an aware datetime."""
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise ValueError(f"Cannot parse timestamp: {s}") from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(dt: datetime | None) -> str | None:
    """Format a datetime as UTC with microseconds and a Z suffix."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(_TS_FORMAT)


def now_utc() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


# --- Dataclasses ---

@dataclass
class Issue:
    """A tracked unit of work."""

    id: str = ""
    title: str = ""
    description: str = ""
    acceptance: str = ""
    issue_type: str = IssueType.TASK
    priority: str = Priority.DEFAULT
    points: int = 0
    status: str = Status.OPEN
    labels: list[str] = field(default_factory=list)
    parent_id: str | None = None
    creator_session: str | None = None
    implementer_session: str | None = None
    reviewer_session: str | None = None
    minor: bool = False
    sprint: str | None = None
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)
    closed_at: datetime | None = None
    deleted_at: datetime | None = None

    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def validate(self) -> str | None:
        """Validate issue fields. Returns error message or None if valid."""
        if not self.title or not self.title.strip():
            return "title is required"
        if len(self.title) > 500:
            return f"title must be 500 characters or less (got {len(self.title)})"
        if not Priority.is_valid(self.priority):
            return f"invalid priority: {self.priority}"
        if not Status.is_valid(self.status):
            return f"invalid status: {self.status}"
        if not IssueType.is_valid(self.issue_type):
            return f"invalid issue type: {self.issue_type}"
        if not is_valid_points(self.points):
            return f"points must be 0 or one of {', '.join(map(str, FIBONACCI_POINTS))} (got {self.points})"
        if self.status == Status.CLOSED and self.closed_at is None:
            return "closed issues must have closed_at timestamp"
        if self.status != Status.CLOSED and self.closed_at is not None:
            return "non-closed issues cannot have closed_at timestamp"
        return None

    def to_dict(self) -> dict:
        """Serialize with a fixed key order; absent values stay null."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "acceptance": self.acceptance,
            "type": self.issue_type,
            "priority": self.priority,
            "points": self.points,
            "status": self.status,
            "labels": list(self.labels),
            "parent_id": self.parent_id,
            "creator_session": self.creator_session,
            "implementer_session": self.implementer_session,
            "reviewer_session": self.reviewer_session,
            "minor": self.minor,
            "sprint": self.sprint,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "closed_at": format_timestamp(self.closed_at),
            "deleted_at": format_timestamp(self.deleted_at),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, d: dict) -> Issue:
        return cls(
            id=d["id"],
            title=d.get("title", ""),
            description=d.get("description", "") or "",
            acceptance=d.get("acceptance", "") or "",
            issue_type=d.get("type", IssueType.TASK) or IssueType.TASK,
            priority=d.get("priority", Priority.DEFAULT) or Priority.DEFAULT,
            points=int(d.get("points", 0) or 0),
            status=d.get("status", Status.OPEN) or Status.OPEN,
            labels=list(d.get("labels") or []),
            parent_id=d.get("parent_id"),
            creator_session=d.get("creator_session"),
            implementer_session=d.get("implementer_session"),
            reviewer_session=d.get("reviewer_session"),
            minor=bool(d.get("minor", False)),
            sprint=d.get("sprint"),
            created_at=parse_timestamp(d.get("created_at")) or now_utc(),
            updated_at=parse_timestamp(d.get("updated_at")) or now_utc(),
            closed_at=parse_timestamp(d.get("closed_at")),
            deleted_at=parse_timestamp(d.get("deleted_at")),
        )

    @classmethod
    def from_json(cls, s: str) -> Issue:
        return cls.from_dict(json.loads(s))


@dataclass
class Dependency:
    issue_id: str
    depends_on_id: str
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict:
        return {
            "issue_id": self.issue_id,
            "depends_on_id": self.depends_on_id,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Dependency:
        return cls(issue_id=d["issue_id"], depends_on_id=d["depends_on_id"])


@dataclass
class Handoff:
    """Structured snapshot of progress, recorded before review."""

    issue_id: str
    session_id: str
    done: list[str] = field(default_factory=list)
    remaining: list[str] = field(default_factory=list)
    decisions: list[str] = field(default_factory=list)
    uncertain: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=now_utc)
    id: int = 0

    def is_empty(self) -> bool:
        return not (self.done or self.remaining or self.decisions or self.uncertain)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "issue_id": self.issue_id,
            "session_id": self.session_id,
            "done": list(self.done),
            "remaining": list(self.remaining),
            "decisions": list(self.decisions),
            "uncertain": list(self.uncertain),
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, d: dict) -> Handoff:
        return cls(
            id=int(d.get("id", 0) or 0),
            issue_id=d["issue_id"],
            session_id=d.get("session_id", ""),
            done=list(d.get("done") or []),
            remaining=list(d.get("remaining") or []),
            decisions=list(d.get("decisions") or []),
            uncertain=list(d.get("uncertain") or []),
            timestamp=parse_timestamp(d.get("timestamp")) or now_utc(),
        )


@dataclass
class LogEntry:
    issue_id: str
    session_id: str
    message: str
    log_type: str = LogType.PROGRESS
    work_session_id: str | None = None
    timestamp: datetime = field(default_factory=now_utc)
    id: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "issue_id": self.issue_id,
            "session_id": self.session_id,
            "work_session_id": self.work_session_id,
            "type": self.log_type,
            "message": self.message,
            "timestamp": format_timestamp(self.timestamp),
        }


@dataclass
class Comment:
    issue_id: str
    session_id: str
    text: str
    created_at: datetime = field(default_factory=now_utc)
    id: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "issue_id": self.issue_id,
            "session_id": self.session_id,
            "text": self.text,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass
class ActionLogEntry:
    """One row of the append-only action log."""

    session_id: str
    action_kind: str
    entity_kind: str
    entity_id: str
    previous_data: str | None = None
    new_data: str | None = None
    undone: bool = False
    timestamp: datetime = field(default_factory=now_utc)
    rowid: int = 0

    def to_dict(self) -> dict:
        return {
            "rowid": self.rowid,
            "timestamp": format_timestamp(self.timestamp),
            "session_id": self.session_id,
            "action": self.action_kind,
            "entity_kind": self.entity_kind,
            "entity_id": self.entity_id,
            "previous_data": self.previous_data,
            "new_data": self.new_data,
            "undone": self.undone,
        }


@dataclass
class SessionHistoryEntry:
    issue_id: str
    session_id: str
    action: str
    created_at: datetime = field(default_factory=now_utc)
    id: int = 0

    def to_dict(self) -> dict:
        return {
            "issue_id": self.issue_id,
            "session_id": self.session_id,
            "action": self.action,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass
class SessionRecord:
    id: str
    context_id: str = ""
    name: str = ""
    previous_session_id: str | None = None
    started_at: datetime = field(default_factory=now_utc)
    last_activity: datetime = field(default_factory=now_utc)

    def display(self) -> str:
        return f"{self.id} ({self.name})" if self.name else self.id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "context_id": self.context_id,
            "previous_session_id": self.previous_session_id,
            "started_at": format_timestamp(self.started_at),
            "last_activity": format_timestamp(self.last_activity),
        }


@dataclass
class IssueFile:
    issue_id: str
    file_path: str
    role: str = FileRole.IMPLEMENTATION
    content_hash: str = ""
    linked_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict:
        return {
            "issue_id": self.issue_id,
            "file_path": self.file_path,
            "role": self.role,
            "content_hash": self.content_hash,
            "linked_at": format_timestamp(self.linked_at),
        }

    @classmethod
    def from_dict(cls, d: dict) -> IssueFile:
        return cls(
            issue_id=d["issue_id"],
            file_path=d["file_path"],
            role=d.get("role") or FileRole.IMPLEMENTATION,
            content_hash=d.get("content_hash", "") or "",
            linked_at=parse_timestamp(d.get("linked_at")) or now_utc(),
        )


@dataclass
class Board:
    id: str
    name: str
    query: str = ""
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "query": self.query,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, d: dict) -> Board:
        return cls(
            id=d["id"],
            name=d["name"],
            query=d.get("query", "") or "",
            created_at=parse_timestamp(d.get("created_at")) or now_utc(),
            updated_at=parse_timestamp(d.get("updated_at")) or now_utc(),
        )


@dataclass
class BoardPosition:
    board_id: str
    issue_id: str
    position: int

    def to_dict(self) -> dict:
        return {
            "board_id": self.board_id,
            "issue_id": self.issue_id,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, d: dict) -> BoardPosition:
        return cls(board_id=d["board_id"], issue_id=d["issue_id"],
                   position=int(d["position"]))


@dataclass
class IssueFilter:
    """Filter for issue queries."""
    status: list[str] = field(default_factory=list)
    issue_type: str | None = None
    priority: str | None = None
    parent_id: str | None = None
    label: str | None = None
    ids: list[str] = field(default_factory=list)
    include_closed: bool = False
    deleted_only: bool = False
    limit: int = 0
