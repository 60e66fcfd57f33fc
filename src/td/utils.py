"""Utility functions for the td CLI."""

from __future__ import annotations

from datetime import datetime, timezone

from td.errors import InvalidInputError
from td.id_gen import is_well_formed_issue_id, normalize_issue_id
from td.models import (
    FIBONACCI_POINTS, Issue, IssueType, Priority, Status, is_valid_points,
)


def validate_issue_id(raw: str) -> str:
    """Trim and normalize a textual issue ID, rejecting malformed input."""
    issue_id = normalize_issue_id(raw or "")
    if not issue_id:
        raise InvalidInputError("issue ID is required")
    if not is_well_formed_issue_id(issue_id):
        raise InvalidInputError(f"invalid issue ID: {raw!r} (expected td-xxxxxx)")
    return issue_id


def parse_priority(s: str) -> str:
    """Parse priority from P0-P4, 0-4 or a priority word."""
    p = Priority.normalize(s)
    if p is None:
        raise InvalidInputError(f"invalid priority: {s} (use P0-P4 or critical/high/medium/low/lowest)")
    return p


def parse_status(s: str) -> str:
    status = Status.normalize(s)
    if not Status.is_valid(status):
        raise InvalidInputError(f"invalid status: {s} (valid: {', '.join(Status.all())})")
    return status


def parse_type(s: str) -> str:
    t = IssueType.normalize(s)
    if not IssueType.is_valid(t):
        raise InvalidInputError(f"invalid type: {s} (valid: {', '.join(IssueType.all())})")
    return t


def parse_points(n: int) -> int:
    if not is_valid_points(n):
        raise InvalidInputError(
            f"invalid points: {n} (use 0 or one of {', '.join(map(str, FIBONACCI_POINTS))})"
        )
    return n


def parse_labels(values: tuple[str, ...] | list[str]) -> list[str]:
    """Flatten repeated and comma-separated label values, keeping order."""
    labels: list[str] = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if part and part not in labels:
                labels.append(part)
    return labels


def first_non_empty(*values: str | None) -> str:
    """Resolve aliased reason flags: the first non-empty value wins."""
    for value in values:
        if value and value.strip():
            return value.strip()
    return ""


def priority_label(priority: str) -> str:
    """Return human-readable priority label."""
    labels = {"P0": "critical", "P1": "high", "P2": "medium", "P3": "low", "P4": "lowest"}
    return labels.get(priority, priority)


def status_symbol(status: str) -> str:
    """Return a symbol for status display."""
    symbols = {
        Status.OPEN: " ",
        Status.IN_PROGRESS: ">",
        Status.BLOCKED: "!",
        Status.IN_REVIEW: "?",
        Status.CLOSED: "x",
    }
    return symbols.get(status, "?")


def format_time_ago(dt: datetime) -> str:
    """Format a datetime as a relative time string."""
    now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = int((now - dt).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 30:
        return f"{days}d ago"
    months = days // 30
    if months < 12:
        return f"{months}mo ago"
    return f"{days // 365}y ago"


def truncate(s: str, max_len: int = 60) -> str:
    """Truncate a string with ellipsis."""
    if len(s) <= max_len:
        return s
    return s[:max_len - 3] + "..."


def format_issue_row(issue: Issue) -> str:
    """Format an issue as a single-line row for list display."""
    sym = status_symbol(issue.status)
    title = truncate(issue.title, 50)
    points = f" {issue.points}pt" if issue.points else ""
    minor = " (minor)" if issue.minor else ""
    return f"[{sym}] {issue.id:<12} {issue.priority} {issue.issue_type:<7} {title}{points}{minor}"
