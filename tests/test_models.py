"""Tests for data models."""

import json
from datetime import datetime, timezone

from td.models import (
    ActionKind, EntityKind, Handoff, Issue, IssueType, Priority, Status,
    format_timestamp, is_valid_points, parse_timestamp,
)


def test_issue_defaults():
    issue = Issue(id="td-abc123", title="x")
    assert issue.status == Status.OPEN
    assert issue.issue_type == IssueType.TASK
    assert issue.priority == Priority.P2
    assert issue.closed_at is None
    assert not issue.is_deleted()


def test_issue_validate_empty_title():
    issue = Issue(title="   ")
    assert "title is required" in issue.validate()


def test_issue_validate_long_title():
    issue = Issue(title="x" * 501)
    assert "500 characters" in issue.validate()


def test_issue_validate_points():
    issue = Issue(title="test", points=4)
    assert "points must be" in issue.validate()


def test_issue_validate_closed_without_closed_at():
    issue = Issue(title="test", status=Status.CLOSED)
    assert "closed issues must have closed_at" in issue.validate()


def test_issue_validate_open_with_closed_at():
    issue = Issue(title="test", closed_at=datetime.now(timezone.utc))
    assert "non-closed issues cannot have closed_at" in issue.validate()


def test_issue_validate_valid():
    assert Issue(title="test", points=5).validate() is None


def test_issue_to_dict_key_order_and_nulls():
    """Absent values stay in the dict as null; keys keep a fixed order."""
    ts = datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
    issue = Issue(id="td-abc123", title="Test Issue", created_at=ts, updated_at=ts)
    d = issue.to_dict()
    assert list(d)[:4] == ["id", "title", "description", "acceptance"]
    assert d["type"] == "task"
    assert d["priority"] == "P2"
    assert d["parent_id"] is None
    assert d["closed_at"] is None
    assert d["created_at"] == "2026-01-15T10:00:00.000000Z"


def test_issue_json_is_compact_and_stable():
    ts = datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
    a = Issue(id="td-abc123", title="T", labels=["x"], created_at=ts, updated_at=ts)
    b = Issue(id="td-abc123", title="T", labels=["x"], created_at=ts, updated_at=ts)
    assert a.to_json() == b.to_json()
    assert ", " not in a.to_json()


def test_issue_from_dict_roundtrip():
    ts = datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
    original = Issue(
        id="td-abc123", title="Round", status=Status.CLOSED, closed_at=ts,
        implementer_session="s1", reviewer_session="s2", minor=True,
        labels=["a", "b"], created_at=ts, updated_at=ts,
    )
    restored = Issue.from_json(original.to_json())
    assert restored == original


def test_issue_from_dict_tolerates_missing_fields():
    issue = Issue.from_dict({"id": "td-abc123", "title": "Sparse"})
    assert issue.status == Status.OPEN
    assert issue.labels == []
    assert issue.priority == Priority.DEFAULT


def test_status_normalize():
    assert Status.normalize("In-Progress") == Status.IN_PROGRESS
    assert Status.normalize("review") == Status.IN_REVIEW
    assert Status.normalize(" CLOSED ") == Status.CLOSED


def test_priority_normalize():
    assert Priority.normalize("0") == "P0"
    assert Priority.normalize("p3") == "P3"
    assert Priority.normalize("high") == "P1"
    assert Priority.normalize("P9") is None
    assert Priority.normalize("urgent") is None


def test_issue_type_normalize():
    assert IssueType.normalize("Story") == IssueType.FEATURE
    assert IssueType.normalize("EPIC") == IssueType.EPIC


def test_points():
    assert is_valid_points(0)
    assert is_valid_points(13)
    assert not is_valid_points(4)


def test_handoff_is_empty():
    assert Handoff(issue_id="td-abc123", session_id="s1").is_empty()
    assert not Handoff(issue_id="td-abc123", session_id="s1", uncertain=["?"]).is_empty()


def test_handoff_dict():
    h = Handoff(issue_id="td-abc123", session_id="s1", done=["a"], remaining=["b"])
    d = h.to_dict()
    assert d["done"] == ["a"]
    assert Handoff.from_dict(json.loads(json.dumps(d))).remaining == ["b"]


def test_vocabulary():
    assert ActionKind.is_valid("board_set_position")
    assert not ActionKind.is_valid("teleport")
    assert EntityKind.LOGS in EntityKind.APPEND_ONLY
    assert EntityKind.ISSUE not in EntityKind.APPEND_ONLY
    assert ActionKind.REJECT in ActionKind.STATE_CHANGES


def test_parse_timestamp():
    dt = parse_timestamp("2026-01-15T10:00:00Z")
    assert dt == datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None


def test_parse_timestamp_naive_is_utc():
    dt = parse_timestamp("2026-01-15T10:00:00")
    assert dt.tzinfo is not None


def test_format_timestamp():
    dt = datetime(2026, 1, 15, 10, 0, 0, 123456, tzinfo=timezone.utc)
    assert format_timestamp(dt) == "2026-01-15T10:00:00.123456Z"
    assert format_timestamp(None) is None
