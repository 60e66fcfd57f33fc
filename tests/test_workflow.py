"""Tests for the status state machine."""

import pytest

from td.errors import InvalidTransitionError
from td.models import Issue, IssueType, Status
from td.workflow import (
    ActionContext, StateMachine, TransitionContext, TransitionMode, validate_transition,
)


def _ctx(issue: Issue, to_status: str, **kwargs) -> TransitionContext:
    return TransitionContext(issue=issue, from_status=issue.status, to_status=to_status,
                             **kwargs)


def test_table_shape():
    m = StateMachine()
    assert m.allowed_transitions(Status.OPEN) == [
        Status.IN_PROGRESS, Status.BLOCKED, Status.IN_REVIEW, Status.CLOSED]
    assert m.allowed_transitions(Status.CLOSED) == [Status.OPEN]
    assert not m.is_valid_transition(Status.CLOSED, Status.IN_PROGRESS)
    assert not m.is_valid_transition(Status.BLOCKED, Status.IN_REVIEW)


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        StateMachine("chaotic")


def test_missing_edge_denied():
    issue = Issue(id="td-aaaaaa", title="t", status=Status.CLOSED)
    with pytest.raises(InvalidTransitionError) as exc:
        validate_transition(issue, Status.IN_REVIEW)
    assert exc.value.from_status == Status.CLOSED
    assert "td-aaaaaa" in exc.value.message


def test_self_transition_cli_is_noop():
    issue = Issue(id="td-aaaaaa", title="t", status=Status.IN_PROGRESS)
    assert validate_transition(issue, Status.IN_PROGRESS) == []


def test_self_transition_strict_is_noop():
    issue = Issue(id="td-aaaaaa", title="t", status=Status.IN_REVIEW, implementer_session="s1")
    machine = StateMachine(TransitionMode.STRICT)
    assert validate_transition(issue, Status.IN_REVIEW, machine=machine, session_id="s1") == []


def test_self_transition_automated_is_noop():
    issue = Issue(id="td-aaaaaa", title="t", status=Status.CLOSED)
    assert validate_transition(issue, Status.CLOSED, ActionContext.AUTOMATED) == []


@pytest.mark.parametrize("from_status,to_status", [
    (Status.OPEN, Status.IN_REVIEW),
    (Status.IN_REVIEW, Status.OPEN),
])
def test_restricted_edges(from_status, to_status):
    issue = Issue(id="td-aaaaaa", title="t", status=from_status)
    with pytest.raises(InvalidTransitionError, match="cascade or undo"):
        validate_transition(issue, to_status)
    assert validate_transition(issue, to_status, force=True) == []
    assert validate_transition(issue, to_status, ActionContext.AUTOMATED) == []


def test_liberal_ignores_guards():
    issue = Issue(id="td-aaaaaa", title="t", status=Status.IN_REVIEW,
                  implementer_session="s1")
    m = StateMachine(TransitionMode.LIBERAL)
    assert m.validate(_ctx(issue, Status.CLOSED, session_id="s1")) == []


def test_advisory_reports_failures():
    issue = Issue(id="td-aaaaaa", title="t", status=Status.IN_REVIEW,
                  implementer_session="s1")
    m = StateMachine(TransitionMode.ADVISORY)
    results = m.validate(_ctx(issue, Status.CLOSED, session_id="s1"))
    failed = [r for r in results if not r.passed]
    assert [r.guard for r in failed] == ["DifferentReviewerGuard"]


def test_strict_rejects_self_review():
    issue = Issue(id="td-aaaaaa", title="t", status=Status.IN_REVIEW,
                  implementer_session="s1")
    m = StateMachine(TransitionMode.STRICT)
    with pytest.raises(InvalidTransitionError, match="DifferentReviewerGuard"):
        m.validate(_ctx(issue, Status.CLOSED, session_id="s1"))
    assert m.can_transition(_ctx(issue, Status.CLOSED, session_id="s2"))


def test_strict_involvement_counts():
    issue = Issue(id="td-aaaaaa", title="t", status=Status.IN_REVIEW,
                  implementer_session="s1")
    m = StateMachine(TransitionMode.STRICT)
    assert not m.can_transition(_ctx(issue, Status.CLOSED, session_id="s2",
                                     was_involved=True))


def test_strict_minor_waives_reviewer_rule():
    issue = Issue(id="td-aaaaaa", title="t", status=Status.IN_REVIEW,
                  implementer_session="s1", minor=True)
    m = StateMachine(TransitionMode.STRICT)
    assert m.can_transition(_ctx(issue, Status.CLOSED, session_id="s1"))


def test_strict_blocked_guard():
    issue = Issue(id="td-aaaaaa", title="t", status=Status.BLOCKED)
    m = StateMachine(TransitionMode.STRICT)
    assert not m.can_transition(_ctx(issue, Status.IN_PROGRESS))
    assert m.can_transition(_ctx(issue, Status.IN_PROGRESS, force=True))


def test_strict_epic_children_guard():
    epic = Issue(id="td-epi001", title="e", issue_type=IssueType.EPIC,
                 status=Status.IN_PROGRESS)
    m = StateMachine(TransitionMode.STRICT)
    with pytest.raises(InvalidTransitionError, match="2 unfinished"):
        m.validate(_ctx(epic, Status.CLOSED, open_child_count=2))
    assert m.can_transition(_ctx(epic, Status.CLOSED, open_child_count=0))
