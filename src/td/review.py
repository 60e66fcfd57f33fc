"""Two-party review protocol.

The implementer of an issue may not review it. A session counts as involved
with an issue when it created it, is its current implementer, or appears in
its session history; a failed history lookup counts as involvement. Minor
issues waive the rule.
"""

from __future__ import annotations

import sqlite3

from td.actions import add_session_log
from td.cascade import cascade_down, cascade_unblock, cascade_up
from td.config import append_security_event
from td.errors import (
    CannotSelfApproveError, CannotSelfCloseError, HandoffRequiredError,
    InvalidTransitionError, TdError,
)
from td.lifecycle import Actor, Outcome, transition_issue
from td.log import get_logger
from td.models import (
    ActionKind, Handoff, Issue, IssueFilter, LogType, SessionAction, Status,
)

log = get_logger("review")

AUTO_HANDOFF_NOTE = "Auto-generated at review submission (no handoff recorded)"


def was_involved(actor: Actor, issue: Issue) -> bool:
    sid = actor.session_id
    if issue.creator_session == sid or issue.implementer_session == sid:
        return True
    try:
        return actor.store.was_session_involved(issue.id, sid)
    except (TdError, sqlite3.Error) as e:
        log.warning("session history lookup failed; treating as involved",
                    extra={"issue_id": issue.id, "session": sid, "error": str(e)})
        return True


def can_approve(actor: Actor, issue: Issue) -> bool:
    return issue.minor or not was_involved(actor, issue)


def can_close(actor: Actor, issue: Issue) -> bool:
    """Direct close without an exception.

    Allowed for minor issues, for sessions never involved, and for a creator
    whose issue was implemented by another session.
    """
    if issue.minor or not was_involved(actor, issue):
        return True
    sid = actor.session_id
    impl = issue.implementer_session
    if issue.creator_session != sid or not impl or impl == sid:
        return False
    try:
        return not actor.store.was_session_involved(issue.id, sid)
    except (TdError, sqlite3.Error):
        return False


def submit_for_review(actor: Actor, issue: Issue, reason: str = "", minor: bool = False,
                      strict_handoff: bool = False) -> Outcome:
    """in_progress (or open) -> in_review, then cascade down and up.

    A missing handoff is synthesized unless strict_handoff is set. An issue
    already in review comes back unchanged without cascading.
    """
    if issue.status == Status.IN_REVIEW:
        return Outcome(issue=issue, action=ActionKind.REVIEW, unchanged=True)
    store = actor.store

    def prepare(i: Issue) -> None:
        if not i.implementer_session:
            i.implementer_session = actor.session_id
        if minor:
            i.minor = True

    handoff_created = False
    with store.transaction():
        if store.get_latest_handoff(issue.id) is None:
            if strict_handoff:
                raise HandoffRequiredError(f"handoff required before review: {issue.id}", issue.id)
            store.add_handoff(Handoff(
                issue_id=issue.id, session_id=actor.session_id, done=[AUTO_HANDOFF_NOTE],
            ))
            handoff_created = True
        outcome = transition_issue(
            actor, issue, Status.IN_REVIEW, ActionKind.REVIEW,
            force=True,
            message=reason or "Submitted for review",
            mutate=prepare,
            release_focus=True,
        )
    assert outcome is not None
    if handoff_created:
        outcome.handoff_created = True
        outcome.warnings.append(f"no handoff recorded for {issue.id}; created a minimal one")

    cascade_down(actor, issue.id, outcome)
    cascade_up(actor, issue.id, Status.IN_REVIEW, outcome)
    return outcome


def approve(actor: Actor, issue: Issue, reason: str = "") -> Outcome:
    """in_review -> closed by a session other than the implementer."""
    if issue.status != Status.IN_REVIEW:
        raise InvalidTransitionError(issue.status, Status.CLOSED, issue.id,
                                     f"not in review (status: {issue.status})")
    involved = was_involved(actor, issue)
    if involved and not issue.minor:
        raise CannotSelfApproveError(
            f"cannot approve own implementation: {issue.id} "
            "(use --minor on create for self-review)", issue.id)

    def sign(i: Issue) -> None:
        i.reviewer_session = actor.session_id

    outcome = transition_issue(
        actor, issue, Status.CLOSED, ActionKind.APPROVE,
        message=reason or "Approved",
        history=SessionAction.REVIEWED,
        mutate=sign,
        release_focus=True,
        was_involved=involved,
    )
    assert outcome is not None
    cascade_up(actor, issue.id, Status.CLOSED, outcome)
    cascade_unblock(actor, issue.id, outcome)
    return outcome


def reject(actor: Actor, issue: Issue, reason: str = "") -> Outcome:
    """in_review -> in_progress. The latest handoff is kept."""
    if issue.status != Status.IN_REVIEW:
        raise InvalidTransitionError(issue.status, Status.IN_PROGRESS, issue.id,
                                     f"not in review (status: {issue.status})")
    outcome = transition_issue(
        actor, issue, Status.IN_PROGRESS, ActionKind.REJECT,
        message=f"Rejected: {reason}" if reason else "Rejected",
    )
    assert outcome is not None
    return outcome


def close(actor: Actor, issue: Issue, reason: str = "",
          self_close_exception: str = "") -> Outcome:
    """Administrative close from any active status."""
    if issue.status == Status.CLOSED:
        return Outcome(issue=issue, action=ActionKind.CLOSE, unchanged=True)
    exception_used = False
    if not can_close(actor, issue):
        if not self_close_exception:
            raise CannotSelfCloseError(
                f"cannot close own implementation: {issue.id} "
                "(use --self-close-exception \"reason\" to override)", issue.id)
        exception_used = True

    outcome = transition_issue(
        actor, issue, Status.CLOSED, ActionKind.CLOSE,
        message=f"Closed: {reason}" if reason else "Closed",
        release_focus=True,
        review_waived=exception_used,
    )
    assert outcome is not None

    if exception_used:
        add_session_log(actor.store, issue.id, actor.session_id,
                        f"Self-closed (exception): {self_close_exception}",
                        LogType.SECURITY, actor.work_session_id)
        if actor.todos_dir:
            append_security_event(actor.todos_dir, {
                "event": "self_close_exception",
                "issue_id": issue.id,
                "session_id": actor.session_id,
                "reason": self_close_exception,
            })
        log.warning("self-close exception", extra={
            "issue_id": issue.id, "session": actor.session_id,
        })

    cascade_up(actor, issue.id, Status.CLOSED, outcome)
    cascade_unblock(actor, issue.id, outcome)
    return outcome


def reviewable_issues(actor: Actor) -> list[Issue]:
    """In-review issues the acting session may approve."""
    issues = actor.store.list_issues(IssueFilter(status=[Status.IN_REVIEW]))
    return [i for i in issues if can_approve(actor, i)]
