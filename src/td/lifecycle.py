"""Issue lifecycle verbs: start, unstart, block, unblock, reopen.

Every status change funnels through :func:`transition_issue`, which checks
the state machine, writes the issue together with its action-log entry in
one transaction, appends the session log entry and optionally releases
focus. Review-related verbs live in :mod:`td.review`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from td.actions import add_session_log, clone, update_issue_logged
from td.config import clear_focus_if_needed
from td.errors import InvalidInputError, InvalidTransitionError
from td.log import get_logger
from td.models import (
    ActionKind, Issue, IssueType, LogType, SessionAction, Status, now_utc,
)
from td.storage.interface import Storage
from td.workflow import ActionContext, BlockedGuard, StateMachine, TransitionContext

log = get_logger("lifecycle")


@dataclass
class Actor:
    """Who is acting, against which store and project directory."""

    store: Storage
    session_id: str
    machine: StateMachine = field(default_factory=StateMachine)
    todos_dir: str | None = None
    work_session_id: str | None = None


@dataclass
class Outcome:
    """Result of one workflow verb on one issue."""

    issue: Issue
    action: str
    rowid: int = 0
    warnings: list[str] = field(default_factory=list)
    handoff_created: bool = False
    descendants: list[str] = field(default_factory=list)
    cascaded_parents: list[tuple[str, str]] = field(default_factory=list)
    unblocked: list[str] = field(default_factory=list)
    focus_cleared: bool = False
    # Issue already had the target status; nothing was written
    unchanged: bool = False


def _open_child_count(store: Storage, issue_id: str) -> int:
    return sum(1 for c in store.get_direct_children(issue_id) if c.status != Status.CLOSED)


def transition_issue(actor: Actor, issue: Issue, to_status: str, kind: str, *,
                     context: str = ActionContext.CLI,
                     force: bool = False,
                     message: str | None = None,
                     log_type: str = LogType.PROGRESS,
                     history: str | None = None,
                     mutate: Callable[[Issue], None] | None = None,
                     release_focus: bool = False,
                     was_involved: bool = False,
                     review_waived: bool = False) -> Outcome | None:
    """Move issue to to_status and record it.

    Returns None for a self-transition, which changes nothing.
    review_waived lets the different-reviewer guard pass as it does for minor
    issues; it is set for audited self-close exceptions.
    Raises InvalidTransitionError when the state machine denies the move.
    """
    from_status = issue.status
    open_children = 0
    if issue.issue_type == IssueType.EPIC and to_status == Status.CLOSED:
        open_children = _open_child_count(actor.store, issue.id)
    tctx = TransitionContext(
        issue=issue,
        from_status=from_status,
        to_status=to_status,
        session_id=actor.session_id,
        context=context,
        force=force,
        minor=issue.minor or review_waived,
        was_involved=was_involved,
        open_child_count=open_children,
    )
    results = actor.machine.validate(tctx)
    if from_status == to_status:
        return None

    previous = clone(issue)
    issue.status = to_status
    if to_status == Status.CLOSED:
        issue.closed_at = issue.closed_at or now_utc()
    else:
        issue.closed_at = None
    if mutate is not None:
        mutate(issue)

    with actor.store.transaction():
        rowid = update_issue_logged(actor.store, issue, previous, actor.session_id, kind)
        if history:
            actor.store.record_session_action(issue.id, actor.session_id, history)
        if message:
            add_session_log(actor.store, issue.id, actor.session_id, message, log_type,
                            actor.work_session_id)

    log.info("status changed", extra={
        "issue_id": issue.id, "action": kind, "session": actor.session_id,
    })
    outcome = Outcome(
        issue=issue,
        action=kind,
        rowid=rowid,
        warnings=[f"{r.guard}: {r.message}" for r in results if not r.passed],
    )
    if release_focus and actor.todos_dir:
        outcome.focus_cleared = clear_focus_if_needed(actor.todos_dir, issue.id)
    return outcome


def _settled(outcome: Outcome | None, issue: Issue, kind: str) -> Outcome:
    if outcome is None:
        return Outcome(issue=issue, action=kind, unchanged=True)
    return outcome


def start(actor: Actor, issue: Issue, reason: str = "", force: bool = False) -> Outcome:
    """open / blocked / in_review -> in_progress; claims the implementer role."""
    blocked = BlockedGuard().check(TransitionContext(
        issue=issue, from_status=issue.status, to_status=Status.IN_PROGRESS, force=force,
    ))
    if not blocked.passed:
        raise InvalidTransitionError(issue.status, Status.IN_PROGRESS, issue.id,
                                     "cannot start blocked issue (use --force to override)")

    def claim(i: Issue) -> None:
        i.implementer_session = actor.session_id

    outcome = transition_issue(
        actor, issue, Status.IN_PROGRESS, ActionKind.START,
        force=force,
        message=reason or "Started work",
        history=SessionAction.STARTED,
        mutate=claim,
    )
    return _settled(outcome, issue, ActionKind.START)


def unstart(actor: Actor, issue: Issue, reason: str = "") -> Outcome:
    """in_progress -> open; releases the implementer role."""
    if issue.status != Status.IN_PROGRESS:
        raise InvalidTransitionError(issue.status, Status.OPEN, issue.id,
                                     f"not in progress (status: {issue.status})")

    def release(i: Issue) -> None:
        i.implementer_session = None

    message = f"Unstarted: {reason}" if reason else "Unstarted"
    outcome = transition_issue(
        actor, issue, Status.OPEN, ActionKind.UNSTART,
        message=message,
        history=SessionAction.UNSTARTED,
        mutate=release,
        release_focus=True,
    )
    return _settled(outcome, issue, ActionKind.UNSTART)


def block(actor: Actor, issue: Issue, reason: str = "") -> Outcome:
    message = f"Blocked: {reason}" if reason else "Blocked"
    outcome = transition_issue(
        actor, issue, Status.BLOCKED, ActionKind.BLOCK,
        message=message,
        log_type=LogType.BLOCKER,
    )
    return _settled(outcome, issue, ActionKind.BLOCK)


def unblock(actor: Actor, issue: Issue, reason: str = "") -> Outcome:
    """blocked -> open."""
    if issue.status != Status.BLOCKED:
        raise InvalidTransitionError(issue.status, Status.OPEN, issue.id,
                                     f"not blocked (status: {issue.status})")
    message = f"Unblocked: {reason}" if reason else "Unblocked"
    outcome = transition_issue(
        actor, issue, Status.OPEN, ActionKind.UNBLOCK, message=message,
    )
    return _settled(outcome, issue, ActionKind.UNBLOCK)


def reopen(actor: Actor, issue: Issue, reason: str = "") -> Outcome:
    """closed -> open. Cascades that fired on close are left as they are."""
    if issue.status != Status.CLOSED:
        raise InvalidTransitionError(issue.status, Status.OPEN, issue.id,
                                     f"not closed (status: {issue.status})")

    def clear_review(i: Issue) -> None:
        i.reviewer_session = None

    message = f"Reopened: {reason}" if reason else "Reopened"
    outcome = transition_issue(
        actor, issue, Status.OPEN, ActionKind.REOPEN, message=message, mutate=clear_review,
    )
    return _settled(outcome, issue, ActionKind.REOPEN)


def set_status(actor: Actor, issue: Issue, to_status: str) -> Outcome | None:
    """Status change requested through ``update --status``.

    Closing and review submission carry their own protocol and are refused
    here. Returns None when the issue already has the status.
    """
    if to_status in (Status.CLOSED, Status.IN_REVIEW):
        verb = "close or approve" if to_status == Status.CLOSED else "review"
        raise InvalidInputError(f"use 'td {verb}' to move an issue to {to_status}", issue.id)
    if issue.status == to_status:
        return None

    def ensure_implementer(i: Issue) -> None:
        if to_status == Status.IN_PROGRESS and not i.implementer_session:
            i.implementer_session = actor.session_id

    return transition_issue(
        actor, issue, to_status, ActionKind.UPDATE,
        message=f"Status changed to {to_status}",
        mutate=ensure_implementer,
    )
