"""Status propagation along parent/child and dependency edges.

Cascades run after the triggering mutation has committed. Each cascaded
step is its own transaction with its own action-log entry, so undoing the
triggering command leaves cascaded effects in place. A failing step becomes
a warning on the outcome and the cascade moves on.
"""

from __future__ import annotations

import dataclasses

from td.actions import add_handoff_logged, add_session_log
from td.errors import InvalidTransitionError, TdError
from td.lifecycle import Actor, Outcome, transition_issue
from td.log import get_logger
from td.models import ActionKind, Handoff, Issue, IssueType, Status
from td.workflow import ActionContext, StateMachine

log = get_logger("cascade")

CASCADE_TARGETS = (Status.IN_REVIEW, Status.CLOSED)


def at_or_beyond(status: str, target: str) -> bool:
    """True when status has reached target for cascade purposes."""
    if target == Status.IN_REVIEW:
        return status in (Status.IN_REVIEW, Status.CLOSED)
    return status == Status.CLOSED


def _automated(actor: Actor) -> Actor:
    # Cascades apply the bare transition table; guards are for interactive verbs
    return dataclasses.replace(actor, machine=StateMachine())


def _warn(outcome: Outcome, message: str) -> None:
    log.warning(message, extra={"issue_id": outcome.issue.id})
    outcome.warnings.append(message)


def _claim_if_unset(session_id: str):
    def mutate(issue: Issue) -> None:
        if not issue.implementer_session:
            issue.implementer_session = session_id
    return mutate


def cascade_up(actor: Actor, issue_id: str, target: str, outcome: Outcome) -> None:
    """Move epic ancestors to target once all their children have reached it."""
    if target not in CASCADE_TARGETS:
        raise ValueError(f"cannot cascade to {target}")
    store = actor.store
    auto = _automated(actor)
    kind = ActionKind.CLOSE if target == Status.CLOSED else ActionKind.REVIEW
    seen: set[str] = set()
    current_id = issue_id

    while True:
        current = store.get_issue(current_id)
        if current is None or not current.parent_id or current.parent_id in seen:
            return
        parent = store.get_issue(current.parent_id)
        if parent is None or parent.issue_type != IssueType.EPIC:
            return
        seen.add(parent.id)
        if at_or_beyond(parent.status, target):
            return
        children = store.get_direct_children(parent.id)
        if not children or not all(at_or_beyond(c.status, target) for c in children):
            return

        try:
            result = transition_issue(
                auto, parent, target, kind,
                context=ActionContext.AUTOMATED,
                message=f"Auto-cascaded to {target} (all children complete)",
                mutate=_claim_if_unset(actor.session_id),
            )
        except InvalidTransitionError as e:
            log.info("cascade stopped", extra={"issue_id": parent.id, "error": e.message})
            return
        except TdError as e:
            _warn(outcome, f"failed to cascade {target} to parent {parent.id}: {e.message}")
            return
        if result is None:
            return

        outcome.cascaded_parents.append((parent.id, target))
        if target == Status.CLOSED:
            cascade_unblock(actor, parent.id, outcome)
        current_id = parent.id


def cascade_down(actor: Actor, parent_id: str, outcome: Outcome) -> None:
    """Carry a parent's review submission to its open and in-progress descendants.

    Descendants without a handoff receive a minimal one naming the parent;
    existing handoffs are left untouched.
    """
    store = actor.store
    auto = _automated(actor)
    descendants = store.get_descendants(parent_id, [Status.OPEN, Status.IN_PROGRESS])
    for child in descendants:
        try:
            with store.transaction():
                if store.get_latest_handoff(child.id) is None:
                    store.add_handoff(Handoff(
                        issue_id=child.id,
                        session_id=actor.session_id,
                        done=[f"Cascaded from {parent_id}"],
                    ))
                transition_issue(
                    auto, child, Status.IN_REVIEW, ActionKind.REVIEW,
                    context=ActionContext.AUTOMATED,
                    force=True,
                    message=f"Cascaded review from {parent_id}",
                    mutate=_claim_if_unset(actor.session_id),
                )
        except TdError as e:
            _warn(outcome, f"failed to cascade review to {child.id}: {e.message}")
            continue
        outcome.descendants.append(child.id)


def cascade_unblock(actor: Actor, closed_id: str, outcome: Outcome) -> None:
    """Reopen blocked dependents whose dependencies are now all closed."""
    store = actor.store
    auto = _automated(actor)
    for dependent_id in store.get_blocked_by(closed_id):
        dependent = store.get_issue(dependent_id)
        if dependent is None or dependent.status != Status.BLOCKED:
            continue
        if not _dependencies_resolved(actor, dependent_id):
            continue
        try:
            transition_issue(
                auto, dependent, Status.OPEN, ActionKind.UNBLOCK,
                context=ActionContext.AUTOMATED,
                message="Auto-unblocked (all dependencies resolved)",
            )
        except TdError as e:
            _warn(outcome, f"failed to unblock {dependent_id}: {e.message}")
            continue
        outcome.unblocked.append(dependent_id)


def _dependencies_resolved(actor: Actor, issue_id: str) -> bool:
    for dep_id in actor.store.get_dependencies(issue_id):
        dep = actor.store.get_issue(dep_id)
        # A deleted dependency no longer holds anything up
        if dep is not None and dep.status != Status.CLOSED:
            return False
    return True


def cascade_handoff(actor: Actor, parent_id: str) -> tuple[int, int, list[str]]:
    """Give open and in-progress descendants a handoff pointing at the parent.

    Returns (created, skipped_existing, warnings).
    """
    store = actor.store
    created = 0
    skipped = 0
    warnings: list[str] = []
    for child in store.get_descendants(parent_id, [Status.OPEN, Status.IN_PROGRESS]):
        if store.get_latest_handoff(child.id) is not None:
            skipped += 1
            continue
        try:
            with store.transaction():
                add_handoff_logged(store, Handoff(
                    issue_id=child.id,
                    session_id=actor.session_id,
                    done=[f"Cascaded from {parent_id}"],
                ), actor.session_id)
                add_session_log(store, child.id, actor.session_id,
                                f"Cascaded handoff from {parent_id}",
                                work_session_id=actor.work_session_id)
        except TdError as e:
            message = f"cascade handoff {child.id}: {e.message}"
            log.warning(message, extra={"issue_id": child.id})
            warnings.append(message)
            continue
        created += 1
    return created, skipped, warnings
