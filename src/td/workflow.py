"""Issue status state machine.

The transition table is fixed. What varies is the context a transition runs
in (interactive CLI vs. automated cascade/undo) and the guard mode:

- liberal: only the table is consulted (default)
- advisory: guards run and their failures come back as warnings
- strict: any failed guard rejects the transition
"""

from __future__ import annotations

from dataclasses import dataclass, field

from td.errors import InvalidTransitionError
from td.models import Issue, IssueType, Status


class TransitionMode:
    LIBERAL = "liberal"
    ADVISORY = "advisory"
    STRICT = "strict"

    _VALID = {LIBERAL, ADVISORY, STRICT}

    @classmethod
    def is_valid(cls, m: str) -> bool:
        return m in cls._VALID


class ActionContext:
    CLI = "cli"
    AUTOMATED = "automated"


@dataclass
class TransitionContext:
    issue: Issue
    from_status: str
    to_status: str
    session_id: str = ""
    context: str = ActionContext.CLI
    force: bool = False
    minor: bool = False
    was_involved: bool = False
    open_child_count: int = 0


@dataclass
class GuardResult:
    passed: bool
    message: str = ""
    guard: str = ""


class Guard:
    """A named precondition attached to a transition."""

    name = "Guard"

    def check(self, ctx: TransitionContext) -> GuardResult:
        raise NotImplementedError


class BlockedGuard(Guard):
    name = "BlockedGuard"

    def check(self, ctx: TransitionContext) -> GuardResult:
        if ctx.from_status == Status.BLOCKED and not ctx.force:
            return GuardResult(False, "cannot start blocked issue")
        return GuardResult(True)


class DifferentReviewerGuard(Guard):
    name = "DifferentReviewerGuard"

    def check(self, ctx: TransitionContext) -> GuardResult:
        if ctx.minor or ctx.issue.minor:
            return GuardResult(True)
        if ctx.was_involved:
            return GuardResult(False, "reviewer must be a different session than the implementer")
        impl = ctx.issue.implementer_session
        if impl and impl == ctx.session_id:
            return GuardResult(False, "reviewer must be a different session than the implementer")
        return GuardResult(True)


class EpicChildrenGuard(Guard):
    name = "EpicChildrenGuard"

    def check(self, ctx: TransitionContext) -> GuardResult:
        if ctx.issue.issue_type != IssueType.EPIC or ctx.to_status != Status.CLOSED:
            return GuardResult(True)
        if ctx.open_child_count > 0:
            return GuardResult(False, f"epic has {ctx.open_child_count} unfinished child issue(s)")
        return GuardResult(True)


@dataclass
class Transition:
    from_status: str
    to_status: str
    guards: list[Guard] = field(default_factory=list)
    # Reachable from the CLI only with an explicit force
    restricted: bool = False


def all_transitions() -> list[Transition]:
    """The full transition table."""
    epic = EpicChildrenGuard()
    return [
        Transition(Status.OPEN, Status.IN_PROGRESS),
        Transition(Status.OPEN, Status.IN_REVIEW, restricted=True),
        Transition(Status.OPEN, Status.BLOCKED),
        Transition(Status.OPEN, Status.CLOSED, [epic]),

        Transition(Status.IN_PROGRESS, Status.OPEN),
        Transition(Status.IN_PROGRESS, Status.IN_REVIEW),
        Transition(Status.IN_PROGRESS, Status.BLOCKED),
        Transition(Status.IN_PROGRESS, Status.CLOSED, [epic]),

        Transition(Status.IN_REVIEW, Status.OPEN, restricted=True),
        Transition(Status.IN_REVIEW, Status.IN_PROGRESS),
        Transition(Status.IN_REVIEW, Status.BLOCKED),
        Transition(Status.IN_REVIEW, Status.CLOSED, [DifferentReviewerGuard(), epic]),

        Transition(Status.BLOCKED, Status.OPEN),
        Transition(Status.BLOCKED, Status.IN_PROGRESS, [BlockedGuard()]),
        Transition(Status.BLOCKED, Status.CLOSED, [epic]),

        Transition(Status.CLOSED, Status.OPEN),
    ]


class StateMachine:
    def __init__(self, mode: str = TransitionMode.LIBERAL) -> None:
        if not TransitionMode.is_valid(mode):
            raise ValueError(f"unknown transition mode: {mode}")
        self.mode = mode
        self._transitions: dict[str, dict[str, Transition]] = {}
        for t in all_transitions():
            self._transitions.setdefault(t.from_status, {})[t.to_status] = t

    def is_valid_transition(self, from_status: str, to_status: str) -> bool:
        return to_status in self._transitions.get(from_status, {})

    def get_transition(self, from_status: str, to_status: str) -> Transition | None:
        return self._transitions.get(from_status, {}).get(to_status)

    def allowed_transitions(self, from_status: str) -> list[str]:
        targets = self._transitions.get(from_status, {})
        return [s for s in Status.all() if s in targets]

    def validate(self, ctx: TransitionContext) -> list[GuardResult]:
        """Check a transition; raise InvalidTransitionError when denied.

        Returns guard results (non-empty only in advisory and strict modes).
        Self-transitions are accepted as no-ops in every context.
        """
        issue_id = ctx.issue.id
        if ctx.from_status == ctx.to_status:
            return []

        transition = self.get_transition(ctx.from_status, ctx.to_status)
        if transition is None:
            raise InvalidTransitionError(ctx.from_status, ctx.to_status, issue_id)
        if transition.restricted and ctx.context == ActionContext.CLI and not ctx.force:
            raise InvalidTransitionError(ctx.from_status, ctx.to_status, issue_id,
                                         "only reachable through cascade or undo")

        if self.mode == TransitionMode.LIBERAL:
            return []

        results = []
        failures = []
        for guard in transition.guards:
            result = guard.check(ctx)
            result.guard = guard.name
            results.append(result)
            if not result.passed:
                failures.append(f"{guard.name}: {result.message}")

        if failures and self.mode == TransitionMode.STRICT:
            raise InvalidTransitionError(ctx.from_status, ctx.to_status, issue_id,
                                         "; ".join(failures))
        return results

    def can_transition(self, ctx: TransitionContext) -> bool:
        try:
            self.validate(ctx)
        except InvalidTransitionError:
            return False
        return True


def validate_transition(issue: Issue, to_status: str, context: str = ActionContext.CLI,
                        machine: StateMachine | None = None, **kwargs) -> list[GuardResult]:
    """Convenience wrapper: validate moving issue from its current status."""
    machine = machine or StateMachine()
    ctx = TransitionContext(issue=issue, from_status=issue.status, to_status=to_status,
                            context=context, **kwargs)
    return machine.validate(ctx)
