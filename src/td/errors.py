"""Error types raised by the workflow core.

Each error carries the machine-readable code used in JSON output.
"""

from __future__ import annotations


class TdError(Exception):
    """Base class for all td errors."""

    code = "error"

    def __init__(self, message: str, issue_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.issue_id = issue_id


class NotFoundError(TdError):
    code = "not_found"


class InvalidInputError(TdError, ValueError):
    code = "invalid_input"


class InvalidTransitionError(TdError):
    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, issue_id: str | None = None,
                 reason: str = "transition not allowed") -> None:
        target = f" for {issue_id}" if issue_id else ""
        super().__init__(f"cannot transition{target} from {from_status} to {to_status}: {reason}",
                         issue_id)
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason


class HandoffRequiredError(TdError):
    code = "handoff_required"


class CannotSelfApproveError(TdError):
    code = "cannot_self_approve"


class CannotSelfCloseError(TdError):
    code = "cannot_self_close"


class CycleDetectedError(TdError, ValueError):
    code = "cycle_detected"


class DependencyExistsError(TdError, ValueError):
    code = "dependency_exists"


class ConflictError(TdError):
    code = "conflict"


class NoActiveSessionError(TdError):
    code = "no_active_session"


class StoreError(TdError):
    code = "database_error"


class UndoError(TdError):
    code = "undo_failed"
