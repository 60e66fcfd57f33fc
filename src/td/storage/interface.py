"""Abstract storage interface for td."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Callable

from td.models import (
    ActionLogEntry, Board, BoardPosition, Comment, Handoff, Issue, IssueFile,
    IssueFilter, LogEntry, SessionHistoryEntry, SessionRecord,
)


class Storage(ABC):
    """Storage backend interface."""

    # --- Lifecycle ---

    @abstractmethod
    def path(self) -> str:
        """Return the database path."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying connection."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Storage]:
        """Group mutations into one atomic unit; nests by depth."""

    @abstractmethod
    def run_in_transaction(self, fn: Callable[[Storage], Any]) -> Any:
        """Call fn(store) inside a transaction and return its result."""

    # --- Issues ---

    @abstractmethod
    def create_issue(self, issue: Issue) -> None:
        """Insert a new issue."""

    @abstractmethod
    def get_issue(self, issue_id: str, include_deleted: bool = False) -> Issue | None:
        """Get an issue by ID."""

    @abstractmethod
    def update_issue(self, issue: Issue, touch: bool = True) -> None:
        """Overwrite every stored field of an issue."""

    @abstractmethod
    def soft_delete_issue(self, issue_id: str) -> None:
        """Mark an issue deleted without removing it."""

    @abstractmethod
    def restore_issue(self, issue_id: str) -> None:
        """Clear the deleted marker of an issue."""

    @abstractmethod
    def list_issues(self, filter: IssueFilter) -> list[Issue]:
        """List issues matching the filter."""

    @abstractmethod
    def get_direct_children(self, parent_id: str) -> list[Issue]:
        """Non-deleted issues whose parent is parent_id."""

    @abstractmethod
    def get_descendants(self, parent_id: str, statuses: list[str] | None = None) -> list[Issue]:
        """All transitive descendants, optionally filtered by status."""

    @abstractmethod
    def resolve_id(self, partial: str) -> str | None:
        """Resolve a partial ID to a full ID."""

    # --- Dependencies ---

    @abstractmethod
    def add_dependency(self, issue_id: str, depends_on_id: str) -> None:
        """Add an edge; raises on duplicates and cycles."""

    @abstractmethod
    def remove_dependency(self, issue_id: str, depends_on_id: str) -> bool:
        """Remove an edge. Returns False if it did not exist."""

    @abstractmethod
    def dependency_exists(self, issue_id: str, depends_on_id: str) -> bool:
        """Check for an exact edge."""

    @abstractmethod
    def get_dependencies(self, issue_id: str) -> list[str]:
        """IDs this issue depends on."""

    @abstractmethod
    def get_blocked_by(self, issue_id: str) -> list[str]:
        """IDs of issues that depend on this issue."""

    @abstractmethod
    def has_cycle(self, issue_id: str, depends_on_id: str) -> bool:
        """Check if adding this dependency would create a cycle."""

    # --- Handoffs ---

    @abstractmethod
    def add_handoff(self, handoff: Handoff) -> int:
        """Insert a handoff. Returns its ID."""

    @abstractmethod
    def get_handoff(self, handoff_id: int) -> Handoff | None:
        """Get a handoff by ID."""

    @abstractmethod
    def get_latest_handoff(self, issue_id: str) -> Handoff | None:
        """Most recent handoff for an issue."""

    @abstractmethod
    def delete_handoff(self, handoff_id: int) -> None:
        """Delete a handoff."""

    # --- Logs and comments ---

    @abstractmethod
    def add_log(self, entry: LogEntry) -> int:
        """Append a progress log entry."""

    @abstractmethod
    def get_logs(self, issue_id: str, limit: int = 0) -> list[LogEntry]:
        """Logs for an issue, oldest first."""

    @abstractmethod
    def add_comment(self, comment: Comment) -> int:
        """Append a comment."""

    @abstractmethod
    def get_comments(self, issue_id: str) -> list[Comment]:
        """Comments for an issue, oldest first."""

    # --- Session history ---

    @abstractmethod
    def record_session_action(self, issue_id: str, session_id: str, action: str) -> None:
        """Append a session-history entry."""

    @abstractmethod
    def was_session_involved(self, issue_id: str, session_id: str) -> bool:
        """True if any session-history entry exists for the pair."""

    @abstractmethod
    def get_session_history(self, issue_id: str) -> list[SessionHistoryEntry]:
        """Session-history entries for an issue."""

    # --- Sessions ---

    @abstractmethod
    def upsert_session(self, session: SessionRecord) -> None:
        """Insert or replace a session row."""

    @abstractmethod
    def get_session(self, session_id: str) -> SessionRecord | None:
        """Get a session by ID."""

    @abstractmethod
    def get_session_by_context(self, context_id: str) -> SessionRecord | None:
        """Most recently active session for an execution context."""

    # --- Action log ---

    @abstractmethod
    def log_action(self, entry: ActionLogEntry) -> int:
        """Append an action-log entry. Returns its rowid."""

    @abstractmethod
    def get_action(self, rowid: int) -> ActionLogEntry | None:
        """Get an action-log entry by rowid."""

    @abstractmethod
    def get_last_undoable(self, session_id: str) -> ActionLogEntry | None:
        """Most recent non-undone entry for a session."""

    @abstractmethod
    def mark_undone(self, rowid: int) -> None:
        """Flag an action-log entry as undone."""

    @abstractmethod
    def list_actions(self, session_id: str | None = None, limit: int = 10,
                     include_undone: bool = True) -> list[ActionLogEntry]:
        """Recent action-log entries, newest first."""

    # --- File links ---

    @abstractmethod
    def link_file(self, link: IssueFile) -> None:
        """Link a file to an issue."""

    @abstractmethod
    def unlink_file(self, issue_id: str, file_path: str) -> bool:
        """Remove a file link. Returns False if absent."""

    @abstractmethod
    def get_file_link(self, issue_id: str, file_path: str) -> IssueFile | None:
        """Get a single file link."""

    @abstractmethod
    def get_linked_files(self, issue_id: str) -> list[IssueFile]:
        """All files linked to an issue."""

    # --- Boards ---

    @abstractmethod
    def create_board(self, board: Board) -> None:
        """Insert a board."""

    @abstractmethod
    def get_board(self, board_id_or_name: str) -> Board | None:
        """Get a board by ID or name."""

    @abstractmethod
    def update_board(self, board: Board) -> None:
        """Overwrite a board's name and query."""

    @abstractmethod
    def delete_board(self, board_id: str) -> None:
        """Delete a board and its positions."""

    @abstractmethod
    def list_boards(self) -> list[Board]:
        """All boards by name."""

    @abstractmethod
    def set_board_position(self, position: BoardPosition) -> None:
        """Place an issue on a board."""

    @abstractmethod
    def remove_board_position(self, board_id: str, issue_id: str) -> bool:
        """Remove an issue from a board. Returns False if absent."""

    @abstractmethod
    def get_board_position(self, board_id: str, issue_id: str) -> BoardPosition | None:
        """Position of an issue on a board."""

    @abstractmethod
    def get_board_positions(self, board_id: str) -> list[BoardPosition]:
        """Positions on a board, in order."""

    # --- Metadata ---

    @abstractmethod
    def get_metadata(self, key: str) -> str | None:
        """Get a metadata value."""

    @abstractmethod
    def set_metadata(self, key: str, value: str) -> None:
        """Set a metadata value."""
