"""Action-log recording.

Every mutating operation writes its change and exactly one action-log entry
inside a single store transaction. ``previous_data`` / ``new_data`` hold the
stable JSON serialization of the entity before and after the change.
"""

from __future__ import annotations

import copy
import json

from td.errors import NotFoundError
from td.id_gen import board_position_entity_id, dependency_entity_id, file_link_entity_id
from td.log import get_logger
from td.models import (
    ActionKind, ActionLogEntry, Board, BoardPosition, Comment, EntityKind, Handoff, Issue,
    IssueFile, LogEntry, LogType,
)
from td.storage.interface import Storage

log = get_logger("actions")


def snapshot(entity) -> str | None:
    """Serialize an entity (or plain dict) for the action log."""
    if entity is None:
        return None
    data = entity if isinstance(entity, dict) else entity.to_dict()
    return json.dumps(data, separators=(",", ":"))


def clone(issue: Issue) -> Issue:
    return copy.deepcopy(issue)


def record_action(store: Storage, session_id: str, action_kind: str, entity_kind: str,
                  entity_id: str, previous=None, new=None, undone: bool = False) -> int:
    entry = ActionLogEntry(
        session_id=session_id,
        action_kind=action_kind,
        entity_kind=entity_kind,
        entity_id=entity_id,
        previous_data=snapshot(previous),
        new_data=snapshot(new),
        undone=undone,
    )
    rowid = store.log_action(entry)
    log.debug("action recorded", extra={
        "action": action_kind, "entity": entity_kind, "issue_id": entity_id,
        "session": session_id,
    })
    return rowid


def add_session_log(store: Storage, issue_id: str, session_id: str, message: str,
                    log_type: str = LogType.PROGRESS,
                    work_session_id: str | None = None) -> int:
    """Append a progress note to an issue. Not action-logged."""
    return store.add_log(LogEntry(
        issue_id=issue_id,
        session_id=session_id,
        message=message,
        log_type=log_type,
        work_session_id=work_session_id or None,
    ))


# --- Issues ---

def create_issue_logged(store: Storage, issue: Issue, session_id: str) -> int:
    with store.transaction():
        store.create_issue(issue)
        return record_action(store, session_id, ActionKind.CREATE, EntityKind.ISSUE,
                             issue.id, None, issue)


def update_issue_logged(store: Storage, issue: Issue, previous: Issue, session_id: str,
                        kind: str = ActionKind.UPDATE) -> int:
    """Persist issue and log kind with previous as the pre-state."""
    with store.transaction():
        store.update_issue(issue)
        return record_action(store, session_id, kind, EntityKind.ISSUE, issue.id,
                             previous, issue)


def delete_issue_logged(store: Storage, issue_id: str, session_id: str) -> int:
    with store.transaction():
        before = store.get_issue(issue_id)
        if before is None:
            raise NotFoundError(f"issue not found: {issue_id}", issue_id)
        store.soft_delete_issue(issue_id)
        after = store.get_issue(issue_id, include_deleted=True)
        return record_action(store, session_id, ActionKind.DELETE, EntityKind.ISSUE,
                             issue_id, before, after)


def restore_issue_logged(store: Storage, issue_id: str, session_id: str) -> int:
    with store.transaction():
        before = store.get_issue(issue_id, include_deleted=True)
        if before is None:
            raise NotFoundError(f"issue not found: {issue_id}", issue_id)
        store.restore_issue(issue_id)
        after = store.get_issue(issue_id)
        return record_action(store, session_id, ActionKind.RESTORE, EntityKind.ISSUE,
                             issue_id, before, after)


# --- Dependencies ---

def _edge(issue_id: str, depends_on_id: str) -> dict:
    return {"issue_id": issue_id, "depends_on_id": depends_on_id}


def add_dependency_logged(store: Storage, issue_id: str, depends_on_id: str,
                          session_id: str) -> int:
    with store.transaction():
        store.add_dependency(issue_id, depends_on_id)
        return record_action(store, session_id, ActionKind.ADD_DEP, EntityKind.DEPENDENCY,
                             dependency_entity_id(issue_id, depends_on_id),
                             None, _edge(issue_id, depends_on_id))


def remove_dependency_logged(store: Storage, issue_id: str, depends_on_id: str,
                             session_id: str) -> int:
    with store.transaction():
        if not store.remove_dependency(issue_id, depends_on_id):
            raise NotFoundError(f"no dependency: {issue_id} depends on {depends_on_id}", issue_id)
        return record_action(store, session_id, ActionKind.REMOVE_DEP, EntityKind.DEPENDENCY,
                             dependency_entity_id(issue_id, depends_on_id),
                             _edge(issue_id, depends_on_id), None)


# --- File links ---

def link_file_logged(store: Storage, link: IssueFile, session_id: str) -> int:
    with store.transaction():
        previous = store.get_file_link(link.issue_id, link.file_path)
        store.link_file(link)
        return record_action(store, session_id, ActionKind.LINK_FILE, EntityKind.FILE_LINK,
                             file_link_entity_id(link.issue_id, link.file_path),
                             previous, link)


def unlink_file_logged(store: Storage, issue_id: str, file_path: str, session_id: str) -> int:
    with store.transaction():
        previous = store.get_file_link(issue_id, file_path)
        if previous is None:
            raise NotFoundError(f"file not linked to {issue_id}: {file_path}", issue_id)
        store.unlink_file(issue_id, file_path)
        return record_action(store, session_id, ActionKind.UNLINK_FILE, EntityKind.FILE_LINK,
                             file_link_entity_id(issue_id, file_path), previous, None)


# --- Handoffs ---

def add_handoff_logged(store: Storage, handoff: Handoff, session_id: str) -> int:
    """Insert a handoff; returns its ID."""
    with store.transaction():
        handoff_id = store.add_handoff(handoff)
        record_action(store, session_id, ActionKind.HANDOFF, EntityKind.HANDOFF,
                      str(handoff_id), None, handoff)
        return handoff_id


# --- Append-only records ---

def add_log_logged(store: Storage, entry: LogEntry) -> int:
    """Insert a user-written progress log. Returns its ID."""
    with store.transaction():
        log_id = store.add_log(entry)
        record_action(store, entry.session_id, ActionKind.CREATE, EntityKind.LOGS,
                      str(log_id), None, entry)
        return log_id


def add_comment_logged(store: Storage, comment: Comment) -> int:
    with store.transaction():
        comment_id = store.add_comment(comment)
        record_action(store, comment.session_id, ActionKind.CREATE, EntityKind.COMMENTS,
                      str(comment_id), None, comment)
        return comment_id


def record_work_session(store: Storage, session_id: str, kind: str, ws_id: str,
                        previous: dict | None, new: dict | None) -> int:
    """Audit a work-session marker change; the marker itself lives in config.json."""
    with store.transaction():
        return record_action(store, session_id, kind, EntityKind.WORK_SESSIONS, ws_id,
                             previous, new)


# --- Boards ---

def create_board_logged(store: Storage, board: Board, session_id: str) -> int:
    with store.transaction():
        store.create_board(board)
        return record_action(store, session_id, ActionKind.BOARD_CREATE, EntityKind.BOARD,
                             board.id, None, board)


def update_board_logged(store: Storage, board: Board, previous: Board, session_id: str) -> int:
    with store.transaction():
        store.update_board(board)
        return record_action(store, session_id, ActionKind.BOARD_UPDATE, EntityKind.BOARD,
                             board.id, previous, board)


def delete_board_logged(store: Storage, board: Board, session_id: str) -> int:
    """Delete a board; its positions are captured so undo can rebuild them."""
    with store.transaction():
        positions = store.get_board_positions(board.id)
        previous = {
            "board": board.to_dict(),
            "positions": [p.to_dict() for p in positions],
        }
        store.delete_board(board.id)
        return record_action(store, session_id, ActionKind.BOARD_DELETE, EntityKind.BOARD,
                             board.id, previous, None)


def set_position_logged(store: Storage, position: BoardPosition, session_id: str) -> int:
    with store.transaction():
        previous = store.get_board_position(position.board_id, position.issue_id)
        store.set_board_position(position)
        return record_action(store, session_id, ActionKind.BOARD_SET_POSITION,
                             EntityKind.BOARD_POSITION,
                             board_position_entity_id(position.board_id, position.issue_id),
                             previous, position)


def unposition_logged(store: Storage, board_id: str, issue_id: str, session_id: str) -> int:
    with store.transaction():
        previous = store.get_board_position(board_id, issue_id)
        if previous is None:
            raise NotFoundError(f"{issue_id} is not on board {board_id}", issue_id)
        store.remove_board_position(board_id, issue_id)
        return record_action(store, session_id, ActionKind.BOARD_UNPOSITION,
                             EntityKind.BOARD_POSITION,
                             board_position_entity_id(board_id, issue_id), previous, None)
