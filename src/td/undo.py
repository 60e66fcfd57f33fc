"""Single-step undo over the action log.

``undo_last`` takes the newest non-undone entry of the acting session,
applies its inverse, appends a compensating entry and flags the original,
all in one transaction. Compensating entries are written already flagged,
so a second undo reaches further back instead of redoing.

Appends to logs, comments and work sessions cannot be undone.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable

from td.actions import record_action
from td.errors import (
    CycleDetectedError, DependencyExistsError, NotFoundError, UndoError,
)
from td.lifecycle import Actor
from td.log import get_logger
from td.models import (
    ActionKind, ActionLogEntry, Board, BoardPosition, EntityKind, Handoff, Issue,
    IssueFile,
)
from td.storage.interface import Storage

log = get_logger("undo")


@dataclass
class Compensation:
    """The forward event written for an inverse operation."""

    action_kind: str
    entity_kind: str
    entity_id: str
    previous: Any = None
    new: Any = None


@dataclass
class UndoResult:
    original: ActionLogEntry
    compensating_rowid: int

    def describe(self) -> str:
        e = self.original
        return f"{e.action_kind} {e.entity_kind} {e.entity_id}"


def _load(raw: str | None, what: str, entry: ActionLogEntry) -> dict:
    if not raw:
        raise UndoError(f"cannot undo {entry.action_kind}: no {what} recorded", entry.entity_id)
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise UndoError(f"cannot undo {entry.action_kind}: {what} is not valid JSON ({e})",
                        entry.entity_id) from e
    if not isinstance(data, dict):
        raise UndoError(f"cannot undo {entry.action_kind}: {what} is not an object",
                        entry.entity_id)
    return data


def _unsupported(entry: ActionLogEntry) -> UndoError:
    return UndoError(f"undo not supported for {entry.action_kind} on {entry.entity_kind}",
                     entry.entity_id)


# --- Issues ---

def _undo_issue(store: Storage, entry: ActionLogEntry) -> Compensation:
    issue_id = entry.entity_id
    current = store.get_issue(issue_id, include_deleted=True)
    if current is None:
        raise UndoError(f"issue no longer exists: {issue_id}", issue_id)
    kind = entry.action_kind

    if kind in (ActionKind.CREATE, ActionKind.RESTORE):
        if current.is_deleted():
            raise UndoError(f"issue already deleted: {issue_id}", issue_id)
        store.soft_delete_issue(issue_id)
        after = store.get_issue(issue_id, include_deleted=True)
        return Compensation(ActionKind.DELETE, EntityKind.ISSUE, issue_id, current, after)

    if kind == ActionKind.DELETE:
        if not current.is_deleted():
            raise UndoError(f"issue is not deleted: {issue_id}", issue_id)
        store.restore_issue(issue_id)
        after = store.get_issue(issue_id)
        return Compensation(ActionKind.RESTORE, EntityKind.ISSUE, issue_id, current, after)

    if kind in ActionKind.STATE_CHANGES:
        data = _load(entry.previous_data, "previous state", entry)
        try:
            restored = Issue.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise UndoError(f"cannot undo {kind}: previous state unreadable ({e})",
                            issue_id) from e
        if restored.id != issue_id:
            raise UndoError(f"cannot undo {kind}: previous state belongs to {restored.id}",
                            issue_id)
        store.update_issue(restored)
        return Compensation(ActionKind.UPDATE, EntityKind.ISSUE, issue_id, current, restored)

    raise _unsupported(entry)


# --- Dependencies ---

def _undo_dependency(store: Storage, entry: ActionLogEntry) -> Compensation:
    data = _load(entry.new_data or entry.previous_data, "dependency", entry)
    issue_id = data.get("issue_id")
    depends_on_id = data.get("depends_on_id")
    if not issue_id or not depends_on_id:
        raise UndoError("cannot undo dependency change: edge data incomplete", entry.entity_id)
    edge = {"issue_id": issue_id, "depends_on_id": depends_on_id}

    if entry.action_kind == ActionKind.ADD_DEP:
        if not store.remove_dependency(issue_id, depends_on_id):
            raise UndoError(f"dependency no longer exists: {issue_id} -> {depends_on_id}",
                            issue_id)
        return Compensation(ActionKind.REMOVE_DEP, EntityKind.DEPENDENCY, entry.entity_id,
                            edge, None)

    if entry.action_kind == ActionKind.REMOVE_DEP:
        try:
            store.add_dependency(issue_id, depends_on_id)
        except (CycleDetectedError, DependencyExistsError) as e:
            raise UndoError(f"cannot restore dependency: {e.message}", issue_id) from e
        return Compensation(ActionKind.ADD_DEP, EntityKind.DEPENDENCY, entry.entity_id,
                            None, edge)

    raise _unsupported(entry)


# --- File links ---

def _undo_file_link(store: Storage, entry: ActionLogEntry) -> Compensation:
    if entry.action_kind == ActionKind.LINK_FILE:
        linked = IssueFile.from_dict(_load(entry.new_data, "file link", entry))
        if entry.previous_data:
            previous = IssueFile.from_dict(_load(entry.previous_data, "previous link", entry))
            store.link_file(previous)
            return Compensation(ActionKind.LINK_FILE, EntityKind.FILE_LINK, entry.entity_id,
                                linked, previous)
        if not store.unlink_file(linked.issue_id, linked.file_path):
            raise UndoError(f"file no longer linked: {linked.file_path}", linked.issue_id)
        return Compensation(ActionKind.UNLINK_FILE, EntityKind.FILE_LINK, entry.entity_id,
                            linked, None)

    if entry.action_kind == ActionKind.UNLINK_FILE:
        previous = IssueFile.from_dict(_load(entry.previous_data, "file link", entry))
        store.link_file(previous)
        return Compensation(ActionKind.LINK_FILE, EntityKind.FILE_LINK, entry.entity_id,
                            None, previous)

    raise _unsupported(entry)


# --- Boards ---

def _undo_board_position(store: Storage, entry: ActionLogEntry) -> Compensation:
    if entry.action_kind == ActionKind.BOARD_SET_POSITION:
        placed = BoardPosition.from_dict(_load(entry.new_data, "position", entry))
        if entry.previous_data:
            previous = BoardPosition.from_dict(_load(entry.previous_data, "previous position",
                                                     entry))
            store.set_board_position(previous)
            return Compensation(ActionKind.BOARD_SET_POSITION, EntityKind.BOARD_POSITION,
                                entry.entity_id, placed, previous)
        store.remove_board_position(placed.board_id, placed.issue_id)
        return Compensation(ActionKind.BOARD_UNPOSITION, EntityKind.BOARD_POSITION,
                            entry.entity_id, placed, None)

    if entry.action_kind == ActionKind.BOARD_UNPOSITION:
        previous = BoardPosition.from_dict(_load(entry.previous_data, "position", entry))
        if store.get_board(previous.board_id) is None:
            raise UndoError(f"board no longer exists: {previous.board_id}", previous.issue_id)
        store.set_board_position(previous)
        return Compensation(ActionKind.BOARD_SET_POSITION, EntityKind.BOARD_POSITION,
                            entry.entity_id, None, previous)

    raise _unsupported(entry)


def _undo_board(store: Storage, entry: ActionLogEntry) -> Compensation:
    board_id = entry.entity_id

    if entry.action_kind == ActionKind.BOARD_CREATE:
        board = store.get_board(board_id)
        if board is None:
            raise UndoError(f"board no longer exists: {board_id}")
        positions = store.get_board_positions(board_id)
        store.delete_board(board_id)
        return Compensation(ActionKind.BOARD_DELETE, EntityKind.BOARD, board_id,
                            {"board": board.to_dict(),
                             "positions": [p.to_dict() for p in positions]}, None)

    if entry.action_kind == ActionKind.BOARD_DELETE:
        data = _load(entry.previous_data, "board", entry)
        if "board" not in data:
            raise UndoError("cannot undo board_delete: board data missing", board_id)
        board = Board.from_dict(data["board"])
        if store.get_board(board.name) is not None:
            raise UndoError(f"a board named {board.name!r} already exists")
        store.create_board(board)
        for raw in data.get("positions") or []:
            store.set_board_position(BoardPosition.from_dict(raw))
        return Compensation(ActionKind.BOARD_CREATE, EntityKind.BOARD, board_id, None, board)

    if entry.action_kind == ActionKind.BOARD_UPDATE:
        previous = Board.from_dict(_load(entry.previous_data, "board", entry))
        current = store.get_board(board_id)
        if current is None:
            raise UndoError(f"board no longer exists: {board_id}")
        store.update_board(previous)
        return Compensation(ActionKind.BOARD_UPDATE, EntityKind.BOARD, board_id,
                            current, previous)

    raise _unsupported(entry)


# --- Handoffs ---

def _undo_handoff(store: Storage, entry: ActionLogEntry) -> Compensation:
    if entry.action_kind != ActionKind.HANDOFF:
        raise _unsupported(entry)
    try:
        handoff_id = int(entry.entity_id)
    except ValueError as e:
        raise UndoError(f"invalid handoff reference: {entry.entity_id}") from e
    handoff: Handoff | None = store.get_handoff(handoff_id)
    if handoff is None:
        raise UndoError(f"handoff no longer exists: {handoff_id}")
    store.delete_handoff(handoff_id)
    return Compensation(ActionKind.DELETE, EntityKind.HANDOFF, entry.entity_id, handoff, None)


def _append_only(store: Storage, entry: ActionLogEntry) -> Compensation:
    raise UndoError(f"undo not supported for {entry.entity_kind} (append-only)",
                    entry.entity_id)


_HANDLERS: dict[str, Callable[[Storage, ActionLogEntry], Compensation]] = {
    EntityKind.ISSUE: _undo_issue,
    EntityKind.DEPENDENCY: _undo_dependency,
    EntityKind.FILE_LINK: _undo_file_link,
    EntityKind.BOARD_POSITION: _undo_board_position,
    EntityKind.BOARD: _undo_board,
    EntityKind.HANDOFF: _undo_handoff,
    EntityKind.LOGS: _append_only,
    EntityKind.COMMENTS: _append_only,
    EntityKind.WORK_SESSIONS: _append_only,
}


def undo_entry(actor: Actor, entry: ActionLogEntry) -> UndoResult:
    """Invert one action-log entry.

    On failure nothing changes and the entry stays eligible for undo.
    """
    if entry.undone:
        raise UndoError(f"action already undone: {entry.rowid}", entry.entity_id)
    handler = _HANDLERS.get(entry.entity_kind)
    if handler is None:
        raise UndoError(f"unknown entity kind: {entry.entity_kind}", entry.entity_id)

    store = actor.store
    try:
        with store.transaction():
            comp = handler(store, entry)
            rowid = record_action(store, actor.session_id, comp.action_kind, comp.entity_kind,
                                  comp.entity_id, comp.previous, comp.new, undone=True)
            store.mark_undone(entry.rowid)
    except UndoError as e:
        log.error("undo failed", extra={
            "action": entry.action_kind, "entity": entry.entity_kind,
            "issue_id": entry.entity_id, "error": e.message,
        })
        raise
    except NotFoundError as e:
        raise UndoError(e.message, entry.entity_id) from e
    log.info("undone", extra={
        "action": entry.action_kind, "entity": entry.entity_kind,
        "issue_id": entry.entity_id, "session": actor.session_id,
    })
    return UndoResult(original=entry, compensating_rowid=rowid)


def undo_last(actor: Actor) -> UndoResult:
    entry = actor.store.get_last_undoable(actor.session_id)
    if entry is None:
        raise UndoError("nothing to undo for this session")
    return undo_entry(actor, entry)


def recent_actions(actor: Actor, limit: int = 10, all_sessions: bool = False) -> list[ActionLogEntry]:
    session_id = None if all_sessions else actor.session_id
    return actor.store.list_actions(session_id=session_id, limit=limit)


def is_undoable(entry: ActionLogEntry) -> bool:
    return not entry.undone and entry.entity_kind not in EntityKind.APPEND_ONLY

