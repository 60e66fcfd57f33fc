"""Session resolution.

A session identifies the acting agent. An explicit ID (``--session`` or
``TD_SESSION_ID``) is used verbatim. Otherwise the execution context is
fingerprinted from agent and terminal environment variables, falling back
to the parent process, and mapped to a stored ``ses_xxxxxx`` row.
"""

from __future__ import annotations

import os
import sqlite3

from td.errors import NoActiveSessionError, StoreError
from td.id_gen import generate_session_id
from td.log import get_logger
from td.models import SessionRecord, now_utc
from td.storage.interface import Storage

log = get_logger("session")

_AGENT_VARS = (
    "CLAUDE_CODE_SSE_PORT",
    "CLAUDE_SESSION_ID",
    "ANTHROPIC_SESSION_ID",
    "AI_SESSION_ID",
    "CURSOR_SESSION_ID",
    "COPILOT_SESSION_ID",
)

_TERMINAL_VARS = (
    "TERM_SESSION_ID",
    "WINDOWID",
    "TMUX_PANE",
    "STY",
    "KONSOLE_DBUS_SESSION",
    "GNOME_TERMINAL_SCREEN",
    "SSH_TTY",
)


def get_context_id() -> str:
    """Identify the current execution context."""
    for name in _AGENT_VARS:
        value = os.environ.get(name)
        if value:
            return f"ai:{value}"
    for name in _TERMINAL_VARS:
        value = os.environ.get(name)
        if value:
            return f"term:{name}={value}"
    return f"proc:ppid={os.getppid()}"


def get_or_create(store: Storage, explicit_id: str | None = None) -> SessionRecord:
    """Return the current session, creating it if absent."""
    explicit_id = (explicit_id or os.environ.get("TD_SESSION_ID") or "").strip()
    try:
        if explicit_id:
            existing = store.get_session(explicit_id)
            if existing is not None:
                return _touch(store, existing)
            record = SessionRecord(id=explicit_id, context_id=f"explicit:{explicit_id}")
            store.upsert_session(record)
            log.info("session registered", extra={"session": record.id})
            return record

        context_id = get_context_id()
        existing = store.get_session_by_context(context_id)
        if existing is not None:
            return _touch(store, existing)
        return _create(store, context_id)
    except (StoreError, sqlite3.Error) as e:
        raise NoActiveSessionError(f"cannot resolve session: {e}") from e


def force_new_session(store: Storage) -> SessionRecord:
    """Rotate to a fresh session for the current context."""
    context_id = get_context_id()
    previous = store.get_session_by_context(context_id)
    return _create(store, context_id, previous.id if previous else None)


def set_name(store: Storage, session: SessionRecord, name: str) -> SessionRecord:
    session.name = name
    store.upsert_session(session)
    return session


def _create(store: Storage, context_id: str, previous_id: str | None = None) -> SessionRecord:
    record = SessionRecord(
        id=generate_session_id(),
        context_id=context_id,
        previous_session_id=previous_id,
    )
    store.upsert_session(record)
    log.info("session created", extra={"session": record.id})
    return record


def _touch(store: Storage, record: SessionRecord) -> SessionRecord:
    record.last_activity = now_utc()
    store.upsert_session(record)
    return record
