"""Identifier generation and validation.

Issue IDs are ``td-`` followed by 6-8 lowercase hex characters taken from a
SHA256 hash of the issue content, creation time and a random salt. The
caller starts with 6 characters and lengthens the ID on collision.
"""

from __future__ import annotations

import hashlib
import os
import re
from datetime import datetime

ISSUE_PREFIX = "td-"
SESSION_PREFIX = "ses_"
BOARD_PREFIX = "bd-"
WORK_SESSION_PREFIX = "ws-"

MIN_ID_LENGTH = 6
MAX_ID_LENGTH = 8

_ISSUE_ID_RE = re.compile(r"^td-[0-9a-f]{6,8}$")
# Accepted on input: hand-picked IDs such as td-epi001 are lowercase alphanumerics
_INPUT_ID_RE = re.compile(r"^td-[0-9a-z]{6,8}$")
_BARE_HEX_RE = re.compile(r"^[0-9a-f]{6,8}$")


def generate_hash_id(title: str, description: str, created: datetime) -> str:
    """Return a full 64-char SHA256 hex hash for progressive collision handling."""
    h = hashlib.sha256()
    h.update(title.encode("utf-8"))
    h.update(description.encode("utf-8"))
    h.update(created.isoformat().encode("utf-8"))
    h.update(os.urandom(8))
    return h.hexdigest()


def make_issue_id(full_hash: str, length: int = MIN_ID_LENGTH) -> str:
    """Create an issue ID from a hash.

    Example: td-a3f2dd (6 chars), td-a3f2dd7 (7 chars)
    """
    return f"{ISSUE_PREFIX}{full_hash[:length]}"


def normalize_issue_id(raw: str) -> str:
    """Trim, lowercase and add the ``td-`` prefix to bare hex IDs."""
    value = raw.strip().lower()
    if value and _BARE_HEX_RE.match(value):
        return ISSUE_PREFIX + value
    return value


def is_valid_issue_id(issue_id: str) -> bool:
    return bool(_ISSUE_ID_RE.match(issue_id))


def is_well_formed_issue_id(issue_id: str) -> bool:
    """Looser check used for IDs typed by the user."""
    return bool(_INPUT_ID_RE.match(issue_id))


def generate_session_id() -> str:
    return SESSION_PREFIX + os.urandom(3).hex()


def generate_board_id() -> str:
    return BOARD_PREFIX + os.urandom(3).hex()


def generate_work_session_id() -> str:
    return WORK_SESSION_PREFIX + os.urandom(2).hex()


def dependency_entity_id(issue_id: str, depends_on_id: str) -> str:
    """Entity ID recorded in the action log for a dependency edge."""
    return f"{issue_id}:{depends_on_id}"


def file_link_entity_id(issue_id: str, file_path: str) -> str:
    return f"{issue_id}:{file_path}"


def board_position_entity_id(board_id: str, issue_id: str) -> str:
    return f"{board_id}:{issue_id}"


def content_hash(path: str) -> str:
    """SHA256 of a file's contents, or empty string when unreadable."""
    h = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                h.update(chunk)
    except OSError:
        return ""
    return h.hexdigest()
