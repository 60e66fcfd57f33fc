"""Configuration management for td.

Handles:
- .todos/ directory discovery (flag, TD_WORK_DIR, walking up from cwd)
- .todos/config.yaml parsing (user-facing config)
- .todos/config.json project state (focus, active work session)
- .todos/security_events.jsonl audit stream
- Environment variable overrides
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from typing import Any

import yaml

from td.models import format_timestamp, now_utc


TODOS_DIR = ".todos"
CONFIG_YAML = "config.yaml"
STATE_JSON = "config.json"
SECURITY_LOG = "security_events.jsonl"
DEFAULT_DB_NAME = "issues.db"

WORKFLOW_MODES = ("liberal", "advisory", "strict")


def _env_flag(name: str) -> bool | None:
    value = os.environ.get(name)
    if value is None or value == "":
        return None
    return value.lower() in ("1", "true", "yes", "on")


@dataclass
class TdConfig:
    """User-facing config from config.yaml."""
    json_output: bool = False
    strict_handoff: bool = False
    workflow_mode: str = "liberal"
    log_level: str = "INFO"

    @classmethod
    def load(cls, todos_dir: str) -> TdConfig:
        """Load config.yaml from the .todos directory."""
        config_path = os.path.join(todos_dir, CONFIG_YAML)
        cfg = cls()
        if os.path.exists(config_path):
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            cfg.json_output = bool(data.get("json", False))
            cfg.strict_handoff = bool(data.get("strict-handoff", False))
            cfg.workflow_mode = str(data.get("workflow-mode", "liberal"))
            cfg.log_level = str(data.get("log-level", "INFO"))

        # Environment variable overrides
        flag = _env_flag("TD_JSON")
        if flag is not None:
            cfg.json_output = flag
        flag = _env_flag("TD_STRICT_HANDOFF")
        if flag is not None:
            cfg.strict_handoff = flag
        if os.environ.get("TD_WORKFLOW_MODE"):
            cfg.workflow_mode = os.environ["TD_WORKFLOW_MODE"]
        if os.environ.get("TD_LOG_LEVEL"):
            cfg.log_level = os.environ["TD_LOG_LEVEL"]

        if cfg.workflow_mode not in WORKFLOW_MODES:
            cfg.workflow_mode = "liberal"
        return cfg

    def save(self, todos_dir: str) -> None:
        """Save config to config.yaml."""
        config_path = os.path.join(todos_dir, CONFIG_YAML)
        data: dict[str, Any] = {
            "json": self.json_output,
            "strict-handoff": self.strict_handoff,
            "workflow-mode": self.workflow_mode,
            "log-level": self.log_level,
        }
        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


@dataclass
class ProjectState:
    """Machine-written state from config.json."""
    focused_issue_id: str = ""
    active_work_session: str = ""

    @classmethod
    def load(cls, todos_dir: str) -> ProjectState:
        path = os.path.join(todos_dir, STATE_JSON)
        state = cls()
        if not os.path.exists(path):
            return state
        with open(path) as f:
            raw = f.read()
        if not raw.strip():
            return state
        data = json.loads(raw)
        state.focused_issue_id = data.get("focused_issue_id", "") or ""
        state.active_work_session = data.get("active_work_session", "") or ""
        return state

    def save(self, todos_dir: str) -> None:
        """Write config.json atomically via a temp file and rename."""
        path = os.path.join(todos_dir, STATE_JSON)
        data: dict[str, Any] = {}
        if self.focused_issue_id:
            data["focused_issue_id"] = self.focused_issue_id
        if self.active_work_session:
            data["active_work_session"] = self.active_work_session
        fd, tmp_path = tempfile.mkstemp(dir=todos_dir, prefix=".config-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


# --- Focus ---

def get_focus(todos_dir: str) -> str:
    return ProjectState.load(todos_dir).focused_issue_id


def set_focus(todos_dir: str, issue_id: str) -> None:
    state = ProjectState.load(todos_dir)
    state.focused_issue_id = issue_id
    state.save(todos_dir)


def clear_focus(todos_dir: str) -> None:
    state = ProjectState.load(todos_dir)
    if state.focused_issue_id:
        state.focused_issue_id = ""
        state.save(todos_dir)


def clear_focus_if_needed(todos_dir: str, issue_id: str) -> bool:
    """Clear focus when it points at issue_id. Returns True if cleared."""
    state = ProjectState.load(todos_dir)
    if state.focused_issue_id != issue_id:
        return False
    state.focused_issue_id = ""
    state.save(todos_dir)
    return True


# --- Work session marker ---

def get_active_work_session(todos_dir: str) -> str:
    return ProjectState.load(todos_dir).active_work_session


def set_active_work_session(todos_dir: str, ws_id: str) -> None:
    state = ProjectState.load(todos_dir)
    state.active_work_session = ws_id
    state.save(todos_dir)


# --- Security audit stream ---

def append_security_event(todos_dir: str, event: dict[str, Any]) -> None:
    """Append one self-close exception record to security_events.jsonl."""
    record = {"timestamp": format_timestamp(now_utc())}
    record.update(event)
    path = os.path.join(todos_dir, SECURITY_LOG)
    with open(path, "a") as f:
        f.write(json.dumps(record, sort_keys=False) + "\n")


def read_security_events(todos_dir: str) -> list[dict[str, Any]]:
    path = os.path.join(todos_dir, SECURITY_LOG)
    if not os.path.exists(path):
        return []
    events = []
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line:
                events.append(json.loads(line))
    return events


def clear_security_events(todos_dir: str) -> None:
    path = os.path.join(todos_dir, SECURITY_LOG)
    if os.path.exists(path):
        os.unlink(path)


# --- Discovery ---

def find_todos_dir(start: str | None = None) -> str | None:
    """Walk up from start directory to find .todos/ directory.

    Returns absolute path to .todos/ directory, or None if not found.
    """
    if start is None:
        start = os.getcwd()
    current = os.path.abspath(start)
    while True:
        candidate = os.path.join(current, TODOS_DIR)
        if os.path.isdir(candidate):
            return candidate
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def resolve_project_root(work_dir: str | None = None) -> str | None:
    """Project root from --work-dir, then TD_WORK_DIR, then upward search."""
    explicit = work_dir or os.environ.get("TD_WORK_DIR")
    if explicit:
        root = os.path.abspath(os.path.expanduser(explicit))
        if os.path.isdir(os.path.join(root, TODOS_DIR)):
            return root
        found = find_todos_dir(root)
        return os.path.dirname(found) if found else None
    found = find_todos_dir()
    return os.path.dirname(found) if found else None


def get_db_path(todos_dir: str) -> str:
    """Get the full path to the SQLite database."""
    env_db = os.environ.get("TD_DB")
    if env_db:
        return env_db
    return os.path.join(todos_dir, DEFAULT_DB_NAME)
