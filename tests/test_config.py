"""Tests for configuration, project state and session resolution."""

import os

import pytest
import yaml

from td import session as sessions
from td.config import (
    ProjectState, TdConfig, append_security_event, clear_focus_if_needed,
    clear_security_events, find_todos_dir, get_active_work_session, get_db_path, get_focus,
    read_security_events, resolve_project_root, set_active_work_session, set_focus,
)


class TestTdConfig:
    def test_defaults_without_file(self, todos_dir):
        cfg = TdConfig.load(todos_dir)
        assert cfg.json_output is False
        assert cfg.strict_handoff is False
        assert cfg.workflow_mode == "liberal"

    def test_load_yaml(self, todos_dir):
        with open(os.path.join(todos_dir, "config.yaml"), "w") as f:
            yaml.dump({"json": True, "strict-handoff": True, "workflow-mode": "strict"}, f)
        cfg = TdConfig.load(todos_dir)
        assert cfg.json_output is True
        assert cfg.strict_handoff is True
        assert cfg.workflow_mode == "strict"

    def test_env_overrides(self, todos_dir, monkeypatch):
        TdConfig(strict_handoff=True).save(todos_dir)
        monkeypatch.setenv("TD_STRICT_HANDOFF", "0")
        monkeypatch.setenv("TD_WORKFLOW_MODE", "advisory")
        cfg = TdConfig.load(todos_dir)
        assert cfg.strict_handoff is False
        assert cfg.workflow_mode == "advisory"

    def test_unknown_mode_falls_back(self, todos_dir, monkeypatch):
        monkeypatch.setenv("TD_WORKFLOW_MODE", "anarchic")
        assert TdConfig.load(todos_dir).workflow_mode == "liberal"

    def test_save_roundtrip(self, todos_dir):
        TdConfig(json_output=True, log_level="DEBUG").save(todos_dir)
        cfg = TdConfig.load(todos_dir)
        assert cfg.json_output is True
        assert cfg.log_level == "DEBUG"


class TestProjectState:
    def test_focus(self, todos_dir):
        assert get_focus(todos_dir) == ""
        set_focus(todos_dir, "td-aaaaaa")
        assert get_focus(todos_dir) == "td-aaaaaa"
        assert not clear_focus_if_needed(todos_dir, "td-bbbbbb")
        assert clear_focus_if_needed(todos_dir, "td-aaaaaa")
        assert get_focus(todos_dir) == ""

    def test_work_session_marker_keeps_focus(self, todos_dir):
        set_focus(todos_dir, "td-aaaaaa")
        set_active_work_session(todos_dir, "ws-1234")
        state = ProjectState.load(todos_dir)
        assert state.focused_issue_id == "td-aaaaaa"
        assert get_active_work_session(todos_dir) == "ws-1234"

    def test_empty_state_file(self, todos_dir):
        open(os.path.join(todos_dir, "config.json"), "w").close()
        assert ProjectState.load(todos_dir).focused_issue_id == ""

    def test_no_temp_files_left(self, todos_dir):
        set_focus(todos_dir, "td-aaaaaa")
        leftovers = [n for n in os.listdir(todos_dir) if n.endswith(".tmp")]
        assert leftovers == []


class TestSecurityEvents:
    def test_append_and_read(self, todos_dir):
        append_security_event(todos_dir, {"event": "self_close_exception", "issue_id": "td-a"})
        append_security_event(todos_dir, {"event": "self_close_exception", "issue_id": "td-b"})
        events = read_security_events(todos_dir)
        assert [e["issue_id"] for e in events] == ["td-a", "td-b"]
        assert "timestamp" in events[0]
        clear_security_events(todos_dir)
        assert read_security_events(todos_dir) == []


class TestDiscovery:
    def test_find_walks_up(self, tmp_path, todos_dir):
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_todos_dir(str(nested)) == todos_dir

    def test_resolve_project_root_env(self, tmp_path, todos_dir, monkeypatch):
        monkeypatch.setenv("TD_WORK_DIR", str(tmp_path))
        assert resolve_project_root() == str(tmp_path)

    def test_resolve_project_root_explicit(self, tmp_path, todos_dir):
        nested = tmp_path / "src"
        nested.mkdir()
        assert resolve_project_root(str(tmp_path)) == str(tmp_path)
        assert resolve_project_root(str(nested)) == str(tmp_path)

    def test_db_path_env(self, todos_dir, monkeypatch):
        assert get_db_path(todos_dir).endswith("issues.db")
        monkeypatch.setenv("TD_DB", "/tmp/other.db")
        assert get_db_path(todos_dir) == "/tmp/other.db"


class TestSessionResolution:
    @pytest.fixture(autouse=True)
    def bare_context(self, monkeypatch):
        for name in sessions._AGENT_VARS + sessions._TERMINAL_VARS:
            monkeypatch.delenv(name, raising=False)

    def test_explicit_id(self, store):
        record = sessions.get_or_create(store, "agent-7")
        assert record.id == "agent-7"
        assert store.get_session("agent-7") is not None
        assert sessions.get_or_create(store, "agent-7").id == "agent-7"

    def test_env_id(self, store, monkeypatch):
        monkeypatch.setenv("TD_SESSION_ID", "from-env")
        assert sessions.get_or_create(store).id == "from-env"

    def test_context_session_is_stable(self, store, monkeypatch):
        monkeypatch.setenv("TMUX_PANE", "%7")
        first = sessions.get_or_create(store)
        assert first.id.startswith("ses_")
        assert first.context_id == "term:TMUX_PANE=%7"
        assert sessions.get_or_create(store).id == first.id

    def test_force_new_links_previous(self, store, monkeypatch):
        monkeypatch.setenv("TMUX_PANE", "%7")
        first = sessions.get_or_create(store)
        second = sessions.force_new_session(store)
        assert second.id != first.id
        assert second.previous_session_id == first.id
        assert sessions.get_or_create(store).id == second.id

    def test_set_name(self, store):
        record = sessions.get_or_create(store, "agent-7")
        sessions.set_name(store, record, "reviewer")
        assert store.get_session("agent-7").display() == "agent-7 (reviewer)"
