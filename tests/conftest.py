"""Shared fixtures for td tests."""

import dataclasses
import os
import tempfile

import pytest
from click.testing import CliRunner

from td.cli import cli
from td.lifecycle import Actor
from td.log import shutdown_logging
from td.models import Issue, Status, now_utc
from td.storage.sqlite_store import SQLiteStorage

_ENV_VARS = (
    "TD_WORK_DIR", "TD_SESSION_ID", "TD_JSON", "TD_STRICT_HANDOFF",
    "TD_WORKFLOW_MODE", "TD_LOG_LEVEL", "TD_DB",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store():
    """Create a temporary storage for testing."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    s = SQLiteStorage(path)
    yield s
    s.close()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(path + suffix):
            os.unlink(path + suffix)


@pytest.fixture
def todos_dir(tmp_path):
    path = tmp_path / ".todos"
    path.mkdir()
    return str(path)


@pytest.fixture
def actor(store, todos_dir):
    """Session s1 acting on the temporary store."""
    return Actor(store=store, session_id="s1", todos_dir=todos_dir)


@pytest.fixture
def as_session(actor):
    """Same store and project, different acting session."""
    def switch(session_id):
        return dataclasses.replace(actor, session_id=session_id)
    return switch


@pytest.fixture
def make_issue(store):
    """Insert an issue directly (no action log) and return the stored copy."""
    def factory(issue_id, title="Test", **kwargs):
        defaults = dict(id=issue_id, title=title, creator_session="s0")
        defaults.update(kwargs)
        issue = Issue(**defaults)
        if issue.status == Status.CLOSED and issue.closed_at is None:
            issue.closed_at = now_utc()
        store.create_issue(issue)
        return store.get_issue(issue_id)
    return factory


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def project(tmp_path, monkeypatch, runner):
    """A temporary directory with td initialized, acting as session s1."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TD_SESSION_ID", "s1")
    result = runner.invoke(cli, ["init"])
    assert result.exit_code == 0, result.output
    yield str(tmp_path)
    shutdown_logging()


@pytest.fixture
def td(runner, project):
    """Invoke the CLI inside the project, optionally as another session."""
    def invoke(*args, session=None, input=None):
        env = {"TD_SESSION_ID": session} if session else None
        return runner.invoke(cli, list(args), env=env, input=input)
    return invoke


@pytest.fixture
def fetch(project):
    """Read an issue straight from the project database."""
    def get(issue_id):
        s = SQLiteStorage(os.path.join(project, ".todos", "issues.db"))
        try:
            return s.get_issue(issue_id, include_deleted=True)
        finally:
            s.close()
    return get


@pytest.fixture
def project_store(project):
    """Open the project database for inspection; closed after the test."""
    s = SQLiteStorage(os.path.join(project, ".todos", "issues.db"))
    yield s
    s.close()
