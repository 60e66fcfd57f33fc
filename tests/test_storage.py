"""Tests for SQLite storage."""

import pytest

from td.errors import CycleDetectedError, DependencyExistsError, NotFoundError, StoreError
from td.models import (
    ActionLogEntry, Board, BoardPosition, Comment, EntityKind, Handoff, Issue,
    IssueFile, IssueFilter, LogEntry, SessionRecord, Status,
)
from td.storage.sqlite_store import SQLiteStorage


class TestIssueCRUD:
    def test_create_and_get(self, store: SQLiteStorage, make_issue):
        make_issue("td-abc123", "My Issue", labels=["a", "b"])
        got = store.get_issue("td-abc123")
        assert got is not None
        assert got.title == "My Issue"
        assert got.status == Status.OPEN
        assert got.labels == ["a", "b"]

    def test_get_nonexistent(self, store: SQLiteStorage):
        assert store.get_issue("td-ffffff") is None

    def test_update_overwrites_all_fields(self, store: SQLiteStorage, make_issue):
        issue = make_issue("td-abc123", "Original")
        issue.title = "Updated"
        issue.implementer_session = "s1"
        issue.minor = True
        store.update_issue(issue)
        got = store.get_issue("td-abc123")
        assert got.title == "Updated"
        assert got.implementer_session == "s1"
        assert got.minor is True

    def test_update_missing_raises(self, store: SQLiteStorage):
        with pytest.raises(NotFoundError):
            store.update_issue(Issue(id="td-ffffff", title="ghost"))

    def test_soft_delete_and_restore(self, store: SQLiteStorage, make_issue):
        make_issue("td-abc123")
        store.soft_delete_issue("td-abc123")
        assert store.get_issue("td-abc123") is None
        deleted = store.get_issue("td-abc123", include_deleted=True)
        assert deleted.is_deleted()
        store.restore_issue("td-abc123")
        assert store.get_issue("td-abc123") is not None

    def test_resolve_id(self, store: SQLiteStorage, make_issue):
        make_issue("td-abc123")
        make_issue("td-abd456")
        assert store.resolve_id("td-abc123") == "td-abc123"
        assert store.resolve_id("td-abc") == "td-abc123"
        assert store.resolve_id("td-ab") is None  # ambiguous
        assert store.resolve_id("td-zzz") is None


class TestQueries:
    def test_list_hides_closed_by_default(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa", "Open one")
        make_issue("td-bbbbbb", "Closed one", status=Status.CLOSED)
        ids = [i.id for i in store.list_issues(IssueFilter())]
        assert ids == ["td-aaaaaa"]
        ids = [i.id for i in store.list_issues(IssueFilter(include_closed=True))]
        assert set(ids) == {"td-aaaaaa", "td-bbbbbb"}

    def test_list_filters(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa", priority="P0", labels=["backend"])
        make_issue("td-bbbbbb", priority="P3", issue_type="bug")
        make_issue("td-cccccc", status=Status.BLOCKED)
        assert [i.id for i in store.list_issues(IssueFilter(priority="P0"))] == ["td-aaaaaa"]
        assert [i.id for i in store.list_issues(IssueFilter(issue_type="bug"))] == ["td-bbbbbb"]
        assert [i.id for i in store.list_issues(IssueFilter(label="backend"))] == ["td-aaaaaa"]
        assert [i.id for i in store.list_issues(IssueFilter(label="back"))] == []
        blocked = store.list_issues(IssueFilter(status=[Status.BLOCKED]))
        assert [i.id for i in blocked] == ["td-cccccc"]

    def test_list_orders_by_priority(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa", priority="P3")
        make_issue("td-bbbbbb", priority="P1")
        assert [i.id for i in store.list_issues(IssueFilter())] == ["td-bbbbbb", "td-aaaaaa"]

    def test_deleted_only(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        make_issue("td-bbbbbb")
        store.soft_delete_issue("td-bbbbbb")
        got = store.list_issues(IssueFilter(deleted_only=True))
        assert [i.id for i in got] == ["td-bbbbbb"]

    def test_children_and_descendants(self, store: SQLiteStorage, make_issue):
        make_issue("td-epi001", issue_type="epic")
        make_issue("td-aaaaaa", parent_id="td-epi001")
        make_issue("td-bbbbbb", parent_id="td-epi001", status=Status.CLOSED)
        make_issue("td-cccccc", parent_id="td-aaaaaa", status=Status.IN_PROGRESS)
        children = [c.id for c in store.get_direct_children("td-epi001")]
        assert children == ["td-aaaaaa", "td-bbbbbb"]
        all_desc = {d.id for d in store.get_descendants("td-epi001")}
        assert all_desc == {"td-aaaaaa", "td-bbbbbb", "td-cccccc"}
        active = {d.id for d in store.get_descendants(
            "td-epi001", [Status.OPEN, Status.IN_PROGRESS])}
        assert active == {"td-aaaaaa", "td-cccccc"}

    def test_descendants_skip_deleted(self, store: SQLiteStorage, make_issue):
        make_issue("td-epi001", issue_type="epic")
        make_issue("td-aaaaaa", parent_id="td-epi001")
        store.soft_delete_issue("td-aaaaaa")
        assert store.get_descendants("td-epi001") == []


class TestDependencies:
    def test_add_and_query(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        make_issue("td-bbbbbb")
        store.add_dependency("td-bbbbbb", "td-aaaaaa")
        assert store.dependency_exists("td-bbbbbb", "td-aaaaaa")
        assert store.get_dependencies("td-bbbbbb") == ["td-aaaaaa"]
        assert store.get_blocked_by("td-aaaaaa") == ["td-bbbbbb"]

    def test_duplicate(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        make_issue("td-bbbbbb")
        store.add_dependency("td-bbbbbb", "td-aaaaaa")
        with pytest.raises(DependencyExistsError):
            store.add_dependency("td-bbbbbb", "td-aaaaaa")

    def test_cycle_detection(self, store: SQLiteStorage, make_issue):
        for issue_id in ("td-aaaaaa", "td-bbbbbb", "td-cccccc"):
            make_issue(issue_id)
        store.add_dependency("td-aaaaaa", "td-bbbbbb")
        store.add_dependency("td-bbbbbb", "td-cccccc")
        assert store.has_cycle("td-cccccc", "td-aaaaaa")
        with pytest.raises(CycleDetectedError):
            store.add_dependency("td-cccccc", "td-aaaaaa")
        with pytest.raises(CycleDetectedError):
            store.add_dependency("td-aaaaaa", "td-aaaaaa")

    def test_remove(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        make_issue("td-bbbbbb")
        store.add_dependency("td-bbbbbb", "td-aaaaaa")
        assert store.remove_dependency("td-bbbbbb", "td-aaaaaa") is True
        assert store.remove_dependency("td-bbbbbb", "td-aaaaaa") is False


class TestTransactions:
    def test_rollback_on_error(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        with pytest.raises(RuntimeError):
            with store.transaction():
                issue = store.get_issue("td-aaaaaa")
                issue.title = "changed"
                store.update_issue(issue)
                raise RuntimeError("boom")
        assert store.get_issue("td-aaaaaa").title == "Test"

    def test_nested_rolls_back_as_one(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    store.add_handoff(Handoff(issue_id="td-aaaaaa", session_id="s1", done=["x"]))
                raise RuntimeError("outer fails")
        assert store.get_latest_handoff("td-aaaaaa") is None

    def test_sqlite_errors_become_store_errors(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        with pytest.raises(StoreError):
            with store.transaction():
                store.create_issue(Issue(id="td-aaaaaa", title="duplicate"))

    def test_run_in_transaction(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        result = store.run_in_transaction(lambda s: s.get_issue("td-aaaaaa").title)
        assert result == "Test"


class TestHandoffsLogsComments:
    def test_latest_handoff(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        store.add_handoff(Handoff(issue_id="td-aaaaaa", session_id="s1", done=["first"]))
        second = store.add_handoff(Handoff(issue_id="td-aaaaaa", session_id="s1",
                                           done=["second"], uncertain=["why"]))
        latest = store.get_latest_handoff("td-aaaaaa")
        assert latest.id == second
        assert latest.done == ["second"]
        assert latest.uncertain == ["why"]
        store.delete_handoff(second)
        assert store.get_latest_handoff("td-aaaaaa").done == ["first"]

    def test_logs_oldest_first_with_limit(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        for i in range(5):
            store.add_log(LogEntry(issue_id="td-aaaaaa", session_id="s1", message=f"m{i}"))
        logs = store.get_logs("td-aaaaaa", limit=2)
        assert [entry.message for entry in logs] == ["m3", "m4"]

    def test_comments(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        store.add_comment(Comment(issue_id="td-aaaaaa", session_id="s1", text="hi"))
        assert [c.text for c in store.get_comments("td-aaaaaa")] == ["hi"]


class TestSessions:
    def test_session_history(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        assert not store.was_session_involved("td-aaaaaa", "s1")
        store.record_session_action("td-aaaaaa", "s1", "started")
        assert store.was_session_involved("td-aaaaaa", "s1")
        assert [h.action for h in store.get_session_history("td-aaaaaa")] == ["started"]

    def test_session_rows(self, store: SQLiteStorage):
        store.upsert_session(SessionRecord(id="ses_aaaaaa", context_id="ctx"))
        assert store.get_session("ses_aaaaaa").context_id == "ctx"
        assert store.get_session_by_context("ctx").id == "ses_aaaaaa"
        assert store.get_session_by_context("other") is None


class TestActionLog:
    def _entry(self, session: str, kind: str = EntityKind.ISSUE) -> ActionLogEntry:
        return ActionLogEntry(session_id=session, action_kind="update", entity_kind=kind,
                              entity_id="td-aaaaaa")

    def test_last_undoable_is_per_session(self, store: SQLiteStorage):
        first = store.log_action(self._entry("s1"))
        store.log_action(self._entry("s2"))
        assert store.get_last_undoable("s1").rowid == first
        store.mark_undone(first)
        assert store.get_last_undoable("s1") is None

    def test_last_undoable_skips_append_only(self, store: SQLiteStorage):
        issue_row = store.log_action(self._entry("s1"))
        store.log_action(self._entry("s1", EntityKind.LOGS))
        store.log_action(self._entry("s1", EntityKind.COMMENTS))
        assert store.get_last_undoable("s1").rowid == issue_row

    def test_list_actions(self, store: SQLiteStorage):
        for _ in range(3):
            store.log_action(self._entry("s1"))
        store.log_action(self._entry("s2"))
        assert len(store.list_actions(session_id="s1")) == 3
        assert len(store.list_actions(limit=2)) == 2
        newest = store.list_actions()[0]
        assert newest.session_id == "s2"


class TestFilesAndBoards:
    def test_file_links(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        store.link_file(IssueFile(issue_id="td-aaaaaa", file_path="src/a.py", role="test"))
        got = store.get_file_link("td-aaaaaa", "src/a.py")
        assert got.role == "test"
        assert len(store.get_linked_files("td-aaaaaa")) == 1
        assert store.unlink_file("td-aaaaaa", "src/a.py")
        assert not store.unlink_file("td-aaaaaa", "src/a.py")

    def test_boards(self, store: SQLiteStorage, make_issue):
        make_issue("td-aaaaaa")
        make_issue("td-bbbbbb")
        store.create_board(Board(id="bd-000001", name="sprint"))
        assert store.get_board("sprint").id == "bd-000001"
        assert store.get_board("bd-000001").name == "sprint"
        store.set_board_position(BoardPosition("bd-000001", "td-aaaaaa", 2))
        store.set_board_position(BoardPosition("bd-000001", "td-bbbbbb", 1))
        store.set_board_position(BoardPosition("bd-000001", "td-aaaaaa", 3))
        positions = store.get_board_positions("bd-000001")
        assert [(p.issue_id, p.position) for p in positions] == [
            ("td-bbbbbb", 1), ("td-aaaaaa", 3)]
        store.delete_board("bd-000001")
        assert store.get_board("sprint") is None
        assert store.get_board_positions("bd-000001") == []

    def test_metadata(self, store: SQLiteStorage):
        assert store.get_metadata("schema_version") is not None
        store.set_metadata("k", "v")
        store.set_metadata("k", "w")
        assert store.get_metadata("k") == "w"
