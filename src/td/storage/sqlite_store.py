"""SQLite storage implementation for td."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from td.errors import CycleDetectedError, DependencyExistsError, NotFoundError, StoreError
from td.models import (
    ActionLogEntry, Board, BoardPosition, Comment, EntityKind, Handoff, Issue, IssueFile,
    IssueFilter, LogEntry, SessionHistoryEntry, SessionRecord, Status,
    format_timestamp, now_utc, parse_timestamp,
)
from td.storage.interface import Storage
from td.storage.schema import SCHEMA, SCHEMA_VERSION

_ISSUE_COLUMNS = (
    "id, title, description, acceptance, type, priority, points, status, labels, "
    "parent_id, creator_session, implementer_session, reviewer_session, minor, sprint, "
    "created_at, updated_at, closed_at, deleted_at"
)


class SQLiteStorage(Storage):
    """SQLite-based storage backend.

    Every mutating method commits on its own unless it runs inside
    ``transaction()``, in which case the outermost block commits or rolls
    back the whole group.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._tx_depth = 0
        try:
            self._conn = sqlite3.connect(db_path)
        except sqlite3.Error as e:
            raise StoreError(f"cannot open database {db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables on a fresh database and record the schema version."""
        self._conn.executescript(SCHEMA)
        self._conn.execute(
            "INSERT OR IGNORE INTO metadata (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),)
        )
        self._conn.commit()

    def path(self) -> str:
        return self._db_path

    def close(self) -> None:
        self._conn.close()

    # --- Transactions ---

    def _commit(self) -> None:
        if self._tx_depth == 0:
            self._conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[SQLiteStorage]:
        self._tx_depth += 1
        try:
            yield self
        except sqlite3.Error as e:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self._conn.rollback()
            raise StoreError(str(e)) from e
        except BaseException:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self._conn.rollback()
            raise
        else:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self._conn.commit()

    def run_in_transaction(self, fn: Callable[[Storage], Any]) -> Any:
        with self.transaction():
            return fn(self)

    # --- Helpers ---

    def _row_to_issue(self, row: sqlite3.Row) -> Issue:
        """Convert a database row to an Issue object."""
        labels = row["labels"] or ""
        return Issue(
            id=row["id"],
            title=row["title"],
            description=row["description"] or "",
            acceptance=row["acceptance"] or "",
            issue_type=row["type"],
            priority=row["priority"],
            points=row["points"] or 0,
            status=row["status"],
            labels=[label for label in labels.split(",") if label],
            parent_id=row["parent_id"],
            creator_session=row["creator_session"],
            implementer_session=row["implementer_session"],
            reviewer_session=row["reviewer_session"],
            minor=bool(row["minor"]),
            sprint=row["sprint"],
            created_at=parse_timestamp(row["created_at"]) or now_utc(),
            updated_at=parse_timestamp(row["updated_at"]) or now_utc(),
            closed_at=parse_timestamp(row["closed_at"]),
            deleted_at=parse_timestamp(row["deleted_at"]),
        )

    @staticmethod
    def _issue_params(issue: Issue) -> tuple:
        return (
            issue.title, issue.description, issue.acceptance, issue.issue_type,
            issue.priority, issue.points, issue.status, ",".join(issue.labels),
            issue.parent_id, issue.creator_session, issue.implementer_session,
            issue.reviewer_session, int(issue.minor), issue.sprint,
            format_timestamp(issue.created_at), format_timestamp(issue.updated_at),
            format_timestamp(issue.closed_at), format_timestamp(issue.deleted_at),
        )

    # --- Issue CRUD ---

    def create_issue(self, issue: Issue) -> None:
        now = now_utc()
        if not issue.created_at:
            issue.created_at = now
        if not issue.updated_at:
            issue.updated_at = now
        self._conn.execute(
            f"INSERT INTO issues ({_ISSUE_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (issue.id,) + self._issue_params(issue)
        )
        self._commit()

    def get_issue(self, issue_id: str, include_deleted: bool = False) -> Issue | None:
        sql = f"SELECT {_ISSUE_COLUMNS} FROM issues WHERE id = ?"
        if not include_deleted:
            sql += " AND deleted_at IS NULL"
        row = self._conn.execute(sql, (issue_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_issue(row)

    def update_issue(self, issue: Issue, touch: bool = True) -> None:
        if touch:
            issue.updated_at = now_utc()
        cur = self._conn.execute(
            """UPDATE issues SET
                title = ?, description = ?, acceptance = ?, type = ?, priority = ?,
                points = ?, status = ?, labels = ?, parent_id = ?, creator_session = ?,
                implementer_session = ?, reviewer_session = ?, minor = ?, sprint = ?,
                created_at = ?, updated_at = ?, closed_at = ?, deleted_at = ?
            WHERE id = ?""",
            self._issue_params(issue) + (issue.id,)
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"issue not found: {issue.id}", issue.id)
        self._commit()

    def soft_delete_issue(self, issue_id: str) -> None:
        now = format_timestamp(now_utc())
        self._conn.execute(
            "UPDATE issues SET deleted_at = ?, updated_at = ? WHERE id = ?",
            (now, now, issue_id)
        )
        self._commit()

    def restore_issue(self, issue_id: str) -> None:
        self._conn.execute(
            "UPDATE issues SET deleted_at = NULL, updated_at = ? WHERE id = ?",
            (format_timestamp(now_utc()), issue_id)
        )
        self._commit()

    # --- Query ---

    def _build_filter_sql(self, f: IssueFilter) -> tuple[str, list[Any]]:
        """Build WHERE clause from IssueFilter."""
        clauses = []
        params: list[Any] = []

        if f.deleted_only:
            clauses.append("deleted_at IS NOT NULL")
        else:
            clauses.append("deleted_at IS NULL")

        if f.status:
            placeholders = ",".join("?" * len(f.status))
            clauses.append(f"status IN ({placeholders})")
            params.extend(f.status)
        elif not f.include_closed:
            clauses.append("status != ?")
            params.append(Status.CLOSED)

        if f.issue_type is not None:
            clauses.append("type = ?")
            params.append(f.issue_type)

        if f.priority is not None:
            clauses.append("priority = ?")
            params.append(f.priority)

        if f.parent_id is not None:
            clauses.append("parent_id = ?")
            params.append(f.parent_id)

        if f.label:
            clauses.append("(',' || labels || ',') LIKE ?")
            params.append(f"%,{f.label},%")

        if f.ids:
            placeholders = ",".join("?" * len(f.ids))
            clauses.append(f"id IN ({placeholders})")
            params.extend(f.ids)

        return " AND ".join(clauses), params

    def list_issues(self, filter: IssueFilter) -> list[Issue]:
        where, params = self._build_filter_sql(filter)
        sql = (f"SELECT {_ISSUE_COLUMNS} FROM issues WHERE {where} "
               "ORDER BY priority ASC, created_at ASC")
        if filter.limit > 0:
            sql += f" LIMIT {int(filter.limit)}"
        rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_issue(row) for row in rows]

    def get_direct_children(self, parent_id: str) -> list[Issue]:
        rows = self._conn.execute(
            f"SELECT {_ISSUE_COLUMNS} FROM issues "
            "WHERE parent_id = ? AND deleted_at IS NULL ORDER BY created_at ASC",
            (parent_id,)
        ).fetchall()
        return [self._row_to_issue(row) for row in rows]

    def get_descendants(self, parent_id: str, statuses: list[str] | None = None) -> list[Issue]:
        """Breadth-first walk of the parent tree; a visited set guards bad data."""
        result: list[Issue] = []
        visited = {parent_id}
        queue = [parent_id]
        while queue:
            current = queue.pop(0)
            for child in self.get_direct_children(current):
                if child.id in visited:
                    continue
                visited.add(child.id)
                queue.append(child.id)
                if not statuses or child.status in statuses:
                    result.append(child)
        return result

    def resolve_id(self, partial: str) -> str | None:
        """Resolve a partial ID to a full ID."""
        row = self._conn.execute(
            "SELECT id FROM issues WHERE id = ?", (partial,)
        ).fetchone()
        if row:
            return row["id"]

        rows = self._conn.execute(
            "SELECT id FROM issues WHERE id LIKE ?", (f"{partial}%",)
        ).fetchall()
        if len(rows) == 1:
            return rows[0]["id"]
        return None

    # --- Dependencies ---

    def add_dependency(self, issue_id: str, depends_on_id: str) -> None:
        if self.dependency_exists(issue_id, depends_on_id):
            raise DependencyExistsError(
                f"dependency already exists: {issue_id} depends on {depends_on_id}", issue_id
            )
        if self.has_cycle(issue_id, depends_on_id):
            raise CycleDetectedError(
                f"adding dependency {issue_id} → {depends_on_id} would create a cycle", issue_id
            )
        self._conn.execute(
            "INSERT INTO issue_dependencies (issue_id, depends_on_id, created_at) VALUES (?, ?, ?)",
            (issue_id, depends_on_id, format_timestamp(now_utc()))
        )
        self._commit()

    def remove_dependency(self, issue_id: str, depends_on_id: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM issue_dependencies WHERE issue_id = ? AND depends_on_id = ?",
            (issue_id, depends_on_id)
        )
        self._commit()
        return cur.rowcount > 0

    def dependency_exists(self, issue_id: str, depends_on_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM issue_dependencies WHERE issue_id = ? AND depends_on_id = ?",
            (issue_id, depends_on_id)
        ).fetchone()
        return row is not None

    def get_dependencies(self, issue_id: str) -> list[str]:
        rows = self._conn.execute(
            "SELECT depends_on_id FROM issue_dependencies WHERE issue_id = ? ORDER BY created_at",
            (issue_id,)
        ).fetchall()
        return [row["depends_on_id"] for row in rows]

    def get_blocked_by(self, issue_id: str) -> list[str]:
        rows = self._conn.execute(
            "SELECT issue_id FROM issue_dependencies WHERE depends_on_id = ? ORDER BY created_at",
            (issue_id,)
        ).fetchall()
        return [row["issue_id"] for row in rows]

    def has_cycle(self, issue_id: str, depends_on_id: str) -> bool:
        """Check if adding issue_id → depends_on_id would create a cycle.

        Uses recursive CTE to walk the dependency graph from depends_on_id
        and check if it reaches issue_id.
        """
        if issue_id == depends_on_id:
            return True
        row = self._conn.execute("""
            WITH RECURSIVE reachable(id) AS (
                SELECT ?
                UNION
                SELECT d.depends_on_id
                FROM reachable r
                JOIN issue_dependencies d ON d.issue_id = r.id
            )
            SELECT 1 FROM reachable WHERE id = ? LIMIT 1
        """, (depends_on_id, issue_id)).fetchone()
        return row is not None

    # --- Handoffs ---

    @staticmethod
    def _row_to_handoff(row: sqlite3.Row) -> Handoff:
        return Handoff(
            id=row["id"],
            issue_id=row["issue_id"],
            session_id=row["session_id"],
            done=json.loads(row["done"] or "[]"),
            remaining=json.loads(row["remaining"] or "[]"),
            decisions=json.loads(row["decisions"] or "[]"),
            uncertain=json.loads(row["uncertain"] or "[]"),
            timestamp=parse_timestamp(row["timestamp"]) or now_utc(),
        )

    def add_handoff(self, handoff: Handoff) -> int:
        cur = self._conn.execute(
            "INSERT INTO handoffs (issue_id, session_id, done, remaining, decisions, uncertain, timestamp) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (handoff.issue_id, handoff.session_id, json.dumps(handoff.done),
             json.dumps(handoff.remaining), json.dumps(handoff.decisions),
             json.dumps(handoff.uncertain), format_timestamp(handoff.timestamp))
        )
        self._commit()
        handoff.id = cur.lastrowid or 0
        return handoff.id

    def get_handoff(self, handoff_id: int) -> Handoff | None:
        row = self._conn.execute(
            "SELECT * FROM handoffs WHERE id = ?", (handoff_id,)
        ).fetchone()
        return self._row_to_handoff(row) if row else None

    def get_latest_handoff(self, issue_id: str) -> Handoff | None:
        row = self._conn.execute(
            "SELECT * FROM handoffs WHERE issue_id = ? ORDER BY id DESC LIMIT 1",
            (issue_id,)
        ).fetchone()
        return self._row_to_handoff(row) if row else None

    def delete_handoff(self, handoff_id: int) -> None:
        self._conn.execute("DELETE FROM handoffs WHERE id = ?", (handoff_id,))
        self._commit()

    # --- Logs ---

    def add_log(self, entry: LogEntry) -> int:
        cur = self._conn.execute(
            "INSERT INTO logs (issue_id, session_id, work_session_id, message, type, timestamp) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (entry.issue_id, entry.session_id, entry.work_session_id, entry.message,
             entry.log_type, format_timestamp(entry.timestamp))
        )
        self._commit()
        entry.id = cur.lastrowid or 0
        return entry.id

    def get_logs(self, issue_id: str, limit: int = 0) -> list[LogEntry]:
        sql = "SELECT * FROM logs WHERE issue_id = ? ORDER BY id DESC"
        if limit > 0:
            sql += f" LIMIT {int(limit)}"
        rows = self._conn.execute(sql, (issue_id,)).fetchall()
        entries = [
            LogEntry(
                id=row["id"],
                issue_id=row["issue_id"],
                session_id=row["session_id"],
                work_session_id=row["work_session_id"],
                message=row["message"],
                log_type=row["type"],
                timestamp=parse_timestamp(row["timestamp"]) or now_utc(),
            )
            for row in rows
        ]
        entries.reverse()
        return entries

    # --- Comments ---

    def add_comment(self, comment: Comment) -> int:
        cur = self._conn.execute(
            "INSERT INTO comments (issue_id, session_id, text, created_at) VALUES (?, ?, ?, ?)",
            (comment.issue_id, comment.session_id, comment.text,
             format_timestamp(comment.created_at))
        )
        self._commit()
        comment.id = cur.lastrowid or 0
        return comment.id

    def get_comments(self, issue_id: str) -> list[Comment]:
        rows = self._conn.execute(
            "SELECT * FROM comments WHERE issue_id = ? ORDER BY id ASC",
            (issue_id,)
        ).fetchall()
        return [
            Comment(
                id=row["id"],
                issue_id=row["issue_id"],
                session_id=row["session_id"],
                text=row["text"],
                created_at=parse_timestamp(row["created_at"]) or now_utc(),
            )
            for row in rows
        ]

    # --- Session history ---

    def record_session_action(self, issue_id: str, session_id: str, action: str) -> None:
        self._conn.execute(
            "INSERT INTO issue_session_history (issue_id, session_id, action, created_at) "
            "VALUES (?, ?, ?, ?)",
            (issue_id, session_id, action, format_timestamp(now_utc()))
        )
        self._commit()

    def was_session_involved(self, issue_id: str, session_id: str) -> bool:
        row = self._conn.execute(
            "SELECT COUNT(*) AS cnt FROM issue_session_history WHERE issue_id = ? AND session_id = ?",
            (issue_id, session_id)
        ).fetchone()
        return row["cnt"] > 0

    def get_session_history(self, issue_id: str) -> list[SessionHistoryEntry]:
        rows = self._conn.execute(
            "SELECT * FROM issue_session_history WHERE issue_id = ? ORDER BY id ASC",
            (issue_id,)
        ).fetchall()
        return [
            SessionHistoryEntry(
                id=row["id"],
                issue_id=row["issue_id"],
                session_id=row["session_id"],
                action=row["action"],
                created_at=parse_timestamp(row["created_at"]) or now_utc(),
            )
            for row in rows
        ]

    # --- Sessions ---

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> SessionRecord:
        return SessionRecord(
            id=row["id"],
            name=row["name"] or "",
            context_id=row["context_id"] or "",
            previous_session_id=row["previous_session_id"],
            started_at=parse_timestamp(row["started_at"]) or now_utc(),
            last_activity=parse_timestamp(row["last_activity"]) or now_utc(),
        )

    def upsert_session(self, session: SessionRecord) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO sessions "
            "(id, name, context_id, previous_session_id, started_at, last_activity) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (session.id, session.name, session.context_id, session.previous_session_id,
             format_timestamp(session.started_at), format_timestamp(session.last_activity))
        )
        self._commit()

    def get_session(self, session_id: str) -> SessionRecord | None:
        row = self._conn.execute(
            "SELECT * FROM sessions WHERE id = ?", (session_id,)
        ).fetchone()
        return self._row_to_session(row) if row else None

    def get_session_by_context(self, context_id: str) -> SessionRecord | None:
        row = self._conn.execute(
            "SELECT * FROM sessions WHERE context_id = ? ORDER BY last_activity DESC LIMIT 1",
            (context_id,)
        ).fetchone()
        return self._row_to_session(row) if row else None

    # --- Action log ---

    @staticmethod
    def _row_to_action(row: sqlite3.Row) -> ActionLogEntry:
        return ActionLogEntry(
            rowid=row["id"],
            timestamp=parse_timestamp(row["timestamp"]) or now_utc(),
            session_id=row["session_id"],
            action_kind=row["action_type"],
            entity_kind=row["entity_type"],
            entity_id=row["entity_id"],
            previous_data=row["previous_data"],
            new_data=row["new_data"],
            undone=bool(row["undone"]),
        )

    def log_action(self, entry: ActionLogEntry) -> int:
        cur = self._conn.execute(
            "INSERT INTO action_log (timestamp, session_id, action_type, entity_type, entity_id, "
            "previous_data, new_data, undone) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (format_timestamp(entry.timestamp), entry.session_id, entry.action_kind,
             entry.entity_kind, entry.entity_id, entry.previous_data, entry.new_data,
             int(entry.undone))
        )
        self._commit()
        entry.rowid = cur.lastrowid or 0
        return entry.rowid

    def get_action(self, rowid: int) -> ActionLogEntry | None:
        row = self._conn.execute(
            "SELECT * FROM action_log WHERE id = ?", (rowid,)
        ).fetchone()
        return self._row_to_action(row) if row else None

    def get_last_undoable(self, session_id: str) -> ActionLogEntry | None:
        """Newest non-undone entry of the session, skipping append-only kinds."""
        skip = sorted(EntityKind.APPEND_ONLY)
        placeholders = ",".join("?" * len(skip))
        row = self._conn.execute(
            "SELECT * FROM action_log WHERE session_id = ? AND undone = 0 "
            f"AND entity_type NOT IN ({placeholders}) ORDER BY id DESC LIMIT 1",
            (session_id, *skip)
        ).fetchone()
        return self._row_to_action(row) if row else None

    def mark_undone(self, rowid: int) -> None:
        self._conn.execute("UPDATE action_log SET undone = 1 WHERE id = ?", (rowid,))
        self._commit()

    def list_actions(self, session_id: str | None = None, limit: int = 10,
                     include_undone: bool = True) -> list[ActionLogEntry]:
        clauses = ["1=1"]
        params: list[Any] = []
        if session_id is not None:
            clauses.append("session_id = ?")
            params.append(session_id)
        if not include_undone:
            clauses.append("undone = 0")
        sql = f"SELECT * FROM action_log WHERE {' AND '.join(clauses)} ORDER BY id DESC"
        if limit > 0:
            sql += f" LIMIT {int(limit)}"
        rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_action(row) for row in rows]

    # --- File links ---

    def link_file(self, link: IssueFile) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO issue_files (issue_id, file_path, role, content_hash, linked_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (link.issue_id, link.file_path, link.role, link.content_hash,
             format_timestamp(link.linked_at))
        )
        self._commit()

    def unlink_file(self, issue_id: str, file_path: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM issue_files WHERE issue_id = ? AND file_path = ?",
            (issue_id, file_path)
        )
        self._commit()
        return cur.rowcount > 0

    @staticmethod
    def _row_to_file(row: sqlite3.Row) -> IssueFile:
        return IssueFile(
            issue_id=row["issue_id"],
            file_path=row["file_path"],
            role=row["role"],
            content_hash=row["content_hash"] or "",
            linked_at=parse_timestamp(row["linked_at"]) or now_utc(),
        )

    def get_file_link(self, issue_id: str, file_path: str) -> IssueFile | None:
        row = self._conn.execute(
            "SELECT * FROM issue_files WHERE issue_id = ? AND file_path = ?",
            (issue_id, file_path)
        ).fetchone()
        return self._row_to_file(row) if row else None

    def get_linked_files(self, issue_id: str) -> list[IssueFile]:
        rows = self._conn.execute(
            "SELECT * FROM issue_files WHERE issue_id = ? ORDER BY file_path",
            (issue_id,)
        ).fetchall()
        return [self._row_to_file(row) for row in rows]

    # --- Boards ---

    @staticmethod
    def _row_to_board(row: sqlite3.Row) -> Board:
        return Board(
            id=row["id"],
            name=row["name"],
            query=row["query"] or "",
            created_at=parse_timestamp(row["created_at"]) or now_utc(),
            updated_at=parse_timestamp(row["updated_at"]) or now_utc(),
        )

    def create_board(self, board: Board) -> None:
        self._conn.execute(
            "INSERT INTO boards (id, name, query, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (board.id, board.name, board.query, format_timestamp(board.created_at),
             format_timestamp(board.updated_at))
        )
        self._commit()

    def get_board(self, board_id_or_name: str) -> Board | None:
        row = self._conn.execute(
            "SELECT * FROM boards WHERE id = ? OR name = ? LIMIT 1",
            (board_id_or_name, board_id_or_name)
        ).fetchone()
        return self._row_to_board(row) if row else None

    def update_board(self, board: Board) -> None:
        board.updated_at = now_utc()
        cur = self._conn.execute(
            "UPDATE boards SET name = ?, query = ?, updated_at = ? WHERE id = ?",
            (board.name, board.query, format_timestamp(board.updated_at), board.id)
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"board not found: {board.id}")
        self._commit()

    def delete_board(self, board_id: str) -> None:
        self._conn.execute("DELETE FROM board_issue_positions WHERE board_id = ?", (board_id,))
        self._conn.execute("DELETE FROM boards WHERE id = ?", (board_id,))
        self._commit()

    def list_boards(self) -> list[Board]:
        rows = self._conn.execute("SELECT * FROM boards ORDER BY name").fetchall()
        return [self._row_to_board(row) for row in rows]

    def set_board_position(self, position: BoardPosition) -> None:
        self._conn.execute(
            "INSERT INTO board_issue_positions (board_id, issue_id, position) VALUES (?, ?, ?) "
            "ON CONFLICT (board_id, issue_id) DO UPDATE SET position = excluded.position",
            (position.board_id, position.issue_id, position.position)
        )
        self._commit()

    def remove_board_position(self, board_id: str, issue_id: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM board_issue_positions WHERE board_id = ? AND issue_id = ?",
            (board_id, issue_id)
        )
        self._commit()
        return cur.rowcount > 0

    def get_board_position(self, board_id: str, issue_id: str) -> BoardPosition | None:
        row = self._conn.execute(
            "SELECT * FROM board_issue_positions WHERE board_id = ? AND issue_id = ?",
            (board_id, issue_id)
        ).fetchone()
        if row is None:
            return None
        return BoardPosition(board_id=row["board_id"], issue_id=row["issue_id"],
                             position=row["position"])

    def get_board_positions(self, board_id: str) -> list[BoardPosition]:
        rows = self._conn.execute(
            "SELECT * FROM board_issue_positions WHERE board_id = ? ORDER BY position, issue_id",
            (board_id,)
        ).fetchall()
        return [
            BoardPosition(board_id=row["board_id"], issue_id=row["issue_id"],
                          position=row["position"])
            for row in rows
        ]

    # --- Metadata ---

    def get_metadata(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM metadata WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_metadata(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT INTO metadata (key, value) VALUES (?, ?) "
            "ON CONFLICT (key) DO UPDATE SET value = excluded.value",
            (key, value)
        )
        self._commit()
