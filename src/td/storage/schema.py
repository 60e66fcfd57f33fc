"""SQLite schema for the td store."""

SCHEMA_VERSION = 1

SCHEMA = """
-- Issues table
CREATE TABLE IF NOT EXISTS issues (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL CHECK(length(title) <= 500),
    description TEXT NOT NULL DEFAULT '',
    acceptance TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL DEFAULT 'task'
        CHECK(type IN ('bug', 'feature', 'task', 'epic', 'chore')),
    priority TEXT NOT NULL DEFAULT 'P2'
        CHECK(priority IN ('P0', 'P1', 'P2', 'P3', 'P4')),
    points INTEGER NOT NULL DEFAULT 0
        CHECK(points IN (0, 1, 2, 3, 5, 8, 13, 21)),
    status TEXT NOT NULL DEFAULT 'open'
        CHECK(status IN ('open', 'in_progress', 'blocked', 'in_review', 'closed')),
    labels TEXT NOT NULL DEFAULT '',
    parent_id TEXT,
    creator_session TEXT,
    implementer_session TEXT,
    reviewer_session TEXT,
    minor INTEGER NOT NULL DEFAULT 0,
    sprint TEXT,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    closed_at DATETIME,
    deleted_at DATETIME,
    CHECK (
        (status = 'closed' AND closed_at IS NOT NULL) OR
        (status != 'closed' AND closed_at IS NULL)
    )
);

CREATE INDEX IF NOT EXISTS idx_issues_status ON issues(status);
CREATE INDEX IF NOT EXISTS idx_issues_parent ON issues(parent_id);
CREATE INDEX IF NOT EXISTS idx_issues_deleted ON issues(deleted_at);

-- Dependency edges: issue_id is blocked by depends_on_id
CREATE TABLE IF NOT EXISTS issue_dependencies (
    issue_id TEXT NOT NULL,
    depends_on_id TEXT NOT NULL,
    created_at DATETIME NOT NULL,
    PRIMARY KEY (issue_id, depends_on_id),
    CHECK (issue_id != depends_on_id)
);

CREATE INDEX IF NOT EXISTS idx_deps_depends_on ON issue_dependencies(depends_on_id);

-- Handoffs
CREATE TABLE IF NOT EXISTS handoffs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    done TEXT NOT NULL DEFAULT '[]',
    remaining TEXT NOT NULL DEFAULT '[]',
    decisions TEXT NOT NULL DEFAULT '[]',
    uncertain TEXT NOT NULL DEFAULT '[]',
    timestamp DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_handoffs_issue ON handoffs(issue_id);

-- Progress logs (append-only)
CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    work_session_id TEXT,
    message TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'progress',
    timestamp DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_logs_issue ON logs(issue_id);

-- Comments (append-only)
CREATE TABLE IF NOT EXISTS comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    text TEXT NOT NULL,
    created_at DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_comments_issue ON comments(issue_id);

-- Linked files
CREATE TABLE IF NOT EXISTS issue_files (
    issue_id TEXT NOT NULL,
    file_path TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'implementation',
    content_hash TEXT NOT NULL DEFAULT '',
    linked_at DATETIME NOT NULL,
    PRIMARY KEY (issue_id, file_path)
);

-- Boards and per-issue positions
CREATE TABLE IF NOT EXISTS boards (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    query TEXT NOT NULL DEFAULT '',
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL
);

CREATE TABLE IF NOT EXISTS board_issue_positions (
    board_id TEXT NOT NULL,
    issue_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    PRIMARY KEY (board_id, issue_id)
);

-- Sessions
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    context_id TEXT NOT NULL DEFAULT '',
    previous_session_id TEXT,
    started_at DATETIME NOT NULL,
    last_activity DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_context ON sessions(context_id);

-- Which session performed which role action on an issue
CREATE TABLE IF NOT EXISTS issue_session_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    action TEXT NOT NULL CHECK(action IN ('started', 'unstarted', 'reviewed')),
    created_at DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_session_history_issue ON issue_session_history(issue_id, session_id);

-- Action log: append-only except for the undone flag
CREATE TABLE IF NOT EXISTS action_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp DATETIME NOT NULL,
    session_id TEXT NOT NULL,
    action_type TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    previous_data TEXT,
    new_data TEXT,
    undone INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_action_log_session ON action_log(session_id, undone);

-- Key/value metadata
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""
