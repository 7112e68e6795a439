"""
SQLite schema for the overall cache.

Schema Design:
- repositories: one row per owner/name, updated in place on every sync
- branches, pull_requests: replaced wholesale on every sync of their repository
- commits: recent history of each branch, replaced together with its branch
- local_status: one row per local clone, written only by local scans
- groups, repo_groups: user-defined tabs; a repository is in at most one group
- tracked_owners, local_roots: persisted configuration, never touched by sync
- schema_info: version tracking for migrations

Cascade rules:
- deleting a repository removes its branches, pull requests and group membership
- deleting a branch removes its commits
- deleting a branch nulls pull_requests.branch_id; the PR record survives
"""

import sqlite3

SCHEMA_VERSION = 2

SCHEMA_DDL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    description TEXT
);

CREATE TABLE IF NOT EXISTS repositories (
    id TEXT PRIMARY KEY,
    owner TEXT NOT NULL,
    name TEXT NOT NULL,
    language TEXT,
    description TEXT,
    pushed_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    is_fork INTEGER NOT NULL DEFAULT 0,
    default_branch TEXT NOT NULL DEFAULT 'main',
    priority INTEGER NOT NULL DEFAULT 3 CHECK(priority BETWEEN 0 AND 3),
    is_missing INTEGER NOT NULL DEFAULT 0,
    last_synced_at TEXT
);

CREATE TABLE IF NOT EXISTS branches (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repo_id TEXT NOT NULL,
    name TEXT NOT NULL,
    head_sha TEXT NOT NULL,
    ahead_by INTEGER NOT NULL DEFAULT 0,
    behind_by INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL CHECK(status IN ('Default', 'ReadyReview', 'NeedsSync',
                                          'ReadyForPR', 'UpToDate')),
    last_commit_date TEXT NOT NULL,
    FOREIGN KEY (repo_id) REFERENCES repositories(id) ON DELETE CASCADE,
    UNIQUE(repo_id, name)
);

CREATE TABLE IF NOT EXISTS commits (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    branch_id INTEGER NOT NULL,
    sha TEXT NOT NULL,
    message TEXT NOT NULL DEFAULT '',
    author_name TEXT NOT NULL DEFAULT '',
    author_email TEXT NOT NULL DEFAULT '',
    authored_date TEXT NOT NULL,
    committer_name TEXT NOT NULL DEFAULT '',
    committer_email TEXT NOT NULL DEFAULT '',
    committed_date TEXT NOT NULL,
    FOREIGN KEY (branch_id) REFERENCES branches(id) ON DELETE CASCADE,
    UNIQUE(branch_id, sha)
);

CREATE TABLE IF NOT EXISTS pull_requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repo_id TEXT NOT NULL,
    branch_id INTEGER,
    number INTEGER NOT NULL,
    state TEXT NOT NULL CHECK(state IN ('Open', 'Closed', 'Merged')),
    title TEXT NOT NULL,
    head_ref TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (repo_id) REFERENCES repositories(id) ON DELETE CASCADE,
    FOREIGN KEY (branch_id) REFERENCES branches(id) ON DELETE SET NULL,
    UNIQUE(repo_id, number)
);

CREATE TABLE IF NOT EXISTS groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    display_order INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

-- Primary key on repo_id alone: a repository is in at most one group
CREATE TABLE IF NOT EXISTS repo_groups (
    repo_id TEXT PRIMARY KEY,
    group_id INTEGER NOT NULL,
    added_at TEXT NOT NULL,
    FOREIGN KEY (repo_id) REFERENCES repositories(id) ON DELETE CASCADE,
    FOREIGN KEY (group_id) REFERENCES groups(id) ON DELETE CASCADE
);

-- Not a child of repositories: a clone may be scanned before its first sync
CREATE TABLE IF NOT EXISTS local_status (
    local_path TEXT PRIMARY KEY,
    repo_id TEXT NOT NULL UNIQUE,
    current_branch TEXT,
    uncommitted_files INTEGER NOT NULL DEFAULT 0,
    unpushed_commits INTEGER NOT NULL DEFAULT 0,
    behind_commits INTEGER NOT NULL DEFAULT 0,
    last_checked TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tracked_owners (
    owner TEXT PRIMARY KEY,
    added_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS local_roots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL UNIQUE,
    enabled INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_repositories_pushed_at ON repositories(pushed_at DESC);
CREATE INDEX IF NOT EXISTS idx_repositories_priority ON repositories(priority);
CREATE INDEX IF NOT EXISTS idx_branches_repo_id ON branches(repo_id);
CREATE INDEX IF NOT EXISTS idx_commits_branch_id ON commits(branch_id);
CREATE INDEX IF NOT EXISTS idx_prs_repo_id ON pull_requests(repo_id);
CREATE INDEX IF NOT EXISTS idx_prs_branch_id ON pull_requests(branch_id);
CREATE INDEX IF NOT EXISTS idx_groups_display_order ON groups(display_order);
CREATE INDEX IF NOT EXISTS idx_repo_groups_group_id ON repo_groups(group_id);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create the database schema.

    Idempotent: safe to call on an existing database.

    Example:
        >>> conn = sqlite3.connect(":memory:")
        >>> create_schema(conn)
        >>> tables = [r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")]
        >>> "branches" in tables
        True
    """
    conn.executescript(SCHEMA_DDL)
    conn.execute(
        """
        INSERT OR REPLACE INTO schema_info (version, description)
        VALUES (?, ?)
        """,
        (SCHEMA_VERSION, "Repositories, branches, commits, pull requests, groups, local status"),
    )
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """
    Get the current schema version, or None if no schema exists yet.
    """
    try:
        cursor = conn.execute("SELECT MAX(version) AS version FROM schema_info")
        row = cursor.fetchone()
    except sqlite3.OperationalError:
        return None
    if row is None:
        return None
    return row["version"] if isinstance(row, dict) else row[0]


def needs_migration(conn: sqlite3.Connection) -> bool:
    """True if the database is missing the schema or is behind SCHEMA_VERSION."""
    current_version = get_schema_version(conn)
    if current_version is None:
        return True
    return current_version < SCHEMA_VERSION
