"""
SQLite-backed cache store.

All writes go through short-lived connections inside ``BEGIN IMMEDIATE``
transactions. Branches and pull requests are only ever written by the
replace helpers in this module: delete every row of the repository, then
insert the new set. Nothing merges, so rows for branches that vanished
on the remote cannot survive a sync.

Usage:
    store = CacheStore(db_path)
    store.persist_generation(repository, branches, pull_requests)
    snapshot = store.list_groups_with_repos()
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from overall.core.errors import Conflict, NotFound, OverallError, PersistenceFailed
from overall.core.github.models import validate_owner
from overall.core.local.models import LocalRoot, LocalStatus
from overall.core.priority.models import Priority
from overall.core.store.connection import get_connection, init_db, transaction
from overall.core.store.models import (
    Branch,
    Commit,
    Group,
    GroupsSnapshot,
    GroupView,
    PullRequest,
    Repository,
    RepositoryView,
    local_status_from_row,
    to_db_timestamp,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _group_commits(rows: Iterable[dict[str, Any]]) -> dict[int, list[Commit]]:
    grouped: dict[int, list[Commit]] = {}
    for row in rows:
        grouped.setdefault(row["branch_id"], []).append(Commit.from_row(row))
    return grouped


# ---------------------------------------------------------------------------
# Connection-level write primitives. Callers own the transaction.
# ---------------------------------------------------------------------------


def upsert_repository(conn: sqlite3.Connection, repo: Repository) -> None:
    """
    Insert or fully overwrite a repository row by primary key.

    The row is updated in place rather than deleted and re-inserted so
    that group membership (which cascades on delete) is preserved.
    """
    conn.execute(
        """
        INSERT INTO repositories (
            id, owner, name, language, description, pushed_at, created_at,
            updated_at, is_fork, default_branch, priority, is_missing, last_synced_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            owner = excluded.owner,
            name = excluded.name,
            language = excluded.language,
            description = excluded.description,
            pushed_at = excluded.pushed_at,
            created_at = excluded.created_at,
            updated_at = excluded.updated_at,
            is_fork = excluded.is_fork,
            default_branch = excluded.default_branch,
            priority = excluded.priority,
            is_missing = excluded.is_missing,
            last_synced_at = excluded.last_synced_at
        """,
        (
            repo.id,
            repo.owner,
            repo.name,
            repo.language,
            repo.description,
            to_db_timestamp(repo.pushed_at),
            to_db_timestamp(repo.created_at),
            to_db_timestamp(repo.updated_at),
            int(repo.is_fork),
            repo.default_branch,
            int(repo.priority),
            int(repo.is_missing),
            to_db_timestamp(repo.last_synced_at),
        ),
    )


def replace_branches(
    conn: sqlite3.Connection,
    repo_id: str,
    branches: Sequence[Branch],
) -> dict[str, int]:
    """
    Replace every branch of a repository, and each branch's commits, with the given set.

    The deletes always run, so an empty set leaves zero rows. Pull
    requests pointing at deleted branches keep their row with
    ``branch_id`` set to NULL.

    Returns:
        Mapping of branch name to its new row id
    """
    conn.execute(
        "DELETE FROM commits WHERE branch_id IN (SELECT id FROM branches WHERE repo_id = ?)",
        (repo_id,),
    )
    conn.execute("DELETE FROM branches WHERE repo_id = ?", (repo_id,))
    ids: dict[str, int] = {}
    for branch in branches:
        cursor = conn.execute(
            """
            INSERT INTO branches (
                repo_id, name, head_sha, ahead_by, behind_by, status, last_commit_date
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                repo_id,
                branch.name,
                branch.head_sha,
                branch.ahead_by,
                branch.behind_by,
                branch.status.value,
                to_db_timestamp(branch.last_commit_date),
            ),
        )
        branch_id = int(cursor.lastrowid or 0)
        ids[branch.name] = branch_id
        insert_commits(conn, branch_id, branch.commits)
    return ids


def insert_commits(conn: sqlite3.Connection, branch_id: int, commits: Sequence[Commit]) -> None:
    """Insert the commits of a freshly inserted branch."""
    conn.executemany(
        """
        INSERT INTO commits (
            branch_id, sha, message, author_name, author_email, authored_date,
            committer_name, committer_email, committed_date
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            (
                branch_id,
                commit.sha,
                commit.message,
                commit.author_name,
                commit.author_email,
                to_db_timestamp(commit.authored_date),
                commit.committer_name,
                commit.committer_email,
                to_db_timestamp(commit.committed_date),
            )
            for commit in commits
        ],
    )


def replace_pull_requests(
    conn: sqlite3.Connection,
    repo_id: str,
    pull_requests: Sequence[PullRequest],
    branch_ids: dict[str, int] | None = None,
) -> None:
    """
    Replace every pull request of a repository with the given set.

    Args:
        conn: Connection with an open transaction
        repo_id: Repository id
        pull_requests: The complete new set
        branch_ids: Branch name to row id, used to link PRs by head ref
    """
    branch_ids = branch_ids or {}
    conn.execute("DELETE FROM pull_requests WHERE repo_id = ?", (repo_id,))
    for pr in pull_requests:
        branch_id = branch_ids.get(pr.head_ref) if pr.head_ref else None
        conn.execute(
            """
            INSERT INTO pull_requests (
                repo_id, branch_id, number, state, title, head_ref, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                repo_id,
                branch_id if branch_id is not None else pr.branch_id,
                pr.number,
                pr.state.value,
                pr.title,
                pr.head_ref,
                to_db_timestamp(pr.created_at),
                to_db_timestamp(pr.updated_at),
            ),
        )


def _move_repository(conn: sqlite3.Connection, repo_id: str, group_id: int | None) -> None:
    if conn.execute("SELECT 1 FROM repositories WHERE id = ?", (repo_id,)).fetchone() is None:
        raise NotFound(f"Repository not found: {repo_id}")
    if group_id is not None and (
        conn.execute("SELECT 1 FROM groups WHERE id = ?", (group_id,)).fetchone() is None
    ):
        raise NotFound(f"Group not found: {group_id}")
    conn.execute("DELETE FROM repo_groups WHERE repo_id = ?", (repo_id,))
    if group_id is not None:
        conn.execute(
            "INSERT INTO repo_groups (repo_id, group_id, added_at) VALUES (?, ?, ?)",
            (repo_id, group_id, _now()),
        )


class CacheStore:
    """
    The authoritative local cache.

    Every public method opens its own connection, so a store instance is
    safe to share between worker threads. SQLite serializes concurrent
    writers through its busy timeout.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        init_db(self.db_path)

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction; database errors become PersistenceFailed."""
        try:
            with get_connection(self.db_path) as conn, transaction(conn, immediate=True):
                yield conn
        except OverallError:
            raise
        except sqlite3.Error as e:
            logger.error("Cache write failed: %s", e)
            raise PersistenceFailed(f"Cache write failed: {e}") from e

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        """Open a read transaction that sees one consistent snapshot."""
        try:
            with get_connection(self.db_path) as conn, transaction(conn, immediate=False):
                yield conn
        except OverallError:
            raise
        except sqlite3.Error as e:
            raise PersistenceFailed(f"Cache read failed: {e}") from e

    # -- repository data ---------------------------------------------------

    def persist_generation(
        self,
        repository: Repository,
        branches: Sequence[Branch],
        pull_requests: Sequence[PullRequest],
    ) -> None:
        """
        Write one complete sync generation for a repository.

        Upsert, branch replace and pull request replace share a single
        transaction: either all of them land or the previous generation
        stays exactly as it was.

        Raises:
            PersistenceFailed: If any statement fails
        """
        with self._write() as conn:
            upsert_repository(conn, repository)
            branch_ids = replace_branches(conn, repository.id, branches)
            replace_pull_requests(conn, repository.id, pull_requests, branch_ids)
        logger.debug(
            "Persisted %s: %d branches, %d pull requests",
            repository.id,
            len(branches),
            len(pull_requests),
        )

    def upsert_repository(self, repository: Repository) -> None:
        with self._write() as conn:
            upsert_repository(conn, repository)

    def replace_branches(self, repo_id: str, branches: Sequence[Branch]) -> None:
        with self._write() as conn:
            replace_branches(conn, repo_id, branches)

    def replace_pull_requests(self, repo_id: str, pull_requests: Sequence[PullRequest]) -> None:
        """Replace pull requests, linking each to the current branch of its head ref."""
        with self._write() as conn:
            rows = conn.execute(
                "SELECT id, name FROM branches WHERE repo_id = ?", (repo_id,)
            ).fetchall()
            branch_ids = {row["name"]: row["id"] for row in rows}
            replace_pull_requests(conn, repo_id, pull_requests, branch_ids)

    def mark_missing(self, repo_id: str) -> bool:
        """
        Flag a repository as no longer present on the remote.

        Returns:
            True if a cached row was flagged
        """
        with self._write() as conn:
            cursor = conn.execute(
                "UPDATE repositories SET is_missing = 1, last_synced_at = ? WHERE id = ?",
                (_now(), repo_id),
            )
            return cursor.rowcount > 0

    def set_priority(self, repo_id: str, priority: Priority) -> None:
        with self._write() as conn:
            cursor = conn.execute(
                "UPDATE repositories SET priority = ? WHERE id = ?",
                (int(priority), repo_id),
            )
            if cursor.rowcount == 0:
                raise NotFound(f"Repository not found: {repo_id}")

    def upsert_local_status(self, status: LocalStatus) -> None:
        """Replace the status row for this path (and any older row for the same repo)."""
        with self._write() as conn:
            conn.execute(
                "DELETE FROM local_status WHERE local_path = ? OR repo_id = ?",
                (status.local_path, status.repo_id),
            )
            conn.execute(
                """
                INSERT INTO local_status (
                    local_path, repo_id, current_branch, uncommitted_files,
                    unpushed_commits, behind_commits, last_checked
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    status.local_path,
                    status.repo_id,
                    status.current_branch,
                    status.uncommitted_files,
                    status.unpushed_commits,
                    status.behind_commits,
                    to_db_timestamp(status.last_checked),
                ),
            )

    def clear_repository_data(self) -> None:
        """Delete every repository and local status. Configuration tables are kept."""
        with self._write() as conn:
            conn.execute("DELETE FROM repositories")
            conn.execute("DELETE FROM local_status")
        logger.info("Cleared cached repository data")

    # -- reads -------------------------------------------------------------

    def get_repository(self, repo_id: str) -> Repository | None:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM repositories WHERE id = ?", (repo_id,)).fetchone()
        return Repository.from_row(row) if row else None

    def list_repositories(self) -> list[Repository]:
        """All repositories, most urgent first, then most recently pushed."""
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM repositories ORDER BY priority ASC, pushed_at DESC"
            ).fetchall()
        return [Repository.from_row(row) for row in rows]

    def list_branches(self, repo_id: str) -> list[Branch]:
        """Branches of a repository by name, each with its commits newest first."""
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM branches WHERE repo_id = ? ORDER BY name", (repo_id,)
            ).fetchall()
            commit_rows = conn.execute(
                """
                SELECT c.* FROM commits c JOIN branches b ON b.id = c.branch_id
                WHERE b.repo_id = ?
                ORDER BY c.committed_date DESC, c.id
                """,
                (repo_id,),
            ).fetchall()
        commits = _group_commits(commit_rows)
        return [Branch.from_row(row, commits.get(row["id"])) for row in rows]

    def list_pull_requests(self, repo_id: str) -> list[PullRequest]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM pull_requests WHERE repo_id = ? ORDER BY number DESC",
                (repo_id,),
            ).fetchall()
        return [PullRequest.from_row(row) for row in rows]

    def get_local_status(self, repo_id: str) -> LocalStatus | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM local_status WHERE repo_id = ?", (repo_id,)
            ).fetchone()
        return local_status_from_row(row) if row else None

    def list_local_statuses(self) -> list[LocalStatus]:
        with self._read() as conn:
            rows = conn.execute("SELECT * FROM local_status ORDER BY repo_id").fetchall()
        return [local_status_from_row(row) for row in rows]

    def list_repository_ids(self, group_id: int | None = None) -> list[str]:
        """
        Repository ids, optionally restricted to one group's members.

        Raises:
            NotFound: If group_id does not exist
        """
        with self._read() as conn:
            if group_id is None:
                rows = conn.execute("SELECT id FROM repositories ORDER BY id").fetchall()
            else:
                if conn.execute("SELECT 1 FROM groups WHERE id = ?", (group_id,)).fetchone() is None:
                    raise NotFound(f"Group not found: {group_id}")
                rows = conn.execute(
                    "SELECT repo_id AS id FROM repo_groups WHERE group_id = ? ORDER BY repo_id",
                    (group_id,),
                ).fetchall()
        return [row["id"] for row in rows]

    def list_groups_with_repos(self) -> GroupsSnapshot:
        """
        Every group with its members, plus the ungrouped bucket.

        All tables are read inside one transaction so the result never
        mixes two sync generations.
        """
        with self._read() as conn:
            group_rows = conn.execute(
                "SELECT * FROM groups ORDER BY display_order, id"
            ).fetchall()
            repo_rows = conn.execute(
                "SELECT * FROM repositories ORDER BY priority ASC, pushed_at DESC"
            ).fetchall()
            branch_rows = conn.execute("SELECT * FROM branches ORDER BY name").fetchall()
            commit_rows = conn.execute(
                "SELECT * FROM commits ORDER BY committed_date DESC, id"
            ).fetchall()
            pr_rows = conn.execute("SELECT * FROM pull_requests ORDER BY number DESC").fetchall()
            local_rows = conn.execute("SELECT * FROM local_status").fetchall()
            membership_rows = conn.execute("SELECT repo_id, group_id FROM repo_groups").fetchall()

        commits = _group_commits(commit_rows)
        branches: dict[str, list[Branch]] = {}
        for row in branch_rows:
            branches.setdefault(row["repo_id"], []).append(
                Branch.from_row(row, commits.get(row["id"]))
            )
        pull_requests: dict[str, list[PullRequest]] = {}
        for row in pr_rows:
            pull_requests.setdefault(row["repo_id"], []).append(PullRequest.from_row(row))
        local = {row["repo_id"]: local_status_from_row(row) for row in local_rows}
        membership = {row["repo_id"]: row["group_id"] for row in membership_rows}

        views = {group_row["id"]: GroupView(group=Group.from_row(group_row)) for group_row in group_rows}
        ungrouped = GroupView()
        for row in repo_rows:
            repo = Repository.from_row(row)
            view = RepositoryView(
                repository=repo,
                branches=branches.get(repo.id, []),
                pull_requests=pull_requests.get(repo.id, []),
                local_status=local.get(repo.id),
            )
            target = views.get(membership.get(repo.id, -1), ungrouped)
            target.repositories.append(view)

        return GroupsSnapshot(groups=list(views.values()), ungrouped=ungrouped)

    # -- groups ------------------------------------------------------------

    def list_groups(self) -> list[Group]:
        with self._read() as conn:
            rows = conn.execute("SELECT * FROM groups ORDER BY display_order, id").fetchall()
        return [Group.from_row(row) for row in rows]

    def get_group(self, group_id: int) -> Group | None:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM groups WHERE id = ?", (group_id,)).fetchone()
        return Group.from_row(row) if row else None

    def create_group(
        self,
        name: str,
        display_order: int | None = None,
        repo_ids: Sequence[str] = (),
    ) -> Group:
        """
        Create a group, optionally moving repositories into it.

        New groups go last unless display_order is given. The insert and
        every move share one transaction, so an unknown repository leaves
        neither the group nor any earlier move behind.

        Raises:
            ValueError: If the name is blank
            Conflict: If a group with this name exists
            NotFound: If any of repo_ids is not cached
        """
        name = name.strip()
        if not name:
            raise ValueError("Group name cannot be empty")
        with self._write() as conn:
            if display_order is None:
                row = conn.execute(
                    "SELECT COALESCE(MAX(display_order), -1) + 1 AS next FROM groups"
                ).fetchone()
                display_order = int(row["next"])
            try:
                cursor = conn.execute(
                    "INSERT INTO groups (name, display_order, created_at) VALUES (?, ?, ?)",
                    (name, display_order, _now()),
                )
            except sqlite3.IntegrityError as e:
                raise Conflict(f"Group already exists: {name}") from e
            group_id = int(cursor.lastrowid or 0)
            for repo_id in repo_ids:
                _move_repository(conn, repo_id, group_id)
            row = conn.execute("SELECT * FROM groups WHERE id = ?", (group_id,)).fetchone()
        logger.info("Created group %s with %d repositories", name, len(repo_ids))
        return Group.from_row(row)

    def rename_group(self, group_id: int, name: str) -> Group:
        """
        Raises:
            NotFound: If the group does not exist
            Conflict: If another group already has this name
        """
        name = name.strip()
        if not name:
            raise ValueError("Group name cannot be empty")
        with self._write() as conn:
            try:
                cursor = conn.execute(
                    "UPDATE groups SET name = ? WHERE id = ?", (name, group_id)
                )
            except sqlite3.IntegrityError as e:
                raise Conflict(f"Group already exists: {name}") from e
            if cursor.rowcount == 0:
                raise NotFound(f"Group not found: {group_id}")
            row = conn.execute("SELECT * FROM groups WHERE id = ?", (group_id,)).fetchone()
        return Group.from_row(row)

    def delete_group(self, group_id: int) -> None:
        """Delete a group. Its repositories become ungrouped."""
        with self._write() as conn:
            cursor = conn.execute("DELETE FROM groups WHERE id = ?", (group_id,))
            if cursor.rowcount == 0:
                raise NotFound(f"Group not found: {group_id}")
        logger.info("Deleted group %s", group_id)

    def move_repository(self, repo_id: str, group_id: int | None) -> None:
        """
        Move a repository into a group, or out of every group when group_id is None.

        Membership is deleted then inserted in one transaction, so a
        repository is never in two groups.

        Raises:
            NotFound: If the repository or group does not exist
        """
        with self._write() as conn:
            _move_repository(conn, repo_id, group_id)

    # -- tracked owners ----------------------------------------------------

    def list_owners(self) -> list[str]:
        with self._read() as conn:
            rows = conn.execute("SELECT owner FROM tracked_owners ORDER BY owner").fetchall()
        return [row["owner"] for row in rows]

    def add_owner(self, owner: str) -> bool:
        """
        Track an owner. Returns False if it was already tracked.

        Raises:
            InvalidOwner: If the name is not a valid GitHub owner
        """
        owner = validate_owner(owner.strip())
        with self._write() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO tracked_owners (owner, added_at) VALUES (?, ?)",
                (owner, _now()),
            )
            return cursor.rowcount > 0

    def remove_owner(self, owner: str) -> bool:
        with self._write() as conn:
            cursor = conn.execute("DELETE FROM tracked_owners WHERE owner = ?", (owner,))
            return cursor.rowcount > 0

    def seed_owners(self, owners: Iterable[str]) -> int:
        """Track the given owners only if no owner is tracked yet. Returns how many were added."""
        if self.list_owners():
            return 0
        added = 0
        for owner in owners:
            if self.add_owner(owner):
                added += 1
        return added

    # -- local roots -------------------------------------------------------

    def list_roots(self, enabled_only: bool = False) -> list[LocalRoot]:
        query = "SELECT * FROM local_roots"
        if enabled_only:
            query += " WHERE enabled = 1"
        with self._read() as conn:
            rows = conn.execute(query + " ORDER BY path").fetchall()
        return [
            LocalRoot(
                id=row["id"],
                path=row["path"],
                enabled=bool(row["enabled"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def add_root(self, path: str) -> LocalRoot:
        """
        Raises:
            Conflict: If the root is already configured
        """
        path = str(Path(path).expanduser())
        with self._write() as conn:
            try:
                conn.execute(
                    "INSERT INTO local_roots (path, enabled, created_at) VALUES (?, 1, ?)",
                    (path, _now()),
                )
            except sqlite3.IntegrityError as e:
                raise Conflict(f"Local root already configured: {path}") from e
            row = conn.execute("SELECT * FROM local_roots WHERE path = ?", (path,)).fetchone()
        return LocalRoot(
            id=row["id"],
            path=row["path"],
            enabled=bool(row["enabled"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def remove_root(self, path: str) -> bool:
        path = str(Path(path).expanduser())
        with self._write() as conn:
            cursor = conn.execute("DELETE FROM local_roots WHERE path = ?", (path,))
            return cursor.rowcount > 0

    def set_root_enabled(self, path: str, enabled: bool) -> None:
        path = str(Path(path).expanduser())
        with self._write() as conn:
            cursor = conn.execute(
                "UPDATE local_roots SET enabled = ? WHERE path = ?", (int(enabled), path)
            )
            if cursor.rowcount == 0:
                raise NotFound(f"Local root not found: {path}")
