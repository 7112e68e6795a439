"""
Cached record models.

These mirror the SQLite tables. Row conversion lives on the models so
the store only ever deals in plain dict rows and typed records.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, computed_field

from overall.core.github.models import (
    PRState,
    RemoteBranch,
    RemoteCommit,
    RemotePullRequest,
    RemoteRepo,
)
from overall.core.local.models import LocalStatus
from overall.core.priority.classifier import group_priority
from overall.core.priority.models import BranchStatus, Priority


def to_db_timestamp(value: datetime | None) -> str | None:
    """Serialize a datetime as ISO 8601 text for storage."""
    return value.isoformat() if value is not None else None


def from_db_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 column value; empty values read as None."""
    if not value:
        return None
    return datetime.fromisoformat(value)


class Repository(BaseModel):
    """A tracked repository with its derived priority tier."""

    id: str = Field(..., description="Repository id (owner/name)")
    owner: str
    name: str
    language: str | None = None
    description: str | None = None
    pushed_at: datetime
    created_at: datetime
    updated_at: datetime
    is_fork: bool = False
    default_branch: str = "main"
    priority: Priority = Priority.COMPLETE
    is_missing: bool = False
    last_synced_at: datetime | None = None

    @classmethod
    def from_remote(
        cls,
        repo: RemoteRepo,
        priority: Priority,
        synced_at: datetime | None = None,
    ) -> Repository:
        return cls(
            id=repo.id,
            owner=repo.owner,
            name=repo.name,
            language=repo.language,
            description=repo.description,
            pushed_at=repo.pushed_at,
            created_at=repo.created_at,
            updated_at=repo.updated_at,
            is_fork=repo.is_fork,
            default_branch=repo.default_branch,
            priority=priority,
            last_synced_at=synced_at,
        )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Repository:
        return cls(
            id=row["id"],
            owner=row["owner"],
            name=row["name"],
            language=row.get("language"),
            description=row.get("description"),
            pushed_at=datetime.fromisoformat(row["pushed_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            is_fork=bool(row.get("is_fork", 0)),
            default_branch=row.get("default_branch") or "main",
            priority=Priority(int(row["priority"])),
            is_missing=bool(row.get("is_missing", 0)),
            last_synced_at=from_db_timestamp(row.get("last_synced_at")),
        )


class Commit(BaseModel):
    """A cached commit of one branch."""

    id: int | None = None
    branch_id: int | None = None
    sha: str
    message: str = ""
    author_name: str = ""
    author_email: str = ""
    authored_date: datetime
    committer_name: str = ""
    committer_email: str = ""
    committed_date: datetime

    @classmethod
    def from_remote(cls, commit: RemoteCommit) -> Commit:
        return cls(**commit.model_dump())

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Commit:
        return cls(
            id=row["id"],
            branch_id=row["branch_id"],
            sha=row["sha"],
            message=row.get("message") or "",
            author_name=row.get("author_name") or "",
            author_email=row.get("author_email") or "",
            authored_date=datetime.fromisoformat(row["authored_date"]),
            committer_name=row.get("committer_name") or "",
            committer_email=row.get("committer_email") or "",
            committed_date=datetime.fromisoformat(row["committed_date"]),
        )


class Branch(BaseModel):
    """A cached branch with its classified status and recent commits, newest first."""

    id: int | None = None
    repo_id: str
    name: str
    head_sha: str
    ahead_by: int = Field(default=0, ge=0)
    behind_by: int = Field(default=0, ge=0)
    status: BranchStatus
    last_commit_date: datetime
    commits: list[Commit] = Field(default_factory=list)

    @classmethod
    def from_remote(cls, repo_id: str, branch: RemoteBranch, status: BranchStatus) -> Branch:
        return cls(
            repo_id=repo_id,
            name=branch.name,
            head_sha=branch.head_sha,
            ahead_by=branch.ahead_by,
            behind_by=branch.behind_by,
            status=status,
            last_commit_date=branch.last_commit_date,
            commits=[Commit.from_remote(c) for c in branch.commits],
        )

    @classmethod
    def from_row(cls, row: dict[str, Any], commits: list[Commit] | None = None) -> Branch:
        return cls(
            id=row["id"],
            repo_id=row["repo_id"],
            name=row["name"],
            head_sha=row["head_sha"],
            ahead_by=row["ahead_by"],
            behind_by=row["behind_by"],
            status=BranchStatus(row["status"]),
            last_commit_date=datetime.fromisoformat(row["last_commit_date"]),
            commits=commits or [],
        )


class PullRequest(BaseModel):
    """A cached pull request. branch_id is None once its branch is gone."""

    id: int | None = None
    repo_id: str
    branch_id: int | None = None
    number: int
    state: PRState
    title: str = ""
    head_ref: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_open(self) -> bool:
        return self.state == PRState.OPEN

    @classmethod
    def from_remote(cls, repo_id: str, pr: RemotePullRequest) -> PullRequest:
        return cls(
            repo_id=repo_id,
            number=pr.number,
            state=pr.state,
            title=pr.title,
            head_ref=pr.head_ref,
            created_at=pr.created_at,
            updated_at=pr.updated_at,
        )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> PullRequest:
        return cls(
            id=row["id"],
            repo_id=row["repo_id"],
            branch_id=row.get("branch_id"),
            number=row["number"],
            state=PRState(row["state"]),
            title=row.get("title") or "",
            head_ref=row.get("head_ref"),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class Group(BaseModel):
    """A user-defined tab of repositories."""

    id: int
    name: str
    display_order: int = 0
    created_at: datetime

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Group:
        return cls(
            id=row["id"],
            name=row["name"],
            display_order=row.get("display_order", 0),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


def local_status_from_row(row: dict[str, Any]) -> LocalStatus:
    return LocalStatus(
        repo_id=row["repo_id"],
        local_path=row["local_path"],
        current_branch=row.get("current_branch"),
        uncommitted_files=row["uncommitted_files"],
        unpushed_commits=row["unpushed_commits"],
        behind_commits=row["behind_commits"],
        last_checked=datetime.fromisoformat(row["last_checked"]),
    )


class RepositoryView(BaseModel):
    """A repository joined with its branches, pull requests and local status."""

    repository: Repository
    branches: list[Branch] = Field(default_factory=list)
    pull_requests: list[PullRequest] = Field(default_factory=list)
    local_status: LocalStatus | None = None

    @property
    def open_pr_count(self) -> int:
        return sum(1 for pr in self.pull_requests if pr.is_open)

    @property
    def unmerged_count(self) -> int:
        """Branches with commits ahead of the default branch and nothing to pull."""
        return sum(1 for b in self.branches if b.ahead_by > 0 and b.behind_by == 0)


class GroupView(BaseModel):
    """
    A group with its member repositories.

    ``group`` is None for the ungrouped bucket. The group priority is
    derived from the members on every access.
    """

    group: Group | None = None
    repositories: list[RepositoryView] = Field(default_factory=list)

    @computed_field
    @property
    def priority(self) -> Priority:
        return group_priority(view.repository.priority for view in self.repositories)


class GroupsSnapshot(BaseModel):
    """Every group plus the ungrouped bucket, read in one transaction."""

    groups: list[GroupView] = Field(default_factory=list)
    ungrouped: GroupView = Field(default_factory=GroupView)
