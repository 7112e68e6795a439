"""
Remote data models for overall.

Normalized records built from `gh` CLI JSON output. Field names follow
Python conventions; the ``from_gh_*`` constructors know the GitHub
field names.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field

from overall.core.errors import InvalidOwner

# GitHub usernames: alphanumerics and hyphens, at most 39 characters
OWNER_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")
MAX_OWNER_LENGTH = 39


class PRState(str, Enum):
    """Pull request state."""

    OPEN = "Open"
    CLOSED = "Closed"
    MERGED = "Merged"

    @classmethod
    def from_gh(cls, value: str | None) -> PRState:
        """Map gh's upper-case state names. Unknown states read as closed."""
        mapping = {"OPEN": cls.OPEN, "CLOSED": cls.CLOSED, "MERGED": cls.MERGED}
        return mapping.get((value or "").upper(), cls.CLOSED)


def parse_github_timestamp(value: Any) -> datetime:
    """
    Parse an RFC 3339 timestamp from GitHub into an aware UTC datetime.

    Args:
        value: Timestamp string such as ``2023-11-15T12:00:00Z``

    Returns:
        UTC datetime

    Raises:
        ValueError: If the value is missing or malformed
    """
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc)
    if not isinstance(value, str) or not value:
        raise ValueError(f"Failed to parse timestamp '{value}'")
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class RepoRef(BaseModel):
    """
    Repository identity on GitHub.

    Example:
        >>> RepoRef.from_remote_url("git@github.com:octo/widgets.git")
        RepoRef(owner='octo', name='widgets')
        >>> RepoRef.parse("octo/widgets").full_name
        'octo/widgets'
    """

    owner: str = Field(..., description="Repository owner (user or organization)")
    name: str = Field(..., description="Repository name")

    @computed_field
    @property
    def full_name(self) -> str:
        """Repository id in owner/name form."""
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, repo_id: str) -> RepoRef:
        """
        Parse an ``owner/name`` repository id.

        Raises:
            ValueError: If the id is not in owner/name form
        """
        parts = repo_id.strip().split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(
                f"Invalid repository ID: {repo_id}. Expected owner/name format"
            )
        return cls(owner=parts[0], name=parts[1])

    @classmethod
    def from_remote_url(cls, remote_url: str) -> RepoRef | None:
        """
        Parse a git remote URL (SSH or HTTPS) pointing at github.com.

        Returns:
            RepoRef or None if the URL is not a GitHub repository
        """
        if not remote_url:
            return None

        ssh_match = re.match(r"git@github\.com:([^/]+)/([^/]+?)(?:\.git)?$", remote_url)
        if ssh_match:
            return cls(owner=ssh_match.group(1), name=ssh_match.group(2))

        https_match = re.match(
            r"(?:https?|ssh)://(?:[^@/]+@)?github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$",
            remote_url,
        )
        if https_match:
            return cls(owner=https_match.group(1), name=https_match.group(2))

        return None


class RemoteRepo(BaseModel):
    """Repository metadata as reported by the remote."""

    owner: str
    name: str
    language: str | None = None
    description: str | None = None
    pushed_at: datetime
    created_at: datetime
    updated_at: datetime
    is_fork: bool = False
    default_branch: str = "main"

    @computed_field
    @property
    def id(self) -> str:
        """Repository id in owner/name form."""
        return f"{self.owner}/{self.name}"

    @classmethod
    def from_gh_repo_list(cls, data: dict[str, Any]) -> RemoteRepo:
        """
        Build from one element of ``gh repo list --json`` output.

        Expects the camelCase fields requested by ``list_repositories``.
        """
        owner = data.get("owner") or {}
        language = data.get("primaryLanguage") or {}
        default_ref = data.get("defaultBranchRef") or {}
        return cls(
            owner=str(owner.get("login", "")),
            name=str(data.get("name", "")),
            language=language.get("name") if isinstance(language, dict) else None,
            description=data.get("description") or None,
            pushed_at=parse_github_timestamp(data.get("pushedAt")),
            created_at=parse_github_timestamp(data.get("createdAt")),
            updated_at=parse_github_timestamp(data.get("updatedAt")),
            is_fork=bool(data.get("isFork", False)),
            default_branch=str(default_ref.get("name") or "main"),
        )

    @classmethod
    def from_gh_api(cls, data: dict[str, Any]) -> RemoteRepo:
        """Build from ``gh api repos/{owner}/{name}`` (REST, snake_case) output."""
        owner = data.get("owner") or {}
        return cls(
            owner=str(owner.get("login", "")),
            name=str(data.get("name", "")),
            language=data.get("language") or None,
            description=data.get("description") or None,
            pushed_at=parse_github_timestamp(data.get("pushed_at") or data.get("updated_at")),
            created_at=parse_github_timestamp(data.get("created_at")),
            updated_at=parse_github_timestamp(data.get("updated_at")),
            is_fork=bool(data.get("fork", False)),
            default_branch=str(data.get("default_branch") or "main"),
        )


class RemoteCommit(BaseModel):
    """One commit in a branch's recent history."""

    sha: str
    message: str = ""
    author_name: str = ""
    author_email: str = ""
    authored_date: datetime
    committer_name: str = ""
    committer_email: str = ""
    committed_date: datetime

    @classmethod
    def from_gh_api(cls, data: dict[str, Any]) -> RemoteCommit:
        """Build from one element of ``gh api repos/{owner}/{name}/commits`` output."""
        commit = data["commit"]
        author = commit.get("author") or {}
        committer = commit.get("committer") or {}
        return cls(
            sha=str(data["sha"]),
            message=str(commit.get("message") or ""),
            author_name=str(author.get("name") or ""),
            author_email=str(author.get("email") or ""),
            authored_date=parse_github_timestamp(author.get("date")),
            committer_name=str(committer.get("name") or ""),
            committer_email=str(committer.get("email") or ""),
            committed_date=parse_github_timestamp(committer.get("date") or author.get("date")),
        )


class RemoteBranch(BaseModel):
    """A branch with its divergence from the default branch and recent commits."""

    name: str
    head_sha: str
    ahead_by: int = Field(default=0, ge=0)
    behind_by: int = Field(default=0, ge=0)
    last_commit_date: datetime
    commits: list[RemoteCommit] = Field(default_factory=list)


class RemotePullRequest(BaseModel):
    """A pull request as listed by ``gh pr list``."""

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
    def from_gh_pr_list(cls, data: dict[str, Any]) -> RemotePullRequest:
        """Build from one element of ``gh pr list --json`` output."""
        return cls(
            number=int(data.get("number", 0)),
            state=PRState.from_gh(data.get("state")),
            title=str(data.get("title") or ""),
            head_ref=data.get("headRefName") or None,
            created_at=parse_github_timestamp(data.get("createdAt")),
            updated_at=parse_github_timestamp(data.get("updatedAt")),
        )


class RemoteSnapshot(BaseModel):
    """
    Everything fetched for one repository at one instant.

    Classification and persistence only ever see a complete snapshot.
    """

    repo: RemoteRepo
    branches: list[RemoteBranch] = Field(default_factory=list)
    pull_requests: list[RemotePullRequest] = Field(default_factory=list)

    @property
    def default_branch(self) -> str:
        return self.repo.default_branch


def validate_owner(owner: str) -> str:
    """
    Validate a GitHub owner (user or organization) name.

    Raises:
        InvalidOwner: If the name is empty, too long or has invalid characters
    """
    if not owner:
        raise InvalidOwner("Owner cannot be empty")
    if not OWNER_PATTERN.match(owner):
        raise InvalidOwner(
            f"Invalid owner name '{owner}': must be alphanumeric or hyphens"
        )
    if len(owner) > MAX_OWNER_LENGTH:
        raise InvalidOwner(
            f"Owner name too long: {len(owner)} characters (max {MAX_OWNER_LENGTH})"
        )
    return owner
