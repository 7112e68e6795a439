"""
Local working-copy models.

A LocalStatus row describes one local clone. It is produced by a local
scan and is never touched by a remote sync.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ScanSentinel(str, Enum):
    """Non-error outcome of scanning a path that is not a git working tree."""

    NOT_A_REPOSITORY = "not_a_repository"


NOT_A_REPOSITORY = ScanSentinel.NOT_A_REPOSITORY


class LocalStatus(BaseModel):
    """
    Working-tree counters for a local clone.

    unpushed_commits: commits on the current branch missing from its upstream
    behind_commits: commits on the upstream missing locally
    """

    repo_id: str = Field(..., description="Repository id (owner/name)")
    local_path: str = Field(..., description="Absolute path of the working copy")
    current_branch: str | None = None
    uncommitted_files: int = Field(default=0, ge=0)
    unpushed_commits: int = Field(default=0, ge=0)
    behind_commits: int = Field(default=0, ge=0)
    last_checked: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_dirty(self) -> bool:
        return self.uncommitted_files > 0 or self.unpushed_commits > 0


class LocalRoot(BaseModel):
    """A directory whose immediate children are scanned for clones."""

    id: int
    path: str
    enabled: bool = True
    created_at: datetime


class LocalScanReport(BaseModel):
    """Result of scanning every enabled local root."""

    statuses: list[LocalStatus] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list, description="Paths that were not repositories")
    errors: dict[str, str] = Field(default_factory=dict, description="Path -> error message")
