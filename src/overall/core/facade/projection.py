"""
Read-only projections of the cache for the UI and repos.json.

Field names are camelCase to match what the web UI consumes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from overall.core.local.models import LocalStatus
from overall.core.store.models import (
    Branch,
    Commit,
    GroupsSnapshot,
    GroupView,
    PullRequest,
    RepositoryView,
)


def _iso(value: datetime) -> str:
    return value.isoformat()


def commit_to_dict(commit: Commit) -> dict[str, Any]:
    return {
        "sha": commit.sha,
        "message": commit.message,
        "authorName": commit.author_name,
        "authorEmail": commit.author_email,
        "authoredDate": _iso(commit.authored_date),
        "committerName": commit.committer_name,
        "committerEmail": commit.committer_email,
        "committedDate": _iso(commit.committed_date),
    }


def branch_to_dict(branch: Branch) -> dict[str, Any]:
    return {
        "name": branch.name,
        "sha": branch.head_sha,
        "aheadBy": branch.ahead_by,
        "behindBy": branch.behind_by,
        "status": branch.status.value,
        "lastCommitDate": _iso(branch.last_commit_date),
        "commits": [commit_to_dict(c) for c in branch.commits],
    }


def pull_request_to_dict(pr: PullRequest) -> dict[str, Any]:
    return {
        "number": pr.number,
        "title": pr.title,
        "state": pr.state.value,
        "createdAt": _iso(pr.created_at),
        "updatedAt": _iso(pr.updated_at),
    }


def local_status_to_dict(status: LocalStatus) -> dict[str, Any]:
    return {
        "path": status.local_path,
        "currentBranch": status.current_branch,
        "uncommittedFiles": status.uncommitted_files,
        "unpushedCommits": status.unpushed_commits,
        "behindCommits": status.behind_commits,
        "lastChecked": _iso(status.last_checked),
    }


def repository_to_export(view: RepositoryView) -> dict[str, Any]:
    """
    Export form of one repository.

    unmergedCount counts branches ahead of the default branch and not
    behind it; prCount counts open pull requests.
    """
    repo = view.repository
    return {
        "id": repo.id,
        "owner": repo.owner,
        "name": repo.name,
        "language": repo.language or "Unknown",
        "lastPush": _iso(repo.pushed_at),
        "priority": repo.priority.label,
        "branches": [branch_to_dict(b) for b in view.branches],
        "pullRequests": [pull_request_to_dict(pr) for pr in view.pull_requests],
        "unmergedCount": view.unmerged_count,
        "prCount": view.open_pr_count,
    }


def repository_to_api(view: RepositoryView) -> dict[str, Any]:
    """Export form plus the fields only the live API serves."""
    repo = view.repository
    payload = repository_to_export(view)
    payload.update(
        {
            "description": repo.description,
            "defaultBranch": repo.default_branch,
            "isFork": repo.is_fork,
            "isMissing": repo.is_missing,
            "lastSyncedAt": _iso(repo.last_synced_at) if repo.last_synced_at else None,
            "localStatus": local_status_to_dict(view.local_status) if view.local_status else None,
        }
    )
    return payload


def group_to_dict(view: GroupView, *, api: bool = False) -> dict[str, Any]:
    """Group with its members. The priority is the members' worst case."""
    to_dict = repository_to_api if api else repository_to_export
    group = view.group
    return {
        "id": group.id if group else None,
        "name": group.name if group else "Ungrouped",
        "priority": view.priority.label,
        "repos": [to_dict(repo) for repo in view.repositories],
    }


def build_export(snapshot: GroupsSnapshot) -> dict[str, Any]:
    """
    Build the repos.json document.

    Example:
        >>> build_export(GroupsSnapshot())
        {'groups': [], 'ungrouped': []}
    """
    return {
        "groups": [group_to_dict(view) for view in snapshot.groups],
        "ungrouped": [repository_to_export(repo) for repo in snapshot.ungrouped.repositories],
    }


def build_groups_payload(snapshot: GroupsSnapshot) -> dict[str, Any]:
    """Response body for GET /api/groups."""
    return {
        "groups": [group_to_dict(view, api=True) for view in snapshot.groups],
        "ungrouped": group_to_dict(snapshot.ungrouped, api=True),
    }
