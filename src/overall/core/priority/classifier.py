"""
Branch status and repository priority classification.

Everything here is pure: no I/O, no clock, no database. Rules are
evaluated in a fixed order and the first match wins, so the outcome
does not depend on the order in which signals are supplied.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from overall.core.github.models import RemoteBranch, RemotePullRequest
from overall.core.local.models import LocalStatus
from overall.core.priority.models import BranchStatus, Priority


class BranchSignals(Protocol):
    """Fields of a branch the repository priority rules look at."""

    name: str
    ahead_by: int
    behind_by: int
    status: BranchStatus


def classify_branch(
    *,
    ahead_by: int,
    behind_by: int,
    has_open_pr: bool,
    is_default: bool,
) -> BranchStatus:
    """
    Classify a single branch.

    Rules, first match wins:
        1. default branch              -> Default
        2. open PR exists              -> ReadyReview
        3. behind the default branch   -> NeedsSync
        4. ahead and not behind        -> ReadyForPR
        5. otherwise                   -> UpToDate

    Example:
        >>> classify_branch(ahead_by=0, behind_by=34, has_open_pr=False, is_default=False)
        <BranchStatus.NEEDS_SYNC: 'NeedsSync'>
    """
    if is_default:
        return BranchStatus.DEFAULT
    if has_open_pr:
        return BranchStatus.READY_REVIEW
    if behind_by > 0:
        return BranchStatus.NEEDS_SYNC
    if ahead_by > 0:
        return BranchStatus.READY_FOR_PR
    return BranchStatus.UP_TO_DATE


def open_pr_heads(pull_requests: Iterable[RemotePullRequest]) -> set[str]:
    """Head branch names that have an open pull request."""
    return {pr.head_ref for pr in pull_requests if pr.is_open and pr.head_ref}


def classify_branches(
    branches: Iterable[RemoteBranch],
    pull_requests: Iterable[RemotePullRequest],
    default_branch: str,
) -> dict[str, BranchStatus]:
    """
    Classify every branch of a snapshot.

    Returns:
        Mapping of branch name to status
    """
    heads = open_pr_heads(pull_requests)
    return {
        branch.name: classify_branch(
            ahead_by=branch.ahead_by,
            behind_by=branch.behind_by,
            has_open_pr=branch.name in heads,
            is_default=branch.name == default_branch,
        )
        for branch in branches
    }


def compute_priority(
    branches: Iterable[BranchSignals],
    local_status: LocalStatus | None,
    default_branch: str | None = None,
) -> Priority:
    """
    Compute a repository's priority tier.

    Local and remote signals are combined on purpose: a clean remote with
    a dirty local clone is still urgent. Without a local status the
    local-only checks are skipped.

    Rules, first match wins:
        0 NeedsSync:    local unpushed or behind, or any branch NeedsSync,
                        or any branch ahead/behind its comparison base
        1 LocalChanges: local uncommitted files
        2 Stale:        a non-default branch is ReadyForPR or NeedsSync
        3 Complete:     none of the above

    Args:
        branches: Classified branches of the repository
        local_status: Cached local status, if a clone is known
        default_branch: Name of the default branch

    Returns:
        The repository's Priority
    """
    branches = list(branches)

    if local_status is not None and (
        local_status.unpushed_commits > 0 or local_status.behind_commits > 0
    ):
        return Priority.NEEDS_SYNC
    for branch in branches:
        if branch.status == BranchStatus.NEEDS_SYNC:
            return Priority.NEEDS_SYNC
        if branch.ahead_by > 0 or branch.behind_by > 0:
            return Priority.NEEDS_SYNC

    if local_status is not None and local_status.uncommitted_files > 0:
        return Priority.LOCAL_CHANGES

    for branch in branches:
        is_default = branch.status == BranchStatus.DEFAULT or branch.name == default_branch
        if not is_default and branch.status.is_unmerged:
            return Priority.STALE

    return Priority.COMPLETE


def group_priority(priorities: Iterable[Priority]) -> Priority:
    """
    Worst-case (most urgent) priority of a group.

    A plain min-fold over tier numbers; an empty group is Complete.

    Example:
        >>> group_priority([Priority.COMPLETE, Priority.NEEDS_SYNC])
        <Priority.NEEDS_SYNC: 0>
        >>> group_priority([])
        <Priority.COMPLETE: 3>
    """
    return min(priorities, default=Priority.COMPLETE)
