"""
Pull request creation for cached branches.

Thin orchestration over the GitHub client: the client talks to `gh`,
the store says which branches carry unmerged work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from overall.core.errors import NotFound, RemoteError
from overall.core.store.store import CacheStore

logger = logging.getLogger(__name__)


class PullRequestCreator(Protocol):
    """The part of the GitHub client that opens pull requests."""

    def create_pull_request(
        self,
        repo_id: str,
        branch: str,
        title: str | None = None,
        body: str | None = None,
    ) -> str: ...


@dataclass
class PRResult:
    """Outcome of opening a pull request for one branch."""

    branch: str
    success: bool
    url: str | None = None
    error: str | None = None


class PRService:
    """
    Opens pull requests for branches of cached repositories.

    Example:
        >>> service = PRService(store, GitHubClient())
        >>> service.create("octo/widgets", "feature-x")
        'https://github.com/octo/widgets/pull/12'
    """

    def __init__(self, store: CacheStore, creator: PullRequestCreator) -> None:
        self.store = store
        self.creator = creator

    def create(
        self,
        repo_id: str,
        branch: str,
        title: str | None = None,
        body: str | None = None,
    ) -> str:
        """
        Open a pull request for one branch against the default branch.

        Raises:
            RemoteError: If gh fails
        """
        url = self.creator.create_pull_request(repo_id, branch, title, body)
        logger.info("Opened pull request for %s:%s -> %s", repo_id, branch, url)
        return url

    def create_for_unmerged(self, repo_id: str) -> list[PRResult]:
        """
        Open a pull request for every non-default branch ahead of the default branch.

        A failure on one branch is recorded and the rest still run.

        Raises:
            NotFound: If the repository is not cached
        """
        repository = self.store.get_repository(repo_id)
        if repository is None:
            raise NotFound(f"Repository not found: {repo_id}")

        results: list[PRResult] = []
        for branch in self.store.list_branches(repo_id):
            if branch.ahead_by == 0 or branch.name == repository.default_branch:
                continue
            try:
                url = self.create(repo_id, branch.name)
            except RemoteError as e:
                logger.warning("Failed to open PR for %s:%s: %s", repo_id, branch.name, e)
                results.append(PRResult(branch=branch.name, success=False, error=str(e)))
            else:
                results.append(PRResult(branch=branch.name, success=True, url=url))
        return results
