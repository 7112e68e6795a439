"""
GitHub CLI wrapper for overall.

Fetches repository, branch, commit and pull request data through the `gh` CLI
tool and normalizes it into remote snapshot records. No retries happen
here; the reconciliation engine owns the retry policy.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

from overall.core.errors import (
    RemoteError,
    RemoteNotFound,
    RemoteRateLimited,
    RemoteTimeout,
    RemoteUnavailable,
)
from overall.core.github.models import (
    RemoteBranch,
    RemoteCommit,
    RemotePullRequest,
    RemoteRepo,
    RemoteSnapshot,
    RepoRef,
    parse_github_timestamp,
    validate_owner,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
PR_LIST_LIMIT = 100
# Recent history kept per branch
COMMIT_LIMIT = 50

REPO_LIST_FIELDS = (
    "name,owner,pushedAt,createdAt,updatedAt,primaryLanguage,"
    "description,isFork,defaultBranchRef"
)
PR_LIST_FIELDS = "number,state,title,createdAt,updatedAt,headRefName"

_RATE_LIMIT_MARKERS = ("rate limit", "http 429", "too many requests")
_NOT_FOUND_MARKERS = ("http 404", "not found", "could not resolve to a repository")
_RETRY_AFTER_PATTERNS = (
    re.compile(r"retry[- ]after[:=\s]+(\d+)", re.IGNORECASE),
    re.compile(r"try again in (\d+) ?s", re.IGNORECASE),
)

Runner = Callable[[Sequence[str], float], subprocess.CompletedProcess[str]]


def run_gh(args: Sequence[str], timeout: float) -> subprocess.CompletedProcess[str]:
    """Run ``gh`` with the given arguments and capture text output."""
    return subprocess.run(
        ["gh", *args],
        capture_output=True,
        text=True,
        check=False,
        timeout=timeout,
    )


def classify_gh_error(stderr: str, context: str) -> RemoteError:
    """
    Map gh stderr output to the remote error taxonomy.

    Args:
        stderr: Standard error text from a failed gh invocation
        context: Short description of what was being fetched

    Returns:
        RemoteRateLimited, RemoteNotFound or RemoteUnavailable
    """
    message = stderr.strip() or "Unknown error"
    lowered = message.lower()

    if any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
        retry_after = None
        for pattern in _RETRY_AFTER_PATTERNS:
            match = pattern.search(message)
            if match:
                retry_after = int(match.group(1))
                break
        return RemoteRateLimited(f"Rate limited while {context}: {message}", retry_after)

    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return RemoteNotFound(f"Not found while {context}: {message}")

    return RemoteUnavailable(f"gh CLI command failed while {context}: {message}")


def parse_paginated_json(output: str) -> list[Any]:
    """
    Parse ``gh api --paginate`` output.

    gh writes one JSON array per page back to back (``[...][...]``);
    the pages are decoded in turn and flattened.
    """
    decoder = json.JSONDecoder()
    items: list[Any] = []
    index = 0
    text = output.strip()
    while index < len(text):
        page, index = decoder.raw_decode(text, index)
        if isinstance(page, list):
            items.extend(page)
        else:
            items.append(page)
        while index < len(text) and text[index].isspace():
            index += 1
    return items


@runtime_checkable
class RemoteClient(Protocol):
    """What the reconciliation engine needs from the remote."""

    def fetch_repository(self, owner: str, name: str) -> RemoteSnapshot:
        ...

    def list_repositories(self, owner: str, limit: int) -> list[RemoteRepo]:
        ...


class GitHubClient:
    """
    Client for GitHub data via the `gh` CLI.

    Requires `gh` to be installed and authenticated. The process runner
    is injectable so tests can supply canned output.

    Example:
        >>> client = GitHubClient(timeout=30)
        >>> snapshot = client.fetch_repository("octo", "widgets")
        >>> [b.name for b in snapshot.branches]
        ['main', 'feature']
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, runner: Runner | None = None) -> None:
        """
        Initialize GitHubClient.

        Args:
            timeout: Per-invocation timeout in seconds
            runner: Callable running gh (defaults to a subprocess call)
        """
        self.timeout = timeout
        self._runner = runner or run_gh

    @staticmethod
    def is_gh_available() -> bool:
        """Check if GitHub CLI is installed and authenticated."""
        try:
            result = subprocess.run(
                ["gh", "auth", "status"],
                capture_output=True,
                text=True,
                check=False,
                timeout=DEFAULT_TIMEOUT,
            )
            return result.returncode == 0
        except (OSError, subprocess.TimeoutExpired):
            return False

    def _run(self, args: Sequence[str], context: str, *, repo_known: bool = False) -> str:
        """
        Run gh and return stdout.

        With ``repo_known`` the repository itself was already fetched, so a
        404 on one of its sub-resources is a transient failure, not a
        missing repository.
        """
        logger.debug("gh %s", " ".join(args))
        try:
            result = self._runner(args, self.timeout)
        except subprocess.TimeoutExpired as e:
            raise RemoteTimeout(
                f"gh timed out after {self.timeout:g}s while {context}"
            ) from e
        except OSError as e:
            raise RemoteUnavailable(f"Failed to execute gh CLI: {e}") from e

        if result.returncode != 0:
            error = classify_gh_error(result.stderr or "", context)
            if repo_known and isinstance(error, RemoteNotFound):
                raise RemoteUnavailable(str(error)) from error
            raise error
        return result.stdout

    def _run_json(self, args: Sequence[str], context: str, *, repo_known: bool = False) -> Any:
        output = self._run(args, context, repo_known=repo_known)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise RemoteUnavailable(f"Failed to parse gh output while {context}: {e}") from e

    def list_repositories(self, owner: str, limit: int = 50) -> list[RemoteRepo]:
        """
        List repositories for a user or organization.

        Args:
            owner: GitHub user or organization
            limit: Maximum number of repositories to return

        Returns:
            Repositories sorted by last push, most recent first

        Raises:
            InvalidOwner: If the owner name is malformed
            RemoteError: If gh fails
        """
        validate_owner(owner)
        data = self._run_json(
            ["repo", "list", owner, "--limit", str(limit), "--json", REPO_LIST_FIELDS],
            f"listing repositories for {owner}",
        )
        try:
            repos = [RemoteRepo.from_gh_repo_list(item) for item in data]
        except (ValueError, TypeError, AttributeError) as e:
            raise RemoteUnavailable(f"Unexpected repository listing for {owner}: {e}") from e
        repos.sort(key=lambda r: r.pushed_at, reverse=True)
        return repos

    def fetch_repository(self, owner: str, name: str) -> RemoteSnapshot:
        """
        Fetch a complete snapshot of one repository.

        Branch ahead/behind counts are measured against the repository's
        default branch.

        Raises:
            RemoteNotFound: If the repository no longer exists
            RemoteRateLimited: If the API quota is exhausted
            RemoteUnavailable: On any other gh failure
        """
        ref = RepoRef(owner=owner, name=name)
        data = self._run_json(["api", f"repos/{ref.full_name}"], f"fetching {ref.full_name}")
        try:
            repo = RemoteRepo.from_gh_api(data)
        except (ValueError, TypeError, AttributeError) as e:
            raise RemoteUnavailable(f"Unexpected repository data for {ref.full_name}: {e}") from e

        branches = self._fetch_branches(ref, repo.default_branch)
        pull_requests = self._fetch_pull_requests(ref)
        return RemoteSnapshot(repo=repo, branches=branches, pull_requests=pull_requests)

    def _fetch_branches(self, ref: RepoRef, default_branch: str) -> list[RemoteBranch]:
        output = self._run(
            ["api", f"repos/{ref.full_name}/branches", "--paginate"],
            f"listing branches of {ref.full_name}",
            repo_known=True,
        )
        try:
            raw_branches = parse_paginated_json(output)
        except json.JSONDecodeError as e:
            raise RemoteUnavailable(f"Failed to parse branches of {ref.full_name}: {e}") from e

        branches: list[RemoteBranch] = []
        for raw in raw_branches:
            try:
                name = raw["name"]
                sha = raw["commit"]["sha"]
            except (KeyError, TypeError) as e:
                raise RemoteUnavailable(f"Unexpected branch data for {ref.full_name}: {e}") from e
            if name == default_branch:
                ahead, behind = 0, 0
            else:
                ahead, behind = self._compare(ref, default_branch, name)
            branches.append(
                RemoteBranch(
                    name=name,
                    head_sha=sha,
                    ahead_by=ahead,
                    behind_by=behind,
                    last_commit_date=self._commit_date(ref, sha),
                    commits=self._fetch_commits(ref, name),
                )
            )
        return branches

    def _commit_date(self, ref: RepoRef, sha: str) -> datetime:
        data = self._run_json(
            ["api", f"repos/{ref.full_name}/commits/{sha}"],
            f"fetching commit {sha[:7]} of {ref.full_name}",
            repo_known=True,
        )
        try:
            return parse_github_timestamp(data["commit"]["author"]["date"])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteUnavailable(f"Unexpected commit data for {sha}: {e}") from e

    def _fetch_commits(self, ref: RepoRef, branch: str) -> list[RemoteCommit]:
        """Most recent commits of a branch, newest first, at most COMMIT_LIMIT."""
        data = self._run_json(
            [
                "api",
                f"repos/{ref.full_name}/commits?sha={quote(branch, safe='')}&per_page={COMMIT_LIMIT}",
            ],
            f"listing commits of {branch} in {ref.full_name}",
            repo_known=True,
        )
        try:
            return [RemoteCommit.from_gh_api(item) for item in data[:COMMIT_LIMIT]]
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise RemoteUnavailable(
                f"Unexpected commit history for {branch} in {ref.full_name}: {e}"
            ) from e

    def _compare(self, ref: RepoRef, base: str, head: str) -> tuple[int, int]:
        try:
            data = self._run_json(
                ["api", f"repos/{ref.full_name}/compare/{base}...{head}"],
                f"comparing {head} to {base} in {ref.full_name}",
                repo_known=True,
            )
        except (RemoteRateLimited, RemoteTimeout):
            raise
        except RemoteError as e:
            # Unrelated histories and similar cases: report no divergence
            logger.warning("Comparison of %s failed, assuming 0/0: %s", head, e)
            return 0, 0
        try:
            return int(data.get("ahead_by", 0)), int(data.get("behind_by", 0))
        except (AttributeError, TypeError, ValueError) as e:
            raise RemoteUnavailable(
                f"Unexpected comparison of {head} to {base} in {ref.full_name}: {e}"
            ) from e

    def _fetch_pull_requests(self, ref: RepoRef) -> list[RemotePullRequest]:
        data = self._run_json(
            [
                "pr",
                "list",
                "-R",
                ref.full_name,
                "--state",
                "all",
                "--json",
                PR_LIST_FIELDS,
                "--limit",
                str(PR_LIST_LIMIT),
            ],
            f"listing pull requests of {ref.full_name}",
            repo_known=True,
        )
        try:
            return [RemotePullRequest.from_gh_pr_list(item) for item in data]
        except (ValueError, TypeError, AttributeError) as e:
            raise RemoteUnavailable(f"Unexpected pull request data for {ref.full_name}: {e}") from e

    def create_pull_request(
        self,
        repo_id: str,
        branch: str,
        title: str | None = None,
        body: str | None = None,
    ) -> str:
        """
        Create a pull request for a branch against the default branch.

        Args:
            repo_id: Repository in owner/name form
            branch: Head branch name
            title: PR title (defaults to the branch name with separators as spaces)
            body: PR body

        Returns:
            URL of the created PR, or of the existing PR if one is already open

        Raises:
            ValueError: If repo_id is malformed
            RemoteError: If PR creation fails
        """
        ref = RepoRef.parse(repo_id)
        pr_title = title or branch.replace("-", " ").replace("_", " ")
        pr_body = body or "Created via overall"
        args = [
            "pr",
            "create",
            "--repo",
            ref.full_name,
            "--head",
            branch,
            "--title",
            pr_title,
            "--body",
            pr_body,
        ]
        try:
            result = self._runner(args, self.timeout)
        except subprocess.TimeoutExpired as e:
            raise RemoteTimeout(f"gh timed out creating PR for {branch}") from e
        except OSError as e:
            raise RemoteUnavailable(f"Failed to execute gh CLI: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr or ""
            if "already exists" in stderr:
                lines = stderr.strip().splitlines()
                url = lines[-1].strip() if lines else ""
                if url.startswith("https://github.com"):
                    return url
            raise classify_gh_error(stderr, f"creating PR for branch {branch}")

        return result.stdout.strip()
