"""
Pytest configuration and shared fixtures.

Provides a temporary cache store, a fake remote client with canned
snapshots, a fake local scanner, and builders for remote records. No
fixture here spawns a process.
"""

import subprocess
import threading
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from overall.core.config.models import DatabaseConfig, OverallConfig, SyncConfig
from overall.core.errors import LocalScanFailed, RemoteNotFound
from overall.core.facade.facade import QueryFacade
from overall.core.github.models import (
    PRState,
    RemoteBranch,
    RemoteCommit,
    RemotePullRequest,
    RemoteRepo,
    RemoteSnapshot,
)
from overall.core.local.models import LocalStatus, ScanSentinel
from overall.core.pr.service import PRService
from overall.core.reconcile.engine import ReconciliationEngine
from overall.core.services import Services
from overall.core.store.store import CacheStore

BASE_TIME = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


# ==============================================================================
# Record builders
# ==============================================================================


def build_repo(repo_id: str, default_branch: str = "main", pushed_hours_ago: int = 0) -> RemoteRepo:
    owner, name = repo_id.split("/")
    return RemoteRepo(
        owner=owner,
        name=name,
        language="Python",
        description=f"{name} repository",
        pushed_at=BASE_TIME - timedelta(hours=pushed_hours_ago),
        created_at=BASE_TIME - timedelta(days=365),
        updated_at=BASE_TIME,
        default_branch=default_branch,
    )


def build_commits(repo_id: str, branch: str, count: int) -> list[RemoteCommit]:
    """Commits of a branch, newest first, one hour apart."""
    return [
        RemoteCommit(
            sha=f"{abs(hash((repo_id, branch, n))):040x}"[:40],
            message=f"{branch} change {count - n}",
            author_name="Octo Cat",
            author_email="octo@example.com",
            authored_date=BASE_TIME - timedelta(hours=n),
            committer_name="Octo Cat",
            committer_email="octo@example.com",
            committed_date=BASE_TIME - timedelta(hours=n),
        )
        for n in range(count)
    ]


def build_snapshot(
    repo_id: str,
    branches: Sequence[tuple[str, int, int]] = (("main", 0, 0),),
    prs: Sequence[tuple[int, PRState, str | None]] = (),
    default_branch: str = "main",
    pushed_hours_ago: int = 0,
    commits: Mapping[str, int] | None = None,
) -> RemoteSnapshot:
    """
    Build a snapshot from compact tuples.

    branches: (name, ahead_by, behind_by)
    prs: (number, state, head_ref)
    commits: branch name to number of commits in its history
    """
    commits = commits or {}
    return RemoteSnapshot(
        repo=build_repo(repo_id, default_branch, pushed_hours_ago),
        branches=[
            RemoteBranch(
                name=name,
                head_sha=f"{abs(hash((repo_id, name))):040x}"[:40],
                ahead_by=ahead,
                behind_by=behind,
                last_commit_date=BASE_TIME - timedelta(days=i),
                commits=build_commits(repo_id, name, commits.get(name, 0)),
            )
            for i, (name, ahead, behind) in enumerate(branches)
        ],
        pull_requests=[
            RemotePullRequest(
                number=number,
                state=state,
                title=f"PR #{number}",
                head_ref=head,
                created_at=BASE_TIME - timedelta(days=2),
                updated_at=BASE_TIME - timedelta(days=1),
            )
            for number, state, head in prs
        ],
    )


def build_local_status(repo_id: str, path: str, **counters: int) -> LocalStatus:
    return LocalStatus(
        repo_id=repo_id,
        local_path=path,
        current_branch="main",
        uncommitted_files=counters.get("uncommitted", 0),
        unpushed_commits=counters.get("unpushed", 0),
        behind_commits=counters.get("behind", 0),
        last_checked=BASE_TIME,
    )


@pytest.fixture
def make_snapshot():
    """Builder for RemoteSnapshot records."""
    return build_snapshot


@pytest.fixture
def make_repo():
    """Builder for RemoteRepo records."""
    return build_repo


@pytest.fixture
def make_local_status():
    """Builder for LocalStatus records."""
    return build_local_status


# ==============================================================================
# Fakes
# ==============================================================================


class FakeRemote:
    """
    In-memory remote client.

    Each repository has a queue of responses (snapshots or exceptions).
    Responses are consumed in order; the last one repeats.
    """

    def __init__(self) -> None:
        self.responses: dict[str, list[RemoteSnapshot | Exception]] = {}
        self.listings: dict[str, list[RemoteRepo] | Exception] = {}
        self.fetch_calls: list[str] = []
        self.created_prs: list[tuple[str, str]] = []
        self.pr_errors: dict[str, Exception] = {}
        self.on_fetch = None
        self._lock = threading.Lock()

    def set(self, repo_id: str, *responses: RemoteSnapshot | Exception) -> None:
        self.responses[repo_id] = list(responses)

    def fetch_repository(self, owner: str, name: str) -> RemoteSnapshot:
        repo_id = f"{owner}/{name}"
        with self._lock:
            self.fetch_calls.append(repo_id)
            queue = self.responses.get(repo_id)
            if not queue:
                response: RemoteSnapshot | Exception = RemoteNotFound(f"Not Found: {repo_id}")
            elif len(queue) > 1:
                response = queue.pop(0)
            else:
                response = queue[0]
        if self.on_fetch is not None:
            self.on_fetch(repo_id)
        if isinstance(response, Exception):
            raise response
        return response

    def list_repositories(self, owner: str, limit: int = 50) -> list[RemoteRepo]:
        listing = self.listings.get(owner, [])
        if isinstance(listing, Exception):
            raise listing
        return listing[:limit]

    def create_pull_request(
        self, repo_id: str, branch: str, title: str | None = None, body: str | None = None
    ) -> str:
        if branch in self.pr_errors:
            raise self.pr_errors[branch]
        self.created_prs.append((repo_id, branch))
        return f"https://github.com/{repo_id}/pull/{len(self.created_prs)}"


class FakeScanner:
    """Local scanner returning canned results per path."""

    def __init__(self) -> None:
        self.results: dict[str, LocalStatus | ScanSentinel | Exception] = {}

    def scan_local_path(self, path: Path | str) -> LocalStatus | ScanSentinel:
        result = self.results.get(str(path))
        if result is None:
            raise LocalScanFailed(f"Path does not exist: {path}", path=str(path))
        if isinstance(result, Exception):
            raise result
        return result


def completed(
    args: Sequence[str], stdout: str = "", stderr: str = "", returncode: int = 0
) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(list(args), returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def make_completed():
    """Builder for subprocess.CompletedProcess results."""
    return completed


# ==============================================================================
# Store, engine and services
# ==============================================================================


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "overall.db"


@pytest.fixture
def store(db_path):
    """A fresh cache store in a temporary directory."""
    return CacheStore(db_path)


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def scanner():
    return FakeScanner()


@pytest.fixture
def sleeps():
    """Records backoff sleeps instead of sleeping."""
    return []


@pytest.fixture
def engine(store, remote, scanner, sleeps):
    return ReconciliationEngine(
        store,
        remote,
        scanner,
        concurrency=3,
        max_retries=2,
        retry_backoff=0.5,
        sleep=sleeps.append,
    )


@pytest.fixture
def services(db_path, store, remote, engine, tmp_path):
    """Services wired to the fakes, for API and CLI tests."""
    config = OverallConfig(
        database=DatabaseConfig(path=str(db_path)),
        sync=SyncConfig(concurrency=2),
    )
    return Services(
        config=config,
        store=store,
        github=remote,  # type: ignore[arg-type]
        engine=engine,
        facade=QueryFacade(store),
        prs=PRService(store, remote),
    )
