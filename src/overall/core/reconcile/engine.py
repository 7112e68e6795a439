"""
Reconciliation engine.

Drives each repository through Fetching -> Classifying -> Persisting and
records the path on a SyncOutcome. The engine owns retry policy; the
adapters never retry. Batches run on a bounded thread pool and one
repository's failure never affects another's.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from overall.core.errors import (
    LocalScanFailed,
    OverallError,
    PersistenceFailed,
    RemoteError,
    RemoteNotFound,
    RemoteRateLimited,
    RemoteTimeout,
    RemoteUnavailable,
)
from overall.core.github.client import RemoteClient
from overall.core.github.models import RemoteSnapshot, RepoRef, validate_owner
from overall.core.local.git import discover_repositories
from overall.core.local.models import LocalScanReport, LocalStatus, ScanSentinel
from overall.core.priority.classifier import classify_branches, compute_priority
from overall.core.priority.models import Priority
from overall.core.reconcile.models import BatchResult, SyncOutcome, SyncState
from overall.core.store.models import Branch, PullRequest, Repository
from overall.core.store.store import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_BACKOFF = 0.5


class LocalScanner(Protocol):
    """The part of the local git adapter the engine uses."""

    def scan_local_path(self, path: Path | str) -> LocalStatus | ScanSentinel: ...


class ReconciliationEngine:
    """
    Reconciles remote and local state into the cache.

    Args:
        store: Cache store
        remote: Remote fetch adapter
        scanner: Local git adapter (only needed for local scans)
        concurrency: Worker threads for batch syncs
        max_retries: Extra fetch attempts after a RemoteUnavailable
        retry_backoff: Base backoff in seconds, doubled per attempt
        sleep: Sleep function, injectable for tests

    Example:
        >>> engine = ReconciliationEngine(CacheStore(db_path), GitHubClient())
        >>> outcome = engine.sync_repository("octo/widgets")
        >>> outcome.state
        <SyncState.DONE: 'Done'>
    """

    def __init__(
        self,
        store: CacheStore,
        remote: RemoteClient,
        scanner: LocalScanner | None = None,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.store = store
        self.remote = remote
        self.scanner = scanner
        self.concurrency = concurrency
        self.max_retries = max(0, max_retries)
        self.retry_backoff = retry_backoff
        self._sleep = sleep

    # -- single repository -------------------------------------------------

    def sync_repository(self, repo_id: str) -> SyncOutcome:
        """
        Sync one repository from the remote into the cache.

        Never raises for adapter or persistence errors; they are recorded
        on the returned outcome.

        Raises:
            ValueError: If repo_id is not in owner/name form
        """
        ref = RepoRef.parse(repo_id)
        outcome = SyncOutcome(repo_id=ref.full_name)

        outcome.advance(SyncState.FETCHING)
        try:
            snapshot = self._fetch(ref, outcome)
        except RemoteRateLimited as e:
            outcome.deferred = True
            outcome.retry_after = e.retry_after
            logger.warning("Rate limited syncing %s (retry after %s)", repo_id, e.retry_after)
            return outcome.fail(e)
        except RemoteNotFound as e:
            logger.warning("Repository %s not found on remote, marking missing", repo_id)
            try:
                self.store.mark_missing(ref.full_name)
            except PersistenceFailed as pe:
                logger.error("Could not mark %s missing: %s", repo_id, pe)
            return outcome.fail(e)
        except RemoteError as e:
            logger.warning("Failed to fetch %s: %s", repo_id, e)
            return outcome.fail(e)

        outcome.advance(SyncState.CLASSIFYING)
        try:
            repository, branches, pull_requests = self._classify(snapshot)
        except PersistenceFailed as e:
            return outcome.fail(e)

        outcome.advance(SyncState.PERSISTING)
        try:
            self.store.persist_generation(repository, branches, pull_requests)
        except PersistenceFailed as e:
            logger.error("Failed to persist %s: %s", repo_id, e)
            return outcome.fail(e)

        outcome.branch_count = len(branches)
        outcome.pr_count = len(pull_requests)
        outcome.priority = repository.priority
        outcome.advance(SyncState.DONE)
        logger.info(
            "Synced %s: %d branches, %d PRs, priority %s",
            repository.id,
            len(branches),
            len(pull_requests),
            repository.priority.label,
        )
        return outcome

    def _fetch(self, ref: RepoRef, outcome: SyncOutcome) -> RemoteSnapshot:
        """Fetch a snapshot, retrying transient unavailability with backoff."""
        attempt = 0
        while True:
            attempt += 1
            outcome.attempts = attempt
            try:
                return self.remote.fetch_repository(ref.owner, ref.name)
            except RemoteTimeout:
                raise
            except RemoteUnavailable as e:
                if attempt > self.max_retries:
                    raise
                delay = self.retry_backoff * (2 ** (attempt - 1))
                logger.debug(
                    "Remote unavailable for %s (attempt %d): %s; retrying in %.1fs",
                    ref.full_name,
                    attempt,
                    e,
                    delay,
                )
                self._sleep(delay)

    def _classify(
        self, snapshot: RemoteSnapshot
    ) -> tuple[Repository, list[Branch], list[PullRequest]]:
        """Turn a snapshot into the records of one cache generation."""
        repo_id = snapshot.repo.id
        statuses = classify_branches(
            snapshot.branches, snapshot.pull_requests, snapshot.default_branch
        )
        branches = [
            Branch.from_remote(repo_id, branch, statuses[branch.name])
            for branch in snapshot.branches
        ]
        pull_requests = [PullRequest.from_remote(repo_id, pr) for pr in snapshot.pull_requests]
        local_status = self.store.get_local_status(repo_id)
        priority = compute_priority(branches, local_status, snapshot.default_branch)
        repository = Repository.from_remote(
            snapshot.repo, priority, synced_at=datetime.now(timezone.utc)
        )
        return repository, branches, pull_requests

    # -- batches -----------------------------------------------------------

    def sync_many(
        self,
        repo_ids: Iterable[str],
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """
        Sync repositories concurrently on a bounded pool.

        New syncs are only scheduled while ``cancel`` is unset; syncs
        already running finish normally. Ids never started are reported
        in ``BatchResult.skipped``.
        """
        pending = deque(dict.fromkeys(repo_ids))
        result = BatchResult()
        if not pending:
            return result

        workers = min(self.concurrency, len(pending))
        logger.info("Syncing %d repositories with %d workers", len(pending), workers)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            running: dict[Future[SyncOutcome], str] = {}

            def schedule() -> None:
                while pending and len(running) < workers:
                    if cancel is not None and cancel.is_set():
                        return
                    repo_id = pending.popleft()
                    running[executor.submit(self.sync_repository, repo_id)] = repo_id

            schedule()
            while running:
                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    repo_id = running.pop(future)
                    try:
                        outcome = future.result()
                    except Exception as e:
                        logger.exception("Unexpected error syncing %s", repo_id)
                        outcome = SyncOutcome(repo_id=repo_id).fail(e)
                    result.outcomes.append(outcome)
                schedule()

        result.skipped = list(pending)
        if result.skipped:
            logger.info("Sync cancelled; %d repositories skipped", len(result.skipped))
        return result

    def sync_group(self, group_id: int, cancel: threading.Event | None = None) -> BatchResult:
        """Sync every member of a group."""
        return self.sync_many(self.store.list_repository_ids(group_id), cancel)

    def sync_owner(
        self,
        owner: str,
        limit: int = 50,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """
        List an owner's repositories on the remote, then sync each one.

        Raises:
            InvalidOwner: If the owner name is invalid
            RemoteError: If the repository list could not be fetched
        """
        validate_owner(owner)
        repos = self.remote.list_repositories(owner, limit)
        return self.sync_many([repo.id for repo in repos], cancel)

    def sync_tracked_owners(
        self,
        limit: int = 50,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """Sync every tracked owner. A failed listing is recorded, not raised."""
        repo_ids: list[str] = []
        listing_errors: dict[str, Exception] = {}
        for owner in self.store.list_owners():
            try:
                repo_ids.extend(repo.id for repo in self.remote.list_repositories(owner, limit))
            except RemoteError as e:
                logger.warning("Failed to list repositories for %s: %s", owner, e)
                listing_errors[owner] = e
        result = self.sync_many(repo_ids, cancel)
        result.listing_errors.update(listing_errors)
        return result

    # -- local -------------------------------------------------------------

    def scan_local_roots(self) -> LocalScanReport:
        """
        Scan every enabled local root and cache the status of each clone.

        Per-path failures are collected on the report. Priorities of
        cached repositories are recomputed against the fresh local state.
        """
        if self.scanner is None:
            raise ValueError("No local scanner configured")

        report = LocalScanReport()
        for root in self.store.list_roots(enabled_only=True):
            try:
                paths = discover_repositories(Path(root.path))
            except LocalScanFailed as e:
                logger.warning("Skipping local root %s: %s", root.path, e)
                report.errors[root.path] = str(e)
                continue

            for path in paths:
                try:
                    status = self.scanner.scan_local_path(path)
                except LocalScanFailed as e:
                    logger.warning("Failed to scan %s: %s", path, e)
                    report.errors[str(path)] = str(e)
                    continue
                if isinstance(status, ScanSentinel):
                    report.skipped.append(str(path))
                    continue
                try:
                    self.store.upsert_local_status(status)
                    self.recompute_priority(status.repo_id)
                except OverallError as e:
                    report.errors[str(path)] = str(e)
                    continue
                report.statuses.append(status)

        logger.info(
            "Local scan: %d repositories, %d skipped, %d errors",
            len(report.statuses),
            len(report.skipped),
            len(report.errors),
        )
        return report

    def recompute_priority(self, repo_id: str) -> Priority | None:
        """
        Recompute a cached repository's priority from cached branches and local status.

        Returns:
            The new priority, or None if the repository is not cached
        """
        repository = self.store.get_repository(repo_id)
        if repository is None:
            return None
        priority = compute_priority(
            self.store.list_branches(repo_id),
            self.store.get_local_status(repo_id),
            repository.default_branch,
        )
        if priority != repository.priority:
            self.store.set_priority(repo_id, priority)
            logger.debug(
                "Priority of %s changed: %s -> %s",
                repo_id,
                repository.priority.label,
                priority.label,
            )
        return priority
