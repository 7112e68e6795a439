"""
Service wiring shared by the API and the CLI.

Builds the store, adapters and engine once from an OverallConfig.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from overall.core.config.models import OverallConfig
from overall.core.facade.facade import QueryFacade
from overall.core.github.client import GitHubClient
from overall.core.local.git import LocalGitScanner
from overall.core.pr.service import PRService
from overall.core.reconcile.engine import ReconciliationEngine
from overall.core.store.store import CacheStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """The collaborators a request handler or CLI command may need."""

    config: OverallConfig
    store: CacheStore
    github: GitHubClient
    engine: ReconciliationEngine
    facade: QueryFacade
    prs: PRService


def build_services(config: OverallConfig) -> Services:
    """
    Build services from configuration.

    Tracked owners are seeded from ``github.owners`` when the database
    has none yet.
    """
    store = CacheStore(config.database.resolved_path)
    if config.github.owners:
        seeded = store.seed_owners(config.github.owners)
        if seeded:
            logger.info("Seeded %d tracked owners from config", seeded)

    github = GitHubClient(timeout=config.sync.remote_timeout)
    engine = ReconciliationEngine(
        store,
        github,
        LocalGitScanner(timeout=config.sync.local_timeout),
        concurrency=config.sync.concurrency,
        max_retries=config.sync.max_retries,
        retry_backoff=config.sync.retry_backoff,
    )
    return Services(
        config=config,
        store=store,
        github=github,
        engine=engine,
        facade=QueryFacade(store, config.server.export_path),
        prs=PRService(store, github),
    )
