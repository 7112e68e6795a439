"""SQLite cache of repositories, branches, pull requests, groups and local state."""

from overall.core.store.connection import get_connection, init_db, transaction
from overall.core.store.models import (
    Branch,
    Group,
    GroupsSnapshot,
    GroupView,
    PullRequest,
    Repository,
    RepositoryView,
)
from overall.core.store.store import (
    CacheStore,
    replace_branches,
    replace_pull_requests,
    upsert_repository,
)

__all__ = [
    "Branch",
    "CacheStore",
    "Group",
    "GroupView",
    "GroupsSnapshot",
    "PullRequest",
    "Repository",
    "RepositoryView",
    "get_connection",
    "init_db",
    "replace_branches",
    "replace_pull_requests",
    "transaction",
    "upsert_repository",
]
