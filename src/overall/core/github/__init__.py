"""
GitHub integration for overall.

Provides the gh CLI wrapper (remote fetch adapter) and the normalized
remote records it produces.
"""

from overall.core.github.client import GitHubClient, RemoteClient
from overall.core.github.models import (
    PRState,
    RemoteBranch,
    RemotePullRequest,
    RemoteRepo,
    RemoteSnapshot,
    RepoRef,
)

__all__ = [
    "GitHubClient",
    "PRState",
    "RemoteBranch",
    "RemoteClient",
    "RemotePullRequest",
    "RemoteRepo",
    "RemoteSnapshot",
    "RepoRef",
]
