"""
Error taxonomy for overall.

Adapter errors (remote and local) never crash a batch sync; the engine
collects them per repository. Persistence errors abort a single
repository's write and leave the previous generation in place.
"""

from __future__ import annotations


class OverallError(Exception):
    """Base class for all overall errors."""

    pass


class RemoteError(OverallError):
    """Error from the remote hosting CLI."""

    retryable: bool = False


class RemoteUnavailable(RemoteError):
    """The gh CLI could not be run, failed, timed out or returned garbage."""

    retryable = True


class RemoteTimeout(RemoteUnavailable):
    """A gh invocation exceeded its timeout."""

    pass


class RemoteRateLimited(RemoteError):
    """The remote service reported quota exhaustion."""

    retryable = True

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RemoteNotFound(RemoteError):
    """The repository no longer exists (or is not visible) on the remote."""

    pass


class InvalidOwner(OverallError, ValueError):
    """Owner name is not a valid GitHub user or organization name."""

    pass


class LocalScanFailed(OverallError):
    """A local path could not be scanned (missing, permission, timeout)."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class PersistenceFailed(OverallError):
    """A cache transaction was aborted. The previous generation is retained."""

    pass


class NotFound(OverallError, LookupError):
    """A cached repository or group does not exist."""

    pass


class Conflict(OverallError, ValueError):
    """A write would violate a uniqueness rule (e.g. duplicate group name)."""

    pass


class ConfigError(OverallError):
    """Invalid configuration."""

    pass
