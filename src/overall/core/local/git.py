"""
Local git adapter for overall.

Reads working-tree counters from a local clone by running git
introspection commands. Paths that are not git working trees yield the
NOT_A_REPOSITORY sentinel rather than an error; a branch without an
upstream counts as zero unpushed and zero behind.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from pathlib import Path

from overall.core.errors import LocalScanFailed
from overall.core.github.models import RepoRef
from overall.core.local.models import NOT_A_REPOSITORY, LocalStatus, ScanSentinel

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

GitRunner = Callable[[Sequence[str], Path, float], subprocess.CompletedProcess[str]]


def run_git(args: Sequence[str], cwd: Path, timeout: float) -> subprocess.CompletedProcess[str]:
    """Run ``git`` in ``cwd`` and capture text output."""
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=False,
        timeout=timeout,
    )


def repo_id_from_path(local_path: Path) -> str | None:
    """
    Derive ``owner/name`` from the last two path components.

    Example:
        >>> repo_id_from_path(Path("/home/me/github/octo/widgets"))
        'octo/widgets'
    """
    parts = local_path.parts
    if len(parts) < 3:
        return None
    return f"{parts[-2]}/{parts[-1]}"


def discover_repositories(root: Path) -> list[Path]:
    """
    List immediate children of ``root`` that contain a ``.git`` entry.

    Raises:
        LocalScanFailed: If the root does not exist or cannot be read
    """
    if not root.exists():
        raise LocalScanFailed(f"Path does not exist: {root}", path=str(root))
    try:
        children = sorted(root.iterdir())
    except OSError as e:
        raise LocalScanFailed(f"Failed to read directory {root}: {e}", path=str(root)) from e
    return [child for child in children if child.is_dir() and (child / ".git").exists()]


class LocalGitScanner:
    """
    Computes LocalStatus for working copies.

    Example:
        >>> scanner = LocalGitScanner(timeout=5)
        >>> status = scanner.scan_local_path(Path("~/github/octo/widgets").expanduser())
        >>> status.uncommitted_files
        0
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, runner: GitRunner | None = None) -> None:
        self.timeout = timeout
        self._runner = runner or run_git

    def _git(self, path: Path, *args: str) -> subprocess.CompletedProcess[str]:
        try:
            return self._runner(args, path, self.timeout)
        except subprocess.TimeoutExpired as e:
            raise LocalScanFailed(
                f"git {args[0]} timed out after {self.timeout:g}s in {path}", path=str(path)
            ) from e
        except OSError as e:
            raise LocalScanFailed(f"Failed to run git in {path}: {e}", path=str(path)) from e

    def scan_local_path(self, path: Path | str) -> LocalStatus | ScanSentinel:
        """
        Scan one local path.

        Args:
            path: Directory expected to hold a git working tree

        Returns:
            LocalStatus, or NOT_A_REPOSITORY if the path is not a working tree

        Raises:
            LocalScanFailed: If the path is missing, unreadable or git times out
        """
        path = Path(path).expanduser()
        if not path.is_dir():
            raise LocalScanFailed(f"Path does not exist: {path}", path=str(path))

        inside = self._git(path, "rev-parse", "--is-inside-work-tree")
        if inside.returncode != 0 or inside.stdout.strip() != "true":
            return NOT_A_REPOSITORY

        repo_id = self.resolve_repo_id(path)
        if repo_id is None:
            raise LocalScanFailed(f"Failed to determine repository id for {path}", path=str(path))

        current_branch = self.current_branch(path)
        uncommitted = self.count_uncommitted_files(path)
        if current_branch:
            unpushed, behind = self.ahead_behind_upstream(path, current_branch)
        else:
            unpushed, behind = 0, 0

        return LocalStatus(
            repo_id=repo_id,
            local_path=str(path.resolve()),
            current_branch=current_branch,
            uncommitted_files=uncommitted,
            unpushed_commits=unpushed,
            behind_commits=behind,
            last_checked=datetime.now(timezone.utc),
        )

    def resolve_repo_id(self, path: Path) -> str | None:
        """Repository id from the origin remote, falling back to the path layout."""
        result = self._git(path, "remote", "get-url", "origin")
        if result.returncode == 0:
            ref = RepoRef.from_remote_url(result.stdout.strip())
            if ref is not None:
                return ref.full_name
        return repo_id_from_path(path.resolve())

    def current_branch(self, path: Path) -> str | None:
        result = self._git(path, "rev-parse", "--abbrev-ref", "HEAD")
        if result.returncode != 0:
            return None
        branch = result.stdout.strip()
        # Detached HEAD has no upstream to compare against
        return None if branch in ("", "HEAD") else branch

    def count_uncommitted_files(self, path: Path) -> int:
        result = self._git(path, "status", "--porcelain")
        if result.returncode != 0:
            return 0
        return sum(1 for line in result.stdout.splitlines() if line.strip())

    def ahead_behind_upstream(self, path: Path, branch: str) -> tuple[int, int]:
        """
        Count commits ahead of and behind the branch's upstream.

        Returns:
            (unpushed, behind); (0, 0) when no upstream is configured
        """
        upstream = self._git(path, "rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}")
        if upstream.returncode != 0:
            logger.debug("No upstream for %s in %s", branch, path)
            return 0, 0

        counts = self._git(
            path,
            "rev-list",
            "--left-right",
            "--count",
            f"{branch}...{upstream.stdout.strip()}",
        )
        if counts.returncode != 0:
            return 0, 0

        parts = counts.stdout.split()
        if len(parts) != 2:
            return 0, 0
        try:
            return int(parts[0]), int(parts[1])
        except ValueError:
            return 0, 0
