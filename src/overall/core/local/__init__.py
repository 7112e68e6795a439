"""Local working-copy scanning."""

from overall.core.local.git import LocalGitScanner, discover_repositories, repo_id_from_path
from overall.core.local.models import (
    NOT_A_REPOSITORY,
    LocalRoot,
    LocalScanReport,
    LocalStatus,
    ScanSentinel,
)

__all__ = [
    "NOT_A_REPOSITORY",
    "LocalGitScanner",
    "LocalRoot",
    "LocalScanReport",
    "LocalStatus",
    "ScanSentinel",
    "discover_repositories",
    "repo_id_from_path",
]
