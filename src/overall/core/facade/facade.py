"""
Query facade over the cache store.

Every query is one read transaction in the store, so callers never see
a half-written sync generation. Group priorities are derived on each
call and never stored.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from overall.core.errors import PersistenceFailed
from overall.core.facade.projection import build_export, build_groups_payload
from overall.core.store.store import CacheStore

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "repos.json"


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write JSON to a temp file beside ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class QueryFacade:
    """
    Read-only view of the cache for the API, CLI and repos.json.

    Args:
        store: Cache store
        export_path: Where ``refresh_export`` writes repos.json, if anywhere
    """

    def __init__(self, store: CacheStore, export_path: Path | str | None = None) -> None:
        self.store = store
        self.export_path = Path(export_path).expanduser() if export_path else None

    def groups(self) -> dict[str, Any]:
        """Groups with members, branches, PRs, local status and priorities."""
        return build_groups_payload(self.store.list_groups_with_repos())

    def export(self) -> dict[str, Any]:
        """The repos.json document."""
        return build_export(self.store.list_groups_with_repos())

    def write_export(self, path: Path | str) -> Path:
        """
        Write repos.json. A directory path gets ``repos.json`` appended.

        Raises:
            PersistenceFailed: If the file cannot be written
        """
        target = Path(path).expanduser()
        if target.is_dir():
            target = target / EXPORT_FILENAME
        try:
            write_json_atomic(target, self.export())
        except OSError as e:
            raise PersistenceFailed(f"Failed to write {target}: {e}") from e
        logger.info("Exported repositories to %s", target)
        return target

    def refresh_export(self) -> Path | None:
        """Rewrite the configured export after a mutation. No-op without an export path."""
        if self.export_path is None:
            return None
        return self.write_export(self.export_path)
