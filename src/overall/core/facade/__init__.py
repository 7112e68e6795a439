"""Read-only queries and the repos.json export."""

from overall.core.facade.facade import EXPORT_FILENAME, QueryFacade, write_json_atomic
from overall.core.facade.projection import (
    build_export,
    build_groups_payload,
    repository_to_api,
    repository_to_export,
)

__all__ = [
    "EXPORT_FILENAME",
    "QueryFacade",
    "build_export",
    "build_groups_payload",
    "repository_to_api",
    "repository_to_export",
    "write_json_atomic",
]
