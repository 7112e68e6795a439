"""
Sync routes.

- POST /api/repos/{owner}/{name}/sync - sync one repository
- POST /api/groups/{id}/sync - sync every member of a group
- POST /api/sync - sync every repository of every tracked owner
"""

from typing import Any

from fastapi import APIRouter, Depends

from overall.api.deps import get_services
from overall.core.reconcile.models import BatchResult, SyncOutcome
from overall.core.services import Services

router = APIRouter()


def outcome_to_dict(outcome: SyncOutcome) -> dict[str, Any]:
    return {
        "repoId": outcome.repo_id,
        "state": outcome.state.value,
        "transitions": [state.value for state in outcome.transitions],
        "attempts": outcome.attempts,
        "branchCount": outcome.branch_count,
        "prCount": outcome.pr_count,
        "priority": outcome.priority.label if outcome.priority is not None else None,
        "deferred": outcome.deferred,
        "retryAfter": outcome.retry_after,
        "error": str(outcome.error) if outcome.error else None,
    }


def batch_to_dict(result: BatchResult) -> dict[str, Any]:
    return {
        "succeeded": len(result.succeeded),
        "failed": len(result.failed),
        "deferred": len(result.deferred),
        "skipped": result.skipped,
        "listingErrors": {owner: str(e) for owner, e in result.listing_errors.items()},
        "outcomes": [outcome_to_dict(o) for o in result.outcomes],
    }


@router.post("/repos/{owner}/{name}/sync")
def sync_repository(
    owner: str, name: str, services: Services = Depends(get_services)
) -> dict[str, Any]:
    """
    Sync one repository.

    A failed sync raises its original error, so the status code reflects
    the cause (404 not found, 429 rate limited, 502 unavailable, 500 cache).
    """
    outcome = services.engine.sync_repository(f"{owner}/{name}")
    if outcome.error is not None:
        raise outcome.error
    services.facade.refresh_export()
    return outcome_to_dict(outcome)


@router.post("/groups/{group_id}/sync")
def sync_group(group_id: int, services: Services = Depends(get_services)) -> dict[str, Any]:
    result = services.engine.sync_group(group_id)
    services.facade.refresh_export()
    return batch_to_dict(result)


@router.post("/sync")
def sync_all(services: Services = Depends(get_services)) -> dict[str, Any]:
    result = services.engine.sync_tracked_owners(limit=services.config.github.repo_limit)
    services.facade.refresh_export()
    return batch_to_dict(result)
