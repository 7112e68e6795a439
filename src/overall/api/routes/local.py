"""
Local working-copy routes.

- POST /api/local/scan - scan every enabled local root
- GET /api/local/status - cached status of every known clone
"""

from typing import Any

from fastapi import APIRouter, Depends

from overall.api.deps import get_services
from overall.core.facade.projection import local_status_to_dict
from overall.core.services import Services

router = APIRouter()


@router.post("/local/scan")
def scan_local(services: Services = Depends(get_services)) -> dict[str, Any]:
    report = services.engine.scan_local_roots()
    services.facade.refresh_export()
    return {
        "scanned": len(report.statuses),
        "skipped": report.skipped,
        "errors": report.errors,
        "repos": [
            {"repoId": status.repo_id, **local_status_to_dict(status)} for status in report.statuses
        ],
    }


@router.get("/local/status")
def local_status(services: Services = Depends(get_services)) -> dict[str, Any]:
    return {
        "repos": [
            {"repoId": status.repo_id, **local_status_to_dict(status)}
            for status in services.store.list_local_statuses()
        ]
    }
