"""
Pull request routes.

- POST /api/pr/create - open a PR for one branch
- POST /api/pr/create-all - open PRs for every branch with unmerged work
"""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import Field

from overall.api.deps import get_services
from overall.api.models import CamelModel
from overall.core.services import Services

router = APIRouter()


class CreatePRRequest(CamelModel):
    repo_id: str
    branch_name: str = Field(..., min_length=1)
    title: str | None = None
    body: str | None = None


class CreateAllPRsRequest(CamelModel):
    repo_id: str


@router.post("/pr/create")
def create_pr(request: CreatePRRequest, services: Services = Depends(get_services)) -> dict[str, Any]:
    url = services.prs.create(request.repo_id, request.branch_name, request.title, request.body)
    return {"success": True, "prUrl": url}


@router.post("/pr/create-all")
def create_all_prs(
    request: CreateAllPRsRequest, services: Services = Depends(get_services)
) -> dict[str, Any]:
    results = services.prs.create_for_unmerged(request.repo_id)
    created = sum(1 for r in results if r.success)
    return {
        "success": True,
        "results": [asdict(r) for r in results],
        "message": f"Created {created} of {len(results)} PRs",
    }
