"""
Group routes.

- GET /api/groups - groups with members and priorities, in one consistent read
- POST /api/groups - create a group, optionally moving repositories into it
- POST /api/groups/{id}/rename - rename a group
- DELETE /api/groups/{id} - delete a group; its repositories become ungrouped
- POST /api/repos/move - move a repository to a group (or out of all groups)
- POST /api/export - write repos.json to the configured export path
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import Field

from overall.api.deps import get_services
from overall.api.models import CamelModel
from overall.core.services import Services
from overall.core.store.models import Group

router = APIRouter()


class CreateGroupRequest(CamelModel):
    name: str = Field(..., min_length=1)
    repo_ids: list[str] = Field(default_factory=list)


class RenameGroupRequest(CamelModel):
    name: str = Field(..., min_length=1)


class MoveRepoRequest(CamelModel):
    repo_id: str
    group_id: int | None = None


def _group_dict(group: Group) -> dict[str, Any]:
    return group.model_dump(mode="json")


@router.get("/groups")
def list_groups(services: Services = Depends(get_services)) -> dict[str, Any]:
    """Every group with member repositories, branches, PRs, local status and priorities."""
    return services.facade.groups()


@router.post("/groups", status_code=status.HTTP_201_CREATED)
def create_group(
    request: CreateGroupRequest, services: Services = Depends(get_services)
) -> dict[str, Any]:
    group = services.store.create_group(request.name, repo_ids=request.repo_ids)
    services.facade.refresh_export()
    return _group_dict(group)


@router.post("/groups/{group_id}/rename")
def rename_group(
    group_id: int, request: RenameGroupRequest, services: Services = Depends(get_services)
) -> dict[str, Any]:
    group = services.store.rename_group(group_id, request.name)
    services.facade.refresh_export()
    return _group_dict(group)


@router.delete("/groups/{group_id}")
def delete_group(group_id: int, services: Services = Depends(get_services)) -> dict[str, bool]:
    services.store.delete_group(group_id)
    services.facade.refresh_export()
    return {"success": True}


@router.post("/repos/move")
def move_repo(request: MoveRepoRequest, services: Services = Depends(get_services)) -> dict[str, Any]:
    services.store.move_repository(request.repo_id, request.group_id)
    services.facade.refresh_export()
    return {"success": True, "repoId": request.repo_id, "groupId": request.group_id}


@router.post("/export")
def export_repos(services: Services = Depends(get_services)) -> dict[str, Any]:
    """
    Write repos.json to the configured export path.

    The target is never taken from the request. Without a configured
    path the document is returned inline.
    """
    if services.facade.export_path is None:
        return {"success": True, "path": None, "data": services.facade.export()}
    written = services.facade.write_export(services.facade.export_path)
    return {"success": True, "path": str(written)}
