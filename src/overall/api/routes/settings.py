"""
Persisted configuration routes: tracked owners and local roots.

- GET/POST/DELETE /api/config/owners
- GET/POST/DELETE/PATCH /api/config/roots
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from overall.api.deps import get_services
from overall.core.services import Services

router = APIRouter()


class OwnerRequest(BaseModel):
    owner: str = Field(..., min_length=1)


class RootRequest(BaseModel):
    path: str = Field(..., min_length=1)


class RootToggleRequest(BaseModel):
    path: str = Field(..., min_length=1)
    enabled: bool


@router.get("/config/owners")
def list_owners(services: Services = Depends(get_services)) -> dict[str, list[str]]:
    return {"owners": services.store.list_owners()}


@router.post("/config/owners", status_code=status.HTTP_201_CREATED)
def add_owner(request: OwnerRequest, services: Services = Depends(get_services)) -> dict[str, Any]:
    added = services.store.add_owner(request.owner)
    return {"owner": request.owner.strip(), "added": added}


@router.delete("/config/owners")
def remove_owner(
    owner: str = Query(..., min_length=1), services: Services = Depends(get_services)
) -> dict[str, bool]:
    if not services.store.remove_owner(owner):
        raise HTTPException(status_code=404, detail=f"Owner not tracked: {owner}")
    return {"success": True}


@router.get("/config/roots")
def list_roots(services: Services = Depends(get_services)) -> dict[str, list[dict[str, Any]]]:
    return {"roots": [root.model_dump(mode="json") for root in services.store.list_roots()]}


@router.post("/config/roots", status_code=status.HTTP_201_CREATED)
def add_root(request: RootRequest, services: Services = Depends(get_services)) -> dict[str, Any]:
    return services.store.add_root(request.path).model_dump(mode="json")


@router.patch("/config/roots")
def toggle_root(
    request: RootToggleRequest, services: Services = Depends(get_services)
) -> dict[str, bool]:
    services.store.set_root_enabled(request.path, request.enabled)
    return {"success": True}


@router.delete("/config/roots")
def remove_root(
    path: str = Query(..., min_length=1), services: Services = Depends(get_services)
) -> dict[str, bool]:
    if not services.store.remove_root(path):
        raise HTTPException(status_code=404, detail=f"Local root not configured: {path}")
    return {"success": True}
