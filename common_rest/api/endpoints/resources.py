from __future__ import annotations

from typing import Any, Dict, List, Union

from fastapi import APIRouter, Body, Depends, Request

from common_rest.core.resources import ResourceService

router = APIRouter(tags=["resources"])


def get_service(request: Request) -> ResourceService:
    return request.app.state.service


@router.get("/")
def index(request: Request):
    return {
        "announcement": "Welcome to our API.",
        "resources": request.app.state.registry.names(),
    }


# GET MULTIPLE; query parameters on readable fields filter by equality
@router.get("/{resource}")
async def list_resources(resource: str, request: Request, service: ResourceService = Depends(get_service)):
    return await service.list(resource, dict(request.query_params))


@router.get("/{resource}/{id}")
async def get_resource(resource: str, id: str, service: ResourceService = Depends(get_service)):
    return await service.get(resource, id)


# DELETE MULTIPLE, ids or documents in the body
@router.post("/{resource}/batch-delete")
async def delete_resources(
    resource: str,
    payload: Union[List[Any], Dict[str, Any], str, int] = Body(...),
    service: ResourceService = Depends(get_service),
):
    deleted = await service.delete_many(resource, payload)
    return {"deleted": deleted}


# POST ONE or MULTIPLE
@router.post("/{resource}")
async def create_resources(
    resource: str,
    payload: Union[List[Any], Dict[str, Any]] = Body(...),
    service: ResourceService = Depends(get_service),
):
    if isinstance(payload, list):
        return await service.create_many(resource, payload)
    return await service.create(resource, payload)


# PUT MULTIPLE, each item addressed by its primary key
@router.put("/{resource}")
async def update_resources(
    resource: str,
    payload: Union[List[Any], Dict[str, Any]] = Body(...),
    service: ResourceService = Depends(get_service),
):
    items = payload if isinstance(payload, list) else [payload]
    updated = await service.update_many(resource, items)
    return {"updated": updated}


@router.put("/{resource}/{id}")
async def update_resource(
    resource: str,
    id: str,
    payload: Dict[str, Any] = Body(...),
    service: ResourceService = Depends(get_service),
):
    return await service.update(resource, id, payload)


@router.delete("/{resource}/{id}")
async def delete_resource(resource: str, id: str, service: ResourceService = Depends(get_service)):
    await service.delete(resource, id)
    return {"deleted": 1}
