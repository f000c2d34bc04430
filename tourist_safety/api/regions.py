"""
Geofence region administration routes.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Request

from tourist_safety.api.deps import dump, get_orchestrator, ok
from tourist_safety.core import normalize
from tourist_safety.orchestrators.tracking import TrackingOrchestrator

router = APIRouter(prefix="/regions", tags=["regions"])

@router.get("")
async def list_regions(request: Request, orch: TrackingOrchestrator = Depends(get_orchestrator)):
    params = dict(request.query_params)
    page = await orch.regions.list(normalize.to_region_query(params), normalize.to_page_request(params))
    return ok(dump(page.regions), pagination=dump(page.pagination))

@router.post("")
async def create_region(payload: dict = Body(default={}),
                        orch: TrackingOrchestrator = Depends(get_orchestrator)):
    region = await orch.regions.create(
        normalize.to_region_input(payload), payload.get("createdBy") or "system"
    )
    return ok(dump(region), status_code=201, message="Geofence created")

@router.get("/{region_id}")
async def get_region(region_id: str, orch: TrackingOrchestrator = Depends(get_orchestrator)):
    return ok(dump(await orch.regions.get(region_id)))

@router.patch("/{region_id}")
async def update_region(region_id: str, payload: dict = Body(default={}),
                        orch: TrackingOrchestrator = Depends(get_orchestrator)):
    modified_by = payload.pop("modifiedBy", None) or "system"
    region = await orch.regions.update(region_id, normalize.to_region_update(payload), modified_by)
    return ok(dump(region), message="Geofence updated")

@router.delete("/{region_id}")
async def delete_region(region_id: str, deletedBy: Optional[str] = None,
                        orch: TrackingOrchestrator = Depends(get_orchestrator)):
    region = await orch.regions.soft_delete(region_id, deletedBy or "system")
    return ok(dump(region), message="Geofence deactivated")
