"""
Entity registration routes.
"""

from fastapi import APIRouter, Body, Depends

from tourist_safety.api.deps import dump, get_orchestrator, ok
from tourist_safety.core.errors import InvalidArgument
from tourist_safety.orchestrators.tracking import TrackingOrchestrator

router = APIRouter(prefix="/entities", tags=["entities"])

@router.post("")
async def register_entity(payload: dict = Body(default={}),
                          orch: TrackingOrchestrator = Depends(get_orchestrator)):
    entity_id = str(payload.get("entityId") or payload.get("touristId") or "").strip()
    if not entity_id:
        raise InvalidArgument("entityId is required")
    entity = await orch.entities.register(entity_id, payload.get("displayName"))
    return ok(dump(entity), status_code=201)

@router.get("/{entity_id}")
async def get_entity(entity_id: str, orch: TrackingOrchestrator = Depends(get_orchestrator)):
    return ok(dump(await orch.entities.get(entity_id)))
