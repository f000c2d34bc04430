"""
Tracking routes: location samples, emergencies, device status, stats.
"""

from fastapi import APIRouter, Body, Depends

from tourist_safety.api.deps import dump, get_orchestrator, ok
from tourist_safety.core import normalize
from tourist_safety.orchestrators.tracking import TrackingOrchestrator

router = APIRouter(prefix="/tracking", tags=["tracking"])

@router.post("/locations")
async def post_location(payload: dict = Body(default={}),
                        orch: TrackingOrchestrator = Depends(get_orchestrator)):
    """위치 샘플 하나를 평가합니다."""
    outcome = await orch.handle_location(normalize.to_location_sample(payload))
    data = {
        "entityId": outcome.sample.entity_id,
        "stale": outcome.stale,
        "alerts": [],
        "failedRegions": [],
    }
    if outcome.result is not None:
        data["alerts"] = dump(outcome.result.alerts)
        data["failedRegions"] = [f.region_id for f in outcome.result.failures]
    return ok(data)

@router.post("/emergency")
async def post_emergency(payload: dict = Body(default={}),
                         orch: TrackingOrchestrator = Depends(get_orchestrator)):
    alert = await orch.handle_emergency(normalize.to_emergency_report(payload))
    return ok(dump(alert), status_code=201, message="Emergency alert sent")

@router.post("/device-status")
async def post_device_status(payload: dict = Body(default={}),
                             orch: TrackingOrchestrator = Depends(get_orchestrator)):
    alert = await orch.handle_device_status(normalize.to_device_status(payload))
    return ok({"alert": dump(alert)})

@router.get("/stats")
async def get_stats(orch: TrackingOrchestrator = Depends(get_orchestrator)):
    return ok(await orch.stats())
