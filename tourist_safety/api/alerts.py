"""
Alert routes: query, active list, acknowledgment, resolution, bulk purge.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Request

from tourist_safety.api.deps import dump, get_orchestrator, ok
from tourist_safety.core import normalize
from tourist_safety.orchestrators.tracking import TrackingOrchestrator

router = APIRouter(prefix="/alerts", tags=["alerts"])

@router.get("")
async def list_alerts(request: Request, orch: TrackingOrchestrator = Depends(get_orchestrator)):
    """
    필터/페이지로 경보를 조회합니다.

    쿼리: page, limit, entityId|touristId, severity, acknowledged, type,
    regionId, startDate, endDate (ISO 8601)
    """
    params = dict(request.query_params)
    filters = normalize.to_alert_query(params)
    page = normalize.to_page_request(params)
    result = await orch.ledger.query(filters, page)
    return ok(dump(result.records), pagination=dump(result.pagination))

@router.get("/active")
async def active_alerts(orch: TrackingOrchestrator = Depends(get_orchestrator)):
    alerts = await orch.ledger.list_active(orch.active_alerts_limit)
    return ok(dump(alerts), count=len(alerts))

@router.get("/{alert_id}")
async def get_alert(alert_id: str, orch: TrackingOrchestrator = Depends(get_orchestrator)):
    return ok(dump(await orch.ledger.get(alert_id)))

@router.post("/{alert_id}/acknowledge")
async def acknowledge_alert(alert_id: str, payload: dict = Body(default={}),
                            orch: TrackingOrchestrator = Depends(get_orchestrator)):
    record = await orch.acknowledge(
        alert_id,
        payload.get("acknowledgedBy") or "system",
        payload.get("response"),
    )
    return ok(dump(record), message="Alert acknowledged")

@router.post("/{alert_id}/resolve")
async def resolve_alert(alert_id: str, payload: dict = Body(default={}),
                        orch: TrackingOrchestrator = Depends(get_orchestrator)):
    record = await orch.resolve(alert_id, payload.get("resolvedBy") or "system")
    return ok(dump(record), message="Alert resolved")

@router.delete("/entity/{entity_id}")
async def purge_entity_alerts(entity_id: str,
                              acknowledgedBy: Optional[str] = None,
                              response: Optional[str] = None,
                              orch: TrackingOrchestrator = Depends(get_orchestrator)):
    """대상의 모든 미확인 경보를 확인 처리하고 확인된 경보를 삭제합니다."""
    result = await orch.bulk_acknowledge_and_purge(entity_id, acknowledgedBy, response)
    return ok({
        "entityId": result.entity_id,
        "alertsProcessed": result.processed,
        "alertsDeleted": result.deleted,
        "acknowledgedAt": result.acknowledged_at.isoformat(),
        "acknowledgedBy": result.acknowledged_by,
        "response": result.response,
    }, message=f"All alerts for tourist {entity_id} acknowledged and deleted")
