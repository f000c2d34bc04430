"""
HTTP application for tourist safety tracking.

This module builds the FastAPI app: health, readiness, metrics and
info endpoints for operational visibility, the REST routers, and the
mapping from domain errors to HTTP status codes.
"""

import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from tourist_safety.api import alerts_router, entities_router, regions_router, tracking_router
from tourist_safety.core.errors import Conflict, InvalidArgument, NotFound, TrackingError, TransientStoreFailure
from tourist_safety.observability import metrics
from tourist_safety.observability.logging_setup import get_logger
from tourist_safety.orchestrators.tracking import TrackingOrchestrator
from tourist_safety.settings import Settings

log = get_logger("tourist_safety.http")

def status_for(error: TrackingError) -> int:
    """도메인 오류 → HTTP 상태 코드"""
    if isinstance(error, InvalidArgument):
        return 400
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, Conflict):
        return 409
    if isinstance(error, TransientStoreFailure):
        return 503
    return 500

def create_app(settings: Settings, orchestrator: TrackingOrchestrator) -> FastAPI:
    """FastAPI 애플리케이션을 생성합니다."""
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="Tourist Safety Geofence & Alert Service"
    )
    app.state.orchestrator = orchestrator
    app.state.settings = settings

    start_time = time.time()

    @app.exception_handler(TrackingError)
    async def tracking_error_handler(request: Request, exc: TrackingError):
        status = status_for(exc)
        if status >= 500:
            log.error("요청 처리 실패", detail=exc.message, path=request.url.path, error=exc.kind)
        else:
            log.info("요청 거부", detail=exc.message, path=request.url.path, error=exc.kind)
        return JSONResponse(
            {"success": False, "error": exc.kind, "message": exc.message},
            status_code=status,
        )

    @app.get("/health")
    async def health():
        """헬스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """레디니스 체크 엔드포인트 (저장소 접근 확인)"""
        try:
            await orchestrator.entities.count()
        except TrackingError as e:
            log.warning(f"레디니스 실패: {e.message}")
            return JSONResponse({
                "status": "unavailable",
                "service": settings.observability.service_name,
                "error": e.kind,
            }, status_code=503)
        return JSONResponse({
            "status": "ready",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/metrics")
    async def metrics_endpoint():
        """Prometheus 메트릭 엔드포인트"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")

        metrics.uptime_seconds.set(time.time() - start_time)
        return Response(
            generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    @app.get("/info")
    async def info():
        """서비스 정보 엔드포인트"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level,
            "ledger_enabled": settings.ledger.enabled,
        })

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "info": "/info",
                "entities": "/entities",
                "tracking": "/tracking",
                "alerts": "/alerts",
                "regions": "/regions"
            }
        })

    app.include_router(entities_router)
    app.include_router(tracking_router)
    app.include_router(alerts_router)
    app.include_router(regions_router)

    return app
