"""
Geofence engine for tourist safety tracking.

Evaluates one location sample against the active regions and turns
containment changes into entry/exit alerts. Containment state is not
stored: whether the entity was inside a region is reconstructed from
the latest transition alert recorded for the (entity, region) pair.

The engine appends alerts through the injected ledger but never
delivers anything itself; notifications and incident escalations are
handed back to the caller in an EvaluationResult.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from tourist_safety.common.geo import point_in_circle, point_in_polygon, validate_coordinates
from tourist_safety.core.alerts import (
    AlertIdGenerator,
    entry_severity,
    geofence_entry_alert,
    geofence_exit_alert,
    notification_for,
)
from tourist_safety.core.errors import InvalidArgument
from tourist_safety.core.models import AlertRecord, AlertNotification, Coordinates, GeofenceRegion
from tourist_safety.observability.logging_setup import get_logger
from tourist_safety.observability import metrics
from tourist_safety.ports.alert_store import AlertLedgerPort

log = get_logger("tourist_safety.geofence")

@dataclass
class RegionFailure:
    """평가 중 실패한 영역 (다른 영역 처리는 계속됨)"""
    region_id: str
    error: str

@dataclass
class EvaluationResult:
    """한 샘플의 평가 결과 (전달은 호출자가 결정)"""
    alerts: List[AlertRecord] = field(default_factory=list)
    notifications: List[AlertNotification] = field(default_factory=list)
    failures: List[RegionFailure] = field(default_factory=list)
    escalations: List[Tuple[AlertRecord, GeofenceRegion]] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.alerts)

def region_contains(region: GeofenceRegion, longitude: float, latitude: float) -> bool:
    """
    점이 영역 안에 있는지 확인합니다.

    원형은 구면(haversine) 거리, 폴리곤은 경도/위도 평면 ray casting 입니다.
    """
    shape = region.shape
    if shape.kind == "Circle":
        return point_in_circle((longitude, latitude), shape.center.as_point(), shape.radius_m)
    return point_in_polygon((longitude, latitude), shape.ring)

class GeofenceEngine:
    """지오펜스 진입/이탈 판정 엔진"""

    def __init__(self,
                 ledger: AlertLedgerPort,
                 *,
                 critical_region_types: Iterable[str] = ("danger",),
                 escalation_risk_level: int = 8,
                 region_timeout_sec: float = 5.0,
                 id_generator: Optional[AlertIdGenerator] = None):
        """
        초기화합니다.

        Args:
            ledger: 경보 원장 (append, latest_transition_for)
            critical_region_types: 진입 시 critical 로 판정할 영역 타입
            escalation_risk_level: 사고 원장 기록 대상 위험도 하한
            region_timeout_sec: 영역별 평가 타임아웃 (초)
            id_generator: 경보 ID 생성기
        """
        self.ledger = ledger
        self.critical_region_types = frozenset(critical_region_types)
        self.escalation_risk_level = escalation_risk_level
        self.region_timeout_sec = region_timeout_sec
        self.new_alert_id = id_generator or AlertIdGenerator()

    def should_escalate(self, region: GeofenceRegion) -> bool:
        return (region.region_type in self.critical_region_types
                or region.risk_level >= self.escalation_risk_level)

    async def evaluate(self,
                       entity_id: str,
                       longitude: float,
                       latitude: float,
                       regions: Sequence[GeofenceRegion]) -> EvaluationResult:
        """
        하나의 위치 샘플을 모든 활성 영역에 대해 평가합니다.

        Args:
            entity_id: 추적 대상 ID
            longitude: 경도
            latitude: 위도
            regions: 평가할 영역 목록 (비활성 영역은 건너뜀)

        Returns:
            생성된 경보, 알림, 실패 영역, 에스컬레이션 대상

        Raises:
            InvalidArgument: 좌표가 범위를 벗어났거나 entity_id 가 비어 있는 경우
        """
        if not entity_id:
            raise InvalidArgument("entity_id is required")
        if not validate_coordinates(latitude, longitude):
            raise InvalidArgument(
                f"invalid coordinates: longitude={longitude} latitude={latitude}",
                longitude=longitude, latitude=latitude,
            )

        active = [r for r in regions if r.is_active]
        result = EvaluationResult()
        if not active:
            return result

        location = Coordinates(longitude=longitude, latitude=latitude)
        outcomes = await asyncio.gather(
            *(self._evaluate_region_guarded(entity_id, location, region) for region in active)
        )

        for region, outcome in zip(active, outcomes):
            if isinstance(outcome, RegionFailure):
                result.failures.append(outcome)
                continue
            if outcome is None:
                continue
            result.alerts.append(outcome)
            result.notifications.append(notification_for(outcome, "geofence_alert", region))
            if outcome.type == "geofence_entry" and self.should_escalate(region):
                result.escalations.append((outcome, region))

        if result.alerts:
            log.info("지오펜스 전이 감지", entity_id=entity_id,
                     transitions=len(result.alerts), failures=len(result.failures))
        return result

    async def _evaluate_region_guarded(self, entity_id: str, location: Coordinates,
                                       region: GeofenceRegion):
        try:
            return await asyncio.wait_for(
                self._evaluate_region(entity_id, location, region),
                timeout=self.region_timeout_sec,
            )
        except asyncio.TimeoutError:
            log.warning("영역 평가 타임아웃", entity_id=entity_id, region_id=region.id)
            metrics.region_failures.labels(reason="timeout").inc()
            return RegionFailure(region.id, "timeout")
        except Exception as e:
            # 한 영역의 실패가 다른 영역 평가를 막지 않음
            log.error("영역 평가 실패", error=str(e), entity_id=entity_id, region_id=region.id)
            metrics.region_failures.labels(reason=getattr(e, "kind", type(e).__name__)).inc()
            return RegionFailure(region.id, str(e))

    async def _evaluate_region(self, entity_id: str, location: Coordinates,
                               region: GeofenceRegion) -> Optional[AlertRecord]:
        inside = region_contains(region, location.longitude, location.latitude)

        latest = await self.ledger.latest_transition_for(entity_id, region.id)
        was_inside = latest is not None and latest.type == "geofence_entry"

        if inside == was_inside:
            return None

        if inside:
            alert = geofence_entry_alert(
                self.new_alert_id("geofence_entry", entity_id),
                entity_id,
                region,
                location,
                entry_severity(region, self.critical_region_types),
            )
        else:
            alert = geofence_exit_alert(
                self.new_alert_id("geofence_exit", entity_id),
                entity_id,
                region,
                location,
            )

        stored = await self.ledger.append(alert)
        metrics.geofence_transitions.labels(type=stored.type, severity=stored.severity).inc()
        return stored
