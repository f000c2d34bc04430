"""
Tracking orchestrator for tourist safety.

Connects device event ingestion, the entity registry, the geofence
engine, the alert ledger and notification delivery. MQTT events flow
through an asyncio.Queue (producer/consumer); HTTP routes call the
same handlers directly.

Samples for one entity are processed one at a time, and a sample
older than the entity's last accepted sample is rejected as stale, so
containment state reconstructed from the ledger never sees samples out
of order.
"""

import asyncio
import time
import weakref
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Iterable, Optional, Set

from tourist_safety.core import normalize
from tourist_safety.core.alerts import (
    AlertIdGenerator,
    battery_low_alert,
    emergency_alert,
    notification_for,
)
from tourist_safety.core.errors import InvalidArgument, TrackingError
from tourist_safety.core.geofence import EvaluationResult, GeofenceEngine
from tourist_safety.core.models import (
    AlertNotification,
    AlertRecord,
    BulkPurgeResult,
    Coordinates,
    DeviceStatus,
    EmergencyReport,
    LocationSample,
    TrackedEntity,
    utcnow,
)
from tourist_safety.observability import metrics
from tourist_safety.observability.logging_setup import get_logger, with_context
from tourist_safety.ports.alert_store import AlertLedgerPort
from tourist_safety.ports.entities import EntityRegistryPort
from tourist_safety.ports.ingest import LocationIngestPort
from tourist_safety.ports.notify import IncidentLedgerPort, NotificationPort
from tourist_safety.ports.region_store import RegionSourcePort

log = get_logger("tourist_safety.orchestrator")

@dataclass
class LocationOutcome:
    """위치 샘플 처리 결과"""
    sample: LocationSample
    entity: TrackedEntity
    stale: bool = False
    result: Optional[EvaluationResult] = None

class TrackingOrchestrator:
    """위치 추적 오케스트레이터"""

    def __init__(self,
                 *,
                 entities: EntityRegistryPort,
                 regions: RegionSourcePort,
                 ledger: AlertLedgerPort,
                 engine: GeofenceEngine,
                 notifier: NotificationPort,
                 incident_ledger: Optional[IncidentLedgerPort] = None,
                 ingest: Optional[LocationIngestPort] = None,
                 auto_register_entities: bool = False,
                 reject_stale_samples: bool = True,
                 max_future_skew_sec: float = 300.0,
                 low_battery_threshold: int = 20,
                 active_alerts_limit: int = 100,
                 queue_maxsize: int = 1000,
                 drop_on_full: bool = False,
                 id_generator: Optional[AlertIdGenerator] = None):
        """
        초기화합니다.

        Args:
            entities: 추적 대상 레지스트리
            regions: 지오펜스 영역 저장소
            ledger: 경보 원장
            engine: 지오펜스 엔진
            notifier: 대시보드 알림 포트
            incident_ledger: 사고 원장 클라이언트 (없으면 기록 생략)
            ingest: MQTT 이벤트 수집 포트 (없으면 큐 처리 생략)
            auto_register_entities: 미등록 대상의 위치를 자동 등록할지 여부
            reject_stale_samples: 오래된 샘플 거부 여부
            max_future_skew_sec: 허용하는 샘플 시각의 미래 오차 (초)
            low_battery_threshold: 배터리 경보 임계값 (%)
            active_alerts_limit: 미확인 경보 조회 최대 개수
            queue_maxsize: 큐 최대 크기
            drop_on_full: 큐가 가득 찰 때 메시지 드롭 여부
            id_generator: 경보 ID 생성기 (엔진과 공유)
        """
        self.entities = entities
        self.regions = regions
        self.ledger = ledger
        self.engine = engine
        self.notifier = notifier
        self.incident_ledger = incident_ledger
        self.ingest = ingest
        self.auto_register_entities = auto_register_entities
        self.reject_stale_samples = reject_stale_samples
        self.max_future_skew = timedelta(seconds=max_future_skew_sec)
        self.low_battery_threshold = low_battery_threshold
        self.active_alerts_limit = active_alerts_limit
        self.drop_on_full = drop_on_full
        self.new_alert_id = id_generator or engine.new_alert_id

        self.q: asyncio.Queue = asyncio.Queue(maxsize=queue_maxsize)
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._background: Set[asyncio.Task] = set()
        self._running = False

    # ------------------------------------------------------------------
    # 큐 처리
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        오케스트레이터를 시작합니다.

        수집 -> 큐 -> 정규화 -> 처리의 파이프라인을 실행합니다.
        """
        if self.ingest is None:
            log.info("수집 포트 없음, 큐 처리를 시작하지 않습니다")
            return
        self._running = True
        await asyncio.gather(self._producer(), self._consumer())

    async def _producer(self) -> None:
        """원시 이벤트를 큐에 추가하는 프로듀서"""
        async for raw in self.ingest.recv():
            try:
                self.q.put_nowait(raw)
            except asyncio.QueueFull:
                if self.drop_on_full:
                    log.warning("큐가 가득 차 이벤트를 버립니다", kind=raw.get("kind"))
                    continue
                await self.q.put(raw)
            metrics.queue_depth.set(self.q.qsize())

    async def _consumer(self) -> None:
        """큐에서 이벤트를 소비하는 컨슈머"""
        while self._running:
            raw = await self.q.get()
            metrics.queue_depth.set(self.q.qsize())
            try:
                with with_context(entity_id=raw.get("entityId")):
                    await self.dispatch(raw)
            except TrackingError as e:
                log.warning("이벤트 처리 거부", kind=raw.get("kind"), error=e.kind, detail=e.message)
            except Exception as e:
                # 오류 처리 (로깅만 하고 계속 진행)
                log.exception(f"이벤트 처리 오류: {e}")
            finally:
                self.q.task_done()

    async def dispatch(self, raw: Dict[str, Any]) -> Any:
        """
        kind 에 따라 이벤트를 처리합니다.

        Raises:
            InvalidArgument: 알 수 없는 kind 또는 잘못된 페이로드
        """
        kind = raw.get("kind", "location")
        if kind == "location":
            return await self.handle_location(normalize.to_location_sample(raw))
        if kind == "emergency":
            return await self.handle_emergency(normalize.to_emergency_report(raw))
        if kind == "device_status":
            return await self.handle_device_status(normalize.to_device_status(raw))
        raise InvalidArgument(f"unknown event kind: {kind}")

    # ------------------------------------------------------------------
    # 위치 / 긴급 / 단말 상태
    # ------------------------------------------------------------------

    def _lock_for(self, entity_id: str) -> asyncio.Lock:
        lock = self._locks.get(entity_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[entity_id] = lock
        return lock

    async def _resolve_entity(self, entity_id: str) -> TrackedEntity:
        if self.auto_register_entities and not await self.entities.exists(entity_id):
            log.info("미등록 대상 자동 등록", entity_id=entity_id)
            return await self.entities.register(entity_id)
        return await self.entities.get(entity_id)

    async def handle_location(self, sample: LocationSample) -> LocationOutcome:
        """
        위치 샘플 하나를 처리합니다.

        Args:
            sample: 검증된 위치 샘플

        Returns:
            처리 결과 (stale 이면 평가하지 않음)

        Raises:
            NotFound: 등록되지 않은 대상
            InvalidArgument: 서버 시각보다 허용 오차 이상 미래인 샘플
        """
        limit = utcnow() + self.max_future_skew
        if sample.timestamp > limit:
            metrics.location_samples.labels(result="future").inc()
            raise InvalidArgument(
                "timestamp is too far in the future",
                entity_id=sample.entity_id, timestamp=sample.timestamp.isoformat(),
            )

        started = time.perf_counter()
        lock = self._lock_for(sample.entity_id)
        async with lock:
            entity = await self._resolve_entity(sample.entity_id)

            if (self.reject_stale_samples and entity.last_seen_at is not None
                    and sample.timestamp < entity.last_seen_at):
                log.warning("오래된 위치 샘플 거부", entity_id=sample.entity_id,
                            sample_ts=sample.timestamp.isoformat(),
                            last_seen_at=entity.last_seen_at.isoformat())
                metrics.location_samples.labels(result="stale").inc()
                return LocationOutcome(sample=sample, entity=entity, stale=True)

            await self.entities.record_location(sample)
            regions = await self.regions.list_active()

            with metrics.evaluation_seconds.time():
                result = await self.engine.evaluate(
                    sample.entity_id, sample.longitude, sample.latitude, regions
                )

        await self._deliver(result.notifications)
        for alert, region in result.escalations:
            self._escalate(alert, region.name)

        metrics.location_samples.labels(result="processed").inc()
        metrics.end_to_end_seconds.observe(time.perf_counter() - started)
        return LocationOutcome(sample=sample, entity=entity, result=result)

    async def handle_emergency(self, report: EmergencyReport) -> AlertRecord:
        """
        긴급 경보를 생성하고 대상 상태를 emergency 로 바꿉니다.

        Raises:
            NotFound: 등록되지 않은 대상
        """
        await self.entities.get(report.entity_id)

        alert = emergency_alert(
            self.new_alert_id("emergency", report.entity_id),
            report.entity_id,
            Coordinates(longitude=report.longitude, latitude=report.latitude),
            message=report.message,
            trigger=report.trigger,
            source=report.source,
        )
        stored = await self.ledger.append(alert)
        await self.entities.set_status(report.entity_id, "emergency")
        metrics.alerts_created.labels(type=stored.type, severity=stored.severity).inc()
        log.warning("긴급 경보 발생", entity_id=report.entity_id, alert_id=stored.alert_id,
                    trigger=report.trigger)

        await self._deliver([notification_for(stored, "emergency_alert")])
        self._escalate(stored)
        return stored

    async def handle_device_status(self, status: DeviceStatus) -> Optional[AlertRecord]:
        """
        단말 상태를 처리합니다. 배터리가 임계값 미만이면 battery_low 경보를 만듭니다.

        Returns:
            생성된 경보 또는 None
        """
        await self.entities.get(status.entity_id)

        if status.battery_level is None or status.battery_level >= self.low_battery_threshold:
            return None

        alert = battery_low_alert(
            self.new_alert_id("battery_low", status.entity_id),
            status.entity_id,
            status.battery_level,
            self.low_battery_threshold,
            device_id=status.device_id,
        )
        stored = await self.ledger.append(alert)
        metrics.alerts_created.labels(type=stored.type, severity=stored.severity).inc()
        log.info("배터리 부족 경보", entity_id=status.entity_id, battery_level=status.battery_level)

        await self._deliver([notification_for(stored, "device_alert")])
        return stored

    # ------------------------------------------------------------------
    # 확인 / 해결 / 일괄 삭제
    # ------------------------------------------------------------------

    async def acknowledge(self, alert_id: str, acknowledged_by: str,
                          response: Optional[str] = None) -> AlertRecord:
        record = await self.ledger.acknowledge(alert_id, acknowledged_by, response)
        metrics.alerts_acknowledged.labels(mode="single").inc()
        await self._deliver([notification_for(record, "alert_acknowledged")])
        return record

    async def resolve(self, alert_id: str, resolved_by: str) -> AlertRecord:
        return await self.ledger.resolve(alert_id, resolved_by)

    async def bulk_acknowledge_and_purge(self, entity_id: str,
                                         acknowledged_by: Optional[str] = None,
                                         response: Optional[str] = None) -> BulkPurgeResult:
        """대상의 경보를 일괄 확인/삭제하고 대상 상태를 active 로 되돌립니다."""
        result = await self.ledger.bulk_acknowledge_and_purge(entity_id, acknowledged_by, response)
        await self.entities.set_status(entity_id, "active")
        metrics.alerts_acknowledged.labels(mode="bulk").inc(result.processed)
        return result

    async def stats(self) -> Dict[str, Any]:
        """대시보드 집계"""
        since = utcnow() - timedelta(hours=24)
        alert_stats = await self.ledger.stats()
        return {
            "totalTourists": await self.entities.count(),
            "activeTourists": await self.entities.count_active_since(since),
            "emergencyAlerts": alert_stats["unacknowledged_emergencies"],
            "recentAlerts": alert_stats["alerts_last_24h"],
            "alertsBySeverity": alert_stats["by_severity"],
            "totalAlerts": alert_stats["total"],
        }

    # ------------------------------------------------------------------
    # 전달 (실패는 로그만 남기고 전파하지 않음)
    # ------------------------------------------------------------------

    async def _deliver(self, notifications: Iterable[AlertNotification]) -> None:
        for notification in notifications:
            try:
                await self.notifier.notify(notification)
            except Exception as e:
                log.error("알림 전달 실패", error=str(e), alert_id=notification.alert_id, event=notification.event)

    def _escalate(self, alert: AlertRecord, region_name: Optional[str] = None) -> None:
        if self.incident_ledger is None:
            return

        async def _log():
            try:
                await self.incident_ledger.log_incident(alert, region_name=region_name)
            except Exception as e:
                log.error("사고 원장 기록 오류", error=str(e), alert_id=alert.alert_id)

        task = asyncio.create_task(_log())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """진행 중인 백그라운드 작업을 기다립니다."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def stop(self) -> None:
        self._running = False
        if self.ingest is not None:
            await self.ingest.stop()
        await self.drain()
        log.info("오케스트레이터 중지")
