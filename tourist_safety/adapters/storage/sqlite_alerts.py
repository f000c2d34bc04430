"""
SQLite-based alert ledger for tourist safety tracking.

Append-mostly store for AlertRecord. After creation only the
acknowledgment and resolution columns change. created_at is assigned
here in epoch milliseconds; rowid breaks ties between alerts stored
in the same millisecond.

Every single-row state change is one conditional UPDATE, so two
concurrent acknowledgments of the same alert cannot both succeed.
"""

import json
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from tourist_safety.adapters.storage.sqlite_base import from_ms, init_schema, now_ms, open_db, to_ms
from tourist_safety.core.errors import AlreadyAcknowledged, AlreadyResolved, NotFound
from tourist_safety.core.models import (
    Acknowledgment,
    AlertPage,
    AlertQuery,
    AlertRecord,
    BulkPurgeResult,
    Coordinates,
    LocalizedMessage,
    PageRequest,
    Pagination,
    utcnow,
)
from tourist_safety.observability.logging_setup import get_logger
from tourist_safety.ports.entities import EntityRegistryPort

log = get_logger("tourist_safety.alerts")

SCHEMA = """
CREATE TABLE IF NOT EXISTS alerts (
    alert_id TEXT PRIMARY KEY,
    entity_id TEXT NOT NULL,
    type TEXT NOT NULL,
    severity TEXT NOT NULL,
    message TEXT NOT NULL,
    longitude REAL,
    latitude REAL,
    region_id TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    is_acknowledged INTEGER NOT NULL DEFAULT 0,
    acknowledged_by TEXT,
    acknowledged_at INTEGER,
    response TEXT,
    created_at INTEGER NOT NULL,
    resolved_at INTEGER,
    resolved_by TEXT
);
CREATE INDEX IF NOT EXISTS idx_alerts_transition ON alerts(entity_id, region_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_alerts_entity_ack ON alerts(entity_id, is_acknowledged);
CREATE INDEX IF NOT EXISTS idx_alerts_created ON alerts(created_at DESC);
"""

COLUMNS = (
    "alert_id, entity_id, type, severity, message, longitude, latitude, region_id, metadata, "
    "is_acknowledged, acknowledged_by, acknowledged_at, response, created_at, resolved_at, resolved_by"
)

def _row_to_record(row) -> AlertRecord:
    location = None
    if row["longitude"] is not None and row["latitude"] is not None:
        location = Coordinates(longitude=row["longitude"], latitude=row["latitude"])
    return AlertRecord(
        alert_id=row["alert_id"],
        entity_id=row["entity_id"],
        type=row["type"],
        severity=row["severity"],
        message=LocalizedMessage.model_validate_json(row["message"]),
        location=location,
        region_id=row["region_id"],
        metadata=json.loads(row["metadata"] or "{}"),
        acknowledgment=Acknowledgment(
            is_acknowledged=bool(row["is_acknowledged"]),
            acknowledged_by=row["acknowledged_by"],
            acknowledged_at=from_ms(row["acknowledged_at"]),
            response=row["response"],
        ),
        created_at=from_ms(row["created_at"]),
        resolved_at=from_ms(row["resolved_at"]),
        resolved_by=row["resolved_by"],
    )

def _where(filters: AlertQuery) -> Tuple[str, List[Any]]:
    clauses: List[str] = []
    params: List[Any] = []
    if filters.entity_id:
        clauses.append("entity_id = ?")
        params.append(filters.entity_id)
    if filters.severity:
        clauses.append("severity = ?")
        params.append(filters.severity)
    if filters.acknowledged is not None:
        clauses.append("is_acknowledged = ?")
        params.append(1 if filters.acknowledged else 0)
    if filters.type:
        clauses.append("type = ?")
        params.append(filters.type)
    if filters.region_id:
        clauses.append("region_id = ?")
        params.append(filters.region_id)
    if filters.start_date:
        clauses.append("created_at >= ?")
        params.append(to_ms(filters.start_date))
    if filters.end_date:
        clauses.append("created_at <= ?")
        params.append(to_ms(filters.end_date))
    where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
    return where, params

class SQLiteAlertLedger:
    """SQLite 기반 경보 원장"""

    def __init__(self, path: str, entities: Optional[EntityRegistryPort] = None):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
            entities: 존재하지 않는 대상을 NotFound 로 보고하기 위한 레지스트리
        """
        self.path = path
        self.entities = entities

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        await init_schema(self.path, SCHEMA)
        log.info(f"SQLiteAlertLedger 스키마 초기화 완료: {self.path}")

    async def _require_entity(self, entity_id: str) -> None:
        if self.entities is not None and not await self.entities.exists(entity_id):
            raise NotFound(f"entity not found: {entity_id}", entity_id=entity_id)

    async def append(self, record: AlertRecord) -> AlertRecord:
        """
        경보를 추가합니다.

        Args:
            record: 저장할 경보 (created_at 은 무시되고 저장소가 부여)

        Returns:
            created_at 이 채워진 경보

        Raises:
            DuplicateKey: 같은 alert_id 가 이미 있음
        """
        created_at = now_ms()
        loc = record.location
        ack = record.acknowledgment
        async with open_db(self.path) as db:
            await db.execute(
                f"INSERT INTO alerts ({COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.alert_id,
                    record.entity_id,
                    record.type,
                    record.severity,
                    record.message.model_dump_json(),
                    loc.longitude if loc else None,
                    loc.latitude if loc else None,
                    record.region_id,
                    json.dumps(record.metadata, ensure_ascii=False, default=str),
                    1 if ack.is_acknowledged else 0,
                    ack.acknowledged_by,
                    to_ms(ack.acknowledged_at),
                    ack.response,
                    created_at,
                    to_ms(record.resolved_at),
                    record.resolved_by,
                ),
            )
            await db.commit()
        log.debug("경보 저장", alert_id=record.alert_id, type=record.type, severity=record.severity)
        return record.model_copy(update={"created_at": from_ms(created_at)})

    async def get(self, alert_id: str) -> AlertRecord:
        async with open_db(self.path) as db:
            cursor = await db.execute(f"SELECT {COLUMNS} FROM alerts WHERE alert_id = ?", (alert_id,))
            row = await cursor.fetchone()
        if row is None:
            raise NotFound(f"alert not found: {alert_id}", alert_id=alert_id)
        return _row_to_record(row)

    async def acknowledge(self, alert_id: str, acknowledged_by: str,
                          response: Optional[str] = None) -> AlertRecord:
        """
        경보를 확인 처리합니다.

        Raises:
            NotFound: 경보 없음
            AlreadyAcknowledged: 이미 확인됨 (acknowledged_at 은 바뀌지 않음)
        """
        async with open_db(self.path) as db:
            cursor = await db.execute(
                """
                UPDATE alerts
                   SET is_acknowledged = 1, acknowledged_by = ?, acknowledged_at = ?, response = ?
                 WHERE alert_id = ? AND is_acknowledged = 0
                """,
                (acknowledged_by, now_ms(), response, alert_id),
            )
            await db.commit()
            updated = cursor.rowcount

        if updated == 0:
            # 없는 경보인지 이미 확인된 경보인지 구분
            current = await self.get(alert_id)
            raise AlreadyAcknowledged(
                f"alert already acknowledged: {alert_id}",
                alert_id=alert_id,
                acknowledged_by=current.acknowledgment.acknowledged_by,
            )

        log.info("경보 확인 처리", alert_id=alert_id, acknowledged_by=acknowledged_by)
        return await self.get(alert_id)

    async def resolve(self, alert_id: str, resolved_by: str) -> AlertRecord:
        """경보를 해결 처리합니다. 확인되지 않은 경보는 함께 확인 처리됩니다."""
        ts = now_ms()
        async with open_db(self.path) as db:
            cursor = await db.execute(
                """
                UPDATE alerts
                   SET resolved_at = ?, resolved_by = ?,
                       is_acknowledged = 1,
                       acknowledged_by = COALESCE(acknowledged_by, ?),
                       acknowledged_at = COALESCE(acknowledged_at, ?)
                 WHERE alert_id = ? AND resolved_at IS NULL
                """,
                (ts, resolved_by, resolved_by, ts, alert_id),
            )
            await db.commit()
            updated = cursor.rowcount

        if updated == 0:
            await self.get(alert_id)
            raise AlreadyResolved(f"alert already resolved: {alert_id}", alert_id=alert_id)

        log.info("경보 해결 처리", alert_id=alert_id, resolved_by=resolved_by)
        return await self.get(alert_id)

    async def bulk_acknowledge_and_purge(self, entity_id: str,
                                         acknowledged_by: Optional[str] = None,
                                         response: Optional[str] = None) -> BulkPurgeResult:
        """
        대상의 미확인 경보를 한 시각으로 일괄 확인한 뒤, 확인된 경보를 모두 삭제합니다.

        두 단계는 별도 문장입니다. 중간에 중단되면 확인만 된 경보가 남고
        다음 실행에서 삭제됩니다.

        Args:
            entity_id: 대상 ID
            acknowledged_by: 처리자 (기본 "system")
            response: 응답 메시지

        Returns:
            processed (확인 처리 수), deleted (삭제 수)

        Raises:
            NotFound: 대상이 없거나 미확인 경보가 없음
        """
        await self._require_entity(entity_id)

        acknowledged_by = acknowledged_by or "system"
        response = response or f"All alerts for tourist {entity_id} acknowledged and resolved"
        ts = now_ms()

        async with open_db(self.path) as db:
            cursor = await db.execute(
                """
                UPDATE alerts
                   SET is_acknowledged = 1, acknowledged_by = ?, acknowledged_at = ?, response = ?,
                       resolved_at = ?, resolved_by = ?
                 WHERE entity_id = ? AND is_acknowledged = 0
                """,
                (acknowledged_by, ts, response, ts, acknowledged_by, entity_id),
            )
            await db.commit()
            processed = cursor.rowcount

            if processed == 0:
                raise NotFound(f"no unacknowledged alerts for entity: {entity_id}", entity_id=entity_id)

            cursor = await db.execute(
                "DELETE FROM alerts WHERE entity_id = ? AND is_acknowledged = 1", (entity_id,)
            )
            await db.commit()
            deleted = cursor.rowcount

        log.info("대상 경보 일괄 확인 및 삭제", entity_id=entity_id,
                 processed=processed, deleted=deleted, acknowledged_by=acknowledged_by)
        return BulkPurgeResult(
            entity_id=entity_id,
            processed=processed,
            deleted=deleted,
            acknowledged_at=from_ms(ts),
            acknowledged_by=acknowledged_by,
            response=response,
        )

    async def query(self, filters: AlertQuery, page: PageRequest) -> AlertPage:
        """
        필터와 페이지로 경보를 조회합니다 (created_at 내림차순).

        Raises:
            NotFound: 존재하지 않는 대상으로 필터링한 경우
        """
        if filters.entity_id:
            await self._require_entity(filters.entity_id)

        where, params = _where(filters)
        async with open_db(self.path) as db:
            cursor = await db.execute(f"SELECT COUNT(*) FROM alerts{where}", params)
            total = (await cursor.fetchone())[0]
            cursor = await db.execute(
                f"SELECT {COLUMNS} FROM alerts{where} ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                [*params, page.limit, page.offset],
            )
            rows = await cursor.fetchall()

        return AlertPage(
            records=[_row_to_record(r) for r in rows],
            pagination=Pagination.build(page, total),
        )

    async def latest_transition_for(self, entity_id: str, region_id: str) -> Optional[AlertRecord]:
        """(entity, region) 쌍의 최신 진입/이탈 경보 (삽입 순서 기준)"""
        async with open_db(self.path) as db:
            cursor = await db.execute(
                f"""
                SELECT {COLUMNS} FROM alerts
                 WHERE entity_id = ? AND region_id = ?
                   AND type IN ('geofence_entry', 'geofence_exit')
                 ORDER BY rowid DESC
                 LIMIT 1
                """,
                (entity_id, region_id),
            )
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def list_active(self, limit: int = 100) -> List[AlertRecord]:
        """미확인 경보 (최신순)"""
        async with open_db(self.path) as db:
            cursor = await db.execute(
                f"SELECT {COLUMNS} FROM alerts WHERE is_acknowledged = 0 "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (limit,),
            )
            rows = await cursor.fetchall()
        return [_row_to_record(r) for r in rows]

    async def count_unacknowledged_for_region(self, region_id: str) -> int:
        async with open_db(self.path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM alerts WHERE region_id = ? AND is_acknowledged = 0", (region_id,)
            )
            result = await cursor.fetchone()
            return result[0] if result else 0

    async def stats(self) -> Dict[str, Any]:
        """대시보드 집계 (미확인 긴급 경보, 최근 24시간 경보, 심각도별 합계)"""
        since = to_ms(utcnow() - timedelta(hours=24))
        async with open_db(self.path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM alerts WHERE severity = 'emergency' AND is_acknowledged = 0"
            )
            emergencies = (await cursor.fetchone())[0]
            cursor = await db.execute("SELECT COUNT(*) FROM alerts WHERE created_at >= ?", (since,))
            recent = (await cursor.fetchone())[0]
            cursor = await db.execute("SELECT severity, COUNT(*) FROM alerts GROUP BY severity")
            by_severity = {row[0]: row[1] for row in await cursor.fetchall()}
        return {
            "unacknowledged_emergencies": emergencies,
            "alerts_last_24h": recent,
            "by_severity": by_severity,
            "total": sum(by_severity.values()),
        }
