"""
SQLite-based geofence region store for tourist safety tracking.

Region administration (create, update, soft delete, filtered listing)
and the active-region source read by the geofence engine. Active
region names are unique; the partial index enforces it.
"""

import json
import uuid
from typing import Any, List, Optional, Tuple

from pydantic import TypeAdapter

from tourist_safety.adapters.storage.sqlite_base import from_ms, init_schema, now_ms, open_db
from tourist_safety.core.errors import NotFound, RegionInUse
from tourist_safety.core.models import (
    GeofenceRegion,
    LocalizedMessage,
    PageRequest,
    Pagination,
    RegionInput,
    RegionPage,
    RegionQuery,
    RegionUpdate,
    Shape,
)
from tourist_safety.observability.logging_setup import get_logger
from tourist_safety.ports.alert_store import AlertLedgerPort

log = get_logger("tourist_safety.regions")

SCHEMA = """
CREATE TABLE IF NOT EXISTS regions (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    region_type TEXT NOT NULL,
    shape TEXT NOT NULL,
    risk_level INTEGER NOT NULL DEFAULT 5,
    description TEXT,
    alert_message TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_by TEXT NOT NULL DEFAULT 'system',
    last_modified_by TEXT,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    deleted_at INTEGER
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_regions_active_name ON regions(name) WHERE is_active = 1;
CREATE INDEX IF NOT EXISTS idx_regions_active ON regions(is_active, region_type);
"""

_shape_adapter = TypeAdapter(Shape)

# 수정 가능한 필드 → 컬럼
_UPDATABLE = {
    "name": "name",
    "region_type": "region_type",
    "shape": "shape",
    "risk_level": "risk_level",
    "description": "description",
    "alert_message": "alert_message",
    "is_active": "is_active",
}

def _encode(field: str, value: Any) -> Any:
    if field == "shape":
        return _shape_adapter.dump_json(value).decode("utf-8")
    if field == "alert_message":
        return value.model_dump_json() if value is not None else None
    if field == "is_active":
        return 1 if value else 0
    return value

def _row_to_region(row) -> GeofenceRegion:
    return GeofenceRegion(
        id=row["id"],
        name=row["name"],
        region_type=row["region_type"],
        shape=_shape_adapter.validate_json(row["shape"]),
        risk_level=row["risk_level"],
        description=row["description"],
        alert_message=(LocalizedMessage.model_validate_json(row["alert_message"])
                       if row["alert_message"] else None),
        is_active=bool(row["is_active"]),
        created_by=row["created_by"],
        last_modified_by=row["last_modified_by"],
        created_at=from_ms(row["created_at"]),
        updated_at=from_ms(row["updated_at"]),
        deleted_at=from_ms(row["deleted_at"]),
    )

def _where(filters: RegionQuery) -> Tuple[str, List[Any]]:
    clauses: List[str] = []
    params: List[Any] = []
    if filters.region_type:
        clauses.append("region_type = ?")
        params.append(filters.region_type)
    if filters.is_active is not None:
        clauses.append("is_active = ?")
        params.append(1 if filters.is_active else 0)
    if filters.risk_level is not None:
        clauses.append("risk_level = ?")
        params.append(filters.risk_level)
    if filters.search:
        clauses.append("(name LIKE ? OR description LIKE ?)")
        pattern = f"%{filters.search}%"
        params.extend([pattern, pattern])
    where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
    return where, params

class SQLiteRegionStore:
    """SQLite 기반 지오펜스 영역 저장소"""

    def __init__(self, path: str, alerts: Optional[AlertLedgerPort] = None):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
            alerts: 삭제 전 미확인 경보 확인용 경보 원장
        """
        self.path = path
        self.alerts = alerts

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        await init_schema(self.path, SCHEMA)
        log.info(f"SQLiteRegionStore 스키마 초기화 완료: {self.path}")

    async def create(self, data: RegionInput, created_by: str = "system") -> GeofenceRegion:
        """
        영역을 생성합니다.

        Raises:
            DuplicateKey: 같은 이름의 활성 영역이 있음
        """
        region_id = uuid.uuid4().hex
        ts = now_ms()
        async with open_db(self.path) as db:
            await db.execute(
                """
                INSERT INTO regions (id, name, region_type, shape, risk_level, description,
                                     alert_message, is_active, created_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
                """,
                (
                    region_id,
                    data.name,
                    data.region_type,
                    _encode("shape", data.shape),
                    data.risk_level,
                    data.description,
                    _encode("alert_message", data.alert_message),
                    created_by,
                    ts,
                    ts,
                ),
            )
            await db.commit()
        log.info("지오펜스 영역 생성", region_id=region_id, name=data.name, region_type=data.region_type)
        return await self.get(region_id)

    async def get(self, region_id: str) -> GeofenceRegion:
        async with open_db(self.path) as db:
            cursor = await db.execute("SELECT * FROM regions WHERE id = ?", (region_id,))
            row = await cursor.fetchone()
        if row is None:
            raise NotFound(f"region not found: {region_id}", region_id=region_id)
        return _row_to_region(row)

    async def update(self, region_id: str, changes: RegionUpdate,
                     modified_by: str = "system") -> GeofenceRegion:
        """
        설정된 필드만 수정합니다.

        Raises:
            NotFound: 영역 없음
            DuplicateKey: 이름이 다른 활성 영역과 충돌
            RegionInUse: 비활성화하려는 영역에 미확인 경보가 남아 있음
        """
        fields = [f for f in changes.model_fields_set if f in _UPDATABLE]
        assignments = [f"{_UPDATABLE[f]} = ?" for f in fields]
        params: List[Any] = [_encode(f, getattr(changes, f)) for f in fields]
        ts = now_ms()

        if "is_active" in fields and changes.is_active is False:
            await self._ensure_unused(await self.get(region_id))
            assignments.append("deleted_at = COALESCE(deleted_at, ?)")
            params.append(ts)
        elif changes.is_active is True:
            assignments.append("deleted_at = NULL")

        assignments.extend(["last_modified_by = ?", "updated_at = ?"])
        params.extend([modified_by, ts, region_id])

        async with open_db(self.path) as db:
            cursor = await db.execute(
                f"UPDATE regions SET {', '.join(assignments)} WHERE id = ?", params
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFound(f"region not found: {region_id}", region_id=region_id)

        log.info("지오펜스 영역 수정", region_id=region_id, fields=sorted(fields))
        return await self.get(region_id)

    async def _ensure_unused(self, region: GeofenceRegion) -> None:
        """활성 영역에 미확인 경보가 남아 있으면 RegionInUse"""
        if self.alerts is None or not region.is_active:
            return
        pending = await self.alerts.count_unacknowledged_for_region(region.id)
        if pending:
            raise RegionInUse(
                f"region has {pending} unacknowledged alerts",
                region_id=region.id, active_alerts=pending,
            )

    async def soft_delete(self, region_id: str, deleted_by: str = "system") -> GeofenceRegion:
        """
        영역을 비활성화합니다. 이미 비활성화된 영역은 그대로 반환합니다.

        Raises:
            NotFound: 영역 없음
            RegionInUse: 미확인 경보가 남아 있음
        """
        region = await self.get(region_id)
        if not region.is_active:
            return region

        await self._ensure_unused(region)

        ts = now_ms()
        async with open_db(self.path) as db:
            await db.execute(
                "UPDATE regions SET is_active = 0, deleted_at = ?, last_modified_by = ?, updated_at = ? "
                "WHERE id = ?",
                (ts, deleted_by, ts, region_id),
            )
            await db.commit()
        log.info("지오펜스 영역 비활성화", region_id=region_id, deleted_by=deleted_by)
        return await self.get(region_id)

    async def list(self, filters: RegionQuery, page: PageRequest) -> RegionPage:
        where, params = _where(filters)
        async with open_db(self.path) as db:
            cursor = await db.execute(f"SELECT COUNT(*) FROM regions{where}", params)
            total = (await cursor.fetchone())[0]
            cursor = await db.execute(
                f"SELECT * FROM regions{where} ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                [*params, page.limit, page.offset],
            )
            rows = await cursor.fetchall()
        return RegionPage(regions=[_row_to_region(r) for r in rows],
                          pagination=Pagination.build(page, total))

    async def list_active(self) -> List[GeofenceRegion]:
        async with open_db(self.path) as db:
            cursor = await db.execute("SELECT * FROM regions WHERE is_active = 1 ORDER BY created_at")
            rows = await cursor.fetchall()
        return [_row_to_region(r) for r in rows]
