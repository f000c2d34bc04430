"""
SQLite-based entity registry for tourist safety tracking.

Tracks which entities exist, their status and their last known
location. The last_seen_at column doubles as the ordering guard
that rejects stale location samples.
"""

from datetime import datetime
from typing import Optional

from tourist_safety.adapters.storage.sqlite_base import from_ms, init_schema, now_ms, open_db, to_ms
from tourist_safety.core.errors import NotFound
from tourist_safety.core.models import Coordinates, EntityStatus, LocationSample, TrackedEntity
from tourist_safety.observability.logging_setup import get_logger

log = get_logger("tourist_safety.entities")

SCHEMA = """
CREATE TABLE IF NOT EXISTS entities (
    entity_id TEXT PRIMARY KEY,
    display_name TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    longitude REAL,
    latitude REAL,
    last_seen_at INTEGER,
    registered_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_entities_last_seen ON entities(last_seen_at);
"""

def _row_to_entity(row) -> TrackedEntity:
    location = None
    if row["longitude"] is not None and row["latitude"] is not None:
        location = Coordinates(longitude=row["longitude"], latitude=row["latitude"])
    return TrackedEntity(
        entity_id=row["entity_id"],
        display_name=row["display_name"],
        status=row["status"],
        last_location=location,
        last_seen_at=from_ms(row["last_seen_at"]),
        registered_at=from_ms(row["registered_at"]),
    )

class SQLiteEntityRegistry:
    """SQLite 기반 추적 대상 레지스트리"""

    def __init__(self, path: str):
        self.path = path

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        await init_schema(self.path, SCHEMA)
        log.info(f"SQLiteEntityRegistry 스키마 초기화 완료: {self.path}")

    async def register(self, entity_id: str, display_name: Optional[str] = None) -> TrackedEntity:
        """
        대상을 등록합니다. 이미 있으면 표시 이름만 갱신합니다.

        Args:
            entity_id: 대상 ID
            display_name: 표시 이름 (None 이면 기존 값 유지)
        """
        async with open_db(self.path) as db:
            await db.execute(
                """
                INSERT INTO entities (entity_id, display_name, registered_at) VALUES (?, ?, ?)
                ON CONFLICT(entity_id) DO UPDATE SET
                    display_name = COALESCE(excluded.display_name, entities.display_name)
                """,
                (entity_id, display_name, now_ms()),
            )
            await db.commit()
        return await self.get(entity_id)

    async def get(self, entity_id: str) -> TrackedEntity:
        async with open_db(self.path) as db:
            cursor = await db.execute("SELECT * FROM entities WHERE entity_id = ?", (entity_id,))
            row = await cursor.fetchone()
        if row is None:
            raise NotFound(f"entity not found: {entity_id}", entity_id=entity_id)
        return _row_to_entity(row)

    async def exists(self, entity_id: str) -> bool:
        async with open_db(self.path) as db:
            cursor = await db.execute("SELECT 1 FROM entities WHERE entity_id = ?", (entity_id,))
            return await cursor.fetchone() is not None

    async def record_location(self, sample: LocationSample) -> None:
        """마지막 위치와 관측 시각을 기록합니다. 대상이 없으면 NotFound."""
        async with open_db(self.path) as db:
            cursor = await db.execute(
                "UPDATE entities SET longitude = ?, latitude = ?, last_seen_at = ? WHERE entity_id = ?",
                (sample.longitude, sample.latitude, to_ms(sample.timestamp), sample.entity_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFound(f"entity not found: {sample.entity_id}", entity_id=sample.entity_id)

    async def set_status(self, entity_id: str, status: EntityStatus) -> None:
        async with open_db(self.path) as db:
            cursor = await db.execute(
                "UPDATE entities SET status = ? WHERE entity_id = ?", (status, entity_id)
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFound(f"entity not found: {entity_id}", entity_id=entity_id)
        log.info("대상 상태 변경", entity_id=entity_id, status=status)

    async def count(self) -> int:
        async with open_db(self.path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM entities")
            result = await cursor.fetchone()
            return result[0] if result else 0

    async def count_active_since(self, since: datetime) -> int:
        """since 이후 위치를 보고한 대상 수"""
        async with open_db(self.path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM entities WHERE last_seen_at >= ?", (to_ms(since),)
            )
            result = await cursor.fetchone()
            return result[0] if result else 0
