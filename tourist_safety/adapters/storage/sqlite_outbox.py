"""
SQLite-based notification outbox for tourist safety tracking.

Dashboard notifications are written here first and drained by the
MQTT broadcaster, so a broker outage delays delivery instead of
losing events.
"""

from dataclasses import dataclass
from typing import Optional

from tourist_safety.adapters.storage.sqlite_base import init_schema, now_ms, open_db
from tourist_safety.observability.logging_setup import get_logger

log = get_logger("tourist_safety.outbox")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS outbox (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event TEXT NOT NULL,
    topic TEXT NOT NULL,
    payload BLOB NOT NULL,
    qos INTEGER NOT NULL DEFAULT 1,
    retain INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    last_error TEXT
);
"""

@dataclass
class OutboxItem:
    """Outbox 항목"""
    id: int
    event: str
    topic: str
    payload: bytes
    qos: int
    retain: bool
    attempts: int

class SQLiteOutbox:
    """SQLite 기반 알림 Outbox"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        await init_schema(self.path, SCHEMA)
        log.info(f"SQLiteOutbox 스키마 초기화 완료: {self.path}")

    async def enqueue(self, event: str, topic: str, payload: bytes,
                      qos: int = 1, retain: bool = False) -> int:
        """
        메시지를 Outbox에 추가합니다.

        Returns:
            생성된 항목의 ID
        """
        async with open_db(self.path) as db:
            cursor = await db.execute(
                "INSERT INTO outbox (event, topic, payload, qos, retain, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (event, topic, payload, qos, 1 if retain else 0, now_ms()),
            )
            await db.commit()
            return cursor.lastrowid

    async def peek_oldest(self) -> Optional[OutboxItem]:
        """
        가장 오래된 항목을 조회합니다 (삭제하지 않음).
        """
        async with open_db(self.path) as db:
            cursor = await db.execute(
                "SELECT id, event, topic, payload, qos, retain, attempts FROM outbox ORDER BY id ASC LIMIT 1"
            )
            row = await cursor.fetchone()

        if row is None:
            return None
        return OutboxItem(
            id=row["id"],
            event=row["event"],
            topic=row["topic"],
            payload=row["payload"],
            qos=row["qos"],
            retain=bool(row["retain"]),
            attempts=row["attempts"],
        )

    async def mark_attempt(self, oid: int, error: Optional[str] = None) -> None:
        """발송 실패를 기록하고 시도 횟수를 증가시킵니다."""
        async with open_db(self.path) as db:
            await db.execute(
                "UPDATE outbox SET attempts = attempts + 1, last_error = ? WHERE id = ?",
                (error, oid),
            )
            await db.commit()

    async def delete(self, oid: int) -> None:
        async with open_db(self.path) as db:
            await db.execute("DELETE FROM outbox WHERE id = ?", (oid,))
            await db.commit()

    async def get_count(self) -> int:
        async with open_db(self.path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM outbox")
            result = await cursor.fetchone()
            return result[0] if result else 0
