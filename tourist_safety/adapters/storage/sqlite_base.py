"""
Shared SQLite helpers for the storage adapters.

Every adapter opens one aiosqlite connection per operation and maps
driver errors onto the domain taxonomy here.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import aiosqlite

from tourist_safety.core.errors import DuplicateKey, InvalidArgument, TransientStoreFailure

def now_ms() -> int:
    return int(time.time() * 1000)

def to_ms(ts: Optional[datetime]) -> Optional[int]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp() * 1000)

def from_ms(ms: Optional[int]) -> Optional[datetime]:
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)

@asynccontextmanager
async def open_db(path: str) -> AsyncIterator[aiosqlite.Connection]:
    """
    연결을 열고 드라이버 오류를 도메인 오류로 변환합니다.

    - UNIQUE/PRIMARY KEY 위반 → DuplicateKey
    - 그 밖의 무결성 위반 → InvalidArgument
    - 나머지 aiosqlite.Error → TransientStoreFailure
    """
    try:
        async with aiosqlite.connect(path) as db:
            db.row_factory = aiosqlite.Row
            yield db
    except aiosqlite.IntegrityError as e:
        if "UNIQUE" in str(e):
            raise DuplicateKey(str(e)) from e
        raise InvalidArgument(str(e)) from e
    except aiosqlite.Error as e:
        raise TransientStoreFailure(str(e)) from e

async def init_schema(path: str, schema: str) -> None:
    async with open_db(path) as db:
        await db.executescript(schema)
        await db.commit()
