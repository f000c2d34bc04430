"""
Entity registry port interface.
"""

from datetime import datetime
from typing import Optional, Protocol

from tourist_safety.core.models import EntityStatus, LocationSample, TrackedEntity

class EntityRegistryPort(Protocol):
    """추적 대상 레지스트리 포트 인터페이스"""

    async def register(self, entity_id: str, display_name: Optional[str] = None) -> TrackedEntity:
        ...

    async def get(self, entity_id: str) -> TrackedEntity:
        ...

    async def exists(self, entity_id: str) -> bool:
        ...

    async def record_location(self, sample: LocationSample) -> None:
        ...

    async def set_status(self, entity_id: str, status: EntityStatus) -> None:
        ...

    async def count(self) -> int:
        ...

    async def count_active_since(self, since: datetime) -> int:
        ...
