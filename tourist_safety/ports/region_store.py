"""
Region store port interface.

This module defines the protocol for geofence region administration
and the active-region source read by the engine.
"""

from typing import List, Protocol

from tourist_safety.core.models import GeofenceRegion, PageRequest, RegionInput, RegionPage, RegionQuery, RegionUpdate

class RegionSourcePort(Protocol):
    """지오펜스 영역 저장소 포트 인터페이스"""

    async def list_active(self) -> List[GeofenceRegion]:
        """엔진이 평가할 활성 영역 목록"""
        ...

    async def create(self, data: RegionInput, created_by: str = "system") -> GeofenceRegion:
        ...

    async def get(self, region_id: str) -> GeofenceRegion:
        ...

    async def update(self, region_id: str, changes: RegionUpdate,
                     modified_by: str = "system") -> GeofenceRegion:
        ...

    async def soft_delete(self, region_id: str, deleted_by: str = "system") -> GeofenceRegion:
        ...

    async def list(self, filters: RegionQuery, page: PageRequest) -> RegionPage:
        ...
