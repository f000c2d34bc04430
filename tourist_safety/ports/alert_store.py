"""
Alert ledger port interface.

This module defines the protocol for the append-mostly alert store.
"""

from typing import Any, Dict, List, Optional, Protocol

from tourist_safety.core.models import AlertPage, AlertQuery, AlertRecord, BulkPurgeResult, PageRequest

class AlertLedgerPort(Protocol):
    """경보 원장 포트 인터페이스"""

    async def append(self, record: AlertRecord) -> AlertRecord:
        """
        경보를 추가합니다. created_at 은 저장소가 부여합니다.

        Raises:
            DuplicateKey: alert_id 충돌
        """
        ...

    async def get(self, alert_id: str) -> AlertRecord:
        ...

    async def acknowledge(self, alert_id: str, acknowledged_by: str,
                          response: Optional[str] = None) -> AlertRecord:
        """
        경보를 확인 처리합니다.

        Raises:
            NotFound: 경보 없음
            AlreadyAcknowledged: 이미 확인됨
        """
        ...

    async def resolve(self, alert_id: str, resolved_by: str) -> AlertRecord:
        ...

    async def bulk_acknowledge_and_purge(self, entity_id: str,
                                         acknowledged_by: Optional[str] = None,
                                         response: Optional[str] = None) -> BulkPurgeResult:
        ...

    async def query(self, filters: AlertQuery, page: PageRequest) -> AlertPage:
        ...

    async def latest_transition_for(self, entity_id: str, region_id: str) -> Optional[AlertRecord]:
        """(entity, region) 쌍의 최신 진입/이탈 경보를 반환합니다."""
        ...

    async def list_active(self, limit: int = 100) -> List[AlertRecord]:
        ...

    async def count_unacknowledged_for_region(self, region_id: str) -> int:
        ...

    async def stats(self) -> Dict[str, Any]:
        ...
