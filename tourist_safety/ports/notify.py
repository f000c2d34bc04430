"""
Notification port interfaces.

This module defines the fire-and-forget delivery contracts: dashboard
broadcast and the external incident ledger.
"""

from typing import Optional, Protocol

from tourist_safety.core.models import AlertNotification, AlertRecord

class NotificationPort(Protocol):
    """대시보드 알림 포트 인터페이스"""

    async def notify(self, notification: AlertNotification) -> None:
        """
        알림을 전달 대기열에 넣습니다.

        Args:
            notification: 브로드캐스트할 이벤트
        """
        ...

class IncidentLedgerPort(Protocol):
    """외부 사고 원장(블록체인) 포트 인터페이스"""

    async def log_incident(self, alert: AlertRecord, *,
                           region_name: Optional[str] = None) -> Optional[str]:
        """
        사고를 기록하고 트랜잭션 ID 를 반환합니다. 실패 시 None.
        """
        ...
