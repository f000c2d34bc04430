"""
Location ingestion port interface.

This module defines the protocol for device event ingestion.
"""

from typing import AsyncIterator, Protocol

class LocationIngestPort(Protocol):
    """단말 이벤트 수집 포트 인터페이스"""

    async def recv(self) -> AsyncIterator[dict]:
        """
        원시 단말 이벤트를 비동기적으로 수신합니다.

        Yields:
            "kind" 필드를 가진 원시 딕셔너리 데이터
        """
        ...

    async def stop(self) -> None:
        """수신을 중지합니다."""
        ...
