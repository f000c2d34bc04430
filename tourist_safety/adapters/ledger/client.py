"""
Incident ledger API client for tourist safety tracking.

The incident ledger (a blockchain service) is consumed as an opaque
HTTP endpoint: `POST {base_url}/incident/log` with a bearer key,
answering `{"success": bool, "txId": str}`. Logging is best effort;
failures are reported in the log and never raised to callers.
"""

import asyncio
from typing import Dict, Optional

import aiohttp

from tourist_safety.common.retry import retry_with_backoff
from tourist_safety.core.models import AlertRecord
from tourist_safety.observability import metrics
from tourist_safety.observability.logging_setup import get_logger

log = get_logger("tourist_safety.ledger")

# 경보 타입 → 사고 원장 incidentType
INCIDENT_TYPES = {
    "geofence_entry": "geofence_violation",
    "emergency": "emergency_alert",
}

class IncidentLedgerClient:
    """사고 원장 API 클라이언트"""

    def __init__(self,
                 base_url: str,
                 api_key: str = "",
                 timeout: int = 10,
                 *,
                 enabled: bool = True,
                 max_retries: int = 2):
        """
        초기화합니다.

        Args:
            base_url: 원장 API 기본 URL
            api_key: Bearer 키
            timeout: 요청 타임아웃 (초)
            enabled: False 면 아무 요청도 보내지 않음
            max_retries: 요청별 재시도 횟수
        """
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.enabled = enabled
        self.max_retries = max_retries
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        self.session = aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        if self.session:
            await self.session.close()
            self.session = None

    async def _make_request(self, method: str, endpoint: str, **kwargs) -> Dict:
        """
        API 요청을 수행합니다.

        Args:
            method: HTTP 메서드
            endpoint: API 엔드포인트
            **kwargs: 추가 요청 매개변수

        Returns:
            응답 데이터
        """
        if not self.session:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")

        url = f"{self.base_url}{endpoint}"

        async def _request():
            async with self.session.request(method, url, **kwargs) as response:
                response.raise_for_status()
                return await response.json()

        return await retry_with_backoff(
            _request,
            max_retries=self.max_retries,
            base_delay=0.5,
            max_delay=5.0,
            retry_on=(aiohttp.ClientError, asyncio.TimeoutError),
        )

    @staticmethod
    def incident_payload(alert: AlertRecord, region_name: Optional[str] = None) -> Dict:
        location = None
        if alert.location is not None:
            lat, lon = alert.location.latitude, alert.location.longitude
            location = {"latitude": lat, "longitude": lon, "address": f"{lat}, {lon}"}
        return {
            "touristId": alert.entity_id,
            "incidentType": INCIDENT_TYPES.get(alert.type, alert.type),
            "severity": alert.severity,
            "description": alert.message.english,
            "location": location,
            "geofenceName": region_name,
            "alertId": alert.alert_id,
            "timestamp": (alert.created_at.isoformat() if alert.created_at else None),
            "status": "open",
        }

    async def log_incident(self, alert: AlertRecord, *,
                           region_name: Optional[str] = None) -> Optional[str]:
        """
        사고를 원장에 기록합니다.

        Args:
            alert: 기록할 경보
            region_name: 관련 지오펜스 이름

        Returns:
            트랜잭션 ID, 비활성화되었거나 실패하면 None
        """
        if not self.enabled:
            return None

        try:
            data = await self._make_request(
                "POST", "/incident/log", json=self.incident_payload(alert, region_name)
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, RuntimeError) as e:
            metrics.ledger_requests.labels(result="error").inc()
            log.warning("사고 원장 기록 실패", error=str(e), alert_id=alert.alert_id)
            return None

        if not data.get("success"):
            metrics.ledger_requests.labels(result="rejected").inc()
            log.warning("사고 원장이 기록을 거부함", alert_id=alert.alert_id, reply=data)
            return None

        tx_id = data.get("txId")
        metrics.ledger_requests.labels(result="ok").inc()
        log.info("사고 원장 기록 완료", alert_id=alert.alert_id, tx_id=tx_id)
        return tx_id
