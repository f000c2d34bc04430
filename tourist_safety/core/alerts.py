"""
Alert construction for tourist safety tracking.

Pure functions building AlertRecord instances for every producer
(geofence transitions, emergencies, device battery) and
the notification payloads that accompany them.
"""

import threading
import time
from typing import Optional

from .models import (
    AlertNotification,
    AlertRecord,
    Coordinates,
    GeofenceRegion,
    LocalizedMessage,
    Severity,
)

class AlertIdGenerator:
    """
    `{type}_{millis}_{entityId}` 형식의 경보 ID 생성기.

    같은 밀리초에 두 번 호출되면 다음 밀리초 값을 사용하므로
    프로세스 내에서는 충돌하지 않습니다.
    """

    def __init__(self, clock=None):
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._last = 0
        self._lock = threading.Lock()

    def next_millis(self) -> int:
        with self._lock:
            now = self._clock()
            if now <= self._last:
                now = self._last + 1
            self._last = now
            return now

    def __call__(self, alert_type: str, entity_id: str) -> str:
        return f"{alert_type}_{self.next_millis()}_{entity_id}"

def entry_severity(region: GeofenceRegion, critical_types) -> Severity:
    return "critical" if region.region_type in critical_types else "warning"

def geofence_entry_alert(alert_id: str, entity_id: str, region: GeofenceRegion,
                         location: Coordinates, severity: Severity) -> AlertRecord:
    custom = region.alert_message
    message = LocalizedMessage(
        english=(custom.english if custom else None) or f"Entered {region.name}",
        hindi=(custom.hindi if custom else None) or f"{region.name} में प्रवेश किया",
    )
    return AlertRecord(
        alert_id=alert_id,
        entity_id=entity_id,
        type="geofence_entry",
        severity=severity,
        message=message,
        location=location,
        region_id=region.id,
        metadata={
            "regionName": region.name,
            "regionType": region.region_type,
            "riskLevel": region.risk_level,
        },
    )

def geofence_exit_alert(alert_id: str, entity_id: str, region: GeofenceRegion,
                        location: Coordinates) -> AlertRecord:
    return AlertRecord(
        alert_id=alert_id,
        entity_id=entity_id,
        type="geofence_exit",
        severity="info",
        message=LocalizedMessage(
            english=f"Exited {region.name}",
            hindi=f"{region.name} से बाहर निकला",
        ),
        location=location,
        region_id=region.id,
        metadata={
            "regionName": region.name,
            "regionType": region.region_type,
            "riskLevel": region.risk_level,
        },
    )

def emergency_alert(alert_id: str, entity_id: str, location: Coordinates, *,
                    message: Optional[str] = None, trigger: str = "panic_button",
                    source: str = "mobile_app") -> AlertRecord:
    return AlertRecord(
        alert_id=alert_id,
        entity_id=entity_id,
        type="emergency",
        severity="emergency",
        message=LocalizedMessage(
            english=message or "Emergency alert triggered",
            hindi="आपातकालीन अलर्ट सक्रिय",
        ),
        location=location,
        metadata={"trigger": trigger, "source": source},
    )

def battery_low_alert(alert_id: str, entity_id: str, battery_level: int,
                      threshold: int, device_id: Optional[str] = None) -> AlertRecord:
    return AlertRecord(
        alert_id=alert_id,
        entity_id=entity_id,
        type="battery_low",
        severity="warning",
        message=LocalizedMessage(
            english=f"Device battery is low: {battery_level}%",
            hindi=f"डिवाइस की बैटरी कम है: {battery_level}%",
        ),
        metadata={
            "actualValue": battery_level,
            "thresholdValue": threshold,
            "deviceId": device_id,
        },
    )

def notification_for(alert: AlertRecord, event: str,
                     region: Optional[GeofenceRegion] = None) -> AlertNotification:
    """경보에 대응하는 브로드캐스트 이벤트를 만듭니다."""
    notification = AlertNotification(
        event=event,
        alert_id=alert.alert_id,
        entity_id=alert.entity_id,
        type=alert.type,
        severity=alert.severity,
        location=alert.location,
        region_id=alert.region_id,
        message=alert.message.english,
    )
    if alert.created_at is not None:
        notification.timestamp = alert.created_at
    if region is not None:
        notification.region_name = region.name
        notification.region_type = region.region_type
    return notification
