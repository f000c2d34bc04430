"""
Core domain models for tourist safety tracking.

This module defines the core domain models using Pydantic v2
for type safety and validation. API payloads use camelCase aliases.
"""

import math
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# 심각도 타입 정의 (에스컬레이션 순서)
Severity = Literal["info", "warning", "critical", "emergency"]

SEVERITY_ORDER = {
    "info": 0,
    "warning": 1,
    "critical": 2,
    "emergency": 3
}

# 생산자별 닫힌 태그 집합 (세부 정보는 metadata 에)
AlertType = Literal[
    "geofence_entry",
    "geofence_exit",
    "emergency",
    "battery_low",
    "inactivity",
    "custom",
]

GEOFENCE_ALERT_TYPES: Tuple[str, str] = ("geofence_entry", "geofence_exit")

RegionType = Literal[
    "safe",
    "warning",
    "danger",
    "restricted",
    "emergency_services",
    "accommodation",
    "tourist_spot",
]

EntityStatus = Literal["active", "emergency", "inactive"]

MAX_RADIUS_M = 50_000

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class Coordinates(CamelModel):
    """경도/위도 좌표"""
    longitude: float = Field(ge=-180, le=180)
    latitude: float = Field(ge=-90, le=90)

    def as_point(self) -> Tuple[float, float]:
        return (self.longitude, self.latitude)

class CircleShape(CamelModel):
    """원형 지오펜스 (중심 + 반경 m)"""
    kind: Literal["Circle"] = "Circle"
    center: Coordinates
    radius_m: float = Field(gt=0, le=MAX_RADIUS_M)

class PolygonShape(CamelModel):
    """폴리곤 지오펜스 (경도, 위도) 링"""
    kind: Literal["Polygon"] = "Polygon"
    ring: List[Tuple[float, float]]

    @field_validator("ring")
    @classmethod
    def _check_ring(cls, ring: List[Tuple[float, float]]) -> List[Tuple[float, float]]:
        # 닫는 점은 선택 사항이므로 제거
        if len(ring) > 3 and ring[0] == ring[-1]:
            ring = ring[:-1]
        if len(ring) < 3:
            raise ValueError("polygon ring needs at least 3 distinct vertices")
        for lon, lat in ring:
            if not (-180 <= lon <= 180 and -90 <= lat <= 90):
                raise ValueError(f"vertex out of range: [{lon}, {lat}]")
        return ring

Shape = Annotated[Union[CircleShape, PolygonShape], Field(discriminator="kind")]

class LocalizedMessage(CamelModel):
    """다국어 메시지 (영어 필수)"""
    english: str
    hindi: Optional[str] = None
    local: Optional[str] = None

def _clean_name(name: str) -> str:
    name = name.strip()
    if len(name) < 3:
        raise ValueError("name must be at least 3 characters long")
    return name

class RegionFields(CamelModel):
    name: str
    region_type: RegionType = "warning"
    shape: Shape
    risk_level: int = Field(5, ge=1, le=10)
    description: Optional[str] = None
    alert_message: Optional[LocalizedMessage] = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, name: str) -> str:
        return _clean_name(name)

class RegionInput(RegionFields):
    """영역 생성 입력"""

class RegionUpdate(CamelModel):
    """영역 수정 입력 (설정된 필드만 반영)"""
    name: Optional[str] = None
    region_type: Optional[RegionType] = None
    shape: Optional[Shape] = None
    risk_level: Optional[int] = Field(None, ge=1, le=10)
    description: Optional[str] = None
    alert_message: Optional[LocalizedMessage] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, name: Optional[str]) -> Optional[str]:
        if name is None:
            return name
        return _clean_name(name)

class GeofenceRegion(RegionFields):
    """지오펜스 영역 모델"""
    id: str
    is_active: bool = True
    created_by: str = "system"
    last_modified_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

class Acknowledgment(CamelModel):
    is_acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    response: Optional[str] = None

class AlertRecord(CamelModel):
    """경보 레코드. 생성 후에는 acknowledgment 와 resolved_* 만 변경됩니다."""
    alert_id: str
    entity_id: str
    type: AlertType
    severity: Severity
    message: LocalizedMessage
    location: Optional[Coordinates] = None
    region_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    acknowledgment: Acknowledgment = Field(default_factory=Acknowledgment)
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @property
    def is_transition(self) -> bool:
        return self.type in GEOFENCE_ALERT_TYPES

class LocationSample(CamelModel):
    """단말 위치 샘플"""
    entity_id: str = Field(min_length=1)
    longitude: float
    latitude: float
    timestamp: datetime = Field(default_factory=utcnow)
    accuracy: float = 10.0
    speed: float = 0.0
    heading: Optional[float] = None
    altitude: Optional[float] = None
    battery_level: Optional[int] = Field(None, ge=0, le=100)
    source: str = "gps"

    @field_validator("longitude", "latitude")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("coordinate must be finite")
        return value

    @field_validator("timestamp")
    @classmethod
    def _aware(cls, ts: datetime) -> datetime:
        # naive 시간은 UTC 로 간주
        if ts.tzinfo is None:
            return ts.replace(tzinfo=timezone.utc)
        return ts.astimezone(timezone.utc)

class EmergencyReport(CamelModel):
    """패닉 버튼 등 긴급 신고"""
    entity_id: str = Field(min_length=1)
    longitude: float = Field(ge=-180, le=180)
    latitude: float = Field(ge=-90, le=90)
    message: Optional[str] = None
    trigger: str = "panic_button"
    source: str = "mobile_app"

class DeviceStatus(CamelModel):
    """단말 상태 보고"""
    entity_id: str = Field(min_length=1)
    battery_level: Optional[int] = Field(None, ge=0, le=100)
    device_id: Optional[str] = None
    network_type: Optional[str] = None

class TrackedEntity(CamelModel):
    """추적 대상 (관광객/단말)"""
    entity_id: str
    display_name: Optional[str] = None
    status: EntityStatus = "active"
    last_location: Optional[Coordinates] = None
    last_seen_at: Optional[datetime] = None
    registered_at: Optional[datetime] = None

class AlertNotification(CamelModel):
    """대시보드로 전달되는 fire-and-forget 이벤트"""
    event: str
    alert_id: str
    entity_id: str
    type: str
    severity: Severity
    location: Optional[Coordinates] = None
    timestamp: datetime = Field(default_factory=utcnow)
    region_id: Optional[str] = None
    region_name: Optional[str] = None
    region_type: Optional[str] = None
    message: Optional[str] = None

class AlertQuery(CamelModel):
    """경보 조회 필터"""
    entity_id: Optional[str] = None
    severity: Optional[Severity] = None
    acknowledged: Optional[bool] = None
    type: Optional[AlertType] = None
    region_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

class PageRequest(CamelModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_records: int
    limit: int

    @classmethod
    def build(cls, page: PageRequest, total: int) -> "Pagination":
        return cls(
            current_page=page.page,
            total_pages=math.ceil(total / page.limit),
            total_records=total,
            limit=page.limit,
        )

class AlertPage(CamelModel):
    records: List[AlertRecord]
    pagination: Pagination

class RegionQuery(CamelModel):
    region_type: Optional[RegionType] = None
    is_active: Optional[bool] = None
    risk_level: Optional[int] = Field(None, ge=1, le=10)
    search: Optional[str] = None

class RegionPage(CamelModel):
    regions: List[GeofenceRegion]
    pagination: Pagination

class BulkPurgeResult(CamelModel):
    entity_id: str
    processed: int
    deleted: int
    acknowledged_at: datetime
    acknowledged_by: str
    response: str
