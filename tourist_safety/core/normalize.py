"""
Normalization functions for tourist safety tracking.

This module contains pure functions for converting raw device and HTTP
payloads into internal domain models. Every failure surfaces as
InvalidArgument before any store is touched.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type, TypeVar

from dateutil import parser as date_parser
from pydantic import BaseModel, ValidationError

from .errors import InvalidArgument
from .models import (
    AlertQuery,
    DeviceStatus,
    EmergencyReport,
    LocationSample,
    PageRequest,
    RegionInput,
    RegionQuery,
    RegionUpdate,
)
from tourist_safety.observability.logging_setup import get_logger

log = get_logger("tourist_safety.normalize")

M = TypeVar("M", bound=BaseModel)

# 원본 모바일 앱 필드명 호환
_ENTITY_KEYS = ("entityId", "entity_id", "touristId", "tourist_id")

def _entity_id(raw: Dict[str, Any]) -> Optional[str]:
    for key in _ENTITY_KEYS:
        value = raw.get(key)
        if value:
            return str(value)
    return None

def _validate(model: Type[M], data: Dict[str, Any]) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        log.debug("입력 검증 실패", model=model.__name__, field=where)
        raise InvalidArgument(f"{where}: {first.get('msg')}" if where else first.get("msg", "invalid"),
                              errors=e.errors(include_url=False)) from e

def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}

def _parse_date(field: str, value: Any) -> Optional[datetime]:
    """날짜 문자열 파싱. 시간대가 없으면 UTC 로 간주합니다."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = date_parser.parse(str(value))
    except (ValueError, OverflowError) as e:
        raise InvalidArgument(f"{field}: unparseable date {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

def to_location_sample(raw: Dict[str, Any]) -> LocationSample:
    """
    원시 위치 페이로드를 LocationSample 로 변환합니다.

    Args:
        raw: {"entityId"|"touristId", "latitude", "longitude", ...}

    Returns:
        LocationSample

    Raises:
        InvalidArgument: 식별자 누락, 좌표 범위 초과, 숫자가 아닌 값
    """
    if not isinstance(raw, dict):
        raise InvalidArgument("payload must be an object")

    entity_id = _entity_id(raw)
    if not entity_id:
        raise InvalidArgument("entityId is required")

    lat = raw.get("latitude", raw.get("lat"))
    lon = raw.get("longitude", raw.get("lon", raw.get("lng")))
    if lat is None or lon is None:
        raise InvalidArgument("latitude and longitude are required")
    if isinstance(lat, bool) or isinstance(lon, bool):
        raise InvalidArgument("coordinates must be numbers")
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError) as e:
        raise InvalidArgument(f"coordinates must be numbers: {e}") from e
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise InvalidArgument(f"coordinates out of range: latitude={lat} longitude={lon}")

    data = _drop_none({
        "entityId": entity_id,
        "latitude": lat,
        "longitude": lon,
        "timestamp": raw.get("timestamp"),
        "accuracy": raw.get("accuracy"),
        "speed": raw.get("speed"),
        "heading": raw.get("heading"),
        "altitude": raw.get("altitude"),
        "batteryLevel": raw.get("batteryLevel", raw.get("battery_level")),
        "source": raw.get("source"),
    })
    return _validate(LocationSample, data)

def to_emergency_report(raw: Dict[str, Any]) -> EmergencyReport:
    if not isinstance(raw, dict):
        raise InvalidArgument("payload must be an object")
    return _validate(EmergencyReport, _drop_none({
        "entityId": _entity_id(raw),
        "latitude": raw.get("latitude", raw.get("lat")),
        "longitude": raw.get("longitude", raw.get("lon", raw.get("lng"))),
        "message": raw.get("message"),
        "trigger": raw.get("trigger") or raw.get("emergencyType"),
        "source": raw.get("source"),
    }))

def to_device_status(raw: Dict[str, Any]) -> DeviceStatus:
    if not isinstance(raw, dict):
        raise InvalidArgument("payload must be an object")
    return _validate(DeviceStatus, _drop_none({
        "entityId": _entity_id(raw),
        "batteryLevel": raw.get("batteryLevel", raw.get("battery_level")),
        "deviceId": raw.get("deviceId") or raw.get("device_id"),
        "networkType": raw.get("networkType") or raw.get("network_type"),
    }))

def to_alert_query(raw: Dict[str, Any]) -> AlertQuery:
    """
    쿼리 파라미터를 AlertQuery 로 변환합니다.

    날짜는 dateutil 이 해석할 수 있는 문자열이며, 파싱할 수 없으면 InvalidArgument.
    """
    data = _drop_none({
        "entityId": _entity_id(raw),
        "severity": raw.get("severity") or None,
        "acknowledged": raw.get("acknowledged"),
        "type": raw.get("type") or None,
        "regionId": raw.get("regionId") or raw.get("region_id") or None,
        "startDate": _parse_date("startDate", raw.get("startDate") or raw.get("start_date") or None),
        "endDate": _parse_date("endDate", raw.get("endDate") or raw.get("end_date") or None),
    })
    query = _validate(AlertQuery, data)
    if query.start_date and query.end_date and query.start_date > query.end_date:
        raise InvalidArgument("startDate must not be after endDate")
    return query

def to_page_request(raw: Dict[str, Any], default_limit: int = 20) -> PageRequest:
    """page / limit 을 검증합니다 (page ≥ 1, 1 ≤ limit ≤ 100)."""
    return _validate(PageRequest, _drop_none({
        "page": raw.get("page"),
        "limit": raw.get("limit", default_limit),
    }))

def _region_payload(raw: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise InvalidArgument("payload must be an object")
    data = dict(raw)
    # "type" 은 영역 타입의 별칭
    if "type" in data and "regionType" not in data:
        data["regionType"] = data.pop("type")
    return data

def to_region_input(raw: Dict[str, Any]) -> RegionInput:
    return _validate(RegionInput, _region_payload(raw))

def to_region_update(raw: Dict[str, Any]) -> RegionUpdate:
    update = _validate(RegionUpdate, _region_payload(raw))
    if not update.model_fields_set:
        raise InvalidArgument("no updatable fields supplied")
    return update

def to_region_query(raw: Dict[str, Any]) -> RegionQuery:
    return _validate(RegionQuery, _drop_none({
        "regionType": raw.get("type") or raw.get("regionType") or None,
        "isActive": raw.get("isActive"),
        "riskLevel": raw.get("riskLevel"),
        "search": raw.get("search") or None,
    }))
