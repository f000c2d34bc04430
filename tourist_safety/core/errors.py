"""
Error taxonomy for tourist safety tracking.

Every failure the core and its storage adapters can report maps to
exactly one of these kinds, so callers can tell "already handled"
apart from "truly broken".
"""

class TrackingError(Exception):
    """모든 도메인 오류의 기반 클래스"""

    kind = "internal_error"

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.kind)
        self.message = message or self.kind
        self.details = details

class InvalidArgument(TrackingError):
    """잘못된 좌표, 파싱 불가 날짜, 누락된 식별자. 저장소 접근 전에 검출됩니다."""

    kind = "invalid_argument"

class NotFound(TrackingError):
    """단일 대상 연산에 필요한 alert/entity/region 이 없음"""

    kind = "not_found"

class Conflict(TrackingError):
    kind = "conflict"

class AlreadyAcknowledged(Conflict):
    """이미 확인된 경보를 다시 확인하려 함 (무시하지 않고 보고)"""

    kind = "already_acknowledged"

class AlreadyResolved(Conflict):
    kind = "already_resolved"

class DuplicateKey(Conflict):
    """alertId 또는 활성 영역 이름 충돌"""

    kind = "duplicate_key"

class RegionInUse(Conflict):
    """미확인 경보가 남아 있는 영역은 삭제할 수 없음"""

    kind = "region_in_use"

class TransientStoreFailure(TrackingError):
    """저장소 I/O 실패. 재시도 가능."""

    kind = "transient_store_failure"
