"""
Observability 모듈 단위 테스트

이 모듈은 헬스 체크, 메트릭, 로깅, 오류 매핑 등의 관찰 가능성 기능을 테스트합니다.
"""

import logging
import time
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from tourist_safety.core.errors import (
    AlreadyAcknowledged,
    AlreadyResolved,
    DuplicateKey,
    InvalidArgument,
    NotFound,
    RegionInUse,
    TrackingError,
    TransientStoreFailure,
)
from tourist_safety.observability.health import create_app, status_for
from tourist_safety.observability.logging_setup import InterceptHandler, get_logger, setup_logging
from tourist_safety.observability.metrics import (
    evaluation_seconds,
    geofence_transitions,
    queue_depth,
    reconnects,
    region_failures,
)


@pytest.fixture
def orchestrator():
    """저장소 접근을 흉내내는 오케스트레이터"""
    orch = MagicMock()
    orch.entities.count = AsyncMock(return_value=3)
    return orch


@pytest.fixture
def client(sample_settings, orchestrator):
    """테스트용 클라이언트"""
    return TestClient(create_app(sample_settings, orchestrator))


class TestHealthEndpoints:
    """헬스 체크 엔드포인트 테스트"""

    def test_health_endpoint(self, client):
        """헬스 체크 엔드포인트 테스트"""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "test-service"
        assert "timestamp" in data

    def test_ready_endpoint(self, client, orchestrator):
        """레디니스 체크 엔드포인트 테스트"""
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"
        orchestrator.entities.count.assert_awaited_once()

    def test_ready_store_unavailable(self, client, orchestrator):
        """저장소 장애 시 503"""
        orchestrator.entities.count.side_effect = TransientStoreFailure("database is locked")
        response = client.get("/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unavailable"
        assert data["error"] == "transient_store_failure"

    def test_metrics_endpoint(self, client):
        """메트릭 엔드포인트 테스트"""
        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        content = response.text
        assert "# HELP" in content
        assert "geofence_transitions_total" in content

    def test_metrics_disabled(self, sample_settings, orchestrator):
        sample_settings.observability.metrics_enabled = False
        client = TestClient(create_app(sample_settings, orchestrator))
        assert client.get("/metrics").status_code == 503

    def test_info_endpoint(self, client):
        """정보 엔드포인트 테스트"""
        response = client.get("/info")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "test-service"
        assert data["version"] == "1.0.0"
        assert data["log_level"] == "INFO"
        assert data["ledger_enabled"] is False
        assert "uptime_seconds" in data

    def test_root_endpoint(self, client):
        """루트 엔드포인트 테스트"""
        response = client.get("/")

        assert response.status_code == 200
        endpoints = response.json()["endpoints"]
        for key in ("health", "ready", "metrics", "info", "alerts", "regions", "tracking", "entities"):
            assert key in endpoints


class TestErrorMapping:
    """도메인 오류 → HTTP 상태 매핑 테스트"""

    @pytest.mark.parametrize("error,status", [
        (InvalidArgument("bad"), 400),
        (NotFound("gone"), 404),
        (AlreadyAcknowledged("twice"), 409),
        (AlreadyResolved("twice"), 409),
        (DuplicateKey("dup"), 409),
        (RegionInUse("busy"), 409),
        (TransientStoreFailure("io"), 503),
        (TrackingError("unknown"), 500),
    ])
    def test_status_for(self, error, status):
        assert status_for(error) == status

    def test_error_body(self, client, orchestrator):
        orchestrator.entities.get = AsyncMock(side_effect=NotFound("entity not found: t9"))
        response = client.get("/entities/t9")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "not_found", "message": "entity not found: t9"}

    def test_error_details(self):
        error = RegionInUse("region has 2 unacknowledged alerts", region_id="r1", active_alerts=2)
        assert error.kind == "region_in_use"
        assert error.details == {"region_id": "r1", "active_alerts": 2}
        assert isinstance(error, TrackingError)


class TestMetricsCollection:
    """메트릭 수집 테스트"""

    def test_labelled_counters(self):
        before = geofence_transitions.labels(type="geofence_entry", severity="critical")._value.get()
        geofence_transitions.labels(type="geofence_entry", severity="critical").inc()
        after = geofence_transitions.labels(type="geofence_entry", severity="critical")._value.get()
        assert after == before + 1

    def test_region_failures_counter(self):
        region_failures.labels(reason="timeout").inc(2)
        assert region_failures.labels(reason="timeout")._value.get() >= 2

    def test_reconnects_counter(self):
        before = reconnects.labels(client="remote")._value.get()
        reconnects.labels(client="remote").inc()
        assert reconnects.labels(client="remote")._value.get() == before + 1

    def test_queue_depth_gauge(self):
        queue_depth.set(10)
        queue_depth.dec(4)
        assert queue_depth._value.get() == 6

    def test_evaluation_histogram_timer(self):
        """히스토그램 컨텍스트 매니저 테스트"""
        before = evaluation_seconds._sum.get()
        with evaluation_seconds.time():
            time.sleep(0.01)
        assert evaluation_seconds._sum.get() - before >= 0.01


class TestLoggingSetup:
    """로깅 설정 테스트"""

    def test_intercept_handler_emit(self):
        """InterceptHandler emit 테스트"""
        handler = InterceptHandler()

        record = Mock()
        record.levelname = "INFO"
        record.levelno = 20
        record.getMessage.return_value = "Test message"
        record.exc_info = None

        with patch("tourist_safety.observability.logging_setup.logger") as mock_logger:
            handler.emit(record)

            mock_logger.opt.assert_called_once_with(depth=6, exception=None)
            mock_logger.opt.return_value.log.assert_called_once()

    def test_intercept_handler_unknown_level(self):
        """알 수 없는 레벨은 숫자 레벨로 전달"""
        handler = InterceptHandler()

        record = Mock()
        record.levelname = "CUSTOM"
        record.levelno = 25
        record.getMessage.return_value = "custom"
        record.exc_info = None

        with patch("tourist_safety.observability.logging_setup.logger") as mock_logger:
            mock_logger.level.side_effect = ValueError("unknown level")
            handler.emit(record)
            mock_logger.opt.return_value.log.assert_called_once_with(25, "custom")

    def test_setup_logging_hooks_stdlib(self):
        setup_logging("DEBUG")
        assert any(isinstance(h, InterceptHandler) for h in logging.getLogger().handlers)
        assert isinstance(logging.getLogger("uvicorn").handlers[0], InterceptHandler)

    def test_get_logger_binds_name(self):
        log = get_logger("tourist_safety.test", entity_id="t1")
        with patch("tourist_safety.observability.logging_setup.logger") as mock_logger:
            get_logger("x", a=1)
            mock_logger.bind.assert_called_once_with(name="x", a=1)
        log.info("바인딩 확인")
