"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import os
import tempfile
from unittest.mock import AsyncMock

import pytest

from tourist_safety.adapters.storage import SQLiteAlertLedger, SQLiteEntityRegistry, SQLiteOutbox, SQLiteRegionStore
from tourist_safety.core.alerts import AlertIdGenerator
from tourist_safety.core.geofence import GeofenceEngine
from tourist_safety.core.models import CircleShape, Coordinates, PolygonShape, RegionInput
from tourist_safety.orchestrators.tracking import TrackingOrchestrator
from tourist_safety.settings import Settings

# 뉴델리 인디아 게이트 부근
NEW_DELHI = (77.209, 28.6139)


@pytest.fixture
def temp_db_path():
    """임시 데이터베이스 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # 테스트 후 파일 정리
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    settings.observability.http_port = 8080
    return settings


@pytest.fixture
def circle_input():
    """반경 500m 원형 영역 입력 (뉴델리)"""
    return RegionInput(
        name="India Gate Zone",
        region_type="warning",
        shape=CircleShape(center=Coordinates(longitude=NEW_DELHI[0], latitude=NEW_DELHI[1]), radius_m=500),
        risk_level=5,
    )


@pytest.fixture
def danger_polygon_input():
    """위험 폴리곤 영역 입력"""
    return RegionInput(
        name="Flood Zone",
        region_type="danger",
        shape=PolygonShape(ring=[(77.0, 28.0), (77.1, 28.0), (77.1, 28.1), (77.0, 28.1)]),
        risk_level=9,
    )


@pytest.fixture
async def entities(temp_db_path):
    registry = SQLiteEntityRegistry(temp_db_path)
    await registry.init()
    return registry


@pytest.fixture
async def ledger(temp_db_path, entities):
    store = SQLiteAlertLedger(temp_db_path, entities)
    await store.init()
    return store


@pytest.fixture
async def regions(temp_db_path, ledger):
    store = SQLiteRegionStore(temp_db_path, ledger)
    await store.init()
    return store


@pytest.fixture
async def outbox(temp_db_path):
    store = SQLiteOutbox(temp_db_path)
    await store.init()
    return store


@pytest.fixture
def engine(ledger):
    return GeofenceEngine(ledger, id_generator=AlertIdGenerator())


@pytest.fixture
def mock_notifier():
    """테스트용 알림 포트"""
    return AsyncMock()


@pytest.fixture
def mock_incident_ledger():
    """테스트용 사고 원장 클라이언트"""
    client = AsyncMock()
    client.log_incident.return_value = "tx-1"
    return client


@pytest.fixture
def orchestrator(entities, regions, ledger, engine, mock_notifier, mock_incident_ledger):
    return TrackingOrchestrator(
        entities=entities,
        regions=regions,
        ledger=ledger,
        engine=engine,
        notifier=mock_notifier,
        incident_ledger=mock_incident_ledger,
    )


# pytest 설정
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "slow: 느린 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "integration: 통합 테스트 마커"
    )


def pytest_collection_modifyitems(config, items):
    """테스트 아이템 수정"""
    for item in items:
        # 통합 테스트 마커 추가
        if "integration" in item.name or "scenario" in item.name:
            item.add_marker(pytest.mark.integration)
