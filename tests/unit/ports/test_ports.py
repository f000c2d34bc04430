"""
Port 모듈 단위 테스트

이 모듈은 어댑터들이 포트 인터페이스의 계약을 충족하는지 테스트합니다.
"""

import inspect

import pytest

from tourist_safety.adapters.ledger.client import IncidentLedgerClient
from tourist_safety.adapters.mqtt_local.publisher_async import DashboardPublisher
from tourist_safety.adapters.mqtt_remote.client_async import LocationIngestor
from tourist_safety.adapters.storage import SQLiteAlertLedger, SQLiteEntityRegistry, SQLiteRegionStore
from tourist_safety.ports import (
    AlertLedgerPort,
    EntityRegistryPort,
    IncidentLedgerPort,
    LocationIngestPort,
    NotificationPort,
    RegionSourcePort,
)


def protocol_methods(port):
    return [name for name, _ in inspect.getmembers(port, inspect.isfunction) if not name.startswith("_")]


@pytest.mark.parametrize("port,adapter", [
    (AlertLedgerPort, SQLiteAlertLedger),
    (RegionSourcePort, SQLiteRegionStore),
    (EntityRegistryPort, SQLiteEntityRegistry),
    (NotificationPort, DashboardPublisher),
    (IncidentLedgerPort, IncidentLedgerClient),
    (LocationIngestPort, LocationIngestor),
])
class TestAdapterConformance:
    """어댑터 ↔ 포트 계약 테스트"""

    def test_methods_present(self, port, adapter):
        """포트의 모든 메서드를 어댑터가 구현"""
        for name in protocol_methods(port):
            assert callable(getattr(adapter, name, None)), f"{adapter.__name__}.{name} 누락"

    def test_parameters_compatible(self, port, adapter):
        """어댑터 메서드가 포트의 인자 이름을 모두 받음"""
        for name in protocol_methods(port):
            expected = inspect.signature(getattr(port, name)).parameters
            actual = inspect.signature(getattr(adapter, name)).parameters
            assert set(expected) <= set(actual), f"{adapter.__name__}.{name}"


class TestLocationIngestPort:
    """단말 이벤트 수집 포트 인터페이스 테스트"""

    async def test_ingest_port_implementation(self):
        class MockIngestPort:
            async def recv(self):
                for event in ({"kind": "location"}, {"kind": "emergency"}):
                    yield event

            async def stop(self):
                return None

        events = [event async for event in MockIngestPort().recv()]
        assert [e["kind"] for e in events] == ["location", "emergency"]

    async def test_ingest_port_error_handling(self):
        """수집 중 오류는 소비자에게 전파"""
        class ErrorIngestPort:
            async def recv(self):
                raise RuntimeError("Ingest error")
                yield

        with pytest.raises(RuntimeError, match="Ingest error"):
            async for _ in ErrorIngestPort().recv():
                pass
