"""
REST 라우터 테스트

FastAPI TestClient 로 요청/응답 형식과 오류 → HTTP 상태 매핑을 확인합니다.
"""

import asyncio
import math
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from tourist_safety.adapters.storage import SQLiteAlertLedger, SQLiteEntityRegistry, SQLiteRegionStore
from tourist_safety.core.alerts import AlertIdGenerator
from tourist_safety.core.geofence import GeofenceEngine
from tourist_safety.observability.health import create_app
from tourist_safety.orchestrators.tracking import TrackingOrchestrator

CIRCLE = {
    "name": "India Gate Zone",
    "type": "warning",
    "shape": {"kind": "Circle", "center": {"longitude": 77.209, "latitude": 28.6139}, "radiusM": 500},
    "riskLevel": 5,
}


@pytest.fixture
def notifier():
    return AsyncMock()


@pytest.fixture
def app(temp_db_path, sample_settings, notifier):
    """테스트용 FastAPI 앱 (SQLite 임시 파일)"""
    entities = SQLiteEntityRegistry(temp_db_path)
    ledger = SQLiteAlertLedger(temp_db_path, entities)
    regions = SQLiteRegionStore(temp_db_path, ledger)

    async def _init():
        for store in (entities, ledger, regions):
            await store.init()

    asyncio.run(_init())
    orchestrator = TrackingOrchestrator(
        entities=entities,
        regions=regions,
        ledger=ledger,
        engine=GeofenceEngine(ledger, id_generator=AlertIdGenerator()),
        notifier=notifier,
    )
    return create_app(sample_settings, orchestrator)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def register(client, entity_id="t1"):
    response = client.post("/entities", json={"touristId": entity_id, "displayName": "Asha"})
    assert response.status_code == 201
    return response.json()["data"]


class TestEntities:
    """대상 등록 라우트 테스트"""

    def test_register_and_get(self, client):
        data = register(client)
        assert data["entityId"] == "t1"
        assert data["status"] == "active"

        response = client.get("/entities/t1")
        assert response.status_code == 200
        assert response.json()["data"]["displayName"] == "Asha"

    def test_register_requires_id(self, client):
        response = client.post("/entities", json={"displayName": "nobody"})
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "invalid_argument", "message": "entityId is required"}

    def test_get_missing(self, client):
        response = client.get("/entities/ghost")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestTracking:
    """추적 라우트 테스트"""

    def test_location_entry_and_exit(self, client, notifier):
        register(client)
        assert client.post("/regions", json=CIRCLE).status_code == 201

        response = client.post("/tracking/locations",
                               json={"touristId": "t1", "latitude": 28.6139, "longitude": 77.209})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["stale"] is False
        alerts = body["data"]["alerts"]
        assert [(a["type"], a["severity"]) for a in alerts] == [("geofence_entry", "warning")]
        assert alerts[0]["message"]["english"] == "Entered India Gate Zone"
        assert body["data"]["failedRegions"] == []

        response = client.post("/tracking/locations",
                               json={"touristId": "t1", "latitude": 28.6139 + 0.009, "longitude": 77.209})
        assert [a["type"] for a in response.json()["data"]["alerts"]] == ["geofence_exit"]
        assert notifier.notify.await_count == 2

    def test_invalid_coordinates(self, client):
        register(client)
        response = client.post("/tracking/locations", json={"touristId": "t1", "latitude": 95, "longitude": 0})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_argument"

    def test_unknown_entity(self, client):
        response = client.post("/tracking/locations", json={"touristId": "ghost", "latitude": 0, "longitude": 0})
        assert response.status_code == 404

    def test_emergency(self, client):
        register(client)
        response = client.post("/tracking/emergency",
                               json={"touristId": "t1", "latitude": 28.6, "longitude": 77.2})
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["type"] == "emergency"
        assert data["severity"] == "emergency"
        assert data["metadata"]["trigger"] == "panic_button"
        assert client.get("/entities/t1").json()["data"]["status"] == "emergency"

    def test_device_status(self, client):
        register(client)
        low = client.post("/tracking/device-status", json={"touristId": "t1", "batteryLevel": 10})
        assert low.json()["data"]["alert"]["type"] == "battery_low"
        ok = client.post("/tracking/device-status", json={"touristId": "t1", "batteryLevel": 80})
        assert ok.json()["data"] == {"alert": None}

    def test_stats(self, client):
        register(client)
        client.post("/tracking/emergency", json={"touristId": "t1", "latitude": 0, "longitude": 0})
        data = client.get("/tracking/stats").json()["data"]
        assert data["totalTourists"] == 1
        assert data["emergencyAlerts"] == 1


class TestAlerts:
    """경보 라우트 테스트"""

    def _emergency(self, client, entity_id="t1"):
        response = client.post("/tracking/emergency",
                               json={"touristId": entity_id, "latitude": 0, "longitude": 0})
        return response.json()["data"]["alertId"]

    def test_query_pagination(self, client):
        register(client)
        for _ in range(25):
            self._emergency(client)

        response = client.get("/alerts", params={"severity": "emergency", "acknowledged": "false",
                                                 "touristId": "t1", "limit": 20})
        body = response.json()
        assert len(body["data"]) == 20
        assert body["pagination"] == {
            "currentPage": 1,
            "totalPages": math.ceil(25 / 20),
            "totalRecords": 25,
            "limit": 20,
        }

    @pytest.mark.parametrize("params", [
        {"startDate": "not-a-date"},
        {"severity": "catastrophic"},
        {"page": "0"},
        {"limit": "500"},
    ])
    def test_query_invalid(self, client, params):
        response = client.get("/alerts", params=params)
        assert response.status_code == 400

    def test_query_unknown_entity(self, client):
        assert client.get("/alerts", params={"touristId": "ghost"}).status_code == 404

    def test_acknowledge_twice(self, client):
        register(client)
        alert_id = self._emergency(client)

        first = client.post(f"/alerts/{alert_id}/acknowledge", json={"acknowledgedBy": "officer-7"})
        assert first.status_code == 200
        assert first.json()["data"]["acknowledgment"]["acknowledgedBy"] == "officer-7"

        second = client.post(f"/alerts/{alert_id}/acknowledge", json={"acknowledgedBy": "officer-8"})
        assert second.status_code == 409
        assert second.json()["error"] == "already_acknowledged"

        fetched = client.get(f"/alerts/{alert_id}").json()["data"]
        assert fetched["acknowledgment"]["acknowledgedAt"] == first.json()["data"]["acknowledgment"]["acknowledgedAt"]

    def test_acknowledge_without_body(self, client):
        register(client)
        alert_id = self._emergency(client)
        response = client.post(f"/alerts/{alert_id}/acknowledge")
        assert response.json()["data"]["acknowledgment"]["acknowledgedBy"] == "system"

    def test_acknowledge_missing(self, client):
        assert client.post("/alerts/nope/acknowledge", json={}).status_code == 404

    def test_resolve(self, client):
        register(client)
        alert_id = self._emergency(client)
        assert client.post(f"/alerts/{alert_id}/resolve", json={"resolvedBy": "officer-7"}).status_code == 200
        again = client.post(f"/alerts/{alert_id}/resolve", json={})
        assert again.status_code == 409
        assert again.json()["error"] == "already_resolved"

    def test_active(self, client):
        register(client)
        first = self._emergency(client)
        second = self._emergency(client)
        client.post(f"/alerts/{first}/acknowledge", json={})

        body = client.get("/alerts/active").json()
        assert body["count"] == 1
        assert [a["alertId"] for a in body["data"]] == [second]

    def test_bulk_purge_twice(self, client):
        register(client)
        for _ in range(3):
            self._emergency(client)

        response = client.delete("/alerts/entity/t1", params={"acknowledgedBy": "officer-7"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["alertsProcessed"] == 3
        assert data["alertsDeleted"] == 3
        assert data["acknowledgedBy"] == "officer-7"
        assert client.get("/entities/t1").json()["data"]["status"] == "active"

        assert client.delete("/alerts/entity/t1").status_code == 404


class TestRegions:
    """영역 관리 라우트 테스트"""

    def test_crud(self, client):
        created = client.post("/regions", json={**CIRCLE, "createdBy": "admin"})
        assert created.status_code == 201
        region = created.json()["data"]
        assert region["regionType"] == "warning"
        assert region["createdBy"] == "admin"
        region_id = region["id"]

        assert client.get(f"/regions/{region_id}").json()["data"]["name"] == "India Gate Zone"

        patched = client.patch(f"/regions/{region_id}", json={"riskLevel": 9, "modifiedBy": "editor"})
        assert patched.status_code == 200
        assert patched.json()["data"]["riskLevel"] == 9
        assert patched.json()["data"]["lastModifiedBy"] == "editor"

        deleted = client.delete(f"/regions/{region_id}", params={"deletedBy": "admin"})
        assert deleted.status_code == 200
        assert deleted.json()["data"]["isActive"] is False

    def test_duplicate_name(self, client):
        client.post("/regions", json=CIRCLE)
        response = client.post("/regions", json=CIRCLE)
        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_key"

    def test_invalid_region(self, client):
        response = client.post("/regions", json={**CIRCLE, "riskLevel": 11})
        assert response.status_code == 400

    def test_empty_patch(self, client):
        region_id = client.post("/regions", json=CIRCLE).json()["data"]["id"]
        assert client.patch(f"/regions/{region_id}", json={}).status_code == 400

    def test_delete_in_use(self, client):
        register(client)
        region_id = client.post("/regions", json=CIRCLE).json()["data"]["id"]
        client.post("/tracking/locations", json={"touristId": "t1", "latitude": 28.6139, "longitude": 77.209})

        response = client.delete(f"/regions/{region_id}")
        assert response.status_code == 409
        assert response.json()["error"] == "region_in_use"

    def test_patch_deactivate_in_use(self, client):
        register(client)
        region_id = client.post("/regions", json=CIRCLE).json()["data"]["id"]
        client.post("/tracking/locations", json={"touristId": "t1", "latitude": 28.6139, "longitude": 77.209})

        response = client.patch(f"/regions/{region_id}", json={"isActive": False})
        assert response.status_code == 409
        assert response.json()["error"] == "region_in_use"
        assert client.get(f"/regions/{region_id}").json()["data"]["isActive"] is True

    def test_list_filters(self, client):
        client.post("/regions", json=CIRCLE)
        client.post("/regions", json={**CIRCLE, "name": "Flood Zone", "type": "danger", "riskLevel": 9})

        body = client.get("/regions", params={"type": "danger"}).json()
        assert [r["name"] for r in body["data"]] == ["Flood Zone"]
        assert body["pagination"]["totalRecords"] == 1

        body = client.get("/regions", params={"search": "Gate"}).json()
        assert [r["name"] for r in body["data"]] == ["India Gate Zone"]

    def test_get_missing(self, client):
        assert client.get("/regions/missing").status_code == 404
