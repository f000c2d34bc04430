"""
SQLite 추적 대상 레지스트리 테스트
"""

from datetime import datetime, timedelta, timezone

import pytest

from tourist_safety.core.errors import NotFound
from tourist_safety.core.models import LocationSample


class TestEntityRegistry:
    """레지스트리 테스트"""

    async def test_register_and_get(self, entities):
        entity = await entities.register("t1", "Asha")
        assert entity.entity_id == "t1"
        assert entity.display_name == "Asha"
        assert entity.status == "active"
        assert entity.registered_at is not None
        assert entity.last_location is None
        assert await entities.exists("t1") is True
        assert await entities.exists("t2") is False

    async def test_register_is_upsert(self, entities):
        first = await entities.register("t1", "Asha")
        again = await entities.register("t1")
        assert again.display_name == "Asha"
        assert again.registered_at == first.registered_at

        renamed = await entities.register("t1", "Asha K")
        assert renamed.display_name == "Asha K"
        assert await entities.count() == 1

    async def test_get_missing(self, entities):
        with pytest.raises(NotFound):
            await entities.get("ghost")

    async def test_record_location(self, entities):
        await entities.register("t1")
        ts = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
        await entities.record_location(LocationSample(entity_id="t1", longitude=77.2, latitude=28.6, timestamp=ts))

        entity = await entities.get("t1")
        assert entity.last_location.longitude == 77.2
        assert entity.last_seen_at == ts

    async def test_record_location_missing(self, entities):
        with pytest.raises(NotFound):
            await entities.record_location(LocationSample(entity_id="ghost", longitude=0, latitude=0))

    async def test_set_status(self, entities):
        await entities.register("t1")
        await entities.set_status("t1", "emergency")
        assert (await entities.get("t1")).status == "emergency"
        with pytest.raises(NotFound):
            await entities.set_status("ghost", "active")

    async def test_count_active_since(self, entities):
        now = datetime.now(timezone.utc)
        for entity_id, age in (("t1", timedelta(minutes=5)), ("t2", timedelta(days=2))):
            await entities.register(entity_id)
            await entities.record_location(
                LocationSample(entity_id=entity_id, longitude=0, latitude=0, timestamp=now - age)
            )
        await entities.register("t3")

        assert await entities.count() == 3
        assert await entities.count_active_since(now - timedelta(hours=24)) == 1
