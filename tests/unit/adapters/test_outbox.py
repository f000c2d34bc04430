"""
SQLite Outbox 테스트
"""


class TestSQLiteOutbox:
    """Outbox 테스트"""

    async def test_enqueue_and_peek(self, outbox):
        oid = await outbox.enqueue("geofence_alert", "suraksha/geofence_alert/critical", b'{"a": 1}', qos=1)
        assert oid > 0

        item = await outbox.peek_oldest()
        assert item.id == oid
        assert item.event == "geofence_alert"
        assert item.topic == "suraksha/geofence_alert/critical"
        assert item.payload == b'{"a": 1}'
        assert item.retain is False
        assert item.attempts == 0
        # peek 은 삭제하지 않음
        assert await outbox.get_count() == 1

    async def test_fifo_order(self, outbox):
        first = await outbox.enqueue("e1", "t/1", b"1")
        await outbox.enqueue("e2", "t/2", b"2")
        assert (await outbox.peek_oldest()).id == first
        await outbox.delete(first)
        assert (await outbox.peek_oldest()).event == "e2"

    async def test_mark_attempt(self, outbox):
        oid = await outbox.enqueue("e1", "t/1", b"1", retain=True)
        await outbox.mark_attempt(oid, "broker down")
        await outbox.mark_attempt(oid, "broker down")
        item = await outbox.peek_oldest()
        assert item.attempts == 2
        assert item.retain is True

    async def test_empty(self, outbox):
        assert await outbox.peek_oldest() is None
        assert await outbox.get_count() == 0
