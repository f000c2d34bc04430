"""
Device event ingestion adapter for tourist safety tracking.

Subscribes to the remote broker (default `tourists/+/events`) and
yields decoded JSON payloads. The entity id is taken from the single
`+` topic level when the payload does not carry one; payloads without
a `kind` are treated as location samples.
"""

import asyncio
import json
import ssl
from typing import AsyncIterator, Dict, Optional

from aiomqtt import Client, MqttError, Will

from tourist_safety.observability import metrics
from tourist_safety.observability.logging_setup import get_logger

log = get_logger("tourist_safety.mqtt_remote")

class LocationIngestor:
    """원격 MQTT 단말 이벤트 수집 어댑터"""

    def __init__(
        self,
        host: str,
        port: int,
        topic: str,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        tls: bool = False,
        client_id: Optional[str] = None,
        keepalive: int = 30,
        qos: int = 1,
        lwt_topic: str = "suraksha/state",
        lwt_payload: str = "offline",
        reconnect_delay: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.topic = topic
        self.username = username
        self.password = password
        self.tls = tls
        self.client_id = client_id
        self.keepalive = keepalive
        self.qos = qos
        self.lwt_topic = lwt_topic
        self.lwt_payload = lwt_payload
        self.reconnect_delay = reconnect_delay

        levels = topic.split("/")
        self._entity_level = levels.index("+") if "+" in levels else None
        self._running = False

    def _make_client(self) -> Client:
        tls_context = ssl.create_default_context() if self.tls else None
        will = Will(topic=self.lwt_topic, payload=self.lwt_payload.encode("utf-8"), qos=1, retain=True)
        return Client(
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            identifier=self.client_id,
            keepalive=self.keepalive,
            tls_context=tls_context,
            will=will,
        )

    def decode(self, topic: str, payload: bytes) -> Optional[Dict]:
        """
        메시지를 디코딩합니다. 형식이 잘못되면 None (로그 후 폐기).

        Args:
            topic: 수신 토픽
            payload: 원시 페이로드
        """
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            log.error("페이로드 디코딩 오류", error=str(e), topic=topic)
            metrics.events_received.labels(kind="malformed").inc()
            return None
        if not isinstance(data, dict):
            log.error("페이로드가 객체가 아님", topic=topic)
            metrics.events_received.labels(kind="malformed").inc()
            return None

        data.setdefault("kind", "location")
        if self._entity_level is not None and not any(
                data.get(k) for k in ("entityId", "entity_id", "touristId")):
            levels = topic.split("/")
            if len(levels) > self._entity_level:
                data["entityId"] = levels[self._entity_level]
        metrics.events_received.labels(kind=str(data["kind"])).inc()
        return data

    async def recv(self) -> AsyncIterator[Dict]:
        self._running = True
        while self._running:
            try:
                async with self._make_client() as client:
                    await client.subscribe(self.topic, qos=self.qos)
                    log.info("토픽 구독됨", topic=self.topic, host=self.host, port=self.port)
                    async for message in client.messages:
                        if not self._running:
                            break
                        data = self.decode(str(message.topic), message.payload)
                        if data is not None:
                            yield data
            except MqttError as e:
                metrics.reconnects.labels(client="remote").inc()
                log.error("원격 MQTT 오류", error=str(e), retry_in=self.reconnect_delay)
                if self._running:
                    await asyncio.sleep(self.reconnect_delay)

    async def stop(self) -> None:
        self._running = False
        log.info("원격 MQTT 수집 중지")
