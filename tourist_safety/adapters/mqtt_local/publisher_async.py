"""
Dashboard broadcast adapter for tourist safety tracking.

Implements NotificationPort with the outbox pattern: notify() only
writes to the SQLite outbox, and a background worker publishes the
oldest item to `{prefix}/{event}/{severity}` on the local MQTT broker,
retrying with exponential backoff until max_retries is exceeded.
"""

import asyncio
import ssl
from typing import Optional

from aiomqtt import Client, MqttError, Will

from tourist_safety.adapters.storage.sqlite_outbox import SQLiteOutbox
from tourist_safety.common.retry import backoff_delay
from tourist_safety.core.errors import TrackingError
from tourist_safety.core.models import AlertNotification
from tourist_safety.observability import metrics
from tourist_safety.observability.logging_setup import get_logger

log = get_logger("tourist_safety.mqtt_local")

class DashboardPublisher:
    """대시보드 알림 발송 어댑터 (Outbox 패턴)"""

    def __init__(self,
                 *,
                 broker_host: str,
                 broker_port: int,
                 topic_prefix: str,
                 outbox: SQLiteOutbox,
                 username: Optional[str] = None,
                 password: Optional[str] = None,
                 tls: bool = False,
                 client_id: Optional[str] = None,
                 keepalive: int = 30,
                 lwt_topic: str = "suraksha/state",
                 qos_default: int = 1,
                 retain_default: bool = False,
                 backoff_initial: float = 0.5,
                 backoff_max: float = 30.0,
                 max_retries: int = 10,
                 poll_interval: float = 1.0,
                 dry_run: bool = False):
        """
        초기화합니다.

        Args:
            broker_host: MQTT 브로커 호스트
            broker_port: MQTT 브로커 포트
            topic_prefix: 토픽 접두사
            outbox: Outbox 인스턴스
            lwt_topic: Last Will and Testament 토픽
            backoff_initial: 초기 백오프 시간
            backoff_max: 최대 백오프 시간
            max_retries: 항목별 최대 재시도 횟수
            poll_interval: Outbox 가 비었을 때 대기 시간
            dry_run: True 면 발송 대신 로그만 남기고 항목을 삭제
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic_prefix = topic_prefix.rstrip("/")
        self.outbox = outbox
        self.username = username
        self.password = password
        self.tls = tls
        self.client_id = client_id
        self.keepalive = keepalive
        self.lwt_topic = lwt_topic
        self.qos_default = qos_default
        self.retain_default = retain_default
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.max_retries = max_retries
        self.poll_interval = poll_interval
        self.dry_run = dry_run

        self._running = False

    def topic_for(self, notification: AlertNotification) -> str:
        return f"{self.topic_prefix}/{notification.event}/{notification.severity}"

    async def notify(self, notification: AlertNotification) -> None:
        """알림을 Outbox 에 추가합니다."""
        payload = notification.model_dump_json(by_alias=True).encode("utf-8")
        oid = await self.outbox.enqueue(
            notification.event,
            self.topic_for(notification),
            payload,
            self.qos_default,
            self.retain_default,
        )
        metrics.notifications_enqueued.labels(event=notification.event).inc()
        log.debug("알림 대기열 추가", outbox_id=oid, alert_id=notification.alert_id, event=notification.event)

    def _make_client(self) -> Client:
        tls_context = ssl.create_default_context() if self.tls else None
        will = Will(topic=self.lwt_topic, payload=b"offline", qos=1, retain=True)
        return Client(
            hostname=self.broker_host,
            port=self.broker_port,
            username=self.username,
            password=self.password,
            identifier=self.client_id,
            keepalive=self.keepalive,
            tls_context=tls_context,
            will=will,
        )

    async def start(self) -> None:
        """발송 워커를 시작합니다. 연결이 끊기면 백오프 후 재연결합니다."""
        self._running = True

        if self.dry_run:
            log.warning("DRY-RUN 모드: 알림은 발송되지 않고 로그로만 남습니다")

        attempt = 0
        while self._running:
            try:
                if self.dry_run:
                    await self._run(None)
                    continue
                async with self._make_client() as client:
                    await client.publish(self.lwt_topic, b"online", qos=1, retain=True)
                    log.info(f"로컬 MQTT 브로커 연결됨: {self.broker_host}:{self.broker_port}")
                    attempt = 0
                    await self._run(client)
            except MqttError as e:
                attempt += 1
                metrics.reconnects.labels(client="local").inc()
                delay = backoff_delay(attempt, self.backoff_initial, self.backoff_max)
                log.error("로컬 MQTT 오류", error=str(e), retry_in=delay)
                if self._running:
                    await asyncio.sleep(delay)
            except TrackingError as e:
                log.error(f"Outbox 처리 오류: {e}")
                if self._running:
                    await asyncio.sleep(self.backoff_max)

    async def _run(self, client: Optional[Client]) -> None:
        while self._running:
            processed = await self._process_outbox(client)
            metrics.outbox_size.set(await self.outbox.get_count())
            if not processed:
                await asyncio.sleep(self.poll_interval)

    async def _process_outbox(self, client: Optional[Client]) -> bool:
        """
        가장 오래된 항목 하나를 처리합니다.

        Returns:
            처리할 항목이 있었으면 True
        """
        item = await self.outbox.peek_oldest()
        if not item:
            return False

        # 최대 재시도 횟수 확인
        if item.attempts >= self.max_retries:
            log.warning("최대 재시도 횟수 초과, 항목 삭제", outbox_id=item.id, topic=item.topic)
            metrics.notifications_dropped.labels(event=item.event).inc()
            await self.outbox.delete(item.id)
            return True

        if client is None:
            log.info("DRY-RUN 알림", topic=item.topic, payload=item.payload.decode("utf-8", "replace"))
            await self.outbox.delete(item.id)
            return True

        try:
            await client.publish(item.topic, item.payload, qos=item.qos, retain=item.retain)
        except MqttError as e:
            log.error("알림 발송 실패", error=str(e), outbox_id=item.id, topic=item.topic)
            metrics.publish_retries.labels(event=item.event).inc()
            await self.outbox.mark_attempt(item.id, str(e))
            # 대기와 재연결은 start() 루프에서
            raise

        await self.outbox.delete(item.id)
        metrics.notifications_published.labels(event=item.event).inc()
        log.info("알림 발송 성공", outbox_id=item.id, topic=item.topic)
        return True

    async def stop(self) -> None:
        """발송을 중지합니다."""
        self._running = False
        log.info("로컬 MQTT 발송 중지")
