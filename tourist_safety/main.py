# tourist_safety/main.py
import os, asyncio, signal
from contextlib import AsyncExitStack
import uvicorn
from tourist_safety.settings import Settings
from tourist_safety.observability.health import create_app
from tourist_safety.observability.logging_setup import setup_logging, get_logger
from tourist_safety.adapters.mqtt_remote.client_async import LocationIngestor
from tourist_safety.adapters.mqtt_local.publisher_async import DashboardPublisher
from tourist_safety.adapters.storage import SQLiteAlertLedger, SQLiteEntityRegistry, SQLiteOutbox, SQLiteRegionStore
from tourist_safety.adapters.ledger.client import IncidentLedgerClient
from tourist_safety.core.alerts import AlertIdGenerator
from tourist_safety.core.geofence import GeofenceEngine
from tourist_safety.orchestrators.tracking import TrackingOrchestrator

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def _list(name, default):
    raw = os.getenv(name)
    return [x.strip() for x in raw.split(",") if x.strip()] if raw else default

def build_settings() -> Settings:
    s = Settings()
    # 플래그
    s.dry_run = _b("DRY_RUN", s.dry_run)

    # REMOTE MQTT (단말 이벤트 수신)
    s.remote_mqtt.enabled = _b("REMOTE_MQTT_ENABLED", s.remote_mqtt.enabled)
    s.remote_mqtt.host = os.getenv("REMOTE_MQTT_HOST", s.remote_mqtt.host)
    s.remote_mqtt.port = int(os.getenv("REMOTE_MQTT_PORT", s.remote_mqtt.port))
    s.remote_mqtt.username = os.getenv("REMOTE_MQTT_USERNAME", s.remote_mqtt.username)
    s.remote_mqtt.password = os.getenv("REMOTE_MQTT_PASSWORD", s.remote_mqtt.password)
    s.remote_mqtt.client_id = os.getenv("REMOTE_MQTT_CLIENT_ID", s.remote_mqtt.client_id)
    s.remote_mqtt.keepalive = int(os.getenv("REMOTE_MQTT_KEEPALIVE", s.remote_mqtt.keepalive))
    s.remote_mqtt.tls = _b("REMOTE_MQTT_TLS", s.remote_mqtt.tls)
    s.remote_mqtt.topic = os.getenv("REMOTE_TOPIC", s.remote_mqtt.topic)

    # LOCAL MQTT (대시보드 브로드캐스트)
    s.local_mqtt.enabled = _b("LOCAL_MQTT_ENABLED", s.local_mqtt.enabled)
    s.local_mqtt.host  = os.getenv("LOCAL_MQTT_HOST", s.local_mqtt.host)
    s.local_mqtt.port  = int(os.getenv("LOCAL_MQTT_PORT", s.local_mqtt.port))
    s.local_mqtt.username = os.getenv("LOCAL_MQTT_USERNAME", s.local_mqtt.username)
    s.local_mqtt.password = os.getenv("LOCAL_MQTT_PASSWORD", s.local_mqtt.password)
    s.local_mqtt.topic_prefix = os.getenv("LOCAL_TOPIC_PREFIX", s.local_mqtt.topic_prefix)

    # 저장소
    s.storage.db_path = os.getenv("DB_PATH", s.storage.db_path)

    # 지오펜스
    s.geofence.critical_region_types = _list("CRITICAL_REGION_TYPES", s.geofence.critical_region_types)
    s.geofence.escalation_risk_level = int(os.getenv("ESCALATION_RISK_LEVEL", s.geofence.escalation_risk_level))
    s.geofence.region_timeout_sec = float(os.getenv("REGION_TIMEOUT_SEC", s.geofence.region_timeout_sec))

    # 추적
    s.tracking.auto_register_entities = _b("AUTO_REGISTER_ENTITIES", s.tracking.auto_register_entities)
    s.tracking.reject_stale_samples = _b("REJECT_STALE_SAMPLES", s.tracking.reject_stale_samples)
    s.tracking.max_future_skew_sec = float(os.getenv("MAX_FUTURE_SKEW_SEC", s.tracking.max_future_skew_sec))
    s.tracking.low_battery_threshold = int(os.getenv("LOW_BATTERY_THRESHOLD", s.tracking.low_battery_threshold))

    # 사고 원장
    s.ledger.enabled = _b("LEDGER_ENABLED", s.ledger.enabled)
    s.ledger.base_url = os.getenv("LEDGER_BASE_URL", s.ledger.base_url)
    s.ledger.api_key = os.getenv("LEDGER_API_KEY", s.ledger.api_key)
    s.ledger.timeout_sec = int(os.getenv("LEDGER_TIMEOUT_SEC", s.ledger.timeout_sec))

    # 관측성
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.http_port = int(os.getenv("HTTP_PORT", s.observability.http_port))
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)
    s.observability.json_logs = _b("JSON_LOGS", s.observability.json_logs)

    # 신뢰성
    s.reliability.queue_maxsize = int(os.getenv("QUEUE_MAXSIZE", s.reliability.queue_maxsize))
    s.reliability.drop_on_full = _b("DROP_ON_FULL", s.reliability.drop_on_full)
    s.reliability.publish_max_retries = int(os.getenv("PUBLISH_MAX_RETRIES", s.reliability.publish_max_retries))

    return s

async def main():
    s = build_settings()
    setup_logging(s.observability.log_level, json_logs=s.observability.json_logs)
    log = get_logger()
    log.info("설정 로드 완료")

    db_path = s.storage.db_path
    entities = SQLiteEntityRegistry(db_path); await entities.init()
    ledger = SQLiteAlertLedger(db_path, entities); await ledger.init()
    regions = SQLiteRegionStore(db_path, ledger); await regions.init()
    outbox = SQLiteOutbox(db_path); await outbox.init()

    publisher = DashboardPublisher(
        broker_host=s.local_mqtt.host,
        broker_port=s.local_mqtt.port,
        topic_prefix=s.local_mqtt.topic_prefix,
        outbox=outbox,
        username=s.local_mqtt.username,
        password=s.local_mqtt.password,
        tls=s.local_mqtt.tls,
        client_id=s.local_mqtt.client_id,
        keepalive=s.local_mqtt.keepalive,
        lwt_topic=s.local_mqtt.lwt_topic,
        qos_default=s.local_mqtt.qos,
        retain_default=s.local_mqtt.retain,
        backoff_initial=s.reliability.backoff_initial_sec,
        backoff_max=s.reliability.backoff_max_sec,
        max_retries=s.reliability.publish_max_retries,
        dry_run=s.dry_run or not s.local_mqtt.enabled,
    )
    log.info("대시보드 퍼블리셔 생성 완료")

    ingest = None
    if s.remote_mqtt.enabled:
        ingest = LocationIngestor(
            host=s.remote_mqtt.host,
            port=s.remote_mqtt.port,
            topic=s.remote_mqtt.topic,
            username=s.remote_mqtt.username,
            password=s.remote_mqtt.password,
            tls=s.remote_mqtt.tls,
            client_id=s.remote_mqtt.client_id,
            keepalive=s.remote_mqtt.keepalive,
            qos=s.remote_mqtt.qos,
            lwt_topic=s.remote_mqtt.lwt_topic,
            lwt_payload=s.remote_mqtt.lwt_payload,
        )
        log.info("원격 MQTT 인게스터 생성 완료")

    ids = AlertIdGenerator()
    engine = GeofenceEngine(
        ledger,
        critical_region_types=s.geofence.critical_region_types,
        escalation_risk_level=s.geofence.escalation_risk_level,
        region_timeout_sec=s.geofence.region_timeout_sec,
        id_generator=ids,
    )

    async with AsyncExitStack() as stack:
        incident_ledger = await stack.enter_async_context(IncidentLedgerClient(
            s.ledger.base_url, s.ledger.api_key, s.ledger.timeout_sec, enabled=s.ledger.enabled,
        ))

        orch = TrackingOrchestrator(
            entities=entities,
            regions=regions,
            ledger=ledger,
            engine=engine,
            notifier=publisher,
            incident_ledger=incident_ledger,
            ingest=ingest,
            auto_register_entities=s.tracking.auto_register_entities,
            reject_stale_samples=s.tracking.reject_stale_samples,
            max_future_skew_sec=s.tracking.max_future_skew_sec,
            low_battery_threshold=s.tracking.low_battery_threshold,
            active_alerts_limit=s.tracking.active_alerts_limit,
            queue_maxsize=s.reliability.queue_maxsize,
            drop_on_full=s.reliability.drop_on_full,
            id_generator=ids,
        )
        log.info("오케스트레이터 생성 완료")

        app = create_app(s, orch)
        server = uvicorn.Server(
            uvicorn.Config(app, host="0.0.0.0", port=s.observability.http_port, log_level="info")
        )
        http_task = asyncio.create_task(server.serve())
        log.info("HTTP 서버 시작됨", port=s.observability.http_port)

        stop = asyncio.Future()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
            except NotImplementedError: pass

        log.info("오케스트레이터 시작")
        pub_task = asyncio.create_task(publisher.start())
        orch_task = asyncio.create_task(orch.start())
        await stop

        log.info("종료 신호 수신")
        await orch.stop()
        await publisher.stop()
        server.should_exit = True
        for task in (orch_task, pub_task):
            task.cancel()
        await asyncio.gather(http_task, orch_task, pub_task, return_exceptions=True)

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
