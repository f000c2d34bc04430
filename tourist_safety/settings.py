# tourist_safety/settings.py
from __future__ import annotations
from typing import List
from pydantic import BaseModel, Field

class MqttCommon(BaseModel):
    host: str = "localhost"
    port: int = 1883
    username: str | None = None
    password: str | None = None
    tls: bool = False
    client_id: str | None = None
    keepalive: int = 30
    lwt_topic: str = "suraksha/state"
    lwt_payload: str = "offline"

class RemoteMQTT(MqttCommon):
    enabled: bool = False
    topic: str = "tourists/+/events"     # 단말 위치/이벤트 수신
    qos: int = 1

class LocalMQTT(MqttCommon):
    enabled: bool = False
    topic_prefix: str = "suraksha"       # 대시보드 브로드캐스트
    qos: int = 1
    retain: bool = False

class Storage(BaseModel):
    db_path: str = "/data/tracking.db"

class GeofenceSettings(BaseModel):
    critical_region_types: List[str] = Field(default_factory=lambda: ["danger"])
    escalation_risk_level: int = 8            # 이 위험도 이상 진입 시 인시던트 원장 기록
    region_timeout_sec: float = 5.0

class Tracking(BaseModel):
    auto_register_entities: bool = False
    reject_stale_samples: bool = True
    max_future_skew_sec: float = 300.0      # 서버 시각보다 이만큼 이후인 샘플은 거부
    low_battery_threshold: int = 20
    active_alerts_limit: int = 100

class LedgerConfig(BaseModel):
    enabled: bool = False
    base_url: str = "http://localhost:3003/api/blockchain"
    api_key: str = ""
    timeout_sec: int = 10

class Observability(BaseModel):
    http_port: int = 8099
    metrics_enabled: bool = True
    service_name: str = "Tourist-Safety"
    build_version: str = "0.1.0"
    build_date: str = "2026-01-01"
    log_level: str = "INFO"
    json_logs: bool = False

class Reliability(BaseModel):
    publish_max_retries: int = 10
    backoff_initial_sec: float = 0.5
    backoff_max_sec: float = 30.0
    queue_maxsize: int = 1000
    drop_on_full: bool = False

class Settings(BaseModel):
    dry_run: bool = False

    # 하위 섹션 (기본값/팩토리로 누락 방지)
    remote_mqtt: RemoteMQTT = Field(default_factory=RemoteMQTT)
    local_mqtt: LocalMQTT = Field(default_factory=LocalMQTT)
    storage: Storage = Field(default_factory=Storage)
    geofence: GeofenceSettings = Field(default_factory=GeofenceSettings)
    tracking: Tracking = Field(default_factory=Tracking)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    observability: Observability = Field(default_factory=Observability)
    reliability: Reliability = Field(default_factory=Reliability)
