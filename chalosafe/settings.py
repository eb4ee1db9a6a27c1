# chalosafe/settings.py
from __future__ import annotations
from typing import Any, Dict, List
from pydantic import BaseModel, Field

class MqttCommon(BaseModel):
    host: str = "localhost"
    port: int = 1883
    username: str | None = None
    password: str | None = None
    tls: bool = False
    client_id: str | None = None
    keepalive: int = 30
    lwt_topic: str = "chalosafe/state"

class RemoteMQTT(MqttCommon):
    lwt_topic: str = "chalosafe/ingest/state"
    enabled: bool = True
    topic: str = "chalosafe/positions/#"   # 위치 샘플 수신 토픽
    qos: int = 1
    clean_session: bool = False

class LocalMQTT(MqttCommon):
    lwt_topic: str = "chalosafe/publisher/state"
    enabled: bool = True
    topic_prefix: str = "chalosafe"       # {prefix}/alerts|transitions|score/{subject}
    qos: int = 1
    retain: bool = False

class HAConfig(BaseModel):
    base_url: str = "http://supervisor/core"
    token: str = ""
    timeout_sec: int = 5
    tracker_poll_enabled: bool = False
    tracker_poll_interval_sec: float = 15.0

class Geofence(BaseModel):
    zones_path: str | None = "/data/zones.json"
    zones: List[Dict[str, Any]] = Field(default_factory=list)   # 파일 대신 인라인 구역 설정

class Scoring(BaseModel):
    initial_score: int = 100
    recovery_interval_sec: float = 300.0      # 0 이하이면 주기 틱 비활성
    late_night_enabled: bool = True
    late_night_start_hour: int = 22
    late_night_end_hour: int = 5
    utc_offset_hours: float = 5.5             # IST

class Observability(BaseModel):
    http_enabled: bool = True
    http_port: int = 8099
    metrics_enabled: bool = True
    service_name: str = "ChaloSafe"
    build_version: str = "0.1.0"
    build_date: str = "2026-10-01"
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: str | None = None

class Reliability(BaseModel):
    state_path: str = "/data/state.db"
    outbox_path: str = "/data/outbox.db"
    publish_max_retries: int = 10
    backoff_initial_sec: float = 0.5
    backoff_max_sec: float = 30.0
    queue_maxsize: int = 1000

class Settings(BaseModel):
    # 하위 섹션 (기본값/팩토리로 누락 방지)
    remote_mqtt: RemoteMQTT = Field(default_factory=RemoteMQTT)
    local_mqtt: LocalMQTT = Field(default_factory=LocalMQTT)
    ha: HAConfig = Field(default_factory=HAConfig)
    geofence: Geofence = Field(default_factory=Geofence)
    scoring: Scoring = Field(default_factory=Scoring)
    observability: Observability = Field(default_factory=Observability)
    reliability: Reliability = Field(default_factory=Reliability)

    def session_options(self) -> Dict[str, Any]:
        """SubjectSession 생성 옵션"""
        return {
            "initial_score": self.scoring.initial_score,
            "late_night_enabled": self.scoring.late_night_enabled,
            "late_night_start_hour": self.scoring.late_night_start_hour,
            "late_night_end_hour": self.scoring.late_night_end_hour,
            "utc_offset_hours": self.scoring.utc_offset_hours,
        }
