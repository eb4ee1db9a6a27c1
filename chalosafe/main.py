# chalosafe/main.py
import os, asyncio, json, signal
from typing import List, Optional
import uvicorn
from chalosafe.settings import Settings
from chalosafe.observability.health import create_app
from chalosafe.observability.logging_setup import setup_logging, get_logger
from chalosafe.observability import metrics
from chalosafe.adapters.mqtt_remote.client_async import RemoteMqttIngestor
from chalosafe.adapters.mqtt_local.publisher_async import LocalMqttPublisher
from chalosafe.adapters.storage.sqlite_outbox import SQLiteOutbox
from chalosafe.adapters.storage.sqlite_state import SQLiteStateStore
from chalosafe.adapters.homeassistant.client import HAClient, DeviceTrackerPoller
from chalosafe.core.models import Zone
from chalosafe.core.normalize import load_zone_file, zones_from_config
from chalosafe.core.zones import ZoneRegistry
from chalosafe.orchestrators.orchestrator import Orchestrator

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def build_settings() -> Settings:
    s = Settings()

    # REMOTE MQTT (위치 수신)
    s.remote_mqtt.enabled = _b("REMOTE_MQTT_ENABLED", s.remote_mqtt.enabled)
    s.remote_mqtt.host = os.getenv("REMOTE_MQTT_HOST", s.remote_mqtt.host)
    s.remote_mqtt.port = int(os.getenv("REMOTE_MQTT_PORT", s.remote_mqtt.port))
    s.remote_mqtt.username = os.getenv("REMOTE_MQTT_USERNAME", s.remote_mqtt.username)
    s.remote_mqtt.password = os.getenv("REMOTE_MQTT_PASSWORD", s.remote_mqtt.password)
    s.remote_mqtt.client_id = os.getenv("REMOTE_MQTT_CLIENT_ID", s.remote_mqtt.client_id)
    s.remote_mqtt.keepalive = int(os.getenv("REMOTE_MQTT_KEEPALIVE", s.remote_mqtt.keepalive))
    s.remote_mqtt.clean_session = _b("REMOTE_MQTT_CLEAN_SESSION", s.remote_mqtt.clean_session)
    s.remote_mqtt.tls = _b("REMOTE_MQTT_TLS", s.remote_mqtt.tls)
    s.remote_mqtt.topic = os.getenv("REMOTE_TOPIC", s.remote_mqtt.topic)

    # LOCAL MQTT (경보 발송)
    s.local_mqtt.enabled = _b("LOCAL_MQTT_ENABLED", s.local_mqtt.enabled)
    s.local_mqtt.host  = os.getenv("LOCAL_MQTT_HOST", s.local_mqtt.host)
    s.local_mqtt.port  = int(os.getenv("LOCAL_MQTT_PORT", s.local_mqtt.port))
    s.local_mqtt.username = os.getenv("LOCAL_MQTT_USERNAME", s.local_mqtt.username)
    s.local_mqtt.password = os.getenv("LOCAL_MQTT_PASSWORD", s.local_mqtt.password)
    s.local_mqtt.topic_prefix = os.getenv("LOCAL_TOPIC_PREFIX", s.local_mqtt.topic_prefix)

    # HA
    s.ha.base_url = os.getenv("HA_BASE_URL", s.ha.base_url)
    s.ha.token = os.getenv("HA_TOKEN", s.ha.token)
    s.ha.tracker_poll_enabled = _b("HA_TRACKER_POLL", s.ha.tracker_poll_enabled)
    s.ha.tracker_poll_interval_sec = float(os.getenv("HA_TRACKER_POLL_INTERVAL", s.ha.tracker_poll_interval_sec))

    # 지오펜스
    s.geofence.zones_path = os.getenv("ZONES_PATH", s.geofence.zones_path)
    if os.getenv("ZONES_JSON"):
        doc = json.loads(os.environ["ZONES_JSON"])
        s.geofence.zones = doc["zones"] if isinstance(doc, dict) else doc

    # 점수
    s.scoring.initial_score = int(os.getenv("INITIAL_SCORE", s.scoring.initial_score))
    s.scoring.recovery_interval_sec = float(os.getenv("RECOVERY_INTERVAL_SEC", s.scoring.recovery_interval_sec))
    s.scoring.late_night_enabled = _b("LATE_NIGHT_ENABLED", s.scoring.late_night_enabled)
    s.scoring.utc_offset_hours = float(os.getenv("UTC_OFFSET_HOURS", s.scoring.utc_offset_hours))

    # 관측성
    s.observability.http_enabled = _b("HTTP_ENABLED", s.observability.http_enabled)
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.http_port = int(os.getenv("METRICS_PORT", s.observability.http_port))
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)
    s.observability.json_logs = _b("JSON_LOGS", s.observability.json_logs)
    s.observability.log_file = os.getenv("LOG_FILE", s.observability.log_file)

    # 신뢰성
    s.reliability.state_path = os.getenv("STATE_PATH", s.reliability.state_path)
    s.reliability.outbox_path = os.getenv("OUTBOX_PATH", s.reliability.outbox_path)
    s.reliability.queue_maxsize = int(os.getenv("QUEUE_MAXSIZE", s.reliability.queue_maxsize))

    return s

def load_zones(s: Settings) -> List[Zone]:
    """인라인 설정이 있으면 우선, 없으면 구역 파일에서 로드합니다."""
    log = get_logger("chalosafe.main")
    if s.geofence.zones:
        zones, rejections = zones_from_config(s.geofence.zones)
    elif s.geofence.zones_path and os.path.exists(s.geofence.zones_path):
        zones, rejections = load_zone_file(s.geofence.zones_path)
    else:
        log.warning(f"구역 설정이 없습니다. 빈 구역으로 시작 path:{s.geofence.zones_path}")
        return []
    for r in rejections:
        log.warning(f"구역 설정 거부 zone:{r.zone_id} reason:{r.reason}")
    metrics.zones_rejected.inc(len(rejections))
    return zones

async def start_http(settings: Settings, orch: Orchestrator) -> Optional[asyncio.Task]:
    if not settings.observability.http_enabled: return None
    app = create_app(settings, orch)
    return asyncio.create_task(uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=settings.observability.http_port,
                       log_level=settings.observability.log_level.lower())
    ).serve())

async def main():
    s = build_settings()
    setup_logging(s.observability.log_level, s.observability.json_logs, s.observability.log_file)
    log = get_logger("chalosafe.main")
    log.info("설정 로드 완료")

    registry = ZoneRegistry()
    rejections = registry.load_zones(load_zones(s))
    metrics.zones_rejected.inc(len(rejections))
    log.info(f"구역 로드 완료 zones:{len(registry)}")

    sources = []
    if s.remote_mqtt.enabled:
        sources.append(RemoteMqttIngestor(
            s.remote_mqtt.host,
            s.remote_mqtt.port,
            s.remote_mqtt.topic,
            username=s.remote_mqtt.username,
            password=s.remote_mqtt.password,
            tls=s.remote_mqtt.tls,
            client_id=s.remote_mqtt.client_id,
            keepalive=s.remote_mqtt.keepalive,
            clean_session=s.remote_mqtt.clean_session,
            qos=s.remote_mqtt.qos,
            lwt_topic=s.remote_mqtt.lwt_topic,
        ))
        log.info("원격 MQTT 인게스터 생성 완료")
    if s.ha.tracker_poll_enabled:
        ha = HAClient(s.ha.base_url, s.ha.token, s.ha.timeout_sec)
        sources.append(DeviceTrackerPoller(ha, interval_sec=s.ha.tracker_poll_interval_sec))
        log.info("HA device_tracker 폴러 생성 완료")

    publisher = None
    if s.local_mqtt.enabled:
        outbox = SQLiteOutbox(s.reliability.outbox_path); await outbox.init()
        publisher = LocalMqttPublisher(
            s.local_mqtt,
            outbox,
            max_retries=s.reliability.publish_max_retries,
            backoff_initial=s.reliability.backoff_initial_sec,
            backoff_max=s.reliability.backoff_max_sec,
        )
        log.info("로컬 MQTT 퍼블리셔 생성 완료")

    store = SQLiteStateStore(s.reliability.state_path)

    orch = Orchestrator(
        registry,
        sources=sources,
        sink=publisher,
        store=store,
        session_options=s.session_options(),
        queue_maxsize=s.reliability.queue_maxsize,
        recovery_interval_sec=s.scoring.recovery_interval_sec,
    )
    log.info("오케스트레이터 생성 완료")

    http_task = await start_http(s, orch)
    if http_task:
        log.info("HTTP 서버 시작됨")

    stop = asyncio.Future()
    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
            except NotImplementedError: pass
    except RuntimeError: pass

    log.info("오케스트레이터 시작")
    orch_task = asyncio.create_task(orch.start())
    pub_task = asyncio.create_task(publisher.start()) if publisher else None
    await stop
    await orch.stop()
    if publisher: await publisher.stop()
    orch_task.cancel()
    if pub_task: pub_task.cancel()
    if http_task: http_task.cancel()
    log.info("종료 완료")

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
