"""
Local MQTT publisher adapter for ChaloSafe.

This module implements the display/notification sink: transitions, alerts
and safety score updates are written to the SQLite outbox and delivered to
the local MQTT broker by a background worker.
"""

import asyncio
import json
import ssl
from typing import Optional

from aiomqtt import Client, MqttError, Will

from chalosafe.adapters.storage.sqlite_outbox import SQLiteOutbox
from chalosafe.common.retry import exponential_backoff
from chalosafe.core.models import Alert, TransitionEvent
from chalosafe.core.scoring import score_status
from chalosafe.observability import metrics
from chalosafe.observability.logging_setup import get_logger
from chalosafe.settings import LocalMQTT

log = get_logger("chalosafe.mqtt_local")


class LocalMqttPublisher:
    """
    경보/전이/점수 메시지를 로컬 브로커로 보내는 AlertSinkPort 구현.

    publish_* 호출은 Outbox에 기록만 하고 즉시 반환하며, start()가 도는
    워커가 가장 오래된 항목부터 발송합니다. 브로커 연결은 LWT로
    online/offline 상태를 알립니다.
    """

    def __init__(self, config: LocalMQTT, outbox: SQLiteOutbox, *,
                 max_retries: int = 10,
                 backoff_initial: float = 0.5,
                 backoff_max: float = 30.0,
                 poll_interval: float = 0.5):
        self.config = config
        self.outbox = outbox
        self.topic_prefix = config.topic_prefix.rstrip("/")
        self.max_retries = max_retries
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.poll_interval = poll_interval

        self.client: Client | None = None
        self._running = False

    def _build_client(self) -> Client:
        c = self.config
        return Client(
            hostname=c.host,
            port=c.port,
            username=c.username,
            password=c.password,
            identifier=c.client_id,
            keepalive=c.keepalive,
            tls_context=ssl.create_default_context() if c.tls else None,
            will=Will(topic=c.lwt_topic, payload=b"offline", qos=1, retain=True),
        )

    async def start(self) -> None:
        """발송 워커를 시작합니다 (연결이 끊기면 백오프 후 재연결)."""
        self._running = True
        attempt = 0
        while self._running:
            try:
                async with self._build_client() as client:
                    self.client = client
                    attempt = 0
                    await client.publish(self.config.lwt_topic, b"online", qos=1, retain=True)
                    log.info(f"로컬 MQTT 브로커 연결됨 host:{self.config.host}:{self.config.port}")
                    while self._running:
                        sent = await self._process_outbox()
                        if not sent:
                            await asyncio.sleep(self.poll_interval)
            except MqttError as e:
                attempt += 1
                metrics.reconnects.labels(client="local").inc()
                log.error(f"로컬 MQTT 오류: {e}")
                if self._running:
                    await exponential_backoff(attempt, self.backoff_initial, self.backoff_max)
            finally:
                self.client = None

    async def _process_outbox(self) -> bool:
        """
        Outbox의 가장 오래된 메시지 하나를 발송합니다.

        Returns:
            메시지를 발송(또는 폐기)했으면 True, Outbox가 비었으면 False
        """
        item = await self.outbox.peek_oldest()
        if item is None:
            metrics.outbox_size.set(0)
            return False

        if item.attempts >= self.max_retries:
            log.warning(f"최대 재시도 횟수 초과, 항목 삭제: {item.id}")
            await self.outbox.delete(item.id)
            return True

        try:
            await self.client.publish(item.topic, item.payload, qos=item.qos, retain=item.retain)
        except MqttError as e:
            log.error(f"메시지 발송 실패: id:{item.id} topic:{item.topic} error:{e}")
            metrics.publish_retries.labels(topic=item.topic).inc()
            await self.outbox.mark_attempt(item.id, str(e))
            raise

        await self.outbox.delete(item.id)
        metrics.outbox_size.set(await self.outbox.get_count())
        log.debug(f"메시지 발송 성공: id:{item.id} topic:{item.topic}")
        return True

    async def enqueue_json(self, topic_suffix: str, payload_obj: dict,
                           qos: Optional[int] = None, retain: Optional[bool] = None,
                           coalesce_key: Optional[str] = None) -> int:
        """
        JSON 객체를 Outbox에 추가합니다.

        Args:
            topic_suffix: 토픽 접미사
            payload_obj: 발송할 JSON 객체
            qos: QoS 레벨 (None이면 기본값 사용)
            retain: retain 플래그 (None이면 기본값 사용)
            coalesce_key: 미발송 메시지 대체 키

        Returns:
            생성된 Outbox 항목의 ID
        """
        topic = f"{self.topic_prefix}/{topic_suffix}"
        payload = json.dumps(payload_obj, ensure_ascii=False).encode("utf-8")
        return await self.outbox.enqueue(
            topic,
            payload,
            self.config.qos if qos is None else qos,
            self.config.retain if retain is None else retain,
            coalesce_key=coalesce_key,
        )

    async def publish_transition(self, subject_id: str, event: TransitionEvent) -> None:
        payload = {"subjectId": subject_id, **event.model_dump(mode="json")}
        await self.enqueue_json(f"transitions/{subject_id}", payload)

    async def publish_alert(self, alert: Alert) -> None:
        await self.enqueue_json(f"alerts/{alert.subject_id}", alert.model_dump(mode="json"))

    async def publish_score(self, subject_id: str, score: int) -> None:
        # 점수는 최신 값만 의미가 있으므로 retain, 미발송 점수는 대체
        await self.enqueue_json(
            f"score/{subject_id}",
            {"subjectId": subject_id, "score": score, "status": score_status(score)},
            retain=True,
            coalesce_key=f"score/{subject_id}",
        )

    async def stop(self) -> None:
        """발송을 중지합니다."""
        self._running = False
        log.info("로컬 MQTT 발송 중지")
