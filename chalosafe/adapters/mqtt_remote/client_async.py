"""
Remote MQTT position ingestor for ChaloSafe.

Subscribes to the position topic and yields decoded JSON samples.
The topic of each message is attached under "_topic" so that the subject
id can fall back to the last topic segment.
"""

import asyncio
import json
import ssl
from typing import AsyncIterator, Dict

from aiomqtt import Client, MqttError, Will

from chalosafe.observability import metrics
from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.mqtt_remote")


class RemoteMqttIngestor:
    """원격 MQTT 위치 수집 어댑터"""

    def __init__(
        self,
        host: str,
        port: int,
        topic: str,
        *,
        username: str | None = None,
        password: str | None = None,
        tls: bool = False,
        client_id: str | None = None,
        keepalive: int = 30,
        clean_session: bool = False,
        qos: int = 1,
        lwt_topic: str = "chalosafe/ingest/state",
        lwt_payload: str = "offline",
        reconnect_delay_sec: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.topic = topic
        self.username = username
        self.password = password
        self.tls = tls
        self.client_id = client_id
        self.keepalive = keepalive
        self.clean_session = clean_session
        self.qos = qos
        self.lwt_topic = lwt_topic
        self.lwt_payload = lwt_payload
        self.reconnect_delay_sec = reconnect_delay_sec

        self._running = False

    def _build_client(self) -> Client:
        tls_context = ssl.create_default_context() if self.tls else None
        will = Will(
            topic=self.lwt_topic,
            payload=self.lwt_payload.encode("utf-8"),
            qos=1,
            retain=True,
        )
        return Client(
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            identifier=self.client_id,
            keepalive=self.keepalive,
            clean_session=self.clean_session,
            tls_context=tls_context,
            will=will,
        )

    @staticmethod
    def decode(payload: bytes, topic: str) -> Dict | None:
        """MQTT 페이로드를 디코딩합니다. 잘못된 메시지는 None."""
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            log.error(f"위치 메시지 디코딩 오류 topic:{topic} error:{e}")
            return None
        if not isinstance(data, dict):
            log.error(f"위치 메시지는 JSON 객체여야 합니다 topic:{topic}")
            return None
        data["_topic"] = topic
        return data

    async def recv(self) -> AsyncIterator[Dict]:
        self._running = True
        while self._running:
            try:
                async with self._build_client() as client:
                    await client.subscribe(self.topic, qos=self.qos)
                    log.info(f"MQTT 브로커 연결됨: {self.host}:{self.port} topic:{self.topic}")
                    async for message in client.messages:
                        if not self._running:
                            break
                        data = self.decode(message.payload, message.topic.value)
                        if data is not None:
                            yield data
            except MqttError as e:
                metrics.reconnects.labels(client="remote").inc()
                log.error(f"MQTT 오류: {e}")
                if self._running:
                    await asyncio.sleep(self.reconnect_delay_sec)

    async def stop(self) -> None:
        self._running = False
        log.info("원격 MQTT 수집 중지")
