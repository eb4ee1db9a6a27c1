"""
MQTT Adapter 모듈 단위 테스트

이 모듈은 MQTT 관련 어댑터들의 기능을 테스트합니다.
"""

import pytest
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from aiomqtt import MqttError
from chalosafe.adapters.mqtt_remote.client_async import RemoteMqttIngestor
from chalosafe.adapters.mqtt_local.publisher_async import LocalMqttPublisher
from chalosafe.adapters.storage.sqlite_outbox import SQLiteOutbox
from chalosafe.core.models import Alert, Coordinate, TransitionEvent
from chalosafe.settings import LocalMQTT


class TestRemoteMqttIngestor:
    """원격 MQTT 수집 어댑터 테스트"""

    def test_ingestor_initialization_with_defaults(self):
        """기본값으로 초기화"""
        ingestor = RemoteMqttIngestor("localhost", 1883, "chalosafe/positions/#")

        assert ingestor.host == "localhost"
        assert ingestor.port == 1883
        assert ingestor.topic == "chalosafe/positions/#"
        assert ingestor.username is None
        assert ingestor.tls is False
        assert ingestor.qos == 1

    def test_decode_attaches_topic(self):
        data = RemoteMqttIngestor.decode(b'{"lat": 12.9, "lng": 77.5}', "chalosafe/positions/t1")
        assert data == {"lat": 12.9, "lng": 77.5, "_topic": "chalosafe/positions/t1"}

    @pytest.mark.parametrize("payload", [b"not json", b"\xff\xfe", b"[1, 2]", b'"text"'])
    def test_decode_rejects_bad_payload(self, payload):
        assert RemoteMqttIngestor.decode(payload, "chalosafe/positions/t1") is None

    @pytest.mark.asyncio
    async def test_build_client_uses_tls_context(self):
        ingestor = RemoteMqttIngestor("localhost", 8883, "t/#", tls=True, client_id="cs-1")
        client = ingestor._build_client()
        assert client is not None

    @pytest.mark.asyncio
    async def test_stop(self):
        ingestor = RemoteMqttIngestor("localhost", 1883, "t/#")
        ingestor._running = True
        await ingestor.stop()
        assert ingestor._running is False


class TestLocalMqttPublisher:
    """로컬 MQTT 발송 어댑터 테스트"""

    @pytest.fixture
    async def outbox(self, temp_db_path):
        outbox = SQLiteOutbox(temp_db_path)
        await outbox.init()
        return outbox

    @pytest.fixture
    def publisher(self, outbox):
        return LocalMqttPublisher(LocalMQTT(topic_prefix="chalosafe/"), outbox, max_retries=3)

    @pytest.fixture
    def alert(self):
        return Alert(
            id="alert-1", subject_id="tourist-1", zone_id="restricted-forest",
            zone_name="RestrictedForest", zone_classification="danger",
            direction="entering", severity="high",
            timestamp=datetime(2026, 1, 1, 6, 0, tzinfo=timezone.utc),
        )

    @pytest.mark.asyncio
    async def test_publish_alert_enqueues(self, publisher, outbox, alert):
        await publisher.publish_alert(alert)

        item = await outbox.peek_oldest()
        assert item.topic == "chalosafe/alerts/tourist-1"
        payload = json.loads(item.payload)
        assert payload["id"] == "alert-1"
        assert payload["severity"] == "high"
        assert payload["timestamp"].startswith("2026-01-01T06:00:00")

    @pytest.mark.asyncio
    async def test_publish_transition_enqueues(self, publisher, outbox):
        event = TransitionEvent(zone_id="restricted-forest", direction="exiting",
                                timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
                                position=Coordinate(lat=12.91, lng=77.51), accuracy_m=8.0)
        await publisher.publish_transition("tourist-1", event)

        item = await outbox.peek_oldest()
        assert item.topic == "chalosafe/transitions/tourist-1"
        payload = json.loads(item.payload)
        assert payload["subjectId"] == "tourist-1"
        assert payload["direction"] == "exiting"
        assert payload["position"] == {"lat": 12.91, "lng": 77.51}
        assert payload["accuracy_m"] == 8.0

    @pytest.mark.asyncio
    async def test_publish_score_is_retained(self, publisher, outbox):
        await publisher.publish_score("tourist-1", 95)

        item = await outbox.peek_oldest()
        assert item.topic == "chalosafe/score/tourist-1"
        assert item.retain is True
        assert json.loads(item.payload) == {"subjectId": "tourist-1", "score": 95, "status": "Excellent"}

    @pytest.mark.asyncio
    async def test_pending_score_is_replaced(self, publisher, outbox):
        await publisher.publish_score("tourist-1", 95)
        await publisher.publish_score("tourist-1", 90)

        assert await outbox.get_count() == 1
        item = await outbox.peek_oldest()
        assert json.loads(item.payload)["score"] == 90

    @pytest.mark.asyncio
    async def test_process_outbox_sends_and_deletes(self, publisher, outbox, alert):
        await publisher.publish_alert(alert)
        publisher.client = AsyncMock()

        assert await publisher._process_outbox() is True
        publisher.client.publish.assert_awaited_once()
        assert await outbox.get_count() == 0
        assert await publisher._process_outbox() is False

    @pytest.mark.asyncio
    async def test_process_outbox_failure_marks_attempt(self, publisher, outbox, alert):
        await publisher.publish_alert(alert)
        publisher.client = AsyncMock()
        publisher.client.publish.side_effect = MqttError("broker down")

        with pytest.raises(MqttError):
            await publisher._process_outbox()

        item = await outbox.peek_oldest()
        assert item.attempts == 1

    @pytest.mark.asyncio
    async def test_process_outbox_drops_after_max_retries(self, publisher, outbox, alert):
        await publisher.publish_alert(alert)
        item = await outbox.peek_oldest()
        for _ in range(3):
            await outbox.mark_attempt(item.id)
        publisher.client = AsyncMock()

        assert await publisher._process_outbox() is True
        publisher.client.publish.assert_not_awaited()
        assert await outbox.get_count() == 0
