"""
Settings 모듈 단위 테스트

이 모듈은 기본 설정, 환경 변수 오버라이드, 구역 설정 로드를 테스트합니다.
"""

import json
import pytest
from chalosafe.main import build_settings, load_zones
from chalosafe.settings import Settings


ZONE = {"id": "forest", "name": "Forest", "classification": "danger", "alertLevel": "high",
        "geometry": {"type": "circle", "center": {"lat": 12.9, "lng": 77.5}, "radius": 500}}


class TestSettings:
    """설정 기본값 테스트"""

    def test_defaults(self):
        s = Settings()
        assert s.remote_mqtt.topic == "chalosafe/positions/#"
        assert s.scoring.initial_score == 100
        assert s.scoring.late_night_start_hour == 22
        assert s.scoring.late_night_end_hour == 5

    def test_session_options(self):
        s = Settings()
        s.scoring.initial_score = 80
        options = s.session_options()
        assert options["initial_score"] == 80
        assert options["utc_offset_hours"] == 5.5

    def test_mqtt_sections_use_distinct_will_topics(self):
        """같은 브로커를 써도 수신기 offline Will이 발송기 online 상태를 덮지 않음"""
        s = Settings()
        assert s.remote_mqtt.lwt_topic != s.local_mqtt.lwt_topic


class TestBuildSettings:
    """환경 변수 오버라이드 테스트"""

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("REMOTE_MQTT_HOST", "broker.example")
        monkeypatch.setenv("REMOTE_MQTT_PORT", "8883")
        monkeypatch.setenv("LOCAL_MQTT_ENABLED", "false")
        monkeypatch.setenv("INITIAL_SCORE", "90")
        monkeypatch.setenv("LATE_NIGHT_ENABLED", "0")
        monkeypatch.setenv("UTC_OFFSET_HOURS", "0")
        monkeypatch.setenv("QUEUE_MAXSIZE", "10")

        s = build_settings()

        assert s.remote_mqtt.host == "broker.example"
        assert s.remote_mqtt.port == 8883
        assert s.local_mqtt.enabled is False
        assert s.scoring.initial_score == 90
        assert s.scoring.late_night_enabled is False
        assert s.scoring.utc_offset_hours == 0.0
        assert s.reliability.queue_maxsize == 10

    @pytest.mark.parametrize("document", [[ZONE], {"zones": [ZONE]}])
    def test_inline_zones_json(self, monkeypatch, document):
        monkeypatch.setenv("ZONES_JSON", json.dumps(document))
        s = build_settings()
        assert s.geofence.zones == [ZONE]


class TestLoadZones:
    """구역 설정 로드 테스트"""

    def test_inline_zones_take_priority(self, tmp_path):
        path = tmp_path / "zones.json"
        path.write_text(json.dumps([]), encoding="utf-8")
        s = Settings()
        s.geofence.zones = [ZONE]
        s.geofence.zones_path = str(path)

        assert [z.id for z in load_zones(s)] == ["forest"]

    def test_zone_file(self, tmp_path):
        path = tmp_path / "zones.json"
        path.write_text(json.dumps({"zones": [ZONE, {"id": "broken"}]}), encoding="utf-8")
        s = Settings()
        s.geofence.zones_path = str(path)

        assert [z.id for z in load_zones(s)] == ["forest"]

    def test_missing_file_starts_empty(self, tmp_path):
        s = Settings()
        s.geofence.zones_path = str(tmp_path / "missing.json")
        assert load_zones(s) == []
