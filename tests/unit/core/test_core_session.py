"""
대상별 모니터링 세션 테스트

이 모듈은 평가기 -> 경보 관리자 -> 점수 조정기 연결과
세션 상태 스냅샷/복구를 테스트합니다.
"""

import pytest
from datetime import datetime, timezone

from chalosafe.core.errors import AlertNotFound, InvalidPosition
from chalosafe.core.models import Coordinate, PositionSample
from chalosafe.core.session import SessionState, SubjectSession
from chalosafe.core.zones import ZoneRegistry


@pytest.fixture
def session(restricted_forest):
    return SubjectSession("tourist-1", ZoneRegistry([restricted_forest]))


class TestProcess:
    """샘플 처리 테스트"""

    def test_restricted_forest_scenario(self, session, make_sample):
        """진입 시 high 경보와 100 -> 95, 이탈 시 경보 없음"""
        first = session.process(make_sample(12.9, 77.5, offset=0))

        assert [(e.zone_id, e.direction) for e in first.transitions] == [("restricted-forest", "entering")]
        assert len(first.alerts) == 1
        assert first.alerts[0].severity == "high"
        assert first.score == 95
        assert first.transitions[0].accuracy_m is None

        second = session.process(make_sample(12.91, 77.51, offset=30))

        assert [(e.zone_id, e.direction) for e in second.transitions] == [("restricted-forest", "exiting")]
        assert second.alerts == []
        assert second.score == 95

    def test_stasis_has_no_update(self, session, make_sample):
        session.process(make_sample(12.9, 77.5, offset=0))
        update = session.process(make_sample(12.9, 77.5, offset=10))

        assert update.transitions == []
        assert update.stale is False
        assert update.score == 95

    def test_sample_accuracy_flows_to_transitions(self, session):
        sample = PositionSample(subject_id="tourist-1", coordinate=Coordinate(lat=12.9, lng=77.5),
                                timestamp=datetime(2026, 1, 1, 6, 0, tzinfo=timezone.utc), accuracy_m=15.0)
        update = session.process(sample)
        assert [e.accuracy_m for e in update.transitions] == [15.0]

    def test_stale_sample_flagged(self, session, make_sample):
        session.process(make_sample(12.91, 77.51, offset=60))
        update = session.process(make_sample(12.9, 77.5, offset=0))

        assert update.stale is True
        assert update.transitions == []
        assert session.score == 100

    def test_invalid_position_raises(self, session):
        sample = PositionSample(subject_id="tourist-1", coordinate=Coordinate(lat=100, lng=0),
                                timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc))
        with pytest.raises(InvalidPosition):
            session.process(sample)
        assert session.evaluator.last_timestamp is None

    def test_other_subject_rejected(self, session, make_sample):
        with pytest.raises(ValueError):
            session.process(make_sample(12.9, 77.5, subject_id="someone-else"))


class TestAcknowledgeAndTick:
    """확인 처리와 주기 틱 테스트"""

    def test_acknowledge_unknown(self, session):
        with pytest.raises(AlertNotFound):
            session.acknowledge("alert-missing")

    def test_tick_holds_score_while_alert_open(self, session, make_sample):
        update = session.process(make_sample(12.9, 77.5))
        assert session.tick(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)) == 95

        session.acknowledge(update.alerts[0].id)
        assert session.tick(datetime(2026, 1, 1, 12, 5, tzinfo=timezone.utc)) == 96

    def test_tick_late_night_penalty(self, restricted_forest):
        session = SubjectSession("tourist-1", ZoneRegistry([restricted_forest]),
                                 late_night_enabled=True, utc_offset_hours=5.5)
        # 18:00 UTC == 23:30 IST
        score = session.tick(datetime(2026, 1, 1, 18, 0, tzinfo=timezone.utc))

        assert score == 98
        assert session.last_condition.level == "medium"

    def test_tick_daytime_recovers(self, restricted_forest):
        session = SubjectSession("tourist-1", ZoneRegistry([restricted_forest]),
                                 initial_score=70, late_night_enabled=True, utc_offset_hours=5.5)
        assert session.tick(datetime(2026, 1, 1, 6, 0, tzinfo=timezone.utc)) == 71
        assert session.last_condition.level == "safe"


class TestSnapshotRestore:
    """스냅샷/복구 테스트"""

    def test_round_trip_through_json(self, session, make_sample, restricted_forest):
        update = session.process(make_sample(12.9, 77.5))
        state = SessionState.model_validate_json(session.snapshot().model_dump_json())

        restored = SubjectSession.restore(state, ZoneRegistry([restricted_forest]))

        assert restored.score == 95
        assert restored.evaluator.membership == frozenset({"restricted-forest"})
        assert [a.id for a in restored.alerts.alerts()] == [update.alerts[0].id]
        # 복구 후 같은 위치는 새 전이/경보 없음
        again = restored.process(make_sample(12.9, 77.5, offset=10))
        assert again.transitions == []
        assert again.alerts == []

    def test_snapshot_is_detached(self, session, make_sample):
        update = session.process(make_sample(12.9, 77.5))
        state = session.snapshot()
        session.acknowledge(update.alerts[0].id)

        assert state.alerts[0].acknowledged is False
