"""
Per-subject monitoring session for ChaloSafe.

A SubjectSession owns the geofence evaluator, the alert lifecycle manager
and the safety score of exactly one subject. Sessions share nothing but the
read-only zone registry, so different subjects can be processed
independently. Session state is serializable for recovery after restart.
"""

from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from chalosafe.core.alerts import AlertLifecycleManager, new_alert_id
from chalosafe.core.errors import InvalidPosition
from chalosafe.core.geofence import GeofenceEvaluator
from chalosafe.core.models import Alert, PositionSample, SafetyCondition, TransitionEvent
from chalosafe.core.scoring import MAX_SCORE, SafetyScoreAdjuster, assess_time_of_day
from chalosafe.core.zones import ZoneRegistry
from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.session")


class SessionState(BaseModel):
    """복구 가능한 세션 상태"""
    subject_id: str
    membership: List[str] = Field(default_factory=list)
    last_timestamp: Optional[datetime] = None
    alerts: List[Alert] = Field(default_factory=list)
    score: int = MAX_SCORE


class SessionUpdate(BaseModel):
    """샘플 하나를 처리한 결과"""
    subject_id: str
    transitions: List[TransitionEvent] = Field(default_factory=list)
    alerts: List[Alert] = Field(default_factory=list)
    score: int
    stale: bool = False


class SubjectSession:
    """대상 한 명의 모니터링 세션"""

    def __init__(self, subject_id: str, registry: ZoneRegistry, *,
                 initial_score: int = MAX_SCORE,
                 late_night_enabled: bool = False,
                 late_night_start_hour: int = 22,
                 late_night_end_hour: int = 5,
                 utc_offset_hours: float = 0.0,
                 id_factory: Callable[[], str] = new_alert_id):
        self.subject_id = subject_id
        self.registry = registry
        self.evaluator = GeofenceEvaluator(registry)
        self.alerts = AlertLifecycleManager(registry, subject_id=subject_id, id_factory=id_factory)
        self.scorer = SafetyScoreAdjuster(initial_score)
        self.late_night_enabled = late_night_enabled
        self.late_night_start_hour = late_night_start_hour
        self.late_night_end_hour = late_night_end_hour
        self.utc_offset_hours = utc_offset_hours
        self.last_condition: Optional[SafetyCondition] = None

    @property
    def score(self) -> int:
        return self.scorer.score

    def process(self, sample: PositionSample) -> SessionUpdate:
        """
        위치 샘플 하나를 처리합니다.

        평가기 -> 경보 관리자 -> 점수 조정기 순서로 전달합니다.

        Args:
            sample: 이 대상의 위치 샘플

        Returns:
            전이 이벤트, 새 경보, 현재 점수를 담은 SessionUpdate

        Raises:
            InvalidPosition: 좌표가 범위를 벗어난 경우 (세션 상태는 변경되지 않음)
            ValueError: 다른 대상의 샘플
        """
        if sample.subject_id != self.subject_id:
            raise ValueError(f"sample for {sample.subject_id!r} routed to session {self.subject_id!r}")
        if not sample.coordinate.is_valid():
            raise InvalidPosition(sample.coordinate.lat, sample.coordinate.lng)

        if self.evaluator.is_stale(sample.timestamp):
            return SessionUpdate(subject_id=self.subject_id, score=self.score, stale=True)

        transitions = self.evaluator.evaluate(sample.coordinate, sample.timestamp, sample.accuracy_m)
        raised: List[Alert] = []
        for event in transitions:
            alert = self.alerts.on_transition(event)
            if alert is not None:
                raised.append(alert)
                self.scorer.apply_alert(alert)

        return SessionUpdate(
            subject_id=self.subject_id,
            transitions=transitions,
            alerts=raised,
            score=self.score,
        )

    def acknowledge(self, alert_id: str) -> Alert:
        return self.alerts.acknowledge(alert_id)

    def tick(self, now: datetime) -> int:
        """
        주기적 안전 상태 평가를 적용합니다.

        심야 구간이면 medium 감점, 아니면 미확인 경보가 없을 때만 +1 회복.
        """
        condition = None
        if self.late_night_enabled:
            condition = assess_time_of_day(
                now,
                start_hour=self.late_night_start_hour,
                end_hour=self.late_night_end_hour,
                utc_offset_hours=self.utc_offset_hours,
            )
            self.last_condition = condition

        if condition is not None and condition.level != "safe":
            score = self.scorer.apply_condition(condition.level)
            log.info(f"안전 상태 감점 subject:{self.subject_id} message:{condition.message} score:{score}")
            return score

        if self.alerts.has_open_alerts():
            return self.score
        return self.scorer.apply_recovery()

    def snapshot(self) -> SessionState:
        membership, last_timestamp = self.evaluator.snapshot()
        return SessionState(
            subject_id=self.subject_id,
            membership=membership,
            last_timestamp=last_timestamp,
            alerts=self.alerts.snapshot(),
            score=self.score,
        )

    @classmethod
    def restore(cls, state: SessionState, registry: ZoneRegistry, **options) -> "SubjectSession":
        """저장된 상태로부터 세션을 복구합니다."""
        session = cls(state.subject_id, registry, **options)
        session.evaluator.restore(state.membership, state.last_timestamp)
        session.alerts.restore(state.alerts)
        session.scorer = SafetyScoreAdjuster(state.score)
        log.info(f"세션 복구됨 subject:{state.subject_id} alerts:{len(state.alerts)} score:{state.score}")
        return session
