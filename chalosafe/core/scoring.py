"""
Safety score adjustment for ChaloSafe.

The safety score is a bounded integer in [0, 100]. Alerts lower it
according to severity; periodic no-alert conditions let it recover.
This module also holds the time-of-day safety condition used by the
periodic tick.
"""

from datetime import datetime, timedelta, timezone
from typing import Literal, Union

from chalosafe.common.clock import to_utc
from chalosafe.core.models import Alert, SafetyCondition

MIN_SCORE = 0
MAX_SCORE = 100

# 조건/심각도별 점수 변화량
SCORE_DELTAS = {
    "high": -5,
    "medium": -2,
    "low": 1,
    "safe": 1,
}

ConditionLevel = Literal["safe", "low", "medium", "high"]


def clamp_score(value: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, int(value)))


def score_status(score: int) -> str:
    """대시보드에 표시되는 점수 등급"""
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Moderate"
    return "Needs Attention"


class SafetyScoreAdjuster:
    """대상 한 명의 안전 점수"""

    def __init__(self, initial: int = MAX_SCORE):
        self._score = clamp_score(initial)

    @property
    def score(self) -> int:
        return self._score

    def apply_condition(self, level: ConditionLevel) -> int:
        """조건 수준에 따른 변화량을 적용하고 새 점수를 반환합니다."""
        self._score = clamp_score(self._score + SCORE_DELTAS[level])
        return self._score

    def apply_alert(self, alert: Alert) -> int:
        """경보 심각도에 따른 변화량을 적용합니다 (high -5, medium -2, low +1)."""
        return self.apply_condition(alert.severity)

    def apply_recovery(self) -> int:
        """경보 없는 주기 샘플에 대한 회복(+1)을 적용합니다."""
        return self.apply_condition("safe")


def _in_window(hour: int, start_hour: int, end_hour: int) -> bool:
    if start_hour <= end_hour:
        return start_hour <= hour <= end_hour
    # 자정을 넘어가는 구간 (예: 22시 ~ 5시)
    return hour >= start_hour or hour <= end_hour


def assess_time_of_day(timestamp: Union[datetime, int, float, str], *,
                       start_hour: int = 22,
                       end_hour: int = 5,
                       utc_offset_hours: float = 0.0) -> SafetyCondition:
    """
    시간대 기반 안전 상태를 평가합니다.

    Args:
        timestamp: 평가 시각
        start_hour: 심야 구간 시작 시 (포함)
        end_hour: 심야 구간 종료 시 (포함)
        utc_offset_hours: 대상 현지 시간의 UTC 오프셋

    Returns:
        심야이면 medium 수준, 아니면 safe 수준의 SafetyCondition
    """
    local = to_utc(timestamp).astimezone(timezone(timedelta(hours=utc_offset_hours)))
    if _in_window(local.hour, start_hour, end_hour):
        return SafetyCondition(
            level="medium",
            message="Late night activity detected",
            recommendations=["Stay in well-lit areas", "Share location with emergency contacts"],
        )
    return SafetyCondition(
        level="safe",
        message="Area appears safe",
        recommendations=["Continue normal activities", "Stay aware of surroundings"],
    )
