"""
Alert sink port interface.

This module defines the protocol for the display/notification collaborator
that receives transitions, alerts and score updates.
"""

from typing import Protocol

from chalosafe.core.models import Alert, TransitionEvent


class AlertSinkPort(Protocol):
    """경보 발송 포트 인터페이스"""

    async def publish_transition(self, subject_id: str, event: TransitionEvent) -> None:
        """구역 전이 이벤트를 발송합니다."""
        ...

    async def publish_alert(self, alert: Alert) -> None:
        """
        경보를 발송합니다.

        Args:
            alert: 새로 생성되었거나 확인 처리된 경보
        """
        ...

    async def publish_score(self, subject_id: str, score: int) -> None:
        """안전 점수 변경을 발송합니다."""
        ...
