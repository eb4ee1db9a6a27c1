"""
Session state store port interface.

This module defines the protocol for persisting per-subject session state
(membership, alerts, safety score) across process restarts.
"""

from typing import List, Optional, Protocol

from chalosafe.core.session import SessionState


class StateStorePort(Protocol):
    """세션 상태 저장소 포트 인터페이스"""

    async def init(self) -> None:
        ...

    async def save(self, state: SessionState) -> None:
        """
        세션 상태를 저장합니다 (대상 ID 기준 upsert).

        Args:
            state: 저장할 세션 상태
        """
        ...

    async def load(self, subject_id: str) -> Optional[SessionState]:
        """
        세션 상태를 조회합니다.

        Returns:
            저장된 상태 또는 None
        """
        ...

    async def subject_ids(self) -> List[str]:
        ...
