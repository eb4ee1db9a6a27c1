"""
Position source port interface.

This module defines the protocol for position tracker collaborators.
"""

from typing import AsyncIterator, Protocol


class PositionSourcePort(Protocol):
    """위치 추적기 포트 인터페이스"""

    def recv(self) -> AsyncIterator[dict]:
        """
        원시 위치 샘플을 비동기적으로 수신합니다.

        Yields:
            원시 딕셔너리 데이터 (대상 ID, 위도, 경도, 타임스탬프)
        """
        ...

    async def stop(self) -> None:
        """수신을 중지합니다."""
        ...
