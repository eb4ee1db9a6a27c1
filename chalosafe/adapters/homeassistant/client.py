"""
Home Assistant position source for ChaloSafe.

This module provides a small REST client for Home Assistant and a poller
that turns `device_tracker.*` entities into position samples, so phones
tracked by the Home Assistant companion app can be monitored as subjects.
"""

import asyncio
from typing import AsyncIterator, Dict, List, Optional

import aiohttp

from chalosafe.common.retry import retry_with_backoff
from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.ha")


class HAClient:
    """Home Assistant API 클라이언트"""

    def __init__(self,
                 base_url: str,
                 token: str,
                 timeout: int = 30):
        """
        초기화합니다.

        Args:
            base_url: Home Assistant API 기본 URL
            token: Home Assistant 장기 토큰
            timeout: 요청 타임아웃 (초)
        """
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            headers={
                "Authorization": f"Bearer {self.token}",
                "Content-Type": "application/json"
            },
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    async def _make_request(self, method: str, endpoint: str, **kwargs):
        """
        API 요청을 수행합니다 (지수 백오프 재시도).

        Args:
            method: HTTP 메서드
            endpoint: API 엔드포인트
            **kwargs: 추가 요청 매개변수

        Returns:
            응답 JSON
        """
        if not self.session:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")

        url = f"{self.base_url}{endpoint}"

        async def _request():
            async with self.session.request(method, url, **kwargs) as response:
                response.raise_for_status()
                return await response.json()

        return await retry_with_backoff(
            _request,
            max_retries=3,
            retry_on=(aiohttp.ClientError, asyncio.TimeoutError),
        )

    async def get_device_trackers(self) -> List[Dict]:
        """
        위치 추적 가능한 디바이스 목록을 가져옵니다.

        Returns:
            [{"entity_id", "name", "lat", "lon", "accuracy", "last_updated"}, ...]
        """
        states = await self._make_request("GET", "/api/states")
        devices = []
        for st in states:
            if not st.get("entity_id", "").startswith("device_tracker."):
                continue
            attrs = st.get("attributes", {})
            if attrs.get("latitude") is None or attrs.get("longitude") is None:
                continue
            devices.append({
                "entity_id": st["entity_id"],
                "name": attrs.get("friendly_name", st["entity_id"]),
                "lat": attrs["latitude"],
                "lon": attrs["longitude"],
                "accuracy": attrs.get("gps_accuracy"),
                "last_updated": st.get("last_updated"),
            })
        log.debug(f"위치 추적 디바이스 목록 가져옴 count:{len(devices)}")
        return devices


class DeviceTrackerPoller:
    """Home Assistant device_tracker 폴링 위치 소스"""

    def __init__(self, client: HAClient, *, interval_sec: float = 15.0):
        self.client = client
        self.interval_sec = interval_sec
        self._running = False
        # 엔티티별 마지막 last_updated (변경 없는 상태 재전송 방지)
        self._seen: Dict[str, str] = {}

    def _fresh(self, devices: List[Dict]) -> List[Dict]:
        fresh = []
        for device in devices:
            marker = device.get("last_updated") or f"{device['lat']},{device['lon']}"
            if self._seen.get(device["entity_id"]) == marker:
                continue
            self._seen[device["entity_id"]] = marker
            fresh.append(device)
        return fresh

    async def recv(self) -> AsyncIterator[Dict]:
        self._running = True
        async with self.client:
            while self._running:
                try:
                    devices = await self.client.get_device_trackers()
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    log.error(f"device_tracker 폴링 실패 error:{e}")
                    devices = []
                for device in self._fresh(devices):
                    yield device
                await asyncio.sleep(self.interval_sec)

    async def stop(self) -> None:
        self._running = False
