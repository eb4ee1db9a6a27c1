"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import pytest
import asyncio
import tempfile
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from chalosafe.settings import Settings
from chalosafe.core.models import CircleGeometry, Coordinate, PolygonGeometry, PositionSample, Zone
from chalosafe.core.zones import ZoneRegistry


BASE_TIME = datetime(2026, 1, 1, 6, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db_path():
    """임시 데이터베이스 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # 테스트 후 파일 정리
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    settings.observability.http_port = 8080
    return settings


@pytest.fixture
def restricted_forest():
    """반지름 500m 위험 구역 (alertLevel=high)"""
    return Zone(
        id="restricted-forest",
        name="RestrictedForest",
        classification="danger",
        alert_level="high",
        geometry=CircleGeometry(center=Coordinate(lat=12.9, lng=77.5), radius_m=500),
    )


@pytest.fixture
def triangle_zone():
    """평면 좌표로 취급하는 삼각형 주의 구역"""
    return Zone(
        id="triangle",
        name="Triangle",
        classification="caution",
        alert_level="medium",
        geometry=PolygonGeometry(points=(
            Coordinate(lat=0, lng=0),
            Coordinate(lat=0, lng=10),
            Coordinate(lat=10, lng=0),
        )),
    )


@pytest.fixture
def safe_zone():
    """경보가 발생하지 않는 안전 구역"""
    return Zone(
        id="city-center",
        name="City Center",
        classification="safe",
        geometry=CircleGeometry(center=Coordinate(lat=12.9, lng=77.5), radius_m=2000),
    )


@pytest.fixture
def registry(restricted_forest, safe_zone):
    """테스트용 구역 레지스트리"""
    return ZoneRegistry([restricted_forest, safe_zone])


@pytest.fixture
def make_sample():
    """위치 샘플 팩토리 (offset은 BASE_TIME 기준 초)"""
    def _make(lat, lng, offset=0, subject_id="tourist-1"):
        return PositionSample(
            subject_id=subject_id,
            coordinate=Coordinate(lat=lat, lng=lng),
            timestamp=BASE_TIME + timedelta(seconds=offset),
        )
    return _make


@pytest.fixture
def mock_sink():
    """테스트용 경보 발송 포트"""
    return AsyncMock()


@pytest.fixture
def mock_store():
    """테스트용 상태 저장소 (저장된 상태 없음)"""
    store = AsyncMock()
    store.load.return_value = None
    store.subject_ids.return_value = []
    return store


# pytest 설정
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "slow: 느린 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "integration: 통합 테스트 마커"
    )


def pytest_collection_modifyitems(config, items):
    """테스트 아이템 수정"""
    for item in items:
        # 비동기 테스트에 asyncio 마커 추가
        if asyncio.iscoroutinefunction(getattr(item, "function", None)):
            item.add_marker(pytest.mark.asyncio)

        # 통합 테스트 마커 추가
        if "integration" in item.name:
            item.add_marker(pytest.mark.integration)
