"""
Common 모듈 단위 테스트

이 모듈은 지리 유틸리티, 시각 변환, 재시도 로직의 기능을 테스트합니다.
"""

import pytest
import math
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch
from chalosafe.common.geo import (
    EARTH_RADIUS_M, haversine_distance, point_in_polygon, calculate_bounding_box,
    point_in_bounding_box, polygon_area, segments_intersect, is_simple_polygon,
    validate_coordinates
)
from chalosafe.common.clock import to_utc, utc_now
from chalosafe.common.retry import backoff_delay, retry_with_backoff


class TestHaversineDistance:
    """Haversine 거리 계산 테스트"""

    def test_haversine_distance_same_point(self):
        """같은 지점 간 거리 테스트"""
        assert haversine_distance(12.9, 77.5, 12.9, 77.5) == 0.0

    def test_haversine_distance_equator_one_degree(self):
        """적도상 경도 1도 거리 테스트"""
        distance = haversine_distance(0, 0, 0, 1)
        assert distance == pytest.approx(EARTH_RADIUS_M * math.pi / 180, rel=1e-9)

    def test_haversine_distance_meridian(self):
        """자오선상의 거리 테스트 (약 111km)"""
        distance = haversine_distance(0, 0, 1, 0)
        assert 111_000 <= distance <= 111_300

    def test_haversine_distance_symmetric(self):
        """거리 대칭성 테스트"""
        a = haversine_distance(12.9, 77.5, 12.91, 77.51)
        b = haversine_distance(12.91, 77.51, 12.9, 77.5)
        assert a == pytest.approx(b)

    def test_haversine_distance_antipodal(self):
        """대척점 거리 테스트 (반 둘레)"""
        distance = haversine_distance(0, 0, 0, 180)
        assert distance == pytest.approx(EARTH_RADIUS_M * math.pi, rel=1e-9)

    def test_haversine_distance_bengaluru_sample(self):
        """약 1.5km 떨어진 두 지점"""
        distance = haversine_distance(12.9, 77.5, 12.91, 77.51)
        assert 1400 <= distance <= 1700


class TestPointInPolygon:
    """Ray casting 점-폴리곤 판정 테스트"""

    @pytest.fixture
    def square(self):
        return [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]

    def test_point_inside(self, square):
        assert point_in_polygon((5, 5), square) is True

    def test_point_outside(self, square):
        assert point_in_polygon((15, 5), square) is False
        assert point_in_polygon((-1, -1), square) is False

    def test_triangle(self):
        """(0,0),(0,10),(10,0) 삼각형"""
        triangle = [(0, 0), (0, 10), (10, 0)]
        assert point_in_polygon((1, 1), triangle) is True
        assert point_in_polygon((9, 9), triangle) is False

    def test_concave_polygon(self):
        """오목 폴리곤의 패인 부분은 외부"""
        concave = [(0, 0), (10, 0), (10, 10), (5, 5), (0, 10)]
        assert point_in_polygon((5, 8), concave) is False
        assert point_in_polygon((5, 2), concave) is True

    def test_degenerate_polygon(self):
        """꼭짓점이 3개 미만이면 항상 외부"""
        assert point_in_polygon((0, 0), [(0, 0), (1, 1)]) is False

    def test_boundary_is_deterministic(self, square):
        """경계 위 점은 항상 같은 결과"""
        results = {point_in_polygon((0, 5), square) for _ in range(10)}
        assert len(results) == 1


class TestBoundingBox:
    """경계 상자 테스트"""

    def test_calculate_bounding_box(self):
        bbox = calculate_bounding_box([(1, 2), (5, -1), (3, 7)])
        assert bbox == (1, -1, 5, 7)

    def test_empty_polygon(self):
        assert calculate_bounding_box([]) == (0, 0, 0, 0)

    def test_point_in_bounding_box_inclusive(self):
        bbox = (0, 0, 10, 10)
        assert point_in_bounding_box((0, 0), bbox) is True
        assert point_in_bounding_box((10, 10), bbox) is True
        assert point_in_bounding_box((10.1, 5), bbox) is False


class TestPolygonValidity:
    """폴리곤 유효성 검사 테스트"""

    def test_polygon_area(self):
        assert abs(polygon_area([(0, 0), (4, 0), (4, 3), (0, 3)])) == 12.0
        assert polygon_area([(0, 0), (1, 1), (2, 2)]) == 0.0

    def test_segments_intersect(self):
        assert segments_intersect((0, 0), (2, 2), (0, 2), (2, 0)) is True
        assert segments_intersect((0, 0), (1, 0), (0, 1), (1, 1)) is False
        # 끝점 접촉
        assert segments_intersect((0, 0), (1, 0), (1, 0), (1, 1)) is True

    def test_simple_polygon(self):
        assert is_simple_polygon([(0, 0), (10, 0), (10, 10), (0, 10)]) is True

    def test_bowtie_is_not_simple(self):
        """나비넥타이 모양은 자기 교차"""
        assert is_simple_polygon([(0, 0), (10, 10), (10, 0), (0, 10)]) is False

    def test_fold_back_is_not_simple(self):
        """한 직선 위에서 되접히는 폴리곤"""
        assert is_simple_polygon([(0, 0), (10, 0), (5, 0), (5, 5)]) is False


class TestValidateCoordinates:
    """좌표 유효성 테스트"""

    @pytest.mark.parametrize("lat,lon", [(0, 0), (90, 180), (-90, -180), (12.9, 77.5)])
    def test_valid(self, lat, lon):
        assert validate_coordinates(lat, lon) is True

    @pytest.mark.parametrize("lat,lon", [(90.1, 0), (-91, 0), (0, 180.5), (0, -181)])
    def test_out_of_range(self, lat, lon):
        assert validate_coordinates(lat, lon) is False

    def test_nan(self):
        assert validate_coordinates(float("nan"), 0) is False

    def test_non_numeric(self):
        assert validate_coordinates("a", 0) is False


class TestClock:
    """시각 변환 테스트"""

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is not None

    def test_naive_datetime_is_utc(self):
        dt = to_utc(datetime(2026, 1, 1, 12, 0))
        assert dt == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_offset_datetime_converted(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        dt = to_utc(datetime(2026, 1, 1, 17, 30, tzinfo=ist))
        assert dt == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_epoch_seconds_and_millis(self):
        seconds = to_utc(1_767_225_600)
        millis = to_utc(1_767_225_600_000)
        assert seconds == millis == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_iso_string_with_z(self):
        assert to_utc("2026-01-01T00:00:00Z") == datetime(2026, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [True, None, "not-a-date", [1, 2]])
    def test_invalid_values(self, value):
        with pytest.raises(ValueError):
            to_utc(value)


class TestRetry:
    """재시도 로직 테스트"""

    def test_backoff_delay(self):
        assert backoff_delay(1, 0.5, 30) == 0.5
        assert backoff_delay(3, 0.5, 30) == 2.0
        assert backoff_delay(20, 0.5, 30) == 30

    @pytest.mark.asyncio
    async def test_retry_succeeds_after_failures(self):
        """실패 후 성공"""
        func = AsyncMock(side_effect=[ConnectionError("x"), ConnectionError("y"), "ok"])
        with patch("chalosafe.common.retry.asyncio.sleep", new_callable=AsyncMock):
            result = await retry_with_backoff(func, max_retries=3, retry_on=(ConnectionError,))
        assert result == "ok"
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_retry_gives_up(self):
        """최대 재시도 초과 시 마지막 예외 전파"""
        func = AsyncMock(side_effect=ConnectionError("down"))
        with patch("chalosafe.common.retry.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ConnectionError):
                await retry_with_backoff(func, max_retries=2, retry_on=(ConnectionError,))
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_retry_does_not_catch_other_errors(self):
        """재시도 대상이 아닌 예외는 즉시 전파"""
        func = AsyncMock(side_effect=KeyError("k"))
        with pytest.raises(KeyError):
            await retry_with_backoff(func, max_retries=5, retry_on=(ConnectionError,))
        assert func.await_count == 1
