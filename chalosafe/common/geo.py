"""
Geographic utilities for ChaloSafe.

This module provides the geometry used by the geofence evaluator:
haversine distance on a spherical earth, ray-casting point-in-polygon,
bounding boxes and the polygon validity checks applied at zone load time.

Points and polygon vertices are (x, y) tuples, i.e. (longitude, latitude).
"""

import math
from typing import List, Sequence, Tuple

Point = Tuple[float, float]

# 지구 반지름 (미터)
EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 지점 간의 Haversine 거리를 계산합니다 (미터).

    Args:
        lat1: 첫 번째 지점의 위도
        lon1: 첫 번째 지점의 경도
        lat2: 두 번째 지점의 위도
        lon2: 두 번째 지점의 경도

    Returns:
        두 지점 간의 거리 (미터)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    # 부동소수점 오차로 1을 살짝 넘는 경우 방지
    a = min(1.0, max(0.0, a))
    c = 2 * math.asin(math.sqrt(a))

    return c * EARTH_RADIUS_M


def point_in_polygon(point: Point, polygon: Sequence[Point]) -> bool:
    """
    점이 폴리곤 내부에 있는지 Ray casting(crossing number) 알고리즘으로 확인합니다.

    반개구간 규칙을 사용하므로 경계 위의 점도 항상 같은 결과를 냅니다.

    Args:
        point: 확인할 점 (경도, 위도)
        polygon: 폴리곤의 꼭짓점들 [(경도, 위도), ...]

    Returns:
        점이 폴리곤 내부에 있으면 True, 외부에 있으면 False
    """
    n = len(polygon)
    if n < 3:
        return False

    x, y = point
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i

    return inside


def calculate_bounding_box(polygon: Sequence[Point]) -> Tuple[float, float, float, float]:
    """
    폴리곤의 경계 상자를 계산합니다.

    Returns:
        (min_lon, min_lat, max_lon, max_lat)
    """
    if not polygon:
        return (0, 0, 0, 0)

    lons = [p[0] for p in polygon]
    lats = [p[1] for p in polygon]

    return (min(lons), min(lats), max(lons), max(lats))


def point_in_bounding_box(point: Point, bbox: Tuple[float, float, float, float]) -> bool:
    """점이 경계 상자 안(경계 포함)에 있는지 확인합니다."""
    min_x, min_y, max_x, max_y = bbox
    return min_x <= point[0] <= max_x and min_y <= point[1] <= max_y


def polygon_area(polygon: Sequence[Point]) -> float:
    """신발끈 공식으로 폴리곤의 부호 있는 면적을 계산합니다 (좌표 단위 제곱)."""
    n = len(polygon)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        x1, y1 = polygon[i]
        x2, y2 = polygon[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return total / 2.0


def _orientation(a: Point, b: Point, c: Point) -> int:
    value = (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def _on_segment(a: Point, b: Point, p: Point) -> bool:
    return (min(a[0], b[0]) <= p[0] <= max(a[0], b[0]) and
            min(a[1], b[1]) <= p[1] <= max(a[1], b[1]))


def segments_intersect(p1: Point, p2: Point, q1: Point, q2: Point) -> bool:
    """
    두 선분이 교차(접촉 포함)하는지 확인합니다.

    Args:
        p1, p2: 첫 번째 선분의 양 끝점
        q1, q2: 두 번째 선분의 양 끝점
    """
    o1 = _orientation(p1, p2, q1)
    o2 = _orientation(p1, p2, q2)
    o3 = _orientation(q1, q2, p1)
    o4 = _orientation(q1, q2, p2)

    if o1 != o2 and o3 != o4:
        return True

    # 공선(collinear) 케이스
    if o1 == 0 and _on_segment(p1, p2, q1):
        return True
    if o2 == 0 and _on_segment(p1, p2, q2):
        return True
    if o3 == 0 and _on_segment(q1, q2, p1):
        return True
    if o4 == 0 and _on_segment(q1, q2, p2):
        return True
    return False


def is_simple_polygon(polygon: Sequence[Point]) -> bool:
    """
    폴리곤이 단순 폴리곤(자기 교차 없음)인지 확인합니다.

    인접한 변은 공유 꼭짓점에서만 만나야 하고, 인접하지 않은 변은 만나면 안 됩니다.
    """
    n = len(polygon)
    if n < 3:
        return False

    edges: List[Tuple[Point, Point]] = [
        (polygon[i], polygon[(i + 1) % n]) for i in range(n)
    ]
    for i in range(n):
        for j in range(i + 1, n):
            adjacent = j == i + 1 or (i == 0 and j == n - 1)
            a1, a2 = edges[i]
            b1, b2 = edges[j]
            if adjacent:
                # 인접한 변이 한 직선 위에서 되접히는 경우
                shared = a2 if j == i + 1 else a1
                other_a = a1 if shared == a2 else a2
                other_b = b2 if shared == b1 else b1
                if (_orientation(other_a, shared, other_b) == 0 and
                        _on_segment(shared, other_b, other_a)):
                    return False
                if (_orientation(other_a, shared, other_b) == 0 and
                        _on_segment(shared, other_a, other_b)):
                    return False
                continue
            if segments_intersect(a1, a2, b1, b2):
                return False
    return True


def validate_coordinates(lat: float, lon: float) -> bool:
    """
    좌표가 유효한지 확인합니다.

    Args:
        lat: 위도
        lon: 경도

    Returns:
        좌표가 유효하면 True (NaN은 무효)
    """
    try:
        return -90 <= lat <= 90 and -180 <= lon <= 180
    except TypeError:
        return False
