"""
Geofence evaluation for ChaloSafe.

This module implements zone containment (haversine distance for circles,
ray casting for polygons) and the per-subject evaluator that turns a
stream of positions into entering/exiting transition events.
"""

from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional, Tuple

from chalosafe.common.clock import to_utc
from chalosafe.common.geo import (
    calculate_bounding_box,
    haversine_distance,
    point_in_bounding_box,
    point_in_polygon,
)
from chalosafe.core.errors import InvalidPosition
from chalosafe.core.models import CircleGeometry, Coordinate, PolygonGeometry, TransitionEvent, Zone
from chalosafe.core.zones import ZoneRegistry
from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.geofence")


def contains(zone: Zone, position: Coordinate) -> bool:
    """
    위치가 구역 안에 있는지 확인합니다 (위치와 형상에 대한 순수 함수).

    원의 경계(거리 == 반지름)는 내부로 봅니다. 폴리곤은 반개구간
    crossing 규칙을 따르므로 같은 경계점은 항상 같은 결과를 냅니다.

    Args:
        zone: 검사할 구역
        position: 확인할 위치

    Returns:
        구역 내부이면 True
    """
    geometry = zone.geometry
    if isinstance(geometry, CircleGeometry):
        distance = haversine_distance(position.lat, position.lng,
                                      geometry.center.lat, geometry.center.lng)
        return distance <= geometry.radius_m

    if isinstance(geometry, PolygonGeometry):
        ring = geometry.ring()
        point = position.as_point()
        if not point_in_bounding_box(point, calculate_bounding_box(ring)):
            return False
        return point_in_polygon(point, ring)

    return False


def containing_zones(zones: Iterable[Zone], position: Coordinate) -> List[str]:
    """위치를 포함하는 구역 ID 목록 (구역 순서 유지)"""
    return [zone.id for zone in zones if contains(zone, position)]


class GeofenceEvaluator:
    """
    대상 한 명의 구역 멤버십을 관리하는 평가기

    MembershipState는 이 객체만 소유하며 evaluate 호출 시에만 변경됩니다.
    """

    def __init__(self, registry: ZoneRegistry,
                 membership: Optional[Iterable[str]] = None,
                 last_timestamp: Optional[datetime] = None):
        self.registry = registry
        self._membership: FrozenSet[str] = frozenset(membership or ())
        self._last_timestamp: Optional[datetime] = to_utc(last_timestamp) if last_timestamp else None

    @property
    def membership(self) -> FrozenSet[str]:
        return self._membership

    @property
    def last_timestamp(self) -> Optional[datetime]:
        return self._last_timestamp

    def is_stale(self, timestamp: datetime) -> bool:
        """마지막으로 처리한 샘플보다 엄격히 이전인지 확인합니다."""
        return self._last_timestamp is not None and to_utc(timestamp) < self._last_timestamp

    def snapshot(self) -> Tuple[List[str], Optional[datetime]]:
        """(정렬된 멤버십 구역 ID, 마지막 처리 시각)"""
        return sorted(self._membership), self._last_timestamp

    def restore(self, membership: Iterable[str], last_timestamp: Optional[datetime]) -> None:
        """저장된 멤버십과 마지막 처리 시각으로 상태를 교체합니다."""
        self._membership = frozenset(membership)
        self._last_timestamp = to_utc(last_timestamp) if last_timestamp else None

    def evaluate(self, position: Coordinate, timestamp: datetime,
                 accuracy_m: Optional[float] = None) -> List[TransitionEvent]:
        """
        새 위치를 평가하여 전이 이벤트를 생성합니다.

        Args:
            position: 대상의 현재 위치
            timestamp: 샘플 시각
            accuracy_m: 위치 정확도(미터), 전이 이벤트에 그대로 기록

        Returns:
            진입/이탈 전이 이벤트 목록 (변화가 없으면 빈 목록)

        Raises:
            InvalidPosition: 좌표가 범위를 벗어난 경우 (상태는 변경되지 않음)
        """
        if not position.is_valid():
            raise InvalidPosition(position.lat, position.lng)

        ts = to_utc(timestamp)
        if self.is_stale(ts):
            log.debug(f"순서가 뒤바뀐 샘플 무시 timestamp:{ts.isoformat()} last:{self._last_timestamp.isoformat()}")
            return []

        zones = self.registry.list_zones()
        inside = containing_zones(zones, position)
        current = frozenset(inside)
        previous = self._membership

        events: List[TransitionEvent] = []
        for zone in zones:
            if zone.id in current and zone.id not in previous:
                events.append(TransitionEvent(zone_id=zone.id, direction="entering",
                                              timestamp=ts, position=position, accuracy_m=accuracy_m))
            elif zone.id in previous and zone.id not in current:
                events.append(TransitionEvent(zone_id=zone.id, direction="exiting",
                                              timestamp=ts, position=position, accuracy_m=accuracy_m))

        # 레지스트리에서 사라진 구역은 이탈로 처리
        registered = {zone.id for zone in zones}
        for zone_id in sorted(previous - registered):
            events.append(TransitionEvent(zone_id=zone_id, direction="exiting",
                                          timestamp=ts, position=position, accuracy_m=accuracy_m))

        self._membership = current
        self._last_timestamp = ts

        if events:
            log.debug(f"구역 전이 감지 events:{[(e.zone_id, e.direction) for e in events]}")
        return events
