"""
Zone registry for ChaloSafe.

The registry holds the active set of safety zones as an immutable snapshot.
Zones are validated at load time; invalid zones are rejected one by one
without preventing the remaining zones from loading.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from chalosafe.common.geo import is_simple_polygon, polygon_area
from chalosafe.core.errors import InvalidZoneGeometry
from chalosafe.core.models import CircleGeometry, PolygonGeometry, Zone
from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.zones")


@dataclass(frozen=True)
class ZoneRejection:
    """로드 시 거부된 구역"""
    zone_id: Optional[str]
    reason: str


def validate_zone(zone: Zone) -> None:
    """
    구역 형상의 유효성을 검사합니다.

    Args:
        zone: 검사할 구역

    Raises:
        InvalidZoneGeometry: 형상이 유효하지 않은 경우
    """
    geometry = zone.geometry
    if isinstance(geometry, CircleGeometry):
        if not geometry.center.is_valid():
            raise InvalidZoneGeometry(zone.id, "circle center out of range")
        if not geometry.radius_m > 0:
            raise InvalidZoneGeometry(zone.id, f"circle radius must be > 0 (got {geometry.radius_m})")
        return

    if isinstance(geometry, PolygonGeometry):
        points = geometry.points
        if len(set(points)) < 3:
            raise InvalidZoneGeometry(zone.id, f"polygon needs at least 3 distinct points (got {len(set(points))})")
        for p in points:
            if not p.is_valid():
                raise InvalidZoneGeometry(zone.id, f"polygon vertex out of range: ({p.lat}, {p.lng})")
        ring = geometry.ring()
        if polygon_area(ring) == 0:
            raise InvalidZoneGeometry(zone.id, "polygon is degenerate (zero area)")
        if not is_simple_polygon(ring):
            raise InvalidZoneGeometry(zone.id, "polygon is self-intersecting")
        return

    raise InvalidZoneGeometry(zone.id, f"unsupported geometry: {type(geometry).__name__}")


class ZoneRegistry:
    """활성 구역 집합 (copy-on-replace 스냅샷)"""

    def __init__(self, zones: Optional[Iterable[Zone]] = None):
        self._zones: Tuple[Zone, ...] = ()
        self._index: Dict[str, Zone] = {}
        if zones is not None:
            self.load_zones(zones)

    def load_zones(self, zones: Iterable[Zone]) -> List[ZoneRejection]:
        """
        활성 구역 집합을 통째로 교체합니다.

        Args:
            zones: 새 구역 목록

        Returns:
            거부된 구역 목록 (유효한 구역은 모두 로드됨)
        """
        accepted: List[Zone] = []
        index: Dict[str, Zone] = {}
        rejections: List[ZoneRejection] = []

        for zone in zones:
            try:
                validate_zone(zone)
            except InvalidZoneGeometry as e:
                log.warning(f"구역 거부됨 zone_id:{zone.id} reason:{e.reason}")
                rejections.append(ZoneRejection(zone.id, e.reason))
                continue
            if zone.id in index:
                log.warning(f"중복 구역 ID 거부됨 zone_id:{zone.id}")
                rejections.append(ZoneRejection(zone.id, "duplicate zone id"))
                continue
            accepted.append(zone)
            index[zone.id] = zone

        # 새 스냅샷으로 원자적으로 교체
        self._zones = tuple(accepted)
        self._index = index
        log.info(f"구역 로드 완료 accepted:{len(accepted)} rejected:{len(rejections)}")
        return rejections

    def list_zones(self) -> Tuple[Zone, ...]:
        return self._zones

    def get(self, zone_id: str) -> Optional[Zone]:
        return self._index.get(zone_id)

    def __len__(self) -> int:
        return len(self._zones)

    def __contains__(self, zone_id: object) -> bool:
        return zone_id in self._index

