"""
Normalization functions for ChaloSafe.

This module contains pure functions for converting raw provider payloads
(position feeds, zone configuration documents) into internal domain models.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from jsonschema import Draft7Validator
from pydantic import ValidationError

from chalosafe.common.clock import to_utc, utc_now
from chalosafe.core.errors import InvalidPosition
from chalosafe.core.models import CircleGeometry, Coordinate, PolygonGeometry, PositionSample, Zone
from chalosafe.core.zones import ZoneRejection
from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.normalize")

ZONE_SCHEMA = json.loads((Path(__file__).parent / "zone_schema.json").read_text(encoding="utf-8"))
_zone_validator = Draft7Validator(ZONE_SCHEMA)

# 원본 데이터의 분류 명칭 매핑
CLASSIFICATION_ALIASES = {
    "safe": "safe",
    "caution": "caution",
    "danger": "danger",
    "geofence-restricted": "geofence-restricted",
    "geofence": "geofence-restricted",
    "restricted": "geofence-restricted",
}

_SUBJECT_KEYS = ("subjectId", "subject_id", "userId", "user_id", "entity_id", "deviceId")
_LAT_KEYS = ("latitude", "lat")
_LNG_KEYS = ("longitude", "lng", "lon")
_TS_KEYS = ("timestamp", "ts", "time", "last_updated")


def _first(raw: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def to_position_sample(raw: Dict[str, Any], default_subject: Optional[str] = None) -> PositionSample:
    """
    원시 위치 페이로드를 PositionSample로 변환합니다.

    Args:
        raw: 위치 소스에서 받은 딕셔너리
        default_subject: 페이로드에 대상 ID가 없을 때 사용할 ID (예: MQTT 토픽 끝 세그먼트)

    Returns:
        정규화된 위치 샘플

    Raises:
        InvalidPosition: 좌표가 없거나 범위를 벗어난 경우
        ValueError: 대상 ID 또는 타임스탬프를 해석할 수 없는 경우
    """
    # 중첩된 location 객체 지원 ({"userId": ..., "location": {...}})
    location = raw.get("location") if isinstance(raw.get("location"), dict) else raw
    # Home Assistant 상태 객체 지원 ({"entity_id": ..., "attributes": {...}})
    if isinstance(raw.get("attributes"), dict) and _first(location, _LAT_KEYS) is None:
        location = raw["attributes"]

    subject = _first(raw, _SUBJECT_KEYS) or default_subject
    if subject is None:
        raise ValueError("position sample has no subject id")

    lat = _first(location, _LAT_KEYS)
    lng = _first(location, _LNG_KEYS)
    if lat is None or lng is None:
        raise InvalidPosition(lat, lng, "latitude and longitude are required")
    coordinate = Coordinate.checked(lat, lng)

    raw_ts = _first(location, _TS_KEYS) or _first(raw, _TS_KEYS)
    timestamp = to_utc(raw_ts) if raw_ts is not None else utc_now()

    accuracy = _first(location, ("accuracy", "gps_accuracy", "accuracy_m"))
    try:
        accuracy_m = float(accuracy) if accuracy is not None else None
    except (TypeError, ValueError):
        log.debug(f"정확도 값 무시 accuracy:{accuracy!r}")
        accuracy_m = None

    return PositionSample(
        subject_id=str(subject),
        coordinate=coordinate,
        timestamp=timestamp,
        accuracy_m=accuracy_m,
    )


def _to_coordinate(value: Any) -> Coordinate:
    # 배열은 [위도, 경도] 순서
    if isinstance(value, (list, tuple)):
        return Coordinate(lat=float(value[0]), lng=float(value[1]))
    lng = value.get("lng", value.get("lon"))
    return Coordinate(lat=float(value["lat"]), lng=float(lng))


def to_zone(record: Dict[str, Any]) -> Zone:
    """
    구역 설정 레코드를 Zone 모델로 변환합니다.

    형상의 기하학적 유효성은 여기서 검사하지 않습니다 (ZoneRegistry.load_zones 담당).

    Raises:
        ValueError: 스키마 또는 모델 검증 실패
    """
    errors = sorted(_zone_validator.iter_errors(record), key=lambda e: list(e.path))
    if errors:
        raise ValueError(f"zone schema validation failed: {errors[0].message}")

    geom = record["geometry"]
    geom_type = geom["type"].lower()
    try:
        if geom_type == "circle":
            radius = geom.get("radius_m", geom.get("radius"))
            if "center" not in geom or radius is None:
                raise ValueError("circle geometry requires center and radius")
            geometry = CircleGeometry(center=_to_coordinate(geom["center"]), radius_m=float(radius))
        else:
            geometry = PolygonGeometry(points=tuple(_to_coordinate(p) for p in geom.get("points", [])))

        return Zone(
            id=str(record["id"]),
            name=record["name"],
            classification=CLASSIFICATION_ALIASES[record["classification"]],
            geometry=geometry,
            alert_level=record.get("alertLevel") or record.get("alert_level") or "low",
            description=record.get("description"),
        )
    except (KeyError, TypeError, ValidationError) as e:
        raise ValueError(f"zone record conversion failed: {e}") from e


def zones_from_config(document: Union[List[Any], Dict[str, Any]]) -> Tuple[List[Zone], List[ZoneRejection]]:
    """
    구역 설정 문서를 구역 목록으로 변환합니다.

    Args:
        document: 레코드 목록 또는 {"zones": [...]} 형태의 문서

    Returns:
        (변환된 구역 목록, 변환 실패한 레코드 목록)
    """
    records = document.get("zones", []) if isinstance(document, dict) else document
    if not isinstance(records, list):
        raise ValueError("zone configuration must be a list or an object with a 'zones' list")

    zones: List[Zone] = []
    rejections: List[ZoneRejection] = []
    for record in records:
        zone_id = str(record.get("id")) if isinstance(record, dict) and "id" in record else None
        if not isinstance(record, dict):
            rejections.append(ZoneRejection(None, "zone record must be an object"))
            continue
        try:
            zones.append(to_zone(record))
        except ValueError as e:
            log.warning(f"구역 레코드 변환 실패 zone_id:{zone_id} error:{e}")
            rejections.append(ZoneRejection(zone_id, str(e)))
    return zones, rejections


def load_zone_file(path: Union[str, Path]) -> Tuple[List[Zone], List[ZoneRejection]]:
    """
    JSON 구역 설정 파일을 읽어 구역 목록으로 변환합니다.

    Args:
        path: 구역 설정 파일 경로

    Returns:
        (변환된 구역 목록, 변환 단계에서 거부된 레코드 목록)
    """
    document = json.loads(Path(path).read_text(encoding="utf-8"))
    zones, rejections = zones_from_config(document)
    log.info(f"구역 설정 파일 읽음 path:{path} zones:{len(zones)} rejected:{len(rejections)}")
    return zones, rejections
