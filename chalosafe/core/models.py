"""
Core domain models for ChaloSafe.

This module defines the geofence domain models using Pydantic v2
for type safety, validation and serialization of session state.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chalosafe.common.clock import to_utc
from chalosafe.common.geo import validate_coordinates
from chalosafe.core.errors import InvalidPosition

# 구역 분류
ZoneClassification = Literal["safe", "caution", "danger", "geofence-restricted"]

# 경보 수준 (구역 진입 시 경보 심각도로 사용)
AlertLevel = Literal["low", "medium", "high"]
Severity = AlertLevel

Direction = Literal["entering", "exiting"]

ALERTING_CLASSIFICATIONS = frozenset({"caution", "danger", "geofence-restricted"})


class Coordinate(BaseModel):
    """위도/경도 좌표 (도 단위)"""
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float

    @classmethod
    def checked(cls, lat: float, lng: float) -> "Coordinate":
        """범위를 검증한 좌표를 생성합니다. 범위를 벗어나면 InvalidPosition."""
        if isinstance(lat, bool) or isinstance(lng, bool):
            raise InvalidPosition(lat, lng, "coordinate must be numeric")
        try:
            lat_f = float(lat)
            lng_f = float(lng)
        except (TypeError, ValueError):
            raise InvalidPosition(lat, lng, "coordinate must be numeric") from None
        if not validate_coordinates(lat_f, lng_f):
            raise InvalidPosition(lat, lng)
        return cls(lat=lat_f, lng=lng_f)

    def is_valid(self) -> bool:
        return validate_coordinates(self.lat, self.lng)

    def as_point(self) -> Tuple[float, float]:
        """(경도, 위도) 평면 좌표로 변환합니다."""
        return (self.lng, self.lat)


class CircleGeometry(BaseModel):
    """원형 구역 형상"""
    model_config = ConfigDict(frozen=True)

    type: Literal["circle"] = "circle"
    center: Coordinate
    radius_m: float


class PolygonGeometry(BaseModel):
    """폴리곤 구역 형상 (꼭짓점 순서가 변을 정의함)"""
    model_config = ConfigDict(frozen=True)

    type: Literal["polygon"] = "polygon"
    points: Tuple[Coordinate, ...]

    @field_validator("points")
    @classmethod
    def _drop_closing_vertex(cls, points: Tuple[Coordinate, ...]) -> Tuple[Coordinate, ...]:
        # GeoJSON 스타일로 닫힌 링(첫 점 == 마지막 점)은 마지막 점을 제거
        if len(points) > 1 and points[0] == points[-1]:
            return points[:-1]
        return points

    def ring(self) -> List[Tuple[float, float]]:
        """ray casting용 (경도, 위도) 꼭짓점 목록"""
        return [p.as_point() for p in self.points]


Geometry = Annotated[Union[CircleGeometry, PolygonGeometry], Field(discriminator="type")]


class Zone(BaseModel):
    """안전 구역 모델 (모니터링 세션 동안 불변)"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    classification: ZoneClassification
    geometry: Geometry
    alert_level: AlertLevel = "low"
    description: Optional[str] = None

    @property
    def is_alerting(self) -> bool:
        return self.classification in ALERTING_CLASSIFICATIONS


class TransitionEvent(BaseModel):
    """구역 진입/이탈 이벤트"""
    model_config = ConfigDict(frozen=True)

    zone_id: str
    direction: Direction
    timestamp: datetime
    position: Coordinate
    accuracy_m: Optional[float] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _utc(cls, value):
        return to_utc(value)


class Alert(BaseModel):
    """구역 진입 경보 (acknowledged 필드만 false -> true로 변경됨)"""

    id: str
    subject_id: Optional[str] = None
    zone_id: str
    zone_name: str
    zone_classification: ZoneClassification
    direction: Direction
    severity: Severity
    timestamp: datetime
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None

    @field_validator("timestamp", "acknowledged_at", mode="before")
    @classmethod
    def _utc(cls, value):
        if value is None:
            return None
        return to_utc(value)


class PositionSample(BaseModel):
    """위치 추적기가 공급하는 샘플"""
    model_config = ConfigDict(frozen=True)

    subject_id: str
    coordinate: Coordinate
    timestamp: datetime
    accuracy_m: Optional[float] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _utc(cls, value):
        return to_utc(value)


class SafetyCondition(BaseModel):
    """주기적 안전 상태 평가 결과"""
    level: Literal["safe", "medium", "high"]
    message: str
    recommendations: List[str] = Field(default_factory=list)
