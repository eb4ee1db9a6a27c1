"""
Error taxonomy for the ChaloSafe geofence core.

Every error is local to a single zone, sample or acknowledgement request;
none of them is fatal to a monitoring session.
"""

from typing import Optional


class GeofenceError(Exception):
    """지오펜스 코어 오류의 기본 클래스"""


class InvalidZoneGeometry(GeofenceError):
    """로드 시점에 형상 검증에 실패한 구역"""

    def __init__(self, zone_id: Optional[str], reason: str):
        self.zone_id = zone_id
        self.reason = reason
        super().__init__(f"invalid geometry for zone {zone_id!r}: {reason}")


class InvalidPosition(GeofenceError):
    """위도/경도 범위를 벗어난 위치 샘플"""

    def __init__(self, lat, lng, reason: str = "coordinate out of range"):
        self.lat = lat
        self.lng = lng
        self.reason = reason
        super().__init__(f"invalid position ({lat}, {lng}): {reason}")


class AlertNotFound(GeofenceError):
    """존재하지 않는 경보 ID로 확인 요청"""

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"alert not found: {alert_id}")
