"""
Alert lifecycle management for ChaloSafe.

Converts zone transition events into alerts, suppresses duplicates while
an alert for the same zone is still unacknowledged, and tracks
acknowledgement. Alerts are retained for the whole session as history.
"""

from typing import Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from chalosafe.common.clock import utc_now
from chalosafe.core.errors import AlertNotFound
from chalosafe.core.models import Alert, TransitionEvent
from chalosafe.core.zones import ZoneRegistry
from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.alerts")


def new_alert_id() -> str:
    return f"alert-{uuid4().hex}"


class AlertLifecycleManager:
    """대상 한 명의 경보 생애주기 관리자"""

    def __init__(self, registry: ZoneRegistry, *,
                 subject_id: Optional[str] = None,
                 alerts: Optional[Iterable[Alert]] = None,
                 id_factory: Callable[[], str] = new_alert_id):
        self.registry = registry
        self.subject_id = subject_id
        self._id_factory = id_factory
        self._alerts: Dict[str, Alert] = {}
        # 구역별 미확인 경보 ID
        self._open_by_zone: Dict[str, str] = {}
        self.suppressed_count = 0
        for alert in alerts or ():
            self._remember(alert)

    def _remember(self, alert: Alert) -> None:
        self._alerts[alert.id] = alert
        if not alert.acknowledged:
            self._open_by_zone[alert.zone_id] = alert.id

    def on_transition(self, event: TransitionEvent) -> Optional[Alert]:
        """
        전이 이벤트를 경보로 변환합니다.

        Args:
            event: 구역 진입/이탈 이벤트

        Returns:
            새로 생성된 경보, 경보 대상이 아니거나 중복 억제된 경우 None
        """
        if event.direction != "entering":
            return None

        zone = self.registry.get(event.zone_id)
        if zone is None:
            log.warning(f"알 수 없는 구역의 전이 이벤트 무시 zone_id:{event.zone_id}")
            return None

        # 안전 구역 진입은 경보 없음
        if not zone.is_alerting:
            return None

        if zone.id in self._open_by_zone:
            self.suppressed_count += 1
            log.debug(f"미확인 경보가 있어 중복 억제 zone_id:{zone.id} "
                      f"alert_id:{self._open_by_zone[zone.id]}")
            return None

        alert = Alert(
            id=self._id_factory(),
            subject_id=self.subject_id,
            zone_id=zone.id,
            zone_name=zone.name,
            zone_classification=zone.classification,
            direction=event.direction,
            severity=zone.alert_level,
            timestamp=event.timestamp,
        )
        self._remember(alert)
        log.info(f"경보 생성 alert_id:{alert.id} zone:{zone.name} severity:{alert.severity} "
                 f"subject:{self.subject_id}")
        return alert

    def acknowledge(self, alert_id: str) -> Alert:
        """
        경보를 확인 처리합니다 (이미 확인된 경보는 그대로 반환).

        Raises:
            AlertNotFound: 존재하지 않는 경보 ID
        """
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFound(alert_id)
        if alert.acknowledged:
            return alert

        alert.acknowledged = True
        alert.acknowledged_at = utc_now()
        if self._open_by_zone.get(alert.zone_id) == alert.id:
            del self._open_by_zone[alert.zone_id]
        log.info(f"경보 확인됨 alert_id:{alert.id} zone_id:{alert.zone_id}")
        return alert

    def get(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    def alerts(self) -> List[Alert]:
        """생성 순서대로 정렬된 전체 경보 이력"""
        return list(self._alerts.values())

    def unacknowledged(self) -> List[Alert]:
        return [a for a in self._alerts.values() if not a.acknowledged]

    def has_open_alerts(self) -> bool:
        return bool(self._open_by_zone)

    def snapshot(self) -> List[Alert]:
        """저장용 경보 이력 (원본과 분리된 복사본)"""
        return [a.model_copy() for a in self._alerts.values()]

    def restore(self, alerts: Iterable[Alert]) -> None:
        """저장된 경보 이력으로 교체합니다. 미확인 경보는 다시 중복 억제 대상이 됩니다."""
        self._alerts = {}
        self._open_by_zone = {}
        for alert in alerts:
            self._remember(alert.model_copy())
