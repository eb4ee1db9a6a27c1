"""
Core domain models and pure functions for ChaloSafe.

This module contains the geofence domain models and the business logic
that is independent of external I/O and infrastructure concerns.
"""

from .errors import AlertNotFound, GeofenceError, InvalidPosition, InvalidZoneGeometry
from .models import (
    Alert, CircleGeometry, Coordinate, PolygonGeometry, PositionSample,
    SafetyCondition, TransitionEvent, Zone,
)
from .zones import ZoneRegistry, ZoneRejection, validate_zone
from .geofence import GeofenceEvaluator, contains
from .alerts import AlertLifecycleManager
from .scoring import SafetyScoreAdjuster, assess_time_of_day, score_status
from .session import SessionState, SessionUpdate, SubjectSession
from .normalize import load_zone_file, to_position_sample, to_zone, zones_from_config

__all__ = [
    "AlertNotFound", "GeofenceError", "InvalidPosition", "InvalidZoneGeometry",
    "Alert", "CircleGeometry", "Coordinate", "PolygonGeometry", "PositionSample",
    "SafetyCondition", "TransitionEvent", "Zone",
    "ZoneRegistry", "ZoneRejection", "validate_zone",
    "GeofenceEvaluator", "contains",
    "AlertLifecycleManager",
    "SafetyScoreAdjuster", "assess_time_of_day", "score_status",
    "SessionState", "SessionUpdate", "SubjectSession",
    "load_zone_file", "to_position_sample", "to_zone", "zones_from_config",
]
