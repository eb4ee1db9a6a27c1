"""
Port interfaces for ChaloSafe hexagonal architecture.

This module defines the port interfaces (Protocols) that define
the contracts between the geofence core and external adapters.
"""

from .positions import PositionSourcePort
from .dispatch import AlertSinkPort
from .state import StateStorePort

__all__ = ["PositionSourcePort", "AlertSinkPort", "StateStorePort"]
