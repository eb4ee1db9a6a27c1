"""
Adapters for ChaloSafe hexagonal architecture.

This module contains the concrete implementations of port interfaces
that handle external I/O and infrastructure concerns.
"""

from .storage import SQLiteOutbox, SQLiteStateStore
from .mqtt_remote.client_async import RemoteMqttIngestor
from .mqtt_local.publisher_async import LocalMqttPublisher
from .homeassistant.client import DeviceTrackerPoller, HAClient

__all__ = ["SQLiteOutbox", "SQLiteStateStore", "RemoteMqttIngestor", "LocalMqttPublisher",
           "DeviceTrackerPoller", "HAClient"]
