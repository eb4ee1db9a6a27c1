"""
Remote MQTT position source adapter for ChaloSafe.

This module provides the implementation of PositionSourcePort
for receiving position samples from an MQTT broker.
"""

from .client_async import RemoteMqttIngestor

__all__ = ["RemoteMqttIngestor"]
