"""
Local MQTT publishing adapter for ChaloSafe.

This module provides the implementation of AlertSinkPort
for publishing alerts to a local MQTT broker.
"""

from .publisher_async import LocalMqttPublisher

__all__ = ["LocalMqttPublisher"]
