"""
Home Assistant adapter for ChaloSafe.

Polls device trackers over the Home Assistant REST API as a position source.
"""

from .client import DeviceTrackerPoller, HAClient

__all__ = ["DeviceTrackerPoller", "HAClient"]
