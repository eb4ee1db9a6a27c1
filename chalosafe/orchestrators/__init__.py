"""
Orchestrators for ChaloSafe.

This module contains the orchestrator that coordinates
the flow between position sources, the geofence core and the sinks.
"""
from .orchestrator import Orchestrator, subject_from_topic

__all__ = ["Orchestrator", "subject_from_topic"]
