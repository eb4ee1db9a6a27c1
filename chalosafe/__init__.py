"""
ChaloSafe geofence monitoring service.

Evaluates tourist position streams against safety zones, raises alerts on
entry into risk zones and keeps a bounded safety score per subject.
"""

__version__ = "0.1.0"
