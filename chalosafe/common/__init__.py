"""
Common utilities for ChaloSafe.

Geometry, clock and retry helpers shared by the core and the adapters.
"""
