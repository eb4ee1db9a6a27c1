"""
Observability for ChaloSafe.

Logging (loguru), Prometheus metrics and the FastAPI HTTP surface.
"""
