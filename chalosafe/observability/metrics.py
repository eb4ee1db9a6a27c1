"""
Metrics definitions for ChaloSafe.

This module defines Prometheus metrics for monitoring
the geofence evaluation pipeline.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
positions_received = Counter(
    "positions_received_total",
    "Number of raw position samples received",
    ["source"]
)

positions_invalid = Counter(
    "positions_invalid_total",
    "Number of position samples dropped by validation",
    ["reason"]
)

positions_stale = Counter(
    "positions_stale_total",
    "Number of out-of-order position samples dropped"
)

positions_dropped = Counter(
    "positions_dropped_total",
    "Number of position samples dropped because the queue was full"
)

transitions = Counter(
    "zone_transitions_total",
    "Number of zone transition events",
    ["direction", "classification"]
)

alerts_raised = Counter(
    "alerts_raised_total",
    "Number of alerts raised",
    ["severity", "classification"]
)

alerts_suppressed = Counter(
    "alerts_suppressed_total",
    "Number of duplicate alerts suppressed while unacknowledged"
)

alerts_acknowledged = Counter(
    "alerts_acknowledged_total",
    "Number of alerts acknowledged"
)

zones_rejected = Counter(
    "zones_rejected_total",
    "Number of zones rejected at load time"
)

publish_retries = Counter(
    "publish_retries_total",
    "MQTT publish retries",
    ["topic"]
)

reconnects = Counter(
    "mqtt_reconnects_total",
    "MQTT client reconnects",
    ["client"]
)

# 히스토그램 메트릭
evaluate_seconds = Histogram(
    "evaluate_duration_seconds",
    "Time spent evaluating one position sample",
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1]
)

end_to_end_seconds = Histogram(
    "end_to_end_duration_seconds",
    "Total processing latency per sample including persistence and publish",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0]
)

# 게이지 메트릭
queue_depth = Gauge(
    "internal_queue_depth",
    "Current depth of orchestrator queue"
)

active_subjects = Gauge(
    "active_subjects",
    "Number of subjects with a live monitoring session"
)

zones_loaded = Gauge(
    "zones_loaded",
    "Number of zones in the active registry"
)

outbox_size = Gauge(
    "outbox_size",
    "Current number of items in outbox"
)

uptime_seconds = Gauge(
    "uptime_seconds",
    "Service uptime in seconds"
)
