"""
Metrics definitions for tourist safety tracking.

This module defines Prometheus metrics for monitoring
the location evaluation and alert delivery pipeline.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
events_received = Counter(
    "device_events_received_total",
    "Number of raw device events received over MQTT",
    ["kind"]
)

location_samples = Counter(
    "location_samples_total",
    "Location samples processed",
    ["result"]
)

geofence_transitions = Counter(
    "geofence_transitions_total",
    "Geofence entry/exit alerts appended",
    ["type", "severity"]
)

region_failures = Counter(
    "geofence_region_failures_total",
    "Regions skipped during evaluation",
    ["reason"]
)

alerts_created = Counter(
    "alerts_created_total",
    "Alerts appended to the ledger by non-geofence producers",
    ["type", "severity"]
)

alerts_acknowledged = Counter(
    "alerts_acknowledged_total",
    "Alerts acknowledged",
    ["mode"]
)

notifications_enqueued = Counter(
    "notifications_enqueued_total",
    "Dashboard notifications written to the outbox",
    ["event"]
)

notifications_published = Counter(
    "notifications_published_total",
    "Dashboard notifications published to MQTT",
    ["event"]
)

notifications_dropped = Counter(
    "notifications_dropped_total",
    "Dashboard notifications dropped after max retries",
    ["event"]
)

publish_retries = Counter(
    "publish_retries_total",
    "MQTT publish retries",
    ["event"]
)

reconnects = Counter(
    "mqtt_reconnects_total",
    "MQTT client reconnects",
    ["client"]
)

ledger_requests = Counter(
    "incident_ledger_requests_total",
    "Incident ledger logging attempts",
    ["result"]
)

# 히스토그램 메트릭
evaluation_seconds = Histogram(
    "geofence_evaluation_duration_seconds",
    "Time spent evaluating one sample against all active regions",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

end_to_end_seconds = Histogram(
    "end_to_end_duration_seconds",
    "Total location processing latency",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0]
)

# 게이지 메트릭
queue_depth = Gauge(
    "internal_queue_depth",
    "Current depth of orchestrator queue"
)

outbox_size = Gauge(
    "outbox_size",
    "Current number of items in outbox"
)

uptime_seconds = Gauge(
    "uptime_seconds",
    "Service uptime in seconds"
)
