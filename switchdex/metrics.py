"""Prometheus metrics for the update engine."""

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("switchdex", "SwitchDex update engine info")
app_info.info({"version": "0.1.0", "name": "switchdex"})

# Source adapter metrics
source_fetches_total = Counter(
    "source_fetches_total",
    "Total number of source adapter calls",
    ["source", "status"],
)

source_fetch_duration_seconds = Histogram(
    "source_fetch_duration_seconds",
    "Time spent in source adapter calls",
    ["source"],
    buckets=[0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0, 30.0],
)

source_reliability = Gauge(
    "source_reliability",
    "Rolling success ratio of a source adapter",
    ["source"],
)

# Scan metrics
scan_passes_total = Counter(
    "scan_passes_total",
    "Total number of scan passes",
    ["trigger", "status"],
)

scan_entities_total = Counter(
    "scan_entities_total",
    "Entities processed by outcome",
    ["category", "outcome"],
)

scan_pass_duration_seconds = Histogram(
    "scan_pass_duration_seconds",
    "Duration of full scan passes",
    buckets=[10, 30, 60, 120, 300, 600, 1200, 3600],
)

scan_last_run_timestamp = Gauge(
    "scan_last_run_timestamp",
    "Timestamp of the last completed scan pass",
)

scan_skipped_total = Counter(
    "scan_skipped_total",
    "Scan triggers skipped or queued because a pass was running",
    ["trigger", "reason"],
)

# Notification metrics
notifications_total = Counter(
    "notifications_total",
    "Per-channel delivery attempts",
    ["category", "status"],
)

notifications_suppressed_total = Counter(
    "notifications_suppressed_total",
    "Version changes suppressed by the deduplication guard",
    ["category"],
)

operator_alerts_total = Counter(
    "operator_alerts_total",
    "Operator alerts by outcome",
    ["status"],
)

# Persistence metrics
store_writes_total = Counter(
    "store_writes_total",
    "Version store writes",
    ["store", "status"],
)


def record_fetch(source: str, status: str, duration: float):
    """Record a source adapter call."""
    source_fetches_total.labels(source=source, status=status).inc()
    source_fetch_duration_seconds.labels(source=source).observe(duration)


def update_source_reliability(source: str, value: float):
    """Update the reliability gauge for a source."""
    source_reliability.labels(source=source).set(value)


def record_entity_outcome(category: str, outcome: str):
    """Record the outcome of processing one entity."""
    scan_entities_total.labels(category=category, outcome=outcome).inc()


def record_scan_pass(trigger: str, success: bool, duration: float | None = None):
    """Record a completed scan pass."""
    import time

    status = "success" if success else "failure"
    scan_passes_total.labels(trigger=trigger, status=status).inc()
    if duration is not None:
        scan_pass_duration_seconds.observe(duration)
    scan_last_run_timestamp.set(time.time())


def record_scan_skipped(trigger: str, reason: str):
    """Record a trigger that did not start a pass."""
    scan_skipped_total.labels(trigger=trigger, reason=reason).inc()


def record_notification(category: str, success: bool):
    """Record one per-channel delivery attempt."""
    status = "success" if success else "failure"
    notifications_total.labels(category=category, status=status).inc()


def record_suppressed(category: str):
    """Record a suppressed duplicate detection."""
    notifications_suppressed_total.labels(category=category).inc()


def record_operator_alert(status: str):
    """Record an operator alert (sent, throttled, failed)."""
    operator_alerts_total.labels(status=status).inc()


def record_store_write(store: str, success: bool):
    """Record a version store write."""
    status = "success" if success else "failure"
    store_writes_total.labels(store=store, status=status).inc()
