"""
Prometheus metrics for storm feed monitoring.

Focused on essential metrics:
- Reports fetched per category
- Message production counts and errors
- Delivery queue depth and oversize drops
- Broker connection health
- Run outcomes and duration
- Processor outcomes
"""

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Core Metrics
# =============================================================================

reports_fetched_counter = Counter(
    "stormfeed_reports_fetched_total",
    "Total number of report rows parsed from remote feeds",
    labelnames=["category"],
)

messages_produced_counter = Counter(
    "stormfeed_messages_produced_total",
    "Total number of messages produced to topics",
    labelnames=["topic"],
)

producer_errors_counter = Counter(
    "stormfeed_producer_errors_total",
    "Total producer errors by error type",
    labelnames=["topic", "error_type"],
)

oversize_messages_counter = Counter(
    "stormfeed_oversize_messages_total",
    "Total records dropped because their payload exceeded the size ceiling",
)

delivery_queue_depth_gauge = Gauge(
    "stormfeed_delivery_queue_depth",
    "Current number of messages waiting in the delivery queue",
)

connection_status_gauge = Gauge(
    "stormfeed_connection_status",
    "Broker connection status (1=connected, 0=disconnected)",
    labelnames=["component"],
)

runs_counter = Counter(
    "stormfeed_runs_total",
    "Total pipeline runs by outcome",
    labelnames=["outcome"],
)

run_duration_seconds = Histogram(
    "stormfeed_run_duration_seconds",
    "Wall-clock duration of pipeline runs",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
)

processor_records_counter = Counter(
    "stormfeed_processor_records_total",
    "Total raw records handled by the processor by outcome",
    labelnames=["outcome"],
)


# =============================================================================
# Convenience Functions (minimal set, callers can use metrics directly)
# =============================================================================


def record_reports_fetched(category: str, count: int) -> None:
    """Record rows parsed from one category feed."""
    reports_fetched_counter.labels(category=category).inc(count)


def record_message_produced(topic: str, success: bool = True, error_type: str = "send_failed") -> None:
    """Record a produced message."""
    if success:
        messages_produced_counter.labels(topic=topic).inc()
    else:
        producer_errors_counter.labels(topic=topic, error_type=error_type).inc()


def record_oversize_message() -> None:
    oversize_messages_counter.inc()


def update_queue_depth(depth: int) -> None:
    delivery_queue_depth_gauge.set(depth)


def update_connection_status(component: str, connected: bool) -> None:
    """Update broker connection status."""
    connection_status_gauge.labels(component=component).set(1 if connected else 0)


def record_run(outcome: str, duration_seconds: float) -> None:
    """Record a finished pipeline run."""
    runs_counter.labels(outcome=outcome).inc()
    run_duration_seconds.observe(duration_seconds)


def record_processor_outcome(outcome: str) -> None:
    processor_records_counter.labels(outcome=outcome).inc()


__all__ = [
    # Metrics
    "reports_fetched_counter",
    "messages_produced_counter",
    "producer_errors_counter",
    "oversize_messages_counter",
    "delivery_queue_depth_gauge",
    "connection_status_gauge",
    "runs_counter",
    "run_duration_seconds",
    "processor_records_counter",
    # Helper functions
    "record_reports_fetched",
    "record_message_produced",
    "record_oversize_message",
    "update_queue_depth",
    "update_connection_status",
    "record_run",
    "record_processor_outcome",
]
