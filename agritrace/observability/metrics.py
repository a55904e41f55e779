"""
Prometheus metrics collection for agritrace

This module provides metrics instrumentation for engine operations,
ledger and content-store adapter calls, and status transitions.
"""
import os
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# ENGINE METRICS
# =======================

operations_total = Counter(
    name="agritrace_operations_total",
    documentation="Total number of engine operations",
    labelnames=["operation", "status"],  # status: success, failure
    registry=REGISTRY,
)

operation_duration_seconds = Histogram(
    name="agritrace_operation_duration_seconds",
    documentation="Time spent in engine operations in seconds",
    labelnames=["operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

status_transitions_total = Counter(
    name="agritrace_status_transitions_total",
    documentation="Total number of committed product status transitions",
    labelnames=["from_status", "to_status"],
    registry=REGISTRY,
)

# =======================
# ADAPTER METRICS
# =======================

ledger_calls_total = Counter(
    name="agritrace_ledger_calls_total",
    documentation="Total number of ledger transactions issued",
    labelnames=["transaction", "mode", "status"],  # mode: submit, evaluate
    registry=REGISTRY,
)

content_store_calls_total = Counter(
    name="agritrace_content_store_calls_total",
    documentation="Total number of content store calls",
    labelnames=["operation", "status"],  # operation: put, get, pin
    registry=REGISTRY,
)

pin_failures_total = Counter(
    name="agritrace_pin_failures_total",
    documentation="Content hashes that could not be pinned after ledger commit",
    registry=REGISTRY,
)

# =======================
# ERROR METRICS
# =======================

errors_total = Counter(
    name="agritrace_errors_total",
    documentation="Total number of engine errors by kind",
    labelnames=["operation", "error_kind"],
    registry=REGISTRY,
)

retries_total = Counter(
    name="agritrace_retries_total",
    documentation="Total number of retry attempts for side-effect-free calls",
    labelnames=["operation", "status"],  # status: retrying, exhausted
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Content type for the Prometheus exposition format"""
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(operation_duration_seconds, operation="create_product"):
            ...
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    histogram.labels(**labels).observe(value)


def record_ledger_call(transaction: str, mode: str, success: bool) -> None:
    """Record a submit/evaluate call outcome."""
    status = "success" if success else "failure"
    increment_counter(ledger_calls_total, 1, transaction=transaction, mode=mode, status=status)


def record_content_call(operation: str, success: bool) -> None:
    """Record a put/get/pin call outcome."""
    status = "success" if success else "failure"
    increment_counter(content_store_calls_total, 1, operation=operation, status=status)


def record_operation(operation: str, error_kind: str | None = None) -> None:
    """
    Record the outcome of an engine operation.

    Args:
        operation: Engine operation name
        error_kind: Error kind when the operation failed, None on success
    """
    if error_kind is None:
        increment_counter(operations_total, 1, operation=operation, status="success")
    else:
        increment_counter(operations_total, 1, operation=operation, status="failure")
        increment_counter(errors_total, 1, operation=operation, error_kind=error_kind)
