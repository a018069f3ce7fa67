"""
Prometheus metrics collection for taskguard

Counts validations, the codes they fail with, rule execution faults and
integrity scan outcomes so data health can be graphed over time.
"""
import os
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Private registry so several ValidationSystem instances (tests) can coexist
REGISTRY = CollectorRegistry()


# =======================
# VALIDATION METRICS
# =======================

validations_total = Counter(
    name="taskguard_validations_total",
    documentation="Total number of validation calls",
    labelnames=["model", "operation", "status"],  # status: success, failure
    registry=REGISTRY,
)

validation_duration_seconds = Histogram(
    name="taskguard_validation_duration_seconds",
    documentation="Time spent in a single ValidationSystem call",
    labelnames=["model", "operation"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    registry=REGISTRY,
)

validation_failures_total = Counter(
    name="taskguard_validation_failures_total",
    documentation="Total number of validation errors by code",
    labelnames=["model", "code"],
    registry=REGISTRY,
)

validation_warnings_total = Counter(
    name="taskguard_validation_warnings_total",
    documentation="Total number of validation warnings by code",
    labelnames=["model", "code"],
    registry=REGISTRY,
)

rule_execution_errors_total = Counter(
    name="taskguard_rule_execution_errors_total",
    documentation="Business rules whose conditions or actions raised",
    labelnames=["model", "rule_id"],
    registry=REGISTRY,
)

# =======================
# INTEGRITY METRICS
# =======================

integrity_checks_total = Counter(
    name="taskguard_integrity_checks_total",
    documentation="Total number of integrity scans performed",
    labelnames=["status"],  # status: success, failure
    registry=REGISTRY,
)

integrity_check_duration_seconds = Histogram(
    name="taskguard_integrity_check_duration_seconds",
    documentation="Time spent in a full integrity scan",
    buckets=[0.01, 0.1, 0.5, 1.0, 5.0, 30.0, 120.0, 600.0],
    registry=REGISTRY,
)

integrity_violations_total = Counter(
    name="taskguard_integrity_violations_total",
    documentation="Integrity violations found by scans",
    labelnames=["type", "severity"],
    registry=REGISTRY,
)

integrity_health_score = Gauge(
    name="taskguard_integrity_health_score",
    documentation="Health score (0-100) of the most recent integrity scan",
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """Generate Prometheus metrics in text format"""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: avoids binding a port just by importing this module
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(validation_duration_seconds, model="item", operation="create"):
            ...
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        metric = self.histogram.labels(**self.labels) if self.labels else self.histogram
        self.timer = metric.time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """Increment a counter metric"""
    counter.labels(**labels).inc(value)


def record_validation(model: str, operation: str, result) -> None:
    """
    Record the outcome of one validation call.

    Args:
        model: Model name that was validated
        operation: create, update or delete
        result: ValidationResult (or anything with ``success``/``errors``/``warnings``)
    """
    status = "success" if result.success else "failure"
    increment_counter(validations_total, 1, model=model, operation=operation, status=status)
    for error in result.errors:
        increment_counter(validation_failures_total, 1, model=model, code=getattr(error.code, "value", error.code))
    for warning in result.warnings:
        increment_counter(validation_warnings_total, 1, model=model, code=getattr(warning.code, "value", warning.code))


def record_integrity_check(result) -> None:
    """
    Record an integrity scan outcome.

    Args:
        result: IntegrityMonitorResult
    """
    increment_counter(integrity_checks_total, 1, status="success" if result.success else "failure")
    integrity_check_duration_seconds.observe(result.duration_ms / 1000.0)
    for violation in result.errors:
        increment_counter(
            integrity_violations_total,
            1,
            type=violation.type.value,
            severity=violation.severity.value,
        )
    integrity_health_score.set(result.summary.health_score)
