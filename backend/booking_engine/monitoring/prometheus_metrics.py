"""
Prometheus metrics for the booking engine.

Service timings come from the @measure_operation decorator; the domain
counters below are incremented by the coordinator and the lock manager.
"""

from threading import Lock
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "booking_engine_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "booking_engine_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "booking_engine_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

resource_lock_total = Counter(
    "booking_engine_resource_lock_total",
    "Resource lock operations by outcome",
    ["action", "outcome"],  # acquire|release x success|timeout|error|redis_unavailable
    registry=REGISTRY,
)

booking_outcomes_total = Counter(
    "booking_engine_booking_outcomes_total",
    "Booking operations by terminal outcome",
    ["operation", "outcome"],  # submit|edit|cancel|hold|confirm x success|conflict|invalid|error
    registry=REGISTRY,
)

optimistic_retries_total = Counter(
    "booking_engine_optimistic_retries_total",
    "Optimistic write collisions that triggered a retry",
    ["operation"],
    registry=REGISTRY,
)

event_dispatch_failures_total = Counter(
    "booking_engine_event_dispatch_failures_total",
    "Domain events the downstream dispatcher failed to accept",
    ["event_type"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _lock: Lock = Lock()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingCoordinator')
            operation: Operation/method name (e.g., 'submit')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_resource_lock(action: str, outcome: str) -> None:
        resource_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_booking_outcome(operation: str, outcome: str) -> None:
        booking_outcomes_total.labels(operation=operation, outcome=outcome).inc()

    @staticmethod
    def inc_optimistic_retry(operation: str) -> None:
        optimistic_retries_total.labels(operation=operation).inc()

    @staticmethod
    def inc_event_dispatch_failure(event_type: str) -> None:
        event_dispatch_failures_total.labels(event_type=event_type).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        with PrometheusMetrics._lock:
            return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
