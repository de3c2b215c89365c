"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'class_booking_attempts_total',
    'Total class booking attempts',
    ['status']  # success, rejected, error
)

booking_latency = Histogram(
    'class_booking_latency_seconds',
    'Class booking latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

cancellations = Counter(
    'class_booking_cancellations_total',
    'Booking cancellation attempts',
    ['status']  # success, rejected, error
)

# Saga compensations; result=failed means manual reconciliation is needed
compensations = Counter(
    'booking_compensations_total',
    'Compensating actions run after a partial write',
    ['operation', 'result']  # book_class/cancel_booking, succeeded/failed
)

# Store metrics
store_operations = Counter(
    'booking_store_operations_total',
    'Booking store operations',
    ['operation', 'result']  # ok, error
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, rejected, error"""
    booking_attempts.labels(status=status).inc()


def record_cancellation(status: str):
    cancellations.labels(status=status).inc()


def record_compensation(operation: str, succeeded: bool):
    result = "succeeded" if succeeded else "failed"
    compensations.labels(operation=operation, result=result).inc()


def record_store_operation(operation: str, ok: bool):
    result = "ok" if ok else "error"
    store_operations.labels(operation=operation, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
