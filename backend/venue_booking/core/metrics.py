"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Booking metrics
booking_attempts = Counter(
    'venue_booking_attempts_total',
    'Total booking creation attempts',
    ['status']  # created, conflict, invalid
)

status_transitions = Counter(
    'venue_booking_status_transitions_total',
    'Booking status transitions',
    ['target', 'result']  # Confirmed/Cancelled, applied/noop/conflict
)

confirm_latency = Histogram(
    'venue_booking_confirm_latency_seconds',
    'Confirm request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

auto_declined = Counter(
    'venue_booking_auto_declined_total',
    'Pending bookings cancelled by the confirm cascade'
)

cascade_failures = Counter(
    'venue_booking_cascade_failures_total',
    'Confirm cascades that failed after the confirmation committed'
)

# Consistency metrics
audit_log_failures = Counter(
    'venue_booking_audit_log_failures_total',
    'Confirmations whose audit log entry could not be written'
)

degraded_conflict_checks = Counter(
    'venue_booking_degraded_conflict_checks_total',
    'Conflict checks that skipped a failing source',
    ['source']
)

optimistic_lock_retries = Counter(
    'venue_booking_optimistic_lock_retries_total',
    'Confirm retries due to venue version conflicts'
)

schema_repairs = Counter(
    'venue_booking_schema_repairs_total',
    'Columns added by the schema repair hook'
)

# Cache metrics
cache_operations = Counter(
    'venue_booking_cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: created, conflict, invalid"""
    booking_attempts.labels(status=status).inc()


def record_transition(target: str, result: str):
    """Record a status change request. Result: applied, noop, conflict"""
    status_transitions.labels(target=target, result=result).inc()


def record_degraded_check(source: str):
    degraded_conflict_checks.labels(source=source).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
