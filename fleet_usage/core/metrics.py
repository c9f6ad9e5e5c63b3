"""Prometheus metrics for monitoring"""
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest

registry = CollectorRegistry()

request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=registry
)

store_operations = Counter(
    'store_operations_total',
    'Total entity store operations',
    ['operation', 'status'],
    registry=registry
)

store_operation_duration = Histogram(
    'store_operation_duration_seconds',
    'Entity store operation duration in seconds',
    ['operation'],
    registry=registry
)

trip_transitions = Counter(
    'trip_transitions_total',
    'Trip status transitions applied',
    ['from_status', 'to_status'],
    registry=registry
)

trip_transitions_rejected = Counter(
    'trip_transitions_rejected_total',
    'Trip operations rejected because of the current status',
    ['status', 'target'],
    registry=registry
)

partial_completions = Counter(
    'trip_partial_completions_total',
    'Trip completions where only one of the two writes reached the store',
    registry=registry
)

audit_logs_created = Counter(
    'audit_logs_created_total',
    'Total audit logs created',
    ['action'],
    registry=registry
)

redis_connected = Gauge(
    'redis_connected',
    'Redis connection status (1=connected, 0=disconnected)',
    registry=registry
)

db_connected = Gauge(
    'db_connected',
    'Database connection status (1=connected, 0=disconnected)',
    registry=registry
)


def get_metrics_text() -> str:
    """Generate Prometheus metrics in text format"""
    return generate_latest(registry).decode('utf-8')
