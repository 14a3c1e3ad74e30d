from prometheus_client import Counter, Histogram, generate_latest
from fastapi import Request, Response
import structlog

logger = structlog.get_logger()

# Prometheus metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

API_ERRORS = Counter(
    'api_errors_total',
    'Total API errors',
    ['endpoint', 'error_type']
)

DONOR_REGISTRATIONS = Counter(
    'donor_registrations_total',
    'Donor registration events',
    ['target', 'action']
)

CERTIFICATES_ISSUED = Counter(
    'certificates_issued_total',
    'Donation certificates issued'
)

PAYMENT_NOTIFICATIONS = Counter(
    'payment_notifications_total',
    'Payment gateway notifications by mapped status',
    ['status']
)


def setup_prometheus_metrics():
    """Setup Prometheus metrics collection."""
    logger.info("Prometheus metrics enabled")


def _endpoint_label(request: Request) -> str:
    # Route template keeps label cardinality bounded (/blood-requests/{request_id}).
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def track_request_metrics(request: Request, response: Response, process_time: float):
    """Track request metrics for Prometheus."""
    endpoint = _endpoint_label(request)
    REQUEST_COUNT.labels(
        method=request.method,
        endpoint=endpoint,
        status_code=response.status_code
    ).inc()

    REQUEST_DURATION.labels(
        method=request.method,
        endpoint=endpoint
    ).observe(process_time)


def track_api_error(endpoint: str, error_type: str):
    """Track API errors."""
    API_ERRORS.labels(
        endpoint=endpoint,
        error_type=error_type
    ).inc()


def track_registration(target: str, action: str):
    DONOR_REGISTRATIONS.labels(target=target, action=action).inc()


def track_certificate_issued():
    CERTIFICATES_ISSUED.inc()


def track_payment_notification(status: str):
    PAYMENT_NOTIFICATIONS.labels(status=status).inc()


def get_prometheus_metrics():
    """Get Prometheus metrics in text format."""
    return generate_latest()
