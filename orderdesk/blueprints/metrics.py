"""
Prometheus metrics blueprint.

Exposes /metrics with HTTP request metrics and order desk business counters.
The endpoint is unauthenticated and meant for the internal network only.
"""
from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import time
import os

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share metrics through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

_metric_registry = registry if not MULTIPROCESS_MODE else None

# HTTP Request Metrics
http_requests_total = Counter(
    'orderdesk_http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry
)

http_request_duration_seconds = Histogram(
    'orderdesk_http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=_metric_registry,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_requests_in_flight = Gauge(
    'orderdesk_http_requests_in_flight',
    'Number of HTTP requests currently being processed',
    registry=_metric_registry
)

# Business Metrics
orders_created_total = Counter(
    'orderdesk_orders_created_total',
    'Orders created, by origin',
    ['origin'],
    registry=_metric_registry
)

orders_cancelled_total = Counter(
    'orderdesk_orders_cancelled_total',
    'Orders cancelled',
    registry=_metric_registry
)

payments_recorded_total = Counter(
    'orderdesk_payments_recorded_total',
    'Payments recorded against orders',
    registry=_metric_registry
)

stock_adjustments_total = Counter(
    'orderdesk_stock_adjustments_total',
    'Manual stock adjustments, by action',
    ['action'],
    registry=_metric_registry
)


def setup_metrics_instrumentation(app):
    """Register before/after request hooks that record HTTP metrics."""

    @app.before_request
    def before_request_metrics():
        g._prometheus_metrics_start_time = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def after_request_metrics(response):
        if hasattr(g, '_prometheus_metrics_start_time'):
            duration = time.time() - g._prometheus_metrics_start_time
            endpoint = request.endpoint or 'unknown'

            http_request_duration_seconds.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(duration)
            http_requests_total.labels(
                method=request.method,
                endpoint=endpoint,
                http_status=response.status_code
            ).inc()
            http_requests_in_flight.dec()

        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus metrics in text exposition format."""
    data = generate_latest(registry)
    return Response(data, mimetype=CONTENT_TYPE_LATEST)
