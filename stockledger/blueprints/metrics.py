"""
Prometheus metrics blueprint.

Exposes /metrics with request latency and the ledger counters
(committed documents per kind, rejected operations per error type).
Restrict this endpoint to the monitoring network.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share samples through PROMETHEUS_MULTIPROC_DIR
if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _metric_registry = None
else:
    registry = REGISTRY
    _metric_registry = REGISTRY

http_request_duration_seconds = Histogram(
    'stockledger_http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

ledger_documents_committed_total = Counter(
    'ledger_documents_committed_total',
    'Documents committed to the stock and party ledgers',
    ['kind'],
    registry=_metric_registry,
)

ledger_rejections_total = Counter(
    'ledger_rejections_total',
    'Ledger operations rejected, by error type',
    ['reason'],
    registry=_metric_registry,
)


def record_commit(kind: str) -> None:
    ledger_documents_committed_total.labels(kind=kind).inc()


def record_rejection(error: Exception) -> None:
    ledger_rejections_total.labels(reason=type(error).__name__).inc()


def setup_metrics_instrumentation(app):
    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def observe_latency(response):
        started = g.pop('request_started', None)
        if started is not None:
            http_request_duration_seconds.labels(
                method=request.method,
                endpoint=request.endpoint or 'unknown',
                http_status=response.status_code,
            ).observe(time.perf_counter() - started)
        return response


@metrics_bp.route('/metrics')
def metrics():
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
