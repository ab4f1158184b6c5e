"""Prometheus metrics endpoint and metric definitions."""

from fastapi import APIRouter, Response
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

from app.core.config import settings


router = APIRouter(tags=["metrics"])


service_info = Info(
    'service',
    'Service information',
    registry=REGISTRY
)
service_info.info({
    'name': settings.SERVICE_NAME,
    'version': settings.VERSION,
    'environment': settings.ENVIRONMENT,
})


# HTTP Request Metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['service', 'method', 'endpoint', 'status'],
    registry=REGISTRY
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['service', 'method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
    registry=REGISTRY
)

http_requests_in_progress = Gauge(
    'http_requests_in_progress',
    'HTTP requests currently in progress',
    ['service', 'method'],
    registry=REGISTRY
)


# Upload Metrics
image_uploads_total = Counter(
    'image_uploads_total',
    'Total image uploads by outcome',
    ['service', 'status'],  # status: stored, rejected, failed
    registry=REGISTRY
)

image_upload_bytes = Histogram(
    'image_upload_bytes',
    'Size of accepted upload payloads in bytes',
    ['service'],
    buckets=(16_384, 65_536, 262_144, 524_288, 1_048_576, 2_097_152, 3_145_728, 4_194_304, 5_242_880),
    registry=REGISTRY
)

image_processing_duration_seconds = Histogram(
    'image_processing_duration_seconds',
    'Decode, rotate, resize and encode duration in seconds',
    ['service'],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
    registry=REGISTRY
)

cleanup_failures_total = Counter(
    'cleanup_failures_total',
    'Best-effort file removals that failed',
    ['service', 'reason'],  # reason: temp_upload, partial_write, stale_sweep
    registry=REGISTRY
)

errors_total = Counter(
    'errors_total',
    'Unhandled errors by type',
    ['service', 'error_type', 'endpoint'],
    registry=REGISTRY
)


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Expose metrics in Prometheus text format."""
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
