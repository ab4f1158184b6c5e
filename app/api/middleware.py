"""
FastAPI Middleware for Request Tracking and Logging

Features:
- Request trace IDs for distributed tracing
- Request/response logging with duration
- Slow request warnings
- Prometheus metrics collection
"""

import time
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.logging_config import get_logger, set_trace_id, clear_trace_id


logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns a trace ID to each request and logs start and completion.

    The trace ID is taken from X-Trace-ID or X-Correlation-ID when the
    client sends one, otherwise generated, and echoed in both headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = (
            request.headers.get("X-Trace-ID") or
            request.headers.get("X-Correlation-ID") or
            str(uuid.uuid4())
        )
        set_trace_id(trace_id)

        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path

        logger.info(
            "request_started",
            method=method,
            path=path,
            client_host=client_host,
            user_agent=request.headers.get("user-agent", "unknown"),
            content_length=request.headers.get("content-length"),
        )

        try:
            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            response.headers["X-Trace-ID"] = trace_id
            response.headers["X-Correlation-ID"] = trace_id
            return response

        except Exception as exc:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "request_failed",
                method=method,
                path=path,
                client_host=client_host,
                duration_ms=round(duration_ms, 2),
                error_type=type(exc).__name__,
                error_message=str(exc),
                exc_info=True,
            )
            raise

        finally:
            clear_trace_id()


class PerformanceLoggingMiddleware(BaseHTTPMiddleware):
    """Logs a warning for requests slower than a threshold."""

    def __init__(self, app: ASGIApp, slow_request_threshold_ms: float = 1000.0):
        """Initialize performance middleware.

        Args:
            app: FastAPI application instance
            slow_request_threshold_ms: Threshold in ms for slow request warnings
        """
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        if duration_ms > self.slow_request_threshold_ms:
            logger.warning(
                "slow_request_detected",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
                threshold_ms=self.slow_request_threshold_ms,
                status_code=response.status_code,
            )

        return response


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collects request count, duration, in-flight and error metrics.

    Paths under the image prefix are collapsed into one endpoint label so
    every stored key does not become its own time series.
    """

    def __init__(self, app: ASGIApp, service_name: str, image_url_prefix: str = "/images"):
        super().__init__(app)
        self.service_name = service_name
        self.image_url_prefix = image_url_prefix.rstrip("/") + "/"

    def endpoint_label(self, path: str) -> str:
        if path.startswith(self.image_url_prefix):
            return self.image_url_prefix + "{key}"
        return path

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        from app.api.v1.metrics import (
            http_requests_total,
            http_request_duration_seconds,
            http_requests_in_progress,
            errors_total,
        )

        method = request.method
        path = request.url.path

        if path == "/metrics":
            return await call_next(request)

        endpoint = self.endpoint_label(path)
        http_requests_in_progress.labels(service=self.service_name, method=method).inc()

        start_time = time.time()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response

        except Exception as exc:
            errors_total.labels(
                service=self.service_name,
                error_type=type(exc).__name__,
                endpoint=endpoint
            ).inc()
            raise

        finally:
            duration = time.time() - start_time

            http_requests_in_progress.labels(service=self.service_name, method=method).dec()
            http_requests_total.labels(
                service=self.service_name,
                method=method,
                endpoint=endpoint,
                status=status_code
            ).inc()
            http_request_duration_seconds.labels(
                service=self.service_name,
                method=method,
                endpoint=endpoint
            ).observe(duration)
