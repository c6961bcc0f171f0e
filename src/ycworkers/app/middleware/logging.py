"""Request logging middleware: one canonical log line per API request."""

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ycworkers.app.config import get_settings
from ycworkers.app.logging import clear_trace_context, set_trace_id
from ycworkers.app.metrics.collector import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL
from ycworkers.core.logging_schema import Component, LogEvent

logger = logging.getLogger(__name__)
_logging_config = get_settings().logging

_PATH_PATTERNS = [
    (re.compile(r"^/api/v1/templates/[^/]+/provision$"), "/api/v1/templates/:name/provision"),
]

# Cardinality control: anything else is "other"
_KNOWN_ENDPOINTS = frozenset({
    "/api/v1/templates",
    "/api/v1/templates/:name/provision",
    "/api/v1/workers",
})

_SKIP_PATHS = ("/health", "/metrics")


def _normalize_path(path: str) -> str:
    for pattern, replacement in _PATH_PATTERNS:
        path = pattern.sub(replacement, path)
    return path if path in _KNOWN_ENDPOINTS else "other"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Sets trace_id from X-Trace-ID (or a new one) and logs each request.

    The trace id is echoed back in the X-Trace-ID response header.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = set_trace_id(request.headers.get("x-trace-id"))
        path = request.url.path

        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "Request failed",
                extra={
                    "event": LogEvent.REQUEST_FAILED,
                    "component": Component.API,
                    "method": request.method,
                    "path": path,
                    "duration_ms": (time.monotonic() - start) * 1000,
                },
            )
            raise
        finally:
            clear_trace_context()

        duration = time.monotonic() - start
        duration_ms = duration * 1000

        if path not in _SKIP_PATHS:
            endpoint = _normalize_path(path)
            HTTP_REQUESTS_TOTAL.labels(
                method=request.method, endpoint=endpoint, status=str(response.status_code)
            ).inc()
            HTTP_REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration)

            logger.info(
                "Request completed",
                extra={
                    "event": LogEvent.REQUEST_COMPLETE,
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "trace_id": trace_id,
                },
            )
            if duration_ms > _logging_config.slow_threshold_ms:
                logger.warning(
                    "Slow request detected",
                    extra={
                        "event": LogEvent.REQUEST_SLOW,
                        "path": path,
                        "duration_ms": duration_ms,
                        "threshold_ms": _logging_config.slow_threshold_ms,
                        "trace_id": trace_id,
                    },
                )

        response.headers["X-Trace-ID"] = trace_id
        return response
