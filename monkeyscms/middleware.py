"""
Request middleware.

Assigns every request an id (taken from ``X-Request-ID`` when the client
sends one), logs start and completion, and records request metrics.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import clear_request_id, get_logger, set_request_id
from .metrics import track_request_metrics

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
UNTRACKED_PATHS = ("/metrics", "/health")


def _endpoint(request: Request) -> str:
    """Route template of the request, keeping metric label cardinality low."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and response with timing and the request id."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        start_time = time.perf_counter()
        path = request.url.path

        if path not in UNTRACKED_PATHS:
            logger.info(
                f"Request started: {request.method} {path}",
                extra={
                    "extra_fields": {
                        "method": request.method,
                        "path": path,
                        "client_host": request.client.host if request.client else None,
                    }
                },
            )

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time
            response.headers[REQUEST_ID_HEADER] = request_id

            if path not in UNTRACKED_PATHS:
                track_request_metrics(request.method, _endpoint(request), response.status_code, duration)
                logger.info(
                    f"Request completed: {request.method} {path} "
                    f"[{response.status_code}] ({duration * 1000:.2f}ms)",
                    extra={
                        "extra_fields": {
                            "status_code": response.status_code,
                            "duration_ms": duration * 1000,
                        }
                    },
                )
            return response
        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {path} ({duration_ms:.2f}ms)",
                extra={"extra_fields": {"error": str(exc)}},
            )
            raise
        finally:
            clear_request_id()
