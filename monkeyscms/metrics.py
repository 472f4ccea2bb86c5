"""
Prometheus metrics for MonkeysCMS.

Tracks request performance, authentication outcomes and content writes.
"""

from fastapi import Response
from prometheus_client import (CONTENT_TYPE_LATEST, Counter, Histogram,
                               generate_latest)

# Request metrics
http_requests_total = Counter(
    "cms_http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "cms_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Authentication metrics
auth_login_total = Counter("cms_auth_login_total", "Total login attempts", ["status"])

auth_token_refresh_total = Counter(
    "cms_auth_token_refresh_total", "Total token refresh requests", ["status"]
)

auth_register_total = Counter("cms_auth_register_total", "Total registrations", ["status"])

# Content metrics
content_saves_total = Counter(
    "cms_content_saves_total", "Total node saves", ["content_type", "operation"]
)

field_renders_total = Counter(
    "cms_field_renders_total", "Total field preview renders", ["field_type"]
)


def _status(success: bool) -> str:
    return "success" if success else "failure"


def track_request_metrics(method: str, endpoint: str, status_code: int, duration: float):
    """Track HTTP request metrics."""
    http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)


def track_login(status: str):
    """Track login outcomes: ``success``, ``failure``, ``locked`` or ``2fa_required``."""
    auth_login_total.labels(status=status).inc()


def track_token_refresh(success: bool):
    auth_token_refresh_total.labels(status=_status(success)).inc()


def track_register(success: bool):
    auth_register_total.labels(status=_status(success)).inc()


def track_content_save(content_type: str, operation: str):
    content_saves_total.labels(content_type=content_type, operation=operation).inc()


def track_field_render(field_type: str):
    field_renders_total.labels(field_type=field_type).inc()


async def metrics_endpoint():
    """
    Prometheus metrics endpoint.

    Returns:
        Response with Prometheus metrics in text format
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
