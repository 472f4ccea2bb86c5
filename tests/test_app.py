"""
Tests for application wiring: health, metrics and error mapping.
"""

import inspect

import pytest
from fastapi.routing import APIRoute

from monkeyscms.app import app, status_for
from monkeyscms.exceptions import (AccountLockedException, CmsException,
                                   DuplicateException,
                                   FormValidationException, NotFoundException,
                                   PermissionDeniedException,
                                   ValidationException)


class TestHealthEndpoint:
    """Test the health check."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "monkeyscms"
        assert data["database"] == "connected"
        assert "hit_rate_percent" in data["cache"]

    def test_request_id_header(self, client):
        response = client.get("/health")
        assert response.headers.get("x-request-id")


class TestMetricsEndpoint:
    def test_metrics(self, client):
        client.get("/health")
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "cms_http_requests_total" in response.text


class TestExceptionMapping:
    """Test domain errors map to HTTP statuses."""

    @pytest.mark.parametrize(
        "exc,expected",
        [
            (FormValidationException({"title": ["Title is required"]}), 422),
            (ValidationException("weight", "x", "must be a number"), 422),
            (NotFoundException("Node", 1), 404),
            (DuplicateException("Block", "machine_name", "hero"), 409),
            (PermissionDeniedException("delete content"), 403),
            (CmsException("Something went wrong"), 400),
        ],
    )
    def test_status_for(self, exc, expected):
        assert status_for(exc) == expected

    def test_locked_account(self):
        assert status_for(AccountLockedException("admin")) == 423

    def test_error_body(self, admin_client):
        """Test domain errors raised in a route come back as JSON."""
        response = admin_client.get("/admin/content/add/missing")

        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "NotFoundException"
        assert data["details"]


class TestRouteHandlers:
    """Test routes that touch the database run in the threadpool."""

    def test_database_routes_are_sync(self):
        routes = [
            route
            for route in app.routes
            if isinstance(route, APIRoute) and route.path.startswith(("/admin", "/api/auth", "/health"))
        ]
        assert routes
        assert [route.path for route in routes if inspect.iscoroutinefunction(route.endpoint)] == []
