"""
Tests for the field editor endpoints.
"""

from monkeyscms.auth.api_keys import ApiKeyService
from monkeyscms.auth.service import AuthService
from monkeyscms.fields.widgets import CORE_WIDGETS


class TestFieldsAuth:
    """Test access to the field endpoints."""

    def test_requires_authentication(self, client):
        response = client.get("/api/fields/types")
        assert response.status_code == 401
        assert response.json()["detail"] == "Authorization header required"

    def test_requires_admin_access(self, client, installed):
        """Test users without admin access are refused."""
        service = AuthService(installed)
        user = service.register("reader@example.com", "reader", "ReaderPass123", status="active").user
        tokens = service.issue_tokens(user)

        response = client.get("/api/fields/types", headers={"Authorization": f"Bearer {tokens.access_token}"})
        assert response.status_code == 403
        assert response.json()["detail"] == "Permission denied: access admin"

    def test_api_key_scope(self, client, admin_user, db_session):
        service = ApiKeyService(db_session)
        scoped = service.create(admin_user, "Reader", ["content.*"])
        full = service.create(admin_user, "Full", ["access.*"])

        denied = client.get("/api/fields/types", headers={"X-API-Key": scoped.key})
        assert denied.status_code == 403
        assert client.get("/api/fields/types", headers={"X-API-Key": full.key}).status_code == 200


class TestFieldCatalog:
    """Test listing types and widgets."""

    def test_types(self, client, auth_headers):
        response = client.get("/api/fields/types", headers=auth_headers)
        assert response.status_code == 200

        data = response.json()
        assert "Text" in data
        string_type = next(t for t in data["Text"] if t["id"] == "string")
        assert string_type["default_widget"] == "text_input"
        assert "text_input" in string_type["widgets"]

    def test_widgets(self, client, auth_headers):
        data = client.get("/api/fields/widgets", headers=auth_headers).json()

        assert list(data) == sorted(data)
        assert sum(len(widgets) for widgets in data.values()) == len(CORE_WIDGETS)
        assert any(widget["id"] == "repeater" for widget in data["Special"])


class TestFieldRender:
    """Test widget previews."""

    def test_render_string(self, client, auth_headers):
        response = client.post(
            "/api/fields/render",
            json={"field": {"name": "Title"}, "value": "Hello"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert 'name="field_title"' in data["html"]
        assert 'value="Hello"' in data["html"]
        assert data["js"] == []

    def test_render_collects_assets(self, client, auth_headers):
        """Test script files and init calls come back with the markup."""
        response = client.post(
            "/api/fields/render",
            json={"field": {"name": "Body", "field_type": "markdown"}, "form_id": "preview"},
            headers=auth_headers,
        )
        data = response.json()
        assert "/js/fields/markdown.js" in data["js"]
        assert "CmsMarkdown.init('preview_field_body');" in data["init_scripts"]

    def test_render_escapes_value(self, client, auth_headers):
        response = client.post(
            "/api/fields/render",
            json={"field": {"name": "Title"}, "value": '"><script>alert(1)</script>'},
            headers=auth_headers,
        )
        assert "<script>" not in response.json()["html"]

    def test_invalid_definition(self, client, auth_headers):
        response = client.post(
            "/api/fields/render",
            json={"field": {"name": "Title", "cardinality": 0}},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["detail"] == "Invalid cardinality: 0"

    def test_missing_name(self, client, auth_headers):
        response = client.post("/api/fields/render", json={"field": {"name": ""}}, headers=auth_headers)
        assert response.status_code == 422


class TestFieldValidate:
    """Test validating values without saving."""

    def test_errors(self, client, auth_headers):
        response = client.post(
            "/api/fields/validate",
            json={"fields": [{"name": "Title", "required": True}, {"name": "Notes"}], "values": {}},
            headers=auth_headers,
        )
        data = response.json()
        assert response.status_code == 200
        assert data["valid"] is False
        assert data["errors"] == {"field_title": ["Title is required"]}
        assert data["values"] == {}

    def test_prepared_values(self, client, auth_headers):
        """Test valid values come back converted to their stored form."""
        response = client.post(
            "/api/fields/validate",
            json={
                "fields": [{"name": "Count", "field_type": "integer"}, {"name": "Title"}],
                "values": {"field_count": "5", "field_title": "Hi"},
            },
            headers=auth_headers,
        )
        data = response.json()
        assert data["valid"] is True
        assert data["errors"] == {}
        assert data["values"] == {"field_count": 5, "field_title": "Hi"}
