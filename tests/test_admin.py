"""
Tests for the server-rendered admin pages.
"""

import pytest

from monkeyscms.auth import totp
from monkeyscms.auth.service import AuthService
from monkeyscms.blocks import BlockManager
from monkeyscms.content import NodeManager
from monkeyscms.fields.definition import FieldDefinition
from monkeyscms.models import RefreshToken
from monkeyscms.taxonomy import TaxonomyManager
from conftest import ADMIN_PASSWORD, EDITOR_PASSWORD, csrf_token


def login_form(client, login="admin", password=ADMIN_PASSWORD):
    page = client.get("/admin/login")
    return client.post(
        "/admin/login",
        data={"login": login, "password": password, "_token": csrf_token(page.text)},
        follow_redirects=False,
    )


def post_form(client, page_url, action, data=None):
    """Submit a form on an admin page with the page's CSRF token."""
    token = csrf_token(client.get(page_url).text)
    return client.post(action, data={**(data or {}), "_token": token}, follow_redirects=False)


@pytest.fixture
def nodes(db_session):
    manager = NodeManager(db_session)
    manager.types.register(
        "article",
        "Article",
        fields=[FieldDefinition(name="Summary", field_type="string", required=True)],
    )
    return manager


class TestAdminLogin:
    """Test session login for the admin area."""

    def test_anonymous_redirected(self, client, installed):
        response = client.get("/admin", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/admin/login"

    def test_root_redirects_to_admin(self, client, installed):
        response = client.get("/", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "/admin"

    def test_login_returns_to_intended_page(self, client, admin_user):
        """Test logging in continues to the page that asked for it."""
        client.get("/admin/content", follow_redirects=False)

        response = login_form(client)
        assert response.status_code == 303
        assert response.headers["location"] == "/admin/content"

    def test_login_wrong_password(self, client, admin_user):
        response = login_form(client, password="WrongPass123")
        assert response.status_code == 401
        assert "Invalid email or password" in response.text

    def test_login_rejects_bad_csrf(self, client, admin_user):
        client.get("/admin/login")
        response = client.post(
            "/admin/login",
            data={"login": "admin", "password": ADMIN_PASSWORD, "_token": "forged"},
            follow_redirects=False,
        )
        assert response.status_code == 403

    def test_editor_can_log_in(self, client, editor_user):
        response = login_form(client, "editor", EDITOR_PASSWORD)
        assert response.headers["location"] == "/admin"

    def test_user_without_admin_access(self, client, installed):
        """Test accounts lacking admin access are sent back with a message."""
        AuthService(installed).register("reader@example.com", "reader", "ReaderPass123", status="active")

        response = login_form(client, "reader", "ReaderPass123")
        assert response.headers["location"] == "/admin/login"
        assert "cannot access the admin area" in client.get("/admin/login").text
        assert client.get("/admin", follow_redirects=False).status_code == 303

    def test_pending_account_refused(self, client, installed):
        """Test accounts awaiting email verification cannot open a session."""
        AuthService(installed).register("new@example.com", "newbie", "NewUserPass1")

        response = login_form(client, "newbie", "NewUserPass1")
        assert response.status_code == 401
        assert "Email address has not been verified" in response.text

    def test_session_login_stores_no_refresh_token(self, admin_client, db_session):
        assert db_session.query(RefreshToken).count() == 0

    def test_two_factor_login(self, client, admin_user, db_session):
        secret = totp.generate_secret()
        AuthService(db_session).enable_two_factor(admin_user, secret, totp.generate_code(secret))

        response = login_form(client)
        assert response.headers["location"] == "/admin/login/2fa"

        bad = post_form(client, "/admin/login/2fa", "/admin/login/2fa", {"code": "000000"})
        assert bad.status_code == 401

        response = post_form(client, "/admin/login/2fa", "/admin/login/2fa", {"code": totp.generate_code(secret)})
        assert response.status_code == 303
        assert response.headers["location"] == "/admin"

    def test_two_factor_page_without_challenge(self, client, installed):
        response = client.get("/admin/login/2fa", follow_redirects=False)
        assert response.headers["location"] == "/admin/login"

    def test_logout(self, admin_client):
        response = post_form(admin_client, "/admin", "/admin/logout")
        assert response.status_code == 303
        assert admin_client.get("/admin", follow_redirects=False).status_code == 303


class TestDashboard:
    def test_dashboard(self, admin_client, nodes):
        response = admin_client.get("/admin")
        assert response.status_code == 200
        assert "Dashboard" in response.text
        assert "1 content type" in response.text
        assert "1 vocabulary" in response.text
        assert "/admin/content/add/article" in response.text

    def test_content_types_page(self, admin_client, nodes):
        response = admin_client.get("/admin/structure/types")
        assert response.status_code == 200
        assert "Summary (string, required)" in response.text


class TestNodePages:
    """Test creating and editing content through forms."""

    def test_create_form(self, admin_client, nodes):
        response = admin_client.get("/admin/content/add/article")
        assert response.status_code == 200
        assert 'name="field_summary"' in response.text

    def test_create(self, admin_client, nodes):
        response = post_form(
            admin_client,
            "/admin/content/add/article",
            "/admin/content/add/article",
            {"title": "Launch", "field_summary": "We are live", "status": "published"},
        )
        node = nodes.list()[0]
        assert response.status_code == 303
        assert response.headers["location"] == f"/admin/content/{node.id}/edit"
        assert node.status == "published"
        assert nodes.get_values(node) == {"field_summary": "We are live"}

        page = admin_client.get(response.headers["location"])
        assert "Launch has been created" in page.text

    def test_create_invalid(self, admin_client, nodes):
        """Test field errors re-render the form with the submitted title."""
        response = post_form(
            admin_client,
            "/admin/content/add/article",
            "/admin/content/add/article",
            {"title": "Draft title", "field_summary": ""},
        )
        assert response.status_code == 422
        assert "Summary is required" in response.text
        assert 'value="Draft title"' in response.text
        assert nodes.count() == 0

    def test_edit_and_revert(self, admin_client, nodes, admin_user):
        node = nodes.create("article", "Original", {"field_summary": "First"}, author_id=admin_user.id)
        edit_url = f"/admin/content/{node.id}/edit"

        response = post_form(admin_client, edit_url, edit_url, {"title": "Renamed", "field_summary": "Second"})
        assert response.status_code == 303
        assert node.title == "Renamed"
        assert node.revision_id == 2

        response = post_form(admin_client, edit_url, f"/admin/content/{node.id}/revert/1")
        assert response.status_code == 303
        assert node.title == "Original"
        assert nodes.get_values(node) == {"field_summary": "First"}
        assert "reverted to revision 1" in admin_client.get(edit_url).text

    def test_taxonomy_field_offers_terms(self, admin_client, nodes, db_session):
        """Test the node form lists vocabulary terms and saving tags the node."""
        taxonomy = TaxonomyManager(db_session)
        term = taxonomy.create_term("tags", {"name": "Python"})
        nodes.types.register(
            "post",
            "Post",
            fields=[
                FieldDefinition(
                    name="Tags", field_type="taxonomy_reference", multiple=True, settings={"vocabulary": "tags"}
                )
            ],
        )

        page = admin_client.get("/admin/content/add/post")
        assert "Python" in page.text
        assert "No terms available" not in page.text

        post_form(
            admin_client,
            "/admin/content/add/post",
            "/admin/content/add/post",
            {"title": "Tagged", "field_tags[]": str(term.id)},
        )
        node = nodes.list("post")[0]
        assert [t.name for t in taxonomy.get_terms_for_content(node.id, "post")] == ["Python"]

    def test_list_and_delete(self, admin_client, nodes):
        node = nodes.create("article", "Doomed", {"field_summary": "x"})
        node_id = node.id
        assert "Doomed" in admin_client.get("/admin/content?type=article").text

        response = post_form(admin_client, "/admin/content", f"/admin/content/{node_id}/delete")
        assert response.headers["location"] == "/admin/content"
        assert nodes.get(node_id) is None

    def test_missing_node(self, admin_client, installed):
        response = admin_client.get("/admin/content/999/edit")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundException"


class TestBlockPages:
    """Test the block layout page."""

    def test_place_block(self, admin_client, db_session):
        block = BlockManager(db_session).create_block(
            {"admin_title": "Welcome", "settings": {"content": "<p>Hello</p>"}}
        )
        assert "Welcome" in admin_client.get("/admin/blocks").text

        place_url = f"/admin/blocks/{block.id}/place"
        response = post_form(admin_client, "/admin/blocks", place_url, {"region": "sidebar_first", "weight": "2"})
        assert response.headers["location"] == "/admin/blocks"
        assert block.region == "sidebar_first"
        assert block.weight == 2
        assert "Welcome has been placed" in admin_client.get("/admin/blocks").text

    def test_place_block_errors(self, admin_client, db_session):
        block = BlockManager(db_session).create_block({"admin_title": "Promo", "settings": {"content": "x"}})

        place_url = f"/admin/blocks/{block.id}/place"
        post_form(admin_client, "/admin/blocks", place_url, {"region": "content", "weight": "x"})
        assert "Weight must be a whole number" in admin_client.get("/admin/blocks").text

        post_form(admin_client, "/admin/blocks", place_url, {"region": "attic"})
        assert "unknown theme region" in admin_client.get("/admin/blocks").text
        assert block.region is None


class TestTaxonomyPages:
    """Test vocabulary and term pages."""

    def test_vocabulary_list(self, admin_client):
        response = admin_client.get("/admin/taxonomy")
        assert response.status_code == 200
        assert "Tags" in response.text

    def test_add_term(self, admin_client, db_session):
        response = post_form(admin_client, "/admin/taxonomy/tags", "/admin/taxonomy/tags/terms", {"name": "Python"})
        assert response.headers["location"] == "/admin/taxonomy/tags"

        page = admin_client.get("/admin/taxonomy/tags")
        assert "Python has been added" in page.text
        assert [term.name for term in TaxonomyManager(db_session).get_terms("tags")] == ["Python"]

    def test_add_term_requires_name(self, admin_client, db_session):
        post_form(admin_client, "/admin/taxonomy/tags", "/admin/taxonomy/tags/terms", {"name": " "})
        assert TaxonomyManager(db_session).get_term_count("tags") == 0

    def test_unknown_vocabulary(self, admin_client):
        assert admin_client.get("/admin/taxonomy/missing").status_code == 404
