"""
Tests for the installer and the command line.
"""

from unittest.mock import patch

import pytest

from monkeyscms import cli
from monkeyscms.auth.security import verify_password
from monkeyscms.auth.service import AuthService
from monkeyscms.cache import get_cache
from monkeyscms.fields.manager import FieldManager
from monkeyscms.installer import Installer
from monkeyscms.models import Role, User
from monkeyscms.taxonomy.manager import TaxonomyManager
from conftest import TestingSessionLocal


class TestInstaller:
    """Test seeding a fresh database."""

    def test_install(self, db_session):
        """Test roles, vocabularies and the admin account are created."""
        report = Installer(db_session).install("Owner@Example.com", "OwnerPass123")

        assert {role.slug for role in db_session.query(Role)} == {"admin", "editor", "authenticated"}
        assert TaxonomyManager(db_session).get_vocabulary("tags") is not None
        admin = AuthService(db_session).find_user("owner@example.com")
        assert admin.status == "active"
        assert admin.has_role("admin")
        assert admin.has_permission("anything at all")
        assert "Created admin user: Owner@Example.com" in report.log
        assert report.generated_password is None

    def test_install_is_repeatable(self, db_session):
        installer = Installer(db_session)
        installer.install("admin@example.com", "AdminPass123")
        report = installer.install("admin@example.com", "AdminPass123")

        assert "Role 'Editor' already exists" in report.log
        assert "Vocabulary 'Tags' already exists" in report.log
        assert "User 'admin@example.com' already exists" in report.log
        assert db_session.query(User).count() == 1

    def test_generated_password(self, db_session):
        """Test a usable password is generated when none is given."""
        report = Installer(db_session).install("admin@example.com")
        admin = AuthService(db_session).find_user("admin@example.com")

        assert report.generated_password
        assert verify_password(report.generated_password, admin.password_hash)

    def test_weak_password_rejected(self, db_session):
        with pytest.raises(ValueError):
            Installer(db_session).install("admin@example.com", "weak")

    def test_install_without_admin(self, db_session):
        Installer(db_session).install()
        assert db_session.query(User).count() == 0

    def test_editor_permissions(self, editor_user):
        assert editor_user.has_permission("manage blocks")
        assert not editor_user.has_permission("administer users")


@pytest.fixture
def cli_db(db_session):
    """Point the command line at the test database."""
    with patch.object(cli, "SessionLocal", TestingSessionLocal), patch.object(cli, "init_db"), patch.object(
        cli, "setup_logging"
    ):
        yield db_session


class TestCli:
    """Test the maintenance commands."""

    def test_install(self, cli_db, capsys):
        assert cli.main(["install", "--admin-email", "admin@example.com", "--admin-password", "AdminPass123"]) == 0

        output = capsys.readouterr().out
        assert "Created admin user: admin@example.com" in output
        assert "MonkeysCMS installed successfully" in output
        assert AuthService(cli_db).find_user("admin") is not None

    def test_install_generates_password(self, cli_db, capsys):
        assert cli.main(["install", "--admin-email", "admin@example.com"]) == 0
        assert "Generated admin password:" in capsys.readouterr().out

    def test_install_failure(self, cli_db, capsys):
        assert cli.main(["install", "--admin-email", "admin@example.com", "--admin-password", "weak"]) == 1
        assert "Installation failed" in capsys.readouterr().out

    def test_cache_clear(self, cli_db, capsys):
        get_cache().set("key", "value")
        assert cli.main(["cache-clear"]) == 0
        assert "Cache cleared (1 entries)" in capsys.readouterr().out
        assert not get_cache().has("key")

    def test_fields_empty(self, cli_db, capsys):
        assert cli.main(["fields"]) == 0
        assert "No fields defined" in capsys.readouterr().out

    def test_fields_listing(self, cli_db, capsys):
        manager = FieldManager(cli_db)
        body = manager.define_field("Body", "text", required=True)
        manager.attach_field(body, "node", "article")
        manager.define_field("Tint", "color", save=True)

        assert cli.main(["fields", "--entity-type", "node", "--bundle", "article"]) == 0
        output = capsys.readouterr().out
        assert "field_body" in output
        assert "field_tint" not in output
        assert "1 field(s)" in output

    def test_command_required(self, cli_db):
        with pytest.raises(SystemExit):
            cli.main([])
