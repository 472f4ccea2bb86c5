"""
Test configuration and fixtures
"""

import os
import re

# Set test environment variables BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only-32chars"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"  # Lower rounds for faster tests
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SESSION_COOKIE_NAME"] = "test_session"

from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from monkeyscms.app import app  # noqa: E402
from monkeyscms.auth.service import AuthService  # noqa: E402
from monkeyscms.cache import get_cache  # noqa: E402
from monkeyscms.database import get_db  # noqa: E402
from monkeyscms.fields.manager import FieldManager  # noqa: E402
from monkeyscms.installer import Installer  # noqa: E402
from monkeyscms.models import Base  # noqa: E402

ADMIN_PASSWORD = "AdminPass123"
EDITOR_PASSWORD = "EditorPass123"

CSRF_PATTERN = re.compile(r'name="_token" value="([^"]+)"')

# Create in-memory SQLite database for testing
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    get_cache().clear()
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database dependency override"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    # Mock init_db to prevent creating tables on the configured database
    with patch("monkeyscms.app.init_db"):
        app.dependency_overrides[get_db] = override_get_db
        with TestClient(app) as test_client:
            yield test_client
        app.dependency_overrides.clear()


@pytest.fixture
def installed(db_session):
    """Seeded roles and vocabularies plus an active administrator."""
    Installer(db_session).install("admin@example.com", ADMIN_PASSWORD)
    return db_session


@pytest.fixture
def admin_user(installed):
    return AuthService(installed).find_user("admin@example.com")


@pytest.fixture
def editor_user(installed):
    result = AuthService(installed).register(
        email="editor@example.com",
        username="editor",
        password=EDITOR_PASSWORD,
        roles=["editor"],
        status="active",
    )
    return result.user


@pytest.fixture
def auth_headers(admin_user, db_session):
    """Bearer header for the administrator."""
    tokens = AuthService(db_session).issue_tokens(admin_user)
    return {"Authorization": f"Bearer {tokens.access_token}"}


@pytest.fixture
def field_manager(db_session):
    return FieldManager(db_session)


def csrf_token(html: str) -> str:
    """CSRF token embedded in a rendered admin page."""
    match = CSRF_PATTERN.search(html)
    assert match, "page has no CSRF field"
    return match.group(1)


@pytest.fixture
def admin_client(client, admin_user):
    """Test client holding a logged-in admin session."""
    page = client.get("/admin/login")
    response = client.post(
        "/admin/login",
        data={"login": "admin", "password": ADMIN_PASSWORD, "_token": csrf_token(page.text)},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return client
