"""
Initial site data.

Every step is idempotent and returns log lines describing what it did,
so the installer can be re-run against an existing database.
"""

import secrets
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from .auth.service import AuthService
from .logging_config import get_logger
from .models import Role, User
from .taxonomy import TaxonomyManager

logger = get_logger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@example.com"
DEFAULT_ADMIN_USERNAME = "admin"

SYSTEM_ROLES = [
    {"slug": "admin", "name": "Administrator", "permissions": []},
    {
        "slug": "editor",
        "name": "Editor",
        "permissions": [
            "access admin",
            "create content",
            "edit content",
            "delete content",
            "manage blocks",
            "manage taxonomy",
        ],
    },
    {"slug": "authenticated", "name": "Authenticated user", "permissions": ["access content"]},
]

DEFAULT_VOCABULARIES = [
    {"vocabulary_id": "tags", "name": "Tags", "description": "Free tagging for content", "hierarchical": False},
]


@dataclass
class InstallReport:
    """Log lines of an install run and the generated admin password, if any."""

    log: List[str] = field(default_factory=list)
    generated_password: Optional[str] = None


class Installer:
    """
    Seeds roles, vocabularies and the first administrator.

    Args:
        db: Database session
    """

    def __init__(self, db: Session):
        self.db = db

    def seed_roles(self) -> List[str]:
        log = []
        for data in SYSTEM_ROLES:
            if self.db.query(Role).filter(Role.slug == data["slug"]).first():
                log.append(f"Role '{data['name']}' already exists")
                continue
            self.db.add(Role(slug=data["slug"], name=data["name"], permissions=list(data["permissions"])))
            log.append(f"Created role: {data['name']}")
        self.db.commit()
        return log

    def seed_vocabularies(self) -> List[str]:
        taxonomy = TaxonomyManager(self.db)
        log = []
        for data in DEFAULT_VOCABULARIES:
            if taxonomy.get_vocabulary(data["vocabulary_id"]):
                log.append(f"Vocabulary '{data['name']}' already exists")
                continue
            taxonomy.create_vocabulary(**data)
            log.append(f"Created vocabulary: {data['name']}")
        return log

    def create_admin_user(
        self,
        email: str = DEFAULT_ADMIN_EMAIL,
        password: Optional[str] = None,
        username: str = DEFAULT_ADMIN_USERNAME,
    ) -> InstallReport:
        """
        Create an active administrator.

        A password is generated when none is given and returned in the
        report so it can be shown once.
        """
        report = InstallReport()
        if self.db.query(User).filter(User.email == email.strip().lower()).first():
            report.log.append(f"User '{email}' already exists")
            return report

        if password is None:
            # Suffix guarantees the letter and digit the password rules ask for
            password = secrets.token_urlsafe(12) + "Aa1"
            report.generated_password = password

        result = AuthService(self.db).register(
            email=email,
            username=username,
            password=password,
            display_name="Administrator",
            roles=["admin"],
            status="active",
        )
        if not result.success:
            raise ValueError(result.error)
        report.log.append(f"Created admin user: {email}")
        return report

    def install(
        self,
        admin_email: Optional[str] = None,
        admin_password: Optional[str] = None,
    ) -> InstallReport:
        """Run all steps; the admin user is only created when an email is given."""
        report = InstallReport()
        report.log.extend(self.seed_roles())
        report.log.extend(self.seed_vocabularies())
        if admin_email:
            admin = self.create_admin_user(admin_email, admin_password)
            report.log.extend(admin.log)
            report.generated_password = admin.generated_password
        logger.info("Installation finished", extra={"extra_fields": {"steps": len(report.log)}})
        return report
