"""
Database models for MonkeysCMS.

SQLAlchemy ORM models for users and authentication state, field
definitions and their entity-attribute-value storage, content types and
nodes, blocks, and taxonomy vocabularies and terms.

All timestamps are stored as naive UTC datetimes.
"""

from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy import (JSON, Boolean, Column, Date, DateTime, Float,
                        ForeignKey, Index, Integer, String, Table, Text,
                        UniqueConstraint)
from sqlalchemy.orm import declarative_base, relationship

Base: Any = declarative_base()


def utcnow() -> datetime:
    """Current UTC time without tzinfo, matching what the database returns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ==================== USERS & ROLES ====================


user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class Role(Base):
    """
    Named set of permissions.

    Attributes:
        id: Primary key
        slug: Machine name (``admin``, ``editor``, ``authenticated``)
        name: Human readable name
        permissions: List of permission strings
    """

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True)
    slug = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(128), nullable=False)
    permissions = Column(JSON, default=list, nullable=False)


class User(Base):
    """
    CMS user account.

    Attributes:
        id: Primary key
        email: Unique login email (stored lowercase)
        username: Unique username
        password_hash: bcrypt hash
        display_name: Optional name shown in the admin
        status: ``pending``, ``active`` or ``blocked``
        two_factor_secret: Base32 TOTP secret when 2FA is enabled
        token_version: Incremented to invalidate issued tokens
        email_verified_at: When the email address was confirmed
        last_login_at: Time of the last successful login
        last_login_ip: Address of the last successful login
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=True)
    status = Column(String(16), default="pending", nullable=False)
    two_factor_secret = Column(String(64), nullable=True)
    token_version = Column(Integer, default=1, nullable=False)
    email_verified_at = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    last_login_ip = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    roles = relationship("Role", secondary=user_roles, lazy="selectin")

    @property
    def role_slugs(self) -> List[str]:
        return [role.slug for role in self.roles]

    @property
    def two_factor_enabled(self) -> bool:
        return bool(self.two_factor_secret)

    def has_role(self, slug: str) -> bool:
        return slug in self.role_slugs

    def has_permission(self, permission: str) -> bool:
        """Admins hold every permission; others need it granted by a role."""
        if self.has_role("admin"):
            return True
        return any(permission in (role.permissions or []) for role in self.roles)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class RefreshToken(Base):
    """Hashed refresh token issued alongside an access token."""

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    token_version = Column(Integer, default=1, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class UserSession(Base):
    """Server-side session addressed by a hashed cookie value."""

    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True)
    session_hash = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    data = Column(JSON, default=dict, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    last_activity_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class LoginAttemptRecord(Base):
    """One failed login attempt."""

    __tablename__ = "login_attempts"

    id = Column(Integer, primary_key=True)
    identifier = Column(String(255), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True, index=True)
    attempted_at = Column(DateTime, default=utcnow, nullable=False)


class LoginLockout(Base):
    """Active lockout for an identifier or address."""

    __tablename__ = "login_lockouts"

    id = Column(Integer, primary_key=True)
    identifier = Column(String(255), nullable=True, index=True)
    ip_address = Column(String(64), nullable=True, index=True)
    locked_until = Column(DateTime, nullable=False)
    attempt_count = Column(Integer, default=0, nullable=False)


class ApiKey(Base):
    """
    API key credential.

    The public key id is stored in clear text for lookup, the secret only
    as a bcrypt hash.
    """

    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    key_id = Column(String(32), unique=True, nullable=False, index=True)
    key_hash = Column(String(255), nullable=False)
    scopes = Column(JSON, default=list, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    last_used_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class UserToken(Base):
    """Single-use hashed token for password resets and email verification."""

    __tablename__ = "user_tokens"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    purpose = Column(String(32), nullable=False)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# ==================== FIELDS ====================


class FieldDefinitionRecord(Base):
    """
    Persisted field definition.

    Attributes:
        machine_name: Unique ``field_*`` identifier
        field_type: One of the FieldType values
        widget: Preferred widget id, None for the type default
        cardinality: Maximum number of values, -1 for unlimited
        settings: Type settings (options, max_length, sub_fields, ...)
        validation: Extra validation rules
        widget_settings: Settings overriding ``settings`` for the widget
    """

    __tablename__ = "field_definitions"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    machine_name = Column(String(128), unique=True, nullable=False, index=True)
    field_type = Column(String(32), nullable=False)
    description = Column(Text, nullable=True)
    help_text = Column(Text, nullable=True)
    widget = Column(String(64), nullable=True)
    required = Column(Boolean, default=False, nullable=False)
    multiple = Column(Boolean, default=False, nullable=False)
    cardinality = Column(Integer, default=1, nullable=False)
    default_value = Column(JSON, nullable=True)
    settings = Column(JSON, default=dict, nullable=False)
    validation = Column(JSON, default=dict, nullable=False)
    widget_settings = Column(JSON, default=dict, nullable=False)
    weight = Column(Integer, default=0, nullable=False)
    searchable = Column(Boolean, default=False, nullable=False)
    translatable = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class FieldAttachment(Base):
    """Attachment of a field to an entity type and optional bundle."""

    __tablename__ = "field_attachments"

    id = Column(Integer, primary_key=True)
    field_id = Column(
        Integer, ForeignKey("field_definitions.id", ondelete="CASCADE"), nullable=False
    )
    entity_type = Column(String(64), nullable=False)
    bundle = Column(String(64), nullable=True)
    weight = Column(Integer, default=0, nullable=False)
    settings = Column(JSON, default=dict, nullable=False)

    __table_args__ = (
        UniqueConstraint("field_id", "entity_type", "bundle", name="uq_field_attachment"),
        Index("idx_attachment_entity", "entity_type", "bundle"),
    )


class _FieldValueColumns:
    """Typed value columns shared by current values and revisions."""

    field_id = Column(Integer, nullable=False, index=True)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(Integer, nullable=False)
    langcode = Column(String(12), default="en", nullable=False)
    delta = Column(Integer, default=0, nullable=False)
    value_string = Column(String(255), nullable=True)
    value_text = Column(Text, nullable=True)
    value_int = Column(Integer, nullable=True)
    value_decimal = Column(Float, nullable=True)
    value_boolean = Column(Boolean, nullable=True)
    value_date = Column(Date, nullable=True)
    value_datetime = Column(DateTime, nullable=True)
    value_json = Column(JSON, nullable=True)


class FieldValue(_FieldValueColumns, Base):
    """Current value of a field on an entity (one row per delta)."""

    __tablename__ = "field_values"

    id = Column(Integer, primary_key=True)

    __table_args__ = (
        Index("idx_field_values_entity", "entity_type", "entity_id", "langcode"),
    )


class FieldRevision(_FieldValueColumns, Base):
    """Snapshot of a field value taken for an entity revision."""

    __tablename__ = "field_revisions"

    id = Column(Integer, primary_key=True)
    revision_id = Column(Integer, nullable=False, index=True)

    __table_args__ = (
        Index("idx_field_revisions_entity", "entity_type", "entity_id", "revision_id"),
    )


# ==================== CONTENT ====================


class ContentTypeRecord(Base):
    """Content type (node bundle) definition."""

    __tablename__ = "content_types"

    id = Column(Integer, primary_key=True)
    type_id = Column(String(64), unique=True, nullable=False, index=True)
    label = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    enabled = Column(Boolean, default=True, nullable=False)
    settings = Column(JSON, default=dict, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Node(Base):
    """
    Content item of a content type.

    Field values live in ``field_values`` with ``entity_type='node'``.
    """

    __tablename__ = "nodes"

    id = Column(Integer, primary_key=True)
    content_type = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, index=True)
    status = Column(String(16), default="draft", nullable=False)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    revision_id = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("content_type", "slug", name="uq_node_slug"),)


class NodeRevision(Base):
    """Revision log entry for a node."""

    __tablename__ = "node_revisions"

    id = Column(Integer, primary_key=True)
    node_id = Column(Integer, ForeignKey("nodes.id", ondelete="CASCADE"), nullable=False, index=True)
    revision_id = Column(Integer, nullable=False)
    title = Column(String(255), nullable=False)
    author_id = Column(Integer, nullable=True)
    log_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# ==================== BLOCKS ====================


class Block(Base):
    """
    Placeable content unit.

    Attributes:
        block_type: Registered block type id
        body: Optional body rendered when the type produces nothing
        body_format: ``html``, ``markdown`` or ``plain``
        region: Theme region the block is placed in, None when unplaced
        visibility_pages: Path patterns (``*`` wildcards)
        visibility_mode: ``all``, ``show`` (only on pages) or ``hide``
        visibility_roles: Role slugs allowed to see the block
        settings: Block type data
    """

    __tablename__ = "blocks"

    id = Column(Integer, primary_key=True)
    admin_title = Column(String(255), nullable=False)
    machine_name = Column(String(128), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=True)
    show_title = Column(Boolean, default=True, nullable=False)
    block_type = Column(String(64), default="text", nullable=False)
    body = Column(Text, nullable=True)
    body_format = Column(String(16), default="html", nullable=False)
    region = Column(String(64), nullable=True, index=True)
    theme = Column(String(64), nullable=True)
    weight = Column(Integer, default=0, nullable=False)
    is_published = Column(Boolean, default=True, nullable=False)
    visibility_pages = Column(JSON, default=list, nullable=False)
    visibility_mode = Column(String(8), default="all", nullable=False)
    visibility_roles = Column(JSON, default=list, nullable=False)
    settings = Column(JSON, default=dict, nullable=False)
    css_class = Column(String(255), nullable=True)
    css_id = Column(String(128), nullable=True)
    author_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


# ==================== TAXONOMY ====================


class Vocabulary(Base):
    """Named set of taxonomy terms."""

    __tablename__ = "vocabularies"

    id = Column(Integer, primary_key=True)
    vocabulary_id = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    hierarchical = Column(Boolean, default=True, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    weight = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class TaxonomyTerm(Base):
    """Node of a vocabulary's term tree."""

    __tablename__ = "taxonomy_terms"

    id = Column(Integer, primary_key=True)
    vocabulary_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    parent_id = Column(Integer, nullable=True, index=True)
    weight = Column(Integer, default=0, nullable=False)
    status = Column(String(16), default="active", nullable=False)
    metadata_ = Column("metadata", JSON, default=dict, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("vocabulary_id", "slug", name="uq_term_slug"),)

    def __repr__(self) -> str:
        return f"<TaxonomyTerm(id={self.id}, vocabulary={self.vocabulary_id}, name={self.name})>"


class ContentTaxonomy(Base):
    """Term assigned to a content item."""

    __tablename__ = "content_taxonomy"

    content_id = Column(Integer, primary_key=True)
    content_type = Column(String(64), primary_key=True)
    term_id = Column(
        Integer, ForeignKey("taxonomy_terms.id", ondelete="CASCADE"), primary_key=True
    )
