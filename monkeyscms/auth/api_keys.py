"""
API key credentials.

Keys look like ``ml_{key_id}_{secret}``: a 16 hex character public id
used for lookup and a 32 hex character secret stored only as a bcrypt
hash. The full key is returned once, when it is created.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..logging_config import get_logger, log_security_event
from ..models import ApiKey, User, utcnow
from .security import hash_password, verify_password

logger = get_logger(__name__)

KEY_PREFIX = "ml_"
KEY_ID_LENGTH = 16
SECRET_LENGTH = 32
WILDCARD_SCOPE = "*"


@dataclass
class CreatedApiKey:
    """A freshly created key; ``key`` is never retrievable again."""

    key: str
    record: ApiKey


def parse_key(api_key: str) -> Optional[Tuple[str, str]]:
    """Split a key into ``(key_id, secret)``, None when malformed."""
    if not api_key or not api_key.startswith(KEY_PREFIX):
        return None
    parts = api_key[len(KEY_PREFIX) :].split("_", 1)
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def scope_matches(scopes: Iterable[str], scope: str) -> bool:
    """
    Check a required scope against granted ones.

    ``*`` grants everything and ``content.*`` grants ``content.read``.
    """
    for granted in scopes:
        if granted == WILDCARD_SCOPE or granted == scope:
            return True
        if granted.endswith(".*") and scope.startswith(granted[:-1]):
            return True
    return False


class ApiKeyService:
    """Creates, validates and revokes API keys."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user: User,
        name: str,
        scopes: Optional[List[str]] = None,
        expires_at: Optional[datetime] = None,
    ) -> CreatedApiKey:
        key_id = secrets.token_hex(KEY_ID_LENGTH // 2)
        secret = secrets.token_hex(SECRET_LENGTH // 2)

        record = ApiKey(
            user_id=user.id,
            name=name,
            key_id=key_id,
            key_hash=hash_password(secret),
            scopes=list(scopes) if scopes is not None else [WILDCARD_SCOPE],
            expires_at=expires_at,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)

        log_security_event("api_key.created", user_id=user.id, key_id=key_id)
        return CreatedApiKey(key=f"{KEY_PREFIX}{key_id}_{secret}", record=record)

    def validate(self, api_key: str) -> Optional[ApiKey]:
        """
        Look up an active key and check its secret.

        Returns:
            The key record with ``last_used_at`` updated, None when invalid
        """
        parsed = parse_key(api_key)
        if parsed is None:
            return None
        key_id, secret = parsed

        record = (
            self.db.query(ApiKey)
            .filter(
                ApiKey.key_id == key_id,
                ApiKey.revoked_at.is_(None),
                or_(ApiKey.expires_at.is_(None), ApiKey.expires_at > utcnow()),
            )
            .first()
        )
        if record is None or not verify_password(secret, record.key_hash):
            log_security_event("api_key.rejected", success=False, key_id=key_id)
            return None

        record.last_used_at = utcnow()
        self.db.commit()
        return record

    @staticmethod
    def has_scope(record: ApiKey, scope: str) -> bool:
        return scope_matches(record.scopes or [], scope)

    def get_user(self, record: ApiKey) -> Optional[User]:
        return self.db.query(User).filter(User.id == record.user_id).first()

    def list_for_user(self, user_id: int) -> List[Dict[str, Any]]:
        """Active keys of a user with the secret masked."""
        records = (
            self.db.query(ApiKey)
            .filter(ApiKey.user_id == user_id, ApiKey.revoked_at.is_(None))
            .order_by(ApiKey.created_at.desc(), ApiKey.id.desc())
            .all()
        )
        return [
            {
                "id": record.id,
                "name": record.name,
                "key_prefix": f"{KEY_PREFIX}{record.key_id}_***",
                "scopes": list(record.scopes or []),
                "last_used_at": record.last_used_at,
                "expires_at": record.expires_at,
                "created_at": record.created_at,
            }
            for record in records
        ]

    def _owned(self, key_id: int, user_id: int) -> Optional[ApiKey]:
        return self.db.query(ApiKey).filter(ApiKey.id == key_id, ApiKey.user_id == user_id).first()

    def revoke(self, key_id: int, user_id: int) -> bool:
        record = self._owned(key_id, user_id)
        if record is None or record.revoked_at is not None:
            return False
        record.revoked_at = utcnow()
        self.db.commit()
        log_security_event("api_key.revoked", user_id=user_id, key_id=record.key_id)
        return True

    def revoke_all_for_user(self, user_id: int) -> int:
        count = (
            self.db.query(ApiKey)
            .filter(ApiKey.user_id == user_id, ApiKey.revoked_at.is_(None))
            .update({ApiKey.revoked_at: utcnow()}, synchronize_session=False)
        )
        self.db.commit()
        return count

    def update_name(self, key_id: int, user_id: int, name: str) -> bool:
        record = self._owned(key_id, user_id)
        if record is None:
            return False
        record.name = name
        self.db.commit()
        return True

    def update_scopes(self, key_id: int, user_id: int, scopes: List[str]) -> bool:
        record = self._owned(key_id, user_id)
        if record is None:
            return False
        record.scopes = list(scopes)
        self.db.commit()
        return True
