"""
Password, token and JWT helpers shared by the auth services.

Provides password hashing, random tokens, JWT access and two-factor
challenge tokens, and password strength validation.
"""

import hashlib
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import bcrypt
import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from ..config import settings
from ..logging_config import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
CHALLENGE_TOKEN_TYPE = "2fa_challenge"


# ==================== PASSWORD HASHING ====================


def hash_password(password: str) -> str:
    """bcrypt hash of a password, cost taken from PASSWORD_HASH_ROUNDS."""
    salt = bcrypt.gensalt(rounds=settings.PASSWORD_HASH_ROUNDS)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Check a password against a stored bcrypt hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError as e:
        logger.error(f"Stored password hash is unusable: {e}")
        return False


# ==================== TOKEN GENERATION ====================


def generate_token(length: int = 32) -> str:
    """URL-safe random string built from ``length`` random bytes."""
    return secrets.token_urlsafe(length)


def hash_token(token: str) -> str:
    """SHA-256 hex digest under which random tokens are stored and looked up."""
    return hashlib.sha256(token.encode()).hexdigest()


def create_expiring_token(minutes: int) -> Tuple[str, str, datetime]:
    """
    Create a single-use token (password reset, email verification).

    Returns:
        Tuple of (raw_token, hashed_token, expires_at)
    """
    raw_token = generate_token(32)
    expires_at = _utcnow() + timedelta(minutes=minutes)
    return raw_token, hash_token(raw_token), expires_at


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ==================== JWT TOKENS ====================


def create_access_token(
    user_id: int,
    email: str,
    roles: Optional[List[str]] = None,
    token_version: int = 1,
    additional_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Signed access token for a user.

    The ``ver`` claim carries the user's token version; bumping the version
    on the account invalidates every token issued before.

    Args:
        user_id: Becomes the ``sub`` claim
        email: Account email
        roles: Role slugs
        token_version: Current ``User.token_version``
        additional_claims: Extra claims merged into the payload
    """
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": str(user_id),
        "email": email,
        "roles": roles or [],
        "ver": token_version,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": expires_at,
    }

    if additional_claims:
        payload.update(additional_claims)

    logger.debug("Access token issued", extra={"extra_fields": {"user_id": user_id, "ver": token_version}})
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(user_id: int) -> Tuple[str, str, datetime]:
    """Opaque refresh token as (raw, sha256 hash, expiry); only the hash is stored."""
    raw = generate_token(48)
    expires_at = _utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    logger.debug("Refresh token issued", extra={"extra_fields": {"user_id": user_id}})
    return raw, hash_token(raw), expires_at


def _decode(token: str, expected_type: str) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])

        if payload.get("type") != expected_type:
            logger.warning("Invalid token type", extra={"extra_fields": {"expected": expected_type}})
            return None

        return payload

    except ExpiredSignatureError:
        logger.debug(f"Token of type {expected_type} expired")
        return None
    except InvalidTokenError as e:
        logger.warning(f"Invalid token: {e}")
        return None


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    return _decode(token, ACCESS_TOKEN_TYPE)


def create_challenge_token(user_id: int) -> str:
    """Short-lived token proving the password step of a two-factor login."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": CHALLENGE_TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(minutes=settings.TWO_FACTOR_CHALLENGE_MINUTES),
        "nonce": secrets.token_hex(8),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_challenge_token(token: str) -> Optional[Dict[str, Any]]:
    return _decode(token, CHALLENGE_TOKEN_TYPE)


def get_token_from_header(authorization: Optional[str]) -> Optional[str]:
    """
    Extract Bearer token from Authorization header.

    Args:
        authorization: Authorization header value

    Returns:
        Token string if valid Bearer format, None otherwise
    """
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


# ==================== PASSWORD POLICY ====================


class PasswordValidator:
    """
    Password strength validator.

    Requires the configured minimum length, at most 128 characters, and at
    least one letter and one digit.
    """

    MAX_LENGTH = 128

    LETTER_PATTERN = re.compile(r"[A-Za-z]")
    DIGIT_PATTERN = re.compile(r"\d")

    @classmethod
    def min_length(cls) -> int:
        return settings.PASSWORD_MIN_LENGTH

    @classmethod
    def validate(cls, password: str) -> Tuple[bool, str]:
        """
        Validate password strength.

        Args:
            password: Password string to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not password:
            return False, "Password is required"

        if len(password) < cls.min_length():
            return False, f"Password must be at least {cls.min_length()} characters long"

        if len(password) > cls.MAX_LENGTH:
            return False, f"Password must not exceed {cls.MAX_LENGTH} characters"

        if not cls.LETTER_PATTERN.search(password):
            return False, "Password must contain at least one letter"

        if not cls.DIGIT_PATTERN.search(password):
            return False, "Password must contain at least one digit"

        return True, ""

    @classmethod
    def get_requirements_message(cls) -> str:
        """Get password requirements message for user display."""
        return (
            f"Password must be {cls.min_length()}-{cls.MAX_LENGTH} characters long and contain "
            "at least one letter and one digit"
        )
