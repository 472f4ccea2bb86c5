"""
Authentication service.

Business logic for logging in (with lockouts and two-factor challenges),
token refresh, registration, email verification, password management and
two-factor setup. Results of interactive flows are returned as
``AuthResult`` so callers can show the error; token validation raises.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import AuthenticationException, InvalidTokenException
from ..logging_config import get_logger, log_security_event, set_user_id
from ..models import RefreshToken, Role, User, UserToken, utcnow
from . import totp
from .login_attempts import LoginAttemptTracker
from .security import (
    PasswordValidator,
    create_access_token,
    create_challenge_token,
    create_expiring_token,
    create_refresh_token,
    decode_access_token,
    decode_challenge_token,
    hash_password,
    hash_token,
    verify_password,
)

logger = get_logger(__name__)

DEFAULT_ROLE = "authenticated"
PURPOSE_PASSWORD_RESET = "password_reset"
PURPOSE_VERIFY_EMAIL = "verify_email"

INVALID_CREDENTIALS = "Invalid email or password"
ACCOUNT_LOCKED = "Account is locked"
ACCOUNT_BLOCKED = "Account is blocked"
ACCOUNT_PENDING = "Email address has not been verified"
INVALID_2FA_CODE = "Invalid 2FA code"
EMAIL_EXISTS = "Email already exists"
USERNAME_EXISTS = "Username already exists"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = field(default_factory=lambda: settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


@dataclass
class AuthResult:
    """Outcome of an authentication flow."""

    success: bool
    user: Optional[User] = None
    tokens: Optional[TokenPair] = None
    requires_2fa: bool = False
    challenge_token: Optional[str] = None
    error: Optional[str] = None
    locked_until: Optional[datetime] = None
    verification_token: Optional[str] = None

    @classmethod
    def failed(cls, error: str, **kwargs: Any) -> "AuthResult":
        return cls(success=False, error=error, **kwargs)


class AuthService:
    """
    Service class for authentication operations.

    Args:
        db: Database session
    """

    def __init__(self, db: Session):
        self.db = db
        self.attempts = LoginAttemptTracker(db)

    # ==================== LOOKUPS ====================

    def find_user(self, identifier: str) -> Optional[User]:
        """Find a user by email (case-insensitive) or username."""
        identifier = (identifier or "").strip()
        if "@" in identifier:
            return self.db.query(User).filter(func.lower(User.email) == identifier.lower()).first()
        return self.db.query(User).filter(User.username == identifier).first()

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    # ==================== LOGIN ====================

    def attempt(
        self,
        identifier: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        with_tokens: bool = True,
    ) -> AuthResult:
        """
        Log in with email or username and password.

        Order of checks: lockout, credentials, account status, then a
        two-factor challenge when the user has 2FA enabled. Session logins
        pass ``with_tokens=False`` and get no JWT pair.
        """
        lockout = self.attempts.check_lockout(identifier, ip_address)
        if lockout.locked:
            return AuthResult.failed(ACCOUNT_LOCKED, locked_until=lockout.until)

        user = self.find_user(identifier)
        if user is None or not verify_password(password, user.password_hash):
            self.attempts.record_failure(identifier, ip_address)
            return AuthResult.failed(INVALID_CREDENTIALS)

        if user.status == "blocked":
            log_security_event("login.blocked", success=False, level=logging.WARNING, user_id=user.id)
            return AuthResult.failed(ACCOUNT_BLOCKED)
        if user.status != "active":
            log_security_event("login.unverified", success=False, level=logging.WARNING, user_id=user.id)
            return AuthResult.failed(ACCOUNT_PENDING)

        self.attempts.record_success(identifier, ip_address)

        if user.two_factor_enabled:
            log_security_event("login.2fa_required", user_id=user.id)
            return AuthResult(
                success=False,
                user=user,
                requires_2fa=True,
                challenge_token=create_challenge_token(user.id),
            )

        return self._complete_login(user, ip_address, user_agent, with_tokens)

    def verify_two_factor(
        self,
        challenge_token: str,
        code: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        with_tokens: bool = True,
    ) -> AuthResult:
        """
        Finish a login that returned a two-factor challenge.

        Wrong codes count as failed logins of the user's email and share
        the password lockout.
        """
        payload = decode_challenge_token(challenge_token)
        user = self.get_user(int(payload["sub"])) if payload else None
        if user is None or not user.two_factor_enabled:
            return AuthResult.failed(INVALID_2FA_CODE)

        lockout = self.attempts.check_lockout(user.email, ip_address)
        if lockout.locked:
            return AuthResult.failed(ACCOUNT_LOCKED, locked_until=lockout.until)

        if not totp.verify_code(user.two_factor_secret, code):
            self.attempts.record_failure(user.email, ip_address)
            log_security_event("2fa.failed", success=False, level=logging.WARNING, user_id=user.id)
            return AuthResult.failed(INVALID_2FA_CODE)

        self.attempts.record_success(user.email, ip_address)
        log_security_event("2fa.verified", user_id=user.id)
        return self._complete_login(user, ip_address, user_agent, with_tokens)

    def _complete_login(
        self, user: User, ip_address: Optional[str], user_agent: Optional[str], with_tokens: bool = True
    ) -> AuthResult:
        user.last_login_at = utcnow()
        user.last_login_ip = ip_address
        if with_tokens:
            tokens = self.issue_tokens(user, ip_address, user_agent)
        else:
            tokens = None
            self.db.commit()

        set_user_id(user.id)
        log_security_event("login.success", user_id=user.id, ip_address=ip_address)
        return AuthResult(success=True, user=user, tokens=tokens)

    def issue_tokens(
        self, user: User, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> TokenPair:
        """Create an access token and store a new refresh token row."""
        access_token = create_access_token(
            user_id=user.id,
            email=user.email,
            roles=user.role_slugs,
            token_version=user.token_version,
        )
        raw_refresh, hashed_refresh, refresh_expires = create_refresh_token(user.id)
        self.db.add(
            RefreshToken(
                user_id=user.id,
                token_hash=hashed_refresh,
                token_version=user.token_version,
                ip_address=ip_address,
                user_agent=(user_agent or "")[:512] or None,
                expires_at=refresh_expires,
            )
        )
        self.db.commit()
        return TokenPair(access_token=access_token, refresh_token=raw_refresh)

    # ==================== TOKENS ====================

    def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new token pair, revoking the old one.

        Raises:
            InvalidTokenException: If the token is unknown, revoked, expired or
                issued before the user's tokens were invalidated
        """
        record = self.db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(refresh_token)).first()
        if record is None:
            raise InvalidTokenException("Invalid refresh token")
        if record.revoked_at is not None:
            log_security_event("refresh.reused", success=False, level=logging.WARNING, user_id=record.user_id)
            raise InvalidTokenException("Refresh token has been revoked")
        if record.expires_at < utcnow():
            raise InvalidTokenException("Refresh token has expired")

        user = self.get_user(record.user_id)
        if user is None or user.status == "blocked":
            raise InvalidTokenException("Account is not available")
        if record.token_version != user.token_version:
            raise InvalidTokenException("Refresh token is no longer valid")

        record.revoked_at = utcnow()
        tokens = self.issue_tokens(user, record.ip_address, record.user_agent)
        logger.info(f"Session refreshed for user {user.id}")
        return tokens

    def authenticate_token(self, token: str) -> User:
        """
        Resolve the user of an access token.

        Raises:
            InvalidTokenException: If the token is invalid or outdated
        """
        payload = decode_access_token(token)
        if payload is None:
            raise InvalidTokenException()

        user = self.get_user(int(payload["sub"]))
        if user is None or user.status == "blocked":
            raise InvalidTokenException("User not found or blocked")
        if payload.get("ver") != user.token_version:
            raise InvalidTokenException("Token has been revoked")

        set_user_id(user.id)
        return user

    def logout(self, user: User, refresh_token: Optional[str] = None, all_devices: bool = False) -> None:
        """
        Revoke a refresh token, or every token of the user with ``all_devices``.
        """
        if all_devices:
            self._invalidate_tokens(user)
        elif refresh_token:
            self.db.query(RefreshToken).filter(
                RefreshToken.token_hash == hash_token(refresh_token),
                RefreshToken.user_id == user.id,
                RefreshToken.revoked_at.is_(None),
            ).update({RefreshToken.revoked_at: utcnow()}, synchronize_session=False)
        self.db.commit()
        log_security_event("logout", user_id=user.id, all_devices=all_devices)

    def _invalidate_tokens(self, user: User) -> None:
        """Bump the token version and revoke every refresh token."""
        user.token_version = (user.token_version or 1) + 1
        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user.id, RefreshToken.revoked_at.is_(None)
        ).update({RefreshToken.revoked_at: utcnow()}, synchronize_session=False)

    # ==================== REGISTRATION ====================

    def register(
        self,
        email: str,
        username: str,
        password: str,
        display_name: Optional[str] = None,
        roles: Optional[list] = None,
        status: str = "pending",
    ) -> AuthResult:
        """
        Create an account with the default role.

        The result carries the raw email verification token for delivery.
        """
        email = email.strip().lower()
        if self.db.query(User).filter(func.lower(User.email) == email).first():
            return AuthResult.failed(EMAIL_EXISTS)
        if self.db.query(User).filter(User.username == username).first():
            return AuthResult.failed(USERNAME_EXISTS)

        is_valid, message = PasswordValidator.validate(password)
        if not is_valid:
            return AuthResult.failed(message)

        user = User(
            email=email,
            username=username,
            password_hash=hash_password(password),
            display_name=display_name,
            status=status,
        )
        for slug in roles or [DEFAULT_ROLE]:
            user.roles.append(self._role(slug))
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        token = self._store_user_token(user, PURPOSE_VERIFY_EMAIL, settings.EMAIL_VERIFICATION_EXPIRE_MINUTES)
        logger.info(f"User registered: {user.username}", extra={"extra_fields": {"user_id": user.id}})
        return AuthResult(success=True, user=user, verification_token=token)

    def _role(self, slug: str) -> Role:
        role = self.db.query(Role).filter(Role.slug == slug).first()
        if role is None:
            role = Role(slug=slug, name=slug.replace("_", " ").title(), permissions=[])
            self.db.add(role)
            self.db.flush()
        return role

    def _store_user_token(self, user: User, purpose: str, minutes: int) -> str:
        self.db.query(UserToken).filter(UserToken.user_id == user.id, UserToken.purpose == purpose).delete(
            synchronize_session=False
        )
        raw_token, hashed, expires_at = create_expiring_token(minutes)
        self.db.add(UserToken(user_id=user.id, purpose=purpose, token_hash=hashed, expires_at=expires_at))
        self.db.commit()
        return raw_token

    def _consume_user_token(self, token: str, purpose: str) -> Optional[User]:
        record = (
            self.db.query(UserToken)
            .filter(UserToken.token_hash == hash_token(token or ""), UserToken.purpose == purpose)
            .first()
        )
        if record is None:
            return None
        self.db.delete(record)
        if record.expires_at < utcnow():
            self.db.commit()
            return None
        return self.get_user(record.user_id)

    def verify_email(self, token: str) -> bool:
        """Confirm an email address and activate a pending account."""
        user = self._consume_user_token(token, PURPOSE_VERIFY_EMAIL)
        if user is None:
            return False
        user.email_verified_at = utcnow()
        if user.status == "pending":
            user.status = "active"
        self.db.commit()
        log_security_event("email.verified", user_id=user.id)
        return True

    # ==================== PASSWORDS ====================

    def send_password_reset(self, email: str) -> Optional[str]:
        """
        Create a password reset token.

        Returns the raw token for delivery, None when no account uses the
        address. Callers must answer the same way in both cases.
        """
        user = self.find_user(email) if "@" in (email or "") else None
        if user is None:
            logger.info("Password reset requested for unknown address")
            return None
        token = self._store_user_token(user, PURPOSE_PASSWORD_RESET, settings.PASSWORD_RESET_EXPIRE_MINUTES)
        log_security_event("password.reset_requested", user_id=user.id)
        return token

    def reset_password(self, token: str, new_password: str) -> bool:
        """
        Set a new password with a reset token, invalidating issued tokens.

        Raises:
            AuthenticationException: If the new password is too weak
        """
        is_valid, message = PasswordValidator.validate(new_password)
        if not is_valid:
            raise AuthenticationException(message)

        user = self._consume_user_token(token, PURPOSE_PASSWORD_RESET)
        if user is None:
            return False
        user.password_hash = hash_password(new_password)
        self._invalidate_tokens(user)
        self.db.commit()
        log_security_event("password.reset", user_id=user.id)
        return True

    def change_password(self, user: User, current_password: str, new_password: str) -> bool:
        """
        Change a password after checking the current one.

        Raises:
            AuthenticationException: If the new password is too weak
        """
        if not verify_password(current_password, user.password_hash):
            log_security_event("password.change_failed", success=False, level=logging.WARNING, user_id=user.id)
            return False
        is_valid, message = PasswordValidator.validate(new_password)
        if not is_valid:
            raise AuthenticationException(message)

        user.password_hash = hash_password(new_password)
        self._invalidate_tokens(user)
        self.db.commit()
        log_security_event("password.changed", user_id=user.id)
        return True

    # ==================== TWO-FACTOR ====================

    @staticmethod
    def generate_two_factor_setup(user: User) -> totp.TwoFactorSetup:
        return totp.TwoFactorSetup.create(user.email)

    def enable_two_factor(self, user: User, secret: str, code: str) -> bool:
        """Store the secret once the user proves their authenticator produces valid codes."""
        if not totp.verify_code(secret, code):
            return False
        user.two_factor_secret = secret
        self.db.commit()
        log_security_event("2fa.enabled", user_id=user.id)
        return True

    def disable_two_factor(self, user: User, password: str) -> bool:
        if not verify_password(password, user.password_hash):
            return False
        user.two_factor_secret = None
        self.db.commit()
        log_security_event("2fa.disabled", user_id=user.id)
        return True
