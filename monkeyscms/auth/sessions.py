"""
Server-side sessions.

The browser holds a random session id in a cookie; the database stores
only its SHA-256 hash together with the session data, owner and expiry.
"""

import hmac
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import Response
from sqlalchemy.orm import Session

from ..config import settings
from ..logging_config import get_logger
from ..models import UserSession, utcnow
from .security import generate_token, hash_token

logger = get_logger(__name__)

CSRF_KEY = "_csrf_token"
FLASH_KEY = "_flash"
INTENDED_URL_KEY = "_intended_url"


class SessionManager:
    """
    Session bound to one request.

    Call ``start`` with the cookie value (or None) before using the data
    accessors; every change is written through to the database.
    """

    def __init__(self, db: Session):
        self.db = db
        self.session_id: Optional[str] = None
        self._record: Optional[UserSession] = None
        self._data: Dict[str, Any] = {}

    # ==================== LIFECYCLE ====================

    def start(
        self,
        session_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """
        Resume the session for a cookie value or begin a new one.

        Returns:
            The raw session id to send back in the cookie
        """
        record = None
        if session_id:
            record = (
                self.db.query(UserSession)
                .filter(UserSession.session_hash == hash_token(session_id), UserSession.expires_at > utcnow())
                .first()
            )

        if record is None:
            session_id = generate_token(32)
            record = UserSession(
                session_hash=hash_token(session_id),
                data={},
                ip_address=ip_address,
                user_agent=(user_agent or "")[:512] or None,
                expires_at=self._expiry(),
            )
            self.db.add(record)
        else:
            record.expires_at = self._expiry()
            record.last_activity_at = utcnow()

        self.db.commit()
        self.session_id = session_id
        self._record = record
        self._data = dict(record.data or {})
        return session_id

    @staticmethod
    def _expiry():
        return utcnow() + timedelta(minutes=settings.SESSION_LIFETIME_MINUTES)

    @property
    def started(self) -> bool:
        return self._record is not None

    def _ensure_started(self) -> UserSession:
        if self._record is None:
            self.start()
        return self._record

    def _save(self) -> None:
        record = self._ensure_started()
        # Reassign so SQLAlchemy sees the JSON change
        record.data = dict(self._data)
        self.db.commit()

    def regenerate(self, delete_old: bool = True) -> str:
        """Move the data to a new session id, e.g. after login."""
        old = self._ensure_started()
        data = dict(self._data)
        user_id = old.user_id
        if delete_old:
            self.db.delete(old)
            self.db.commit()

        session_id = generate_token(32)
        record = UserSession(
            session_hash=hash_token(session_id),
            user_id=user_id,
            data=data,
            ip_address=old.ip_address,
            user_agent=old.user_agent,
            expires_at=self._expiry(),
        )
        self.db.add(record)
        self.db.commit()

        self.session_id = session_id
        self._record = record
        self._data = data
        return session_id

    def destroy(self) -> None:
        if self._record is not None:
            self.db.delete(self._record)
            self.db.commit()
        self._record = None
        self._data = {}
        self.session_id = None

    def destroy_all_for_user(self, user_id: int) -> int:
        """Delete every session of a user, returning how many there were."""
        count = self.db.query(UserSession).filter(UserSession.user_id == user_id).delete(synchronize_session=False)
        self.db.commit()
        if self._record is not None and self._record.user_id == user_id:
            self._record = None
            self._data = {}
            self.session_id = None
        return count

    # ==================== USER ====================

    @property
    def user_id(self) -> Optional[int]:
        return self._record.user_id if self._record is not None else None

    def login(self, user_id: int) -> str:
        """Bind the session to a user under a fresh id."""
        record = self._ensure_started()
        record.user_id = user_id
        self.db.commit()
        return self.regenerate()

    def logout(self) -> None:
        self.destroy()

    # ==================== DATA ====================

    def get(self, key: str, default: Any = None) -> Any:
        self._ensure_started()
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._ensure_started()
        self._data[key] = value
        self._save()

    def has(self, key: str) -> bool:
        self._ensure_started()
        return key in self._data

    def forget(self, key: str) -> None:
        self._ensure_started()
        if key in self._data:
            del self._data[key]
            self._save()

    def pull(self, key: str, default: Any = None) -> Any:
        value = self.get(key, default)
        self.forget(key)
        return value

    def all(self) -> Dict[str, Any]:
        self._ensure_started()
        return dict(self._data)

    def flush(self) -> None:
        self._ensure_started()
        self._data = {}
        self._save()

    # ==================== FLASH MESSAGES ====================

    def flash(self, key: str, value: Any) -> None:
        """Store a value that is removed the first time it is read."""
        flashes = dict(self.get(FLASH_KEY, {}))
        flashes[key] = value
        self.set(FLASH_KEY, flashes)

    def get_flash(self, key: str, default: Any = None) -> Any:
        flashes = dict(self.get(FLASH_KEY, {}))
        if key not in flashes:
            return default
        value = flashes.pop(key)
        self.set(FLASH_KEY, flashes)
        return value

    def has_flash(self, key: str) -> bool:
        return key in self.get(FLASH_KEY, {})

    def success(self, message: str) -> None:
        self.flash("success", message)

    def error(self, message: str) -> None:
        self.flash("error", message)

    # ==================== CSRF ====================

    def csrf_token(self) -> str:
        token = self.get(CSRF_KEY)
        if not token:
            token = secrets.token_hex(32)
            self.set(CSRF_KEY, token)
        return token

    def regenerate_csrf_token(self) -> str:
        token = secrets.token_hex(32)
        self.set(CSRF_KEY, token)
        return token

    def verify_csrf_token(self, token: Optional[str]) -> bool:
        expected = self.get(CSRF_KEY)
        if not expected or not token:
            return False
        return hmac.compare_digest(str(expected), str(token))

    # ==================== URLS ====================

    def set_intended_url(self, url: str) -> None:
        self.set(INTENDED_URL_KEY, url)

    def pull_intended_url(self, default: str = "/") -> str:
        return self.pull(INTENDED_URL_KEY, default) or default

    # ==================== COOKIE ====================

    def set_cookie(self, response: Response) -> None:
        if not self.session_id:
            return
        response.set_cookie(
            settings.SESSION_COOKIE_NAME,
            self.session_id,
            max_age=settings.SESSION_LIFETIME_MINUTES * 60,
            httponly=True,
            secure=settings.SESSION_COOKIE_SECURE,
            samesite=settings.SESSION_COOKIE_SAMESITE,
        )

    @staticmethod
    def clear_cookie(response: Response) -> None:
        response.delete_cookie(settings.SESSION_COOKIE_NAME)

    def cleanup(self) -> int:
        """Delete expired sessions."""
        count = self.db.query(UserSession).filter(UserSession.expires_at < utcnow()).delete(synchronize_session=False)
        self.db.commit()
        return count
