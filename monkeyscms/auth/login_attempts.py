"""
Login attempt tracking and lockouts.

Failures are counted per identifier (email or username, lowercased) and
per client address inside a sliding window of ``LOGIN_LOCKOUT_MINUTES``.
Reaching ``LOGIN_MAX_ATTEMPTS`` creates a lockout whose length grows
exponentially with further failures.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import settings
from ..logging_config import get_logger, log_security_event
from ..models import LoginAttemptRecord, LoginLockout, utcnow

logger = get_logger(__name__)


@dataclass
class LockoutStatus:
    locked: bool
    until: Optional[datetime] = None

    @property
    def remaining_seconds(self) -> int:
        if not self.locked or self.until is None:
            return 0
        return max(0, int((self.until - utcnow()).total_seconds()))


def lockout_minutes(attempts: int) -> int:
    """
    Lockout length for a number of recent failures.

    ``base * multiplier ** floor((attempts - max) / max)`` capped at
    ``LOGIN_MAX_LOCKOUT_MINUTES``.
    """
    max_attempts = settings.LOGIN_MAX_ATTEMPTS
    exponent = max(0, math.floor((attempts - max_attempts) / max_attempts))
    duration = settings.LOGIN_LOCKOUT_MINUTES * settings.LOGIN_LOCKOUT_MULTIPLIER**exponent
    return min(duration, settings.LOGIN_MAX_LOCKOUT_MINUTES)


class LoginAttemptTracker:
    """Records failed logins and decides when an account or address is locked."""

    def __init__(self, db: Session):
        self.db = db

    def record_failure(self, identifier: str, ip_address: Optional[str] = None) -> None:
        self.db.add(LoginAttemptRecord(identifier=identifier.lower(), ip_address=ip_address))
        self.db.commit()
        log_security_event(
            "login.failed",
            success=False,
            level=logging.WARNING,
            identifier=identifier.lower(),
            ip_address=ip_address,
        )

    def record_success(self, identifier: str, ip_address: Optional[str] = None) -> None:
        """Forget failures and lockouts of the identifier and address."""
        identifier = identifier.lower()
        conditions = [LoginAttemptRecord.identifier == identifier]
        if ip_address:
            conditions.append(LoginAttemptRecord.ip_address == ip_address)
        self.db.query(LoginAttemptRecord).filter(or_(*conditions)).delete(synchronize_session=False)

        lockout_conditions = [LoginLockout.identifier == identifier]
        if ip_address:
            lockout_conditions.append(LoginLockout.ip_address == ip_address)
        self.db.query(LoginLockout).filter(or_(*lockout_conditions)).delete(synchronize_session=False)
        self.db.commit()

    def recent_attempts(self, identifier: str, ip_address: Optional[str] = None) -> int:
        since = utcnow() - timedelta(minutes=settings.LOGIN_LOCKOUT_MINUTES)
        conditions = [LoginAttemptRecord.identifier == identifier.lower()]
        if ip_address:
            conditions.append(LoginAttemptRecord.ip_address == ip_address)
        return (
            self.db.query(LoginAttemptRecord)
            .filter(LoginAttemptRecord.attempted_at > since, or_(*conditions))
            .count()
        )

    def _active_lockout(self, identifier: str, ip_address: Optional[str]) -> Optional[LoginLockout]:
        conditions = [LoginLockout.identifier == identifier.lower()]
        if ip_address:
            conditions.append(LoginLockout.ip_address == ip_address)
        return (
            self.db.query(LoginLockout)
            .filter(LoginLockout.locked_until > utcnow(), or_(*conditions))
            .order_by(LoginLockout.locked_until.desc())
            .first()
        )

    def check_lockout(self, identifier: str, ip_address: Optional[str] = None) -> LockoutStatus:
        """
        Check whether logins are blocked, locking when the attempt limit is reached.

        Returns:
            LockoutStatus with the time the lockout ends
        """
        lockout = self._active_lockout(identifier, ip_address)
        if lockout is not None:
            return LockoutStatus(locked=True, until=lockout.locked_until)

        attempts = self.recent_attempts(identifier, ip_address)
        if attempts < settings.LOGIN_MAX_ATTEMPTS:
            return LockoutStatus(locked=False)

        minutes = lockout_minutes(attempts)
        until = utcnow() + timedelta(minutes=minutes)
        self.db.add(
            LoginLockout(
                identifier=identifier.lower(),
                ip_address=ip_address,
                locked_until=until,
                attempt_count=attempts,
            )
        )
        self.db.commit()

        log_security_event(
            "login.lockout",
            success=False,
            level=logging.WARNING,
            identifier=identifier.lower(),
            ip_address=ip_address,
            attempts=attempts,
            minutes=minutes,
        )
        return LockoutStatus(locked=True, until=until)

    def remaining_attempts(self, identifier: str, ip_address: Optional[str] = None) -> int:
        return max(0, settings.LOGIN_MAX_ATTEMPTS - self.recent_attempts(identifier, ip_address))

    def clear_attempts(self, identifier: str) -> None:
        identifier = identifier.lower()
        self.db.query(LoginAttemptRecord).filter(LoginAttemptRecord.identifier == identifier).delete(
            synchronize_session=False
        )
        self.db.query(LoginLockout).filter(LoginLockout.identifier == identifier).delete(synchronize_session=False)
        self.db.commit()

    def clear_ip_attempts(self, ip_address: str) -> None:
        self.db.query(LoginAttemptRecord).filter(LoginAttemptRecord.ip_address == ip_address).delete(
            synchronize_session=False
        )
        self.db.query(LoginLockout).filter(LoginLockout.ip_address == ip_address).delete(synchronize_session=False)
        self.db.commit()

    def cleanup(self, older_than_days: int = 30) -> int:
        """Delete old attempts and expired lockouts, returning how many rows went."""
        cutoff = utcnow() - timedelta(days=older_than_days)
        attempts = (
            self.db.query(LoginAttemptRecord)
            .filter(LoginAttemptRecord.attempted_at < cutoff)
            .delete(synchronize_session=False)
        )
        lockouts = (
            self.db.query(LoginLockout)
            .filter(LoginLockout.locked_until < utcnow())
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return attempts + lockouts
