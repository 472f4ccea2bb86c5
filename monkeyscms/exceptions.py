"""
Custom exceptions for MonkeysCMS.

Domain errors are independent of HTTP. The application maps them to
responses in ``app.py``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional


class CmsException(Exception):
    """Base exception for all CMS errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(CmsException):
    """Raised when a single input value fails validation."""

    def __init__(self, field: str, value: Any, reason: str):
        message = f"Validation failed for {field}: {reason}"
        super().__init__(
            message=message,
            details={"field": field, "value": str(value), "reason": reason},
        )


class FormValidationException(CmsException):
    """Raised when submitted form data fails validation."""

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        count = sum(len(messages) for messages in errors.values())
        super().__init__(
            message=f"Submitted data is invalid ({count} error{'s' if count != 1 else ''})",
            details={"errors": errors},
        )


class NotFoundException(CmsException):
    """Raised when an entity cannot be found."""

    def __init__(self, entity: str, identifier: Any):
        super().__init__(
            message=f"{entity} not found: {identifier}",
            details={"entity": entity, "identifier": str(identifier)},
        )


class DuplicateException(CmsException):
    """Raised when a unique value is already taken."""

    def __init__(self, entity: str, field: str, value: Any):
        super().__init__(
            message=f"{entity} with {field} '{value}' already exists",
            details={"entity": entity, "field": field, "value": str(value)},
        )


class WidgetNotFoundException(CmsException):
    """Raised when no widget can render a field."""

    def __init__(self, widget_id: str):
        super().__init__(
            message=f"Widget not found: {widget_id}",
            details={"widget_id": widget_id},
        )


class AuthenticationException(CmsException):
    """Raised when credentials or tokens are rejected."""

    def __init__(self, reason: str = "Invalid credentials"):
        super().__init__(message=reason, details={"reason": reason})


class InvalidTokenException(AuthenticationException):
    """Raised when a token is malformed, expired or revoked."""

    def __init__(self, reason: str = "Invalid or expired token"):
        super().__init__(reason)


class AccountLockedException(CmsException):
    """Raised when too many failed logins locked an account."""

    def __init__(self, identifier: str, locked_until: Optional[datetime] = None):
        self.locked_until = locked_until
        message = "Account is locked"
        if locked_until:
            message += f" until {locked_until.isoformat()}"
        super().__init__(
            message=message,
            details={
                "identifier": identifier,
                "locked_until": locked_until.isoformat() if locked_until else None,
            },
        )


class TwoFactorRequiredException(CmsException):
    """Raised when a login needs a second factor to complete."""

    def __init__(self, challenge_token: str):
        self.challenge_token = challenge_token
        super().__init__(
            message="Two-factor authentication required",
            details={"challenge_token": challenge_token},
        )


class PermissionDeniedException(CmsException):
    """Raised when the current user lacks a permission."""

    def __init__(self, permission: str):
        super().__init__(
            message=f"Permission denied: {permission}",
            details={"permission": permission},
        )


class LoginRequiredException(CmsException):
    """Raised when an admin page is requested without a logged-in session."""

    def __init__(self, redirect_to: str):
        self.redirect_to = redirect_to
        super().__init__(message="Login required", details={"redirect_to": redirect_to})


class DataIntegrityException(CmsException):
    """Raised when data integrity constraints are violated."""

    def __init__(self, entity: str, reason: str):
        super().__init__(
            message=f"Data integrity error for {entity}: {reason}",
            details={"entity": entity, "reason": reason},
        )
