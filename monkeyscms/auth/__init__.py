"""
Authentication: passwords and JWT tokens, sessions, two-factor login,
login throttling and API keys.
"""

from .api_keys import ApiKeyService
from .login_attempts import LoginAttemptTracker
from .service import AuthResult, AuthService, TokenPair
from .sessions import SessionManager

__all__ = [
    "ApiKeyService",
    "AuthResult",
    "AuthService",
    "LoginAttemptTracker",
    "SessionManager",
    "TokenPair",
]
