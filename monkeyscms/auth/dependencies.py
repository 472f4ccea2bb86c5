"""
Dependency functions for authentication.

API routes authenticate with a Bearer access token or an ``X-API-Key``
header; admin pages use the session cookie.
"""

from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..exceptions import InvalidTokenException, LoginRequiredException
from ..models import User
from .api_keys import ApiKeyService
from .security import get_token_from_header
from .service import AuthService
from .sessions import SessionManager

ADMIN_PERMISSION = "access admin"
ADMIN_LOGIN_URL = "/admin/login"


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(db)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency that resolves the authenticated user.

    Raises:
        HTTPException: 401 if no valid token or API key is supplied
    """
    token = get_token_from_header(authorization)
    if token:
        try:
            user = AuthService(db).authenticate_token(token)
        except InvalidTokenException as e:
            raise _unauthorized(e.message)
        request.state.api_key = None
        return user

    if x_api_key:
        service = ApiKeyService(db)
        record = service.validate(x_api_key)
        user = service.get_user(record) if record else None
        if user is None or user.status == "blocked":
            raise _unauthorized("Invalid API key")
        request.state.api_key = record
        return user

    raise _unauthorized("Authorization header required")


def require_permission(permission: str) -> Callable:
    """
    Build a dependency requiring a permission.

    Requests made with an API key also need a matching scope.
    """

    def dependency(request: Request, user: User = Depends(get_current_user)) -> User:
        if not user.has_permission(permission):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Permission denied: {permission}")
        api_key = getattr(request.state, "api_key", None)
        if api_key is not None and not ApiKeyService.has_scope(api_key, permission.replace(" ", ".")):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="API key scope does not allow this")
        return user

    return dependency


def get_session(request: Request, db: Session = Depends(get_db)) -> SessionManager:
    """Session for the request, resumed from the cookie or newly started."""
    session = SessionManager(db)
    session.start(
        request.cookies.get(settings.SESSION_COOKIE_NAME),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    request.state.session = session
    return session


def get_session_user(session: SessionManager = Depends(get_session), db: Session = Depends(get_db)) -> Optional[User]:
    if session.user_id is None:
        return None
    user = db.query(User).filter(User.id == session.user_id).first()
    if user is None or user.status == "blocked":
        return None
    return user


def get_admin_user(
    request: Request,
    session: SessionManager = Depends(get_session),
    user: Optional[User] = Depends(get_session_user),
) -> User:
    """
    Admin page user; anonymous visitors are redirected to the login page.

    Raises:
        LoginRequiredException: Without a logged-in session
        HTTPException: 403 without admin access
    """
    if user is None:
        session.set_intended_url(str(request.url.path))
        raise LoginRequiredException(ADMIN_LOGIN_URL)
    if not user.has_permission(ADMIN_PERMISSION):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
