"""
Authentication endpoints.

Login with optional second factor, token refresh and logout,
registration, password flows, 2FA management and API keys.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..auth.api_keys import ApiKeyService
from ..auth.dependencies import get_current_user
from ..auth.service import (ACCOUNT_LOCKED, ACCOUNT_PENDING, EMAIL_EXISTS,
                            USERNAME_EXISTS, AuthResult, AuthService)
from ..database import get_db
from ..exceptions import AuthenticationException, InvalidTokenException
from ..metrics import track_login, track_register, track_token_refresh
from ..models import User
from ..schemas import (ApiKeyCreatedResponse, ApiKeyCreateRequest,
                       ApiKeyResponse, EmailVerifyRequest, LoginRequest,
                       LoginResponse, LogoutRequest, MessageResponse,
                       PasswordChangeRequest, PasswordForgotRequest,
                       PasswordResetRequest, RefreshRequest, RegisterRequest,
                       TokenResponse, TwoFactorDisableRequest,
                       TwoFactorEnableRequest, TwoFactorSetupResponse,
                       TwoFactorVerifyRequest, UserResponse)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

RESET_REQUESTED = "If the address belongs to an account, a reset link has been sent"


def _client(request: Request):
    return (
        request.client.host if request.client else None,
        request.headers.get("user-agent"),
    )


def _login_response(result: AuthResult) -> LoginResponse:
    """Turn an authentication result into a response or an HTTP error."""
    if result.requires_2fa:
        track_login("2fa_required")
        return LoginResponse(requires_2fa=True, challenge_token=result.challenge_token)

    if not result.success:
        if result.error == ACCOUNT_LOCKED:
            track_login("locked")
            raise HTTPException(
                status_code=status.HTTP_423_LOCKED,
                detail={
                    "message": result.error,
                    "locked_until": result.locked_until.isoformat() if result.locked_until else None,
                },
            )
        if result.error == ACCOUNT_PENDING:
            track_login("failure")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=result.error)
        track_login("failure")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.error,
            headers={"WWW-Authenticate": "Bearer"},
        )

    track_login("success")
    return LoginResponse(
        user=UserResponse.from_user(result.user),
        tokens=TokenResponse(**result.tokens.to_dict()),
    )


# ==================== LOGIN ====================


@router.post("/login", response_model=LoginResponse, summary="Log in with email or username")
def login(credentials: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """
    Authenticate with password.

    Returns tokens, or a challenge token when the account has 2FA enabled.

    Raises:
        HTTPException: 401 for bad credentials, 403 for an unverified account,
            423 while locked out
    """
    ip_address, user_agent = _client(request)
    result = AuthService(db).attempt(credentials.login, credentials.password, ip_address, user_agent)
    return _login_response(result)


@router.post("/2fa/verify", response_model=LoginResponse, summary="Complete login with a 2FA code")
def verify_two_factor(payload: TwoFactorVerifyRequest, request: Request, db: Session = Depends(get_db)):
    ip_address, user_agent = _client(request)
    result = AuthService(db).verify_two_factor(payload.challenge_token, payload.code, ip_address, user_agent)
    return _login_response(result)


@router.post("/refresh", response_model=TokenResponse, summary="Rotate the refresh token")
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)):
    """
    Exchange a refresh token for a new token pair.

    Raises:
        HTTPException: 401 if the refresh token is invalid
    """
    try:
        tokens = AuthService(db).refresh(payload.refresh_token)
    except InvalidTokenException as e:
        track_token_refresh(False)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    track_token_refresh(True)
    return TokenResponse(**tokens.to_dict())


@router.post("/logout", response_model=MessageResponse, summary="Log out")
def logout(
    payload: LogoutRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    AuthService(db).logout(user, payload.refresh_token, payload.all_devices)
    return MessageResponse(message="Logged out")


# ==================== ACCOUNT ====================


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user",
)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a pending account.

    Raises:
        HTTPException: 409 if email or username is taken, 422 for a weak password
    """
    result = AuthService(db).register(
        email=payload.email,
        username=payload.username,
        password=payload.password,
        display_name=payload.display_name,
    )
    track_register(result.success)
    if not result.success:
        if result.error in (EMAIL_EXISTS, USERNAME_EXISTS):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.error)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=result.error)
    return UserResponse.from_user(result.user)


@router.post("/verify-email", response_model=MessageResponse, summary="Confirm an email address")
def verify_email(payload: EmailVerifyRequest, db: Session = Depends(get_db)):
    if not AuthService(db).verify_email(payload.token):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token")
    return MessageResponse(message="Email verified")


@router.get("/me", response_model=UserResponse, summary="Current user")
def me(user: User = Depends(get_current_user)):
    return UserResponse.from_user(user)


# ==================== PASSWORDS ====================


@router.post("/password/forgot", response_model=MessageResponse, summary="Request a password reset")
def forgot_password(payload: PasswordForgotRequest, db: Session = Depends(get_db)):
    """Always answers the same, whether or not the address is registered."""
    AuthService(db).send_password_reset(payload.email)
    return MessageResponse(message=RESET_REQUESTED)


@router.post("/password/reset", response_model=MessageResponse, summary="Reset password with a token")
def reset_password(payload: PasswordResetRequest, db: Session = Depends(get_db)):
    try:
        reset = AuthService(db).reset_password(payload.token, payload.password)
    except AuthenticationException as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    if not reset:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token")
    return MessageResponse(message="Password has been reset")


@router.post("/password/change", response_model=MessageResponse, summary="Change password")
def change_password(
    payload: PasswordChangeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Change the password; all issued tokens become invalid.

    Raises:
        HTTPException: 400 for a wrong current password, 422 for a weak new one
    """
    try:
        changed = AuthService(db).change_password(user, payload.current_password, payload.new_password)
    except AuthenticationException as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    if not changed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    return MessageResponse(message="Password changed")


# ==================== TWO-FACTOR ====================


@router.post("/2fa/setup", response_model=TwoFactorSetupResponse, summary="Generate a 2FA secret")
def two_factor_setup(user: User = Depends(get_current_user)):
    setup = AuthService.generate_two_factor_setup(user)
    return TwoFactorSetupResponse(secret=setup.secret, uri=setup.uri, recovery_codes=setup.recovery_codes)


@router.post("/2fa/enable", response_model=MessageResponse, summary="Enable 2FA")
def two_factor_enable(
    payload: TwoFactorEnableRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not AuthService(db).enable_two_factor(user, payload.secret, payload.code):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid 2FA code")
    return MessageResponse(message="Two-factor authentication enabled")


@router.post("/2fa/disable", response_model=MessageResponse, summary="Disable 2FA")
def two_factor_disable(
    payload: TwoFactorDisableRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not AuthService(db).disable_two_factor(user, payload.password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password is incorrect")
    return MessageResponse(message="Two-factor authentication disabled")


# ==================== API KEYS ====================


@router.get("/api-keys", response_model=List[ApiKeyResponse], summary="List API keys")
def list_api_keys(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [ApiKeyResponse(**key) for key in ApiKeyService(db).list_for_user(user.id)]


@router.post(
    "/api-keys",
    response_model=ApiKeyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an API key",
)
def create_api_key(
    payload: ApiKeyCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The full key is only returned here."""
    created = ApiKeyService(db).create(user, payload.name, payload.scopes, payload.expires_at)
    return ApiKeyCreatedResponse(
        id=created.record.id,
        name=created.record.name,
        key=created.key,
        scopes=created.record.scopes,
    )


@router.delete("/api-keys/{key_id}", response_model=MessageResponse, summary="Revoke an API key")
def revoke_api_key(key_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not ApiKeyService(db).revoke(key_id, user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="API key not found")
    return MessageResponse(message="API key revoked")
