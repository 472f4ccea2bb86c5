"""
Pydantic models for request/response schemas.

Defines data models for the authentication and field JSON APIs.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# ==================== AUTH REQUESTS ====================


class LoginRequest(BaseModel):
    """Login with email or username."""

    login: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class TwoFactorVerifyRequest(BaseModel):
    challenge_token: str
    code: str = Field(..., min_length=6, max_length=10)


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None
    all_devices: bool = False


class RegisterRequest(BaseModel):
    """Model for user registration."""

    email: EmailStr
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    password: str
    display_name: Optional[str] = Field(None, max_length=255)


class EmailVerifyRequest(BaseModel):
    token: str


class PasswordForgotRequest(BaseModel):
    email: EmailStr


class PasswordResetRequest(BaseModel):
    token: str
    password: str


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str


class TwoFactorEnableRequest(BaseModel):
    secret: str
    code: str


class TwoFactorDisableRequest(BaseModel):
    password: str


class ApiKeyCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    scopes: List[str] = Field(default_factory=lambda: ["*"])
    expires_at: Optional[datetime] = None


# ==================== AUTH RESPONSES ====================


class UserResponse(BaseModel):
    """Model for user data in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    display_name: Optional[str] = None
    status: str
    roles: List[str] = Field(default_factory=list)
    two_factor_enabled: bool = False
    email_verified_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: Any) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            display_name=user.display_name,
            status=user.status,
            roles=user.role_slugs,
            two_factor_enabled=user.two_factor_enabled,
            email_verified_at=user.email_verified_at,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginResponse(BaseModel):
    """Either tokens, or a challenge token when a second factor is needed."""

    user: Optional[UserResponse] = None
    tokens: Optional[TokenResponse] = None
    requires_2fa: bool = False
    challenge_token: Optional[str] = None


class TwoFactorSetupResponse(BaseModel):
    secret: str
    uri: str
    recovery_codes: List[str]


class ApiKeyResponse(BaseModel):
    id: int
    name: str
    key_prefix: str
    scopes: List[str]
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ApiKeyCreatedResponse(BaseModel):
    id: int
    name: str
    key: str
    scopes: List[str]


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
    success: bool = True


# ==================== FIELDS ====================


class FieldPayload(BaseModel):
    """Field definition as sent to the field preview and validation endpoints."""

    name: str = Field(..., min_length=1)
    field_type: str = "string"
    machine_name: str = ""
    widget: Optional[str] = None
    required: bool = False
    multiple: bool = False
    cardinality: int = 1
    help_text: Optional[str] = None
    default_value: Any = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    validation: Dict[str, Any] = Field(default_factory=dict)
    widget_settings: Dict[str, Any] = Field(default_factory=dict)


class FieldRenderRequest(BaseModel):
    field: FieldPayload
    value: Any = None
    form_id: str = "preview"


class FieldRenderResponse(BaseModel):
    html: str
    css: List[str]
    js: List[str]
    init_scripts: List[str]


class FieldValidateRequest(BaseModel):
    fields: List[FieldPayload]
    values: Dict[str, Any] = Field(default_factory=dict)


class FieldValidateResponse(BaseModel):
    valid: bool
    errors: Dict[str, List[str]]
    values: Dict[str, Any] = Field(default_factory=dict)
