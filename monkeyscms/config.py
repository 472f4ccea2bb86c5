"""
Configuration management for MonkeysCMS.

Loads and validates environment variables for the application.
"""

from typing import Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or a `.env` file.
    """

    # Service Configuration
    APP_NAME: str = "MonkeysCMS"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./monkeyscms.db"
    DATABASE_ECHO: bool = False

    # JWT Configuration
    JWT_SECRET_KEY: str = "change-me-in-production-this-is-a-32-char-minimum-key"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    TWO_FACTOR_CHALLENGE_MINUTES: int = 5

    # Password Hashing
    PASSWORD_HASH_ROUNDS: int = 12
    PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    EMAIL_VERIFICATION_EXPIRE_MINUTES: int = 60

    # Sessions
    SESSION_COOKIE_NAME: str = "monkeys_session"
    SESSION_LIFETIME_MINUTES: int = 120
    SESSION_COOKIE_SECURE: bool = False
    SESSION_COOKIE_SAMESITE: str = "lax"

    # Login throttling
    LOGIN_MAX_ATTEMPTS: int = 5
    LOGIN_LOCKOUT_MINUTES: int = 15
    LOGIN_LOCKOUT_MULTIPLIER: int = 2
    LOGIN_MAX_LOCKOUT_MINUTES: int = 1440

    # Two-factor authentication
    TOTP_ISSUER: str = "MonkeysCMS"
    TOTP_DIGITS: int = 6
    TOTP_PERIOD: int = 30
    TOTP_WINDOW: int = 1

    # Cache
    CACHE_DEFAULT_TTL: int = 3600
    CACHE_MAX_SIZE: int = 1024

    # Theme
    THEME_NAME: str = "default"
    THEME_REGIONS: str = Field(
        default="header,sidebar_first,content,sidebar_second,footer",
        description="Comma-separated list of regions blocks can be placed in",
    )

    # CORS Configuration (comma-separated string)
    CORS_ORIGINS: str = "http://localhost:8000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v_upper

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Reject secrets too short for HMAC signing."""
        if len(v) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters")
        return v

    def get_cors_origins(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def get_theme_regions(self) -> Dict[str, str]:
        """Get theme regions mapped to human readable labels."""
        regions = [r.strip() for r in self.THEME_REGIONS.split(",") if r.strip()]
        return {region: region.replace("_", " ").title() for region in regions}


# Global settings instance
settings = Settings()
