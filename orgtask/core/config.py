"""
Configuration management for Org Task Core
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from typing import Optional, List

LOCAL_DATABASE_URL = "sqlite:///./orgtask.db"
LOCAL_JWT_SECRET_KEY = "change-me"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Development-only fallbacks; staging and prod must set both explicitly
    DATABASE_URL: str = Field(default=LOCAL_DATABASE_URL, description="Database URL")
    JWT_SECRET_KEY: str = Field(default=LOCAL_JWT_SECRET_KEY, description="JWT secret key for token verification")

    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=120, description="JWT token expiration in minutes")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    # CORS settings
    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    # Top-level departments must be managed by a holder of this role
    CHAIRMAN_ROLE_NAME: str = Field(default="Chairman", description="Role required to manage a top-level department")
    DEFAULT_ROLE_NAME: str = Field(default="Default User", description="Role given to new users created without one")

    # Push delivery
    PUSH_API_URL: str = Field(
        default="https://exp.host/--/api/v2/push/send",
        description="Push gateway endpoint"
    )
    PUSH_TIMEOUT_SECONDS: float = Field(default=10.0, description="Upper bound for a single push request")

    UNREAD_DIGEST_WINDOW_DAYS: int = Field(
        default=10,
        ge=1,
        description="Trailing window (days) for unread notification listing and digest"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @model_validator(mode="after")
    def require_explicit_secrets(self) -> "Settings":
        """Outside local, DATABASE_URL and JWT_SECRET_KEY must not fall back to the local defaults"""
        if self.APP_ENV == "local":
            return self
        missing = [
            name for name in ("DATABASE_URL", "JWT_SECRET_KEY")
            if name not in self.model_fields_set
        ]
        if missing:
            raise ValueError(f"{', '.join(missing)} must be set when APP_ENV={self.APP_ENV}")
        if self.JWT_SECRET_KEY == LOCAL_JWT_SECRET_KEY:
            raise ValueError(f"JWT_SECRET_KEY must not be the local default when APP_ENV={self.APP_ENV}")
        return self

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )

            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


settings = Settings()

if settings.APP_ENV == "prod":
    settings.validate_production()
