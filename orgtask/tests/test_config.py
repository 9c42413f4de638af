"""
Tests for configuration validation
"""
import pytest
from pydantic import ValidationError
from orgtask.core.config import Settings


def test_prod_settings_rejects_wildcard_origins():
    """Production settings reject wildcard origins"""
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="a" * 32,
        APP_ENV="prod",
        ALLOWED_ORIGINS="*"
    )
    with pytest.raises(ValueError, match="ALLOWED_ORIGINS"):
        settings.validate_production()


def test_prod_settings_rejects_short_jwt_secret():
    """Production settings reject a short JWT secret"""
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="short",
        APP_ENV="prod",
        ALLOWED_ORIGINS="https://example.com"
    )
    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        settings.validate_production()


def test_local_settings_allows_wildcard_origins():
    settings = Settings(
        DATABASE_URL="sqlite://",
        JWT_SECRET_KEY="test-key",
        APP_ENV="local",
        ALLOWED_ORIGINS="*"
    )
    settings.validate_production()
    assert settings.get_allowed_origins_list() == ["*"]


def test_get_allowed_origins_list():
    """Test parsing of ALLOWED_ORIGINS"""
    settings = Settings(
        JWT_SECRET_KEY="test-key",
        ALLOWED_ORIGINS="https://example.com, https://app.example.com,"
    )
    origins = settings.get_allowed_origins_list()
    assert origins == ["https://example.com", "https://app.example.com"]


def test_unknown_app_env_is_rejected():
    with pytest.raises(ValidationError):
        Settings(APP_ENV="production")


def test_log_level_is_normalized():
    assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"


def test_chairman_role_and_digest_window_defaults():
    settings = Settings()
    assert settings.CHAIRMAN_ROLE_NAME == "Chairman"
    assert settings.UNREAD_DIGEST_WINDOW_DAYS == 10


def test_digest_window_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(UNREAD_DIGEST_WINDOW_DAYS=0)


@pytest.fixture
def no_secret_env(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)


@pytest.mark.parametrize("app_env", ["staging", "prod"])
def test_non_local_settings_require_explicit_database_and_secret(no_secret_env, app_env):
    with pytest.raises(ValidationError, match="DATABASE_URL, JWT_SECRET_KEY"):
        Settings(APP_ENV=app_env, ALLOWED_ORIGINS="https://example.com")

    with pytest.raises(ValidationError, match="DATABASE_URL"):
        Settings(APP_ENV=app_env, JWT_SECRET_KEY="s" * 32, ALLOWED_ORIGINS="https://example.com")


def test_non_local_settings_reject_the_local_secret():
    with pytest.raises(ValidationError, match="local default"):
        Settings(APP_ENV="staging", DATABASE_URL="postgresql://test", JWT_SECRET_KEY="change-me")


def test_staging_settings_with_explicit_values():
    settings = Settings(APP_ENV="staging", DATABASE_URL="postgresql://test", JWT_SECRET_KEY="s" * 32)
    assert settings.DATABASE_URL == "postgresql://test"


def test_local_settings_fall_back_to_development_defaults(no_secret_env):
    settings = Settings(APP_ENV="local")
    assert settings.DATABASE_URL.startswith("sqlite")
    assert settings.JWT_SECRET_KEY == "change-me"
