"""
Tests for application configuration and settings validation.
"""

import os
import pytest
from unittest.mock import patch


def test_settings_loads_defaults():
    """Settings should load with sensible defaults in development."""
    # Clear the lru_cache so we get a fresh Settings instance
    from changetracker.config import get_settings
    get_settings.cache_clear()

    with patch.dict(os.environ, {
        "ENVIRONMENT": "development",
        "DATABASE_URL": "postgresql+asyncpg://localhost/test",
        "SECRET_KEY": "change-me-in-production",
    }, clear=False):
        get_settings.cache_clear()
        settings = get_settings()
        assert settings.environment == "development"
        assert settings.is_production is False
        assert settings.is_sqlite is False
        assert settings.access_token_expire_minutes == 60 * 24
        assert settings.notification_list_limit == 200
        assert settings.first_admin_name == "Admin User"
    get_settings.cache_clear()


def test_plain_postgres_url_is_rewritten_for_asyncpg():
    from changetracker.config import Settings
    settings = Settings(database_url="postgresql://user:pw@db-host:5432/tracker")
    assert settings.database_url == "postgresql+asyncpg://user:pw@db-host:5432/tracker"


def test_sqlite_url_is_detected():
    from changetracker.config import Settings
    settings = Settings(database_url="sqlite+aiosqlite:///./local.db")
    assert settings.is_sqlite is True


def test_settings_cors_origin_list():
    """CORS origins string should be split into a list."""
    from changetracker.config import get_settings
    get_settings.cache_clear()

    with patch.dict(os.environ, {
        "CORS_ORIGINS": "http://localhost:3000, http://example.com",
    }, clear=False):
        get_settings.cache_clear()
        origins = get_settings().cors_origin_list
        assert origins == ["http://localhost:3000", "http://example.com"]
    get_settings.cache_clear()


def test_empty_cors_origins_fall_back_to_local_dev():
    from changetracker.config import Settings
    settings = Settings(cors_origins=" , ")
    assert settings.cors_origin_list == ["http://localhost:5173", "http://localhost:3000"]


def test_production_rejects_default_secret():
    """Production mode should reject the default secret key."""
    from changetracker.config import Settings

    with pytest.raises(ValueError, match="SECRET_KEY must be set"):
        Settings(
            environment="production",
            secret_key="change-me-in-production",
            database_url="postgresql+asyncpg://prod-host/db",
        )


def test_production_accepts_real_secret():
    """Production mode should accept a real secret key."""
    from changetracker.config import Settings
    settings = Settings(
        environment="production",
        secret_key="a-real-secret-key-that-is-not-the-default",
        database_url="postgresql+asyncpg://prod-host/db",
    )
    assert settings.is_production is True
