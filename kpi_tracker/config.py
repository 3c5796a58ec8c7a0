"""
KPI Tracker
Configuration classes for the Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not configured
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'kpi_tracker_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Random keys for development; production MUST use stable env vars
_DEV_SECRET = secrets.token_hex(32)
_DEV_SUPER_ADMIN_SECRET = secrets.token_hex(32)


def _database_url(default):
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    raw = os.getenv("DATABASE_URL", "")
    return raw.replace("postgres://", "postgresql://", 1) if raw else default


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Tokens: tenant/independent users and super-admins use separate secrets
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY") or SECRET_KEY
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", str(7 * 24 * 3600)))
    SUPER_ADMIN_SECRET_KEY = os.getenv("SUPER_ADMIN_SECRET_KEY", _DEV_SUPER_ADMIN_SECRET)
    SUPER_ADMIN_TOKEN_EXPIRES = int(os.getenv("SUPER_ADMIN_TOKEN_EXPIRES", str(24 * 3600)))
    SUPER_ADMIN_SETUP_KEY = os.getenv("SUPER_ADMIN_SETUP_KEY")

    # Invitations
    APP_URL = os.getenv("APP_URL", "http://localhost:5173")
    INVITATION_EXPIRES_DAYS = int(os.getenv("INVITATION_EXPIRES_DAYS", "7"))

    PASSWORD_MIN_LENGTH = 6

    # Provision the default template and legacy KPI set at startup
    KPI_SEED_ON_STARTUP = os.getenv("KPI_SEED_ON_STARTUP", "true").lower() == "true"

    # Rate-limit storage
    REDIS_URL = os.getenv("REDIS_URL", "memory://")

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    MAX_CONTENT_LENGTH = 2 * 1024 * 1024

    # Logging: "json" or "text"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "text")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(_SQLITE_DEV)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret"
    SUPER_ADMIN_SECRET_KEY = "test-super-admin-secret"
    SUPER_ADMIN_SETUP_KEY = "test-setup-key"
    APP_URL = "http://kpi.test"
    KPI_SEED_ON_STARTUP = False
    RATELIMIT_ENABLED = False
    LOG_LEVEL = "WARNING"


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _database_url(None)
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {
            "options": "-c statement_timeout=30000",  # 30s query timeout
        },
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        for name in ("SECRET_KEY", "JWT_SECRET_KEY", "SUPER_ADMIN_SECRET_KEY"):
            if not os.getenv(name):
                raise RuntimeError(f"{name} environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
