"""
PartnerHub configuration, selected by ``APP_ENV``.

    create_app()             # APP_ENV or "development"
    create_app("testing")    # in-memory SQLite, quiet logging
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _database_url(default=None):
    # Heroku-style postgres:// URLs are rejected by SQLAlchemy 2.x
    raw = os.getenv("DATABASE_URL", "")
    return raw.replace("postgres://", "postgresql://", 1) if raw else default


def _env_int(name, default):
    return int(os.getenv(name, str(default)))


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}

    # Comma-separated list of portal front-end origins, "*" for any
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Admin dashboard
    DASHBOARD_RECENT_ACTIVITY_LIMIT = _env_int("DASHBOARD_RECENT_ACTIVITY_LIMIT", 10)

    # Notification inbox page size when the client sends no ?limit=
    NOTIFICATION_PAGE_SIZE = _env_int("NOTIFICATION_PAGE_SIZE", 50)

    # Requests slower than this are logged at WARNING
    SLOW_REQUEST_MS = _env_int("SLOW_REQUEST_MS", 1000)


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        f"sqlite:///{os.path.join(basedir, 'instance', 'partnerhub_dev.db')}"
    )


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}


class ProductionConfig(Config):
    """PostgreSQL with a statement timeout; DATABASE_URL and SECRET_KEY are mandatory."""

    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
