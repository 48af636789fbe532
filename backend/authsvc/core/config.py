"""Environment-driven settings classes for the auth service."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Selects one of CONFIG_MAP's classes
ENV_VAR: Final[str] = "APP_ENV"


# Picks up a local .env when present
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Read ``name`` as a flag; ``1``, ``true``, ``yes``, ``y`` and ``on`` count as set."""
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_float(name: str, default: float) -> float:
    """Parse a float from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return float(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints. Empty by default so the
        auth routes live at ``/auth/...``.
    SECRET_KEY: str
        Flask secret used for session signing.
    JWT_SECRET_KEY: str
        Fallback key for ``flask-jwt-extended``. Access tokens are verified
        with the owning tenant's secret, resolved from the ``appId`` claim.
    JWT_ALGORITHM: str
        HMAC algorithm used to sign both access and refresh tokens.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    REFRESH_TOKEN_STORE: str
        ``"sqlalchemy"`` (default) or ``"redis"``; selects the refresh-token
        store backend.
    REDIS_URL: str | None
        Connection URL used when the Redis store is selected.
    REFRESH_TOKEN_GRACE_SECONDS: float
        Window after a rotation during which re-presenting the superseded
        token is treated as a benign retry instead of reuse.
    REFRESH_TOKEN_HASH_METHOD: str
        Werkzeug hashing method for refresh-token digests.
    AUTH_OAUTH_RATE_LIMIT, AUTH_REFRESH_RATE_LIMIT: str
        Flask-Limiter expressions applied to the login and refresh endpoints.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = os.getenv("API_BASE_PREFIX", "")

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Refresh tokens
    REFRESH_TOKEN_STORE = os.getenv("REFRESH_TOKEN_STORE", "sqlalchemy")
    REDIS_URL = os.getenv("REDIS_URL")
    REDIS_SOCKET_TIMEOUT = env_float("REDIS_SOCKET_TIMEOUT", 2.0)
    REFRESH_TOKEN_GRACE_SECONDS = env_float("REFRESH_TOKEN_GRACE_SECONDS", 5.0)
    REFRESH_TOKEN_HASH_METHOD = os.getenv("REFRESH_TOKEN_HASH_METHOD", "scrypt")

    # Rate limiting
    RATELIMIT_ENABLED = env_bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    AUTH_OAUTH_RATE_LIMIT = os.getenv("AUTH_OAUTH_RATE_LIMIT", "10 per minute")
    AUTH_REFRESH_RATE_LIMIT = os.getenv("AUTH_REFRESH_RATE_LIMIT", "30 per minute")

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging, CORS & proxies
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Local runs with debug enabled and a SQLite file database."""

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Uses a cheap PBKDF2 work factor and disables rate limiting.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    REFRESH_TOKEN_STORE = "sqlalchemy"
    REFRESH_TOKEN_HASH_METHOD = "pbkdf2:sha256:1000"
    RATELIMIT_ENABLED = False
    USE_PROXYFIX = False
    PROPAGATE_EXCEPTIONS = False


class ProductionConfig(BaseConfig):
    """Deployed service. Secrets and ``DATABASE_URL`` must come from the environment."""

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Pick the settings class named by ``APP_ENV``.

    Unknown or missing names fall back to :class:`DevelopmentConfig`.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
