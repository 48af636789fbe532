"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from datetime import timedelta

from flask import Flask

from authsvc.core.config import BaseConfig, get_config
from authsvc.core.logger import configure_logging, init_app as init_logging
from authsvc.services._shared.ports import RefreshTokenStore
from authsvc.services.auth.dto import AuthTokenConfig
from authsvc.services.auth.providers import OAuthProviderRegistry
from authsvc.services.auth.service import AuthService


def _build_store(app: Flask) -> RefreshTokenStore:
    """Select the refresh-token store named by ``REFRESH_TOKEN_STORE``."""

    backend = str(app.config.get("REFRESH_TOKEN_STORE", "sqlalchemy")).lower()
    if backend == "redis":
        from authsvc.core.extensions import get_redis
        from authsvc.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore

        return RedisRefreshTokenStore(r=get_redis())
    if backend == "sqlalchemy":
        from authsvc.infra.sqlalchemy.refresh_token_store import SQLAlchemyRefreshTokenStore

        return SQLAlchemyRefreshTokenStore()
    raise RuntimeError(f"Unknown REFRESH_TOKEN_STORE: {backend!r}")


def _build_auth_service(app: Flask) -> AuthService:
    from authsvc.infra.jwt.pyjwt_token_codec import PyJWTTokenCodec
    from authsvc.infra.security.werkzeug_credential_hasher import WerkzeugCredentialHasher
    from authsvc.infra.sqlalchemy.identity_resolver import SQLAlchemyIdentityResolver

    providers = app.extensions.setdefault("oauth_providers", OAuthProviderRegistry())
    grace = float(app.config.get("REFRESH_TOKEN_GRACE_SECONDS", 5.0))
    return AuthService(
        resolver=SQLAlchemyIdentityResolver(),
        store=_build_store(app),
        codec=PyJWTTokenCodec(algorithm=app.config.get("JWT_ALGORITHM", "HS256")),
        hasher=WerkzeugCredentialHasher(
            method=app.config.get("REFRESH_TOKEN_HASH_METHOD", "scrypt")
        ),
        providers=providers,
        config=AuthTokenConfig(grace_period=timedelta(seconds=grace)),
    )


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application."""

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Proxy headers if running behind a reverse proxy (optional module)
    from authsvc.core import proxy

    proxy.init_app(app)

    from authsvc.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from authsvc.core import cors

    cors.init_app(app)

    from authsvc.api.deps import AUTH_SERVICE_KEY

    service = _build_auth_service(app)
    app.extensions[AUTH_SERVICE_KEY] = service

    from authsvc.infra.jwt import flask_jwt_keys

    flask_jwt_keys.init_app(app, extensions.jwt, lambda: service.resolver)

    from authsvc.api import init_app as init_api

    init_api(app)

    from authsvc.core import errors

    errors.init_app(app)

    from authsvc import cli as app_cli

    app_cli.init_app(app)

    return app
