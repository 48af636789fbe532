# authsvc/infra/jwt/flask_jwt_keys.py
"""
Flask-JWT-Extended wiring for per-tenant access tokens.

Access tokens are signed with their app's secret, so the global
``JWT_SECRET_KEY`` is never used to verify them. The ``decode_key_loader``
reads the unverified ``appId`` claim and returns that tenant's secret; the
library then performs the actual signature and expiry checks.
"""

from __future__ import annotations

from collections.abc import Callable
from http import HTTPStatus
from typing import Any

import jwt as pyjwt
from flask import Flask
from flask_jwt_extended import JWTManager

from authsvc.core.errors import problem_response
from authsvc.services._shared.ports import IdentityResolver, is_claim_id


def init_app(
    app: Flask, manager: JWTManager, resolver_factory: Callable[[], IdentityResolver]
) -> None:
    """
    Register key resolution and RFC 7807 error callbacks on ``manager``.

    :param app: Flask application (for config lookups).
    :param manager: The initialized :class:`JWTManager`.
    :param resolver_factory: Returns the request's identity resolver.
    """

    @manager.decode_key_loader
    def tenant_secret(_header: dict[str, Any], payload: dict[str, Any]) -> str:
        app_id = payload.get("appId")
        if not is_claim_id(app_id):
            raise pyjwt.DecodeError("Missing or malformed appId claim")
        tenant = resolver_factory().find_app_by_id(app_id)
        if tenant is None or not tenant.is_active:
            raise pyjwt.DecodeError("Unknown or inactive app")
        return tenant.jwt_secret

    @manager.expired_token_loader
    def expired(_header: dict[str, Any], _payload: dict[str, Any]):
        return problem_response(
            status=HTTPStatus.UNAUTHORIZED, code="EXPIRED_TOKEN", message="Token has expired"
        )

    @manager.invalid_token_loader
    def invalid(reason: str):
        app.logger.info("Rejected access token: %s", reason)
        return problem_response(
            status=HTTPStatus.UNAUTHORIZED, code="INVALID_TOKEN", message="Invalid token"
        )

    @manager.unauthorized_loader
    def missing(reason: str):
        return problem_response(
            status=HTTPStatus.UNAUTHORIZED, code="UNAUTHORIZED", message=reason
        )
