"""Authentication endpoints using the service layer."""

from __future__ import annotations

from flask import Blueprint, current_app
from flask_jwt_extended import get_jwt, jwt_required

from authsvc.api.deps import get_auth_service, json_response, load_json, no_content, timing
from authsvc.api.schemas import (
    LoginResponseSchema,
    LogoutSchema,
    OAuthLoginSchema,
    RefreshSchema,
    TokenPairSchema,
    UserSchema,
)
from authsvc.core.extensions import limiter
from authsvc.services._shared.errors import UnauthorizedError
from authsvc.services._shared.ports import AccessClaims, MalformedToken
from authsvc.services._shared.ports.token_codec import claims_from_payload

bp = Blueprint("auth", __name__)

oauth_schema = OAuthLoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
token_schema = TokenPairSchema()
login_schema = LoginResponseSchema()
user_schema = UserSchema()


def _oauth_rate_limit() -> str:
    return str(current_app.config.get("AUTH_OAUTH_RATE_LIMIT", "10 per minute"))


def _refresh_rate_limit() -> str:
    return str(current_app.config.get("AUTH_REFRESH_RATE_LIMIT", "30 per minute"))


@bp.post("/oauth")
@limiter.limit(_oauth_rate_limit)
@timing
def oauth_login():
    """Sign in through an OAuth provider and issue a token pair."""

    dto = load_json(oauth_schema)
    result = get_auth_service().oauth_login(dto)
    body = login_schema.dump(
        {
            "access_token": result.tokens.access_token,
            "refresh_token": result.tokens.refresh_token,
            "expires_in": result.tokens.expires_in,
            "user": result.user,
        }
    )
    return json_response(body)


@bp.post("/refresh")
@limiter.limit(_refresh_rate_limit)
@timing
def refresh():
    """Rotate a refresh token; every failure is a 401 with a specific code."""

    dto = load_json(refresh_schema)
    tokens = get_auth_service().refresh(dto)
    return json_response(token_schema.dump(tokens))


@bp.post("/logout")
@timing
def logout():
    """Revoke the refresh token (or every session of its user)."""

    dto = load_json(logout_schema)
    get_auth_service().logout(dto)
    return no_content()


@bp.get("/me")
@jwt_required()
@timing
def me():
    """Return the profile of the access token's user."""

    try:
        claims = claims_from_payload(get_jwt())
    except MalformedToken as exc:
        raise UnauthorizedError() from exc
    if not isinstance(claims, AccessClaims):
        raise UnauthorizedError()
    user = get_auth_service().current_user(claims.sub, claims.app_id)
    return json_response(user_schema.dump(user))
