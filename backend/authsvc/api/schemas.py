"""Marshmallow schemas for the auth endpoints.

Wire names are camelCase (``refreshToken``, ``revokeAll``); ``load``
returns the service-layer DTOs directly.
"""

from __future__ import annotations

from marshmallow import Schema, fields, post_load, validate

from authsvc.services.auth.dto import LogoutIn, OAuthLoginIn, RefreshIn
from authsvc.services.auth.providers import SUPPORTED_PROVIDERS

APP_CODE_PATTERN = r"^[a-z0-9-]+$"


class OAuthLoginSchema(Schema):
    """Input payload for an OAuth login."""

    code = fields.String(
        required=True,
        validate=[
            validate.Length(min=1, max=50),
            validate.Regexp(APP_CODE_PATTERN, error="App code must match ^[a-z0-9-]+$."),
        ],
    )
    provider = fields.String(required=True, validate=validate.OneOf(SUPPORTED_PROVIDERS))
    access_token = fields.String(
        required=True, data_key="accessToken", validate=validate.Length(min=1)
    )

    @post_load
    def _to_dto(self, data, **kwargs) -> OAuthLoginIn:
        return OAuthLoginIn(**data)


class RefreshSchema(Schema):
    """Input payload for a token refresh."""

    refresh_token = fields.String(
        required=True, data_key="refreshToken", validate=validate.Length(min=1)
    )

    @post_load
    def _to_dto(self, data, **kwargs) -> RefreshIn:
        return RefreshIn(**data)


class LogoutSchema(Schema):
    """Input payload for logout; ``revokeAll`` ends every session of the user."""

    refresh_token = fields.String(
        required=True, data_key="refreshToken", validate=validate.Length(min=1)
    )
    revoke_all = fields.Boolean(load_default=False, data_key="revokeAll")

    @post_load
    def _to_dto(self, data, **kwargs) -> LogoutIn:
        return LogoutIn(**data)


class TokenPairSchema(Schema):
    """Response payload with an access/refresh token pair."""

    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
    token_type = fields.Constant("Bearer", data_key="tokenType", dump_only=True)
    expires_in = fields.Integer(data_key="expiresIn")


class UserSchema(Schema):
    """Public profile of an authenticated user."""

    id = fields.Integer()
    app_id = fields.Integer(data_key="appId")
    provider = fields.String()
    email = fields.String(allow_none=True)
    nickname = fields.String(allow_none=True)
    profile_image = fields.String(allow_none=True, data_key="profileImage")
    last_login_at = fields.DateTime(allow_none=True, data_key="lastLoginAt")


class LoginResponseSchema(TokenPairSchema):
    """Token pair plus the signed-in user."""

    user = fields.Nested(UserSchema)
