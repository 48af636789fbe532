# authsvc/infra/jwt/pyjwt_token_codec.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from authsvc.services._shared.durations import as_timedelta
from authsvc.services._shared.ports import (
    Claims,
    InvalidSignature,
    MalformedToken,
    TokenCodec,
    TokenExpired,
)
from authsvc.services._shared.ports.token_codec import claims_from_payload, claims_to_payload


@dataclass(slots=True)
class PyJWTTokenCodec(TokenCodec):
    """
    HMAC-signed JWTs via PyJWT.

    Unlike Flask-JWT-Extended's helpers, the secret is passed per call, so
    one codec serves every tenant.

    :param algorithm: Signing algorithm; HMAC family only.
    :param leeway: Clock-skew tolerance applied to ``exp`` when verifying.
    """

    algorithm: str = "HS256"
    leeway: timedelta = timedelta(0)

    def sign(
        self,
        claims: Claims,
        secret: str,
        lifetime: str | timedelta,
        *,
        now: datetime | None = None,
    ) -> str:
        issued_at = now or datetime.now(UTC)
        payload = claims_to_payload(claims)
        payload["iat"] = int(issued_at.timestamp())
        payload["exp"] = int((issued_at + as_timedelta(lifetime)).timestamp())
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def verify(self, token: str, secret: str, *, verify_expiry: bool = True) -> Claims:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                leeway=self.leeway,
                options={"require": ["exp", "sub"], "verify_exp": verify_expiry},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired(str(exc)) from exc
        # InvalidSignatureError subclasses DecodeError; check it first.
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignature(str(exc)) from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedToken(str(exc)) from exc
        return claims_from_payload(payload)

    def peek(self, token: str) -> Claims:
        try:
            payload = jwt.decode(
                token,
                options={"verify_signature": False, "verify_exp": False},
                algorithms=[self.algorithm],
            )
        except jwt.InvalidTokenError as exc:
            raise MalformedToken(str(exc)) from exc
        return claims_from_payload(payload)
