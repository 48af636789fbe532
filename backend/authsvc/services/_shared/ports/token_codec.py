"""
Token codec port.

Signed tokens carry one of two claim shapes, modelled as a closed union of
frozen dataclasses and tagged on the wire by a ``type`` claim. Conversion
between the dataclasses and the JWT payload lives here so every codec
implementation validates shapes the same way.

Wire format (camelCase, compatible with existing clients)::

    access:  {"type": "access",  "sub": "42", "appId": 7, "email": ..., "nickname": ...}
    refresh: {"type": "refresh", "sub": "42", "appId": 7, "jti": ..., "tokenFamily": ...}

``sub`` is a string on the wire (RFC 7519) and an ``int`` in the dataclasses.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, ClassVar, Protocol

ACCESS = "access"
REFRESH = "refresh"

# Ids are stored in signed 64-bit columns
MAX_CLAIM_ID = 2**63 - 1


class TokenCodecError(Exception):
    """Base class for signature/shape failures reported by a codec."""


class InvalidSignature(TokenCodecError):
    """The token was not signed with the expected secret."""


class TokenExpired(TokenCodecError):
    """The signature is valid but the ``exp`` claim lies in the past."""


class MalformedToken(TokenCodecError):
    """The token cannot be decoded or its claims do not match a known shape."""


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """Claims of a short-lived access token."""

    sub: int
    app_id: int
    email: str | None = None
    nickname: str | None = None

    type: ClassVar[str] = ACCESS


@dataclass(frozen=True, slots=True)
class RefreshClaims:
    """
    Claims of a rotating refresh token.

    :ivar jti: Unique token id; primary lookup key of the stored record.
    :ivar token_family: Lineage id shared by every rotation of one login.
    """

    sub: int
    app_id: int
    jti: str
    token_family: str

    type: ClassVar[str] = REFRESH


Claims = AccessClaims | RefreshClaims


def claims_to_payload(claims: Claims) -> dict[str, Any]:
    """Serialize a claims dataclass into a JWT payload (without iat/exp)."""
    payload: dict[str, Any] = {
        "type": claims.type,
        "sub": str(claims.sub),
        "appId": claims.app_id,
    }
    if isinstance(claims, RefreshClaims):
        payload["jti"] = claims.jti
        payload["tokenFamily"] = claims.token_family
    else:
        payload["email"] = claims.email
        payload["nickname"] = claims.nickname
    return payload


def is_claim_id(value: Any) -> bool:
    """Return ``True`` for an ``int`` that fits a stored row id."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_CLAIM_ID


def _int_claim(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, str) and value.isascii() and value.isdigit() and len(value) <= 19:
        value = int(value)
    if not is_claim_id(value):
        raise MalformedToken(f"Claim {key!r} must be a non-negative 64-bit integer")
    return value


def _str_claim(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedToken(f"Claim {key!r} must be a non-empty string")
    return value


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None or isinstance(value, str):
        return value
    raise MalformedToken(f"Claim {key!r} must be a string or null")


def claims_from_payload(payload: Mapping[str, Any]) -> Claims:
    """
    Validate a decoded JWT payload and build the matching claims dataclass.

    :param payload: Decoded payload.
    :returns: :class:`AccessClaims` or :class:`RefreshClaims`.
    :raises MalformedToken: On unknown ``type`` or missing/ill-typed claims.
    """
    kind = payload.get("type")
    sub = _int_claim(payload, "sub")
    app_id = _int_claim(payload, "appId")
    if kind == REFRESH:
        return RefreshClaims(
            sub=sub,
            app_id=app_id,
            jti=_str_claim(payload, "jti"),
            token_family=_str_claim(payload, "tokenFamily"),
        )
    if kind == ACCESS:
        return AccessClaims(
            sub=sub,
            app_id=app_id,
            email=_optional_str(payload, "email"),
            nickname=_optional_str(payload, "nickname"),
        )
    raise MalformedToken(f"Unknown token type: {kind!r}")


class TokenCodec(Protocol):
    """Port for signing and verifying compact signed tokens."""

    def sign(
        self,
        claims: Claims,
        secret: str,
        lifetime: str | timedelta,
        *,
        now: datetime | None = None,
    ) -> str:
        """
        Sign ``claims`` with ``secret``, expiring ``lifetime`` after ``now``.

        :raises InvalidDuration: If ``lifetime`` is a malformed string.
        """
        ...

    def verify(self, token: str, secret: str, *, verify_expiry: bool = True) -> Claims:
        """
        Check signature, expiry and shape.

        ``verify_expiry=False`` still checks the signature; logout uses it so
        an expired but authentic token can end its session.

        :raises InvalidSignature | TokenExpired | MalformedToken:
        """
        ...

    def peek(self, token: str) -> Claims:
        """
        Decode claims **without** verifying the signature or expiry.

        Only used to find which tenant secret to verify against.

        :raises MalformedToken:
        """
        ...
