# tests/unit/infra/test_pyjwt_token_codec.py
"""
Unit tests for :class:`PyJWTTokenCodec`.

Covers the wire shape of both claim types, the error taxonomy raised on
verification and the unverified ``peek`` used for tenant resolution.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest
from authsvc.services._shared.ports import (
    AccessClaims,
    InvalidSignature,
    MalformedToken,
    RefreshClaims,
    TokenExpired,
)

SECRET = "tenant-secret-with-at-least-32-bytes!!"
OTHER_SECRET = "another-tenant-secret-32-bytes-long!!"


@pytest.fixture()
def refresh_claims() -> RefreshClaims:
    return RefreshClaims(sub=7, app_id=3, jti="jti-1", token_family="fam-1")


def test_refresh_token_payload_uses_camel_case_claims(codec, refresh_claims):
    now = datetime(2026, 1, 1, 12, tzinfo=UTC)
    token = codec.sign(refresh_claims, SECRET, "14d", now=now)

    payload = jwt.decode(token, SECRET, algorithms=["HS256"], options={"verify_exp": False})

    assert payload["type"] == "refresh"
    assert payload["sub"] == "7"
    assert payload["appId"] == 3
    assert payload["jti"] == "jti-1"
    assert payload["tokenFamily"] == "fam-1"
    assert payload["iat"] == int(now.timestamp())
    assert payload["exp"] == int((now + timedelta(days=14)).timestamp())


def test_verify_returns_refresh_claims(codec, refresh_claims):
    token = codec.sign(refresh_claims, SECRET, "1h")
    assert codec.verify(token, SECRET) == refresh_claims


def test_verify_returns_access_claims(codec):
    claims = AccessClaims(sub=1, app_id=2, email="a@example.com", nickname=None)
    token = codec.sign(claims, SECRET, timedelta(minutes=30))

    decoded = codec.verify(token, SECRET)

    assert isinstance(decoded, AccessClaims)
    assert decoded == claims


def test_verify_with_wrong_secret_raises_invalid_signature(codec, refresh_claims):
    token = codec.sign(refresh_claims, SECRET, "1h")
    with pytest.raises(InvalidSignature):
        codec.verify(token, OTHER_SECRET)


def test_verify_expired_token_raises_token_expired(codec, refresh_claims, freeze_time):
    with freeze_time("2026-01-01 12:00:00") as frozen:
        token = codec.sign(refresh_claims, SECRET, "1m")
        frozen.tick(timedelta(minutes=2))
        with pytest.raises(TokenExpired):
            codec.verify(token, SECRET)

        # Logout accepts authentic but expired tokens.
        assert codec.verify(token, SECRET, verify_expiry=False) == refresh_claims


def test_verify_rejects_garbage(codec):
    with pytest.raises(MalformedToken):
        codec.verify("not-a-jwt", SECRET)


def test_verify_rejects_unknown_token_type(codec):
    token = jwt.encode(
        {"type": "id", "sub": "1", "appId": 1, "exp": 4_102_444_800}, SECRET, algorithm="HS256"
    )
    with pytest.raises(MalformedToken):
        codec.verify(token, SECRET)


def test_verify_rejects_refresh_token_without_family(codec):
    token = jwt.encode(
        {"type": "refresh", "sub": "1", "appId": 1, "jti": "x", "exp": 4_102_444_800},
        SECRET,
        algorithm="HS256",
    )
    with pytest.raises(MalformedToken):
        codec.verify(token, SECRET)


def test_verify_rejects_boolean_app_id(codec):
    token = jwt.encode(
        {"type": "access", "sub": "1", "appId": True, "exp": 4_102_444_800},
        SECRET,
        algorithm="HS256",
    )
    with pytest.raises(MalformedToken):
        codec.verify(token, SECRET)


def test_peek_ignores_signature_and_expiry(codec, refresh_claims, freeze_time):
    with freeze_time() as frozen:
        token = codec.sign(refresh_claims, SECRET, "1s")
        frozen.tick(60)
        assert codec.peek(token) == refresh_claims


def test_peek_rejects_garbage(codec):
    with pytest.raises(MalformedToken):
        codec.peek("a.b.c")


@pytest.mark.parametrize(
    "sub, app_id",
    [
        ("²", 1),
        ("-1", 1),
        (str(2**63), 1),
        ("1", "9" * 5000),
        ("1", 10**20),
        ("1", -4),
    ],
)
def test_peek_rejects_ids_outside_the_row_id_range(codec, sub, app_id):
    token = jwt.encode(
        {
            "type": "refresh",
            "sub": sub,
            "appId": app_id,
            "jti": "x",
            "tokenFamily": "f",
            "exp": 4_102_444_800,
        },
        SECRET,
        algorithm="HS256",
    )
    with pytest.raises(MalformedToken):
        codec.peek(token)


def test_largest_row_id_is_accepted(codec):
    claims = RefreshClaims(sub=2**63 - 1, app_id=2**63 - 1, jti="j", token_family="f")
    assert codec.peek(codec.sign(claims, SECRET, "1h")) == claims
