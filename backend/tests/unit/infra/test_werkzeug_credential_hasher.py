# tests/unit/infra/test_werkzeug_credential_hasher.py
from __future__ import annotations


def test_hash_is_salted_and_verifiable(hasher):
    token = "header.payload.signature"

    first = hasher.hash(token)
    second = hasher.hash(token)

    assert first != token
    assert first != second
    assert hasher.compare(token, first)
    assert hasher.compare(token, second)


def test_compare_uses_the_whole_token(hasher):
    """Tokens differing only past byte 72 must not share a digest."""
    token = "x" * 200 + "A"
    digest = hasher.hash(token)

    assert hasher.compare(token, digest)
    assert not hasher.compare("x" * 200 + "B", digest)


def test_compare_rejects_other_secret(hasher):
    assert not hasher.compare("other", hasher.hash("secret"))
