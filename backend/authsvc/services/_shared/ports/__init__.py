"""
authsvc.services._shared.ports
==============================

Collection of *ports* (hexagonal interfaces) that define the contracts
between the token lifecycle and its infrastructure.

Modules
-------
- :mod:`token_codec`:
    :class:`~.TokenCodec` and the closed claims union
    (:class:`~.AccessClaims` | :class:`~.RefreshClaims`).

- :mod:`credential_hasher`:
    :class:`~.CredentialHasher` for refresh-token digests at rest.

- :mod:`refresh_token_store`:
    :class:`~.RefreshTokenStore` with atomic compare-and-swap rotation, its
    record types and an in-memory implementation.

- :mod:`identity_resolver`:
    :class:`~.IdentityResolver` for tenants and users.

- :mod:`oauth_provider`:
    :class:`~.OAuthProvider` for third-party login providers.

Design Notes
------------
Concrete adapters (SQLAlchemy, Redis, PyJWT, Werkzeug) live under
``authsvc.infra`` and never leak into the service layer.
"""

from __future__ import annotations

from .credential_hasher import CredentialHasher
from .identity_resolver import (
    AppIdentity,
    IdentityResolver,
    InMemoryIdentityResolver,
    UserIdentity,
    UserUpsert,
)
from .oauth_provider import OAuthProvider, OAuthUserInfo
from .refresh_token_store import (
    DuplicateDigest,
    DuplicateJti,
    InMemoryRefreshTokenStore,
    RefreshTokenDraft,
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    RotationConflict,
    TokenState,
    TokenStoreError,
)
from .token_codec import (
    AccessClaims,
    Claims,
    InvalidSignature,
    MAX_CLAIM_ID,
    MalformedToken,
    RefreshClaims,
    TokenCodec,
    TokenCodecError,
    TokenExpired,
    is_claim_id,
)

__all__ = [
    "AccessClaims",
    "AppIdentity",
    "Claims",
    "CredentialHasher",
    "DuplicateDigest",
    "DuplicateJti",
    "IdentityResolver",
    "InMemoryIdentityResolver",
    "InMemoryRefreshTokenStore",
    "InvalidSignature",
    "MAX_CLAIM_ID",
    "MalformedToken",
    "OAuthProvider",
    "OAuthUserInfo",
    "RefreshClaims",
    "RefreshTokenDraft",
    "RefreshTokenRecord",
    "RefreshTokenStore",
    "RevocationReason",
    "RotationConflict",
    "TokenCodec",
    "TokenCodecError",
    "TokenExpired",
    "TokenState",
    "TokenStoreError",
    "UserIdentity",
    "UserUpsert",
    "is_claim_id",
]
