from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Protocol


class TokenState(Enum):
    """Lifecycle state of a refresh-token record as seen at a given instant."""

    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class RevocationReason(str, Enum):
    """Why a record was revoked. Persisted next to ``revoked_at``."""

    ROTATED = "rotated"
    LOGOUT = "logout"
    LOGOUT_ALL = "logout_all"
    FAMILY_REVOKED = "family_revoked"


# ------------------------------- Errors ------------------------------------ #


class TokenStoreError(Exception):
    """A store write failed; the persisted state may be indeterminate."""


class DuplicateJti(TokenStoreError):
    """Insert collided with an existing ``jti``."""


class DuplicateDigest(TokenStoreError):
    """Insert collided with an existing ``token_digest``."""


class RotationConflict(TokenStoreError):
    """The record being rotated was no longer active at commit time."""


# ------------------------------ Value types -------------------------------- #


@dataclass(frozen=True, slots=True)
class RefreshTokenDraft:
    """
    A record the engine asks the store to persist.

    :ivar token_digest: Salted one-way hash of the signed refresh token.
    :ivar expires_at: Absolute expiry (UTC, timezone-aware).
    :ivar created_at: Issuance instant (UTC, timezone-aware).
    """

    token_digest: str
    user_id: int
    app_id: int
    jti: str
    token_family: str
    expires_at: datetime
    created_at: datetime


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """
    Read-model for a persisted refresh token.

    ``revoked`` only ever moves from ``False`` to ``True``; ``revoked_at`` and
    ``revoked_reason`` are set once, together with the flag.
    """

    id: str
    token_digest: str
    user_id: int
    app_id: int
    jti: str
    token_family: str
    expires_at: datetime
    created_at: datetime
    revoked: bool = False
    revoked_at: datetime | None = None
    revoked_reason: RevocationReason | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def state(self, now: datetime) -> TokenState:
        if self.revoked:
            return TokenState.REVOKED
        if self.is_expired(now):
            return TokenState.EXPIRED
        return TokenState.ACTIVE


# --------------------------------- Port ------------------------------------ #


class RefreshTokenStore(Protocol):
    """
    Persistent keyed store of refresh-token records.

    Revocations are idempotent and never overwrite an earlier ``revoked_at``.
    ``rotate`` is the only multi-record write and MUST be atomic.
    """

    def insert(self, draft: RefreshTokenDraft) -> RefreshTokenRecord:
        """
        Persist a brand-new record.

        :raises DuplicateJti | DuplicateDigest: On uniqueness violations.
        """
        ...

    def find_by_jti(self, jti: str) -> RefreshTokenRecord | None: ...

    def revoke_by_id(
        self, record_id: str, *, reason: RevocationReason, now: datetime
    ) -> bool:
        """Revoke one record. :returns: False when already revoked or missing."""
        ...

    def revoke_all_by_user(
        self, user_id: int, *, reason: RevocationReason, now: datetime
    ) -> int:
        """Revoke every active record of a user. :returns: Records newly revoked."""
        ...

    def revoke_all_by_family(
        self, token_family: str, *, reason: RevocationReason, now: datetime
    ) -> int:
        """Revoke every active record of a lineage. :returns: Records newly revoked."""
        ...

    def rotate(
        self, old_id: str, draft: RefreshTokenDraft, *, now: datetime
    ) -> RefreshTokenRecord:
        """
        Atomically revoke ``old_id`` (reason ``ROTATED``) and insert ``draft``.

        Compare-and-swap: succeeds only when ``old_id`` is still active at
        commit time. Either both writes land or neither does.

        :raises RotationConflict: If ``old_id`` is missing, revoked or expired.
        :raises DuplicateJti | DuplicateDigest: If ``draft`` collides.
        :raises TokenStoreError: On any other backend failure.
        """
        ...

    def list_family(self, token_family: str) -> Sequence[RefreshTokenRecord]:
        """Return every record of a lineage, oldest first."""
        ...


# ------------------------------ In-memory ---------------------------------- #


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    Process-local store with the same atomicity guarantees as the real ones.

    .. note::
       A single re-entrant lock serializes writes, which makes ``rotate`` a
       true compare-and-swap for threaded tests.
    """

    def __init__(self) -> None:
        self._records: dict[str, RefreshTokenRecord] = {}
        self._by_jti: dict[str, str] = {}
        self._digests: set[str] = set()
        self._seq = 0
        self._lock = threading.RLock()

    # ------------------------- helpers -------------------------

    def _next_id(self) -> str:
        self._seq += 1
        return f"rt-{self._seq}"

    def _check_unique(self, draft: RefreshTokenDraft) -> None:
        if draft.jti in self._by_jti:
            raise DuplicateJti(draft.jti)
        if draft.token_digest in self._digests:
            raise DuplicateDigest(draft.jti)

    def _store(self, draft: RefreshTokenDraft) -> RefreshTokenRecord:
        record = RefreshTokenRecord(
            id=self._next_id(),
            token_digest=draft.token_digest,
            user_id=draft.user_id,
            app_id=draft.app_id,
            jti=draft.jti,
            token_family=draft.token_family,
            expires_at=draft.expires_at,
            created_at=draft.created_at,
        )
        self._records[record.id] = record
        self._by_jti[record.jti] = record.id
        self._digests.add(record.token_digest)
        return record

    def _revoke(self, record_id: str, reason: RevocationReason, now: datetime) -> bool:
        current = self._records.get(record_id)
        if current is None or current.revoked:
            return False
        self._records[record_id] = replace(
            current, revoked=True, revoked_at=now, revoked_reason=reason
        )
        return True

    def _revoke_where(self, predicate, reason: RevocationReason, now: datetime) -> int:
        with self._lock:
            targets = [r.id for r in self._records.values() if predicate(r)]
            return sum(1 for record_id in targets if self._revoke(record_id, reason, now))

    # -------------------------- API ----------------------------

    def insert(self, draft: RefreshTokenDraft) -> RefreshTokenRecord:
        with self._lock:
            self._check_unique(draft)
            return self._store(draft)

    def find_by_jti(self, jti: str) -> RefreshTokenRecord | None:
        with self._lock:
            record_id = self._by_jti.get(jti)
            return self._records.get(record_id) if record_id else None

    def revoke_by_id(
        self, record_id: str, *, reason: RevocationReason, now: datetime
    ) -> bool:
        with self._lock:
            return self._revoke(record_id, reason, now)

    def revoke_all_by_user(
        self, user_id: int, *, reason: RevocationReason, now: datetime
    ) -> int:
        return self._revoke_where(lambda r: r.user_id == user_id, reason, now)

    def revoke_all_by_family(
        self, token_family: str, *, reason: RevocationReason, now: datetime
    ) -> int:
        return self._revoke_where(lambda r: r.token_family == token_family, reason, now)

    def rotate(
        self, old_id: str, draft: RefreshTokenDraft, *, now: datetime
    ) -> RefreshTokenRecord:
        with self._lock:
            old = self._records.get(old_id)
            if old is None or old.state(now) is not TokenState.ACTIVE:
                raise RotationConflict(old_id)
            self._check_unique(draft)
            self._revoke(old_id, RevocationReason.ROTATED, now)
            return self._store(draft)

    def list_family(self, token_family: str) -> Sequence[RefreshTokenRecord]:
        with self._lock:
            family = [r for r in self._records.values() if r.token_family == token_family]
        return sorted(family, key=lambda r: (r.created_at, int(r.id.split("-")[1])))
