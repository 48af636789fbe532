# authsvc/infra/redis/redis_refresh_token_store.py
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError, WatchError  # type: ignore[import-untyped]

from authsvc.services._shared.ports import (
    DuplicateDigest,
    DuplicateJti,
    RefreshTokenDraft,
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    RotationConflict,
    TokenState,
    TokenStoreError,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MICROSECOND = timedelta(microseconds=1)


def _s(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh token store with atomic rotation.

    Layout::

        rt:{jti}        hash  -> record fields
        rt:d:{digest}   str   -> jti (digest uniqueness)
        rt:u:{user_id}  set   -> jtis of the user
        rt:f:{family}   set   -> jtis of the lineage

    The record id is its ``jti``. Keys expire ``retention`` after the token
    itself so reuse of a recently expired token is still reported as
    expired rather than unknown. Index sets live as long as their
    longest-lived member; entries whose hash has expired are pruned
    whenever the index is walked.

    :param r: A Redis client (already connected).
    :param retention: Extra lifetime of a record past its expiry.
    """

    r: redis.Redis
    retention: timedelta = timedelta(days=1)

    # -------------------- helpers --------------------

    @staticmethod
    def _k(jti: str) -> str:
        return f"rt:{jti}"

    @staticmethod
    def _kd(digest: str) -> str:
        return f"rt:d:{digest}"

    @staticmethod
    def _ku(user_id: int) -> str:
        return f"rt:u:{user_id}"

    @staticmethod
    def _kf(token_family: str) -> str:
        return f"rt:f:{token_family}"

    @staticmethod
    def _to_ts(dt: datetime) -> str:
        # Integer microseconds since the epoch; exact round trip.
        return str((dt - _EPOCH) // _MICROSECOND)

    @staticmethod
    def _from_ts(raw: Any) -> datetime | None:
        text = _s(raw)
        return _EPOCH + int(text) * _MICROSECOND if text else None

    def _ttl(self, draft: RefreshTokenDraft) -> int:
        # Relative to issuance so the TTL does not depend on the server clock.
        lifetime = draft.expires_at - draft.created_at + self.retention
        return max(1, int(lifetime.total_seconds()))

    def _revocation(self, reason: RevocationReason, now: datetime) -> dict[str, str]:
        return {"revoked": "1", "revoked_at": self._to_ts(now), "revoked_reason": reason.value}

    def _record(self, jti: str, h: dict[Any, Any]) -> RefreshTokenRecord:
        fields = {_s(k): _s(v) for k, v in h.items()}
        reason = fields.get("revoked_reason")
        return RefreshTokenRecord(
            id=jti,
            token_digest=fields["token_digest"],
            user_id=int(fields["user_id"]),
            app_id=int(fields["app_id"]),
            jti=jti,
            token_family=fields["token_family"],
            expires_at=self._from_ts(fields["expires_at"]),
            created_at=self._from_ts(fields["created_at"]),
            revoked=fields.get("revoked") == "1",
            revoked_at=self._from_ts(fields.get("revoked_at")),
            revoked_reason=RevocationReason(reason) if reason else None,
        )

    @staticmethod
    def _from_draft(draft: RefreshTokenDraft) -> RefreshTokenRecord:
        return RefreshTokenRecord(
            id=draft.jti,
            token_digest=draft.token_digest,
            user_id=draft.user_id,
            app_id=draft.app_id,
            jti=draft.jti,
            token_family=draft.token_family,
            expires_at=draft.expires_at,
            created_at=draft.created_at,
        )

    def _check_unique(self, p: Any, draft: RefreshTokenDraft) -> None:
        if p.exists(self._k(draft.jti)):
            raise DuplicateJti(draft.jti)
        if p.exists(self._kd(draft.token_digest)):
            raise DuplicateDigest(draft.jti)

    def _write(self, p: Any, draft: RefreshTokenDraft) -> None:
        """Queue the commands creating ``draft``; caller is inside MULTI."""
        key = self._k(draft.jti)
        ttl = self._ttl(draft)
        p.hset(
            key,
            mapping={
                "token_digest": draft.token_digest,
                "user_id": str(draft.user_id),
                "app_id": str(draft.app_id),
                "token_family": draft.token_family,
                "expires_at": self._to_ts(draft.expires_at),
                "created_at": self._to_ts(draft.created_at),
                "revoked": "0",
            },
        )
        p.expire(key, ttl)
        p.set(self._kd(draft.token_digest), draft.jti, ex=ttl)
        for index_key in (self._ku(draft.user_id), self._kf(draft.token_family)):
            p.sadd(index_key, draft.jti)
            # NX covers a fresh set; GT only ever extends an existing TTL.
            p.expire(index_key, ttl, nx=True)
            p.expire(index_key, ttl, gt=True)

    def _members(self, p: Any, index_key: str) -> list[str]:
        return sorted(_s(m) for m in p.smembers(index_key))

    def _revoke_indexed(self, index_key: str, reason: RevocationReason, now: datetime) -> int:
        """Revoke every still-active record listed in ``index_key``."""
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(index_key)
                    members = self._members(p, index_key)
                    if members:
                        p.watch(*(self._k(j) for j in members))
                    flags = {j: _s(p.hget(self._k(j), "revoked")) for j in members}
                    active = [self._k(j) for j, flag in flags.items() if flag == "0"]
                    # Expired hashes read back as no flag at all
                    stale = [j for j, flag in flags.items() if not flag]
                    if not active and not stale:
                        p.unwatch()
                        return 0
                    p.multi()
                    for key in active:
                        p.hset(key, mapping=self._revocation(reason, now))
                    if stale:
                        p.srem(index_key, *stale)
                    p.execute()
                return len(active)
            except WatchError:
                continue
            except RedisError as exc:
                raise TokenStoreError("Redis revoke failed") from exc

    # -------------------- API ------------------------

    def insert(self, draft: RefreshTokenDraft) -> RefreshTokenRecord:
        """
        Insert the record *before* the JWT is handed to the client.

        :raises DuplicateJti | DuplicateDigest: On collisions.
        """
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(self._k(draft.jti), self._kd(draft.token_digest))
                    self._check_unique(p, draft)
                    p.multi()
                    self._write(p, draft)
                    p.execute()
                return self._from_draft(draft)
            except WatchError:
                continue
            except RedisError as exc:
                raise TokenStoreError("Redis insert failed") from exc

    def find_by_jti(self, jti: str) -> RefreshTokenRecord | None:
        try:
            h = self.r.hgetall(self._k(jti))
        except RedisError as exc:
            raise TokenStoreError("Redis read failed") from exc
        return self._record(jti, h) if h else None

    def revoke_by_id(
        self, record_id: str, *, reason: RevocationReason, now: datetime
    ) -> bool:
        key = self._k(record_id)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    if _s(p.hget(key, "revoked")) != "0":
                        p.unwatch()
                        return False
                    p.multi()
                    p.hset(key, mapping=self._revocation(reason, now))
                    p.execute()
                return True
            except WatchError:
                continue
            except RedisError as exc:
                raise TokenStoreError("Redis revoke failed") from exc

    def revoke_all_by_user(
        self, user_id: int, *, reason: RevocationReason, now: datetime
    ) -> int:
        return self._revoke_indexed(self._ku(user_id), reason, now)

    def revoke_all_by_family(
        self, token_family: str, *, reason: RevocationReason, now: datetime
    ) -> int:
        return self._revoke_indexed(self._kf(token_family), reason, now)

    def rotate(
        self, old_id: str, draft: RefreshTokenDraft, *, now: datetime
    ) -> RefreshTokenRecord:
        """
        Atomically consume ``old_id`` and create ``draft``.

        WATCH/MULTI/EXEC (optimistic locking): if any watched key changes
        between the state check and EXEC, the transaction is discarded and the
        check runs again against the new state.
        """
        k_old = self._k(old_id)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_old, self._k(draft.jti), self._kd(draft.token_digest))
                    h = p.hgetall(k_old)
                    if not h or self._record(old_id, h).state(now) is not TokenState.ACTIVE:
                        p.unwatch()
                        raise RotationConflict(old_id)
                    self._check_unique(p, draft)

                    p.multi()
                    p.hset(k_old, mapping=self._revocation(RevocationReason.ROTATED, now))
                    self._write(p, draft)
                    p.execute()
                return self._from_draft(draft)
            except WatchError:
                continue
            except RedisError as exc:
                raise TokenStoreError("Redis rotation failed") from exc

    def list_family(self, token_family: str) -> Sequence[RefreshTokenRecord]:
        key_f = self._kf(token_family)
        records: list[RefreshTokenRecord] = []
        stale: list[str] = []
        for jti in self._members(self.r, key_f):
            record = self.find_by_jti(jti)
            if record:
                records.append(record)
            else:
                # Underlying hash expired -> mark for cleanup
                stale.append(jti)
        if stale:
            self.r.srem(key_f, *stale)
        return sorted(records, key=lambda rec: (rec.created_at, rec.jti))

