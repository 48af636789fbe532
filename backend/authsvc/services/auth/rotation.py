"""
Refresh-token rotation engine.

State machine per record: ``ACTIVE -> REVOKED`` (terminal), with ``EXPIRED``
derived at read time from ``expires_at``. The engine owns every policy
decision (grace period, reuse detection, family revocation); the store only
guarantees atomic compare-and-swap rotation.

Refresh flow
------------
1. Peek the ``appId`` claim, resolve that tenant, verify with its secret.
2. Load the record by ``jti`` and check the presented token against the
   stored digest.
3. Reject expired records.
4. Reject revoked records. A token superseded by rotation within the grace
   period is a benign retry; anything else is reuse and burns the family.
5. Compare-and-swap rotate to a new ``jti`` in the same family.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from authsvc.services._shared.ports import (
    AppIdentity,
    CredentialHasher,
    IdentityResolver,
    RefreshClaims,
    RefreshTokenDraft,
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    RotationConflict,
    TokenCodec,
    TokenCodecError,
    TokenExpired,
    UserIdentity,
)
from authsvc.services.auth import probe
from authsvc.services.auth.errors import (
    InvalidRefreshToken,
    RefreshTokenAlreadyUsed,
    RefreshTokenError,
    RefreshTokenExpired,
    RefreshTokenNotFound,
    RefreshTokenReuseDetected,
    RefreshTokenRevoked,
)
from authsvc.services.auth.signer_cache import SigningClientCache, TenantSigner

DEFAULT_GRACE_PERIOD = timedelta(seconds=5)

# Revocations after which a quick re-presentation may be an honest retry.
_GRACE_ELIGIBLE = frozenset({RevocationReason.ROTATED, None})


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_token_id() -> str:
    return str(uuid4())


@dataclass(frozen=True, slots=True)
class IssuedTokens:
    """
    Result of a login or a rotation.

    :ivar expires_in: Access-token lifetime in seconds.
    """

    access_token: str
    refresh_token: str
    jti: str
    token_family: str
    expires_in: int
    user: UserIdentity
    app: AppIdentity


class RotationEngine:
    """
    Issue, rotate and revoke refresh tokens.

    Parameters
    ----------
    store:
        Persistent record store with atomic ``rotate``.
    codec:
        Signs and verifies access and refresh tokens.
    hasher:
        Produces the digest stored in place of the raw refresh token.
    resolver:
        Resolves the tenant from the token's ``appId`` and the owning user.
    signers:
        Per-tenant signing clients; a private cache is created when omitted.
    grace_period:
        Tolerance for re-presenting a just-rotated token.
    clock:
        Returns the current timezone-aware UTC instant.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        codec: TokenCodec,
        hasher: CredentialHasher,
        resolver: IdentityResolver,
        signers: SigningClientCache | None = None,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.codec = codec
        self.hasher = hasher
        self.resolver = resolver
        self.signers = signers or SigningClientCache(codec)
        self.grace_period = grace_period
        self.clock = clock

    # ------------------------------------------------------------------ #
    # Issue
    # ------------------------------------------------------------------ #

    def issue(self, user: UserIdentity, app: AppIdentity) -> IssuedTokens:
        """
        Start a new token family for ``user`` in ``app``.

        The record is persisted before the tokens are returned, so no signed
        refresh token exists without its server-side state.

        :raises DuplicateJti | DuplicateDigest: On an (astronomically
            unlikely) identifier collision.
        """
        now = self.clock()
        signer = self.signers.for_app(app)
        tokens, draft = self._mint(signer, user, new_token_id(), now)
        self.store.insert(draft)
        probe.token_issued(
            user_id=user.id, app_id=app.id, token_family=tokens.token_family, jti=tokens.jti
        )
        return tokens

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self, token: str) -> IssuedTokens:
        """
        Exchange a refresh token for a new pair in the same family.

        :raises RefreshTokenError: Subclass naming the rejection reason.
        :raises TokenStoreError: When the rotation write itself fails; the
            caller must treat the outcome as unknown.
        """
        now = self.clock()
        app, signer, claims = self._authenticate(token)
        record = self._load_record(token, claims)

        if record.is_expired(now):
            self._reject(RefreshTokenExpired(), record)
        if record.revoked:
            self._reject_revoked(record, now)

        user = self.resolver.find_user_by_id(record.user_id)
        if user is None or user.app_id != app.id:
            self._reject(InvalidRefreshToken(), record)

        tokens, draft = self._mint(signer, user, record.token_family, now)
        try:
            self.store.rotate(record.id, draft, now=now)
        except RotationConflict as exc:
            # Lost a race against a concurrent rotation (or logout).
            probe.token_rejected(
                code=RefreshTokenAlreadyUsed.code, jti=record.jti, app_id=record.app_id
            )
            raise RefreshTokenAlreadyUsed() from exc

        probe.token_rotated(
            user_id=user.id, app_id=app.id, token_family=tokens.token_family, jti=tokens.jti
        )
        return tokens

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def revoke(self, token: str, *, revoke_all: bool = False) -> int:
        """
        Revoke the presented token, or every token of its user.

        Idempotent: a token that is already revoked is accepted and nothing
        changes. Expired tokens are accepted as long as they are authentic.

        :returns: Number of records newly revoked.
        :raises RefreshTokenNotFound: If no record exists for the token.
        :raises InvalidRefreshToken: If the token cannot be verified.
        """
        now = self.clock()
        _app, _signer, claims = self._authenticate(token, verify_expiry=False)
        record = self._load_record(token, claims)
        if record.revoked:
            return 0

        revoked = int(
            self.store.revoke_by_id(record.id, reason=RevocationReason.LOGOUT, now=now)
        )
        reason = RevocationReason.LOGOUT
        if revoke_all:
            reason = RevocationReason.LOGOUT_ALL
            revoked += self.store.revoke_all_by_user(
                record.user_id, reason=RevocationReason.LOGOUT_ALL, now=now
            )

        probe.token_revoked(
            user_id=record.user_id,
            app_id=record.app_id,
            jti=record.jti,
            reason=reason.value,
            revoked_count=revoked,
        )
        return revoked

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _mint(
        self, signer: TenantSigner, user: UserIdentity, family: str, now: datetime
    ) -> tuple[IssuedTokens, RefreshTokenDraft]:
        claims = RefreshClaims(
            sub=user.id, app_id=signer.app.id, jti=new_token_id(), token_family=family
        )
        refresh_token = signer.sign_refresh(claims, now=now)
        draft = RefreshTokenDraft(
            token_digest=self.hasher.hash(refresh_token),
            user_id=user.id,
            app_id=signer.app.id,
            jti=claims.jti,
            token_family=family,
            expires_at=now + signer.refresh_lifetime,
            created_at=now,
        )
        tokens = IssuedTokens(
            access_token=signer.sign_access(user, now=now),
            refresh_token=refresh_token,
            jti=claims.jti,
            token_family=family,
            expires_in=signer.access_expires_in,
            user=user,
            app=signer.app,
        )
        return tokens, draft

    def _authenticate(
        self, token: str, *, verify_expiry: bool = True
    ) -> tuple[AppIdentity, TenantSigner, RefreshClaims]:
        try:
            unverified = self.codec.peek(token)
        except TokenCodecError as exc:
            self._reject(InvalidRefreshToken(), cause=exc)

        app = self.resolver.find_app_by_id(unverified.app_id)
        if app is None or not app.is_active:
            self._reject(InvalidRefreshToken(), app_id=unverified.app_id)

        signer = self.signers.for_app(app)
        try:
            claims = signer.verify(token, verify_expiry=verify_expiry)
        except TokenExpired as exc:
            self._reject(RefreshTokenExpired(), app_id=app.id, cause=exc)
        except TokenCodecError as exc:
            self._reject(InvalidRefreshToken(), app_id=app.id, cause=exc)

        if not isinstance(claims, RefreshClaims) or claims.app_id != app.id:
            self._reject(InvalidRefreshToken(), app_id=app.id)
        return app, signer, claims

    def _load_record(self, token: str, claims: RefreshClaims) -> RefreshTokenRecord:
        record = self.store.find_by_jti(claims.jti)
        if record is None:
            self._reject(RefreshTokenNotFound(), app_id=claims.app_id)
        bound = (record.user_id, record.app_id, record.token_family)
        if bound != (claims.sub, claims.app_id, claims.token_family):
            self._reject(InvalidRefreshToken(), record)
        if not self.hasher.compare(token, record.token_digest):
            self._reject(InvalidRefreshToken(), record)
        return record

    def _reject_revoked(self, record: RefreshTokenRecord, now: datetime) -> None:
        reason = record.revoked_reason
        if reason in (RevocationReason.FAMILY_REVOKED, RevocationReason.LOGOUT_ALL):
            # Lineage already burned or the user signed out everywhere.
            self._reject(RefreshTokenRevoked(), record)

        if reason in _GRACE_ELIGIBLE and record.revoked_at is not None:
            if now - record.revoked_at <= self.grace_period:
                self._reject(RefreshTokenAlreadyUsed(), record)

        revoked = self.store.revoke_all_by_family(
            record.token_family, reason=RevocationReason.FAMILY_REVOKED, now=now
        )
        probe.reuse_detected(
            user_id=record.user_id,
            app_id=record.app_id,
            token_family=record.token_family,
            jti=record.jti,
            reason=reason.value if reason else "unknown",
            revoked_count=revoked,
        )
        self._reject(RefreshTokenReuseDetected(), record)

    @staticmethod
    def _reject(
        error: RefreshTokenError,
        record: RefreshTokenRecord | None = None,
        *,
        app_id: int | None = None,
        cause: BaseException | None = None,
    ):
        probe.token_rejected(
            code=error.code,
            jti=record.jti if record else None,
            app_id=record.app_id if record else app_id,
        )
        raise error from cause
