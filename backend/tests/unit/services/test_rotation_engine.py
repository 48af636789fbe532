# tests/unit/services/test_rotation_engine.py
"""
Unit tests for :class:`RotationEngine` wired to in-memory doubles.

Scenarios:
- issue / refresh produce a linear lineage with exactly one active token
- a just-rotated token is a benign retry inside the grace period
- replay outside the grace period burns the whole family and alerts
- logout is idempotent; logout-all ends every session of the user
- forged, cross-tenant and unknown tokens are rejected
- two concurrent refreshes of one token: exactly one wins
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import timedelta

import pytest
from authsvc.core.logger import SECURITY_LOGGER
from authsvc.infra.sqlalchemy.identity_resolver import SQLAlchemyIdentityResolver
from authsvc.infra.sqlalchemy.refresh_token_store import SQLAlchemyRefreshTokenStore
from authsvc.services._shared.ports import (
    AppIdentity,
    InMemoryIdentityResolver,
    InMemoryRefreshTokenStore,
    RefreshClaims,
    RevocationReason,
    RotationConflict,
    TokenState,
    UserUpsert,
)
from authsvc.services.auth.errors import (
    InvalidRefreshToken,
    RefreshTokenAlreadyUsed,
    RefreshTokenError,
    RefreshTokenExpired,
    RefreshTokenNotFound,
    RefreshTokenReuseDetected,
    RefreshTokenRevoked,
)
from authsvc.services.auth.rotation import RotationEngine, utc_now
from tests.factories.user import UserFactory

APP = AppIdentity(
    id=1,
    code="fitness-app",
    name="Fitness",
    jwt_secret="fitness-secret-" + "f" * 32,
    access_token_lifetime="30m",
    refresh_token_lifetime="14d",
)
OTHER_APP = AppIdentity(
    id=2,
    code="diary-app",
    name="Diary",
    jwt_secret="diary-secret-" + "d" * 32,
    access_token_lifetime="10m",
    refresh_token_lifetime="1m",
)


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def resolver() -> InMemoryIdentityResolver:
    r = InMemoryIdentityResolver()
    r.add_app(APP)
    r.add_app(OTHER_APP)
    return r


@pytest.fixture()
def store() -> InMemoryRefreshTokenStore:
    return InMemoryRefreshTokenStore()


@pytest.fixture()
def engine(store, codec, hasher, resolver) -> RotationEngine:
    return RotationEngine(
        store=store,
        codec=codec,
        hasher=hasher,
        resolver=resolver,
        grace_period=timedelta(seconds=5),
    )


@pytest.fixture()
def user(resolver):
    created, _ = resolver.upsert_user(
        UserUpsert(app_id=APP.id, provider="kakao", provider_id="k-1", email="a@example.com"),
        now=utc_now(),
    )
    return created


def _other_user(resolver, app=OTHER_APP):
    created, _ = resolver.upsert_user(
        UserUpsert(app_id=app.id, provider="google", provider_id="g-1"), now=utc_now()
    )
    return created


# ------------------------------ Issue/refresh ------------------------------ #
def test_issue_persists_an_active_record_before_returning(engine, store, hasher, codec, user):
    issued = engine.issue(user, APP)

    record = store.find_by_jti(issued.jti)
    assert record is not None
    assert record.state(utc_now()) is TokenState.ACTIVE
    assert record.token_family == issued.token_family
    assert record.token_digest != issued.refresh_token
    assert hasher.compare(issued.refresh_token, record.token_digest)
    assert issued.expires_in == 1800

    claims = codec.verify(issued.refresh_token, APP.jwt_secret)
    assert claims == RefreshClaims(
        sub=user.id, app_id=APP.id, jti=issued.jti, token_family=issued.token_family
    )


def test_each_login_starts_a_new_family(engine, user):
    assert engine.issue(user, APP).token_family != engine.issue(user, APP).token_family


def test_refresh_rotates_within_the_family(engine, store, user):
    first = engine.issue(user, APP)

    second = engine.refresh(first.refresh_token)

    assert second.token_family == first.token_family
    assert second.jti != first.jti
    assert second.refresh_token != first.refresh_token
    old = store.find_by_jti(first.jti)
    assert old.revoked_reason is RevocationReason.ROTATED
    assert store.find_by_jti(second.jti).revoked is False


def test_lineage_has_exactly_one_active_token(engine, store, user):
    issued = engine.issue(user, APP)
    for _ in range(3):
        issued = engine.refresh(issued.refresh_token)

    family = store.list_family(issued.token_family)

    assert len(family) == 4
    assert [r.jti for r in family if not r.revoked] == [issued.jti]
    assert all(r.revoked_reason is RevocationReason.ROTATED for r in family[:-1])


# ------------------------------ Grace / reuse ------------------------------ #
def test_replay_within_grace_is_benign(engine, store, user, freeze_time):
    with freeze_time() as frozen:
        first = engine.issue(user, APP)
        second = engine.refresh(first.refresh_token)
        frozen.tick(timedelta(seconds=5))

        with pytest.raises(RefreshTokenAlreadyUsed):
            engine.refresh(first.refresh_token)

        # Family untouched: the successor still rotates.
        assert store.find_by_jti(second.jti).revoked is False
        engine.refresh(second.refresh_token)


def test_replay_after_grace_revokes_the_family_and_alerts(
    engine, store, user, freeze_time, caplog
):
    with freeze_time() as frozen:
        first = engine.issue(user, APP)
        second = engine.refresh(first.refresh_token)
        frozen.tick(timedelta(seconds=6))

        with caplog.at_level(logging.INFO):
            with pytest.raises(RefreshTokenReuseDetected) as excinfo:
                engine.refresh(first.refresh_token)

        successor = store.find_by_jti(second.jti)
        assert successor.revoked_reason is RevocationReason.FAMILY_REVOKED
        # The replayed record keeps its original reason.
        assert store.find_by_jti(first.jti).revoked_reason is RevocationReason.ROTATED

        with pytest.raises(RefreshTokenRevoked) as again:
            engine.refresh(second.refresh_token)

    assert excinfo.value.code == "REFRESH_TOKEN_REUSE_DETECTED"
    assert again.value.code == "REFRESH_TOKEN_REVOKED"
    alerts = [r for r in caplog.records if r.name == SECURITY_LOGGER]
    assert len(alerts) == 1
    assert alerts[0].levelno == logging.CRITICAL
    assert alerts[0].event == "refresh_token.reuse_detected"
    assert alerts[0].token_family == first.token_family
    assert alerts[0].revoked_count == 1


def test_reuse_does_not_touch_other_families(engine, store, user, freeze_time):
    with freeze_time() as frozen:
        attacked = engine.issue(user, APP)
        other_device = engine.issue(user, APP)
        engine.refresh(attacked.refresh_token)
        frozen.tick(timedelta(minutes=1))

        with pytest.raises(RefreshTokenReuseDetected):
            engine.refresh(attacked.refresh_token)

        assert store.find_by_jti(other_device.jti).revoked is False
        engine.refresh(other_device.refresh_token)


def test_replay_after_logout_is_reuse(engine, store, user, caplog):
    issued = engine.issue(user, APP)
    engine.revoke(issued.refresh_token)

    with caplog.at_level(logging.INFO):
        with pytest.raises(RefreshTokenReuseDetected):
            engine.refresh(issued.refresh_token)

    assert any(r.name == SECURITY_LOGGER for r in caplog.records)


# ------------------------------ Logout ------------------------------------ #
def test_logout_is_idempotent(engine, store, user):
    issued = engine.issue(user, APP)

    assert engine.revoke(issued.refresh_token) == 1
    assert engine.revoke(issued.refresh_token) == 0

    assert store.find_by_jti(issued.jti).revoked_reason is RevocationReason.LOGOUT


def test_logout_all_ends_every_session_without_alert(engine, store, user, caplog):
    phone = engine.issue(user, APP)
    laptop = engine.issue(user, APP)

    assert engine.revoke(phone.refresh_token, revoke_all=True) == 2
    assert store.find_by_jti(phone.jti).revoked_reason is RevocationReason.LOGOUT
    assert store.find_by_jti(laptop.jti).revoked_reason is RevocationReason.LOGOUT_ALL

    with caplog.at_level(logging.INFO):
        with pytest.raises(RefreshTokenRevoked) as excinfo:
            engine.refresh(laptop.refresh_token)

    assert type(excinfo.value) is RefreshTokenRevoked
    assert not any(r.name == SECURITY_LOGGER for r in caplog.records)


def test_logout_accepts_an_expired_token(engine, store, resolver, freeze_time):
    user = _other_user(resolver)
    with freeze_time() as frozen:
        issued = engine.issue(user, OTHER_APP)
        frozen.tick(timedelta(minutes=5))

        assert engine.revoke(issued.refresh_token) == 1


def test_logout_of_unknown_token_fails(engine, codec, user):
    forged = codec.sign(
        RefreshClaims(sub=user.id, app_id=APP.id, jti="never-stored", token_family="f"),
        APP.jwt_secret,
        "1h",
    )
    with pytest.raises(RefreshTokenNotFound):
        engine.revoke(forged)


# ------------------------------ Rejections -------------------------------- #
def test_expired_refresh_token_is_rejected(engine, resolver, freeze_time):
    user = _other_user(resolver)
    with freeze_time() as frozen:
        issued = engine.issue(user, OTHER_APP)
        frozen.tick(timedelta(minutes=2))

        with pytest.raises(RefreshTokenExpired):
            engine.refresh(issued.refresh_token)


def test_record_expiry_is_checked_independently_of_the_jwt(
    store, codec, hasher, resolver, user
):
    """The stored ``expires_at`` is authoritative even if the JWT still verifies."""
    clock_now = [utc_now()]
    engine = RotationEngine(
        store=store, codec=codec, hasher=hasher, resolver=resolver, clock=lambda: clock_now[0]
    )
    issued = engine.issue(user, APP)
    clock_now[0] += timedelta(days=15)

    with pytest.raises(RefreshTokenExpired):
        engine.refresh(issued.refresh_token)


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_tokens_are_invalid(engine, token):
    with pytest.raises(InvalidRefreshToken):
        engine.refresh(token)


def test_tampered_token_is_invalid(engine, user):
    issued = engine.issue(user, APP)
    head, payload, signature = issued.refresh_token.split(".")
    tampered = ".".join([head, payload, signature[::-1]])

    with pytest.raises(InvalidRefreshToken):
        engine.refresh(tampered)


def test_access_token_is_not_a_refresh_token(engine, user):
    issued = engine.issue(user, APP)
    with pytest.raises(InvalidRefreshToken):
        engine.refresh(issued.access_token)


def test_token_signed_with_another_tenants_secret_is_invalid(engine, codec, user):
    issued = engine.issue(user, APP)
    claims = codec.peek(issued.refresh_token)
    forged = codec.sign(claims, OTHER_APP.jwt_secret, "14d")

    with pytest.raises(InvalidRefreshToken):
        engine.refresh(forged)


def test_unknown_app_is_invalid(engine, codec, user):
    forged = codec.sign(
        RefreshClaims(sub=user.id, app_id=99, jti="j", token_family="f"), "x" * 40, "1h"
    )
    with pytest.raises(InvalidRefreshToken):
        engine.refresh(forged)


def test_inactive_app_is_invalid(engine, resolver, user):
    issued = engine.issue(user, APP)
    resolver.add_app(replace(APP, is_active=False))

    with pytest.raises(InvalidRefreshToken):
        engine.refresh(issued.refresh_token)


def test_rotated_tenant_secret_invalidates_outstanding_tokens(engine, resolver, user):
    issued = engine.issue(user, APP)
    resolver.add_app(replace(APP, jwt_secret="rotated-" + "r" * 40))

    with pytest.raises(InvalidRefreshToken):
        engine.refresh(issued.refresh_token)


def test_signed_token_without_record_is_not_found(engine, codec, user):
    forged = codec.sign(
        RefreshClaims(sub=user.id, app_id=APP.id, jti="ghost", token_family="f"),
        APP.jwt_secret,
        "1h",
    )
    with pytest.raises(RefreshTokenNotFound):
        engine.refresh(forged)


def test_claims_must_match_the_stored_record(engine, codec, user):
    """A token re-signed with another subject but a known jti is rejected."""
    issued = engine.issue(user, APP)
    claims = codec.peek(issued.refresh_token)
    forged = codec.sign(replace(claims, sub=user.id + 100), APP.jwt_secret, "14d")

    with pytest.raises(InvalidRefreshToken):
        engine.refresh(forged)


def test_deleted_user_cannot_refresh(engine, resolver, user):
    issued = engine.issue(user, APP)
    resolver._users.clear()

    with pytest.raises(InvalidRefreshToken):
        engine.refresh(issued.refresh_token)


def test_lost_compare_and_swap_is_already_used(codec, hasher, resolver, user):
    class ConflictingStore(InMemoryRefreshTokenStore):
        def rotate(self, old_id, draft, *, now):
            raise RotationConflict(old_id)

    engine = RotationEngine(
        store=ConflictingStore(), codec=codec, hasher=hasher, resolver=resolver
    )
    issued = engine.issue(user, APP)

    with pytest.raises(RefreshTokenAlreadyUsed):
        engine.refresh(issued.refresh_token)


# ------------------------------ Concurrency ------------------------------- #
class _BarrierStore(InMemoryRefreshTokenStore):
    """Hold both readers until each has seen the record as active."""

    def __init__(self) -> None:
        super().__init__()
        self.barrier: threading.Barrier | None = None

    def find_by_jti(self, jti):
        record = super().find_by_jti(jti)
        if self.barrier is not None:
            self.barrier.wait(timeout=10)
        return record


def test_concurrent_refresh_has_exactly_one_winner(codec, hasher, resolver, user):
    store = _BarrierStore()
    engine = RotationEngine(store=store, codec=codec, hasher=hasher, resolver=resolver)
    issued = engine.issue(user, APP)
    store.barrier = threading.Barrier(2)
    outcomes: list[object] = []
    lock = threading.Lock()

    def worker() -> None:
        try:
            result: object = engine.refresh(issued.refresh_token)
        except RefreshTokenError as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    errors = [o for o in outcomes if isinstance(o, RefreshTokenError)]
    winners = [o for o in outcomes if not isinstance(o, RefreshTokenError)]
    assert len(winners) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], RefreshTokenAlreadyUsed)

    store.barrier = None
    family = store.list_family(issued.token_family)
    assert [r.jti for r in family if not r.revoked] == [winners[0].jti]


class _InterleavingStore(SQLAlchemyRefreshTokenStore):
    """Run ``before_rotate`` once, between the caller's read and its rotate."""

    before_rotate = None

    def rotate(self, old_id, draft, *, now):
        hook, self.before_rotate = self.before_rotate, None
        if hook is not None:
            hook()
        return super().rotate(old_id, draft, now=now)


def test_interleaved_refresh_on_sql_store_has_one_winner(codec, hasher, factories):
    resolver = SQLAlchemyIdentityResolver()
    row = UserFactory()
    tenant = resolver.find_app_by_id(row.app_id)
    slow_store = _InterleavingStore()
    slow = RotationEngine(store=slow_store, codec=codec, hasher=hasher, resolver=resolver)
    fast = RotationEngine(
        store=SQLAlchemyRefreshTokenStore(), codec=codec, hasher=hasher, resolver=resolver
    )
    issued = slow.issue(resolver.find_user_by_id(row.id), tenant)
    winners = []
    slow_store.before_rotate = lambda: winners.append(fast.refresh(issued.refresh_token))

    with pytest.raises(RefreshTokenAlreadyUsed):
        slow.refresh(issued.refresh_token)

    family = slow_store.list_family(issued.token_family)
    assert len(winners) == 1
    assert [r.jti for r in family if not r.revoked] == [winners[0].jti]
    assert all(r.revoked_reason is not RevocationReason.FAMILY_REVOKED for r in family)
