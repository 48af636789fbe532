"""
Per-tenant signing clients.

A :class:`TenantSigner` binds the token codec to one app's secret and
pre-parsed lifetimes. :class:`SigningClientCache` keeps one signer per app id
for the lifetime of the object that owns it (normally one
:class:`~authsvc.services.auth.service.AuthService`); a stale entry is
rebuilt as soon as the app's secret or lifetimes change.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from authsvc.services._shared.durations import parse_duration
from authsvc.services._shared.ports import (
    AccessClaims,
    AppIdentity,
    Claims,
    RefreshClaims,
    TokenCodec,
    UserIdentity,
)


@dataclass(frozen=True, slots=True)
class TenantSigner:
    """Token codec bound to a single tenant."""

    codec: TokenCodec
    app: AppIdentity
    access_lifetime: timedelta
    refresh_lifetime: timedelta

    @classmethod
    def build(cls, codec: TokenCodec, app: AppIdentity) -> TenantSigner:
        """
        Parse the app's lifetimes once and bind them with its secret.

        :raises InvalidDuration: If the app carries a malformed lifetime.
        """
        return cls(
            codec=codec,
            app=app,
            access_lifetime=parse_duration(app.access_token_lifetime),
            refresh_lifetime=parse_duration(app.refresh_token_lifetime),
        )

    @property
    def access_expires_in(self) -> int:
        return int(self.access_lifetime.total_seconds())

    def sign_access(self, user: UserIdentity, *, now: datetime) -> str:
        claims = AccessClaims(
            sub=user.id, app_id=self.app.id, email=user.email, nickname=user.nickname
        )
        return self.codec.sign(claims, self.app.jwt_secret, self.access_lifetime, now=now)

    def sign_refresh(self, claims: RefreshClaims, *, now: datetime) -> str:
        return self.codec.sign(claims, self.app.jwt_secret, self.refresh_lifetime, now=now)

    def verify(self, token: str, *, verify_expiry: bool = True) -> Claims:
        return self.codec.verify(token, self.app.jwt_secret, verify_expiry=verify_expiry)


@dataclass(slots=True)
class SigningClientCache:
    """
    Bounded cache of :class:`TenantSigner` keyed by app id.

    Not safety-critical: a race at worst builds the same signer twice.
    """

    codec: TokenCodec
    max_entries: int = 256
    _entries: OrderedDict[int, TenantSigner] = field(default_factory=OrderedDict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def for_app(self, app: AppIdentity) -> TenantSigner:
        with self._lock:
            signer = self._entries.get(app.id)
            if signer is not None and signer.app == app:
                self._entries.move_to_end(app.id)
                return signer

        signer = TenantSigner.build(self.codec, app)
        with self._lock:
            self._entries[app.id] = signer
            self._entries.move_to_end(app.id)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return signer

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
