"""
Identity resolver port.

Tenants (apps) and their users are owned by the identity collaborator; the
token lifecycle treats them as read-only principal context, except for the
login-time ``upsert_user``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True, slots=True)
class AppIdentity:
    """
    A tenant application.

    :ivar jwt_secret: HMAC secret for every token issued to this tenant.
    :ivar access_token_lifetime: Duration string, e.g. ``"30m"``.
    :ivar refresh_token_lifetime: Duration string, e.g. ``"14d"``.
    """

    id: int
    code: str
    name: str
    jwt_secret: str
    access_token_lifetime: str = "30m"
    refresh_token_lifetime: str = "14d"
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class UserIdentity:
    """A user, unique per ``(app_id, provider, provider_id)``."""

    id: int
    app_id: int
    provider: str
    provider_id: str
    email: str | None = None
    nickname: str | None = None
    profile_image: str | None = None
    last_login_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class UserUpsert:
    """Profile data reported by an OAuth provider at login."""

    app_id: int
    provider: str
    provider_id: str
    email: str | None = None
    nickname: str | None = None
    profile_image: str | None = None


class IdentityResolver(Protocol):
    """Lookup of tenants and users."""

    def find_app_by_code(self, code: str) -> AppIdentity | None: ...

    def find_app_by_id(self, app_id: int) -> AppIdentity | None: ...

    def find_user_by_id(self, user_id: int) -> UserIdentity | None: ...

    def upsert_user(self, data: UserUpsert, *, now: datetime) -> tuple[UserIdentity, bool]:
        """
        Create or refresh a user and stamp ``last_login_at``.

        :returns: The stored user and ``True`` when it was newly created.
        """
        ...


class InMemoryIdentityResolver(IdentityResolver):
    """Dictionary-backed resolver for unit tests and local experiments."""

    def __init__(self) -> None:
        self._apps: dict[int, AppIdentity] = {}
        self._users: dict[int, UserIdentity] = {}
        self._seq = 0
        self._lock = threading.Lock()

    def add_app(self, app: AppIdentity) -> AppIdentity:
        self._apps[app.id] = app
        return app

    def find_app_by_code(self, code: str) -> AppIdentity | None:
        return next((a for a in self._apps.values() if a.code == code), None)

    def find_app_by_id(self, app_id: int) -> AppIdentity | None:
        return self._apps.get(app_id)

    def find_user_by_id(self, user_id: int) -> UserIdentity | None:
        return self._users.get(user_id)

    def upsert_user(self, data: UserUpsert, *, now: datetime) -> tuple[UserIdentity, bool]:
        with self._lock:
            existing = next(
                (
                    u
                    for u in self._users.values()
                    if (u.app_id, u.provider, u.provider_id)
                    == (data.app_id, data.provider, data.provider_id)
                ),
                None,
            )
            if existing is not None:
                updated = replace(
                    existing,
                    email=data.email,
                    nickname=data.nickname,
                    profile_image=data.profile_image,
                    last_login_at=now,
                )
                self._users[updated.id] = updated
                return updated, False

            self._seq += 1
            created = UserIdentity(
                id=self._seq,
                app_id=data.app_id,
                provider=data.provider,
                provider_id=data.provider_id,
                email=data.email,
                nickname=data.nickname,
                profile_image=data.profile_image,
                last_login_at=now,
            )
            self._users[created.id] = created
            return created, True
