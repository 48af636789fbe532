# authsvc/infra/sqlalchemy/identity_resolver.py
from __future__ import annotations

from datetime import datetime

from authsvc.models.app import App
from authsvc.models.base import as_utc
from authsvc.models.user import User
from authsvc.services._shared.ports import (
    AppIdentity,
    IdentityResolver,
    UserIdentity,
    UserUpsert,
)
from authsvc.uow import SQLAlchemyUnitOfWork


def to_app_identity(app: App) -> AppIdentity:
    return AppIdentity(
        id=app.id,
        code=app.code,
        name=app.name,
        jwt_secret=app.jwt_secret,
        access_token_lifetime=app.access_token_lifetime,
        refresh_token_lifetime=app.refresh_token_lifetime,
        is_active=bool(app.is_active),
    )


def to_user_identity(user: User) -> UserIdentity:
    return UserIdentity(
        id=user.id,
        app_id=user.app_id,
        provider=user.provider,
        provider_id=user.provider_id,
        email=user.email,
        nickname=user.nickname,
        profile_image=user.profile_image,
        last_login_at=as_utc(user.last_login_at),
    )


class SQLAlchemyIdentityResolver(IdentityResolver):
    """
    Resolve apps and users through :class:`SQLAlchemyUnitOfWork`.

    Rows are converted to frozen identities before the unit of work closes, so
    callers never hold ORM instances across a commit.
    """

    def __init__(self, uow_factory=SQLAlchemyUnitOfWork) -> None:
        self.uow_factory = uow_factory

    def find_app_by_code(self, code: str) -> AppIdentity | None:
        with self.uow_factory() as uow:
            app = uow.apps.get_by_code(code)
            return to_app_identity(app) if app is not None else None

    def find_app_by_id(self, app_id: int) -> AppIdentity | None:
        with self.uow_factory() as uow:
            app = uow.apps.get(app_id)
            return to_app_identity(app) if app is not None else None

    def find_user_by_id(self, user_id: int) -> UserIdentity | None:
        with self.uow_factory() as uow:
            user = uow.users.get(user_id)
            return to_user_identity(user) if user is not None else None

    def upsert_user(self, data: UserUpsert, *, now: datetime) -> tuple[UserIdentity, bool]:
        with self.uow_factory() as uow:
            user = uow.users.get_by_provider(data.app_id, data.provider, data.provider_id)
            created = user is None
            if user is None:
                user = User(
                    app_id=data.app_id, provider=data.provider, provider_id=data.provider_id
                )
                uow.users.add(user)
            user.email = data.email
            user.nickname = data.nickname
            user.profile_image = data.profile_image
            user.last_login_at = now
            uow.users.flush()
            identity = to_user_identity(user)
        return identity, created
