"""User repository."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from authsvc.models.user import User
from authsvc.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Users are unique per ``(app_id, provider, provider_id)``; this repository
    never issues tokens and never commits.
    """

    model = User

    def _sortable_fields(self):
        return {
            "id": User.id,
            "created_at": User.created_at,
            "last_login_at": User.last_login_at,
        }

    def get_by_provider(self, app_id: int, provider: str, provider_id: str) -> User | None:
        """Fetch the user linked to a provider account inside one app.

        :param app_id: Owning tenant id.
        :type app_id: int
        :param provider: Provider name (case-insensitive).
        :type provider: str
        :param provider_id: Subject id reported by the provider.
        :type provider_id: str
        :returns: User or ``None``.
        :rtype: User | None
        """
        stmt = select(User).where(
            User.app_id == app_id,
            User.provider == provider.strip().lower(),
            User.provider_id == provider_id,
        )
        return cast(User | None, self.session.execute(stmt).scalars().first())
