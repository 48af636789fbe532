"""App (tenant) repository."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from authsvc.models.app import App
from authsvc.repositories.base import BaseRepository


class AppRepository(BaseRepository[App]):
    """Persistence-only repository for :class:`App`."""

    model = App

    def _sortable_fields(self):
        return {"id": App.id, "code": App.code, "created_at": App.created_at}

    def _filterable_fields(self):
        return {"code": App.code, "is_active": App.is_active}

    def get_by_code(self, code: str) -> App | None:
        """Fetch an app by its public code.

        :param code: App code as sent by clients.
        :type code: str
        :returns: App or ``None`` when not found.
        :rtype: App | None
        """
        stmt = select(App).where(App.code == code.strip())
        return cast(App | None, self.session.execute(stmt).scalars().first())

    def exists_by_code(self, code: str) -> bool:
        stmt = select(App.id).where(App.code == code.strip())
        return bool(self.session.execute(stmt).first())
