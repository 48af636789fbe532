"""Shared repository plumbing for the SQLAlchemy-backed aggregates.

Repositories only read and stage rows. Commits and rollbacks belong to
:class:`authsvc.uow.SQLAlchemyUnitOfWork`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Select, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from authsvc.core.extensions import db

E = TypeVar("E")

Columns = Mapping[str, InstrumentedAttribute[Any]]


def order_by_tokens(
    stmt: Select[Any],
    columns: Columns,
    tokens: Iterable[str],
    *,
    tiebreaker: InstrumentedAttribute[Any] | None,
) -> Select[Any]:
    """Order ``stmt`` by tokens such as ``["-created_at", "code"]``.

    Only names present in ``columns`` are honoured. ``tiebreaker`` is always
    appended ascending so listings are stable across calls.
    """
    for token in tokens:
        descending = token.startswith("-")
        col = columns.get(token.lstrip("-").strip())
        if col is not None:
            stmt = stmt.order_by(col.desc() if descending else col.asc())
    if tiebreaker is not None:
        stmt = stmt.order_by(tiebreaker.asc())
    return stmt


class BaseRepository(Generic[E]):
    """Repository for a single mapped model.

    Subclasses set ``model`` and may widen ``_sortable_fields`` or
    ``_filterable_fields``.
    """

    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """The injected session, otherwise Flask-SQLAlchemy's scoped one."""
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    def _sortable_fields(self) -> Columns:
        return {}

    def _filterable_fields(self) -> Columns:
        return {}

    def _pk(self) -> InstrumentedAttribute[Any] | None:
        return cast(InstrumentedAttribute[Any] | None, getattr(self.model, "id", None))

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so its primary key is assigned."""
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Return the row with primary key ``entity_id`` or ``None``.

        :raises RuntimeError: If ``model`` has no ``id`` column.
        """
        pk = self._pk()
        if pk is None:
            raise RuntimeError(f"{self.model.__name__} has no 'id' column")
        stmt = select(self.model).where(pk == entity_id)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def list(
        self,
        *,
        filters: Mapping[str, Any] | None = None,
        sort: Iterable[str] = (),
    ) -> list[E]:
        """Return rows matching ``filters`` (equality, whitelisted keys only)."""
        stmt: Select[Any] = select(self.model)
        allowed = self._filterable_fields()
        for key, value in (filters or {}).items():
            if key in allowed:
                stmt = stmt.where(allowed[key] == value)
        stmt = order_by_tokens(stmt, self._sortable_fields(), sort, tiebreaker=self._pk())
        return list(self.session.execute(stmt).scalars().all())

    def flush(self) -> None:
        self.session.flush()
