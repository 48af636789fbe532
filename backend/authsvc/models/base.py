"""Column mixins and UTC helpers shared by the ORM models (typed 2.0)."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column


def as_utc(value: datetime | None) -> datetime | None:
    """Label naive datetimes read back from SQLite as UTC.

    PostgreSQL returns aware values for ``timestamptz`` columns; SQLite drops
    the offset on write, so values come back naive but already in UTC.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class PKMixin:
    """Integer surrogate primary key ``id``."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)


class TimestampMixin:
    """Provide ``created_at`` and ``updated_at`` columns.

    Attributes
    ----------
    created_at:
        Timezone-aware insert timestamp, filled by the database.
    updated_at:
        Timezone-aware timestamp refreshed on every ORM update.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class ReprMixin:
    """Concise ``<ClassName id=...>`` representation."""

    def __repr__(self) -> str:
        key = getattr(self, "id", None)
        return f"<{self.__class__.__name__} id={key}>"
