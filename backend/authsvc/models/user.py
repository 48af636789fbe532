"""User model: one row per provider account per app."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from authsvc.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    A user authenticated through an OAuth provider.

    Fields
    ------
    app_id : int
        Owning tenant.
    provider : str
        ``kakao``, ``naver``, ``google`` or ``apple``.
    provider_id : str
        Subject id reported by the provider.
    email, nickname, profile_image : str | None
        Profile data refreshed on every login.
    last_login_at : datetime | None
        Instant of the most recent successful login.
    """

    __tablename__ = "users"

    app_id: Mapped[int] = mapped_column(
        ForeignKey("apps.id", ondelete="CASCADE"), nullable=False
    )
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    nickname: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    app = relationship("App", lazy="joined")

    __table_args__ = (
        UniqueConstraint(
            "app_id", "provider", "provider_id", name="uq_users_app_id_provider_provider_id"
        ),
        Index("ix_users_app_id", "app_id"),
    )

    @validates("provider")
    def _normalize_provider(self, key: str, value: str) -> str:
        if not value or not isinstance(value, str):
            raise ValueError("Provider is required.")
        return value.strip().lower()

    @validates("email")
    def _normalize_email(self, key: str, value: str | None) -> str | None:
        """
        Normalize the email reported by the provider.

        Providers may omit the email entirely; an empty value is stored as
        ``None``.
        """
        if value is None:
            return None
        v = value.strip().lower()
        return v or None
