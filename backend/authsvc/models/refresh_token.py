"""Server-side state of issued refresh tokens."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column

from authsvc.core.extensions import db

from .base import PKMixin, ReprMixin


class RefreshToken(PKMixin, ReprMixin, db.Model):
    """
    One issued refresh token.

    Rows are never deleted by the application: ``revoked`` only flips from
    false to true and expiry is evaluated at read time.

    Fields
    ------
    token_digest : str
        Salted hash of the signed token; the raw token is never stored.
    jti : str
        Unique token id, also embedded in the JWT.
    token_family : str
        Lineage id shared by all rotations of one login.
    revoked_reason : str | None
        ``rotated``, ``logout``, ``logout_all`` or ``family_revoked``.
    """

    __tablename__ = "refresh_tokens"

    token_digest: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    app_id: Mapped[int] = mapped_column(
        ForeignKey("apps.id", ondelete="CASCADE"), nullable=False
    )
    jti: Mapped[str] = mapped_column(String(36), nullable=False)
    token_family: Mapped[str] = mapped_column(String(36), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_reason: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("token_digest", name="uq_refresh_tokens_token_digest"),
        UniqueConstraint("jti", name="uq_refresh_tokens_jti"),
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_app_id", "app_id"),
        Index("ix_refresh_tokens_token_family", "token_family"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )
