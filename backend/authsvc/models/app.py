"""Tenant application model."""

from __future__ import annotations

import re

from sqlalchemy import Boolean, String, UniqueConstraint, true
from sqlalchemy.orm import Mapped, mapped_column, validates

from authsvc.core.extensions import db
from authsvc.services._shared.durations import duration_seconds

from .base import PKMixin, ReprMixin, TimestampMixin

APP_CODE_RE = re.compile(r"^[a-z0-9-]+$")


class App(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    A tenant of the identity service.

    Every app signs its tokens with its own secret and lifetimes, so a token
    issued to one app is never accepted by another.

    Fields
    ------
    code : str
        Public identifier sent by clients at login (``^[a-z0-9-]+$``).
    name : str
        Display name.
    jwt_secret : str
        HMAC secret for this app's access and refresh tokens.
    access_token_lifetime : str
        Duration string such as ``"30m"``.
    refresh_token_lifetime : str
        Duration string such as ``"14d"``.
    is_active : bool
        Inactive apps can neither log in nor refresh.
    """

    __tablename__ = "apps"

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    jwt_secret: Mapped[str] = mapped_column(String(255), nullable=False)
    access_token_lifetime: Mapped[str] = mapped_column(
        String(20), nullable=False, default="30m", server_default="30m"
    )
    refresh_token_lifetime: Mapped[str] = mapped_column(
        String(20), nullable=False, default="14d", server_default="14d"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    __table_args__ = (UniqueConstraint("code", name="uq_apps_code"),)

    @validates("code")
    def _validate_code(self, key: str, value: str) -> str:
        """
        Normalize and validate the app code.

        :raises ValueError: If the code has characters outside ``[a-z0-9-]``.
        """
        v = (value or "").strip()
        if not APP_CODE_RE.match(v):
            raise ValueError("App code must match ^[a-z0-9-]+$.")
        return v

    @validates("access_token_lifetime", "refresh_token_lifetime")
    def _validate_lifetime(self, key: str, value: str) -> str:
        """Reject malformed lifetimes at write time, not at first login."""
        duration_seconds(value)
        return value
