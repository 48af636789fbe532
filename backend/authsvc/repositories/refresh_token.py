"""Refresh-token repository.

Bulk revocations are single ``UPDATE`` statements guarded by
``revoked = false`` so concurrent writers never overwrite an earlier
``revoked_at``.
"""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import CursorResult, select, update

from authsvc.models.refresh_token import RefreshToken
from authsvc.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`."""

    model = RefreshToken

    def _sortable_fields(self):
        return {"created_at": RefreshToken.created_at, "expires_at": RefreshToken.expires_at}

    def get_by_jti(self, jti: str) -> RefreshToken | None:
        """Fetch a token by ``jti``, refreshing any stale identity-map copy."""
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.jti == jti)
            .execution_options(populate_existing=True)
        )
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def list_family(self, token_family: str) -> list[RefreshToken]:
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.token_family == token_family)
            .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(self.session.execute(stmt).scalars().all())

    def revoke_where(self, *criteria, reason: str, now: datetime) -> int:
        """Flag every still-active row matching ``criteria`` as revoked.

        :returns: Number of rows that changed.
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.revoked.is_(False), *criteria)
            .values(revoked=True, revoked_at=now, revoked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return int(result.rowcount or 0)

    def consume_if_active(self, token_id: int, *, reason: str, now: datetime) -> bool:
        """Compare-and-swap: revoke ``token_id`` only if still active at ``now``."""
        return (
            self.revoke_where(
                RefreshToken.id == token_id,
                RefreshToken.expires_at > now,
                reason=reason,
                now=now,
            )
            == 1
        )
