# authsvc/infra/sqlalchemy/refresh_token_store.py
"""
Relational refresh-token store.

Atomic rotation is a conditional ``UPDATE ... WHERE id = :old AND revoked =
false AND expires_at > :now`` followed by the ``INSERT`` of the successor in
the same transaction. Only the writer whose ``UPDATE`` matched a row may
commit; every other concurrent writer sees ``rowcount == 0`` and backs off.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from authsvc.core.extensions import db
from authsvc.models.base import as_utc
from authsvc.models.refresh_token import RefreshToken
from authsvc.repositories import RefreshTokenRepository
from authsvc.services._shared.errors import violates
from authsvc.services._shared.ports import (
    DuplicateDigest,
    DuplicateJti,
    RefreshTokenDraft,
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    RotationConflict,
    TokenStoreError,
)


def _flask_session() -> Session:
    return db.session


def to_record(row: RefreshToken) -> RefreshTokenRecord:
    """Map an ORM row to the store's read model."""
    return RefreshTokenRecord(
        id=str(row.id),
        token_digest=row.token_digest,
        user_id=row.user_id,
        app_id=row.app_id,
        jti=row.jti,
        token_family=row.token_family,
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at),
        revoked=bool(row.revoked),
        revoked_at=as_utc(row.revoked_at),
        revoked_reason=RevocationReason(row.revoked_reason) if row.revoked_reason else None,
    )


@dataclass(slots=True)
class SQLAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    :class:`RefreshTokenStore` over the ``refresh_tokens`` table.

    Every write commits its own transaction; reads never leave a stale copy in
    the identity map.

    :param session_factory: Returns the session to use (Flask-scoped by default).
    """

    session_factory: Callable[[], Session] = field(default=_flask_session)

    # -------------------- helpers --------------------

    def _repo(self) -> RefreshTokenRepository:
        return RefreshTokenRepository(session=self.session_factory())

    @staticmethod
    def _row(draft: RefreshTokenDraft) -> RefreshToken:
        return RefreshToken(
            token_digest=draft.token_digest,
            user_id=draft.user_id,
            app_id=draft.app_id,
            jti=draft.jti,
            token_family=draft.token_family,
            expires_at=draft.expires_at,
            created_at=draft.created_at,
            revoked=False,
        )

    @contextmanager
    def _transaction(self, repo: RefreshTokenRepository):
        """Commit on success; translate and roll back on database errors."""
        try:
            yield
            repo.session.commit()
        except IntegrityError as exc:
            repo.session.rollback()
            if violates(exc, "uq_refresh_tokens_jti", "refresh_tokens.jti"):
                raise DuplicateJti(str(exc.orig)) from exc
            if violates(exc, "uq_refresh_tokens_token_digest", "refresh_tokens.token_digest"):
                raise DuplicateDigest(str(exc.orig)) from exc
            raise TokenStoreError("Refresh token write violated a constraint") from exc
        except SQLAlchemyError as exc:
            repo.session.rollback()
            raise TokenStoreError("Refresh token write failed") from exc
        except Exception:
            repo.session.rollback()
            raise

    # -------------------- API ------------------------

    def insert(self, draft: RefreshTokenDraft) -> RefreshTokenRecord:
        repo = self._repo()
        with self._transaction(repo):
            row = repo.add(self._row(draft))
        return to_record(row)

    def find_by_jti(self, jti: str) -> RefreshTokenRecord | None:
        row = self._repo().get_by_jti(jti)
        return to_record(row) if row is not None else None

    def revoke_by_id(
        self, record_id: str, *, reason: RevocationReason, now: datetime
    ) -> bool:
        repo = self._repo()
        with self._transaction(repo):
            changed = repo.revoke_where(
                RefreshToken.id == int(record_id), reason=reason.value, now=now
            )
        return changed == 1

    def revoke_all_by_user(
        self, user_id: int, *, reason: RevocationReason, now: datetime
    ) -> int:
        repo = self._repo()
        with self._transaction(repo):
            changed = repo.revoke_where(RefreshToken.user_id == user_id, reason=reason.value, now=now)
        return changed

    def revoke_all_by_family(
        self, token_family: str, *, reason: RevocationReason, now: datetime
    ) -> int:
        repo = self._repo()
        with self._transaction(repo):
            changed = repo.revoke_where(
                RefreshToken.token_family == token_family, reason=reason.value, now=now
            )
        return changed

    def rotate(
        self, old_id: str, draft: RefreshTokenDraft, *, now: datetime
    ) -> RefreshTokenRecord:
        repo = self._repo()
        with self._transaction(repo):
            consumed = repo.consume_if_active(
                int(old_id), reason=RevocationReason.ROTATED.value, now=now
            )
            if not consumed:
                raise RotationConflict(old_id)
            row = repo.add(self._row(draft))
        return to_record(row)

    def list_family(self, token_family: str) -> Sequence[RefreshTokenRecord]:
        return [to_record(row) for row in self._repo().list_family(token_family)]
