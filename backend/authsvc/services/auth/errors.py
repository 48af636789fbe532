"""
Refresh-token failures.

Every failure on the refresh path is an :class:`UnauthorizedError` so the
HTTP boundary answers ``401`` with the specific ``code``. The message is the
same for all of them: clients only learn that they must sign in again.
"""

from __future__ import annotations

from authsvc.services._shared.errors import UnauthorizedError

SIGN_IN_AGAIN = "Session is no longer valid. Please sign in again."


class RefreshTokenError(UnauthorizedError):
    """Base class for refresh-token rejections."""

    code = "INVALID_REFRESH_TOKEN"

    def __init__(self, message: str = SIGN_IN_AGAIN) -> None:
        super().__init__(message)


class InvalidRefreshToken(RefreshTokenError):
    """Bad signature, bad shape, wrong token type, or unknown tenant/user."""

    code = "INVALID_REFRESH_TOKEN"


class RefreshTokenNotFound(RefreshTokenError):
    """Signature is valid but no record exists for the ``jti``."""

    code = "REFRESH_TOKEN_NOT_FOUND"


class RefreshTokenExpired(RefreshTokenError):
    code = "REFRESH_TOKEN_EXPIRED"


class RefreshTokenRevoked(RefreshTokenError):
    code = "REFRESH_TOKEN_REVOKED"


class RefreshTokenAlreadyUsed(RefreshTokenError):
    """Superseded token re-presented within the grace period, or a lost race."""

    code = "REFRESH_TOKEN_ALREADY_USED"


class RefreshTokenReuseDetected(RefreshTokenRevoked):
    """Superseded token replayed outside the grace period; family revoked."""

    code = "REFRESH_TOKEN_REUSE_DETECTED"
