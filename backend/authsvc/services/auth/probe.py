"""
Operational log events for the auth flow.

Each function emits one structured record; field names match the JSON
formatter's extra keys. Reuse detection goes to the ``authsvc.security``
channel at ``CRITICAL`` so it stays distinguishable from ordinary 401s.
"""

from __future__ import annotations

import logging

from authsvc.core.logger import SECURITY_LOGGER

log = logging.getLogger("authsvc.auth")
security_log = logging.getLogger(SECURITY_LOGGER)


def login_success(*, user_id: int, provider: str, app_code: str) -> None:
    log.info(
        "User logged in successfully",
        extra={
            "event": "auth.login_success",
            "user_id": user_id,
            "provider": provider,
            "app_code": app_code,
        },
    )


def login_failed(*, provider: str, app_code: str, reason: str) -> None:
    log.warning(
        "User login failed",
        extra={
            "event": "auth.login_failed",
            "provider": provider,
            "app_code": app_code,
            "reason": reason,
        },
    )


def user_registered(*, user_id: int, provider: str, app_code: str) -> None:
    log.info(
        "New user registered",
        extra={
            "event": "auth.user_registered",
            "user_id": user_id,
            "provider": provider,
            "app_code": app_code,
        },
    )


def token_issued(*, user_id: int, app_id: int, token_family: str, jti: str) -> None:
    log.info(
        "Refresh token issued",
        extra={
            "event": "refresh_token.issued",
            "user_id": user_id,
            "app_id": app_id,
            "token_family": token_family,
            "jti": jti,
        },
    )


def token_rotated(*, user_id: int, app_id: int, token_family: str, jti: str) -> None:
    log.info(
        "Refresh token rotated",
        extra={
            "event": "refresh_token.rotated",
            "user_id": user_id,
            "app_id": app_id,
            "token_family": token_family,
            "jti": jti,
        },
    )


def token_rejected(*, code: str, jti: str | None = None, app_id: int | None = None) -> None:
    log.info(
        "Refresh token rejected",
        extra={"event": "refresh_token.rejected", "code": code, "jti": jti, "app_id": app_id},
    )


def token_revoked(
    *, user_id: int, app_id: int, jti: str, reason: str, revoked_count: int
) -> None:
    log.info(
        "Refresh token revoked",
        extra={
            "event": "refresh_token.revoked",
            "user_id": user_id,
            "app_id": app_id,
            "jti": jti,
            "reason": reason,
            "revoked_count": revoked_count,
        },
    )


def reuse_detected(
    *,
    user_id: int,
    app_id: int,
    token_family: str,
    jti: str,
    reason: str,
    revoked_count: int,
) -> None:
    security_log.critical(
        "Refresh token reuse detected; token family revoked",
        extra={
            "event": "refresh_token.reuse_detected",
            "user_id": user_id,
            "app_id": app_id,
            "token_family": token_family,
            "jti": jti,
            "reason": reason,
            "revoked_count": revoked_count,
        },
    )
