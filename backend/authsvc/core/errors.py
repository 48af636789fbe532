"""Centralized JSON (RFC 7807) error handling for the API.

This module is the only place where typed failures become HTTP responses.
Services raise :class:`~authsvc.services._shared.errors.ServiceError`
subclasses and let them propagate untouched; the handlers below pick the
status code, render ``application/problem+json`` and log at a level that
matches the severity.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from authsvc.core.logger import ensure_request_id
from authsvc.services._shared.errors import (
    ExternalApiError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
    ValidationError,
)
from authsvc.services._shared.ports.refresh_token_store import TokenStoreError

log = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
SERVICE_STATUS: tuple[tuple[type[ServiceError], HTTPStatus], ...] = (
    (ValidationError, HTTPStatus.BAD_REQUEST),
    (UnauthorizedError, HTTPStatus.UNAUTHORIZED),
    (NotFoundError, HTTPStatus.NOT_FOUND),
    (ExternalApiError, HTTPStatus.BAD_GATEWAY),
)


def _http_status_to_code(status_code: int) -> str:
    """``404`` becomes ``NOT_FOUND``; non-standard codes become ``ERROR``."""
    try:
        return HTTPStatus(status_code).name
    except ValueError:
        return "ERROR"


def status_for(exc: ServiceError) -> HTTPStatus:
    """
    Return the HTTP status for a service error.

    :param exc: Error raised by the service layer.
    :returns: Matching status; unknown subclasses map to ``400``.
    :rtype: http.HTTPStatus
    """
    for cls, status in SERVICE_STATUS:
        if isinstance(exc, cls):
            return status
    return HTTPStatus.BAD_REQUEST


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Assemble the RFC 7807 body, stamped with the current request id."""
    problem: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
    }
    if details:
        problem["details"] = details
    problem["request_id"] = ensure_request_id()
    return problem


def problem_response(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> Response:
    """Render a problem body as ``application/problem+json``."""
    resp = jsonify(_as_problem(status=status, code=code, message=message, details=details))
    resp.status_code = int(status)
    resp.mimetype = "application/problem+json"
    return resp


def init_app(app: Flask) -> None:
    """
    Register the problem+json handlers on ``app``.

    Notes
    -----
    - 5xx responses are logged at ERROR with ``exc_info``; 4xx at WARNING.
    - Refresh-token failures reach the client with their code and a generic
      message; the specific reason is only in the logs.
    """

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        status = status_for(err)
        level = log.error if status >= 500 else log.warning
        level(
            "ServiceError: code=%s status=%s msg=%s",
            err.code,
            int(status),
            err,
            extra={"code": err.code, "status": int(status)},
        )
        return problem_response(status=status, code=err.code, message=str(err))

    @app.errorhandler(TokenStoreError)
    def handle_token_store_error(err: TokenStoreError):
        # Indeterminate persisted state; never soften into a 4xx.
        log.error("TokenStoreError: %s", err, exc_info=err)
        return problem_response(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="TOKEN_STORE_ERROR",
            message="Unexpected error",
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND and request:
            message = f"Route '{request.path}' not found"
        level = log.error if status >= 500 else log.warning
        level("HTTPException: code=%s status=%s detail=%s", error_code, status, message)
        return problem_response(status=status, code=error_code, message=message)

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        log.warning("ValidationError: fields=%s", sorted(_field_names(err.messages)))
        return problem_response(
            status=HTTPStatus.BAD_REQUEST,
            code="VALIDATION_ERROR",
            message="Validation failed",
            details={"errors": err.messages},
        )

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        log.error("IntegrityError", exc_info=err)
        return problem_response(
            status=HTTPStatus.CONFLICT, code="CONFLICT", message="Resource conflict"
        )

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        # Lost connection or lock timeout
        log.error("OperationalError", exc_info=err)
        return problem_response(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="SERVICE_UNAVAILABLE",
            message="Service temporarily unavailable",
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        log.error("Unhandled exception", exc_info=err)
        return problem_response(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="INTERNAL_SERVER_ERROR",
            message="Unexpected error",
        )


def _field_names(messages: Any) -> list[str]:
    if isinstance(messages, dict):
        return [str(key) for key in messages]
    return []
