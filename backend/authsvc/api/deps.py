"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import Response, current_app, jsonify, request
from marshmallow import Schema

from authsvc.services.auth.service import AuthService

F = TypeVar("F", bound=Callable[..., Any])

AUTH_SERVICE_KEY = "auth_service"


def get_auth_service() -> AuthService:
    """Return the :class:`AuthService` wired for the current application."""

    try:
        return cast(AuthService, current_app.extensions[AUTH_SERVICE_KEY])
    except KeyError as exc:
        raise RuntimeError("AuthService is not initialized. Use create_app().") from exc


def load_json(schema: Schema) -> Any:
    """Validate the JSON body against ``schema``.

    A missing or non-JSON body is validated as an empty object so clients
    get field-level errors instead of a bare 400.
    """

    return schema.load(request.get_json(silent=True) or {})


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def no_content() -> Response:
    """Return an empty ``204 No Content`` response."""

    return Response(status=204)


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
