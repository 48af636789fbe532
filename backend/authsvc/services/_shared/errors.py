"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never depend on Flask or
HTTP. They are stable contracts between ports, adapters and services. Every
error carries a machine-readable ``code``; the translation to HTTP responses
(RFC 7807) happens exclusively in ``authsvc/core/errors.py``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, *markers: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    PostgreSQL reports the constraint name; SQLite reports the offending
    ``table.column`` pair instead, so callers may pass both.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    *markers : str
        Constraint names or ``table.column`` fragments to look for
        (e.g. ``"uq_refresh_tokens_jti"``, ``"refresh_tokens.jti"``).

    Returns
    -------
    bool
        True if the IntegrityError message mentions any of the markers.
    """
    message = str(exc.orig).lower() if exc.orig else str(exc).lower()
    return any(marker.lower() in message for marker in markers)


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from adapters or domain logic.
    - ``core/errors.py`` maps each subclass to a status code.
    """

    code: ClassVar[str] = "SERVICE_ERROR"


class ValidationError(ServiceError):
    """Raised when input is well-formed JSON but semantically unacceptable."""

    code = "VALIDATION_ERROR"


class UnauthorizedError(ServiceError):
    """Raised when the caller cannot be authenticated."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required.") -> None:
        super().__init__(message)


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found.

    :param entity: Entity name (e.g., "App").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    @property
    def code(self) -> str:  # type: ignore[override]
        return f"{self.entity.upper()}_NOT_FOUND"

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ExternalApiError(ServiceError):
    """
    Raised when an upstream identity provider call fails.

    :param service: Name of the upstream (e.g., ``"kakao"``).
    :type service: str
    :param detail: Operator-facing description of the failure.
    :type detail: str
    """

    service: str
    detail: str = ""

    code = "EXTERNAL_API_ERROR"

    def __str__(self) -> str:
        return f"External API error: {self.service}"
