"""Status mapping of the service error taxonomy."""

from __future__ import annotations

from http import HTTPStatus

import pytest
from authsvc.core.errors import SERVICE_STATUS, status_for
from authsvc.services._shared.errors import (
    ExternalApiError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
    ValidationError,
)
from authsvc.services.auth.errors import RefreshTokenReuseDetected


@pytest.mark.parametrize(
    "error, status",
    [
        (ValidationError("bad"), HTTPStatus.BAD_REQUEST),
        (UnauthorizedError(), HTTPStatus.UNAUTHORIZED),
        (RefreshTokenReuseDetected(), HTTPStatus.UNAUTHORIZED),
        (NotFoundError("App", "nope"), HTTPStatus.NOT_FOUND),
        (ExternalApiError("kakao"), HTTPStatus.BAD_GATEWAY),
    ],
)
def test_status_for(error, status):
    assert status_for(error) is status


def test_every_error_family_has_a_status():
    mapped = {cls for cls, _ in SERVICE_STATUS}
    assert mapped == set(ServiceError.__subclasses__())
