"""Pytest fixtures for the identity service.

The application is created once per session. Every test gets a freshly
created schema on a single in-memory SQLite connection, shared by the test
body, the Flask test client and the token stores (which commit their own
transactions).
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import pytest
from authsvc.core.config import TestingConfig
from authsvc.core.extensions import db as _db
from authsvc.factory import create_app
from authsvc.infra.jwt.pyjwt_token_codec import PyJWTTokenCodec
from authsvc.infra.security.werkzeug_credential_hasher import WerkzeugCredentialHasher
from sqlalchemy.pool import StaticPool


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - ``StaticPool`` keeps one connection so the in-memory database survives
      across sessions and threads.
    - Redis is disabled; the Redis store is tested against fakeredis.
    """

    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }
    REFRESH_TOKEN_STORE = "sqlalchemy"
    REDIS_URL = None
    RATELIMIT_ENABLED = False
    LOG_LEVEL = "INFO"


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    os.environ.pop("REDIS_URL", None)
    return create_app(TestConfig)


@pytest.fixture()
def db(app):
    """Create the schema inside an application context for one test.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        try:
            yield _db
        finally:
            _db.session.remove()
            _db.drop_all()


@pytest.fixture()
def session(db):
    """Return the Flask-scoped session of the test's application context."""
    return db.session


@pytest.fixture()
def client(app, db):
    """Return a Flask test client sharing the test's application context."""
    return app.test_client()


@pytest.fixture()
def cli_runner(app, db):
    """Return a Click runner bound to the application's CLI."""
    return app.test_cli_runner()


@pytest.fixture()
def auth_service(app, db):
    """The :class:`AuthService` wired by the application factory."""
    from authsvc.api.deps import AUTH_SERVICE_KEY

    return app.extensions[AUTH_SERVICE_KEY]


@pytest.fixture()
def codec() -> PyJWTTokenCodec:
    return PyJWTTokenCodec()


@pytest.fixture()
def hasher() -> WerkzeugCredentialHasher:
    """Fast hasher settings; production defaults to scrypt."""
    return WerkzeugCredentialHasher(method="pbkdf2:sha256:1000")


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


@pytest.fixture()
def freeze_time() -> Callable[[str | None], Any]:
    """Factory returning :func:`freezegun.freeze_time`.

    Examples
    --------
    >>> def test_with_frozen_time(freeze_time):
    ...     with freeze_time("2026-01-01 12:00:00") as frozen:
    ...         frozen.tick(60)
    """

    from freezegun import freeze_time as _freeze_time

    def _factory(target: str | None = None) -> Any:
        return _freeze_time(target or "2026-01-01 12:00:00")

    return _factory


# -- Hook up Factory Boy to the test session ----------------------------------
@pytest.fixture()
def factories(session):
    """Wire Factory Boy's session helper to the test's session."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield
    SQLAlchemySession.set(None)
