# tests/unit/models/test_model_app.py
from __future__ import annotations

import pytest
from authsvc.models.app import App
from sqlalchemy.exc import IntegrityError
from tests.factories.app import AppFactory


def test_defaults_are_applied(factories, session):
    app = App(code="diary", name="Diary", jwt_secret="x" * 40)
    session.add(app)
    session.commit()

    assert app.access_token_lifetime == "30m"
    assert app.refresh_token_lifetime == "14d"
    assert app.is_active is True
    assert app.created_at is not None


@pytest.mark.parametrize("code", ["Fitness", "fit ness", "fit_ness", ""])
def test_code_must_be_lowercase_slug(code):
    with pytest.raises(ValueError):
        App(code=code, name="x", jwt_secret="s")


def test_code_is_stripped():
    assert App(code="  fit-2 ", name="x", jwt_secret="s").code == "fit-2"


@pytest.mark.parametrize("field", ["access_token_lifetime", "refresh_token_lifetime"])
def test_lifetimes_are_validated_on_write(field):
    with pytest.raises(ValueError):
        App(code="ok", name="x", jwt_secret="s", **{field: "2 weeks"})


def test_code_is_unique(factories, session):
    AppFactory(code="dup")
    session.add(App(code="dup", name="Again", jwt_secret="s" * 40))

    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()
