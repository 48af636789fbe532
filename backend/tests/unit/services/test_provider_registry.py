# tests/unit/services/test_provider_registry.py
from __future__ import annotations

import pytest
from authsvc.services._shared.errors import ValidationError
from authsvc.services._shared.ports import AppIdentity
from authsvc.services.auth.providers import SUPPORTED_PROVIDERS, OAuthProviderRegistry
from tests.helpers.oauth import FakeProvider

APP = AppIdentity(id=3, code="app", name="App", jwt_secret="x" * 40)


def test_supported_providers():
    assert set(SUPPORTED_PROVIDERS) == {"kakao", "naver", "google", "apple"}


def test_register_and_create_per_app():
    registry = OAuthProviderRegistry()
    fake = FakeProvider(name="google")
    registry.register("Google", fake.factory)

    assert registry.names() == ["google"]
    assert registry.create("GOOGLE", APP) is fake
    assert fake.seen_apps == [APP.id]


def test_register_rejects_unsupported_provider():
    with pytest.raises(ValueError):
        OAuthProviderRegistry().register("facebook", FakeProvider().factory)


def test_create_rejects_unsupported_provider():
    with pytest.raises(ValidationError):
        OAuthProviderRegistry().create("facebook", APP)


def test_create_rejects_unregistered_provider():
    with pytest.raises(ValidationError):
        OAuthProviderRegistry().create("apple", APP)


def test_factory_may_decline_an_app():
    registry = OAuthProviderRegistry()
    registry.register("naver", lambda app: None)

    with pytest.raises(ValidationError):
        registry.create("naver", APP)
