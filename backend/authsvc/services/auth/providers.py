"""
Registry of OAuth providers.

Concrete provider clients are wired at application start; each is created
per tenant because client ids and secrets differ between apps. A factory may
return ``None`` to signal that the provider is not configured for an app.
"""

from __future__ import annotations

from collections.abc import Callable

from authsvc.services._shared.errors import ValidationError
from authsvc.services._shared.ports import AppIdentity, OAuthProvider

SUPPORTED_PROVIDERS: tuple[str, ...] = ("kakao", "naver", "google", "apple")

ProviderFactory = Callable[[AppIdentity], OAuthProvider | None]


class OAuthProviderRegistry:
    """
    Map provider names to per-tenant client factories.

    Examples
    --------
    >>> registry = OAuthProviderRegistry()
    >>> registry.register("kakao", lambda app: KakaoClient(app))  # doctest: +SKIP
    >>> registry.create("kakao", app)  # doctest: +SKIP
    """

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}

    def register(self, name: str, factory: ProviderFactory) -> None:
        """
        Register ``factory`` under ``name``.

        :raises ValueError: If ``name`` is not a supported provider.
        """
        key = name.lower()
        if key not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported OAuth provider: {name}")
        self._factories[key] = factory

    def names(self) -> list[str]:
        return sorted(self._factories)

    def create(self, name: str, app: AppIdentity) -> OAuthProvider:
        """
        Build the provider client for ``app``.

        :raises ValidationError: If the provider is unknown or not configured
            for this app.
        """
        key = name.lower()
        if key not in SUPPORTED_PROVIDERS:
            raise ValidationError(f"Unsupported OAuth provider: {name}")

        factory = self._factories.get(key)
        provider = factory(app) if factory is not None else None
        if provider is None:
            raise ValidationError(f"OAuth provider {key} is not configured for this app")
        return provider
