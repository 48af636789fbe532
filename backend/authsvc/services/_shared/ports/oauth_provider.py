from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class OAuthUserInfo:
    """Normalized profile returned by any OAuth provider."""

    provider_id: str
    email: str | None = None
    nickname: str | None = None
    profile_image: str | None = None


class OAuthProvider(Protocol):
    """
    Port for a third-party identity provider (Kakao, Naver, Google, Apple).

    Implementations raise :class:`~authsvc.services._shared.errors.UnauthorizedError`
    when the provider rejects the token and
    :class:`~authsvc.services._shared.errors.ExternalApiError` when the
    provider cannot be reached.
    """

    name: str

    def verify_token(self, access_token: str) -> None: ...

    def get_user_info(self, access_token: str) -> OAuthUserInfo: ...
