# authsvc/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from authsvc.services._shared.ports import AppIdentity, UserIdentity

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class OAuthLoginIn:
    """
    Input DTO for an OAuth login.

    :param code: Tenant app code (e.g. ``"fitness-app"``).
    :type code: str
    :param provider: Provider name (``kakao``, ``naver``, ``google``, ``apple``).
    :type provider: str
    :param access_token: Access token issued to the client by the provider.
    :type access_token: str
    """

    code: str
    provider: str
    access_token: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    """

    refresh_token: str


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout.

    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    :param revoke_all: If True, revoke every session of the token's user.
    :type revoke_all: bool
    """

    refresh_token: str
    revoke_all: bool = False


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access JWT.
    :type access_token: str
    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    :param expires_in: Access token lifetime in seconds.
    :type expires_in: int
    """

    access_token: str
    refresh_token: str
    expires_in: int


@dataclass(frozen=True, slots=True)
class LoginResultOut:
    """Token pair plus the principal it was issued to."""

    tokens: TokenPairOut
    user: UserIdentity
    app: AppIdentity


# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthTokenConfig:
    """
    Token lifecycle configuration.

    Lifetimes are per tenant (see :class:`AppIdentity`); only the rotation
    grace period is global.

    :param grace_period: Window in which a just-rotated token may be
        re-presented without being treated as reuse.
    :type grace_period: timedelta
    """

    grace_period: timedelta = timedelta(seconds=5)
