# authsvc/services/auth/service.py
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from authsvc.services._shared.errors import NotFoundError, UnauthorizedError
from authsvc.services._shared.ports import (
    AppIdentity,
    CredentialHasher,
    IdentityResolver,
    RefreshTokenStore,
    TokenCodec,
    UserIdentity,
    UserUpsert,
)
from authsvc.services.auth import probe
from authsvc.services.auth.dto import (
    AuthTokenConfig,
    LoginResultOut,
    LogoutIn,
    OAuthLoginIn,
    RefreshIn,
    TokenPairOut,
)
from authsvc.services.auth.providers import OAuthProviderRegistry
from authsvc.services.auth.rotation import IssuedTokens, RotationEngine, utc_now
from authsvc.services.auth.signer_cache import SigningClientCache


class AuthService:
    """
    Authentication lifecycle service (login / refresh / logout).

    This is the boundary consumed by HTTP handlers. It resolves the tenant
    and user, then delegates every token decision to :class:`RotationEngine`.
    Failures raised by the engine propagate unchanged so the HTTP layer can
    surface their specific ``code``.
    """

    def __init__(
        self,
        *,
        resolver: IdentityResolver,
        store: RefreshTokenStore,
        codec: TokenCodec,
        hasher: CredentialHasher,
        providers: OAuthProviderRegistry | None = None,
        config: AuthTokenConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param resolver: Tenant and user lookup.
        :param store: Stateful store for refresh tokens (atomic rotation).
        :param codec: Adapter for signing/verifying JWTs.
        :param hasher: Digest function for refresh tokens at rest.
        :param providers: OAuth provider registry used by :meth:`oauth_login`.
        :param config: Grace period configuration.
        :param clock: Source of the current UTC instant.
        """
        self.resolver = resolver
        self.providers = providers or OAuthProviderRegistry()
        self.cfg = config or AuthTokenConfig()
        self.clock = clock
        self.signers = SigningClientCache(codec)
        self.engine = RotationEngine(
            store=store,
            codec=codec,
            hasher=hasher,
            resolver=resolver,
            signers=self.signers,
            grace_period=self.cfg.grace_period,
            clock=clock,
        )

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, user: UserIdentity, app: AppIdentity) -> TokenPairOut:
        """
        Issue a fresh token pair for an already authenticated principal.

        :param user: Authenticated user.
        :param app: Tenant the user signed into.
        :returns: Access/Refresh token pair.
        """
        return self._pair(self.engine.issue(user, app))

    def oauth_login(self, dto: OAuthLoginIn) -> LoginResultOut:
        """
        Authenticate through an OAuth provider and issue a token pair.

        :param dto: Login input.
        :returns: Token pair, user and app.
        :raises NotFoundError: If the app code is unknown or inactive.
        :raises ValidationError: If the provider is unsupported or unconfigured.
        """
        app = self.resolver.find_app_by_code(dto.code)
        if app is None or not app.is_active:
            raise NotFoundError("App", dto.code)

        provider = self.providers.create(dto.provider, app)
        try:
            provider.verify_token(dto.access_token)
            info = provider.get_user_info(dto.access_token)
            user, created = self.resolver.upsert_user(
                UserUpsert(
                    app_id=app.id,
                    provider=dto.provider.lower(),
                    provider_id=info.provider_id,
                    email=info.email,
                    nickname=info.nickname,
                    profile_image=info.profile_image,
                ),
                now=self.clock(),
            )
            if created:
                probe.user_registered(user_id=user.id, provider=user.provider, app_code=app.code)
            tokens = self.login(user, app)
        except Exception as exc:
            probe.login_failed(provider=dto.provider, app_code=app.code, reason=str(exc))
            raise

        probe.login_success(user_id=user.id, provider=user.provider, app_code=app.code)
        return LoginResultOut(tokens=tokens, user=user, app=app)

    # ------------------------------------------------------------------ #
    # Refresh / Logout
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> TokenPairOut:
        """Rotate a refresh token and emit a new token pair."""
        return self._pair(self.engine.refresh(dto.refresh_token))

    def logout(self, dto: LogoutIn) -> None:
        """Revoke the presented refresh token, or all of its user's sessions."""
        self.engine.revoke(dto.refresh_token, revoke_all=dto.revoke_all)

    # ------------------------------------------------------------------ #
    # Current principal
    # ------------------------------------------------------------------ #

    def current_user(self, user_id: int, app_id: int) -> UserIdentity:
        """
        Load the principal of a verified access token.

        :raises UnauthorizedError: If the user no longer exists in that app.
        """
        user = self.resolver.find_user_by_id(user_id)
        if user is None or user.app_id != app_id:
            raise UnauthorizedError()
        return user

    @staticmethod
    def _pair(issued: IssuedTokens) -> TokenPairOut:
        return TokenPairOut(
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
            expires_in=issued.expires_in,
        )
