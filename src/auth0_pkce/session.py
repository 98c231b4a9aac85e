"""Auth0 session orchestration.

Coordinates PKCE generation, the browser round trip, token exchange and
token storage into sign-in, sign-up, logout and access token retrieval.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from typing import Any, Callable

from auth0_pkce.models.browser import BrowserResult
from auth0_pkce.models.config import SessionConfig
from auth0_pkce.models.errors import (
    BrowserError,
    ConfigError,
    ExchangeError,
    LogoutError,
    SignInError,
    StorageError,
)
from auth0_pkce.models.security import PKCEParameters
from auth0_pkce.models.state import SessionState
from auth0_pkce.models.tokens import TokenSet
from auth0_pkce.primitives.callback import (
    DEFAULT_PASSWORDLESS_MARKER,
    is_passwordless_redirect,
    parse_callback_url,
)
from auth0_pkce.primitives.pkce import PKCEManager
from auth0_pkce.primitives.urls import build_authorize_url, build_logout_url
from auth0_pkce.services.browser import (
    BrowserAuthenticator,
    PrefetchingBrowserAuthenticator,
    UrlOpener,
    open_external_url,
)
from auth0_pkce.services.notifications import AccessTokenChannel
from auth0_pkce.services.stores import SecureStore, SettingsStore
from auth0_pkce.services.token_store import DEFAULT_NAMESPACE, TokenStore
from auth0_pkce.services.tokens import Auth0TokenClient

logger = logging.getLogger(__name__)

SIGNUP_SCREEN_HINT = "signup"
PASSWORDLESS_CONNECTION = "email"


class Auth0Session:
    """One signed-in (or signing-in) user of an Auth0 application.

    The caller owns the session and passes it wherever tokens are needed.
    Nothing is shared between instances except the stores handed in.

    Example::

        session = Auth0Session(LoopbackBrowserAuthenticator(), secure, settings)
        session.set_up({"auth0Config": {...}})
        if await session.sign_in():
            token = await session.get_access_token()
    """

    def __init__(
        self,
        authenticator: BrowserAuthenticator,
        secure_store: SecureStore,
        settings_store: SettingsStore,
        token_client: Auth0TokenClient | None = None,
        url_opener: UrlOpener = open_external_url,
        namespace: str = DEFAULT_NAMESPACE,
        passwordless_marker: str = DEFAULT_PASSWORDLESS_MARKER,
        browser_timeout: float | None = None,
        verifier_size: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize an unconfigured session.

        Args:
            authenticator: Opens authorize and logout URLs in a user agent
            secure_store: Storage for refresh and access tokens
            settings_store: Storage for expiry and cached flags
            token_client: Token endpoint client; one is created when omitted
            url_opener: Fallback used to open the logout URL when the
                authenticator is unavailable
            namespace: Prefix for every storage key
            passwordless_marker: Callback URL fragment that restarts the
                flow as an email passwordless sign-in
            browser_timeout: Seconds to wait for the authenticator before
                treating the attempt as cancelled. None waits forever.
            verifier_size: PKCE verifier length (43-128, default 128)
            clock: Seconds since the epoch, injectable for tests
        """
        self._authenticator = authenticator
        self._owns_token_client = token_client is None
        self._token_client = token_client or Auth0TokenClient()
        self._token_store = TokenStore(
            secure_store, settings_store, namespace=namespace, clock=clock
        )
        self._url_opener = url_opener
        self._passwordless_marker = passwordless_marker
        self._browser_timeout = browser_timeout
        self._pkce_manager = PKCEManager(verifier_size)

        self._config: SessionConfig | None = None
        self._pkce: PKCEParameters | None = None
        self._state = SessionState.UNCONFIGURED
        self._refresh_lock = asyncio.Lock()
        self._background: set[asyncio.Task[None]] = set()

        self.access_token_changes = AccessTokenChannel()

    # ================================
    # Properties
    # ================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def config(self) -> SessionConfig | None:
        return self._config

    @property
    def verifier(self) -> str | None:
        return self._pkce.code_verifier if self._pkce else None

    @property
    def token_store(self) -> TokenStore:
        return self._token_store

    # ================================
    # Set-up
    # ================================

    def set_up(self, config: SessionConfig | Mapping[str, Any]) -> Auth0Session:
        """Configure the session and generate a fresh PKCE verifier.

        When the authenticator supports prefetching and an event loop is
        running, the authorize URL is handed to it as a warm-up hint.
        Prefetch failures never surface.
        """
        if not isinstance(config, SessionConfig):
            config = SessionConfig.model_validate(config)

        self._config = config
        self._pkce = self._pkce_manager.generate_parameters()
        self._state = SessionState.CONFIGURED
        logger.debug(f"Session configured for {config.auth0_config.domain}")

        if isinstance(self._authenticator, PrefetchingBrowserAuthenticator):
            self._schedule_prefetch()

        return self

    def _schedule_prefetch(self) -> None:
        try:
            url = self._authorize_url()
            loop = asyncio.get_running_loop()
        except (ConfigError, RuntimeError) as e:
            logger.debug(f"Skipping browser prefetch: {e}")
            return

        task = loop.create_task(self._prefetch(url))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _prefetch(self, url: str) -> None:
        try:
            await self._authenticator.may_launch_url(url, [])
        except Exception as e:
            logger.debug(f"Browser prefetch failed: {e}")

    # ================================
    # Sign-in / sign-up
    # ================================

    async def sign_in(
        self, login_hint: str | None = None, connection: str | None = None
    ) -> bool:
        """Run the authorization code flow in the browser.

        Returns:
            True once tokens are stored, False if the user backed out

        Raises:
            ConfigError: If required configuration is missing
            SignInError: If anything else fails. All stored credentials
                have been removed by then.
        """
        return await self._authorize(
            "sign in", login_hint=login_hint, connection=connection
        )

    async def sign_up(self, login_hint: str | None = None) -> bool:
        """Like :meth:`sign_in`, opening the sign-up screen."""
        return await self._authorize(
            "sign up", login_hint=login_hint, screen_hint=SIGNUP_SCREEN_HINT
        )

    async def _authorize(
        self,
        flow: str,
        login_hint: str | None = None,
        connection: str | None = None,
        screen_hint: str | None = None,
    ) -> bool:
        config = self._require_config()
        authorize_url = self._authorize_url(
            login_hint=login_hint, connection=connection, screen_hint=screen_hint
        )

        previous_state = self._state
        self._state = SessionState.AUTHENTICATING
        logger.debug(f"Starting {flow}")

        try:
            code = await self._fetch_code(authorize_url)
            if not code:
                self._state = previous_state
                return False

            token_set = await self._token_client.exchange_code(
                config.auth0_config, code, self.verifier
            )
            self._token_store.save_token_set(token_set)
        except Exception as e:
            self._state = SessionState.CONFIGURED
            self._discard_credentials()
            raise SignInError(
                f"Error during {flow}",
                additional_info="Every token has been deleted from the device.",
            ) from e

        self._state = SessionState.AUTHENTICATED
        logger.info(f"{flow.capitalize()} completed")
        self.access_token_changes.publish(token_set.access_token)
        return True

    async def _fetch_code(self, authorize_url: str) -> str | None:
        """Drive the browser and pull the authorization code out of the callback."""
        config = self._require_config()
        return_url = config.auth0_config.redirect_uri

        result = await self._open_auth(authorize_url, return_url)

        if result.is_success() and is_passwordless_redirect(
            result.url, self._passwordless_marker
        ):
            login_hint = parse_callback_url(result.url).login_hint
            logger.info("Restarting authorization as a passwordless sign-in")
            result = await self._open_auth(
                self._authorize_url(
                    login_hint=login_hint, connection=PASSWORDLESS_CONNECTION
                ),
                return_url,
            )

        if result.is_error():
            raise BrowserError(result.message or "Browser authentication failed")
        if not result.is_success() or not result.url:
            logger.info("Authorization cancelled by the user")
            return None

        callback = parse_callback_url(result.url)
        if callback.is_error():
            logger.warning(
                f"Authorization callback contained error: {callback.error} - "
                f"{callback.error_description}"
            )
            return None
        if callback.code is None:
            logger.warning("Authorization callback missing code parameter")

        return callback.code

    async def _open_auth(self, url: str, return_url: str) -> BrowserResult:
        config = self._require_config()
        try:
            return await asyncio.wait_for(
                self._authenticator.open_auth(url, return_url, config.browser_config),
                self._browser_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for the browser authenticator")
            return BrowserResult.cancel("Timed out waiting for the browser")

    # ================================
    # Logout
    # ================================

    async def log_out(self) -> bool:
        """End the Auth0 session in the browser and forget every credential.

        Returns:
            True when logged out, False when the user cancelled the browser

        Raises:
            ConfigError: If required configuration is missing
            LogoutError: If the authenticator or storage failed
        """
        config = self._require_config()
        logout_url = build_logout_url(config.auth0_config)
        return_to = config.auth0_config.redirect_uri

        try:
            if await self._authenticator.is_available():
                result = await self._open_auth(logout_url, return_to)
                if result.is_cancel():
                    logger.info("Logout cancelled by the user")
                    return False
                if result.is_error():
                    raise BrowserError(result.message or "Browser logout failed")
            else:
                await asyncio.to_thread(self._url_opener, logout_url)

            self._token_store.clear()
        except Exception as e:
            raise LogoutError(
                "Something happened while logging out",
                logout=logout_url,
                return_to=return_to,
            ) from e

        self._state = SessionState.CONFIGURED
        self.access_token_changes.publish(None)
        logger.info("Logged out")
        return True

    # ================================
    # Tokens
    # ================================

    async def logged_in(self) -> bool:
        """Whether a user is signed in.

        Uses the cached flag when present. Otherwise tries to obtain an
        access token; any failure along the way means "not logged in".
        """
        if self._token_store.has_logged_in_flag():
            return bool(self._token_store.get_logged_in())

        try:
            access_token = await self.get_access_token()
        except Exception as e:
            logger.debug(f"Treating session as logged out: {e}")
            return False

        if access_token:
            self._token_store.set_logged_in(True)
            return True
        return False

    async def get_access_token(self, force: bool = False) -> str | None:
        """Return a valid access token, refreshing it when needed.

        Concurrent callers share a single refresh.

        Args:
            force: Discard the stored access token and refresh

        Returns:
            The access token, or None when no refresh token is stored

        Raises:
            ExchangeError: If the refresh exchange fails
        """
        config = self._require_config()

        if force:
            self._token_store.discard_access_token()

        access_token = self._token_store.get_access_token()
        if access_token:
            return access_token

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited
            access_token = self._token_store.get_access_token()
            if access_token:
                return access_token
            return await self._refresh_access_token(config)

    async def _refresh_access_token(self, config: SessionConfig) -> str | None:
        refresh_token = self._token_store.get_refresh_token()
        if not refresh_token:
            logger.debug("No refresh token stored")
            return None

        try:
            token_set = await self._token_client.exchange_refresh_token(
                config.auth0_config, refresh_token
            )
        except ExchangeError:
            self._state = SessionState.CONFIGURED
            raise

        if token_set is None:
            return None

        self._token_store.save_token_set(token_set)
        self._state = SessionState.AUTHENTICATED
        logger.info("Access token refreshed")
        self.access_token_changes.publish(token_set.access_token)
        return token_set.access_token

    def set_tokens(self, token_set: TokenSet | Mapping[str, Any]) -> None:
        """Store tokens obtained outside of this session's own flows."""
        if not isinstance(token_set, TokenSet):
            token_set = TokenSet.model_validate(token_set)

        self._token_store.save_token_set(token_set)
        if self._state is not SessionState.UNCONFIGURED:
            self._state = SessionState.AUTHENTICATED
        self.access_token_changes.publish(token_set.access_token)

    async def get_user_info(self, force: bool = False) -> dict[str, Any] | None:
        """Return the user's profile, from cache unless ``force``.

        Returns:
            The profile, or None when no access token can be obtained

        Raises:
            FetchError: If the user-info endpoint answers with a non-200
        """
        config = self._require_config()

        if not force:
            cached = self._token_store.get_user_info()
            if cached is not None:
                return cached

        access_token = await self.get_access_token()
        if not access_token:
            logger.debug("No access token available for user info")
            return None

        user_info = await self._token_client.fetch_user_info(
            config.auth0_config, access_token
        )
        self._token_store.set_user_info(user_info)
        return user_info

    # ================================
    # Helpers
    # ================================

    def _require_config(self) -> SessionConfig:
        if self._config is None:
            raise ConfigError("Session is not configured")
        return self._config

    def _authorize_url(
        self,
        login_hint: str | None = None,
        connection: str | None = None,
        screen_hint: str | None = None,
    ) -> str:
        config = self._require_config()
        return build_authorize_url(
            config.auth0_config,
            self._pkce.code_challenge,
            login_hint=login_hint,
            connection=connection,
            screen_hint=screen_hint,
        )

    def _discard_credentials(self) -> None:
        try:
            self._token_store.clear()
        except StorageError as e:
            logger.error(f"Failed to clear credentials: {e}")
        self.access_token_changes.publish(None)

    async def close(self) -> None:
        """Cancel background work and close the token client if owned."""
        background = list(self._background)
        for task in background:
            task.cancel()
        if background:
            await asyncio.gather(*background, return_exceptions=True)
        if self._owns_token_client:
            await self._token_client.close()
