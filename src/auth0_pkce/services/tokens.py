"""Auth0 token endpoint and user-info client.

Implements RFC 6749 token endpoint interactions with PKCE (RFC 7636):
authorization code exchange, refresh token exchange, and the OpenID
Connect user-info request.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from auth0_pkce.models.config import Auth0Config
from auth0_pkce.models.errors import ExchangeError, FetchError
from auth0_pkce.models.tokens import TokenSet

logger = logging.getLogger(__name__)


def token_endpoint(config: Auth0Config) -> str:
    return f"https://{config.domain}/oauth/token"


def userinfo_endpoint(config: Auth0Config) -> str:
    return f"https://{config.domain}/userinfo"


class Auth0TokenClient:
    """Performs the token exchanges and user-info fetch against a tenant.

    Handles the token endpoint interactions including:
    - Authorization code to token exchange (RFC 6749 Section 4.1.3)
    - Access token refresh (RFC 6749 Section 6)
    - PKCE code verification (RFC 7636)

    Uses application/x-www-form-urlencoded encoding for token requests.
    """

    def __init__(
        self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None
    ):
        """Initialize the token client.

        Args:
            timeout: HTTP request timeout in seconds
            http_client: Optional pre-configured client. When omitted one is
                created and owned by this instance.
        """
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code(
        self, config: Auth0Config, code: str | None, verifier: str | None
    ) -> TokenSet:
        """Exchange an authorization code for tokens.

        Args:
            config: Tenant configuration
            code: Authorization code extracted from the callback URL
            verifier: PKCE verifier whose challenge was sent to /authorize

        Returns:
            TokenSet: Tokens issued for the code

        Raises:
            ExchangeError: If code or verifier is empty, or the exchange fails
        """
        if not code or not verifier:
            raise ExchangeError("Missing code or verifier")

        form_data = {
            "grant_type": "authorization_code",
            "client_id": config.client_id,
            "code": code,
            "code_verifier": verifier,
            "audience": config.audience,
            "redirect_uri": config.redirect_uri,
        }

        logger.debug(
            f"Exchanging authorization code at {token_endpoint(config)} "
            f"for client {config.client_id}"
        )
        return await self._post_token_request(config, form_data, "code exchange")

    async def exchange_refresh_token(
        self, config: Auth0Config, refresh_token: str | None
    ) -> TokenSet | None:
        """Exchange a refresh token for a new token set.

        Returns:
            The new TokenSet, or None when no refresh token was supplied

        Raises:
            ExchangeError: If the exchange fails
        """
        if not refresh_token:
            return None

        form_data = {
            "grant_type": "refresh_token",
            "client_id": config.client_id,
            "refresh_token": refresh_token,
        }

        logger.debug(f"Refreshing access token at {token_endpoint(config)}")
        return await self._post_token_request(config, form_data, "token refresh")

    async def fetch_user_info(
        self, config: Auth0Config, access_token: str | None
    ) -> dict[str, Any]:
        """Fetch the OpenID Connect profile of the signed-in user.

        Raises:
            FetchError: On transport failure or a non-200 response
        """
        url = userinfo_endpoint(config)
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {access_token or ''}",
        }

        try:
            response = await self._http_client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise FetchError(
                f"HTTP error while fetching user info: {e}", url=url
            ) from e

        if response.status_code != 200:
            logger.warning(f"User info request failed with {response.status_code}")
            raise FetchError(
                "Failed to get the user's info",
                url=url,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            user_info = response.json()
            if not isinstance(user_info, dict):
                raise ValueError(
                    f"expected a JSON object, got {type(user_info).__name__}"
                )
        except ValueError as e:
            raise FetchError(
                f"Invalid user info response: {e}",
                url=url,
                status_code=response.status_code,
                body=response.text,
            ) from e

        return user_info

    async def _post_token_request(
        self, config: Auth0Config, form_data: dict[str, Any], operation: str
    ) -> TokenSet:
        url = token_endpoint(config)
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }

        try:
            response = await self._http_client.post(
                url,
                data={k: v for k, v in form_data.items() if v is not None},
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise ExchangeError(f"HTTP error during {operation}: {e}", url=url) from e

        return self._parse_token_response(response, url, operation)

    def _parse_token_response(
        self, response: httpx.Response, url: str, operation: str
    ) -> TokenSet:
        """Parse a token endpoint response into a TokenSet.

        Raises:
            ExchangeError: For non-2xx status, non-JSON bodies, or a
                success body without ``access_token``
        """
        if not 200 <= response.status_code < 300:
            error_code, error_description = "unknown_error", response.text
            try:
                response_data = response.json()
            except ValueError:
                response_data = None
            if isinstance(response_data, dict):
                error_code = response_data.get("error", error_code)
                error_description = response_data.get(
                    "error_description", error_description
                )

            logger.warning(
                f"Token {operation} failed with {response.status_code}: "
                f"{error_code} - {error_description}"
            )
            raise ExchangeError(
                f"Token {operation} failed with status {response.status_code}: "
                f"{error_code}",
                url=url,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            response_data = response.json()
            if not isinstance(response_data, dict):
                raise ValueError(
                    f"expected a JSON object, got {type(response_data).__name__}"
                )
            if "access_token" not in response_data:
                raise ExchangeError(
                    "Token response missing required access_token",
                    url=url,
                    status_code=response.status_code,
                )
            token_set = TokenSet.model_validate(response_data)
        except (ValueError, ValidationError) as e:
            raise ExchangeError(
                f"Invalid token response format: {e}",
                url=url,
                status_code=response.status_code,
                body=response.text,
            ) from e

        logger.info(f"Token {operation} successful")
        return token_set

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
