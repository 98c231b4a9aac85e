"""Tests for Auth0 token exchange and user info.

High-impact tests covering the token endpoint:
- Authorization code exchange and its preconditions
- Refresh token exchange
- Error response handling
- User info fetch
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from auth0_pkce.models.config import Auth0Config
from auth0_pkce.models.errors import ExchangeError, FetchError
from auth0_pkce.services.tokens import Auth0TokenClient


def make_response(status_code: int, json_data=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    if json_data is None:
        response.json.side_effect = ValueError("Not valid JSON")
    else:
        response.json.return_value = json_data
    response.text = text
    return response


CONFIG = Auth0Config(
    domain="tenant.auth0.com",
    client_id="client-456",
    audience="https://api.example.com",
    redirect_uri="app://callback",
)


class TestCodeExchange:
    """Test authorization code to token exchange."""

    def setup_method(self):
        # Arrange
        self.client = Auth0TokenClient()
        self.client._http_client = AsyncMock()
        self.verifier = "v" * 128

    async def test_successful_exchange(self):
        # Arrange
        self.client._http_client.post.return_value = make_response(
            200,
            {
                "access_token": "access-token-xyz",
                "refresh_token": "refresh-token-abc",
                "expires_in": 3600,
                "token_type": "Bearer",
            },
        )

        # Act
        token_set = await self.client.exchange_code(CONFIG, "auth-code-123", self.verifier)

        # Assert
        assert token_set.access_token == "access-token-xyz"
        assert token_set.refresh_token == "refresh-token-abc"
        assert token_set.expires_in == 3600

        self.client._http_client.post.assert_awaited_once()
        call_args = self.client._http_client.post.call_args
        assert call_args[0][0] == "https://tenant.auth0.com/oauth/token"

        form_data = call_args[1]["data"]
        assert form_data == {
            "grant_type": "authorization_code",
            "client_id": "client-456",
            "code": "auth-code-123",
            "code_verifier": self.verifier,
            "audience": "https://api.example.com",
            "redirect_uri": "app://callback",
        }
        headers = call_args[1]["headers"]
        assert headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert headers["Accept"] == "application/json"

    @pytest.mark.parametrize("code,verifier", [("", "v" * 43), ("code", ""), (None, None)])
    async def test_missing_code_or_verifier_fails_before_request(self, code, verifier):
        # Act & Assert
        with pytest.raises(ExchangeError, match="Missing code or verifier"):
            await self.client.exchange_code(CONFIG, code, verifier)

        self.client._http_client.post.assert_not_awaited()

    async def test_error_response_raises_exchange_error(self):
        # Arrange
        self.client._http_client.post.return_value = make_response(
            400,
            {"error": "invalid_grant", "error_description": "Code expired"},
            text='{"error":"invalid_grant"}',
        )

        # Act & Assert
        with pytest.raises(ExchangeError) as exc_info:
            await self.client.exchange_code(CONFIG, "expired", self.verifier)

        error = exc_info.value
        assert error.status_code == 400
        assert error.url == "https://tenant.auth0.com/oauth/token"
        assert error.body == '{"error":"invalid_grant"}'
        assert "invalid_grant" in str(error)

    async def test_non_json_error_response_raises_exchange_error(self):
        # Arrange
        self.client._http_client.post.return_value = make_response(
            502, text="<html>Bad gateway</html>"
        )

        # Act & Assert
        with pytest.raises(ExchangeError) as exc_info:
            await self.client.exchange_code(CONFIG, "code", self.verifier)

        assert exc_info.value.status_code == 502

    async def test_network_error_is_wrapped(self):
        # Arrange
        cause = httpx.ConnectError("Connection failed")
        self.client._http_client.post.side_effect = cause

        # Act & Assert
        with pytest.raises(ExchangeError) as exc_info:
            await self.client.exchange_code(CONFIG, "code", self.verifier)

        assert exc_info.value.__cause__ is cause
        assert exc_info.value.url == "https://tenant.auth0.com/oauth/token"

    async def test_success_without_access_token(self):
        # Arrange
        self.client._http_client.post.return_value = make_response(
            200, {"token_type": "Bearer"}
        )

        # Act & Assert
        with pytest.raises(ExchangeError, match="missing required access_token"):
            await self.client.exchange_code(CONFIG, "code", self.verifier)

    async def test_invalid_json_success_response(self):
        # Arrange
        self.client._http_client.post.return_value = make_response(200, text="oops")

        # Act & Assert
        with pytest.raises(ExchangeError, match="Invalid token response format"):
            await self.client.exchange_code(CONFIG, "code", self.verifier)


class TestRefreshExchange:
    """Test refresh token exchange."""

    def setup_method(self):
        # Arrange
        self.client = Auth0TokenClient()
        self.client._http_client = AsyncMock()

    async def test_successful_refresh(self):
        # Arrange
        self.client._http_client.post.return_value = make_response(
            200, {"access_token": "new-access", "expires_in": 86400}
        )

        # Act
        token_set = await self.client.exchange_refresh_token(CONFIG, "refresh-abc")

        # Assert
        assert token_set.access_token == "new-access"
        assert token_set.refresh_token is None

        form_data = self.client._http_client.post.call_args[1]["data"]
        assert form_data == {
            "grant_type": "refresh_token",
            "client_id": "client-456",
            "refresh_token": "refresh-abc",
        }

    @pytest.mark.parametrize("refresh_token", [None, ""])
    async def test_no_refresh_token_returns_none(self, refresh_token):
        # Act
        result = await self.client.exchange_refresh_token(CONFIG, refresh_token)

        # Assert
        assert result is None
        self.client._http_client.post.assert_not_awaited()

    @pytest.mark.parametrize(
        "status_code,body",
        [(502, ["bad gateway"]), (400, "oops"), (500, 42)],
    )
    async def test_error_response_with_non_object_body(self, status_code, body):
        # Arrange
        self.client._http_client.post.return_value = make_response(
            status_code, body, text="raw-body"
        )

        # Act & Assert
        with pytest.raises(ExchangeError) as exc_info:
            await self.client.exchange_refresh_token(CONFIG, "refresh-abc")

        assert exc_info.value.status_code == status_code
        assert exc_info.value.body == "raw-body"
        assert "unknown_error" in str(exc_info.value)

    @pytest.mark.parametrize("body", [42, "token", ["access_token"]])
    async def test_success_response_with_non_object_body(self, body):
        # Arrange
        self.client._http_client.post.return_value = make_response(200, body)

        # Act & Assert
        with pytest.raises(ExchangeError, match="Invalid token response format"):
            await self.client.exchange_refresh_token(CONFIG, "refresh-abc")

    async def test_refresh_failure(self):
        # Arrange
        self.client._http_client.post.return_value = make_response(
            403, {"error": "invalid_grant"}, text="forbidden"
        )

        # Act & Assert
        with pytest.raises(ExchangeError) as exc_info:
            await self.client.exchange_refresh_token(CONFIG, "revoked")

        assert exc_info.value.status_code == 403


class TestFetchUserInfo:
    def setup_method(self):
        # Arrange
        self.client = Auth0TokenClient()
        self.client._http_client = AsyncMock()

    async def test_successful_fetch(self):
        # Arrange
        self.client._http_client.get.return_value = make_response(
            200, {"sub": "auth0|123", "email": "jane@example.com"}
        )

        # Act
        user_info = await self.client.fetch_user_info(CONFIG, "access-xyz")

        # Assert
        assert user_info == {"sub": "auth0|123", "email": "jane@example.com"}
        call_args = self.client._http_client.get.call_args
        assert call_args[0][0] == "https://tenant.auth0.com/userinfo"
        assert call_args[1]["headers"]["Authorization"] == "Bearer access-xyz"

    async def test_non_200_raises_fetch_error(self):
        # Arrange
        self.client._http_client.get.return_value = make_response(
            401, {"error": "unauthorized"}, text="Unauthorized"
        )

        # Act & Assert
        with pytest.raises(FetchError) as exc_info:
            await self.client.fetch_user_info(CONFIG, "expired")

        assert isinstance(exc_info.value, ExchangeError)
        assert exc_info.value.status_code == 401
        assert exc_info.value.body == "Unauthorized"
        assert exc_info.value.url == "https://tenant.auth0.com/userinfo"

    async def test_non_object_body_raises_fetch_error(self):
        # Arrange
        self.client._http_client.get.return_value = make_response(200, ["sub"])

        # Act & Assert
        with pytest.raises(FetchError, match="Invalid user info response"):
            await self.client.fetch_user_info(CONFIG, "access-xyz")


class TestClose:
    async def test_close_closes_http_client(self):
        # Arrange
        client = Auth0TokenClient()
        client._http_client = AsyncMock()

        # Act
        await client.close()

        # Assert
        client._http_client.aclose.assert_awaited_once()
