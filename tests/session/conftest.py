from typing import Any
from unittest.mock import AsyncMock

import pytest

from auth0_pkce.models.browser import BrowserResult
from auth0_pkce.services.stores import InMemorySecureStore, InMemorySettingsStore
from auth0_pkce.services.tokens import Auth0TokenClient
from auth0_pkce.session import Auth0Session

REDIRECT_URI = "app://callback"

CONFIG = {
    "auth0Config": {
        "domain": "tenant.auth0.com",
        "clientId": "client-456",
        "audience": "https://api.example.com",
        "redirectUri": REDIRECT_URI,
    },
    "browserConfig": {"toolbarColor": "#000000"},
}


class MockBrowserAuthenticator:
    """Browser authenticator replaying scripted results."""

    def __init__(self, available: bool = True):
        self.available = available
        self.results: list[BrowserResult | Exception] = []
        self.opened: list[dict[str, Any]] = []
        self.prefetched: list[str] = []

    def queue(self, *results: BrowserResult | Exception) -> None:
        self.results.extend(results)

    async def is_available(self) -> bool:
        return self.available

    async def may_launch_url(self, url: str, hints: list[str]) -> None:
        self.prefetched.append(url)

    async def open_auth(
        self, url: str, return_url: str, browser_config: dict[str, Any] | None = None
    ) -> BrowserResult:
        self.opened.append(
            {"url": url, "return_url": return_url, "browser_config": browser_config}
        )
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def session_config() -> dict[str, Any]:
    return CONFIG


@pytest.fixture
def authenticator() -> MockBrowserAuthenticator:
    return MockBrowserAuthenticator()


@pytest.fixture
def token_client() -> AsyncMock:
    return AsyncMock(spec=Auth0TokenClient)


@pytest.fixture
def secure_store() -> InMemorySecureStore:
    return InMemorySecureStore()


@pytest.fixture
def settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session(authenticator, token_client, secure_store, settings_store, clock):
    return Auth0Session(
        authenticator,
        secure_store,
        settings_store,
        token_client=token_client,
        clock=clock,
    )


@pytest.fixture
def configured_session(session):
    return session.set_up(CONFIG)
