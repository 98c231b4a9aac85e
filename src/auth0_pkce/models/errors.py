"""Exception hierarchy for Auth0 PKCE client errors.

Provides specific exception types for different failure modes to enable
precise error handling and recovery strategies. Every error carries a
``context`` dict with whatever diagnostic data was at hand (URL, status
code, response body) and keeps the original cause via ``raise ... from``.
"""

from __future__ import annotations

from typing import Any


class Auth0Error(Exception):
    """Base exception for all Auth0 client errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class ConfigError(Auth0Error):
    """Raised when required configuration fields are missing or empty.

    Always raised before any network or browser call is made.
    """

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message, missing=missing or [])
        self.missing = missing or []


class ExchangeError(Auth0Error):
    """Raised when a token endpoint exchange fails.

    Covers transport errors, non-2xx responses and malformed token
    responses.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message, url=url, status_code=status_code, body=body)
        self.url = url
        self.status_code = status_code
        self.body = body


class FetchError(ExchangeError):
    """Raised when the user-info endpoint answers with a non-200 status."""

    pass


class SignInError(Auth0Error):
    """Raised when the sign-in or sign-up flow fails.

    Every stored token has been deleted by the time this is raised.
    """

    pass


class LogoutError(Auth0Error):
    """Raised when the authenticator fails while logging out."""

    pass


class BrowserError(Auth0Error):
    """Raised when the browser authenticator reports an error result."""

    pass


class StorageError(Auth0Error):
    """Raised when a composite write or clear on the token store fails.

    A failed write has already been rolled back when this is raised.
    """

    pass
