"""Callback URL parsing for the authorization redirect."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

DEFAULT_PASSWORDLESS_MARKER = "/passwordless"


@dataclass(frozen=True)
class AuthorizationCallback:
    """Parameters carried by the redirect back to the application."""

    code: str | None = None
    state: str | None = None
    login_hint: str | None = None
    error: str | None = None
    error_description: str | None = None

    def is_success(self) -> bool:
        return self.error is None and self.code is not None

    def is_error(self) -> bool:
        return self.error is not None


def parse_callback_url(callback_url: str) -> AuthorizationCallback:
    """Parse a redirect URL into its named query parameters.

    Only the first value of a repeated parameter is kept. Empty values are
    treated as absent.
    """
    parsed = urlparse(callback_url)
    query_params = parse_qs(parsed.query)

    def get_single_param(key: str) -> str | None:
        values = query_params.get(key, [])
        return values[0] if values and values[0] else None

    return AuthorizationCallback(
        code=get_single_param("code"),
        state=get_single_param("state"),
        login_hint=get_single_param("login_hint"),
        error=get_single_param("error"),
        error_description=get_single_param("error_description"),
    )


def is_passwordless_redirect(
    callback_url: str | None, marker: str = DEFAULT_PASSWORDLESS_MARKER
) -> bool:
    """Whether the login page asked to restart as a passwordless sign-in."""
    return bool(callback_url and marker and marker in callback_url)
