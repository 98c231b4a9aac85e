"""Configuration models for an Auth0 session.

Accepts both the camelCase shape used by mobile SDK configuration files
(``{"auth0Config": {"clientId": ...}, "browserConfig": {...}}``) and
snake_case keyword arguments.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SCOPE = "offline_access openid profile email"


class Auth0Config(BaseModel):
    """Tenant and application settings for the authorization code flow.

    Fields are optional at construction so that a partially filled config
    can still be held by a session. Required fields are checked when a URL
    is built, see :mod:`auth0_pkce.primitives.urls`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    domain: str | None = None
    client_id: str | None = Field(default=None, alias="clientId")
    audience: str | None = None
    redirect_uri: str | None = Field(default=None, alias="redirectUri")
    scope: str | None = DEFAULT_SCOPE

    @property
    def effective_scope(self) -> str:
        return self.scope or DEFAULT_SCOPE

    def missing_fields(self, *names: str) -> list[str]:
        """Return the subset of ``names`` whose value is absent or empty."""
        return [name for name in names if not getattr(self, name)]


class SessionConfig(BaseModel):
    """Everything :meth:`Auth0Session.set_up` needs."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    auth0_config: Auth0Config = Field(alias="auth0Config")
    # Passed through untouched to the browser authenticator
    browser_config: dict[str, Any] = Field(
        default_factory=dict, alias="browserConfig"
    )
