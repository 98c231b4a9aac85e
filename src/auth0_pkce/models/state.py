"""Session lifecycle states."""

from __future__ import annotations

from enum import Enum


class SessionState(str, Enum):
    """Lifecycle of an :class:`~auth0_pkce.session.Auth0Session`.

    UNCONFIGURED -> CONFIGURED -> AUTHENTICATING -> AUTHENTICATED, falling
    back to CONFIGURED on logout or a failed token exchange.
    """

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
