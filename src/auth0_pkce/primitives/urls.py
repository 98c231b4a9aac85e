"""Authorize and logout URL construction for Auth0.

Required configuration is validated here, so a broken config surfaces as a
:class:`ConfigError` before any browser or network call.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from auth0_pkce.models.config import Auth0Config
from auth0_pkce.models.errors import ConfigError

logger = logging.getLogger(__name__)

AUTHORIZE_REQUIRED_FIELDS = ("domain", "audience", "client_id", "redirect_uri")
LOGOUT_REQUIRED_FIELDS = ("domain", "client_id", "redirect_uri")


def _encode_component(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    elif isinstance(value, Mapping):
        value = json.dumps(value, separators=(",", ":"))
    return quote(str(value), safe="")


def encode_query(params: Mapping[str, Any]) -> str:
    """Encode ``params`` as a query string, leading ``?`` included.

    ``None`` values are dropped entirely. Lists and tuples repeat the key
    once per element; mappings are serialized to compact JSON first.

    Returns:
        ``"?k=v&..."``, or ``""`` when no parameter survives
    """
    pairs: list[str] = []
    for key, value in params.items():
        if value is None:
            continue
        encoded_key = quote(str(key), safe="")
        if isinstance(value, (list, tuple)):
            pairs.extend(f"{encoded_key}={_encode_component(item)}" for item in value)
        else:
            pairs.append(f"{encoded_key}={_encode_component(value)}")

    if not pairs:
        return ""
    return "?" + "&".join(pairs)


def _require(config: Auth0Config, fields: tuple[str, ...]) -> None:
    missing = config.missing_fields(*fields)
    if missing:
        logger.error(
            f"Auth0 configuration is missing required fields: {', '.join(missing)}"
        )
        raise ConfigError(
            f"Auth0 configuration is missing required fields: {', '.join(missing)}",
            missing=missing,
        )


def build_authorize_url(
    config: Auth0Config,
    challenge: str,
    login_hint: str | None = None,
    connection: str | None = None,
    screen_hint: str | None = None,
) -> str:
    """Build the ``/authorize`` URL for the authorization code flow.

    Args:
        config: Tenant configuration
        challenge: S256 code challenge derived from the session verifier
        login_hint: Optional email or username to prefill
        connection: Optional Auth0 connection name (e.g. ``"email"``)
        screen_hint: Optional Universal Login screen (e.g. ``"signup"``)

    Raises:
        ConfigError: If domain, audience, client_id or redirect_uri is missing
    """
    _require(config, AUTHORIZE_REQUIRED_FIELDS)

    params = {
        "audience": config.audience,
        "scope": config.effective_scope,
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "code_challenge": challenge,
        "code_challenge_method": "S256",
        "login_hint": login_hint or None,
        "connection": connection or None,
        "screen_hint": screen_hint or None,
    }

    return f"https://{config.domain}/authorize{encode_query(params)}"


def build_logout_url(config: Auth0Config) -> str:
    """Build the ``/v2/logout`` URL redirecting back to ``redirect_uri``.

    Raises:
        ConfigError: If domain, client_id or redirect_uri is missing
    """
    _require(config, LOGOUT_REQUIRED_FIELDS)

    params = {
        "client_id": config.client_id,
        "returnTo": config.redirect_uri,
    }

    return f"https://{config.domain}/v2/logout{encode_query(params)}"
