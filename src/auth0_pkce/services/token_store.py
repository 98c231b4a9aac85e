"""Persistent token lifecycle on top of a secure store and a settings store.

Persisted layout, every key prefixed with ``"{namespace}/"``:

==============================  ========  ===========================
key                             store     value
==============================  ========  ===========================
``auth0_refresh_token``         secure    refresh token
``auth0_access_token``          secure    access token
``auth0_access_token_expire``   settings  expiry, epoch milliseconds
``auth0_user_info``             settings  user info, JSON string
``auth0_user_logged_in``        settings  boolean
==============================  ========  ===========================
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

from auth0_pkce.models.errors import StorageError
from auth0_pkce.models.tokens import TokenSet
from auth0_pkce.services.stores import SecureStore, SettingsStore

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "auth0_pkce"

REFRESH_TOKEN_KEY = "auth0_refresh_token"
ACCESS_TOKEN_KEY = "auth0_access_token"
ACCESS_TOKEN_EXPIRE_KEY = "auth0_access_token_expire"
USER_INFO_KEY = "auth0_user_info"
LOGGED_IN_KEY = "auth0_user_logged_in"


class TokenStore:
    """Stores, validates and clears the credentials of one session."""

    def __init__(
        self,
        secure_store: SecureStore,
        settings_store: SettingsStore,
        namespace: str = DEFAULT_NAMESPACE,
        clock: Callable[[], float] = time.time,
    ):
        self._secure = secure_store
        self._settings = settings_store
        self._namespace = namespace
        self._clock = clock

    def key(self, name: str) -> str:
        return f"{self._namespace}/{name}"

    @property
    def keys(self) -> dict[str, str]:
        """All five namespaced keys, by unprefixed name."""
        return {
            name: self.key(name)
            for name in (
                REFRESH_TOKEN_KEY,
                ACCESS_TOKEN_KEY,
                ACCESS_TOKEN_EXPIRE_KEY,
                USER_INFO_KEY,
                LOGGED_IN_KEY,
            )
        }

    # ================================
    # Tokens
    # ================================

    def save_token_set(self, token_set: TokenSet) -> None:
        """Persist a token set as one all-or-nothing write.

        The refresh token is written only when the set carries one, so a
        refresh response never erases the stored refresh token.

        Raises:
            StorageError: If any write fails. Previous values are restored.
        """
        refresh_key = self.key(REFRESH_TOKEN_KEY)
        access_key = self.key(ACCESS_TOKEN_KEY)
        expire_key = self.key(ACCESS_TOKEN_EXPIRE_KEY)

        snapshot = (
            self._secure.get(refresh_key),
            self._secure.get(access_key),
            self._settings.get_number(expire_key),
        )
        expires_at = token_set.expires_at_millis(self._clock())

        try:
            if token_set.refresh_token:
                self._secure.set(refresh_key, token_set.refresh_token)
            self._secure.set(access_key, token_set.access_token)
            if expires_at is None:
                self._settings.remove(expire_key)
            else:
                self._settings.set_number(expire_key, expires_at)
        except Exception as e:
            self._restore(snapshot)
            raise StorageError(f"Failed to store tokens: {e}") from e

        logger.debug(f"Stored token set expiring at {expires_at}")

    def _restore(self, snapshot: tuple[str | None, str | None, float | None]) -> None:
        refresh_token, access_token, expires_at = snapshot
        steps: list[tuple[str, Callable[[], None]]] = [
            (
                REFRESH_TOKEN_KEY,
                lambda: self._write_secure(self.key(REFRESH_TOKEN_KEY), refresh_token),
            ),
            (
                ACCESS_TOKEN_KEY,
                lambda: self._write_secure(self.key(ACCESS_TOKEN_KEY), access_token),
            ),
            (
                ACCESS_TOKEN_EXPIRE_KEY,
                lambda: self._write_number(
                    self.key(ACCESS_TOKEN_EXPIRE_KEY), expires_at
                ),
            ),
        ]
        for name, step in steps:
            try:
                step()
            except Exception as e:
                logger.error(f"Failed to roll back {name}: {e}")

    def _write_secure(self, key: str, value: str | None) -> None:
        if value is None:
            self._secure.remove(key)
        else:
            self._secure.set(key, value)

    def _write_number(self, key: str, value: float | None) -> None:
        if value is None:
            self._settings.remove(key)
        else:
            self._settings.set_number(key, value)

    def get_access_token(self) -> str | None:
        """Return the stored access token if it has not expired yet.

        A token without a recorded expiry counts as expired.
        """
        token = self._secure.get(self.key(ACCESS_TOKEN_KEY))
        expires_at = self._settings.get_number(self.key(ACCESS_TOKEN_EXPIRE_KEY))
        if not token or not expires_at:
            return None
        if self._clock() * 1000 > expires_at:
            return None
        return token

    def discard_access_token(self) -> None:
        self._secure.remove(self.key(ACCESS_TOKEN_KEY))

    def get_refresh_token(self) -> str | None:
        return self._secure.get(self.key(REFRESH_TOKEN_KEY)) or None

    # ================================
    # Cached session flags
    # ================================

    def get_user_info(self) -> dict[str, Any] | None:
        raw = self._settings.get_string(self.key(USER_INFO_KEY))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable cached user info")
            self._settings.remove(self.key(USER_INFO_KEY))
            return None

    def set_user_info(self, user_info: dict[str, Any]) -> None:
        self._settings.set_string(self.key(USER_INFO_KEY), json.dumps(user_info))

    def has_logged_in_flag(self) -> bool:
        return self._settings.has_key(self.key(LOGGED_IN_KEY))

    def get_logged_in(self) -> bool | None:
        if not self.has_logged_in_flag():
            return None
        return self._settings.get_boolean(self.key(LOGGED_IN_KEY))

    def set_logged_in(self, value: bool) -> None:
        self._settings.set_boolean(self.key(LOGGED_IN_KEY), value)

    # ================================
    # Invalidation
    # ================================

    def clear(self) -> None:
        """Remove every token and cached flag.

        Each removal is attempted even when an earlier one fails, so a
        single broken key cannot leave the others behind.

        Raises:
            StorageError: Listing every key that could not be removed
        """
        removals: list[tuple[str, Callable[[str], None]]] = [
            (REFRESH_TOKEN_KEY, self._secure.remove),
            (ACCESS_TOKEN_KEY, self._secure.remove),
            (ACCESS_TOKEN_EXPIRE_KEY, self._settings.remove),
            (USER_INFO_KEY, self._settings.remove),
            (LOGGED_IN_KEY, self._settings.remove),
        ]

        failed: list[str] = []
        for name, remove in removals:
            try:
                remove(self.key(name))
            except Exception as e:
                logger.error(f"Failed to remove {self.key(name)}: {e}")
                failed.append(name)

        if failed:
            raise StorageError(
                f"Failed to clear stored credentials: {', '.join(failed)}",
                failed=failed,
            )

        logger.debug("Cleared stored credentials")
