"""Browser authenticator contract.

The session never drives a user agent itself. It hands URLs to an object
implementing :class:`BrowserAuthenticator`, which allows different
strategies for browser interaction:
- In-app browser tabs on mobile hosts
- System browser plus loopback redirect on desktops
  (:class:`~auth0_pkce.services.loopback.LoopbackBrowserAuthenticator`)
- Scripted authenticators in tests
"""

from __future__ import annotations

import logging
import webbrowser
from typing import Any, Callable, Protocol, runtime_checkable

from auth0_pkce.models.browser import BrowserResult

logger = logging.getLogger(__name__)

UrlOpener = Callable[[str], object]


class BrowserAuthenticator(Protocol):
    """Opens URLs in a user agent and reports how the session ended."""

    async def is_available(self) -> bool:
        """Whether an authentication session can be opened right now."""
        ...

    async def open_auth(
        self,
        url: str,
        return_url: str,
        browser_config: dict[str, Any] | None = None,
    ) -> BrowserResult:
        """Open ``url`` and wait for a redirect to ``return_url``.

        Returns:
            success with the callback URL, cancel when the user closed the
            browser, or error when the authenticator itself failed
        """
        ...


@runtime_checkable
class PrefetchingBrowserAuthenticator(BrowserAuthenticator, Protocol):
    """Authenticator that can warm up the browser ahead of time."""

    async def may_launch_url(self, url: str, hints: list[str]) -> None: ...


def open_external_url(url: str) -> bool:
    """Open ``url`` in the system browser without waiting for a result."""
    logger.debug("Opening URL in external browser")
    return webbrowser.open(url)
