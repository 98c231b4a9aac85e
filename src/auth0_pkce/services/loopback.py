"""Desktop browser authenticator using a loopback redirect.

Opens the system browser on the authorize URL and serves the redirect URI
on a short-lived local HTTP server. The first request that reaches the
redirect path completes the session.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import webbrowser
from typing import Any
from urllib.parse import urlparse

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from auth0_pkce.models.browser import BrowserResult
from auth0_pkce.services.browser import UrlOpener, open_external_url

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")

COMPLETED_PAGE = (
    "<html><body><h2>You can close this window and return to the "
    "application.</h2></body></html>"
)


class LoopbackBrowserAuthenticator:
    """Browser authenticator for desktop applications.

    The redirect URI configured on the Auth0 application must be an
    ``http`` loopback address with an explicit port, e.g.
    ``http://127.0.0.1:8765/callback``.

    ``browser_config`` understands one key, ``timeout``, overriding the
    instance timeout in seconds.
    """

    def __init__(self, timeout: float = 300.0, opener: UrlOpener = open_external_url):
        self.timeout = timeout
        self._opener = opener

    async def is_available(self) -> bool:
        try:
            webbrowser.get()
        except webbrowser.Error:
            return False
        return True

    async def may_launch_url(self, url: str, hints: list[str]) -> None:
        # System browsers expose no warm-up hook
        logger.debug("Browser prefetch not supported for loopback redirects")

    def build_app(self, callback_path: str, callback: asyncio.Future[str]) -> Starlette:
        """Build the one-route app resolving ``callback`` with the redirect URL."""

        async def handle_redirect(request: Request) -> Response:
            if not callback.done():
                callback.set_result(str(request.url))
            return HTMLResponse(COMPLETED_PAGE)

        return Starlette(routes=[Route(callback_path, handle_redirect, methods=["GET"])])

    async def open_auth(
        self,
        url: str,
        return_url: str,
        browser_config: dict[str, Any] | None = None,
    ) -> BrowserResult:
        parsed = urlparse(return_url)
        if (
            parsed.scheme != "http"
            or parsed.hostname not in LOOPBACK_HOSTS
            or not parsed.port
        ):
            return BrowserResult.error(
                f"Return URL must be an http loopback address with a port: {return_url}"
            )

        timeout = (browser_config or {}).get("timeout", self.timeout)

        try:
            sock = _bind_socket(parsed.hostname, parsed.port)
        except OSError as e:
            return BrowserResult.error(f"Cannot listen on {parsed.netloc}: {e}")

        callback: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        app = self.build_app(parsed.path or "/", callback)
        server = uvicorn.Server(
            uvicorn.Config(app=app, log_level="warning", lifespan="off")
        )
        serve_task = asyncio.create_task(server.serve(sockets=[sock]))
        logger.debug(f"Waiting for browser redirect on {parsed.netloc}")

        try:
            opened = await asyncio.to_thread(self._opener, url)
            if opened is False:
                return BrowserResult.error("Could not open the system browser")
            callback_url = await asyncio.wait_for(callback, timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for the browser redirect")
            return BrowserResult.cancel("Timed out waiting for the browser redirect")
        finally:
            server.should_exit = True
            await serve_task
            sock.close()

        return BrowserResult.success(callback_url)


def _bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    return socket.create_server((host, port), family=family)
