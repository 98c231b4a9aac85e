"""Access token change notifications."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

AccessTokenHandler = Callable[[str | None], Awaitable[None] | None]


class AccessTokenChannel:
    """Multicast, fire-and-forget stream of access token changes.

    Subscribers receive the new access token after each refresh and
    ``None`` when credentials are cleared. Plain callables run inline;
    coroutine functions are scheduled as tasks so they never hold up the
    publisher. Subscriber failures are logged and dropped.
    """

    def __init__(self) -> None:
        self._handlers: list[AccessTokenHandler] = []
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, handler: AccessTokenHandler) -> Callable[[], None]:
        """Register ``handler``. Returns a function that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def publish(self, access_token: str | None) -> None:
        """Deliver ``access_token`` to every current subscriber."""
        for handler in list(self._handlers):
            try:
                result = handler(access_token)
            except Exception as e:
                logger.warning(f"Access token subscriber failed: {e}")
                continue

            if inspect.isawaitable(result):
                self._schedule(result)

    def _schedule(self, delivery: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Published from sync code with no loop to run the coroutine on
            if inspect.iscoroutine(delivery):
                delivery.close()
            logger.warning(
                "Async access token subscriber skipped: no running event loop"
            )
            return

        task = asyncio.ensure_future(delivery, loop=loop)
        self._pending.add(task)
        task.add_done_callback(self._on_delivered)

    def _on_delivered(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Access token subscriber failed: {error}")

    async def drain(self) -> None:
        """Wait for scheduled coroutine deliveries to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
