"""
Connectivity Observer

Mirrors the platform's network reachability signal and notifies subscribers
on online/offline edges. The observer does not poll; ``set_online`` is called
by whatever owns the platform notification (or by ``ReachabilityMonitor``).
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Set

import aiohttp

logger = logging.getLogger(__name__)

ConnectivityHandler = Callable[[bool], Any]
OnlineHandler = Callable[[], Any]


class ConnectivityObserver:
    """Tracks online state and fans out edge notifications."""

    def __init__(self, initially_online: bool = False):
        self._online = initially_online
        self._handlers: List[ConnectivityHandler] = []
        self._online_handlers: List[OnlineHandler] = []
        self._pending: Set[asyncio.Task] = set()

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> bool:
        """
        Record the current reachability.

        Returns True when the state changed. Subscribers are only notified on
        a change; repeated identical signals are ignored.
        """
        online = bool(online)
        if online == self._online:
            return False

        self._online = online
        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")

        for handler in list(self._handlers):
            self._dispatch(handler, online)
        if online:
            for handler in list(self._online_handlers):
                self._dispatch(handler)
        return True

    def went_online(self) -> bool:
        return self.set_online(True)

    def went_offline(self) -> bool:
        return self.set_online(False)

    def subscribe(self, handler: ConnectivityHandler) -> Callable[[], None]:
        """Receive the new state on every edge. Returns an unsubscribe callable."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def on_online(self, handler: OnlineHandler) -> Callable[[], None]:
        """Receive the edge-triggered "became online" signal."""
        self._online_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._online_handlers:
                self._online_handlers.remove(handler)

        return unsubscribe

    async def wait_for_handlers(self) -> None:
        """Await coroutine handlers scheduled by previous notifications."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _dispatch(self, handler: Callable[..., Any], *args: Any) -> None:
        try:
            result = handler(*args)
        except Exception as e:
            logger.error(f"Connectivity handler {handler!r} failed: {e}")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._handler_done)

    def _handler_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Connectivity handler failed: {exc}")


class HttpReachabilityProbe:
    """Checks reachability with a short HTTP request."""

    def __init__(self, url: str, timeout: float = 2.0):
        self.url = url
        self.timeout = timeout

    async def check(self, session: aiohttp.ClientSession) -> bool:
        try:
            async with session.head(
                self.url,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                allow_redirects=True
            ) as response:
                return response.status < 500
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Reachability probe to {self.url} failed: {e}")
            return False
