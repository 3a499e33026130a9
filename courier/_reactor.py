from __future__ import annotations

import atexit
import logging
import threading
import typing as tp
from concurrent.futures import Future

from anyio.from_thread import BlockingPortal, start_blocking_portal

logger = logging.getLogger("courier.transports")

__all__ = ("Reactor", "reactor")

T = tp.TypeVar("T")


class Reactor:
    """
    Background event loop driving every in-flight exchange.

    The loop runs in a single daemon thread behind an anyio blocking portal
    and is started on first use. Exchanges are tasks on that loop, so any
    number of asynchronous requests share one thread of I/O while
    synchronous callers simply wait for their call to settle.
    """

    def __init__(self, backend: str = "asyncio") -> None:
        self._backend = backend
        self._portal: tp.Optional[BlockingPortal] = None
        self._portal_cm: tp.Optional[tp.ContextManager[BlockingPortal]] = None
        self._lock = threading.Lock()

    @property
    def portal(self) -> BlockingPortal:
        with self._lock:
            if self._portal is None:
                logger.debug("Starting reactor loop")
                self._portal_cm = start_blocking_portal(self._backend)
                self._portal = self._portal_cm.__enter__()
            return self._portal

    @property
    def running(self) -> bool:
        return self._portal is not None

    def spawn(self, func: tp.Callable[..., tp.Awaitable[T]], *args: tp.Any) -> "Future[T]":
        """Schedule ``func(*args)`` on the loop and return its future without waiting."""
        return self.portal.start_task_soon(func, *args)

    def close(self) -> None:
        """Stop the loop, cancelling exchanges that are still in flight."""
        with self._lock:
            portal, portal_cm = self._portal, self._portal_cm
            self._portal = self._portal_cm = None
        if portal is not None and portal_cm is not None:
            logger.debug("Stopping reactor loop")
            try:
                portal.call(portal.stop, True)
            except RuntimeError:  # pragma: no cover
                pass
            try:
                portal_cm.__exit__(None, None, None)
            except Exception:  # pragma: no cover
                logger.exception("Reactor loop did not stop cleanly")


reactor = Reactor()
atexit.register(reactor.close)
