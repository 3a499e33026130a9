from __future__ import annotations

import abc
import logging
import typing as tp
from concurrent.futures import Future
from types import TracebackType

import anyio
import anyio.to_thread

from .._exceptions import ConnectError, CourierError, RequestTimeout
from .._models import ClientConfig, Request, Response
from .._reactor import reactor

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("courier.transports")

__all__ = ("BaseTransport", "Exchange", "Emit")

Emit = tp.Callable[[bytes, Response], tp.Awaitable[None]]
ChunkCallback = tp.Callable[[bytes, Response], None]
DoneCallback = tp.Callable[[Response], None]
FailCallback = tp.Callable[[CourierError], None]


class Exchange:
    """
    Handle on one in-flight exchange.

    Aborting cancels the exchange task on the reactor loop; once aborted the
    exchange reports nothing more, neither chunks nor an outcome.
    """

    def __init__(self, transport: "BaseTransport", request: Request) -> None:
        self.transport = transport
        self.request = request
        self._future: tp.Optional[Future[None]] = None
        self._aborted = False
        self._settled = False

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def settled(self) -> bool:
        """Whether the exchange already handed its outcome to a callback."""
        return self._settled

    def abort(self) -> None:
        self._aborted = True
        if self._future is not None:
            self._future.cancel()

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def __repr__(self) -> str:
        state = "aborted" if self._aborted else "done" if self.done() else "pending"
        return f"<Exchange {self.request.method} {self.request.url} [{state}]>"


class BaseTransport(abc.ABC):
    """
    A mechanism that performs the actual network exchange.

    Subclasses implement ``exchange``; ``execute`` runs it on the reactor
    loop under the request deadline and turns its result into exactly one
    ``on_done`` or ``on_fail`` call.
    """

    kind: tp.ClassVar[str] = ""

    def __init__(self, config: tp.Optional[ClientConfig] = None) -> None:
        self.config = config if config is not None else ClientConfig(kind=self.kind)

    def check_available(self) -> None:
        """Raise ``TransportUnavailable`` when the transport cannot run here."""

    @abc.abstractmethod
    async def exchange(self, request: Request, emit: Emit) -> Response:
        """
        Perform one HTTP exchange.

        :param request: The normalized request (method, url, headers, encoded body)
        :type request: Request
        :param emit: Awaited with each newly arrived body chunk and the partial
            response (status and headers already filled in)
        :type emit: Emit
        :return: The complete response
        :rtype: Response
        """

    def execute(
        self,
        request: Request,
        *,
        timeout: tp.Optional[float] = None,
        sync: bool = True,
        on_chunk: tp.Optional[ChunkCallback] = None,
        on_done: DoneCallback,
        on_fail: FailCallback,
    ) -> Exchange:
        """
        Start the exchange and return its handle immediately.

        Every exchange runs on the reactor loop, synchronous ones included;
        blocking the caller until the outcome arrives is left to the
        dispatcher. Callbacks run in worker threads, never on the loop.
        """
        self.check_available()
        exchange = Exchange(self, request)
        logger.debug(f"Starting {'sync' if sync else 'async'} exchange {request.method} {request.url}")
        exchange._future = reactor.spawn(self._drive, exchange, timeout, on_chunk, on_done, on_fail)
        return exchange

    async def _drive(
        self,
        exchange: Exchange,
        timeout: tp.Optional[float],
        on_chunk: tp.Optional[ChunkCallback],
        on_done: DoneCallback,
        on_fail: FailCallback,
    ) -> None:
        async def emit(chunk: bytes, response: Response) -> None:
            if exchange.aborted or on_chunk is None or not chunk:
                return
            await anyio.to_thread.run_sync(on_chunk, chunk, response)

        if exchange.aborted:
            return

        outcome: tp.Union[Response, CourierError]
        try:
            with anyio.fail_after(timeout):
                outcome = await self.exchange(exchange.request, emit)
        except TimeoutError:
            outcome = RequestTimeout(f"Request timed out after {timeout} seconds")
        except CourierError as exc:
            outcome = exc
        except Exception as exc:
            logger.debug(f"Unexpected {type(exc).__name__} from {self.kind or type(self).__name__} transport")
            outcome = ConnectError(str(exc) or type(exc).__name__)

        if exchange.aborted:
            return
        exchange._settled = True
        if isinstance(outcome, Response):
            await anyio.to_thread.run_sync(on_done, outcome)
        else:
            await anyio.to_thread.run_sync(on_fail, outcome)

    def close(self) -> None:
        pass

    def __enter__(self) -> "Self":
        return self

    def __exit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[TracebackType] = None,
    ) -> None:
        self.close()
