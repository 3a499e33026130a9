from __future__ import annotations

import contextvars
import logging
import threading
import typing as tp
from dataclasses import replace

import httpx

from . import _cache as cache
from ._codec import decode_content, encode_body, merge_params
from ._config import settings
from ._exceptions import (
    Aborted,
    CallbackError,
    ConnectError,
    CourierError,
    DecodeError,
    EmptyResponseError,
    FilterError,
    HTTPError,
    RequestTimeout,
    is_timeout_like,
)
from ._headers import Headers
from ._keygen import cache_key
from ._models import METHODS, AbortReason, Request, Response
from ._policies import normalize_cache_spec
from ._registry import resolve_transport
from ._transports import BaseTransport, Exchange

logger = logging.getLogger("courier.dispatch")

__all__ = ("Dispatcher", "Handle", "normalize_request", "dispatcher")

_NO_KEY = object()


def normalize_request(
    url: str,
    *,
    method: tp.Optional[str] = None,
    params: tp.Any = None,
    headers: tp.Any = None,
    data: tp.Any = None,
    resp: tp.Any = None,
    filter: tp.Any = None,
    done: tp.Any = None,
    fail: tp.Any = None,
    fine: tp.Any = None,
    sync: tp.Optional[bool] = None,
    timeout: tp.Optional[float] = None,
    retry: tp.Optional[int] = None,
    cache: tp.Any = None,
) -> Request:
    """
    Build the canonical request from caller options.

    Missing values are inferred the same way every time:

    ========== ===============================================================
    method     POST when a body is given, GET otherwise
    sync       the explicit flag, else the configured default, else
               synchronous unless a success callback is given
    retry      the configured default
    timeout    the configured default
    cache      the given spec, else the configured default policy;
               ``cache=False`` disables caching for the call
    ========== ===============================================================
    """
    encoded_body, encoded_headers, is_binary = encode_body(data, Headers(headers))

    if method is None:
        method = "POST" if data is not None else "GET"
    method = method.upper()
    if method not in METHODS:
        raise ValueError(f"Unsupported HTTP method: {method}")

    if sync is None:
        sync = settings.sync
    if sync is None:
        sync = done is None

    retry = settings.retry if retry is None else retry
    if retry < 0:
        raise ValueError("retry must be a non-negative integer")

    return Request(
        url=merge_params(url, params),
        method=method,
        params=params,
        headers=encoded_headers,
        data=data,
        body=encoded_body,
        is_binary=is_binary,
        decoder=resp,
        stream_filter=filter,
        done=done,
        fail=fail,
        fine=fine,
        timeout=settings.timeout if timeout is None else timeout,
        retry=retry,
        sync=sync,
        cache=normalize_cache_spec(cache if cache is not None else settings.cache),
    )


class _Decorated(tp.NamedTuple):
    on_chunk: tp.Optional[tp.Callable[[bytes, Response], None]]
    on_done: tp.Callable[[Response], None]
    on_fail: tp.Callable[[CourierError], None]


class Handle:
    """
    A top-level call: the first attempt plus every retry it triggers.

    Asynchronous calls return their handle; it settles exactly once, after
    which ``response`` (and ``error`` on failure) are final.
    """

    def __init__(self, dispatcher: "Dispatcher", request: Request, transport: BaseTransport) -> None:
        self.request = request
        self.transport = transport
        self.response: tp.Optional[Response] = None
        self.error: tp.Optional[CourierError] = None
        self.retries = 0
        self.abort_reason: tp.Optional[AbortReason] = None
        self.exchange: tp.Optional[Exchange] = None
        self.cache_key: tp.Any = _NO_KEY
        self.context = contextvars.copy_context()
        self._dispatcher = dispatcher
        self._callbacks: tp.Optional[_Decorated] = None
        self._settled = False
        self._lock = threading.Lock()
        self._finished = threading.Event()

    def done(self) -> bool:
        return self._finished.is_set()

    def wait(self, timeout: tp.Optional[float] = None) -> bool:
        return self._finished.wait(timeout)

    def abort(self) -> None:
        """Cancel the call; the failure path runs with an ``Aborted`` error."""
        self._dispatcher.abort(self)

    def result(self) -> Response:
        if not self.done():
            raise RuntimeError("The request is still in flight")
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response

    def run_callback(self, callback: tp.Callable[..., tp.Any], *args: tp.Any) -> tp.Any:
        """Run a caller callback inside the context captured when the call was made."""
        return self.context.copy().run(callback, *args)

    def __repr__(self) -> str:
        state = "done" if self.done() else "pending"
        return f"<Handle {self.request.method} {self.request.url} [{state}]>"


def _abort_reason_for(error: CourierError) -> tp.Optional[AbortReason]:
    if isinstance(error, RequestTimeout):
        return AbortReason.TIMEOUT
    if isinstance(error, (ConnectError, EmptyResponseError)):
        return AbortReason.CONNECTION
    if isinstance(error, FilterError):
        return AbortReason.FILTER
    if isinstance(error, DecodeError):
        return AbortReason.DECODE
    if isinstance(error, Aborted):
        return AbortReason.USER
    return None


class Dispatcher:
    """
    Runs normalized requests through a transport.

    The caller's callbacks are decorated once per call: the failure path
    retries timeout-like errors while the retry budget lasts, the success
    path decodes the response and feeds the cache, and both end with the
    finally callback. Every call settles exactly once.
    """

    def dispatch(self, request: Request, transport: tp.Any = None) -> tp.Union[Response, Handle]:
        handle = Handle(self, request, resolve_transport(transport, request))

        policy = request.cache
        if policy is not None:
            handle.cache_key = cache_key(request, policy)
            entry = cache.lookup(policy, handle.cache_key)
            if entry is not None:
                logger.debug(f"Serving {request.method} {request.url} from cache")
                self._settle_success(handle, cache.response_from_cache(entry, request), store=False)
                return handle.result() if request.sync else handle

        handle.transport.check_available()
        handle._callbacks = self._decorate(handle)
        self._start_attempt(handle)

        if not request.sync:
            return handle
        self._wait(handle)
        return handle.result()

    def abort(self, handle: Handle) -> None:
        with handle._lock:
            if handle._settled:
                return
            handle.abort_reason = AbortReason.USER
            exchange = handle.exchange
        if exchange is not None:
            exchange.abort()
        logger.debug(f"Aborting {handle.request.method} {handle.request.url}")
        self._settle_failure(handle, Aborted("Request aborted"))

    def _decorate(self, handle: Handle) -> _Decorated:
        def on_chunk(chunk: bytes, partial: Response) -> None:
            if handle.abort_reason is not None or handle._settled:
                return
            stream_filter = handle.request.stream_filter
            assert stream_filter is not None
            try:
                handle.run_callback(stream_filter, chunk, partial)
            except Exception as exc:
                with handle._lock:
                    handle.abort_reason = AbortReason.FILTER
                    exchange = handle.exchange
                if exchange is not None:
                    exchange.abort()
                logger.debug(f"Streaming filter raised {type(exc).__name__}, aborting exchange")
                error = FilterError(f"Streaming filter raised {type(exc).__name__}: {exc}")
                error.__cause__ = exc
                self._settle_failure(handle, error, replace(partial, headers=partial.headers.copy()))

        def on_done(response: Response) -> None:
            if handle._settled or handle.abort_reason is AbortReason.FILTER:
                return
            request = handle.request
            response.request = request
            response.retries = handle.retries

            if response.status_code is None:
                on_fail(EmptyResponseError("No status line in response", response=response))
                return
            if response.status_code >= 400:
                reason = response.reason_phrase or httpx.codes.get_reason_phrase(response.status_code)
                on_fail(HTTPError(response.status_code, reason, response=response))
                return

            decoder = request.decoder if request.decoder is not None else decode_content
            try:
                response.data = handle.run_callback(decoder, response)
            except Exception as exc:
                handle.abort_reason = AbortReason.DECODE
                if isinstance(exc, DecodeError):
                    error = exc
                else:
                    error = DecodeError(f"Could not decode response: {exc}")
                    error.__cause__ = exc
                error.response = response
                on_fail(error)
                return

            logger.debug(f"{request.method} {request.url} succeeded with status {response.status_code}")
            self._settle_success(handle, response)

        def on_fail(error: CourierError) -> None:
            if handle._settled:
                return
            request = handle.request
            if is_timeout_like(error) and request.retry > 0 and handle.abort_reason is None:
                handle.request = replace(request, retry=request.retry - 1)
                handle.retries += 1
                logger.debug(
                    f"Retrying {request.method} {request.url} after {error.kind} ({request.retry - 1} retries left)"
                )
                self._start_attempt(handle)
                return
            self._settle_failure(handle, error, error.response)

        stream_filter = on_chunk if handle.request.stream_filter is not None else None
        return _Decorated(stream_filter, on_done, on_fail)

    def _start_attempt(self, handle: Handle) -> None:
        callbacks = handle._callbacks
        assert callbacks is not None
        request = handle.request
        logger.debug(f"Starting attempt {handle.retries + 1} for {request.method} {request.url}")
        try:
            exchange = handle.transport.execute(
                request,
                timeout=request.timeout,
                sync=request.sync,
                on_chunk=callbacks.on_chunk,
                on_done=callbacks.on_done,
                on_fail=callbacks.on_fail,
            )
        except CourierError as exc:
            if handle.retries == 0:
                raise
            self._settle_failure(handle, exc)
            return

        with handle._lock:
            handle.exchange = exchange
            aborted = handle.abort_reason is not None or handle._settled
        if aborted:
            exchange.abort()

    def _wait(self, handle: Handle) -> None:
        interval = settings.poll_interval
        while not handle.wait(interval):
            exchange = handle.exchange
            if exchange is None or not exchange.done() or exchange.aborted:
                continue
            if handle.wait(interval):
                return
            if handle.exchange is exchange:
                self._settle_failure(handle, ConnectError("Transport stopped without reporting an outcome"))

    def _settle(self, handle: Handle) -> bool:
        with handle._lock:
            if handle._settled:
                return False
            handle._settled = True
            return True

    def _settle_success(self, handle: Handle, response: Response, *, store: bool = True) -> None:
        if not self._settle(handle):
            return
        request = handle.request
        if store and request.cache is not None and handle.cache_key is not _NO_KEY:
            try:
                cache.store(request.cache, handle.cache_key, response)
            except Exception:
                logger.exception(f"Could not cache the response of {request.method} {request.url}")

        handle.response = response
        if request.done is not None:
            try:
                handle.run_callback(request.done, response)
            except Exception as exc:
                error = CallbackError(f"Success callback raised {type(exc).__name__}: {exc}", response=response)
                error.__cause__ = exc
                response.error = handle.error = error
                self._report(handle, error)
        self._finally(handle, response)

    def _settle_failure(
        self,
        handle: Handle,
        error: CourierError,
        response: tp.Optional[Response] = None,
    ) -> None:
        if not self._settle(handle):
            return
        request = handle.request
        if handle.abort_reason is None:
            handle.abort_reason = _abort_reason_for(error)
        if response is None:
            response = Response(url=request.url)
        response.request = request
        response.error = error
        response.abort_reason = handle.abort_reason
        response.retries = handle.retries
        error.response = response
        handle.error = error
        handle.response = response

        logger.debug(f"{request.method} {request.url} failed with {error.kind}")
        if request.fail is not None:
            try:
                handle.run_callback(request.fail, error)
            except Exception:
                logger.exception(f"Failure callback of {request.method} {request.url} raised")
        elif not request.sync:
            self._report(handle, error)
        self._finally(handle, response)

    def _report(self, handle: Handle, error: CourierError) -> None:
        try:
            handle.run_callback(settings.error_handler, error)
        except Exception:
            logger.exception("Error handler raised")

    def _finally(self, handle: Handle, response: Response) -> None:
        request = handle.request
        try:
            if request.fine is not None:
                handle.run_callback(request.fine, response)
        except Exception:
            logger.exception(f"Finally callback of {request.method} {request.url} raised")
        finally:
            handle._finished.set()


dispatcher = Dispatcher()
