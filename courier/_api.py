from __future__ import annotations

import typing as tp
from functools import partial

import anyio.to_thread

from ._dispatcher import Handle, dispatcher, normalize_request
from ._models import Response

__all__ = ("request", "arequest", "get", "post")


def request(
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
    transport: tp.Any = None,
) -> tp.Union[Response, Handle]:
    """
    Issue an HTTP request.

    Args:
        url: Target URL; ``params`` are appended to its query string.
        method: HTTP method. Defaults to POST when ``data`` is given, GET otherwise.
        params: Query parameters as a mapping or a list of pairs.
        headers: Headers as a mapping, a list of pairs or shorthand names
            (``"json"``, ``"form"``...).
        data: Request body: bytes, text, pairs/mapping (form, JSON or
            multipart when a value is a file reference).
        resp: Decoder turning the response into ``Response.data``.
        filter: Called with each body chunk as it arrives; raising aborts the exchange.
        done: Success callback.
        fail: Failure callback.
        fine: Called after either of them.
        sync: Block until the call settles. Defaults to blocking unless ``done`` is given.
        timeout: Deadline in seconds for each attempt.
        retry: How many times a timeout-like failure is retried.
        cache: Cache policy or shorthand; ``False`` disables the configured default.
        transport: Transport, ``ClientConfig``, kind name or selector.

    Returns:
        The settled response for synchronous calls, otherwise the call's ``Handle``.

    Raises:
        CourierError: Synchronous calls raise the failure they settled with.
        CallbackError: When ``done`` raises. The error goes to the configured
            ``error_handler`` (and is raised to synchronous callers); ``fail``
            is not called since the exchange itself succeeded.
        TransportUnavailable: Before any attempt when the transport cannot run.
    """
    normalized = normalize_request(
        url,
        method=method,
        params=params,
        headers=headers,
        data=data,
        resp=resp,
        filter=filter,
        done=done,
        fail=fail,
        fine=fine,
        sync=sync,
        timeout=timeout,
        retry=retry,
        cache=cache,
    )
    return dispatcher.dispatch(normalized, transport)


def get(url: str, **options: tp.Any) -> tp.Union[Response, Handle]:
    return request(url, method="GET", **options)


def post(url: str, data: tp.Any = None, **options: tp.Any) -> tp.Union[Response, Handle]:
    return request(url, method="POST", data=data, **options)


async def arequest(url: str, **options: tp.Any) -> Response:
    """Awaitable form of ``request``; waits in a worker thread so the event loop stays free."""
    options["sync"] = True
    response = await anyio.to_thread.run_sync(partial(request, url, **options))
    return tp.cast(Response, response)
