from __future__ import annotations

import typing as tp

import httpx

from .._exceptions import ConnectError, EmptyResponseError, RequestTimeout
from .._headers import Headers
from .._models import ClientConfig, Request, Response
from .._reactor import reactor
from ._base import BaseTransport, Emit

__all__ = ("HttpxTransport",)

# 128 KB
CHUNK_SIZE = 131072


def _http_version(value: str) -> str:
    return value[len("HTTP/") :] if value.upper().startswith("HTTP/") else value


class HttpxTransport(BaseTransport):
    """
    In-process transport built on ``httpx.AsyncClient``.

    The client is created lazily on the reactor loop and shared by every
    request issued through this transport. ``ClientConfig.extra`` entries are
    passed to the client constructor (``verify``, ``http2``, ``transport``...).
    The client-level timeout is disabled; the request deadline is enforced
    by ``BaseTransport.execute``.
    """

    kind = "httpx"

    def __init__(self, config: tp.Optional[ClientConfig] = None) -> None:
        super().__init__(config)
        self._client: tp.Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            options: tp.Dict[str, tp.Any] = {"follow_redirects": True, "timeout": None}
            if self.config.user_agent is not None:
                options["headers"] = {"User-Agent": self.config.user_agent}
            if self.config.proxy is not None:
                options["proxy"] = self.config.proxy
            options.update(self.config.options())
            self._client = httpx.AsyncClient(**options)
        return self._client

    async def exchange(self, request: Request, emit: Emit) -> Response:
        client = self._get_client()
        try:
            async with client.stream(
                request.method,
                request.url,
                headers=request.headers.multi_items(),
                content=request.body,
            ) as httpx_response:
                response = Response(
                    status_code=httpx_response.status_code,
                    reason_phrase=httpx_response.reason_phrase,
                    headers=Headers(httpx_response.headers.multi_items()),
                    http_version=_http_version(httpx_response.http_version),
                    url=str(httpx_response.url),
                )
                chunks = []
                async for chunk in httpx_response.aiter_bytes(chunk_size=CHUNK_SIZE):
                    chunks.append(chunk)
                    await emit(chunk, response)
                response.content = b"".join(chunks)
                return response
        except httpx.TimeoutException as exc:
            raise RequestTimeout(str(exc) or "timeout") from exc
        except httpx.RemoteProtocolError as exc:
            raise EmptyResponseError(str(exc) or "Server sent no response") from exc
        except httpx.TransportError as exc:
            raise ConnectError(str(exc) or type(exc).__name__) from exc

    def close(self) -> None:
        client, self._client = self._client, None
        if client is not None and reactor.running:
            reactor.portal.call(client.aclose)
