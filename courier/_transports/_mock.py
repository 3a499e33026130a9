from __future__ import annotations

import typing as tp
from dataclasses import replace

import anyio

from .._exceptions import ConnectError
from .._models import ClientConfig, Request, Response
from ._base import BaseTransport, Emit

__all__ = ("MockTransport",)


class _Hang:
    def __repr__(self) -> str:
        return "MockTransport.HANG"


MockItem = tp.Union[Response, BaseException, tp.Callable[[Request], Response], _Hang]


class MockTransport(BaseTransport):
    """
    Transport answering from a queue of canned outcomes.

    Each exchange pops the next item: a ``Response`` is returned (its
    content streamed in ``chunk_size`` pieces), an exception is raised, a
    callable is called with the request and ``MockTransport.HANG`` never
    completes. Every request seen is kept in ``requests``.
    """

    kind = "mock"
    HANG = _Hang()

    def __init__(self, config: tp.Optional[ClientConfig] = None, *, chunk_size: tp.Optional[int] = None) -> None:
        super().__init__(config)
        self.chunk_size = chunk_size
        self.mocked_responses: tp.List[MockItem] = []
        self.requests: tp.List[Request] = []

    def add_responses(self, responses: tp.Iterable[MockItem]) -> None:
        self.mocked_responses.extend(responses)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def exchange(self, request: Request, emit: Emit) -> Response:
        self.requests.append(request)
        if not self.mocked_responses:
            raise ConnectError("No mocked responses left")
        item = self.mocked_responses.pop(0)
        if isinstance(item, _Hang):
            await anyio.sleep_forever()
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = item(request)
        assert isinstance(item, Response)

        response = replace(item, headers=item.headers.copy(), url=item.url or request.url)
        content = response.content
        size = self.chunk_size or max(len(content), 1)
        for offset in range(0, len(content), size):
            await emit(content[offset : offset + size], response)
        return response
