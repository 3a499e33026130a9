from __future__ import annotations

import copy
import enum
import time
from dataclasses import dataclass, field, replace
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from ._headers import Headers, parse_content_type
from ._utils import freeze

if TYPE_CHECKING:  # pragma: no cover
    from ._exceptions import CourierError
    from ._policies import CachePolicy

__all__ = (
    "AbortReason",
    "Request",
    "Response",
    "CacheEntry",
    "ClientConfig",
    "METHODS",
)

METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE", "CONNECT")

Params = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]
Decoder = Callable[["Response"], Any]
StreamFilter = Callable[[bytes, "Response"], None]
SuccessCallback = Callable[["Response"], None]
FailureCallback = Callable[["CourierError"], None]
FinallyCallback = Callable[["Response"], None]


class AbortReason(enum.Enum):
    """Why an exchange stopped before producing a usable response."""

    CONNECTION = "connection"
    TIMEOUT = "timeout"
    FILTER = "filter"
    DECODE = "decode"
    USER = "user"


@dataclass
class Request:
    url: str
    method: str = "GET"
    params: Optional[Params] = None
    headers: Headers = field(default_factory=Headers)
    data: Any = None
    """The body value as the caller gave it, before encoding."""

    body: Optional[bytes] = None
    is_binary: bool = False
    decoder: Optional[Decoder] = None
    stream_filter: Optional[StreamFilter] = None
    done: Optional[SuccessCallback] = None
    fail: Optional[FailureCallback] = None
    fine: Optional[FinallyCallback] = None
    timeout: Optional[float] = None
    retry: int = 0
    sync: bool = True
    cache: Optional["CachePolicy"] = None


@dataclass
class Response:
    status_code: Optional[int] = None
    reason_phrase: str = ""
    headers: Headers = field(default_factory=Headers)
    content: bytes = b""
    http_version: Optional[str] = None
    url: Optional[str] = None
    data: Any = None
    """Decoded body, filled once the exchange completed successfully."""

    error: Optional["CourierError"] = None
    abort_reason: Optional[AbortReason] = None
    from_cache: bool = False
    retries: int = 0
    request: Optional[Request] = field(default=None, repr=False, compare=False)

    @property
    def content_type(self) -> Optional[str]:
        media_type, _ = parse_content_type(self.headers.get("Content-Type"))
        return media_type

    @property
    def encoding(self) -> str:
        _, params = parse_content_type(self.headers.get("Content-Type"))
        return params.get("charset", "utf-8")

    @property
    def text(self) -> str:
        try:
            return self.content.decode(self.encoding, errors="replace")
        except LookupError:
            return self.content.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code is not None and self.status_code < 400

    def detach(self) -> "Response":
        """
        Copy of the response that is safe to keep in a cache store.

        The originating request (and the callbacks it holds) and any
        per-call error state are dropped.
        """
        return replace(
            self,
            headers=self.headers.copy(),
            data=copy.deepcopy(self.data),
            error=None,
            abort_reason=None,
            from_cache=False,
            retries=0,
            request=None,
        )


@dataclass
class CacheEntry:
    key: Any
    value: Response
    created_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ClientConfig:
    """
    Immutable description of a transport and its connection settings.

    Structurally equal configurations share one transport instance through
    the client registry, so ``extra`` holds transport arguments as a sorted
    tuple of pairs with frozen values.
    """

    kind: str = "httpx"
    user_agent: Optional[str] = None
    proxy: Optional[str] = None
    extra: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def create(
        cls,
        kind: str = "httpx",
        *,
        user_agent: Optional[str] = None,
        proxy: Optional[str] = None,
        **extra: Any,
    ) -> "ClientConfig":
        return cls(
            kind=kind,
            user_agent=user_agent,
            proxy=proxy,
            extra=tuple(sorted((name, freeze(value)) for name, value in extra.items())),
        )

    def options(self) -> dict[str, Any]:
        return dict(self.extra)
