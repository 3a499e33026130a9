from __future__ import annotations

import typing as tp

if tp.TYPE_CHECKING:  # pragma: no cover
    from ._models import Response

__all__ = (
    "CourierError",
    "ConnectError",
    "EmptyResponseError",
    "HTTPError",
    "RequestTimeout",
    "FilterError",
    "DecodeError",
    "TransportUnavailable",
    "CallbackError",
    "Aborted",
    "is_timeout_like",
)


class CourierError(Exception):
    kind = "error"

    def __init__(self, message: str = "", *, response: tp.Optional["Response"] = None) -> None:
        super().__init__(message)
        self.response = response


class ConnectError(CourierError):
    """No response could be obtained from the remote end."""

    kind = "connection-error"


class EmptyResponseError(CourierError):
    """The connection succeeded but neither a status line nor headers arrived."""

    kind = "empty-response"


class HTTPError(CourierError):
    kind = "http-error"

    def __init__(
        self,
        status_code: int,
        reason: str = "",
        *,
        response: tp.Optional["Response"] = None,
    ) -> None:
        message = f"{status_code} {reason}".strip()
        super().__init__(message, response=response)
        self.status_code = status_code
        self.reason = reason


class RequestTimeout(CourierError):
    kind = "timeout-error"


class FilterError(CourierError):
    kind = "filter-error"


class DecodeError(CourierError):
    kind = "decode-error"


class TransportUnavailable(CourierError):
    kind = "transport-unavailable"


class CallbackError(CourierError):
    """Raised when the success callback itself fails."""

    kind = "callback-error"


class Aborted(CourierError):
    kind = "abort"


def is_timeout_like(error: BaseException) -> bool:
    """
    Tell whether the error should consume the retry budget.

    Timeouts reported by a backend, gateway timeouts (HTTP 504) and any
    error whose description mentions a timeout all qualify.
    """
    if isinstance(error, RequestTimeout):
        return True
    if isinstance(error, HTTPError):
        return error.status_code == 504
    if isinstance(error, (FilterError, DecodeError, CallbackError, Aborted, TransportUnavailable)):
        return False
    return "timeout" in str(error).lower() or "timed out" in str(error).lower()
