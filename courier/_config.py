from __future__ import annotations

import logging
import os
import typing as tp
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace

if tp.TYPE_CHECKING:  # pragma: no cover
    from ._exceptions import CourierError

__all__ = ("Settings", "settings", "configure", "override", "get_default_settings", "log_error")

logger = logging.getLogger("courier.dispatch")


def log_error(error: "CourierError") -> None:
    """Error handler used for asynchronous calls that supply no failure callback."""
    request = error.response.request if error.response is not None else None
    target = f"{request.method} {request.url}" if request is not None else "request"
    logger.error(f"{target} failed with {error.kind}: {error}")


@dataclass
class Settings:
    # override default value with the environment variable COURIER_RETRY
    retry: int = 0
    """
    How many times a request is re-issued after a timeout-like failure.
    """

    # override default value with the environment variable COURIER_SYNC ("1"/"0")
    sync: tp.Optional[bool] = None
    """
    Default dispatch mode. ``None`` means synchronous unless a success callback is given.
    """

    # seconds
    # override default value with the environment variable COURIER_TIMEOUT
    timeout: tp.Optional[float] = None
    """
    Deadline applied to requests that do not pass their own timeout.
    """

    error_handler: tp.Callable[["CourierError"], None] = log_error
    """
    Receives failures of asynchronous calls without a failure callback and
    failures raised by success callbacks.
    """

    # override default value with the environment variable COURIER_TRANSPORT
    transport: tp.Any = None
    """
    Default transport: a transport instance, a ``ClientConfig``, a kind name
    such as ``"httpx"`` or ``"curl"``, or a selector called with the request.
    """

    cache: tp.Any = None
    """
    Cache policy (or policy shorthand) used when a call does not pass one.
    """

    # seconds
    # override default value with the environment variable COURIER_POLL_INTERVAL
    poll_interval: float = 0.05
    """
    Slice length of the synchronous wait loop.
    """


def _parse_bool(value: str) -> tp.Optional[bool]:
    value = value.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return None


def get_default_settings() -> Settings:
    """Get the default configuration for courier."""

    RETRY = int(os.getenv("COURIER_RETRY", "0"))
    SYNC = _parse_bool(os.getenv("COURIER_SYNC", ""))
    TIMEOUT = os.getenv("COURIER_TIMEOUT")
    TRANSPORT = os.getenv("COURIER_TRANSPORT") or None
    POLL_INTERVAL = float(os.getenv("COURIER_POLL_INTERVAL", "0.05"))

    return Settings(
        retry=RETRY,
        sync=SYNC,
        timeout=float(TIMEOUT) if TIMEOUT else None,
        transport=TRANSPORT,
        poll_interval=POLL_INTERVAL,
    )


settings = get_default_settings()


def configure(**changes: tp.Any) -> Settings:
    """
    Update the process-wide settings in place.

    Raises:
        TypeError: For names that are not ``Settings`` fields.
    """
    known = {f.name for f in fields(Settings)}
    unknown = set(changes) - known
    if unknown:
        raise TypeError(f"Unknown settings: {', '.join(sorted(unknown))}")
    if "retry" in changes and changes["retry"] < 0:
        raise ValueError("retry must be a non-negative integer")
    for name, value in changes.items():
        setattr(settings, name, value)
    return settings


@contextmanager
def override(**changes: tp.Any) -> tp.Iterator[Settings]:
    previous = replace(settings)
    configure(**changes)
    try:
        yield settings
    finally:
        for f in fields(Settings):
            setattr(settings, f.name, getattr(previous, f.name))
