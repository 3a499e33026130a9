from __future__ import annotations

import logging
import threading
import typing as tp

from ._config import settings
from ._models import ClientConfig, Request
from ._transports import BaseTransport, CurlTransport, HttpxTransport, MockTransport

logger = logging.getLogger("courier.registry")

__all__ = ("ClientRegistry", "registry", "register_transport", "resolve_transport", "DEFAULT_TRANSPORT")

DEFAULT_TRANSPORT = "httpx"

_transport_classes: tp.Dict[str, tp.Type[BaseTransport]] = {
    "httpx": HttpxTransport,
    "curl": CurlTransport,
    "mock": MockTransport,
}


def register_transport(kind: str, transport_class: tp.Type[BaseTransport]) -> None:
    """Make ``kind`` usable as a transport name in configurations."""
    _transport_classes[kind] = transport_class


class ClientRegistry:
    """
    Process-wide table of transports keyed by their configuration.

    Structurally equal ``ClientConfig`` values map to one transport
    instance, so every request issued with the same settings shares one
    client (and one proxy setup). Entries live as long as the registry.
    """

    def __init__(self) -> None:
        self._transports: tp.Dict[ClientConfig, BaseTransport] = {}
        self._lock = threading.Lock()

    def get(self, config: ClientConfig) -> BaseTransport:
        with self._lock:
            transport = self._transports.get(config)
            if transport is None:
                try:
                    transport_class = _transport_classes[config.kind]
                except KeyError:
                    raise ValueError(f"Unknown transport kind: {config.kind!r}") from None
                logger.debug(f"Creating {config.kind} transport")
                transport = self._transports[config] = transport_class(config)
            return transport

    def transport(
        self,
        kind: str = DEFAULT_TRANSPORT,
        *,
        user_agent: tp.Optional[str] = None,
        proxy: tp.Optional[str] = None,
        **extra: tp.Any,
    ) -> BaseTransport:
        return self.get(ClientConfig.create(kind, user_agent=user_agent, proxy=proxy, **extra))

    def clear(self) -> None:
        with self._lock:
            transports = list(self._transports.values())
            self._transports.clear()
        for transport in transports:
            transport.close()

    def __len__(self) -> int:
        return len(self._transports)


registry = ClientRegistry()


def _resolve(spec: tp.Any) -> tp.Optional[BaseTransport]:
    if isinstance(spec, BaseTransport):
        return spec
    if isinstance(spec, ClientConfig):
        return registry.get(spec)
    if isinstance(spec, str):
        return registry.get(ClientConfig(kind=spec))
    return None


def resolve_transport(spec: tp.Any = None, request: tp.Optional[Request] = None) -> BaseTransport:
    """
    Pick the transport for a request.

    ``spec`` (or, when it is ``None``, the configured default) may be a
    transport, a ``ClientConfig``, a kind name, or a selector called with
    the request that returns one of those.
    """
    if spec is None:
        spec = settings.transport
    if spec is None:
        spec = DEFAULT_TRANSPORT

    transport = _resolve(spec)
    if transport is None and callable(spec):
        selected = spec(request)
        transport = _resolve(selected if selected is not None else DEFAULT_TRANSPORT)
    if transport is None:
        raise TypeError(f"Invalid transport: {spec!r}")
    return transport
