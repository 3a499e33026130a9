from ._base import BaseTransport as BaseTransport, Exchange as Exchange
from ._curl import CurlOutputParser as CurlOutputParser, CurlTransport as CurlTransport
from ._httpx import HttpxTransport as HttpxTransport
from ._mock import MockTransport as MockTransport

__all__ = ("BaseTransport", "Exchange", "CurlOutputParser", "CurlTransport", "HttpxTransport", "MockTransport")
