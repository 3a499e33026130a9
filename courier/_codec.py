from __future__ import annotations

import json
import mimetypes
import os
import re
import typing as tp
from pathlib import Path, PurePath
from urllib.parse import quote, urlencode

from ._exceptions import DecodeError
from ._headers import Headers, parse_content_type

if tp.TYPE_CHECKING:  # pragma: no cover
    from ._models import Response

__all__ = (
    "MULTIPART_BOUNDARY",
    "encode_query",
    "merge_params",
    "encode_body",
    "classify_binary",
    "decode_content",
    "is_file_reference",
)

MULTIPART_BOUNDARY = "courier-boundary-3f9c1a7e5b2d4c86"

# application/* subtypes that carry text
TEXT_APPLICATION_SUBTYPES = frozenset(
    {
        "json",
        "xml",
        "javascript",
        "x-javascript",
        "php",
        "x-php",
        "x-httpd-php",
    }
)

JSON_CONTENT_TYPE = re.compile(r"^[^/\s]+/(?:[^;\s]+\+)?json$")

Pairs = tp.List[tp.Tuple[str, tp.Any]]


def _as_pairs(value: tp.Any) -> Pairs:
    if isinstance(value, tp.Mapping):
        return list(value.items())
    return [(key, item) for key, item in value]


def _is_pairs(value: tp.Any) -> bool:
    if isinstance(value, tp.Mapping):
        return True
    if isinstance(value, (list, tuple)):
        return all(isinstance(item, (list, tuple)) and len(item) == 2 for item in value)
    return False


def encode_query(pairs: tp.Union[tp.Mapping[str, tp.Any], tp.Iterable[tp.Tuple[str, tp.Any]]]) -> str:
    """
    Percent-encode query pairs and join them with ``&``.

    Sequence values expand into repeated keys and ``None`` values are dropped.

    Examples:
        >>> encode_query({"q": "a b", "page": 2})
        'q=a%20b&page=2'
        >>> encode_query([("tag", ["x", "y"])])
        'tag=x&tag=y'
    """
    flat: Pairs = []
    for key, value in _as_pairs(pairs):
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            flat.extend((str(key), str(item)) for item in value)
        else:
            flat.append((str(key), str(value)))
    return urlencode(flat, quote_via=quote)


def merge_params(url: str, params: tp.Any) -> str:
    if not params:
        return url
    query = encode_query(params)
    if not query:
        return url
    return url + ("&" if "?" in url else "?") + query


def is_file_reference(value: tp.Any) -> bool:
    """
    A body entry names a file when it is a path object or a
    ``(path, )`` / ``(path, mime_type)`` tuple.
    """
    if isinstance(value, PurePath):
        return True
    return (
        isinstance(value, tuple)
        and 1 <= len(value) <= 2
        and isinstance(value[0], (str, os.PathLike))
        and (len(value) == 1 or value[1] is None or isinstance(value[1], str))
    )


_DISPOSITION_ESCAPES = {ord('"'): "%22", ord("\r"): "%0D", ord("\n"): "%0A"}


def _quote_param(value: str) -> str:
    return value.translate(_DISPOSITION_ESCAPES)


def _multipart_part(name: str, value: tp.Any) -> bytes:
    name = _quote_param(name)
    if is_file_reference(value):
        if isinstance(value, tuple):
            path, mime_type = Path(value[0]), value[1] if len(value) == 2 else None
        else:
            path, mime_type = Path(value), None
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        head = (
            f'Content-Disposition: form-data; name="{name}"; filename="{_quote_param(path.name)}"\r\n'
            f"Content-Type: {mime_type}\r\n\r\n"
        )
        return head.encode("utf-8") + path.read_bytes()

    if isinstance(value, bytes):
        payload = value
    else:
        payload = str(value).encode("utf-8")
    return f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode("utf-8") + payload


def _encode_multipart(pairs: Pairs) -> bytes:
    delimiter = f"--{MULTIPART_BOUNDARY}\r\n".encode("ascii")
    chunks = []
    for name, value in pairs:
        chunks.append(delimiter + _multipart_part(str(name), value) + b"\r\n")
    chunks.append(f"--{MULTIPART_BOUNDARY}--\r\n".encode("ascii"))
    return b"".join(chunks)


def encode_body(value: tp.Any, headers: Headers) -> tp.Tuple[tp.Optional[bytes], Headers, bool]:
    """
    Serialize a body value into its wire form.

    Args:
        value: ``None``, an atom (``str``, ``bytes``, number) or key/value
            pairs given as a mapping or a sequence of 2-tuples.
        headers: The request headers; never mutated.

    Returns:
        A ``(body, headers, is_binary)`` tuple where ``headers`` is an
        updated copy.

    Decision table for key/value pairs:
        - any value is a file reference: multipart/form-data, binary
        - Content-Type is ``*/json`` or ``*/*+json``: JSON, binary
        - otherwise: form-urlencoded, Content-Type left untouched
    """
    headers = headers.copy()
    if value is None:
        return None, headers, False
    if isinstance(value, bytes):
        return value, headers, True
    if isinstance(value, str):
        return value.encode("utf-8"), headers, False
    if not _is_pairs(value):
        return str(value).encode("utf-8"), headers, False

    pairs = _as_pairs(value)
    if any(is_file_reference(item) for _, item in pairs):
        headers["Content-Type"] = f"multipart/form-data; boundary={MULTIPART_BOUNDARY}"
        return _encode_multipart(pairs), headers, True

    media_type, _ = parse_content_type(headers.get("Content-Type"))
    if media_type is not None and JSON_CONTENT_TYPE.match(media_type):
        mapping = value if isinstance(value, tp.Mapping) else dict(pairs)
        return json.dumps(mapping).encode("utf-8"), headers, True

    return encode_query(pairs).encode("ascii"), headers, False


def classify_binary(content_type: tp.Optional[str]) -> bool:
    """
    Tell whether a response with this content type must be kept as bytes.

    Examples:
        >>> classify_binary("text/plain; charset=utf-8")
        False
        >>> classify_binary("application/json")
        False
        >>> classify_binary("image/png")
        True
    """
    media_type, _ = parse_content_type(content_type)
    if media_type is None:
        return True
    major, _, subtype = media_type.partition("/")
    if major == "text":
        return False
    if major == "application":
        if subtype in TEXT_APPLICATION_SUBTYPES:
            return False
        if subtype.endswith("+json") or subtype.endswith("+xml"):
            return False
    return True


def decode_content(response: "Response") -> tp.Any:
    """Default response decoder, driven by the Content-Type header."""
    if not response.content:
        return None
    media_type = response.content_type
    if classify_binary(media_type):
        return response.content
    if media_type is not None and JSON_CONTENT_TYPE.match(media_type):
        try:
            return json.loads(response.text)
        except ValueError as exc:
            raise DecodeError(f"Invalid JSON body: {exc}", response=response) from exc
    return response.text
