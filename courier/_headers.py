from __future__ import annotations

from typing import (
    Any,
    Iterable,
    Iterator,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Tuple,
    Union,
)

__all__ = ("Headers", "HEADER_SHORTHANDS", "parse_content_type")

# Named header rewrites accepted wherever headers are given.
HEADER_SHORTHANDS: Mapping[str, Tuple[str, str]] = {
    "json": ("Content-Type", "application/json"),
    "form": ("Content-Type", "application/x-www-form-urlencoded"),
    "text": ("Content-Type", "text/plain"),
    "xml": ("Content-Type", "application/xml"),
}

HeaderItems = Union[
    "Headers",
    Mapping[str, Union[str, List[str]]],
    Iterable[Union[str, Tuple[str, str]]],
    str,
    None,
]


class Headers(MutableMapping[str, str]):
    """
    Ordered, case-insensitive HTTP headers.

    Keys are stored lower-cased in insertion order and a key may carry
    several values. Besides mappings and ``(name, value)`` pairs, the
    constructor understands the shorthand names from ``HEADER_SHORTHANDS``,
    either as bare items (``["json", ("Accept", "*/*")]``) or as the whole
    argument (``"json"``).
    """

    def __init__(self, headers: HeaderItems = None) -> None:
        self._headers: dict[str, List[str]] = {}
        if headers is None:
            return
        if isinstance(headers, Headers):
            self._headers = {k: v[:] for k, v in headers._headers.items()}
            return
        if isinstance(headers, str):
            headers = [headers]
        if isinstance(headers, Mapping):
            for key, value in headers.items():
                for item in [value] if isinstance(value, str) else value:
                    self.add(key, item)
            return
        for item in headers:
            if isinstance(item, str):
                self.apply_shorthand(item)
            else:
                key, value = item
                self.add(key, value)

    def apply_shorthand(self, name: str) -> None:
        try:
            key, value = HEADER_SHORTHANDS[name.lower()]
        except KeyError:
            raise ValueError(f"Unknown header shorthand: {name!r}") from None
        self[key] = value

    def add(self, key: str, value: str) -> None:
        self._headers.setdefault(key.lower(), []).append(str(value))

    def get_list(self, key: str) -> Optional[List[str]]:
        return self._headers.get(key.lower(), None)

    def multi_items(self) -> List[Tuple[str, str]]:
        return [(key, value) for key, values in self._headers.items() for value in values]

    def copy(self) -> "Headers":
        return Headers(self)

    def __getitem__(self, key: str) -> str:
        return ", ".join(self._headers[key.lower()])

    def __setitem__(self, key: str, value: str) -> None:
        self._headers[key.lower()] = [str(value)]

    def __delitem__(self, key: str) -> None:
        del self._headers[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._headers

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return f"Headers({self.multi_items()!r})"

    def __eq__(self, other_headers: Any) -> bool:
        return isinstance(other_headers, Headers) and self._headers == other_headers._headers


def parse_content_type(value: Optional[str]) -> Tuple[Optional[str], dict[str, str]]:
    """
    Split a Content-Type value into its lower-cased media type and parameters.

    Examples:
        >>> parse_content_type("text/html; charset=UTF-8")
        ('text/html', {'charset': 'UTF-8'})
        >>> parse_content_type(None)
        (None, {})
    """
    if not value:
        return None, {}
    media_type, *raw_params = value.split(";")
    params: dict[str, str] = {}
    for raw in raw_params:
        name, sep, param_value = raw.strip().partition("=")
        if sep:
            params[name.strip().lower()] = param_value.strip().strip('"')
    return media_type.strip().lower() or None, params
