"""Simple HTTP request object for the curlish HTTP library."""

from collections.abc import Mapping
from typing import Any, Iterable, Optional, Union
from urllib.parse import quote_plus

from .errors import ConfigurationError
from .options import TransportOptions

__all__ = ("Payload", "Request", "append_query", "build_query")


Payload = Union[str, Mapping[str, Any], None]
"""Type of request payloads: a pre-encoded query string, a mapping that will
be form-encoded, or ``None``.
"""

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

#: Methods whose payload is sent in the query string instead of the body
QUERY_METHODS = ("GET", "HEAD")


def _flatten(prefix: str, value: Any) -> Iterable[tuple[str, str]]:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield from _flatten(f"{prefix}[{key}]", item)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from _flatten(f"{prefix}[{index}]", item)
    elif isinstance(value, bool):
        yield prefix, "1" if value else "0"
    elif isinstance(value, bytes):
        yield prefix, value.decode("utf-8")
    else:
        yield prefix, str(value)


def build_query(payload: Mapping[str, Any]) -> str:
    """Form-encodes the given mapping into a query string.

    Pairs are joined with ``&``; keys and values are escaped with
    `quote_plus()`. ``None`` values are skipped, booleans become ``1`` or
    ``0``, and nested mappings and sequences are flattened into
    ``key[sub]=value`` and ``key[0]=value`` pairs.

    Parameters:
        payload: the mapping to encode

    Returns:
        the encoded query string
    """
    parts = []
    for key, value in payload.items():
        for name, item in _flatten(str(key), value):
            parts.append(f"{quote_plus(name)}={quote_plus(item)}")
    return "&".join(parts)


def encode_payload(payload: Payload) -> str:
    """Normalizes a payload into an encoded string; mappings are form-encoded,
    strings are passed through unchanged and ``None`` becomes an empty string.
    """
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, Mapping):
        return build_query(payload)
    raise TypeError(f"payload must be a string or a mapping, got {type(payload)!r}")


def _validate_header(name: str, value: str) -> None:
    if not name or not name.isascii() or any(ch in name for ch in ": \t\r\n"):
        raise ConfigurationError(f"invalid header name: {name!r}")
    if not isinstance(value, str) or "\r" in value or "\n" in value:
        raise ConfigurationError(f"invalid value for header {name!r}: {value!r}")


def append_query(url: str, query: str) -> str:
    """Appends the given query string to a URL, using ``&`` if the URL already
    has a query string and ``?`` otherwise. Empty queries leave the URL
    untouched.
    """
    if not query:
        return url
    return url + ("&" if "?" in url else "?") + query


class Request:
    """HTTP request object, constructed for a single dispatch."""

    method: str
    """The HTTP method of the request. ``GET`` and ``HEAD`` are uppercased;
    custom verbs keep the spelling of the caller.
    """

    url: str
    """The URL to send the request to, including the query string."""

    data: str
    """The encoded payload to send in the body of the request; empty if the
    request has no body.
    """

    headers: list[str]
    """The custom headers of the request, as ``Name: Value`` lines."""

    options: TransportOptions
    """The validated transport options of the request."""

    @classmethod
    def build(
        cls,
        method: str,
        url: str,
        payload: Payload = None,
        headers: Optional[Mapping[str, str]] = None,
        options: Optional[TransportOptions] = None,
    ):
        """Constructs a request from a method, a URL and a payload.

        For ``GET`` and ``HEAD`` requests, the encoded payload is appended to
        the URL as a query string; for any other method it becomes the body.

        Parameters:
            method: the HTTP method; arbitrary verbs are allowed
            url: the URL to send the request to
            payload: the payload of the request
            headers: custom headers of the request
            options: transport options; `None` means the defaults

        Raises:
            ConfigurationError: if a header name is not a valid token or a
                header value contains a line break
        """
        data = encode_payload(payload)

        if method.upper() in QUERY_METHODS:
            method = method.upper()
            url = append_query(url, data)
            data = ""

        lines = []
        for key, value in (headers or {}).items():
            _validate_header(key, value)
            lines.append(f"{key}: {value}")
        return cls(method, url, data, lines, options)

    def __init__(
        self,
        method: str,
        url: str,
        data: str = "",
        headers: Optional[list[str]] = None,
        options: Optional[TransportOptions] = None,
    ):
        self.method = method
        self.url = url
        self.data = data
        self.headers = list(headers or [])
        self.options = options or TransportOptions()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.method} {self.url!r}>"

    @property
    def body(self) -> Optional[bytes]:
        """Returns the body to send with the request, or `None` if the request
        has no body.
        """
        return self.data.encode("utf-8") if self.data else None

    @property
    def no_body(self) -> bool:
        """Returns whether the body of the response should be suppressed."""
        return self.method == "HEAD"

    def get_header(self, name: str) -> Optional[str]:
        """Returns the value of the custom header with the given name, matched
        case-insensitively, or `None` if the request has no such header.
        """
        name = name.lower()
        for line in reversed(self.headers):
            key, sep, value = line.partition(":")
            if sep and key.strip().lower() == name:
                return value.strip()
        return None

    def has_header(self, name: str) -> bool:
        """Checks whether the request contains the given custom header."""
        return self.get_header(name) is not None

    def iter_header_pairs(self) -> Iterable[tuple[str, str]]:
        """Yields the headers to send with the request as name-value pairs.

        The user agent, the referer and the cookie from the transport options
        come first; custom headers follow and take precedence. A form content
        type is added when the request has a body and no explicit content
        type.
        """
        options = self.options
        defaults = (
            ("User-Agent", options.user_agent),
            ("Referer", options.referer),
            ("Cookie", options.cookie),
        )
        for name, value in defaults:
            if value is not None and not self.has_header(name):
                yield name, value

        if self.data and not self.has_header("Content-Type"):
            yield "Content-Type", FORM_CONTENT_TYPE

        for line in self.headers:
            key, sep, value = line.partition(":")
            if sep:
                yield key.strip(), value.strip()
