"""HTTP response object and the parser that constructs it from the raw output
of an HTTP transport.
"""

from __future__ import annotations

import re

from codecs import lookup
from email.message import Message
from types import MappingProxyType
from typing import Mapping, Optional, Union

from .errors import ParseError

__all__ = ("Response", "parse_response")


#: Matches a single header block at a given position: a status line starting
#: with an HTTP version token, arbitrary header lines and a terminating blank
#: line (or the end of the input)
HEADER_BLOCK_PATTERN = re.compile(
    rb"HTTP/\d+(?:\.\d+)?[ \t].*?(?:\r\n\r\n|\n\n|\r\r|\Z)",
    re.IGNORECASE | re.DOTALL,
)

#: Separates consecutive header blocks of a redirect chain
BLOCK_SEPARATOR = re.compile(rb"\r\n\r\n|\n\n|\r\r")

#: Separates lines within a single header block
LINE_SEPARATOR = re.compile(rb"\r\n|\n|\r")

HTTP_VERSION = "Http-Version"
STATUS_CODE = "Status-Code"
STATUS = "Status"


class Response:
    """Immutable HTTP response object holding the body of the response and
    the headers of the last header block.

    The header mapping contains three synthesized keys besides the headers
    sent by the server: ``Http-Version``, ``Status-Code`` and ``Status``.
    Header names are case-sensitive as received; when a header is repeated,
    the last occurrence wins.
    """

    __slots__ = ("_content", "_headers", "_body")

    def __init__(self, content: bytes, headers: Mapping[str, str]):
        """Constructor.

        In most cases, it is easier to use `parse_response()`.

        Parameters:
            content: the raw body of the response
            headers: the headers of the response, including the synthesized
                status keys
        """
        self._content = bytes(content)
        self._headers = MappingProxyType(dict(headers))
        self._body = None

    def __contains__(self, name: str) -> bool:
        return self.getheader(name) is not None

    def __getitem__(self, name: str) -> str:
        value = self.getheader(name)
        if value is None:
            raise KeyError(name)
        return value

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} [{self.status}]>"

    def __str__(self) -> str:
        return self.body

    @property
    def body(self) -> str:
        """The body of the response without the header block, decoded with
        the charset declared in the ``Content-Type`` header (UTF-8 if none).
        """
        if self._body is None:
            self._body = self._content.decode(self.charset, errors="replace")
        return self._body

    @property
    def charset(self) -> str:
        """The character set of the body, as declared by the server."""
        content_type = self.getheader("Content-Type")
        if content_type:
            message = Message()
            message["Content-Type"] = content_type
            charset = message.get_content_charset()
            if charset:
                try:
                    lookup(charset)
                except LookupError:
                    pass
                else:
                    return charset
        return "utf-8"

    @property
    def content(self) -> bytes:
        """The raw bytes of the body of the response."""
        return self._content

    @property
    def headers(self) -> Mapping[str, str]:
        """Read-only view of the headers of the response."""
        return self._headers

    @property
    def http_version(self) -> str:
        """The protocol token of the status line; typically ``HTTP/1.1``."""
        return self._headers[HTTP_VERSION]

    @property
    def reason(self) -> str:
        """The reason phrase of the status line; may be empty."""
        _, _, reason = self.status.partition(" ")
        return reason

    @property
    def status(self) -> str:
        """The status code and the reason phrase, separated by a space."""
        return self._headers[STATUS]

    @property
    def status_code(self) -> int:
        """The numeric status code of the response."""
        return int(self._headers[STATUS_CODE])

    def getheader(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Returns the value of the given header or the given default value.

        Header names are matched exactly first; if there is no exact match,
        the last header whose name matches case-insensitively is returned.
        """
        if name in self._headers:
            return self._headers[name]

        lowered = name.lower()
        result = default
        for key, value in self._headers.items():
            if key.lower() == lowered:
                result = value
        return result


def _split_header_area(raw: bytes, header_size: Optional[int]) -> tuple[bytes, bytes]:
    """Splits the raw transport output into a header area and a body."""
    if header_size is not None:
        if header_size < 0 or header_size > len(raw):
            raise ParseError(
                f"header size {header_size} is out of range for a response of "
                f"{len(raw)} bytes"
            )
        return raw[:header_size], raw[header_size:]

    # Consume consecutive header blocks from the start of the input so we
    # skip over the headers of intermediate redirects but never match
    # anything in the body
    position, last_block = 0, None
    while position < len(raw):
        match = HEADER_BLOCK_PATTERN.match(raw, position)
        if not match:
            break
        last_block = match.group(0)
        position = match.end()

    if last_block is None:
        raise ParseError("no HTTP header block found at the start of the response")

    return last_block, raw[position:]


def _parse_status_line(line: str) -> dict[str, str]:
    parts = line.strip().split(" ", 2)
    if len(parts) < 2:
        raise ParseError(f"invalid HTTP status line: {line!r}")

    version, code = parts[0], parts[1]
    reason = parts[2].strip() if len(parts) > 2 else ""

    if not version.upper().startswith("HTTP/"):
        raise ParseError(f"invalid HTTP version in status line: {line!r}")
    if len(code) != 3 or not code.isdigit():
        raise ParseError(f"invalid HTTP status code in status line: {line!r}")

    return {
        HTTP_VERSION: version,
        STATUS_CODE: code,
        STATUS: f"{code} {reason}" if reason else code,
    }


def parse_response(
    raw: Union[bytes, str], header_size: Optional[int] = None
) -> Response:
    """Parses the raw output of an HTTP transport into a Response_ object.

    The raw output consists of one or more header blocks (more than one when
    the transport followed redirects), followed by the body of the response.
    Only the last header block is taken into account.

    Parameters:
        raw: the raw output of the transport, headers and body concatenated.
            Strings are encoded in UTF-8 first.
        header_size: the total length of the header blocks in bytes, as
            reported by the transport. When given, the raw output is sliced
            at this offset. When omitted, the header blocks are located by
            pattern matching from the start of the raw output.

    Returns:
        the parsed response

    Raises:
        ParseError: when the status line or a header line is malformed, or
            when no header block can be found
    """
    if isinstance(raw, str):
        raw = raw.encode("utf-8")

    header_area, content = _split_header_area(raw, header_size)

    blocks = [
        block
        for block in BLOCK_SEPARATOR.split(header_area.strip(b"\r\n"))
        if block.strip()
    ]
    if not blocks:
        raise ParseError("response contains no HTTP header block")

    lines = [line.decode("iso-8859-1") for line in LINE_SEPARATOR.split(blocks[-1])]
    headers = _parse_status_line(lines[0])

    for line in lines[1:]:
        if not line.strip():
            continue
        name, sep, value = line.partition(": ")
        if not sep:
            raise ParseError(f"invalid HTTP header line: {line!r}")
        headers[name] = value

    return Response(content, headers)
