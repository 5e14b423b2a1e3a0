"""Transport layer that executes HTTP requests with ``httpx`` and returns the
raw response (header blocks followed by the body) together with metadata
about the transfer.
"""

from __future__ import annotations

import logging
import ssl

from dataclasses import dataclass
from io import BytesIO
from socket import gaierror
from time import monotonic
from typing import Optional, Protocol, Union

import httpx

from .options import TransportOptions
from .request import Request

__all__ = ("HttpxTransport", "Transport", "TransportInfo", "describe_error_code")


log = logging.getLogger(__name__)


#: Error codes reported by the transport and their descriptions. The numbers
#: follow the conventions of libcurl so they are familiar to most users.
ERROR_DESCRIPTIONS: dict[int, str] = {
    1: "Unsupported protocol",
    3: "URL using bad/illegal format or missing URL",
    5: "Could not resolve proxy",
    6: "Could not resolve host",
    7: "Couldn't connect to server",
    28: "Timeout was reached",
    35: "SSL connect error",
    47: "Number of redirects hit maximum amount",
    52: "Server returned nothing (no headers, no data)",
    55: "Failed sending data to the peer",
    56: "Failure when receiving data from the peer",
    60: "SSL peer certificate or SSH remote key was not OK",
    77: "Problem with the SSL CA cert (path? access rights?)",
}


def describe_error_code(code: int) -> str:
    """Returns the human-readable description of a transport error code."""
    return ERROR_DESCRIPTIONS.get(code, f"Unknown error {code}")


@dataclass
class TransportInfo:
    """Metadata about a single transfer executed by a transport."""

    #: Error code of the transfer; zero if the transfer succeeded
    error_code: int = 0

    #: Description of the error; empty if the transfer succeeded
    error_message: str = ""

    #: Total length of the header blocks at the start of the raw response,
    #: in bytes
    header_size: int = 0

    #: Status code of the last response; zero if there was no response
    status_code: int = 0

    #: The URL of the last response, after following redirects
    effective_url: str = ""

    #: Number of redirects that were followed
    redirect_count: int = 0

    #: Duration of the transfer, in seconds
    total_time: float = 0.0

    #: Content type of the last response, if known
    content_type: Optional[str] = None

    #: The exception raised by the HTTP engine, if any
    exception: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error_code != 0


class Transport(Protocol):
    """Interface of transports that the HTTP client can dispatch requests to."""

    def execute(self, request: Request) -> tuple[bytes, TransportInfo]:
        """Executes the given request exactly once.

        Implementations must not raise exceptions for transfer failures;
        they must report them in the returned metadata instead, and they
        must release any resources they acquired before returning.

        Returns:
            the raw response (header blocks followed by the body) and the
            metadata of the transfer
        """
        ...


def _iter_causes(exc: BaseException):
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__ or exc.__context__


def _classify_error(exc: httpx.HTTPError) -> int:
    """Returns the transport error code corresponding to an httpx exception."""
    if isinstance(exc, httpx.UnsupportedProtocol):
        return 1
    if isinstance(exc, httpx.ProxyError):
        return 5
    if isinstance(exc, httpx.TimeoutException):
        return 28
    if isinstance(exc, httpx.TooManyRedirects):
        return 47

    causes = list(_iter_causes(exc))
    if any(isinstance(cause, ssl.SSLCertVerificationError) for cause in causes):
        return 60
    if any(isinstance(cause, ssl.SSLError) for cause in causes):
        return 35

    if isinstance(exc, httpx.ConnectError):
        if any(isinstance(cause, gaierror) for cause in causes):
            return 6
        return 7
    if isinstance(exc, httpx.RemoteProtocolError):
        return 52
    if isinstance(exc, httpx.WriteError):
        return 55

    return 56


def _write_header_block(buffer: BytesIO, response: httpx.Response) -> None:
    """Writes the status line and the headers of a response in wire format."""
    reason = response.reason_phrase or ""
    status_line = f"{response.http_version} {response.status_code} {reason}"
    buffer.write(status_line.rstrip().encode("ascii", errors="replace"))
    buffer.write(b"\r\n")
    for name, value in response.headers.raw:
        buffer.write(name)
        buffer.write(b": ")
        buffer.write(value)
        buffer.write(b"\r\n")
    buffer.write(b"\r\n")


def _as_limit(seconds: float) -> Optional[float]:
    """Converts a timeout option to a limit; zero means no limit."""
    return seconds if seconds > 0 else None


class HttpxTransport:
    """Transport that executes requests with an ``httpx`` client.

    A new ``httpx`` client is opened for every request and it is closed
    before `execute()` returns, no matter whether the request succeeded.
    Redirects are followed hop by hop so the overall timeout of the request
    covers the whole redirect chain and the download of every body.
    """

    def __init__(self, transport: Optional[httpx.BaseTransport] = None):
        """Constructor.

        Parameters:
            transport: the ``httpx`` transport to send requests with; `None`
                means the default network transport. Useful for testing with
                ``httpx.MockTransport``.
        """
        self._transport = transport

    def execute(self, request: Request) -> tuple[bytes, TransportInfo]:
        url = request.url
        if "://" not in url:
            url = "http://" + url

        options = request.options
        info = TransportInfo()
        started_at = monotonic()

        limit = _as_limit(options.timeout)
        deadline = started_at + limit if limit is not None else None

        try:
            client = self._create_client(options)
        except OSError as ex:
            return b"", self._failure(info, 77, ex, started_at)

        try:
            with client:
                hops = self._send(client, request, url, deadline)
        except httpx.InvalidURL as ex:
            return b"", self._failure(info, 3, ex, started_at)
        except httpx.HTTPError as ex:
            return b"", self._failure(info, _classify_error(ex), ex, started_at)

        buffer = BytesIO()
        for hop, _ in hops:
            _write_header_block(buffer, hop)

        response, content = hops[-1]
        info.header_size = buffer.tell()
        info.status_code = response.status_code
        info.effective_url = str(response.url)
        info.redirect_count = len(hops) - 1
        info.content_type = response.headers.get("Content-Type")
        info.total_time = monotonic() - started_at

        buffer.write(content)

        log.debug(
            "Received %d response with %d bytes of headers from %s",
            info.status_code,
            info.header_size,
            info.effective_url,
        )

        return buffer.getvalue(), info

    def _send(
        self, client: httpx.Client, request: Request, url: str, deadline: Optional[float]
    ) -> list[tuple[httpx.Response, bytes]]:
        """Sends the request, follows redirects if needed and returns every
        response of the redirect chain together with its body.
        """
        options = request.options
        next_request: Optional[httpx.Request] = client.build_request(
            request.method,
            url,
            content=request.body,
            headers=[
                (name.encode("ascii"), value.encode("utf-8"))
                for name, value in request.iter_header_pairs()
            ],
        )

        hops = []
        while next_request is not None:
            if len(hops) > options.max_redirs:
                raise httpx.TooManyRedirects(
                    "Exceeded maximum allowed redirects.", request=next_request
                )

            self._check_deadline(deadline, next_request)
            response = client.send(next_request, stream=True, follow_redirects=False)
            content = self._read_body(response, deadline, skip=request.no_body)
            hops.append((response, content))

            next_request = response.next_request if options.follow_location else None

        return hops

    def _read_body(
        self, response: httpx.Response, deadline: Optional[float], skip: bool = False
    ) -> bytes:
        chunks = []
        try:
            if not skip:
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    self._check_deadline(deadline, response.request)
        finally:
            response.close()
        return b"".join(chunks)

    @staticmethod
    def _check_deadline(deadline: Optional[float], request: httpx.Request) -> None:
        if deadline is not None and monotonic() > deadline:
            raise httpx.ReadTimeout("Operation timed out", request=request)

    def _create_client(self, options: TransportOptions) -> httpx.Client:
        timeout = httpx.Timeout(
            _as_limit(options.timeout), connect=_as_limit(options.connect_timeout)
        )
        kwds = {"timeout": timeout}

        if self._transport is not None:
            kwds["transport"] = self._transport
        else:
            kwds["verify"] = self._create_ssl_context(options)
            if options.proxy:
                kwds["proxy"] = options.proxy

        return httpx.Client(**kwds)

    @staticmethod
    def _create_ssl_context(options: TransportOptions) -> Union[bool, ssl.SSLContext]:
        if not options.ssl_verify_peer:
            return False

        context = ssl.create_default_context(cafile=options.ca_info)
        if not options.ssl_verify_host:
            context.check_hostname = False
        return context

    @staticmethod
    def _failure(
        info: TransportInfo, code: int, exc: BaseException, started_at: float
    ) -> TransportInfo:
        info.error_code = code
        info.error_message = describe_error_code(code)
        info.exception = exc
        info.total_time = monotonic() - started_at
        log.debug("Transfer failed with error %d: %s", code, exc)
        return info
