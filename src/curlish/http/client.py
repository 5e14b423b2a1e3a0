"""HTTP client object that dispatches requests to a transport and parses the
responses.
"""

from __future__ import annotations

import click
import logging
import platform

from typing import Any, Mapping, Optional, Union

from curlish.version import __version__

from .errors import ConfigurationError, ParseError, TransportError
from .options import OptionOverrides, TransportOption, TransportOptions
from .request import Payload, Request
from .response import Response, parse_response
from .transport import HttpxTransport, Transport, TransportInfo

__all__ = ("Client", "DEFAULT_USER_AGENT", "curlish")


log = logging.getLogger(__name__)


DEFAULT_USER_AGENT = (
    f"curlish/{__version__} (python {platform.python_version()})"
)
"""User agent sent by clients that were not given an explicit one."""


class Client:
    """HTTP client that issues requests with a default transport configuration
    and parses the responses into Response_ objects.

    Custom headers and transport option overrides can be set in the
    ``headers`` and ``options`` attributes; they apply to every subsequent
    request of the client. The body and the headers of the last response are
    kept in the ``body`` and ``response_header`` attributes.

    Client objects are not thread-safe. Use a separate client for each
    logical sequence of calls, or synchronize access to a shared client
    externally.
    """

    headers: dict[str, str]
    """Custom headers to send with each request."""

    user_agent: str
    """User agent to send with each request unless overridden."""

    body: Optional[str]
    """The body of the last response."""

    response_header: dict[str, str]
    """The headers of the last response."""

    response_info: Optional[TransportInfo]
    """Transport metadata of the last request."""

    error: str
    """Description of the error of the last request; empty if it succeeded."""

    def __init__(
        self,
        user_agent: Optional[str] = None,
        *,
        headers: Optional[dict[str, str]] = None,
        options: Optional[dict[Union[str, TransportOption], Any]] = None,
        transport: Optional[Transport] = None,
    ):
        """Constructor.

        Parameters:
            user_agent: the user agent to send with requests; `None` means
                ``DEFAULT_USER_AGENT``
            headers: initial custom headers
            options: initial transport option overrides
            transport: the transport to dispatch requests to; `None` means
                a new HttpxTransport_

        Raises:
            ConfigurationError: if one of the option overrides is invalid
        """
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.headers = dict(headers or {})
        self.options = options
        self.transport = transport or HttpxTransport()

        self.body = None
        self.response_header = {}
        self.response_info = None
        self.error = ""

    @property
    def options(self) -> OptionOverrides:
        """Transport option overrides, validated when they are assigned.

        Assigning a mapping to this property replaces all the overrides; the
        keys and values of the mapping are validated right away.
        """
        return self._options

    @options.setter
    def options(
        self, value: Optional[Mapping[Union[str, TransportOption], Any]]
    ) -> None:
        self._options = OptionOverrides(value)

    def get(self, url: str, payload: Payload = None) -> Optional[Response]:
        """Sends a GET request; the payload is appended to the URL as a
        query string.
        """
        return self.request("GET", url, payload)

    def head(self, url: str, payload: Payload = None) -> Optional[Response]:
        """Sends a HEAD request; the payload is appended to the URL as a
        query string.
        """
        return self.request("HEAD", url, payload)

    def post(self, url: str, payload: Payload = None) -> Optional[Response]:
        """Sends a POST request with the given payload as the body."""
        return self.request("POST", url, payload)

    def put(self, url: str, payload: Payload = None) -> Optional[Response]:
        """Sends a PUT request with the given payload as the body."""
        return self.request("PUT", url, payload)

    def delete(self, url: str, payload: Payload = None) -> Optional[Response]:
        """Sends a DELETE request with the given payload as the body."""
        return self.request("DELETE", url, payload)

    def request(
        self, method: str, url: str, payload: Payload = None
    ) -> Optional[Response]:
        """Sends an HTTP request with an arbitrary method.

        Parameters:
            method: the HTTP method of the request
            url: the URL to send the request to
            payload: the payload of the request; a pre-encoded string or a
                mapping that will be form-encoded. It is sent in the query
                string for ``GET`` and ``HEAD`` requests and in the body
                otherwise.

        Returns:
            the parsed response, or `None` if the transport returned an empty
            response

        Raises:
            TransportError: if the transport reported an error
            ParseError: if the response of the server could not be parsed
        """
        self.error = ""

        request = Request.build(
            method, url, payload, headers=self.headers, options=self._get_options()
        )

        log.debug("Sending %s request to %s", request.method, request.url)
        raw, info = self.transport.execute(request)
        self.response_info = info

        if info.failed:
            error = TransportError(info.error_code, info.error_message)
            self.error = str(error)
            raise error from info.exception

        if not raw:
            return None

        try:
            response = parse_response(raw, info.header_size)
        except ParseError as ex:
            self.error = str(ex)
            raise

        self.body = response.body
        self.response_header = dict(response.headers)
        return response

    def _get_options(self) -> TransportOptions:
        """Returns the transport options of the next request: the defaults,
        the user agent of the client and the overrides, in this order.
        """
        options = self.options.apply_to(TransportOptions(user_agent=self.user_agent))
        if not options.verifies_tls:
            log.warning("TLS verification is disabled for this request")
        return options


def _parse_pairs(items: tuple[str, ...], separator: str, what: str) -> dict[str, str]:
    result = {}
    for item in items:
        key, sep, value = item.partition(separator)
        if not sep or not key.strip():
            raise click.BadParameter(f"expected {what}, got {item!r}")
        result[key.strip()] = value.strip()
    return result


@click.command()
@click.argument("url")
@click.option(
    "-X",
    "--request",
    "method",
    metavar="METHOD",
    default=None,
    help="the HTTP method to use; defaults to GET, or POST when data is given",
)
@click.option(
    "-d",
    "--data",
    metavar="DATA",
    multiple=True,
    help=(
        "the payload of the request. Either a single pre-encoded string or "
        "one or more 'key=value' pairs that will be form-encoded."
    ),
)
@click.option(
    "-H",
    "--header",
    metavar="HEADER",
    multiple=True,
    help="a custom header to send, in 'Name: Value' format",
)
@click.option(
    "-o",
    "--option",
    metavar="NAME=VALUE",
    multiple=True,
    help="a transport option override, e.g. 'timeout=5' or 'follow_location=no'",
)
@click.option(
    "-i",
    "--include",
    is_flag=True,
    default=False,
    help="print the status line and the response headers before the body",
)
@click.option(
    "--user-agent",
    metavar="AGENT",
    default=None,
    envvar="HTTP_USER_AGENT",
    help="the user agent to send; defaults to $HTTP_USER_AGENT if set",
)
def curlish(
    url: str,
    method: Optional[str] = None,
    data: tuple[str, ...] = (),
    header: tuple[str, ...] = (),
    option: tuple[str, ...] = (),
    include: bool = False,
    user_agent: Optional[str] = None,
):
    """Sends an HTTP request to the given URL and prints the body of the
    response to the standard output.
    """
    payload: Payload
    if len(data) == 1 and "=" not in data[0]:
        payload = data[0]
    elif data:
        payload = _parse_pairs(data, "=", "a 'key=value' pair")
    else:
        payload = None

    if method is None:
        method = "POST" if payload else "GET"

    client = create_client(user_agent)
    client.headers.update(_parse_pairs(header, ":", "a 'Name: Value' header"))

    try:
        client.options.update(_parse_pairs(option, "=", "a 'name=value' option"))
    except ConfigurationError as ex:
        raise click.BadParameter(str(ex), param_hint="'-o' / '--option'") from ex

    try:
        response = client.request(method, url, payload)
    except (TransportError, ParseError, ConfigurationError) as ex:
        raise click.ClickException(str(ex)) from ex

    if response is None:
        click.echo("Empty response.", err=True)
        return

    if include:
        click.echo(f"{response.http_version} {response.status}")
        for name, value in response.headers.items():
            if name not in ("Http-Version", "Status-Code", "Status"):
                click.echo(f"{name}: {value}")
        click.echo()

    click.echo(response.body, nl=False)


def create_client(user_agent: Optional[str] = None) -> Client:
    """Creates the client used by the command line interface."""
    return Client(user_agent)
