"""Small synchronous HTTP client library.

Requests are executed by a transport (``httpx`` by default) that returns the
raw response with all its header blocks; the raw response is then parsed
into a Response_ object.
"""

from .client import Client
from .errors import ConfigurationError, ParseError, TransportError
from .options import TransportOption, TransportOptions
from .request import Request
from .response import Response, parse_response
from .transport import HttpxTransport, TransportInfo

__all__ = (
    "Client",
    "ConfigurationError",
    "HttpxTransport",
    "ParseError",
    "Request",
    "Response",
    "TransportError",
    "TransportInfo",
    "TransportOption",
    "TransportOptions",
    "parse_response",
)
