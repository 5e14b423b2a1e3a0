"""Main package for curlish, a small synchronous HTTP client wrapper."""

from .errors import Error
from .http import Client, Response, TransportError, ParseError
from .version import __version__, __version_info__

__all__ = (
    "__version__",
    "__version_info__",
    "Client",
    "Error",
    "ParseError",
    "Response",
    "TransportError",
)
