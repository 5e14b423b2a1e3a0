"""Error classes for the HTTP module."""

from curlish.errors import Error

__all__ = ("ConfigurationError", "ParseError", "TransportError")


class TransportError(Error):
    """Error thrown by the HTTP client when the underlying transport reported
    a failure (DNS resolution, connection, TLS, timeout and the like).

    The string representation of the error is ``<code> - <description>``.
    """

    code: int
    """Numeric error code reported by the transport."""

    description: str
    """Human-readable description of the error."""

    def __init__(self, code: int, description: str):
        super().__init__(f"{code} - {description}")
        self.code = code
        self.description = description


class ParseError(Error, ValueError):
    """Error thrown when a raw HTTP response cannot be split into a status
    line, headers and a body.
    """

    pass


class ConfigurationError(Error, ValueError):
    """Error thrown when an unknown transport option is set on a client or
    when the value of a known option is invalid.
    """

    pass
