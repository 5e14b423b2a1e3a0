"""Transport options that callers may override on an HTTP client."""

from __future__ import annotations

from collections.abc import MutableMapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Union

from .errors import ConfigurationError

__all__ = ("OptionOverrides", "TransportOption", "TransportOptions")


class TransportOption(Enum):
    """Enum listing every transport option that a caller may override.

    The value of each member is the name of the corresponding attribute of
    TransportOptions_.
    """

    CONNECT_TIMEOUT = "connect_timeout"
    TIMEOUT = "timeout"
    SSL_VERIFY_PEER = "ssl_verify_peer"
    SSL_VERIFY_HOST = "ssl_verify_host"
    CA_INFO = "ca_info"
    FOLLOW_LOCATION = "follow_location"
    MAX_REDIRS = "max_redirs"
    USER_AGENT = "user_agent"
    REFERER = "referer"
    COOKIE = "cookie"
    PROXY = "proxy"

    @classmethod
    def from_key(cls, key: Union[str, TransportOption]) -> TransportOption:
        """Returns the option corresponding to the given key.

        Parameters:
            key: an option or the name of an option. Names are matched
                case-insensitively; dashes and underscores are interchangeable.

        Raises:
            ConfigurationError: if the key does not name a known option
        """
        if isinstance(key, cls):
            return key

        if isinstance(key, str):
            normalized = key.strip().lower().replace("-", "_")
            try:
                return cls(normalized)
            except ValueError:
                pass

        raise ConfigurationError(f"unknown transport option: {key!r}")

    def convert(self, value: Any) -> Any:
        """Validates the given value for this option and converts it to the
        type that the transport expects.

        Raises:
            ConfigurationError: if the value is not valid for this option
        """
        try:
            return _converters[self](value)
        except (TypeError, ValueError) as ex:
            raise ConfigurationError(
                f"invalid value for transport option {self.value!r}: {value!r}"
            ) from ex


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_seconds(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("timeouts must be numbers")
    result = float(value)
    if result < 0:
        raise ValueError("timeouts must not be negative")
    return result


def _to_count(value: Any) -> int:
    if isinstance(value, (bool, float)):
        raise TypeError("counts must be integers")
    result = int(value)
    if result < 0:
        raise ValueError("counts must not be negative")
    return result


def _to_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError("expected a string")
    return value


_converters: dict[TransportOption, Callable[[Any], Any]] = {
    TransportOption.CONNECT_TIMEOUT: _to_seconds,
    TransportOption.TIMEOUT: _to_seconds,
    TransportOption.SSL_VERIFY_PEER: _to_bool,
    TransportOption.SSL_VERIFY_HOST: _to_bool,
    TransportOption.CA_INFO: _to_optional_str,
    TransportOption.FOLLOW_LOCATION: _to_bool,
    TransportOption.MAX_REDIRS: _to_count,
    TransportOption.USER_AGENT: _to_optional_str,
    TransportOption.REFERER: _to_optional_str,
    TransportOption.COOKIE: _to_optional_str,
    TransportOption.PROXY: _to_optional_str,
}


@dataclass(frozen=True)
class TransportOptions:
    """Complete, validated transport configuration of a single request.

    Response headers are always included in the raw transport output and the
    output is always buffered in memory; these are not configurable because
    the response parser depends on them.
    """

    #: Timeout of the connection attempt, in seconds
    connect_timeout: float = 30

    #: Timeout of the whole request, in seconds
    timeout: float = 30

    #: Whether to verify the certificate chain of the peer
    ssl_verify_peer: bool = True

    #: Whether to verify that the certificate matches the host name
    ssl_verify_host: bool = True

    #: Path of a CA bundle to verify the peer with; `None` means the system
    #: default
    ca_info: Optional[str] = None

    #: Whether to follow redirects
    follow_location: bool = True

    #: Maximum number of redirects to follow
    max_redirs: int = 20

    #: User agent to send with the request
    user_agent: Optional[str] = None

    #: Value of the ``Referer`` header to send with the request
    referer: Optional[str] = None

    #: Value of the ``Cookie`` header to send with the request
    cookie: Optional[str] = None

    #: URL of the proxy to send the request through
    proxy: Optional[str] = None

    @property
    def verifies_tls(self) -> bool:
        """Returns whether both the peer and the host name are verified."""
        return self.ssl_verify_peer and self.ssl_verify_host


class OptionOverrides(MutableMapping):
    """Mutable mapping of transport option overrides that validates keys and
    values when they are assigned, not when a request is dispatched.

    Keys are normalized to TransportOption_ members; values are converted to
    the type expected by the transport.
    """

    _items: dict[TransportOption, Any]

    def __init__(self, items: Optional[dict[Union[str, TransportOption], Any]] = None):
        self._items = {}
        if items:
            self.update(items)

    def __getitem__(self, key: Union[str, TransportOption]) -> Any:
        return self._items[self._lookup(key)]

    def __setitem__(self, key: Union[str, TransportOption], value: Any) -> None:
        option = TransportOption.from_key(key)
        self._items[option] = option.convert(value)

    def __delitem__(self, key: Union[str, TransportOption]) -> None:
        del self._items[self._lookup(key)]

    def __iter__(self) -> Iterator[TransportOption]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        items = ", ".join(f"{key.value}={value!r}" for key, value in self._items.items())
        return f"{self.__class__.__name__}({items})"

    @staticmethod
    def _lookup(key: Union[str, TransportOption]) -> TransportOption:
        try:
            return TransportOption.from_key(key)
        except ConfigurationError:
            raise KeyError(key) from None

    def apply_to(self, options: TransportOptions) -> TransportOptions:
        """Returns a copy of the given transport options with the overrides
        in this mapping applied.
        """
        if not self._items:
            return options
        return replace(
            options, **{key.value: value for key, value in self._items.items()}
        )
