"""Error taxonomy for market discovery.

ConfigurationError is fatal and always reaches the caller. RemoteCallError
is transient: it is absorbed at the single read or single candidate it
belongs to. Invalid or expired markets are not errors at all; the detail
fetcher simply returns None for them.
"""
from __future__ import annotations


class PendleMarketsError(Exception):
    """Base class for everything this package raises."""


class ConfigurationError(PendleMarketsError):
    """Bad or missing configuration. Never retried."""


class UnknownNetworkError(ConfigurationError):
    def __init__(self, network: str, known: list[str] | None = None) -> None:
        self.network = network
        hint = f" (known: {', '.join(known)})" if known else ""
        super().__init__(f"Unknown network {network!r}{hint}")


class MissingEndpointError(ConfigurationError):
    """No RPC endpoint configured."""


class RemoteCallError(PendleMarketsError):
    """A read against the node failed: revert, timeout or transport fault."""


class RateLimitedError(RemoteCallError):
    """The provider throttled the request. Worth one retry after a pause."""
