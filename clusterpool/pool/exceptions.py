"""Error taxonomy for the pool manager.

Every condition a borrow-family call can surface derives from
`ClusterPoolError`, so callers can catch the whole family or one kind.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .host import Host


class ClusterPoolError(Exception):
    """Base class for all pool manager errors."""


class PoolExhausted(ClusterPoolError):
    """A host pool is at capacity and no slot was freed before the wait ran out."""

    def __init__(self, host: Host, capacity: int, waited_s: float) -> None:
        self.host = host
        self.capacity = capacity
        self.waited_s = waited_s
        super().__init__(f"Pool for {host} exhausted (capacity={capacity}, waited {waited_s:.3f}s)")


class ConnectionUnavailable(ClusterPoolError):
    """Opening a new session to a specific host failed."""

    def __init__(self, host: Host, reason: str = "") -> None:
        self.host = host
        message = f"Unable to open connection to {host}"
        super().__init__(f"{message}: {reason}" if reason else message)


class InvalidHostFormat(ClusterPoolError, ValueError):
    """A host string could not be parsed into a host identity."""

    def __init__(self, value: object, reason: str = "expected 'host:port'") -> None:
        self.value = value
        super().__init__(f"Invalid host {value!r}: {reason}")


class NoReachableHost(ClusterPoolError):
    """Every candidate of a load-balanced borrow failed."""

    def __init__(self, causes: Mapping[str, BaseException]) -> None:
        self.causes: dict[str, BaseException] = dict(causes)
        if not self.causes:
            super().__init__("No candidate hosts were given")
            return
        details = "; ".join(f"{candidate}: {type(exc).__name__}: {exc}" for candidate, exc in self.causes.items())
        super().__init__(f"None of {len(self.causes)} candidate host(s) could serve a connection ({details})")


class NoAvailableClient(ClusterPoolError):
    """No idle connection exists in any registered pool."""

    def __init__(self, pools_scanned: int) -> None:
        self.pools_scanned = pools_scanned
        super().__init__(f"No idle connection available in any of {pools_scanned} pool(s)")


class PoolClosed(ClusterPoolError):
    """The host pool has been torn down."""

    def __init__(self, host: Host) -> None:
        self.host = host
        super().__init__(f"Pool for {host} is closed")


class HostDiscoveryError(ClusterPoolError):
    """The cluster membership query could not be completed."""


class RegistryNotConfigured(ClusterPoolError, RuntimeError):
    """The process-wide registry was requested before it was configured."""
