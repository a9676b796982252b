from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ..logger import get_logger
from ..resilience import RetryConfig, retry
from .exceptions import HostDiscoveryError, InvalidHostFormat, NoAvailableClient, NoReachableHost
from .host import Host

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from .connection import PooledConnection
    from .registry import ClientPoolRegistry

logger: BoundLogger = get_logger(__name__)


class KnownHostsTracker:
    """Process-wide set of cluster member addresses.

    The set only grows on `refresh`; shrinking it takes an explicit `remove`.
    Writers swap in a new frozenset under a lock, so readers never lock.

    Parameters
    ----------
    seed
        Initial addresses, typically from configuration. ``"addr:port"``
        entries are accepted and reduced to their address.
    default_port
        Port used to reach a known address when no pooled connection is idle.
    attempts
        Refresh attempts in total. A failed attempt invalidates its connection,
        so the next attempt runs over a different one.
    """

    def __init__(self, seed: Iterable[str] = (), *, default_port: int = 9160, attempts: int = 2) -> None:
        self._default_port = default_port
        self._lock = threading.Lock()
        self._hosts: frozenset[str] = frozenset(self._normalize(seed))
        self._refresh_with_retry = retry(
            RetryConfig(
                max_attempts=attempts,
                use_jitter=False,
                wait_min=0.0,
                wait_max=0.0,
                retry_on_exceptions=(HostDiscoveryError,),
            ),
            before_sleep=lambda state: logger.warning(
                "Known hosts refresh failed, retrying on another connection",
                attempt=state.attempt_number,
            ),
        )(self._refresh_once)

    @property
    def hosts(self) -> frozenset[str]:
        return self._hosts

    def __contains__(self, address: object) -> bool:
        return address in self._hosts

    def __len__(self) -> int:
        return len(self._hosts)

    def _normalize(self, entries: Iterable[str]) -> set[str]:
        addresses: set[str] = set()
        for entry in entries:
            try:
                addresses.add(Host.parse(entry, default_port=self._default_port).address)
            except InvalidHostFormat as e:
                logger.warning("Skipping malformed host entry", entry=entry, error=str(e))
        return addresses

    def add(self, entries: Iterable[str]) -> frozenset[str]:
        """Union `entries` into the set. Returns the addresses that were new."""
        incoming = self._normalize(entries)
        with self._lock:
            added = frozenset(incoming - self._hosts)
            if added:
                self._hosts = self._hosts | added
        if added:
            logger.info("Learned new cluster hosts", added=sorted(added), total=len(self._hosts))
        return added

    def remove(self, entries: Iterable[str]) -> frozenset[str]:
        """Drop `entries` from the set. Returns the addresses that were removed."""
        outgoing = self._normalize(entries)
        with self._lock:
            removed = frozenset(outgoing & self._hosts)
            if removed:
                self._hosts = self._hosts - removed
        if removed:
            logger.info("Forgot cluster hosts", removed=sorted(removed), total=len(self._hosts))
        return removed

    def refresh(self, registry: ClientPoolRegistry) -> frozenset[str]:
        """Query the cluster for its members over a pooled connection.

        Returns
        -------
        frozenset[str]
            Addresses learned by this refresh.

        Raises
        ------
        HostDiscoveryError
            If no connection could be obtained or every attempt's query failed.
        """
        return self._refresh_with_retry(registry)

    def _acquire_channel(self, registry: ClientPoolRegistry) -> PooledConnection:
        try:
            return registry.borrow_client()
        except NoAvailableClient:
            pass

        candidates = [str(Host(address=address, port=self._default_port)) for address in sorted(self._hosts)]
        if not candidates:
            raise HostDiscoveryError("No live connection and no known hosts to query for cluster membership")
        try:
            return registry.borrow_client(candidates)
        except NoReachableHost as e:
            raise HostDiscoveryError(f"No known host reachable for cluster membership query: {e}") from e

    def _refresh_once(self, registry: ClientPoolRegistry) -> frozenset[str]:
        conn = self._acquire_channel(registry)
        try:
            members = list(conn.describe_cluster_hosts())
        except Exception as e:
            registry.invalidate_client(conn)
            raise HostDiscoveryError(f"Cluster membership query via {conn.host} failed: {e}") from e

        registry.release_client(conn)
        added = self.add(members)
        logger.info("Refreshed known hosts", queried=str(conn.host), members=len(members), added=len(added))
        return added
