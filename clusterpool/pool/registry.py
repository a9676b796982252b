"""Registry of per-host pools and the single entry point for callers.

Borrow forms
------------
>>> registry.borrow_client("10.0.0.1", 9160)            # explicit host and port
>>> registry.borrow_client("10.0.0.1:9160")             # "host:port" string
>>> registry.borrow_client(Host(address="10.0.0.1", port=9160))
>>> registry.borrow_client(["10.0.0.1:9160", "10.0.0.2:9160"])  # failover across candidates
>>> registry.borrow_client()                            # any idle connection from any pool

Whatever was borrowed goes back through `release_client` when the work
succeeded, or `invalidate_client` when the connection misbehaved. Both route
to the pool that owns the connection.

Locking
-------
The registry lock only guards creation of new host pools. Steady-state
borrow and release traffic takes nothing but the owning pool's lock, and
operations that touch several pools take a snapshot of the pool list first
and then visit the pools one at a time.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Self, overload

from ..logger import get_logger
from .config import ClusterPoolConfig
from .exceptions import InvalidHostFormat, NoAvailableClient
from .health import RegistryHealth
from .host import Host
from .host_pool import HostPool
from .known_hosts import KnownHostsTracker
from .selector import HostSelector

if TYPE_CHECKING:
    import random
    import types
    from collections.abc import Iterable, Iterator

    from structlog.stdlib import BoundLogger

    from .connection import PooledConnection, SessionFactory

logger: BoundLogger = get_logger(__name__)


class ClientPoolRegistry:
    """Maps each host to its `HostPool`, creating pools on first use.

    Pools are never removed implicitly: a host that went away keeps its
    (empty) pool, so `get_pool` always returns the same instance for a host.

    Examples
    --------
    >>> registry = ClientPoolRegistry(session_factory, ClusterPoolConfig(seed_hosts=("10.0.0.1",)))
    >>> with registry.connection(["10.0.0.1:9160", "10.0.0.2:9160"]) as conn:
    ...     use(conn.session)
    """

    __slots__ = ("_config", "_create_lock", "_known_hosts", "_pools", "_selector", "_session_factory")

    def __init__(
        self,
        session_factory: SessionFactory,
        config: ClusterPoolConfig | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or ClusterPoolConfig()
        self._pools: dict[Host, HostPool] = {}
        self._create_lock = threading.Lock()
        self._selector = HostSelector(self._config.selection_policy, rng)
        self._known_hosts = KnownHostsTracker(
            self._config.seed_hosts,
            default_port=self._config.default_port,
            attempts=self._config.discovery_attempts,
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        if exc_type is not None and exc_val is not None:
            logger.error(
                "ClientPoolRegistry exiting with exception",
                exc_type=exc_type.__name__,
                exc_val=str(exc_val),
            )
        self.close()

    @property
    def config(self) -> ClusterPoolConfig:
        return self._config

    @property
    def selector(self) -> HostSelector:
        return self._selector

    def get_pool(self, host: Host) -> HostPool:
        """Return the pool for `host`, creating and registering it if absent.

        Concurrent first calls for the same host all get the same pool.
        """
        pool = self._pools.get(host)
        if pool is not None:
            return pool

        with self._create_lock:
            pool = self._pools.get(host)
            if pool is None:
                pool = HostPool(host, self._session_factory, self._config.pool)
                self._pools[host] = pool
                logger.info("Created host pool", host=str(host), capacity=pool.capacity)
        return pool

    def pools(self) -> tuple[HostPool, ...]:
        """Registered pools in registration order."""
        with self._create_lock:
            return tuple(self._pools.values())

    @overload
    def borrow_client(self) -> PooledConnection: ...

    @overload
    def borrow_client(self, host: str, port: int) -> PooledConnection: ...

    @overload
    def borrow_client(self, host: str | Host) -> PooledConnection: ...

    @overload
    def borrow_client(self, host: Sequence[str]) -> PooledConnection: ...

    def borrow_client(
        self,
        host: str | Host | Sequence[str] | None = None,
        port: int | None = None,
    ) -> PooledConnection:
        """Borrow a connection.

        Raises
        ------
        InvalidHostFormat
            If a single host string is malformed.
        PoolExhausted
            If the host's pool stayed at capacity for the whole wait.
        ConnectionUnavailable
            If a new session to the host could not be opened.
        NoReachableHost
            If a list of candidates was given and none of them could serve.
        NoAvailableClient
            If no host was given and no pool has an idle connection.
        """
        if host is None:
            if port is not None:
                raise InvalidHostFormat(port, "a port was given without a host")
            return self._borrow_existing()
        if isinstance(host, Host):
            return self._borrow_from(host)
        if isinstance(host, str):
            if port is not None:
                return self._borrow_from(self._to_host(host, port))
            return self._borrow_from(Host.parse(host))
        if port is not None:
            raise InvalidHostFormat(port, "a port cannot be combined with a candidate list")
        return self._selector.select(host, self._borrow_candidate)

    def _to_host(self, address: str, port: int) -> Host:
        try:
            return Host(address=address, port=port)
        except ValueError as e:
            raise InvalidHostFormat(f"{address}:{port}", str(e)) from e

    def _borrow_from(self, host: Host) -> PooledConnection:
        return self.get_pool(host).borrow()

    def _borrow_candidate(self, candidate: str) -> PooledConnection:
        return self._borrow_from(Host.parse(candidate))

    def _borrow_existing(self) -> PooledConnection:
        pools = self.pools()
        for pool in pools:
            conn = pool.borrow_idle()
            if conn is not None:
                return conn
        raise NoAvailableClient(len(pools))

    def _owning_pool(self, conn: PooledConnection, action: str) -> HostPool | None:
        pool = self._pools.get(conn.host)
        if pool is None:
            logger.warning(
                "Connection does not belong to any registered pool, ignoring",
                action=action,
                host=str(conn.host),
                connection_id=conn.id,
            )
        return pool

    def release_client(self, conn: PooledConnection) -> None:
        pool = self._owning_pool(conn, "release")
        if pool is not None:
            pool.release(conn)

    def invalidate_client(self, conn: PooledConnection) -> None:
        """Invalidate `conn` in its owning pool.

        A connection no registered pool owns is only marked errored.
        """
        pool = self._owning_pool(conn, "invalidate")
        if pool is None:
            conn.mark_errored()
            return
        pool.invalidate(conn)

    def invalidate_all_connections_to_host(self, conn: PooledConnection) -> int:
        """Invalidate every live connection to the host `conn` belongs to.

        The emptied pool stays registered; the next borrow opens fresh sessions.
        """
        pool = self._owning_pool(conn, "invalidate_all")
        if pool is None:
            conn.mark_errored()
            return 0
        return pool.invalidate_all()

    @contextmanager
    def connection(
        self,
        host: str | Host | Sequence[str] | None = None,
        port: int | None = None,
    ) -> Iterator[PooledConnection]:
        """Borrow for the duration of a ``with`` block.

        Released on normal exit, invalidated if the block raises.
        """
        conn = self.borrow_client(host, port)  # type: ignore[call-overload]
        try:
            yield conn
        except BaseException:
            self.invalidate_client(conn)
            raise
        self.release_client(conn)

    @property
    def known_hosts(self) -> frozenset[str]:
        return self._known_hosts.hosts

    def add_known_hosts(self, addresses: Iterable[str]) -> frozenset[str]:
        return self._known_hosts.add(addresses)

    def remove_known_hosts(self, addresses: Iterable[str]) -> frozenset[str]:
        return self._known_hosts.remove(addresses)

    def update_known_hosts(self) -> frozenset[str]:
        """Refresh the known hosts from the cluster. Returns newly learned addresses."""
        return self._known_hosts.refresh(self)

    def exhausted_pool_names(self) -> list[str]:
        return [pool.name for pool in self.pools() if pool.is_exhausted]

    @property
    def num_active(self) -> int:
        return sum(pool.num_active for pool in self.pools())

    @property
    def num_idle(self) -> int:
        return sum(pool.num_idle for pool in self.pools())

    @property
    def num_blocked(self) -> int:
        return sum(pool.num_blocked for pool in self.pools())

    def health_check(self) -> RegistryHealth:
        return RegistryHealth.from_pools(
            tuple(pool.health_check() for pool in self.pools()),
            known_hosts=tuple(sorted(self.known_hosts)),
        )

    def close(self) -> None:
        """Close every pool. Pools stay registered and refuse further borrows."""
        for pool in self.pools():
            pool.close()
        logger.info("ClientPoolRegistry closed", pools=len(self._pools))
