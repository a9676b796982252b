"""Connection pooling across the members of a database cluster.

This module provides:

- `HostPool`: bounded pool of sessions to one host
- `ClientPoolRegistry`: host-to-pool registry and the borrow/release entry point
- `HostSelector`: failover order across candidate hosts
- `KnownHostsTracker`: discovered cluster membership

Usage
-----
>>> registry = ClientPoolRegistry(session_factory, ClusterPoolConfig())
>>> conn = registry.borrow_client(["10.0.0.1:9160", "10.0.0.2:9160"])
>>> try:
...     conn.session.execute(...)
... except Exception:
...     registry.invalidate_client(conn)
...     raise
... else:
...     registry.release_client(conn)
"""

from .config import ClusterPoolConfig, ExhaustedAction, HostPoolSettings, SelectionPolicy
from .connection import PooledConnection, Session, SessionFactory
from .exceptions import (
    ClusterPoolError,
    ConnectionUnavailable,
    HostDiscoveryError,
    InvalidHostFormat,
    NoAvailableClient,
    NoReachableHost,
    PoolClosed,
    PoolExhausted,
    RegistryNotConfigured,
)
from .factory import configure_registry, get_registry, reset_registry
from .health import HostPoolHealth, RegistryHealth
from .host import Host
from .host_pool import HostPool
from .known_hosts import KnownHostsTracker
from .registry import ClientPoolRegistry
from .selector import HostSelector

__all__ = [
    "ClientPoolRegistry",
    "ClusterPoolConfig",
    "ClusterPoolError",
    "ConnectionUnavailable",
    "ExhaustedAction",
    "Host",
    "HostDiscoveryError",
    "HostPool",
    "HostPoolHealth",
    "HostPoolSettings",
    "HostSelector",
    "InvalidHostFormat",
    "KnownHostsTracker",
    "NoAvailableClient",
    "NoReachableHost",
    "PoolClosed",
    "PoolExhausted",
    "PooledConnection",
    "RegistryHealth",
    "RegistryNotConfigured",
    "SelectionPolicy",
    "Session",
    "SessionFactory",
    "configure_registry",
    "get_registry",
    "reset_registry",
]
