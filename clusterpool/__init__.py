"""Client-side connection pool manager for multi-host database clusters."""

from __future__ import annotations

from .logger import configure_logging, get_logger
from .pool import (
    ClientPoolRegistry,
    ClusterPoolConfig,
    ClusterPoolError,
    ConnectionUnavailable,
    ExhaustedAction,
    Host,
    HostDiscoveryError,
    HostPool,
    HostPoolSettings,
    InvalidHostFormat,
    NoAvailableClient,
    NoReachableHost,
    PoolClosed,
    PooledConnection,
    PoolExhausted,
    SelectionPolicy,
    Session,
    SessionFactory,
    configure_registry,
    get_registry,
    reset_registry,
)

__version__ = "0.1.0"

__all__ = [
    "ClientPoolRegistry",
    "ClusterPoolConfig",
    "ClusterPoolError",
    "ConnectionUnavailable",
    "ExhaustedAction",
    "Host",
    "HostDiscoveryError",
    "HostPool",
    "HostPoolSettings",
    "InvalidHostFormat",
    "NoAvailableClient",
    "NoReachableHost",
    "PoolClosed",
    "PoolExhausted",
    "PooledConnection",
    "SelectionPolicy",
    "Session",
    "SessionFactory",
    "__version__",
    "configure_logging",
    "configure_registry",
    "get_logger",
    "get_registry",
    "reset_registry",
]
