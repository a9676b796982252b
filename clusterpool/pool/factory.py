"""Process-wide default registry.

Applications configure the registry once at startup and fetch it anywhere::

    configure_registry(ThriftSessionFactory(), ClusterPoolConfig())
    ...
    registry = get_registry()
    conn = registry.borrow_client()
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from ..logger import get_logger
from .exceptions import RegistryNotConfigured
from .registry import ClientPoolRegistry

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from .config import ClusterPoolConfig
    from .connection import SessionFactory

logger: BoundLogger = get_logger(__name__)

_lock = threading.Lock()
_registry: ClientPoolRegistry | None = None


def configure_registry(session_factory: SessionFactory, config: ClusterPoolConfig | None = None) -> ClientPoolRegistry:
    """Install the process-wide registry.

    Calling it again replaces the registry. The previous one is closed.
    """
    global _registry
    registry = ClientPoolRegistry(session_factory, config)
    with _lock:
        previous, _registry = _registry, registry
    if previous is not None:
        logger.warning("Replacing configured ClientPoolRegistry")
        previous.close()
    return registry


def get_registry() -> ClientPoolRegistry:
    """Return the process-wide registry.

    Raises
    ------
    RegistryNotConfigured
        If `configure_registry` has not been called.
    """
    registry = _registry
    if registry is None:
        raise RegistryNotConfigured("ClientPoolRegistry not configured. Call configure_registry() first.")
    return registry


def reset_registry() -> None:
    """Close and forget the process-wide registry."""
    global _registry
    with _lock:
        registry, _registry = _registry, None
    if registry is not None:
        registry.close()
