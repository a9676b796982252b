"""Unit tests for the process-wide registry accessors."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

import pytest

from clusterpool.pool import (
    ClientPoolRegistry,
    ClusterPoolConfig,
    PoolClosed,
    RegistryNotConfigured,
    configure_registry,
    get_registry,
    reset_registry,
)

if TYPE_CHECKING:
    from tests.conftest import FakeSessionFactory


@pytest.fixture(autouse=True)
def _reset_registry() -> Iterator[None]:
    reset_registry()
    yield
    reset_registry()


class TestRegistryFactory:
    """Tests for configure_registry/get_registry/reset_registry."""

    def test_get_before_configure_raises(self) -> None:
        """Test the registry must be configured before use."""
        with pytest.raises(RegistryNotConfigured, match="configure_registry"):
            get_registry()

    def test_registry_not_configured_is_runtime_error(self) -> None:
        """Test callers catching RuntimeError also catch the unconfigured case."""
        with pytest.raises(RuntimeError):
            get_registry()

    def test_configure_then_get_returns_same_instance(
        self, session_factory: FakeSessionFactory, cluster_config: ClusterPoolConfig
    ) -> None:
        """Test every caller sees the configured registry."""
        registry = configure_registry(session_factory, cluster_config)

        assert isinstance(registry, ClientPoolRegistry)
        assert get_registry() is registry
        assert get_registry() is registry
        assert registry.config is cluster_config

    def test_reconfigure_closes_previous(self, session_factory: FakeSessionFactory) -> None:
        """Test replacing the registry closes the old one's pools."""
        first = configure_registry(session_factory)
        conn = first.borrow_client("localhost:9170")
        first.release_client(conn)

        second = configure_registry(session_factory)

        assert get_registry() is second
        assert conn.session.closed  # type: ignore[attr-defined]
        with pytest.raises(PoolClosed):
            first.borrow_client("localhost:9170")

    def test_reset_forgets_registry(self, session_factory: FakeSessionFactory) -> None:
        """Test reset closes the registry and get_registry fails again."""
        registry = configure_registry(session_factory)
        conn = registry.borrow_client("localhost:9170")
        registry.release_client(conn)

        reset_registry()

        assert conn.session.closed  # type: ignore[attr-defined]
        with pytest.raises(RegistryNotConfigured):
            get_registry()

    def test_reset_without_registry_is_noop(self) -> None:
        """Test reset is safe to call when nothing is configured."""
        reset_registry()
        reset_registry()
