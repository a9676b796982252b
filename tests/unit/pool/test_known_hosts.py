"""Unit tests for known-hosts tracking and cluster membership refresh."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from clusterpool.pool import ClientPoolRegistry, Host, HostDiscoveryError, KnownHostsTracker

if TYPE_CHECKING:
    from tests.conftest import FakeSessionFactory


class TestKnownHostsTracker:
    """Tests for the tracker's set operations."""

    def test_seed_is_reduced_to_addresses(self) -> None:
        """Test seed entries with and without ports collapse to bare addresses."""
        tracker = KnownHostsTracker(["10.0.0.1", "10.0.0.1:9160", "[::1]:9042"], default_port=9160)

        assert tracker.hosts == frozenset({"10.0.0.1", "::1"})
        assert "10.0.0.1" in tracker
        assert len(tracker) == 2

    def test_malformed_entries_are_skipped(self) -> None:
        """Test a bad entry does not poison the rest of the batch."""
        tracker = KnownHostsTracker(["10.0.0.1", "a:b:c", "host:port"])

        assert tracker.hosts == frozenset({"10.0.0.1"})

    def test_add_returns_only_new_addresses(self) -> None:
        """Test add unions into the set and reports what changed."""
        tracker = KnownHostsTracker(["10.0.0.1"])

        added = tracker.add(["10.0.0.1", "10.0.0.2:9160"])

        assert added == frozenset({"10.0.0.2"})
        assert tracker.hosts == frozenset({"10.0.0.1", "10.0.0.2"})
        assert tracker.add(["10.0.0.2"]) == frozenset()

    def test_remove(self) -> None:
        """Test remove drops present addresses and ignores absent ones."""
        tracker = KnownHostsTracker(["10.0.0.1", "10.0.0.2"])

        removed = tracker.remove(["10.0.0.2", "10.0.0.9"])

        assert removed == frozenset({"10.0.0.2"})
        assert tracker.hosts == frozenset({"10.0.0.1"})

    def test_snapshot_is_not_affected_by_later_writes(self) -> None:
        """Test a reader's snapshot stays stable while writers swap the set."""
        tracker = KnownHostsTracker(["10.0.0.1"])
        snapshot = tracker.hosts

        tracker.add(["10.0.0.2"])
        tracker.remove(["10.0.0.1"])

        assert snapshot == frozenset({"10.0.0.1"})


class TestUpdateKnownHosts:
    """Tests for refreshing membership through the registry."""

    def test_refresh_over_idle_connection(self, registry: ClientPoolRegistry) -> None:
        """Test refresh queries an idle connection, returns it and keeps the set a superset."""
        conn = registry.borrow_client("localhost:9170")
        registry.release_client(conn)

        added = registry.update_known_hosts()

        assert added == frozenset({"127.0.0.2"})
        assert registry.known_hosts == frozenset({"127.0.0.1", "127.0.0.2"})
        assert conn.session.describe_calls == 1  # type: ignore[attr-defined]
        assert registry.num_idle == 1
        assert registry.num_active == 0

    def test_refresh_never_shrinks(self, registry: ClientPoolRegistry) -> None:
        """Test hosts missing from the cluster's answer stay known."""
        registry.add_known_hosts(["10.9.9.9"])
        conn = registry.borrow_client("localhost:9170")
        registry.release_client(conn)

        registry.update_known_hosts()

        assert "10.9.9.9" in registry.known_hosts
        assert "127.0.0.1" in registry.known_hosts

    def test_refresh_through_known_host_when_nothing_idle(
        self, registry: ClientPoolRegistry, session_factory: FakeSessionFactory
    ) -> None:
        """Test refresh dials a known host on the default port when no pool has an idle connection."""
        session_factory.reachable.add(Host(address="127.0.0.1", port=9170))

        added = registry.update_known_hosts()

        assert added == frozenset({"127.0.0.2"})
        assert Host(address="127.0.0.1", port=9170) in session_factory.open_calls
        assert registry.get_pool(Host(address="127.0.0.1", port=9170)).num_idle == 1

    def test_failed_query_is_retried_on_another_connection(self, registry: ClientPoolRegistry) -> None:
        """Test a connection whose query fails is invalidated and the next attempt uses a different one."""
        first = registry.borrow_client("localhost:9170")
        second = registry.borrow_client("localhost:9170")
        registry.release_client(first)
        registry.release_client(second)
        second.session.fail_describe = True  # type: ignore[attr-defined]

        added = registry.update_known_hosts()

        assert added == frozenset({"127.0.0.2"})
        assert second.has_errors
        assert second.session.closed  # type: ignore[attr-defined]
        assert first.session.describe_calls == 1  # type: ignore[attr-defined]
        assert registry.num_idle == 1

    def test_unreachable_cluster_raises_discovery_error(self, registry: ClientPoolRegistry) -> None:
        """Test refresh fails with HostDiscoveryError when no known host accepts a connection."""
        with pytest.raises(HostDiscoveryError):
            registry.update_known_hosts()

        assert registry.known_hosts == frozenset({"127.0.0.1"})

    def test_no_known_hosts_raises_discovery_error(self, session_factory: FakeSessionFactory) -> None:
        """Test refresh with an empty registry and no seed hosts has nothing to query."""
        with ClientPoolRegistry(session_factory) as registry:
            with pytest.raises(HostDiscoveryError, match="no known hosts"):
                registry.update_known_hosts()

    def test_every_attempt_failing_raises(self, registry: ClientPoolRegistry) -> None:
        """Test the query error surfaces once the attempts run out."""
        conn = registry.borrow_client("localhost:9170")
        registry.release_client(conn)
        conn.session.fail_describe = True  # type: ignore[attr-defined]

        with pytest.raises(HostDiscoveryError):
            registry.update_known_hosts()

        assert conn.has_errors
        assert registry.num_idle == 0
