"""Shared fixtures for pool tests.

Provides:
- session_factory: in-memory session factory; only `localhost:9170` accepts connections
- pool_settings: small per-host pool settings with short waits
- cluster_config: registry configuration seeded with `127.0.0.1`
- registry: a `ClientPoolRegistry` over the fake factory, closed after the test
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Sequence

import pytest

from clusterpool.pool import ClientPoolRegistry, ClusterPoolConfig, Host, HostPoolSettings, SelectionPolicy

REACHABLE = "localhost:9170"
CLUSTER_MEMBERS = ("127.0.0.1", "127.0.0.2:9170")


class FakeSession:
    """Session double with switches for the failure modes the pool cares about."""

    def __init__(self, host: Host, members: Sequence[str]) -> None:
        self.host = host
        self.members = list(members)
        self.closed = False
        self.healthy = True
        self.fail_describe = False
        self.fail_close = False
        self.describe_calls = 0

    def close(self) -> None:
        if self.fail_close:
            raise OSError(f"socket to {self.host} already reset")
        self.closed = True

    def is_healthy(self) -> bool:
        return self.healthy and not self.closed

    def describe_cluster_hosts(self) -> Sequence[str]:
        self.describe_calls += 1
        if self.fail_describe:
            raise ConnectionResetError(f"{self.host} reset the connection")
        return list(self.members)


class FakeSessionFactory:
    """Opens `FakeSession`s to reachable hosts and refuses everything else."""

    def __init__(self, reachable: Iterable[str], members: Sequence[str] = CLUSTER_MEMBERS) -> None:
        self.reachable = {Host.parse(entry) for entry in reachable}
        self.members = members
        self.sessions: list[FakeSession] = []
        self.open_calls: list[Host] = []
        self._lock = threading.Lock()

    def open(self, host: Host) -> FakeSession:
        with self._lock:
            self.open_calls.append(host)
        if host not in self.reachable:
            raise ConnectionRefusedError(f"Connection refused by {host}")
        session = FakeSession(host, self.members)
        with self._lock:
            self.sessions.append(session)
        return session


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory([REACHABLE])


@pytest.fixture
def pool_settings() -> HostPoolSettings:
    return HostPoolSettings(max_active=4, max_wait_seconds=0.2)


@pytest.fixture
def cluster_config(pool_settings: HostPoolSettings) -> ClusterPoolConfig:
    return ClusterPoolConfig(
        pool=pool_settings,
        default_port=9170,
        seed_hosts=("127.0.0.1",),
        selection_policy=SelectionPolicy.ORDERED,
    )


@pytest.fixture
def registry(session_factory: FakeSessionFactory, cluster_config: ClusterPoolConfig) -> Iterator[ClientPoolRegistry]:
    with ClientPoolRegistry(session_factory, cluster_config) as registry:
        yield registry


@pytest.fixture
def localhost() -> Host:
    return Host(address="localhost", port=9170)
