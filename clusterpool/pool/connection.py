"""Session protocols consumed by the pool and the pooled connection wrapper.

The wire protocol lives outside this package. The pool only needs to open a
session to a host, ask it whether it is healthy, query it for the cluster
membership and close it.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .host import Host


@runtime_checkable
class Session(Protocol):
    """An open, authenticated session to one cluster member."""

    def close(self) -> None: ...

    def is_healthy(self) -> bool: ...

    def describe_cluster_hosts(self) -> Sequence[str]: ...


@runtime_checkable
class SessionFactory(Protocol):
    """Opens sessions. Any exception raised by `open` means the host is unreachable."""

    def open(self, host: Host) -> Session: ...


class PooledConnection:
    """A session owned by exactly one `HostPool`.

    Instances compare by identity: two wrappers are equal only if they are the
    same object, which is what "the same connection was reused" means. A
    caller may keep inspecting a connection after the pool invalidated it;
    invalidation only flips `has_errors` and closes the session.
    """

    __slots__ = ("_borrow_count", "_created_at", "_has_errors", "_host", "_id", "_last_borrowed_at", "_session")

    def __init__(self, host: Host, session: Session) -> None:
        self._id = uuid.uuid4().hex
        self._host = host
        self._session = session
        self._has_errors = False
        self._created_at = datetime.now(UTC)
        self._last_borrowed_at: datetime | None = None
        self._borrow_count = 0

    @property
    def id(self) -> str:
        return self._id

    @property
    def host(self) -> Host:
        return self._host

    @property
    def url(self) -> str:
        return self._host.address

    @property
    def port(self) -> int:
        return self._host.port

    @property
    def session(self) -> Session:
        return self._session

    @property
    def has_errors(self) -> bool:
        return self._has_errors

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def last_borrowed_at(self) -> datetime | None:
        return self._last_borrowed_at

    @property
    def borrow_count(self) -> int:
        return self._borrow_count

    def is_healthy(self) -> bool:
        return not self._has_errors and self._session.is_healthy()

    def describe_cluster_hosts(self) -> Sequence[str]:
        return self._session.describe_cluster_hosts()

    def mark_errored(self) -> None:
        self._has_errors = True

    def mark_borrowed(self) -> None:
        self._borrow_count += 1
        self._last_borrowed_at = datetime.now(UTC)

    def close(self) -> None:
        self._session.close()

    def __repr__(self) -> str:
        return f"PooledConnection(id={self._id[:8]}, host={self._host}, has_errors={self._has_errors})"
