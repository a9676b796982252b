"""Bounded connection pool for a single cluster member.

A `HostPool` owns every `PooledConnection` opened to its host. Each
connection is in exactly one of three states:

- idle: pooled and available for reuse
- checked out: held by a caller
- quarantined: invalidated and waiting for its session to be closed

Idle plus checked-out connections are the *live* set, and the live set plus
slots reserved for sessions still being opened never exceeds ``max_active``.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import TYPE_CHECKING

from ..core.enums import HealthCheckStatus
from ..logger import get_logger
from .config import ExhaustedAction, HostPoolSettings
from .connection import PooledConnection
from .exceptions import ConnectionUnavailable, PoolClosed, PoolExhausted
from .health import HostPoolHealth

if TYPE_CHECKING:
    from collections.abc import Iterator

    from structlog.stdlib import BoundLogger

    from .connection import SessionFactory
    from .host import Host

logger: BoundLogger = get_logger(__name__)


class HostPool:
    """Connection pool for one host.

    All bookkeeping is guarded by one lock per pool, so contention on one host
    never blocks callers of another. Only `borrow` may block, and only while
    the pool is at capacity. Sessions are opened and closed outside the lock.

    Examples
    --------
    >>> pool = HostPool(Host(address="10.0.0.1", port=9160), factory, HostPoolSettings(max_active=4))
    >>> conn = pool.borrow()
    >>> try:
    ...     do_work(conn.session)
    ... except Exception:
    ...     pool.invalidate(conn)
    ...     raise
    ... else:
    ...     pool.release(conn)
    """

    __slots__ = (
        "_available",
        "_borrows",
        "_checked_out",
        "_closed",
        "_destroyed",
        "_exhausted_count",
        "_generation",
        "_host",
        "_idle",
        "_last_open_failed",
        "_lock",
        "_open_failures",
        "_opened",
        "_opening",
        "_quarantined",
        "_session_factory",
        "_settings",
        "_waiters",
    )

    def __init__(self, host: Host, session_factory: SessionFactory, settings: HostPoolSettings | None = None) -> None:
        self._host = host
        self._session_factory = session_factory
        self._settings = settings or HostPoolSettings()

        self._lock = threading.Lock()
        self._available = threading.Condition(self._lock)
        self._idle: deque[PooledConnection] = deque()
        self._checked_out: dict[str, PooledConnection] = {}
        self._quarantined: dict[str, PooledConnection] = {}
        self._opening = 0
        self._waiters = 0
        self._closed = False
        self._generation = 0

        self._opened = 0
        self._destroyed = 0
        self._borrows = 0
        self._exhausted_count = 0
        self._open_failures = 0
        self._last_open_failed = False

    def __repr__(self) -> str:
        return (
            f"HostPool(host={self._host}, active={len(self._checked_out)}, idle={len(self._idle)}, "
            f"capacity={self.capacity})"
        )

    @property
    def host(self) -> Host:
        return self._host

    @property
    def name(self) -> str:
        return str(self._host)

    @property
    def settings(self) -> HostPoolSettings:
        return self._settings

    @property
    def capacity(self) -> int:
        return self._settings.max_active

    @property
    def num_active(self) -> int:
        """Connections currently checked out."""
        with self._lock:
            return len(self._checked_out)

    @property
    def num_idle(self) -> int:
        with self._lock:
            return len(self._idle)

    @property
    def num_blocked(self) -> int:
        """Threads currently waiting in `borrow` for a free slot."""
        with self._lock:
            return self._waiters

    @property
    def is_exhausted(self) -> bool:
        with self._lock:
            return not self._idle and not self._has_capacity()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _live_count(self) -> int:
        return len(self._idle) + len(self._checked_out) + self._opening

    def _has_capacity(self) -> bool:
        return self._live_count() < self._settings.max_active

    def live_connections(self) -> frozenset[PooledConnection]:
        """Snapshot of idle and checked-out connections."""
        with self._lock:
            return frozenset(self._idle).union(self._checked_out.values())

    def borrow(self, timeout: float | None = None) -> PooledConnection:
        """Check out a connection, reusing an idle one when possible.

        Parameters
        ----------
        timeout
            Seconds to wait for a free slot when the pool is at capacity.
            Defaults to ``settings.max_wait_seconds``.

        Raises
        ------
        PoolExhausted
            If the pool stayed at capacity for the whole wait.
        ConnectionUnavailable
            If a new session had to be opened and opening it failed.
        PoolClosed
            If the pool has been closed.
        """
        wait_s = self._settings.max_wait_seconds if timeout is None else timeout
        deadline = time.monotonic() + wait_s

        while True:
            conn = self._checkout(deadline, wait_s)
            if conn is None:
                conn = self._open_reserved()
                if conn is None:
                    continue
                return conn
            if not self._settings.test_on_borrow or conn.is_healthy():
                return conn
            logger.warning("Discarding unhealthy idle connection", host=self.name, connection_id=conn.id)
            self.invalidate(conn)

    def borrow_idle(self) -> PooledConnection | None:
        """Check out an idle connection without opening or waiting. Returns None if there is none."""
        while True:
            with self._lock:
                if self._closed or not self._idle:
                    return None
                conn = self._take_idle()
            if not self._settings.test_on_borrow or conn.is_healthy():
                return conn
            logger.warning("Discarding unhealthy idle connection", host=self.name, connection_id=conn.id)
            self.invalidate(conn)

    def _take_idle(self) -> PooledConnection:
        # Most recently released first, so a lightly loaded pool keeps reusing the same session.
        conn = self._idle.pop()
        self._checked_out[conn.id] = conn
        conn.mark_borrowed()
        self._borrows += 1
        return conn

    def _checkout(self, deadline: float, wait_s: float) -> PooledConnection | None:
        """Take an idle connection, or reserve a slot and return None."""
        with self._available:
            while True:
                if self._closed:
                    raise PoolClosed(self._host)
                if self._idle:
                    return self._take_idle()
                if self._has_capacity():
                    self._opening += 1
                    return None

                remaining = deadline - time.monotonic()
                if self._settings.exhausted_action == ExhaustedAction.FAIL or remaining <= 0:
                    self._exhausted_count += 1
                    waited = 0.0 if self._settings.exhausted_action == ExhaustedAction.FAIL else wait_s
                    logger.warning(
                        "Host pool exhausted",
                        host=self.name,
                        capacity=self.capacity,
                        blocked=self._waiters,
                        waited_s=waited,
                    )
                    raise PoolExhausted(self._host, self.capacity, waited)

                self._waiters += 1
                try:
                    self._available.wait(remaining)
                finally:
                    self._waiters -= 1

    def _open_reserved(self) -> PooledConnection | None:
        """Open a session into the slot reserved by `_checkout`.

        Returns None when `invalidate_all` ran while the session was being
        opened. That session is discarded and the slot freed.
        """
        with self._lock:
            generation = self._generation
        try:
            session = self._session_factory.open(self._host)
        except Exception as e:
            with self._available:
                self._opening -= 1
                self._open_failures += 1
                self._last_open_failed = True
                self._available.notify()
            logger.warning("Failed to open connection", host=self.name, error=str(e), error_type=type(e).__name__)
            raise ConnectionUnavailable(self._host, str(e)) from e

        conn = PooledConnection(self._host, session)
        with self._available:
            self._opening -= 1
            self._opened += 1
            closed = self._closed
            stale = generation != self._generation
            if closed or stale:
                self._available.notify()
            else:
                self._checked_out[conn.id] = conn
                conn.mark_borrowed()
                self._borrows += 1
                self._last_open_failed = False

        if closed:
            self._dispose(conn, reason="pool closed while opening")
            raise PoolClosed(self._host)
        if stale:
            conn.mark_errored()
            self._dispose(conn, reason="opened before host invalidation")
            return None

        logger.debug("Opened connection", host=self.name, connection_id=conn.id)
        return conn

    def release(self, conn: PooledConnection) -> None:
        """Return a checked-out connection to the idle set.

        Releasing a connection that was invalidated while checked out is a no-op.
        """
        dispose_reason: str | None = None
        with self._available:
            if self._checked_out.pop(conn.id, None) is None:
                if conn.has_errors:
                    logger.debug("Ignoring release of invalidated connection", host=self.name, connection_id=conn.id)
                else:
                    logger.warning("Ignoring release of connection not checked out", host=self.name, connection_id=conn.id)
                return

            if self._closed:
                dispose_reason = "pool closed"
            elif conn.has_errors:
                self._quarantined[conn.id] = conn
                dispose_reason = "errored"
            elif len(self._idle) >= self._settings.effective_max_idle:
                dispose_reason = "max_idle reached"
            else:
                self._idle.append(conn)
            self._available.notify()

        if dispose_reason is not None:
            self._dispose(conn, reason=dispose_reason)

    def invalidate(self, conn: PooledConnection) -> None:
        """Mark `conn` errored, drop it from the live set and close its session."""
        conn.mark_errored()
        with self._available:
            if self._checked_out.pop(conn.id, None) is None:
                try:
                    self._idle.remove(conn)
                except ValueError:
                    return
            self._quarantined[conn.id] = conn
            self._available.notify()

        logger.info("Invalidated connection", host=self.name, connection_id=conn.id)
        self._dispose(conn, reason="invalidated")

    def invalidate_all(self) -> int:
        """Invalidate every live connection in one step. Returns how many were invalidated.

        Sessions still being opened are discarded once their open completes.
        """
        with self._available:
            self._generation += 1
            victims = [*self._idle, *self._checked_out.values()]
            self._idle.clear()
            self._checked_out.clear()
            for conn in victims:
                conn.mark_errored()
                self._quarantined[conn.id] = conn
            if victims:
                self._available.notify(len(victims))

        logger.warning("Invalidated all connections to host", host=self.name, count=len(victims))
        for conn in victims:
            self._dispose(conn, reason="host invalidated")
        return len(victims)

    def _dispose(self, conn: PooledConnection, reason: str) -> None:
        try:
            conn.close()
        except Exception as e:
            logger.warning(
                "Error closing connection, ignoring",
                host=self.name,
                connection_id=conn.id,
                reason=reason,
                exc_info=e,
            )
        finally:
            with self._lock:
                self._quarantined.pop(conn.id, None)
                self._destroyed += 1
        logger.debug("Disposed connection", host=self.name, connection_id=conn.id, reason=reason)

    def close(self) -> None:
        """Tear the pool down.

        Idle connections are closed now, checked-out ones when they are
        released. Blocked borrowers wake up with `PoolClosed`.
        """
        with self._available:
            if self._closed:
                return
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()
            outstanding = len(self._checked_out)
            self._available.notify_all()

        for conn in idle:
            self._dispose(conn, reason="pool closed")
        logger.info("Host pool closed", host=self.name, disposed=len(idle), outstanding=outstanding)

    @contextmanager
    def connection(self, timeout: float | None = None) -> Iterator[PooledConnection]:
        """Borrow a connection for the duration of a ``with`` block.

        The connection is released on normal exit and invalidated if the block raises.
        """
        conn = self.borrow(timeout)
        try:
            yield conn
        except BaseException:
            self.invalidate(conn)
            raise
        self.release(conn)

    def health_check(self) -> HostPoolHealth:
        with self._lock:
            active = len(self._checked_out)
            idle = len(self._idle)
            exhausted = not self._idle and not self._has_capacity()

            if self._closed:
                status, message = HealthCheckStatus.UNHEALTHY, "Pool is closed"
            elif self._last_open_failed and active + idle == 0:
                status, message = HealthCheckStatus.UNHEALTHY, "Host unreachable"
            elif exhausted:
                status, message = HealthCheckStatus.DEGRADED, "Pool is exhausted"
            else:
                status, message = HealthCheckStatus.HEALTHY, "Pool is healthy"

            return HostPoolHealth(
                host=self.name,
                status=status,
                capacity=self.capacity,
                num_active=active,
                num_idle=idle,
                num_blocked=self._waiters,
                connections_created=self._opened,
                connections_destroyed=self._destroyed,
                borrows=self._borrows,
                exhausted_count=self._exhausted_count,
                open_failures=self._open_failures,
                message=message,
            )
