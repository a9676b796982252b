"""Failover across a caller-supplied list of candidate hosts.

The selector decides the order in which candidates are tried and walks that
order until one of them hands out a connection. The attempt order of one call
is fully determined by the policy and the selector's call counter (or the
seeded random generator), which keeps failover reproducible in tests.
"""

from __future__ import annotations

import itertools
import random
import threading
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from ..logger import get_logger
from .config import SelectionPolicy
from .exceptions import ClusterPoolError, NoReachableHost

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from .connection import PooledConnection

logger: BoundLogger = get_logger(__name__)

type BorrowFn = Callable[[str], PooledConnection]


class HostSelector:
    """Load-balancing and failover policy for multi-host borrows.

    Parameters
    ----------
    policy
        ``ORDERED`` tries candidates in input order. ``ROUND_ROBIN`` rotates
        the starting candidate by one on every call. ``RANDOM`` shuffles the
        candidates with `rng`.
    rng
        Random generator used by the ``RANDOM`` policy. Pass a seeded one to
        make the order reproducible.
    """

    __slots__ = ("_counter", "_lock", "_policy", "_rng")

    def __init__(self, policy: SelectionPolicy = SelectionPolicy.ROUND_ROBIN, rng: random.Random | None = None) -> None:
        self._policy = policy
        self._rng = rng or random.Random()
        self._counter = itertools.count()
        self._lock = threading.Lock()

    @property
    def policy(self) -> SelectionPolicy:
        return self._policy

    def order(self, candidates: Sequence[str]) -> list[str]:
        """Return the attempt order for one call, duplicates removed."""
        unique = list(dict.fromkeys(candidates))
        if len(unique) < 2:
            return unique

        match self._policy:
            case SelectionPolicy.ORDERED:
                return unique
            case SelectionPolicy.ROUND_ROBIN:
                with self._lock:
                    start = next(self._counter) % len(unique)
                return unique[start:] + unique[:start]
            case SelectionPolicy.RANDOM:
                with self._lock:
                    self._rng.shuffle(unique)
                return unique

    def select(self, candidates: Sequence[str], borrow: BorrowFn) -> PooledConnection:
        """Borrow from the first candidate that can serve a connection.

        Parameters
        ----------
        candidates
            ``"host:port"`` strings.
        borrow
            Called with one candidate string at a time. Expected to raise a
            `ClusterPoolError` when that candidate cannot serve.

        Raises
        ------
        NoReachableHost
            If every candidate failed. ``causes`` maps each candidate to its error.
        """
        causes: dict[str, BaseException] = {}
        for candidate in self.order(candidates):
            try:
                conn = borrow(candidate)
            except ClusterPoolError as e:
                causes[candidate] = e
                logger.warning(
                    "Candidate host failed, trying next",
                    candidate=candidate,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if causes:
                logger.info("Failed over to candidate host", candidate=candidate, skipped=list(causes))
            return conn

        logger.error("No reachable host among candidates", candidates=list(candidates))
        raise NoReachableHost(causes)
