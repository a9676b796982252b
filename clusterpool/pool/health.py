from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..core.enums import HealthCheckStatus


class HostPoolHealth(BaseModel):
    """Point-in-time snapshot of one host pool."""

    model_config = ConfigDict(frozen=True)

    host: str
    status: HealthCheckStatus
    capacity: int
    num_active: int
    num_idle: int
    num_blocked: int
    connections_created: int = 0
    connections_destroyed: int = 0
    borrows: int = 0
    exhausted_count: int = 0
    open_failures: int = 0
    message: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def utilization_pct(self) -> float:
        """Share of capacity currently checked out, as a percentage."""
        if self.capacity == 0:
            return 0.0
        return (self.num_active / self.capacity) * 100

    def is_healthy(self) -> bool:
        return self.status == HealthCheckStatus.HEALTHY


class RegistryHealth(BaseModel):
    """Aggregated health of every registered host pool."""

    model_config = ConfigDict(frozen=True)

    status: HealthCheckStatus
    pools: tuple[HostPoolHealth, ...]
    known_hosts: tuple[str, ...] = Field(default_factory=tuple)

    @property
    def healthy_pool_count(self) -> int:
        return sum(1 for pool in self.pools if pool.is_healthy())

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthCheckStatus.HEALTHY

    @property
    def is_operational(self) -> bool:
        """At least one host can still serve connections."""
        return self.status != HealthCheckStatus.UNHEALTHY

    @classmethod
    def from_pools(cls, pools: tuple[HostPoolHealth, ...], known_hosts: tuple[str, ...] = ()) -> RegistryHealth:
        if not pools or all(pool.status == HealthCheckStatus.HEALTHY for pool in pools):
            status = HealthCheckStatus.HEALTHY
        elif all(pool.status == HealthCheckStatus.UNHEALTHY for pool in pools):
            status = HealthCheckStatus.UNHEALTHY
        else:
            status = HealthCheckStatus.DEGRADED
        return cls(status=status, pools=pools, known_hosts=known_hosts)
