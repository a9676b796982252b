"""Configuration models for host pools and the pool registry.

- `HostPoolSettings`: capacity and exhaustion behavior of one per-host pool
- `ClusterPoolConfig`: registry-wide settings, loadable from ``CLUSTERPOOL_*`` env vars
"""

from __future__ import annotations

from enum import StrEnum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExhaustedAction(StrEnum):
    """What `borrow` does when a host pool is at capacity."""

    BLOCK = "block"
    FAIL = "fail"


class SelectionPolicy(StrEnum):
    """Order in which load-balanced borrows try their candidate hosts."""

    ORDERED = "ordered"
    ROUND_ROBIN = "round_robin"
    RANDOM = "random"


class HostPoolSettings(BaseModel):
    """Per-host pool settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_active: int = Field(default=50, ge=1, le=10_000, description="Maximum live connections per host")
    max_idle: int | None = Field(
        default=None, ge=0, description="Maximum idle connections kept per host (None = up to max_active)"
    )
    max_wait_seconds: float = Field(
        default=5.0, ge=0.0, le=3600.0, description="How long a blocked borrow waits for a free slot"
    )
    exhausted_action: ExhaustedAction = Field(
        default=ExhaustedAction.BLOCK, description="Block until max_wait_seconds or fail immediately"
    )
    test_on_borrow: bool = Field(default=True, description="Check idle sessions for health before handing them out")

    @model_validator(mode="after")
    def _max_idle_within_capacity(self) -> Self:
        if self.max_idle is not None and self.max_idle > self.max_active:
            msg = f"max_idle ({self.max_idle}) cannot exceed max_active ({self.max_active})"
            raise ValueError(msg)
        return self

    @property
    def effective_max_idle(self) -> int:
        return self.max_active if self.max_idle is None else self.max_idle


class ClusterPoolConfig(BaseSettings):
    """Complete configuration for a `ClientPoolRegistry`.

    Examples
    --------
    >>> config = ClusterPoolConfig(
    ...     pool=HostPoolSettings(max_active=8, max_wait_seconds=2.0),
    ...     seed_hosts=("10.0.0.1", "10.0.0.2"),
    ... )

    From the environment::

        CLUSTERPOOL_DEFAULT_PORT=9160
        CLUSTERPOOL_SEED_HOSTS='["10.0.0.1", "10.0.0.2"]'
        CLUSTERPOOL_POOL__MAX_ACTIVE=8
    """

    model_config = SettingsConfigDict(
        env_prefix="CLUSTERPOOL_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    pool: HostPoolSettings = Field(default_factory=HostPoolSettings)
    default_port: int = Field(default=9160, ge=1, le=65535, description="Port for addresses given without one")
    seed_hosts: tuple[str, ...] = Field(default_factory=tuple, description="Initial known cluster member addresses")
    selection_policy: SelectionPolicy = Field(default=SelectionPolicy.ROUND_ROBIN)
    discovery_attempts: int = Field(
        default=2, ge=1, le=10, description="Attempts for a known-hosts refresh, each on a fresh connection"
    )
